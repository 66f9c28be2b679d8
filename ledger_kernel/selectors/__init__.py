"""Selectors for the ledger kernel (read side)."""

from ledger_kernel.selectors.ledger_selector import (
    BeneficiaryContractLine,
    BeneficiaryStatement,
    ContractFinancials,
    ContractStatement,
    GlobalFinancials,
    IncomeBreakdown,
    LedgerSelector,
    SettlementRow,
)
from ledger_kernel.selectors.schedule_selector import ScheduleSelector, ScheduleSummary

__all__ = [
    "BeneficiaryContractLine",
    "BeneficiaryStatement",
    "ContractFinancials",
    "ContractStatement",
    "GlobalFinancials",
    "IncomeBreakdown",
    "LedgerSelector",
    "ScheduleSelector",
    "ScheduleSummary",
    "SettlementRow",
]
