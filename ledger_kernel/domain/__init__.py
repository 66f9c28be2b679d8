"""
Pure domain layer.

This module contains immutable value objects and pure ledger arithmetic
with NO dependencies on:
- the store or its transactions
- SQLAlchemy / persistence
- the system clock
- I/O
"""

from ledger_kernel.domain.clock import Clock, DeterministicClock, SystemClock
from ledger_kernel.domain.identity import (
    EntityPrefix,
    IdGenerator,
    SequentialIdGenerator,
    UuidIdGenerator,
)
from ledger_kernel.domain.models import (
    Attachment,
    Beneficiary,
    BeneficiaryKind,
    BeneficiaryRef,
    Contract,
    ContractStatus,
    Expense,
    ExpenseCategory,
    PaymentHistoryEntry,
    PaymentMethod,
    PaymentStage,
    ReceivedPayment,
    Subcontractor,
    SubcontractorAgreement,
    Supplier,
    Worker,
)
from ledger_kernel.domain.policy import DEFAULT_POLICY, LedgerPolicy, OverpaymentPolicy
from ledger_kernel.domain.pricing import Quote, QuotePricer, QuoteTotals
from ledger_kernel.domain.schedule import StageProjection

__all__ = [
    "Attachment",
    "Beneficiary",
    "BeneficiaryKind",
    "BeneficiaryRef",
    "Clock",
    "Contract",
    "ContractStatus",
    "DEFAULT_POLICY",
    "DeterministicClock",
    "EntityPrefix",
    "Expense",
    "ExpenseCategory",
    "IdGenerator",
    "LedgerPolicy",
    "OverpaymentPolicy",
    "PaymentHistoryEntry",
    "PaymentMethod",
    "PaymentStage",
    "Quote",
    "QuotePricer",
    "QuoteTotals",
    "ReceivedPayment",
    "SequentialIdGenerator",
    "StageProjection",
    "Subcontractor",
    "SubcontractorAgreement",
    "Supplier",
    "SystemClock",
    "UuidIdGenerator",
    "Worker",
]
