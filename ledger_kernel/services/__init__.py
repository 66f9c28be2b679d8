"""Services for the ledger kernel (write side)."""

from ledger_kernel.services.beneficiary_service import BeneficiaryService
from ledger_kernel.services.contract_service import AgreementSummary, ContractService
from ledger_kernel.services.debt_service import DebtService
from ledger_kernel.services.expense_service import ExpenseService
from ledger_kernel.services.payment_service import PaymentService
from ledger_kernel.services.reconciliation_service import ReconciliationService
from ledger_kernel.services.sequence_service import SequenceService

__all__ = [
    "AgreementSummary",
    "BeneficiaryService",
    "ContractService",
    "DebtService",
    "ExpenseService",
    "PaymentService",
    "ReconciliationService",
    "SequenceService",
]
