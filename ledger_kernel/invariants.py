"""
Ledger Invariants Contract.

These invariants are structural law. They are enforced inside store
transactions and service preconditions. No LedgerConfig field may
override them.

This module exists solely to declare these invariants explicitly. The
enforcement is distributed across DebtService, ExpenseService,
PaymentService, ContractService, BeneficiaryService and
ReconciliationService.
"""

from enum import Enum, unique


@unique
class LedgerInvariant(str, Enum):
    """Non-configurable invariants enforced by the ledger kernel.

    Each value names one structural guarantee. Configuration may influence
    *how* an overpayment is resolved, but never *whether* these hold.
    """

    PAID_WITHIN_AMOUNT = "paid_within_amount"
    """0 <= paid_amount <= amount for every expense. Cash expenses always
    have paid_amount == amount. Enforced by ExpenseService and DebtService."""

    SETTLEMENT_TRAIL = "settlement_trail"
    """The sum of payment history entries never exceeds paid_amount; the
    difference is the amount settled at registration. Enforced by
    DebtService."""

    DERIVED_BALANCE = "derived_balance"
    """A beneficiary balance equals sum(amount) - sum(effective_paid) over
    the expenses referencing it. The incremental index is checked against
    a full recompute by ReconciliationService."""

    SCHEDULE_SHAPE = "schedule_shape"
    """Every contract has at least one stage and its percentages sum to
    100 within the configured tolerance. Enforced by ContractService."""

    SINGLE_CONVERSION = "single_conversion"
    """At most one contract exists per source quote id. Enforced by
    ContractService.create_contract_from_quote."""

    REFERENTIAL_INTEGRITY = "referential_integrity"
    """Beneficiaries and payment stages cannot be removed while referenced.
    Nothing is deleted as a side effect of another deletion."""

    NUMBER_MONOTONICITY = "number_monotonicity"
    """Contract numbers come from a per-year counter that never decreases.
    Enforced by SequenceService."""


ALL_LEDGER_INVARIANTS: frozenset[LedgerInvariant] = frozenset(LedgerInvariant)

# The kernel package may not import from these packages.
# This is enforced by tests/architecture/test_kernel_boundary.py.
FORBIDDEN_KERNEL_IMPORTS: tuple[str, ...] = (
    "ledger_config",
)
