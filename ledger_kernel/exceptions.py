"""
Typed Exception Hierarchy for the Ledger Kernel.

===============================================================================
WHY TYPED EXCEPTIONS
===============================================================================

Callers (forms, report layers, service wrappers) must react to ledger errors
precisely: a blocked supplier deletion is shown differently from an
overpayment. Matching on message strings is fragile, so:

  1. Every error has a TYPED exception class (catch by type, not message)
  2. Every exception has a CODE attribute (machine-readable, API-safe)
  3. Exceptions carry structured DATA (not just a message string)

Example:
    try:
        debt_service.pay_partial_debt(expense_id, Decimal("70000"), today)
    except OverpaymentError as e:
        show_error(code=e.code, remaining=e.remaining)

===============================================================================
EXCEPTION HIERARCHY
===============================================================================

All exceptions inherit from LedgerError:

    LedgerError (base)
    |
    +-- ValidationError
    |   +-- OverpaymentError
    |   +-- ScheduleImbalanceError
    |   +-- InvalidPaymentMethodError
    |   +-- InvalidTransitionError
    |
    +-- NotFoundError
    |   +-- ContractNotFoundError
    |   +-- ExpenseNotFoundError
    |   +-- PaymentNotFoundError
    |   +-- BeneficiaryNotFoundError
    |   +-- StageNotFoundError
    |
    +-- ReferentialIntegrityError
    +-- DuplicateConversionError
    +-- InvariantViolationError

===============================================================================
ERROR CODES - QUICK REFERENCE
===============================================================================

Category        | Code                      | When Raised
----------------|---------------------------|------------------------------------------
Validation      | VALIDATION_ERROR          | Missing field, non-positive amount, bad value
                | OVERPAYMENT               | Payment exceeds outstanding debt / stage
                | SCHEDULE_IMBALANCE        | Stage percentages do not sum to 100
                | INVALID_PAYMENT_METHOD    | Debt payment against a Cash expense
                | INVALID_TRANSITION        | Contract status move not in the workflow
----------------|---------------------------|------------------------------------------
Not found       | CONTRACT_NOT_FOUND        | Unknown contract id
                | EXPENSE_NOT_FOUND         | Unknown expense id
                | PAYMENT_NOT_FOUND         | Unknown received payment id
                | BENEFICIARY_NOT_FOUND     | Unknown supplier/worker/subcontractor id
                | STAGE_NOT_FOUND           | Stage id not in the contract schedule
----------------|---------------------------|------------------------------------------
Integrity       | REFERENTIAL_INTEGRITY     | Deleting a record still referenced
                | DUPLICATE_CONVERSION      | Quote already converted to a contract
                | INVARIANT_VIOLATION       | Balance index disagrees with recompute

===============================================================================
DESIGN DECISIONS
===============================================================================

1. Inherit from Exception, not ValueError/KeyError, so ledger errors can be
   caught as one group without catching programming errors.

2. ``code`` is a class attribute so it can be read without instantiation.

3. All context is stored as attributes so errors survive logging and
   serialization (the structured log formatter copies them as exc_* fields).
"""

from decimal import Decimal


class LedgerError(Exception):
    """
    Base exception for all ledger kernel errors.

    All subclasses must have a `code` class attribute for machine-readable
    error identification.
    """

    code: str = "LEDGER_ERROR"


# Validation exceptions


class ValidationError(LedgerError):
    """A mutation was rejected before any write took place."""

    code: str = "VALIDATION_ERROR"

    def __init__(self, message: str, field: str | None = None):
        self.field = field
        super().__init__(message)


class OverpaymentError(ValidationError):
    """A payment would exceed the outstanding amount it settles."""

    code: str = "OVERPAYMENT"

    def __init__(self, target_id: str, requested: Decimal, remaining: Decimal):
        self.target_id = target_id
        self.requested = requested
        self.remaining = remaining
        super().__init__(
            f"Payment of {requested} exceeds outstanding amount {remaining} "
            f"for {target_id}",
            field="amount",
        )


class ScheduleImbalanceError(ValidationError):
    """Payment schedule percentages do not sum to 100."""

    code: str = "SCHEDULE_IMBALANCE"

    def __init__(self, total_percentage: Decimal, reason: str | None = None):
        self.total_percentage = total_percentage
        message = f"Payment schedule totals {total_percentage}%, expected 100%"
        if reason:
            message = f"{message}: {reason}"
        super().__init__(message, field="payment_schedule")


class InvalidPaymentMethodError(ValidationError):
    """Operation requires a different payment method on the expense."""

    code: str = "INVALID_PAYMENT_METHOD"

    def __init__(self, expense_id: str, payment_method: str, required: str):
        self.expense_id = expense_id
        self.payment_method = payment_method
        self.required = required
        super().__init__(
            f"Expense {expense_id} uses {payment_method}; "
            f"operation requires {required}",
            field="payment_method",
        )


class InvalidTransitionError(ValidationError):
    """Contract status change is not permitted by the lifecycle workflow."""

    code: str = "INVALID_TRANSITION"

    def __init__(self, contract_id: str, from_status: str, to_status: str):
        self.contract_id = contract_id
        self.from_status = from_status
        self.to_status = to_status
        super().__init__(
            f"Contract {contract_id} cannot move from {from_status} to {to_status}",
            field="status",
        )


# Not-found exceptions


class NotFoundError(LedgerError):
    """Base exception for unknown entity ids."""

    code: str = "NOT_FOUND"
    entity_kind: str = "entity"

    def __init__(self, entity_id: str):
        self.entity_id = entity_id
        super().__init__(f"{self.entity_kind.capitalize()} not found: {entity_id}")


class ContractNotFoundError(NotFoundError):
    """Contract with given id was not found."""

    code: str = "CONTRACT_NOT_FOUND"
    entity_kind: str = "contract"


class ExpenseNotFoundError(NotFoundError):
    """Expense with given id was not found."""

    code: str = "EXPENSE_NOT_FOUND"
    entity_kind: str = "expense"


class PaymentNotFoundError(NotFoundError):
    """Received payment with given id was not found."""

    code: str = "PAYMENT_NOT_FOUND"
    entity_kind: str = "received payment"


class BeneficiaryNotFoundError(NotFoundError):
    """Supplier, worker or subcontractor with given id was not found."""

    code: str = "BENEFICIARY_NOT_FOUND"

    def __init__(self, entity_id: str, kind: str = "beneficiary"):
        self.entity_kind = kind
        super().__init__(entity_id)


class StageNotFoundError(NotFoundError):
    """Payment stage id is not part of the contract's schedule."""

    code: str = "STAGE_NOT_FOUND"
    entity_kind: str = "payment stage"

    def __init__(self, entity_id: str, contract_id: str):
        self.contract_id = contract_id
        super().__init__(entity_id)


# Integrity exceptions


class ReferentialIntegrityError(LedgerError):
    """
    A destructive operation is blocked by records that still reference
    the target.

    ``blocking_ids`` lists the referencing records so the caller can show
    exactly what must be removed first.
    """

    code: str = "REFERENTIAL_INTEGRITY"

    def __init__(
        self,
        entity_kind: str,
        entity_id: str,
        blocking_kind: str,
        blocking_ids: tuple[str, ...],
    ):
        self.entity_kind = entity_kind
        self.entity_id = entity_id
        self.blocking_kind = blocking_kind
        self.blocking_ids = tuple(blocking_ids)
        super().__init__(
            f"Cannot delete {entity_kind} {entity_id}: referenced by "
            f"{len(self.blocking_ids)} {blocking_kind}(s): "
            f"{', '.join(self.blocking_ids)}"
        )


class DuplicateConversionError(LedgerError):
    """Quote has already been converted to a contract."""

    code: str = "DUPLICATE_CONVERSION"

    def __init__(self, quote_id: str, contract_id: str):
        self.quote_id = quote_id
        self.contract_id = contract_id
        super().__init__(
            f"Quote {quote_id} already converted to contract {contract_id}"
        )


class InvariantViolationError(LedgerError):
    """Incrementally maintained state disagrees with a full recompute."""

    code: str = "INVARIANT_VIOLATION"

    def __init__(self, invariant: str, mismatches: dict[str, tuple[Decimal, Decimal]]):
        self.invariant = invariant
        self.mismatches = mismatches
        super().__init__(
            f"Invariant {invariant} violated for {len(mismatches)} key(s): "
            f"{', '.join(sorted(mismatches))}"
        )
