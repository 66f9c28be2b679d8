"""
Ledger Domain Models (``ledger_kernel.domain.models``).

Responsibility
--------------
Frozen value objects representing the nouns of the contract ledger:
contracts and their payment stages, received payments, expenses with their
settlement history, beneficiaries (suppliers, workers, subcontractors) and
subcontractor agreements.

Architecture position
---------------------
**Kernel > Domain** -- pure data definitions. No I/O, no store, no
imports from ``ledger_kernel/services``. These objects flow *into* the
store through services and *out of* selectors as immutable snapshots.
Edits produce new instances via ``dataclasses.replace``.

Invariants enforced
-------------------
* All monetary fields use ``Decimal`` (never ``float``).
* All dataclasses are ``frozen=True`` -- immutable after construction.
* ``Expense.__post_init__`` enforces ``0 <= paid_amount <= amount`` and
  ``paid_amount == amount`` for cash expenses.
* Beneficiaries never store a balance; balances are derived.

Failure modes
-------------
* ``ValueError`` raised in ``__post_init__`` when a structural constraint is
  violated. Services validate first and raise typed ``ValidationError``s,
  so reaching one of these means a caller bypassed the service layer.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date, datetime
from decimal import Decimal
from enum import Enum
from typing import Any, ClassVar

from ledger_kernel.domain.values import ZERO
from ledger_kernel.logging_config import get_logger

logger = get_logger("domain.models")


class ContractStatus(str, Enum):
    """Contract lifecycle states. Must align with ``workflow.CONTRACT_WORKFLOW.states``."""
    ACTIVE = "Active"
    ON_HOLD = "OnHold"
    COMPLETED = "Completed"
    CANCELLED = "Cancelled"


class ExpenseCategory(str, Enum):
    MATERIAL = "Material"
    LABOR = "Labor"
    TRANSPORT = "Transport"
    OTHER = "Other"
    DEBT_PAYMENT = "DebtPayment"


class PaymentMethod(str, Enum):
    """How an expense is settled. Cash is settled in full at registration."""
    CASH = "Cash"
    CREDIT = "Credit"


class BeneficiaryKind(str, Enum):
    SUPPLIER = "Supplier"
    WORKER = "Worker"
    SUBCONTRACTOR = "Subcontractor"


@dataclass(frozen=True)
class BeneficiaryRef:
    """Tagged reference from an expense to exactly one beneficiary."""
    kind: BeneficiaryKind
    id: str

    @property
    def key(self) -> str:
        """Stable index key, e.g. ``Supplier:sup-000001``."""
        return f"{self.kind.value}:{self.id}"


# -----------------------------------------------------------------------------
# Contracts
# -----------------------------------------------------------------------------


@dataclass(frozen=True)
class PaymentStage:
    """A named milestone expressed as a percentage of the contract value."""
    id: str
    name: str
    percentage: Decimal


@dataclass(frozen=True)
class Attachment:
    """Opaque attachment metadata. File content encoding is out of scope."""
    id: str
    name: str
    url: str
    mime_type: str = ""
    original_filename: str = ""
    added_at: datetime | None = None


@dataclass(frozen=True)
class Contract:
    """A construction contract created from an approved quote.

    Contract: frozen; ``total_contract_value`` is frozen at creation from the
    upstream pricing function and only changes through an explicit edit.
    Guarantees: ``payment_schedule`` is non-empty once committed.
    Non-goals: ``project_details`` is copied from the quote and treated as
    opaque, read-only data.
    """
    id: str
    contract_number: str
    quote_id: str
    total_contract_value: Decimal
    payment_schedule: tuple[PaymentStage, ...]
    created_at: datetime
    status: ContractStatus = ContractStatus.ACTIVE
    offer_number: str = ""
    quote_date: str | None = None
    project_details: dict[str, Any] = field(default_factory=dict)
    duration_days: int | None = None
    attachments: tuple[Attachment, ...] = ()

    def stage(self, stage_id: str) -> PaymentStage | None:
        for stage in self.payment_schedule:
            if stage.id == stage_id:
                return stage
        return None


@dataclass(frozen=True)
class ReceivedPayment:
    """Money received from the client for a contract.

    ``schedule_stage_id is None`` marks an extra, out-of-schedule payment that
    bypasses stage accounting.
    """
    id: str
    contract_id: str
    amount: Decimal
    payment_date: date
    schedule_stage_id: str | None = None
    note: str = ""
    attachment_url: str | None = None
    recorded_by: str | None = None

    @property
    def is_extra(self) -> bool:
        return self.schedule_stage_id is None


# -----------------------------------------------------------------------------
# Expenses
# -----------------------------------------------------------------------------


@dataclass(frozen=True)
class PaymentHistoryEntry:
    """One settlement event recorded against a credit expense."""
    id: str
    payment_date: date
    amount: Decimal
    attachment_url: str | None = None
    note: str | None = None
    receipt_number: str | None = None
    receipt_date: date | None = None


@dataclass(frozen=True)
class Expense:
    """An obligation incurred on a contract, optionally owed to a beneficiary.

    Contract: frozen, validated at construction via ``__post_init__``.
    Guarantees: ``0 <= paid_amount <= amount`` (INVARIANT); cash expenses are
    fully settled (``paid_amount == amount``).
    Non-goals: does not check that ``contract_id`` or ``beneficiary`` exist
    (ExpenseService does).
    """
    id: str
    contract_id: str
    expense_date: date
    description: str
    amount: Decimal
    category: ExpenseCategory
    payment_method: PaymentMethod
    paid_amount: Decimal = ZERO
    beneficiary: BeneficiaryRef | None = None
    payment_history: tuple[PaymentHistoryEntry, ...] = ()
    attachment_url: str | None = None
    notes: str | None = None
    receipt_number: str | None = None
    receipt_date: date | None = None

    def __post_init__(self):
        # INVARIANT: 0 <= paid_amount <= amount
        if self.paid_amount < ZERO or self.paid_amount > self.amount:
            logger.warning(
                "expense_paid_amount_out_of_range",
                extra={
                    "expense_id": self.id,
                    "amount": str(self.amount),
                    "paid_amount": str(self.paid_amount),
                },
            )
            raise ValueError(
                f"paid_amount ({self.paid_amount}) must be within "
                f"[0, amount ({self.amount})]"
            )
        # INVARIANT: cash is settled at creation
        if self.payment_method == PaymentMethod.CASH and self.paid_amount != self.amount:
            raise ValueError(
                f"Cash expense {self.id} must have paid_amount == amount"
            )

    @property
    def effective_paid(self) -> Decimal:
        if self.payment_method == PaymentMethod.CASH:
            return self.amount
        return self.paid_amount

    @property
    def outstanding(self) -> Decimal:
        """Unsettled portion; the *debt* for credit expenses."""
        return self.amount - self.effective_paid

    @property
    def history_total(self) -> Decimal:
        return sum((h.amount for h in self.payment_history), ZERO)

    @property
    def initial_payment(self) -> Decimal:
        """Amount settled at registration, outside the recorded history."""
        return self.effective_paid - self.history_total

    @property
    def is_settled(self) -> bool:
        return self.outstanding <= ZERO


# -----------------------------------------------------------------------------
# Beneficiaries
# -----------------------------------------------------------------------------


@dataclass(frozen=True)
class Supplier:
    """A material supplier."""
    kind: ClassVar[BeneficiaryKind] = BeneficiaryKind.SUPPLIER

    id: str
    name: str
    phone: str = ""
    address: str | None = None
    specialty: str = ""
    notes: str | None = None


@dataclass(frozen=True)
class Worker:
    """A day-rate worker."""
    kind: ClassVar[BeneficiaryKind] = BeneficiaryKind.WORKER

    id: str
    name: str
    phone: str = ""
    address: str | None = None
    role: str = ""
    daily_wage: Decimal = ZERO
    notes: str | None = None


@dataclass(frozen=True)
class Subcontractor:
    """A subcontractor engaged for a scope of work."""
    kind: ClassVar[BeneficiaryKind] = BeneficiaryKind.SUBCONTRACTOR

    id: str
    name: str
    phone: str = ""
    address: str | None = None
    specialty: str = ""
    company_name: str | None = None
    default_contract_value: Decimal | None = None


Beneficiary = Supplier | Worker | Subcontractor


@dataclass(frozen=True)
class SubcontractorAgreement:
    """The agreed value of one subcontractor's scope on one contract.

    Keyed by (``contract_id``, ``subcontractor_id``); saving again replaces.
    """
    id: str
    contract_id: str
    subcontractor_id: str
    total_amount: Decimal
    duration_days: int = 0
    notes: str | None = None
