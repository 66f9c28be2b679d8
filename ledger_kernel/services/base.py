"""
BaseService -- abstract base for all ledger services.

Responsibility:
    Provides the common constructor shared by every mutating service: the
    ``LedgerStore`` to write through, the injected clock and id generator,
    and the ``LedgerPolicy``.  Also hosts the lookup and amount checks every
    service runs against a working transaction before it writes.

Architecture position:
    Kernel > Services -- imperative shell.  Every service in
    ``ledger_kernel/services/`` that performs write operations extends this
    class.

Invariants enforced:
    Atomicity -- each public mutating method opens exactly one
        ``store.transaction()``.  Validation runs inside that transaction
        before any bucket is touched, so a rejection leaves nothing behind.

Failure modes:
    - NotFoundError subclasses from the ``_require_*`` lookups.
    - ValidationError from ``_positive_amount`` and ``_choice``.
"""

from __future__ import annotations

from abc import ABC
from decimal import Decimal
from enum import Enum
from typing import Any, TypeVar

from ledger_kernel.domain.clock import Clock, SystemClock
from ledger_kernel.domain.identity import IdGenerator, UuidIdGenerator
from ledger_kernel.domain.models import (
    Beneficiary,
    BeneficiaryKind,
    BeneficiaryRef,
    Contract,
    Expense,
    ReceivedPayment,
)
from ledger_kernel.domain.policy import DEFAULT_POLICY, LedgerPolicy
from ledger_kernel.domain.values import ZERO, to_decimal
from ledger_kernel.exceptions import (
    BeneficiaryNotFoundError,
    ContractNotFoundError,
    ExpenseNotFoundError,
    PaymentNotFoundError,
    ValidationError,
)
from ledger_kernel.store import LedgerStore, LedgerTransaction

E = TypeVar("E", bound=Enum)


class BaseService(ABC):
    """
    Abstract base class for all ledger services.

    Contract:
        Accepts a ``LedgerStore`` and writes only through
        ``store.transaction()``.

    Non-goals:
        - Does NOT provide query-only (read) methods -- those belong
          in ``ledger_kernel/selectors/``.
        - Does NOT persist anything; the host saves through a repository.
    """

    def __init__(
        self,
        store: LedgerStore,
        clock: Clock | None = None,
        id_generator: IdGenerator | None = None,
        policy: LedgerPolicy = DEFAULT_POLICY,
    ):
        self.store = store
        self.clock = clock or SystemClock()
        self.ids = id_generator or UuidIdGenerator()
        self.policy = policy

    # -------------------------------------------------------------------------
    # Lookups inside a working transaction
    # -------------------------------------------------------------------------

    @staticmethod
    def _require_contract(txn: LedgerTransaction, contract_id: str) -> Contract:
        contract = txn.contracts.get(contract_id)
        if contract is None:
            raise ContractNotFoundError(contract_id)
        return contract

    @staticmethod
    def _require_expense(txn: LedgerTransaction, expense_id: str) -> Expense:
        expense = txn.expenses.get(expense_id)
        if expense is None:
            raise ExpenseNotFoundError(expense_id)
        return expense

    @staticmethod
    def _require_payment(txn: LedgerTransaction, payment_id: str) -> ReceivedPayment:
        payment = txn.received_payments.get(payment_id)
        if payment is None:
            raise PaymentNotFoundError(payment_id)
        return payment

    @staticmethod
    def _require_beneficiary(
        txn: LedgerTransaction,
        kind: BeneficiaryKind,
        beneficiary_id: str,
    ) -> Beneficiary:
        beneficiary = txn.beneficiaries(kind).get(beneficiary_id)
        if beneficiary is None:
            raise BeneficiaryNotFoundError(beneficiary_id, kind=kind.value.lower())
        return beneficiary

    @classmethod
    def _require_beneficiary_ref(
        cls,
        txn: LedgerTransaction,
        ref: BeneficiaryRef,
    ) -> Beneficiary:
        return cls._require_beneficiary(txn, ref.kind, ref.id)

    # -------------------------------------------------------------------------
    # Amount checks
    # -------------------------------------------------------------------------

    @staticmethod
    def _amount(value: Decimal | int | str, field: str = "amount") -> Decimal:
        """Coerce to Decimal, translating coercion failures to ValidationError."""
        try:
            return to_decimal(value, field=field)
        except (TypeError, ValueError) as e:
            raise ValidationError(str(e), field=field) from e

    @classmethod
    def _positive_amount(cls, value: Decimal | int | str, field: str = "amount") -> Decimal:
        amount = cls._amount(value, field=field)
        if amount <= ZERO:
            raise ValidationError(f"{field} must be greater than zero, got {amount}", field=field)
        return amount

    @staticmethod
    def _choice(enum_type: type[E], value: Any, field: str) -> E:
        """Coerce to an enum member, translating unknown values to ValidationError."""
        try:
            return enum_type(value)
        except ValueError as e:
            allowed = ", ".join(str(m.value) for m in enum_type)
            raise ValidationError(
                f"{field} must be one of [{allowed}], got {value!r}", field=field
            ) from e
