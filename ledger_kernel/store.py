"""
Module: ledger_kernel.store
Responsibility: The Entity Store. Holds every entity collection as an
    immutable ``LedgerState`` version and provides the transactional scope
    through which all mutations pass.
Architecture position: Kernel > Store. May import from domain/ and
    logging_config only. Services write through ``LedgerStore.transaction()``;
    selectors read ``LedgerStore.state``.

Invariants enforced:
    - Atomicity: a transaction works on a private copy. Normal exit swaps the
      committed reference; an exception discards the copy, so a rejected
      mutation leaves the store completely unchanged.
    - Serializability: one writer at a time (single writer lock). Nested
      transactions on the same thread are refused rather than silently
      losing the inner commit.
    - Snapshot reads: committed states are never mutated, so a reader holding
      ``store.state`` sees one consistent version without locking.
    - DERIVED_BALANCE: expense writes go through ``put_expense`` /
      ``delete_expense``, which keep the beneficiary balance index current.

Failure modes:
    - RuntimeError when a transaction is opened inside another transaction on
      the same thread.
    - Any exception raised inside the ``with`` block propagates after the
      rollback is logged.
"""

from __future__ import annotations

import threading
from collections.abc import Iterator, Mapping
from contextlib import contextmanager
from dataclasses import dataclass, field
from decimal import Decimal
from types import MappingProxyType

from ledger_kernel.domain.balances import apply_expense_change, compute_balances
from ledger_kernel.domain.models import (
    Beneficiary,
    BeneficiaryKind,
    Contract,
    Expense,
    ReceivedPayment,
    Subcontractor,
    SubcontractorAgreement,
    Supplier,
    Worker,
)
from ledger_kernel.logging_config import LogContext, get_logger

logger = get_logger("store")

BENEFICIARY_BUCKETS: dict[BeneficiaryKind, str] = {
    BeneficiaryKind.SUPPLIER: "suppliers",
    BeneficiaryKind.WORKER: "workers",
    BeneficiaryKind.SUBCONTRACTOR: "subcontractors",
}

ENTITY_BUCKETS: tuple[str, ...] = (
    "contracts",
    "suppliers",
    "workers",
    "subcontractors",
    "sub_agreements",
    "expenses",
    "received_payments",
)


def _frozen(d: dict | None = None) -> Mapping:
    return MappingProxyType(dict(d or {}))


@dataclass(frozen=True)
class LedgerState:
    """
    One committed version of the ledger.

    Every bucket is a read-only id -> entity mapping in insertion order.
    ``sequences`` holds durable counters (contract numbers per year);
    ``balances`` is the incremental beneficiary balance index keyed by
    ``BeneficiaryRef.key``.
    """

    contracts: Mapping[str, Contract] = field(default_factory=_frozen)
    suppliers: Mapping[str, Supplier] = field(default_factory=_frozen)
    workers: Mapping[str, Worker] = field(default_factory=_frozen)
    subcontractors: Mapping[str, Subcontractor] = field(default_factory=_frozen)
    sub_agreements: Mapping[str, SubcontractorAgreement] = field(default_factory=_frozen)
    expenses: Mapping[str, Expense] = field(default_factory=_frozen)
    received_payments: Mapping[str, ReceivedPayment] = field(default_factory=_frozen)
    sequences: Mapping[str, int] = field(default_factory=_frozen)
    balances: Mapping[str, Decimal] = field(default_factory=_frozen)
    version: int = 0

    @classmethod
    def build(
        cls,
        *,
        contracts: dict[str, Contract] | None = None,
        suppliers: dict[str, Supplier] | None = None,
        workers: dict[str, Worker] | None = None,
        subcontractors: dict[str, Subcontractor] | None = None,
        sub_agreements: dict[str, SubcontractorAgreement] | None = None,
        expenses: dict[str, Expense] | None = None,
        received_payments: dict[str, ReceivedPayment] | None = None,
        sequences: dict[str, int] | None = None,
        version: int = 0,
    ) -> LedgerState:
        """Assemble a state from plain dicts, recomputing the balance index."""
        expenses = expenses or {}
        return cls(
            contracts=_frozen(contracts),
            suppliers=_frozen(suppliers),
            workers=_frozen(workers),
            subcontractors=_frozen(subcontractors),
            sub_agreements=_frozen(sub_agreements),
            expenses=_frozen(expenses),
            received_payments=_frozen(received_payments),
            sequences=_frozen(sequences),
            balances=_frozen(compute_balances(expenses.values())),
            version=version,
        )

    def beneficiaries(self, kind: BeneficiaryKind) -> Mapping[str, Beneficiary]:
        return getattr(self, BENEFICIARY_BUCKETS[kind])


class LedgerTransaction:
    """
    Mutable working copy of a ``LedgerState``.

    Buckets are shallow-copied dicts; entities themselves are frozen, so
    replacing an entry never affects the committed version.
    """

    def __init__(self, base: LedgerState):
        self.base = base
        self.contracts: dict[str, Contract] = dict(base.contracts)
        self.suppliers: dict[str, Supplier] = dict(base.suppliers)
        self.workers: dict[str, Worker] = dict(base.workers)
        self.subcontractors: dict[str, Subcontractor] = dict(base.subcontractors)
        self.sub_agreements: dict[str, SubcontractorAgreement] = dict(base.sub_agreements)
        self.expenses: dict[str, Expense] = dict(base.expenses)
        self.received_payments: dict[str, ReceivedPayment] = dict(base.received_payments)
        self.sequences: dict[str, int] = dict(base.sequences)
        self.balances: dict[str, Decimal] = dict(base.balances)

    # -- expenses (balance-affecting) ------------------------------------

    def put_expense(self, expense: Expense) -> None:
        before = self.expenses.get(expense.id)
        self.expenses[expense.id] = expense
        apply_expense_change(self.balances, before, expense)

    def delete_expense(self, expense_id: str) -> Expense:
        before = self.expenses.pop(expense_id)
        apply_expense_change(self.balances, before, None)
        return before

    # -- beneficiaries ---------------------------------------------------

    def beneficiaries(self, kind: BeneficiaryKind) -> dict[str, Beneficiary]:
        return getattr(self, BENEFICIARY_BUCKETS[kind])

    def put_beneficiary(self, beneficiary: Beneficiary) -> None:
        self.beneficiaries(beneficiary.kind)[beneficiary.id] = beneficiary

    def freeze(self, version: int) -> LedgerState:
        return LedgerState(
            contracts=_frozen(self.contracts),
            suppliers=_frozen(self.suppliers),
            workers=_frozen(self.workers),
            subcontractors=_frozen(self.subcontractors),
            sub_agreements=_frozen(self.sub_agreements),
            expenses=_frozen(self.expenses),
            received_payments=_frozen(self.received_payments),
            sequences=_frozen(self.sequences),
            balances=_frozen(self.balances),
            version=version,
        )


class LedgerStore:
    """
    Holder of the current ``LedgerState``.

    Contract:
        Writers use ``transaction()``; readers use ``state``.

    Usage:
        with store.transaction("add_expense") as txn:
            txn.put_expense(expense)
            # Commits on successful exit, discarded on exception
    """

    def __init__(self, state: LedgerState | None = None):
        self._state = state or LedgerState()
        self._write_lock = threading.Lock()
        self._local = threading.local()

    @property
    def state(self) -> LedgerState:
        """The latest committed version."""
        return self._state

    @contextmanager
    def transaction(self, operation: str) -> Iterator[LedgerTransaction]:
        """
        Provide a serializable, all-or-nothing scope for one mutation.

        Preconditions: not already inside a transaction on this thread.
        Postconditions: on normal exit the working copy becomes the new
            committed state with ``version + 1``; on exception the store is
            unchanged and the exception is re-raised.
        """
        if getattr(self._local, "active", False):
            raise RuntimeError(
                f"Nested ledger transaction '{operation}' is not supported"
            )
        with self._write_lock, LogContext.bind(operation=operation):
            self._local.active = True
            try:
                txn = LedgerTransaction(self._state)
                logger.debug("transaction_started", extra={"base_version": self._state.version})
                try:
                    yield txn
                except Exception:
                    logger.warning("transaction_rolled_back", exc_info=True)
                    raise
                self._state = txn.freeze(self._state.version + 1)
                logger.debug("transaction_committed", extra={"version": self._state.version})
            finally:
                self._local.active = False

    def replace_state(self, state: LedgerState) -> None:
        """Swap in a whole state (snapshot load). Serialized with writers."""
        with self._write_lock:
            self._state = state
        logger.info(
            "state_replaced",
            extra={
                "version": state.version,
                "contract_count": len(state.contracts),
                "expense_count": len(state.expenses),
            },
        )
