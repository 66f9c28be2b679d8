"""
Module: ledger_kernel.ledger
Responsibility: ``ContractLedger``, the single object a host application
    holds.  Wires one ``LedgerStore`` to every service and selector, and owns
    the snapshot load/save lifecycle against a ``LedgerRepository``.
Architecture position: Kernel entry point.  Imports services, selectors and
    persistence; nothing in the kernel imports this module.

Usage:
    ledger = ContractLedger(pricer=my_pricer, repository=SqlAlchemyRepository())
    ledger.load()
    contract = ledger.create_contract_from_quote(quote)
    expense = ledger.expenses.add_expense(contract.id, ...)
    ledger.pay_partial_debt(expense.id, Decimal("40000"), date.today())
    ledger.save()

Failure modes:
    - RuntimeError from ``load``/``save`` when no repository was given.
    - Every typed LedgerError from the underlying services and selectors.
"""

from __future__ import annotations

from datetime import date
from decimal import Decimal
from typing import Any

from ledger_kernel.domain.clock import Clock, SystemClock
from ledger_kernel.domain.identity import IdGenerator, UuidIdGenerator
from ledger_kernel.domain.models import (
    BeneficiaryKind,
    Contract,
    ContractStatus,
    Expense,
)
from ledger_kernel.domain.policy import DEFAULT_POLICY, LedgerPolicy
from ledger_kernel.domain.pricing import Quote, QuotePricer
from ledger_kernel.logging_config import get_logger
from ledger_kernel.persistence.repository import LedgerRepository
from ledger_kernel.persistence.serialization import snapshot_from_state, state_from_snapshot
from ledger_kernel.selectors.ledger_selector import (
    ContractFinancials,
    GlobalFinancials,
    LedgerSelector,
)
from ledger_kernel.selectors.schedule_selector import ScheduleSelector
from ledger_kernel.services.beneficiary_service import BeneficiaryService
from ledger_kernel.services.contract_service import ContractService
from ledger_kernel.services.debt_service import DebtService
from ledger_kernel.services.expense_service import ExpenseService
from ledger_kernel.services.payment_service import PaymentService
from ledger_kernel.services.reconciliation_service import ReconciliationService
from ledger_kernel.store import LedgerState, LedgerStore

logger = get_logger("ledger")


class ContractLedger:
    """Facade over the store, services and selectors of one ledger."""

    def __init__(
        self,
        pricer: QuotePricer,
        repository: LedgerRepository | None = None,
        clock: Clock | None = None,
        id_generator: IdGenerator | None = None,
        policy: LedgerPolicy = DEFAULT_POLICY,
        store: LedgerStore | None = None,
    ):
        self.store = store or LedgerStore()
        self.repository = repository
        self.policy = policy
        clock = clock or SystemClock()
        ids = id_generator or UuidIdGenerator()

        self.contracts = ContractService(self.store, pricer, clock, ids, policy)
        self.expenses = ExpenseService(self.store, clock, ids, policy)
        self.payments = PaymentService(self.store, clock, ids, policy)
        self.debts = DebtService(self.store, clock, ids, policy)
        self.beneficiaries = BeneficiaryService(self.store, clock, ids, policy)
        self.reconciliation = ReconciliationService(self.store)

    @property
    def state(self) -> LedgerState:
        return self.store.state

    # -------------------------------------------------------------------------
    # Read side
    # -------------------------------------------------------------------------

    def selector(self) -> LedgerSelector:
        """A ledger selector pinned to the latest committed state."""
        return LedgerSelector(self.store.state, self.policy)

    def schedule(self) -> ScheduleSelector:
        return ScheduleSelector(self.store.state)

    def balance_of(
        self,
        beneficiary_id: str,
        kind: BeneficiaryKind,
        contract_id: str | None = None,
    ) -> Decimal:
        return self.selector().balance_of(beneficiary_id, kind, contract_id)

    def contract_financials(self, contract_id: str) -> ContractFinancials:
        return self.selector().contract_financials(contract_id)

    def global_financials(self) -> GlobalFinancials:
        return self.selector().global_financials()

    # -------------------------------------------------------------------------
    # Core mutations
    # -------------------------------------------------------------------------

    def create_contract_from_quote(self, quote: Quote) -> Contract:
        return self.contracts.create_contract_from_quote(quote)

    def update_contract_status(self, contract_id: str, status: ContractStatus) -> Contract:
        return self.contracts.update_contract_status(contract_id, status)

    def update_contract_details(self, contract_id: str, **updates: Any) -> Contract:
        return self.contracts.update_contract_details(contract_id, **updates)

    def pay_partial_debt(
        self,
        expense_id: str,
        amount_to_pay: Decimal | int | str,
        payment_date: date,
        attachment: str | None = None,
        note: str | None = None,
        receipt_number: str | None = None,
        receipt_date: date | None = None,
    ) -> Expense:
        return self.debts.pay_partial_debt(
            expense_id,
            amount_to_pay,
            payment_date,
            attachment=attachment,
            note=note,
            receipt_number=receipt_number,
            receipt_date=receipt_date,
        )

    # -------------------------------------------------------------------------
    # Persistence boundary
    # -------------------------------------------------------------------------

    def load_state(self, snapshot: dict[str, Any] | None) -> None:
        """Replace the whole ledger with the decoded ``snapshot``."""
        self.store.replace_state(state_from_snapshot(snapshot, self.policy))

    def snapshot(self) -> dict[str, dict]:
        return snapshot_from_state(self.store.state)

    def load(self) -> bool:
        """
        Load from the repository.

        Returns:
            False when the repository holds nothing yet (state untouched).
        """
        snapshot = self._require_repository().load()
        if snapshot is None:
            logger.info("ledger_load_empty")
            return False
        self.load_state(snapshot)
        return True

    def save(self) -> None:
        state = self.store.state
        self._require_repository().save(snapshot_from_state(state))
        logger.info("ledger_saved", extra={"version": state.version})

    def _require_repository(self) -> LedgerRepository:
        if self.repository is None:
            raise RuntimeError("ContractLedger has no repository configured")
        return self.repository
