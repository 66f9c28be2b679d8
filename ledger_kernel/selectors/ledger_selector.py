"""
Module: ledger_kernel.selectors.ledger_selector
Responsibility: Read-only ledger queries: beneficiary balances, per-contract
    and global financial summaries, beneficiary statements, settlement
    history and income breakdowns.
Architecture position: Kernel > Selectors.  May import from store.py,
    domain/ and selectors/base.py.  MUST NOT import from services/.

Invariants enforced:
    DERIVED_BALANCE -- balances are never stored on beneficiaries.  The
        unscoped ``balance_of`` reads the incrementally maintained index in
        the state; every other figure is computed from expenses at query
        time.
    SETTLEMENT_TRAIL -- ``settlement_history`` always sums to the expense's
        effective paid amount: money settled at registration appears as a
        synthetic initial row.

Failure modes:
    - ContractNotFoundError / ExpenseNotFoundError for unknown ids.
    - Balances are returned as-is and may be negative; nothing is clamped.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date
from decimal import Decimal

from ledger_kernel.domain.balances import balance_contribution
from ledger_kernel.domain.models import (
    BeneficiaryKind,
    BeneficiaryRef,
    Contract,
    Expense,
    PaymentMethod,
    ReceivedPayment,
)
from ledger_kernel.domain.policy import DEFAULT_POLICY, LedgerPolicy
from ledger_kernel.domain.schedule import StageProjection, project_schedule
from ledger_kernel.domain.values import ZERO, ratio_percent
from ledger_kernel.exceptions import ContractNotFoundError, ExpenseNotFoundError
from ledger_kernel.selectors.base import BaseSelector
from ledger_kernel.store import LedgerState

INITIAL_PAYMENT_ROW_ID = "initial-payment"


@dataclass(frozen=True)
class ContractFinancials:
    """Money in versus money out for one contract."""

    contract_id: str
    total_contract_value: Decimal
    total_received: Decimal
    total_spent: Decimal

    @property
    def profit(self) -> Decimal:
        return self.total_received - self.total_spent

    @property
    def progress(self) -> Decimal:
        """Percentage of the contract value received so far."""
        return ratio_percent(self.total_received, self.total_contract_value)


@dataclass(frozen=True)
class GlobalFinancials:
    """Portfolio-wide totals across every contract."""

    total_received: Decimal
    total_cash_spent: Decimal
    total_debt: Decimal
    total_spent: Decimal
    contract_count: int


@dataclass(frozen=True)
class BeneficiaryContractLine:
    """What one beneficiary billed and was paid on one contract."""

    contract_id: str
    contract_number: str | None
    amount: Decimal
    paid: Decimal
    expense_count: int

    @property
    def balance(self) -> Decimal:
        return self.amount - self.paid


@dataclass(frozen=True)
class BeneficiaryStatement:
    beneficiary: BeneficiaryRef
    total_amount: Decimal
    total_paid: Decimal
    contracts: tuple[BeneficiaryContractLine, ...]

    @property
    def balance(self) -> Decimal:
        return self.total_amount - self.total_paid


@dataclass(frozen=True)
class SettlementRow:
    """One row of an expense's settlement history view."""

    id: str
    payment_date: date
    amount: Decimal
    note: str | None = None
    attachment_url: str | None = None
    receipt_number: str | None = None
    receipt_date: date | None = None
    is_initial: bool = False


@dataclass(frozen=True)
class IncomeBreakdown:
    contract_id: str
    scheduled_total: Decimal
    extra_total: Decimal

    @property
    def total(self) -> Decimal:
        return self.scheduled_total + self.extra_total


@dataclass(frozen=True)
class ContractStatement:
    """Everything a print or report collaborator needs for one contract."""

    contract: Contract
    financials: ContractFinancials
    stages: tuple[StageProjection, ...]
    income: IncomeBreakdown
    expenses: tuple[Expense, ...]
    payments: tuple[ReceivedPayment, ...]


class LedgerSelector(BaseSelector):
    """
    Selector for ledger queries -- the read side of the contract ledger.

    Contract:
        Reads a single committed ``LedgerState``.  Every method is pure; the
        same state always produces the same answer.

    Guarantees:
        - ``profit == total_received - total_spent`` by construction.
        - ``progress`` is 0 when the contract value is not positive.
        - All amounts are Decimal (never float).

    Non-goals:
        - No currency conversion; amounts are in the configured currency.
    """

    def __init__(self, state: LedgerState, policy: LedgerPolicy = DEFAULT_POLICY):
        super().__init__(state)
        self._policy = policy

    def _contract(self, contract_id: str) -> Contract:
        contract = self.state.contracts.get(contract_id)
        if contract is None:
            raise ContractNotFoundError(contract_id)
        return contract

    def contract_expenses(self, contract_id: str) -> tuple[Expense, ...]:
        return tuple(
            e for e in self.state.expenses.values() if e.contract_id == contract_id
        )

    def contract_payments(self, contract_id: str) -> tuple[ReceivedPayment, ...]:
        return tuple(
            p for p in self.state.received_payments.values()
            if p.contract_id == contract_id
        )

    # -------------------------------------------------------------------------
    # Balances
    # -------------------------------------------------------------------------

    def balance_of(
        self,
        beneficiary_id: str,
        kind: BeneficiaryKind,
        contract_id: str | None = None,
    ) -> Decimal:
        """
        Outstanding balance owed to one beneficiary.

        ``sum(amount) - sum(effective_paid)`` over the expenses referencing
        the beneficiary, optionally restricted to one contract.  Returns 0
        when there are no such expenses.
        """
        ref = BeneficiaryRef(BeneficiaryKind(kind), beneficiary_id)
        if contract_id is None:
            return self.state.balances.get(ref.key, ZERO)
        return sum(
            (
                balance_contribution(e)
                for e in self.state.expenses.values()
                if e.beneficiary == ref and e.contract_id == contract_id
            ),
            ZERO,
        )

    def beneficiary_statement(
        self,
        beneficiary_id: str,
        kind: BeneficiaryKind,
    ) -> BeneficiaryStatement:
        """Totals plus a per-contract breakdown in first-seen order."""
        ref = BeneficiaryRef(BeneficiaryKind(kind), beneficiary_id)
        per_contract: dict[str, list] = {}
        for expense in self.state.expenses.values():
            if expense.beneficiary != ref:
                continue
            bucket = per_contract.setdefault(expense.contract_id, [ZERO, ZERO, 0])
            bucket[0] += expense.amount
            bucket[1] += expense.effective_paid
            bucket[2] += 1

        lines = []
        for contract_id, (amount, paid, count) in per_contract.items():
            contract = self.state.contracts.get(contract_id)
            lines.append(
                BeneficiaryContractLine(
                    contract_id=contract_id,
                    contract_number=contract.contract_number if contract else None,
                    amount=amount,
                    paid=paid,
                    expense_count=count,
                )
            )
        return BeneficiaryStatement(
            beneficiary=ref,
            total_amount=sum((line.amount for line in lines), ZERO),
            total_paid=sum((line.paid for line in lines), ZERO),
            contracts=tuple(lines),
        )

    # -------------------------------------------------------------------------
    # Financial summaries
    # -------------------------------------------------------------------------

    def contract_financials(self, contract_id: str) -> ContractFinancials:
        """
        Received, spent, profit and progress for one contract.

        Raises:
            ContractNotFoundError: unknown contract id.
        """
        contract = self._contract(contract_id)
        return ContractFinancials(
            contract_id=contract.id,
            total_contract_value=contract.total_contract_value,
            total_received=sum((p.amount for p in self.contract_payments(contract_id)), ZERO),
            total_spent=sum((e.amount for e in self.contract_expenses(contract_id)), ZERO),
        )

    def global_financials(self) -> GlobalFinancials:
        total_cash = ZERO
        total_debt = ZERO
        total_spent = ZERO
        for expense in self.state.expenses.values():
            total_spent += expense.amount
            if expense.payment_method == PaymentMethod.CASH:
                total_cash += expense.amount
            else:
                total_debt += expense.amount - expense.paid_amount
        return GlobalFinancials(
            total_received=sum(
                (p.amount for p in self.state.received_payments.values()), ZERO
            ),
            total_cash_spent=total_cash,
            total_debt=total_debt,
            total_spent=total_spent,
            contract_count=len(self.state.contracts),
        )

    def income_breakdown(self, contract_id: str) -> IncomeBreakdown:
        """Scheduled versus extra income received on one contract."""
        self._contract(contract_id)
        scheduled = ZERO
        extra = ZERO
        for payment in self.contract_payments(contract_id):
            if payment.is_extra:
                extra += payment.amount
            else:
                scheduled += payment.amount
        return IncomeBreakdown(
            contract_id=contract_id,
            scheduled_total=scheduled,
            extra_total=extra,
        )

    # -------------------------------------------------------------------------
    # Settlement history
    # -------------------------------------------------------------------------

    def settlement_history(self, expense_id: str) -> tuple[SettlementRow, ...]:
        """
        Settlement rows for one expense, oldest first.

        When part of the paid amount was settled at registration (outside the
        recorded history), a synthetic initial row dated at the expense date
        comes first so the rows always sum to the paid amount.

        Raises:
            ExpenseNotFoundError: unknown expense id.
        """
        expense = self.state.expenses.get(expense_id)
        if expense is None:
            raise ExpenseNotFoundError(expense_id)

        rows: list[SettlementRow] = []
        initial = expense.initial_payment
        if initial > ZERO:
            rows.append(
                SettlementRow(
                    id=INITIAL_PAYMENT_ROW_ID,
                    payment_date=expense.expense_date,
                    amount=initial,
                    note=self._policy.initial_payment_note,
                    is_initial=True,
                )
            )
        rows.extend(
            SettlementRow(
                id=entry.id,
                payment_date=entry.payment_date,
                amount=entry.amount,
                note=entry.note,
                attachment_url=entry.attachment_url,
                receipt_number=entry.receipt_number,
                receipt_date=entry.receipt_date,
            )
            for entry in expense.payment_history
        )
        return tuple(rows)

    def contract_statement(self, contract_id: str) -> ContractStatement:
        contract = self._contract(contract_id)
        payments = self.contract_payments(contract_id)
        return ContractStatement(
            contract=contract,
            financials=self.contract_financials(contract_id),
            stages=project_schedule(contract, payments),
            income=self.income_breakdown(contract_id),
            expenses=self.contract_expenses(contract_id),
            payments=payments,
        )
