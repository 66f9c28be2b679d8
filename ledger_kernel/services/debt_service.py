"""
DebtService -- partial repayment of credit expenses.

Responsibility:
    Records a partial or full settlement against a Credit-method expense:
    appends one ``PaymentHistoryEntry`` and raises ``paid_amount`` by the
    applied amount, in a single transaction.

Architecture position:
    Kernel > Services -- imperative shell.  Writes through
    ``LedgerStore.transaction()``; the balance index follows automatically
    via ``LedgerTransaction.put_expense``.

Invariants enforced:
    PAID_WITHIN_AMOUNT -- ``paid_amount`` never exceeds ``amount``.  Under the
        REJECT policy an over-large payment raises; under CAP the applied
        amount is clipped to the outstanding debt.
    SETTLEMENT_TRAIL -- the history entry always records the amount actually
        applied, so ``initial_payment + sum(history) == paid_amount``.

Failure modes:
    - ExpenseNotFoundError: unknown expense id.
    - ValidationError: non-positive amount.
    - InvalidPaymentMethodError: the expense is Cash (already settled).
    - OverpaymentError: REJECT policy and the payment exceeds the debt, or
      the expense is already fully settled under either policy.

Audit relevance:
    Every payment is logged as ``debt_payment_recorded`` with the requested
    and applied amounts; a CAP clip additionally logs
    ``debt_payment_excess_discarded``.
"""

from __future__ import annotations

from dataclasses import replace
from datetime import date
from decimal import Decimal

from ledger_kernel.domain.identity import EntityPrefix
from ledger_kernel.domain.models import Expense, PaymentHistoryEntry, PaymentMethod
from ledger_kernel.domain.policy import OverpaymentPolicy
from ledger_kernel.domain.values import ZERO
from ledger_kernel.exceptions import InvalidPaymentMethodError, OverpaymentError
from ledger_kernel.logging_config import LogContext, get_logger
from ledger_kernel.services.base import BaseService

logger = get_logger("services.debt")


class DebtService(BaseService):
    """
    Debt repayment protocol.

    Contract:
        ``pay_partial_debt`` is NOT idempotent: two identical calls record two
        history entries and two increments.

    Usage:
        expense = debt_service.pay_partial_debt(
            "exp-1", Decimal("40000"), date(2024, 3, 1), note="first instalment",
        )
    """

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
        """
        Settle part of a credit expense.

        Preconditions:
            - ``expense_id`` names an existing Credit expense.
            - ``amount_to_pay > 0``.

        Postconditions:
            - Exactly one history entry appended, carrying the applied amount.
            - ``paid_amount`` increased by the applied amount.

        Returns:
            The updated Expense.
        """
        amount = self._positive_amount(amount_to_pay, field="amount_to_pay")

        with self.store.transaction("pay_partial_debt") as txn:
            expense = self._require_expense(txn, expense_id)
            with LogContext.bind(contract_id=expense.contract_id):
                if expense.payment_method != PaymentMethod.CREDIT:
                    logger.warning(
                        "debt_payment_rejected_cash_expense",
                        extra={"expense_id": expense_id},
                    )
                    raise InvalidPaymentMethodError(
                        expense_id,
                        expense.payment_method.value,
                        PaymentMethod.CREDIT.value,
                    )

                applied = self._applied_amount(expense, amount)
                entry = PaymentHistoryEntry(
                    id=self.ids.next_id(EntityPrefix.HISTORY),
                    payment_date=payment_date,
                    amount=applied,
                    attachment_url=attachment,
                    note=note,
                    receipt_number=receipt_number,
                    receipt_date=receipt_date,
                )
                updated = replace(
                    expense,
                    paid_amount=expense.paid_amount + applied,
                    payment_history=expense.payment_history + (entry,),
                )
                txn.put_expense(updated)

                logger.info(
                    "debt_payment_recorded",
                    extra={
                        "expense_id": expense_id,
                        "history_entry_id": entry.id,
                        "requested": str(amount),
                        "applied": str(applied),
                        "paid_amount": str(updated.paid_amount),
                        "outstanding": str(updated.outstanding),
                    },
                )
        return updated

    def _applied_amount(self, expense: Expense, requested: Decimal) -> Decimal:
        outstanding = expense.amount - expense.paid_amount
        if outstanding <= ZERO or (
            requested > outstanding
            and self.policy.overpayment_policy == OverpaymentPolicy.REJECT
        ):
            logger.warning(
                "debt_overpayment_rejected",
                extra={
                    "expense_id": expense.id,
                    "requested": str(requested),
                    "outstanding": str(outstanding),
                    "policy": self.policy.overpayment_policy.value,
                },
            )
            raise OverpaymentError(expense.id, requested, outstanding)

        if requested > outstanding:
            logger.warning(
                "debt_payment_excess_discarded",
                extra={
                    "expense_id": expense.id,
                    "requested": str(requested),
                    "applied": str(outstanding),
                    "discarded": str(requested - outstanding),
                },
            )
            return outstanding
        return requested
