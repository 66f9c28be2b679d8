"""
ExpenseService -- add, edit and delete contract expenses.

Responsibility:
    Validates and writes Expense records.  Cash expenses are settled at
    registration and on every edit; credit expenses carry an optional
    initial ``paid_amount`` and are settled afterwards through
    ``DebtService``.

Architecture position:
    Kernel > Services -- imperative shell.  All writes go through
    ``LedgerTransaction.put_expense`` / ``delete_expense`` so the beneficiary
    balance index stays current.

Invariants enforced:
    PAID_WITHIN_AMOUNT -- ``0 <= paid_amount <= amount``; Cash forces
        ``paid_amount == amount``.
    SETTLEMENT_TRAIL -- an edit may not lower ``paid_amount`` (or ``amount``)
        below what the recorded payment history already settled.
    REFERENTIAL_INTEGRITY -- the contract and the referenced beneficiary must
        exist.

Failure modes:
    - ValidationError: blank description, non-positive amount, unknown
      category or payment method, paid amount out of range, unknown update
      field.
    - ContractNotFoundError / BeneficiaryNotFoundError / ExpenseNotFoundError.
"""

from __future__ import annotations

from dataclasses import replace
from datetime import date
from decimal import Decimal
from typing import Any

from ledger_kernel.domain.identity import EntityPrefix
from ledger_kernel.domain.models import (
    BeneficiaryRef,
    Expense,
    ExpenseCategory,
    PaymentMethod,
)
from ledger_kernel.domain.values import ZERO
from ledger_kernel.exceptions import ValidationError
from ledger_kernel.logging_config import LogContext, get_logger
from ledger_kernel.services.base import BaseService
from ledger_kernel.store import LedgerTransaction

logger = get_logger("services.expense")

EDITABLE_FIELDS: frozenset[str] = frozenset({
    "contract_id",
    "expense_date",
    "description",
    "amount",
    "category",
    "payment_method",
    "paid_amount",
    "beneficiary",
    "attachment_url",
    "notes",
    "receipt_number",
    "receipt_date",
})


class ExpenseService(BaseService):
    """Expense registration and maintenance."""

    def add_expense(
        self,
        contract_id: str,
        expense_date: date,
        description: str,
        amount: Decimal | int | str,
        category: ExpenseCategory,
        payment_method: PaymentMethod,
        paid_amount: Decimal | int | str | None = None,
        beneficiary: BeneficiaryRef | None = None,
        attachment_url: str | None = None,
        notes: str | None = None,
        receipt_number: str | None = None,
        receipt_date: date | None = None,
    ) -> Expense:
        """
        Register a new expense.

        For Cash the paid amount is always the full amount and any
        ``paid_amount`` argument is ignored.  For Credit it defaults to zero.

        Returns:
            The committed Expense.
        """
        with self.store.transaction("add_expense") as txn, LogContext.bind(
            contract_id=contract_id
        ):
            fields = self._validated_fields(
                txn,
                {
                    "contract_id": contract_id,
                    "expense_date": expense_date,
                    "description": description,
                    "amount": amount,
                    "category": category,
                    "payment_method": payment_method,
                    "paid_amount": ZERO if paid_amount is None else paid_amount,
                    "beneficiary": beneficiary,
                },
                history_total=ZERO,
            )
            expense = Expense(
                id=self.ids.next_id(EntityPrefix.EXPENSE),
                attachment_url=attachment_url,
                notes=notes,
                receipt_number=receipt_number,
                receipt_date=receipt_date,
                **fields,
            )
            txn.put_expense(expense)
            logger.info(
                "expense_added",
                extra={
                    "expense_id": expense.id,
                    "amount": str(expense.amount),
                    "paid_amount": str(expense.paid_amount),
                    "payment_method": expense.payment_method.value,
                    "beneficiary": expense.beneficiary.key if expense.beneficiary else None,
                },
            )
        return expense

    def update_expense(self, expense_id: str, **updates: Any) -> Expense:
        """
        Edit an expense, merging ``updates`` over the stored record.

        The payment history is kept.  Switching to Cash settles the expense
        in full; switching to Credit keeps the previous paid amount unless a
        new one is given.

        Raises:
            ValidationError: unknown field or any rule the new record breaks.
        """
        unknown = set(updates) - EDITABLE_FIELDS
        if unknown:
            raise ValidationError(
                f"Cannot update expense field(s): {', '.join(sorted(unknown))}",
                field=sorted(unknown)[0],
            )

        with self.store.transaction("update_expense") as txn:
            current = self._require_expense(txn, expense_id)
            with LogContext.bind(contract_id=current.contract_id):
                merged = {
                    "contract_id": current.contract_id,
                    "expense_date": current.expense_date,
                    "description": current.description,
                    "amount": current.amount,
                    "category": current.category,
                    "payment_method": current.payment_method,
                    "paid_amount": current.paid_amount,
                    "beneficiary": current.beneficiary,
                }
                merged.update({k: v for k, v in updates.items() if k in merged})
                fields = self._validated_fields(
                    txn, merged, history_total=current.history_total
                )
                extras = {k: v for k, v in updates.items() if k not in merged}
                updated = replace(current, **fields, **extras)
                txn.put_expense(updated)
                logger.info(
                    "expense_updated",
                    extra={
                        "expense_id": expense_id,
                        "fields": sorted(updates),
                        "amount": str(updated.amount),
                        "paid_amount": str(updated.paid_amount),
                    },
                )
        return updated

    def delete_expense(self, expense_id: str) -> Expense:
        """Remove an expense and its contribution to the beneficiary balance."""
        with self.store.transaction("delete_expense") as txn:
            self._require_expense(txn, expense_id)
            removed = txn.delete_expense(expense_id)
            logger.info(
                "expense_deleted",
                extra={
                    "expense_id": expense_id,
                    "contract_id": removed.contract_id,
                    "amount": str(removed.amount),
                },
            )
        return removed

    # -------------------------------------------------------------------------
    # Validation
    # -------------------------------------------------------------------------

    def _validated_fields(
        self,
        txn: LedgerTransaction,
        fields: dict[str, Any],
        history_total: Decimal,
    ) -> dict[str, Any]:
        description = fields["description"]
        if not isinstance(description, str) or not description.strip():
            raise ValidationError("Expense description is required", field="description")

        amount = self._positive_amount(fields["amount"])
        category = self._choice(ExpenseCategory, fields["category"], "category")
        method = self._choice(PaymentMethod, fields["payment_method"], "payment_method")

        self._require_contract(txn, fields["contract_id"])

        beneficiary = fields["beneficiary"]
        if beneficiary is not None:
            self._require_beneficiary_ref(txn, beneficiary)

        if method == PaymentMethod.CASH:
            paid = amount
        else:
            paid = self._amount(fields["paid_amount"], field="paid_amount")
            if paid < ZERO or paid > amount:
                logger.warning(
                    "expense_paid_amount_rejected",
                    extra={"amount": str(amount), "paid_amount": str(paid)},
                )
                raise ValidationError(
                    f"paid_amount {paid} must be within [0, {amount}]",
                    field="paid_amount",
                )
        if paid < history_total:
            raise ValidationError(
                f"paid_amount {paid} is below the {history_total} already "
                f"recorded in the payment history",
                field="paid_amount",
            )

        return {
            "contract_id": fields["contract_id"],
            "expense_date": fields["expense_date"],
            "description": description.strip(),
            "amount": amount,
            "category": category,
            "payment_method": method,
            "paid_amount": paid,
            "beneficiary": beneficiary,
        }
