"""
PaymentService -- money received from the client.

Responsibility:
    Records, edits and deletes ReceivedPayments.  A payment either targets a
    stage of the contract's payment schedule or is an extra payment
    (``schedule_stage_id is None``) that bypasses stage accounting.

Architecture position:
    Kernel > Services -- imperative shell.  Stage arithmetic comes from
    ``domain/schedule.py``.

Invariants enforced:
    - A scheduled payment references a stage that exists on its contract.
    - A scheduled payment never exceeds the stage's remaining amount
      (computed without the payment being edited).

Failure modes:
    - ContractNotFoundError / PaymentNotFoundError / StageNotFoundError.
    - ValidationError: non-positive amount or unknown update field.
    - OverpaymentError: the stage does not have enough remaining.
"""

from __future__ import annotations

from dataclasses import replace
from datetime import date
from decimal import Decimal
from typing import Any

from ledger_kernel.domain.identity import EntityPrefix
from ledger_kernel.domain.models import Contract, ReceivedPayment
from ledger_kernel.domain.schedule import project_stage, received_by_stage
from ledger_kernel.domain.values import ZERO
from ledger_kernel.exceptions import OverpaymentError, StageNotFoundError, ValidationError
from ledger_kernel.logging_config import LogContext, get_logger
from ledger_kernel.services.base import BaseService
from ledger_kernel.store import LedgerTransaction

logger = get_logger("services.payment")

EDITABLE_FIELDS: frozenset[str] = frozenset({
    "amount",
    "payment_date",
    "schedule_stage_id",
    "note",
    "attachment_url",
    "recorded_by",
})


class PaymentService(BaseService):
    """Received payment registration and maintenance."""

    def add_payment(
        self,
        contract_id: str,
        amount: Decimal | int | str,
        payment_date: date,
        schedule_stage_id: str | None = None,
        note: str = "",
        attachment_url: str | None = None,
        recorded_by: str | None = None,
    ) -> ReceivedPayment:
        """
        Record a payment received for a contract.

        Raises:
            StageNotFoundError: ``schedule_stage_id`` is not in the schedule.
            OverpaymentError: amount exceeds the stage's remaining amount.
        """
        value = self._positive_amount(amount)
        with self.store.transaction("add_payment") as txn, LogContext.bind(
            contract_id=contract_id
        ):
            contract = self._require_contract(txn, contract_id)
            if schedule_stage_id is not None:
                self._check_stage_capacity(txn, contract, schedule_stage_id, value)
            payment = ReceivedPayment(
                id=self.ids.next_id(EntityPrefix.RECEIVED_PAYMENT),
                contract_id=contract_id,
                amount=value,
                payment_date=payment_date,
                schedule_stage_id=schedule_stage_id,
                note=note,
                attachment_url=attachment_url,
                recorded_by=recorded_by,
            )
            txn.received_payments[payment.id] = payment
            logger.info(
                "payment_received",
                extra={
                    "payment_id": payment.id,
                    "amount": str(value),
                    "schedule_stage_id": schedule_stage_id,
                    "is_extra": payment.is_extra,
                },
            )
        return payment

    def update_payment(self, payment_id: str, **updates: Any) -> ReceivedPayment:
        """Edit a received payment; the stage check excludes the payment itself."""
        unknown = set(updates) - EDITABLE_FIELDS
        if unknown:
            raise ValidationError(
                f"Cannot update payment field(s): {', '.join(sorted(unknown))}",
                field=sorted(unknown)[0],
            )
        if "amount" in updates:
            updates["amount"] = self._positive_amount(updates["amount"])

        with self.store.transaction("update_payment") as txn:
            current = self._require_payment(txn, payment_id)
            with LogContext.bind(contract_id=current.contract_id):
                updated = replace(current, **updates)
                if updated.schedule_stage_id is not None:
                    contract = self._require_contract(txn, current.contract_id)
                    self._check_stage_capacity(
                        txn,
                        contract,
                        updated.schedule_stage_id,
                        updated.amount,
                        exclude_payment_id=payment_id,
                    )
                txn.received_payments[payment_id] = updated
                logger.info(
                    "payment_updated",
                    extra={
                        "payment_id": payment_id,
                        "fields": sorted(updates),
                        "amount": str(updated.amount),
                    },
                )
        return updated

    def delete_payment(self, payment_id: str) -> ReceivedPayment:
        with self.store.transaction("delete_payment") as txn:
            self._require_payment(txn, payment_id)
            removed = txn.received_payments.pop(payment_id)
            logger.info(
                "payment_deleted",
                extra={
                    "payment_id": payment_id,
                    "contract_id": removed.contract_id,
                    "amount": str(removed.amount),
                },
            )
        return removed

    def _check_stage_capacity(
        self,
        txn: LedgerTransaction,
        contract: Contract,
        stage_id: str,
        amount: Decimal,
        exclude_payment_id: str | None = None,
    ) -> None:
        stage = contract.stage(stage_id)
        if stage is None:
            raise StageNotFoundError(stage_id, contract.id)
        received = received_by_stage(
            p for p in txn.received_payments.values()
            if p.contract_id == contract.id and p.id != exclude_payment_id
        )
        projection = project_stage(
            contract.total_contract_value, stage, received.get(stage_id, ZERO)
        )
        if amount > projection.remaining:
            logger.warning(
                "stage_overpayment_rejected",
                extra={
                    "schedule_stage_id": stage_id,
                    "requested": str(amount),
                    "remaining": str(projection.remaining),
                },
            )
            raise OverpaymentError(stage_id, amount, projection.remaining)
