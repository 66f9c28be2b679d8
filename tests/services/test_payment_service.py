"""Tests for PaymentService: scheduled and extra payments from the client."""

from datetime import date
from decimal import Decimal

import pytest

from ledger_kernel.exceptions import (
    ContractNotFoundError,
    OverpaymentError,
    PaymentNotFoundError,
    StageNotFoundError,
    ValidationError,
)

PAYMENT_DATE = date(2024, 2, 1)


class TestAddPayment:
    def test_stage_payment(self, ledger, contract):
        payment = ledger.payments.add_payment(
            contract.id, "500000", PAYMENT_DATE, schedule_stage_id="stg-a", note="Deposit"
        )
        assert payment.schedule_stage_id == "stg-a"
        assert not payment.is_extra
        assert ledger.state.received_payments[payment.id] == payment

    def test_extra_payment(self, ledger, contract):
        payment = ledger.payments.add_payment(contract.id, "75000", PAYMENT_DATE)
        assert payment.is_extra
        assert ledger.contract_financials(contract.id).total_received == Decimal("75000")

    def test_extra_payment_is_not_limited_by_stages(self, ledger, contract):
        """Extra payments bypass stage accounting, even beyond the contract value."""
        ledger.payments.add_payment(contract.id, "2000000", PAYMENT_DATE)
        assert ledger.contract_financials(contract.id).total_received == Decimal("2000000")

    def test_stage_overpayment_rejected(self, ledger, contract):
        ledger.payments.add_payment(contract.id, "400000", PAYMENT_DATE, schedule_stage_id="stg-a")

        with pytest.raises(OverpaymentError) as exc_info:
            ledger.payments.add_payment(
                contract.id, "150000", PAYMENT_DATE, schedule_stage_id="stg-a"
            )

        assert exc_info.value.target_id == "stg-a"
        assert exc_info.value.remaining == Decimal("100000")
        assert len(ledger.state.received_payments) == 1

    def test_unknown_stage_rejected(self, ledger, contract):
        with pytest.raises(StageNotFoundError) as exc_info:
            ledger.payments.add_payment(
                contract.id, "100", PAYMENT_DATE, schedule_stage_id="stg-missing"
            )
        assert exc_info.value.contract_id == contract.id

    def test_unknown_contract_rejected(self, ledger):
        with pytest.raises(ContractNotFoundError):
            ledger.payments.add_payment("cnt-missing", "100", PAYMENT_DATE)

    @pytest.mark.parametrize("amount", ["0", "-1"])
    def test_non_positive_amount_rejected(self, ledger, contract, amount):
        with pytest.raises(ValidationError):
            ledger.payments.add_payment(contract.id, amount, PAYMENT_DATE)


class TestUpdatePayment:
    def test_update_excludes_itself_from_stage_check(self, ledger, contract):
        payment = ledger.payments.add_payment(
            contract.id, "500000", PAYMENT_DATE, schedule_stage_id="stg-a"
        )
        updated = ledger.payments.update_payment(payment.id, amount="450000", note="corrected")
        assert updated.amount == Decimal("450000")
        assert updated.note == "corrected"

    def test_move_to_full_stage_rejected(self, ledger, contract):
        ledger.payments.add_payment(contract.id, "300000", PAYMENT_DATE, schedule_stage_id="stg-b")
        extra = ledger.payments.add_payment(contract.id, "10000", PAYMENT_DATE)

        with pytest.raises(OverpaymentError):
            ledger.payments.update_payment(extra.id, schedule_stage_id="stg-b")

    def test_unknown_field_rejected(self, ledger, contract):
        payment = ledger.payments.add_payment(contract.id, "100", PAYMENT_DATE)
        with pytest.raises(ValidationError):
            ledger.payments.update_payment(payment.id, contract_id="cnt-other")

    def test_unknown_payment(self, ledger):
        with pytest.raises(PaymentNotFoundError):
            ledger.payments.update_payment("rcv-missing", note="x")


class TestDeletePayment:
    def test_delete_frees_stage(self, ledger, contract):
        payment = ledger.payments.add_payment(
            contract.id, "200000", PAYMENT_DATE, schedule_stage_id="stg-c"
        )
        ledger.payments.delete_payment(payment.id)

        assert payment.id not in ledger.state.received_payments
        projection = ledger.schedule().stage_projection(contract.id, "stg-c")
        assert projection.remaining == Decimal("200000")

    def test_delete_unknown(self, ledger):
        with pytest.raises(PaymentNotFoundError):
            ledger.payments.delete_payment("rcv-missing")
