"""
Tests for DebtService.pay_partial_debt.

Covers:
- Partial and full settlement of a credit expense
- Overpayment under the REJECT and CAP policies
- Cash expenses and unknown expenses
- Non-idempotency and audit logging
"""

from datetime import date
from decimal import Decimal

import pytest

from ledger_kernel.domain.models import (
    BeneficiaryKind,
    BeneficiaryRef,
    ExpenseCategory,
    PaymentMethod,
)
from ledger_kernel.exceptions import (
    ExpenseNotFoundError,
    InvalidPaymentMethodError,
    OverpaymentError,
    ValidationError,
)

PAY_DATE = date(2024, 3, 10)


class TestPartialPayment:
    """A credit expense of 100,000 settled in instalments."""

    def test_first_instalment(self, ledger, add_expense):
        """40,000 against 100,000 leaves 60,000 and one history entry."""
        expense = add_expense("100000", PaymentMethod.CREDIT)

        updated = ledger.pay_partial_debt(expense.id, Decimal("40000"), PAY_DATE)

        assert updated.paid_amount == Decimal("40000")
        assert updated.outstanding == Decimal("60000")
        assert [h.amount for h in updated.payment_history] == [Decimal("40000")]
        assert ledger.state.expenses[expense.id] == updated

    def test_history_entry_carries_metadata(self, ledger, add_expense):
        expense = add_expense("100000")

        updated = ledger.pay_partial_debt(
            expense.id,
            "25000",
            PAY_DATE,
            attachment="https://files/receipt.pdf",
            note="first instalment",
            receipt_number="R-77",
            receipt_date=date(2024, 3, 9),
        )

        entry = updated.payment_history[0]
        assert entry.payment_date == PAY_DATE
        assert entry.attachment_url == "https://files/receipt.pdf"
        assert entry.note == "first instalment"
        assert entry.receipt_number == "R-77"
        assert entry.receipt_date == date(2024, 3, 9)

    def test_exact_settlement(self, ledger, add_expense):
        expense = add_expense("100000")
        ledger.pay_partial_debt(expense.id, "40000", PAY_DATE)

        updated = ledger.pay_partial_debt(expense.id, "60000", PAY_DATE)

        assert updated.paid_amount == Decimal("100000")
        assert updated.is_settled
        assert updated.history_total == Decimal("100000")

    def test_balance_follows_payment(self, ledger, add_expense, supplier):
        expense = add_expense("100000")
        ledger.pay_partial_debt(expense.id, "40000", PAY_DATE)

        assert ledger.balance_of(supplier.id, BeneficiaryKind.SUPPLIER) == Decimal("60000")

    def test_initial_paid_amount_is_respected(self, ledger, add_expense):
        expense = add_expense("100000", paid_amount="30000")

        updated = ledger.pay_partial_debt(expense.id, "20000", PAY_DATE)

        assert updated.paid_amount == Decimal("50000")
        assert updated.history_total == Decimal("20000")
        assert updated.initial_payment == Decimal("30000")

    def test_not_idempotent(self, ledger, add_expense):
        """Two identical calls record two entries."""
        expense = add_expense("100000")
        ledger.pay_partial_debt(expense.id, "10000", PAY_DATE)
        updated = ledger.pay_partial_debt(expense.id, "10000", PAY_DATE)

        assert len(updated.payment_history) == 2
        assert updated.payment_history[0].id != updated.payment_history[1].id
        assert updated.paid_amount == Decimal("20000")


class TestOverpaymentReject:
    """Default policy: a payment larger than the debt is refused."""

    def test_overpayment_rejected(self, ledger, add_expense):
        expense = add_expense("100000")
        ledger.pay_partial_debt(expense.id, "40000", PAY_DATE)
        version = ledger.state.version

        with pytest.raises(OverpaymentError) as exc_info:
            ledger.pay_partial_debt(expense.id, "70000", PAY_DATE)

        assert exc_info.value.requested == Decimal("70000")
        assert exc_info.value.remaining == Decimal("60000")
        assert exc_info.value.code == "OVERPAYMENT"

        stored = ledger.state.expenses[expense.id]
        assert stored.paid_amount == Decimal("40000")
        assert len(stored.payment_history) == 1
        assert ledger.state.version == version

    def test_settled_expense_rejects_any_payment(self, ledger, add_expense):
        expense = add_expense("100000", paid_amount="100000")
        with pytest.raises(OverpaymentError):
            ledger.pay_partial_debt(expense.id, "1", PAY_DATE)


class TestOverpaymentCap:
    """CAP policy: the excess is discarded and the history records the applied amount."""

    @pytest.fixture
    def credit_expense(self, capping_ledger, quote_factory):
        contract = capping_ledger.create_contract_from_quote(quote_factory("quote-cap"))
        supplier = capping_ledger.beneficiaries.add_supplier("Steel Works")
        return capping_ledger.expenses.add_expense(
            contract_id=contract.id,
            expense_date=PAY_DATE,
            description="Rebar",
            amount="100000",
            category=ExpenseCategory.MATERIAL,
            payment_method=PaymentMethod.CREDIT,
            beneficiary=BeneficiaryRef(BeneficiaryKind.SUPPLIER, supplier.id),
        )

    def test_excess_discarded(self, capping_ledger, credit_expense):
        expense = credit_expense
        capping_ledger.pay_partial_debt(expense.id, "40000", PAY_DATE)

        updated = capping_ledger.pay_partial_debt(expense.id, "70000", PAY_DATE)

        assert updated.paid_amount == Decimal("100000")
        assert [h.amount for h in updated.payment_history] == [
            Decimal("40000"),
            Decimal("60000"),
        ]
        assert updated.history_total == updated.paid_amount

    def test_excess_logged(self, capping_ledger, credit_expense, captured_logs):
        expense = credit_expense
        capping_ledger.pay_partial_debt(expense.id, "120000", PAY_DATE)

        records = [r for r in captured_logs() if r["message"] == "debt_payment_excess_discarded"]
        assert len(records) == 1
        assert records[0]["discarded"] == "20000"

    def test_settled_expense_still_rejected(self, capping_ledger, credit_expense):
        expense = credit_expense
        capping_ledger.pay_partial_debt(expense.id, "100000", PAY_DATE)

        with pytest.raises(OverpaymentError):
            capping_ledger.pay_partial_debt(expense.id, "1", PAY_DATE)


class TestRejectedInputs:
    def test_cash_expense_rejected(self, ledger, add_expense):
        expense = add_expense("5000", PaymentMethod.CASH)
        with pytest.raises(InvalidPaymentMethodError) as exc_info:
            ledger.pay_partial_debt(expense.id, "100", PAY_DATE)
        assert exc_info.value.payment_method == "Cash"
        assert ledger.state.expenses[expense.id].payment_history == ()

    @pytest.mark.parametrize("amount", ["0", "-5", "abc"])
    def test_non_positive_amount_rejected(self, ledger, add_expense, amount):
        expense = add_expense("1000")
        with pytest.raises(ValidationError):
            ledger.pay_partial_debt(expense.id, amount, PAY_DATE)

    def test_unknown_expense(self, ledger):
        with pytest.raises(ExpenseNotFoundError):
            ledger.pay_partial_debt("exp-missing", "100", PAY_DATE)


class TestAuditLogging:
    def test_payment_logged_with_context(self, ledger, add_expense, captured_logs):
        expense = add_expense("100000")
        ledger.pay_partial_debt(expense.id, "40000", PAY_DATE)

        records = [r for r in captured_logs() if r["message"] == "debt_payment_recorded"]
        assert len(records) == 1
        record = records[0]
        assert record["expense_id"] == expense.id
        assert record["applied"] == "40000"
        assert record["outstanding"] == "60000"
        assert record["contract_id"] == expense.contract_id
        assert record["operation"] == "pay_partial_debt"
