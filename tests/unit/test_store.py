"""Unit tests for LedgerStore transactions and LedgerState snapshots."""

import threading
from datetime import date
from decimal import Decimal

import pytest

from ledger_kernel.domain.models import (
    BeneficiaryKind,
    BeneficiaryRef,
    Expense,
    ExpenseCategory,
    PaymentMethod,
    Supplier,
)
from ledger_kernel.store import LedgerState, LedgerStore


def _expense(eid: str = "exp-1", amount: str = "100") -> Expense:
    return Expense(
        id=eid,
        contract_id="cnt-1",
        expense_date=date(2024, 1, 5),
        description="Gravel",
        amount=Decimal(amount),
        category=ExpenseCategory.MATERIAL,
        payment_method=PaymentMethod.CREDIT,
        beneficiary=BeneficiaryRef(BeneficiaryKind.SUPPLIER, "sup-1"),
    )


class TestTransaction:
    def test_commit_bumps_version(self):
        store = LedgerStore()
        with store.transaction("add_supplier") as txn:
            txn.put_beneficiary(Supplier(id="sup-1", name="A"))

        assert store.state.version == 1
        assert "sup-1" in store.state.suppliers

    def test_exception_discards_working_copy(self):
        store = LedgerStore()
        before = store.state

        with pytest.raises(ValueError):
            with store.transaction("add_expense") as txn:
                txn.put_expense(_expense())
                raise ValueError("rejected")

        assert store.state is before
        assert dict(store.state.expenses) == {}
        assert dict(store.state.balances) == {}

    def test_rollback_logged(self, captured_logs):
        store = LedgerStore()
        with pytest.raises(ValueError):
            with store.transaction("failing_op"):
                raise ValueError("boom")

        records = [r for r in captured_logs() if r["message"] == "transaction_rolled_back"]
        assert len(records) == 1
        assert records[0]["operation"] == "failing_op"
        assert records[0]["exc_type"] == "ValueError"

    def test_nested_transaction_refused(self):
        store = LedgerStore()
        with store.transaction("outer"):
            with pytest.raises(RuntimeError, match="Nested"):
                with store.transaction("inner"):
                    pass
        assert store.state.version == 1

    def test_lock_released_after_failure(self):
        store = LedgerStore()
        with pytest.raises(KeyError):
            with store.transaction("bad") as txn:
                txn.delete_expense("exp-missing")
        with store.transaction("good"):
            pass
        assert store.state.version == 1

    def test_transactions_on_other_threads_are_independent(self):
        store = LedgerStore()
        errors = []

        def writer(n):
            try:
                with store.transaction("add_supplier") as txn:
                    txn.put_beneficiary(Supplier(id=f"sup-{n}", name=str(n)))
            except Exception as e:  # pragma: no cover - surfaced by the assert
                errors.append(e)

        threads = [threading.Thread(target=writer, args=(i,)) for i in range(20)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        assert errors == []
        assert len(store.state.suppliers) == 20
        assert store.state.version == 20


class TestCommittedState:
    def test_state_buckets_are_read_only(self):
        store = LedgerStore()
        with store.transaction("add_supplier") as txn:
            txn.put_beneficiary(Supplier(id="sup-1", name="A"))

        with pytest.raises(TypeError):
            store.state.suppliers["sup-2"] = Supplier(id="sup-2", name="B")  # type: ignore[index]

    def test_old_state_unchanged_by_later_commit(self):
        store = LedgerStore()
        snapshot = store.state
        with store.transaction("add_expense") as txn:
            txn.put_expense(_expense())
        assert dict(snapshot.expenses) == {}

    def test_expense_writes_maintain_balances(self):
        store = LedgerStore()
        with store.transaction("add") as txn:
            txn.put_expense(_expense("exp-1", "100"))
            txn.put_expense(_expense("exp-2", "50"))
        assert store.state.balances["Supplier:sup-1"] == Decimal("150")

        with store.transaction("delete") as txn:
            txn.delete_expense("exp-1")
        assert store.state.balances["Supplier:sup-1"] == Decimal("50")

    def test_build_recomputes_balances(self):
        state = LedgerState.build(expenses={"exp-1": _expense()}, version=4)
        assert state.balances == {"Supplier:sup-1": Decimal("100")}
        assert state.version == 4

    def test_replace_state(self):
        store = LedgerStore()
        replacement = LedgerState.build(suppliers={"sup-1": Supplier(id="sup-1", name="A")})
        store.replace_state(replacement)
        assert store.state is replacement
        assert store.state.beneficiaries(BeneficiaryKind.SUPPLIER)["sup-1"].name == "A"
