"""
Race safety of the ledger store.

These tests hammer one ledger from many threads and verify that the
settlement, numbering and balance invariants hold once the dust settles.
Every mutation runs inside ``LedgerStore.transaction``, which serialises
writers; the tests prove no update is lost and no check is bypassed.

Run with: pytest tests/concurrency/test_race_safety.py -v
Skip with: pytest -m "not slow_locks"
"""

from concurrent.futures import ThreadPoolExecutor, as_completed
from datetime import date
from decimal import Decimal
from threading import Barrier

import pytest

from ledger_kernel.domain.models import BeneficiaryKind, PaymentMethod
from ledger_kernel.exceptions import OverpaymentError

pytestmark = pytest.mark.slow_locks

PAY_DATE = date(2024, 5, 2)
THREADS = 10


def _run_concurrently(fn, count: int) -> tuple[list, list[Exception]]:
    """Release ``count`` calls of ``fn(i)`` at once; collect results and errors."""
    barrier = Barrier(count)
    results, errors = [], []

    def call(i):
        barrier.wait()
        return fn(i)

    with ThreadPoolExecutor(max_workers=count) as pool:
        futures = [pool.submit(call, i) for i in range(count)]
        for future in as_completed(futures):
            try:
                results.append(future.result())
            except Exception as e:
                errors.append(e)
    return results, errors


class TestConcurrentDebtPayments:
    def test_overlapping_payments_never_overpay(self, ledger, add_expense):
        """Ten payments of 20,000 against a 100,000 debt: exactly five land."""
        expense = add_expense("100000", PaymentMethod.CREDIT)

        results, errors = _run_concurrently(
            lambda i: ledger.pay_partial_debt(expense.id, "20000", PAY_DATE, note=f"p{i}"),
            THREADS,
        )

        final = ledger.state.expenses[expense.id]
        assert len(results) == 5
        assert len(errors) == 5
        assert all(isinstance(e, OverpaymentError) for e in errors)
        assert final.paid_amount == Decimal("100000")
        assert len(final.payment_history) == 5
        assert final.history_total == final.paid_amount
        ledger.reconciliation.reconcile_settlements()

    def test_payments_on_separate_debts_all_land(self, ledger, add_expense, supplier):
        expenses = [add_expense("50000", PaymentMethod.CREDIT) for _ in range(THREADS)]

        results, errors = _run_concurrently(
            lambda i: ledger.pay_partial_debt(expenses[i].id, "15000", PAY_DATE),
            THREADS,
        )

        assert errors == []
        assert len(results) == THREADS
        assert ledger.balance_of(supplier.id, BeneficiaryKind.SUPPLIER) == Decimal(
            35000 * THREADS
        )
        ledger.reconciliation.reconcile_balances()


class TestConcurrentContractCreation:
    def test_contract_numbers_unique_and_dense(self, ledger, quote_factory):
        results, errors = _run_concurrently(
            lambda i: ledger.create_contract_from_quote(quote_factory(f"quote-{i}")),
            THREADS,
        )

        assert errors == []
        numbers = sorted(c.contract_number for c in results)
        assert numbers == [f"MB-CNT-2024-{n:04d}" for n in range(1, THREADS + 1)]
        assert dict(ledger.state.sequences) == {"contract_number:2024": THREADS}

    def test_same_quote_converted_once(self, ledger, quote_factory):
        results, errors = _run_concurrently(
            lambda i: ledger.create_contract_from_quote(quote_factory("quote-shared")),
            THREADS,
        )

        assert len(results) == 1
        assert len(errors) == THREADS - 1
        assert len(ledger.state.contracts) == 1
        assert dict(ledger.state.sequences) == {"contract_number:2024": 1}


class TestConcurrentMixedWrites:
    def test_expenses_and_deletes_keep_index_consistent(self, ledger, add_expense, supplier):
        seeded = [add_expense("1000", PaymentMethod.CREDIT) for _ in range(THREADS)]

        def work(i):
            if i % 2:
                return ledger.expenses.delete_expense(seeded[i].id)
            return add_expense("2500", PaymentMethod.CREDIT)

        _, errors = _run_concurrently(work, THREADS)

        assert errors == []
        assert ledger.balance_of(supplier.id, BeneficiaryKind.SUPPLIER) == Decimal(
            5 * 1000 + 5 * 2500
        )
        ledger.reconciliation.reconcile_balances()
