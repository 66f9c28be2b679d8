"""
Beneficiary balance arithmetic (``ledger_kernel.domain.balances``).

Responsibility:
    ``balance(b) = sum(amount) - sum(effective_paid)`` over the expenses that
    reference beneficiary ``b``. Provides both the full recompute and the
    incremental update applied inside each store transaction.

Architecture position:
    Kernel > Domain -- pure functions, zero I/O. The incremental index lives
    in ``LedgerState.balances``; ``ReconciliationService`` compares it with
    ``compute_balances`` to detect drift.

Invariants enforced:
    DERIVED_BALANCE -- the index is only ever changed through
    ``apply_expense_change``, which removes the old contribution and adds
    the new one, so edits and deletions never double count.
"""

from __future__ import annotations

from collections.abc import Iterable, Mapping, MutableMapping
from decimal import Decimal

from ledger_kernel.domain.models import Expense
from ledger_kernel.domain.values import ZERO


def balance_contribution(expense: Expense) -> Decimal:
    """What this expense adds to its beneficiary's balance."""
    return expense.amount - expense.effective_paid


def compute_balances(expenses: Iterable[Expense]) -> dict[str, Decimal]:
    """Full rescan, keyed by ``BeneficiaryRef.key``."""
    balances: dict[str, Decimal] = {}
    for expense in expenses:
        if expense.beneficiary is None:
            continue
        key = expense.beneficiary.key
        balances[key] = balances.get(key, ZERO) + balance_contribution(expense)
    return balances


def apply_expense_change(
    index: MutableMapping[str, Decimal],
    before: Expense | None,
    after: Expense | None,
) -> None:
    """Move one expense's contribution from ``before`` to ``after``.

    ``before is None`` is an insert, ``after is None`` a delete.
    """
    if before is not None and before.beneficiary is not None:
        key = before.beneficiary.key
        index[key] = index.get(key, ZERO) - balance_contribution(before)
    if after is not None and after.beneficiary is not None:
        key = after.beneficiary.key
        index[key] = index.get(key, ZERO) + balance_contribution(after)


def nonzero(balances: Mapping[str, Decimal]) -> dict[str, Decimal]:
    """Drop zero entries; a missing key and a zero balance are equivalent."""
    return {k: v for k, v in balances.items() if v != ZERO}


def diff_balances(
    indexed: Mapping[str, Decimal],
    recomputed: Mapping[str, Decimal],
) -> dict[str, tuple[Decimal, Decimal]]:
    """Keys whose indexed value differs from the recompute, as (indexed, actual)."""
    left, right = nonzero(indexed), nonzero(recomputed)
    return {
        key: (left.get(key, ZERO), right.get(key, ZERO))
        for key in sorted(set(left) | set(right))
        if left.get(key, ZERO) != right.get(key, ZERO)
    }
