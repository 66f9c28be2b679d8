"""
ReconciliationService -- checks incrementally maintained state against a
full recompute.

Responsibility:
    The beneficiary balance index is updated inside every expense write.
    This service recomputes all balances from the expenses and compares.
    It also re-checks the per-expense settlement trail.

Architecture position:
    Kernel > Services.  Read-only against the committed state; it never
    repairs anything.  A mismatch is a kernel defect, not a user error.

Invariants enforced:
    DERIVED_BALANCE, SETTLEMENT_TRAIL (verification only).

Failure modes:
    - InvariantViolationError listing the mismatched keys.
"""

from __future__ import annotations

from ledger_kernel.domain.balances import compute_balances, diff_balances
from ledger_kernel.domain.values import ZERO
from ledger_kernel.exceptions import InvariantViolationError
from ledger_kernel.invariants import LedgerInvariant
from ledger_kernel.logging_config import get_logger
from ledger_kernel.store import LedgerStore

logger = get_logger("services.reconciliation")


class ReconciliationService:
    """Verification of derived state. Takes the store, never writes to it."""

    def __init__(self, store: LedgerStore):
        self.store = store

    def reconcile_balances(self) -> int:
        """
        Compare the balance index with a full recompute.

        Returns:
            The number of beneficiaries checked.

        Raises:
            InvariantViolationError: any key differs.
        """
        state = self.store.state
        recomputed = compute_balances(state.expenses.values())
        mismatches = diff_balances(state.balances, recomputed)
        if mismatches:
            logger.error(
                "balance_index_drift",
                extra={
                    "version": state.version,
                    "mismatches": {
                        k: [str(indexed), str(actual)]
                        for k, (indexed, actual) in mismatches.items()
                    },
                },
            )
            raise InvariantViolationError(LedgerInvariant.DERIVED_BALANCE.value, mismatches)
        logger.info(
            "balances_reconciled",
            extra={"version": state.version, "beneficiary_count": len(recomputed)},
        )
        return len(recomputed)

    def reconcile_settlements(self) -> int:
        """
        Every expense's history must fit inside its paid amount.

        Returns:
            The number of expenses checked.
        """
        state = self.store.state
        mismatches = {
            e.id: (e.history_total, e.effective_paid)
            for e in state.expenses.values()
            if e.initial_payment < ZERO
        }
        if mismatches:
            logger.error(
                "settlement_trail_broken",
                extra={"expense_ids": sorted(mismatches)},
            )
            raise InvariantViolationError(LedgerInvariant.SETTLEMENT_TRAIL.value, mismatches)
        return len(state.expenses)
