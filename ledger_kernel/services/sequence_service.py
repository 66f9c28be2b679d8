"""
SequenceService -- monotonic sequence allocation via durable counters.

Responsibility:
    Provides strictly monotonically increasing sequence numbers for contract
    numbering.  Counters live in the ``sequences`` bucket of the ledger state
    and are persisted with every snapshot.

Architecture position:
    Kernel > Services -- imperative shell infrastructure.
    Called by ContractService inside its own transaction.

Invariants enforced:
    NUMBER_MONOTONICITY -- the counter is the sole source of truth for the
        next value.  Counting existing contracts (the count-plus-one
        anti-pattern) is FORBIDDEN: deletions or concurrent creations would
        reissue numbers.
    Transactional -- the increment is made on the caller's working copy and
        is only visible after the caller's transaction commits.  Rollback
        returns the value.

Audit relevance:
    Sequence allocation is logged at DEBUG level with sequence_name and value.
"""

from ledger_kernel.logging_config import get_logger
from ledger_kernel.store import LedgerTransaction

logger = get_logger("services.sequence")


class SequenceService:
    """
    Service for generating transactional sequence numbers.

    Contract:
        Accepts a sequence name and returns the next strictly-monotonic
        integer value.  The increment is transactional -- it is only
        committed when the caller's transaction commits.

    Non-goals:
        - Does NOT open its own transaction -- caller controls boundaries.

    Usage:
        with store.transaction("create_contract") as txn:
            seq = SequenceService(txn).next_value("contract_number:2024")
            # If the transaction rolls back, seq is not consumed
    """

    def __init__(self, txn: LedgerTransaction):
        self._txn = txn

    def next_value(self, sequence_name: str) -> int:
        """
        Get the next value for a named sequence.

        Postconditions:
            - Returns an integer > 0 that is strictly greater than any
              previously returned value for this sequence name.
        """
        value = self._txn.sequences.get(sequence_name, 0) + 1
        assert value > 0, "sequence value must be strictly positive"
        self._txn.sequences[sequence_name] = value
        logger.debug(
            "sequence_allocated",
            extra={"sequence_name": sequence_name, "value": value},
        )
        return value

    def current_value(self, sequence_name: str) -> int | None:
        return self._txn.sequences.get(sequence_name)

    def reset(self, sequence_name: str, value: int = 0) -> None:
        """
        Reset a sequence to a specific value.

        WARNING: This should only be used in tests or migration scripts.
        Resetting sequences in production reissues numbers.
        """
        self._txn.sequences[sequence_name] = value
        logger.warning(
            "sequence_reset",
            extra={"sequence_name": sequence_name, "value": value},
        )
