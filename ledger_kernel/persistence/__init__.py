"""Snapshot codec and repositories."""

from ledger_kernel.persistence.repository import (
    InMemoryRepository,
    LedgerRepository,
    SqlAlchemyRepository,
)
from ledger_kernel.persistence.serialization import (
    SnapshotFormatError,
    snapshot_from_state,
    state_from_snapshot,
)

__all__ = [
    "InMemoryRepository",
    "LedgerRepository",
    "SnapshotFormatError",
    "SqlAlchemyRepository",
    "snapshot_from_state",
    "state_from_snapshot",
]
