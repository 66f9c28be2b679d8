"""
Module: ledger_kernel.persistence.repository
Responsibility: The load/save contract between the ledger and its storage,
    plus two implementations: an in-process dict and a SQLAlchemy table.
Architecture position: Kernel > Persistence.  Repositories handle snapshot
    dicts only (see serialization.py); they never see domain objects and
    never run inside a store transaction.

Invariants enforced:
    - ``save`` is all-or-nothing: the SQLAlchemy repository writes inside one
      ``session_scope``; the in-memory one swaps a deep copy.
    - ``load`` returns None when nothing has ever been saved.

Failure modes:
    - SQLAlchemy errors propagate after rollback; the previous saved
      snapshot stays intact.
"""

from __future__ import annotations

import copy
from abc import ABC, abstractmethod
from datetime import datetime, timezone
from typing import Any

from sqlalchemy import select
from sqlalchemy.orm import Session, sessionmaker

from ledger_kernel.db.engine import session_scope
from ledger_kernel.db.models import LedgerRecord
from ledger_kernel.logging_config import get_logger
from ledger_kernel.persistence.serialization import ENTITY_BUCKETS, SNAPSHOT_BUCKETS

logger = get_logger("persistence.repository")

Snapshot = dict[str, dict[str, Any]]


class LedgerRepository(ABC):
    """Storage for whole-ledger snapshots."""

    @abstractmethod
    def load(self) -> Snapshot | None:
        """The last saved snapshot, or None."""

    @abstractmethod
    def save(self, snapshot: Snapshot) -> None:
        """Persist ``snapshot``, replacing what was saved before."""


class InMemoryRepository(LedgerRepository):
    """Keeps a private deep copy; useful for tests and embedded hosts."""

    def __init__(self, snapshot: Snapshot | None = None):
        self._snapshot = copy.deepcopy(snapshot) if snapshot is not None else None
        self.save_count = 0

    def load(self) -> Snapshot | None:
        return copy.deepcopy(self._snapshot) if self._snapshot is not None else None

    def save(self, snapshot: Snapshot) -> None:
        self._snapshot = copy.deepcopy(snapshot)
        self.save_count += 1
        logger.debug("snapshot_saved_in_memory", extra={"save_count": self.save_count})


class SqlAlchemyRepository(LedgerRepository):
    """
    One ``ledger_records`` row per (bucket, record id).

    ``save`` diffs against the stored rows: new records are inserted, changed
    payloads updated and records absent from the snapshot deleted.
    """

    def __init__(self, session_factory: sessionmaker[Session] | None = None):
        self._session_factory = session_factory

    def load(self) -> Snapshot | None:
        with session_scope(self._session_factory) as session:
            rows = session.execute(select(LedgerRecord)).scalars().all()
            if not rows:
                return None
            snapshot: Snapshot = {bucket: {} for bucket in SNAPSHOT_BUCKETS}
            for row in rows:
                payload = row.payload
                if row.bucket == "sequences":
                    snapshot["sequences"][row.record_id] = int(payload["value"])
                else:
                    snapshot.setdefault(row.bucket, {})[row.record_id] = payload
        logger.info("snapshot_loaded", extra={"record_count": len(rows)})
        return snapshot

    def save(self, snapshot: Snapshot) -> None:
        wanted: dict[tuple[str, str], dict] = {}
        for bucket in ENTITY_BUCKETS:
            for record_id, payload in (snapshot.get(bucket) or {}).items():
                wanted[(bucket, record_id)] = payload
        for name, value in (snapshot.get("sequences") or {}).items():
            wanted[("sequences", name)] = {"value": int(value)}

        now = datetime.now(timezone.utc)
        inserted = updated = deleted = 0
        with session_scope(self._session_factory) as session:
            existing = {
                (row.bucket, row.record_id): row
                for row in session.execute(select(LedgerRecord)).scalars()
            }
            for key, row in existing.items():
                if key not in wanted:
                    session.delete(row)
                    deleted += 1
                elif row.payload != wanted[key]:
                    row.payload = wanted[key]
                    row.updated_at = now
                    updated += 1
            for key, payload in wanted.items():
                if key not in existing:
                    session.add(
                        LedgerRecord(
                            bucket=key[0],
                            record_id=key[1],
                            payload=payload,
                            updated_at=now,
                        )
                    )
                    inserted += 1
        logger.info(
            "snapshot_saved",
            extra={"inserted": inserted, "updated": updated, "deleted": deleted},
        )
