"""
Module: ledger_kernel.db.models
Responsibility: ORM table backing ``SqlAlchemyRepository``.  One row per
    (bucket, record id) with the record's snapshot encoding as a JSON payload.
Architecture position: Kernel > DB.  Imports only db/base.py.
"""

from datetime import datetime
from typing import Any

from sqlalchemy import String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from ledger_kernel.db.base import Base


class LedgerRecord(Base):
    """
    A single snapshot record.

    ``bucket`` is one of the snapshot bucket names ("contracts", "expenses",
    "sequences"...).  For ``sequences`` the payload is ``{"value": int}``.
    """

    __tablename__ = "ledger_records"
    __table_args__ = (
        UniqueConstraint("bucket", "record_id", name="uq_ledger_records_bucket_record"),
    )

    bucket: Mapped[str] = mapped_column(String(32), nullable=False, index=True)
    record_id: Mapped[str] = mapped_column(String(100), nullable=False)
    payload: Mapped[dict[str, Any]] = mapped_column(nullable=False)
    updated_at: Mapped[datetime] = mapped_column(nullable=False)

    def __repr__(self) -> str:
        return f"<LedgerRecord {self.bucket}/{self.record_id}>"
