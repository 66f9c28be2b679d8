"""
Module: ledger_kernel.persistence.serialization
Responsibility: Snapshot codec.  Converts a ``LedgerState`` to a plain,
    JSON-compatible dict of independent keyed buckets and back.
Architecture position: Kernel > Persistence.  May import from domain/ and
    store.py.  Repositories store the dicts this module produces; they never
    see domain objects.

Snapshot shape:
    {
        "contracts":        {id: {...}},
        "suppliers":        {id: {...}},
        "workers":          {id: {...}},
        "subcontractors":   {id: {...}},
        "sub_agreements":   {id: {...}},
        "expenses":         {id: {...}},
        "received_payments":{id: {...}},
        "sequences":        {name: int},
    }
    Decimals are strings, dates and datetimes ISO-8601 strings, enums their
    values.  Missing buckets load as empty.

Invariants enforced:
    - Round trip: ``state_from_snapshot(snapshot_from_state(s))`` equals ``s``
      in every bucket; the balance index is rebuilt, never read.
    - Legacy normalisation: a Cash expense whose stored paid amount differs
      from its amount is loaded as fully settled (logged).
    - Legacy numbering: a snapshot with contracts but no ``sequences`` bucket
      seeds each year's counter from the highest existing number.

Failure modes:
    - ValueError / KeyError / TypeError on malformed records, wrapped in
      ``SnapshotFormatError`` with the bucket and id.
"""

from __future__ import annotations

from datetime import date, datetime
from decimal import Decimal
from typing import Any

from ledger_kernel.domain.models import (
    Attachment,
    BeneficiaryKind,
    BeneficiaryRef,
    Contract,
    ContractStatus,
    Expense,
    ExpenseCategory,
    PaymentHistoryEntry,
    PaymentMethod,
    PaymentStage,
    ReceivedPayment,
    Subcontractor,
    SubcontractorAgreement,
    Supplier,
    Worker,
)
from ledger_kernel.domain.numbering import seed_contract_sequences
from ledger_kernel.domain.policy import DEFAULT_POLICY, LedgerPolicy
from ledger_kernel.exceptions import LedgerError
from ledger_kernel.logging_config import get_logger
from ledger_kernel.store import ENTITY_BUCKETS, LedgerState

logger = get_logger("persistence.serialization")

SNAPSHOT_BUCKETS: tuple[str, ...] = ENTITY_BUCKETS + ("sequences",)


class SnapshotFormatError(LedgerError):
    """A snapshot record could not be decoded."""

    code: str = "SNAPSHOT_FORMAT"

    def __init__(self, bucket: str, record_id: str, reason: str):
        self.bucket = bucket
        self.record_id = record_id
        super().__init__(f"Malformed {bucket} record {record_id}: {reason}")


# ---------------------------------------------------------------------------
# Scalar helpers
# ---------------------------------------------------------------------------


def _dec(value: Decimal | None) -> str | None:
    return None if value is None else str(value)


def _to_dec(value: Any) -> Decimal | None:
    if value is None or value == "":
        return None
    if isinstance(value, float):
        # JSON numbers written by older tools; go through repr to avoid binary noise
        return Decimal(repr(value))
    return Decimal(str(value))


def _iso(value: date | datetime | None) -> str | None:
    return None if value is None else value.isoformat()


def _to_date(value: str | None) -> date | None:
    if not value:
        return None
    # Accept full timestamps for date fields
    return date.fromisoformat(value[:10])


# ---------------------------------------------------------------------------
# Encoders
# ---------------------------------------------------------------------------


def _encode_stage(stage: PaymentStage) -> dict:
    return {"id": stage.id, "name": stage.name, "percentage": _dec(stage.percentage)}


def _encode_attachment(a: Attachment) -> dict:
    return {
        "id": a.id,
        "name": a.name,
        "url": a.url,
        "mime_type": a.mime_type,
        "original_filename": a.original_filename,
        "added_at": _iso(a.added_at),
    }


def encode_contract(c: Contract) -> dict:
    return {
        "id": c.id,
        "contract_number": c.contract_number,
        "quote_id": c.quote_id,
        "offer_number": c.offer_number,
        "quote_date": c.quote_date,
        "total_contract_value": _dec(c.total_contract_value),
        "status": c.status.value,
        "payment_schedule": [_encode_stage(s) for s in c.payment_schedule],
        "created_at": _iso(c.created_at),
        "project_details": dict(c.project_details),
        "duration_days": c.duration_days,
        "attachments": [_encode_attachment(a) for a in c.attachments],
    }


def encode_received_payment(p: ReceivedPayment) -> dict:
    return {
        "id": p.id,
        "contract_id": p.contract_id,
        "amount": _dec(p.amount),
        "payment_date": _iso(p.payment_date),
        "schedule_stage_id": p.schedule_stage_id,
        "is_extra": p.is_extra,
        "note": p.note,
        "attachment_url": p.attachment_url,
        "recorded_by": p.recorded_by,
    }


def _encode_history(h: PaymentHistoryEntry) -> dict:
    return {
        "id": h.id,
        "payment_date": _iso(h.payment_date),
        "amount": _dec(h.amount),
        "attachment_url": h.attachment_url,
        "note": h.note,
        "receipt_number": h.receipt_number,
        "receipt_date": _iso(h.receipt_date),
    }


def encode_expense(e: Expense) -> dict:
    return {
        "id": e.id,
        "contract_id": e.contract_id,
        "expense_date": _iso(e.expense_date),
        "description": e.description,
        "amount": _dec(e.amount),
        "category": e.category.value,
        "payment_method": e.payment_method.value,
        "paid_amount": _dec(e.paid_amount),
        "beneficiary": (
            None if e.beneficiary is None
            else {"kind": e.beneficiary.kind.value, "id": e.beneficiary.id}
        ),
        "payment_history": [_encode_history(h) for h in e.payment_history],
        "attachment_url": e.attachment_url,
        "notes": e.notes,
        "receipt_number": e.receipt_number,
        "receipt_date": _iso(e.receipt_date),
    }


def encode_supplier(s: Supplier) -> dict:
    return {
        "id": s.id,
        "name": s.name,
        "phone": s.phone,
        "address": s.address,
        "specialty": s.specialty,
        "notes": s.notes,
    }


def encode_worker(w: Worker) -> dict:
    return {
        "id": w.id,
        "name": w.name,
        "phone": w.phone,
        "address": w.address,
        "role": w.role,
        "daily_wage": _dec(w.daily_wage),
        "notes": w.notes,
    }


def encode_subcontractor(s: Subcontractor) -> dict:
    return {
        "id": s.id,
        "name": s.name,
        "phone": s.phone,
        "address": s.address,
        "specialty": s.specialty,
        "company_name": s.company_name,
        "default_contract_value": _dec(s.default_contract_value),
    }


def encode_agreement(a: SubcontractorAgreement) -> dict:
    return {
        "id": a.id,
        "contract_id": a.contract_id,
        "subcontractor_id": a.subcontractor_id,
        "total_amount": _dec(a.total_amount),
        "duration_days": a.duration_days,
        "notes": a.notes,
    }


# ---------------------------------------------------------------------------
# Decoders
# ---------------------------------------------------------------------------


def decode_contract(d: dict) -> Contract:
    return Contract(
        id=d["id"],
        contract_number=d["contract_number"],
        quote_id=d["quote_id"],
        offer_number=d.get("offer_number") or "",
        quote_date=d.get("quote_date"),
        total_contract_value=_to_dec(d["total_contract_value"]),
        status=ContractStatus(d.get("status") or ContractStatus.ACTIVE.value),
        payment_schedule=tuple(
            PaymentStage(id=s["id"], name=s["name"], percentage=_to_dec(s["percentage"]))
            for s in d.get("payment_schedule") or ()
        ),
        created_at=datetime.fromisoformat(d["created_at"]),
        project_details=dict(d.get("project_details") or {}),
        duration_days=d.get("duration_days"),
        attachments=tuple(
            Attachment(
                id=a["id"],
                name=a.get("name", ""),
                url=a.get("url", ""),
                mime_type=a.get("mime_type") or "",
                original_filename=a.get("original_filename") or "",
                added_at=datetime.fromisoformat(a["added_at"]) if a.get("added_at") else None,
            )
            for a in d.get("attachments") or ()
        ),
    )


def decode_received_payment(d: dict) -> ReceivedPayment:
    # ``is_extra`` is derived; a stored value is ignored
    return ReceivedPayment(
        id=d["id"],
        contract_id=d["contract_id"],
        amount=_to_dec(d["amount"]),
        payment_date=_to_date(d["payment_date"]),
        schedule_stage_id=d.get("schedule_stage_id") or None,
        note=d.get("note") or "",
        attachment_url=d.get("attachment_url"),
        recorded_by=d.get("recorded_by"),
    )


def decode_expense(d: dict) -> Expense:
    amount = _to_dec(d["amount"])
    method = PaymentMethod(d["payment_method"])
    paid = _to_dec(d.get("paid_amount")) or Decimal("0")
    if method == PaymentMethod.CASH and paid != amount:
        logger.warning(
            "legacy_cash_expense_normalised",
            extra={"expense_id": d["id"], "stored_paid_amount": str(paid)},
        )
        paid = amount
    beneficiary = d.get("beneficiary")
    return Expense(
        id=d["id"],
        contract_id=d["contract_id"],
        expense_date=_to_date(d["expense_date"]),
        description=d.get("description") or "",
        amount=amount,
        category=ExpenseCategory(d["category"]),
        payment_method=method,
        paid_amount=paid,
        beneficiary=(
            None if not beneficiary
            else BeneficiaryRef(BeneficiaryKind(beneficiary["kind"]), beneficiary["id"])
        ),
        payment_history=tuple(
            PaymentHistoryEntry(
                id=h["id"],
                payment_date=_to_date(h["payment_date"]),
                amount=_to_dec(h["amount"]),
                attachment_url=h.get("attachment_url"),
                note=h.get("note"),
                receipt_number=h.get("receipt_number"),
                receipt_date=_to_date(h.get("receipt_date")),
            )
            for h in d.get("payment_history") or ()
        ),
        attachment_url=d.get("attachment_url"),
        notes=d.get("notes"),
        receipt_number=d.get("receipt_number"),
        receipt_date=_to_date(d.get("receipt_date")),
    )


def decode_supplier(d: dict) -> Supplier:
    return Supplier(
        id=d["id"],
        name=d["name"],
        phone=d.get("phone") or "",
        address=d.get("address"),
        specialty=d.get("specialty") or "",
        notes=d.get("notes"),
    )


def decode_worker(d: dict) -> Worker:
    return Worker(
        id=d["id"],
        name=d["name"],
        phone=d.get("phone") or "",
        address=d.get("address"),
        role=d.get("role") or "",
        daily_wage=_to_dec(d.get("daily_wage")) or Decimal("0"),
        notes=d.get("notes"),
    )


def decode_subcontractor(d: dict) -> Subcontractor:
    return Subcontractor(
        id=d["id"],
        name=d["name"],
        phone=d.get("phone") or "",
        address=d.get("address"),
        specialty=d.get("specialty") or "",
        company_name=d.get("company_name"),
        default_contract_value=_to_dec(d.get("default_contract_value")),
    )


def decode_agreement(d: dict) -> SubcontractorAgreement:
    return SubcontractorAgreement(
        id=d["id"],
        contract_id=d["contract_id"],
        subcontractor_id=d["subcontractor_id"],
        total_amount=_to_dec(d["total_amount"]),
        duration_days=int(d.get("duration_days") or 0),
        notes=d.get("notes"),
    )


_CODECS = {
    "contracts": (encode_contract, decode_contract),
    "suppliers": (encode_supplier, decode_supplier),
    "workers": (encode_worker, decode_worker),
    "subcontractors": (encode_subcontractor, decode_subcontractor),
    "sub_agreements": (encode_agreement, decode_agreement),
    "expenses": (encode_expense, decode_expense),
    "received_payments": (encode_received_payment, decode_received_payment),
}


# ---------------------------------------------------------------------------
# Whole-state codec
# ---------------------------------------------------------------------------


def snapshot_from_state(state: LedgerState) -> dict[str, dict]:
    """Encode every bucket of ``state`` as plain dicts."""
    snapshot: dict[str, dict] = {}
    for bucket in ENTITY_BUCKETS:
        encode, _ = _CODECS[bucket]
        snapshot[bucket] = {
            entity_id: encode(entity)
            for entity_id, entity in getattr(state, bucket).items()
        }
    snapshot["sequences"] = dict(state.sequences)
    return snapshot


def state_from_snapshot(
    snapshot: dict[str, Any] | None,
    policy: LedgerPolicy = DEFAULT_POLICY,
) -> LedgerState:
    """
    Decode a snapshot into a fresh ``LedgerState`` (version 0).

    ``policy`` supplies the contract number prefix used to seed counters for
    legacy snapshots.

    Raises:
        SnapshotFormatError: a record is malformed.
    """
    snapshot = snapshot or {}
    buckets: dict[str, dict] = {}
    for bucket in ENTITY_BUCKETS:
        _, decode = _CODECS[bucket]
        decoded = {}
        for record_id, record in (snapshot.get(bucket) or {}).items():
            try:
                entity = decode(record)
            except (KeyError, TypeError, ValueError, ArithmeticError) as e:
                raise SnapshotFormatError(bucket, record_id, repr(e)) from e
            decoded[entity.id] = entity
        buckets[bucket] = decoded

    sequences = {k: int(v) for k, v in (snapshot.get("sequences") or {}).items()}
    if not sequences and buckets["contracts"]:
        sequences = seed_contract_sequences(
            policy.contract_number_prefix,
            (c.contract_number for c in buckets["contracts"].values()),
        )
        logger.info("legacy_sequences_seeded", extra={"sequences": sequences})

    state = LedgerState.build(sequences=sequences, **buckets)
    logger.info(
        "snapshot_decoded",
        extra={bucket: len(buckets[bucket]) for bucket in ENTITY_BUCKETS},
    )
    return state
