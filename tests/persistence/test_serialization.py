"""
Tests for the snapshot codec.

Covers:
- Full state round trip
- Legacy data normalisation (cash paid amounts, missing counters)
- Malformed records
"""

import json
from datetime import date
from decimal import Decimal

import pytest

from ledger_kernel.domain.models import (
    Attachment,
    BeneficiaryKind,
    BeneficiaryRef,
    ContractStatus,
    PaymentMethod,
)
from ledger_kernel.persistence.serialization import (
    SNAPSHOT_BUCKETS,
    SnapshotFormatError,
    snapshot_from_state,
    state_from_snapshot,
)
from ledger_kernel.store import ENTITY_BUCKETS

PAY_DATE = date(2024, 3, 3)


@pytest.fixture
def populated_ledger(ledger, contract, add_expense, worker, subcontractor):
    """A ledger with one of everything."""
    expense = add_expense("100000", paid_amount="10000")
    ledger.pay_partial_debt(expense.id, "20000", PAY_DATE, note="n", receipt_number="R1")
    add_expense("5000", PaymentMethod.CASH)
    add_expense(
        "70000", beneficiary=BeneficiaryRef(BeneficiaryKind.WORKER, worker.id)
    )
    ledger.payments.add_payment(contract.id, "500000", PAY_DATE, schedule_stage_id="stg-a")
    ledger.payments.add_payment(contract.id, "1000", PAY_DATE)
    ledger.contracts.save_subcontractor_agreement(contract.id, subcontractor.id, "900000")
    ledger.update_contract_details(
        contract.id,
        duration_days=90,
        attachments=[Attachment(id="att-1", name="Plan", url="https://files/p.pdf")],
    )
    ledger.update_contract_status(contract.id, ContractStatus.ON_HOLD)
    return ledger


class TestRoundTrip:
    def test_every_bucket_survives(self, populated_ledger):
        state = populated_ledger.state

        restored = state_from_snapshot(snapshot_from_state(state))

        for bucket in ENTITY_BUCKETS:
            assert dict(getattr(restored, bucket)) == dict(getattr(state, bucket)), bucket
        assert dict(restored.sequences) == dict(state.sequences)

    def test_balance_index_rebuilt(self, populated_ledger):
        restored = state_from_snapshot(snapshot_from_state(populated_ledger.state))
        assert {k: v for k, v in restored.balances.items() if v} == {
            k: v for k, v in populated_ledger.state.balances.items() if v
        }

    def test_snapshot_is_json_compatible(self, populated_ledger):
        snapshot = snapshot_from_state(populated_ledger.state)
        decoded = json.loads(json.dumps(snapshot))
        assert decoded == snapshot
        assert set(snapshot) == set(SNAPSHOT_BUCKETS)

    def test_decimals_encoded_as_strings(self, populated_ledger, contract):
        snapshot = snapshot_from_state(populated_ledger.state)
        assert snapshot["contracts"][contract.id]["total_contract_value"] == "1000000"

    def test_empty_snapshot(self):
        state = state_from_snapshot(None)
        assert all(len(getattr(state, b)) == 0 for b in ENTITY_BUCKETS)
        assert state.version == 0


class TestLegacyData:
    def test_cash_paid_amount_normalised(self, populated_ledger, captured_logs):
        snapshot = snapshot_from_state(populated_ledger.state)
        cash_id = next(
            eid for eid, e in snapshot["expenses"].items() if e["payment_method"] == "Cash"
        )
        snapshot["expenses"][cash_id]["paid_amount"] = "0"

        restored = state_from_snapshot(snapshot)

        assert restored.expenses[cash_id].paid_amount == Decimal("5000")
        assert any(
            r["message"] == "legacy_cash_expense_normalised" for r in captured_logs()
        )

    def test_missing_sequences_seeded_from_numbers(self, populated_ledger, quote_factory):
        snapshot = snapshot_from_state(populated_ledger.state)
        del snapshot["sequences"]

        populated_ledger.load_state(snapshot)
        contract = populated_ledger.create_contract_from_quote(quote_factory("quote-next"))

        assert contract.contract_number == "MB-CNT-2024-0002"

    def test_missing_buckets_load_empty(self):
        state = state_from_snapshot({"suppliers": {"sup-1": {"id": "sup-1", "name": "A"}}})
        assert list(state.suppliers) == ["sup-1"]
        assert dict(state.expenses) == {}


class TestMalformedRecords:
    def test_missing_field(self):
        with pytest.raises(SnapshotFormatError) as exc_info:
            state_from_snapshot({"suppliers": {"sup-1": {"id": "sup-1"}}})
        assert exc_info.value.bucket == "suppliers"
        assert exc_info.value.record_id == "sup-1"
        assert exc_info.value.code == "SNAPSHOT_FORMAT"

    def test_bad_amount(self, populated_ledger):
        snapshot = snapshot_from_state(populated_ledger.state)
        expense_id = next(iter(snapshot["expenses"]))
        snapshot["expenses"][expense_id]["amount"] = "lots"

        with pytest.raises(SnapshotFormatError):
            state_from_snapshot(snapshot)

    def test_paid_above_amount(self, populated_ledger):
        snapshot = snapshot_from_state(populated_ledger.state)
        credit_id = next(
            eid for eid, e in snapshot["expenses"].items() if e["payment_method"] == "Credit"
        )
        snapshot["expenses"][credit_id]["paid_amount"] = "99999999"

        with pytest.raises(SnapshotFormatError):
            state_from_snapshot(snapshot)
