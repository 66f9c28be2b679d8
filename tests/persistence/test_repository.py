"""
Tests for ledger repositories and the ContractLedger load/save lifecycle.

The SQLAlchemy tests run against in-memory SQLite (see the
``sqlite_session_factory`` fixture in conftest).
"""

from datetime import date
from decimal import Decimal

import pytest
from sqlalchemy import func, select

from ledger_kernel.db.engine import session_scope
from ledger_kernel.db.models import LedgerRecord
from ledger_kernel.domain.models import BeneficiaryKind
from ledger_kernel.ledger import ContractLedger
from ledger_kernel.persistence.repository import InMemoryRepository, SqlAlchemyRepository

PAY_DATE = date(2024, 3, 12)


def _fresh_ledger(pricer, repository, deterministic_clock, id_generator):
    return ContractLedger(
        pricer=pricer,
        repository=repository,
        clock=deterministic_clock,
        id_generator=id_generator,
    )


class TestInMemoryRepository:
    def test_empty_load_is_none(self):
        assert InMemoryRepository().load() is None

    def test_save_is_isolated_from_caller(self):
        repo = InMemoryRepository()
        snapshot = {"suppliers": {"sup-1": {"id": "sup-1", "name": "A"}}}
        repo.save(snapshot)
        snapshot["suppliers"]["sup-1"]["name"] = "changed"

        assert repo.load()["suppliers"]["sup-1"]["name"] == "A"
        assert repo.save_count == 1


class TestLedgerLifecycle:
    def test_load_without_saved_data(self, ledger):
        assert ledger.load() is False
        assert ledger.state.version == 0

    def test_save_then_load_in_new_ledger(
        self, ledger, repository, add_expense, supplier, pricer, deterministic_clock, id_generator
    ):
        expense = add_expense("100000")
        ledger.pay_partial_debt(expense.id, "40000", PAY_DATE)
        ledger.save()

        other = _fresh_ledger(pricer, repository, deterministic_clock, id_generator)
        assert other.load() is True

        assert other.state.expenses[expense.id] == ledger.state.expenses[expense.id]
        assert other.balance_of(supplier.id, BeneficiaryKind.SUPPLIER) == Decimal("60000")

    def test_no_repository(self, pricer):
        ledger = ContractLedger(pricer=pricer)
        with pytest.raises(RuntimeError, match="repository"):
            ledger.save()
        with pytest.raises(RuntimeError):
            ledger.load()

    def test_snapshot_helpers(self, ledger, contract):
        snapshot = ledger.snapshot()
        ledger.load_state({})
        assert dict(ledger.state.contracts) == {}

        ledger.load_state(snapshot)
        assert ledger.state.contracts[contract.id] == contract


class TestSqlAlchemyRepository:
    def test_empty_table_loads_none(self, sqlite_session_factory):
        assert SqlAlchemyRepository(sqlite_session_factory).load() is None

    def test_round_trip_through_ledger(
        self,
        sqlite_session_factory,
        pricer,
        deterministic_clock,
        id_generator,
        quote_factory,
    ):
        repo = SqlAlchemyRepository(sqlite_session_factory)
        ledger = _fresh_ledger(pricer, repo, deterministic_clock, id_generator)
        contract = ledger.create_contract_from_quote(quote_factory())
        ledger.payments.add_payment(contract.id, "250000", PAY_DATE)
        ledger.save()

        restored = _fresh_ledger(pricer, repo, deterministic_clock, id_generator)
        assert restored.load() is True

        assert restored.state.contracts[contract.id] == contract
        assert restored.contract_financials(contract.id).total_received == Decimal("250000")
        assert dict(restored.state.sequences) == {"contract_number:2024": 1}

    def test_save_diffs_rows(self, sqlite_session_factory):
        repo = SqlAlchemyRepository(sqlite_session_factory)
        repo.save({
            "suppliers": {
                "sup-1": {"id": "sup-1", "name": "A"},
                "sup-2": {"id": "sup-2", "name": "B"},
            },
            "sequences": {"contract_number:2024": 3},
        })
        repo.save({
            "suppliers": {"sup-1": {"id": "sup-1", "name": "A2"}},
            "sequences": {"contract_number:2024": 4},
        })

        loaded = repo.load()

        assert loaded["suppliers"] == {"sup-1": {"id": "sup-1", "name": "A2"}}
        assert loaded["sequences"] == {"contract_number:2024": 4}
        with session_scope(sqlite_session_factory) as session:
            count = session.execute(select(func.count()).select_from(LedgerRecord)).scalar_one()
        assert count == 2

    def test_failed_save_keeps_previous_snapshot(self, sqlite_session_factory):
        repo = SqlAlchemyRepository(sqlite_session_factory)
        repo.save({"suppliers": {"sup-1": {"id": "sup-1", "name": "A"}}})

        with pytest.raises(ValueError):
            repo.save({
                "suppliers": {"sup-2": {"id": "sup-2", "name": "B"}},
                "sequences": {"contract_number:2024": "not-a-number"},
            })

        assert repo.load()["suppliers"] == {"sup-1": {"id": "sup-1", "name": "A"}}
