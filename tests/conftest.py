"""
Pytest fixtures for the ledger kernel test suite.

Provides:
- A fresh in-memory ContractLedger per test, wired to a deterministic clock,
  sequential ids and a stub quote pricer
- Builders for quotes, beneficiaries and expenses
- Structured logging configuration and log capture
- An in-memory SQLite engine for repository tests
"""

import json
import logging
from datetime import date, datetime, timezone
from decimal import Decimal
from io import StringIO
from typing import Any, Generator

import pytest

from ledger_kernel.db.engine import (
    create_tables,
    drop_tables,
    get_session_factory,
    init_engine_from_url,
    reset_engine,
)
from ledger_kernel.domain.clock import DeterministicClock
from ledger_kernel.domain.identity import SequentialIdGenerator
from ledger_kernel.domain.models import (
    BeneficiaryRef,
    ExpenseCategory,
    PaymentMethod,
    PaymentStage,
)
from ledger_kernel.domain.policy import LedgerPolicy, OverpaymentPolicy
from ledger_kernel.domain.pricing import Quote, QuoteTotals
from ledger_kernel.ledger import ContractLedger
from ledger_kernel.logging_config import (
    LogContext,
    StructuredFormatter,
    configure_logging,
    reset_logging,
)
from ledger_kernel.persistence.repository import InMemoryRepository

TEST_DATE = date(2024, 3, 1)


# =============================================================================
# Logging fixtures
# =============================================================================


@pytest.fixture(autouse=True, scope="session")
def _configure_test_logging():
    """Configure structured logging for the test suite."""
    reset_logging()
    configure_logging(level=logging.DEBUG)
    yield
    reset_logging()


@pytest.fixture(autouse=True)
def _clear_log_context():
    """Clear LogContext between tests to prevent cross-test contamination."""
    LogContext.clear()
    yield
    LogContext.clear()


@pytest.fixture
def captured_logs():
    """
    Capture ledger_kernel logs as parsed JSON dicts.

    Usage::

        def test_something(captured_logs, ledger):
            ledger.pay_partial_debt(...)
            logs = captured_logs()
            assert any(r["message"] == "debt_payment_recorded" for r in logs)
    """
    stream = StringIO()
    handler = logging.StreamHandler(stream)
    handler.setFormatter(StructuredFormatter())
    root = logging.getLogger("ledger_kernel")
    previous_level = root.level
    root.setLevel(logging.DEBUG)
    root.addHandler(handler)

    def _get_records() -> list[dict]:
        lines = stream.getvalue().strip().split("\n")
        return [json.loads(line) for line in lines if line]

    yield _get_records

    root.removeHandler(handler)
    root.setLevel(previous_level)


# =============================================================================
# Collaborators
# =============================================================================


class StubPricer:
    """
    Upstream pricing stand-in.

    Prices a quote at ``selections["total"]`` (default 1,000,000) and records
    every call so tests can assert the pricer ran exactly once.
    """

    def __init__(self, default_total: Decimal = Decimal("1000000")):
        self.default_total = default_total
        self.calls: list[tuple[Any, ...]] = []

    def compute_quote_totals(self, categories, selections, project_details, quote_type):
        self.calls.append((categories, selections, project_details, quote_type))
        total = Decimal(str(selections.get("total", self.default_total)))
        return QuoteTotals(grand_total=total, base_total=total)


@pytest.fixture
def deterministic_clock() -> DeterministicClock:
    return DeterministicClock(datetime(2024, 1, 15, 9, 0, 0, tzinfo=timezone.utc))


@pytest.fixture
def id_generator() -> SequentialIdGenerator:
    return SequentialIdGenerator()


@pytest.fixture
def pricer() -> StubPricer:
    return StubPricer()


@pytest.fixture
def repository() -> InMemoryRepository:
    return InMemoryRepository()


@pytest.fixture
def policy() -> LedgerPolicy:
    return LedgerPolicy()


@pytest.fixture
def ledger(pricer, repository, deterministic_clock, id_generator, policy) -> ContractLedger:
    return ContractLedger(
        pricer=pricer,
        repository=repository,
        clock=deterministic_clock,
        id_generator=id_generator,
        policy=policy,
    )


@pytest.fixture
def capping_ledger(pricer, deterministic_clock, id_generator) -> ContractLedger:
    """A ledger configured with the CAP overpayment policy."""
    return ContractLedger(
        pricer=pricer,
        clock=deterministic_clock,
        id_generator=id_generator,
        policy=LedgerPolicy(overpayment_policy=OverpaymentPolicy.CAP),
    )


# =============================================================================
# Builders
# =============================================================================


def make_quote(
    quote_id: str = "quote-1",
    total: str | int = 1000000,
    stages: tuple[tuple[str, str, str], ...] | None = None,
    **details: Any,
) -> Quote:
    """Build a quote priced at ``total`` with optional (id, name, pct) stages."""
    schedule = tuple(
        PaymentStage(id=sid, name=name, percentage=Decimal(pct))
        for sid, name, pct in (stages or ())
    )
    return Quote(
        id=quote_id,
        offer_number=f"OFF-{quote_id}",
        quote_type="villa",
        selections={"total": str(total)},
        project_details=dict(details) or {"client": "Test Client"},
        payment_schedule=schedule,
    )


@pytest.fixture
def quote_factory():
    return make_quote


@pytest.fixture
def contract(ledger):
    """A contract worth 1,000,000 with a 50/30/20 schedule."""
    return ledger.create_contract_from_quote(
        make_quote(
            stages=(
                ("stg-a", "Foundation", "50"),
                ("stg-b", "Structure", "30"),
                ("stg-c", "Finishing", "20"),
            )
        )
    )


@pytest.fixture
def supplier(ledger):
    return ledger.beneficiaries.add_supplier("Baghdad Cement", phone="0770", specialty="Cement")


@pytest.fixture
def worker(ledger):
    return ledger.beneficiaries.add_worker("Ali", role="Mason", daily_wage=Decimal("25000"))


@pytest.fixture
def subcontractor(ledger):
    return ledger.beneficiaries.add_subcontractor("Tiles Co", specialty="Tiling")


@pytest.fixture
def add_expense(ledger, contract, supplier):
    """
    Register an expense on ``contract`` owed to ``supplier`` by default.

    Usage::

        expense = add_expense("100000", PaymentMethod.CREDIT)
    """

    def _add(
        amount: str | int = "100000",
        method: PaymentMethod = PaymentMethod.CREDIT,
        paid_amount: str | int | None = None,
        beneficiary: BeneficiaryRef | None = None,
        contract_id: str | None = None,
        category: ExpenseCategory = ExpenseCategory.MATERIAL,
    ):
        return ledger.expenses.add_expense(
            contract_id=contract_id or contract.id,
            expense_date=TEST_DATE,
            description="Cement bags",
            amount=amount,
            category=category,
            payment_method=method,
            paid_amount=paid_amount,
            beneficiary=beneficiary or BeneficiaryRef(supplier.kind, supplier.id),
        )

    return _add


# =============================================================================
# Database fixtures
# =============================================================================


@pytest.fixture
def sqlite_session_factory() -> Generator:
    """In-memory SQLite with the ledger tables created."""
    init_engine_from_url("sqlite://")
    create_tables()
    yield get_session_factory()
    drop_tables()
    reset_engine()
