"""
Upstream quote pricing boundary (``ledger_kernel.domain.pricing``).

Responsibility
--------------
Declares the shape of the approved quote handed to the ledger and the
protocol of the pricing collaborator that turns it into totals. The pricing
formula itself is external; the ledger calls it exactly once per contract
creation to freeze the contract value and never again.

Architecture position
---------------------
**Kernel > Domain** -- pure types. ``ContractService`` receives a
``QuotePricer`` by constructor injection.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from decimal import Decimal
from typing import Any, Protocol

from ledger_kernel.domain.models import PaymentStage


@dataclass(frozen=True)
class Quote:
    """An approved upstream quote, as far as the ledger needs to see it."""
    id: str
    offer_number: str
    quote_type: str
    categories: tuple[Any, ...] = ()
    selections: dict[str, Any] = field(default_factory=dict)
    project_details: dict[str, Any] = field(default_factory=dict)
    payment_schedule: tuple[PaymentStage, ...] = ()


@dataclass(frozen=True)
class QuoteTotals:
    """Pricing result. Only ``grand_total`` is consumed by the ledger."""
    grand_total: Decimal
    base_total: Decimal
    extras: dict[str, Any] = field(default_factory=dict)


class QuotePricer(Protocol):
    """Opaque upstream pricing function."""

    def compute_quote_totals(
        self,
        categories: tuple[Any, ...],
        selections: dict[str, Any],
        project_details: dict[str, Any],
        quote_type: str,
    ) -> QuoteTotals:
        ...
