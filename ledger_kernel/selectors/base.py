"""
Module: ledger_kernel.selectors.base
Responsibility: Abstract base class for all read-only query selectors.  Selectors
    form the "Q" side of the CQRS-lite pattern, providing structured read access
    to ledger data without mutation capability.
Architecture position: Kernel > Selectors.  May import from store.py and
    domain/.  MUST NOT import from services/ or outer layers.

Invariants enforced:
    - Read-only access: Selectors accept a committed ``LedgerState`` from the
      caller.  The state is immutable, so there is nothing to write to.
    - DTO return convention: Selectors return frozen dataclasses or computed
      results.
    - Snapshot isolation: one selector instance reads exactly one state
      version; the caller decides which version by passing it in.

Failure modes:
    - NotFoundError subclasses when a query names an id absent from the state.
"""

from abc import ABC

from ledger_kernel.store import LedgerState


class BaseSelector(ABC):
    """
    Abstract base class for all selectors.

    Contract:
        Selectors accept a ``LedgerState`` from the caller, perform read-only
        queries, and return DTOs or computed results.

    Non-goals:
        - BaseSelector does NOT define any query methods; subclasses implement
          the ledger and schedule queries.
    """

    def __init__(self, state: LedgerState):
        self.state = state
