"""
Identity generation for ledger entities.

Every entity id is a type prefix plus a globally unique suffix
(``exp-<uuid4>``). Deriving ids from creation timestamps collides under
rapid creation, so the suffix comes from an injected generator instead:

* ``UuidIdGenerator``: uuid4 suffix, the production default.
* ``SequentialIdGenerator``: monotonic counter suffix, deterministic for
  tests and replays. Thread-safe.
"""

import itertools
import threading
from abc import ABC, abstractmethod
from uuid import uuid4


class EntityPrefix:
    """Well-known id prefixes, one per entity collection."""

    CONTRACT = "cnt"
    STAGE = "stg"
    EXPENSE = "exp"
    HISTORY = "hist"
    RECEIVED_PAYMENT = "rcv"
    SUPPLIER = "sup"
    WORKER = "wrk"
    SUBCONTRACTOR = "sub"
    AGREEMENT = "agr"
    ATTACHMENT = "att"


class IdGenerator(ABC):
    """Produces unique, prefixed entity ids."""

    @abstractmethod
    def next_id(self, prefix: str) -> str:
        ...


class UuidIdGenerator(IdGenerator):
    def next_id(self, prefix: str) -> str:
        return f"{prefix}-{uuid4()}"


class SequentialIdGenerator(IdGenerator):
    """
    Monotonic counter ids (``exp-000001``, ``exp-000002``...).

    One counter is shared by all prefixes so ids are also globally ordered
    by creation.
    """

    def __init__(self, start: int = 1, width: int = 6):
        self._counter = itertools.count(start)
        self._width = width
        self._lock = threading.Lock()

    def next_id(self, prefix: str) -> str:
        with self._lock:
            value = next(self._counter)
        return f"{prefix}-{value:0{self._width}d}"
