"""
Ledger policy (``ledger_kernel.domain.policy``).

Responsibility
--------------
The kernel-side, already-validated view of configuration. The kernel never
reads configuration files; ``ledger_config.bridges.build_ledger_policy``
translates the YAML-loaded ``LedgerConfig`` into a ``LedgerPolicy`` and
the host passes it to ``ContractLedger``.

Invariants enforced
-------------------
* ``schedule_tolerance`` is a non-negative Decimal below 100.
* ``sequence_width`` is at least 1.
"""

from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal
from enum import Enum


class OverpaymentPolicy(str, Enum):
    """How a debt payment larger than the outstanding amount is resolved.

    REJECT -- raise ``OverpaymentError``; nothing is written.
    CAP    -- apply only the outstanding amount; the history entry records
              the applied amount and the excess is discarded (logged).
    """

    REJECT = "reject"
    CAP = "cap"


@dataclass(frozen=True)
class LedgerPolicy:
    currency: str = "IQD"
    contract_number_prefix: str = "MB-CNT"
    sequence_width: int = 4
    schedule_tolerance: Decimal = Decimal("0.1")
    overpayment_policy: OverpaymentPolicy = OverpaymentPolicy.REJECT
    default_stage_name: str = "Full payment"
    initial_payment_note: str = "Initial payment at registration"

    def __post_init__(self):
        if self.schedule_tolerance < 0 or self.schedule_tolerance >= Decimal("100"):
            raise ValueError("schedule_tolerance must be within [0, 100)")
        if self.sequence_width < 1:
            raise ValueError("sequence_width must be at least 1")
        if not self.contract_number_prefix.strip():
            raise ValueError("contract_number_prefix cannot be empty")


DEFAULT_POLICY = LedgerPolicy()
