"""
Configuration Schema (``ledger_config.schema``).

Responsibility
--------------
Frozen dataclass describing one ledger configuration set, as parsed from
YAML.  Validation of individual values happens in ``__post_init__`` so an
invalid file can never produce a ``LedgerConfig``.

Architecture position
---------------------
**Config layer** -- pure data.  No dependency on the kernel; translation to
the kernel's ``LedgerPolicy`` lives in ``ledger_config.bridges``.
"""

from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal

OVERPAYMENT_POLICIES: frozenset[str] = frozenset({"reject", "cap"})


@dataclass(frozen=True)
class LedgerConfig:
    """A validated ledger configuration set."""

    config_id: str = "default"
    version: int = 1
    currency: str = "IQD"
    contract_number_prefix: str = "MB-CNT"
    sequence_width: int = 4
    schedule_tolerance: Decimal = Decimal("0.1")
    overpayment_policy: str = "reject"
    default_stage_name: str = "Full payment"
    initial_payment_note: str = "Initial payment at registration"
    checksum: str = ""

    def __post_init__(self):
        if not self.currency or len(self.currency) != 3 or not self.currency.isalpha():
            raise ValueError(f"currency must be a 3-letter code, got {self.currency!r}")
        if not self.contract_number_prefix or not self.contract_number_prefix.strip():
            raise ValueError("contract_number_prefix cannot be empty")
        if not isinstance(self.sequence_width, int) or self.sequence_width < 1:
            raise ValueError(f"sequence_width must be a positive integer, got {self.sequence_width!r}")
        if self.schedule_tolerance < 0 or self.schedule_tolerance >= 100:
            raise ValueError(f"schedule_tolerance must be within [0, 100), got {self.schedule_tolerance}")
        if self.overpayment_policy not in OVERPAYMENT_POLICIES:
            raise ValueError(
                f"overpayment_policy must be one of {sorted(OVERPAYMENT_POLICIES)}, "
                f"got {self.overpayment_policy!r}"
            )
        if not self.default_stage_name or not self.default_stage_name.strip():
            raise ValueError("default_stage_name cannot be empty")
