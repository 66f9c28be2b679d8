"""
Human-readable contract numbers (``ledger_kernel.domain.numbering``).

Format: ``<PREFIX>-<YEAR>-<NNNN>``, e.g. ``MB-CNT-2024-0007``.  The running
number restarts every calendar year and is zero padded to the configured
width (wider values are kept as-is, never truncated).

Pure functions only; counters live in ``LedgerState.sequences`` and are
advanced by ``SequenceService``.
"""

from __future__ import annotations

import re
from collections.abc import Iterable

CONTRACT_SEQUENCE = "contract_number"


def contract_sequence_name(year: int) -> str:
    """Counter key for one year's contract numbers."""
    return f"{CONTRACT_SEQUENCE}:{year}"


def format_contract_number(prefix: str, year: int, value: int, width: int) -> str:
    return f"{prefix}-{year}-{value:0{width}d}"


def parse_contract_number(prefix: str, number: str) -> tuple[int, int] | None:
    """``(year, value)`` for a number in this prefix's format, else None."""
    match = re.fullmatch(rf"{re.escape(prefix)}-(\d{{4}})-(\d+)", number or "")
    if match is None:
        return None
    return int(match.group(1)), int(match.group(2))


def seed_contract_sequences(prefix: str, numbers: Iterable[str]) -> dict[str, int]:
    """
    Rebuild per-year counters from existing contract numbers.

    Used once when a legacy snapshot carries contracts but no counters: each
    year's counter starts at the highest number already issued.
    """
    seeds: dict[str, int] = {}
    for number in numbers:
        parsed = parse_contract_number(prefix, number)
        if parsed is None:
            continue
        year, value = parsed
        name = contract_sequence_name(year)
        seeds[name] = max(seeds.get(name, 0), value)
    return seeds
