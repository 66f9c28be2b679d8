"""
Configuration Loader (``ledger_config.loader``).

Responsibility
--------------
Loads a YAML configuration set and parses it into a ``LedgerConfig``.
The single public entry point for runtime config is
``ledger_config.get_active_config()``.

File layout::

    config_id: default
    version: 1
    ledger:
      currency: IQD
      contract_number_prefix: MB-CNT
      ...

Invariants enforced
-------------------
* Unknown keys (top level or under ``ledger``) raise ``ValueError``; a typo
  never silently falls back to a default.
* Missing keys take the ``LedgerConfig`` defaults.
* ``schedule_tolerance`` is parsed through ``str`` into ``Decimal`` so YAML
  floats never leak binary rounding.

Failure modes
-------------
* Missing YAML file  -> ``FileNotFoundError`` propagates.
* Malformed YAML  -> ``yaml.YAMLError`` propagates.
* Bad values  -> ``ValueError`` from ``LedgerConfig.__post_init__``.
"""

from __future__ import annotations

import hashlib
import json
from dataclasses import fields
from decimal import Decimal, InvalidOperation
from pathlib import Path
from typing import Any

import yaml

from ledger_config.schema import LedgerConfig

_TOP_LEVEL_KEYS = frozenset({"config_id", "version", "ledger"})
_LEDGER_KEYS = frozenset(
    f.name for f in fields(LedgerConfig) if f.name not in ("config_id", "version", "checksum")
)


def load_yaml_file(path: Path) -> dict[str, Any]:
    """
    Load a single YAML file and return its contents as a dict.

    Raises:
        FileNotFoundError: if the file does not exist.
        yaml.YAMLError: if the file contains invalid YAML.
    """
    with open(path) as f:
        return yaml.safe_load(f) or {}


def parse_decimal(value: Any, field: str) -> Decimal:
    if isinstance(value, bool):
        raise ValueError(f"{field} must be a number, got {value!r}")
    try:
        return Decimal(str(value))
    except InvalidOperation as e:
        raise ValueError(f"{field} must be a number, got {value!r}") from e


def parse_ledger_config(data: dict[str, Any]) -> LedgerConfig:
    """Parse a LedgerConfig from a loaded YAML dict."""
    if not isinstance(data, dict):
        raise ValueError("Configuration root must be a mapping")
    unknown = set(data) - _TOP_LEVEL_KEYS
    if unknown:
        raise ValueError(f"Unknown configuration key(s): {', '.join(sorted(unknown))}")

    ledger = data.get("ledger") or {}
    if not isinstance(ledger, dict):
        raise ValueError("'ledger' must be a mapping")
    unknown = set(ledger) - _LEDGER_KEYS
    if unknown:
        raise ValueError(f"Unknown ledger setting(s): {', '.join(sorted(unknown))}")

    values = dict(ledger)
    if "schedule_tolerance" in values:
        values["schedule_tolerance"] = parse_decimal(
            values["schedule_tolerance"], "schedule_tolerance"
        )
    if "currency" in values:
        values["currency"] = str(values["currency"]).upper()

    return LedgerConfig(
        config_id=str(data.get("config_id", "default")),
        version=int(data.get("version", 1)),
        checksum=compute_checksum(data),
        **values,
    )


def load_ledger_config(path: Path) -> LedgerConfig:
    return parse_ledger_config(load_yaml_file(path))


def compute_checksum(data: dict[str, Any]) -> str:
    """
    Compute SHA-256 checksum of canonical JSON serialization.

    Identical ``data`` always produces identical checksums.
    """
    canonical = json.dumps(data, sort_keys=True, default=str)
    return hashlib.sha256(canonical.encode()).hexdigest()
