"""
ledger_config -- single public entrypoint for ledger configuration.

Responsibility:
    Provides the ONLY way to obtain configuration at runtime through
    ``get_active_config()``.  No other component may read configuration
    files directly.

Architecture position:
    Configuration -- YAML-driven settings.  This package sits above
    ``ledger_kernel``.  The kernel MUST NEVER import from ``ledger_config``;
    ``ledger_config.bridges`` translates a ``LedgerConfig`` into the
    kernel's ``LedgerPolicy``.

Failure modes:
    - ``FileNotFoundError`` -- the configuration file does not exist.
    - ``ValueError`` -- unknown keys or invalid values.
    - ``yaml.YAMLError`` -- malformed YAML.

Audit relevance:
    Every successful ``get_active_config()`` call emits a
    ``LEDGER_CONFIG_TRACE`` log entry with the config id, version and
    checksum, tying ledger behaviour (overpayment policy, tolerance) to the
    exact configuration that governed it.
"""

from __future__ import annotations

import logging
from pathlib import Path

from ledger_config.loader import load_ledger_config
from ledger_config.schema import LedgerConfig

_logger = logging.getLogger("ledger_kernel.config")

# Default configuration sets directory
_DEFAULT_CONFIG_DIR = Path(__file__).parent / "sets"
_DEFAULT_CONFIG_FILE = "default.yaml"


def get_active_config(config_path: Path | str | None = None) -> LedgerConfig:
    """The ONLY public configuration entrypoint.

    Args:
        config_path: Override path to a configuration file.  Defaults to
            ``ledger_config/sets/default.yaml``.

    Returns:
        A validated, frozen LedgerConfig.
    """
    path = Path(config_path) if config_path is not None else (
        _DEFAULT_CONFIG_DIR / _DEFAULT_CONFIG_FILE
    )
    config = load_ledger_config(path)

    _logger.info(
        "LEDGER_CONFIG_TRACE",
        extra={
            "trace_type": "LEDGER_CONFIG_TRACE",
            "config_id": config.config_id,
            "config_version": config.version,
            "checksum": config.checksum,
            "overpayment_policy": config.overpayment_policy,
            "schedule_tolerance": str(config.schedule_tolerance),
            "source": str(path),
        },
    )
    return config


__all__ = ["LedgerConfig", "get_active_config"]
