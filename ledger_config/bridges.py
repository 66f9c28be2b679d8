"""
Config -> Kernel Bridges.

Functions that convert a ``LedgerConfig`` into kernel-compatible inputs.
These live in ledger_config (the producer) because the kernel must NEVER
import ledger_config.

Usage:
    from ledger_config import get_active_config
    from ledger_config.bridges import build_ledger_policy

    policy = build_ledger_policy(get_active_config())
    ledger = ContractLedger(pricer=pricer, policy=policy)
"""

from __future__ import annotations

from ledger_config.schema import LedgerConfig
from ledger_kernel.domain.policy import LedgerPolicy, OverpaymentPolicy


def build_ledger_policy(config: LedgerConfig) -> LedgerPolicy:
    """Translate a validated config set into the kernel's LedgerPolicy."""
    return LedgerPolicy(
        currency=config.currency,
        contract_number_prefix=config.contract_number_prefix,
        sequence_width=config.sequence_width,
        schedule_tolerance=config.schedule_tolerance,
        overpayment_policy=OverpaymentPolicy(config.overpayment_policy),
        default_stage_name=config.default_stage_name,
        initial_payment_note=config.initial_payment_note,
    )
