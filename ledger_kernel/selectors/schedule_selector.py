"""
Module: ledger_kernel.selectors.schedule_selector
Responsibility: Read-only payment schedule projections: expected, received
    and remaining amounts per stage, plus a per-contract summary.
Architecture position: Kernel > Selectors.  The arithmetic lives in
    ``domain/schedule.py``; this module only binds it to a state version.

Failure modes:
    - ContractNotFoundError for unknown contract ids.
"""

from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal

from ledger_kernel.domain.schedule import (
    StageProjection,
    project_schedule,
    remaining_percentage,
    total_percentage,
)
from ledger_kernel.domain.values import ZERO
from ledger_kernel.exceptions import ContractNotFoundError, StageNotFoundError
from ledger_kernel.selectors.base import BaseSelector


@dataclass(frozen=True)
class ScheduleSummary:
    contract_id: str
    stage_count: int
    total_percentage: Decimal
    unallocated_percentage: Decimal
    expected_total: Decimal
    scheduled_received: Decimal
    remaining_total: Decimal
    fully_paid_stages: int


class ScheduleSelector(BaseSelector):
    """Stage projections over one committed state."""

    def stage_projections(self, contract_id: str) -> tuple[StageProjection, ...]:
        contract = self.state.contracts.get(contract_id)
        if contract is None:
            raise ContractNotFoundError(contract_id)
        return project_schedule(contract, self.state.received_payments.values())

    def stage_projection(self, contract_id: str, stage_id: str) -> StageProjection:
        for projection in self.stage_projections(contract_id):
            if projection.stage_id == stage_id:
                return projection
        raise StageNotFoundError(stage_id, contract_id)

    def schedule_summary(self, contract_id: str) -> ScheduleSummary:
        projections = self.stage_projections(contract_id)
        schedule = self.state.contracts[contract_id].payment_schedule
        return ScheduleSummary(
            contract_id=contract_id,
            stage_count=len(projections),
            total_percentage=total_percentage(schedule),
            unallocated_percentage=remaining_percentage(schedule),
            expected_total=sum((p.expected for p in projections), ZERO),
            scheduled_received=sum((p.received for p in projections), ZERO),
            remaining_total=sum((p.remaining for p in projections), ZERO),
            fully_paid_stages=sum(1 for p in projections if p.is_fully_paid),
        )
