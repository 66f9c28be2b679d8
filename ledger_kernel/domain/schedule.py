"""
Payment schedule arithmetic (``ledger_kernel.domain.schedule``).

Responsibility:
    Pure functions mapping a contract's percentage milestones to expected,
    received and remaining amounts, and validating the schedule shape.

Architecture position:
    Kernel > Domain -- pure functional core, zero I/O. Used by
    ``ScheduleSelector`` (projections) and ``ContractService`` /
    ``PaymentService`` (validation before commit).

Invariants enforced:
    SCHEDULE_SHAPE -- ``validate_schedule`` rejects empty schedules,
    duplicate stage ids, percentages outside [0, 100] and sums that miss 100
    by more than the tolerance.

Failure modes:
    - ValidationError for structural problems (empty, duplicate id, range).
    - ScheduleImbalanceError when the sum misses 100, or when
      ``balance_schedule`` would push the last stage below zero.
"""

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass, replace
from decimal import Decimal

from ledger_kernel.domain.models import Contract, PaymentStage, ReceivedPayment
from ledger_kernel.domain.values import HUNDRED, ZERO, percent_of
from ledger_kernel.exceptions import ScheduleImbalanceError, ValidationError

_PERCENT_PLACES = Decimal("0.01")


@dataclass(frozen=True)
class StageProjection:
    """Expected / received / remaining amounts for one stage."""
    stage_id: str
    name: str
    percentage: Decimal
    expected: Decimal
    received: Decimal
    remaining: Decimal
    is_fully_paid: bool


def expected_amount(total_contract_value: Decimal, stage: PaymentStage) -> Decimal:
    return percent_of(total_contract_value, stage.percentage)


def received_by_stage(payments: Iterable[ReceivedPayment]) -> dict[str, Decimal]:
    """Sum scheduled payments per stage id. Extra payments are skipped."""
    totals: dict[str, Decimal] = {}
    for payment in payments:
        if payment.schedule_stage_id is None:
            continue
        totals[payment.schedule_stage_id] = (
            totals.get(payment.schedule_stage_id, ZERO) + payment.amount
        )
    return totals


def project_stage(
    total_contract_value: Decimal,
    stage: PaymentStage,
    received: Decimal,
) -> StageProjection:
    expected = expected_amount(total_contract_value, stage)
    remaining = max(ZERO, expected - received)
    return StageProjection(
        stage_id=stage.id,
        name=stage.name,
        percentage=stage.percentage,
        expected=expected,
        received=received,
        remaining=remaining,
        is_fully_paid=remaining == ZERO and expected > ZERO,
    )


def project_schedule(
    contract: Contract,
    payments: Iterable[ReceivedPayment],
) -> tuple[StageProjection, ...]:
    """Project every stage of ``contract`` against its received payments."""
    received = received_by_stage(p for p in payments if p.contract_id == contract.id)
    return tuple(
        project_stage(contract.total_contract_value, stage, received.get(stage.id, ZERO))
        for stage in contract.payment_schedule
    )


def total_percentage(stages: Iterable[PaymentStage]) -> Decimal:
    return sum((s.percentage for s in stages), ZERO)


def remaining_percentage(stages: Iterable[PaymentStage]) -> Decimal:
    """Share not yet allocated to any stage; the default for a new stage."""
    return max(ZERO, HUNDRED - total_percentage(stages))


def validate_schedule(stages: tuple[PaymentStage, ...], tolerance: Decimal) -> None:
    """
    Validate a schedule before it is committed.

    Raises:
        ValidationError: empty schedule, duplicate ids, blank names or a
            percentage outside [0, 100].
        ScheduleImbalanceError: sum differs from 100 by ``tolerance`` or
            more.
    """
    if not stages:
        raise ValidationError(
            "Payment schedule must contain at least one stage",
            field="payment_schedule",
        )
    seen: set[str] = set()
    for stage in stages:
        if stage.id in seen:
            raise ValidationError(
                f"Duplicate payment stage id: {stage.id}", field="payment_schedule"
            )
        seen.add(stage.id)
        if not stage.name or not stage.name.strip():
            raise ValidationError(
                f"Payment stage {stage.id} must have a name", field="payment_schedule"
            )
        if stage.percentage < ZERO or stage.percentage > HUNDRED:
            raise ValidationError(
                f"Payment stage {stage.id} percentage {stage.percentage} "
                f"must be within [0, 100]",
                field="payment_schedule",
            )

    total = total_percentage(stages)
    diff = abs(total - HUNDRED)
    if diff and diff >= tolerance:
        raise ScheduleImbalanceError(total)


def balance_schedule(stages: tuple[PaymentStage, ...]) -> tuple[PaymentStage, ...]:
    """
    Absorb the difference from 100 into the last stage.

    Raises:
        ValidationError: empty schedule.
        ScheduleImbalanceError: the other stages already exceed 100, so the
            last stage would become negative.
    """
    if not stages:
        raise ValidationError(
            "Payment schedule must contain at least one stage",
            field="payment_schedule",
        )
    total = total_percentage(stages)
    last = stages[-1]
    new_percentage = (last.percentage + (HUNDRED - total)).quantize(_PERCENT_PLACES)
    if new_percentage < ZERO:
        raise ScheduleImbalanceError(total, reason="cannot auto-balance, stages exceed 100%")
    return stages[:-1] + (replace(last, percentage=new_percentage),)
