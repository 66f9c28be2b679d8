"""
ContractService -- contract lifecycle, payment schedule edits and
subcontractor agreements.

Responsibility:
    - One-time creation of a contract from an approved upstream quote,
      freezing its value from the injected ``QuotePricer``.
    - Status changes through ``CONTRACT_WORKFLOW``.
    - Detail edits (merge semantics) and payment schedule edits.
    - Subcontractor agreements, upserted per (contract, subcontractor).

Architecture position:
    Kernel > Services -- imperative shell.  Schedule arithmetic is delegated
    to ``domain/schedule.py``; numbering to ``SequenceService``.

Invariants enforced:
    SINGLE_CONVERSION -- at most one contract per quote id.  A repeated
        conversion raises DuplicateConversionError and writes nothing.
    SCHEDULE_SHAPE -- every committed schedule passes ``validate_schedule``.
    REFERENTIAL_INTEGRITY -- a stage referenced by received payments cannot
        be removed.
    NUMBER_MONOTONICITY -- numbers come from the per-year counter.

Failure modes:
    - DuplicateConversionError, InvalidTransitionError,
      ScheduleImbalanceError, ReferentialIntegrityError, ValidationError.
    - ContractNotFoundError / StageNotFoundError / BeneficiaryNotFoundError.
"""

from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass, replace
from decimal import Decimal
from typing import Any

from ledger_kernel.domain.clock import Clock
from ledger_kernel.domain.identity import EntityPrefix, IdGenerator
from ledger_kernel.domain.models import (
    Attachment,
    BeneficiaryKind,
    BeneficiaryRef,
    Contract,
    ContractStatus,
    PaymentStage,
    SubcontractorAgreement,
)
from ledger_kernel.domain.numbering import contract_sequence_name, format_contract_number
from ledger_kernel.domain.policy import DEFAULT_POLICY, LedgerPolicy
from ledger_kernel.domain.pricing import Quote, QuotePricer
from ledger_kernel.domain.schedule import (
    balance_schedule,
    remaining_percentage,
    validate_schedule,
)
from ledger_kernel.domain.values import HUNDRED, ZERO
from ledger_kernel.exceptions import (
    DuplicateConversionError,
    InvalidTransitionError,
    ReferentialIntegrityError,
    StageNotFoundError,
    ValidationError,
)
from ledger_kernel.logging_config import LogContext, get_logger
from ledger_kernel.services.base import BaseService
from ledger_kernel.services.sequence_service import SequenceService
from ledger_kernel.store import LedgerStore, LedgerTransaction
from ledger_kernel.workflows import CONTRACT_WORKFLOW

logger = get_logger("services.contract")

DETAIL_FIELDS: frozenset[str] = frozenset({
    "project_details",
    "duration_days",
    "total_contract_value",
    "payment_schedule",
    "attachments",
})


@dataclass(frozen=True)
class AgreementSummary:
    """Agreed versus billed versus paid for one subcontractor on one contract."""

    contract_id: str
    subcontractor_id: str
    agreed: Decimal
    billed: Decimal
    paid: Decimal

    @property
    def outstanding(self) -> Decimal:
        """Billed but not yet paid."""
        return self.billed - self.paid

    @property
    def unbilled(self) -> Decimal:
        """Agreed scope not yet billed; negative when billing exceeds the agreement."""
        return self.agreed - self.billed


class ContractService(BaseService):
    """
    Contract lifecycle service.

    Contract:
        The pricing collaborator is called exactly once per successful
        creation and never again for that contract.
    """

    def __init__(
        self,
        store: LedgerStore,
        pricer: QuotePricer,
        clock: Clock | None = None,
        id_generator: IdGenerator | None = None,
        policy: LedgerPolicy = DEFAULT_POLICY,
    ):
        super().__init__(store, clock, id_generator, policy)
        self.pricer = pricer

    # -------------------------------------------------------------------------
    # Creation
    # -------------------------------------------------------------------------

    def create_contract_from_quote(self, quote: Quote) -> Contract:
        """
        Convert an approved quote into a contract.

        Preconditions:
            - No contract references ``quote.id`` yet.

        Postconditions:
            - The contract value is the pricer's ``grand_total``.
            - The schedule is the quote's, or a single default 100% stage.
            - The contract number is the next value of this year's counter.

        Raises:
            DuplicateConversionError: the quote was already converted.
        """
        with self.store.transaction("create_contract_from_quote") as txn:
            existing = next(
                (c for c in txn.contracts.values() if c.quote_id == quote.id), None
            )
            if existing is not None:
                logger.warning(
                    "quote_already_converted",
                    extra={"quote_id": quote.id, "contract_id": existing.id},
                )
                raise DuplicateConversionError(quote.id, existing.id)

            totals = self.pricer.compute_quote_totals(
                quote.categories,
                quote.selections,
                quote.project_details,
                quote.quote_type,
            )
            value = self._amount(totals.grand_total, field="total_contract_value")
            if value < ZERO:
                raise ValidationError(
                    f"Quote {quote.id} priced at a negative total {value}",
                    field="total_contract_value",
                )

            schedule = self._normalise_stages(quote.payment_schedule) or (
                PaymentStage(
                    id=self.ids.next_id(EntityPrefix.STAGE),
                    name=self.policy.default_stage_name,
                    percentage=HUNDRED,
                ),
            )
            validate_schedule(schedule, self.policy.schedule_tolerance)

            created_at = self.clock.now()
            sequence = SequenceService(txn).next_value(
                contract_sequence_name(created_at.year)
            )
            contract = Contract(
                id=self.ids.next_id(EntityPrefix.CONTRACT),
                contract_number=format_contract_number(
                    self.policy.contract_number_prefix,
                    created_at.year,
                    sequence,
                    self.policy.sequence_width,
                ),
                quote_id=quote.id,
                offer_number=quote.offer_number,
                total_contract_value=value,
                payment_schedule=schedule,
                created_at=created_at,
                project_details=dict(quote.project_details),
            )
            txn.contracts[contract.id] = contract
            with LogContext.bind(contract_id=contract.id):
                logger.info(
                    "contract_created",
                    extra={
                        "contract_number": contract.contract_number,
                        "quote_id": quote.id,
                        "total_contract_value": str(value),
                        "stage_count": len(schedule),
                    },
                )
        return contract

    # -------------------------------------------------------------------------
    # Status and details
    # -------------------------------------------------------------------------

    def update_contract_status(
        self,
        contract_id: str,
        new_status: ContractStatus,
    ) -> Contract:
        """
        Move a contract through its lifecycle.

        A request for the current status is a no-op and returns the contract
        unchanged.

        Raises:
            InvalidTransitionError: the workflow declares no such move.
        """
        new_status = self._choice(ContractStatus, new_status, "status")
        with self.store.transaction("update_contract_status") as txn, LogContext.bind(
            contract_id=contract_id
        ):
            contract = self._require_contract(txn, contract_id)
            if contract.status == new_status:
                return contract

            transition = CONTRACT_WORKFLOW.find_transition(
                contract.status.value, new_status.value
            )
            if transition is None:
                logger.warning(
                    "contract_transition_rejected",
                    extra={
                        "from_status": contract.status.value,
                        "to_status": new_status.value,
                    },
                )
                raise InvalidTransitionError(
                    contract_id, contract.status.value, new_status.value
                )

            updated = replace(contract, status=new_status)
            txn.contracts[contract_id] = updated
            logger.info(
                "contract_status_changed",
                extra={
                    "action": transition.action,
                    "from_status": contract.status.value,
                    "to_status": new_status.value,
                },
            )
        return updated

    def update_contract_details(self, contract_id: str, **updates: Any) -> Contract:
        """
        Merge ``updates`` into a contract.

        Allowed fields: project_details, duration_days, total_contract_value
        (must be > 0), payment_schedule (validated) and attachments.

        Raises:
            ValidationError: unknown field or invalid value.
        """
        unknown = set(updates) - DETAIL_FIELDS
        if unknown:
            raise ValidationError(
                f"Cannot update contract field(s): {', '.join(sorted(unknown))}",
                field=sorted(unknown)[0],
            )

        changes: dict[str, Any] = {}
        if "total_contract_value" in updates:
            changes["total_contract_value"] = self._positive_amount(
                updates["total_contract_value"], field="total_contract_value"
            )
        if "duration_days" in updates:
            duration = updates["duration_days"]
            if duration is not None and (not isinstance(duration, int) or duration < 0):
                raise ValidationError(
                    "duration_days must be a non-negative integer", field="duration_days"
                )
            changes["duration_days"] = duration
        if "project_details" in updates:
            changes["project_details"] = dict(updates["project_details"] or {})
        if "attachments" in updates:
            attachments = tuple(updates["attachments"] or ())
            if not all(isinstance(a, Attachment) for a in attachments):
                raise ValidationError(
                    "attachments must be Attachment records", field="attachments"
                )
            changes["attachments"] = attachments

        with self.store.transaction("update_contract_details") as txn, LogContext.bind(
            contract_id=contract_id
        ):
            contract = self._require_contract(txn, contract_id)
            if "payment_schedule" in updates:
                stages = self._normalise_stages(updates["payment_schedule"])
                self._check_schedule(txn, contract, stages)
                changes["payment_schedule"] = stages
            updated = replace(contract, **changes)
            txn.contracts[contract_id] = updated
            logger.info("contract_details_updated", extra={"fields": sorted(updates)})
        return updated

    # -------------------------------------------------------------------------
    # Payment schedule
    # -------------------------------------------------------------------------

    def replace_schedule(
        self,
        contract_id: str,
        stages: Sequence[PaymentStage],
    ) -> Contract:
        """Replace the whole schedule. Stages without an id receive one."""
        return self._edit_schedule(
            "replace_schedule", contract_id, lambda contract: self._normalise_stages(stages)
        )

    def add_stage(
        self,
        contract_id: str,
        name: str,
        percentage: Decimal | int | str | None = None,
    ) -> Contract:
        """
        Append a stage.  Without ``percentage`` the stage takes the share
        not yet allocated to other stages.
        """
        def edit(contract: Contract) -> tuple[PaymentStage, ...]:
            share = (
                remaining_percentage(contract.payment_schedule)
                if percentage is None
                else self._amount(percentage, field="percentage")
            )
            stage = PaymentStage(
                id=self.ids.next_id(EntityPrefix.STAGE), name=name, percentage=share
            )
            return contract.payment_schedule + (stage,)

        return self._edit_schedule("add_stage", contract_id, edit)

    def update_stage(
        self,
        contract_id: str,
        stage_id: str,
        name: str | None = None,
        percentage: Decimal | int | str | None = None,
    ) -> Contract:
        def edit(contract: Contract) -> tuple[PaymentStage, ...]:
            stage = contract.stage(stage_id)
            if stage is None:
                raise StageNotFoundError(stage_id, contract_id)
            changes: dict[str, Any] = {}
            if name is not None:
                changes["name"] = name
            if percentage is not None:
                changes["percentage"] = self._amount(percentage, field="percentage")
            return tuple(
                replace(s, **changes) if s.id == stage_id else s
                for s in contract.payment_schedule
            )

        return self._edit_schedule("update_stage", contract_id, edit)

    def remove_stage(
        self,
        contract_id: str,
        stage_id: str,
        rebalance: bool = False,
    ) -> Contract:
        """
        Remove an unreferenced stage.  With ``rebalance`` the freed share is
        absorbed by the (new) last stage.
        """
        def edit(contract: Contract) -> tuple[PaymentStage, ...]:
            if contract.stage(stage_id) is None:
                raise StageNotFoundError(stage_id, contract_id)
            stages = tuple(s for s in contract.payment_schedule if s.id != stage_id)
            if rebalance and stages:
                stages = balance_schedule(stages)
            return stages

        return self._edit_schedule("remove_stage", contract_id, edit)

    def auto_balance_schedule(self, contract_id: str) -> Contract:
        """Adjust the last stage so the percentages sum to exactly 100."""
        return self._edit_schedule(
            "auto_balance_schedule",
            contract_id,
            lambda contract: balance_schedule(contract.payment_schedule),
        )

    def _edit_schedule(self, operation: str, contract_id: str, edit) -> Contract:
        with self.store.transaction(operation) as txn, LogContext.bind(
            contract_id=contract_id
        ):
            contract = self._require_contract(txn, contract_id)
            stages = edit(contract)
            self._check_schedule(txn, contract, stages)
            updated = replace(contract, payment_schedule=stages)
            txn.contracts[contract_id] = updated
            logger.info(
                "payment_schedule_updated",
                extra={
                    "edit": operation,
                    "stage_count": len(stages),
                    "stages": [[s.id, str(s.percentage)] for s in stages],
                },
            )
        return updated

    def _check_schedule(
        self,
        txn: LedgerTransaction,
        contract: Contract,
        stages: tuple[PaymentStage, ...],
    ) -> None:
        """Shape validation plus the referenced-stage guard."""
        validate_schedule(stages, self.policy.schedule_tolerance)
        kept = {s.id for s in stages}
        for stage in contract.payment_schedule:
            if stage.id in kept:
                continue
            blocking = tuple(
                p.id for p in txn.received_payments.values()
                if p.contract_id == contract.id and p.schedule_stage_id == stage.id
            )
            if blocking:
                logger.warning(
                    "stage_removal_blocked",
                    extra={"schedule_stage_id": stage.id, "blocking_ids": list(blocking)},
                )
                raise ReferentialIntegrityError(
                    "payment stage", stage.id, "received payment", blocking
                )

    def _normalise_stages(self, stages: Sequence[PaymentStage]) -> tuple[PaymentStage, ...]:
        normalised = []
        for stage in stages or ():
            normalised.append(
                PaymentStage(
                    id=stage.id or self.ids.next_id(EntityPrefix.STAGE),
                    name=stage.name,
                    percentage=self._amount(stage.percentage, field="percentage"),
                )
            )
        return tuple(normalised)

    # -------------------------------------------------------------------------
    # Subcontractor agreements
    # -------------------------------------------------------------------------

    def save_subcontractor_agreement(
        self,
        contract_id: str,
        subcontractor_id: str,
        total_amount: Decimal | int | str,
        duration_days: int = 0,
        notes: str | None = None,
    ) -> SubcontractorAgreement:
        """Create or replace the agreement for (contract, subcontractor)."""
        amount = self._positive_amount(total_amount, field="total_amount")
        if not isinstance(duration_days, int) or duration_days < 0:
            raise ValidationError(
                "duration_days must be a non-negative integer", field="duration_days"
            )

        with self.store.transaction("save_subcontractor_agreement") as txn, LogContext.bind(
            contract_id=contract_id
        ):
            self._require_contract(txn, contract_id)
            self._require_beneficiary(txn, BeneficiaryKind.SUBCONTRACTOR, subcontractor_id)
            existing = self._find_agreement(txn.sub_agreements.values(), contract_id, subcontractor_id)
            agreement = SubcontractorAgreement(
                id=existing.id if existing else self.ids.next_id(EntityPrefix.AGREEMENT),
                contract_id=contract_id,
                subcontractor_id=subcontractor_id,
                total_amount=amount,
                duration_days=duration_days,
                notes=notes,
            )
            txn.sub_agreements[agreement.id] = agreement
            logger.info(
                "subcontractor_agreement_saved",
                extra={
                    "agreement_id": agreement.id,
                    "subcontractor_id": subcontractor_id,
                    "total_amount": str(amount),
                    "replaced": existing is not None,
                },
            )
        return agreement

    def get_subcontractor_agreement(
        self,
        contract_id: str,
        subcontractor_id: str,
    ) -> SubcontractorAgreement | None:
        return self._find_agreement(
            self.store.state.sub_agreements.values(), contract_id, subcontractor_id
        )

    def agreement_summary(self, contract_id: str, subcontractor_id: str) -> AgreementSummary:
        state = self.store.state
        agreement = self._find_agreement(
            state.sub_agreements.values(), contract_id, subcontractor_id
        )
        ref = BeneficiaryRef(BeneficiaryKind.SUBCONTRACTOR, subcontractor_id)
        billed = ZERO
        paid = ZERO
        for expense in state.expenses.values():
            if expense.contract_id == contract_id and expense.beneficiary == ref:
                billed += expense.amount
                paid += expense.effective_paid
        return AgreementSummary(
            contract_id=contract_id,
            subcontractor_id=subcontractor_id,
            agreed=agreement.total_amount if agreement else ZERO,
            billed=billed,
            paid=paid,
        )

    @staticmethod
    def _find_agreement(agreements, contract_id: str, subcontractor_id: str):
        return next(
            (
                a for a in agreements
                if a.contract_id == contract_id and a.subcontractor_id == subcontractor_id
            ),
            None,
        )
