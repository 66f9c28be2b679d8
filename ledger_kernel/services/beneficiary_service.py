"""
Service layer for beneficiary operations.

Manages suppliers, workers and subcontractors.  Beneficiaries never carry a
balance; deleting one that is still referenced is refused rather than
cascading.
"""

from __future__ import annotations

from dataclasses import replace
from decimal import Decimal
from typing import Any

from ledger_kernel.domain.identity import EntityPrefix
from ledger_kernel.domain.models import (
    Beneficiary,
    BeneficiaryKind,
    BeneficiaryRef,
    Subcontractor,
    Supplier,
    Worker,
)
from ledger_kernel.domain.values import ZERO
from ledger_kernel.exceptions import ReferentialIntegrityError, ValidationError
from ledger_kernel.logging_config import get_logger
from ledger_kernel.services.base import BaseService

logger = get_logger("services.beneficiary")

_PREFIXES = {
    BeneficiaryKind.SUPPLIER: EntityPrefix.SUPPLIER,
    BeneficiaryKind.WORKER: EntityPrefix.WORKER,
    BeneficiaryKind.SUBCONTRACTOR: EntityPrefix.SUBCONTRACTOR,
}


class BeneficiaryService(BaseService):
    """Create, edit and delete suppliers, workers and subcontractors."""

    def add_supplier(
        self,
        name: str,
        phone: str = "",
        address: str | None = None,
        specialty: str = "",
        notes: str | None = None,
    ) -> Supplier:
        return self._add(
            Supplier,
            name=name,
            phone=phone,
            address=address,
            specialty=specialty,
            notes=notes,
        )

    def add_worker(
        self,
        name: str,
        phone: str = "",
        address: str | None = None,
        role: str = "",
        daily_wage: Decimal | int | str = ZERO,
        notes: str | None = None,
    ) -> Worker:
        return self._add(
            Worker,
            name=name,
            phone=phone,
            address=address,
            role=role,
            daily_wage=daily_wage,
            notes=notes,
        )

    def add_subcontractor(
        self,
        name: str,
        phone: str = "",
        address: str | None = None,
        specialty: str = "",
        company_name: str | None = None,
        default_contract_value: Decimal | int | str | None = None,
    ) -> Subcontractor:
        return self._add(
            Subcontractor,
            name=name,
            phone=phone,
            address=address,
            specialty=specialty,
            company_name=company_name,
            default_contract_value=default_contract_value,
        )

    def update_beneficiary(
        self,
        kind: BeneficiaryKind,
        beneficiary_id: str,
        **updates: Any,
    ) -> Beneficiary:
        """
        Edit a beneficiary's details.

        Note: ``id`` and the kind cannot be changed.
        """
        kind = self._choice(BeneficiaryKind, kind, "kind")
        if "id" in updates:
            raise ValidationError("Beneficiary id cannot be changed", field="id")

        with self.store.transaction("update_beneficiary") as txn:
            current = self._require_beneficiary(txn, kind, beneficiary_id)
            try:
                updated = replace(current, **self._clean(updates))
            except TypeError as e:
                raise ValidationError(str(e)) from e
            txn.put_beneficiary(updated)
            logger.info(
                "beneficiary_updated",
                extra={
                    "beneficiary": BeneficiaryRef(kind, beneficiary_id).key,
                    "fields": sorted(updates),
                },
            )
        return updated

    def delete_beneficiary(self, kind: BeneficiaryKind, beneficiary_id: str) -> Beneficiary:
        """
        Delete a beneficiary that nothing references.

        Raises:
            BeneficiaryNotFoundError: unknown id.
            ReferentialIntegrityError: expenses (or, for a subcontractor,
                agreements) still reference it.  Nothing is deleted.
        """
        kind = self._choice(BeneficiaryKind, kind, "kind")
        ref = BeneficiaryRef(kind, beneficiary_id)

        with self.store.transaction("delete_beneficiary") as txn:
            self._require_beneficiary(txn, kind, beneficiary_id)

            blocking = tuple(e.id for e in txn.expenses.values() if e.beneficiary == ref)
            if blocking:
                logger.warning(
                    "beneficiary_delete_blocked",
                    extra={"beneficiary": ref.key, "blocking_ids": list(blocking)},
                )
                raise ReferentialIntegrityError(
                    kind.value.lower(), beneficiary_id, "expense", blocking
                )
            if kind == BeneficiaryKind.SUBCONTRACTOR:
                agreements = tuple(
                    a.id for a in txn.sub_agreements.values()
                    if a.subcontractor_id == beneficiary_id
                )
                if agreements:
                    logger.warning(
                        "beneficiary_delete_blocked",
                        extra={"beneficiary": ref.key, "blocking_ids": list(agreements)},
                    )
                    raise ReferentialIntegrityError(
                        kind.value.lower(), beneficiary_id,
                        "subcontractor agreement", agreements,
                    )

            removed = txn.beneficiaries(kind).pop(beneficiary_id)
            logger.info("beneficiary_deleted", extra={"beneficiary": ref.key})
        return removed

    def _add(self, cls: type, **fields: Any) -> Beneficiary:
        fields = self._clean(fields)
        with self.store.transaction(f"add_{cls.kind.value.lower()}") as txn:
            beneficiary = cls(id=self.ids.next_id(_PREFIXES[cls.kind]), **fields)
            txn.put_beneficiary(beneficiary)
            logger.info(
                "beneficiary_added",
                extra={
                    "beneficiary": BeneficiaryRef(cls.kind, beneficiary.id).key,
                    "beneficiary_name": beneficiary.name,
                },
            )
        return beneficiary

    def _clean(self, fields: dict[str, Any]) -> dict[str, Any]:
        cleaned = dict(fields)
        if "name" in cleaned:
            name = cleaned["name"]
            if not isinstance(name, str) or not name.strip():
                raise ValidationError("Beneficiary name is required", field="name")
            cleaned["name"] = name.strip()
        if "daily_wage" in cleaned:
            wage = self._amount(cleaned["daily_wage"], field="daily_wage")
            if wage < ZERO:
                raise ValidationError("daily_wage cannot be negative", field="daily_wage")
            cleaned["daily_wage"] = wage
        if cleaned.get("default_contract_value") is not None:
            cleaned["default_contract_value"] = self._positive_amount(
                cleaned["default_contract_value"], field="default_contract_value"
            )
        return cleaned
