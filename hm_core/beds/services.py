# hm_core/beds/services.py
from __future__ import annotations

import logging
from uuid import UUID

from django.db import IntegrityError, transaction

from hm_core.audit.services import AuditService
from hm_core.beds.constants import DEFAULT_BED_TYPE, BedStatus
from hm_core.beds.models import Bed, Ward
from hm_core.beds.vocabulary import validate_bed_status, validate_bed_type
from hm_core.common.errors import DomainError, InvalidTransition, NotFound, SetupConflict

logger = logging.getLogger(__name__)


class BedRegistry:
    """
    Direct bed writes that are NOT part of patient flow.

    Notes:
    - set_status only moves between non-occupied statuses
      (available / maintenance / cleaning / configured extras).
    - Entering or leaving "occupied" is a side effect of admit/transfer/discharge
      (hm_core.admissions.services.PatientFlowService) and is rejected here.
    """

    @staticmethod
    @transaction.atomic
    def set_status(
        *,
        tenant_id: UUID,
        facility_id: UUID,
        bed_id: UUID,
        status: str,
        actor_user_id: int | None = None,
        notes: str = "",
    ) -> Bed:
        new_status = validate_bed_status(status)

        # Row lock: a concurrent admit on this bed waits for us (and vice versa).
        try:
            bed = Bed.objects.select_for_update().get(id=bed_id, tenant_id=tenant_id, facility_id=facility_id)
        except Bed.DoesNotExist:
            raise NotFound("Bed not found.", entity="Bed", id=bed_id)

        if new_status == BedStatus.OCCUPIED:
            raise InvalidTransition(
                "Beds become occupied only through admission or transfer.",
                bed_id=bed.id,
                current=bed.status,
                requested=new_status,
            )
        if bed.status == BedStatus.OCCUPIED:
            raise InvalidTransition(
                "Occupied beds are freed only through transfer or discharge.",
                bed_id=bed.id,
                current=bed.status,
                requested=new_status,
            )

        # Idempotent no-op: same status
        if bed.status == new_status:
            return bed

        previous = bed.status
        bed.status = new_status
        update_fields = ["status", "updated_at"]
        if notes:
            bed.notes = notes
            update_fields.append("notes")
        bed.save(update_fields=update_fields)

        AuditService.log(
            event_code="bed.status_changed",
            entity_type="Bed",
            entity_id=bed.id,
            tenant_id=tenant_id,
            facility_id=facility_id,
            actor_user_id=actor_user_id,
            metadata={"from": previous, "to": new_status, "notes": notes},
        )
        logger.info("bed %s status %s -> %s", bed.id, previous, new_status)
        return bed


class WardService:
    """
    Ward/bed setup (configuration screens).
    Rules: ward code unique per facility, bed number unique per ward,
    ward capacity respected when set, beds never created occupied.
    """

    @staticmethod
    @transaction.atomic
    def create_ward(
        *,
        tenant_id: UUID,
        facility_id: UUID,
        code: str,
        name: str,
        ward_type: str = "",
        capacity: int = 0,
        actor_user_id: int | None = None,
    ) -> Ward:
        try:
            with transaction.atomic():
                ward = Ward.objects.create(
                    tenant_id=tenant_id,
                    facility_id=facility_id,
                    code=code.strip(),
                    name=name.strip(),
                    ward_type=(ward_type or "").strip().lower(),
                    capacity=capacity or 0,
                )
        except IntegrityError:
            raise SetupConflict("Ward code already exists in this facility.", code=code)

        AuditService.log(
            event_code="ward.created",
            entity_type="Ward",
            entity_id=ward.id,
            tenant_id=tenant_id,
            facility_id=facility_id,
            actor_user_id=actor_user_id,
            metadata={"code": ward.code, "capacity": ward.capacity},
        )
        return ward

    @staticmethod
    @transaction.atomic
    def create_bed(
        *,
        tenant_id: UUID,
        facility_id: UUID,
        ward_id: UUID,
        bed_number: str,
        bed_type: str = DEFAULT_BED_TYPE,
        status: str = BedStatus.AVAILABLE,
        notes: str = "",
        actor_user_id: int | None = None,
    ) -> Bed:
        bed_type = validate_bed_type(bed_type)
        status = validate_bed_status(status)
        if status == BedStatus.OCCUPIED:
            raise InvalidTransition("A new bed cannot start occupied.", requested=status)

        # Lock the ward so two setup requests cannot both squeeze under capacity.
        try:
            ward = Ward.objects.select_for_update().get(id=ward_id, tenant_id=tenant_id, facility_id=facility_id)
        except Ward.DoesNotExist:
            raise NotFound("Ward not found.", entity="Ward", id=ward_id)

        if ward.capacity and ward.beds.count() >= ward.capacity:
            raise SetupConflict(
                f"Ward has reached maximum capacity ({ward.capacity} beds).",
                ward_id=ward.id,
                capacity=ward.capacity,
            )

        try:
            with transaction.atomic():
                bed = Bed.objects.create(
                    tenant_id=tenant_id,
                    facility_id=facility_id,
                    ward=ward,
                    bed_number=bed_number.strip(),
                    bed_type=bed_type,
                    status=status,
                    notes=notes or "",
                )
        except IntegrityError:
            raise SetupConflict("Bed number must be unique within the ward.", bed_number=bed_number)

        AuditService.log(
            event_code="bed.created",
            entity_type="Bed",
            entity_id=bed.id,
            tenant_id=tenant_id,
            facility_id=facility_id,
            actor_user_id=actor_user_id,
            metadata={"ward_id": str(ward.id), "bed_number": bed.bed_number, "bed_type": bed_type},
        )
        return bed

    @staticmethod
    @transaction.atomic
    def update_ward(
        *,
        tenant_id: UUID,
        facility_id: UUID,
        ward_id: UUID,
        name: str | None = None,
        ward_type: str | None = None,
        capacity: int | None = None,
        is_active: bool | None = None,
        actor_user_id: int | None = None,
    ) -> Ward:
        """
        Rename / resize / (de)activate a ward. None means "leave as is".
        Capacity can never drop below the number of beds already in the ward.
        """
        try:
            ward = Ward.objects.select_for_update().get(id=ward_id, tenant_id=tenant_id, facility_id=facility_id)
        except Ward.DoesNotExist:
            raise NotFound("Ward not found.", entity="Ward", id=ward_id)

        requested = {
            "name": name.strip() if name is not None else None,
            "ward_type": ward_type.strip().lower() if ward_type is not None else None,
            "capacity": capacity,
            "is_active": is_active,
        }
        changes = {
            field: (getattr(ward, field), value)
            for field, value in requested.items()
            if value is not None and getattr(ward, field) != value
        }
        if not changes:
            return ward

        if "capacity" in changes and capacity:
            bed_count = ward.beds.count()
            if capacity < bed_count:
                raise SetupConflict(
                    f"Cannot reduce capacity below current bed count ({bed_count}).",
                    ward_id=ward.id,
                    capacity=capacity,
                    bed_count=bed_count,
                )

        for field, (_, value) in changes.items():
            setattr(ward, field, value)
        ward.save(update_fields=[*changes.keys(), "updated_at"])

        AuditService.log(
            event_code="ward.updated",
            entity_type="Ward",
            entity_id=ward.id,
            tenant_id=tenant_id,
            facility_id=facility_id,
            actor_user_id=actor_user_id,
            metadata={field: {"from": old, "to": new} for field, (old, new) in changes.items()},
        )
        logger.info("ward %s updated: %s", ward.id, ", ".join(changes))
        return ward

    @staticmethod
    @transaction.atomic
    def create_beds(
        *,
        tenant_id: UUID,
        facility_id: UUID,
        ward_id: UUID,
        count: int,
        bed_type: str = DEFAULT_BED_TYPE,
        prefix: str = "B",
        start_number: int = 1,
        actor_user_id: int | None = None,
    ) -> list[Bed]:
        """
        Batch setup: `count` available beds numbered "<prefix>-01", "<prefix>-02", ...
        All or nothing: a clash on any number or the ward capacity creates no bed.
        """
        try:
            ward = Ward.objects.select_for_update().get(id=ward_id, tenant_id=tenant_id, facility_id=facility_id)
        except Ward.DoesNotExist:
            raise NotFound("Ward not found.", entity="Ward", id=ward_id)

        if ward.capacity and ward.beds.count() + count > ward.capacity:
            raise SetupConflict(
                f"Ward has room for {max(ward.capacity - ward.beds.count(), 0)} more beds.",
                ward_id=ward.id,
                capacity=ward.capacity,
                requested=count,
            )

        prefix = (prefix or "").strip()
        return [
            WardService.create_bed(
                tenant_id=tenant_id,
                facility_id=facility_id,
                ward_id=ward.id,
                bed_number=f"{prefix}-{n:02d}" if prefix else f"{n:02d}",
                bed_type=bed_type,
                actor_user_id=actor_user_id,
            )
            for n in range(start_number, start_number + count)
        ]

    @staticmethod
    @transaction.atomic
    def bulk_set_status(
        *,
        tenant_id: UUID,
        facility_id: UUID,
        updates: list[dict],
        actor_user_id: int | None = None,
    ) -> list[dict]:
        """
        Apply several BedRegistry.set_status calls and report one result per
        input row, in input order. A rejected row does not undo the others.

        Rows are processed in bed-id order so concurrent batches lock beds
        the same way admit/transfer do.
        """
        results: list[dict | None] = [None] * len(updates)
        order = sorted(range(len(updates)), key=lambda i: str(updates[i]["bed_id"]))

        for i in order:
            row = updates[i]
            try:
                bed = BedRegistry.set_status(
                    tenant_id=tenant_id,
                    facility_id=facility_id,
                    bed_id=row["bed_id"],
                    status=row["status"],
                    notes=row.get("notes", "") or "",
                    actor_user_id=actor_user_id,
                )
            except DomainError as e:
                results[i] = {
                    "bed_id": str(row["bed_id"]),
                    "success": False,
                    "status": None,
                    "error": {"code": e.code, "message": e.message},
                }
            else:
                results[i] = {"bed_id": str(bed.id), "success": True, "status": bed.status, "error": None}

        failed = sum(1 for r in results if not r["success"])
        if failed:
            logger.info("bulk bed status: %s of %s rows rejected", failed, len(updates))
        return results
