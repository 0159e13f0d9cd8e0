# hm_core/admissions/services.py
from __future__ import annotations

import logging
from contextlib import contextmanager
from uuid import UUID

from django.db import IntegrityError, transaction
from django.utils import timezone

from hm_core.audit.services import AuditService
from hm_core.beds.constants import BedStatus
from hm_core.beds.models import Bed
from hm_core.common.errors import (
    BedNotAvailable,
    DomainError,
    DuplicateAdmission,
    EncounterNotOpen,
    NoOpTransfer,
    NotFound,
    PatientAlreadyAdmitted,
)
from hm_core.common.events import publish_on_commit
from hm_core.encounters.ledger import EncounterLedger
from hm_core.encounters.models import Encounter
from hm_core.patients.models import Patient

logger = logging.getLogger(__name__)


@contextmanager
def _log_rejection(operation: str, **ids):
    try:
        yield
    except DomainError as e:
        logger.info("%s rejected: %s %s", operation, e.code, ids)
        raise


class PatientFlowService:
    """
    Admit / transfer / discharge.

    The only writer that touches bed status AND encounters together. Each
    operation is one transaction: rows are locked (encounter first, then
    beds in id order), preconditions are checked, both sides are mutated.
    A failed precondition leaves everything as it was.

    Domain events go out via transaction.on_commit, so subscribers
    (billing, dashboards) never observe a rolled-back state.
    """

    # ---------------------------------------------------------------------
    # Locking helpers
    # ---------------------------------------------------------------------
    @staticmethod
    def _lock_bed(*, tenant_id: UUID, facility_id: UUID, bed_id: UUID) -> Bed:
        try:
            return Bed.objects.select_for_update().get(id=bed_id, tenant_id=tenant_id, facility_id=facility_id)
        except Bed.DoesNotExist:
            raise NotFound("Bed not found.", entity="Bed", id=bed_id)

    @staticmethod
    def _lock_beds(*, tenant_id: UUID, facility_id: UUID, bed_ids: list[UUID]) -> dict[UUID, Bed]:
        # Fixed order (by id) so two transfers over the same pair cannot deadlock.
        beds = Bed.objects.select_for_update().filter(
            id__in=bed_ids, tenant_id=tenant_id, facility_id=facility_id
        ).order_by("id")
        return {b.id: b for b in beds}

    @staticmethod
    def _lock_encounter(*, tenant_id: UUID, facility_id: UUID, encounter_id: UUID) -> Encounter:
        try:
            enc = Encounter.objects.select_for_update().get(
                id=encounter_id, tenant_id=tenant_id, facility_id=facility_id
            )
        except Encounter.DoesNotExist:
            raise NotFound("Encounter not found.", entity="Encounter", id=encounter_id)

        if not enc.is_open:
            raise EncounterNotOpen(encounter_id=enc.id, status=enc.status)
        return enc

    @staticmethod
    def _occupy(bed: Bed, at) -> None:
        bed.status = BedStatus.OCCUPIED
        bed.last_occupied_at = at
        bed.save(update_fields=["status", "last_occupied_at", "updated_at"])

    @staticmethod
    def _release(bed: Bed) -> None:
        bed.status = BedStatus.AVAILABLE
        bed.save(update_fields=["status", "updated_at"])

    # ---------------------------------------------------------------------
    # Operations
    # ---------------------------------------------------------------------
    @staticmethod
    @transaction.atomic
    def admit(
        *,
        tenant_id: UUID,
        facility_id: UUID,
        patient_id: UUID,
        bed_id: UUID,
        admitted_at=None,
        metadata: dict | None = None,
        actor_user_id: int | None = None,
    ) -> Encounter:
        admitted_at = admitted_at or timezone.now()

        with _log_rejection("admit", patient_id=patient_id, bed_id=bed_id):
            bed = PatientFlowService._lock_bed(tenant_id=tenant_id, facility_id=facility_id, bed_id=bed_id)
            if bed.status != BedStatus.AVAILABLE:
                raise BedNotAvailable(bed_id=bed.id, status=bed.status)

            if not Patient.objects.filter(id=patient_id, tenant_id=tenant_id, facility_id=facility_id).exists():
                raise NotFound("Patient not found.", entity="Patient", id=patient_id)

            try:
                enc = EncounterLedger.create_encounter(
                    tenant_id=tenant_id,
                    facility_id=facility_id,
                    patient_id=patient_id,
                    bed_id=bed.id,
                    admitted_at=admitted_at,
                    metadata=metadata,
                    actor_user_id=actor_user_id,
                )
            except DuplicateAdmission:
                existing = EncounterLedger.get_open_encounter_for_patient(
                    tenant_id=tenant_id, facility_id=facility_id, patient_id=patient_id
                )
                raise PatientAlreadyAdmitted(
                    patient_id=patient_id,
                    encounter_id=existing.id if existing else None,
                )
            except IntegrityError:
                # Someone else's open encounter already holds this bed.
                raise BedNotAvailable(bed_id=bed.id, status=BedStatus.OCCUPIED)

        PatientFlowService._occupy(bed, admitted_at)

        AuditService.log(
            event_code="encounter.admitted",
            entity_type="Encounter",
            entity_id=enc.id,
            tenant_id=tenant_id,
            facility_id=facility_id,
            actor_user_id=actor_user_id,
            metadata={"patient_id": str(patient_id), "bed_id": str(bed.id)},
        )
        publish_on_commit(
            "encounter.admitted",
            {
                "tenant_id": str(tenant_id),
                "facility_id": str(facility_id),
                "encounter_id": str(enc.id),
                "patient_id": str(patient_id),
                "bed_id": str(bed.id),
                "bed_type": bed.bed_type,
                "admitted_at": admitted_at.isoformat(),
            },
        )
        logger.info("admitted patient %s to bed %s (encounter %s)", patient_id, bed.id, enc.id)
        return enc

    @staticmethod
    @transaction.atomic
    def transfer(
        *,
        tenant_id: UUID,
        facility_id: UUID,
        encounter_id: UUID,
        target_bed_id: UUID,
        reason: str = "",
        actor_user_id: int | None = None,
    ) -> Encounter:
        at = timezone.now()
        target_bed_id = UUID(str(target_bed_id))

        with _log_rejection("transfer", encounter_id=encounter_id, target_bed_id=target_bed_id):
            enc = PatientFlowService._lock_encounter(
                tenant_id=tenant_id, facility_id=facility_id, encounter_id=encounter_id
            )
            source_bed_id = enc.bed_id
            if source_bed_id == target_bed_id:
                raise NoOpTransfer(encounter_id=enc.id, bed_id=target_bed_id)

            beds = PatientFlowService._lock_beds(
                tenant_id=tenant_id,
                facility_id=facility_id,
                bed_ids=[source_bed_id, target_bed_id],
            )
            target = beds.get(target_bed_id)
            if target is None:
                raise NotFound("Bed not found.", entity="Bed", id=target_bed_id)
            if target.status != BedStatus.AVAILABLE:
                raise BedNotAvailable(bed_id=target.id, status=target.status)

            try:
                EncounterLedger.repoint_encounter(
                    encounter=enc,
                    new_bed_id=target.id,
                    reason=reason,
                    at=at,
                    actor_user_id=actor_user_id,
                )
            except IntegrityError:
                raise BedNotAvailable(bed_id=target.id, status=BedStatus.OCCUPIED)

        source = beds.get(source_bed_id)
        if source is not None:
            PatientFlowService._release(source)
        PatientFlowService._occupy(target, at)

        AuditService.log(
            event_code="encounter.transferred",
            entity_type="Encounter",
            entity_id=enc.id,
            tenant_id=tenant_id,
            facility_id=facility_id,
            actor_user_id=actor_user_id,
            metadata={"from_bed_id": str(source_bed_id), "to_bed_id": str(target.id), "reason": reason},
        )
        publish_on_commit(
            "encounter.transferred",
            {
                "tenant_id": str(tenant_id),
                "facility_id": str(facility_id),
                "encounter_id": str(enc.id),
                "patient_id": str(enc.patient_id),
                "from_bed_id": str(source_bed_id),
                "to_bed_id": str(target.id),
                "bed_type": target.bed_type,
                "reason": reason,
            },
        )
        logger.info("transferred encounter %s from bed %s to bed %s", enc.id, source_bed_id, target.id)
        return enc

    @staticmethod
    @transaction.atomic
    def discharge(
        *,
        tenant_id: UUID,
        facility_id: UUID,
        encounter_id: UUID,
        discharged_at=None,
        metadata: dict | None = None,
        actor_user_id: int | None = None,
    ) -> Encounter:
        discharged_at = discharged_at or timezone.now()

        with _log_rejection("discharge", encounter_id=encounter_id):
            enc = PatientFlowService._lock_encounter(
                tenant_id=tenant_id, facility_id=facility_id, encounter_id=encounter_id
            )
            bed = None
            if enc.bed_id:
                bed = PatientFlowService._lock_bed(tenant_id=tenant_id, facility_id=facility_id, bed_id=enc.bed_id)

            EncounterLedger.close_encounter(
                encounter=enc,
                discharged_at=discharged_at,
                metadata=metadata,
                actor_user_id=actor_user_id,
            )

        if bed is not None:
            PatientFlowService._release(bed)

        AuditService.log(
            event_code="encounter.discharged",
            entity_type="Encounter",
            entity_id=enc.id,
            tenant_id=tenant_id,
            facility_id=facility_id,
            actor_user_id=actor_user_id,
            metadata={"bed_id": str(enc.bed_id) if enc.bed_id else None, **(metadata or {})},
        )
        publish_on_commit(
            "encounter.discharged",
            {
                "tenant_id": str(tenant_id),
                "facility_id": str(facility_id),
                "encounter_id": str(enc.id),
                "patient_id": str(enc.patient_id),
                "bed_id": str(enc.bed_id) if enc.bed_id else None,
                "bed_type": bed.bed_type if bed is not None else None,
                "discharged_at": discharged_at.isoformat(),
            },
        )
        logger.info("discharged encounter %s from bed %s", enc.id, enc.bed_id)
        return enc
