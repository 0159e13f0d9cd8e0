# hm_core/encounters/ledger.py
from __future__ import annotations

from uuid import UUID

from django.db import IntegrityError, transaction
from django.utils import timezone

from hm_core.common.errors import DischargeBeforeAdmission, DuplicateAdmission, EncounterNotOpen
from hm_core.encounters.history import emit_event
from hm_core.encounters.models import (
    BedAssignment,
    Encounter,
    EncounterEventCode,
    EncounterStatus,
    generate_encounter_number,
)


class EncounterLedger:
    """
    Write side of the admission history.

    Callers (hm_core.admissions) own bed state and row locks; the ledger
    only guards encounter-level rules (one open encounter per patient,
    no changes to a closed encounter). It never re-validates bed status.
    """

    # ------------------------------------------------------------------
    # Lookups
    # ------------------------------------------------------------------
    @staticmethod
    def get_open_encounter_for_patient(*, tenant_id: UUID, facility_id: UUID, patient_id: UUID) -> Encounter | None:
        return Encounter.objects.filter(
            tenant_id=tenant_id,
            facility_id=facility_id,
            patient_id=patient_id,
            status=EncounterStatus.OPEN,
        ).first()

    @staticmethod
    def get_open_encounter_for_bed(*, tenant_id: UUID, facility_id: UUID, bed_id: UUID) -> Encounter | None:
        return Encounter.objects.filter(
            tenant_id=tenant_id,
            facility_id=facility_id,
            bed_id=bed_id,
            status=EncounterStatus.OPEN,
        ).first()

    # ------------------------------------------------------------------
    # Writes
    # ------------------------------------------------------------------
    @staticmethod
    @transaction.atomic
    def create_encounter(
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

        if EncounterLedger.get_open_encounter_for_patient(
            tenant_id=tenant_id, facility_id=facility_id, patient_id=patient_id
        ):
            raise DuplicateAdmission(patient_id=patient_id)

        try:
            with transaction.atomic():
                enc = Encounter.objects.create(
                    tenant_id=tenant_id,
                    facility_id=facility_id,
                    encounter_number=generate_encounter_number(admitted_at),
                    patient_id=patient_id,
                    bed_id=bed_id,
                    status=EncounterStatus.OPEN,
                    admitted_at=admitted_at,
                    admission_metadata=metadata or {},
                    admitted_by_id=actor_user_id,
                )
                BedAssignment.objects.create(
                    tenant_id=tenant_id,
                    facility_id=facility_id,
                    encounter=enc,
                    bed_id=bed_id,
                    assigned_at=admitted_at,
                    assigned_by_id=actor_user_id,
                )
        except IntegrityError:
            # A concurrent admit committed first. Patient-side conflicts are
            # ours to report; anything else (bed-side) goes to the caller.
            if EncounterLedger.get_open_encounter_for_patient(
                tenant_id=tenant_id, facility_id=facility_id, patient_id=patient_id
            ):
                raise DuplicateAdmission(patient_id=patient_id)
            raise

        emit_event(
            tenant_id=tenant_id,
            facility_id=facility_id,
            encounter_id=enc.id,
            event_key=f"{EncounterEventCode.ADMITTED}:{enc.id}",
            code=EncounterEventCode.ADMITTED,
            title="Patient admitted",
            timestamp=admitted_at,
            meta={
                "encounter_number": enc.encounter_number,
                "patient_id": str(patient_id),
                "bed_id": str(bed_id),
                "metadata": enc.admission_metadata,
            },
            actor_user_id=actor_user_id,
        )
        return enc

    @staticmethod
    @transaction.atomic
    def close_encounter(
        *,
        encounter: Encounter,
        discharged_at=None,
        metadata: dict | None = None,
        actor_user_id: int | None = None,
    ) -> Encounter:
        if not encounter.is_open:
            raise EncounterNotOpen(encounter_id=encounter.id, status=encounter.status)

        discharged_at = discharged_at or timezone.now()
        if discharged_at < encounter.admitted_at:
            raise DischargeBeforeAdmission(
                encounter_id=encounter.id,
                admitted_at=encounter.admitted_at.isoformat(),
                discharged_at=discharged_at.isoformat(),
            )

        encounter.status = EncounterStatus.DISCHARGED
        encounter.discharged_at = discharged_at
        encounter.discharge_metadata = metadata or {}
        encounter.discharged_by_id = actor_user_id
        encounter.save(
            update_fields=["status", "discharged_at", "discharge_metadata", "discharged_by_id", "updated_at"]
        )

        EncounterLedger._release_current_assignment(
            encounter=encounter,
            at=discharged_at,
            notes=str((metadata or {}).get("notes") or ""),
            actor_user_id=actor_user_id,
        )

        emit_event(
            tenant_id=encounter.tenant_id,
            facility_id=encounter.facility_id,
            encounter_id=encounter.id,
            event_key=f"{EncounterEventCode.DISCHARGED}:{encounter.id}",
            code=EncounterEventCode.DISCHARGED,
            title="Patient discharged",
            timestamp=discharged_at,
            meta={"bed_id": str(encounter.bed_id), "metadata": encounter.discharge_metadata},
            actor_user_id=actor_user_id,
        )
        return encounter

    @staticmethod
    @transaction.atomic
    def repoint_encounter(
        *,
        encounter: Encounter,
        new_bed_id: UUID,
        reason: str = "",
        at=None,
        actor_user_id: int | None = None,
    ) -> Encounter:
        """
        Move the encounter's current-bed pointer and append TRANSFERRED
        (from bed, to bed, reason) to its history.
        """
        if not encounter.is_open:
            raise EncounterNotOpen(encounter_id=encounter.id, status=encounter.status)

        at = at or timezone.now()
        from_bed_id = encounter.bed_id

        EncounterLedger._release_current_assignment(
            encounter=encounter, at=at, notes=reason, actor_user_id=actor_user_id
        )

        encounter.bed_id = new_bed_id
        encounter.save(update_fields=["bed", "updated_at"])

        assignment = BedAssignment.objects.create(
            tenant_id=encounter.tenant_id,
            facility_id=encounter.facility_id,
            encounter=encounter,
            bed_id=new_bed_id,
            assigned_at=at,
            assignment_notes=reason,
            assigned_by_id=actor_user_id,
        )

        emit_event(
            tenant_id=encounter.tenant_id,
            facility_id=encounter.facility_id,
            encounter_id=encounter.id,
            event_key=f"{EncounterEventCode.TRANSFERRED}:{assignment.id}",
            code=EncounterEventCode.TRANSFERRED,
            title="Patient transferred",
            timestamp=at,
            meta={
                "from_bed_id": str(from_bed_id) if from_bed_id else None,
                "to_bed_id": str(new_bed_id),
                "reason": reason,
            },
            actor_user_id=actor_user_id,
        )
        return encounter

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------
    @staticmethod
    def _release_current_assignment(*, encounter: Encounter, at, notes: str, actor_user_id: int | None) -> int:
        return BedAssignment.objects.filter(encounter=encounter, released_at__isnull=True).update(
            released_at=at,
            release_notes=notes or "",
            released_by_id=actor_user_id,
            updated_at=timezone.now(),
        )
