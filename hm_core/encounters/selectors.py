# hm_core/encounters/selectors.py
from __future__ import annotations

from datetime import datetime, timedelta
from uuid import UUID

from django.db.models import Avg, DurationField, ExpressionWrapper, F, QuerySet
from django.utils import timezone

from hm_core.common.errors import NotFound
from hm_core.encounters.models import BedAssignment, Encounter, EncounterEvent, EncounterStatus

STATISTICS_WINDOW_DAYS = 30
DISCHARGE_PLANNING_MIN_DAYS = 3


class EncounterSelectors:
    """
    Read-only queries for encounters.
    No .save(), no state mutation here.
    """

    @staticmethod
    def get_encounter(*, tenant_id: UUID, facility_id: UUID, encounter_id: UUID) -> Encounter:
        try:
            return Encounter.objects.select_related("patient", "bed", "bed__ward").get(
                id=encounter_id,
                tenant_id=tenant_id,
                facility_id=facility_id,
            )
        except Encounter.DoesNotExist:
            raise NotFound("Encounter not found.", entity="Encounter", id=encounter_id)

    @staticmethod
    def list_encounters(
        *,
        tenant_id: UUID,
        facility_id: UUID,
        patient_id: UUID | None = None,
        status: str | None = None,
        ward_id: UUID | None = None,
        bed_id: UUID | None = None,
    ) -> QuerySet[Encounter]:
        qs = Encounter.objects.filter(tenant_id=tenant_id, facility_id=facility_id).select_related(
            "patient", "bed", "bed__ward"
        )

        if patient_id:
            qs = qs.filter(patient_id=patient_id)
        if status:
            qs = qs.filter(status=status)
        if ward_id:
            qs = qs.filter(bed__ward_id=ward_id)
        if bed_id:
            qs = qs.filter(bed_id=bed_id)

        return qs.order_by("-admitted_at", "-created_at")

    @staticmethod
    def timeline_items(*, tenant_id: UUID, facility_id: UUID, encounter_id: UUID) -> list[dict]:
        events = EncounterEvent.objects.filter(
            tenant_id=tenant_id,
            facility_id=facility_id,
            encounter_id=encounter_id,
        ).order_by("timestamp", "created_at")

        return [
            {
                "type": "EVENT",
                "id": str(e.id),
                "code": e.code,
                "title": e.title or "",
                "at": e.timestamp or e.created_at,
                "meta": e.meta or {},
                "actor_user_id": e.actor_user_id,
            }
            for e in events
        ]

    @staticmethod
    def bed_history(*, tenant_id: UUID, facility_id: UUID, bed_id: UUID) -> QuerySet[BedAssignment]:
        return (
            BedAssignment.objects.filter(tenant_id=tenant_id, facility_id=facility_id, bed_id=bed_id)
            .select_related("encounter", "encounter__patient")
            .order_by("-assigned_at")
        )

    @staticmethod
    def census(*, tenant_id: UUID, facility_id: UUID, ward_id: UUID | None = None) -> QuerySet[Encounter]:
        """Currently admitted patients with their bed and ward."""
        qs = EncounterSelectors.list_encounters(
            tenant_id=tenant_id,
            facility_id=facility_id,
            status=EncounterStatus.OPEN,
            ward_id=ward_id,
        )
        return qs.order_by("bed__ward__name", "bed__bed_number")

    @staticmethod
    def average_length_of_stay(
        *,
        tenant_id: UUID,
        facility_id: UUID,
        start: datetime | None = None,
        end: datetime | None = None,
    ) -> float:
        """
        Mean stay in days over encounters discharged within [start, end].
        Returns 0 when nothing was discharged in the window.
        """
        qs = Encounter.objects.filter(
            tenant_id=tenant_id,
            facility_id=facility_id,
            status=EncounterStatus.DISCHARGED,
            discharged_at__isnull=False,
        )
        if start:
            qs = qs.filter(discharged_at__gte=start)
        if end:
            qs = qs.filter(discharged_at__lte=end)

        avg_stay = qs.aggregate(
            avg_stay=Avg(ExpressionWrapper(F("discharged_at") - F("admitted_at"), output_field=DurationField()))
        )["avg_stay"]
        if avg_stay is None:
            return 0
        return round(avg_stay.total_seconds() / 86400, 2)

    @staticmethod
    def admission_statistics(
        *,
        tenant_id: UUID,
        facility_id: UUID,
        start: datetime | None = None,
        end: datetime | None = None,
    ) -> dict:
        """
        Admissions, discharges and mean stay over [start, end].
        Defaults to the last STATISTICS_WINDOW_DAYS days.
        """
        end = end or timezone.now()
        start = start or end - timedelta(days=STATISTICS_WINDOW_DAYS)

        qs = Encounter.objects.filter(tenant_id=tenant_id, facility_id=facility_id)
        return {
            "start": start,
            "end": end,
            "total_admissions": qs.filter(admitted_at__gte=start, admitted_at__lte=end).count(),
            "total_discharges": qs.filter(
                status=EncounterStatus.DISCHARGED,
                discharged_at__gte=start,
                discharged_at__lte=end,
            ).count(),
            "average_length_of_stay_days": EncounterSelectors.average_length_of_stay(
                tenant_id=tenant_id, facility_id=facility_id, start=start, end=end
            ),
        }

    @staticmethod
    def discharge_planning(
        *,
        tenant_id: UUID,
        facility_id: UUID,
        min_days: int = DISCHARGE_PLANNING_MIN_DAYS,
        ward_id: UUID | None = None,
        now: datetime | None = None,
    ) -> QuerySet[Encounter]:
        """Open encounters admitted at least `min_days` ago, longest stay first."""
        cutoff = (now or timezone.now()) - timedelta(days=min_days)
        qs = EncounterSelectors.list_encounters(
            tenant_id=tenant_id,
            facility_id=facility_id,
            status=EncounterStatus.OPEN,
            ward_id=ward_id,
        )
        return qs.filter(admitted_at__lte=cutoff).order_by("admitted_at", "created_at")
