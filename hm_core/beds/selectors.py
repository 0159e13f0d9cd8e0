# hm_core/beds/selectors.py
from __future__ import annotations

from uuid import UUID

from django.db.models import Count, Q, QuerySet

from hm_core.beds.constants import BedStatus
from hm_core.beds.models import Bed, Ward
from hm_core.common.errors import NotFound


def occupancy_rate(occupied: int, total: int) -> float:
    if not total:
        return 0
    return round(occupied / total * 100, 2)


class BedSelectors:
    """
    Read-only queries for beds.
    No .save(), no state mutation here.
    """

    @staticmethod
    def get_bed(*, tenant_id: UUID, facility_id: UUID, bed_id: UUID) -> Bed:
        try:
            return Bed.objects.select_related("ward").get(id=bed_id, tenant_id=tenant_id, facility_id=facility_id)
        except Bed.DoesNotExist:
            raise NotFound("Bed not found.", entity="Bed", id=bed_id)

    @staticmethod
    def list_beds(
        *,
        tenant_id: UUID,
        facility_id: UUID,
        ward_id: UUID | None = None,
        bed_type: str | None = None,
        status: str | None = None,
    ) -> QuerySet[Bed]:
        qs = Bed.objects.filter(tenant_id=tenant_id, facility_id=facility_id).select_related("ward")

        if ward_id:
            qs = qs.filter(ward_id=ward_id)
        if bed_type:
            qs = qs.filter(bed_type=bed_type)
        if status:
            qs = qs.filter(status=status)

        return qs.order_by("ward__name", "bed_number")

    @staticmethod
    def find_available_beds(
        *,
        tenant_id: UUID,
        facility_id: UUID,
        exclude_ward_id: UUID | None = None,
        bed_type: str | None = None,
        ward_id: UUID | None = None,
    ) -> QuerySet[Bed]:
        """
        Candidate beds for admission or transfer: status "available" only.
        maintenance / cleaning / occupied / extra statuses never show up here.
        """
        qs = Bed.objects.filter(
            tenant_id=tenant_id,
            facility_id=facility_id,
            status=BedStatus.AVAILABLE,
        ).select_related("ward")

        if exclude_ward_id:
            qs = qs.exclude(ward_id=exclude_ward_id)
        if ward_id:
            qs = qs.filter(ward_id=ward_id)
        if bed_type:
            qs = qs.filter(bed_type=bed_type)

        return qs.order_by("ward__name", "bed_number")


class WardSelectors:
    """
    Occupancy figures, always derived from Bed rows at read time.
    """

    @staticmethod
    def get_ward(*, tenant_id: UUID, facility_id: UUID, ward_id: UUID) -> Ward:
        try:
            return Ward.objects.get(id=ward_id, tenant_id=tenant_id, facility_id=facility_id)
        except Ward.DoesNotExist:
            raise NotFound("Ward not found.", entity="Ward", id=ward_id)

    @staticmethod
    def list_wards(*, tenant_id: UUID, facility_id: UUID, include_inactive: bool = False) -> QuerySet[Ward]:
        qs = Ward.objects.filter(tenant_id=tenant_id, facility_id=facility_id)
        if not include_inactive:
            qs = qs.filter(is_active=True)
        return qs.order_by("name")

    @staticmethod
    def _status_breakdown(beds: QuerySet[Bed]) -> dict:
        rows = beds.values("ward_id", "status").annotate(n=Count("id"))
        out: dict = {}
        for r in rows:
            out.setdefault(r["ward_id"], {})[r["status"]] = r["n"]
        return out

    @staticmethod
    def ward_stats(*, tenant_id: UUID, facility_id: UUID, ward_id: UUID | None = None) -> list[dict]:
        """
        One row per ward (zero-bed wards included):
          ward_id, ward_code, ward_name, total, occupied, available,
          occupancy_rate, by_status
        """
        wards = Ward.objects.filter(tenant_id=tenant_id, facility_id=facility_id)
        if ward_id is not None:
            wards = wards.filter(id=ward_id)
            if not wards.exists():
                raise NotFound("Ward not found.", entity="Ward", id=ward_id)

        breakdown = WardSelectors._status_breakdown(
            Bed.objects.filter(tenant_id=tenant_id, facility_id=facility_id, ward__in=wards.values("id"))
        )

        wards = wards.annotate(
            total=Count("beds"),
            occupied=Count("beds", filter=Q(beds__status=BedStatus.OCCUPIED)),
            available=Count("beds", filter=Q(beds__status=BedStatus.AVAILABLE)),
        ).order_by("name")

        return [
            {
                "ward_id": w.id,
                "ward_code": w.code,
                "ward_name": w.name,
                "total": w.total,
                "occupied": w.occupied,
                "available": w.available,
                "occupancy_rate": occupancy_rate(w.occupied, w.total),
                "by_status": breakdown.get(w.id, {}),
            }
            for w in wards
        ]

    @staticmethod
    def hospital_stats(*, tenant_id: UUID, facility_id: UUID) -> dict:
        beds = Bed.objects.filter(tenant_id=tenant_id, facility_id=facility_id)
        agg = beds.aggregate(
            total=Count("id"),
            occupied=Count("id", filter=Q(status=BedStatus.OCCUPIED)),
            available=Count("id", filter=Q(status=BedStatus.AVAILABLE)),
        )
        by_status = {r["status"]: r["n"] for r in beds.values("status").annotate(n=Count("id"))}

        return {
            "total": agg["total"],
            "occupied": agg["occupied"],
            "available": agg["available"],
            "occupancy_rate": occupancy_rate(agg["occupied"], agg["total"]),
            "by_status": by_status,
        }

    @staticmethod
    def occupancy_matrix(*, tenant_id: UUID, facility_id: UUID) -> list[dict]:
        """Bed board: every active ward with its beds in bed-number order."""
        wards = WardSelectors.list_wards(tenant_id=tenant_id, facility_id=facility_id)
        beds = (
            Bed.objects.filter(tenant_id=tenant_id, facility_id=facility_id, ward__in=wards)
            .order_by("bed_number")
            .values("id", "ward_id", "bed_number", "bed_type", "status", "last_occupied_at")
        )

        by_ward: dict = {}
        for b in beds:
            by_ward.setdefault(b["ward_id"], []).append(
                {
                    "bed_id": b["id"],
                    "bed_number": b["bed_number"],
                    "bed_type": b["bed_type"],
                    "status": b["status"],
                    "last_occupied_at": b["last_occupied_at"],
                }
            )

        return [
            {"ward_id": w.id, "ward_code": w.code, "ward_name": w.name, "beds": by_ward.get(w.id, [])}
            for w in wards
        ]
