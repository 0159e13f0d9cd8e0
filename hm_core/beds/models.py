# hm_core/beds/models.py
from django.db import models

from hm_core.beds.constants import DEFAULT_BED_TYPE, BedStatus
from hm_core.common.models import ScopedModel


class Ward(ScopedModel):
    """
    Grouping of beds. Read-side aggregation boundary only:
    occupancy numbers are always derived from Bed rows, never stored here.
    """
    code = models.CharField(max_length=32)
    name = models.CharField(max_length=128)
    ward_type = models.CharField(max_length=32, blank=True, default="")

    # Planned number of beds; 0 means "not enforced" during bed setup.
    capacity = models.PositiveIntegerField(default=0)
    is_active = models.BooleanField(default=True, db_index=True)

    class Meta:
        db_table = "beds_ward"
        constraints = [
            models.UniqueConstraint(
                fields=["tenant_id", "facility_id", "code"],
                name="uq_ward_scope_code",
            ),
        ]
        indexes = [
            models.Index(fields=["tenant_id", "facility_id", "name"]),
        ]

    def __str__(self) -> str:
        return f"{self.name} ({self.code})"


class Bed(ScopedModel):
    """
    Authoritative state of one physical bed.

    status == "occupied" iff exactly one open Encounter points at this bed.
    Only hm_core.admissions moves a bed into/out of "occupied";
    BedRegistry.set_status handles the maintenance/cleaning toggles.
    """
    ward = models.ForeignKey(Ward, on_delete=models.PROTECT, related_name="beds")
    bed_number = models.CharField(max_length=32)

    # Open vocabularies, validated in hm_core.beds.vocabulary
    bed_type = models.CharField(max_length=32, default=DEFAULT_BED_TYPE, db_index=True)
    status = models.CharField(max_length=32, default=BedStatus.AVAILABLE, db_index=True)

    last_occupied_at = models.DateTimeField(null=True, blank=True)
    notes = models.TextField(blank=True, default="")

    class Meta:
        db_table = "beds_bed"
        constraints = [
            models.UniqueConstraint(fields=["ward", "bed_number"], name="uq_bed_number_per_ward"),
        ]
        indexes = [
            models.Index(fields=["tenant_id", "facility_id", "status"]),
            models.Index(fields=["ward", "status"]),
        ]

    def __str__(self) -> str:
        return f"Bed({self.bed_number}, {self.status})"
