# hm_core/encounters/models.py
import uuid

from django.conf import settings
from django.core.exceptions import ValidationError
from django.db import models
from django.db.models import Q
from django.utils import timezone

from hm_core.beds.models import Bed
from hm_core.common.models import ScopedModel
from hm_core.patients.models import Patient


class EncounterStatus(models.TextChoices):
    OPEN = "open", "Open"
    DISCHARGED = "discharged", "Discharged"


def generate_encounter_number(at=None) -> str:
    """IPD-YYYYMMDD-XXXXXX (prefix configurable via HM_ENCOUNTER_NUMBER_PREFIX)."""
    prefix = getattr(settings, "HM_ENCOUNTER_NUMBER_PREFIX", "IPD") or "IPD"
    day = timezone.localtime(at or timezone.now()).strftime("%Y%m%d")
    return f"{prefix}-{day}-{uuid.uuid4().hex[:6].upper()}"


class Encounter(ScopedModel):
    """
    Inpatient admission episode.

    bed is the CURRENT bed while open and the last bed after discharge.
    Only hm_core.admissions (through EncounterLedger) writes these rows.
    """
    encounter_number = models.CharField(max_length=40, db_index=True)
    patient = models.ForeignKey(Patient, on_delete=models.PROTECT, related_name="encounters")
    bed = models.ForeignKey(Bed, on_delete=models.PROTECT, related_name="encounters", null=True, blank=True)

    status = models.CharField(
        max_length=16,
        choices=EncounterStatus.choices,
        default=EncounterStatus.OPEN,
        db_index=True,
    )

    admitted_at = models.DateTimeField()
    discharged_at = models.DateTimeField(null=True, blank=True)

    # Opaque to the core: admission type, priority, diagnosis, discharge summary...
    admission_metadata = models.JSONField(default=dict, blank=True)
    discharge_metadata = models.JSONField(default=dict, blank=True)

    # Plain ids: the identity provider is external
    admitted_by_id = models.BigIntegerField(null=True, blank=True)
    discharged_by_id = models.BigIntegerField(null=True, blank=True)

    class Meta:
        db_table = "encounters_encounter"
        indexes = [
            models.Index(fields=["tenant_id", "facility_id", "status"]),
            models.Index(fields=["tenant_id", "facility_id", "patient"]),
            models.Index(fields=["tenant_id", "facility_id", "admitted_at"]),
        ]
        constraints = [
            models.UniqueConstraint(
                fields=["tenant_id", "facility_id", "encounter_number"],
                name="uq_encounter_number_scope",
            ),
            # One open admission per patient
            models.UniqueConstraint(
                fields=["tenant_id", "facility_id", "patient"],
                condition=Q(status=EncounterStatus.OPEN),
                name="uq_open_encounter_per_patient",
            ),
            # One open admission per bed
            models.UniqueConstraint(
                fields=["bed"],
                condition=Q(status=EncounterStatus.OPEN),
                name="uq_open_encounter_per_bed",
            ),
        ]

    def __str__(self) -> str:
        return f"Encounter({self.encounter_number}, {self.status})"

    @property
    def is_open(self) -> bool:
        return self.status == EncounterStatus.OPEN


class EncounterEventCode:
    ADMITTED = "ADMITTED"
    TRANSFERRED = "TRANSFERRED"
    DISCHARGED = "DISCHARGED"


class EncounterEvent(models.Model):
    """
    Immutable history stream for an encounter.
    Timeline must ONLY read from this table.
    """
    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)

    tenant_id = models.UUIDField(db_index=True)
    facility_id = models.UUIDField(db_index=True)
    encounter_id = models.UUIDField(db_index=True)

    # Stable event identity for idempotency
    event_key = models.CharField(max_length=128, db_index=True)

    code = models.CharField(max_length=64, db_index=True)
    title = models.CharField(max_length=255, blank=True, default="")
    timestamp = models.DateTimeField(db_index=True)

    # from/to bed, transfer reason, discharge metadata...
    meta = models.JSONField(default=dict, blank=True)
    actor_user_id = models.BigIntegerField(null=True, blank=True)

    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        db_table = "encounters_event"
        constraints = [
            models.UniqueConstraint(
                fields=["tenant_id", "facility_id", "encounter_id", "event_key"],
                name="uq_encounterevent_key_per_scope",
            )
        ]
        indexes = [
            models.Index(fields=["tenant_id", "facility_id", "encounter_id", "timestamp", "created_at"]),
        ]

    def __str__(self):
        return f"{self.code} @ {self.timestamp}"

    def save(self, *args, **kwargs):
        # UUID PK exists even before first save, so use _state.adding
        if not self._state.adding:
            raise ValidationError("EncounterEvent is immutable and cannot be modified once created.")
        return super().save(*args, **kwargs)

    def delete(self, *args, **kwargs):
        raise ValidationError("EncounterEvent is immutable and cannot be deleted.")


class BedAssignment(ScopedModel):
    """
    One stay of an encounter in one bed. released_at is NULL while current.
    """
    encounter = models.ForeignKey(Encounter, on_delete=models.PROTECT, related_name="assignments")
    bed = models.ForeignKey(Bed, on_delete=models.PROTECT, related_name="assignments")

    assigned_at = models.DateTimeField()
    released_at = models.DateTimeField(null=True, blank=True)

    assignment_notes = models.TextField(blank=True, default="")
    release_notes = models.TextField(blank=True, default="")

    assigned_by_id = models.BigIntegerField(null=True, blank=True)
    released_by_id = models.BigIntegerField(null=True, blank=True)

    class Meta:
        db_table = "encounters_bed_assignment"
        constraints = [
            models.UniqueConstraint(
                fields=["encounter"],
                condition=Q(released_at__isnull=True),
                name="uq_current_assignment_per_encounter",
            ),
            models.UniqueConstraint(
                fields=["bed"],
                condition=Q(released_at__isnull=True),
                name="uq_current_assignment_per_bed",
            ),
        ]
        indexes = [
            models.Index(fields=["bed", "assigned_at"]),
        ]

    def __str__(self) -> str:
        return f"BedAssignment({self.bed_id}, {self.assigned_at:%Y-%m-%d})"
