# hm_core/audit/models.py
from django.core.exceptions import ValidationError
from django.db import models

from hm_core.common.models import ScopedModel


class AuditEvent(ScopedModel):
    """
    Immutable audit record for bed and patient-flow writes.
    actor_user_id is a plain id: the user directory lives outside this core.
    """
    event_code = models.CharField(max_length=128, db_index=True)  # e.g. "encounter.transferred"
    entity_type = models.CharField(max_length=64, db_index=True)  # "Bed" | "Ward" | "Encounter"
    entity_id = models.UUIDField(db_index=True)

    actor_user_id = models.BigIntegerField(null=True, blank=True, db_index=True)

    occurred_at = models.DateTimeField(auto_now_add=True, db_index=True)
    metadata = models.JSONField(default=dict, blank=True)

    class Meta:
        db_table = "audit_audit_event"
        indexes = [
            models.Index(fields=["tenant_id", "facility_id", "occurred_at"]),
            models.Index(fields=["entity_type", "entity_id"]),
        ]

    def __str__(self) -> str:
        return f"{self.event_code} {self.entity_type}:{self.entity_id}"

    def save(self, *args, **kwargs):
        if not self._state.adding:
            raise ValidationError("AuditEvent is immutable and cannot be modified once created.")
        return super().save(*args, **kwargs)
