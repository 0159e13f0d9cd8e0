# hm_core/patients/models.py
from django.db import models

from hm_core.common.models import ScopedModel


class Patient(ScopedModel):
    """
    Local reference to a Patient Directory entry.
    Bed flow only needs identity + display fields; demographics live elsewhere.
    """
    full_name = models.CharField(max_length=255)

    # facility-local medical record number
    mrn = models.CharField(max_length=64)

    class Meta:
        db_table = "patients_patient"
        constraints = [
            models.UniqueConstraint(
                fields=["tenant_id", "facility_id", "mrn"],
                name="uq_patient_scope_mrn",
            ),
        ]

    def __str__(self) -> str:
        return f"{self.full_name} ({self.mrn})"
