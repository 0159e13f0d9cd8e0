# hm_core/tests/helpers.py
from hm_core.beds.constants import BedStatus
from hm_core.beds.models import Bed
from hm_core.encounters.models import BedAssignment, Encounter, EncounterStatus


def scoped(tenant_id, facility_id):
    return {
        "HTTP_X_TENANT_ID": str(tenant_id),
        "HTTP_X_FACILITY_ID": str(facility_id),
    }


def assert_flow_invariants(tenant_id, facility_id):
    """
    - a bed is occupied iff exactly one open encounter points at it
    - a patient has at most one open encounter
    - every open encounter has exactly one unreleased assignment, on its bed
    """
    open_encs = list(
        Encounter.objects.filter(tenant_id=tenant_id, facility_id=facility_id, status=EncounterStatus.OPEN)
    )

    for bed in Bed.objects.filter(tenant_id=tenant_id, facility_id=facility_id):
        holders = [e for e in open_encs if e.bed_id == bed.id]
        if bed.status == BedStatus.OCCUPIED:
            assert len(holders) == 1, f"occupied bed {bed.bed_number} has {len(holders)} open encounters"
        else:
            assert holders == [], f"{bed.status} bed {bed.bed_number} has an open encounter"

    patient_ids = [e.patient_id for e in open_encs]
    assert len(patient_ids) == len(set(patient_ids)), "patient with more than one open encounter"

    for enc in open_encs:
        current = list(BedAssignment.objects.filter(encounter=enc, released_at__isnull=True))
        assert len(current) == 1
        assert current[0].bed_id == enc.bed_id
