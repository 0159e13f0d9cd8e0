import pytest

from hm_core.admissions.services import PatientFlowService
from hm_core.common import events
from hm_core.common.errors import BedNotAvailable


@pytest.fixture
def received(monkeypatch):
    got = []
    for name in ("encounter.admitted", "encounter.transferred", "encounter.discharged"):
        monkeypatch.setitem(events._registry, name, [lambda payload, name=name: got.append((name, payload))])
    return got


@pytest.mark.django_db
def test_events_are_published_after_commit(tenant_id, facility_id, patient, make_bed, received, django_capture_on_commit_callbacks):
    b1, b2 = make_bed("A-1", bed_type="icu"), make_bed("A-2")

    with django_capture_on_commit_callbacks(execute=False) as callbacks:
        enc = PatientFlowService.admit(tenant_id=tenant_id, facility_id=facility_id, patient_id=patient.id, bed_id=b1.id)

    # nothing delivered until the transaction commits
    assert received == []
    assert len(callbacks) == 1
    callbacks[0]()

    name, payload = received[0]
    assert name == "encounter.admitted"
    assert payload["encounter_id"] == str(enc.id)
    assert payload["bed_type"] == "icu"

    with django_capture_on_commit_callbacks(execute=True):
        PatientFlowService.transfer(
            tenant_id=tenant_id, facility_id=facility_id, encounter_id=enc.id, target_bed_id=b2.id, reason="step down"
        )
        PatientFlowService.discharge(tenant_id=tenant_id, facility_id=facility_id, encounter_id=enc.id)

    assert [n for n, _ in received] == ["encounter.admitted", "encounter.transferred", "encounter.discharged"]
    assert received[1][1]["from_bed_id"] == str(b1.id)
    assert received[1][1]["reason"] == "step down"
    assert received[2][1]["bed_id"] == str(b2.id)


@pytest.mark.django_db
def test_rejected_operation_publishes_nothing(tenant_id, facility_id, make_patient, make_bed, received, django_capture_on_commit_callbacks):
    bed = make_bed("A-1", status="maintenance")

    with django_capture_on_commit_callbacks(execute=True) as callbacks:
        with pytest.raises(BedNotAvailable):
            PatientFlowService.admit(
                tenant_id=tenant_id, facility_id=facility_id, patient_id=make_patient().id, bed_id=bed.id
            )

    assert callbacks == []
    assert received == []
