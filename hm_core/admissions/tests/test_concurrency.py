import threading

import pytest
from django.db import connections

from hm_core.admissions.services import PatientFlowService
from hm_core.beds.constants import BedStatus
from hm_core.beds.models import Bed
from hm_core.common.errors import BedNotAvailable, PatientAlreadyAdmitted
from hm_core.encounters.ledger import EncounterLedger
from hm_core.encounters.models import Encounter, EncounterStatus
from hm_core.tests.helpers import assert_flow_invariants


@pytest.mark.django_db
def test_stale_bed_read_is_caught_by_open_encounter_constraint(tenant_id, facility_id, make_patient, make_bed, monkeypatch):
    """
    The loser's precondition read still says "available"; the partial unique
    index on open encounters per bed decides, and the loser gets bed_not_available.
    """
    bed = make_bed("B-05")
    stale = Bed.objects.get(id=bed.id)

    PatientFlowService.admit(tenant_id=tenant_id, facility_id=facility_id, patient_id=make_patient("winner").id, bed_id=bed.id)

    monkeypatch.setattr(PatientFlowService, "_lock_bed", staticmethod(lambda **kwargs: stale))
    loser = make_patient("loser")

    with pytest.raises(BedNotAvailable):
        PatientFlowService.admit(tenant_id=tenant_id, facility_id=facility_id, patient_id=loser.id, bed_id=bed.id)

    assert not Encounter.objects.filter(patient=loser).exists()
    bed.refresh_from_db()
    assert bed.status == BedStatus.OCCUPIED
    assert_flow_invariants(tenant_id, facility_id)


@pytest.mark.django_db
def test_stale_patient_read_is_caught_by_open_encounter_constraint(tenant_id, facility_id, patient, make_bed, monkeypatch):
    b1, b2 = make_bed("A-1"), make_bed("A-2")
    PatientFlowService.admit(tenant_id=tenant_id, facility_id=facility_id, patient_id=patient.id, bed_id=b1.id)

    real_lookup = EncounterLedger.get_open_encounter_for_patient
    calls = {"n": 0}

    def first_call_misses(**kwargs):
        calls["n"] += 1
        if calls["n"] == 1:
            return None
        return real_lookup(**kwargs)

    monkeypatch.setattr(EncounterLedger, "get_open_encounter_for_patient", staticmethod(first_call_misses))

    with pytest.raises(PatientAlreadyAdmitted):
        PatientFlowService.admit(tenant_id=tenant_id, facility_id=facility_id, patient_id=patient.id, bed_id=b2.id)

    b2.refresh_from_db()
    assert b2.status == BedStatus.AVAILABLE
    assert Encounter.objects.filter(status=EncounterStatus.OPEN).count() == 1


@pytest.mark.django_db(transaction=True)
def test_two_threads_admit_into_one_bed(tenant_id, facility_id, make_patient, make_bed):
    bed = make_bed("B-05")
    patients = [make_patient("First"), make_patient("Second")]
    barrier = threading.Barrier(len(patients))
    outcomes = []

    def worker(patient_id):
        try:
            barrier.wait()
            PatientFlowService.admit(tenant_id=tenant_id, facility_id=facility_id, patient_id=patient_id, bed_id=bed.id)
            outcomes.append("ok")
        except BedNotAvailable:
            outcomes.append("bed_not_available")
        except Exception as e:  # noqa: BLE001 - surfaced through the assertion below
            outcomes.append(f"{type(e).__name__}:{e}")
        finally:
            connections.close_all()

    threads = [threading.Thread(target=worker, args=(p.id,)) for p in patients]
    for t in threads:
        t.start()
    for t in threads:
        t.join()

    assert sorted(outcomes) == ["bed_not_available", "ok"]
    assert Encounter.objects.filter(bed=bed, status=EncounterStatus.OPEN).count() == 1
    assert_flow_invariants(tenant_id, facility_id)


@pytest.mark.django_db(transaction=True)
def test_crossing_transfers_do_not_deadlock(tenant_id, facility_id, make_patient, make_bed):
    a, b = make_bed("A-1"), make_bed("A-2")
    free = [make_bed("A-3"), make_bed("A-4")]
    e1 = PatientFlowService.admit(tenant_id=tenant_id, facility_id=facility_id, patient_id=make_patient("1").id, bed_id=a.id)
    e2 = PatientFlowService.admit(tenant_id=tenant_id, facility_id=facility_id, patient_id=make_patient("2").id, bed_id=b.id)
    barrier = threading.Barrier(2)
    errors = []

    def worker(encounter_id, target_id):
        try:
            barrier.wait()
            PatientFlowService.transfer(
                tenant_id=tenant_id, facility_id=facility_id, encounter_id=encounter_id, target_bed_id=target_id
            )
        except Exception as e:  # noqa: BLE001 - surfaced through the assertion below
            errors.append(e)
        finally:
            connections.close_all()

    threads = [
        threading.Thread(target=worker, args=(e1.id, free[0].id)),
        threading.Thread(target=worker, args=(e2.id, free[1].id)),
    ]
    for t in threads:
        t.start()
    for t in threads:
        t.join()

    assert errors == []
    assert_flow_invariants(tenant_id, facility_id)
