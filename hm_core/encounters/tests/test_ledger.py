import re
import uuid

import pytest
from django.core.exceptions import ValidationError

from hm_core.common.errors import DuplicateAdmission, EncounterNotOpen
from hm_core.encounters.history import emit_event
from hm_core.encounters.ledger import EncounterLedger
from hm_core.encounters.models import BedAssignment, EncounterEvent, EncounterStatus


@pytest.mark.django_db
def test_create_encounter_opens_assignment_and_history(tenant_id, facility_id, patient, make_bed):
    bed = make_bed("A-101")

    enc = EncounterLedger.create_encounter(
        tenant_id=tenant_id,
        facility_id=facility_id,
        patient_id=patient.id,
        bed_id=bed.id,
        metadata={"admission_type": "emergency"},
        actor_user_id=7,
    )

    assert enc.status == EncounterStatus.OPEN
    assert enc.bed_id == bed.id
    assert enc.admission_metadata == {"admission_type": "emergency"}
    assert re.fullmatch(r"IPD-\d{8}-[0-9A-F]{6}", enc.encounter_number)

    assignment = BedAssignment.objects.get(encounter=enc)
    assert assignment.bed_id == bed.id
    assert assignment.released_at is None

    [ev] = EncounterEvent.objects.filter(encounter_id=enc.id)
    assert ev.code == "ADMITTED"
    assert ev.actor_user_id == 7


@pytest.mark.django_db
def test_encounter_number_prefix_is_configurable(tenant_id, facility_id, patient, make_bed, settings):
    settings.HM_ENCOUNTER_NUMBER_PREFIX = "ADM"
    enc = EncounterLedger.create_encounter(
        tenant_id=tenant_id, facility_id=facility_id, patient_id=patient.id, bed_id=make_bed("A-1").id
    )
    assert enc.encounter_number.startswith("ADM-")


@pytest.mark.django_db
def test_second_open_encounter_for_patient_is_duplicate(tenant_id, facility_id, patient, make_bed):
    EncounterLedger.create_encounter(
        tenant_id=tenant_id, facility_id=facility_id, patient_id=patient.id, bed_id=make_bed("A-1").id
    )

    with pytest.raises(DuplicateAdmission):
        EncounterLedger.create_encounter(
            tenant_id=tenant_id, facility_id=facility_id, patient_id=patient.id, bed_id=make_bed("A-2").id
        )


@pytest.mark.django_db
def test_open_lookups(tenant_id, facility_id, patient, make_bed):
    bed = make_bed("A-1")
    assert EncounterLedger.get_open_encounter_for_bed(tenant_id=tenant_id, facility_id=facility_id, bed_id=bed.id) is None

    enc = EncounterLedger.create_encounter(
        tenant_id=tenant_id, facility_id=facility_id, patient_id=patient.id, bed_id=bed.id
    )

    assert EncounterLedger.get_open_encounter_for_bed(tenant_id=tenant_id, facility_id=facility_id, bed_id=bed.id) == enc
    assert (
        EncounterLedger.get_open_encounter_for_patient(tenant_id=tenant_id, facility_id=facility_id, patient_id=patient.id)
        == enc
    )


@pytest.mark.django_db
def test_repoint_moves_pointer_and_records_reason(tenant_id, facility_id, patient, make_bed):
    b1, b2 = make_bed("A-1"), make_bed("A-2")
    enc = EncounterLedger.create_encounter(tenant_id=tenant_id, facility_id=facility_id, patient_id=patient.id, bed_id=b1.id)

    EncounterLedger.repoint_encounter(encounter=enc, new_bed_id=b2.id, reason="needs isolation")

    enc.refresh_from_db()
    assert enc.bed_id == b2.id

    old, new = BedAssignment.objects.filter(encounter=enc).order_by("assigned_at", "created_at")
    assert old.bed_id == b1.id and old.released_at is not None
    assert old.release_notes == "needs isolation"
    assert new.bed_id == b2.id and new.released_at is None

    transferred = EncounterEvent.objects.get(encounter_id=enc.id, code="TRANSFERRED")
    assert transferred.meta == {"from_bed_id": str(b1.id), "to_bed_id": str(b2.id), "reason": "needs isolation"}


@pytest.mark.django_db
def test_close_encounter_is_final(tenant_id, facility_id, patient, make_bed):
    b1, b2 = make_bed("A-1"), make_bed("A-2")
    enc = EncounterLedger.create_encounter(tenant_id=tenant_id, facility_id=facility_id, patient_id=patient.id, bed_id=b1.id)

    EncounterLedger.close_encounter(encounter=enc, metadata={"discharge_type": "routine"}, actor_user_id=3)

    enc.refresh_from_db()
    assert enc.status == EncounterStatus.DISCHARGED
    assert enc.discharged_at is not None
    assert enc.discharged_by_id == 3
    assert enc.bed_id == b1.id  # kept as historical pointer
    assert not BedAssignment.objects.filter(encounter=enc, released_at__isnull=True).exists()

    with pytest.raises(EncounterNotOpen):
        EncounterLedger.close_encounter(encounter=enc)
    with pytest.raises(EncounterNotOpen):
        EncounterLedger.repoint_encounter(encounter=enc, new_bed_id=b2.id)


@pytest.mark.django_db
def test_emit_event_is_idempotent_and_immutable(tenant_id, facility_id):
    encounter_id = uuid.uuid4()
    kwargs = dict(
        tenant_id=tenant_id,
        facility_id=facility_id,
        encounter_id=encounter_id,
        event_key="ADMITTED:x",
        code="ADMITTED",
    )

    first = emit_event(**kwargs)
    again = emit_event(**kwargs, title="ignored")

    assert first.id == again.id
    assert EncounterEvent.objects.filter(encounter_id=encounter_id).count() == 1

    first.title = "changed"
    with pytest.raises(ValidationError):
        first.save()
    with pytest.raises(ValidationError):
        first.delete()
