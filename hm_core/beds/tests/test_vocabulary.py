import pytest

from hm_core.beds.vocabulary import (
    allowed_bed_statuses,
    allowed_bed_types,
    normalize,
    validate_bed_status,
    validate_bed_type,
)
from hm_core.common.errors import UnknownVocabulary


def test_normalize():
    assert normalize("  Semi Private ") == "semi_private"
    assert normalize(None) == ""


def test_baseline_vocabularies(settings):
    settings.HM_BED_TYPES_EXTRA = ""
    settings.HM_BED_STATUSES_EXTRA = ""

    assert {"available", "occupied", "maintenance", "cleaning"} == allowed_bed_statuses()
    assert "icu" in allowed_bed_types()


def test_extras_from_comma_separated_setting(settings):
    settings.HM_BED_STATUSES_EXTRA = "reserved, Blocked For Infection"
    settings.HM_BED_TYPES_EXTRA = ["NICU"]

    assert validate_bed_status("Reserved") == "reserved"
    assert validate_bed_status("blocked_for_infection") == "blocked_for_infection"
    assert validate_bed_type("nicu") == "nicu"


def test_unknown_values_carry_allowed_list(settings):
    settings.HM_BED_TYPES_EXTRA = ""

    with pytest.raises(UnknownVocabulary) as exc:
        validate_bed_type("hammock")

    assert exc.value.code == "unknown_vocabulary"
    assert exc.value.http_status == 400
    assert "general" in exc.value.details["allowed"]
