# hm_core/beds/vocabulary.py
"""
Open-vocabulary fields for beds.

Bed type and bed status are plain strings rather than TextChoices: the
allow-list is the baseline set plus whatever the deployment adds in settings.
Values are normalised (trimmed, lower-case, spaces -> underscores) before
being checked, so "Semi Private" and "semi_private" are the same type.
"""
from __future__ import annotations

from django.conf import settings

from hm_core.beds.constants import BASELINE_BED_TYPES, BedStatus
from hm_core.common.errors import UnknownVocabulary


def normalize(value) -> str:
    return "_".join(str(value or "").strip().lower().split())


def _extras(setting_name: str) -> tuple[str, ...]:
    raw = getattr(settings, setting_name, ()) or ()
    if isinstance(raw, str):
        raw = raw.split(",")
    return tuple(v for v in (normalize(x) for x in raw) if v)


def allowed_bed_statuses() -> frozenset[str]:
    return frozenset(BedStatus.BASELINE + _extras("HM_BED_STATUSES_EXTRA"))


def allowed_bed_types() -> frozenset[str]:
    return frozenset(BASELINE_BED_TYPES + _extras("HM_BED_TYPES_EXTRA"))


def validate_bed_status(value) -> str:
    status = normalize(value)
    if status not in allowed_bed_statuses():
        raise UnknownVocabulary(
            f"Unknown bed status '{value}'.",
            field="status",
            value=value,
            allowed=",".join(sorted(allowed_bed_statuses())),
        )
    return status


def validate_bed_type(value) -> str:
    bed_type = normalize(value)
    if bed_type not in allowed_bed_types():
        raise UnknownVocabulary(
            f"Unknown bed type '{value}'.",
            field="bed_type",
            value=value,
            allowed=",".join(sorted(allowed_bed_types())),
        )
    return bed_type
