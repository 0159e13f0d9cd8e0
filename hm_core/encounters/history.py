# hm_core/encounters/history.py
from __future__ import annotations

from typing import Any, Dict, Optional

from django.utils.timezone import now

from hm_core.encounters.models import EncounterEvent


def emit_event(
    *,
    tenant_id,
    facility_id,
    encounter_id,
    event_key: str,
    code: str,
    title: str = "",
    timestamp=None,
    meta: Optional[Dict[str, Any]] = None,
    actor_user_id: int | None = None,
) -> EncounterEvent:
    """
    Idempotent event write, inside the caller's transaction.

    If the surrounding admit/transfer/discharge rolls back, the event row rolls
    back with it (no "ghost history"). Re-emitting the same event_key returns
    the existing row unchanged.
    """
    if timestamp is None:
        timestamp = now()
    if meta is None:
        meta = {}

    event, _ = EncounterEvent.objects.get_or_create(
        tenant_id=tenant_id,
        facility_id=facility_id,
        encounter_id=encounter_id,
        event_key=event_key,
        defaults={
            "code": code,
            "title": title,
            "timestamp": timestamp,
            "meta": meta,
            "actor_user_id": actor_user_id,
        },
    )
    return event
