# hm_core/audit/services.py
from __future__ import annotations

from typing import Any, Dict, Optional
from uuid import UUID

from hm_core.audit.models import AuditEvent


class AuditService:
    """
    Central audit writer.
    Runs inside the caller's transaction, so a rolled-back admit leaves no audit row.
    """

    @staticmethod
    def log(
        *,
        event_code: str,
        entity_type: str,
        entity_id: UUID,
        tenant_id: UUID,
        facility_id: UUID,
        actor_user_id: int | None,
        metadata: Optional[Dict[str, Any]] = None,
    ) -> AuditEvent:
        return AuditEvent.objects.create(
            tenant_id=tenant_id,
            facility_id=facility_id,
            event_code=event_code,
            entity_type=entity_type,
            entity_id=entity_id,
            actor_user_id=actor_user_id,
            metadata=metadata or {},
        )
