# hm_core/common/scope.py
from __future__ import annotations

from dataclasses import dataclass
from typing import Optional
from uuid import UUID

from rest_framework.exceptions import ValidationError

from hm_core.common.errors import NotFound


@dataclass(frozen=True)
class Scope:
    tenant_id: UUID
    facility_id: UUID


MISSING_SCOPE_MSG = "Missing scope headers. Provide X-Tenant-Id and X-Facility-Id."
INVALID_SCOPE_MSG = "Invalid scope headers. Provide valid UUIDs for X-Tenant-Id and X-Facility-Id."

# META keys (DRF test client and WSGI both expose headers as HTTP_*)
TENANT_META_KEYS = ("HTTP_X_TENANT_ID", "HTTP_X_HM_TENANT_ID")
FACILITY_META_KEYS = ("HTTP_X_FACILITY_ID", "HTTP_X_HM_FACILITY_ID")


def parse_uuid(value) -> Optional[UUID]:
    try:
        return UUID(str(value))
    except (TypeError, ValueError, AttributeError):
        return None


def parse_pk(value, *, entity: str) -> UUID:
    """Detail-route id. Anything that is not a UUID cannot name a row: 404."""
    pk = parse_uuid(value)
    if pk is None:
        raise NotFound(f"{entity} not found.", entity=entity, id=value)
    return pk


def _meta_first(request, keys: tuple[str, ...]) -> Optional[str]:
    meta = getattr(request, "META", {}) or {}
    for k in keys:
        v = meta.get(k)
        if v:
            return v
    return None


def read_scope_headers(request) -> tuple[Optional[str], Optional[str]]:
    """Raw (tenant, facility) header values, either may be None."""
    return _meta_first(request, TENANT_META_KEYS), _meta_first(request, FACILITY_META_KEYS)


def resolve_scope(request) -> Optional[Scope]:
    """
    Returns the request scope.
    - middleware already attached one -> reuse it
    - no headers at all -> None
    - partial or non-UUID headers -> 400 ValidationError
    """
    attached = getattr(request, "scope", None)
    if isinstance(attached, Scope):
        return attached

    tenant_raw, facility_raw = read_scope_headers(request)
    if not tenant_raw and not facility_raw:
        return None
    if not tenant_raw or not facility_raw:
        raise ValidationError({"detail": MISSING_SCOPE_MSG})

    tenant_id = parse_uuid(tenant_raw)
    facility_id = parse_uuid(facility_raw)
    if tenant_id is None or facility_id is None:
        raise ValidationError({"detail": INVALID_SCOPE_MSG})

    return Scope(tenant_id=tenant_id, facility_id=facility_id)


def require_scope(request) -> Scope:
    scope = resolve_scope(request)
    if scope is None:
        raise ValidationError({"detail": MISSING_SCOPE_MSG})
    return scope
