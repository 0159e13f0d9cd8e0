from __future__ import annotations

from django.http import JsonResponse
from django.utils.deprecation import MiddlewareMixin

from hm_core.common.api.exceptions import build_error_envelope
from hm_core.common.scope import (
    INVALID_SCOPE_MSG,
    MISSING_SCOPE_MSG,
    Scope,
    parse_uuid,
    read_scope_headers,
)


class TenantFacilityScopeMiddleware(MiddlewareMixin):
    """
    Enforces tenant/facility scope for authenticated API requests.

    Behavior:
      - Only /api/* paths are enforced; docs/schema/admin are public.
      - Unauthenticated requests pass through (DRF answers 401/403 itself).
      - Missing or partial headers -> 400, non-UUID values -> 400.
      - On success -> attaches request.scope, request.tenant_id, request.facility_id

    Facility membership is owned by the identity provider, not checked here.
    """

    ENFORCED_PREFIX = "/api/"

    PUBLIC_PATH_PREFIXES = (
        "/admin/",
        "/api/docs/",
        "/api/schema/",
    )

    ALLOW_NO_SCOPE_EXACT_PATHS = (
        "/api/v1/",
        "/api/",
    )

    def _json_error(self, request, *, message: str) -> JsonResponse:
        return JsonResponse(
            build_error_envelope(
                request=request,
                code="validation_error",
                message=message,
                details=None,
            ),
            status=400,
        )

    def process_request(self, request):
        request.scope = None
        request.tenant_id = None
        request.facility_id = None

        path = getattr(request, "path", "") or ""

        if any(path.startswith(p) for p in self.PUBLIC_PATH_PREFIXES):
            return None
        if not path.startswith(self.ENFORCED_PREFIX):
            return None
        if path in self.ALLOW_NO_SCOPE_EXACT_PATHS:
            return None

        user = getattr(request, "user", None)
        if not user or not user.is_authenticated:
            return None

        tenant_raw, facility_raw = read_scope_headers(request)
        if not tenant_raw or not facility_raw:
            return self._json_error(request, message=MISSING_SCOPE_MSG)

        tenant_id = parse_uuid(tenant_raw)
        facility_id = parse_uuid(facility_raw)
        if tenant_id is None or facility_id is None:
            return self._json_error(request, message=INVALID_SCOPE_MSG)

        request.scope = Scope(tenant_id=tenant_id, facility_id=facility_id)
        request.tenant_id = tenant_id
        request.facility_id = facility_id
        return None
