# hm_core/audit/api/views.py
from __future__ import annotations

import django_filters
from django_filters.utils import translate_validation
from drf_spectacular.utils import extend_schema
from rest_framework import status, viewsets
from rest_framework.permissions import IsAuthenticated
from rest_framework.response import Response

from hm_core.audit.api.serializers import AuditEventSerializer
from hm_core.audit.models import AuditEvent
from hm_core.audit.selectors import list_audit_events
from hm_core.common.scope import require_scope

MAX_AUDIT_ROWS = 500


class AuditEventFilter(django_filters.FilterSet):
    entity_type = django_filters.CharFilter()
    entity_id = django_filters.UUIDFilter()
    event_code = django_filters.CharFilter()
    limit = django_filters.NumberFilter(method="noop", min_value=1)

    class Meta:
        model = AuditEvent
        fields = ["entity_type", "entity_id", "event_code"]

    def noop(self, queryset, name, value):
        return queryset


class AuditEventViewSet(viewsets.GenericViewSet):
    """
    Who changed which bed/encounter, newest first.
    Rows come from AuditService.log inside the writing transaction.
    """
    permission_classes = [IsAuthenticated]

    serializer_class = AuditEventSerializer
    queryset = AuditEvent.objects.none()
    filterset_class = AuditEventFilter

    @extend_schema(tags=["Audit"], responses={200: AuditEventSerializer(many=True)})
    def list(self, request):
        scope = require_scope(request)

        f = AuditEventFilter(request.query_params, queryset=AuditEvent.objects.none())
        if not f.is_valid():
            raise translate_validation(f.errors)
        data = f.form.cleaned_data

        qs = list_audit_events(
            tenant_id=scope.tenant_id,
            facility_id=scope.facility_id,
            entity_type=data.get("entity_type") or None,
            entity_id=data.get("entity_id"),
            event_code=data.get("event_code") or None,
        )
        limit = min(int(data.get("limit") or 200), MAX_AUDIT_ROWS)
        return Response(AuditEventSerializer(qs[:limit], many=True).data, status=status.HTTP_200_OK)
