# hm_core/beds/api/views.py
from __future__ import annotations

from drf_spectacular.types import OpenApiTypes
from drf_spectacular.utils import OpenApiParameter, extend_schema
from rest_framework import status, viewsets
from rest_framework.decorators import action
from rest_framework.exceptions import ValidationError as DRFValidationError
from rest_framework.response import Response

from hm_core.beds.api.filters import AvailableBedFilter, BedFilter
from hm_core.beds.api.serializers import (
    BedBatchCreateSerializer,
    BedCreateSerializer,
    BedSerializer,
    BedStatusInputSerializer,
    BulkBedStatusInputSerializer,
    BulkBedStatusResultSerializer,
    MatrixWardSerializer,
    WardCreateSerializer,
    WardSerializer,
    WardStatsResponseSerializer,
    WardUpdateSerializer,
)
from hm_core.beds.models import Bed, Ward
from hm_core.beds.selectors import BedSelectors, WardSelectors
from hm_core.beds.services import BedRegistry, WardService
from hm_core.common.api.pagination import paginate
from hm_core.common.permissions import BedPermission, WardPermission
from hm_core.common.scope import parse_pk, parse_uuid, require_scope
from hm_core.encounters.api.serializers import BedAssignmentSerializer
from hm_core.encounters.selectors import EncounterSelectors


def _actor_id(request) -> int | None:
    user = getattr(request, "user", None)
    return user.id if user and user.is_authenticated else None


class WardViewSet(viewsets.ViewSet):
    permission_classes = [WardPermission]
    serializer_class = WardSerializer
    queryset = Ward.objects.none()
    lookup_value_regex = "[0-9a-fA-F-]{36}"

    @extend_schema(tags=["Wards"], responses={200: WardSerializer(many=True)})
    def list(self, request):
        scope = require_scope(request)
        qs = WardSelectors.list_wards(
            tenant_id=scope.tenant_id,
            facility_id=scope.facility_id,
            include_inactive=request.query_params.get("include_inactive") in ("1", "true", "True"),
        )
        return paginate(request, qs, WardSerializer)

    @extend_schema(tags=["Wards"], responses={200: WardSerializer})
    def retrieve(self, request, pk=None):
        scope = require_scope(request)
        ward = WardSelectors.get_ward(
            tenant_id=scope.tenant_id, facility_id=scope.facility_id, ward_id=parse_pk(pk, entity="Ward")
        )
        return Response(WardSerializer(ward).data, status=status.HTTP_200_OK)

    @extend_schema(tags=["Wards"], request=WardCreateSerializer, responses={201: WardSerializer})
    def create(self, request):
        scope = require_scope(request)
        ser = WardCreateSerializer(data=request.data or {})
        ser.is_valid(raise_exception=True)

        ward = WardService.create_ward(
            tenant_id=scope.tenant_id,
            facility_id=scope.facility_id,
            actor_user_id=_actor_id(request),
            **ser.validated_data,
        )
        return Response(WardSerializer(ward).data, status=status.HTTP_201_CREATED)

    @extend_schema(tags=["Wards"], request=WardUpdateSerializer, responses={200: WardSerializer})
    def partial_update(self, request, pk=None):
        scope = require_scope(request)
        ward_id = parse_pk(pk, entity="Ward")
        ser = WardUpdateSerializer(data=request.data or {})
        ser.is_valid(raise_exception=True)

        ward = WardService.update_ward(
            tenant_id=scope.tenant_id,
            facility_id=scope.facility_id,
            ward_id=ward_id,
            actor_user_id=_actor_id(request),
            **ser.validated_data,
        )
        return Response(WardSerializer(ward).data, status=status.HTTP_200_OK)

    @extend_schema(
        tags=["Wards"],
        request=BedBatchCreateSerializer,
        responses={201: BedSerializer(many=True)},
        description="Create a numbered batch of available beds in this ward.",
    )
    @action(detail=True, methods=["post"], url_path="beds")
    def create_beds(self, request, pk=None):
        scope = require_scope(request)
        ward_id = parse_pk(pk, entity="Ward")
        ser = BedBatchCreateSerializer(data=request.data or {})
        ser.is_valid(raise_exception=True)

        beds = WardService.create_beds(
            tenant_id=scope.tenant_id,
            facility_id=scope.facility_id,
            ward_id=ward_id,
            actor_user_id=_actor_id(request),
            **ser.validated_data,
        )
        return Response(BedSerializer(beds, many=True).data, status=status.HTTP_201_CREATED)

    @extend_schema(
        tags=["Wards"],
        parameters=[
            OpenApiParameter(
                name="ward_id",
                type=OpenApiTypes.UUID,
                location=OpenApiParameter.QUERY,
                required=False,
                description="Restrict the per-ward rows to one ward.",
            ),
        ],
        responses={200: WardStatsResponseSerializer},
    )
    @action(detail=False, methods=["get"], url_path="stats")
    def stats(self, request):
        scope = require_scope(request)

        ward_id = None
        raw = request.query_params.get("ward_id")
        if raw:
            ward_id = parse_uuid(raw)
            if ward_id is None:
                raise DRFValidationError({"detail": "ward_id must be a UUID."})

        rows = WardSelectors.ward_stats(tenant_id=scope.tenant_id, facility_id=scope.facility_id, ward_id=ward_id)
        hospital = WardSelectors.hospital_stats(tenant_id=scope.tenant_id, facility_id=scope.facility_id)
        return Response(
            WardStatsResponseSerializer({"hospital": hospital, "wards": rows}).data,
            status=status.HTTP_200_OK,
        )

    @extend_schema(tags=["Wards"], responses={200: MatrixWardSerializer(many=True)})
    @action(detail=False, methods=["get"], url_path="matrix")
    def matrix(self, request):
        scope = require_scope(request)
        rows = WardSelectors.occupancy_matrix(tenant_id=scope.tenant_id, facility_id=scope.facility_id)
        return Response(MatrixWardSerializer(rows, many=True).data, status=status.HTTP_200_OK)


class BedViewSet(viewsets.ViewSet):
    permission_classes = [BedPermission]
    serializer_class = BedSerializer
    queryset = Bed.objects.none()
    lookup_value_regex = "[0-9a-fA-F-]{36}"

    @extend_schema(
        tags=["Beds"],
        parameters=[
            OpenApiParameter(name="ward", type=OpenApiTypes.UUID, location=OpenApiParameter.QUERY, required=False),
            OpenApiParameter(name="bed_type", type=OpenApiTypes.STR, location=OpenApiParameter.QUERY, required=False),
            OpenApiParameter(name="status", type=OpenApiTypes.STR, location=OpenApiParameter.QUERY, required=False),
        ],
        responses={200: BedSerializer(many=True)},
    )
    def list(self, request):
        scope = require_scope(request)
        filters = BedFilter(request.query_params, queryset=Bed.objects.none()).selector_kwargs()
        qs = BedSelectors.list_beds(tenant_id=scope.tenant_id, facility_id=scope.facility_id, **filters)
        return paginate(request, qs, BedSerializer)

    @extend_schema(tags=["Beds"], responses={200: BedSerializer})
    def retrieve(self, request, pk=None):
        scope = require_scope(request)
        bed = BedSelectors.get_bed(
            tenant_id=scope.tenant_id, facility_id=scope.facility_id, bed_id=parse_pk(pk, entity="Bed")
        )
        return Response(BedSerializer(bed).data, status=status.HTTP_200_OK)

    @extend_schema(tags=["Beds"], request=BedCreateSerializer, responses={201: BedSerializer})
    def create(self, request):
        scope = require_scope(request)
        ser = BedCreateSerializer(data=request.data or {})
        ser.is_valid(raise_exception=True)

        bed = WardService.create_bed(
            tenant_id=scope.tenant_id,
            facility_id=scope.facility_id,
            actor_user_id=_actor_id(request),
            **ser.validated_data,
        )
        return Response(BedSerializer(bed).data, status=status.HTTP_201_CREATED)

    @extend_schema(tags=["Beds"], request=BedStatusInputSerializer, responses={200: BedSerializer})
    @action(detail=True, methods=["post"], url_path="status")
    def set_status(self, request, pk=None):
        scope = require_scope(request)
        ser = BedStatusInputSerializer(data=request.data or {})
        ser.is_valid(raise_exception=True)

        bed_id = parse_pk(pk, entity="Bed")
        BedRegistry.set_status(
            tenant_id=scope.tenant_id,
            facility_id=scope.facility_id,
            bed_id=bed_id,
            status=ser.validated_data["status"],
            notes=ser.validated_data.get("notes", ""),
            actor_user_id=_actor_id(request),
        )
        bed = BedSelectors.get_bed(tenant_id=scope.tenant_id, facility_id=scope.facility_id, bed_id=bed_id)
        return Response(BedSerializer(bed).data, status=status.HTTP_200_OK)

    @extend_schema(
        tags=["Beds"],
        request=BulkBedStatusInputSerializer,
        responses={200: BulkBedStatusResultSerializer(many=True)},
        description="Several status changes at once; one result per row, rejected rows do not undo the rest.",
    )
    @action(detail=False, methods=["post"], url_path="bulk-status")
    def bulk_status(self, request):
        scope = require_scope(request)
        ser = BulkBedStatusInputSerializer(data=request.data or {})
        ser.is_valid(raise_exception=True)

        results = WardService.bulk_set_status(
            tenant_id=scope.tenant_id,
            facility_id=scope.facility_id,
            updates=ser.validated_data["updates"],
            actor_user_id=_actor_id(request),
        )
        return Response(BulkBedStatusResultSerializer(results, many=True).data, status=status.HTTP_200_OK)

    @extend_schema(
        tags=["Beds"],
        parameters=[
            OpenApiParameter(
                name="exclude_ward",
                type=OpenApiTypes.UUID,
                location=OpenApiParameter.QUERY,
                required=False,
                description="Skip beds of this ward (transfer out of the current ward).",
            ),
            OpenApiParameter(name="ward", type=OpenApiTypes.UUID, location=OpenApiParameter.QUERY, required=False),
            OpenApiParameter(name="bed_type", type=OpenApiTypes.STR, location=OpenApiParameter.QUERY, required=False),
        ],
        responses={200: BedSerializer(many=True)},
    )
    @action(detail=False, methods=["get"], url_path="available")
    def available(self, request):
        scope = require_scope(request)
        filters = AvailableBedFilter(request.query_params, queryset=Bed.objects.none()).selector_kwargs()
        qs = BedSelectors.find_available_beds(tenant_id=scope.tenant_id, facility_id=scope.facility_id, **filters)
        return Response(BedSerializer(qs, many=True).data, status=status.HTTP_200_OK)

    @extend_schema(tags=["Beds"], responses={200: BedAssignmentSerializer(many=True)})
    @action(detail=True, methods=["get"], url_path="history")
    def history(self, request, pk=None):
        scope = require_scope(request)
        bed = BedSelectors.get_bed(
            tenant_id=scope.tenant_id, facility_id=scope.facility_id, bed_id=parse_pk(pk, entity="Bed")
        )
        qs = EncounterSelectors.bed_history(tenant_id=scope.tenant_id, facility_id=scope.facility_id, bed_id=bed.id)
        return paginate(request, qs, BedAssignmentSerializer)
