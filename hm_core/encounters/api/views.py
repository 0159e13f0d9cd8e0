# hm_core/encounters/api/views.py
from __future__ import annotations

from uuid import UUID

from drf_spectacular.types import OpenApiTypes
from drf_spectacular.utils import OpenApiParameter, extend_schema
from rest_framework import serializers, status, viewsets
from rest_framework.decorators import action
from rest_framework.exceptions import ValidationError as DRFValidationError
from rest_framework.response import Response

from hm_core.admissions.services import PatientFlowService
from hm_core.common.api.pagination import paginate
from hm_core.common.permissions import EncounterPermission
from hm_core.common.scope import parse_pk, parse_uuid, require_scope
from hm_core.encounters.api.serializers import (
    AdmissionStatisticsSerializer,
    AdmitInputSerializer,
    DischargeInputSerializer,
    EncounterSerializer,
    LengthOfStaySerializer,
    TimelineItemSerializer,
    TransferInputSerializer,
)
from hm_core.encounters.models import Encounter, EncounterStatus
from hm_core.encounters.selectors import DISCHARGE_PLANNING_MIN_DAYS, EncounterSelectors


def _actor_id(request) -> int | None:
    user = getattr(request, "user", None)
    return user.id if user and user.is_authenticated else None


def _uuid_param(request, *names: str) -> UUID | None:
    for name in names:
        raw = request.query_params.get(name)
        if raw:
            value = parse_uuid(raw)
            if value is None:
                raise DRFValidationError({"detail": f"{name} must be a UUID."})
            return value
    return None


def _datetime_param(request, name: str):
    raw = request.query_params.get(name)
    if not raw:
        return None
    try:
        return serializers.DateTimeField().to_internal_value(raw)
    except serializers.ValidationError:
        raise DRFValidationError({"detail": f"{name} must be an ISO-8601 datetime."})


def _int_param(request, name: str, *, default: int, min_value: int = 0) -> int:
    raw = request.query_params.get(name)
    if raw in (None, ""):
        return default
    try:
        value = int(raw)
    except (TypeError, ValueError):
        value = None
    if value is None or value < min_value:
        raise DRFValidationError({"detail": f"{name} must be an integer >= {min_value}."})
    return value


class EncounterViewSet(viewsets.ViewSet):
    """
    Inpatient encounters. POST /encounters/ is the admit command;
    transfer/discharge are detail actions. Every write goes through
    PatientFlowService so bed status and encounters change together.
    """
    permission_classes = [EncounterPermission]
    serializer_class = EncounterSerializer
    queryset = Encounter.objects.none()
    lookup_value_regex = "[0-9a-fA-F-]{36}"

    def _get(self, request, pk) -> Encounter:
        scope = require_scope(request)
        return EncounterSelectors.get_encounter(
            tenant_id=scope.tenant_id,
            facility_id=scope.facility_id,
            encounter_id=parse_pk(pk, entity="Encounter"),
        )

    @extend_schema(
        tags=["Encounters"],
        parameters=[
            OpenApiParameter(name="patient", type=OpenApiTypes.UUID, location=OpenApiParameter.QUERY, required=False),
            OpenApiParameter(name="status", type=OpenApiTypes.STR, location=OpenApiParameter.QUERY, required=False),
            OpenApiParameter(name="ward", type=OpenApiTypes.UUID, location=OpenApiParameter.QUERY, required=False),
            OpenApiParameter(name="bed", type=OpenApiTypes.UUID, location=OpenApiParameter.QUERY, required=False),
        ],
        responses={200: EncounterSerializer(many=True)},
    )
    def list(self, request):
        scope = require_scope(request)

        status_q = (request.query_params.get("status") or "").strip().lower() or None
        if status_q and status_q not in EncounterStatus.values:
            raise DRFValidationError({"detail": f"status must be one of {', '.join(EncounterStatus.values)}."})

        qs = EncounterSelectors.list_encounters(
            tenant_id=scope.tenant_id,
            facility_id=scope.facility_id,
            patient_id=_uuid_param(request, "patient", "patient_id"),
            status=status_q,
            ward_id=_uuid_param(request, "ward", "ward_id"),
            bed_id=_uuid_param(request, "bed", "bed_id"),
        )
        return paginate(request, qs, EncounterSerializer)

    @extend_schema(tags=["Encounters"], responses={200: EncounterSerializer})
    def retrieve(self, request, pk=None):
        enc = self._get(request, pk)
        return Response(EncounterSerializer(enc).data, status=status.HTTP_200_OK)

    @extend_schema(
        tags=["Encounters"],
        request=AdmitInputSerializer,
        responses={201: EncounterSerializer},
        description="Admit a patient into an available bed.",
    )
    def create(self, request):
        scope = require_scope(request)

        ser = AdmitInputSerializer(data=request.data or {})
        ser.is_valid(raise_exception=True)

        enc = PatientFlowService.admit(
            tenant_id=scope.tenant_id,
            facility_id=scope.facility_id,
            patient_id=ser.validated_data["patient_id"],
            bed_id=ser.validated_data["bed_id"],
            admitted_at=ser.validated_data.get("admitted_at"),
            metadata=ser.validated_data.get("metadata") or {},
            actor_user_id=_actor_id(request),
        )
        return Response(EncounterSerializer(self._get(request, enc.id)).data, status=status.HTTP_201_CREATED)

    @extend_schema(tags=["Encounters"], request=TransferInputSerializer, responses={200: EncounterSerializer})
    @action(detail=True, methods=["post"], url_path="transfer")
    def transfer(self, request, pk=None):
        scope = require_scope(request)

        ser = TransferInputSerializer(data=request.data or {})
        ser.is_valid(raise_exception=True)

        enc = PatientFlowService.transfer(
            tenant_id=scope.tenant_id,
            facility_id=scope.facility_id,
            encounter_id=parse_pk(pk, entity="Encounter"),
            target_bed_id=ser.validated_data["target_bed_id"],
            reason=ser.validated_data["reason"],
            actor_user_id=_actor_id(request),
        )
        return Response(EncounterSerializer(self._get(request, enc.id)).data, status=status.HTTP_200_OK)

    @extend_schema(tags=["Encounters"], request=DischargeInputSerializer, responses={200: EncounterSerializer})
    @action(detail=True, methods=["post"], url_path="discharge")
    def discharge(self, request, pk=None):
        scope = require_scope(request)

        ser = DischargeInputSerializer(data=request.data or {})
        ser.is_valid(raise_exception=True)

        enc = PatientFlowService.discharge(
            tenant_id=scope.tenant_id,
            facility_id=scope.facility_id,
            encounter_id=parse_pk(pk, entity="Encounter"),
            discharged_at=ser.validated_data.get("discharged_at"),
            metadata=ser.to_metadata(),
            actor_user_id=_actor_id(request),
        )
        return Response(EncounterSerializer(self._get(request, enc.id)).data, status=status.HTTP_200_OK)

    @extend_schema(tags=["Encounters"], responses={200: TimelineItemSerializer(many=True)})
    @action(detail=True, methods=["get"], url_path="timeline")
    def timeline(self, request, pk=None):
        scope = require_scope(request)
        enc = self._get(request, pk)

        items = EncounterSelectors.timeline_items(
            tenant_id=scope.tenant_id,
            facility_id=scope.facility_id,
            encounter_id=enc.id,
        )
        return Response(
            {"encounter_id": str(enc.id), "items": TimelineItemSerializer(items, many=True).data},
            status=status.HTTP_200_OK,
        )

    @extend_schema(
        tags=["Encounters"],
        parameters=[
            OpenApiParameter(name="ward", type=OpenApiTypes.UUID, location=OpenApiParameter.QUERY, required=False),
        ],
        responses={200: EncounterSerializer(many=True)},
    )
    @action(detail=False, methods=["get"], url_path="census")
    def census(self, request):
        scope = require_scope(request)
        qs = EncounterSelectors.census(
            tenant_id=scope.tenant_id,
            facility_id=scope.facility_id,
            ward_id=_uuid_param(request, "ward", "ward_id"),
        )
        return paginate(request, qs, EncounterSerializer)

    @extend_schema(
        tags=["Encounters"],
        parameters=[
            OpenApiParameter(name="start", type=OpenApiTypes.DATETIME, location=OpenApiParameter.QUERY, required=False),
            OpenApiParameter(name="end", type=OpenApiTypes.DATETIME, location=OpenApiParameter.QUERY, required=False),
        ],
        responses={200: LengthOfStaySerializer},
    )
    @action(detail=False, methods=["get"], url_path="length-of-stay")
    def length_of_stay(self, request):
        scope = require_scope(request)
        start = _datetime_param(request, "start")
        end = _datetime_param(request, "end")

        days = EncounterSelectors.average_length_of_stay(
            tenant_id=scope.tenant_id,
            facility_id=scope.facility_id,
            start=start,
            end=end,
        )
        return Response(
            LengthOfStaySerializer({"start": start, "end": end, "average_length_of_stay_days": days}).data,
            status=status.HTTP_200_OK,
        )

    @extend_schema(
        tags=["Encounters"],
        parameters=[
            OpenApiParameter(name="start", type=OpenApiTypes.DATETIME, location=OpenApiParameter.QUERY, required=False),
            OpenApiParameter(name="end", type=OpenApiTypes.DATETIME, location=OpenApiParameter.QUERY, required=False),
        ],
        responses={200: AdmissionStatisticsSerializer},
        description="Admission/discharge counts and mean stay. Defaults to the last 30 days.",
    )
    @action(detail=False, methods=["get"], url_path="statistics")
    def statistics(self, request):
        scope = require_scope(request)
        start = _datetime_param(request, "start")
        end = _datetime_param(request, "end")
        if start and end and start > end:
            raise DRFValidationError({"detail": "start must not be after end."})

        stats = EncounterSelectors.admission_statistics(
            tenant_id=scope.tenant_id,
            facility_id=scope.facility_id,
            start=start,
            end=end,
        )
        return Response(AdmissionStatisticsSerializer(stats).data, status=status.HTTP_200_OK)

    @extend_schema(
        tags=["Encounters"],
        parameters=[
            OpenApiParameter(name="min_days", type=OpenApiTypes.INT, location=OpenApiParameter.QUERY, required=False),
            OpenApiParameter(name="ward", type=OpenApiTypes.UUID, location=OpenApiParameter.QUERY, required=False),
        ],
        responses={200: EncounterSerializer(many=True)},
    )
    @action(detail=False, methods=["get"], url_path="discharge-planning")
    def discharge_planning(self, request):
        scope = require_scope(request)
        qs = EncounterSelectors.discharge_planning(
            tenant_id=scope.tenant_id,
            facility_id=scope.facility_id,
            min_days=_int_param(request, "min_days", default=DISCHARGE_PLANNING_MIN_DAYS),
            ward_id=_uuid_param(request, "ward", "ward_id"),
        )
        return paginate(request, qs, EncounterSerializer)
