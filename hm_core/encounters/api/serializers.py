# hm_core/encounters/api/serializers.py
from __future__ import annotations

from rest_framework import serializers

from hm_core.encounters.models import BedAssignment, Encounter


class AdmitInputSerializer(serializers.Serializer):
    patient_id = serializers.UUIDField()
    bed_id = serializers.UUIDField()
    admitted_at = serializers.DateTimeField(required=False, allow_null=True)
    # admission type, priority, diagnosis, ... (stored as-is)
    metadata = serializers.DictField(required=False, default=dict)


class TransferInputSerializer(serializers.Serializer):
    target_bed_id = serializers.UUIDField()
    # Recorded on the TRANSFERRED history entry and the released assignment.
    reason = serializers.CharField(max_length=1000, allow_blank=False, trim_whitespace=True)


class DischargeInputSerializer(serializers.Serializer):
    discharged_at = serializers.DateTimeField(required=False, allow_null=True)
    discharge_type = serializers.CharField(max_length=64, required=False, allow_blank=True)
    summary = serializers.CharField(required=False, allow_blank=True)
    condition = serializers.CharField(max_length=255, required=False, allow_blank=True)
    follow_up = serializers.CharField(required=False, allow_blank=True)
    notes = serializers.CharField(required=False, allow_blank=True)

    def to_metadata(self) -> dict:
        data = dict(self.validated_data)
        data.pop("discharged_at", None)
        return {k: v for k, v in data.items() if v not in (None, "")}


class EncounterSerializer(serializers.ModelSerializer):
    patient_name = serializers.CharField(source="patient.full_name", read_only=True)
    bed_number = serializers.CharField(source="bed.bed_number", read_only=True, default=None)
    ward_id = serializers.UUIDField(source="bed.ward_id", read_only=True, default=None)

    class Meta:
        model = Encounter
        fields = [
            "id",
            "tenant_id",
            "facility_id",
            "encounter_number",
            "patient_id",
            "patient_name",
            "bed_id",
            "bed_number",
            "ward_id",
            "status",
            "admitted_at",
            "discharged_at",
            "admission_metadata",
            "discharge_metadata",
            "admitted_by_id",
            "discharged_by_id",
            "created_at",
            "updated_at",
        ]
        read_only_fields = fields


class BedAssignmentSerializer(serializers.ModelSerializer):
    encounter_number = serializers.CharField(source="encounter.encounter_number", read_only=True)
    patient_id = serializers.UUIDField(source="encounter.patient_id", read_only=True)
    patient_name = serializers.CharField(source="encounter.patient.full_name", read_only=True)

    class Meta:
        model = BedAssignment
        fields = [
            "id",
            "encounter_id",
            "encounter_number",
            "patient_id",
            "patient_name",
            "bed_id",
            "assigned_at",
            "released_at",
            "assignment_notes",
            "release_notes",
            "assigned_by_id",
            "released_by_id",
        ]
        read_only_fields = fields


class TimelineItemSerializer(serializers.Serializer):
    type = serializers.CharField()
    id = serializers.CharField()
    code = serializers.CharField()
    title = serializers.CharField(allow_blank=True)
    at = serializers.DateTimeField()
    meta = serializers.DictField()
    actor_user_id = serializers.IntegerField(allow_null=True)


class LengthOfStaySerializer(serializers.Serializer):
    start = serializers.DateTimeField(allow_null=True)
    end = serializers.DateTimeField(allow_null=True)
    average_length_of_stay_days = serializers.FloatField()


class AdmissionStatisticsSerializer(serializers.Serializer):
    start = serializers.DateTimeField()
    end = serializers.DateTimeField()
    total_admissions = serializers.IntegerField()
    total_discharges = serializers.IntegerField()
    average_length_of_stay_days = serializers.FloatField()
