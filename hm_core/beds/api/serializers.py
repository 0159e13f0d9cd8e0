# hm_core/beds/api/serializers.py
from __future__ import annotations

from rest_framework import serializers

from hm_core.beds.constants import DEFAULT_BED_TYPE, BedStatus
from hm_core.beds.models import Bed, Ward


class WardCreateSerializer(serializers.Serializer):
    code = serializers.CharField(max_length=32)
    name = serializers.CharField(max_length=128)
    ward_type = serializers.CharField(max_length=32, required=False, allow_blank=True, default="")
    capacity = serializers.IntegerField(required=False, min_value=0, default=0)


class WardUpdateSerializer(serializers.Serializer):
    name = serializers.CharField(max_length=128, required=False)
    ward_type = serializers.CharField(max_length=32, required=False, allow_blank=True)
    # 0 turns the capacity check off
    capacity = serializers.IntegerField(required=False, min_value=0)
    is_active = serializers.BooleanField(required=False)


class WardSerializer(serializers.ModelSerializer):
    class Meta:
        model = Ward
        fields = [
            "id",
            "tenant_id",
            "facility_id",
            "code",
            "name",
            "ward_type",
            "capacity",
            "is_active",
            "created_at",
            "updated_at",
        ]
        read_only_fields = fields


class BedCreateSerializer(serializers.Serializer):
    ward_id = serializers.UUIDField()
    bed_number = serializers.CharField(max_length=32)
    # Vocabulary is validated by the service (UnknownVocabulary -> 400)
    bed_type = serializers.CharField(max_length=32, required=False, default=DEFAULT_BED_TYPE)
    status = serializers.CharField(max_length=32, required=False, default=BedStatus.AVAILABLE)
    notes = serializers.CharField(required=False, allow_blank=True, default="")


class BedBatchCreateSerializer(serializers.Serializer):
    count = serializers.IntegerField(min_value=1, max_value=100)
    bed_type = serializers.CharField(max_length=32, required=False, default=DEFAULT_BED_TYPE)
    prefix = serializers.CharField(max_length=10, required=False, allow_blank=True, default="B")
    start_number = serializers.IntegerField(required=False, min_value=1, default=1)


class BedStatusInputSerializer(serializers.Serializer):
    status = serializers.CharField(max_length=32)
    notes = serializers.CharField(required=False, allow_blank=True, default="")


class BedStatusRowSerializer(BedStatusInputSerializer):
    bed_id = serializers.UUIDField()


MAX_BULK_STATUS_ROWS = 200


class BulkBedStatusInputSerializer(serializers.Serializer):
    updates = BedStatusRowSerializer(many=True, allow_empty=False)

    def validate_updates(self, value):
        if len(value) > MAX_BULK_STATUS_ROWS:
            raise serializers.ValidationError(f"At most {MAX_BULK_STATUS_ROWS} rows per request.")
        return value


class BedStatusErrorSerializer(serializers.Serializer):
    code = serializers.CharField()
    message = serializers.CharField()


class BulkBedStatusResultSerializer(serializers.Serializer):
    bed_id = serializers.UUIDField()
    success = serializers.BooleanField()
    status = serializers.CharField(allow_null=True)
    error = BedStatusErrorSerializer(allow_null=True)


class BedSerializer(serializers.ModelSerializer):
    ward_id = serializers.UUIDField(read_only=True)
    ward_code = serializers.CharField(source="ward.code", read_only=True)
    ward_name = serializers.CharField(source="ward.name", read_only=True)

    class Meta:
        model = Bed
        fields = [
            "id",
            "tenant_id",
            "facility_id",
            "ward_id",
            "ward_code",
            "ward_name",
            "bed_number",
            "bed_type",
            "status",
            "last_occupied_at",
            "notes",
            "created_at",
            "updated_at",
        ]
        read_only_fields = fields


class WardStatsRowSerializer(serializers.Serializer):
    ward_id = serializers.UUIDField()
    ward_code = serializers.CharField()
    ward_name = serializers.CharField()
    total = serializers.IntegerField()
    occupied = serializers.IntegerField()
    available = serializers.IntegerField()
    occupancy_rate = serializers.FloatField()
    by_status = serializers.DictField(child=serializers.IntegerField())


class HospitalStatsSerializer(serializers.Serializer):
    total = serializers.IntegerField()
    occupied = serializers.IntegerField()
    available = serializers.IntegerField()
    occupancy_rate = serializers.FloatField()
    by_status = serializers.DictField(child=serializers.IntegerField())


class WardStatsResponseSerializer(serializers.Serializer):
    hospital = HospitalStatsSerializer()
    wards = WardStatsRowSerializer(many=True)


class MatrixBedSerializer(serializers.Serializer):
    bed_id = serializers.UUIDField()
    bed_number = serializers.CharField()
    bed_type = serializers.CharField()
    status = serializers.CharField()
    last_occupied_at = serializers.DateTimeField(allow_null=True)


class MatrixWardSerializer(serializers.Serializer):
    ward_id = serializers.UUIDField()
    ward_code = serializers.CharField()
    ward_name = serializers.CharField()
    beds = MatrixBedSerializer(many=True)
