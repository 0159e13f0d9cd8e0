from django.contrib import admin

from hm_core.beds.models import Bed, Ward


@admin.register(Ward)
class WardAdmin(admin.ModelAdmin):
    list_display = ("code", "name", "ward_type", "capacity", "is_active", "facility_id")
    list_filter = ("is_active", "ward_type")
    search_fields = ("code", "name")
    readonly_fields = ("created_at", "updated_at")


@admin.register(Bed)
class BedAdmin(admin.ModelAdmin):
    list_display = ("bed_number", "ward", "bed_type", "status", "last_occupied_at")
    list_filter = ("status", "bed_type")
    search_fields = ("bed_number", "ward__code", "ward__name")
    # status "occupied" is owned by admit/transfer/discharge
    readonly_fields = ("status", "last_occupied_at", "created_at", "updated_at")
