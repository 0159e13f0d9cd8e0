# hm_core/encounters/admin.py
from __future__ import annotations

from django.contrib import admin

from hm_core.encounters.models import BedAssignment, Encounter, EncounterEvent


class _ReadOnlyAdmin(admin.ModelAdmin):
    # Written only by admit/transfer/discharge
    def has_add_permission(self, request):
        return False

    def has_change_permission(self, request, obj=None):
        return False

    def has_delete_permission(self, request, obj=None):
        return False


@admin.register(Encounter)
class EncounterAdmin(_ReadOnlyAdmin):
    list_display = (
        "encounter_number",
        "patient",
        "bed",
        "status",
        "admitted_at",
        "discharged_at",
        "facility_id",
    )
    list_filter = ("status",)
    search_fields = ("encounter_number", "patient__mrn", "patient__full_name")


@admin.register(EncounterEvent)
class EncounterEventAdmin(_ReadOnlyAdmin):
    list_display = ("encounter_id", "code", "event_key", "timestamp", "actor_user_id")
    list_filter = ("code",)
    search_fields = ("encounter_id", "event_key", "code")


@admin.register(BedAssignment)
class BedAssignmentAdmin(_ReadOnlyAdmin):
    list_display = ("encounter", "bed", "assigned_at", "released_at")
    search_fields = ("encounter__encounter_number", "bed__bed_number")
