# hm_core/api/urls.py
from __future__ import annotations

from rest_framework.routers import DefaultRouter

from hm_core.audit.api.views import AuditEventViewSet
from hm_core.beds.api.views import BedViewSet, WardViewSet
from hm_core.encounters.api.views import EncounterViewSet

router = DefaultRouter()

router.register(r"wards", WardViewSet, basename="wards")
router.register(r"beds", BedViewSet, basename="beds")
router.register(r"encounters", EncounterViewSet, basename="encounters")
router.register(r"audit/events", AuditEventViewSet, basename="audit-events")

urlpatterns = [
    *router.urls,
]
