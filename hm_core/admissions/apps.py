# hm_core/admissions/apps.py
from django.apps import AppConfig


class AdmissionsConfig(AppConfig):
    default_auto_field = "django.db.models.BigAutoField"
    name = "hm_core.admissions"
