# hm_core/beds/api/filters.py
import django_filters
from django_filters.utils import translate_validation

from hm_core.beds.models import Bed
from hm_core.beds.vocabulary import normalize


class _BedQueryFilter(django_filters.FilterSet):
    """
    Used to validate/clean query params only; the selectors run the query.
    """
    selector_map: dict = {}

    def selector_kwargs(self) -> dict:
        if not self.is_valid():
            raise translate_validation(self.errors)
        data = self.form.cleaned_data
        out = {}
        for key, kwarg in self.selector_map.items():
            value = data.get(key)
            if value in (None, ""):
                continue
            out[kwarg] = normalize(value) if isinstance(value, str) else value
        return out


class BedFilter(_BedQueryFilter):
    """GET /beds/?ward=&bed_type=&status="""
    ward = django_filters.UUIDFilter(field_name="ward_id")
    bed_type = django_filters.CharFilter(field_name="bed_type")
    status = django_filters.CharFilter(field_name="status")

    selector_map = {"ward": "ward_id", "bed_type": "bed_type", "status": "status"}

    class Meta:
        model = Bed
        fields = ["ward", "bed_type", "status"]


class AvailableBedFilter(_BedQueryFilter):
    """GET /beds/available/?exclude_ward=&ward=&bed_type="""
    exclude_ward = django_filters.UUIDFilter(field_name="ward_id", exclude=True)
    ward = django_filters.UUIDFilter(field_name="ward_id")
    bed_type = django_filters.CharFilter(field_name="bed_type")

    selector_map = {"exclude_ward": "exclude_ward_id", "ward": "ward_id", "bed_type": "bed_type"}

    class Meta:
        model = Bed
        fields = ["exclude_ward", "ward", "bed_type"]
