# hm_core/conftest.py
import uuid

import pytest
from django.contrib.auth import get_user_model
from django.contrib.auth.models import Group
from rest_framework.test import APIClient

from hm_core.beds.models import Bed, Ward
from hm_core.patients.models import Patient


@pytest.fixture
def tenant_id():
    return uuid.UUID("00000000-0000-0000-0000-000000000001")


@pytest.fixture
def facility_id():
    return uuid.UUID("00000000-0000-0000-0000-000000000101")


@pytest.fixture
def scope_headers(tenant_id, facility_id):
    """
    Standard scope headers used by the scope resolver.
    DRF test client requires HTTP_ prefix.
    """
    return {
        "HTTP_X_TENANT_ID": str(tenant_id),
        "HTTP_X_FACILITY_ID": str(facility_id),
    }


def _user_in_group(username: str, group_name: str):
    User = get_user_model()
    user = User.objects.create_user(username=username, password="testpass", is_active=True)
    group, _ = Group.objects.get_or_create(name=group_name)
    user.groups.add(group)
    return user


@pytest.fixture
def user(db):
    return _user_in_group("testuser", "ADMIN")


@pytest.fixture
def api_client(user):
    c = APIClient()
    c.force_authenticate(user=user)
    return c


@pytest.fixture
def readonly_client(db):
    c = APIClient()
    c.force_authenticate(user=_user_in_group("viewer", "READONLY"))
    return c


@pytest.fixture
def nurse_client(db):
    c = APIClient()
    c.force_authenticate(user=_user_in_group("nurse", "NURSE"))
    return c


@pytest.fixture
def make_patient(db, tenant_id, facility_id):
    counter = {"n": 0}

    def _make(full_name: str = "Test Patient", mrn: str | None = None) -> Patient:
        counter["n"] += 1
        return Patient.objects.create(
            tenant_id=tenant_id,
            facility_id=facility_id,
            full_name=full_name,
            mrn=mrn or f"MRN-TEST-{counter['n']:03d}",
        )

    return _make


@pytest.fixture
def patient(make_patient):
    return make_patient()


@pytest.fixture
def make_ward(db, tenant_id, facility_id):
    def _make(code: str = "GEN", name: str | None = None, capacity: int = 0) -> Ward:
        return Ward.objects.create(
            tenant_id=tenant_id,
            facility_id=facility_id,
            code=code,
            name=name or f"Ward {code}",
            capacity=capacity,
        )

    return _make


@pytest.fixture
def ward(make_ward):
    return make_ward("A", "Ward A")


@pytest.fixture
def make_bed(db, tenant_id, facility_id, ward):
    def _make(bed_number: str, *, on_ward: Ward | None = None, status: str = "available", bed_type: str = "general") -> Bed:
        return Bed.objects.create(
            tenant_id=tenant_id,
            facility_id=facility_id,
            ward=on_ward or ward,
            bed_number=bed_number,
            status=status,
            bed_type=bed_type,
        )

    return _make
