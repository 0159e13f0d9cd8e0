import pytest

from hm_core.beds.models import Bed, Ward


@pytest.mark.django_db
def test_ward_and_bed_setup_endpoints(api_client, scope_headers):
    resp = api_client.post(
        "/api/v1/wards/",
        {"code": "A", "name": "Ward A", "capacity": 1},
        format="json",
        **scope_headers,
    )
    assert resp.status_code == 201, resp.json()
    ward_id = resp.json()["id"]

    resp = api_client.post(
        "/api/v1/beds/",
        {"ward_id": ward_id, "bed_number": "A-101", "bed_type": "Private"},
        format="json",
        **scope_headers,
    )
    assert resp.status_code == 201, resp.json()
    assert resp.json()["bed_type"] == "private"
    assert resp.json()["ward_code"] == "A"

    # capacity 1 reached
    resp = api_client.post(
        "/api/v1/beds/",
        {"ward_id": ward_id, "bed_number": "A-102"},
        format="json",
        **scope_headers,
    )
    assert resp.status_code == 409
    assert resp.json()["error"]["code"] == "setup_conflict"


@pytest.mark.django_db
def test_list_beds_with_filters(api_client, scope_headers, ward, make_bed):
    make_bed("A-1")
    make_bed("A-2", status="maintenance")

    resp = api_client.get("/api/v1/beds/", {"status": "Maintenance"}, **scope_headers)

    assert resp.status_code == 200
    body = resp.json()
    assert body["count"] == 1
    assert body["results"][0]["bed_number"] == "A-2"


@pytest.mark.django_db
def test_list_beds_rejects_bad_ward_filter(api_client, scope_headers):
    resp = api_client.get("/api/v1/beds/", {"ward": "nope"}, **scope_headers)

    assert resp.status_code == 400
    assert resp.json()["error"]["code"] == "validation_error"


@pytest.mark.django_db
def test_set_status_endpoint(api_client, scope_headers, make_bed):
    bed = make_bed("A-1")

    resp = api_client.post(
        f"/api/v1/beds/{bed.id}/status/",
        {"status": "cleaning", "notes": "terminal clean"},
        format="json",
        **scope_headers,
    )

    assert resp.status_code == 200
    assert resp.json()["status"] == "cleaning"
    assert resp.json()["notes"] == "terminal clean"


@pytest.mark.django_db
def test_set_status_occupied_is_409(api_client, scope_headers, make_bed):
    bed = make_bed("A-1")

    resp = api_client.post(f"/api/v1/beds/{bed.id}/status/", {"status": "occupied"}, format="json", **scope_headers)

    assert resp.status_code == 409
    assert resp.json()["error"]["code"] == "invalid_transition"


@pytest.mark.django_db
def test_set_status_unknown_is_400(api_client, scope_headers, make_bed):
    bed = make_bed("A-1")

    resp = api_client.post(f"/api/v1/beds/{bed.id}/status/", {"status": "lost"}, format="json", **scope_headers)

    assert resp.status_code == 400
    assert resp.json()["error"]["code"] == "unknown_vocabulary"


@pytest.mark.django_db
def test_available_endpoint(api_client, scope_headers, ward, make_ward, make_bed):
    other = make_ward("B", "Ward B")
    make_bed("A-1")
    make_bed("A-2", status="occupied")
    make_bed("B-1", on_ward=other)

    resp = api_client.get("/api/v1/beds/available/", **scope_headers)
    assert [b["bed_number"] for b in resp.json()] == ["A-1", "B-1"]

    resp = api_client.get("/api/v1/beds/available/", {"exclude_ward": str(ward.id)}, **scope_headers)
    assert [b["bed_number"] for b in resp.json()] == ["B-1"]


@pytest.mark.django_db
def test_ward_stats_and_matrix_endpoints(api_client, scope_headers, ward, make_bed):
    make_bed("A-1", status="occupied")
    make_bed("A-2")

    resp = api_client.get("/api/v1/wards/stats/", **scope_headers)
    assert resp.status_code == 200
    body = resp.json()
    assert body["hospital"]["total"] == 2
    assert body["hospital"]["occupancy_rate"] == 50.0
    assert body["wards"][0]["ward_code"] == "A"

    resp = api_client.get("/api/v1/wards/stats/", {"ward_id": "00000000-0000-0000-0000-00000000dead"}, **scope_headers)
    assert resp.status_code == 404
    assert resp.json()["error"]["code"] == "not_found"

    resp = api_client.get("/api/v1/wards/matrix/", **scope_headers)
    assert resp.status_code == 200
    assert len(resp.json()[0]["beds"]) == 2


@pytest.mark.django_db
def test_readonly_user_cannot_change_beds(readonly_client, scope_headers, make_bed):
    bed = make_bed("A-1")

    resp = readonly_client.post(f"/api/v1/beds/{bed.id}/status/", {"status": "cleaning"}, format="json", **scope_headers)
    assert resp.status_code == 403
    assert resp.json()["error"]["code"] == "permission_denied"

    resp = readonly_client.get("/api/v1/beds/", **scope_headers)
    assert resp.status_code == 200


@pytest.mark.django_db
def test_nurse_toggles_status_but_cannot_create_wards(nurse_client, scope_headers, make_bed):
    bed = make_bed("A-1")

    resp = nurse_client.post(f"/api/v1/beds/{bed.id}/status/", {"status": "maintenance"}, format="json", **scope_headers)
    assert resp.status_code == 200

    resp = nurse_client.post("/api/v1/wards/", {"code": "X", "name": "X"}, format="json", **scope_headers)
    assert resp.status_code == 403
    assert not Ward.objects.filter(code="X").exists()
    assert Bed.objects.get(id=bed.id).status == "maintenance"


@pytest.mark.django_db
def test_ward_update_and_batch_bed_endpoints(api_client, nurse_client, scope_headers, ward):
    resp = api_client.post(
        f"/api/v1/wards/{ward.id}/beds/",
        {"count": 2, "prefix": "A", "bed_type": "general"},
        format="json",
        **scope_headers,
    )
    assert resp.status_code == 201, resp.json()
    assert [b["bed_number"] for b in resp.json()] == ["A-01", "A-02"]

    resp = api_client.patch(f"/api/v1/wards/{ward.id}/", {"capacity": 1}, format="json", **scope_headers)
    assert resp.status_code == 409
    assert resp.json()["error"]["code"] == "setup_conflict"

    resp = api_client.patch(
        f"/api/v1/wards/{ward.id}/", {"name": "Ward A East", "capacity": 2}, format="json", **scope_headers
    )
    assert resp.status_code == 200, resp.json()
    assert (resp.json()["name"], resp.json()["capacity"]) == ("Ward A East", 2)

    # full now
    resp = api_client.post(f"/api/v1/wards/{ward.id}/beds/", {"count": 1, "prefix": "Z"}, format="json", **scope_headers)
    assert resp.status_code == 409

    resp = api_client.post(f"/api/v1/wards/{ward.id}/beds/", {"count": 0}, format="json", **scope_headers)
    assert resp.status_code == 400

    resp = nurse_client.patch(f"/api/v1/wards/{ward.id}/", {"is_active": False}, format="json", **scope_headers)
    assert resp.status_code == 403
    assert Ward.objects.get(id=ward.id).is_active is True


@pytest.mark.django_db
def test_bulk_status_endpoint(nurse_client, readonly_client, scope_headers, make_bed):
    b1, b2 = make_bed("A-1"), make_bed("A-2", status="maintenance")
    payload = {
        "updates": [
            {"bed_id": str(b1.id), "status": "cleaning"},
            {"bed_id": str(b2.id), "status": "occupied"},
        ]
    }

    resp = nurse_client.post("/api/v1/beds/bulk-status/", payload, format="json", **scope_headers)
    assert resp.status_code == 200, resp.json()
    body = resp.json()
    assert [r["success"] for r in body] == [True, False]
    assert body[0]["status"] == "cleaning"
    assert body[0]["error"] is None
    assert body[1]["error"]["code"] == "invalid_transition"
    assert Bed.objects.get(id=b2.id).status == "maintenance"

    resp = nurse_client.post("/api/v1/beds/bulk-status/", {"updates": []}, format="json", **scope_headers)
    assert resp.status_code == 400

    resp = readonly_client.post("/api/v1/beds/bulk-status/", payload, format="json", **scope_headers)
    assert resp.status_code == 403
