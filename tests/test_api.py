"""Tests for REST API endpoints."""

from datetime import UTC, datetime, timedelta

from app.exceptions import StoreUnavailable
from app.main import app
from app.services.store import MedicalStore, SQLMedicalStore, get_store


async def _create_patient(client, first_name="Maria"):
    resp = await client.post(
        "/api/patients",
        json={"first_name": first_name, "last_name": "Lopez", "date_of_birth": "2015-04-12"},
    )
    assert resp.status_code == 200
    return resp.json()["id"]


async def _create_medication(client, name="Keppra"):
    resp = await client.post("/api/medications", json={"name": name, "strength": 250, "unit": "mg"})
    assert resp.status_code == 200
    return resp.json()["id"]


async def _record_dosage(client, patient_id, medication_id, at):
    resp = await client.post(
        f"/api/patients/{patient_id}/dosages",
        json={
            "medication_id": medication_id,
            "administration_time": at.isoformat(),
            "dosage_amount": 250,
            "dosage_unit": "mg",
            "schedule": "AM",
            "administered": True,
        },
    )
    assert resp.status_code == 200
    return resp.json()["id"]


async def _record_event(
    client, patient_id, at, category="SYMPTOM", severity="MILD", title="Headache", **extra
):
    resp = await client.post(
        f"/api/patients/{patient_id}/events",
        json={
            "event_time": at.isoformat(),
            "title": title,
            "category": category,
            "severity": severity,
            **extra,
        },
    )
    assert resp.status_code == 200
    return resp.json()["id"]


async def test_healthz(async_client):
    resp = await async_client.get("/healthz")
    assert resp.status_code == 200
    assert resp.json() == {"status": "ok"}


# --- Patients ---


async def test_create_patient(async_client):
    resp = await async_client.post(
        "/api/patients",
        json={"first_name": "Maria", "last_name": "Lopez", "date_of_birth": "2015-04-12"},
    )
    assert resp.status_code == 200
    data = resp.json()
    assert "id" in data
    assert data["first_name"] == "Maria"
    assert data["date_of_birth"] == "2015-04-12"
    assert data["notes"] is None


async def test_create_patient_validation(async_client):
    """Test 422 for a blank first name."""
    resp = await async_client.post(
        "/api/patients",
        json={"first_name": "", "last_name": "Lopez", "date_of_birth": "2015-04-12"},
    )
    assert resp.status_code == 422


async def test_list_patients_empty(async_client):
    resp = await async_client.get("/api/patients")
    assert resp.status_code == 200
    assert resp.json() == []


async def test_get_patient(async_client):
    patient_id = await _create_patient(async_client)
    resp = await async_client.get(f"/api/patients/{patient_id}")
    assert resp.status_code == 200
    assert resp.json()["id"] == patient_id


async def test_get_patient_not_found(async_client):
    resp = await async_client.get("/api/patients/nonexistent-id")
    assert resp.status_code == 404


async def test_delete_patient_removes_history(async_client):
    patient_id = await _create_patient(async_client)
    medication_id = await _create_medication(async_client)
    at = datetime(2026, 3, 1, 8, tzinfo=UTC)
    await _record_dosage(async_client, patient_id, medication_id, at)
    await _record_event(async_client, patient_id, at + timedelta(hours=1))

    resp = await async_client.delete(f"/api/patients/{patient_id}")
    assert resp.status_code == 200
    assert resp.json() == {"id": patient_id, "deleted": True}

    assert (await async_client.get(f"/api/patients/{patient_id}")).status_code == 404
    summary = (await async_client.get(f"/api/analytics/dashboard/{patient_id}")).json()
    assert summary["total_events"] == 0
    assert summary["total_dosages"] == 0


# --- Medications ---


async def test_list_medications_sorted_and_active_filter(async_client):
    await _create_medication(async_client, "Zonegran")
    await _create_medication(async_client, "Keppra")
    await async_client.post("/api/medications", json={"name": "Depakote", "active": False})

    names = [m["name"] for m in (await async_client.get("/api/medications")).json()]
    assert names == ["Depakote", "Keppra", "Zonegran"]

    resp = await async_client.get("/api/medications", params={"active_only": "true"})
    assert [m["name"] for m in resp.json()] == ["Keppra", "Zonegran"]


async def test_get_medication_not_found(async_client):
    resp = await async_client.get("/api/medications/nonexistent-id")
    assert resp.status_code == 404


# --- Events ---


async def test_record_and_get_event(async_client):
    patient_id = await _create_patient(async_client)
    event_id = await _record_event(
        async_client, patient_id, datetime(2026, 3, 1, 10, tzinfo=UTC), title="Focal seizure"
    )

    resp = await async_client.get(f"/api/patients/{patient_id}/events/{event_id}")
    assert resp.status_code == 200
    data = resp.json()
    assert data["title"] == "Focal seizure"
    assert data["category"] == "SYMPTOM"
    assert data["patient_id"] == patient_id


async def test_record_event_unknown_patient(async_client):
    resp = await async_client.post(
        "/api/patients/nonexistent-id/events",
        json={
            "event_time": "2026-03-01T10:00:00Z",
            "title": "Headache",
            "category": "SYMPTOM",
            "severity": "MILD",
        },
    )
    assert resp.status_code == 404


async def test_record_event_rejects_unknown_category(async_client):
    patient_id = await _create_patient(async_client)
    resp = await async_client.post(
        f"/api/patients/{patient_id}/events",
        json={
            "event_time": "2026-03-01T10:00:00Z",
            "title": "Headache",
            "category": "NOT_A_CATEGORY",
            "severity": "MILD",
        },
    )
    assert resp.status_code == 422


async def test_list_events_filters(async_client):
    patient_id = await _create_patient(async_client)
    base = datetime(2026, 3, 1, tzinfo=UTC)
    await _record_event(async_client, patient_id, base + timedelta(hours=3), title="Later")
    await _record_event(async_client, patient_id, base + timedelta(hours=1), title="Earlier")
    await _record_event(async_client, patient_id, base + timedelta(hours=2), category="ADVERSE_REACTION")
    await _record_event(async_client, patient_id, base + timedelta(days=5), title="Outside")

    resp = await async_client.get(
        f"/api/patients/{patient_id}/events",
        params={
            "start_date": base.isoformat(),
            "end_date": (base + timedelta(days=1)).isoformat(),
            "category": "SYMPTOM",
        },
    )
    assert resp.status_code == 200
    assert [e["title"] for e in resp.json()] == ["Earlier", "Later"]


async def test_list_events_inverted_range(async_client):
    patient_id = await _create_patient(async_client)
    resp = await async_client.get(
        f"/api/patients/{patient_id}/events",
        params={"start_date": "2026-03-02T00:00:00Z", "end_date": "2026-03-01T00:00:00Z"},
    )
    assert resp.status_code == 400


async def test_delete_event(async_client):
    patient_id = await _create_patient(async_client)
    event_id = await _record_event(async_client, patient_id, datetime(2026, 3, 1, tzinfo=UTC))

    resp = await async_client.delete(f"/api/patients/{patient_id}/events/{event_id}")
    assert resp.status_code == 200
    resp = await async_client.get(f"/api/patients/{patient_id}/events/{event_id}")
    assert resp.status_code == 404


# --- Dosages ---


async def test_record_dosage_unknown_medication(async_client):
    patient_id = await _create_patient(async_client)
    resp = await async_client.post(
        f"/api/patients/{patient_id}/dosages",
        json={
            "medication_id": "nonexistent-id",
            "administration_time": "2026-03-01T08:00:00Z",
            "dosage_amount": 250,
            "dosage_unit": "mg",
            "schedule": "AM",
        },
    )
    assert resp.status_code == 404


async def test_mark_dosage_administered(async_client):
    patient_id = await _create_patient(async_client)
    medication_id = await _create_medication(async_client)
    resp = await async_client.post(
        f"/api/patients/{patient_id}/dosages",
        json={
            "medication_id": medication_id,
            "administration_time": "2026-03-01T20:00:00Z",
            "dosage_amount": 250,
            "dosage_unit": "mg",
            "schedule": "PM",
        },
    )
    dosage_id = resp.json()["id"]
    assert resp.json()["administered"] is False

    resp = await async_client.patch(
        f"/api/patients/{patient_id}/dosages/{dosage_id}", json={"administered": True}
    )
    assert resp.status_code == 200
    assert resp.json()["administered"] is True

    get_resp = await async_client.get(f"/api/patients/{patient_id}/dosages/{dosage_id}")
    assert get_resp.json()["administered"] is True


async def test_list_dosages_by_medication(async_client):
    patient_id = await _create_patient(async_client)
    keppra = await _create_medication(async_client, "Keppra")
    nurofen = await _create_medication(async_client, "Nurofen")
    base = datetime(2026, 3, 1, 8, tzinfo=UTC)
    await _record_dosage(async_client, patient_id, keppra, base)
    await _record_dosage(async_client, patient_id, nurofen, base + timedelta(hours=1))
    await _record_dosage(async_client, patient_id, keppra, base + timedelta(hours=12))

    all_resp = await async_client.get(f"/api/patients/{patient_id}/dosages")
    assert len(all_resp.json()) == 3

    resp = await async_client.get(
        f"/api/patients/{patient_id}/dosages", params={"medication_id": keppra}
    )
    assert [d["medication_id"] for d in resp.json()] == [keppra, keppra]


async def test_delete_dosage_not_found(async_client):
    patient_id = await _create_patient(async_client)
    resp = await async_client.delete(f"/api/patients/{patient_id}/dosages/nonexistent-id")
    assert resp.status_code == 404


# --- Analytics ---


async def test_correlation_endpoint(async_client):
    patient_id = await _create_patient(async_client)
    medication_id = await _create_medication(async_client, "Keppra")
    at = datetime(2026, 3, 1, 8, tzinfo=UTC)
    await _record_dosage(async_client, patient_id, medication_id, at)
    await _record_event(async_client, patient_id, at + timedelta(hours=1), severity="SEVERE")
    await _record_event(async_client, patient_id, at + timedelta(hours=30))

    resp = await async_client.get(
        f"/api/analytics/correlation/{patient_id}/medication/{medication_id}"
    )
    assert resp.status_code == 200
    data = resp.json()
    assert data["medication_name"] == "Keppra"
    assert data["total_dosages"] == 1
    assert data["total_events_after_dosage"] == 1
    assert data["correlation_percentage"] == 100.0
    assert data["correlation_strength"] == 0.9
    assert data["events_by_category"] == {"SYMPTOM": 1}
    assert data["events_by_severity"] == {"SEVERE": 1}


async def test_correlation_all_medications(async_client):
    patient_id = await _create_patient(async_client)
    keppra = await _create_medication(async_client, "Keppra")
    nurofen = await _create_medication(async_client, "Nurofen")
    base = datetime(2026, 3, 1, 8, tzinfo=UTC)
    await _record_dosage(async_client, patient_id, nurofen, base)
    await _record_dosage(async_client, patient_id, keppra, base + timedelta(days=1))

    resp = await async_client.get(f"/api/analytics/correlation/{patient_id}/all-medications")
    assert resp.status_code == 200
    assert [r["medication_name"] for r in resp.json()] == ["Nurofen", "Keppra"]


async def test_dashboard_endpoint(async_client):
    patient_id = await _create_patient(async_client)
    now = datetime.now(UTC)
    await _record_event(async_client, patient_id, now - timedelta(days=1), category="SIDE_EFFECT")
    await _record_event(async_client, patient_id, now - timedelta(days=30))

    resp = await async_client.get(f"/api/analytics/dashboard/{patient_id}")
    assert resp.status_code == 200
    data = resp.json()
    assert data["patient_id"] == patient_id
    assert data["total_events"] == 2
    assert data["recent_events"] == 1
    assert data["events_by_category"] == {"SIDE_EFFECT": 1, "SYMPTOM": 1}


async def test_weekly_trends_endpoint(async_client):
    patient_id = await _create_patient(async_client)
    await _record_event(async_client, patient_id, datetime.now(UTC) - timedelta(days=2))

    resp = await async_client.get(f"/api/analytics/weekly-trends/{patient_id}")
    assert resp.status_code == 200
    data = resp.json()
    assert list(data) == [f"week_{n}" for n in range(1, 9)]
    assert data["week_1"]["total_events"] == 1


async def test_timeline_endpoint(async_client):
    patient_id = await _create_patient(async_client)
    medication_id = await _create_medication(async_client)
    base = datetime(2026, 3, 1, tzinfo=UTC)
    await _record_dosage(async_client, patient_id, medication_id, base + timedelta(hours=8))
    await _record_event(async_client, patient_id, base + timedelta(hours=9))

    resp = await async_client.get(
        f"/api/analytics/timeline/{patient_id}",
        params={"start_date": base.isoformat(), "end_date": (base + timedelta(days=1)).isoformat()},
    )
    assert resp.status_code == 200
    kinds = sorted(p["kind"] for p in resp.json()["data_points"])
    assert kinds == ["DOSAGE", "EVENT"]


async def test_timeline_inverted_range(async_client):
    resp = await async_client.get(
        "/api/analytics/timeline/patient-1",
        params={"start_date": "2026-03-02T00:00:00Z", "end_date": "2026-03-01T00:00:00Z"},
    )
    assert resp.status_code == 400
    assert "Start date" in resp.json()["detail"]


async def test_timeline_requires_dates(async_client):
    resp = await async_client.get("/api/analytics/timeline/patient-1")
    assert resp.status_code == 422


async def test_impact_endpoint(async_client):
    patient_id = await _create_patient(async_client)
    medication_id = await _create_medication(async_client)
    start = datetime(2026, 3, 1, tzinfo=UTC)
    await _record_dosage(async_client, patient_id, medication_id, start + timedelta(days=1))
    await _record_event(async_client, patient_id, start - timedelta(days=2))

    resp = await async_client.get(
        f"/api/analytics/impact/{patient_id}/medication/{medication_id}",
        params={"start_date": start.isoformat(), "end_date": (start + timedelta(days=7)).isoformat()},
    )
    assert resp.status_code == 200
    data = resp.json()
    assert data["total_dosages"] == 1
    assert data["weekly_trends"] == {"before_medication": [1], "after_medication": [0]}


async def test_overview_endpoint(async_client):
    patient_id = await _create_patient(async_client)
    medication_id = await _create_medication(async_client)
    await _record_dosage(async_client, patient_id, medication_id, datetime(2026, 3, 1, 8, tzinfo=UTC))

    resp = await async_client.get(f"/api/analytics/overview/{patient_id}")
    assert resp.status_code == 200
    data = resp.json()
    assert data["dashboard_summary"]["total_dosages"] == 1
    assert len(data["medication_correlations"]) == 1


async def test_analytics_store_failure_returns_503(async_client):
    class BrokenStore(MedicalStore):
        async def events_for(self, patient_id, start=None, end=None, category=None, medication_id=None):
            raise StoreUnavailable("connection refused")

        async def count_dosages(self, patient_id):
            raise StoreUnavailable("connection refused")

    app.dependency_overrides[get_store] = lambda: BrokenStore()
    try:
        resp = await async_client.get("/api/analytics/dashboard/patient-1")
    finally:
        app.dependency_overrides.clear()
    assert resp.status_code == 503


async def test_medication_timeline_endpoint(async_client):
    patient_id = await _create_patient(async_client)
    keppra = await _create_medication(async_client, "Keppra")
    nurofen = await _create_medication(async_client, "Nurofen")
    base = datetime(2026, 3, 1, tzinfo=UTC)
    await _record_dosage(async_client, patient_id, keppra, base + timedelta(hours=8))
    await _record_dosage(async_client, patient_id, nurofen, base + timedelta(hours=9))
    await _record_event(
        async_client, patient_id, base + timedelta(hours=10),
        medication_id=keppra, weight_kg=70.0, height_cm=175.0,
    )
    await _record_event(async_client, patient_id, base + timedelta(hours=11), medication_id=nurofen)

    resp = await async_client.get(
        f"/api/analytics/timeline/{patient_id}/medication/{keppra}",
        params={"start_date": base.isoformat(), "end_date": (base + timedelta(days=1)).isoformat()},
    )
    assert resp.status_code == 200
    data = resp.json()
    assert data["medication_id"] == keppra
    assert data["statistics"]["total_data_points"] == 2
    assert data["statistics"]["time_span_days"] == 0
    event = next(p for p in data["data_points"] if p["kind"] == "EVENT")
    assert event["bmi"] == 22.9


async def test_medication_timeline_inverted_range(async_client):
    resp = await async_client.get(
        "/api/analytics/timeline/patient-1/medication/med-1",
        params={"start_date": "2026-03-02T00:00:00Z", "end_date": "2026-03-01T00:00:00Z"},
    )
    assert resp.status_code == 400


async def test_list_events_store_failure_returns_503(async_client, monkeypatch):
    patient_id = await _create_patient(async_client)

    async def _broken(self, *args, **kwargs):
        raise StoreUnavailable("database is locked")

    monkeypatch.setattr(SQLMedicalStore, "events_for", _broken)
    resp = await async_client.get(f"/api/patients/{patient_id}/events")
    assert resp.status_code == 503
