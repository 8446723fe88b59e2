"""HTTP tests for the scheduling service routes."""

from __future__ import annotations

from datetime import datetime, timedelta, timezone

import pytest
from fastapi.testclient import TestClient

from shiftgear.domain.models import (
    EquipmentCategory,
    EquipmentItem,
    EquipmentStatus,
    Event,
    StaffMember,
)
from shiftgear.main import (
    app,
    equipment_repo,
    event_repo,
    ledger,
    staff_repo,
    timeline_repo,
)

client = TestClient(app)


@pytest.fixture(autouse=True)
def _seed_repos():
    """Reset the app singletons and load a small catalog before each test."""
    equipment_repo._store.clear()
    staff_repo._store.clear()
    event_repo._store.clear()
    ledger.clear()
    timeline_repo._entries.clear()

    equipment_repo.add(EquipmentItem(id="cam-1", name="Canon R6", category=EquipmentCategory.CAMERA))
    equipment_repo.add(EquipmentItem(id="cam-2", name="Canon R5", category=EquipmentCategory.CAMERA))
    equipment_repo.add(
        EquipmentItem(
            id="cam-fix",
            name="Nikon Z6",
            category=EquipmentCategory.CAMERA,
            status=EquipmentStatus.MAINTENANCE,
        )
    )
    equipment_repo.add(EquipmentItem(id="lens-2", name="RF 24-70", category=EquipmentCategory.LENS))
    equipment_repo.add(EquipmentItem(id="sd-1", name="SD 128GB", category=EquipmentCategory.SD_CARD))
    staff_repo.add(StaffMember(id="ana", name="Ana"))
    staff_repo.add(StaffMember(id="luis", name="Luis"))
    event_repo.add(
        Event(id="yearbook", name="Yearbook shoot", start_date="2026-03-05", end_date="2026-03-06")
    )
    yield


def _assign(holder: str, ids: list[str], start: str, end: str | None, **extra):
    payload = {"holder_id": holder, "equipment_ids": ids, "window_start": start, "window_end": end}
    payload.update(extra)
    return client.post("/assignments", json=payload)


# ---------------------------------------------------------------------------
# Registry and availability
# ---------------------------------------------------------------------------


def test_list_equipment_by_category():
    resp = client.get("/equipment", params={"category": "camera"})
    assert resp.status_code == 200
    assert [item["id"] for item in resp.json()] == ["cam-2", "cam-1"]


def test_get_equipment_not_found():
    assert client.get("/equipment/nope").status_code == 404


def test_available_excludes_booked_items():
    _assign("ana", ["cam-1"], "2026-03-05T10:00:00+00:00", "2026-03-05T12:00:00+00:00")
    resp = client.get(
        "/equipment/available",
        params={
            "category": "camera",
            "start": "2026-03-05T09:00:00+00:00",
            "end": "2026-03-05T13:00:00+00:00",
        },
    )
    assert resp.status_code == 200
    assert [item["id"] for item in resp.json()] == ["cam-2"]


def test_available_rejects_reversed_window():
    resp = client.get(
        "/equipment/available",
        params={
            "category": "camera",
            "start": "2026-03-05T13:00:00+00:00",
            "end": "2026-03-05T09:00:00+00:00",
        },
    )
    assert resp.status_code == 422
    assert resp.json()["detail"]["field"] == "window_end"


# ---------------------------------------------------------------------------
# Assignments
# ---------------------------------------------------------------------------


def test_create_all_assigned():
    resp = _assign("ana", ["cam-1", "sd-1"], "2026-03-05T09:00:00+00:00", "2026-03-05T13:00:00+00:00")
    assert resp.status_code == 201
    body = resp.json()
    assert len(body["created"]) == 2
    assert body["errors"] == []


def test_create_partial_is_207():
    _assign("luis", ["sd-1"], "2026-03-05T10:00:00+00:00", "2026-03-05T12:00:00+00:00")
    resp = _assign("ana", ["cam-1", "sd-1"], "2026-03-05T09:00:00+00:00", "2026-03-05T13:00:00+00:00")
    assert resp.status_code == 207
    body = resp.json()
    assert [r["equipment_id"] for r in body["created"]] == ["cam-1"]
    assert body["errors"][0]["equipment_id"] == "sd-1"
    assert "Luis" in body["errors"][0]["message"]


def test_create_all_conflicting_is_409():
    _assign("luis", ["cam-1"], "2026-03-05T10:00:00+00:00", None)
    resp = _assign("ana", ["cam-1"], "2026-03-07T09:00:00+00:00", "2026-03-07T13:00:00+00:00")
    assert resp.status_code == 409
    assert resp.json()["created"] == []


def test_create_with_maintenance_item_is_422():
    resp = _assign("ana", ["cam-fix"], "2026-03-05T09:00:00+00:00", "2026-03-05T13:00:00+00:00")
    assert resp.status_code == 422
    assert resp.json()["detail"]["field"] == "equipment_ids"


def test_create_requires_equipment():
    resp = _assign("ana", [], "2026-03-05T09:00:00+00:00", "2026-03-05T13:00:00+00:00")
    assert resp.status_code == 422


def test_return_then_return_again():
    created = _assign("ana", ["cam-1"], "2026-03-05T09:00:00+00:00", "2026-03-05T13:00:00+00:00")
    assignment_id = created.json()["created"][0]["id"]

    first = client.post(f"/assignments/{assignment_id}/return", json={"note": "ok"})
    assert first.status_code == 200
    assert first.json()["returned_at"] is not None

    second = client.post(f"/assignments/{assignment_id}/return")
    assert second.status_code == 404


def test_list_and_delete_assignment():
    created = _assign("ana", ["cam-1"], "2026-03-05T09:00:00+00:00", "2026-03-05T13:00:00+00:00")
    assignment_id = created.json()["created"][0]["id"]

    listed = client.get("/assignments", params={"holder_id": "ana", "active_only": True})
    assert [r["id"] for r in listed.json()["data"]] == [assignment_id]

    assert client.delete(f"/assignments/{assignment_id}").status_code == 200
    assert client.delete(f"/assignments/{assignment_id}").status_code == 404


def test_list_assignments_paginates():
    for hour in (8, 10, 12):
        _assign(
            "ana",
            ["cam-1"],
            f"2026-03-05T{hour:02d}:00:00+00:00",
            f"2026-03-05T{hour + 1:02d}:00:00+00:00",
        )

    resp = client.get("/assignments", params={"page": 2, "limit": 2})
    assert resp.status_code == 200
    body = resp.json()
    assert [r["window_start"][:16] for r in body["data"]] == ["2026-03-05T08:00"]
    assert body["meta"] == {"total": 3, "page": 2, "limit": 2, "total_pages": 2}

    assert client.get("/assignments", params={"limit": 500}).status_code == 422


def test_get_assignment():
    created = _assign("ana", ["cam-1"], "2026-03-05T09:00:00+00:00", "2026-03-05T13:00:00+00:00")
    assignment_id = created.json()["created"][0]["id"]

    resp = client.get(f"/assignments/{assignment_id}")
    assert resp.status_code == 200
    assert resp.json()["holder_id"] == "ana"
    assert client.get("/assignments/nope").status_code == 404


def test_patch_assignment():
    created = _assign("ana", ["cam-1"], "2026-03-05T09:00:00+00:00", "2026-03-05T13:00:00+00:00")
    _assign("luis", ["cam-1"], "2026-03-05T14:00:00+00:00", "2026-03-05T16:00:00+00:00")
    assignment_id = created.json()["created"][0]["id"]

    resp = client.patch(
        f"/assignments/{assignment_id}", json={"holder_id": "luis", "event_id": "yearbook"}
    )
    assert resp.status_code == 200
    assert (resp.json()["holder_id"], resp.json()["event_id"]) == ("luis", "yearbook")

    clash = client.patch(
        f"/assignments/{assignment_id}", json={"window_end": "2026-03-05T15:00:00+00:00"}
    )
    assert clash.status_code == 409

    bad_holder = client.patch(f"/assignments/{assignment_id}", json={"holder_id": "nobody"})
    assert bad_holder.status_code == 422
    assert bad_holder.json()["detail"]["field"] == "holder_id"

    assert client.patch("/assignments/nope", json={"note": "x"}).status_code == 404


def test_equipment_status_reflects_current_assignment():
    now = datetime.now(timezone.utc)
    created = _assign(
        "ana",
        ["cam-1"],
        (now - timedelta(hours=1)).isoformat(),
        (now + timedelta(hours=1)).isoformat(),
    )
    assert client.get("/equipment/cam-1").json()["status"] == "in_use"

    client.post(f"/assignments/{created.json()['created'][0]['id']}/return")
    assert client.get("/equipment/cam-1").json()["status"] == "available"


def test_timeline_follows_assignments():
    created = _assign("ana", ["cam-1"], "2026-03-05T09:00:00+00:00", "2026-03-05T13:00:00+00:00")
    client.post(f"/assignments/{created.json()['created'][0]['id']}/return")

    resp = client.get("/equipment/cam-1/timeline")
    assert resp.status_code == 200
    assert [e["type"] for e in resp.json()] == ["assigned", "returned"]


# ---------------------------------------------------------------------------
# Events
# ---------------------------------------------------------------------------


def test_create_and_get_event():
    resp = client.post(
        "/events",
        json={
            "name": "Graduation",
            "start_date": "2026-06-01",
            "end_date": "2026-06-02",
            "use_preset_equipment": True,
            "preset": {"camera_id": "cam-1", "lens_id": "lens-2"},
        },
    )
    assert resp.status_code == 201
    event_id = resp.json()["id"]
    assert client.get(f"/events/{event_id}").json()["preset"]["camera_id"] == "cam-1"


def test_create_event_with_reversed_dates():
    resp = client.post(
        "/events", json={"name": "Bad", "start_date": "2026-06-02", "end_date": "2026-06-01"}
    )
    assert resp.status_code == 422


def test_replace_event_days_partial_is_207():
    _assign("luis", ["cam-2"], "2026-03-05T00:00:00+00:00", "2026-03-05T23:00:00+00:00")
    body = {
        "days": [
            {
                "date": "2026-03-05",
                "shifts": [
                    {
                        "holder_id": "ana",
                        "start_time": "08:00",
                        "end_time": "12:00",
                        "equipment": {"camera_id": "cam-1", "sd_card_id": "sd-1"},
                    },
                    {
                        "holder_id": "ana",
                        "start_time": "14:30",
                        "end_time": "18:30",
                        "equipment": {"camera_id": "cam-2"},
                    },
                ],
            }
        ]
    }
    resp = client.put("/events/yearbook/days", json=body)
    assert resp.status_code == 207
    payload = resp.json()
    assert [s["shift_ref"] for s in payload["succeeded"]] == ["2026-03-05#0"]
    assert payload["failed"][0]["shift_ref"] == "2026-03-05#1"

    released = client.post("/events/yearbook/release")
    assert sorted(r["equipment_id"] for r in released.json()) == ["cam-1", "sd-1"]


def test_replace_unknown_event_is_404():
    assert client.put("/events/nope/days", json={"days": []}).status_code == 404


# ---------------------------------------------------------------------------
# Drafts
# ---------------------------------------------------------------------------

_SHIFTS = [
    {"holder_id": "ana", "start_time": "09:00", "end_time": "13:00", "equipment": {"camera_id": "cam-1"}},
    {"holder_id": "luis", "start_time": "12:00", "end_time": "16:00", "equipment": {"camera_id": "cam-2"}},
]


def test_draft_occupied():
    resp = client.post("/drafts/occupied", json={"shifts": _SHIFTS, "index": 0})
    assert resp.json() == ["cam-2"]


def test_draft_occupied_index_out_of_range():
    resp = client.post("/drafts/occupied", json={"shifts": _SHIFTS, "index": 5})
    assert resp.status_code == 422


def test_draft_options():
    resp = client.post(
        "/drafts/options",
        json={"date": "2026-03-05", "shifts": _SHIFTS, "index": 0, "category": "camera"},
    )
    assert resp.status_code == 200
    reasons = {o["equipment_id"]: o["reason"] for o in resp.json()}
    assert reasons == {"cam-1": "own_selection", "cam-2": "used_in_other_shift"}


def test_draft_slots():
    _assign("ana", ["cam-1"], "2026-03-05T08:00:00+00:00", "2026-03-05T10:00:00+00:00")
    resp = client.post(
        "/drafts/slots", json={"date": "2026-03-05", "shifts": _SHIFTS, "index": 0}
    )
    assert resp.json() == [{"category": "camera", "equipment_id": "cam-1", "status": "unavailable"}]


def test_draft_preset():
    resp = client.post(
        "/drafts/preset",
        json={
            "profile": {"camera_id": "cam-1", "lens_id": "lens-2", "adapter_id": None},
            "shift_type": "morning",
        },
    )
    assert resp.json() == {
        "camera_id": "cam-1",
        "lens_id": "lens-2",
        "adapter_id": None,
        "sd_card_id": None,
    }
