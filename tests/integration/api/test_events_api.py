import asyncio
from datetime import datetime

import pytest

from guestlens.app.config import settings
from guestlens.core.idempotency import event_creation_key

pytestmark = pytest.mark.integration

EVENT = {"name": "Lake Retreat", "date": "2026-08-01T12:00:00", "isPublic": False}


def test_create_and_list_events(client, auth_headers, host):
    headers = auth_headers(host)
    response = client.post("/api/v1/events", headers=headers, json=EVENT)
    assert response.status_code == 201
    created = response.json()
    assert created["name"] == "Lake Retreat"
    assert len(created["eventCode"]) == 8
    assert len(created["accessCode"]) == 6

    # resubmission is answered with the same event
    again = client.post("/api/v1/events", headers=headers, json=EVENT)
    assert again.json()["id"] == created["id"]

    listing = client.get("/api/v1/events", headers=headers).json()
    assert listing["total"] == 1
    assert listing["events"][0]["id"] == created["id"]


def test_create_conflict_while_guard_held(client, auth_headers, host, memory_cache, monkeypatch):
    monkeypatch.setattr(settings, "EVENT_CREATE_WAIT_SECS", 0.2)
    key = event_creation_key(host.id, EVENT["name"], datetime(2026, 8, 1))
    asyncio.run(memory_cache.set_if_absent(key, "1", 60))

    response = client.post("/api/v1/events", headers=auth_headers(host), json=EVENT)
    assert response.status_code == 409


def test_blank_name_rejected(client, auth_headers, host):
    response = client.post("/api/v1/events", headers=auth_headers(host), json={**EVENT, "name": "   "})
    assert response.status_code == 422


def test_update_regenerate_and_delete(client, auth_headers, host, other_user, event):
    headers = auth_headers(host)
    response = client.patch(f"/api/v1/events/{event.id}", headers=headers, json={"isPublic": True})
    assert response.status_code == 200
    assert response.json()["isPublic"] is True

    old_code = event.access_code
    response = client.post(f"/api/v1/events/{event.id}/access-code", headers=headers)
    assert response.json()["accessCode"] != old_code

    assert client.delete(f"/api/v1/events/{event.id}", headers=auth_headers(other_user)).status_code == 403
    assert client.delete(f"/api/v1/events/{event.id}", headers=headers).status_code == 204
    assert client.get("/api/v1/events", headers=headers).json()["total"] == 0


def test_gallery_with_code_and_paging(client, event, make_photo):
    for _ in range(3):
        make_photo(event)

    assert client.get(f"/api/v1/events/{event.id}/photos").status_code == 403

    response = client.get(
        f"/api/v1/events/{event.id}/photos",
        params={"code": event.access_code, "page": 2, "pageSize": 2},
    )
    assert response.status_code == 200
    body = response.json()
    assert body["total"] == 3
    assert body["page"] == 2
    assert body["pageSize"] == 2
    assert len(body["photos"]) == 1


def test_gallery_accepts_access_cookie(client, event, make_photo):
    make_photo(event)
    cookie = f"evt:{event.event_code}:access={event.access_code}"
    response = client.get(f"/api/v1/events/{event.id}/photos", headers={"Cookie": cookie})
    assert response.status_code == 200
    assert response.json()["total"] == 1


def test_unknown_event_is_404(client):
    assert client.get("/api/v1/events/9999/photos").status_code == 404


def test_event_stats(client, event, make_photo):
    make_photo(event, file_size=1234)
    response = client.get(f"/api/v1/events/{event.id}/stats", params={"code": event.access_code})
    assert response.status_code == 200
    assert response.json()["totalSizeBytes"] == 1234


def test_lookup_by_code_hides_access_code(client, event):
    response = client.get(f"/api/v1/events/code/{event.event_code.lower()}")
    assert response.status_code == 200
    body = response.json()
    assert body["id"] == event.id
    assert "accessCode" not in body


def test_host_plan(client, event):
    response = client.get(f"/api/v1/events/{event.id}/host-plan")
    assert response.json() == {"planName": "free", "maxFileSize": 10 * 1024 * 1024, "maxPhotosPerEvent": 20}
