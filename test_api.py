"""HTTP contract: routing, error envelope, roles and tenant isolation"""
import json
from uuid import uuid4

import pytest

from conftest import ALERT, DELIVERY, STAFF, VISITOR
from society_gate.domain.actors import Actor, Role


@pytest.fixture
async def flat_owner(client, headers, admin, society_id):
    """Resident created through the directory API"""
    response = await client.post(
        "/api/v1/residents/",
        json={"society_id": str(society_id), "name": "Asha Rao", "flat_no": "a-101", "phone": "9000000001"},
        headers=headers(admin),
    )
    assert response.status_code == 201
    body = response.json()
    assert body["flat_no"] == "A-101"
    return Actor(actor_id=body["id"], role=Role.RESIDENT, name=body["name"])


async def test_health(client):
    response = await client.get("/health")
    assert response.status_code == 200
    assert response.json()["status"] == "healthy"


async def test_missing_identity_is_rejected(client, society_id):
    response = await client.post(
        "/api/v1/verify",
        json={"credential": "D-001", "variant": "delivery"},
        headers={"X-Society-ID": str(society_id)},
    )
    assert response.status_code == 403
    assert response.json() == {
        "status": 403,
        "error_kind": "Unauthorized",
        "message": "Missing actor identity",
    }


async def test_unknown_role_is_rejected(client, society_id):
    response = await client.get(
        "/api/v1/activity/",
        headers={"X-Society-ID": str(society_id), "X-Actor-ID": "x", "X-Actor-Role": "janitor"},
    )
    assert response.status_code == 403
    assert response.json()["error_kind"] == "Unauthorized"


async def test_unknown_credential_envelope(client, headers, security):
    response = await client.post(
        "/api/v1/verify",
        json={"credential": "D-404", "variant": "delivery"},
        headers=headers(security),
    )
    assert response.status_code == 404
    body = response.json()
    assert body["status"] == 404
    assert body["error_kind"] == "NotFound"
    assert "D-404" in body["message"]


async def test_delivery_flow_over_http(client, headers, admin, security, flat_owner):
    created = await client.post("/api/v1/deliveries/", json=DELIVERY, headers=headers(flat_owner))
    assert created.status_code == 201
    delivery = created.json()
    assert delivery["status"] == "pending"
    assert delivery["unique_id"].startswith("DLV-")
    assert delivery["resident_id"] == flat_owner.actor_id

    code = delivery["unique_id"].lower()

    entry = await client.post("/api/v1/deliveries/scan", json={"unique_id": code}, headers=headers(security))
    assert entry.status_code == 200
    assert entry.json()["status"] == 200
    assert entry.json()["variant"] == "delivery"
    assert entry.json()["message"] == "Delivery entry recorded"
    assert entry.json()["entity"]["status"] == "approved"

    exit_ = await client.post(
        "/api/v1/verify",
        json={"credential": code, "variant": "delivery"},
        headers=headers(security),
    )
    assert exit_.status_code == 200
    assert exit_.json()["message"] == "Delivery exit recorded"

    again = await client.post("/api/v1/deliveries/scan", json={"unique_id": code}, headers=headers(security))
    assert again.status_code == 409
    assert again.json() == {
        "status": 409,
        "error_kind": "AlreadyTerminal",
        "message": "Delivery already completed",
    }

    logs = await client.get(f"/api/v1/deliveries/{delivery['id']}/logs", headers=headers(flat_owner))
    assert logs.status_code == 200
    assert [r["edge"] for r in logs.json()] == ["entry", "exit"]

    deleted = await client.delete(f"/api/v1/deliveries/{delivery['id']}", headers=headers(admin))
    assert deleted.status_code == 409
    assert deleted.json()["error_kind"] == "InvalidState"


async def test_generic_entity_contract(client, headers, admin, flat_owner):
    created = await client.post(
        "/api/v1/entities",
        json={"variant": "delivery", "subject_info": {**DELIVERY, "unique_id": "D-900"}},
        headers=headers(admin),
    )
    assert created.status_code == 201
    entity_id = created.json()["entity"]["id"]

    snapshot = await client.get(f"/api/v1/entities/{entity_id}", headers=headers(admin))
    assert snapshot.status_code == 200
    assert snapshot.json()["variant"] == "delivery"
    assert snapshot.json()["entity"]["unique_id"] == "D-900"

    patched = await client.patch(
        f"/api/v1/entities/{entity_id}",
        json={"subject_info": {"delivery_company": "Flipkart"}},
        headers=headers(admin),
    )
    assert patched.status_code == 200
    assert patched.json()["entity"]["delivery_company"] == "Flipkart"

    forced = await client.patch(
        f"/api/v1/entities/{entity_id}",
        json={"subject_info": {"status": "completed"}},
        headers=headers(admin),
    )
    assert forced.status_code == 422
    assert forced.json()["error_kind"] == "ValidationError"

    history = await client.get(f"/api/v1/history/{entity_id}", headers=headers(admin))
    assert history.status_code == 200
    assert history.json() == []

    removed = await client.delete(f"/api/v1/entities/{entity_id}", headers=headers(admin))
    assert removed.status_code == 204

    missing = await client.get(f"/api/v1/entities/{entity_id}", headers=headers(admin))
    assert missing.status_code == 404


async def test_duplicate_credential_over_http(client, headers, admin, flat_owner):
    payload = {"variant": "delivery", "subject_info": {**DELIVERY, "unique_id": "D-001"}}
    first = await client.post("/api/v1/entities", json=payload, headers=headers(admin))
    assert first.status_code == 201

    second = await client.post("/api/v1/entities", json=payload, headers=headers(admin))
    assert second.status_code == 409
    assert second.json()["error_kind"] == "DuplicateCredential"


async def test_tenant_isolation(client, headers, admin, security, flat_owner):
    created = await client.post(
        "/api/v1/entities",
        json={"variant": "delivery", "subject_info": {**DELIVERY, "unique_id": "D-321"}},
        headers=headers(admin),
    )
    entity_id = created.json()["entity"]["id"]
    other = uuid4()

    snapshot = await client.get(f"/api/v1/entities/{entity_id}", headers=headers(admin, other))
    assert snapshot.status_code == 404

    scan = await client.post(
        "/api/v1/verify",
        json={"credential": "D-321", "variant": "delivery"},
        headers=headers(security, other),
    )
    assert scan.status_code == 404

    listing = await client.get("/api/v1/deliveries/", headers=headers(admin, other))
    assert listing.json() == []


async def test_visitor_capture_and_approval(client, headers, security, flat_owner):
    no_photo = await client.post("/api/v1/visitors/capture", json=VISITOR, headers=headers(security))
    assert no_photo.status_code == 422
    assert no_photo.json()["message"] == "Please capture visitor photo"

    captured = await client.post(
        "/api/v1/visitors/capture",
        json={**VISITOR, "image_url": "https://cdn.example/visitor.jpg"},
        headers=headers(security),
    )
    assert captured.status_code == 201
    visitor = captured.json()
    assert visitor["status"] == "pending"

    pending = await client.get("/api/v1/visitors/pending", headers=headers(flat_owner))
    assert [v["id"] for v in pending.json()] == [visitor["id"]]

    early = await client.post("/api/v1/visitors/scan", json={"qr_code": visitor["qr_code"]}, headers=headers(security))
    assert early.status_code == 409
    assert early.json()["error_kind"] == "IllegalTransition"

    approved = await client.post(f"/api/v1/visitors/{visitor['id']}/approve", headers=headers(flat_owner))
    assert approved.status_code == 200
    assert approved.json()["entity"]["status"] == "granted"

    scanned = await client.post("/api/v1/visitors/scan", json={"qr_code": visitor["qr_code"]}, headers=headers(security))
    assert scanned.json()["message"] == "Visitor checked in"

    left = await client.post(f"/api/v1/visitors/{visitor['id']}/exit", headers=headers(security))
    assert left.status_code == 200
    assert left.json()["entity"]["status"] == "checked_out"


async def test_residents_cannot_capture_visitors(client, headers, flat_owner):
    response = await client.post(
        "/api/v1/visitors/capture",
        json={**VISITOR, "image_url": "https://cdn.example/visitor.jpg"},
        headers=headers(flat_owner),
    )
    assert response.status_code == 403


async def test_invalid_visitor_qr(client, headers, security):
    response = await client.post("/api/v1/visitors/scan", json={"qr_code": "garbage"}, headers=headers(security))
    assert response.status_code == 404
    assert response.json()["message"] == "Invalid QR code"


async def test_staff_endpoints(client, headers, admin, security, flat_owner):
    forbidden = await client.post("/api/v1/staff/register", json=STAFF, headers=headers(flat_owner))
    assert forbidden.status_code == 403

    registered = await client.post("/api/v1/staff/register", json=STAFF, headers=headers(admin))
    assert registered.status_code == 201
    staff_id = registered.json()["id"]

    entry = await client.post("/api/v1/staff/entry", json={"permanent_id": "s-42"}, headers=headers(security))
    assert entry.json()["message"] == "Staff entry recorded"

    inside = await client.get("/api/v1/staff/", params={"state": "inside"}, headers=headers(security))
    assert [s["id"] for s in inside.json()] == [staff_id]

    blocked = await client.post(f"/api/v1/staff/{staff_id}/block", headers=headers(admin))
    assert blocked.json()["entity"]["is_blocked"] is True

    refused = await client.post("/api/v1/staff/exit", json={"permanent_id": "S-42"}, headers=headers(security))
    assert refused.status_code == 409
    assert refused.json()["message"] == "Staff member is blocked"

    listed = await client.get("/api/v1/staff/", params={"state": "blocked"}, headers=headers(security))
    assert len(listed.json()) == 1

    history = await client.get("/api/v1/staff/history/S-42", headers=headers(security))
    assert [r["edge"] for r in history.json()] == ["entry", "block"]


async def test_vehicle_endpoints(client, headers, security, flat_owner):
    registered = await client.post(
        "/api/v1/vehicles/register",
        json={"vehicle_no": "MH-12-AB-1234", "vehicle_type": "car", "flat_no": "A-101"},
        headers=headers(security),
    )
    assert registered.status_code == 201
    vehicle = registered.json()
    assert vehicle["vehicle_no"] == "MH12AB1234"
    assert vehicle["resident_id"] == flat_owner.actor_id

    entry = await client.post("/api/v1/vehicles/verify/mh12ab1234/entry", headers=headers(security))
    assert entry.status_code == 200
    assert entry.json()["entity"]["status"] == "inside"

    repeat = await client.post("/api/v1/vehicles/verify/MH12AB1234/entry", headers=headers(security))
    assert repeat.status_code == 409
    assert repeat.json()["error_kind"] == "IllegalTransition"

    bogus = await client.post("/api/v1/vehicles/verify/MH12AB1234/park", headers=headers(security))
    assert bogus.status_code == 422

    bad_plate = await client.post("/api/v1/vehicles/scan", json={"vehicle_no": "XYZ"}, headers=headers(security))
    assert bad_plate.status_code == 422

    exit_ = await client.post("/api/v1/vehicles/scan", json={"vehicle_no": "MH12AB1234"}, headers=headers(security))
    assert exit_.json()["message"] == "Vehicle exit recorded"

    history = await client.get(f"/api/v1/vehicles/{vehicle['id']}/history", headers=headers(security))
    assert [r["edge"] for r in history.json()] == ["entry", "exit"]


async def test_emergency_endpoints(client, headers, security, flat_owner):
    raised = await client.post("/api/v1/emergencies/", json=ALERT, headers=headers(flat_owner))
    assert raised.status_code == 201
    alert = raised.json()
    assert alert["status"] == "Pending"
    assert alert["resident_id"] == flat_owner.actor_id

    mine = await client.get("/api/v1/emergencies/mine", headers=headers(flat_owner))
    assert [a["id"] for a in mine.json()] == [alert["id"]]

    queue = await client.get("/api/v1/emergencies/", params={"type": "Fire"}, headers=headers(security))
    assert [a["id"] for a in queue.json()] == [alert["id"]]

    resident_list = await client.get("/api/v1/emergencies/", headers=headers(flat_owner))
    assert resident_list.status_code == 403

    processing = await client.put(
        f"/api/v1/emergencies/{alert['id']}/status",
        json={"status": "Processing"},
        headers=headers(security),
    )
    assert processing.status_code == 200
    assert processing.json()["entity"]["action_taken"] == "Marked as Processing by security"

    too_short = await client.put(
        f"/api/v1/emergencies/{alert['id']}/status",
        json={"status": "Resolved", "action_taken": "done"},
        headers=headers(security),
    )
    assert too_short.status_code == 422
    assert too_short.json()["error_kind"] == "ValidationError"

    resolved = await client.put(
        f"/api/v1/emergencies/{alert['id']}/status",
        json={"status": "Resolved", "action_taken": "Fire brigade called, area evacuated"},
        headers=headers(security),
    )
    assert resolved.status_code == 200
    assert resolved.json()["entity"]["status"] == "Resolved"
    assert resolved.json()["entity"]["verified_by"] == "guard-1"

    again = await client.post(f"/api/v1/emergencies/{alert['id']}/quick-update", headers=headers(security))
    assert again.status_code == 409
    assert again.json()["error_kind"] == "AlreadyTerminal"


async def test_unauthorized_entry_alert(client, headers, security):
    response = await client.post("/api/v1/emergencies/unauthorized-entry", headers=headers(security))
    assert response.status_code == 201
    alert = response.json()
    assert alert["type"] == "Unauthorized Entry"
    assert alert["location"] == "Main Gate"
    assert alert["resident_id"] is None


async def test_activity_feed(client, headers, admin, security, flat_owner):
    await client.post(
        "/api/v1/entities",
        json={"variant": "delivery", "subject_info": {**DELIVERY, "unique_id": "D-111"}},
        headers=headers(admin),
    )
    await client.post("/api/v1/verify", json={"credential": "D-111", "variant": "delivery"}, headers=headers(security))

    feed = await client.get("/api/v1/activity/", params={"variant": "delivery"}, headers=headers(security))
    assert feed.status_code == 200
    assert [r["edge"] for r in feed.json()] == ["entry"]

    summary = await client.get("/api/v1/activity/summary", headers=headers(security))
    assert summary.json()["delivery"] == {"approved": 1, "completed": 0, "pending": 0}

    resident_feed = await client.get("/api/v1/activity/", headers=headers(flat_owner))
    assert resident_feed.status_code == 403


async def test_resident_directory_is_admin_managed(client, headers, security, society_id):
    response = await client.post(
        "/api/v1/residents/",
        json={"society_id": str(society_id), "name": "Someone", "flat_no": "C-1"},
        headers=headers(security),
    )
    assert response.status_code == 403


async def test_transition_pushes_notification(client, headers, admin, security, flat_owner):
    import httpx

    from society_gate.api.deps import get_notifier
    from society_gate.infrastructure.notifications import NotificationClient
    from society_gate.main import app

    events = []

    def handler(request):
        events.append(request)
        return httpx.Response(200)

    notifier = NotificationClient(webhook_url="https://hooks.example/gate", transport=httpx.MockTransport(handler))
    app.dependency_overrides[get_notifier] = lambda: notifier

    await client.post(
        "/api/v1/entities",
        json={"variant": "delivery", "subject_info": {**DELIVERY, "unique_id": "D-222"}},
        headers=headers(admin),
    )
    await client.post("/api/v1/verify", json={"credential": "D-222", "variant": "delivery"}, headers=headers(security))

    payloads = [json.loads(request.content) for request in events]
    assert [p["event"] for p in payloads] == ["entity_created", "transition_applied"]
    assert payloads[1]["edge"] == "entry"
    assert payloads[1]["resident_id"] == flat_owner.actor_id
