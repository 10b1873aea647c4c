"""Parent, shop, staff, admin and system routes."""

from datetime import date, timedelta

import pytest

from minimusiker.core.config import settings
from minimusiker.core.models import Event, GuesstimateOrder
from minimusiker.core.sessions import AdminSession, ParentChild, ParentSession, StaffSession
from minimusiker.services.repository import Repository
from minimusiker.services.tasks import TaskService


@pytest.fixture
def parent():
    return ParentSession(
        email="eltern@example.org",
        parent_id="par_1",
        first_name="Anna",
        event_id="evt_park",
        school_name="Grundschule am Park",
        children=[ParentChild(child_name="Mia", event_id="evt_park", class_id="cls_1")],
    )


@pytest.fixture
def event(airtable):
    return airtable.seed(
        Event,
        event_id="evt_park",
        school_name="Grundschule am Park",
        event_date=date.today() + timedelta(days=60),
        assigned_staff=["recStaff"],
    )


# ============================================================================
# SYSTEM
# ============================================================================


@pytest.mark.asyncio
async def test_health(client):
    response = await client.get("/api/system/health")
    assert response.status_code == 200
    assert response.json() == {"status": "ok", "version": settings.APP_VERSION}


@pytest.mark.asyncio
async def test_responses_carry_request_id(client):
    response = await client.get("/api/system/health", headers={"X-Request-ID": "req-42"})
    assert response.headers["X-Request-ID"] == "req-42"


# ============================================================================
# PARENT
# ============================================================================


@pytest.mark.asyncio
async def test_parent_me(client, login, parent):
    assert (await client.get("/api/parent/me")).status_code == 401

    login(parent)
    response = await client.get("/api/parent/me")

    assert response.status_code == 200
    assert response.json()["parent"]["firstName"] == "Anna"


@pytest.mark.asyncio
async def test_parent_audio_before_release(client, login, parent, event):
    login(parent)
    response = await client.get("/api/parent/events/evt_park/audio")

    assert response.status_code == 200
    audio = response.json()["audio"]
    assert audio["isVisible"] is False
    assert audio["tracks"] == []


@pytest.mark.asyncio
async def test_parent_cannot_open_other_event(client, login, parent, event):
    login(parent)

    for path in (
        "/api/parent/events/evt_other/audio",
        "/api/parent/events/evt_other/songs/recSong/download",
    ):
        response = await client.get(path)
        assert response.status_code == 403
        assert response.json()["error"] == "You do not have access to this event"


# ============================================================================
# SHOP
# ============================================================================


@pytest.mark.asyncio
async def test_checkout_requires_parent(client):
    response = await client.post(
        "/api/shop/checkout", json={"lineItems": [{"variantId": "1", "quantity": 1}]}
    )
    assert response.status_code == 401


@pytest.mark.asyncio
async def test_mock_checkout(client, login, parent, event, monkeypatch):
    monkeypatch.setattr(settings, "ENABLE_SHOPIFY_INTEGRATION", False)
    login(parent)

    response = await client.post(
        "/api/shop/checkout",
        json={
            "lineItems": [
                {"variantId": "101", "quantity": 2, "productType": "tshirt"},
                {"variantId": "202", "quantity": 1, "productType": "hoodie"},
            ]
        },
    )

    assert response.status_code == 200
    data = response.json()
    assert data["isMock"] is True
    assert data["totalQuantity"] == 3
    assert data["cartId"].startswith("mock_cart_")
    assert data["discountCodes"] == ["EARLYBIRD10", "BUNDLE15"]


@pytest.mark.asyncio
async def test_checkout_needs_line_items(client, login, parent):
    login(parent)
    response = await client.post("/api/shop/checkout", json={"lineItems": []})
    assert response.status_code == 400
    assert response.json()["error"] == "Line items are required"


# ============================================================================
# STAFF
# ============================================================================


@pytest.mark.asyncio
async def test_staff_sees_only_assigned_events(client, login, event):
    login(StaffSession(email="lena@minimusiker.de", staff_id="recStaff", name="Lena"))
    listed = await client.get("/api/staff/events")
    assert [e["eventId"] for e in listed.json()["events"]] == ["evt_park"]

    detail = await client.get("/api/staff/events/evt_park")
    assert detail.status_code == 200
    assert detail.json()["audio"]["pipelineStage"] == "pending"

    login(StaffSession(email="tom@minimusiker.de", staff_id="recOther"))
    forbidden = await client.get("/api/staff/events/evt_park")
    assert forbidden.status_code == 403
    assert forbidden.json()["error"] == "Event is not assigned to you"


# ============================================================================
# ADMIN
# ============================================================================


@pytest.fixture
def admin(login):
    login(AdminSession(email="admin@minimusiker.de"))


@pytest.mark.asyncio
async def test_admin_routes_need_admin_session(client, login, parent):
    login(parent)
    response = await client.get("/api/admin/tasks")
    assert response.status_code == 401


@pytest.mark.asyncio
async def test_admin_completes_flyer_task(client, admin, airtable, storage, event):
    tasks_before = await client.get("/api/admin/tasks")
    assert tasks_before.json()["tasks"] == []

    await TaskService(Repository(airtable), storage).generate_tasks_for_event(event.record_id)
    listed = await client.get("/api/admin/tasks", params={"type": "paper_order"})
    assert listed.status_code == 200
    assert listed.json()["counts"]["all"] == 5
    flyer = next(t for t in listed.json()["tasks"] if t["templateId"] == "flyer1")

    missing_amount = await client.post(f"/api/admin/tasks/{flyer['id']}/complete", json={})
    assert missing_amount.status_code == 400

    response = await client.post(
        f"/api/admin/tasks/{flyer['id']}/complete", json={"data": {"amount": 149.9}}
    )
    assert response.status_code == 200
    data = response.json()
    assert data["goId"] == "GO-0001"
    assert data["task"]["status"] == "completed"
    assert data["task"]["completedBy"] == "admin@minimusiker.de"
    assert data["task"]["goDisplayId"] == "GO-0001"
    assert len(airtable.rows(GuesstimateOrder)) == 1

    shipping = await client.get(f"/api/admin/tasks/{data['shippingTaskId']}")
    assert shipping.json()["task"]["templateId"] == "shipping_flyer1"


@pytest.mark.asyncio
async def test_publish_requires_approved_tracks(client, admin, event):
    response = await client.post("/api/admin/events/evt_park/publish", json={"published": True})
    assert response.status_code == 400
    assert response.json()["error"] == "All tracks must be approved before publishing"


@pytest.mark.asyncio
async def test_publish_body_is_validated(client, admin, event):
    response = await client.post("/api/admin/events/evt_park/publish", json={})
    assert response.status_code == 400
    assert response.json()["error"].startswith("published: ")


@pytest.mark.asyncio
async def test_unknown_event_is_404(client, admin):
    response = await client.get("/api/admin/events/evt_missing/audio")
    assert response.status_code == 404
    assert response.json()["success"] is False
