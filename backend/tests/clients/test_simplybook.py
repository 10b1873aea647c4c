from datetime import datetime, timedelta, timezone
from unittest.mock import AsyncMock

import pytest

from minimusiker.clients.simplybook import (
    SimplyBookClient,
    TokenCacheEntry,
    map_intake_fields,
    match_region,
    normalize_region_name,
)
from minimusiker.core.errors import SimplyBookError

NOW = datetime(2026, 3, 1, 12, 0, tzinfo=timezone.utc)


@pytest.fixture
def client(http_session):
    client = SimplyBookClient(session=http_session)
    client.company_login = "minimusiker"
    client.api_key = "api-key"
    client.user_login = "admin"
    client.user_password = "secret"
    client.endpoint = "https://user-api.simplybook.it/"
    return client


# Token cache


@pytest.mark.asyncio
async def test_token_reused_until_expiry():
    entry = TokenCacheEntry()
    fetch = AsyncMock(side_effect=["t1", "t2"])
    ttl = timedelta(minutes=50)

    assert await entry.get_or_refresh(NOW, fetch, ttl) == "t1"
    assert await entry.get_or_refresh(NOW + timedelta(minutes=49), fetch, ttl) == "t1"
    assert fetch.await_count == 1

    assert await entry.get_or_refresh(NOW + timedelta(minutes=50), fetch, ttl) == "t2"
    assert fetch.await_count == 2


@pytest.mark.asyncio
async def test_admin_and_api_tokens_are_independent(client):
    client._login = AsyncMock(side_effect=["api-token", "admin-token"])
    assert await client.get_token(NOW) == "api-token"
    assert await client.get_admin_token(NOW) == "admin-token"
    assert await client.get_token(NOW) == "api-token"
    assert client._login.await_count == 2


@pytest.mark.asyncio
async def test_admin_token_needs_credentials(client):
    client.user_password = ""
    with pytest.raises(SimplyBookError):
        await client.get_admin_token(NOW)


# Calls


@pytest.mark.asyncio
async def test_admin_call_uses_admin_endpoint(client, http_session, response):
    http_session.post.side_effect = [
        response(payload={"result": "admin-token"}),
        response(payload={"result": {"id": "42"}}),
        response(payload={"result": {"id": "43"}}),
    ]

    assert await client.get_booking_details("42") == {"id": "42"}
    await client.get_booking_details("43")

    login_call, first_call, _ = http_session.post.call_args_list
    assert login_call.args[0] == "https://user-api.simplybook.it/login"
    assert login_call.kwargs["json"]["method"] == "getUserToken"
    assert first_call.args[0] == "https://user-api.simplybook.it/admin"
    assert first_call.kwargs["headers"] == {
        "X-Company-Login": "minimusiker",
        "X-User-Token": "admin-token",
    }


@pytest.mark.asyncio
async def test_public_call_uses_endpoint_root(client, http_session, response):
    http_session.post.side_effect = [
        response(payload={"result": "api-token"}),
        response(payload={"result": []}),
    ]
    await client.call("getEventList", [])
    call = http_session.post.call_args_list[1]
    assert call.args[0] == "https://user-api.simplybook.it/"
    assert call.kwargs["headers"]["X-Token"] == "api-token"


@pytest.mark.asyncio
async def test_login_http_failure(client, http_session, response):
    http_session.post.side_effect = [response(status=401)]
    with pytest.raises(SimplyBookError) as exc:
        await client.get_token(NOW)
    assert exc.value.message == "SimplyBook auth failed: 401"


@pytest.mark.asyncio
async def test_json_rpc_error(client, http_session, response):
    http_session.post.side_effect = [
        response(payload={"result": "admin-token"}),
        response(payload={"error": {"code": -1, "message": "Booking not found"}}),
    ]
    with pytest.raises(SimplyBookError) as exc:
        await client.get_booking_details("999")
    assert exc.value.message == "SimplyBook API error: Booking not found"


@pytest.mark.asyncio
async def test_get_bookings_drops_cancelled(client, http_session, response):
    http_session.post.side_effect = [
        response(payload={"result": "admin-token"}),
        response(
            payload={
                "result": {
                    "1": {"id": "1", "is_confirm": "1"},
                    "2": {"id": "2", "is_confirm": "0"},
                    "3": {"id": "3", "status": "cancelled"},
                }
            }
        ),
    ]
    bookings = await client.get_bookings("2026-01-01")
    assert [b["id"] for b in bookings] == ["1"]
    filters = http_session.post.call_args_list[1].kwargs["json"]["params"][0]
    assert filters["date_from"] == "2026-01-01"
    assert filters["is_confirmed"] == 1


# Intake mapping


def test_map_intake_fields():
    booking = {
        "client": "Grundschule am Park",
        "client_email": "info@gs-park.de",
        "start_date_time": "2026-05-04 09:00:00",
        "unit_name": "Minimusiker Osnabrück",
        "additional_fields": [
            {"field_title": "Ansprechpartner", "value": "Frau Meier"},
            {"field_title": "Anzahl Kinder", "value": "180 ca."},
            {"field_title": "PLZ", "value": "49074"},
        ],
    }
    mapped = map_intake_fields(booking)
    assert mapped["school_name"] == "Grundschule am Park"
    assert mapped["contact_person"] == "Frau Meier"
    assert mapped["contact_email"] == "info@gs-park.de"
    assert mapped["postal_code"] == "49074"
    assert mapped["number_of_children"] == 180
    assert mapped["cost_category"] == ">150 children"
    assert mapped["region"] == "Osnabrück"
    assert mapped["booking_date"] == "2026-05-04"


def test_small_school_category():
    mapped = map_intake_fields({"additional_fields": [{"title": "Kinder", "value": "80"}]})
    assert mapped["cost_category"] == "<150 children"


def test_region_matching():
    regions = {"recA": "Osnabrück", "recB": "Rhein-Main-Neckar", "recC": "OWL"}
    assert normalize_region_name("Rhein Main-Neckar") == "rhein/main/neckar"
    assert match_region("Rhein/Main/Neckar", regions) == "recB"
    assert match_region("Osnabrück/OWL/Paderborn", regions) == "recA"
    assert match_region("Hamburg", regions) is None
    assert match_region(None, regions) is None
