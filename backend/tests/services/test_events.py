from datetime import date

import pytest

from minimusiker.core.errors import NotFoundError
from minimusiker.core.models import Event, SchoolBooking


@pytest.fixture
def booking(airtable):
    return airtable.seed(SchoolBooking, simplybook_id="1001", school_name="Grundschule am Park")


@pytest.fixture
def event(airtable, booking):
    return airtable.seed(
        Event,
        event_id="evt_park",
        school_name="Grundschule am Park",
        event_date=date(2026, 3, 20),
        simplybook_booking=[booking.record_id],
    )


@pytest.mark.asyncio
async def test_resolve_by_event_id(events, event):
    resolved = await events.resolve_event("evt_park")
    assert resolved.record_id == event.record_id


@pytest.mark.asyncio
async def test_resolve_by_legacy_booking_id(events, airtable, event):
    migrated = airtable.seed(
        Event, event_id="evt_linde", school_name="Lindenschule", legacy_booking_id="1234"
    )
    resolved = await events.resolve_event("1234")
    assert resolved.record_id == migrated.record_id

    airtable.seed(Event, event_id="evt_eiche", legacy_booking_id="alt_eiche")
    assert (await events.resolve_event("alt_eiche")).event_id == "evt_eiche"


@pytest.mark.asyncio
async def test_exact_event_id_wins_over_legacy_booking_id(events, airtable, event):
    airtable.seed(Event, event_id="evt_other", legacy_booking_id="evt_park")
    resolved = await events.resolve_event("evt_park")
    assert resolved.record_id == event.record_id


@pytest.mark.asyncio
async def test_legacy_booking_id_wins_over_simplybook_booking(events, airtable, event):
    migrated = airtable.seed(Event, event_id="evt_linde", legacy_booking_id="1001")
    resolved = await events.resolve_event("1001")
    assert resolved.record_id == migrated.record_id


@pytest.mark.asyncio
async def test_resolve_through_simplybook_booking(events, event):
    resolved = await events.resolve_event("1001")
    assert resolved.record_id == event.record_id


@pytest.mark.asyncio
async def test_unknown_ids(events, event):
    assert await events.resolve_event("9999") is None
    assert await events.resolve_event("evt_unbekannt") is None
    with pytest.raises(NotFoundError):
        await events.require_event("9999")
