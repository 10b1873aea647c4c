"""Event lookup shared by the role services.

Events are addressed by their canonical ``event_id`` (``evt_...``). Older
links and the teacher portal still carry a legacy booking ID, so lookups fall
back to the Event storing that ID, then to the SchoolBooking with that
SimplyBook ID and the Event linked to it.
"""

from typing import Dict, List, Optional

from loguru import logger

from minimusiker.clients.airtable import any_of, field_equals, link_contains, record_is
from minimusiker.core.errors import NotFoundError
from minimusiker.core.identifiers import is_numeric_id
from minimusiker.core.models import Event, PortalStatus, SchoolBooking
from minimusiker.core.models.events import PORTAL_STATUS_ORDER
from minimusiker.services.repository import Repository


class EventService:
    def __init__(self, repo: Repository):
        self.repo = repo

    async def get_by_event_id(self, event_id: str) -> Optional[Event]:
        return await self.repo.find_one(
            Event, field_equals(Event.field("event_id"), event_id)
        )

    async def get_booking_by_simplybook_id(self, simplybook_id: str) -> Optional[SchoolBooking]:
        return await self.repo.find_one(
            SchoolBooking,
            field_equals(SchoolBooking.field("simplybook_id"), simplybook_id),
        )

    async def get_event_for_booking(self, booking_record_id: str) -> Optional[Event]:
        return await self.repo.find_one(
            Event, link_contains(Event.field("simplybook_booking"), booking_record_id)
        )

    async def get_events_by_record_ids(self, record_ids: List[str]) -> List[Event]:
        if not record_ids:
            return []
        return await self.repo.find(Event, any_of(*[record_is(r) for r in record_ids]))

    async def get_by_legacy_booking_id(self, booking_id: str) -> Optional[Event]:
        return await self.repo.find_one(
            Event, field_equals(Event.field("legacy_booking_id"), booking_id)
        )

    async def resolve_event(self, event_id: str) -> Optional[Event]:
        """Find an Event by event ID, then by its legacy booking ID, then
        through the SchoolBooking with that SimplyBook ID.

        An exact event ID match always wins.
        """
        event = await self.get_by_event_id(event_id)
        if event:
            return event
        event = await self.get_by_legacy_booking_id(event_id)
        if event or not is_numeric_id(event_id):
            return event

        booking = await self.get_booking_by_simplybook_id(event_id)
        if not booking:
            return None
        event = await self.get_event_for_booking(booking.record_id)
        if event:
            logger.debug(f"Resolved booking {event_id} to event {event.event_id}")
        return event

    async def require_event(self, event_id: str) -> Event:
        event = await self.resolve_event(event_id)
        if not event:
            raise NotFoundError("Event not found")
        return event

    async def update_event(self, event: Event, **values) -> Event:
        return await self.repo.update(Event, event.record_id, **values)

    async def advance_portal_status(
        self, booking: SchoolBooking, target: PortalStatus
    ) -> SchoolBooking:
        """Move a booking's portal status forward; never backwards."""
        if PORTAL_STATUS_ORDER.index(target) <= PORTAL_STATUS_ORDER.index(
            booking.portal_status
        ):
            return booking
        logger.info(
            f"Booking {booking.simplybook_id}: portal status "
            f"{booking.portal_status.value} -> {target.value}"
        )
        return await self.repo.update(SchoolBooking, booking.record_id, portal_status=target)

    async def list_events(self) -> List[Event]:
        return await self.repo.find(Event, sort=[("event_date", "asc")])

    async def list_assigned(self, link_attr: str, person_record_id: str) -> List[Event]:
        """Events whose ``assigned_staff``/``assigned_engineer`` link a person."""
        events = await self.repo.find(
            Event,
            link_contains(Event.field(link_attr), person_record_id),
            sort=[("event_date", "asc")],
        )
        return events

    @staticmethod
    def summary(event: Event) -> Dict[str, object]:
        return {
            "eventId": event.event_id,
            "eventRecordId": event.record_id,
            "schoolName": event.school_name,
            "eventDate": event.event_date.isoformat() if event.event_date else None,
            "eventType": event.event_type,
            "audioPipelineStage": event.audio_pipeline_stage.value,
            "adminApprovalStatus": event.admin_approval_status.value,
            "allTracksApproved": event.all_tracks_approved,
            "isPublished": event.is_published,
            "isSchulsong": event.is_schulsong,
        }
