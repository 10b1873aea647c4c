"""SimplyBook booking mirror and event creation."""

from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Tuple

from loguru import logger

from minimusiker.clients.simplybook import SimplyBookClient, map_intake_fields, match_region
from minimusiker.core.errors import ValidationError
from minimusiker.core.identifiers import generate_event_id
from minimusiker.core.models import Event, PortalStatus, Region, SchoolBooking
from minimusiker.core.records import encode_fields
from minimusiker.services.events import EventService
from minimusiker.services.repository import Repository
from minimusiker.services.tasks import TaskService
from minimusiker.services.teacher import DEFAULT_EVENT_TYPE, TeacherService


@dataclass
class SyncResult:
    fetched: int = 0
    created: int = 0
    updated: int = 0
    skipped: List[str] = field(default_factory=list)


def _date_only(value: Optional[str]) -> Optional[str]:
    if not value:
        return None
    return str(value).split(" ")[0].split("T")[0]


def booking_values(
    booking: Dict[str, Any], regions: Dict[str, str]
) -> Dict[str, Any]:
    """SchoolBooking attribute values for one SimplyBook booking."""
    intake = map_intake_fields(booking)
    values: Dict[str, Any] = {
        "simplybook_id": str(booking["id"]),
        "simplybook_hash": booking.get("hash") or booking.get("code") or "",
        "school_name": intake["school_name"],
        "school_contact_name": intake["contact_person"],
        "school_contact_email": intake["contact_email"] or "",
        "school_phone": intake["phone"] or "",
        "school_address": intake["address"],
        "school_postal_code": intake["postal_code"],
        "city": intake["city"] or "",
        "school_size_category": intake["cost_category"],
        "simplybook_status": "confirmed",
        "start_date": _date_only(intake["booking_date"]),
        "end_date": _date_only(booking.get("end_date") or booking.get("end_date_time")),
    }
    if intake["number_of_children"]:
        values["estimated_children"] = intake["number_of_children"]
    region_id = match_region(intake["region"], regions)
    if region_id:
        values["region"] = [region_id]
    elif intake["region"]:
        logger.warning(f"No region matches '{intake['region']}' (booking {booking['id']})")
    return values


class BookingService:
    def __init__(
        self,
        repo: Repository,
        simplybook: SimplyBookClient,
        events: EventService,
        teachers: TeacherService,
        tasks: TaskService,
    ):
        self.repo = repo
        self.simplybook = simplybook
        self.events = events
        self.teachers = teachers
        self.tasks = tasks

    async def _regions(self) -> Dict[str, str]:
        return {r.record_id: r.name for r in await self.repo.find(Region)}

    async def sync_bookings(
        self,
        date_from: Optional[str] = None,
        date_to: Optional[str] = None,
        dry_run: bool = False,
    ) -> SyncResult:
        """Upsert confirmed SimplyBook bookings into SchoolBookings.

        New rows start at portal status ``pending_setup``; existing rows
        keep their portal status and staff assignment.
        """
        bookings = await self.simplybook.get_bookings(date_from, date_to)
        result = SyncResult(fetched=len(bookings))
        logger.info(f"Fetched {len(bookings)} bookings from SimplyBook")

        regions = await self._regions()
        existing = {b.simplybook_id: b for b in await self.repo.find(SchoolBooking)}

        creates: List[Dict[str, Any]] = []
        updates: List[Tuple[str, Dict[str, Any]]] = []
        for summary in bookings:
            booking_id = summary.get("id")
            if not booking_id:
                result.skipped.append("?")
                continue
            details = await self.simplybook.get_booking_details(str(booking_id))
            booking = {**summary, **(details or {})}
            values = booking_values(booking, regions)
            if not values["school_name"]:
                logger.warning(f"Skipping booking {booking_id}: no school name")
                result.skipped.append(str(booking_id))
                continue

            current = existing.get(str(booking_id))
            if current:
                updates.append((current.record_id, encode_fields(SchoolBooking, values)))
            else:
                values["portal_status"] = PortalStatus.PENDING_SETUP
                creates.append(encode_fields(SchoolBooking, values))

        result.created = len(creates)
        result.updated = len(updates)
        if dry_run:
            logger.info(
                f"Dry run: would create {result.created} and update {result.updated} bookings"
            )
            return result

        if creates:
            await self.repo.airtable.batch_create(SchoolBooking.TABLE_ID, creates)
        if updates:
            await self.repo.airtable.batch_update(SchoolBooking.TABLE_ID, updates)
        logger.info(
            f"Booking sync done: {result.created} created, {result.updated} updated, "
            f"{len(result.skipped)} skipped"
        )
        return result

    async def create_event_from_booking(
        self, booking_record_id: str, event_type: str = DEFAULT_EVENT_TYPE
    ) -> Event:
        """Create the Event for a booking with its default class and tasks.

        Returns the existing Event when the booking already has one.
        """
        booking = await self.repo.get(SchoolBooking, booking_record_id)
        existing = await self.events.get_event_for_booking(booking.record_id)
        if existing:
            logger.debug(f"Booking {booking.simplybook_id} already has event {existing.event_id}")
            return existing

        if not booking.school_name or not booking.start_date:
            raise ValidationError("Booking needs a school name and start date")

        event = await self.repo.create(
            Event,
            event_id=generate_event_id(booking.school_name, event_type, booking.start_date),
            school_name=booking.school_name,
            event_date=booking.start_date,
            event_type=event_type,
            simplybook_booking=[booking.record_id],
            assigned_staff=booking.assigned_staff,
        )
        logger.info(f"Created event {event.event_id} for booking {booking.simplybook_id}")

        await self.teachers.create_default_class(event, booking.estimated_children)
        await self.tasks.generate_tasks_for_event(event.record_id)
        return event
