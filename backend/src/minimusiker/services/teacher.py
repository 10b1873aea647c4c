"""Teacher portal operations.

A teacher sees the events of every SchoolBooking whose contact email is
theirs, plus events linked directly on their Teachers record. Events are
keyed by the canonical event ID when an Event record exists and by the
SimplyBook booking ID otherwise.
"""

from datetime import date, datetime, timezone
from typing import Dict, List, Optional, Sequence

from fastapi import BackgroundTasks
from loguru import logger

from minimusiker.clients.airtable import (
    all_of,
    any_of,
    field_equals,
    field_equals_ci,
    is_true,
    link_contains,
    not_blank,
    record_is,
)
from minimusiker.core.config import settings
from minimusiker.core.errors import (
    AlreadyApprovedError,
    ConflictError,
    InvalidFeatureError,
    NotFoundError,
    ValidationError,
)
from minimusiker.core.identifiers import (
    DEFAULT_CLASS_NAME,
    fallback_class_id,
    generate_class_id,
    generate_group_id,
)
from minimusiker.core.models import (
    AudioFile,
    AudioFileType,
    ClassGroup,
    Event,
    PortalStatus,
    Registration,
    SchoolBooking,
    SchoolClass,
    Song,
    Teacher,
)
from minimusiker.core.pipeline import ApprovalStatus
from minimusiker.services.events import EventService
from minimusiker.services.notifications import NotificationService
from minimusiker.services.repository import Repository
from minimusiker.services.views import (
    AudioFlags,
    ClassView,
    EventProgress,
    GroupView,
    SchulsongStatus,
    SongView,
    TeacherEventView,
)

SONGS_PER_CLASS = 1
DEFAULT_EVENT_TYPE = "MiniMusiker Day"


def event_status(event_date: Optional[date], has_classes: bool, today: date) -> str:
    """Teacher-facing status by calendar date.

    ``needs-setup`` while no class exists (or no date is known), then
    ``upcoming`` before the day, ``in-progress`` on the day and
    ``completed`` afterwards.
    """
    if not has_classes or event_date is None:
        return "needs-setup"
    if event_date > today:
        return "upcoming"
    if event_date == today:
        return "in-progress"
    return "completed"


class TeacherService:
    def __init__(
        self,
        repo: Repository,
        events: EventService,
        notifications: NotificationService,
    ):
        self.repo = repo
        self.events = events
        self.notifications = notifications

    # Teachers

    async def get_teacher_by_email(self, email: str) -> Optional[Teacher]:
        return await self.repo.find_one(
            Teacher, field_equals_ci(Teacher.field("email"), email)
        )

    async def get_bookings_for_teacher(self, email: str) -> List[SchoolBooking]:
        return await self.repo.find(
            SchoolBooking,
            field_equals_ci(SchoolBooking.field("school_contact_email"), email),
        )

    # Events

    async def _classes_for(self, *event_ids: str) -> List[SchoolClass]:
        field_id = SchoolClass.field("legacy_booking_id")
        ids = [i for i in dict.fromkeys(event_ids) if i]
        return await self.repo.find(
            SchoolClass, any_of(*[field_equals(field_id, i) for i in ids])
        )

    async def _registration_count(self, event_id: str) -> int:
        registrations = await self.repo.find(
            Registration,
            all_of(
                field_equals(Registration.field("booking_id"), event_id),
                not_blank(Registration.field("registered_child")),
            ),
        )
        return len(registrations)

    async def _build_event_view(
        self,
        event_id: str,
        today: date,
        event: Optional[Event] = None,
        booking: Optional[SchoolBooking] = None,
    ) -> TeacherEventView:
        simplybook_id = booking.simplybook_id if booking else None
        classes = await self._classes_for(event_id, simplybook_id or "")
        songs = await self.get_songs_by_event(event_id)
        audio_files = await self.get_audio_files_by_event(event_id)

        class_views = [
            ClassView(
                class_id=c.class_id,
                class_name=c.class_name,
                num_children=c.total_children,
                songs=[SongView.from_song(s) for s in songs if s.class_id == c.class_id],
                audio_status=AudioFlags.from_files(
                    [a for a in audio_files if a.class_id == c.class_id]
                ),
                is_default=c.is_default,
            )
            for c in classes
        ]

        event_date = (booking.start_date if booking else None) or (
            event.event_date if event else None
        )
        school_name = (booking.school_name if booking else "") or (
            event.school_name if event else ""
        )
        total_children = sum(c.num_children or 0 for c in class_views)
        days_until = (event_date - today).days if event_date else None

        return TeacherEventView(
            event_id=event_id,
            simplybook_id=simplybook_id,
            event_record_id=event.record_id if event else None,
            booking_record_id=booking.record_id if booking else None,
            school_name=school_name,
            event_date=event_date,
            event_type=(event.event_type if event else "") or DEFAULT_EVENT_TYPE,
            status=event_status(event_date, bool(class_views), today),
            classes=class_views,
            simplybook_hash=booking.simplybook_hash if booking else None,
            school_address=booking.school_address if booking else None,
            school_phone=booking.school_phone if booking else None,
            progress=EventProgress(
                classes_count=len(class_views),
                songs_count=len(songs),
                expected_songs=len(class_views) * SONGS_PER_CLASS,
                registrations_count=await self._registration_count(event_id),
                total_children_expected=total_children or None,
                days_until_event=days_until,
                weeks_until_event=round(days_until / 7) if days_until is not None else None,
            ),
        )

    async def get_teacher_events(
        self, email: str, today: Optional[date] = None
    ) -> List[TeacherEventView]:
        """All events of a teacher, sorted by date."""
        today = today or date.today()
        views: List[TeacherEventView] = []
        seen = set()

        for booking in await self.get_bookings_for_teacher(email):
            event = await self.events.get_event_for_booking(booking.record_id)
            event_id = event.event_id if event else booking.simplybook_id
            if not event_id or event_id in seen:
                continue
            seen.add(event_id)
            views.append(
                await self._build_event_view(event_id, today, event=event, booking=booking)
            )

        teacher = await self.get_teacher_by_email(email)
        if teacher:
            linked = await self.events.get_events_by_record_ids(teacher.linked_events)
            for event in linked:
                if event.event_id in seen:
                    continue
                seen.add(event.event_id)
                views.append(await self._build_event_view(event.event_id, today, event=event))

        views.sort(key=lambda v: v.event_date or date.max)
        return views

    async def get_teacher_event_detail(
        self, event_id: str, email: str, today: Optional[date] = None
    ) -> Optional[TeacherEventView]:
        """One of the teacher's events.

        An exact event ID match wins; only when none exists is ``event_id``
        compared with SimplyBook booking IDs, so a booking ID that happens to
        equal another event's ID never shadows it.
        """
        views = await self.get_teacher_events(email, today=today)
        exact = next((v for v in views if v.event_id == event_id), None)
        if exact:
            return exact
        return next((v for v in views if v.simplybook_id == event_id), None)

    # Classes

    async def get_class(self, class_id: str) -> SchoolClass:
        school_class = await self.repo.find_one(
            SchoolClass, field_equals(SchoolClass.field("class_id"), class_id)
        )
        if not school_class:
            raise NotFoundError("Class not found")
        return school_class

    async def verify_teacher_owns_class(self, class_id: str, email: str) -> bool:
        school_class = await self.repo.find_one(
            SchoolClass, field_equals(SchoolClass.field("class_id"), class_id)
        )
        if not school_class or not school_class.legacy_booking_id:
            return False
        event = await self.get_teacher_event_detail(school_class.legacy_booking_id, email)
        return event is not None

    async def create_class(
        self,
        event_id: str,
        class_name: str,
        teacher_name: str = "",
        num_children: Optional[int] = None,
    ) -> ClassView:
        event = await self.events.resolve_event(event_id)
        school_name = event.school_name if event else ""
        event_date = event.event_date if event else None

        booking = None
        if event and event.booking_record_id:
            booking = await self.repo.get(SchoolBooking, event.booking_record_id)
        elif not event:
            booking = await self.events.get_booking_by_simplybook_id(event_id)
        if booking:
            school_name = school_name or booking.school_name or booking.school_contact_name
            event_date = event_date or booking.start_date

        if school_name and event_date:
            class_id = generate_class_id(school_name, event_date, class_name)
        else:
            logger.warning(
                f"Event {event_id} has no school name or date, using fallback class ID"
            )
            class_id = fallback_class_id(event_id)

        values: Dict[str, object] = {
            "class_id": class_id,
            "class_name": class_name,
            "main_teacher": teacher_name,
            "legacy_booking_id": event_id,
        }
        if num_children and num_children > 0:
            values["total_children"] = num_children
        if event:
            values["event"] = [event.record_id]

        created = await self.repo.create(SchoolClass, **values)
        logger.info(f"Created class {class_id} for event {event_id}")

        if booking:
            await self.events.advance_portal_status(booking, PortalStatus.CLASSES_ADDED)

        return ClassView(
            class_id=created.class_id,
            class_name=created.class_name,
            num_children=created.total_children,
        )

    async def create_default_class(
        self,
        event: Event,
        estimated_children: Optional[int] = None,
    ) -> Optional[ClassView]:
        """Create the catch-all "Alle Kinder" class; None if it already exists."""
        if not event.school_name or not event.event_date:
            raise ValidationError("Event needs a school name and date for its default class")

        class_id = generate_class_id(event.school_name, event.event_date, DEFAULT_CLASS_NAME)
        existing = await self.repo.find_one(
            SchoolClass,
            all_of(
                field_equals(SchoolClass.field("class_id"), class_id),
                is_true(SchoolClass.field("is_default")),
            ),
        )
        if existing:
            logger.debug(f"Default class already exists for event {event.event_id}")
            return None

        values: Dict[str, object] = {
            "class_id": class_id,
            "class_name": DEFAULT_CLASS_NAME,
            "main_teacher": "",
            "legacy_booking_id": event.event_id,
            "event": [event.record_id],
            "is_default": True,
        }
        if estimated_children and estimated_children > 0:
            values["total_children"] = estimated_children

        await self.repo.create(SchoolClass, **values)
        logger.info(f"Created default class {class_id} for event {event.event_id}")
        return ClassView(
            class_id=class_id,
            class_name=DEFAULT_CLASS_NAME,
            num_children=values.get("total_children"),
            is_default=True,
        )

    async def update_class(
        self,
        class_id: str,
        class_name: Optional[str] = None,
        num_children: Optional[int] = None,
    ) -> SchoolClass:
        school_class = await self.get_class(class_id)
        values: Dict[str, object] = {}
        if class_name is not None:
            values["class_name"] = class_name
        if num_children is not None:
            values["total_children"] = num_children
        if not values:
            return school_class
        return await self.repo.update(SchoolClass, school_class.record_id, **values)

    async def delete_class(self, class_id: str) -> None:
        school_class = await self.get_class(class_id)
        if school_class.is_default or school_class.class_name == DEFAULT_CLASS_NAME:
            raise ValidationError(
                "Die Standardklasse kann nicht gelöscht werden. Eltern können sich "
                "hier registrieren, bevor Sie Klassen einrichten."
            )

        registered = await self.repo.find(
            Registration,
            all_of(
                field_equals(Registration.field("class_id"), class_id),
                not_blank(Registration.field("registered_child")),
            ),
            max_records=1,
        )
        if registered:
            raise ConflictError("Cannot delete class with registered children")

        if await self.get_songs_by_class(class_id):
            raise ConflictError("Cannot delete class with songs. Remove songs first.")

        await self.repo.delete(SchoolClass, school_class.record_id)
        logger.info(f"Deleted class {class_id}")

    # Songs and audio files

    async def get_songs_by_event(self, event_id: str) -> List[Song]:
        return await self.repo.find(
            Song, field_equals(Song.field("event_id"), event_id), sort=[("order", "asc")]
        )

    async def get_songs_by_class(self, class_id: str) -> List[Song]:
        return await self.repo.find(
            Song, field_equals(Song.field("class_id"), class_id), sort=[("order", "asc")]
        )

    async def get_song(self, song_id: str) -> Song:
        return await self.repo.get(Song, song_id)

    async def get_audio_files_by_event(self, event_id: str) -> List[AudioFile]:
        return await self.repo.find(
            AudioFile, field_equals(AudioFile.field("event_id"), event_id)
        )

    async def get_audio_files_by_class(self, class_id: str) -> List[AudioFile]:
        return await self.repo.find(
            AudioFile, field_equals(AudioFile.field("class_id"), class_id)
        )

    async def create_song(
        self,
        class_id: str,
        event_id: str,
        title: str,
        created_by: str,
        artist: str = "",
        notes: str = "",
        is_schulsong: bool = False,
    ) -> Song:
        existing = await self.get_songs_by_class(class_id)
        song = await self.repo.create(
            Song,
            title=title,
            class_id=class_id,
            event_id=event_id,
            artist=artist,
            notes=notes,
            order=len(existing) + 1,
            created_by=created_by,
            created_at=datetime.now(timezone.utc).isoformat(),
            is_schulsong=is_schulsong,
        )
        logger.info(f"Created song '{title}' for class {class_id}")
        return song

    async def update_song(self, song_id: str, **values: object) -> Song:
        allowed = {"title", "artist", "notes", "order"}
        unknown = set(values) - allowed
        if unknown:
            raise ValidationError(f"Cannot update song fields: {', '.join(sorted(unknown))}")
        await self.get_song(song_id)
        return await self.repo.update(Song, song_id, **values)

    async def delete_song(self, song_id: str) -> None:
        await self.get_song(song_id)
        audio = await self.repo.find(
            AudioFile,
            link_contains(AudioFile.field("song_id"), song_id),
            max_records=1,
        )
        if audio:
            raise ConflictError("Cannot delete song with audio files")
        await self.repo.delete(Song, song_id)

    # Groups

    async def _class_record_ids(self, class_ids: Sequence[str]) -> List[str]:
        record_ids = []
        for class_id in class_ids:
            school_class = await self.repo.find_one(
                SchoolClass, field_equals(SchoolClass.field("class_id"), class_id)
            )
            if school_class:
                record_ids.append(school_class.record_id)
            else:
                logger.warning(f"Class not found: {class_id}")
        return record_ids

    async def _group_view(self, group: ClassGroup, event_id: str) -> GroupView:
        members: List[SchoolClass] = []
        if group.member_classes:
            members = await self.repo.find(
                SchoolClass, any_of(*[record_is(r) for r in group.member_classes])
            )
        return GroupView(
            group_id=group.group_id,
            group_name=group.group_name,
            event_id=event_id,
            member_class_ids=[c.class_id for c in members],
            member_classes=[
                ClassView(
                    class_id=c.class_id,
                    class_name=c.class_name,
                    num_children=c.total_children,
                )
                for c in members
            ],
            songs=[SongView.from_song(s) for s in await self.get_songs_by_class(group.group_id)],
            audio_status=AudioFlags.from_files(
                await self.get_audio_files_by_class(group.group_id)
            ),
            created_at=group.created_at or group.created_time,
            created_by=group.created_by,
        )

    async def get_groups_by_event(self, event_id: str) -> List[GroupView]:
        event = await self.events.resolve_event(event_id)
        if not event:
            return []
        groups = await self.repo.find(ClassGroup)
        return [
            await self._group_view(g, event_id)
            for g in groups
            if event.record_id in g.event
        ]

    async def get_group(self, group_id: str) -> ClassGroup:
        group = await self.repo.find_one(
            ClassGroup, field_equals(ClassGroup.field("group_id"), group_id)
        )
        if not group:
            raise NotFoundError("Group not found")
        return group

    async def verify_teacher_owns_group(self, group_id: str, email: str) -> bool:
        group = await self.repo.find_one(
            ClassGroup, field_equals(ClassGroup.field("group_id"), group_id)
        )
        if not group or not group.event:
            return False
        event = await self.repo.get(Event, group.event[0])
        return await self.get_teacher_event_detail(event.event_id, email) is not None

    async def create_group(
        self,
        event_id: str,
        group_name: str,
        member_class_ids: Sequence[str],
        created_by: str,
    ) -> GroupView:
        """Create a group of at least two classes singing together.

        ``member_class_ids`` are class IDs (``cls_...``), not record IDs.
        """
        if len(member_class_ids) < 2:
            raise ValidationError("At least 2 classes must be selected for a group")

        event = await self.events.require_event(event_id)
        record_ids = await self._class_record_ids(member_class_ids)
        if len(record_ids) < 2:
            raise ValidationError("Could not find enough valid classes to create group")

        group = await self.repo.create(
            ClassGroup,
            group_id=generate_group_id(event_id),
            group_name=group_name,
            event=[event.record_id],
            member_classes=record_ids,
            created_at=datetime.now(timezone.utc).isoformat(),
            created_by=created_by,
        )
        logger.info(f"Created group {group.group_id} with {len(record_ids)} classes")

        return GroupView(
            group_id=group.group_id,
            group_name=group.group_name,
            event_id=event_id,
            member_class_ids=list(member_class_ids),
            created_at=group.created_at,
            created_by=group.created_by,
        )

    async def update_group(
        self,
        group_id: str,
        group_name: Optional[str] = None,
        member_class_ids: Optional[Sequence[str]] = None,
    ) -> GroupView:
        group = await self.get_group(group_id)
        values: Dict[str, object] = {}
        if group_name is not None:
            if not group_name.strip():
                raise ValidationError("Group name is required")
            values["group_name"] = group_name.strip()
        if member_class_ids is not None:
            if len(member_class_ids) < 2:
                raise ValidationError("At least 2 classes must be selected for a group")
            record_ids = await self._class_record_ids(member_class_ids)
            if len(record_ids) < 2:
                raise ValidationError("Could not find enough valid classes")
            values["member_classes"] = record_ids

        if values:
            group = await self.repo.update(ClassGroup, group.record_id, **values)

        event_id = ""
        if group.event:
            event_id = (await self.repo.get(Event, group.event[0])).event_id
        return await self._group_view(group, event_id)

    async def delete_group(self, group_id: str) -> None:
        group = await self.get_group(group_id)
        if await self.get_songs_by_class(group_id):
            raise ConflictError("Cannot delete group with songs. Remove songs first.")
        if await self.get_audio_files_by_class(group_id):
            raise ConflictError(
                "Cannot delete group with audio files. Remove audio files first."
            )
        await self.repo.delete(ClassGroup, group.record_id)
        logger.info(f"Deleted group {group_id}")

    # Schulsong

    async def get_schulsong_file(self, event_id: str) -> Optional[AudioFile]:
        """Newest final schulsong file of an event."""
        files = await self.repo.find(
            AudioFile,
            all_of(
                field_equals(AudioFile.field("event_id"), event_id),
                field_equals(AudioFile.field("type"), AudioFileType.FINAL.value),
                is_true(AudioFile.field("is_schulsong")),
            ),
            sort=[("uploaded_at", "desc")],
        )
        return files[0] if files else None

    async def approve_schulsong_as_teacher(
        self,
        event_id: str,
        email: str,
        background_tasks: Optional[BackgroundTasks] = None,
        now: Optional[datetime] = None,
    ) -> datetime:
        """Record the teacher's approval of the schulsong and return its time.

        Raises:
            NotFoundError: No final schulsong file exists.
            InvalidFeatureError: Admin approval is required first and missing.
            AlreadyApprovedError: The teacher approved before.
        """
        event = await self.events.require_event(event_id)
        schulsong = await self.get_schulsong_file(event.event_id)
        if not schulsong:
            raise NotFoundError("No schulsong audio file found")

        if (
            settings.SCHULSONG_REQUIRES_ADMIN_APPROVAL
            and schulsong.approval_status != ApprovalStatus.APPROVED
        ):
            raise InvalidFeatureError("Schulsong has not been approved by an admin yet")

        if schulsong.teacher_approved_at:
            raise AlreadyApprovedError("Schulsong already approved")

        approved_at = now or datetime.now(timezone.utc)
        await self.repo.update(AudioFile, schulsong.record_id, teacher_approved_at=approved_at)
        logger.info(f"Schulsong of event {event.event_id} approved by teacher {email}")

        self.notifications.notify_schulsong_teacher_approved(
            event.school_name, event.event_date, email, background_tasks
        )
        return approved_at

    async def get_schulsong_status(
        self, event_id: str, now: Optional[datetime] = None
    ) -> SchulsongStatus:
        event = await self.events.require_event(event_id)
        schulsong = await self.get_schulsong_file(event.event_id)
        if not schulsong:
            return SchulsongStatus(has_schulsong=False)

        now = now or datetime.now(timezone.utc)
        released_at = event.schulsong_released_at
        if released_at and released_at.tzinfo is None:
            released_at = released_at.replace(tzinfo=timezone.utc)
        return SchulsongStatus(
            has_schulsong=True,
            audio_file_id=schulsong.record_id,
            approval_status=schulsong.approval_status,
            teacher_approved_at=schulsong.teacher_approved_at,
            released_at=released_at,
            is_released=bool(released_at and released_at <= now),
        )
