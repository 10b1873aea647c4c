from datetime import date, datetime, timedelta, timezone

import pytest
from fastapi import BackgroundTasks

from minimusiker.clients.mailer import EMAIL_OUTBOX
from minimusiker.core.config import settings
from minimusiker.core.errors import (
    AlreadyApprovedError,
    ConflictError,
    InvalidFeatureError,
    NotFoundError,
    ValidationError,
)
from minimusiker.core.identifiers import DEFAULT_CLASS_NAME
from minimusiker.core.models import (
    AudioFile,
    ClassGroup,
    Event,
    PortalStatus,
    Registration,
    SchoolBooking,
    SchoolClass,
    Song,
    Teacher,
)
from minimusiker.services.teacher import event_status

TEACHER_EMAIL = "lehrerin@gs-park.de"
TODAY = date(2026, 3, 1)


@pytest.fixture
def booking(airtable):
    return airtable.seed(
        SchoolBooking,
        simplybook_id="1001",
        school_name="Grundschule am Park",
        school_contact_email=TEACHER_EMAIL,
        start_date=date(2026, 3, 20),
        portal_status=PortalStatus.PENDING_SETUP,
    )


@pytest.fixture
def event(airtable, booking):
    return airtable.seed(
        Event,
        event_id="evt_park",
        school_name="Grundschule am Park",
        event_date=date(2026, 3, 20),
        event_type="MiniMusiker Day",
        simplybook_booking=[booking.record_id],
    )


def _add_class(airtable, event, class_id, class_name="3a", **extra):
    return airtable.seed(
        SchoolClass,
        class_id=class_id,
        class_name=class_name,
        legacy_booking_id=event.event_id,
        event=[event.record_id],
        **extra,
    )


# ============================================================================
# EVENT STATUS
# ============================================================================


def test_event_status_by_date():
    assert event_status(date(2026, 3, 2), True, TODAY) == "upcoming"
    assert event_status(TODAY, True, TODAY) == "in-progress"
    assert event_status(date(2026, 2, 28), True, TODAY) == "completed"
    assert event_status(date(2026, 3, 2), False, TODAY) == "needs-setup"
    assert event_status(None, True, TODAY) == "needs-setup"


# ============================================================================
# EVENT LOOKUP
# ============================================================================


@pytest.mark.asyncio
async def test_teacher_events_from_bookings_and_links(airtable, teachers, event):
    _add_class(airtable, event, "cls_3a", total_children=24)
    airtable.seed(Song, title="Wir sind Kinder", class_id="cls_3a", event_id="evt_park")
    airtable.seed(
        Registration, booking_id="evt_park", registered_child="Mia", class_id="cls_3a"
    )
    linked = airtable.seed(
        Event, event_id="evt_linked", school_name="Kita Sonne", event_date=date(2026, 2, 1)
    )
    airtable.seed(Teacher, email=TEACHER_EMAIL, linked_events=[linked.record_id])

    views = await teachers.get_teacher_events(TEACHER_EMAIL, today=TODAY)

    assert [v.event_id for v in views] == ["evt_linked", "evt_park"]
    park = views[1]
    assert park.simplybook_id == "1001"
    assert park.status == "upcoming"
    assert park.progress.classes_count == 1
    assert park.progress.songs_count == 1
    assert park.progress.registrations_count == 1
    assert park.progress.total_children_expected == 24
    assert park.progress.days_until_event == 19
    assert park.classes[0].songs[0].title == "Wir sind Kinder"
    assert views[0].status == "needs-setup"


@pytest.mark.asyncio
async def test_booking_without_event_uses_simplybook_id(airtable, teachers, booking):
    views = await teachers.get_teacher_events(TEACHER_EMAIL, today=TODAY)
    assert [v.event_id for v in views] == ["1001"]
    assert views[0].event_record_id is None


@pytest.mark.asyncio
async def test_event_id_match_wins_over_booking_id(airtable, teachers, event):
    legacy = airtable.seed(
        Event, event_id="1001", school_name="Altschule", event_date=date(2026, 4, 1)
    )
    airtable.seed(Teacher, email=TEACHER_EMAIL, linked_events=[legacy.record_id])

    detail = await teachers.get_teacher_event_detail("1001", TEACHER_EMAIL, today=TODAY)
    assert detail.school_name == "Altschule"

    by_booking = await teachers.get_teacher_event_detail("evt_park", TEACHER_EMAIL, today=TODAY)
    assert by_booking.simplybook_id == "1001"


@pytest.mark.asyncio
async def test_booking_id_falls_back_to_event(teachers, event):
    detail = await teachers.get_teacher_event_detail("1001", TEACHER_EMAIL, today=TODAY)
    assert detail.event_id == "evt_park"


@pytest.mark.asyncio
async def test_other_teacher_sees_nothing(teachers, event):
    assert await teachers.get_teacher_event_detail("evt_park", "other@example.org") is None


# ============================================================================
# CLASSES
# ============================================================================


@pytest.mark.asyncio
async def test_create_class_advances_portal_status(airtable, teachers, event, booking):
    view = await teachers.create_class("evt_park", "Klasse 3a", "Frau Meier", 22)

    assert view.class_id.startswith("cls_grundschule_am_park_20260320_klasse3a_")
    assert view.num_children == 22
    stored = airtable.rows(SchoolClass)[0]
    assert stored.event == [event.record_id]
    assert stored.legacy_booking_id == "evt_park"
    assert airtable.rows(SchoolBooking)[0].portal_status == PortalStatus.CLASSES_ADDED


@pytest.mark.asyncio
async def test_create_default_class_once(airtable, teachers, event):
    first = await teachers.create_default_class(event, estimated_children=180)
    second = await teachers.create_default_class(event, estimated_children=180)

    assert first.is_default
    assert first.class_name == DEFAULT_CLASS_NAME
    assert second is None
    assert len(airtable.rows(SchoolClass)) == 1


@pytest.mark.asyncio
async def test_default_class_cannot_be_deleted(airtable, teachers, event):
    _add_class(airtable, event, "cls_default", DEFAULT_CLASS_NAME, is_default=True)
    with pytest.raises(ValidationError, match="Standardklasse"):
        await teachers.delete_class("cls_default")


@pytest.mark.asyncio
async def test_class_with_children_cannot_be_deleted(airtable, teachers, event):
    _add_class(airtable, event, "cls_3a")
    airtable.seed(Registration, class_id="cls_3a", registered_child="Ben")
    with pytest.raises(ConflictError, match="registered children"):
        await teachers.delete_class("cls_3a")


@pytest.mark.asyncio
async def test_class_with_songs_cannot_be_deleted(airtable, teachers, event):
    _add_class(airtable, event, "cls_3a")
    airtable.seed(Song, title="Lied", class_id="cls_3a", event_id="evt_park")
    with pytest.raises(ConflictError, match="Remove songs first"):
        await teachers.delete_class("cls_3a")


@pytest.mark.asyncio
async def test_delete_empty_class(airtable, teachers, event):
    _add_class(airtable, event, "cls_3a")
    await teachers.delete_class("cls_3a")
    assert airtable.rows(SchoolClass) == []

    with pytest.raises(NotFoundError):
        await teachers.delete_class("cls_3a")


# ============================================================================
# SONGS
# ============================================================================


@pytest.mark.asyncio
async def test_songs_are_appended_in_order(teachers, event):
    first = await teachers.create_song("cls_3a", "evt_park", "Lied 1", TEACHER_EMAIL)
    second = await teachers.create_song("cls_3a", "evt_park", "Lied 2", TEACHER_EMAIL)
    assert (first.order, second.order) == (1, 2)


@pytest.mark.asyncio
async def test_update_song_rejects_unknown_fields(teachers, event):
    song = await teachers.create_song("cls_3a", "evt_park", "Lied", TEACHER_EMAIL)
    with pytest.raises(ValidationError, match="class_id"):
        await teachers.update_song(song.record_id, class_id="cls_other")

    updated = await teachers.update_song(song.record_id, title="Neuer Titel")
    assert updated.title == "Neuer Titel"


@pytest.mark.asyncio
async def test_song_with_audio_cannot_be_deleted(airtable, teachers, event):
    song = await teachers.create_song("cls_3a", "evt_park", "Lied", TEACHER_EMAIL)
    airtable.seed(
        AudioFile, song_id=[song.record_id], type="raw", r2_key="recordings/x.mp3"
    )
    with pytest.raises(ConflictError):
        await teachers.delete_song(song.record_id)


# ============================================================================
# GROUPS
# ============================================================================


@pytest.mark.asyncio
async def test_group_needs_two_classes(airtable, teachers, event):
    _add_class(airtable, event, "cls_3a")
    with pytest.raises(ValidationError, match="At least 2 classes"):
        await teachers.create_group("evt_park", "Chor", ["cls_3a"], TEACHER_EMAIL)
    with pytest.raises(ValidationError, match="enough valid classes"):
        await teachers.create_group("evt_park", "Chor", ["cls_3a", "cls_gone"], TEACHER_EMAIL)


@pytest.mark.asyncio
async def test_create_and_list_groups(airtable, teachers, event):
    a = _add_class(airtable, event, "cls_3a", "3a")
    b = _add_class(airtable, event, "cls_3b", "3b")

    group = await teachers.create_group("evt_park", "Chor", ["cls_3a", "cls_3b"], TEACHER_EMAIL)

    assert group.group_id.startswith("group_evt_park_")
    assert airtable.rows(ClassGroup)[0].member_classes == [a.record_id, b.record_id]

    groups = await teachers.get_groups_by_event("evt_park")
    assert len(groups) == 1
    assert groups[0].member_class_ids == ["cls_3a", "cls_3b"]
    assert await teachers.verify_teacher_owns_group(group.group_id, TEACHER_EMAIL)
    assert not await teachers.verify_teacher_owns_group(group.group_id, "x@example.org")


@pytest.mark.asyncio
async def test_group_with_songs_cannot_be_deleted(airtable, teachers, event):
    _add_class(airtable, event, "cls_3a")
    _add_class(airtable, event, "cls_3b")
    group = await teachers.create_group("evt_park", "Chor", ["cls_3a", "cls_3b"], TEACHER_EMAIL)
    song = await teachers.create_song(group.group_id, "evt_park", "Gemeinsam", TEACHER_EMAIL)

    with pytest.raises(ConflictError, match="Remove songs first"):
        await teachers.delete_group(group.group_id)

    await teachers.delete_song(song.record_id)
    await teachers.delete_group(group.group_id)
    assert airtable.rows(ClassGroup) == []


# ============================================================================
# SCHULSONG
# ============================================================================


def _schulsong_file(airtable, **extra):
    return airtable.seed(
        AudioFile,
        event_id="evt_park",
        type="final",
        r2_key="recordings/evt_park/cls/song/final/final_1.mp3",
        is_schulsong=True,
        status="ready",
        uploaded_at=datetime(2026, 3, 21, 10, 0, tzinfo=timezone.utc),
        **extra,
    )


@pytest.mark.asyncio
async def test_teacher_approves_schulsong_once(airtable, teachers, event, monkeypatch):
    monkeypatch.setattr(settings, "ADMIN_NOTIFICATION_EMAILS", ["team@minimusiker.de"])
    _schulsong_file(airtable)
    now = datetime(2026, 3, 22, 9, 0, tzinfo=timezone.utc)
    tasks = BackgroundTasks()

    approved_at = await teachers.approve_schulsong_as_teacher(
        "evt_park", TEACHER_EMAIL, tasks, now=now
    )
    await tasks()

    assert approved_at == now
    assert airtable.rows(AudioFile)[0].teacher_approved_at == now
    assert [to for to, _, _ in EMAIL_OUTBOX] == ["team@minimusiker.de"]
    assert "Grundschule am Park" in EMAIL_OUTBOX[0][1]

    with pytest.raises(AlreadyApprovedError):
        await teachers.approve_schulsong_as_teacher("evt_park", TEACHER_EMAIL, now=now)


@pytest.mark.asyncio
async def test_schulsong_approval_requires_file(teachers, event):
    with pytest.raises(NotFoundError, match="No schulsong"):
        await teachers.approve_schulsong_as_teacher("evt_park", TEACHER_EMAIL)


@pytest.mark.asyncio
async def test_schulsong_waits_for_admin_when_configured(airtable, teachers, event, monkeypatch):
    monkeypatch.setattr(settings, "SCHULSONG_REQUIRES_ADMIN_APPROVAL", True)
    _schulsong_file(airtable, approval_status="pending")
    with pytest.raises(InvalidFeatureError):
        await teachers.approve_schulsong_as_teacher("evt_park", TEACHER_EMAIL)


@pytest.mark.asyncio
async def test_schulsong_status(airtable, teachers, event):
    released = datetime(2026, 3, 24, 6, 0, tzinfo=timezone.utc)
    await teachers.events.update_event(event, schulsong_released_at=released)
    _schulsong_file(airtable, approval_status="approved")

    before = await teachers.get_schulsong_status("evt_park", now=released - timedelta(hours=1))
    after = await teachers.get_schulsong_status("evt_park", now=released)

    assert before.has_schulsong and not before.is_released
    assert after.is_released
    assert after.released_at == released
