from datetime import date, datetime, timedelta, timezone

import pytest
from fastapi import BackgroundTasks

from minimusiker.clients.mailer import EMAIL_OUTBOX
from minimusiker.core.config import settings
from minimusiker.core.errors import NotFoundError, UnauthorizedError, ValidationError
from minimusiker.core.models import Registration, StaffMember, Teacher
from minimusiker.services.auth import AuthService, passwords_match


@pytest.fixture
def auth(repo, notifications):
    return AuthService(repo, notifications)


@pytest.fixture
def teacher(airtable):
    return airtable.seed(Teacher, name="Frau Meier", email="Meier@GS-Park.de")


def test_passwords_match():
    assert passwords_match("geheim", "geheim")
    assert not passwords_match("geheim", "Geheim")
    assert not passwords_match("", "")


# ============================================================================
# TEACHER MAGIC LINK
# ============================================================================


@pytest.mark.asyncio
async def test_magic_link_round_trip(auth, airtable, teacher):
    tasks = BackgroundTasks()
    await auth.request_magic_link(" meier@gs-park.de ", tasks)
    await tasks()

    stored = airtable.rows(Teacher)[0]
    assert stored.magic_link_token
    assert [to for to, _, _ in EMAIL_OUTBOX] == ["Meier@GS-Park.de"]
    assert f"teacher-login?token={stored.magic_link_token}" in EMAIL_OUTBOX[0][2]

    session = await auth.verify_magic_link(stored.magic_link_token)
    assert session.teacher_id == teacher.record_id
    assert session.name == "Frau Meier"

    with pytest.raises(UnauthorizedError):
        await auth.verify_magic_link(stored.magic_link_token)


@pytest.mark.asyncio
async def test_unknown_teacher_gets_no_mail(auth, airtable):
    await auth.request_magic_link("niemand@example.org", BackgroundTasks())
    assert EMAIL_OUTBOX == []


@pytest.mark.asyncio
async def test_magic_link_rejects_bad_email(auth):
    with pytest.raises(ValidationError):
        await auth.request_magic_link("not-an-email")


@pytest.mark.asyncio
async def test_expired_magic_link(auth, airtable, teacher):
    await auth.request_magic_link("meier@gs-park.de", BackgroundTasks())
    token = airtable.rows(Teacher)[0].magic_link_token
    later = datetime.now(timezone.utc) + timedelta(hours=settings.MAGIC_LINK_TTL_HOURS + 1)

    with pytest.raises(UnauthorizedError, match="expired"):
        await auth.verify_magic_link(token, now=later)


# ============================================================================
# PARENTS
# ============================================================================


@pytest.mark.asyncio
async def test_parent_without_registration(auth):
    with pytest.raises(NotFoundError) as exc:
        await auth.parent_login("eltern@example.org")
    assert exc.value.extra == {"shouldRegister": True}


@pytest.mark.asyncio
async def test_parent_login_uses_latest_registration(auth, airtable):
    airtable.seed(
        Registration,
        parent_email="eltern@example.org",
        parent_first_name="Anna",
        parent_id="par_1",
        registered_child="Mia",
        booking_id="evt_old",
        class_id="cls_1",
        booking_date=date(2025, 5, 1),
    )
    airtable.seed(
        Registration,
        parent_email="Eltern@Example.org",
        parent_first_name="Anna",
        parent_id="par_1",
        registered_child="Ben",
        booking_id="evt_new",
        school_name="Grundschule am Park",
        class_id="cls_2",
        booking_date=date(2026, 5, 1),
    )

    session = await auth.parent_login("Eltern@example.org")

    assert session.parent_id == "par_1"
    assert session.event_id == "evt_new"
    assert session.school_name == "Grundschule am Park"
    assert [c.child_name for c in session.children] == ["Mia", "Ben"]


# ============================================================================
# ADMIN, STAFF, ENGINEERS
# ============================================================================


def test_admin_login(auth, monkeypatch):
    monkeypatch.setattr(settings, "ADMIN_EMAIL", "admin@minimusiker.de")
    monkeypatch.setattr(settings, "ADMIN_PASSWORD", "s3cret")

    assert auth.admin_login("Admin@Minimusiker.de", "s3cret").email == "admin@minimusiker.de"
    with pytest.raises(UnauthorizedError):
        auth.admin_login("admin@minimusiker.de", "wrong")


def test_admin_login_disabled_without_password(auth, monkeypatch):
    monkeypatch.setattr(settings, "ADMIN_EMAIL", "admin@minimusiker.de")
    monkeypatch.setattr(settings, "ADMIN_PASSWORD", "")
    with pytest.raises(UnauthorizedError):
        auth.admin_login("admin@minimusiker.de", "")


@pytest.mark.asyncio
async def test_staff_and_engineer_roles(auth, airtable, monkeypatch):
    monkeypatch.setattr(settings, "STAFF_PORTAL_PASSWORD", "team")
    monkeypatch.setattr(settings, "ENGINEER_PORTAL_PASSWORD", "mix")
    person = airtable.seed(
        StaffMember, name="Jakob", email="jakob@minimusiker.de", roles=["Staff", "Engineer"]
    )
    airtable.seed(StaffMember, name="Nur Team", email="team@minimusiker.de", roles=["Staff"])

    staff = await auth.staff_login("jakob@minimusiker.de", "team")
    engineer = await auth.engineer_login("jakob@minimusiker.de", "mix")
    assert staff.staff_id == engineer.engineer_id == person.record_id

    with pytest.raises(UnauthorizedError):
        await auth.engineer_login("team@minimusiker.de", "mix")
    with pytest.raises(UnauthorizedError):
        await auth.staff_login("jakob@minimusiker.de", "mix")
