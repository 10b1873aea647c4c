"""Login flows for every portal role.

Each flow ends in a typed session; the route sets it as the role's cookie.
"""

import hmac
import re
import secrets
from datetime import date, datetime, timedelta, timezone
from typing import Optional

from fastapi import BackgroundTasks
from loguru import logger

from minimusiker.clients.airtable import field_equals, field_equals_ci
from minimusiker.core.config import settings
from minimusiker.core.errors import NotFoundError, UnauthorizedError, ValidationError
from minimusiker.core.models import Registration, StaffMember, Teacher
from minimusiker.core.sessions import (
    AdminSession,
    EngineerSession,
    ParentChild,
    ParentSession,
    StaffSession,
    TeacherSession,
)
from minimusiker.services.notifications import NotificationService
from minimusiker.services.repository import Repository

EMAIL_PATTERN = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$")

MAGIC_LINK_SENT_MESSAGE = (
    "If an account exists for this email, a login link has been sent."
)


def is_valid_email(email: str) -> bool:
    return bool(email and EMAIL_PATTERN.match(email))


def passwords_match(given: str, expected: str) -> bool:
    """Constant-time comparison; an unset expected password never matches."""
    if not expected:
        return False
    return hmac.compare_digest(given.encode("utf-8"), expected.encode("utf-8"))


class AuthService:
    def __init__(self, repo: Repository, notifications: NotificationService):
        self.repo = repo
        self.notifications = notifications

    # Teachers

    async def request_magic_link(
        self, email: str, background_tasks: Optional[BackgroundTasks] = None
    ) -> None:
        """Store a fresh login token and email the link.

        Unknown addresses are not reported to the caller.
        """
        email = email.strip().lower()
        if not is_valid_email(email):
            raise ValidationError("Invalid email address")

        teacher = await self.repo.find_one(
            Teacher, field_equals_ci(Teacher.field("email"), email)
        )
        if not teacher:
            logger.info(f"Magic link requested for unknown teacher {email}")
            return

        token = secrets.token_urlsafe(32)
        expires_at = datetime.now(timezone.utc) + timedelta(hours=settings.MAGIC_LINK_TTL_HOURS)
        await self.repo.update(
            Teacher, teacher.record_id, magic_link_token=token, token_expires_at=expires_at
        )
        self.notifications.send_magic_link(teacher.email, teacher.name, token, background_tasks)
        logger.info(f"Magic link issued for teacher {teacher.record_id}")

    async def verify_magic_link(
        self, token: str, now: Optional[datetime] = None
    ) -> TeacherSession:
        """Consume a login token; it works exactly once."""
        if not token:
            raise UnauthorizedError("Invalid or expired link")

        teacher = await self.repo.find_one(
            Teacher, field_equals(Teacher.field("magic_link_token"), token)
        )
        if not teacher or not teacher.token_expires_at:
            raise UnauthorizedError("Invalid or expired link")

        now = now or datetime.now(timezone.utc)
        expires_at = teacher.token_expires_at
        if expires_at.tzinfo is None:
            expires_at = expires_at.replace(tzinfo=timezone.utc)
        if now > expires_at:
            raise UnauthorizedError("Invalid or expired link")

        await self.repo.update(
            Teacher, teacher.record_id, magic_link_token="", token_expires_at=None
        )
        logger.info(f"Teacher {teacher.record_id} logged in via magic link")
        return TeacherSession(
            email=teacher.email,
            teacher_id=teacher.record_id,
            name=teacher.name,
            school_name=teacher.school_name,
        )

    # Parents

    async def parent_login(self, email: str) -> ParentSession:
        """Log a parent in by registration email.

        Raises:
            ValidationError: Malformed email.
            NotFoundError: No registration; ``shouldRegister`` tells the
                frontend to offer the registration form instead.
        """
        email = email.strip().lower()
        if not is_valid_email(email):
            raise ValidationError("Invalid email address")

        registrations = await self.repo.find(
            Registration, field_equals_ci(Registration.field("parent_email"), email)
        )
        registrations = [r for r in registrations if r.registered_child]
        if not registrations:
            raise NotFoundError(
                "No registration found for this email", extra={"shouldRegister": True}
            )

        latest = max(
            registrations,
            key=lambda r: r.booking_date or date.min,
        )
        children = [
            ParentChild(child_name=r.registered_child, event_id=r.booking_id, class_id=r.class_id)
            for r in registrations
        ]
        logger.info(f"Parent {latest.parent_id or latest.record_id} logged in")
        return ParentSession(
            email=email,
            parent_id=latest.parent_id or latest.record_id,
            first_name=latest.parent_first_name,
            event_id=latest.booking_id or None,
            school_name=latest.school_name,
            children=children,
        )

    # Admin, staff, engineers

    def admin_login(self, email: str, password: str) -> AdminSession:
        email_ok = passwords_match(email.strip().lower(), settings.ADMIN_EMAIL.lower())
        password_ok = passwords_match(password, settings.ADMIN_PASSWORD)
        if not (email_ok and password_ok):
            logger.warning(f"Failed admin login for {email}")
            raise UnauthorizedError("Invalid credentials")
        return AdminSession(email=settings.ADMIN_EMAIL)

    async def _person_login(
        self, email: str, password: str, role: str, expected_password: str
    ) -> StaffMember:
        person = await self.repo.find_one(
            StaffMember, field_equals_ci(StaffMember.field("email"), email.strip())
        )
        if not person or not person.has_role(role) or not passwords_match(
            password, expected_password
        ):
            logger.warning(f"Failed {role} login for {email}")
            raise UnauthorizedError("Invalid credentials")
        return person

    async def staff_login(self, email: str, password: str) -> StaffSession:
        person = await self._person_login(
            email, password, "staff", settings.STAFF_PORTAL_PASSWORD
        )
        return StaffSession(email=person.email, staff_id=person.record_id, name=person.name)

    async def engineer_login(self, email: str, password: str) -> EngineerSession:
        person = await self._person_login(
            email, password, "engineer", settings.ENGINEER_PORTAL_PASSWORD
        )
        return EngineerSession(
            email=person.email, engineer_id=person.record_id, name=person.name
        )
