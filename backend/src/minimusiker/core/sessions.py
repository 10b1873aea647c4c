"""Per-role signed session tokens.

Each portal role has its own cookie, signing secret and lifetime. A token
only verifies for the role it was issued to: the secret differs per role
when overrides are configured, and the ``role`` claim is checked in any
case, so a teacher cookie never opens a staff route.
"""

from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from enum import Enum
from typing import Dict, List, Optional, Type, Union

import jwt
from loguru import logger
from pydantic import BaseModel, ConfigDict
from pydantic import ValidationError as PydanticValidationError

from minimusiker.core.config import settings

JWT_ALGORITHM = "HS256"


class Role(str, Enum):
    ADMIN = "admin"
    TEACHER = "teacher"
    STAFF = "staff"
    ENGINEER = "engineer"
    PARENT = "parent"


@dataclass(frozen=True)
class RoleSessionConfig:
    role: Role
    cookie_name: str
    max_age: int

    @property
    def secret(self) -> str:
        return settings.jwt_secret_for(self.role.value)


def get_role_config(role: Role) -> RoleSessionConfig:
    """Build the cookie/lifetime configuration for a role from settings."""
    max_age = {
        Role.ADMIN: settings.ADMIN_SESSION_SECONDS,
        Role.TEACHER: settings.TEACHER_SESSION_SECONDS,
        Role.STAFF: settings.STAFF_SESSION_SECONDS,
        Role.ENGINEER: settings.ENGINEER_SESSION_SECONDS,
        Role.PARENT: settings.PARENT_SESSION_SECONDS,
    }[role]
    return RoleSessionConfig(
        role=role, cookie_name=f"{role.value}_session", max_age=max_age
    )


class _SessionBase(BaseModel):
    model_config = ConfigDict(extra="ignore", frozen=True)

    email: str


class AdminSession(_SessionBase):
    name: str = "Admin"


class TeacherSession(_SessionBase):
    teacher_id: str
    name: str = ""
    school_name: str = ""


class StaffSession(_SessionBase):
    staff_id: str
    name: str = ""


class EngineerSession(_SessionBase):
    engineer_id: str
    name: str = ""


class ParentChild(BaseModel):
    model_config = ConfigDict(frozen=True)

    child_name: str = ""
    event_id: str = ""
    class_id: str = ""


class ParentSession(_SessionBase):
    parent_id: str
    first_name: str = ""
    event_id: Optional[str] = None
    school_name: str = ""
    children: List[ParentChild] = []


AnySession = Union[
    AdminSession, TeacherSession, StaffSession, EngineerSession, ParentSession
]

SESSION_MODELS: Dict[Role, Type[_SessionBase]] = {
    Role.ADMIN: AdminSession,
    Role.TEACHER: TeacherSession,
    Role.STAFF: StaffSession,
    Role.ENGINEER: EngineerSession,
    Role.PARENT: ParentSession,
}


def role_of(session: _SessionBase) -> Role:
    for role, model in SESSION_MODELS.items():
        if type(session) is model:
            return role
    raise TypeError(f"Unknown session type: {type(session).__name__}")


def create_session_token(
    session: _SessionBase, now: Optional[datetime] = None
) -> str:
    """Sign a session into a JWT for its role.

    Args:
        session: Typed session payload.
        now: Issue time, defaults to the current UTC time.

    Returns:
        Encoded HS256 token carrying the payload plus role/iat/exp claims.
    """
    role = role_of(session)
    config = get_role_config(role)
    issued = now or datetime.now(timezone.utc)
    payload = session.model_dump(mode="json")
    payload.update(
        {
            "role": role.value,
            "iat": int(issued.timestamp()),
            "exp": int((issued + timedelta(seconds=config.max_age)).timestamp()),
        }
    )
    return jwt.encode(payload, config.secret, algorithm=JWT_ALGORITHM)


def verify_session_token(role: Role, token: Optional[str]) -> Optional[AnySession]:
    """Verify a token for ``role`` and return the typed session.

    Any failure (missing token, bad signature, expiry, role mismatch,
    malformed payload) yields None; this function never raises.
    """
    if not token:
        return None

    config = get_role_config(role)
    try:
        payload = jwt.decode(
            token,
            config.secret,
            algorithms=[JWT_ALGORITHM],
            options={"require": ["exp", "iat"]},
        )
    except jwt.PyJWTError as e:
        logger.debug(f"Rejected {role.value} session token: {e}")
        return None

    if payload.get("role") != role.value:
        logger.debug(
            f"Rejected session token for role '{payload.get('role')}' on {role.value} route"
        )
        return None

    try:
        return SESSION_MODELS[role].model_validate(payload)
    except PydanticValidationError as e:
        logger.warning(f"Malformed {role.value} session payload: {e}")
        return None


def parent_has_event_access(session: ParentSession, event_id: str) -> bool:
    """Check whether a parent session may read data of ``event_id``.

    A session bound to an event (directly or through one of the registered
    children) must match it; an unbound session is allowed through.
    """
    bound = {c.event_id for c in session.children if c.event_id}
    if session.event_id:
        bound.add(session.event_id)
    if not bound:
        return True
    return event_id in bound
