"""FastAPI dependencies: provider clients, services and role sessions.

Clients are process-wide singletons created on first use and closed by the
application lifespan. Tests replace them through ``app.dependency_overrides``.
"""

from typing import Callable, Optional

from fastapi import Depends, Request, Response

from minimusiker.clients.airtable import AirtableClient
from minimusiker.clients.mailer import ResendMailer
from minimusiker.clients.shopify import ShopifyStorefrontClient
from minimusiker.clients.simplybook import SimplyBookClient
from minimusiker.clients.storage import R2Storage
from minimusiker.core.config import settings
from minimusiker.core.errors import UnauthorizedError
from minimusiker.core.sessions import (
    AdminSession,
    EngineerSession,
    ParentSession,
    Role,
    StaffSession,
    TeacherSession,
    create_session_token,
    get_role_config,
    role_of,
    verify_session_token,
)
from minimusiker.services.audio import AudioService
from minimusiker.services.auth import AuthService
from minimusiker.services.bookings import BookingService
from minimusiker.services.checkout import CheckoutService
from minimusiker.services.clothing import ClothingService
from minimusiker.services.events import EventService
from minimusiker.services.logos import LogoService
from minimusiker.services.notifications import NotificationService
from minimusiker.services.repository import Repository
from minimusiker.services.tasks import TaskService
from minimusiker.services.teacher import TeacherService

_airtable: Optional[AirtableClient] = None
_simplybook: Optional[SimplyBookClient] = None
_shopify: Optional[ShopifyStorefrontClient] = None
_storage: Optional[R2Storage] = None
_mailer: Optional[ResendMailer] = None


# Clients


def get_airtable() -> AirtableClient:
    global _airtable
    if _airtable is None:
        _airtable = AirtableClient()
    return _airtable


def get_simplybook() -> SimplyBookClient:
    global _simplybook
    if _simplybook is None:
        _simplybook = SimplyBookClient()
    return _simplybook


def get_shopify() -> ShopifyStorefrontClient:
    global _shopify
    if _shopify is None:
        _shopify = ShopifyStorefrontClient()
    return _shopify


def get_storage() -> R2Storage:
    global _storage
    if _storage is None:
        _storage = R2Storage()
    return _storage


def get_mailer() -> ResendMailer:
    global _mailer
    if _mailer is None:
        _mailer = ResendMailer()
    return _mailer


async def close_clients() -> None:
    """Release the HTTP sessions of all created clients."""
    global _airtable, _simplybook, _shopify, _mailer
    for client in (_airtable, _simplybook, _shopify, _mailer):
        if client is not None:
            await client.close()
    _airtable = _simplybook = _shopify = _mailer = None


# Services


def get_repository(airtable: AirtableClient = Depends(get_airtable)) -> Repository:
    return Repository(airtable)


def get_event_service(repo: Repository = Depends(get_repository)) -> EventService:
    return EventService(repo)


def get_notification_service(
    mailer: ResendMailer = Depends(get_mailer),
) -> NotificationService:
    return NotificationService(mailer)


def get_teacher_service(
    repo: Repository = Depends(get_repository),
    events: EventService = Depends(get_event_service),
    notifications: NotificationService = Depends(get_notification_service),
) -> TeacherService:
    return TeacherService(repo, events, notifications)


def get_audio_service(
    repo: Repository = Depends(get_repository),
    events: EventService = Depends(get_event_service),
    teachers: TeacherService = Depends(get_teacher_service),
    storage: R2Storage = Depends(get_storage),
    notifications: NotificationService = Depends(get_notification_service),
) -> AudioService:
    return AudioService(repo, events, teachers, storage, notifications)


def get_clothing_service(
    repo: Repository = Depends(get_repository),
    events: EventService = Depends(get_event_service),
) -> ClothingService:
    return ClothingService(repo, events)


def get_task_service(
    repo: Repository = Depends(get_repository),
    storage: R2Storage = Depends(get_storage),
) -> TaskService:
    return TaskService(repo, storage)


def get_logo_service(
    repo: Repository = Depends(get_repository),
    storage: R2Storage = Depends(get_storage),
) -> LogoService:
    return LogoService(repo, storage)


def get_checkout_service(
    shopify: ShopifyStorefrontClient = Depends(get_shopify),
    events: EventService = Depends(get_event_service),
) -> CheckoutService:
    return CheckoutService(shopify, events)


def get_booking_service(
    repo: Repository = Depends(get_repository),
    simplybook: SimplyBookClient = Depends(get_simplybook),
    events: EventService = Depends(get_event_service),
    teachers: TeacherService = Depends(get_teacher_service),
    tasks: TaskService = Depends(get_task_service),
) -> BookingService:
    return BookingService(repo, simplybook, events, teachers, tasks)


def get_auth_service(
    repo: Repository = Depends(get_repository),
    notifications: NotificationService = Depends(get_notification_service),
) -> AuthService:
    return AuthService(repo, notifications)


# Sessions


def _session_dependency(role: Role) -> Callable:
    cookie_name = get_role_config(role).cookie_name

    def dependency(request: Request):
        session = verify_session_token(role, request.cookies.get(cookie_name))
        if session is None:
            raise UnauthorizedError()
        return session

    dependency.__name__ = f"require_{role.value}"
    return dependency


require_admin: Callable[..., AdminSession] = _session_dependency(Role.ADMIN)
require_teacher: Callable[..., TeacherSession] = _session_dependency(Role.TEACHER)
require_staff: Callable[..., StaffSession] = _session_dependency(Role.STAFF)
require_engineer: Callable[..., EngineerSession] = _session_dependency(Role.ENGINEER)
require_parent: Callable[..., ParentSession] = _session_dependency(Role.PARENT)


def set_session_cookie(response: Response, session) -> None:
    """Sign ``session`` and set it as its role's HttpOnly cookie."""
    config = get_role_config(role_of(session))
    response.set_cookie(
        key=config.cookie_name,
        value=create_session_token(session),
        max_age=config.max_age,
        httponly=True,
        secure=settings.COOKIE_SECURE,
        samesite="lax",
        path="/",
    )


def clear_session_cookies(response: Response) -> None:
    for role in Role:
        response.delete_cookie(get_role_config(role).cookie_name, path="/")
