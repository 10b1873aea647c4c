"""Request bodies of the portal routes.

Bodies arrive in camelCase from the frontend; fields are snake_case here.
Shape errors (missing keys, wrong types) are rendered as 400 envelopes by
the validation handler in ``minimusiker.api.main``; business rules are
checked by the services.
"""

from typing import Any, Dict, List, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from minimusiker.services.views import CheckoutLine, TrackDecision


class CamelRequest(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


# Auth
class EmailRequest(CamelRequest):
    """Magic link request and parent login."""
    email: str


class PasswordLoginRequest(CamelRequest):
    """Admin, staff and engineer login."""
    email: str
    password: str


# Teacher portal
class ClassCreate(CamelRequest):
    class_name: str = ""
    teacher_name: str = ""
    num_children: Optional[int] = Field(default=None, ge=0)


class ClassUpdate(CamelRequest):
    class_name: Optional[str] = None
    num_children: Optional[int] = Field(default=None, ge=0)


class SongCreate(CamelRequest):
    class_id: str
    title: str = ""
    artist: str = ""
    notes: str = ""
    is_schulsong: bool = False


class SongUpdate(CamelRequest):
    title: Optional[str] = None
    artist: Optional[str] = None
    notes: Optional[str] = None
    order: Optional[int] = None


class GroupCreate(CamelRequest):
    """Name and members are checked by the route so the messages match the UI."""
    group_name: str = ""
    member_class_ids: List[str] = []


class GroupUpdate(CamelRequest):
    group_name: Optional[str] = None
    member_class_ids: Optional[List[str]] = None


# Audio
class UploadRequest(CamelRequest):
    song_id: str
    type: str
    filename: str
    content_type: str


class UploadConfirm(CamelRequest):
    song_id: str
    type: str
    r2_key: str
    filename: str
    file_size_bytes: Optional[int] = None
    duration_seconds: Optional[float] = None


class TrackApprovalRequest(CamelRequest):
    approvals: List[TrackDecision] = []


class SchulsongApproval(CamelRequest):
    mode: Literal["instant", "scheduled"] = "scheduled"


class SchulsongRejection(CamelRequest):
    comment: Optional[str] = None


class EngineerAssignment(CamelRequest):
    """Without ``engineer_id`` the engineer is picked automatically."""
    engineer_id: Optional[str] = None


class PublishRequest(CamelRequest):
    published: bool


# Clothing, tasks, bookings, logos
class ClothingOrderUpdate(CamelRequest):
    sizes: Dict[str, int]
    notes: Optional[str] = None


class TaskCompletion(CamelRequest):
    """Free-form completion data, e.g. ``{"amount": 123.45}``."""
    data: Dict[str, Any] = {}


class BookingSyncRequest(CamelRequest):
    date_from: Optional[str] = None
    date_to: Optional[str] = None
    dry_run: bool = False


class EventFromBooking(CamelRequest):
    booking_record_id: str
    event_type: Optional[str] = None


class LogoUploadRequest(CamelRequest):
    filename: str
    content_type: str


class LogoConfirm(CamelRequest):
    r2_key: str


# Shop
class CheckoutRequest(CamelRequest):
    line_items: List[CheckoutLine] = []
    event_id: Optional[str] = None
    school_name: Optional[str] = None
