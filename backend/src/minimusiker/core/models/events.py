"""Event models: Event, SchoolClass, ClassGroup, SchoolBooking, Einrichtung, Region."""

from datetime import date, datetime
from enum import Enum
from typing import List, Optional

from pydantic import field_validator

from minimusiker.core import fields as F
from minimusiker.core.pipeline import AdminApprovalStatus, PipelineStage
from minimusiker.core.records import (
    TableModel,
    first_link,
    parse_airtable_date,
    single_value,
)


class PortalStatus(str, Enum):
    """Teacher portal setup progress of a school booking."""

    PENDING_SETUP = "pending_setup"
    CLASSES_ADDED = "classes_added"
    READY = "ready"


PORTAL_STATUS_ORDER = [
    PortalStatus.PENDING_SETUP,
    PortalStatus.CLASSES_ADDED,
    PortalStatus.READY,
]


class Event(TableModel):
    """One school visit."""

    TABLE_ID = F.EVENTS_TABLE_ID
    TABLE_NAME = "Events"
    FIELDS = F.EVENTS_FIELDS

    event_id: str
    school_name: str = ""
    event_date: Optional[date] = None
    event_type: str = ""
    legacy_booking_id: str = ""
    simplybook_booking: List[str] = []
    assigned_staff: List[str] = []
    assigned_engineer: List[str] = []
    audio_pipeline_stage: PipelineStage = PipelineStage.PENDING
    all_tracks_approved: bool = False
    admin_approval_status: AdminApprovalStatus = AdminApprovalStatus.PENDING
    is_published: bool = False
    is_schulsong: bool = False
    schulsong_only: bool = False
    schulsong_released_at: Optional[datetime] = None
    deal_type: Optional[str] = None
    shirts_included: bool = False
    einrichtung: List[str] = []

    @field_validator("event_date", mode="before")
    @classmethod
    def parse_date(cls, value):
        return parse_airtable_date(value)

    @field_validator("school_name", "deal_type", mode="before")
    @classmethod
    def unwrap_lookup(cls, value):
        return single_value(value)

    @property
    def booking_record_id(self) -> Optional[str]:
        return first_link(self.simplybook_booking)

    @property
    def engineer_id(self) -> Optional[str]:
        return first_link(self.assigned_engineer)

    @property
    def offers_clothing(self) -> bool:
        return self.deal_type == "mimu_scs" and self.shirts_included


class SchoolClass(TableModel):
    TABLE_ID = F.CLASSES_TABLE_ID
    TABLE_NAME = "Classes"
    FIELDS = F.CLASSES_FIELDS

    class_id: str
    class_name: str = ""
    event: List[str] = []
    legacy_booking_id: str = ""
    is_default: bool = False
    total_children: Optional[int] = None
    main_teacher: str = ""


class ClassGroup(TableModel):
    """Two or more classes singing together."""

    TABLE_ID = F.GROUPS_TABLE_ID
    TABLE_NAME = "Groups"
    FIELDS = F.GROUPS_FIELDS

    group_id: str
    group_name: str = ""
    member_classes: List[str] = []
    event: List[str] = []
    created_by: str = ""
    created_at: Optional[str] = None


class SchoolBooking(TableModel):
    """Booking mirrored from SimplyBook."""

    TABLE_ID = F.SCHOOL_BOOKINGS_TABLE_ID
    TABLE_NAME = "SchoolBookings"
    FIELDS = F.SCHOOL_BOOKINGS_FIELDS

    simplybook_id: str
    simplybook_hash: str = ""
    school_name: str = ""
    school_contact_name: str = ""
    school_contact_email: str = ""
    school_phone: str = ""
    school_address: str = ""
    school_postal_code: str = ""
    city: str = ""
    region: List[str] = []
    estimated_children: Optional[int] = None
    school_size_category: Optional[str] = None
    simplybook_status: str = ""
    start_date: Optional[date] = None
    end_date: Optional[date] = None
    portal_status: PortalStatus = PortalStatus.PENDING_SETUP
    assigned_staff: List[str] = []

    @field_validator("start_date", "end_date", mode="before")
    @classmethod
    def parse_dates(cls, value):
        return parse_airtable_date(value)

    @field_validator("simplybook_id", mode="before")
    @classmethod
    def id_as_text(cls, value):
        return str(value) if isinstance(value, int) else value


class Einrichtung(TableModel):
    """School/kindergarten institution."""

    TABLE_ID = F.EINRICHTUNGEN_TABLE_ID
    TABLE_NAME = "Einrichtungen"
    FIELDS = F.EINRICHTUNGEN_FIELDS

    name: str = ""
    logo_key: Optional[str] = None


class Region(TableModel):
    TABLE_ID = F.TEAMS_REGIONEN_TABLE_ID
    TABLE_NAME = "Teams/Regionen"
    FIELDS = F.TEAMS_REGIONEN_FIELDS

    name: str
