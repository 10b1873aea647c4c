"""People models: Teacher, StaffMember, Registration."""

from datetime import date, datetime
from typing import List, Optional

from pydantic import field_validator

from minimusiker.core import fields as F
from minimusiker.core.records import TableModel, parse_airtable_date, single_value


class Teacher(TableModel):
    TABLE_ID = F.TEACHERS_TABLE_ID
    TABLE_NAME = "Teachers"
    FIELDS = F.TEACHERS_FIELDS

    name: str = ""
    email: str
    phone: str = ""
    school_name: str = ""
    simplybook_booking_id: str = ""
    magic_link_token: Optional[str] = None
    token_expires_at: Optional[datetime] = None
    linked_events: List[str] = []
    created_at: Optional[str] = None


class StaffMember(TableModel):
    """A row of the Personen table (staff, engineers, team leads)."""

    TABLE_ID = F.PERSONEN_TABLE_ID
    TABLE_NAME = "Personen"
    FIELDS = F.PERSONEN_FIELDS

    name: str = ""
    email: str = ""
    phone: str = ""
    roles: List[str] = []

    @field_validator("roles", mode="before")
    @classmethod
    def roles_as_list(cls, value):
        if isinstance(value, str):
            return [value]
        return value

    def has_role(self, role: str) -> bool:
        return any(r.lower() == role.lower() for r in self.roles)


class Registration(TableModel):
    """One registered child in the parent journey table."""

    TABLE_ID = F.REGISTRATIONS_TABLE_ID
    TABLE_NAME = "Registrations"
    FIELDS = F.REGISTRATIONS_FIELDS

    booking_id: str = ""
    school_name: str = ""
    class_name: str = ""
    class_id: str = ""
    registered_child: str = ""
    parent_first_name: str = ""
    parent_email: str = ""
    parent_telephone: str = ""
    parent_id: str = ""
    booking_date: Optional[date] = None
    event_type: str = ""

    @field_validator("booking_id", "school_name", "class_id", mode="before")
    @classmethod
    def unwrap_lookup(cls, value):
        return single_value(value) or ""

    @field_validator("booking_date", mode="before")
    @classmethod
    def parse_date(cls, value):
        return parse_airtable_date(value)
