"""Typed table rows for the Airtable base.

Submodules:
- events: Event, SchoolClass, ClassGroup, SchoolBooking, Einrichtung, Region
- audio: Song, AudioFile, SongAudio
- people: Teacher, StaffMember, Registration
- orders: ClothingOrder, ShopOrder, GuesstimateOrder
- tasks: Task
"""

from minimusiker.core.models.audio import (
    AudioFile,
    AudioFileStatus,
    AudioFileType,
    Song,
    SongAudio,
)
from minimusiker.core.models.events import (
    ClassGroup,
    Einrichtung,
    Event,
    PortalStatus,
    Region,
    SchoolBooking,
    SchoolClass,
)
from minimusiker.core.models.orders import (
    CLOTHING_SIZE_FIELDS,
    ClothingOrder,
    GuesstimateOrder,
    LineItem,
    ShopOrder,
)
from minimusiker.core.models.people import Registration, StaffMember, Teacher
from minimusiker.core.models.tasks import (
    Task,
    TaskCompletionType,
    TaskStatus,
    TaskType,
)

__all__ = [
    "AudioFile",
    "AudioFileStatus",
    "AudioFileType",
    "Song",
    "SongAudio",
    "ClassGroup",
    "Einrichtung",
    "Event",
    "PortalStatus",
    "Region",
    "SchoolBooking",
    "SchoolClass",
    "CLOTHING_SIZE_FIELDS",
    "ClothingOrder",
    "GuesstimateOrder",
    "LineItem",
    "ShopOrder",
    "Registration",
    "StaffMember",
    "Teacher",
    "Task",
    "TaskCompletionType",
    "TaskStatus",
    "TaskType",
]
