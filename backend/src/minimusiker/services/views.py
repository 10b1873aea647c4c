"""Result shapes returned by the services.

Field names are snake_case in Python and serialise to camelCase, which is
what the portal frontend reads.
"""

from datetime import date, datetime
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel

from minimusiker.core.models import AudioFile, Song
from minimusiker.core.pipeline import AdminApprovalStatus, ApprovalStatus, PipelineStage


class CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    def dump(self) -> Dict[str, Any]:
        return self.model_dump(by_alias=True, mode="json")


class AudioFlags(CamelModel):
    has_raw_audio: bool = False
    has_preview: bool = False
    has_final: bool = False

    @classmethod
    def from_files(cls, files: List[AudioFile]) -> "AudioFlags":
        ready = [f for f in files if f.is_ready]
        return cls(
            has_raw_audio=any(f.type == "raw" for f in ready),
            has_preview=any(f.type == "preview" for f in ready),
            has_final=any(f.type == "final" for f in ready),
        )


class SongView(CamelModel):
    id: str
    title: str
    class_id: str
    event_id: str
    artist: str = ""
    notes: str = ""
    order: int = 0
    is_schulsong: bool = False

    @classmethod
    def from_song(cls, song: Song) -> "SongView":
        return cls(
            id=song.record_id,
            title=song.title,
            class_id=song.class_id,
            event_id=song.event_id,
            artist=song.artist,
            notes=song.notes,
            order=song.order,
            is_schulsong=song.is_schulsong,
        )


class ClassView(CamelModel):
    class_id: str
    class_name: str
    num_children: Optional[int] = None
    songs: List[SongView] = []
    audio_status: AudioFlags = AudioFlags()
    is_default: bool = False


class EventProgress(CamelModel):
    classes_count: int
    songs_count: int
    expected_songs: int
    registrations_count: int
    total_children_expected: Optional[int] = None
    days_until_event: Optional[int] = None
    weeks_until_event: Optional[int] = None


class TeacherEventView(CamelModel):
    event_id: str
    simplybook_id: Optional[str] = None
    event_record_id: Optional[str] = None
    booking_record_id: Optional[str] = None
    school_name: str
    event_date: Optional[date] = None
    event_type: str
    status: str
    classes: List[ClassView] = []
    simplybook_hash: Optional[str] = None
    school_address: Optional[str] = None
    school_phone: Optional[str] = None
    progress: EventProgress


class GroupView(CamelModel):
    group_id: str
    group_name: str
    event_id: str
    member_class_ids: List[str]
    member_classes: List[ClassView] = []
    songs: List[SongView] = []
    audio_status: AudioFlags = AudioFlags()
    created_at: Optional[str] = None
    created_by: str = ""


class UploadTicket(CamelModel):
    upload_url: str
    r2_key: str
    expires_in: int


class TrackView(CamelModel):
    song_id: str
    title: str
    class_id: str
    is_schulsong: bool = False
    has_raw_audio: bool = False
    has_final_audio: bool = False
    approval_status: ApprovalStatus = ApprovalStatus.PENDING
    rejection_comment: Optional[str] = None
    final_file_id: Optional[str] = None
    review_url: Optional[str] = None


class EventAudioStatus(CamelModel):
    event_id: str
    pipeline_stage: PipelineStage
    expected_tracks: int
    raw_count: int
    final_count: int
    staff_upload_complete: bool
    mix_master_complete: bool
    admin_approval_status: AdminApprovalStatus
    all_tracks_approved: bool
    assigned_engineer: Optional[str] = None
    is_published: bool = False
    tracks: List[TrackView] = []


class ParentTrack(CamelModel):
    song_id: str
    title: str
    class_id: str
    preview_url: Optional[str] = None


class ParentAudioView(CamelModel):
    event_id: str
    is_visible: bool
    release_date: Optional[datetime] = None
    tracks: List[ParentTrack] = []


class SchulsongStatus(CamelModel):
    has_schulsong: bool
    audio_file_id: Optional[str] = None
    approval_status: Optional[ApprovalStatus] = None
    teacher_approved_at: Optional[datetime] = None
    released_at: Optional[datetime] = None
    is_released: bool = False


class ClothingTotals(CamelModel):
    tshirts: Dict[str, int]
    hoodies: Dict[str, int]


class PendingClothingOrder(CamelModel):
    event_id: str
    event_record_id: str
    school_name: str
    event_date: date
    days_until_order_day: int
    is_overdue: bool
    total_orders: int
    total_revenue: float
    aggregated_items: ClothingTotals
    order_ids: List[str]


class TaskView(CamelModel):
    id: str
    task_id: Optional[str] = None
    template_id: str
    event_record_id: Optional[str] = None
    task_type: str
    task_name: str
    description: str
    completion_type: str
    deadline: date
    status: str
    completed_at: Optional[str] = None
    completed_by: Optional[str] = None
    school_name: str = ""
    event_date: Optional[date] = None
    go_display_id: Optional[str] = None
    urgency_score: int
    days_until_due: int
    is_overdue: bool
    r2_file_path: Optional[str] = None


class TrackDecision(CamelModel):
    """Admin verdict on one final audio file."""

    audio_file_id: str
    status: ApprovalStatus
    comment: Optional[str] = None


class SchulsongRelease(CamelModel):
    released_at: datetime
    mode: str
    is_override: bool


class CheckoutLine(CamelModel):
    variant_id: str = ""
    quantity: int = 0
    product_type: Optional[str] = None


class CheckoutAttributes(CamelModel):
    parent_id: Optional[str] = None
    parent_email: Optional[str] = None
    event_id: Optional[str] = None
    school_name: Optional[str] = None


class CheckoutResult(CamelModel):
    cart_id: str
    checkout_url: str
    total_quantity: int
    total_amount: float
    currency: str
    discount_codes: List[str] = []
    is_mock: bool = False
