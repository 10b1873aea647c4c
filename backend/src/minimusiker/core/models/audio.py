"""Audio models: Song, AudioFile and the per-song track view."""

from datetime import datetime
from enum import Enum
from typing import List, Optional

from pydantic import BaseModel, field_validator

from minimusiker.core import fields as F
from minimusiker.core.pipeline import ApprovalStatus
from minimusiker.core.records import TableModel, single_value


class AudioFileType(str, Enum):
    RAW = "raw"
    PREVIEW = "preview"
    FINAL = "final"


class AudioFileStatus(str, Enum):
    PENDING = "pending"
    PROCESSING = "processing"
    READY = "ready"
    ERROR = "error"


class Song(TableModel):
    TABLE_ID = F.SONGS_TABLE_ID
    TABLE_NAME = "Songs"
    FIELDS = F.SONGS_FIELDS

    title: str = ""
    class_id: str = ""
    event_id: str = ""
    artist: str = ""
    notes: str = ""
    order: int = 0
    created_by: str = ""
    created_at: Optional[str] = None
    is_schulsong: bool = False
    group_id: str = ""

    @field_validator("class_id", "event_id", mode="before")
    @classmethod
    def unwrap_lookup(cls, value):
        return single_value(value) or ""

    @property
    def id(self) -> str:
        return self.record_id


class AudioFile(TableModel):
    """One object uploaded to R2."""

    TABLE_ID = F.AUDIO_FILES_TABLE_ID
    TABLE_NAME = "AudioFiles"
    FIELDS = F.AUDIO_FILES_FIELDS

    filename: str = ""
    class_id: str = ""
    event_id: str = ""
    song_id: Optional[str] = None
    type: AudioFileType
    r2_key: str
    uploaded_by: str = ""
    uploaded_at: Optional[datetime] = None
    duration_seconds: Optional[float] = None
    file_size_bytes: Optional[int] = None
    status: AudioFileStatus = AudioFileStatus.PENDING
    approval_status: ApprovalStatus = ApprovalStatus.PENDING
    rejection_comment: Optional[str] = None
    is_schulsong: bool = False
    teacher_approved_at: Optional[datetime] = None

    @field_validator("song_id", mode="before")
    @classmethod
    def unwrap_song(cls, value):
        return single_value(value) or None

    @property
    def id(self) -> str:
        return self.record_id

    @property
    def is_ready(self) -> bool:
        return self.status == AudioFileStatus.READY

    @property
    def extension(self) -> str:
        name = self.r2_key or self.filename
        return name.rsplit(".", 1)[-1].lower() if "." in name else ""


class SongAudio(BaseModel):
    """A song with the audio files attached to it, newest first."""

    song: Song
    raw_files: List[AudioFile] = []
    preview_files: List[AudioFile] = []
    final_files: List[AudioFile] = []

    @property
    def latest_final(self) -> Optional[AudioFile]:
        return self.final_files[0] if self.final_files else None

    @property
    def final_mp3(self) -> Optional[AudioFile]:
        return next((f for f in self.final_files if f.extension == "mp3"), None)

    @property
    def preview(self) -> Optional[AudioFile]:
        return self.preview_files[0] if self.preview_files else self.final_mp3

    @property
    def has_raw_audio(self) -> bool:
        return any(f.is_ready for f in self.raw_files)

    @property
    def has_final_audio(self) -> bool:
        return any(f.is_ready for f in self.final_files)

    @property
    def approval_status(self) -> ApprovalStatus:
        final = self.latest_final
        return final.approval_status if final else ApprovalStatus.PENDING
