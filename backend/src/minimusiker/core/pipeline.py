"""Audio pipeline state rules.

Pure functions over already fetched data; nothing here talks to Airtable.

Stage model (per event, one direction only):
    pending -> staff_uploaded -> finals_submitted

Approval model (per track): pending | approved | rejected, aggregated per
event into pending | ready_for_approval | approved.
"""

from dataclasses import dataclass
from datetime import date, datetime, time, timedelta, timezone
from enum import Enum
from typing import Iterable, Optional, Protocol, Union
from zoneinfo import ZoneInfo

from minimusiker.core.config import settings


class PipelineStage(str, Enum):
    PENDING = "pending"
    STAFF_UPLOADED = "staff_uploaded"
    FINALS_SUBMITTED = "finals_submitted"


STAGE_ORDER = [
    PipelineStage.PENDING,
    PipelineStage.STAFF_UPLOADED,
    PipelineStage.FINALS_SUBMITTED,
]


class ApprovalStatus(str, Enum):
    PENDING = "pending"
    APPROVED = "approved"
    REJECTED = "rejected"


class AdminApprovalStatus(str, Enum):
    PENDING = "pending"
    READY_FOR_APPROVAL = "ready_for_approval"
    APPROVED = "approved"


class TrackState(Protocol):
    has_final_audio: bool
    approval_status: ApprovalStatus


def advance_stage(
    current: Optional[PipelineStage], target: PipelineStage
) -> PipelineStage:
    """Return the later of ``current`` and ``target``.

    A missing stage counts as pending. The result is never earlier than
    ``current``, which makes every handler that calls this safe to repeat.
    """
    current = current or PipelineStage.PENDING
    if STAGE_ORDER.index(target) > STAGE_ORDER.index(current):
        return target
    return current


def calculate_admin_approval_status(
    tracks: Iterable[TrackState],
) -> AdminApprovalStatus:
    """Aggregate per-track approvals into the admin-facing status.

    approved: at least one track has a final file and every track with a
    final file is approved. ready_for_approval: at least one final exists.
    pending: no finals at all.
    """
    with_final = [t for t in tracks if t.has_final_audio]
    if with_final and all(
        t.approval_status == ApprovalStatus.APPROVED for t in with_final
    ):
        return AdminApprovalStatus.APPROVED
    if with_final:
        return AdminApprovalStatus.READY_FOR_APPROVAL
    return AdminApprovalStatus.PENDING


def all_tracks_approved(tracks: Iterable[TrackState]) -> bool:
    return calculate_admin_approval_status(tracks) == AdminApprovalStatus.APPROVED


def _as_utc(value: Union[date, datetime]) -> datetime:
    if isinstance(value, datetime):
        if value.tzinfo is None:
            return value.replace(tzinfo=timezone.utc)
        return value.astimezone(timezone.utc)
    return datetime.combine(value, time.min, tzinfo=timezone.utc)


def audio_release_time(
    event_date: Optional[Union[date, datetime]],
    delay_days: Optional[int] = None,
) -> Optional[datetime]:
    """Moment from which approved audio becomes visible to parents."""
    if event_date is None:
        return None
    days = settings.PARENT_AUDIO_DELAY_DAYS if delay_days is None else delay_days
    return _as_utc(event_date) + timedelta(days=days)


def is_audio_visible(
    all_approved: bool,
    event_date: Optional[Union[date, datetime]],
    now: Optional[datetime] = None,
) -> bool:
    """Parent visibility: all tracks approved AND now >= event date + 7 days.

    Inclusive at exactly seven days. A missing event date is never visible.
    Calendar dates are taken as UTC midnight and the comparison is done on
    aware UTC datetimes, so daylight saving changes cannot move the boundary.
    """
    release = audio_release_time(event_date)
    if not all_approved or release is None:
        return False
    now = _as_utc(now or datetime.now(timezone.utc))
    return now >= release


def engineer_for_track(is_schulsong: bool) -> str:
    """Schulsong tracks go to Micha, everything else to Jakob."""
    return settings.ENGINEER_MICHA_ID if is_schulsong else settings.ENGINEER_JAKOB_ID


def should_assign_engineer(current_engineer_id: Optional[str]) -> bool:
    return not current_engineer_id


def resolve_engineer_assignment(
    current_engineer_id: Optional[str], is_schulsong: bool
) -> Optional[str]:
    """Engineer ID to assign, or None when one is already set."""
    if not should_assign_engineer(current_engineer_id):
        return None
    return engineer_for_track(is_schulsong)


@dataclass(frozen=True)
class UploadCompletion:
    staff_upload_complete: bool
    mix_master_complete: bool


def calculate_completion(
    raw_count: int, final_count: int, expected_count: int
) -> UploadCompletion:
    """Upload completion flags; both false when nothing is expected."""
    return UploadCompletion(
        staff_upload_complete=raw_count >= expected_count and expected_count > 0,
        mix_master_complete=final_count >= expected_count and expected_count > 0,
    )


RELEASE_TIMEZONE = ZoneInfo("Europe/Berlin")
RELEASE_HOUR = 7


def next_schulsong_release(now: Optional[datetime] = None) -> datetime:
    """Next workday (Mon-Fri) at 07:00 Berlin time after ``now``, in UTC.

    Always at least the following calendar day, even when called early on
    a workday morning.
    """
    local = _as_utc(now or datetime.now(timezone.utc)).astimezone(RELEASE_TIMEZONE)
    day = local.date() + timedelta(days=1)
    while day.weekday() >= 5:
        day += timedelta(days=1)
    release = datetime.combine(day, time(RELEASE_HOUR), tzinfo=RELEASE_TIMEZONE)
    return release.astimezone(timezone.utc)
