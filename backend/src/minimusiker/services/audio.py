"""Audio upload, review and release.

Uploads are two-phase: the client asks for a presigned PUT URL, uploads
straight to R2, then confirms. Confirming creates the AudioFile record and
recomputes the event's pipeline state (stage, approval aggregate, engineer).
"""

from datetime import datetime, timezone
from typing import Dict, List, Optional, Sequence

from fastapi import BackgroundTasks
from loguru import logger

from minimusiker.clients.airtable import all_of, field_equals, link_contains
from minimusiker.clients.storage import (
    R2Storage,
    final_audio_key,
    raw_audio_key,
    validate_audio_content_type,
)
from minimusiker.core.config import settings
from minimusiker.core.errors import ForbiddenError, NotFoundError, ValidationError
from minimusiker.core.models import (
    AudioFile,
    AudioFileStatus,
    AudioFileType,
    Event,
    SchoolBooking,
    Song,
    SongAudio,
    Teacher,
)
from minimusiker.core.pipeline import (
    AdminApprovalStatus,
    ApprovalStatus,
    PipelineStage,
    advance_stage,
    audio_release_time,
    calculate_admin_approval_status,
    calculate_completion,
    is_audio_visible,
    next_schulsong_release,
    resolve_engineer_assignment,
)
from minimusiker.services.events import EventService
from minimusiker.services.notifications import NotificationService
from minimusiker.services.repository import Repository
from minimusiker.services.teacher import TeacherService
from minimusiker.services.views import (
    EventAudioStatus,
    ParentAudioView,
    ParentTrack,
    SchulsongRelease,
    TrackDecision,
    TrackView,
    UploadTicket,
)

UPLOAD_KINDS = (AudioFileType.RAW, AudioFileType.FINAL)

STAGE_FOR_UPLOAD = {
    AudioFileType.RAW: PipelineStage.STAFF_UPLOADED,
    AudioFileType.FINAL: PipelineStage.FINALS_SUBMITTED,
}


def _upload_kind(kind: str) -> AudioFileType:
    try:
        file_type = AudioFileType(kind)
    except ValueError:
        file_type = None
    if file_type not in UPLOAD_KINDS:
        raise ValidationError("Upload type must be 'raw' or 'final'")
    return file_type


def _newest_first(files: List[AudioFile]) -> List[AudioFile]:
    epoch = datetime.min.replace(tzinfo=timezone.utc)
    return sorted(
        files,
        key=lambda f: f.uploaded_at.replace(tzinfo=f.uploaded_at.tzinfo or timezone.utc)
        if f.uploaded_at
        else epoch,
        reverse=True,
    )


class AudioService:
    def __init__(
        self,
        repo: Repository,
        events: EventService,
        teachers: TeacherService,
        storage: R2Storage,
        notifications: NotificationService,
    ):
        self.repo = repo
        self.events = events
        self.teachers = teachers
        self.storage = storage
        self.notifications = notifications

    # Tracks

    async def get_song_tracks(self, event_id: str) -> List[SongAudio]:
        """Songs of an event with their audio files, newest file first."""
        songs = await self.teachers.get_songs_by_event(event_id)
        files = _newest_first(await self.teachers.get_audio_files_by_event(event_id))

        by_song: Dict[str, List[AudioFile]] = {}
        for f in files:
            if f.song_id:
                by_song.setdefault(f.song_id, []).append(f)

        tracks = []
        for song in songs:
            song_files = by_song.get(song.record_id, [])
            tracks.append(
                SongAudio(
                    song=song,
                    raw_files=[f for f in song_files if f.type == AudioFileType.RAW],
                    preview_files=[f for f in song_files if f.type == AudioFileType.PREVIEW],
                    final_files=[f for f in song_files if f.type == AudioFileType.FINAL],
                )
            )
        return tracks

    async def _song_in_event(self, event: Event, song_id: str) -> Song:
        song = await self.repo.get(Song, song_id)
        if song.event_id != event.event_id:
            raise ValidationError("Song does not belong to this event")
        return song

    # Uploads

    async def request_upload(
        self,
        event_id: str,
        song_id: str,
        kind: str,
        filename: str,
        content_type: str,
    ) -> UploadTicket:
        file_type = _upload_kind(kind)
        validate_audio_content_type(content_type)
        if not filename:
            raise ValidationError("Filename is required")

        event = await self.events.require_event(event_id)
        song = await self._song_in_event(event, song_id)

        build_key = raw_audio_key if file_type == AudioFileType.RAW else final_audio_key
        key = build_key(event.event_id, song.class_id, song.record_id, filename)
        url = await self.storage.presigned_put_url(key, settings.UPLOAD_URL_EXPIRY)
        logger.info(f"Issued {file_type.value} upload URL for song {song_id}: {key}")
        return UploadTicket(
            upload_url=url, r2_key=key, expires_in=settings.UPLOAD_URL_EXPIRY
        )

    async def confirm_upload(
        self,
        event_id: str,
        song_id: str,
        kind: str,
        r2_key: str,
        filename: str,
        uploaded_by: str,
        file_size_bytes: Optional[int] = None,
        duration_seconds: Optional[float] = None,
    ) -> AudioFile:
        """Register an uploaded object and refresh the event's pipeline state."""
        file_type = _upload_kind(kind)
        event = await self.events.require_event(event_id)
        song = await self._song_in_event(event, song_id)

        prefix = (
            f"recordings/{event.event_id}/{song.class_id}/{song.record_id}/{file_type.value}/"
        )
        if not r2_key.startswith(prefix):
            raise ValidationError("Invalid upload key for this song")
        if not await self.storage.object_exists(r2_key):
            raise ValidationError("Uploaded file not found in storage")

        audio_file = await self.repo.create(
            AudioFile,
            filename=filename,
            class_id=song.class_id,
            event_id=event.event_id,
            song_id=[song.record_id],
            type=file_type,
            r2_key=r2_key,
            uploaded_by=uploaded_by,
            uploaded_at=datetime.now(timezone.utc),
            file_size_bytes=file_size_bytes,
            duration_seconds=duration_seconds,
            status=AudioFileStatus.READY,
            approval_status=ApprovalStatus.PENDING,
            is_schulsong=song.is_schulsong,
        )
        logger.info(
            f"Confirmed {file_type.value} upload for song {song.record_id} "
            f"of event {event.event_id}"
        )

        await self.refresh_event_state(event, file_type, song.is_schulsong)
        return audio_file

    async def refresh_event_state(
        self,
        event: Event,
        uploaded: Optional[AudioFileType] = None,
        is_schulsong: bool = False,
    ) -> Event:
        """Recompute stage, approval aggregate and engineer; write only changes.

        Every step is idempotent, so repeating a confirm leaves the event as
        it was.
        """
        tracks = await self.get_song_tracks(event.event_id)
        values: Dict[str, object] = {}

        if uploaded in STAGE_FOR_UPLOAD:
            stage = advance_stage(event.audio_pipeline_stage, STAGE_FOR_UPLOAD[uploaded])
            if stage != event.audio_pipeline_stage:
                values["audio_pipeline_stage"] = stage

        approval = calculate_admin_approval_status(tracks)
        if approval != event.admin_approval_status:
            values["admin_approval_status"] = approval
        approved = approval == AdminApprovalStatus.APPROVED
        if approved != event.all_tracks_approved:
            values["all_tracks_approved"] = approved

        if uploaded == AudioFileType.RAW:
            engineer = resolve_engineer_assignment(event.engineer_id, is_schulsong)
            if engineer:
                values["assigned_engineer"] = [engineer]
                logger.info(f"Auto-assigned engineer {engineer} to event {event.event_id}")

        if not values:
            return event
        return await self.events.update_event(event, **values)

    # Review

    async def get_audio_status(
        self, event_id: str, include_review_urls: bool = True
    ) -> EventAudioStatus:
        event = await self.events.require_event(event_id)
        tracks = await self.get_song_tracks(event.event_id)

        views = []
        for track in tracks:
            final = track.latest_final
            review_url = None
            if include_review_urls and final and final.is_ready:
                review_url = await self.storage.presigned_get_url(
                    final.r2_key, settings.REVIEW_URL_EXPIRY
                )
            views.append(
                TrackView(
                    song_id=track.song.record_id,
                    title=track.song.title,
                    class_id=track.song.class_id,
                    is_schulsong=track.song.is_schulsong,
                    has_raw_audio=track.has_raw_audio,
                    has_final_audio=track.has_final_audio,
                    approval_status=track.approval_status,
                    rejection_comment=final.rejection_comment if final else None,
                    final_file_id=final.record_id if final else None,
                    review_url=review_url,
                )
            )

        raw_count = sum(1 for t in tracks if t.has_raw_audio)
        final_count = sum(1 for t in tracks if t.has_final_audio)
        completion = calculate_completion(raw_count, final_count, len(tracks))
        approval = calculate_admin_approval_status(tracks)

        return EventAudioStatus(
            event_id=event.event_id,
            pipeline_stage=event.audio_pipeline_stage,
            expected_tracks=len(tracks),
            raw_count=raw_count,
            final_count=final_count,
            staff_upload_complete=completion.staff_upload_complete,
            mix_master_complete=completion.mix_master_complete,
            admin_approval_status=approval,
            all_tracks_approved=approval == AdminApprovalStatus.APPROVED,
            assigned_engineer=event.engineer_id,
            is_published=event.is_published,
            tracks=views,
        )

    async def approve_tracks(
        self, event_id: str, decisions: Sequence[TrackDecision]
    ) -> EventAudioStatus:
        """Apply per-track verdicts, then persist the event aggregate."""
        if not decisions:
            raise ValidationError("No approvals provided")

        event = await self.events.require_event(event_id)

        # The whole batch is checked before the first write
        checked = []
        for decision in decisions:
            if decision.status == ApprovalStatus.PENDING:
                raise ValidationError("Approval status must be 'approved' or 'rejected'")
            if decision.status == ApprovalStatus.REJECTED and not (decision.comment or "").strip():
                raise ValidationError("A comment is required when rejecting a track")

            audio_file = await self.repo.get(AudioFile, decision.audio_file_id)
            if audio_file.event_id != event.event_id:
                raise ValidationError("Audio file does not belong to this event")
            checked.append((decision, audio_file))

        for decision, audio_file in checked:
            await self.repo.update(
                AudioFile,
                audio_file.record_id,
                approval_status=decision.status,
                rejection_comment=decision.comment
                if decision.status == ApprovalStatus.REJECTED
                else "",
            )

        await self.refresh_event_state(event)
        return await self.get_audio_status(event.event_id, include_review_urls=False)

    async def assign_engineer(
        self, event_id: str, engineer_id: Optional[str] = None
    ) -> Event:
        """Assign ``engineer_id``, or pick one automatically when omitted.

        Automatic assignment only fills an empty slot and keeps an existing
        engineer untouched.
        """
        event = await self.events.require_event(event_id)
        if engineer_id:
            return await self.events.update_event(event, assigned_engineer=[engineer_id])

        engineer = resolve_engineer_assignment(event.engineer_id, event.is_schulsong)
        if not engineer:
            return event
        logger.info(f"Auto-assigned engineer {engineer} to event {event.event_id}")
        return await self.events.update_event(event, assigned_engineer=[engineer])

    def require_engineer_access(self, event: Event, engineer_id: str) -> None:
        if event.engineer_id != engineer_id:
            raise ForbiddenError("Event is not assigned to you")

    async def set_published(self, event_id: str, published: bool) -> Event:
        event = await self.events.require_event(event_id)
        if published and not event.all_tracks_approved:
            raise ValidationError("All tracks must be approved before publishing")
        return await self.events.update_event(event, is_published=published)

    # Schulsong

    async def _schulsong_recipients(self, event: Event) -> List[str]:
        emails = []
        if event.booking_record_id:
            booking = await self.repo.get(SchoolBooking, event.booking_record_id)
            if booking.school_contact_email:
                emails.append(booking.school_contact_email)
        teachers = await self.repo.find(
            Teacher, link_contains(Teacher.field("linked_events"), event.record_id)
        )
        emails.extend(t.email for t in teachers if t.email)
        return list(dict.fromkeys(e.lower() for e in emails))

    async def approve_schulsong_as_admin(
        self,
        event_id: str,
        mode: str = "scheduled",
        now: Optional[datetime] = None,
        background_tasks: Optional[BackgroundTasks] = None,
    ) -> SchulsongRelease:
        """Approve the schulsong and set its release time.

        ``scheduled`` releases on the next workday at 07:00 Berlin time,
        ``instant`` releases now and emails the teachers right away. Admins
        may approve without prior teacher approval (an override).
        """
        if mode not in ("scheduled", "instant"):
            raise ValidationError("Mode must be 'scheduled' or 'instant'")

        event = await self.events.require_event(event_id)
        schulsong = await self.teachers.get_schulsong_file(event.event_id)
        if not schulsong:
            raise NotFoundError("No schulsong audio file found")

        is_override = schulsong.teacher_approved_at is None
        await self.repo.update(
            AudioFile, schulsong.record_id, approval_status=ApprovalStatus.APPROVED
        )

        now = now or datetime.now(timezone.utc)
        released_at = now if mode == "instant" else next_schulsong_release(now)
        event = await self.events.update_event(event, schulsong_released_at=released_at)
        await self.refresh_event_state(event)
        logger.info(
            f"Schulsong of event {event.event_id} approved ({mode}), "
            f"release at {released_at.isoformat()}"
        )

        if mode == "instant":
            recipients = await self._schulsong_recipients(event)
            self.notifications.notify_schulsong_released(
                recipients, event.school_name, background_tasks
            )

        return SchulsongRelease(released_at=released_at, mode=mode, is_override=is_override)

    async def reject_schulsong(self, event_id: str, comment: Optional[str] = None) -> None:
        """Reject the schulsong; the teacher has to approve again after a fix."""
        event = await self.events.require_event(event_id)
        schulsong = await self.teachers.get_schulsong_file(event.event_id)
        if not schulsong:
            raise NotFoundError("No schulsong audio file found")

        await self.repo.update(
            AudioFile,
            schulsong.record_id,
            approval_status=ApprovalStatus.REJECTED,
            rejection_comment=comment or "",
            teacher_approved_at=None,
        )
        event = await self.events.update_event(event, schulsong_released_at=None)
        await self.refresh_event_state(event)
        logger.info(f"Schulsong of event {event.event_id} rejected")

    # Parents

    async def get_parent_audio(
        self, event_id: str, now: Optional[datetime] = None
    ) -> ParentAudioView:
        """Tracks a parent may hear; preview URLs only once audio is visible."""
        event = await self.events.require_event(event_id)
        visible = is_audio_visible(event.all_tracks_approved, event.event_date, now)

        tracks: List[ParentTrack] = []
        if visible:
            for track in await self.get_song_tracks(event.event_id):
                preview = track.preview
                if not preview or not preview.is_ready:
                    continue
                tracks.append(
                    ParentTrack(
                        song_id=track.song.record_id,
                        title=track.song.title,
                        class_id=track.song.class_id,
                        preview_url=await self.storage.presigned_get_url(
                            preview.r2_key, settings.PREVIEW_URL_EXPIRY
                        ),
                    )
                )

        return ParentAudioView(
            event_id=event.event_id,
            is_visible=visible,
            release_date=audio_release_time(event.event_date),
            tracks=tracks,
        )

    async def get_parent_download_url(
        self, event_id: str, song_id: str, now: Optional[datetime] = None
    ) -> str:
        """Signed download of a song's final file once audio is visible."""
        event = await self.events.require_event(event_id)
        if not is_audio_visible(event.all_tracks_approved, event.event_date, now):
            raise ForbiddenError("Audio is not available yet")

        finals = await self.repo.find(
            AudioFile,
            all_of(
                field_equals(AudioFile.field("event_id"), event.event_id),
                field_equals(AudioFile.field("type"), AudioFileType.FINAL.value),
            ),
            sort=[("uploaded_at", "desc")],
        )
        final = next((f for f in finals if f.song_id == song_id and f.is_ready), None)
        if not final:
            raise NotFoundError("No final audio for this song")

        song = await self.repo.get(Song, song_id)
        download_name = f"{song.title or 'song'}.{final.extension or 'mp3'}"
        return await self.storage.presigned_get_url(
            final.r2_key, settings.DOWNLOAD_URL_EXPIRY, download_name=download_name
        )
