"""Staff portal: assigned events and raw recording uploads."""

from fastapi import APIRouter, Depends

from minimusiker.api.deps import get_audio_service, get_event_service, require_staff
from minimusiker.api.schemas import UploadConfirm, UploadRequest
from minimusiker.core.errors import ForbiddenError
from minimusiker.core.models import AudioFileType, Event
from minimusiker.core.sessions import StaffSession
from minimusiker.services.audio import AudioService
from minimusiker.services.events import EventService

router = APIRouter()


async def _assigned_event(
    events: EventService, event_id: str, session: StaffSession
) -> Event:
    event = await events.require_event(event_id)
    if session.staff_id not in event.assigned_staff:
        raise ForbiddenError("Event is not assigned to you")
    return event


@router.get("/events")
async def list_events(
    session: StaffSession = Depends(require_staff),
    events: EventService = Depends(get_event_service),
):
    assigned = await events.list_assigned("assigned_staff", session.staff_id)
    return {"success": True, "events": [EventService.summary(e) for e in assigned]}


@router.get("/events/{event_id}")
async def get_event(
    event_id: str,
    session: StaffSession = Depends(require_staff),
    events: EventService = Depends(get_event_service),
    audio: AudioService = Depends(get_audio_service),
):
    event = await _assigned_event(events, event_id, session)
    status = await audio.get_audio_status(event.event_id, include_review_urls=False)
    return {"success": True, "event": EventService.summary(event), "audio": status.dump()}


@router.post("/events/{event_id}/upload-url")
async def request_upload_url(
    event_id: str,
    body: UploadRequest,
    session: StaffSession = Depends(require_staff),
    events: EventService = Depends(get_event_service),
    audio: AudioService = Depends(get_audio_service),
):
    """Presigned PUT URL for a raw recording."""
    event = await _assigned_event(events, event_id, session)
    ticket = await audio.request_upload(
        event.event_id, body.song_id, AudioFileType.RAW.value, body.filename, body.content_type
    )
    return {"success": True, **ticket.dump()}


@router.post("/events/{event_id}/upload-confirm")
async def confirm_upload(
    event_id: str,
    body: UploadConfirm,
    session: StaffSession = Depends(require_staff),
    events: EventService = Depends(get_event_service),
    audio: AudioService = Depends(get_audio_service),
):
    event = await _assigned_event(events, event_id, session)
    audio_file = await audio.confirm_upload(
        event.event_id,
        body.song_id,
        AudioFileType.RAW.value,
        body.r2_key,
        body.filename,
        uploaded_by=session.email,
        file_size_bytes=body.file_size_bytes,
        duration_seconds=body.duration_seconds,
    )
    return {"success": True, "audioFileId": audio_file.record_id}
