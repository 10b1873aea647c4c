"""Parent portal: session info and released recordings."""

from fastapi import APIRouter, Depends

from minimusiker.api.deps import get_audio_service, require_parent
from minimusiker.core.errors import ForbiddenError
from minimusiker.core.sessions import ParentSession, parent_has_event_access
from minimusiker.services.audio import AudioService

router = APIRouter()


def _require_event_access(session: ParentSession, event_id: str) -> None:
    if not parent_has_event_access(session, event_id):
        raise ForbiddenError("You do not have access to this event")


@router.get("/me")
async def get_session(session: ParentSession = Depends(require_parent)):
    return {
        "success": True,
        "parent": {
            "parentId": session.parent_id,
            "email": session.email,
            "firstName": session.first_name,
            "eventId": session.event_id,
            "schoolName": session.school_name,
            "children": [
                {"childName": c.child_name, "eventId": c.event_id, "classId": c.class_id}
                for c in session.children
            ],
        },
    }


@router.get("/events/{event_id}/audio")
async def get_event_audio(
    event_id: str,
    session: ParentSession = Depends(require_parent),
    audio: AudioService = Depends(get_audio_service),
):
    """Recordings of the event, listed once released to parents."""
    _require_event_access(session, event_id)
    view = await audio.get_parent_audio(event_id)
    return {"success": True, "audio": view.dump()}


@router.get("/events/{event_id}/songs/{song_id}/download")
async def get_song_download(
    event_id: str,
    song_id: str,
    session: ParentSession = Depends(require_parent),
    audio: AudioService = Depends(get_audio_service),
):
    _require_event_access(session, event_id)
    url = await audio.get_parent_download_url(event_id, song_id)
    return {"success": True, "url": url}
