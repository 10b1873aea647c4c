"""Teacher portal routes.

Every route is scoped to the logged-in teacher: events are looked up
through ``TeacherService.get_teacher_event_detail``, so an event the
teacher cannot see answers 404 rather than 403.
"""

from typing import Optional

from fastapi import APIRouter, BackgroundTasks, Depends

from minimusiker.api.deps import (
    get_clothing_service,
    get_teacher_service,
    require_teacher,
)
from minimusiker.api.schemas import (
    ClassCreate,
    ClassUpdate,
    ClothingOrderUpdate,
    GroupCreate,
    GroupUpdate,
    SongCreate,
    SongUpdate,
)
from minimusiker.core.errors import ForbiddenError, NotFoundError, ValidationError
from minimusiker.core.models import CLOTHING_SIZE_FIELDS, ClothingOrder
from minimusiker.core.sessions import TeacherSession
from minimusiker.services.clothing import ClothingService
from minimusiker.services.teacher import TeacherService
from minimusiker.services.views import SongView, TeacherEventView

router = APIRouter()

GROUP_ID_PREFIX = "group_"


async def _teacher_event(
    teachers: TeacherService, event_id: str, session: TeacherSession
) -> TeacherEventView:
    event = await teachers.get_teacher_event_detail(event_id, session.email)
    if not event:
        raise NotFoundError("Event not found or you do not have access")
    return event


async def _require_class_owner(
    teachers: TeacherService, class_id: str, session: TeacherSession
) -> None:
    if class_id.startswith(GROUP_ID_PREFIX):
        owns = await teachers.verify_teacher_owns_group(class_id, session.email)
    else:
        owns = await teachers.verify_teacher_owns_class(class_id, session.email)
    if not owns:
        raise ForbiddenError("You do not have access to this class")


# Events


@router.get("/events")
async def list_events(
    session: TeacherSession = Depends(require_teacher),
    teachers: TeacherService = Depends(get_teacher_service),
):
    events = await teachers.get_teacher_events(session.email)
    return {"success": True, "events": [e.dump() for e in events]}


@router.get("/events/{event_id}")
async def get_event(
    event_id: str,
    session: TeacherSession = Depends(require_teacher),
    teachers: TeacherService = Depends(get_teacher_service),
):
    event = await _teacher_event(teachers, event_id, session)
    return {"success": True, "event": event.dump()}


# Classes


@router.post("/events/{event_id}/classes", status_code=201)
async def create_class(
    event_id: str,
    body: ClassCreate,
    session: TeacherSession = Depends(require_teacher),
    teachers: TeacherService = Depends(get_teacher_service),
):
    if not body.class_name.strip():
        raise ValidationError("Class name is required")
    event = await _teacher_event(teachers, event_id, session)
    created = await teachers.create_class(
        event.event_id,
        body.class_name.strip(),
        teacher_name=body.teacher_name or session.name,
        num_children=body.num_children,
    )
    return {"success": True, "class": created.dump()}


@router.put("/classes/{class_id}")
async def update_class(
    class_id: str,
    body: ClassUpdate,
    session: TeacherSession = Depends(require_teacher),
    teachers: TeacherService = Depends(get_teacher_service),
):
    await _require_class_owner(teachers, class_id, session)
    if body.class_name is not None and not body.class_name.strip():
        raise ValidationError("Class name is required")
    updated = await teachers.update_class(
        class_id,
        class_name=body.class_name.strip() if body.class_name else None,
        num_children=body.num_children,
    )
    return {
        "success": True,
        "class": {
            "classId": updated.class_id,
            "className": updated.class_name,
            "numChildren": updated.total_children,
        },
    }


@router.delete("/classes/{class_id}")
async def delete_class(
    class_id: str,
    session: TeacherSession = Depends(require_teacher),
    teachers: TeacherService = Depends(get_teacher_service),
):
    await _require_class_owner(teachers, class_id, session)
    await teachers.delete_class(class_id)
    return {"success": True}


# Songs


@router.get("/events/{event_id}/songs")
async def list_songs(
    event_id: str,
    session: TeacherSession = Depends(require_teacher),
    teachers: TeacherService = Depends(get_teacher_service),
):
    event = await _teacher_event(teachers, event_id, session)
    songs = await teachers.get_songs_by_event(event.event_id)
    return {"success": True, "songs": [SongView.from_song(s).dump() for s in songs]}


@router.post("/events/{event_id}/songs", status_code=201)
async def create_song(
    event_id: str,
    body: SongCreate,
    session: TeacherSession = Depends(require_teacher),
    teachers: TeacherService = Depends(get_teacher_service),
):
    if not body.title.strip():
        raise ValidationError("Song title is required")
    event = await _teacher_event(teachers, event_id, session)

    class_ids = {c.class_id for c in event.classes}
    if body.class_id.startswith(GROUP_ID_PREFIX):
        groups = await teachers.get_groups_by_event(event.event_id)
        class_ids.update(g.group_id for g in groups)
    if body.class_id not in class_ids:
        raise ValidationError("Class does not belong to this event")

    song = await teachers.create_song(
        body.class_id,
        event.event_id,
        body.title.strip(),
        created_by=session.email,
        artist=body.artist,
        notes=body.notes,
        is_schulsong=body.is_schulsong,
    )
    return {"success": True, "song": SongView.from_song(song).dump()}


@router.put("/songs/{song_id}")
async def update_song(
    song_id: str,
    body: SongUpdate,
    session: TeacherSession = Depends(require_teacher),
    teachers: TeacherService = Depends(get_teacher_service),
):
    song = await teachers.get_song(song_id)
    await _require_class_owner(teachers, song.class_id, session)
    values = body.model_dump(exclude_none=True)
    if not values:
        return {"success": True, "song": SongView.from_song(song).dump()}
    updated = await teachers.update_song(song_id, **values)
    return {"success": True, "song": SongView.from_song(updated).dump()}


@router.delete("/songs/{song_id}")
async def delete_song(
    song_id: str,
    session: TeacherSession = Depends(require_teacher),
    teachers: TeacherService = Depends(get_teacher_service),
):
    song = await teachers.get_song(song_id)
    await _require_class_owner(teachers, song.class_id, session)
    await teachers.delete_song(song_id)
    return {"success": True}


# Groups


@router.get("/events/{event_id}/groups")
async def list_groups(
    event_id: str,
    session: TeacherSession = Depends(require_teacher),
    teachers: TeacherService = Depends(get_teacher_service),
):
    event = await _teacher_event(teachers, event_id, session)
    groups = await teachers.get_groups_by_event(event.event_id)
    return {"success": True, "groups": [g.dump() for g in groups]}


@router.post("/events/{event_id}/groups", status_code=201)
async def create_group(
    event_id: str,
    body: GroupCreate,
    session: TeacherSession = Depends(require_teacher),
    teachers: TeacherService = Depends(get_teacher_service),
):
    """Create a class group ("Klassen singen zusammen")."""
    group_name = body.group_name.strip()
    if not group_name:
        raise ValidationError("Group name is required")
    if len(body.member_class_ids) < 2:
        raise ValidationError("At least 2 classes must be selected for a group")

    event = await _teacher_event(teachers, event_id, session)
    if event.status == "completed":
        raise ValidationError("Cannot add groups to completed events")

    event_class_ids = {c.class_id for c in event.classes}
    if not all(class_id in event_class_ids for class_id in body.member_class_ids):
        raise ValidationError("One or more selected classes do not belong to this event")

    group = await teachers.create_group(
        event.event_id, group_name, body.member_class_ids, created_by=session.email
    )
    return {
        "success": True,
        "group": group.dump(),
        "message": "Group created successfully",
    }


@router.put("/groups/{group_id}")
async def update_group(
    group_id: str,
    body: GroupUpdate,
    session: TeacherSession = Depends(require_teacher),
    teachers: TeacherService = Depends(get_teacher_service),
):
    if not await teachers.verify_teacher_owns_group(group_id, session.email):
        raise ForbiddenError("You do not have access to this group")
    group = await teachers.update_group(
        group_id, group_name=body.group_name, member_class_ids=body.member_class_ids
    )
    return {"success": True, "group": group.dump()}


@router.delete("/groups/{group_id}")
async def delete_group(
    group_id: str,
    session: TeacherSession = Depends(require_teacher),
    teachers: TeacherService = Depends(get_teacher_service),
):
    if not await teachers.verify_teacher_owns_group(group_id, session.email):
        raise ForbiddenError("You do not have access to this group")
    await teachers.delete_group(group_id)
    return {"success": True}


# Clothing order


def _clothing_payload(order: Optional[ClothingOrder]) -> dict:
    if order is None:
        return {"sizes": {name: 0 for name in CLOTHING_SIZE_FIELDS}, "notes": "", "updatedAt": None}
    return {"sizes": order.sizes, "notes": order.notes, "updatedAt": order.updated_at}


@router.get("/events/{event_id}/clothing-order")
async def get_clothing_order(
    event_id: str,
    session: TeacherSession = Depends(require_teacher),
    teachers: TeacherService = Depends(get_teacher_service),
    clothing: ClothingService = Depends(get_clothing_service),
):
    event = await _teacher_event(teachers, event_id, session)
    order = await clothing.get_clothing_order(event.event_id)
    return {"success": True, "clothingOrder": _clothing_payload(order)}


@router.put("/events/{event_id}/clothing-order")
async def update_clothing_order(
    event_id: str,
    body: ClothingOrderUpdate,
    session: TeacherSession = Depends(require_teacher),
    teachers: TeacherService = Depends(get_teacher_service),
    clothing: ClothingService = Depends(get_clothing_service),
):
    event = await _teacher_event(teachers, event_id, session)
    order = await clothing.upsert_clothing_order(
        event.event_id, body.sizes, updated_by=session.email, notes=body.notes
    )
    return {"success": True, "clothingOrder": _clothing_payload(order)}


# Schulsong


@router.get("/events/{event_id}/schulsong")
async def get_schulsong_status(
    event_id: str,
    session: TeacherSession = Depends(require_teacher),
    teachers: TeacherService = Depends(get_teacher_service),
):
    event = await _teacher_event(teachers, event_id, session)
    status = await teachers.get_schulsong_status(event.event_id)
    return {"success": True, "schulsong": status.dump()}


@router.post("/events/{event_id}/schulsong/approve")
async def approve_schulsong(
    event_id: str,
    background_tasks: BackgroundTasks,
    session: TeacherSession = Depends(require_teacher),
    teachers: TeacherService = Depends(get_teacher_service),
):
    event = await _teacher_event(teachers, event_id, session)
    approved_at = await teachers.approve_schulsong_as_teacher(
        event.event_id, session.email, background_tasks
    )
    return {"success": True, "approvedAt": approved_at.isoformat()}
