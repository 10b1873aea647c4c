"""Admin portal: events, audio review, schulsong release, tasks, clothing
and bookings."""

from datetime import date
from typing import Optional

from fastapi import APIRouter, BackgroundTasks, Depends, Query

from minimusiker.api.deps import (
    get_audio_service,
    get_booking_service,
    get_clothing_service,
    get_event_service,
    get_logo_service,
    get_task_service,
    require_admin,
)
from minimusiker.api.schemas import (
    BookingSyncRequest,
    EngineerAssignment,
    EventFromBooking,
    LogoConfirm,
    LogoUploadRequest,
    PublishRequest,
    SchulsongApproval,
    SchulsongRejection,
    TaskCompletion,
    TrackApprovalRequest,
)
from minimusiker.core.models import GuesstimateOrder, TaskStatus, TaskType
from minimusiker.core.sessions import AdminSession
from minimusiker.services.audio import AudioService
from minimusiker.services.bookings import BookingService
from minimusiker.services.clothing import ClothingService
from minimusiker.services.events import EventService
from minimusiker.services.logos import LogoService
from minimusiker.services.tasks import TaskService
from minimusiker.services.teacher import DEFAULT_EVENT_TYPE

router = APIRouter()


def _go_order(order: GuesstimateOrder) -> dict:
    return {
        "id": order.record_id,
        "goId": order.go_id,
        "eventRecordId": order.event[0] if order.event else None,
        "orderIds": order.order_ids,
        "orderDate": order.order_date.isoformat() if order.order_date else None,
        "orderAmount": order.order_amount,
        "contains": order.contains,
        "dateCompleted": order.date_completed.isoformat() if order.date_completed else None,
    }


# Events and audio


@router.get("/events")
async def list_events(
    _: AdminSession = Depends(require_admin),
    events: EventService = Depends(get_event_service),
):
    all_events = await events.list_events()
    return {"success": True, "events": [EventService.summary(e) for e in all_events]}


@router.post("/events", status_code=201)
async def create_event_from_booking(
    body: EventFromBooking,
    _: AdminSession = Depends(require_admin),
    bookings: BookingService = Depends(get_booking_service),
):
    event = await bookings.create_event_from_booking(
        body.booking_record_id, body.event_type or DEFAULT_EVENT_TYPE
    )
    return {"success": True, "event": EventService.summary(event)}


@router.get("/events/{event_id}/audio")
async def get_audio_status(
    event_id: str,
    _: AdminSession = Depends(require_admin),
    audio: AudioService = Depends(get_audio_service),
):
    status = await audio.get_audio_status(event_id)
    return {"success": True, "audio": status.dump()}


@router.post("/events/{event_id}/approvals")
async def approve_tracks(
    event_id: str,
    body: TrackApprovalRequest,
    _: AdminSession = Depends(require_admin),
    audio: AudioService = Depends(get_audio_service),
):
    status = await audio.approve_tracks(event_id, body.approvals)
    return {"success": True, "audio": status.dump()}


@router.post("/events/{event_id}/engineer")
async def assign_engineer(
    event_id: str,
    body: EngineerAssignment,
    _: AdminSession = Depends(require_admin),
    audio: AudioService = Depends(get_audio_service),
):
    event = await audio.assign_engineer(event_id, body.engineer_id)
    return {"success": True, "engineerId": event.engineer_id}


@router.post("/events/{event_id}/publish")
async def set_published(
    event_id: str,
    body: PublishRequest,
    _: AdminSession = Depends(require_admin),
    audio: AudioService = Depends(get_audio_service),
):
    event = await audio.set_published(event_id, body.published)
    return {"success": True, "isPublished": event.is_published}


@router.post("/events/{event_id}/schulsong/approve")
async def approve_schulsong(
    event_id: str,
    body: SchulsongApproval,
    background_tasks: BackgroundTasks,
    _: AdminSession = Depends(require_admin),
    audio: AudioService = Depends(get_audio_service),
):
    release = await audio.approve_schulsong_as_admin(
        event_id, body.mode, background_tasks=background_tasks
    )
    return {"success": True, **release.dump()}


@router.post("/events/{event_id}/schulsong/reject")
async def reject_schulsong(
    event_id: str,
    body: SchulsongRejection,
    _: AdminSession = Depends(require_admin),
    audio: AudioService = Depends(get_audio_service),
):
    await audio.reject_schulsong(event_id, body.comment)
    return {"success": True}


# Tasks


@router.get("/tasks")
async def list_tasks(
    status: Optional[TaskStatus] = TaskStatus.PENDING,
    task_type: Optional[TaskType] = Query(default=None, alias="type"),
    _: AdminSession = Depends(require_admin),
    tasks: TaskService = Depends(get_task_service),
):
    """Tasks by urgency; ``counts`` are per type for the selected status."""
    views, counts = await tasks.get_tasks(status, task_type)
    return {"success": True, "tasks": [v.dump() for v in views], "counts": counts}


@router.get("/tasks/{task_id}")
async def get_task(
    task_id: str,
    _: AdminSession = Depends(require_admin),
    tasks: TaskService = Depends(get_task_service),
):
    view = await tasks.get_task(task_id)
    return {"success": True, "task": view.dump()}


@router.post("/tasks/{task_id}/complete")
async def complete_task(
    task_id: str,
    body: TaskCompletion,
    session: AdminSession = Depends(require_admin),
    tasks: TaskService = Depends(get_task_service),
):
    result = await tasks.complete_task(task_id, body.data, session.email)
    view = await tasks.get_task(task_id)
    return {
        "success": True,
        "task": view.dump(),
        "goId": result["goId"],
        "shippingTaskId": result["shippingTaskId"],
    }


@router.get("/tasks/{task_id}/download")
async def get_task_download(
    task_id: str,
    _: AdminSession = Depends(require_admin),
    tasks: TaskService = Depends(get_task_service),
):
    url = await tasks.get_task_download_url(task_id)
    return {"success": True, "url": url}


@router.get("/guesstimate-orders")
async def list_guesstimate_orders(
    event_record_id: Optional[str] = Query(default=None, alias="eventRecordId"),
    _: AdminSession = Depends(require_admin),
    tasks: TaskService = Depends(get_task_service),
):
    orders = await tasks.get_guesstimate_orders(event_record_id)
    return {"success": True, "orders": [_go_order(o) for o in orders]}


# Clothing


@router.get("/clothing-orders/pending")
async def list_pending_clothing_orders(
    _: AdminSession = Depends(require_admin),
    clothing: ClothingService = Depends(get_clothing_service),
):
    pending = await clothing.get_pending_clothing_orders(date.today())
    return {"success": True, "events": [p.dump() for p in pending]}


@router.get("/clothing-orders/{event_record_id}/orders")
async def list_event_clothing_orders(
    event_record_id: str,
    _: AdminSession = Depends(require_admin),
    clothing: ClothingService = Depends(get_clothing_service),
):
    orders = await clothing.get_orders_for_event(event_record_id)
    return {"success": True, "orders": orders}


# Bookings and schools


@router.post("/bookings/sync")
async def sync_bookings(
    body: BookingSyncRequest,
    _: AdminSession = Depends(require_admin),
    bookings: BookingService = Depends(get_booking_service),
):
    result = await bookings.sync_bookings(body.date_from, body.date_to, body.dry_run)
    return {
        "success": True,
        "fetched": result.fetched,
        "created": result.created,
        "updated": result.updated,
        "skipped": result.skipped,
        "dryRun": body.dry_run,
    }


@router.post("/einrichtungen/{einrichtung_id}/logo-upload-url")
async def request_logo_upload(
    einrichtung_id: str,
    body: LogoUploadRequest,
    _: AdminSession = Depends(require_admin),
    logos: LogoService = Depends(get_logo_service),
):
    ticket = await logos.request_logo_upload(einrichtung_id, body.filename, body.content_type)
    return {"success": True, **ticket.dump()}


@router.post("/einrichtungen/{einrichtung_id}/logo-confirm")
async def confirm_logo_upload(
    einrichtung_id: str,
    body: LogoConfirm,
    _: AdminSession = Depends(require_admin),
    logos: LogoService = Depends(get_logo_service),
):
    await logos.confirm_logo_upload(einrichtung_id, body.r2_key)
    url = await logos.get_logo_url(einrichtung_id)
    return {"success": True, "logoUrl": url}
