"""Admin task board: generation, listing by urgency and completion."""

import json
from datetime import date, datetime, timezone
from typing import Any, Dict, List, Optional, Tuple

from loguru import logger

from minimusiker.clients.airtable import any_of, field_equals, link_contains, record_is
from minimusiker.clients.storage import R2Storage
from minimusiker.core.errors import NotFoundError, ValidationError
from minimusiker.core.models import (
    Event,
    GuesstimateOrder,
    Task,
    TaskCompletionType,
    TaskStatus,
    TaskType,
)
from minimusiker.core.timeline import (
    PAPER_ORDER_TEMPLATES,
    SHIPPING_TEMPLATE,
    calculate_deadline,
    calculate_urgency,
    get_template,
)
from minimusiker.services.repository import Repository
from minimusiker.services.views import TaskView

TASK_DOWNLOAD_EXPIRY = 3600


class TaskService:
    def __init__(self, repo: Repository, storage: R2Storage):
        self.repo = repo
        self.storage = storage

    async def create_task(
        self,
        event_record_id: str,
        template_id: str,
        task_type: TaskType,
        task_name: str,
        description: str,
        completion_type: TaskCompletionType,
        timeline_offset: int,
        deadline: date,
        parent_task_id: Optional[str] = None,
    ) -> Task:
        values: Dict[str, Any] = {
            "template_id": template_id,
            "event": [event_record_id],
            "task_type": task_type,
            "task_name": task_name,
            "description": description,
            "completion_type": completion_type,
            "timeline_offset": timeline_offset,
            "deadline": deadline,
            "status": TaskStatus.PENDING,
            "created_at": datetime.now(timezone.utc).isoformat(),
        }
        if parent_task_id:
            values["parent_task"] = [parent_task_id]
        return await self.repo.create(Task, **values)

    async def generate_tasks_for_event(self, event_record_id: str) -> List[Task]:
        """Create one task per paper order template, deadlines from the event date."""
        event = await self.repo.get(Event, event_record_id)
        if not event.event_date:
            raise ValidationError(f"Event {event.event_id} has no date")

        tasks = []
        for template in PAPER_ORDER_TEMPLATES:
            tasks.append(
                await self.create_task(
                    event_record_id=event.record_id,
                    template_id=template.id,
                    task_type=template.type,
                    task_name=template.name,
                    description=template.description,
                    completion_type=template.completion_type,
                    timeline_offset=template.timeline_offset,
                    deadline=calculate_deadline(event.event_date, template.timeline_offset),
                )
            )
        logger.info(f"Generated {len(tasks)} tasks for event {event.event_id}")
        return tasks

    def _view(
        self,
        task: Task,
        events: Dict[str, Event],
        go_orders: Dict[str, GuesstimateOrder],
        today: Optional[date],
    ) -> TaskView:
        event = events.get(task.event_record_id or "")
        go_order = go_orders.get(task.go_order[0]) if task.go_order else None
        urgency = calculate_urgency(task.deadline, today)
        template = get_template(task.template_id)
        r2_file_path = None
        if template and template.r2_file and task.event_record_id:
            r2_file_path = template.r2_file(task.event_record_id)

        return TaskView(
            id=task.record_id,
            task_id=task.task_id,
            template_id=task.template_id,
            event_record_id=task.event_record_id,
            task_type=task.task_type.value,
            task_name=task.task_name,
            description=task.description,
            completion_type=task.completion_type.value,
            deadline=task.deadline,
            status=task.status.value,
            completed_at=task.completed_at,
            completed_by=task.completed_by,
            school_name=event.school_name if event else "Unknown School",
            event_date=event.event_date if event else None,
            go_display_id=go_order.go_id if go_order else None,
            urgency_score=urgency.urgency_score,
            days_until_due=urgency.days_until_due,
            is_overdue=urgency.is_overdue,
            r2_file_path=r2_file_path,
        )

    async def get_tasks(
        self,
        status: Optional[TaskStatus] = None,
        task_type: Optional[TaskType] = None,
        today: Optional[date] = None,
    ) -> Tuple[List[TaskView], Dict[str, int]]:
        """Tasks sorted by urgency, plus per-type counts for the status.

        Ties on urgency are broken by event date.
        """
        status_filter = field_equals(Task.field("status"), status.value) if status else None
        tasks = await self.repo.find(Task, status_filter)

        counts = {"all": len(tasks)}
        counts.update({t.value: 0 for t in TaskType})
        for task in tasks:
            counts[task.task_type.value] += 1

        if task_type:
            tasks = [t for t in tasks if t.task_type == task_type]

        views = await self._views_for(tasks, today)
        views.sort(key=lambda v: (v.urgency_score, v.event_date or date.max))
        return views, counts

    async def _find_by_record_ids(self, model, record_ids: List[str]) -> list:
        if not record_ids:
            return []
        return await self.repo.find(model, any_of(*[record_is(r) for r in record_ids]))

    async def get_task(self, task_id: str, today: Optional[date] = None) -> TaskView:
        task = await self.repo.get(Task, task_id)
        views = await self._views_for([task], today)
        return views[0]

    async def _views_for(self, tasks: List[Task], today: Optional[date]) -> List[TaskView]:
        event_ids = sorted({t.event_record_id for t in tasks if t.event_record_id})
        go_ids = sorted({t.go_order[0] for t in tasks if t.go_order})
        events = {e.record_id: e for e in await self._find_by_record_ids(Event, event_ids)}
        go_orders = {
            g.record_id: g for g in await self._find_by_record_ids(GuesstimateOrder, go_ids)
        }
        return [self._view(t, events, go_orders, today) for t in tasks]

    async def create_guesstimate_order(
        self,
        event_record_id: str,
        order_amount: Optional[float] = None,
        order_ids: str = "",
        contains: Optional[List[str]] = None,
        order_date: Optional[date] = None,
    ) -> GuesstimateOrder:
        values: Dict[str, Any] = {
            "event": [event_record_id],
            "order_ids": order_ids,
            "order_amount": order_amount or 0,
            "contains": json.dumps(contains or []),
            "created_at": datetime.now(timezone.utc).isoformat(),
        }
        if order_date:
            values["order_date"] = order_date
        go_order = await self.repo.create(GuesstimateOrder, **values)
        logger.info(f"Created guesstimate order {go_order.go_id or go_order.record_id}")
        return go_order

    async def get_guesstimate_orders(
        self, event_record_id: Optional[str] = None
    ) -> List[GuesstimateOrder]:
        formula = None
        if event_record_id:
            formula = link_contains(GuesstimateOrder.field("event"), event_record_id)
        return await self.repo.find(GuesstimateOrder, formula)

    async def complete_task(
        self, task_id: str, data: Dict[str, Any], admin_email: str
    ) -> Dict[str, Any]:
        """Complete a task.

        Templates that create a GO-ID get a GuesstimateOrder linked to the
        task; those that also ship get a follow-up shipping task due today,
        linked to the same order.

        Returns:
            Dict with the updated ``task`` and optional ``goId`` and
            ``shippingTaskId``.
        """
        task = await self.repo.get(Task, task_id)
        if task.status == TaskStatus.COMPLETED:
            raise ValidationError("Task is already completed")
        if task.completion_type == TaskCompletionType.MONETARY:
            amount = data.get("amount")
            if not isinstance(amount, (int, float)) or amount < 0:
                raise ValidationError("A valid amount is required for this task")

        template = get_template(task.template_id)
        go_order: Optional[GuesstimateOrder] = None
        if template and template.creates_go_id and task.event_record_id:
            go_order = await self.create_guesstimate_order(
                task.event_record_id,
                order_amount=data.get("amount"),
                order_date=date.today(),
            )

        values: Dict[str, Any] = {
            "status": TaskStatus.COMPLETED,
            "completed_at": datetime.now(timezone.utc).isoformat(),
            "completed_by": admin_email,
            "completion_data": json.dumps(data),
        }
        if go_order:
            values["go_order"] = [go_order.record_id]
        updated = await self.repo.update(Task, task.record_id, **values)
        logger.info(f"Task {task.task_id or task.record_id} completed by {admin_email}")

        shipping_task = None
        if template and template.creates_shipping and go_order:
            shipping_task = await self.create_task(
                event_record_id=task.event_record_id,
                template_id=f"{SHIPPING_TEMPLATE.id}_{task.template_id}",
                task_type=SHIPPING_TEMPLATE.type,
                task_name=SHIPPING_TEMPLATE.name,
                description=f"{SHIPPING_TEMPLATE.description} - {template.name}",
                completion_type=SHIPPING_TEMPLATE.completion_type,
                timeline_offset=0,
                deadline=date.today(),
                parent_task_id=task.record_id,
            )
            await self.repo.update(Task, shipping_task.record_id, go_order=[go_order.record_id])

        return {
            "task": updated,
            "goId": go_order.go_id if go_order else None,
            "shippingTaskId": shipping_task.record_id if shipping_task else None,
        }

    async def get_task_download_url(self, task_id: str) -> str:
        view = await self.get_task(task_id)
        if not view.r2_file_path:
            raise NotFoundError("No file available for this task")
        return await self.storage.presigned_get_url(view.r2_file_path, TASK_DOWNLOAD_EXPIRY)
