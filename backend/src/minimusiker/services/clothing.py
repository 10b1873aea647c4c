"""Clothing orders.

Two flows share this module: the school's own per-size clothing order for
events whose deal includes shirts, and the admin view aggregating parents'
Shopify clothing purchases per event ahead of the supplier order day.
"""

from datetime import date, datetime, timedelta, timezone
from typing import Dict, List, Mapping, Optional

from loguru import logger

from minimusiker.clients.airtable import all_of, field_equals, link_contains
from minimusiker.core.catalog import HOODIE_SIZES, TSHIRT_SIZES, clothing_details
from minimusiker.core.errors import ForbiddenError, RecordDecodeError, ValidationError
from minimusiker.core.models import (
    CLOTHING_SIZE_FIELDS,
    ClothingOrder,
    Event,
    ShopOrder,
    Task,
    TaskStatus,
    TaskType,
)
from minimusiker.core.records import decode_record
from minimusiker.services.events import EventService
from minimusiker.services.repository import Repository
from minimusiker.services.views import ClothingTotals, PendingClothingOrder

ORDER_DAY_OFFSET = 18  # Supplier order goes out 18 days before the event
VISIBILITY_WINDOW_DAYS = 21
PAST_EVENT_DAYS = 7


def order_day(event_date: date) -> date:
    return event_date - timedelta(days=ORDER_DAY_OFFSET)


def days_until_order_day(event_date: date, today: date) -> int:
    return (order_day(event_date) - today).days


def aggregate_clothing(orders: List[ShopOrder]) -> tuple:
    """Sum clothing line items by type and size.

    Returns:
        (ClothingTotals, revenue) where revenue only counts clothing lines.
    """
    tshirts = {size: 0 for size in TSHIRT_SIZES}
    hoodies = {size: 0 for size in HOODIE_SIZES}
    revenue = 0.0
    for order in orders:
        for item in order.line_items:
            details = clothing_details(item.variant_id)
            if not details:
                continue
            revenue += item.total
            bucket = tshirts if details.type == "tshirt" else hoodies
            bucket[details.size] = bucket.get(details.size, 0) + item.quantity
    return ClothingTotals(tshirts=tshirts, hoodies=hoodies), revenue


class ClothingService:
    def __init__(self, repo: Repository, events: EventService):
        self.repo = repo
        self.events = events

    # School clothing order

    async def _clothing_event(self, event_id: str) -> Event:
        event = await self.events.require_event(event_id)
        if not event.offers_clothing:
            raise ForbiddenError("Clothing order not available for this event")
        return event

    async def get_clothing_order(self, event_id: str) -> Optional[ClothingOrder]:
        event = await self._clothing_event(event_id)
        return await self.repo.find_one(
            ClothingOrder, link_contains(ClothingOrder.field("event"), event.record_id)
        )

    async def upsert_clothing_order(
        self,
        event_id: str,
        sizes: Mapping[str, int],
        updated_by: str,
        notes: Optional[str] = None,
    ) -> ClothingOrder:
        unknown = set(sizes) - set(CLOTHING_SIZE_FIELDS)
        if unknown:
            raise ValidationError(f"Unknown sizes: {', '.join(sorted(unknown))}")
        for name, quantity in sizes.items():
            if not isinstance(quantity, int) or quantity < 0:
                raise ValidationError(f"Quantity for {name} must be a non-negative integer")

        event = await self._clothing_event(event_id)
        existing = await self.repo.find_one(
            ClothingOrder, link_contains(ClothingOrder.field("event"), event.record_id)
        )

        values: Dict[str, object] = dict(sizes)
        values["last_updated_by"] = updated_by
        values["updated_at"] = datetime.now(timezone.utc).isoformat()
        if notes is not None:
            values["notes"] = notes

        if existing:
            logger.info(f"Updating clothing order for event {event.event_id}")
            return await self.repo.update(ClothingOrder, existing.record_id, **values)

        logger.info(f"Creating clothing order for event {event.event_id}")
        return await self.repo.create(ClothingOrder, event=[event.record_id], **values)

    # Parents' Shopify clothing purchases

    async def _clothing_orders_by_event(self) -> Dict[str, List[ShopOrder]]:
        records = await self.repo.airtable.list_records(ShopOrder.TABLE_ID)
        by_event: Dict[str, List[ShopOrder]] = {}
        for record in records:
            try:
                order = decode_record(ShopOrder, record)
            except RecordDecodeError as e:
                logger.warning(f"Skipping order: {e.message}")
                continue
            if not order.event:
                continue
            if any(clothing_details(item.variant_id) for item in order.line_items):
                by_event.setdefault(order.event[0], []).append(order)
        return by_event

    async def get_pending_clothing_orders(
        self, today: Optional[date] = None
    ) -> List[PendingClothingOrder]:
        """Events with open clothing purchases, overdue first.

        An event shows from 21 days before its date until 7 days after it,
        unless its clothing_order task is already completed.
        """
        today = today or date.today()
        earliest = today - timedelta(days=PAST_EVENT_DAYS)
        latest = today + timedelta(days=VISIBILITY_WINDOW_DAYS)

        events = [
            e
            for e in await self.repo.find(Event)
            if e.event_date and earliest <= e.event_date <= latest
        ]
        completed = await self.repo.find(
            Task,
            all_of(
                field_equals(Task.field("task_type"), TaskType.CLOTHING_ORDER.value),
                field_equals(Task.field("status"), TaskStatus.COMPLETED.value),
            ),
        )
        completed_events = {t.event_record_id for t in completed if t.event_record_id}
        orders_by_event = await self._clothing_orders_by_event()

        pending = []
        for event in events:
            orders = orders_by_event.get(event.record_id)
            if not orders or event.record_id in completed_events:
                continue
            totals, revenue = aggregate_clothing(orders)
            days = days_until_order_day(event.event_date, today)
            pending.append(
                PendingClothingOrder(
                    event_id=event.event_id,
                    event_record_id=event.record_id,
                    school_name=event.school_name,
                    event_date=event.event_date,
                    days_until_order_day=days,
                    is_overdue=days < 0,
                    total_orders=len(orders),
                    total_revenue=round(revenue, 2),
                    aggregated_items=totals,
                    order_ids=[o.record_id for o in orders],
                )
            )

        pending.sort(key=lambda p: (not p.is_overdue, p.days_until_order_day))
        return pending

    async def get_orders_for_event(self, event_record_id: str) -> List[Dict[str, object]]:
        """Clothing lines of each order of an event, for the order list."""
        orders = (await self._clothing_orders_by_event()).get(event_record_id, [])
        details = []
        for order in orders:
            items = []
            clothing_total = 0.0
            for item in order.line_items:
                variant = clothing_details(item.variant_id)
                if not variant:
                    continue
                clothing_total += item.total
                items.append(
                    {"type": variant.type, "size": variant.size, "quantity": item.quantity}
                )
            details.append(
                {
                    "orderId": order.record_id,
                    "orderNumber": order.order_number,
                    "orderDate": order.order_date.isoformat() if order.order_date else None,
                    "parentEmail": order.parent_email,
                    "items": items,
                    "clothingTotal": round(clothing_total, 2),
                }
            )
        return details
