from datetime import date

import pytest

from minimusiker.core.errors import ForbiddenError, ValidationError
from minimusiker.core.models import ClothingOrder, Event, ShopOrder, Task
from minimusiker.services.clothing import ClothingService, aggregate_clothing, order_day

TSHIRT_122 = "53328502260058"
HOODIE_140 = "gid://shopify/ProductVariant/53328494854490"
TODAY = date(2026, 3, 1)


@pytest.fixture
def clothing(repo, events):
    return ClothingService(repo, events)


@pytest.fixture
def scs_event(airtable):
    return airtable.seed(
        Event,
        event_id="evt_scs",
        school_name="Grundschule am Park",
        event_date=date(2026, 3, 20),
        deal_type="mimu_scs",
        shirts_included=True,
    )


def _order(airtable, event, *items, **extra):
    return airtable.seed(
        ShopOrder,
        order_number=extra.pop("order_number", "#1001"),
        event=[event.record_id],
        line_items=[dict(item) for item in items],
        **extra,
    )


def _line(variant_id, quantity=1, total=20.0):
    return {"variant_id": variant_id, "quantity": quantity, "total": total}


# ============================================================================
# SCHOOL CLOTHING ORDER
# ============================================================================


@pytest.mark.asyncio
async def test_clothing_order_only_for_scs_deals(clothing, airtable):
    airtable.seed(Event, event_id="evt_plain", event_date=date(2026, 3, 30))
    with pytest.raises(ForbiddenError):
        await clothing.get_clothing_order("evt_plain")


@pytest.mark.asyncio
async def test_upsert_creates_then_updates(clothing, airtable, scs_event):
    assert await clothing.get_clothing_order("evt_scs") is None

    created = await clothing.upsert_clothing_order(
        "evt_scs", {"size_98_104": 3, "size_122_128": 5}, "lehrerin@gs-park.de", "Bitte bis Mai"
    )
    assert created.total == 8
    assert created.event == [scs_event.record_id]

    updated = await clothing.upsert_clothing_order(
        "evt_scs", {"size_98_104": 4}, "lehrerin@gs-park.de"
    )
    assert updated.record_id == created.record_id
    assert updated.sizes["size_98_104"] == 4
    assert updated.sizes["size_122_128"] == 5
    assert updated.notes == "Bitte bis Mai"
    assert len(airtable.rows(ClothingOrder)) == 1


@pytest.mark.asyncio
async def test_upsert_validates_sizes(clothing, scs_event):
    with pytest.raises(ValidationError, match="Unknown sizes: xl"):
        await clothing.upsert_clothing_order("evt_scs", {"xl": 1}, "t")
    with pytest.raises(ValidationError, match="non-negative"):
        await clothing.upsert_clothing_order("evt_scs", {"size_98_104": -1}, "t")


# ============================================================================
# PENDING SHOPIFY CLOTHING ORDERS
# ============================================================================


def test_aggregate_counts_only_clothing_lines(airtable):
    event = airtable.seed(Event, event_id="evt_a")
    order = _order(
        airtable,
        event,
        _line(TSHIRT_122, 2, 40.0),
        _line(HOODIE_140, 1, 35.0),
        _line("99999999", 3, 15.0),
    )
    totals, revenue = aggregate_clothing([order])
    assert totals.tshirts["122/128"] == 2
    assert totals.hoodies["140"] == 1
    assert sum(totals.tshirts.values()) == 2
    assert revenue == 75.0


def test_order_day():
    assert order_day(date(2026, 3, 30)) == date(2026, 3, 12)


@pytest.mark.asyncio
async def test_pending_orders_window_and_sorting(clothing, airtable, scs_event):
    overdue = airtable.seed(
        Event, event_id="evt_soon", school_name="Kita Sonne", event_date=date(2026, 3, 15)
    )
    far = airtable.seed(Event, event_id="evt_far", event_date=date(2026, 4, 30))
    done = airtable.seed(Event, event_id="evt_done", event_date=date(2026, 3, 18))
    airtable.seed(
        Task,
        template_id="clothing_order",
        event=[done.record_id],
        task_type="clothing_order",
        completion_type="checkbox",
        deadline=date(2026, 3, 2),
        status="completed",
    )
    for event in (scs_event, overdue, far, done):
        _order(airtable, event, _line(TSHIRT_122))
    _order(airtable, scs_event, _line(HOODIE_140, 2, 70.0), order_number="#1002")

    pending = await clothing.get_pending_clothing_orders(today=TODAY)

    assert [p.event_id for p in pending] == ["evt_soon", "evt_scs"]
    soon, scs = pending
    assert soon.is_overdue
    assert soon.days_until_order_day == -4
    assert scs.days_until_order_day == 1
    assert not scs.is_overdue
    assert scs.total_orders == 2
    assert scs.total_revenue == 90.0
    assert scs.aggregated_items.hoodies["140"] == 2


@pytest.mark.asyncio
async def test_orders_for_event(clothing, airtable, scs_event):
    _order(airtable, scs_event, _line(TSHIRT_122, 2, 40.0), _line("123", 1, 5.0),
           parent_email="eltern@example.org")

    orders = await clothing.get_orders_for_event(scs_event.record_id)

    assert orders == [
        {
            "orderId": orders[0]["orderId"],
            "orderNumber": "#1001",
            "orderDate": None,
            "parentEmail": "eltern@example.org",
            "items": [{"type": "tshirt", "size": "122/128", "quantity": 2}],
            "clothingTotal": 40.0,
        }
    ]
