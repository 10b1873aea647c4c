"""Order models: ClothingOrder, ShopOrder, GuesstimateOrder."""

import json
from datetime import date
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, field_validator

from minimusiker.core import fields as F
from minimusiker.core.records import TableModel, parse_airtable_date

CLOTHING_SIZE_FIELDS = [
    "size_98_104",
    "size_110_116",
    "size_122_128",
    "size_134_146",
    "size_152_164",
]


class ClothingOrder(TableModel):
    """School clothing order (per-size quantities) for one event."""

    TABLE_ID = F.CLOTHING_ORDERS_TABLE_ID
    TABLE_NAME = "SchulClothingOrders"
    FIELDS = F.CLOTHING_ORDERS_FIELDS

    event: List[str] = []
    size_98_104: int = 0
    size_110_116: int = 0
    size_122_128: int = 0
    size_134_146: int = 0
    size_152_164: int = 0
    last_updated_by: str = ""
    notes: str = ""
    updated_at: Optional[str] = None

    @field_validator(*CLOTHING_SIZE_FIELDS, mode="before")
    @classmethod
    def empty_as_zero(cls, value):
        return value or 0

    @property
    def sizes(self) -> Dict[str, int]:
        return {name: getattr(self, name) for name in CLOTHING_SIZE_FIELDS}

    @property
    def total(self) -> int:
        return sum(self.sizes.values())


class LineItem(BaseModel):
    variant_id: str = ""
    product_type: str = ""
    title: str = ""
    quantity: int = 0
    total: float = 0.0


class ShopOrder(TableModel):
    TABLE_ID = F.ORDERS_TABLE_ID
    TABLE_NAME = "Orders"
    FIELDS = F.ORDERS_FIELDS

    order_id: str = ""
    order_number: str = ""
    event: List[str] = []
    booking_id: str = ""
    line_items: List[LineItem] = []
    order_date: Optional[date] = None
    payment_status: str = ""
    total_amount: float = 0.0
    parent_email: str = ""

    @field_validator("line_items", mode="before")
    @classmethod
    def parse_line_items(cls, value: Any):
        if not value:
            return []
        if isinstance(value, str):
            value = json.loads(value)
        return value

    @field_validator("order_date", mode="before")
    @classmethod
    def parse_date(cls, value):
        return parse_airtable_date(value)

    @field_validator("order_id", "order_number", mode="before")
    @classmethod
    def id_as_text(cls, value):
        return str(value) if isinstance(value, (int, float)) else value


class GuesstimateOrder(TableModel):
    """Internal supplier order; ``go_id`` is the autonumber display (GO-0001)."""

    TABLE_ID = F.GUESSTIMATE_ORDERS_TABLE_ID
    TABLE_NAME = "GuesstimateOrders"
    FIELDS = F.GUESSTIMATE_ORDERS_FIELDS

    go_id: Optional[str] = None
    event: List[str] = []
    order_ids: str = ""
    order_date: Optional[date] = None
    order_amount: float = 0.0
    contains: str = ""
    date_completed: Optional[date] = None
    created_at: Optional[str] = None

    @field_validator("order_date", "date_completed", mode="before")
    @classmethod
    def parse_dates(cls, value):
        return parse_airtable_date(value)

    @field_validator("go_id", mode="before")
    @classmethod
    def format_go_id(cls, value):
        if isinstance(value, (int, float)):
            return f"GO-{int(value):04d}"
        return value
