"""Decoding and encoding of Airtable records.

Each table has one pydantic model declaring its ``TABLE_ID`` and a
``FIELDS`` map from attribute name to field ID. ``decode_record`` turns a
raw REST record into that model and fails fast with a
``RecordDecodeError`` when a field has the wrong shape, instead of letting
``None`` leak into the services.
"""

import json
from datetime import date, datetime
from enum import Enum
from typing import Any, ClassVar, Dict, List, Mapping, Optional, Type, TypeVar

from pydantic import BaseModel, ConfigDict, Field
from pydantic import ValidationError as PydanticValidationError

from minimusiker.core.errors import RecordDecodeError

M = TypeVar("M", bound="TableModel")


class AirtableRecord(BaseModel):
    """Raw record as returned by the Airtable REST API."""

    model_config = ConfigDict(populate_by_name=True)

    id: str
    created_time: Optional[str] = Field(default=None, alias="createdTime")
    fields: Dict[str, Any] = {}


class TableModel(BaseModel):
    """Base class for typed table rows."""

    model_config = ConfigDict(populate_by_name=True)

    TABLE_ID: ClassVar[str] = ""
    TABLE_NAME: ClassVar[str] = ""
    FIELDS: ClassVar[Dict[str, str]] = {}

    record_id: str
    created_time: Optional[str] = None

    @classmethod
    def field(cls, attr: str) -> str:
        """Return the Airtable field ID of ``attr``."""
        return cls.FIELDS[attr]


def _describe(e: PydanticValidationError) -> str:
    return "; ".join(
        f"{'.'.join(str(p) for p in err['loc'])}: {err['msg']}" for err in e.errors()
    )


def decode_record(model: Type[M], record: Any) -> M:
    """Decode a raw record into ``model``.

    Args:
        model: TableModel subclass for the record's table.
        record: REST record dict (or an already parsed AirtableRecord).

    Returns:
        Validated model instance.

    Raises:
        RecordDecodeError: If the record or any mapped field has the wrong shape.
    """
    try:
        raw = (
            record
            if isinstance(record, AirtableRecord)
            else AirtableRecord.model_validate(record)
        )
    except PydanticValidationError as e:
        record_id = record.get("id", "?") if isinstance(record, Mapping) else "?"
        raise RecordDecodeError(model.TABLE_NAME, record_id, _describe(e)) from e

    values: Dict[str, Any] = {
        "record_id": raw.id,
        "created_time": raw.created_time,
    }
    for attr, field_id in model.FIELDS.items():
        if field_id in raw.fields:
            values[attr] = raw.fields[field_id]

    try:
        return model.model_validate(values)
    except PydanticValidationError as e:
        raise RecordDecodeError(model.TABLE_NAME, raw.id, _describe(e)) from e


def decode_records(model: Type[M], records: List[Any]) -> List[M]:
    return [decode_record(model, r) for r in records]


def _encode_value(value: Any) -> Any:
    if isinstance(value, Enum):
        return value.value
    if isinstance(value, datetime):
        return value.isoformat()
    if isinstance(value, date):
        return value.isoformat()
    if isinstance(value, dict):
        return json.dumps(value)
    if isinstance(value, list) and any(not isinstance(v, str) for v in value):
        return json.dumps(value)
    return value


def encode_fields(model: Type[TableModel], values: Mapping[str, Any]) -> Dict[str, Any]:
    """Map attribute names to field IDs for a write request.

    Dates become ISO strings, enums their values, and dicts or lists of
    non-strings JSON text. Lists of strings pass through (linked records,
    multi-selects).

    Raises:
        KeyError: If an attribute is not part of the table schema.
    """
    encoded: Dict[str, Any] = {}
    for attr, value in values.items():
        if attr not in model.FIELDS:
            raise KeyError(f"{model.TABLE_NAME} has no field '{attr}'")
        encoded[model.FIELDS[attr]] = _encode_value(value)
    return encoded


def first_link(links: Optional[List[str]]) -> Optional[str]:
    """Return the first linked record ID or None."""
    return links[0] if links else None


def parse_airtable_date(value: Any) -> Any:
    """Accept Airtable date and datetime strings for ``date`` fields."""
    if isinstance(value, str) and len(value) > 10 and value[10] in ("T", " "):
        return value[:10]
    if isinstance(value, list):
        # Lookup fields come back as single element lists
        return value[0] if value else None
    return value


def single_value(value: Any) -> Any:
    """Unwrap lookup/rollup fields that arrive as lists."""
    if isinstance(value, list):
        return value[0] if value else None
    return value
