"""Deterministic identifiers for events, classes and groups."""

import hashlib
import re
import time
from datetime import date
from typing import Optional, Union

_NON_ALNUM = re.compile(r"[^a-z0-9]")
_UNDERSCORES = re.compile(r"_+")

DEFAULT_CLASS_NAME = "Alle Kinder"


def _slug(value: str, max_length: int) -> str:
    slug = _NON_ALNUM.sub("_", value.lower())
    slug = _UNDERSCORES.sub("_", slug).strip("_")
    return slug[:max_length]


def _short_hash(*parts: str) -> str:
    return hashlib.md5("|".join(parts).encode("utf-8")).hexdigest()[:6]


def _date_part(value: Union[str, date, None]) -> str:
    if value is None:
        return ""
    text = value.isoformat() if isinstance(value, date) else str(value)
    return text.split("T")[0].replace("-", "")


def _date_text(value: Union[str, date, None]) -> str:
    if value is None:
        return ""
    return value.isoformat() if isinstance(value, date) else str(value)


def generate_event_id(
    school_name: str, event_type: str, booking_date: Union[str, date, None] = None
) -> str:
    """Build the canonical event ID.

    Example: ``evt_calder_high_school_minimusiker_20251120_1a2b3c``. The
    same inputs always produce the same ID.
    """
    school_slug = _slug(school_name, 30)
    type_slug = _slug(event_type, 20)
    date_str = _date_part(booking_date)
    digest = _short_hash(school_name, event_type, _date_text(booking_date))
    if date_str:
        return f"evt_{school_slug}_{type_slug}_{date_str}_{digest}"
    return f"evt_{school_slug}_{type_slug}_{digest}"


def generate_class_id(
    school_name: str, booking_date: Union[str, date], class_name: str
) -> str:
    """Build a class ID such as ``cls_calder_high_20251120_3rdgrade_a1b2c3``."""
    school_slug = _slug(school_name, 30)
    class_slug = _NON_ALNUM.sub("", class_name.lower())[:15]
    date_str = _date_part(booking_date)
    digest = _short_hash(school_name, _date_text(booking_date), class_name)
    return f"cls_{school_slug}_{date_str}_{class_slug}_{digest}"


def fallback_class_id(event_id: str, now_ms: Optional[int] = None) -> str:
    """Class ID used when the event has no school name or date yet."""
    return f"{event_id}_class_{now_ms if now_ms is not None else int(time.time() * 1000)}"


def generate_group_id(event_id: str, now_ms: Optional[int] = None) -> str:
    return f"group_{event_id}_{now_ms if now_ms is not None else int(time.time() * 1000)}"


def is_numeric_id(value: str) -> bool:
    """SimplyBook booking IDs are plain digits."""
    return value.isdigit()
