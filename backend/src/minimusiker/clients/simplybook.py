"""SimplyBook JSON-RPC client.

This module provides the booking system client with:
- Two independently cached tokens: ``api`` (getToken with the API key) for
  public methods and ``admin`` (getUserToken with user credentials) for
  admin methods such as getBookings
- Lazy refresh: a token is only renewed on the first call after its soft
  expiry (50 minutes, tokens live about an hour)
- Pure helpers mapping the German intake form onto our booking fields

SimplyBook API Documentation: https://simplybook.it/en/api/developer-api
"""

import re
import time
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Any, Awaitable, Callable, Dict, Iterable, List, Optional

import aiohttp
from loguru import logger

from minimusiker.core.config import settings
from minimusiker.core.errors import SimplyBookError

LARGE_SCHOOL_THRESHOLD = 150


@dataclass
class TokenCacheEntry:
    """One cached bearer token and the moment it stops being used."""

    token: Optional[str] = None
    expires_at: Optional[datetime] = None

    def is_valid(self, now: datetime) -> bool:
        return bool(self.token) and self.expires_at is not None and now < self.expires_at

    async def get_or_refresh(
        self,
        now: datetime,
        fetch: Callable[[], Awaitable[str]],
        ttl: timedelta,
    ) -> str:
        """Return the cached token, fetching a new one only after expiry.

        Args:
            now: Current time (aware UTC).
            fetch: Coroutine function obtaining a fresh token.
            ttl: Soft lifetime applied to a freshly fetched token.
        """
        if self.is_valid(now):
            return self.token
        self.token = await fetch()
        self.expires_at = now + ttl
        return self.token


class SimplyBookClient:
    """Async JSON-RPC 2.0 client for one SimplyBook company."""

    def __init__(self, session: Optional[aiohttp.ClientSession] = None):
        self.company_login = settings.SIMPLYBOOK_COMPANY_LOGIN
        self.api_key = settings.SIMPLYBOOK_API_KEY
        self.user_login = settings.SIMPLYBOOK_USER_LOGIN
        self.user_password = settings.SIMPLYBOOK_USER_PASSWORD
        self.endpoint = settings.SIMPLYBOOK_JSON_RPC_ENDPOINT
        if not self.endpoint.endswith("/"):
            self.endpoint += "/"
        self.token_ttl = timedelta(minutes=settings.SIMPLYBOOK_TOKEN_TTL_MINUTES)
        self.api_token = TokenCacheEntry()
        self.admin_token = TokenCacheEntry()
        self._session = session
        self._owns_session = session is None

    async def _ensure_session(self) -> aiohttp.ClientSession:
        """Ensure we have an aiohttp session."""
        if self._session is None:
            self._session = aiohttp.ClientSession(
                headers={"Content-Type": "application/json"}
            )
        return self._session

    async def _post(
        self, url: str, method: str, params: Any, headers: Optional[Dict[str, str]] = None
    ) -> aiohttp.ClientResponse:
        session = await self._ensure_session()
        payload = {
            "jsonrpc": "2.0",
            "method": method,
            "params": params,
            "id": int(time.time() * 1000),
        }
        return session.post(url, json=payload, headers=headers)

    async def _login(self, method: str, params: List[str]) -> str:
        """Run one of the token grant methods against ``{endpoint}login``."""
        logger.debug(f"SimplyBook {method} for company '{self.company_login}'")
        try:
            async with await self._post(f"{self.endpoint}login", method, params) as response:
                if response.status != 200:
                    logger.error(f"SimplyBook {method} failed: status={response.status}")
                    raise SimplyBookError(f"SimplyBook auth failed: {response.status}")
                data = await response.json()
        except aiohttp.ClientError as e:
            logger.error(f"Network error during SimplyBook {method}: {e}")
            raise SimplyBookError(f"SimplyBook auth failed: {e}") from e

        if data.get("error"):
            message = data["error"].get("message", "unknown error")
            raise SimplyBookError(f"SimplyBook auth error: {message}")
        if not data.get("result"):
            raise SimplyBookError("SimplyBook auth: No token returned")
        return data["result"]

    async def get_token(self, now: Optional[datetime] = None) -> str:
        """Public API token (getToken with the API key)."""
        return await self.api_token.get_or_refresh(
            now or datetime.now(timezone.utc),
            lambda: self._login("getToken", [self.company_login, self.api_key]),
            self.token_ttl,
        )

    async def get_admin_token(self, now: Optional[datetime] = None) -> str:
        """Admin API token (getUserToken with user login and password)."""
        if not self.user_login or not self.user_password:
            raise SimplyBookError(
                "SimplyBook admin credentials not configured. "
                "Set SIMPLYBOOK_USER_LOGIN and SIMPLYBOOK_USER_PASSWORD."
            )
        return await self.admin_token.get_or_refresh(
            now or datetime.now(timezone.utc),
            lambda: self._login(
                "getUserToken",
                [self.company_login, self.user_login, self.user_password],
            ),
            self.token_ttl,
        )

    async def call(self, method: str, params: List[Any], admin: bool = False) -> Any:
        """Perform an authenticated JSON-RPC call.

        Args:
            method: JSON-RPC method name.
            params: Positional parameters.
            admin: Use the admin token and endpoint instead of the public ones.

        Returns:
            The ``result`` member of the response.

        Raises:
            SimplyBookError: On HTTP, network or JSON-RPC errors.
        """
        if admin:
            token = await self.get_admin_token()
            url = f"{self.endpoint}admin"
            headers = {"X-Company-Login": self.company_login, "X-User-Token": token}
        else:
            token = await self.get_token()
            url = self.endpoint
            headers = {"X-Company-Login": self.company_login, "X-Token": token}

        logger.debug(f"SimplyBook call {method} (admin={admin})")
        try:
            async with await self._post(url, method, params, headers) as response:
                if response.status != 200:
                    logger.error(f"SimplyBook {method} failed: status={response.status}")
                    raise SimplyBookError(f"SimplyBook API error: {response.status}")
                data = await response.json()
        except aiohttp.ClientError as e:
            logger.error(f"Network error calling SimplyBook {method}: {e}")
            raise SimplyBookError(f"SimplyBook API error: {e}") from e

        if data.get("error"):
            message = data["error"].get("message", "unknown error")
            logger.error(f"SimplyBook {method} returned error: {message}")
            raise SimplyBookError(f"SimplyBook API error: {message}")
        return data.get("result")

    async def get_booking_details(self, booking_id: str) -> Dict[str, Any]:
        return await self.call("getBookingDetails", [booking_id], admin=True)

    async def get_bookings(
        self,
        date_from: Optional[str] = None,
        date_to: Optional[str] = None,
    ) -> List[Dict[str, Any]]:
        """Confirmed, non-cancelled bookings ordered by start date."""
        filters: Dict[str, Any] = {"is_confirmed": 1, "order": "date_start"}
        if date_from:
            filters["date_from"] = date_from
        if date_to:
            filters["date_to"] = date_to

        bookings = await self.call("getBookings", [filters], admin=True) or []
        if isinstance(bookings, dict):
            bookings = list(bookings.values())
        return [b for b in bookings if not _is_cancelled(b)]

    async def close(self):
        """Close the aiohttp session if we own it."""
        if self._session and self._owns_session:
            await self._session.close()
            self._session = None


def _is_cancelled(booking: Dict[str, Any]) -> bool:
    return str(booking.get("is_confirm", "1")) == "0" or booking.get("status") == "cancelled"


def _intake_fields(booking: Dict[str, Any]) -> List[Dict[str, Any]]:
    raw = booking.get("additional_fields") or []
    fields = raw.values() if isinstance(raw, dict) else raw
    return [f for f in fields if f]


def _find_field(fields: Iterable[Dict[str, Any]], keywords: List[str]) -> str:
    """Value of the first intake field whose title contains a keyword."""
    for field in fields:
        title = (field.get("field_title") or field.get("title") or "").lower()
        if title and any(kw in title for kw in keywords):
            return str(field.get("value") or "")
    return ""


def _parse_int(value: str) -> int:
    match = re.match(r"\s*(\d+)", value or "")
    return int(match.group(1)) if match else 0


def map_intake_fields(booking: Dict[str, Any]) -> Dict[str, Any]:
    """Map a SimplyBook booking and its German intake form onto our fields.

    Booking-level client data wins over the intake form where both exist,
    except for address and postal code where the form is more reliable.
    """
    fields = _intake_fields(booking)
    children = _parse_int(_find_field(fields, ["kinder", "children", "anzahl"]))

    start = booking.get("start_date") or (booking.get("start_date_time") or "").split(" ")[0]

    region = None
    unit_name = booking.get("unit_name")
    if unit_name:
        region = re.sub(r"^minimusiker\s+", "", unit_name, flags=re.IGNORECASE).strip() or None

    return {
        "school_name": booking.get("client")
        or _find_field(fields, ["name", "schule", "school", "einrichtung"])
        or booking.get("client_name")
        or "",
        "contact_person": _find_field(
            fields, ["ansprechpartner", "ansprechperson", "contact person", "contact", "kontakt"]
        )
        or booking.get("client_name")
        or "",
        "contact_email": booking.get("client_email") or _find_field(fields, ["email", "e-mail"]),
        "phone": booking.get("client_phone") or _find_field(fields, ["telefon", "phone", "tel"]),
        "address": _find_field(fields, ["adresse", "address", "strasse", "street"])
        or booking.get("client_address1")
        or "",
        "postal_code": _find_field(fields, ["plz", "postal", "postleitzahl", "postcode"])
        or booking.get("client_zip")
        or "",
        "city": booking.get("client_city") or _find_field(fields, ["ort", "stadt", "city"]),
        "region": region,
        "number_of_children": children,
        "cost_category": (
            ">150 children" if children > LARGE_SCHOOL_THRESHOLD else "<150 children"
        ),
        "booking_date": start,
    }


def normalize_region_name(name: Optional[str]) -> str:
    """Unify separators so "Rhein-Main-Neckar" equals "Rhein/Main/Neckar"."""
    if not name:
        return ""
    return re.sub(r"[-\s]+", "/", name.strip()).lower()


def match_region(region_name: Optional[str], regions: Dict[str, str]) -> Optional[str]:
    """Pick the region record for a SimplyBook unit name.

    Args:
        region_name: Region as derived from the booking's unit name.
        regions: Mapping of region record ID to region name.

    Returns:
        The exact match if any, else the longest region name contained in
        the input (so "Osnabrück/OWL/Paderborn" links "Osnabrück"), else None.
    """
    wanted = normalize_region_name(region_name)
    if not wanted:
        return None

    best_id, best_len = None, 0
    for record_id, name in regions.items():
        normalized = normalize_region_name(name)
        if not normalized:
            continue
        if normalized == wanted:
            return record_id
        if normalized in wanted and len(normalized) > best_len:
            best_id, best_len = record_id, len(normalized)
    return best_id
