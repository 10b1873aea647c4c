"""Airtable REST API client.

This module provides the datastore client used by every service:
- One low-level ``query`` method for all REST calls
- Formula filtering and offset pagination for reads
- Field IDs instead of names on both reads and writes
- Batched writes (10 records per request) with a fixed delay between
  batches to stay under the 5 requests/second per-base limit

Airtable API Documentation: https://airtable.com/developers/web/api/introduction
"""

import asyncio
from typing import Any, Dict, Iterable, List, Optional, Sequence, Tuple

import aiohttp
from loguru import logger

from minimusiker.core.config import settings
from minimusiker.core.errors import AirtableError, NotFoundError

Record = Dict[str, Any]


def escape_formula_value(value: str) -> str:
    """Escape a value for use inside a single-quoted formula string."""
    return str(value).replace("\\", "\\\\").replace("'", "\\'")


def field_equals(field_id: str, value: str) -> str:
    return f"{{{field_id}}} = '{escape_formula_value(value)}'"


def field_equals_ci(field_id: str, value: str) -> str:
    """Case-insensitive equality, used for email lookups."""
    return f"LOWER({{{field_id}}}) = '{escape_formula_value(value.lower())}'"


def is_true(field_id: str) -> str:
    return f"{{{field_id}}} = TRUE()"


def not_blank(field_id: str) -> str:
    return f"{{{field_id}}} != ''"


def record_is(record_id: str) -> str:
    return f"RECORD_ID() = '{escape_formula_value(record_id)}'"


def link_contains(field_id: str, record_id: str) -> str:
    """Formula matching records whose linked field contains ``record_id``."""
    return f"SEARCH('{escape_formula_value(record_id)}', ARRAYJOIN({{{field_id}}}))"


def any_of(*formulas: str) -> str:
    return formulas[0] if len(formulas) == 1 else f"OR({', '.join(formulas)})"


def all_of(*formulas: str) -> str:
    return formulas[0] if len(formulas) == 1 else f"AND({', '.join(formulas)})"


def _chunks(items: Sequence[Any], size: int) -> Iterable[Sequence[Any]]:
    for start in range(0, len(items), size):
        yield items[start:start + size]


class AirtableClient:
    """Async client for one Airtable base."""

    def __init__(
        self,
        api_key: Optional[str] = None,
        base_id: Optional[str] = None,
        session: Optional[aiohttp.ClientSession] = None,
        api_url: Optional[str] = None,
    ):
        """Initialize the Airtable client.

        Args:
            api_key: Personal access token, defaults to settings.
            base_id: Airtable base ID, defaults to settings.
            session: Optional aiohttp session. If not provided, one is
                    created lazily on first use and owned by the client.
            api_url: REST root, defaults to settings.
        """
        self.api_key = api_key or settings.AIRTABLE_API_KEY
        self.base_id = base_id or settings.AIRTABLE_BASE_ID
        self.api_url = (api_url or settings.AIRTABLE_API_URL).rstrip("/")
        self.batch_size = settings.AIRTABLE_BATCH_SIZE
        self.batch_delay = settings.AIRTABLE_BATCH_DELAY
        self._session = session
        self._owns_session = session is None

    async def _ensure_session(self) -> aiohttp.ClientSession:
        """Ensure we have an aiohttp session."""
        if self._session is None:
            self._session = aiohttp.ClientSession(
                headers={
                    "Authorization": f"Bearer {self.api_key}",
                    "Content-Type": "application/json",
                }
            )
        return self._session

    def _url(self, table: str, record_id: Optional[str] = None) -> str:
        url = f"{self.api_url}/{self.base_id}/{table}"
        return f"{url}/{record_id}" if record_id else url

    async def query(
        self,
        method: str,
        table: str,
        record_id: Optional[str] = None,
        params: Optional[Any] = None,
        body: Optional[Dict[str, Any]] = None,
    ) -> Dict[str, Any]:
        """Perform one REST call and return the decoded JSON body.

        Args:
            method: HTTP method.
            table: Table ID (or name).
            record_id: Optional record ID appended to the path.
            params: Query string parameters.
            body: JSON body for writes.

        Raises:
            NotFoundError: For 404 responses on single-record paths.
            AirtableError: For any other non-2xx response or network error.
        """
        session = await self._ensure_session()
        url = self._url(table, record_id)
        logger.debug(f"Airtable {method} {table}{'/' + record_id if record_id else ''}")

        try:
            async with session.request(method, url, params=params, json=body) as response:
                if response.status == 404 and record_id:
                    raise NotFoundError(f"Record {record_id} not found in {table}")
                if response.status >= 400:
                    detail = await self._error_detail(response)
                    logger.error(
                        f"Airtable API error on {method} {table}: "
                        f"status={response.status} {detail}"
                    )
                    raise AirtableError(f"Airtable API error: {detail}")
                return await response.json()
        except aiohttp.ClientError as e:
            logger.error(f"Network error calling Airtable {method} {table}: {e}")
            raise AirtableError(f"Airtable request failed: {e}") from e

    @staticmethod
    async def _error_detail(response: aiohttp.ClientResponse) -> str:
        try:
            data = await response.json()
        except (aiohttp.ContentTypeError, ValueError):
            return f"HTTP {response.status}"
        error = data.get("error") if isinstance(data, dict) else None
        if isinstance(error, dict):
            return error.get("message") or error.get("type") or f"HTTP {response.status}"
        return str(error or f"HTTP {response.status}")

    async def list_records(
        self,
        table: str,
        formula: Optional[str] = None,
        sort: Optional[List[Tuple[str, str]]] = None,
        max_records: Optional[int] = None,
        fields: Optional[List[str]] = None,
    ) -> List[Record]:
        """Fetch all records matching ``formula``, following pagination.

        Args:
            table: Table ID.
            formula: Airtable ``filterByFormula`` expression.
            sort: (field_id, "asc"|"desc") pairs.
            max_records: Upper bound on the number of records returned.
            fields: Restrict returned fields to these IDs.
        """
        params: List[Tuple[str, str]] = [("returnFieldsByFieldId", "true")]
        if formula:
            params.append(("filterByFormula", formula))
        if max_records:
            params.append(("maxRecords", str(max_records)))
        for i, (field_id, direction) in enumerate(sort or []):
            params.append((f"sort[{i}][field]", field_id))
            params.append((f"sort[{i}][direction]", direction))
        for field_id in fields or []:
            params.append(("fields[]", field_id))

        records: List[Record] = []
        offset: Optional[str] = None
        while True:
            page_params = params + ([("offset", offset)] if offset else [])
            data = await self.query("GET", table, params=page_params)
            records.extend(data.get("records", []))
            offset = data.get("offset")
            if not offset or (max_records and len(records) >= max_records):
                break

        return records[:max_records] if max_records else records

    async def first(self, table: str, formula: str) -> Optional[Record]:
        records = await self.list_records(table, formula=formula, max_records=1)
        return records[0] if records else None

    async def get_record(self, table: str, record_id: str) -> Record:
        return await self.query(
            "GET", table, record_id, params={"returnFieldsByFieldId": "true"}
        )

    async def create_record(self, table: str, fields: Dict[str, Any]) -> Record:
        data = await self.query(
            "POST",
            table,
            body={
                "records": [{"fields": fields}],
                "typecast": True,
                "returnFieldsByFieldId": True,
            },
        )
        return data["records"][0]

    async def update_record(
        self, table: str, record_id: str, fields: Dict[str, Any]
    ) -> Record:
        return await self.query(
            "PATCH",
            table,
            record_id,
            body={"fields": fields, "typecast": True, "returnFieldsByFieldId": True},
        )

    async def delete_record(self, table: str, record_id: str) -> None:
        await self.query("DELETE", table, record_id)

    async def batch_create(
        self, table: str, rows: Sequence[Dict[str, Any]]
    ) -> List[Record]:
        """Create many records, ``batch_size`` per request.

        A fixed delay separates consecutive requests. This is deliberately
        blunt: no adaptive backoff, a failing batch aborts the rest.
        """
        created: List[Record] = []
        for i, chunk in enumerate(_chunks(list(rows), self.batch_size)):
            if i:
                await asyncio.sleep(self.batch_delay)
            data = await self.query(
                "POST",
                table,
                body={
                    "records": [{"fields": f} for f in chunk],
                    "typecast": True,
                    "returnFieldsByFieldId": True,
                },
            )
            created.extend(data.get("records", []))
        logger.info(f"Created {len(created)} records in {table}")
        return created

    async def batch_update(
        self, table: str, updates: Sequence[Tuple[str, Dict[str, Any]]]
    ) -> List[Record]:
        """Update many records given as (record_id, fields) pairs."""
        updated: List[Record] = []
        for i, chunk in enumerate(_chunks(list(updates), self.batch_size)):
            if i:
                await asyncio.sleep(self.batch_delay)
            data = await self.query(
                "PATCH",
                table,
                body={
                    "records": [{"id": rid, "fields": f} for rid, f in chunk],
                    "typecast": True,
                    "returnFieldsByFieldId": True,
                },
            )
            updated.extend(data.get("records", []))
        logger.info(f"Updated {len(updated)} records in {table}")
        return updated

    async def close(self):
        """Close the aiohttp session if we own it."""
        if self._session and self._owns_session:
            await self._session.close()
            self._session = None
