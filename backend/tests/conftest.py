import itertools
import re
from typing import Any, Dict, List, Optional, Sequence, Tuple
from unittest.mock import AsyncMock, MagicMock

import pytest
from httpx import ASGITransport, AsyncClient

from minimusiker.core.config import settings

# Must be set before any mailer is used: emails go to the in-memory outbox
settings.TESTING = True
settings.COOKIE_SECURE = False

from minimusiker.api import deps  # noqa: E402
from minimusiker.api.main import app  # noqa: E402
from minimusiker.clients.mailer import EMAIL_OUTBOX, ResendMailer  # noqa: E402
from minimusiker.clients.storage import R2Storage  # noqa: E402
from minimusiker.core.errors import NotFoundError  # noqa: E402
from minimusiker.core.models import GuesstimateOrder, Task  # noqa: E402
from minimusiker.core.records import decode_record, encode_fields  # noqa: E402
from minimusiker.core.sessions import create_session_token, get_role_config, role_of  # noqa: E402
from minimusiker.services.events import EventService  # noqa: E402
from minimusiker.services.notifications import NotificationService  # noqa: E402
from minimusiker.services.repository import Repository  # noqa: E402
from minimusiker.services.teacher import TeacherService  # noqa: E402

# ============================================================================
# IN-MEMORY AIRTABLE
# ============================================================================
# Implements the record API of AirtableClient over plain dicts and evaluates
# the formula subset built by minimusiker.clients.airtable: field and
# LOWER() comparisons, RECORD_ID(), TRUE(), SEARCH/ARRAYJOIN, AND, OR.
# ============================================================================

_TOKEN = re.compile(
    r"\s*(?:(?P<field>\{[^}]*\})|(?P<string>'(?:\\.|[^'\\])*')|(?P<op>!=|=)"
    r"|(?P<name>[A-Z_]+)|(?P<punct>[(),]))"
)


def _tokenize(formula: str) -> List[Tuple[str, str]]:
    tokens = []
    pos = 0
    formula = formula.strip()
    while pos < len(formula):
        match = _TOKEN.match(formula, pos)
        if not match:
            raise ValueError(f"Unsupported formula near: {formula[pos:]}")
        kind = match.lastgroup
        tokens.append((kind, match.group(kind)))
        pos = match.end()
        while pos < len(formula) and formula[pos].isspace():
            pos += 1
    return tokens


class _Parser:
    def __init__(self, formula: str):
        self.tokens = _tokenize(formula)
        self.pos = 0

    def _next(self) -> Tuple[str, str]:
        token = self.tokens[self.pos]
        self.pos += 1
        return token

    def _peek(self) -> Optional[Tuple[str, str]]:
        return self.tokens[self.pos] if self.pos < len(self.tokens) else None

    def parse(self):
        node = self._expr()
        if self._peek() is not None:
            raise ValueError(f"Trailing tokens in formula: {self.tokens[self.pos:]}")
        return node

    def _expr(self):
        left = self._operand()
        token = self._peek()
        if token and token[0] == "op":
            self._next()
            return ("cmp", token[1], left, self._operand())
        return left

    def _operand(self):
        kind, value = self._next()
        if kind == "field":
            return ("field", value[1:-1])
        if kind == "string":
            return ("lit", re.sub(r"\\(.)", r"\1", value[1:-1]))
        if kind == "name":
            self._next()  # (
            args = []
            if self._peek() != ("punct", ")"):
                args.append(self._expr())
                while self._peek() == ("punct", ","):
                    self._next()
                    args.append(self._expr())
            self._next()  # )
            return ("call", value, args)
        raise ValueError(f"Unexpected token {value!r}")


def _text(value: Any) -> str:
    if value is None:
        return ""
    if isinstance(value, bool):
        return "1" if value else "0"
    if isinstance(value, list):
        return ",".join(_text(v) for v in value)
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    return str(value)


def _evaluate(node, record: Dict[str, Any]) -> Any:
    kind = node[0]
    if kind == "field":
        return record["fields"].get(node[1])
    if kind == "lit":
        return node[1]
    if kind == "cmp":
        _, op, left, right = node
        lhs, rhs = _evaluate(left, record), _evaluate(right, record)
        if rhs is True:
            equal = bool(lhs)
        else:
            equal = _text(lhs) == _text(rhs)
        return equal if op == "=" else not equal

    _, name, args = node
    if name == "AND":
        return all(_evaluate(a, record) for a in args)
    if name == "OR":
        return any(_evaluate(a, record) for a in args)
    if name == "TRUE":
        return True
    if name == "RECORD_ID":
        return record["id"]
    if name == "LOWER":
        return _text(_evaluate(args[0], record)).lower()
    if name == "ARRAYJOIN":
        return _text(_evaluate(args[0], record))
    if name == "SEARCH":
        needle = _text(_evaluate(args[0], record))
        return needle in _text(_evaluate(args[1], record))
    raise ValueError(f"Unsupported formula function {name}")


def _blank(value: Any) -> bool:
    return value is None or value == "" or value == []


def _sort_key(value: Any):
    if _blank(value):
        return (0, 0, "")
    if isinstance(value, (int, float)) and not isinstance(value, bool):
        return (1, value, "")
    return (1, 0, _text(value))


class FakeAirtable:
    """In-memory stand-in for AirtableClient.

    Args:
        autonumber: Optional {table_id: field_id} of autonumber fields that
            are filled on create.
    """

    def __init__(self, autonumber: Optional[Dict[str, str]] = None):
        self.tables: Dict[str, List[Dict[str, Any]]] = {}
        self.autonumber = autonumber or {}
        self._ids = itertools.count(1)
        self.calls: List[Tuple[str, str]] = []

    # Test helpers

    def add(self, table: str, fields: Dict[str, Any], record_id: Optional[str] = None) -> str:
        record_id = record_id or f"rec{next(self._ids):014d}"
        rows = self.tables.setdefault(table, [])
        stored = {k: v for k, v in fields.items() if not _blank(v)}
        if table in self.autonumber:
            stored.setdefault(self.autonumber[table], len(rows) + 1)
        rows.append(
            {"id": record_id, "createdTime": "2026-01-01T00:00:00.000Z", "fields": stored}
        )
        return record_id

    def seed(self, model, record_id: Optional[str] = None, **values):
        """Insert a record by attribute names and return the decoded model."""
        rid = self.add(model.TABLE_ID, encode_fields(model, values), record_id)
        return decode_record(model, self._find(model.TABLE_ID, rid))

    def rows(self, model) -> list:
        return [decode_record(model, r) for r in self.tables.get(model.TABLE_ID, [])]

    def _find(self, table: str, record_id: str) -> Dict[str, Any]:
        for record in self.tables.get(table, []):
            if record["id"] == record_id:
                return record
        raise NotFoundError(f"Record {record_id} not found in {table}")

    # AirtableClient API

    async def list_records(
        self,
        table: str,
        formula: Optional[str] = None,
        sort: Optional[List[Tuple[str, str]]] = None,
        max_records: Optional[int] = None,
        fields: Optional[List[str]] = None,
    ) -> List[Dict[str, Any]]:
        self.calls.append(("list", table))
        records = list(self.tables.get(table, []))
        if formula:
            tree = _Parser(formula).parse()
            records = [r for r in records if _evaluate(tree, r)]
        for field_id, direction in reversed(sort or []):
            records.sort(
                key=lambda r: _sort_key(r["fields"].get(field_id)),
                reverse=direction == "desc",
            )
        records = [dict(r, fields=dict(r["fields"])) for r in records]
        return records[:max_records] if max_records else records

    async def first(self, table: str, formula: str) -> Optional[Dict[str, Any]]:
        records = await self.list_records(table, formula=formula, max_records=1)
        return records[0] if records else None

    async def get_record(self, table: str, record_id: str) -> Dict[str, Any]:
        self.calls.append(("get", table))
        record = self._find(table, record_id)
        return dict(record, fields=dict(record["fields"]))

    async def create_record(self, table: str, fields: Dict[str, Any]) -> Dict[str, Any]:
        self.calls.append(("create", table))
        record_id = self.add(table, fields)
        return await self.get_record(table, record_id)

    async def update_record(
        self, table: str, record_id: str, fields: Dict[str, Any]
    ) -> Dict[str, Any]:
        self.calls.append(("update", table))
        record = self._find(table, record_id)
        for field_id, value in fields.items():
            if _blank(value):
                record["fields"].pop(field_id, None)
            else:
                record["fields"][field_id] = value
        return await self.get_record(table, record_id)

    async def delete_record(self, table: str, record_id: str) -> None:
        self.calls.append(("delete", table))
        record = self._find(table, record_id)
        self.tables[table].remove(record)

    async def batch_create(self, table: str, rows: Sequence[Dict[str, Any]]) -> list:
        return [await self.create_record(table, f) for f in rows]

    async def batch_update(
        self, table: str, updates: Sequence[Tuple[str, Dict[str, Any]]]
    ) -> list:
        return [await self.update_record(table, rid, f) for rid, f in updates]

    async def close(self):
        pass


# ============================================================================
# FIXTURES
# ============================================================================


@pytest.fixture(autouse=True)
def clear_outbox():
    EMAIL_OUTBOX.clear()
    yield
    EMAIL_OUTBOX.clear()


@pytest.fixture
def airtable():
    """Fresh in-memory base; GO-IDs and task IDs are autonumbered."""
    return FakeAirtable(
        autonumber={
            GuesstimateOrder.TABLE_ID: GuesstimateOrder.field("go_id"),
            Task.TABLE_ID: Task.field("task_id"),
        }
    )


def make_response(status=200, payload=None):
    """Async context manager yielding a fake aiohttp response."""
    response = MagicMock()
    response.status = status
    response.json = AsyncMock(return_value=payload if payload is not None else {})
    cm = MagicMock()
    cm.__aenter__ = AsyncMock(return_value=response)
    cm.__aexit__ = AsyncMock(return_value=False)
    return cm


@pytest.fixture
def http_session():
    """aiohttp.ClientSession stand-in; tests set ``request``/``post`` side effects."""
    session = MagicMock()
    session.close = AsyncMock()
    return session


@pytest.fixture
def response():
    return make_response


@pytest.fixture
def storage():
    """R2Storage with every network method mocked."""
    mock = MagicMock(spec=R2Storage)
    mock.presigned_put_url = AsyncMock(
        side_effect=lambda key, expires=None: f"https://r2.test/put/{key}"
    )
    mock.presigned_get_url = AsyncMock(
        side_effect=lambda key, expires=None, download_name=None: f"https://r2.test/get/{key}"
    )
    mock.object_exists = AsyncMock(return_value=True)
    mock.delete_object = AsyncMock()
    return mock


@pytest.fixture
def mailer():
    return ResendMailer()


@pytest.fixture
def repo(airtable):
    return Repository(airtable)


@pytest.fixture
def events(repo):
    return EventService(repo)


@pytest.fixture
def notifications(mailer):
    return NotificationService(mailer)


@pytest.fixture
def teachers(repo, events, notifications):
    return TeacherService(repo, events, notifications)


@pytest.fixture(scope="function")
async def client(airtable, storage, mailer):
    """Async test client with the provider clients overridden."""
    app.dependency_overrides[deps.get_airtable] = lambda: airtable
    app.dependency_overrides[deps.get_storage] = lambda: storage
    app.dependency_overrides[deps.get_mailer] = lambda: mailer
    async with AsyncClient(
        transport=ASGITransport(app=app), base_url="http://test"
    ) as ac:
        yield ac
    app.dependency_overrides.clear()


@pytest.fixture
def login(client):
    """Return a function putting a signed session cookie on the client."""

    def _login(session) -> None:
        cookie = get_role_config(role_of(session)).cookie_name
        client.cookies.set(cookie, create_session_token(session))

    return _login
