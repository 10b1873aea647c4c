"""Error taxonomy shared by services, clients and route handlers.

Every failure a service reports is a ``PortalError`` carrying an
``ErrorKind``. Route handlers never inspect messages: the exception
handlers registered in ``minimusiker.api.main`` switch on ``kind`` to pick
the HTTP status and render the ``{"success": false, "error": ...}``
envelope.
"""

from enum import Enum
from typing import Any, Dict, Optional


class ErrorKind(str, Enum):
    UNAUTHORIZED = "unauthorized"
    FORBIDDEN = "forbidden"
    NOT_FOUND = "not_found"
    VALIDATION = "validation"
    INVALID_FEATURE = "invalid_feature"
    ALREADY_APPROVED = "already_approved"
    CONFLICT = "conflict"
    INTEGRATION = "integration"
    DECODE = "decode"


STATUS_BY_KIND: Dict[ErrorKind, int] = {
    ErrorKind.UNAUTHORIZED: 401,
    ErrorKind.FORBIDDEN: 403,
    ErrorKind.NOT_FOUND: 404,
    ErrorKind.VALIDATION: 400,
    ErrorKind.INVALID_FEATURE: 400,
    ErrorKind.ALREADY_APPROVED: 409,
    ErrorKind.CONFLICT: 409,
    ErrorKind.INTEGRATION: 500,
    ErrorKind.DECODE: 500,
}


class PortalError(Exception):
    """Base class for all expected application failures.

    Attributes:
        kind: Machine-readable category of the failure.
        message: Plain-language message safe to show to the caller.
        extra: Optional additional keys merged into the error envelope.
    """

    kind: ErrorKind = ErrorKind.INTEGRATION

    def __init__(self, message: str, extra: Optional[Dict[str, Any]] = None):
        super().__init__(message)
        self.message = message
        self.extra = extra or {}

    @property
    def status_code(self) -> int:
        return STATUS_BY_KIND[self.kind]


class UnauthorizedError(PortalError):
    kind = ErrorKind.UNAUTHORIZED

    def __init__(self, message: str = "Unauthorized", extra=None):
        super().__init__(message, extra)


class ForbiddenError(PortalError):
    kind = ErrorKind.FORBIDDEN


class NotFoundError(PortalError):
    kind = ErrorKind.NOT_FOUND


class ValidationError(PortalError):
    kind = ErrorKind.VALIDATION


class InvalidFeatureError(PortalError):
    """The event or account does not have the requested feature."""

    kind = ErrorKind.INVALID_FEATURE


class AlreadyApprovedError(PortalError):
    kind = ErrorKind.ALREADY_APPROVED


class ConflictError(PortalError):
    kind = ErrorKind.CONFLICT


class IntegrationError(PortalError):
    """A third-party provider call failed."""

    kind = ErrorKind.INTEGRATION
    provider = "provider"


class AirtableError(IntegrationError):
    provider = "airtable"


class SimplyBookError(IntegrationError):
    provider = "simplybook"


class ShopifyError(IntegrationError):
    provider = "shopify"


class StorageError(IntegrationError):
    provider = "r2"


class EmailError(IntegrationError):
    provider = "resend"


class RecordDecodeError(PortalError):
    """An Airtable record did not match the expected table schema."""

    kind = ErrorKind.DECODE

    def __init__(self, table: str, record_id: str, detail: str):
        super().__init__(f"Malformed {table} record {record_id}: {detail}")
        self.table = table
        self.record_id = record_id
        self.detail = detail
