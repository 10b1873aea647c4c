"""API middleware package."""

from minimusiker.api.middleware.request_id import RequestIDMiddleware
from minimusiker.api.middleware.timing import TimingMiddleware

__all__ = ["RequestIDMiddleware", "TimingMiddleware"]
