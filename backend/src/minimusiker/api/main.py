"""FastAPI application entry point for the Minimusiker portal API.

This module wires the routers, middleware, exception handlers and client
lifecycle. The API serves the portals of every role around a school
recording event:

- Auth: magic links for teachers, email login for parents, password login
  for admin, staff and engineers
- Teacher: events, classes, songs, groups, clothing order, schulsong approval
- Staff and engineer: assigned events and audio uploads
- Admin: audio review and release, tasks, clothing orders, booking sync
- Parent and shop: released recordings and Shopify checkout

All persistence lives in Airtable; the API holds no state besides cached
provider tokens.
"""

from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from loguru import logger

from minimusiker.api.deps import close_clients
from minimusiker.api.middleware import RequestIDMiddleware, TimingMiddleware
from minimusiker.api.routers import (
    admin,
    auth,
    engineer,
    parent,
    shop,
    staff,
    system,
    teacher,
)
from minimusiker.core.config import settings
from minimusiker.core.errors import IntegrationError, PortalError
from minimusiker.core.logger import setup_logging

# Initialize Logging
setup_logging()


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Lifespan context manager for startup/shutdown."""
    logger.info(f"{settings.APP_NAME} API starting")
    yield
    # Shutdown
    await close_clients()
    logger.info(f"{settings.APP_NAME} API stopped")


app = FastAPI(
    title="Minimusiker Portal API",
    version=settings.APP_VERSION,
    description="School recording events: bookings, audio pipeline and shop",
    lifespan=lifespan,
)

app.add_middleware(
    TimingMiddleware, slow_request_threshold=settings.SLOW_REQUEST_THRESHOLD
)
app.add_middleware(RequestIDMiddleware)
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


# Error envelopes


@app.exception_handler(PortalError)
async def portal_error_handler(request: Request, exc: PortalError):
    if isinstance(exc, IntegrationError):
        logger.error(f"{exc.provider} failure on {request.url.path}: {exc.message}")
    elif exc.status_code >= 500:
        logger.error(f"{request.method} {request.url.path} failed: {exc.message}")
    else:
        logger.info(f"{request.method} {request.url.path} -> {exc.status_code}: {exc.message}")
    return JSONResponse(
        status_code=exc.status_code,
        content={"success": False, "error": exc.message, **exc.extra},
    )


@app.exception_handler(RequestValidationError)
async def request_validation_handler(request: Request, exc: RequestValidationError):
    errors = exc.errors()
    message = "Invalid request"
    if errors:
        first = errors[0]
        location = ".".join(str(p) for p in first.get("loc", ()) if p != "body")
        message = f"{location}: {first.get('msg')}" if location else first.get("msg", message)
    return JSONResponse(status_code=400, content={"success": False, "error": message})


@app.exception_handler(Exception)
async def unhandled_error_handler(request: Request, exc: Exception):
    logger.exception(f"Unhandled error on {request.method} {request.url.path}: {exc}")
    return JSONResponse(
        status_code=500, content={"success": False, "error": "Internal server error"}
    )


# Include Routers
app.include_router(system.router, prefix="/api/system", tags=["System"])
app.include_router(auth.router, prefix="/api/auth", tags=["Auth"])
app.include_router(teacher.router, prefix="/api/teacher", tags=["Teacher"])
app.include_router(staff.router, prefix="/api/staff", tags=["Staff"])
app.include_router(engineer.router, prefix="/api/engineer", tags=["Engineer"])
app.include_router(admin.router, prefix="/api/admin", tags=["Admin"])
app.include_router(parent.router, prefix="/api/parent", tags=["Parent"])
app.include_router(shop.router, prefix="/api/shop", tags=["Shop"])


@app.get("/")
async def root():
    return {"message": f"{settings.APP_NAME} API is running"}
