"""FastAPI application wiring for the tracker service.

Beginner terms used in this file:
- FastAPI app: the main web application object.
- Router prefix: every tracker route lives under /mytime/tracker.
- app.state: a place to store shared runtime objects (settings, storage).
- Lifespan: startup/shutdown hook; storage is built here so importing this
  module never touches the database.
"""

from __future__ import annotations

import logging
from collections.abc import Iterator
from contextlib import asynccontextmanager, contextmanager

from fastapi import APIRouter, FastAPI, Path, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from . import __version__
from .app.errors import InternalError, StorageError, TrackerError
from .app.models import (
    CreateTrackerRequest,
    ErrorResponse,
    MessageResponse,
    TotalHoursResponse,
    TrackerEntry,
    UpdatedTracker,
    UpdateTrackerRequest,
)
from .app.settings import Settings, get_settings
from .app.storage import PostgresTrackerStorage, TrackerStorage

logger = logging.getLogger(__name__)

TRACKER_PREFIX = "/mytime/tracker"

ERROR_RESPONSES = {
    400: {"model": ErrorResponse},
    404: {"model": ErrorResponse},
    500: {"model": ErrorResponse},
}


def _ensure_storage(
    app: FastAPI,
    *,
    settings: Settings,
    storage_override: TrackerStorage | None,
) -> None:
    if hasattr(app.state, "storage"):
        return
    if storage_override is None:
        database_url = settings.resolved_database_url()
        if not database_url:
            raise RuntimeError(
                "Missing database URL. Set MYTIME_DATABASE_URL or DB_HOST/DB_DATABASE "
                "(with DB_USER, DB_PASSWORD, DB_PORT) before starting the app."
            )
        storage_override = PostgresTrackerStorage(
            database_url,
            statement_timeout_ms=settings.statement_timeout_ms,
            connect_timeout_s=settings.connect_timeout_s,
            timezone=settings.timezone,
        )
    if settings.auto_migrate:
        storage_override.migrate()
    app.state.storage = storage_override


@contextmanager
def _store_errors(operation: str, message: str) -> Iterator[None]:
    """Map storage failures to InternalError without leaking driver details."""
    try:
        yield
    except StorageError:
        logger.exception("tracker event=store_error operation=%s", operation)
        raise InternalError(message) from None


def create_app(
    *,
    storage: TrackerStorage | None = None,
    settings_override: Settings | None = None,
) -> FastAPI:
    """Application factory.

    Pass `storage` to inject a backend (tests use the in-memory one);
    otherwise a PostgresTrackerStorage is built from settings at startup.
    """
    settings = settings_override or get_settings()

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        _ensure_storage(app, settings=settings, storage_override=storage)
        yield

    app = FastAPI(
        title=settings.app_name,
        version=__version__,
        docs_url="/mytime/swagger-ui",
        openapi_url="/mytime/swagger.json",
        redoc_url=None,
        lifespan=lifespan,
    )
    app.state.settings = settings

    # Keep test paths reliable when lifespan is not executed by the client.
    if storage is not None:
        _ensure_storage(app, settings=settings, storage_override=storage)

    def _get_storage(request: Request) -> TrackerStorage:
        if not hasattr(request.app.state, "storage"):
            _ensure_storage(request.app, settings=settings, storage_override=storage)
        return request.app.state.storage

    @app.exception_handler(TrackerError)
    async def tracker_error_handler(_: Request, exc: TrackerError) -> JSONResponse:
        return JSONResponse(status_code=exc.status_code, content={"error": exc.message})

    @app.exception_handler(RequestValidationError)
    async def request_validation_handler(_: Request, exc: RequestValidationError) -> JSONResponse:
        return JSONResponse(status_code=422, content={"error": _describe_validation(exc)})

    @app.exception_handler(StarletteHTTPException)
    async def http_error_handler(_: Request, exc: StarletteHTTPException) -> JSONResponse:
        return JSONResponse(
            status_code=exc.status_code,
            content={"error": str(exc.detail)},
            headers=getattr(exc, "headers", None),
        )

    @app.exception_handler(Exception)
    async def unexpected_error_handler(_: Request, exc: Exception) -> JSONResponse:
        logger.error(
            "tracker event=unhandled_error error_type=%s", type(exc).__name__, exc_info=exc
        )
        return JSONResponse(status_code=500, content={"error": "Internal server error."})

    @app.get("/health")
    @app.get("/healthz")
    @app.get("/live")
    def health() -> dict[str, str]:
        return {"status": "ok"}

    router = APIRouter(prefix=TRACKER_PREFIX, tags=["Tracker"], responses=ERROR_RESPONSES)

    # Add a tracker entry when a user starts working on a task.
    @router.post("", response_model=TrackerEntry)
    @router.post("/", response_model=TrackerEntry, include_in_schema=False)
    def create_tracker(payload: CreateTrackerRequest, request: Request) -> TrackerEntry:
        with _store_errors("create", "An error occurred while adding the tracker."):
            entry = _get_storage(request).create_entry(payload.taskid, payload.hours)
        logger.info(
            "tracker event=created tracker_id=%s taskid=%s hours=%s",
            entry.tracker_id,
            entry.taskid,
            entry.hours,
        )
        return entry

    @router.put("/update/{tracker_id}", response_model=UpdatedTracker)
    def update_tracker(
        payload: UpdateTrackerRequest,
        request: Request,
        tracker_id: int = Path(..., description="Tracker ID"),
    ) -> UpdatedTracker:
        with _store_errors("update", "An error occurred while updating the tracker."):
            updated = _get_storage(request).update_hours(tracker_id, payload.hours)
        logger.info(
            "tracker event=updated tracker_id=%s hours=%s updated_at=%s",
            tracker_id,
            updated.hours,
            updated.updated_at,
        )
        return updated

    # Aggregation routes first, ahead of the /{taskid} listing route.
    @router.get("/total-hours/{taskid}", response_model=TotalHoursResponse)
    def total_hours_for_task(
        request: Request,
        taskid: int = Path(..., description="Task ID"),
    ) -> TotalHoursResponse:
        with _store_errors("total_hours_task", "An error occurred while calculating the total hours."):
            total = _get_storage(request).total_hours_for_task(taskid)
        return TotalHoursResponse(total_hours=total)

    @router.get("/total-hours/{month}/{year}", response_model=TotalHoursResponse)
    def total_hours_for_month(
        request: Request,
        month: int = Path(..., ge=1, le=12, description="Month (1-12)"),
        year: int = Path(..., ge=1000, le=9999, description="Year (e.g., 2023)"),
    ) -> TotalHoursResponse:
        with _store_errors("total_hours_month", "An error occurred while calculating the total hours."):
            total = _get_storage(request).total_hours_for_month(month, year)
        return TotalHoursResponse(total_hours=total)

    @router.get("", response_model=list[TrackerEntry])
    @router.get("/", response_model=list[TrackerEntry], include_in_schema=False)
    def list_trackers(request: Request) -> list[TrackerEntry]:
        with _store_errors("list_all", "An error occurred while getting the trackers."):
            return _get_storage(request).list_entries()

    @router.get("/{taskid}", response_model=list[TrackerEntry])
    def list_trackers_for_task(
        request: Request,
        taskid: int = Path(..., description="Task ID"),
    ) -> list[TrackerEntry]:
        with _store_errors("list_task", "An error occurred while getting the trackers."):
            return _get_storage(request).list_entries(taskid)

    @router.delete("/delete/{tracker_id}", response_model=MessageResponse)
    def delete_tracker(
        request: Request,
        tracker_id: int = Path(..., description="Tracker ID to delete"),
    ) -> MessageResponse:
        with _store_errors("delete", "An error occurred while deleting the tracker."):
            _get_storage(request).delete_entry(tracker_id)
        logger.info("tracker event=deleted tracker_id=%s", tracker_id)
        return MessageResponse(message="Tracker deleted successfully.")

    app.include_router(router)
    return app


def _describe_validation(exc: RequestValidationError) -> str:
    """Flatten pydantic error details into one human-readable line."""
    parts = []
    for item in exc.errors():
        location = ".".join(str(part) for part in item.get("loc", ()))
        parts.append(f"{location}: {item.get('msg', 'invalid value')}")
    return "Invalid request: " + "; ".join(parts)


def configure_logging(level: str = "INFO") -> None:
    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.INFO),
        format="%(asctime)s %(levelname)s %(name)s %(message)s",
    )


def run() -> None:
    """Console entry point: serve the app with uvicorn."""
    import uvicorn

    settings = get_settings()
    configure_logging(settings.log_level)
    uvicorn.run(
        "mytime_tracker.main:app",
        host=settings.host,
        port=settings.resolved_port(),
        log_level=settings.log_level.lower(),
    )


# Module-level app for `uvicorn mytime_tracker.main:app`.
app = create_app()
