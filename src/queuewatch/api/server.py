"""
FastAPI server exposing the queue snapshot and acquisition health.

Every route is read-only except /retry-connection, which asks the
controller for an immediate attempt. Routes are mounted at the root and
again under /api.
"""

import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from typing import Any

from fastapi import APIRouter, FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import ORJSONResponse

from queuewatch import __version__
from queuewatch.config.constants import API_TITLE
from queuewatch.config.settings import Settings, get_settings
from queuewatch.core.controller import FailoverController
from queuewatch.store.snapshot import SnapshotStore
from queuewatch.telemetry.metrics import MetricsCollector
from queuewatch.utils.time import format_duration, to_iso, utc_now


logger = logging.getLogger(__name__)

router = APIRouter()


def _controller(request: Request) -> FailoverController:
    controller: FailoverController = request.app.state.controller
    return controller


def _store(request: Request) -> SnapshotStore:
    store: SnapshotStore = request.app.state.store
    return store


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    controller: FailoverController = app.state.controller
    if app.state.start_acquisition:
        await controller.start()
    yield
    await controller.stop()


def create_app(
    settings: Settings | None = None,
    controller: FailoverController | None = None,
    store: SnapshotStore | None = None,
    start_acquisition: bool = True,
) -> FastAPI:
    """
    Build the API application.

    Args:
        settings: Settings (default: environment).
        controller: Controller to expose (default: built from settings).
        store: Snapshot store (default: the controller's store or a new one).
        start_acquisition: Start the controller with the app lifespan.

    Returns:
        Configured FastAPI application.
    """
    settings = settings or get_settings()
    if controller is None:
        store = store or SnapshotStore(history_depth=settings.history_depth)
        controller = FailoverController(settings, store, metrics=MetricsCollector())
    else:
        store = controller.store

    app = FastAPI(
        title=API_TITLE,
        version=__version__,
        lifespan=lifespan,
        default_response_class=ORJSONResponse,
    )
    app.state.settings = settings
    app.state.controller = controller
    app.state.store = store
    app.state.start_acquisition = start_acquisition

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_methods=["GET", "OPTIONS"],
        allow_headers=["*"],
    )
    app.include_router(router)
    app.include_router(router, prefix="/api")
    return app


# =============================================================================
# Routes
# =============================================================================


@router.get("/queue-data")
async def get_queue_data(request: Request) -> dict[str, Any]:
    controller = _controller(request)
    view = _store(request).read()
    body: dict[str, Any] = {
        "success": True,
        "hasData": view.has_data,
        "snapshot": view.snapshot.to_dict() if view.snapshot else None,
        "counterHistory": {
            counter: history.to_dict() for counter, history in view.histories.items()
        },
        "connected": controller.connected,
        "mode": controller.mode.value,
        "timestamp": to_iso(utc_now()),
    }
    if not view.has_data:
        body["status"] = "no_data"
        body["message"] = "No queue data acquired yet"
    return body


@router.get("/counter-status")
async def get_counter_status(request: Request) -> dict[str, Any]:
    histories = _store(request).histories()
    return {
        "success": True,
        "counterHistory": {counter: history.to_dict() for counter, history in histories.items()},
        "timestamp": to_iso(utc_now()),
    }


@router.get("/status")
async def get_status(request: Request) -> dict[str, Any]:
    """Connection mode, failure counts and uptime."""
    controller = _controller(request)
    view = _store(request).read()
    metrics = controller.metrics
    uptime = metrics.uptime_seconds

    return {
        **controller.status(),
        "uptimeSeconds": round(uptime, 1),
        "uptime": format_duration(uptime),
        "countersTracked": len(view.histories),
        "lastUpdate": to_iso(view.last_write_at),
        "writeCount": view.write_count,
        "metrics": metrics.get_summary(),
        "timestamp": to_iso(utc_now()),
    }


@router.get("/health")
async def get_health(request: Request) -> dict[str, Any]:
    controller = _controller(request)
    view = _store(request).read()
    return {
        "status": "OK",
        "alive": True,
        "hasData": view.has_data,
        "dataSource": view.snapshot.source.value if view.snapshot else None,
        "connected": controller.connected,
        "mode": controller.mode.value,
        "uptime": round(controller.metrics.uptime_seconds, 1),
        "timestamp": to_iso(utc_now()),
    }


@router.get("/retry-connection")
async def retry_connection(request: Request) -> dict[str, Any]:
    """Force an immediate stream attempt, falling back to one scrape."""
    outcome = await _controller(request).retry_now()

    if outcome.method is None:
        message = "Stream and scrape attempts both failed"
    else:
        message = f"Reconnected via {outcome.method.value}"
    logger.info(f"[API] retry-connection: {message}")

    return {
        "success": outcome.success,
        "method": outcome.method.value if outcome.method else None,
        "message": message,
        "errors": outcome.errors,
    }
