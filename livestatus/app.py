from __future__ import annotations

import asyncio
import logging
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import APIRouter, FastAPI, Request, status
from fastapi.exception_handlers import http_exception_handler
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from livestatus.api.health import health as _health_handler
from livestatus.config import LiveStatusSettings, get_settings
from livestatus.metrics import MetricsMiddleware, metrics_app
from livestatus.services.live_status import LiveStatusActor, get_live_status_actor
from livestatus.startup_validation import validate_startup

from .routes.live_status import router as live_status_router
from .routes.live_status import upgrade_required
from .routes.ws_status import router as ws_status_router
from .routes.ws_status import status_ws

logger = logging.getLogger(__name__)


def _resolve_settings(app: FastAPI) -> LiveStatusSettings:
    factory = app.dependency_overrides.get(get_settings, get_settings)
    return factory()


def _resolve_actor(app: FastAPI) -> LiveStatusActor:
    factory = app.dependency_overrides.get(get_live_status_actor, get_live_status_actor)
    return factory()


async def reconcile_once(app: FastAPI) -> None:
    try:
        result = await _resolve_actor(app).reconcile()
    except Exception:
        logger.exception("reconciliation pass failed")
        return
    logger.debug("reconciliation pass: %s", result.to_dict())


@asynccontextmanager
async def lifespan(app: FastAPI):
    settings = _resolve_settings(app)
    validate_startup(settings)
    reconcile_task: Optional[asyncio.Task] = None
    interval = settings.reconcile_interval_seconds

    if interval > 0:

        async def _loop() -> None:
            while True:
                await reconcile_once(app)
                await asyncio.sleep(interval)

        reconcile_task = asyncio.create_task(_loop())

    try:
        yield
    finally:
        if reconcile_task:
            reconcile_task.cancel()
            try:
                await reconcile_task
            except asyncio.CancelledError:
                pass


app = FastAPI(lifespan=lifespan)

_settings = get_settings()
app.add_middleware(
    CORSMiddleware,
    allow_origins=list(_settings.cors_allow_origins),
    allow_methods=["GET", "POST"],
    allow_headers=["Content-Type"],
)

app.add_middleware(MetricsMiddleware)


@app.exception_handler(StarletteHTTPException)
async def _not_found_handler(request: Request, exc: StarletteHTTPException):
    if exc.status_code == status.HTTP_404_NOT_FOUND:
        return JSONResponse({"error": "Not found"}, status_code=exc.status_code)
    return await http_exception_handler(request, exc)


@app.exception_handler(Exception)
async def _unhandled_handler(request: Request, exc: Exception) -> JSONResponse:
    logger.exception("unhandled error on %s %s", request.method, request.url.path)
    return JSONResponse(
        {"error": str(exc) or "Unknown error"},
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
    )


app.include_router(live_status_router, prefix=_settings.mount)
app.include_router(ws_status_router, prefix=_settings.mount)
if _settings.mount:
    # the bare mount path serves the same endpoints as its trailing-slash form
    app.add_api_route(_settings.mount, upgrade_required, methods=["GET"], include_in_schema=False)
    app.add_api_websocket_route(_settings.mount, status_ws)
app.add_api_route(
    "/health",
    _health_handler,
    methods=["GET"],
    response_model=None,
    tags=["health"],
)


_metrics_router = APIRouter()


@_metrics_router.get("/metrics", include_in_schema=False)
async def _metrics_endpoint(request: Request):
    return await metrics_app(request)


app.include_router(_metrics_router)
