"""HTTP routes for the PubSubHubbub webhook, polling, manual refresh and control."""

from __future__ import annotations

import json
import logging

from fastapi import APIRouter, Depends, Header, Request, Response, status
from fastapi.responses import JSONResponse, PlainTextResponse
from pydantic import ValidationError

from livestatus.errors import (
    AuthenticationFailure,
    RateLimited,
    UpstreamUnavailable,
    ValidationFailure,
)
from livestatus.schemas.live_status import (
    FlushRateLimited,
    LiveSnapshot,
    ReconcileSummary,
    UpdateRequest,
)
from livestatus.security import require_control_token
from livestatus.services.live_status import LiveStatusActor, get_live_status_actor

logger = logging.getLogger(__name__)

router = APIRouter(tags=["live-status"])

EXPIRES_HEADER = "x-pshb-expires"


@router.get("/webhook", response_class=PlainTextResponse)
async def webhook_handshake(
    request: Request, actor: LiveStatusActor = Depends(get_live_status_actor)
) -> PlainTextResponse:
    try:
        handshake = await actor.verify_subscription(request.query_params)
    except ValidationFailure as exc:
        logger.warning("rejected subscription handshake: %s", exc)
        return PlainTextResponse(
            "Invalid subscription request", status_code=status.HTTP_400_BAD_REQUEST
        )
    return PlainTextResponse(handshake.challenge)


@router.post("/webhook")
async def webhook_notification(
    request: Request,
    x_webhook_token: str | None = Header(default=None, alias="x-webhook-token"),
    x_hub_signature_256: str | None = Header(default=None, alias="x-hub-signature-256"),
    actor: LiveStatusActor = Depends(get_live_status_actor),
) -> Response:
    body = await request.body()
    try:
        await actor.handle_notification(
            token=x_webhook_token, signature=x_hub_signature_256, body=body
        )
    except AuthenticationFailure as exc:
        logger.warning("rejected push notification: %s", exc)
        return PlainTextResponse("Unauthorized", status_code=status.HTTP_401_UNAUTHORIZED)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.post("/update", dependencies=[Depends(require_control_token)])
async def update_route(
    request: Request, actor: LiveStatusActor = Depends(get_live_status_actor)
) -> Response:
    try:
        payload = UpdateRequest.model_validate(json.loads(await request.body()))
    except (ValueError, ValidationError):
        return JSONResponse(
            {"error": "body must be a JSON object with a videoId string or null"},
            status_code=status.HTTP_400_BAD_REQUEST,
        )
    await actor.apply_update(payload.videoId)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.get("/status", response_model=LiveSnapshot)
async def status_route(
    actor: LiveStatusActor = Depends(get_live_status_actor),
) -> JSONResponse:
    headers = {"Cache-Control": "public, max-age=120"}
    expires = actor.lease_expires_at()
    if expires is not None:
        headers[EXPIRES_HEADER] = str(expires)
    return JSONResponse(actor.snapshot(), headers=headers)


@router.post("/flush", response_model=LiveSnapshot)
async def flush_route(
    actor: LiveStatusActor = Depends(get_live_status_actor),
) -> JSONResponse:
    try:
        video_id = await actor.flush()
    except RateLimited as exc:
        body = FlushRateLimited(retry_after=exc.retry_after)
        return JSONResponse(
            body.model_dump(),
            status_code=status.HTTP_429_TOO_MANY_REQUESTS,
            headers={"Retry-After": str(exc.retry_after)},
        )
    except UpstreamUnavailable as exc:
        logger.warning("flush search failed: %s", exc)
        return JSONResponse(
            {"error": "YouTube Data API error", "status": exc.upstream_status},
            status_code=status.HTTP_502_BAD_GATEWAY,
        )

    snapshot = LiveSnapshot(live=bool(video_id), videoId=video_id)
    return JSONResponse(
        snapshot.model_dump(),
        status_code=status.HTTP_200_OK if video_id else status.HTTP_404_NOT_FOUND,
    )


@router.post(
    "/reconcile",
    status_code=status.HTTP_202_ACCEPTED,
    response_model=ReconcileSummary,
    dependencies=[Depends(require_control_token)],
)
async def reconcile_route(
    actor: LiveStatusActor = Depends(get_live_status_actor),
) -> ReconcileSummary:
    result = await actor.reconcile()
    return ReconcileSummary(**result.to_dict())


@router.get("/")
@router.get("/ws")
async def upgrade_required() -> JSONResponse:
    return JSONResponse(
        {"error": "Expected WebSocket upgrade on / (or /ws)"},
        status_code=status.HTTP_426_UPGRADE_REQUIRED,
        headers={"Upgrade": "websocket"},
    )


__all__ = ["EXPIRES_HEADER", "router"]
