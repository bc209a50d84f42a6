"""The live-status actor: single owner of the channel's live state.

Every state write from the three update paths (push notifications, the
reconciliation sweep and the manual flush) goes through :meth:`LiveStatusActor._commit`,
which persists the value and broadcasts the new snapshot to all WebSocket
listeners while holding one ``asyncio.Lock``. External HTTP calls are always
made before the lock is taken.
"""

from __future__ import annotations

import asyncio
import logging
import math
import time
from dataclasses import dataclass
from enum import Enum
from functools import lru_cache
from typing import Any, Dict, Mapping, Optional

from fastapi import WebSocket
from fastapi.concurrency import run_in_threadpool

from livestatus.config import LiveStatusSettings, get_settings
from livestatus.errors import AuthenticationFailure, RateLimited, UpstreamUnavailable
from livestatus.metrics import LIVE_STATE_CHANGES, WEBHOOK_NOTIFICATIONS
from livestatus.providers.hub import HubClient
from livestatus.providers.youtube import YouTubeClient
from livestatus.security import authenticate_notification
from livestatus.services.feed import extract_video_id
from livestatus.services.notifier import ConnectionManager
from livestatus.services.state_store import StateStore
from livestatus.services.subscription import Handshake, SubscriptionManager

logger = logging.getLogger(__name__)


def _now_ms() -> int:
    return int(time.time() * 1000)


def make_snapshot(video_id: Optional[str]) -> Dict[str, Any]:
    return {"live": bool(video_id), "videoId": video_id or None}


class NotificationOutcome(str, Enum):
    IGNORED = "ignored"
    NOT_LIVE = "not_live"
    LIVE = "live"
    INCONCLUSIVE = "inconclusive"


@dataclass
class ReconcileResult:
    checked: bool = False
    cleared: bool = False
    renewal: Optional["asyncio.Task[bool]"] = None

    def to_dict(self) -> Dict[str, bool]:
        return {
            "checked": self.checked,
            "cleared": self.cleared,
            "renewal": self.renewal is not None,
        }


class LiveStatusActor:
    def __init__(
        self,
        settings: LiveStatusSettings,
        *,
        store: StateStore | None = None,
        youtube: YouTubeClient | None = None,
        hub: HubClient | None = None,
        notifier: ConnectionManager | None = None,
    ) -> None:
        self._settings = settings
        self._store = store or StateStore(settings.state_path)
        self._youtube = youtube or YouTubeClient(
            api_key=settings.youtube_api_key, timeout=settings.http_timeout_seconds
        )
        hub_client = hub or HubClient(
            hub_url=settings.hub_url, timeout=settings.http_timeout_seconds
        )
        self._subscription = SubscriptionManager(settings, self._store, hub_client)
        self._notifier = notifier or ConnectionManager(
            send_timeout=settings.ws_send_timeout_seconds
        )
        self._lock = asyncio.Lock()

    @property
    def settings(self) -> LiveStatusSettings:
        return self._settings

    @property
    def notifier(self) -> ConnectionManager:
        return self._notifier

    @property
    def subscription(self) -> SubscriptionManager:
        return self._subscription

    def get(self) -> Optional[str]:
        return self._store.get_video_id()

    def snapshot(self) -> Dict[str, Any]:
        return make_snapshot(self.get())

    def lease_expires_at(self) -> Optional[int]:
        return self._subscription.expires_at()

    async def _commit(self, video_id: Optional[str]) -> Dict[str, Any]:
        async with self._lock:
            return await self._write_locked(video_id)

    async def _write_locked(self, video_id: Optional[str]) -> Dict[str, Any]:
        previous = self._store.get_video_id()
        await run_in_threadpool(self._store.put_video_id, video_id)
        snapshot = make_snapshot(video_id)
        LIVE_STATE_CHANGES.labels(live=str(snapshot["live"]).lower()).inc()
        delivered = await self._notifier.broadcast(snapshot)
        if previous != snapshot["videoId"]:
            logger.info(
                "live state %s -> %s (delivered to %d listener(s))",
                previous,
                snapshot["videoId"],
                delivered,
            )
        return snapshot

    async def set_live(self, video_id: str) -> Dict[str, Any]:
        return await self._commit(video_id)

    async def clear(self) -> Dict[str, Any]:
        return await self._commit(None)

    async def _clear_if_current(self, video_id: str) -> bool:
        async with self._lock:
            if self._store.get_video_id() != video_id:
                return False
            await self._write_locked(None)
            return True

    async def connect(self, websocket: WebSocket) -> bool:
        """Catch *websocket* up with the current snapshot and register it.

        Done under the write lock so no commit can land between the catch-up
        send and the registration.
        """

        async with self._lock:
            return await self._notifier.join(websocket, self.snapshot())

    def disconnect(self, websocket: WebSocket) -> None:
        self._notifier.leave(websocket)

    async def verify_subscription(self, params: Mapping[str, str]) -> Handshake:
        async with self._lock:
            return await run_in_threadpool(self._subscription.accept, params, _now_ms())

    async def handle_notification(
        self, *, token: Optional[str], signature: Optional[str], body: bytes
    ) -> NotificationOutcome:
        """Authenticate, decode and classify one push notification.

        Raises :class:`AuthenticationFailure`; every other outcome is reported
        through the returned :class:`NotificationOutcome`.
        """

        try:
            authenticate_notification(token, signature, body, self._settings.webhook_secret)
        except AuthenticationFailure:
            WEBHOOK_NOTIFICATIONS.labels(outcome="rejected").inc()
            raise

        video_id = extract_video_id(body)
        if not video_id:
            WEBHOOK_NOTIFICATIONS.labels(outcome=NotificationOutcome.IGNORED.value).inc()
            return NotificationOutcome.IGNORED

        try:
            details = await self._youtube.live_details(video_id)
        except UpstreamUnavailable as exc:
            logger.warning("youtube lookup failed for %s: %s", video_id, exc)
            WEBHOOK_NOTIFICATIONS.labels(outcome=NotificationOutcome.INCONCLUSIVE.value).inc()
            return NotificationOutcome.INCONCLUSIVE

        if not details.is_livestream:
            logger.info("ignoring non-livestream video %s", video_id)
            WEBHOOK_NOTIFICATIONS.labels(outcome=NotificationOutcome.NOT_LIVE.value).inc()
            return NotificationOutcome.NOT_LIVE

        logger.info("detected livestream %s", video_id)
        await self.set_live(video_id)
        WEBHOOK_NOTIFICATIONS.labels(outcome=NotificationOutcome.LIVE.value).inc()
        return NotificationOutcome.LIVE

    async def apply_update(self, video_id: Optional[str]) -> Dict[str, Any]:
        if video_id:
            return await self.set_live(video_id)
        return await self.clear()

    async def flush(self) -> Optional[str]:
        """Search YouTube directly for a live broadcast, at most once per cooldown.

        Raises :class:`RateLimited` inside the cooldown and
        :class:`UpstreamUnavailable` when the search fails; in both cases the
        live state is left untouched.
        """

        cooldown_ms = self._settings.flush_cooldown_seconds * 1000
        async with self._lock:
            now = _now_ms()
            last = self._store.get_last_flush() or 0
            since = now - last
            if since < cooldown_ms:
                retry_after = max(1, math.ceil((cooldown_ms - since) / 1000))
                raise RateLimited(retry_after)
            await run_in_threadpool(self._store.put_last_flush, now)

        video_id = await self._youtube.search_live(self._settings.channel_id)
        await self._commit(video_id)
        return video_id

    async def reconcile(self) -> ReconcileResult:
        """Renew the subscription if due and clear the live id once the stream ended."""

        result = ReconcileResult()
        result.renewal = self._subscription.renew_if_due(_now_ms())

        if not self._settings.scheduled_checks:
            return result
        current = self.get()
        if not current:
            return result

        try:
            details = await self._youtube.live_details(current)
        except UpstreamUnavailable as exc:
            logger.warning("reconcile lookup failed for %s: %s", current, exc)
            return result
        result.checked = True

        if details.has_ended:
            result.cleared = await self._clear_if_current(current)
            if result.cleared:
                logger.info("cleared %s because the stream ended", current)
        return result


@lru_cache(maxsize=1)
def get_live_status_actor() -> LiveStatusActor:
    return LiveStatusActor(get_settings())


__all__ = [
    "LiveStatusActor",
    "NotificationOutcome",
    "ReconcileResult",
    "get_live_status_actor",
    "make_snapshot",
]
