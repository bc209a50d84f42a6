"""PubSubHubbub subscription lifecycle: handshake verification, lease tracking, renewal."""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from typing import Mapping, Optional, Set

from livestatus.config import DEFAULT_LEASE_SECONDS, LiveStatusSettings
from livestatus.errors import UpstreamUnavailable, ValidationFailure
from livestatus.metrics import PSHB_RENEWALS
from livestatus.providers.hub import HubClient, build_subscription_form
from livestatus.security import constant_time_equals
from livestatus.services.state_store import StateStore

logger = logging.getLogger(__name__)

RENEW_WINDOW_FRACTION = 0.10


@dataclass(frozen=True)
class Handshake:
    challenge: str
    lease_seconds: int


def parse_lease_seconds(raw: Optional[str]) -> int:
    if raw is None:
        return DEFAULT_LEASE_SECONDS
    try:
        value = int(raw.strip())
    except (ValueError, AttributeError):
        return DEFAULT_LEASE_SECONDS
    return value if value > 0 else DEFAULT_LEASE_SECONDS


def validate_handshake(
    params: Mapping[str, str], settings: LiveStatusSettings
) -> Handshake:
    """Return the accepted handshake or raise :class:`ValidationFailure`."""

    mode = params.get("hub.mode")
    topic = params.get("hub.topic")
    verify_token = params.get("hub.verify_token") or ""
    challenge = params.get("hub.challenge")

    if mode != "subscribe":
        raise ValidationFailure("unsupported hub.mode")
    if topic != settings.topic_url:
        raise ValidationFailure("unexpected hub.topic")
    if not settings.verify_token or not constant_time_equals(
        verify_token, settings.verify_token
    ):
        raise ValidationFailure("invalid hub.verify_token")
    if not challenge:
        raise ValidationFailure("missing hub.challenge")

    return Handshake(
        challenge=challenge,
        lease_seconds=parse_lease_seconds(params.get("hub.lease_seconds")),
    )


def needs_renewal(expires_at_ms: Optional[int], now_ms: int, lease_seconds: int) -> bool:
    """True when less than 10% of the lease window remains, or expiry is unknown."""

    if expires_at_ms is None:
        return True
    remaining = expires_at_ms - now_ms
    return remaining < RENEW_WINDOW_FRACTION * lease_seconds * 1000


class SubscriptionManager:
    def __init__(
        self, settings: LiveStatusSettings, store: StateStore, hub: HubClient
    ) -> None:
        self._settings = settings
        self._store = store
        self._hub = hub
        self._pending: Set[asyncio.Task[bool]] = set()

    def accept(self, params: Mapping[str, str], now_ms: int) -> Handshake:
        """Validate a hub handshake and record the new lease expiry."""

        handshake = validate_handshake(params, self._settings)
        expires_at = now_ms + handshake.lease_seconds * 1000
        self._store.put_expires(expires_at)
        logger.info(
            "subscription verified; lease %ss expires at %d",
            handshake.lease_seconds,
            expires_at,
        )
        return handshake

    def expires_at(self) -> Optional[int]:
        return self._store.get_expires()

    def renew_if_due(self, now_ms: int) -> Optional[asyncio.Task[bool]]:
        """Start a detached renewal when the lease is close to expiry.

        The returned task is never awaited by the caller's critical path; a
        fresh handshake from the hub is what eventually moves the expiry.
        """

        if not needs_renewal(self.expires_at(), now_ms, self._settings.lease_seconds):
            return None
        task = asyncio.create_task(self.renew())
        self._pending.add(task)
        task.add_done_callback(self._pending.discard)
        return task

    async def renew(self) -> bool:
        form = build_subscription_form(
            mode="subscribe",
            topic=self._settings.topic_url,
            callback=self._settings.callback_url,
            verify_token=self._settings.verify_token,
            secret=self._settings.webhook_secret,
            lease_seconds=self._settings.lease_seconds,
        )
        try:
            status_code = await self._hub.request(form)
        except UpstreamUnavailable as exc:
            PSHB_RENEWALS.labels(outcome="failed").inc()
            logger.error("subscription renewal failed: %s", exc)
            return False
        PSHB_RENEWALS.labels(outcome="requested").inc()
        logger.info("subscription renewal requested (hub status %d)", status_code)
        return True

    @property
    def pending(self) -> int:
        return len(self._pending)


__all__ = [
    "Handshake",
    "SubscriptionManager",
    "needs_renewal",
    "parse_lease_seconds",
    "validate_handshake",
]
