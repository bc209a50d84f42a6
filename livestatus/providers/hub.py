"""Client for the PubSubHubbub hub's subscribe endpoint."""

from __future__ import annotations

import logging
from typing import Any, Dict, Literal

import httpx

from livestatus.errors import UpstreamUnavailable

logger = logging.getLogger(__name__)

HubMode = Literal["subscribe", "unsubscribe"]


def _http_client_factory(**kwargs: Any) -> httpx.AsyncClient:
    timeout = kwargs.pop("timeout", 10.0)
    return httpx.AsyncClient(timeout=timeout, **kwargs)


def build_subscription_form(
    *,
    mode: HubMode,
    topic: str,
    callback: str,
    verify_token: str,
    secret: str,
    lease_seconds: int | None = None,
) -> Dict[str, str]:
    form = {
        "hub.mode": mode,
        "hub.topic": topic,
        "hub.callback": callback,
        "hub.verify": "async",
        "hub.verify_token": verify_token,
        "hub.secret": secret,
    }
    if mode == "subscribe" and lease_seconds:
        form["hub.lease_seconds"] = str(int(lease_seconds))
    return form


class HubClient:
    def __init__(
        self,
        *,
        hub_url: str,
        timeout: float = 10.0,
        http_client: httpx.AsyncClient | None = None,
    ) -> None:
        self._hub_url = hub_url
        self._timeout = timeout
        self._client = http_client

    @property
    def hub_url(self) -> str:
        return self._hub_url

    async def request(self, form: Dict[str, str]) -> int:
        """POST *form* to the hub and return the response status.

        The hub answers ``202 Accepted`` for async verification; any non-2xx
        status raises :class:`UpstreamUnavailable`.
        """

        mode = form.get("hub.mode", "subscribe")
        logger.debug("sending %s request to %s", mode, self._hub_url)
        try:
            if self._client is not None:
                response = await self._client.post(
                    self._hub_url, data=form, timeout=self._timeout
                )
            else:
                async with _http_client_factory(timeout=self._timeout) as client:
                    response = await client.post(self._hub_url, data=form)
        except httpx.HTTPError as exc:
            raise UpstreamUnavailable(f"hub {mode} request failed: {exc}") from exc
        if not response.is_success:
            raise UpstreamUnavailable(
                f"hub {mode} returned {response.status_code}",
                upstream_status=response.status_code,
            )
        return response.status_code


__all__ = ["HubClient", "HubMode", "build_subscription_form"]
