"""YouTube Data API client used to classify videos and search for live broadcasts."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Dict, Mapping, Optional

import httpx

from livestatus.errors import UpstreamUnavailable

logger = logging.getLogger(__name__)

YOUTUBE_API_BASE = "https://www.googleapis.com/youtube/v3"


@dataclass(frozen=True)
class LiveDetails:
    """The ``liveStreamingDetails`` view of a single video."""

    video_id: str
    has_details: bool
    actual_start_time: Optional[str] = None
    actual_end_time: Optional[str] = None

    @property
    def is_livestream(self) -> bool:
        """True for any broadcast (upcoming, live or ended); False for plain uploads."""

        return self.has_details

    @property
    def has_ended(self) -> bool:
        return not self.has_details or bool(self.actual_end_time)


def _http_client_factory(**kwargs: Any) -> httpx.AsyncClient:
    timeout = kwargs.pop("timeout", 10.0)
    return httpx.AsyncClient(timeout=timeout, **kwargs)


class YouTubeClient:
    def __init__(
        self,
        *,
        api_key: str,
        timeout: float = 10.0,
        http_client: httpx.AsyncClient | None = None,
        base_url: str = YOUTUBE_API_BASE,
    ) -> None:
        self._api_key = api_key
        self._timeout = timeout
        self._client = http_client
        self._base_url = base_url.rstrip("/")

    async def _get(self, path: str, params: Mapping[str, str]) -> Dict[str, Any]:
        query = {**params, "key": self._api_key}
        url = f"{self._base_url}{path}"
        try:
            if self._client is not None:
                response = await self._client.get(url, params=query, timeout=self._timeout)
            else:
                async with _http_client_factory(timeout=self._timeout) as client:
                    response = await client.get(url, params=query)
        except httpx.HTTPError as exc:
            raise UpstreamUnavailable(f"youtube {path} request failed: {exc}") from exc
        if response.status_code != 200:
            raise UpstreamUnavailable(
                f"youtube {path} returned {response.status_code}",
                upstream_status=response.status_code,
            )
        try:
            payload = response.json()
        except ValueError as exc:
            raise UpstreamUnavailable(f"youtube {path} returned invalid JSON") from exc
        return payload if isinstance(payload, dict) else {}

    async def live_details(self, video_id: str) -> LiveDetails:
        payload = await self._get(
            "/videos", {"part": "liveStreamingDetails", "id": video_id}
        )
        items = payload.get("items")
        if not isinstance(items, list):
            items = []
        item = items[0] if items and isinstance(items[0], dict) else {}
        details = item.get("liveStreamingDetails")
        if not isinstance(details, dict):
            return LiveDetails(video_id=video_id, has_details=False)
        return LiveDetails(
            video_id=video_id,
            has_details=True,
            actual_start_time=details.get("actualStartTime"),
            actual_end_time=details.get("actualEndTime"),
        )

    async def search_live(self, channel_id: str) -> Optional[str]:
        """Return the id of a video currently live on *channel_id*, if any."""

        payload = await self._get(
            "/search",
            {
                "part": "id",
                "channelId": channel_id,
                "eventType": "live",
                "type": "video",
            },
        )
        items = payload.get("items")
        if not isinstance(items, list):
            items = []
        first = items[0] if items and isinstance(items[0], dict) else {}
        ident = first.get("id")
        video_id = ident.get("videoId") if isinstance(ident, dict) else None
        if isinstance(video_id, str) and video_id:
            return video_id
        return None

    async def channel(self, channel_id: str) -> Dict[str, Any]:
        return await self._get("/channels", {"part": "snippet,statistics", "id": channel_id})

    async def video(self, video_id: str) -> Dict[str, Any]:
        return await self._get(
            "/videos", {"part": "snippet,liveStreamingDetails", "id": video_id}
        )


__all__ = ["LiveDetails", "YouTubeClient", "YOUTUBE_API_BASE"]
