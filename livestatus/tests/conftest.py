"""Shared pytest fixtures for live-status tests."""

from __future__ import annotations

from typing import Any, Dict, List, Optional
from urllib.parse import parse_qsl

import httpx
import pytest
from fastapi.testclient import TestClient

from livestatus.app import app
from livestatus.config import LiveStatusSettings, get_settings
from livestatus.providers.hub import HubClient
from livestatus.providers.youtube import YouTubeClient
from livestatus.services import live_status as live_status_module
from livestatus.services.live_status import LiveStatusActor, get_live_status_actor
from livestatus.services.state_store import StateStore

MOUNT = "/api/uptime"
WEBHOOK_SECRET = "hook-secret"
VERIFY_TOKEN = "verify-me"
UPDATE_SECRET = "control-secret"


class FakeYouTube:
    """In-memory stand-in for the YouTube Data API served through MockTransport."""

    def __init__(self) -> None:
        self.videos: Dict[str, Optional[Dict[str, Any]]] = {}
        self.live_search: Optional[str] = None
        self.status_code = 200
        self.calls: List[httpx.Request] = []

    def set_live(self, video_id: str) -> None:
        self.videos[video_id] = {"actualStartTime": "2024-01-01T00:00:00Z"}

    def set_ended(self, video_id: str) -> None:
        self.videos[video_id] = {
            "actualStartTime": "2024-01-01T00:00:00Z",
            "actualEndTime": "2024-01-01T02:00:00Z",
        }

    def set_upload(self, video_id: str) -> None:
        self.videos[video_id] = None

    def handler(self, request: httpx.Request) -> httpx.Response:
        self.calls.append(request)
        if self.status_code != 200:
            return httpx.Response(self.status_code, json={"error": "quota"})
        if request.url.path.endswith("/videos"):
            video_id = request.url.params.get("id", "")
            if video_id not in self.videos:
                return httpx.Response(200, json={"items": []})
            item: Dict[str, Any] = {"id": video_id}
            details = self.videos[video_id]
            if details is not None:
                item["liveStreamingDetails"] = details
            return httpx.Response(200, json={"items": [item]})
        if request.url.path.endswith("/search"):
            items = []
            if self.live_search:
                items.append({"id": {"kind": "youtube#video", "videoId": self.live_search}})
            return httpx.Response(200, json={"items": items})
        return httpx.Response(404)

    def client(self) -> YouTubeClient:
        transport = httpx.MockTransport(self.handler)
        return YouTubeClient(
            api_key="yt-key", http_client=httpx.AsyncClient(transport=transport)
        )


class FakeHub:
    def __init__(self) -> None:
        self.status_code = 202
        self.forms: List[Dict[str, str]] = []

    def handler(self, request: httpx.Request) -> httpx.Response:
        self.forms.append(dict(parse_qsl(request.content.decode())))
        return httpx.Response(self.status_code)

    def client(self, hub_url: str) -> HubClient:
        transport = httpx.MockTransport(self.handler)
        return HubClient(hub_url=hub_url, http_client=httpx.AsyncClient(transport=transport))


class FakeClock:
    def __init__(self, start_ms: int) -> None:
        self.value = start_ms

    def now_ms(self) -> int:
        return self.value

    def advance(self, seconds: float) -> int:
        self.value += int(seconds * 1000)
        return self.value


@pytest.fixture
def settings(tmp_path) -> LiveStatusSettings:
    return LiveStatusSettings(
        youtube_api_key="yt-key",
        webhook_secret=WEBHOOK_SECRET,
        verify_token=VERIFY_TOKEN,
        update_secret=UPDATE_SECRET,
        state_path=str(tmp_path / "state.json"),
        reconcile_interval_seconds=0,
    )


@pytest.fixture
def youtube() -> FakeYouTube:
    return FakeYouTube()


@pytest.fixture
def hub() -> FakeHub:
    return FakeHub()


@pytest.fixture
def clock(monkeypatch) -> FakeClock:
    fake = FakeClock(start_ms=1_700_000_000_000)
    monkeypatch.setattr(live_status_module, "_now_ms", fake.now_ms)
    return fake


@pytest.fixture
def actor(settings, youtube, hub) -> LiveStatusActor:
    return LiveStatusActor(
        settings,
        store=StateStore(settings.state_path),
        youtube=youtube.client(),
        hub=hub.client(settings.hub_url),
    )


@pytest.fixture
def client(settings, actor):
    app.dependency_overrides[get_live_status_actor] = lambda: actor
    app.dependency_overrides[get_settings] = lambda: settings
    test_client = TestClient(app, raise_server_exceptions=False)
    yield test_client
    app.dependency_overrides.pop(get_live_status_actor, None)
    app.dependency_overrides.pop(get_settings, None)


def feed_xml(video_id: str | None = None, *, entries: int = 1) -> bytes:
    body = [
        '<?xml version="1.0" encoding="UTF-8"?>',
        '<feed xmlns:yt="http://www.youtube.com/xml/schemas/2015" '
        'xmlns="http://www.w3.org/2005/Atom">',
        "<title>YouTube video feed</title>",
    ]
    for index in range(entries):
        vid = video_id if index == 0 else f"{video_id}-{index}"
        body.append("<entry>")
        if vid:
            body.append(f"<yt:videoId>{vid}</yt:videoId>")
        body.append("<yt:channelId>UC2I6ta1bWX7DnEuYNvHiptQ</yt:channelId>")
        body.append("</entry>")
    body.append("</feed>")
    return "\n".join(body).encode("utf-8")
