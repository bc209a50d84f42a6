"""Environment-driven configuration for the live-status service."""

from __future__ import annotations

import os
from dataclasses import dataclass
from functools import lru_cache

__all__ = [
    "DEFAULT_CHANNEL_ID",
    "DEFAULT_LEASE_SECONDS",
    "LiveStatusSettings",
    "env_bool",
    "get_settings",
    "reset_settings_cache",
]

DEFAULT_CHANNEL_ID = "UC2I6ta1bWX7DnEuYNvHiptQ"
DEFAULT_LEASE_SECONDS = 432_000
DEFAULT_HUB_URL = "https://pubsubhubbub.appspot.com/subscribe"
DEFAULT_PUBLIC_BASE_URL = "https://uptime.sw.arm.fm"
DEFAULT_MOUNT = "/api/uptime"
DEFAULT_STATE_PATH = "data/live_status/state.json"
FEED_TOPIC_TEMPLATE = "https://www.youtube.com/xml/feeds/videos.xml?channel_id={channel_id}"


@dataclass(frozen=True)
class LiveStatusSettings:
    channel_id: str = DEFAULT_CHANNEL_ID
    youtube_api_key: str = ""
    webhook_secret: str = ""
    verify_token: str = ""
    update_secret: str = ""
    lease_seconds: int = DEFAULT_LEASE_SECONDS
    hub_url: str = DEFAULT_HUB_URL
    public_base_url: str = DEFAULT_PUBLIC_BASE_URL
    mount: str = DEFAULT_MOUNT
    state_path: str = DEFAULT_STATE_PATH
    flush_cooldown_seconds: int = 30 * 60
    reconcile_interval_seconds: int = 300
    scheduled_checks: bool = True
    cors_allow_origins: tuple[str, ...] = ("*",)
    http_timeout_seconds: float = 10.0
    ws_send_timeout_seconds: float = 5.0

    @property
    def topic_url(self) -> str:
        """Feed URL the hub must echo back in ``hub.topic``."""

        return FEED_TOPIC_TEMPLATE.format(channel_id=self.channel_id)

    @property
    def callback_url(self) -> str:
        return f"{self.public_base_url.rstrip('/')}{self.mount}/webhook"

    @classmethod
    def from_env(cls) -> "LiveStatusSettings":
        origins = os.getenv("CORS_ALLOW_ORIGINS", "*").split(",")
        return cls(
            channel_id=os.getenv("YT_CHANNEL_ID", DEFAULT_CHANNEL_ID),
            youtube_api_key=os.getenv("YT_API_KEY", ""),
            webhook_secret=os.getenv("WEBHOOK_SECRET", ""),
            verify_token=os.getenv("VERIFY_TOKEN", ""),
            update_secret=os.getenv("UPDATE_SECRET", ""),
            lease_seconds=_positive_int_env("PSHB_LEASE_SECONDS", DEFAULT_LEASE_SECONDS),
            hub_url=os.getenv("PSHB_HUB_URL", DEFAULT_HUB_URL),
            public_base_url=os.getenv("PUBLIC_BASE_URL", DEFAULT_PUBLIC_BASE_URL),
            mount=_normalize_mount(os.getenv("LIVE_STATUS_MOUNT", DEFAULT_MOUNT)),
            state_path=os.getenv("LIVE_STATUS_STATE_PATH", DEFAULT_STATE_PATH),
            flush_cooldown_seconds=_positive_int_env("FLUSH_COOLDOWN_SECONDS", 30 * 60),
            reconcile_interval_seconds=max(0, _int_env("RECONCILE_INTERVAL_SECONDS", 300)),
            scheduled_checks=env_bool("ENABLE_SCHEDULED", True),
            cors_allow_origins=tuple(o.strip() for o in origins if o.strip()),
            http_timeout_seconds=_float_env("HTTP_TIMEOUT_SECONDS", 10.0),
            ws_send_timeout_seconds=_float_env("WS_SEND_TIMEOUT_SECONDS", 5.0),
        )


@lru_cache(maxsize=1)
def get_settings() -> LiveStatusSettings:
    """Return cached application settings."""

    return LiveStatusSettings.from_env()


def reset_settings_cache() -> None:
    """Clear cached settings (primarily for tests)."""

    get_settings.cache_clear()


def env_bool(name: str, default: bool = False) -> bool:
    value = os.getenv(name)
    if value is None:
        return default
    return value.strip().lower() in {"1", "true", "yes", "on"}


def _int_env(name: str, default: int) -> int:
    value = os.getenv(name)
    if value is None:
        return default
    try:
        return int(value)
    except ValueError:
        return default


def _positive_int_env(name: str, default: int) -> int:
    value = _int_env(name, default)
    return value if value > 0 else default


def _float_env(name: str, default: float) -> float:
    value = os.getenv(name)
    if value is None:
        return default
    try:
        return float(value)
    except ValueError:
        return default


def _normalize_mount(value: str) -> str:
    mount = value.strip().rstrip("/")
    if mount and not mount.startswith("/"):
        mount = "/" + mount
    return mount
