from __future__ import annotations

import os
from typing import List

from livestatus.config import LiveStatusSettings, get_settings


def _is_strict_env() -> bool:
    env = os.getenv("APP_ENV", "").strip().lower()
    return os.getenv("STAGING") == "1" or env in {"staging", "production", "prod"}


def validate_startup(settings: LiveStatusSettings | None = None) -> None:
    """Fail fast on missing critical configuration."""

    if not _is_strict_env():
        return
    settings = settings or get_settings()
    errors: List[str] = []

    if not settings.webhook_secret:
        errors.append("WEBHOOK_SECRET must be set to accept push notifications")
    if not settings.verify_token:
        errors.append("VERIFY_TOKEN must be set to verify hub handshakes")
    if not settings.update_secret:
        errors.append("UPDATE_SECRET must be set for /update and /reconcile")
    if not settings.youtube_api_key:
        errors.append("YT_API_KEY must be set to classify livestreams")

    if errors:
        joined = "; ".join(errors)
        raise RuntimeError(f"Startup validation failed: {joined}")


__all__ = ["validate_startup"]
