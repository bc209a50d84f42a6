import platform
import time
from typing import Any, Dict

from livestatus import __version__
from livestatus.config import get_settings
from livestatus.metrics import BUILD_VERSION, GIT_SHA


async def health() -> Dict[str, Any]:
    settings = get_settings()
    return {
        "status": "ok",
        "version": __version__,
        "build": BUILD_VERSION,
        "git": GIT_SHA,
        "ts": time.time(),
        "env": {
            "channel": settings.channel_id,
            "scheduled_checks": settings.scheduled_checks,
            "reconcile_interval_s": settings.reconcile_interval_seconds,
        },
        "runtime": {
            "python": platform.python_version(),
        },
    }
