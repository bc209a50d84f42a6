"""
Import shim for ASGI servers: exposes `app` at top-level `server_app`
(`uvicorn server_app:app`).
"""

from livestatus.app import app

__all__ = ["app"]
