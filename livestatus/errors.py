"""Error taxonomy shared by the live-status actor and its routes."""

from __future__ import annotations


class LiveStatusError(Exception):
    """Base error for the live-status service."""

    status_code: int = 500


class AuthenticationFailure(LiveStatusError):
    """Raised when a push notification fails the token or signature check."""

    status_code = 401


class ValidationFailure(LiveStatusError):
    """Raised for malformed handshakes or privileged-update bodies."""

    status_code = 400


class RateLimited(LiveStatusError):
    """Raised when a manual refresh arrives inside the cooldown window."""

    status_code = 429

    def __init__(self, retry_after: int) -> None:
        super().__init__(f"retry in {retry_after}s")
        self.retry_after = retry_after


class UpstreamUnavailable(LiveStatusError):
    """Raised when YouTube or the hub fails or answers with a non-success status."""

    status_code = 502

    def __init__(self, message: str, upstream_status: int | None = None) -> None:
        super().__init__(message)
        self.upstream_status = upstream_status


__all__ = [
    "AuthenticationFailure",
    "LiveStatusError",
    "RateLimited",
    "UpstreamUnavailable",
    "ValidationFailure",
]
