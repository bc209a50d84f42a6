"""Security helpers for push-notification and control-token authentication."""

from __future__ import annotations

import hashlib
import hmac

from fastapi import Depends, Header, HTTPException, status

from livestatus.config import LiveStatusSettings, get_settings
from livestatus.errors import AuthenticationFailure

_SIGNATURE_PREFIX = "sha256="


def constant_time_equals(presented: str, expected: str) -> bool:
    """Compare two strings byte-wise without short-circuiting on the first mismatch.

    Lengths are checked first; equal-length inputs are XOR-accumulated over the
    full presented length so the running time does not depend on where the
    first differing byte sits.
    """

    left = presented.encode("utf-8")
    right = expected.encode("utf-8")
    if len(left) != len(right):
        return False
    diff = 0
    for a, b in zip(left, right):
        diff |= a ^ b
    return diff == 0


def compute_signature(secret: str, body: bytes) -> str:
    """Return the lowercase hex HMAC-SHA256 of *body* keyed by *secret*."""

    return hmac.new(secret.encode("utf-8"), body, hashlib.sha256).hexdigest()


def signature_header(secret: str, body: bytes) -> str:
    return _SIGNATURE_PREFIX + compute_signature(secret, body)


def verify_shared_token(token: str | None, secret: str) -> bool:
    if not token or not secret:
        return False
    return constant_time_equals(token, secret)


def verify_signature(header: str | None, body: bytes, secret: str) -> bool:
    """Check an optional ``X-Hub-Signature-256`` header.

    A missing header (or one that is not ``sha256=...``) is accepted because the
    shared-secret token is already mandatory.
    """

    if not header or not header.startswith(_SIGNATURE_PREFIX):
        return True
    presented = header[len(_SIGNATURE_PREFIX) :]
    return constant_time_equals(presented, compute_signature(secret, body))


def authenticate_notification(
    token: str | None, signature: str | None, body: bytes, secret: str
) -> None:
    """Raise :class:`AuthenticationFailure` unless the notification is trusted."""

    if not verify_shared_token(token, secret):
        raise AuthenticationFailure("invalid webhook token")
    if not verify_signature(signature, body, secret):
        raise AuthenticationFailure("invalid signature")


def require_control_token(
    x_control_token: str | None = Header(default=None, alias="x-control-token"),
    settings: LiveStatusSettings = Depends(get_settings),
) -> str:
    """Require the privileged control token used by ``/update`` and ``/reconcile``."""

    if not verify_shared_token(x_control_token, settings.update_secret):
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="invalid control token",
        )
    hint = x_control_token[-4:] if len(x_control_token) >= 4 else x_control_token
    return f"control:{hint}"


__all__ = [
    "authenticate_notification",
    "compute_signature",
    "constant_time_equals",
    "require_control_token",
    "signature_header",
    "verify_shared_token",
    "verify_signature",
]
