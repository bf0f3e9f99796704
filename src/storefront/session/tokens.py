"""Unverified reads of session token claims.

Tokens are opaque to the engine; when one happens to be a JWT its payload is
read (never verified) for the user id and expiry.
"""

from __future__ import annotations

import base64
import binascii
import json
from datetime import UTC, datetime

_EXPIRED_MARKERS = (
    "jwt expired",
    "invalid token",
    "token expired",
    "unauthorized",
    "session expired",
)


def decode_claims(token: str | None) -> dict | None:
    """Return the JWT payload as a dict, or None if ``token`` is not a JWT."""
    if not token:
        return None
    parts = token.split(".")
    if len(parts) != 3:
        return None
    payload = parts[1]
    payload += "=" * (-len(payload) % 4)
    try:
        claims = json.loads(base64.urlsafe_b64decode(payload.encode("ascii")))
    except (binascii.Error, UnicodeError, ValueError):
        return None
    return claims if isinstance(claims, dict) else None


def user_id_from_token(token: str | None) -> str | None:
    claims = decode_claims(token) or {}
    user_id = claims.get("userId") or claims.get("sub")
    return str(user_id) if user_id else None


def is_token_expired(token: str | None, now: datetime | None = None) -> bool:
    """True only when the token carries an ``exp`` claim in the past."""
    claims = decode_claims(token)
    if not claims or "exp" not in claims:
        return False
    try:
        expires_at = datetime.fromtimestamp(float(claims["exp"]), tz=UTC)
    except (TypeError, ValueError, OverflowError):
        return True
    return expires_at <= (now or datetime.now(UTC))


def looks_like_auth_expiry(payload) -> bool:
    """Heuristic over a 401 body: does it say the session is gone?"""
    if not payload:
        return False
    text = payload if isinstance(payload, str) else json.dumps(payload, default=str)
    lowered = text.lower()
    return any(marker in lowered for marker in _EXPIRED_MARKERS)
