"""Security dependencies for organizer endpoints."""
from __future__ import annotations

import hmac

from fastapi import Depends, Header, status

from giftsplit.config import get_settings
from giftsplit.utils.errors import http_error


def _extract_key(
    authorization: str | None = Header(default=None),
    x_api_key: str | None = Header(default=None, alias="X-API-Key"),
) -> str | None:
    """Read the key from ``Authorization: Bearer ...`` or ``X-API-Key``."""
    if x_api_key:
        return x_api_key.strip()
    if authorization and authorization.startswith("Bearer "):
        return authorization.split(" ", 1)[1].strip()
    return None


def require_organizer(token: str | None = Depends(_extract_key)) -> str:
    """Validate the organizer API key and return the audit actor name."""

    expected = get_settings().ORGANIZER_API_KEY
    if not expected:
        raise http_error(
            status.HTTP_503_SERVICE_UNAVAILABLE,
            "ORGANIZER_KEY_NOT_CONFIGURED",
            "Organizer API key is not configured.",
        )
    if not token:
        raise http_error(status.HTTP_401_UNAUTHORIZED, "NO_API_KEY", "API key required.")
    if not hmac.compare_digest(token.encode("utf-8"), expected.encode("utf-8")):
        raise http_error(status.HTTP_401_UNAUTHORIZED, "UNAUTHORIZED", "Invalid API key.")
    return "organizer"


__all__ = ["require_organizer"]
