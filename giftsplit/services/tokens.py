"""Invitation token generation."""
import secrets

TOKEN_BYTES = 24


def generate_invitation_token() -> str:
    """Return an unguessable URL-safe token (no ``=`` padding).

    Uniqueness is left to the ``gift_invitation_links.token`` constraint.
    """

    return secrets.token_urlsafe(TOKEN_BYTES)
