# OAuth2 response schemas.
# Created: 2026-10-18
#
# Request bodies are the per-grant models in pocketauth.oauth2.requests.

from __future__ import annotations

from pydantic import BaseModel


class TokenResponse(BaseModel):
    """Successful /oauth/token body. No refresh_token for client_credentials."""

    access_token: str
    token_type: str = "bearer"
    expires_in: int
    refresh_token: str | None = None


class OAuthErrorResponse(BaseModel):
    """Protocol error body (RFC 6749 section 5.2)."""

    error: str
    error_description: str | None = None
