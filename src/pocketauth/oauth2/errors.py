# OAuth2 error types.
# Created: 2026-10-18
#
# OAuthError is a client-correctable protocol error (RFC 6749 section 5.2).
# ConfigurationError means a stored registration is corrupt; it is a server
# fault and must never be turned into a redirect.

from __future__ import annotations

from urllib.parse import urlencode

INVALID_REQUEST = "invalid_request"
ACCESS_DENIED = "access_denied"
INVALID_CLIENT = "invalid_client"
UNAUTHORIZED_CLIENT = "unauthorized_client"
INVALID_GRANT = "invalid_grant"
UNSUPPORTED_GRANT_TYPE = "unsupported_grant_type"
UNSUPPORTED_RESPONSE_TYPE = "unsupported_response_type"
UNEXPECTED = "unexpected"


class OAuthError(Exception):
    """Protocol error reported back to the client."""

    def __init__(
        self,
        error: str,
        error_description: str = "",
        redirect_uri: str | None = None,
    ):
        super().__init__(f"{error}: {error_description}" if error_description else error)
        self.error = error
        self.error_description = error_description
        self.redirect_uri = redirect_uri

    def to_dict(self) -> dict[str, str]:
        return {"error": self.error, "error_description": self.error_description}

    def redirect_location(self) -> str | None:
        """``<redirect_uri>?error=<error>``, or None without a redirect target."""
        if not self.redirect_uri:
            return None
        return f"{self.redirect_uri}?{urlencode({'error': self.error})}"


class ConfigurationError(Exception):
    """Stored application data is invalid (bad redirect URI, bad client type)."""
