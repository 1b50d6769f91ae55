# Code and token generation.
# Created: 2026-10-18
#
# The only place that touches randomness or the clock. Every code and token
# is an opaque secrets.token_urlsafe() string; nothing about the client, user
# or scope can be recovered from it.

from __future__ import annotations

import secrets
from collections.abc import Callable
from datetime import UTC, datetime, timedelta
from typing import Any

from pocketauth.oauth2.models import AccessToken, ClientType, GrantType

ACCESS_TOKEN_TTL = timedelta(hours=1)
REFRESH_TOKEN_TTL = timedelta(days=30)

_TOKEN_BYTES = 32


def _utcnow() -> datetime:
    return datetime.now(UTC)


class TokenIssuer:
    """Generates authorization codes, token pairs and response bodies."""

    def __init__(
        self,
        access_token_ttl: timedelta = ACCESS_TOKEN_TTL,
        refresh_token_ttl: timedelta = REFRESH_TOKEN_TTL,
        code_prefix: str = "pac_",
        access_token_prefix: str = "pat_",
        refresh_token_prefix: str = "prt_",
        clock: Callable[[], datetime] = _utcnow,
    ):
        self.access_token_ttl = access_token_ttl
        self.refresh_token_ttl = refresh_token_ttl
        self.code_prefix = code_prefix
        self.access_token_prefix = access_token_prefix
        self.refresh_token_prefix = refresh_token_prefix
        self._clock = clock

    @classmethod
    def from_settings(cls, settings=None) -> TokenIssuer:
        if settings is None:
            from pocketauth.config import get_settings

            settings = get_settings()
        return cls(
            access_token_ttl=timedelta(seconds=settings.access_token_ttl),
            refresh_token_ttl=timedelta(days=settings.refresh_token_ttl_days),
            code_prefix=settings.code_prefix,
            access_token_prefix=settings.access_token_prefix,
            refresh_token_prefix=settings.refresh_token_prefix,
        )

    @property
    def expires_in(self) -> int:
        return int(self.access_token_ttl.total_seconds())

    def now(self) -> datetime:
        return self._clock()

    def _random(self, prefix: str) -> str:
        return f"{prefix}{secrets.token_urlsafe(_TOKEN_BYTES)}"

    def generate_authorization_code(
        self, client_id: str, user_id: str, scope: str | None = None
    ) -> str:
        # The binding to (client_id, user_id, scope) lives in the CodeStore
        # record, never in the code itself.
        return self._random(self.code_prefix)

    def generate_access_token(
        self,
        client_id: str,
        user_id: str | None,
        scope: str | None,
        grant_type: GrantType | str,
    ) -> AccessToken:
        """Build a new token record with absolute expiry timestamps."""
        issued_at = self.now()
        refresh_token = None
        refresh_token_expires_on = None
        if GrantType(grant_type) is not GrantType.CLIENT_CREDENTIALS:
            refresh_token = self._random(self.refresh_token_prefix)
            refresh_token_expires_on = issued_at + self.refresh_token_ttl

        return AccessToken(
            access_token=self._random(self.access_token_prefix),
            access_token_expires_on=issued_at + self.access_token_ttl,
            client_id=client_id,
            scope=scope,
            user_id=user_id,
            refresh_token=refresh_token,
            refresh_token_expires_on=refresh_token_expires_on,
        )

    def token_response_body(self, token: AccessToken) -> dict[str, Any]:
        body: dict[str, Any] = {
            "access_token": token.access_token,
            "token_type": "bearer",
            "expires_in": self.expires_in,
        }
        if token.refresh_token:
            body["refresh_token"] = token.refresh_token
        return body

    def generate_client_credentials(
        self, client_type: ClientType | str
    ) -> tuple[str, str | None]:
        """Return a fresh (client_id, client_secret) pair for registration.

        Public clients get no secret.
        """
        client_id = secrets.token_hex(16)
        if ClientType(client_type) is ClientType.PUBLIC:
            return client_id, None
        return client_id, secrets.token_urlsafe(_TOKEN_BYTES)
