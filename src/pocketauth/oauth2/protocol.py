# Storage and identity capability interfaces.
# Created: 2026-10-18
#
# The engine never touches a database directly. Implement these protocols
# (SQL, Redis, files, ...) and pass the implementation to AuthorizationServer.

from __future__ import annotations

from typing import Protocol

from pocketauth.oauth2.models import AccessToken, Application, AuthorizationCode, User


class ClientStore(Protocol):
    async def get_application(self, client_id: str) -> Application | None:
        """Resolve a client id to its registered application."""
        ...


class IdentityStore(Protocol):
    async def get_user(self, user_id: str) -> User | None:
        ...

    async def verify_username_and_password(self, username: str, password: str) -> str | None:
        """Return the user id if the credentials are valid."""
        ...


class CodeStore(Protocol):
    async def save_authorization_code(
        self, code: str, client_id: str, user_id: str, scope: str | None
    ) -> None:
        ...

    async def get_authorization_code(self, client_id: str, code: str) -> AuthorizationCode | None:
        ...

    async def consume_authorization_code(
        self, client_id: str, code: str
    ) -> AuthorizationCode | None:
        """Atomically look up and invalidate a code.

        Of two concurrent calls for the same code, exactly one may return
        the record; the other must return None.
        """
        ...

    async def revoke_authorization_code(self, code: str) -> None:
        ...


class TokenStore(Protocol):
    async def save_access_token(self, token: AccessToken) -> None:
        ...

    async def get_access_token(self, access_token: str) -> AccessToken | None:
        ...

    async def get_access_token_by_refresh_token(
        self, client_id: str, refresh_token: str
    ) -> AccessToken | None:
        ...

    async def consume_refresh_token(
        self, client_id: str, refresh_token: str
    ) -> AccessToken | None:
        """Atomically look up and invalidate a refresh token (same contract
        as ``CodeStore.consume_authorization_code``)."""
        ...

    async def revoke_refresh_token(self, client_id: str, refresh_token: str) -> None:
        ...


class OAuthStoreProtocol(ClientStore, IdentityStore, CodeStore, TokenStore, Protocol):
    """Everything the engine needs, in one object."""
