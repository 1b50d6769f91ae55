# OAuth2 authorization server engine.
# Created: 2026-10-18
#
# Implements the /authorize step of the authorization code flow and the
# /token step for four grants: authorization_code, password,
# client_credentials, refresh_token. Framework-agnostic: the FastAPI router
# in pocketauth.api.v1.oauth2 turns the outcomes below into HTTP responses.

from __future__ import annotations

import logging
from collections.abc import Awaitable, Callable, Mapping
from dataclasses import dataclass
from typing import Any
from urllib.parse import urlencode

from pocketauth.audit import AuditLogger, AuditSeverity
from pocketauth.oauth2.errors import (
    ACCESS_DENIED,
    INVALID_CLIENT,
    INVALID_GRANT,
    UNAUTHORIZED_CLIENT,
    UNEXPECTED,
    UNSUPPORTED_GRANT_TYPE,
    UNSUPPORTED_RESPONSE_TYPE,
    ConfigurationError,
    OAuthError,
)
from pocketauth.oauth2.issuer import TokenIssuer
from pocketauth.oauth2.models import AccessToken, Application, GrantType
from pocketauth.oauth2.protocol import (
    ClientStore,
    CodeStore,
    IdentityStore,
    OAuthStoreProtocol,
    TokenStore,
)
from pocketauth.oauth2.requests import (
    AuthorizationCodeGrant,
    AuthorizeRequest,
    ClientCredentialsGrant,
    PasswordGrant,
    RefreshTokenGrant,
    TokenRequest,
    parse_token_request,
)
from pocketauth.oauth2.validator import secrets_match, validate_application

logger = logging.getLogger(__name__)

DEFAULT_LOGIN_URL = "http://localhost:3000/login"


# =========================================================================
# /authorize outcomes
# =========================================================================


@dataclass(frozen=True)
class LoginRequired:
    """No authenticated resource owner; send the browser to the login page."""

    location: str


@dataclass(frozen=True)
class Redirect:
    """Send the browser back to the client's redirect URI."""

    location: str


@dataclass(frozen=True)
class InlineError:
    """Answer the caller directly. Used when no trusted redirect target exists."""

    message: str
    status_code: int = 400


AuthorizeOutcome = LoginRequired | Redirect | InlineError


# =========================================================================
# /token results
# =========================================================================


@dataclass(frozen=True)
class TokenGranted:
    token: AccessToken
    body: dict[str, Any]


@dataclass(frozen=True)
class ProtocolFailure:
    error: OAuthError


@dataclass(frozen=True)
class InternalFailure:
    exception: Exception

    @property
    def status_code(self) -> int:
        # Corrupt registration data is our fault, anything else stays 400.
        return 500 if isinstance(self.exception, ConfigurationError) else 400

    def to_dict(self) -> dict[str, str]:
        return {"error": UNEXPECTED}


TokenResult = TokenGranted | ProtocolFailure | InternalFailure


def append_query(uri: str, params: Mapping[str, str]) -> str:
    """Append *params* to *uri*, keeping any query it already has."""
    separator = "&" if "?" in uri else "?"
    return f"{uri}{separator}{urlencode(params)}"


class AuthorizationServer:
    """OAuth2 authorization server.

    Holds no state of its own. Every store is injected; by default a single
    object implementing all four capabilities is used for each of them.
    """

    def __init__(
        self,
        storage: OAuthStoreProtocol | None = None,
        issuer: TokenIssuer | None = None,
        login_url: str = DEFAULT_LOGIN_URL,
        audit_logger: AuditLogger | None = None,
        *,
        clients: ClientStore | None = None,
        identities: IdentityStore | None = None,
        codes: CodeStore | None = None,
        tokens: TokenStore | None = None,
    ):
        if storage is None and None in (clients, identities, codes, tokens):
            from pocketauth.oauth2.storage import OAuthStorage

            storage = OAuthStorage()
        self.storage = storage
        self.clients: ClientStore = clients or storage
        self.identities: IdentityStore = identities or storage
        self.codes: CodeStore = codes or storage
        self.tokens: TokenStore = tokens or storage
        self.issuer = issuer or TokenIssuer()
        self.login_url = login_url
        self.audit = audit_logger

        self._grant_handlers: dict[str, Callable[[Application, Any], Awaitable[TokenGranted]]] = {
            GrantType.AUTHORIZATION_CODE.value: self._authorization_code_grant,
            GrantType.PASSWORD.value: self._password_grant,
            GrantType.CLIENT_CREDENTIALS.value: self._client_credentials_grant,
            GrantType.REFRESH_TOKEN.value: self._refresh_token_grant,
        }

    def _audit(self, action: str, client_id: str, user_id: str | None = None, **context: Any) -> None:
        if self.audit is None:
            return
        severity = context.pop("severity", AuditSeverity.INFO)
        self.audit.log_grant(action, client_id, user_id, severity=severity, **context)

    def _validate(self, application: Application) -> None:
        try:
            validate_application(application)
        except ConfigurationError:
            logger.error("Registration for client %s is invalid", application.client_id)
            raise

    # =====================================================================
    # /authorize
    # =====================================================================

    async def prepare(
        self, request: AuthorizeRequest, user_id: str | None
    ) -> LoginRequired | InlineError | Application:
        """Check an /authorize request without issuing anything.

        Returns the client's Application when the request may proceed to
        consent, otherwise the outcome to send back. Raises
        ConfigurationError if the client's stored registration is invalid;
        that is never turned into a redirect.
        """
        if not user_id:
            return LoginRequired(self.login_url)

        application = await self.clients.get_application(request.client_id)
        if application is None:
            return InlineError("Client not found")

        self._validate(application)

        user = await self.identities.get_user(user_id)
        if user is None:
            return InlineError("User not found")

        # Exact match only: no prefix, host or normalisation tricks.
        if request.redirect_uri != application.redirect_uri:
            logger.info(
                "Redirect URI mismatch for client %s: %r", application.client_id, request.redirect_uri
            )
            return InlineError("Redirect URI mismatch!")

        return application

    async def authorize(
        self, request: AuthorizeRequest, user_id: str | None, approved: bool = True
    ) -> AuthorizeOutcome:
        """Run the authorization step and issue a code on success."""
        prepared = await self.prepare(request, user_id)
        if not isinstance(prepared, Application):
            return prepared
        application = prepared

        if request.response_type != "code":
            return Redirect(
                append_query(application.redirect_uri, {"error": UNSUPPORTED_RESPONSE_TYPE})
            )

        params: dict[str, str] = {}
        if approved:
            code = self.issuer.generate_authorization_code(
                application.client_id, user_id, request.scope
            )
            await self.codes.save_authorization_code(
                code, application.client_id, user_id, request.scope
            )
            self._audit("code_issued", application.client_id, user_id, scope=request.scope)
            params["code"] = code
        else:
            params["error"] = ACCESS_DENIED
        if request.state is not None:
            params["state"] = request.state
        return Redirect(append_query(application.redirect_uri, params))

    # =====================================================================
    # /token
    # =====================================================================

    async def handle_token_request(self, data: Mapping[str, Any]) -> TokenResult:
        """Parse a raw token body and run it. Never raises."""
        try:
            request = parse_token_request(data)
        except OAuthError as exc:
            logger.info("Rejected token request: %s", exc)
            return ProtocolFailure(exc)
        except Exception as exc:
            logger.exception("Unexpected error parsing token request")
            return InternalFailure(exc)
        return await self.token(request)

    async def token(self, request: TokenRequest) -> TokenResult:
        """Run a typed token request. Never raises."""
        try:
            granted = await self._grant(request)
        except OAuthError as exc:
            logger.info("Token request from client %s denied: %s", request.client_id, exc)
            self._audit(
                "token_denied",
                request.client_id,
                severity=AuditSeverity.WARNING,
                grant_type=request.grant_type,
                error=exc.error,
            )
            return ProtocolFailure(exc)
        except Exception as exc:
            logger.exception(
                "Unexpected error handling %s grant for client %s",
                request.grant_type,
                request.client_id,
            )
            self._audit(
                "token_error",
                request.client_id,
                severity=AuditSeverity.CRITICAL,
                grant_type=request.grant_type,
                error=type(exc).__name__,
            )
            return InternalFailure(exc)

        self._audit(
            "token_issued",
            granted.token.client_id,
            granted.token.user_id,
            grant_type=request.grant_type,
            scope=granted.token.scope,
        )
        return granted

    async def _grant(self, request: TokenRequest) -> TokenGranted:
        application = await self.clients.get_application(request.client_id)
        if application is None:
            raise OAuthError(INVALID_CLIENT, "Client not found")

        self._validate(application)

        if application.is_confidential and not secrets_match(
            application.client_secret, request.client_secret
        ):
            raise OAuthError(UNAUTHORIZED_CLIENT, "Invalid client secret")

        handler = self._grant_handlers.get(request.grant_type)
        if handler is None:
            raise OAuthError(UNSUPPORTED_GRANT_TYPE, f"Unsupported grant_type: {request.grant_type}")
        return await handler(application, request)

    async def _issue(
        self,
        application: Application,
        user_id: str | None,
        scope: str | None,
        grant_type: GrantType,
    ) -> TokenGranted:
        token = self.issuer.generate_access_token(
            client_id=application.client_id,
            user_id=user_id,
            scope=scope,
            grant_type=grant_type,
        )
        await self.tokens.save_access_token(token)
        return TokenGranted(token=token, body=self.issuer.token_response_body(token))

    async def _after_issue(self, what: str, revoke: Callable[[], Awaitable[None]]) -> None:
        # The new token is already persisted; a failed revoke never fails the grant.
        try:
            await revoke()
        except Exception:
            logger.warning("Failed to revoke %s after issuing token", what, exc_info=True)

    async def _authorization_code_grant(
        self, application: Application, request: AuthorizationCodeGrant
    ) -> TokenGranted:
        record = await self.codes.consume_authorization_code(application.client_id, request.code)
        if record is None:
            raise OAuthError(INVALID_GRANT, "Authorization code not found")

        granted = await self._issue(
            application, record.user_id, record.scope, GrantType.AUTHORIZATION_CODE
        )
        await self._after_issue(
            "authorization code", lambda: self.codes.revoke_authorization_code(request.code)
        )
        return granted

    async def _password_grant(self, application: Application, request: PasswordGrant) -> TokenGranted:
        user_id = await self.identities.verify_username_and_password(
            request.username, request.password
        )
        if not user_id:
            raise OAuthError(INVALID_GRANT, "User not found or password invalid")

        return await self._issue(application, user_id, request.scope, GrantType.PASSWORD)

    async def _client_credentials_grant(
        self, application: Application, request: ClientCredentialsGrant
    ) -> TokenGranted:
        if not application.is_confidential:
            raise OAuthError(UNSUPPORTED_GRANT_TYPE, "Only enabled for confidential clients")

        return await self._issue(application, None, request.scope, GrantType.CLIENT_CREDENTIALS)

    async def _refresh_token_grant(
        self, application: Application, request: RefreshTokenGrant
    ) -> TokenGranted:
        old = await self.tokens.consume_refresh_token(application.client_id, request.refresh_token)
        if old is None:
            raise OAuthError(INVALID_GRANT, "Refresh token not found")

        granted = await self._issue(application, old.user_id, old.scope, GrantType.REFRESH_TOKEN)
        await self._after_issue(
            "refresh token",
            lambda: self.tokens.revoke_refresh_token(application.client_id, request.refresh_token),
        )
        return granted

    # =====================================================================
    # Bearer checks for resource routes
    # =====================================================================

    async def verify_access_token(self, access_token: str) -> AccessToken | None:
        """Return the token record if *access_token* exists and has not expired."""
        token = await self.tokens.get_access_token(access_token)
        if token is None:
            return None
        if self.issuer.now() > token.access_token_expires_on:
            return None
        return token


# Singleton
_server: AuthorizationServer | None = None


def get_oauth_server() -> AuthorizationServer:
    global _server
    if _server is None:
        from pocketauth.audit import get_audit_logger
        from pocketauth.config import get_settings
        from pocketauth.oauth2.storage import OAuthStorage

        settings = get_settings()
        _server = AuthorizationServer(
            storage=OAuthStorage.from_settings(settings),
            issuer=TokenIssuer.from_settings(settings),
            login_url=settings.login_url,
            audit_logger=get_audit_logger(),
        )
    return _server


def reset_oauth_server() -> None:
    global _server
    _server = None
