# OAuth2 authorization server engine.
# Created: 2026-10-18

from pocketauth.oauth2.errors import ConfigurationError, OAuthError
from pocketauth.oauth2.issuer import TokenIssuer
from pocketauth.oauth2.models import (
    AccessToken,
    Application,
    AuthorizationCode,
    ClientType,
    GrantType,
    User,
)
from pocketauth.oauth2.server import (
    AuthorizationServer,
    InlineError,
    InternalFailure,
    LoginRequired,
    ProtocolFailure,
    Redirect,
    TokenGranted,
    get_oauth_server,
    reset_oauth_server,
)
from pocketauth.oauth2.storage import OAuthStorage

__all__ = [
    "AccessToken",
    "Application",
    "AuthorizationCode",
    "AuthorizationServer",
    "ClientType",
    "ConfigurationError",
    "GrantType",
    "InlineError",
    "InternalFailure",
    "LoginRequired",
    "OAuthError",
    "OAuthStorage",
    "ProtocolFailure",
    "Redirect",
    "TokenGranted",
    "TokenIssuer",
    "User",
    "get_oauth_server",
    "reset_oauth_server",
]
