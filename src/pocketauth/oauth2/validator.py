# Checks on stored application data and presented client secrets.
# Created: 2026-10-18

from __future__ import annotations

import hmac
import re

from pocketauth.oauth2.errors import ConfigurationError
from pocketauth.oauth2.models import Application, ClientType

_REDIRECT_URI_RE = re.compile(r".+://.+")

_CLIENT_TYPES = frozenset(t.value for t in ClientType)


def validate_redirect_uri(uri: str | None) -> None:
    if not uri or not _REDIRECT_URI_RE.match(uri):
        raise ConfigurationError(f"Invalid redirect URI: {uri!r}")


def validate_client_type(client_type: str | None) -> None:
    if client_type not in _CLIENT_TYPES:
        raise ConfigurationError(f"Invalid client type: {client_type!r}")


def validate_application(application: Application) -> None:
    """Raise ConfigurationError if the registration is unusable."""
    validate_redirect_uri(application.redirect_uri)
    validate_client_type(application.client_type)


def secrets_match(expected: str | None, presented: str | None) -> bool:
    """Constant-time secret comparison. A missing value never matches."""
    if expected is None or presented is None:
        return False
    return hmac.compare_digest(expected.encode(), presented.encode())
