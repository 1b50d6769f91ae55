# Typed /authorize and /token requests.
# Created: 2026-10-18
#
# Token requests are a tagged union on grant_type. Each grant gets its own
# model so a password request can never be read as a refresh request. Bodies
# are parsed here, before any store is touched.

from __future__ import annotations

from collections.abc import Mapping
from typing import Annotated, Any, Literal, Union

from pydantic import BaseModel, ConfigDict, Field, TypeAdapter, ValidationError

from pocketauth.oauth2.errors import INVALID_REQUEST, UNSUPPORTED_GRANT_TYPE, OAuthError
from pocketauth.oauth2.models import GrantType


class AuthorizeRequest(BaseModel):
    """Parameters of an /authorize call. ``state`` is passed through untouched."""

    model_config = ConfigDict(extra="ignore")

    client_id: str
    response_type: str | None = None
    redirect_uri: str | None = None
    scope: str | None = None
    state: str | None = None


class _GrantRequest(BaseModel):
    model_config = ConfigDict(extra="ignore", frozen=True)

    client_id: str = Field(..., min_length=1)
    client_secret: str | None = None


class AuthorizationCodeGrant(_GrantRequest):
    grant_type: Literal["authorization_code"]
    code: str = Field(..., min_length=1)


class PasswordGrant(_GrantRequest):
    grant_type: Literal["password"]
    username: str = Field(..., min_length=1)
    password: str
    scope: str | None = None


class ClientCredentialsGrant(_GrantRequest):
    grant_type: Literal["client_credentials"]
    scope: str | None = None


class RefreshTokenGrant(_GrantRequest):
    grant_type: Literal["refresh_token"]
    refresh_token: str = Field(..., min_length=1)


TokenRequest = Annotated[
    Union[AuthorizationCodeGrant, PasswordGrant, ClientCredentialsGrant, RefreshTokenGrant],
    Field(discriminator="grant_type"),
]

_token_request_adapter: TypeAdapter[TokenRequest] = TypeAdapter(TokenRequest)

_GRANT_TYPES = frozenset(g.value for g in GrantType)


def parse_token_request(data: Mapping[str, Any]) -> TokenRequest:
    """Validate a raw token body into one of the four grant models.

    Raises OAuthError with ``unsupported_grant_type`` for an unknown grant and
    ``invalid_request`` for missing or malformed fields.
    """
    grant_type = data.get("grant_type")
    if not grant_type:
        raise OAuthError(INVALID_REQUEST, "grant_type is required")
    if not isinstance(grant_type, str):
        raise OAuthError(INVALID_REQUEST, "grant_type must be a string")
    if grant_type not in _GRANT_TYPES:
        raise OAuthError(UNSUPPORTED_GRANT_TYPE, f"Unsupported grant_type: {grant_type}")

    try:
        return _token_request_adapter.validate_python(dict(data))
    except ValidationError as exc:
        raise OAuthError(INVALID_REQUEST, describe_validation_error(exc)) from exc


def describe_validation_error(exc: ValidationError) -> str:
    """Name the offending fields of a request body, for error descriptions."""
    fields = sorted({str(err["loc"][-1]) for err in exc.errors() if err.get("loc")})
    if not fields:
        return "Malformed request"
    return f"Missing or invalid parameters: {', '.join(fields)}"
