# OAuth2 data models.
# Created: 2026-10-18

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import UTC, datetime
from enum import Enum
from typing import Any


class ClientType(str, Enum):
    CONFIDENTIAL = "confidential"  # Server-side app, can keep a secret
    PUBLIC = "public"  # Browser/mobile app, cannot


class GrantType(str, Enum):
    AUTHORIZATION_CODE = "authorization_code"
    PASSWORD = "password"
    CLIENT_CREDENTIALS = "client_credentials"
    REFRESH_TOKEN = "refresh_token"


@dataclass
class Application:
    """Registered OAuth2 client.

    ``client_type`` is kept as the raw stored string; the validator decides
    whether it is legal.
    """

    client_id: str
    client_type: str
    redirect_uri: str
    name: str = ""
    website: str = ""
    logo: str = ""
    owner_user_id: str | None = None
    client_secret: str | None = None

    @property
    def is_confidential(self) -> bool:
        return self.client_type == ClientType.CONFIDENTIAL.value

    def to_dict(self) -> dict[str, Any]:
        return {
            "client_id": self.client_id,
            "client_type": self.client_type,
            "redirect_uri": self.redirect_uri,
            "name": self.name,
            "website": self.website,
            "logo": self.logo,
            "owner_user_id": self.owner_user_id,
            "client_secret": self.client_secret,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Application:
        return cls(
            client_id=data["client_id"],
            client_type=data["client_type"],
            redirect_uri=data["redirect_uri"],
            name=data.get("name", ""),
            website=data.get("website", ""),
            logo=data.get("logo", ""),
            owner_user_id=data.get("owner_user_id"),
            client_secret=data.get("client_secret"),
        )


@dataclass
class AuthorizationCode:
    """Single-use code binding a user's consent to a client and scope."""

    code: str
    client_id: str
    user_id: str
    scope: str | None = None
    created_at: datetime = field(default_factory=lambda: datetime.now(UTC))


@dataclass(frozen=True)
class AccessToken:
    """Issued access token, plus refresh material unless client_credentials."""

    access_token: str
    access_token_expires_on: datetime
    client_id: str
    scope: str | None = None
    user_id: str | None = None
    refresh_token: str | None = None
    refresh_token_expires_on: datetime | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "access_token": self.access_token,
            "access_token_expires_on": self.access_token_expires_on.isoformat(),
            "client_id": self.client_id,
            "scope": self.scope,
            "user_id": self.user_id,
            "refresh_token": self.refresh_token,
            "refresh_token_expires_on": self.refresh_token_expires_on.isoformat()
            if self.refresh_token_expires_on
            else None,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> AccessToken:
        refresh_expiry = data.get("refresh_token_expires_on")
        return cls(
            access_token=data["access_token"],
            access_token_expires_on=datetime.fromisoformat(data["access_token_expires_on"]),
            client_id=data["client_id"],
            scope=data.get("scope"),
            user_id=data.get("user_id"),
            refresh_token=data.get("refresh_token"),
            refresh_token_expires_on=datetime.fromisoformat(refresh_expiry)
            if refresh_expiry
            else None,
        )


@dataclass
class User:
    """Resource owner. Only ``id`` matters to the engine."""

    id: str
    username: str = ""
    display_name: str = ""
    attributes: dict[str, Any] = field(default_factory=dict)
