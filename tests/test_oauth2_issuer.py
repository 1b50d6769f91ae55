# Tests for token issuance, validation and request parsing.
# Created: 2026-10-18

from datetime import UTC, datetime, timedelta

import pytest

from pocketauth.oauth2.errors import ConfigurationError, OAuthError
from pocketauth.oauth2.issuer import TokenIssuer
from pocketauth.oauth2.models import Application, ClientType, GrantType
from pocketauth.oauth2.requests import (
    AuthorizationCodeGrant,
    ClientCredentialsGrant,
    PasswordGrant,
    parse_token_request,
)
from pocketauth.oauth2.validator import (
    secrets_match,
    validate_application,
    validate_client_type,
    validate_redirect_uri,
)

NOW = datetime(2026, 3, 1, 12, 0, tzinfo=UTC)


@pytest.fixture
def issuer():
    return TokenIssuer(clock=lambda: NOW)


class TestTokenIssuer:
    def test_access_token_with_refresh(self, issuer):
        token = issuer.generate_access_token("c1", "u1", "read", GrantType.PASSWORD)
        assert token.access_token.startswith("pat_")
        assert token.refresh_token.startswith("prt_")
        assert token.access_token_expires_on == NOW + timedelta(hours=1)
        assert token.refresh_token_expires_on == NOW + timedelta(days=30)
        assert token.client_id == "c1"
        assert token.user_id == "u1"

    def test_client_credentials_has_no_refresh(self, issuer):
        token = issuer.generate_access_token("c1", None, None, "client_credentials")
        assert token.refresh_token is None
        assert token.refresh_token_expires_on is None

    def test_unknown_grant_type_rejected(self, issuer):
        with pytest.raises(ValueError):
            issuer.generate_access_token("c1", "u1", None, "implicit")

    def test_code_is_opaque(self, issuer):
        code = issuer.generate_authorization_code("client-xyz", "user-abc", "scope-123")
        assert code.startswith("pac_")
        for field in ("client-xyz", "user-abc", "scope-123"):
            assert field not in code

    def test_response_body(self, issuer):
        token = issuer.generate_access_token("c1", "u1", "read", GrantType.REFRESH_TOKEN)
        assert issuer.token_response_body(token) == {
            "access_token": token.access_token,
            "token_type": "bearer",
            "expires_in": 3600,
            "refresh_token": token.refresh_token,
        }

    def test_response_body_without_refresh(self, issuer):
        token = issuer.generate_access_token("c1", None, None, GrantType.CLIENT_CREDENTIALS)
        assert "refresh_token" not in issuer.token_response_body(token)

    def test_client_credentials_for_registration(self, issuer):
        client_id, secret = issuer.generate_client_credentials(ClientType.CONFIDENTIAL)
        assert client_id and secret
        client_id, secret = issuer.generate_client_credentials("public")
        assert client_id and secret is None


class TestValidator:
    @pytest.mark.parametrize(
        "uri", ["https://a.example/cb", "myapp://callback", "http://localhost:3000/x"]
    )
    def test_valid_redirect_uris(self, uri):
        validate_redirect_uri(uri)

    @pytest.mark.parametrize("uri", ["", None, "a.example/cb", "://cb", "https://"])
    def test_invalid_redirect_uris(self, uri):
        with pytest.raises(ConfigurationError):
            validate_redirect_uri(uri)

    @pytest.mark.parametrize("client_type", ["confidential", "public"])
    def test_valid_client_types(self, client_type):
        validate_client_type(client_type)

    @pytest.mark.parametrize("client_type", ["", None, "Public", "trusted"])
    def test_invalid_client_types(self, client_type):
        with pytest.raises(ConfigurationError):
            validate_client_type(client_type)

    def test_validate_application(self):
        validate_application(
            Application(client_id="c1", client_type="public", redirect_uri="https://a/cb")
        )

    def test_secrets_match(self):
        assert secrets_match("s1", "s1")
        assert not secrets_match("s1", "s2")
        assert not secrets_match("s1", None)
        assert not secrets_match(None, None)


class TestParseTokenRequest:
    def test_dispatches_on_grant_type(self):
        assert isinstance(
            parse_token_request({"grant_type": "authorization_code", "client_id": "c", "code": "x"}),
            AuthorizationCodeGrant,
        )
        assert isinstance(
            parse_token_request(
                {"grant_type": "password", "client_id": "c", "username": "u", "password": "p"}
            ),
            PasswordGrant,
        )
        assert isinstance(
            parse_token_request({"grant_type": "client_credentials", "client_id": "c"}),
            ClientCredentialsGrant,
        )

    def test_fields_of_other_grants_are_ignored(self):
        request = parse_token_request(
            {"grant_type": "client_credentials", "client_id": "c", "code": "x", "scope": "s"}
        )
        assert request.scope == "s"
        assert not hasattr(request, "code")

    def test_unsupported_grant_type(self):
        with pytest.raises(OAuthError) as exc_info:
            parse_token_request({"grant_type": "implicit", "client_id": "c"})
        assert exc_info.value.error == "unsupported_grant_type"

    def test_missing_client_id(self):
        with pytest.raises(OAuthError) as exc_info:
            parse_token_request({"grant_type": "client_credentials"})
        assert exc_info.value.error == "invalid_request"
        assert "client_id" in exc_info.value.error_description

    @pytest.mark.parametrize("grant_type", [["password"], {"a": 1}, 7])
    def test_non_string_grant_type(self, grant_type):
        with pytest.raises(OAuthError) as exc_info:
            parse_token_request({"grant_type": grant_type, "client_id": "c"})
        assert exc_info.value.error == "invalid_request"
        assert exc_info.value.error_description == "grant_type must be a string"

    def test_missing_code(self):
        with pytest.raises(OAuthError) as exc_info:
            parse_token_request({"grant_type": "authorization_code", "client_id": "c"})
        assert "code" in exc_info.value.error_description
