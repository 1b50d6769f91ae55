# Tests for the reference OAuth2 storage.
# Created: 2026-10-18

import json
import stat
from datetime import UTC, datetime, timedelta

import pytest

from pocketauth.oauth2.models import AccessToken, Application
from pocketauth.oauth2.storage import CODE_TTL, OAuthStorage


def _token(**overrides) -> AccessToken:
    now = datetime.now(UTC)
    fields = {
        "access_token": "pat_a",
        "access_token_expires_on": now + timedelta(hours=1),
        "client_id": "c1",
        "scope": "read",
        "user_id": "u1",
        "refresh_token": "prt_a",
        "refresh_token_expires_on": now + timedelta(days=30),
    }
    fields.update(overrides)
    return AccessToken(**fields)


@pytest.fixture
def store():
    return OAuthStorage()


class TestUsers:
    @pytest.mark.asyncio
    async def test_add_and_verify(self, store):
        user = store.add_user("alice", "wonderland", display_name="Alice")
        assert await store.get_user(user.id) == user
        assert await store.verify_username_and_password("alice", "wonderland") == user.id

    @pytest.mark.asyncio
    async def test_wrong_password(self, store):
        store.add_user("alice", "wonderland")
        assert await store.verify_username_and_password("alice", "Wonderland") is None

    @pytest.mark.asyncio
    async def test_unknown_username(self, store):
        assert await store.verify_username_and_password("nobody", "x") is None

    def test_duplicate_username(self, store):
        store.add_user("alice", "one")
        with pytest.raises(ValueError):
            store.add_user("alice", "two")


class TestAuthorizationCodes:
    @pytest.mark.asyncio
    async def test_consume_is_single_use(self, store):
        await store.save_authorization_code("pac_1", "c1", "u1", "read")
        first = await store.consume_authorization_code("c1", "pac_1")
        assert first is not None and first.user_id == "u1"
        assert await store.consume_authorization_code("c1", "pac_1") is None
        assert await store.get_authorization_code("c1", "pac_1") is None

    @pytest.mark.asyncio
    async def test_wrong_client_does_not_consume(self, store):
        await store.save_authorization_code("pac_1", "c1", "u1", None)
        assert await store.consume_authorization_code("other", "pac_1") is None
        assert await store.consume_authorization_code("c1", "pac_1") is not None

    @pytest.mark.asyncio
    async def test_expired_code(self, store):
        await store.save_authorization_code("pac_1", "c1", "u1", None)
        store._codes["pac_1"].created_at = datetime.now(UTC) - CODE_TTL - timedelta(seconds=1)
        assert await store.get_authorization_code("c1", "pac_1") is None
        assert await store.consume_authorization_code("c1", "pac_1") is None

    @pytest.mark.asyncio
    async def test_revoke_is_idempotent(self, store):
        await store.save_authorization_code("pac_1", "c1", "u1", None)
        await store.revoke_authorization_code("pac_1")
        await store.revoke_authorization_code("pac_1")
        assert await store.get_authorization_code("c1", "pac_1") is None


class TestTokens:
    @pytest.mark.asyncio
    async def test_lookup_by_refresh_token_is_per_client(self, store):
        token = _token()
        await store.save_access_token(token)
        assert await store.get_access_token_by_refresh_token("c1", "prt_a") == token
        assert await store.get_access_token_by_refresh_token("c2", "prt_a") is None

    @pytest.mark.asyncio
    async def test_revoke_refresh_keeps_access_token(self, store):
        await store.save_access_token(_token())
        await store.revoke_refresh_token("c1", "prt_a")
        assert await store.get_access_token_by_refresh_token("c1", "prt_a") is None
        assert await store.get_access_token("pat_a") is not None

    @pytest.mark.asyncio
    async def test_consume_refresh_once(self, store):
        await store.save_access_token(_token())
        assert await store.consume_refresh_token("c1", "prt_a") is not None
        assert await store.consume_refresh_token("c1", "prt_a") is None

    @pytest.mark.asyncio
    async def test_expired_refresh_token(self, store):
        await store.save_access_token(
            _token(refresh_token_expires_on=datetime.now(UTC) - timedelta(seconds=1))
        )
        assert await store.consume_refresh_token("c1", "prt_a") is None

    @pytest.mark.asyncio
    async def test_client_credentials_token_has_no_refresh_entry(self, store):
        await store.save_access_token(
            _token(user_id=None, refresh_token=None, refresh_token_expires_on=None)
        )
        assert store._refresh_index == {}

    @pytest.mark.asyncio
    async def test_cleanup_expired(self, store):
        past = datetime.now(UTC) - timedelta(days=1)
        await store.save_access_token(
            _token(access_token_expires_on=past, refresh_token_expires_on=past)
        )
        await store.save_access_token(_token(access_token="pat_b", refresh_token="prt_b"))
        await store.save_authorization_code("pac_old", "c1", "u1", None)
        store._codes["pac_old"].created_at = past

        store.cleanup_expired()

        assert await store.get_access_token("pat_a") is None
        assert await store.get_access_token("pat_b") is not None
        assert "pac_old" not in store._codes
        assert ("c1", "prt_a") not in store._refresh_index


class TestPersistence:
    @pytest.mark.asyncio
    async def test_round_trip(self, tmp_path):
        store = OAuthStorage(persist_dir=tmp_path)
        store.save_application(
            Application(
                client_id="c1",
                client_type="confidential",
                redirect_uri="https://a.example/cb",
                client_secret="s1",
            )
        )
        user = store.add_user("alice", "wonderland")
        await store.save_access_token(_token())
        await store.save_access_token(_token(access_token="pat_b", refresh_token="prt_b"))
        await store.revoke_refresh_token("c1", "prt_a")

        reloaded = OAuthStorage(persist_dir=tmp_path)
        app = await reloaded.get_application("c1")
        assert app is not None and app.client_secret == "s1"
        assert await reloaded.verify_username_and_password("alice", "wonderland") == user.id
        assert await reloaded.get_access_token("pat_a") is not None
        assert await reloaded.get_access_token_by_refresh_token("c1", "prt_a") is None
        assert await reloaded.get_access_token_by_refresh_token("c1", "prt_b") is not None

    @pytest.mark.asyncio
    async def test_files_are_private(self, tmp_path):
        store = OAuthStorage(persist_dir=tmp_path)
        await store.save_access_token(_token())
        mode = (tmp_path / "oauth_tokens.json").stat().st_mode
        assert not mode & (stat.S_IRGRP | stat.S_IROTH)

    def test_passwords_are_not_stored_in_plaintext(self, tmp_path):
        store = OAuthStorage(persist_dir=tmp_path)
        store.add_user("alice", "wonderland")
        assert "wonderland" not in (tmp_path / "users.json").read_text()

    def test_corrupt_file_is_ignored(self, tmp_path):
        (tmp_path / "oauth_tokens.json").write_text("{not json")
        (tmp_path / "applications.json").write_text(json.dumps([{"client_id": "x"}]))
        store = OAuthStorage(persist_dir=tmp_path)
        assert store.list_applications() == []
