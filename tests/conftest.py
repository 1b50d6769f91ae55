# Shared fixtures for OAuth2 tests.
# Created: 2026-10-18

import pytest

from pocketauth.audit import AuditLogger
from pocketauth.oauth2.models import Application
from pocketauth.oauth2.server import AuthorizationServer
from pocketauth.oauth2.storage import OAuthStorage

REDIRECT_URI = "https://a.example/cb"


@pytest.fixture
def storage():
    store = OAuthStorage()
    store.save_application(
        Application(
            client_id="c1",
            client_type="public",
            redirect_uri=REDIRECT_URI,
            name="Public App",
        )
    )
    store.save_application(
        Application(
            client_id="conf",
            client_type="confidential",
            redirect_uri=REDIRECT_URI,
            name="Server App",
            client_secret="s1",
        )
    )
    store.add_user("alice", "wonderland", user_id="u1")
    return store


@pytest.fixture
def audit_logger(tmp_path):
    return AuditLogger(log_path=tmp_path / "audit.jsonl")


@pytest.fixture
def server(storage, audit_logger):
    return AuthorizationServer(
        storage,
        login_url="https://login.example/signin",
        audit_logger=audit_logger,
    )
