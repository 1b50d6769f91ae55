# OAuth2 reference storage.
# Created: 2026-10-18
#
# One object implementing every store protocol the engine needs.
# Without a persist_dir everything lives in memory. With one, applications,
# users and tokens are written to JSON files there and reloaded on start-up.
# Authorization codes always stay in memory (short-lived, 10 min TTL).
#
# Consume operations take a lock around read-then-delete so that two
# concurrent exchanges of the same code or refresh token cannot both win.

from __future__ import annotations

import hashlib
import hmac
import json
import logging
import secrets
import threading
from datetime import UTC, datetime, timedelta
from pathlib import Path

from pocketauth.oauth2.models import AccessToken, Application, AuthorizationCode, User

logger = logging.getLogger(__name__)

CODE_TTL = timedelta(minutes=10)

_PBKDF2_ITERATIONS = 100_000
# Hashed against when the username is unknown, so both paths cost the same
_DUMMY_SALT = bytes(16)


def hash_password(password: str, salt: bytes | None = None) -> tuple[str, str]:
    """Return (salt_hex, hash_hex) for *password*."""
    if salt is None:
        salt = secrets.token_bytes(16)
    digest = hashlib.pbkdf2_hmac("sha256", password.encode(), salt, _PBKDF2_ITERATIONS)
    return salt.hex(), digest.hex()


class OAuthStorage:
    """In-memory (optionally file-backed) OAuth2 storage."""

    def __init__(self, persist_dir: Path | None = None):
        self._applications: dict[str, Application] = {}
        self._users: dict[str, User] = {}
        self._credentials: dict[str, tuple[str, str, str]] = {}  # username → (user_id, salt, hash)
        self._codes: dict[str, AuthorizationCode] = {}
        self._tokens: dict[str, AccessToken] = {}  # keyed by access_token
        self._refresh_index: dict[tuple[str, str], str] = {}  # (client_id, refresh) → access
        self._lock = threading.Lock()
        self._persist_dir = persist_dir
        if persist_dir is not None:
            self._load()

    @classmethod
    def from_settings(cls, settings=None) -> OAuthStorage:
        if settings is None:
            from pocketauth.config import get_settings

            settings = get_settings()
        if not settings.persist_tokens:
            return cls()
        from pocketauth.config import get_config_dir

        return cls(persist_dir=get_config_dir())

    # =========================================================================
    # File I/O
    # =========================================================================

    def _path(self, name: str) -> Path:
        assert self._persist_dir is not None
        return self._persist_dir / name

    def _read_json(self, name: str) -> list[dict]:
        path = self._path(name)
        if not path.exists():
            return []
        try:
            return json.loads(path.read_text())
        except (json.JSONDecodeError, OSError) as exc:
            logger.warning("Failed to load %s: %s", path, exc)
            return []

    def _write_json(self, name: str, data: list[dict]) -> None:
        if self._persist_dir is None:
            return
        path = self._path(name)
        path.parent.mkdir(parents=True, exist_ok=True)
        tmp = path.with_suffix(".tmp")
        tmp.write_text(json.dumps(data, indent=2))
        try:
            tmp.chmod(0o600)
        except OSError:
            pass
        tmp.replace(path)

    def _load(self) -> None:
        for entry in self._read_json("applications.json"):
            try:
                app = Application.from_dict(entry)
            except KeyError as exc:
                logger.warning("Skipping malformed application entry: missing %s", exc)
                continue
            self._applications[app.client_id] = app

        for entry in self._read_json("users.json"):
            try:
                user = User(
                    id=entry["id"],
                    username=entry["username"],
                    display_name=entry.get("display_name", ""),
                    attributes=entry.get("attributes", {}),
                )
                self._users[user.id] = user
                self._credentials[user.username] = (user.id, entry["salt"], entry["password_hash"])
            except KeyError as exc:
                logger.warning("Skipping malformed user entry: missing %s", exc)

        for entry in self._read_json("oauth_tokens.json"):
            try:
                token = AccessToken.from_dict(entry)
            except (KeyError, ValueError) as exc:
                logger.warning("Skipping malformed token entry: %s", exc)
                continue
            self._tokens[token.access_token] = token
            if token.refresh_token and not entry.get("refresh_revoked", False):
                self._refresh_index[(token.client_id, token.refresh_token)] = token.access_token

        logger.debug(
            "Loaded %d applications, %d users, %d tokens from %s",
            len(self._applications),
            len(self._users),
            len(self._tokens),
            self._persist_dir,
        )

    def _save_applications(self) -> None:
        self._write_json("applications.json", [a.to_dict() for a in self._applications.values()])

    def _save_users(self) -> None:
        data = []
        for username, (user_id, salt, password_hash) in self._credentials.items():
            user = self._users[user_id]
            data.append(
                {
                    "id": user.id,
                    "username": username,
                    "display_name": user.display_name,
                    "attributes": user.attributes,
                    "salt": salt,
                    "password_hash": password_hash,
                }
            )
        self._write_json("users.json", data)

    def _save_tokens(self) -> None:
        live_refresh = set(self._refresh_index.values())
        data = []
        for token in self._tokens.values():
            entry = token.to_dict()
            entry["refresh_revoked"] = token.access_token not in live_refresh
            data.append(entry)
        self._write_json("oauth_tokens.json", data)

    # =========================================================================
    # Applications (ClientStore)
    # =========================================================================

    def save_application(self, application: Application) -> None:
        with self._lock:
            self._applications[application.client_id] = application
            self._save_applications()

    async def get_application(self, client_id: str) -> Application | None:
        return self._applications.get(client_id)

    def list_applications(self) -> list[Application]:
        return list(self._applications.values())

    # =========================================================================
    # Users (IdentityStore)
    # =========================================================================

    def add_user(
        self,
        username: str,
        password: str,
        display_name: str = "",
        user_id: str | None = None,
    ) -> User:
        """Register a resource owner with a PBKDF2-hashed password."""
        if username in self._credentials:
            raise ValueError(f"User already exists: {username}")
        user = User(id=user_id or secrets.token_hex(8), username=username, display_name=display_name)
        salt, password_hash = hash_password(password)
        with self._lock:
            self._users[user.id] = user
            self._credentials[username] = (user.id, salt, password_hash)
            self._save_users()
        return user

    async def get_user(self, user_id: str) -> User | None:
        return self._users.get(user_id)

    async def verify_username_and_password(self, username: str, password: str) -> str | None:
        entry = self._credentials.get(username)
        if entry is None:
            hash_password(password, _DUMMY_SALT)
            return None
        user_id, salt, expected = entry
        _, actual = hash_password(password, bytes.fromhex(salt))
        if hmac.compare_digest(actual, expected):
            return user_id
        return None

    # =========================================================================
    # Authorization codes (CodeStore)
    # =========================================================================

    def _code_is_live(self, record: AuthorizationCode, client_id: str) -> bool:
        if record.client_id != client_id:
            return False
        return datetime.now(UTC) - record.created_at <= CODE_TTL

    async def save_authorization_code(
        self, code: str, client_id: str, user_id: str, scope: str | None
    ) -> None:
        with self._lock:
            self._codes[code] = AuthorizationCode(
                code=code, client_id=client_id, user_id=user_id, scope=scope
            )

    async def get_authorization_code(self, client_id: str, code: str) -> AuthorizationCode | None:
        record = self._codes.get(code)
        if record is None or not self._code_is_live(record, client_id):
            return None
        return record

    async def consume_authorization_code(
        self, client_id: str, code: str
    ) -> AuthorizationCode | None:
        with self._lock:
            record = self._codes.get(code)
            if record is None or not self._code_is_live(record, client_id):
                return None
            del self._codes[code]
            return record

    async def revoke_authorization_code(self, code: str) -> None:
        with self._lock:
            self._codes.pop(code, None)

    # =========================================================================
    # Tokens (TokenStore)
    # =========================================================================

    async def save_access_token(self, token: AccessToken) -> None:
        with self._lock:
            self._tokens[token.access_token] = token
            if token.refresh_token:
                self._refresh_index[(token.client_id, token.refresh_token)] = token.access_token
            self._save_tokens()

    async def get_access_token(self, access_token: str) -> AccessToken | None:
        return self._tokens.get(access_token)

    def _live_refresh(self, client_id: str, refresh_token: str) -> AccessToken | None:
        access_token = self._refresh_index.get((client_id, refresh_token))
        if access_token is None:
            return None
        token = self._tokens.get(access_token)
        if token is None:
            return None
        if token.refresh_token_expires_on and datetime.now(UTC) > token.refresh_token_expires_on:
            return None
        return token

    async def get_access_token_by_refresh_token(
        self, client_id: str, refresh_token: str
    ) -> AccessToken | None:
        return self._live_refresh(client_id, refresh_token)

    async def consume_refresh_token(
        self, client_id: str, refresh_token: str
    ) -> AccessToken | None:
        with self._lock:
            token = self._live_refresh(client_id, refresh_token)
            if token is None:
                return None
            del self._refresh_index[(client_id, refresh_token)]
            self._save_tokens()
            return token

    async def revoke_refresh_token(self, client_id: str, refresh_token: str) -> None:
        with self._lock:
            if self._refresh_index.pop((client_id, refresh_token), None) is not None:
                self._save_tokens()

    def cleanup_expired(self) -> None:
        """Remove expired codes and tokens whose refresh window has closed."""
        now = datetime.now(UTC)
        with self._lock:
            expired_codes = [k for k, v in self._codes.items() if now - v.created_at > CODE_TTL]
            for k in expired_codes:
                del self._codes[k]

            expired_tokens = [
                k
                for k, v in self._tokens.items()
                if now > (v.refresh_token_expires_on or v.access_token_expires_on)
            ]
            for k in expired_tokens:
                token = self._tokens.pop(k)
                if token.refresh_token:
                    self._refresh_index.pop((token.client_id, token.refresh_token), None)

            if expired_tokens:
                self._save_tokens()
