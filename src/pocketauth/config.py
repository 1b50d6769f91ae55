# Settings for the authorization server.
# Created: 2026-10-18
#
# Values come from (highest first): constructor kwargs, POCKETAUTH_* env vars,
# ~/.pocketauth/config.json, field defaults.

from __future__ import annotations

import json
import logging
import os
from functools import lru_cache
from pathlib import Path
from typing import Any

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

logger = logging.getLogger(__name__)


def get_config_dir() -> Path:
    """Return the config directory, creating it if needed."""
    path = Path.home() / ".pocketauth"
    path.mkdir(parents=True, exist_ok=True)
    return path


def get_config_path() -> Path:
    return get_config_dir() / "config.json"


class Settings(BaseSettings):
    """Authorization server settings."""

    model_config = SettingsConfigDict(env_prefix="POCKETAUTH_", extra="ignore")

    web_host: str = "127.0.0.1"
    web_port: int = 8888
    log_level: str = "INFO"

    # External login surface for unauthenticated /authorize callers
    login_url: str = "http://localhost:3000/login"

    access_token_ttl: int = Field(default=3600, gt=0, description="Seconds")
    refresh_token_ttl_days: int = Field(default=30, gt=0)

    code_prefix: str = "pac_"
    access_token_prefix: str = "pat_"
    refresh_token_prefix: str = "prt_"

    persist_tokens: bool = True
    audit_enabled: bool = True

    @classmethod
    def load(cls) -> Settings:
        """Load settings from config.json, letting env vars override it."""
        path = get_config_path()
        data: dict[str, Any] = {}
        if path.exists():
            try:
                data = json.loads(path.read_text())
            except (json.JSONDecodeError, OSError) as exc:
                logger.warning("Failed to read %s: %s", path, exc)
        # Init kwargs beat env vars in pydantic-settings, so drop any file
        # value that the environment also sets.
        for name in list(data):
            if name not in cls.model_fields or f"POCKETAUTH_{name.upper()}" in os.environ:
                data.pop(name)
        return cls(**data)

    def save(self) -> None:
        path = get_config_path()
        path.write_text(json.dumps(self.model_dump(), indent=2))
        try:
            path.chmod(0o600)
        except OSError:
            pass


@lru_cache
def get_settings() -> Settings:
    return Settings.load()
