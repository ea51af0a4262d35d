"""Configuration for rcc.

Settings loaded from (in order of precedence):
1. Environment variables (RCC_STORE_BACKEND, RCC_STORE_URL, etc.)
2. Config file (~/.rcc/config.toml)
3. Defaults
"""
from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

# Try tomllib (3.11+), fall back to tomli
try:
    import tomllib
except ImportError:
    import tomli as tomllib  # type: ignore[no-redef]

from rcc.core.models import UserIdentity
from rcc.store.base import RecordStore, StaticIdentity, create_store

RCC_DIR = Path.home() / ".rcc"

DEFAULT_CONFIG_PATH = RCC_DIR / "config.toml"


@dataclass
class Settings:
    """Application settings -- store endpoint, sync timing and the local user."""

    # Record store
    store_backend: str = "memory"  # memory, rest
    store_url: Optional[str] = None
    store_api_key: Optional[str] = None
    store_timeout: float = 10.0

    # Live sync
    poll_interval: float = 2.0
    resubscribe_delay: float = 1.0
    max_resubscribe_attempts: int = 5

    # Signed-in user (auth itself is handled by the hosted backend)
    user_id: Optional[str] = None
    username: Optional[str] = None

    @classmethod
    def load(cls, config_path: Optional[Path] = None) -> "Settings":
        """Load settings from config file + environment variable overrides."""
        settings = cls()

        # Load from TOML config file
        path = config_path or DEFAULT_CONFIG_PATH
        if path.exists():
            with open(path, "rb") as f:
                data = tomllib.load(f)

            store = data.get("store", {})
            settings.store_backend = store.get("backend", settings.store_backend)
            settings.store_url = store.get("url", settings.store_url)
            settings.store_api_key = store.get("api_key", settings.store_api_key)
            settings.store_timeout = float(store.get("timeout", settings.store_timeout))

            sync = data.get("sync", {})
            settings.poll_interval = float(sync.get("poll_interval", settings.poll_interval))
            settings.resubscribe_delay = float(
                sync.get("resubscribe_delay", settings.resubscribe_delay)
            )
            settings.max_resubscribe_attempts = int(
                sync.get("max_resubscribe_attempts", settings.max_resubscribe_attempts)
            )

            user = data.get("user", {})
            settings.user_id = user.get("id", settings.user_id)
            settings.username = user.get("username", settings.username)

        # Environment variable overrides (highest precedence)
        if v := os.environ.get("RCC_STORE_BACKEND"):
            settings.store_backend = v
        if v := os.environ.get("RCC_STORE_URL"):
            settings.store_url = v
        if v := os.environ.get("RCC_STORE_API_KEY"):
            settings.store_api_key = v
        if v := os.environ.get("RCC_STORE_TIMEOUT"):
            settings.store_timeout = float(v)
        if v := os.environ.get("RCC_POLL_INTERVAL"):
            settings.poll_interval = float(v)
        if v := os.environ.get("RCC_RESUBSCRIBE_DELAY"):
            settings.resubscribe_delay = float(v)
        if v := os.environ.get("RCC_MAX_RESUBSCRIBE_ATTEMPTS"):
            settings.max_resubscribe_attempts = int(v)
        if v := os.environ.get("RCC_USER_ID"):
            settings.user_id = v
        if v := os.environ.get("RCC_USERNAME"):
            settings.username = v

        return settings

    def create_store(self) -> RecordStore:
        """Build the configured record store."""
        if self.store_backend.lower().strip() == "rest":
            if not self.store_url:
                raise ValueError("store url is required for the 'rest' backend (RCC_STORE_URL)")
            return create_store(
                "rest",
                base_url=self.store_url,
                api_key=self.store_api_key,
                timeout=self.store_timeout,
                poll_interval=self.poll_interval,
            )
        return create_store(self.store_backend)

    def identity(self) -> StaticIdentity:
        """Identity provider for the configured user (nobody if unset)."""
        if not self.user_id:
            return StaticIdentity(None)
        return StaticIdentity(UserIdentity(id=self.user_id, username=self.username or self.user_id))
