from __future__ import annotations

import os
from dataclasses import dataclass

# Values shipped in example env files; a store configured with one of these is not ready.
PLACEHOLDER_VALUES = frozenset({"", "YOUR_STORE_PATH", "YOUR_SUPABASE_URL", "changeme"})


@dataclass(frozen=True)
class Settings:
    app_env: str
    remote_api_url: str
    remote_api_token: str
    store_path: str
    preferences_path: str
    default_backend: str
    token_secret: str
    request_timeout: float
    log_level: str

    @property
    def direct_store_ready(self) -> bool:
        """Whether the direct store has real connection parameters."""
        return self.store_path not in PLACEHOLDER_VALUES

    @staticmethod
    def from_env() -> "Settings":
        def _s(name: str, default: str) -> str:
            return os.getenv(name, default).strip()

        def _f(name: str, default: str) -> float:
            return float(os.getenv(name, default).strip())

        return Settings(
            app_env=_s("APP_ENV", "dev"),
            remote_api_url=_s("REMOTE_API_URL", "https://paulospoetry.com").rstrip("/"),
            remote_api_token=_s("REMOTE_API_TOKEN", ""),
            store_path=_s("DIRECT_STORE_PATH", "YOUR_STORE_PATH"),
            preferences_path=_s("PREFERENCES_PATH", "/app/_local/data/preferences.db"),
            default_backend=_s("DEFAULT_BACKEND", "direct_store"),
            token_secret=_s("TOKEN_SECRET", "devsecret"),
            request_timeout=_f("REQUEST_TIMEOUT", "30"),
            log_level=_s("LOG_LEVEL", "INFO"),
        )
