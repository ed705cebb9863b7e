from __future__ import annotations

import os
from dataclasses import dataclass
from functools import lru_cache
from pathlib import Path

# Resolve repo root from this file's location:
# app/settings.py → parent = app/ → parent = repo root
REPO_ROOT = Path(__file__).resolve().parents[1]

_TRUE = {"1", "true", "yes", "on"}
_FALSE = {"0", "false", "no", "off"}


@dataclass
class Settings:
    """
    Centralized application configuration.

    Does NOT depend on pydantic. Values are loaded from environment
    variables via Settings.from_env().
    """

    # --- Databases ---
    database_urls: str = ""  # whitespace-separated
    databases_config_path: str = ""  # optional YAML list

    # --- Safety / bounds ---
    row_limit: int = 100
    query_timeout_sec: float = 30.0
    allow_write: bool = False
    count_timeout_sec: float = 1.0
    sample_limit: int = 5

    # --- Connections ---
    pool_size: int = 5

    # --- API keys (comma-separated) ---
    api_keys_raw: str = ""

    # --- App version ---
    app_version: str = "dev"

    @classmethod
    def from_env(cls) -> "Settings":
        """
        Build Settings from environment variables with sane fallbacks.

        - Malformed numbers and booleans fall back to the defaults.
        - SQLGATE_DATABASES_CONFIG may be relative to REPO_ROOT.
        """

        def getenv_int(name: str, default: int) -> int:
            raw = os.getenv(name)
            if raw is None or raw.strip() == "":
                return default
            try:
                value = int(raw)
            except ValueError:
                return default
            return value if value > 0 else default

        def getenv_float(name: str, default: float) -> float:
            raw = os.getenv(name)
            if raw is None or raw.strip() == "":
                return default
            try:
                value = float(raw)
            except ValueError:
                return default
            return value if value > 0 else default

        def getenv_bool(name: str, default: bool) -> bool:
            raw = (os.getenv(name) or "").strip().lower()
            if raw in _TRUE:
                return True
            if raw in _FALSE:
                return False
            return default

        # --- Databases config path ---
        raw_cfg = os.getenv("SQLGATE_DATABASES_CONFIG", "").strip()
        cfg_path = ""
        if raw_cfg:
            cfg_candidate = Path(raw_cfg)
            if not cfg_candidate.is_absolute():
                cfg_candidate = REPO_ROOT / raw_cfg
            cfg_path = str(cfg_candidate)

        return cls(
            database_urls=os.getenv("SQLGATE_DATABASE_URLS", cls.database_urls),
            databases_config_path=cfg_path,
            row_limit=getenv_int("SQLGATE_ROW_LIMIT", cls.row_limit),
            query_timeout_sec=getenv_float(
                "SQLGATE_QUERY_TIMEOUT_SEC", cls.query_timeout_sec
            ),
            allow_write=getenv_bool("SQLGATE_ALLOW_WRITE", cls.allow_write),
            count_timeout_sec=getenv_float(
                "SQLGATE_COUNT_TIMEOUT_SEC", cls.count_timeout_sec
            ),
            sample_limit=getenv_int("SQLGATE_SAMPLE_LIMIT", cls.sample_limit),
            pool_size=getenv_int("SQLGATE_POOL_SIZE", cls.pool_size),
            api_keys_raw=os.getenv("API_KEYS", cls.api_keys_raw),
            app_version=os.getenv("APP_VERSION", cls.app_version),
        )


@lru_cache()
def get_settings() -> Settings:
    return Settings.from_env()
