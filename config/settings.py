from __future__ import annotations

import os
from functools import lru_cache

from dotenv import load_dotenv


load_dotenv()


class Settings:
    """Client settings loaded from environment variables.

    Keep the API location and cache/session knobs centralized here.
    """

    app_env: str = os.getenv("APP_ENV", "development")
    api_base_url: str = os.getenv("NOTORIX_API_URL", "http://localhost:3001")
    cache_ttl_seconds: float = float(os.getenv("CACHE_TTL_SECONDS", "300"))
    request_timeout_seconds: float = float(os.getenv("REQUEST_TIMEOUT_SECONDS", "10"))
    session_file: str = os.getenv("SESSION_FILE", ".notorix_session.json")
    log_level: str = os.getenv("LOG_LEVEL", "INFO")


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    return Settings()
