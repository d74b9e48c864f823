import os
from typing import Optional

from dotenv import load_dotenv

from antiforgery.auth.exceptions import ConfigurationError

# load .env file (once, at import time)
load_dotenv()


def env_int(name: str, default: int) -> int:
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return default
    try:
        return int(raw)
    except ValueError:
        raise ConfigurationError(f"{name} must be an integer, got {raw!r}") from None


CSRF_TOKEN_LENGTH = env_int("CSRF_TOKEN_LENGTH", 16)
CSRF_STORAGE = os.getenv("CSRF_STORAGE", "session")
CSRF_PARAM = os.getenv("CSRF_PARAM", "_csrf")
CSRF_VALUE = os.getenv("CSRF_VALUE", "csrfToken")
CSRF_HEADER = "csrf-token"

CSRF_COOKIE_SECURE = os.getenv("CSRF_COOKIE_SECURE", "0") == "1"
CSRF_COOKIE_HTTPONLY = os.getenv("CSRF_COOKIE_HTTPONLY", "0") == "1"
CSRF_COOKIE_MAX_AGE: Optional[int] = env_int("CSRF_COOKIE_MAX_AGE", 0) or None

# redis-backed store only
CSRF_TOKEN_TTL = env_int("CSRF_TOKEN_TTL", 3600)
REDIS_URL = os.getenv("REDIS_URL", "redis://localhost:6379/0")

SESSION_SECRET = os.getenv("SESSION_SECRET", "")

PRODUCTION = os.getenv("PRODUCTION", "0") == "1"

HOST = os.getenv("HOST", "127.0.0.1")
PORT = env_int("PORT", 8000)
LOG_LEVEL = os.getenv("LOG_LEVEL", "DEBUG").upper()
