from typing import Optional

from antiforgery import cfg
from antiforgery.auth.config import CookieOptions, CsrfConfig
from antiforgery.auth.csrf import CsrfProtect
from antiforgery.auth.policy import CustomPolicy
from antiforgery.backend.redis.store import RedisTokenStore
from antiforgery.frontend.web_app.utils import render_csrf_rejected

cookie_options = CookieOptions(
    secure=cfg.PRODUCTION or cfg.CSRF_COOKIE_SECURE,
    httponly=cfg.CSRF_COOKIE_HTTPONLY,
    samesite="strict" if cfg.PRODUCTION else "lax",
)

# connected / closed by main.py
redis_store: Optional[RedisTokenStore] = None
if cfg.CSRF_STORAGE == "redis":
    redis_store = RedisTokenStore(
        url=cfg.REDIS_URL,
        ttl=cfg.CSRF_TOKEN_TTL,
        cookie_options=cookie_options.model_copy(update={"httponly": True}),
    )

csrf = CsrfProtect(
    CsrfConfig(
        storage_kind=cfg.CSRF_STORAGE,
        storage_options=cookie_options,
        storage=redis_store,
        policy=CustomPolicy(on_rejected=render_csrf_rejected),
    )
)
