# backend/redis/store.py
"""
Async Redis token store: keeps the canonical CSRF token server side.

Features:
- Tokens: one per client scope, stored under `<namespace>:token:<scope id>` with TTL
- Scope: an opaque random id carried in an http-only cookie (never the token itself)
- Atomic: `consume` uses WATCH/MULTI so read-compare-clear cannot race
- Robust: retries with exponential backoff + jitter on connection errors/timeouts
- Replay-safe: a replayed cookie header cannot resurrect a consumed token
"""

from __future__ import annotations

import asyncio
import logging
import random
import secrets
from typing import TYPE_CHECKING, Optional

import redis.asyncio as aioredis
from redis.exceptions import ConnectionError, TimeoutError, WatchError
from starlette.requests import Request

from antiforgery import cfg
from antiforgery.auth.exceptions import ConfigurationError
from antiforgery.auth.hashing import tokens_match
from antiforgery.backend.storage.base import TokenStorage, require_cookie_jar
from antiforgery.enums import StorageKind

if TYPE_CHECKING:
    from antiforgery.auth.config import CookieOptions

logger = logging.getLogger(__name__)


class RedisTokenStore(TokenStorage):
    RETRIES = 3
    BACKOFF_BASE = 0.12
    SCOPE_ID_BYTES = 16

    kind = StorageKind.REDIS

    def __init__(
        self,
        client: Optional[aioredis.Redis] = None,
        url: str = cfg.REDIS_URL,
        namespace: str = "csrf",
        ttl: Optional[int] = cfg.CSRF_TOKEN_TTL,
        scope_cookie: str = "_csrf_sid",
        cookie_options: Optional[CookieOptions] = None,
    ) -> None:
        self._url = url
        self._ns = f"{namespace}:" if namespace else ""
        self._r: Optional[aioredis.Redis] = client
        self.ttl = ttl
        self.scope_cookie = scope_cookie
        if cookie_options is None:
            from antiforgery.auth.config import CookieOptions
            cookie_options = CookieOptions(httponly=True)
        self.cookie_options = cookie_options

    # ---------------------------
    # Lifecycle
    # ---------------------------
    async def connect(self) -> None:
        if self._r is None:
            self._r = aioredis.from_url(
                self._url,
                encoding="utf-8",
                decode_responses=True,
                health_check_interval=30,
                socket_keepalive=True,
            )
            await self._with_retry(self._r.ping)
            logger.info("RedisTokenStore connected", extra={"component": "redis"})

    async def close(self) -> None:
        if self._r:
            await self._r.aclose()
            self._r = None
            logger.info("RedisTokenStore closed", extra={"component": "redis"})

    async def __aenter__(self) -> "RedisTokenStore":
        await self.connect()
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.close()

    @property
    def client(self) -> aioredis.Redis:
        if self._r is None:
            raise RuntimeError("RedisTokenStore is not connected. Call connect() first.")
        return self._r

    # ---------------------------
    # Retry wrapper
    # ---------------------------
    async def _with_retry(self, func, *args, **kwargs):
        last_exc: Optional[Exception] = None
        for attempt in range(1, self.RETRIES + 1):
            try:
                return await func(*args, **kwargs)
            except (ConnectionError, TimeoutError) as e:
                last_exc = e
                sleep_s = (self.BACKOFF_BASE * (2 ** (attempt - 1))) + random.uniform(0, 0.05)
                if attempt < self.RETRIES:
                    await asyncio.sleep(sleep_s)
                else:
                    logger.error("Redis operation failed after retries", exc_info=True,
                                 extra={"component": "redis"})
        if last_exc:
            raise last_exc

    # ---------------------------
    # Key helpers
    # ---------------------------
    def _token_key(self, scope_id: str) -> str:
        return f"{self._ns}token:{scope_id}"

    def _scope_id(self, request: Request, create: bool = False) -> Optional[str]:
        jar = require_cookie_jar(request, self.kind)
        scope_id = jar.get(self.scope_cookie)
        if scope_id is None and create:
            scope_id = secrets.token_urlsafe(self.SCOPE_ID_BYTES)
            jar.set(self.scope_cookie, scope_id, **self.cookie_options.set_cookie_kwargs())
        return scope_id

    @staticmethod
    def _decode(raw) -> Optional[str]:
        if raw is None:
            return None
        if isinstance(raw, bytes):
            return raw.decode("utf-8")
        return raw

    # ---------------------------
    # Token operations
    # ---------------------------
    def ensure_available(self, request: Request) -> None:
        require_cookie_jar(request, self.kind)
        if self._r is None:
            raise ConfigurationError(
                "CSRF: RedisTokenStore is not connected; call connect() before serving requests."
            )

    async def read(self, request: Request) -> Optional[str]:
        scope_id = self._scope_id(request)
        if scope_id is None:
            return None
        raw = await self._with_retry(self.client.get, self._token_key(scope_id))
        return self._decode(raw)

    async def write(self, request: Request, token: str) -> None:
        scope_id = self._scope_id(request, create=True)
        await self._with_retry(self.client.set, self._token_key(scope_id), token, ex=self.ttl)

    async def clear(self, request: Request) -> None:
        scope_id = self._scope_id(request)
        if scope_id is None:
            return
        await self._with_retry(self.client.delete, self._token_key(scope_id))

    async def consume(self, request: Request, submitted: str) -> bool:
        """
        Atomic compare-and-clear. The key is WATCHed while it is read and
        compared; if another request deletes or rewrites it before our
        MULTI/EXEC runs, the transaction aborts and this request loses.
        """
        scope_id = self._scope_id(request)
        if scope_id is None:
            return False
        key = self._token_key(scope_id)

        async def _attempt() -> bool:
            async with self.client.pipeline(transaction=True) as pipe:
                await pipe.watch(key)
                canonical = self._decode(await pipe.get(key))
                if not tokens_match(canonical, submitted):
                    await pipe.unwatch()
                    return False
                pipe.multi()
                pipe.delete(key)
                try:
                    await pipe.execute()
                except WatchError:
                    logger.warning("CSRF token changed during consume", extra={"component": "redis"})
                    return False
                return True

        return await self._with_retry(_attempt)
