# /backend/storage/base.py
"""
Storage backends for the canonical CSRF token.

Every backend implements the same small capability set:

- `ensure_available(request)`: raise `ConfigurationError` when the backend's
  prerequisite is missing from the pipeline (loud, never a silent no-op)
- `read(request)`: the canonical token or None
- `write(request, token)`: store a freshly minted token
- `clear(request)`: forget the canonical token (consumption)
- `consume(request, submitted)`: compare-and-clear; returns True when the
  submitted token matched and has been cleared

`write` and `clear` are the only places the canonical token is mutated.
Backends with transactional primitives override `consume` so that
read-compare-clear is atomic.
"""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from typing import Any, Dict, Mapping, Optional, Tuple

from starlette.requests import Request
from starlette.responses import Response

from antiforgery.auth.exceptions import ConfigurationError
from antiforgery.auth.hashing import tokens_match
from antiforgery.enums import StorageKind

logger = logging.getLogger(__name__)

#: Attribute on `request.state` holding the per-request `CookieJar`.
COOKIE_JAR_STATE_KEY = "csrf_cookie_jar"


class TokenStorage(ABC):
    kind: StorageKind

    def ensure_available(self, request: Request) -> None:
        return None

    @abstractmethod
    async def read(self, request: Request) -> Optional[str]:
        ...

    @abstractmethod
    async def write(self, request: Request, token: str) -> None:
        ...

    @abstractmethod
    async def clear(self, request: Request) -> None:
        ...

    async def consume(self, request: Request, submitted: str) -> bool:
        """
        Default compare-and-clear. Not atomic: two concurrent requests that
        read the same token before either clears it can both succeed.
        """
        canonical = await self.read(request)
        if not tokens_match(canonical, submitted):
            return False
        await self.clear(request)
        return True


# ---------------------------
# Per-request cookie jar
# ---------------------------
class CookieJar:
    """
    Cookie view for a single request.

    Reads see the incoming request cookies overlaid with the mutations made
    earlier in the same request. Mutations are queued and written onto the
    outgoing response by `apply()` (called by `CsrfMiddleware`).
    """

    def __init__(self, incoming: Mapping[str, str]) -> None:
        self._incoming: Dict[str, str] = dict(incoming)
        # name -> (value or None for deletion, cookie kwargs)
        self._pending: Dict[str, Tuple[Optional[str], Dict[str, Any]]] = {}

    def get(self, name: str) -> Optional[str]:
        if name in self._pending:
            return self._pending[name][0]
        return self._incoming.get(name) or None

    def set(self, name: str, value: str, **options: Any) -> None:
        self._pending[name] = (value, options)

    def delete(self, name: str, **options: Any) -> None:
        self._pending[name] = (None, options)

    @property
    def pending(self) -> Dict[str, Tuple[Optional[str], Dict[str, Any]]]:
        return dict(self._pending)

    def apply(self, response: Response) -> None:
        for name, (value, options) in self._pending.items():
            if value is None:
                response.delete_cookie(name, **options)
            else:
                response.set_cookie(name, value, **options)


def get_cookie_jar(request: Request) -> Optional[CookieJar]:
    return getattr(request.state, COOKIE_JAR_STATE_KEY, None)

def attach_cookie_jar(request: Request) -> CookieJar:
    jar = get_cookie_jar(request)
    if jar is None:
        jar = CookieJar(request.cookies)
        setattr(request.state, COOKIE_JAR_STATE_KEY, jar)
    return jar

def require_cookie_jar(request: Request, kind: StorageKind) -> CookieJar:
    jar = get_cookie_jar(request)
    if jar is None:
        raise ConfigurationError(
            f"CSRF: CsrfMiddleware is required when using {kind.value} storage "
            "(cookie writes would otherwise never reach the response)."
        )
    return jar
