from __future__ import annotations

from typing import TYPE_CHECKING, Optional

from starlette.requests import Request

from antiforgery.backend.storage.base import TokenStorage, get_cookie_jar, require_cookie_jar
from antiforgery.enums import StorageKind

if TYPE_CHECKING:
    from antiforgery.auth.config import CookieOptions


class CookieTokenStorage(TokenStorage):
    """
    Keeps the canonical token in a cookie named `name` (double-submit).

    The browser holds the canonical copy; clearing it sends an expired
    cookie, so single use depends on the client honouring that expiry.
    """

    kind = StorageKind.COOKIE

    def __init__(self, name: str, options: CookieOptions) -> None:
        self.name = name
        self.options = options

    def ensure_available(self, request: Request) -> None:
        require_cookie_jar(request, self.kind)

    async def read(self, request: Request) -> Optional[str]:
        jar = get_cookie_jar(request)
        if jar is None:
            return request.cookies.get(self.name) or None
        return jar.get(self.name)

    async def write(self, request: Request, token: str) -> None:
        jar = require_cookie_jar(request, self.kind)
        jar.set(self.name, token, **self.options.set_cookie_kwargs())

    async def clear(self, request: Request) -> None:
        jar = require_cookie_jar(request, self.kind)
        jar.delete(self.name, **self.options.delete_cookie_kwargs())
