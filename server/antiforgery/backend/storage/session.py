from typing import Optional

from starlette.requests import Request

from antiforgery.auth.exceptions import ConfigurationError
from antiforgery.backend.storage.base import TokenStorage
from antiforgery.enums import StorageKind


class SessionTokenStorage(TokenStorage):
    """Keeps the canonical token under `key` in the framework session."""

    kind = StorageKind.SESSION

    def __init__(self, key: str) -> None:
        self.key = key

    def ensure_available(self, request: Request) -> None:
        if "session" not in request.scope:
            raise ConfigurationError(
                "CSRF: Session middleware (e.g. starlette's SessionMiddleware) "
                "is required when using session storage."
            )

    async def read(self, request: Request) -> Optional[str]:
        self.ensure_available(request)
        return request.session.get(self.key) or None

    async def write(self, request: Request, token: str) -> None:
        self.ensure_available(request)
        request.session[self.key] = token

    async def clear(self, request: Request) -> None:
        self.ensure_available(request)
        request.session.pop(self.key, None)
