from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.requests import Request
from starlette.responses import Response
from starlette.types import ASGIApp

from antiforgery.auth.exceptions import ConfigurationError, LOG_EXTRA_STORAGE_KEY
from antiforgery.backend.storage.base import attach_cookie_jar, get_cookie_jar

if TYPE_CHECKING:
    from antiforgery.auth.csrf import CsrfProtect

logger = logging.getLogger(__name__)


class CsrfMiddleware(BaseHTTPMiddleware):
    """
    Runs issue -> expose -> (validate) for every request, then writes any
    queued cookie changes onto the response that comes back, whether that
    is the endpoint's response or a rejection.
    """

    def __init__(self, app: ASGIApp, csrf: CsrfProtect, validate: bool = False) -> None:
        super().__init__(app)
        self.csrf = csrf
        self.validate = validate

    async def dispatch(self, request: Request, call_next: RequestResponseEndpoint) -> Response:
        # outermost CSRF middleware owns the jar and flushes it
        owns_jar = get_cookie_jar(request) is None
        jar = attach_cookie_jar(request)

        async def _downstream(req: Request) -> Response:
            if self.validate:
                # cached body is replayed to the endpoint after token extraction
                await req.body()
                return await self.csrf.validate(req, call_next)
            return await call_next(req)

        async def _expose(req: Request) -> Response:
            return await self.csrf.expose(req, _downstream)

        try:
            response = await self.csrf.issue(request, _expose)
        except ConfigurationError:
            logger.error(
                "CSRF misconfigured",
                exc_info=True,
                extra={"component": "csrf", LOG_EXTRA_STORAGE_KEY: self.csrf.storage.kind.value},
            )
            raise

        if owns_jar:
            jar.apply(response)
        return response
