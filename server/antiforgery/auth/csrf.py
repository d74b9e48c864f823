# auth/csrf.py
"""
Single-use CSRF token lifecycle for Starlette / FastAPI.

A `CsrfProtect` composes a token store, a protection policy and the token
generator into three pipeline steps, each shaped like a middleware
`dispatch(request, call_next)`:

- `issue`: mint a token when the store has none (never terminal)
- `expose`: put the current token on `request.state.<value_name>` for templates
- `validate`: on protected requests compare the submitted token with the
  stored one in constant time; reject through the policy, or consume the
  token and continue

Usage
-----
csrf = CsrfProtect(storage_kind="cookie", storage_options={"secure": True})
csrf.init_app(app)                      # issue + expose on every request
app.add_middleware(SessionMiddleware, secret_key=...)   # session storage only

@app.post("/form", dependencies=[Depends(csrf.protect)])
async def submit(): ...

Each instance owns its configuration, so several protections with
different settings can be mounted in the same process.
"""

from __future__ import annotations

import logging
from typing import Any, Awaitable, Callable, Optional

from starlette.applications import Starlette
from starlette.requests import Request
from starlette.responses import Response

from antiforgery.auth.config import CsrfConfig
from antiforgery.auth.exceptions import ConfigurationError, CsrfRejected, LOG_EXTRA_STORAGE_KEY
from antiforgery.auth.middleware import CsrfMiddleware
from antiforgery.auth.policy import DefaultPolicy, ProtectionPolicy
from antiforgery.auth.tokens import generate_csrf_token
from antiforgery.backend.storage.base import TokenStorage
from antiforgery.backend.storage.cookie import CookieTokenStorage
from antiforgery.backend.storage.session import SessionTokenStorage
from antiforgery.enums import RejectReason, StorageKind

logger = logging.getLogger(__name__)

CallNext = Callable[[Request], Awaitable[Response]]

#: Attribute on `request.state` holding the token minted during this request.
MINTED_STATE_KEY = "csrf_minted_token"


def build_storage(config: CsrfConfig) -> TokenStorage:
    if config.storage is not None:
        return config.storage
    if config.storage_kind == StorageKind.SESSION:
        return SessionTokenStorage(config.param_name)
    if config.storage_kind == StorageKind.COOKIE:
        return CookieTokenStorage(config.param_name, config.storage_options)
    raise ConfigurationError(
        f"CSRF: {config.storage_kind.value} storage needs an explicit store, "
        "e.g. CsrfConfig(storage=RedisTokenStore(...))."
    )


async def _rejected_handler(request: Request, exc: CsrfRejected) -> Response:
    logger.debug("CSRF rejection returned from dependency", extra=exc.to_dict())
    return exc.response


class CsrfProtect:
    def __init__(self, config: Optional[CsrfConfig] = None, **options: Any) -> None:
        if config is not None and options:
            raise ConfigurationError("CSRF: pass either a CsrfConfig or keyword options, not both.")
        self.config = config if config is not None else CsrfConfig(**options)
        self.storage: TokenStorage = build_storage(self.config)
        policy = self.config.policy if self.config.policy is not None else DefaultPolicy()
        # policies left on the default field name read this instance's param_name
        self.policy: ProtectionPolicy = policy.bind(self.config.param_name)

    @property
    def _log_extra(self) -> dict:
        return {"component": "csrf", LOG_EXTRA_STORAGE_KEY: self.storage.kind.value}

    # ---------------------------
    # issue
    # ---------------------------
    async def ensure_token(self, request: Request) -> str:
        """Return the canonical token, minting and storing one if absent."""
        self.storage.ensure_available(request)
        token = await self.storage.read(request)
        if token is None:
            token = generate_csrf_token(self.config.token_length)
            await self.storage.write(request, token)
            setattr(request.state, MINTED_STATE_KEY, token)
            logger.debug("CSRF token minted", extra=self._log_extra)
        return token

    async def issue(self, request: Request, call_next: CallNext) -> Response:
        await self.ensure_token(request)
        return await call_next(request)

    # ---------------------------
    # expose
    # ---------------------------
    async def current_token(self, request: Request) -> Optional[str]:
        token = await self.storage.read(request)
        return token or getattr(request.state, MINTED_STATE_KEY, None)

    async def expose(self, request: Request, call_next: CallNext) -> Response:
        setattr(request.state, self.config.value_name, await self.current_token(request))
        return await call_next(request)

    # ---------------------------
    # validate
    # ---------------------------
    async def _evaluate(self, request: Request) -> Optional[RejectReason]:
        if not self.policy.should_protect(request):
            return None
        self.storage.ensure_available(request)

        submitted = await self.policy.extract_submitted_token(request)
        if submitted is None:
            return RejectReason.MISSING_TOKEN
        if not await self.storage.consume(request, submitted):
            return RejectReason.TOKEN_MISMATCH

        # consumed: nothing minted earlier in this request may be exposed any more
        if getattr(request.state, MINTED_STATE_KEY, None) is not None:
            setattr(request.state, MINTED_STATE_KEY, None)
        logger.debug("CSRF token consumed", extra=self._log_extra)
        return None

    async def _reject(self, request: Request, reason: RejectReason) -> Response:
        logger.warning(
            "CSRF validation failed",
            extra={**self._log_extra, "reason": reason.value,
                   "method": request.method, "path": request.url.path},
        )
        return await self.policy.on_rejected(request)

    async def check(self, request: Request) -> Optional[Response]:
        """Run the validation decision; return the rejection response, or None to proceed."""
        reason = await self._evaluate(request)
        if reason is None:
            return None
        return await self._reject(request, reason)

    async def validate(self, request: Request, call_next: CallNext) -> Response:
        rejection = await self.check(request)
        if rejection is not None:
            return rejection
        return await call_next(request)

    async def protect(self, request: Request) -> None:
        """
        FastAPI dependency form of `validate`:

            @router.post("/form", dependencies=[Depends(csrf.protect)])

        A rejection is raised as `CsrfRejected`, which the handler installed
        by `init_app` turns back into the policy's response.
        """
        reason = await self._evaluate(request)
        if reason is not None:
            raise CsrfRejected(await self._reject(request, reason), reason.value)

    # ---------------------------
    # app wiring
    # ---------------------------
    def init_app(self, app: Starlette, validate: bool = False) -> None:
        """
        Install `CsrfMiddleware` (issue + expose, plus validate on every
        request when `validate=True`) and the `CsrfRejected` handler.

        With session storage, add `SessionMiddleware` *after* calling this
        so that it wraps the CSRF middleware.
        """
        app.add_middleware(CsrfMiddleware, csrf=self, validate=validate)
        app.add_exception_handler(CsrfRejected, _rejected_handler)
