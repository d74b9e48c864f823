# auth/policy.py
"""
Protection policies: the three decision hooks of the CSRF engine.

- `should_protect(request)`: does this request need a token at all?
- `extract_submitted_token(request)`: where the client put its copy
- `on_rejected(request)`: the terminal response for a failed check

`DefaultPolicy` implements the documented defaults, `QueryFallbackPolicy`
adds the query string as a last source, and `CustomPolicy` replaces any
subset of the hooks with plain callables.
"""

from __future__ import annotations

import copy
import inspect
from typing import Any, Awaitable, Callable, FrozenSet, Iterable, Optional, Union

from starlette import status
from starlette.requests import Request
from starlette.responses import PlainTextResponse, Response

from antiforgery import cfg

# PATCH is not included; see DESIGN.md.
PROTECTED_METHODS: FrozenSet[str] = frozenset({"POST", "PUT", "DELETE"})
TOKEN_HEADER = cfg.CSRF_HEADER
REJECTED_MESSAGE = "CSRF token invalid"

FORM_CONTENT_TYPES = ("application/x-www-form-urlencoded", "multipart/form-data")


async def read_body_field(request: Request, name: str) -> Optional[str]:
    """
    Read a string field from a JSON object or form body; None if absent.
    Form bodies go through `request.form()`, which reuses a form FastAPI has
    already parsed for the endpoint.
    """
    content_type = request.headers.get("content-type", "").lower()
    if content_type.startswith("application/json"):
        try:
            data = await request.json()
        except ValueError:
            return None
        value = data.get(name) if isinstance(data, dict) else None
    elif content_type.startswith(FORM_CONTENT_TYPES):
        form = await request.form()
        value = form.get(name)
    else:
        return None
    return value if isinstance(value, str) and value else None


class ProtectionPolicy:
    """Base strategy; subclasses override the hooks they need."""

    def bind(self, param_name: str) -> "ProtectionPolicy":
        """
        Return the policy to use for a protection whose token field is
        `param_name`. Policies that read the field by name return a copy
        bound to it unless the name was given explicitly.
        """
        return self

    def should_protect(self, request: Request) -> bool:
        raise NotImplementedError

    async def extract_submitted_token(self, request: Request) -> Optional[str]:
        raise NotImplementedError

    async def on_rejected(self, request: Request) -> Response:
        raise NotImplementedError


class DefaultPolicy(ProtectionPolicy):
    """
    Protect POST/PUT/DELETE; take the token from the body field `param_name`,
    falling back to the `csrf-token` header; reject with a plain 403.
    """

    def __init__(
        self,
        param_name: Optional[str] = None,
        methods: Iterable[str] = PROTECTED_METHODS,
        header_name: str = TOKEN_HEADER,
    ) -> None:
        # None: follow the owning CsrfProtect's param_name (see bind)
        self._param_fixed = param_name is not None
        self.param_name = param_name if param_name is not None else cfg.CSRF_PARAM
        self.methods = frozenset(m.upper() for m in methods)
        self.header_name = header_name

    def bind(self, param_name: str) -> "DefaultPolicy":
        if self._param_fixed or param_name == self.param_name:
            return self
        bound = copy.copy(self)
        bound.param_name = param_name
        return bound

    def should_protect(self, request: Request) -> bool:
        return request.method.upper() in self.methods

    async def extract_submitted_token(self, request: Request) -> Optional[str]:
        token = await read_body_field(request, self.param_name)
        if token is None:
            token = request.headers.get(self.header_name) or None
        return token

    async def on_rejected(self, request: Request) -> Response:
        return PlainTextResponse(REJECTED_MESSAGE, status_code=status.HTTP_403_FORBIDDEN)


class QueryFallbackPolicy(DefaultPolicy):
    """Precedence: body field, then header, then query string parameter."""

    async def extract_submitted_token(self, request: Request) -> Optional[str]:
        token = await super().extract_submitted_token(request)
        if token is None:
            token = request.query_params.get(self.param_name) or None
        return token


ShouldProtect = Callable[[Request], bool]
ExtractToken = Callable[[Request], Union[Optional[str], Awaitable[Optional[str]]]]
OnRejected = Callable[[Request], Union[Response, Awaitable[Response]]]


async def _maybe_await(value: Any) -> Any:
    if inspect.isawaitable(value):
        return await value
    return value


class CustomPolicy(ProtectionPolicy):
    """
    Replace any of the hooks with a callable (sync or async). Hooks left as
    None delegate to `base`, which defaults to `DefaultPolicy()`.

    Example
    -------
    >>> policy = CustomPolicy(should_protect=lambda r: r.url.path.startswith("/forms"))
    """

    def __init__(
        self,
        should_protect: Optional[ShouldProtect] = None,
        extract_submitted_token: Optional[ExtractToken] = None,
        on_rejected: Optional[OnRejected] = None,
        base: Optional[ProtectionPolicy] = None,
    ) -> None:
        self._should_protect = should_protect
        self._extract = extract_submitted_token
        self._on_rejected = on_rejected
        self.base = base or DefaultPolicy()

    def bind(self, param_name: str) -> "CustomPolicy":
        base = self.base.bind(param_name)
        if base is self.base:
            return self
        bound = copy.copy(self)
        bound.base = base
        return bound

    def should_protect(self, request: Request) -> bool:
        if self._should_protect is None:
            return self.base.should_protect(request)
        return bool(self._should_protect(request))

    async def extract_submitted_token(self, request: Request) -> Optional[str]:
        if self._extract is None:
            return await self.base.extract_submitted_token(request)
        return (await _maybe_await(self._extract(request))) or None

    async def on_rejected(self, request: Request) -> Response:
        if self._on_rejected is None:
            return await self.base.on_rejected(request)
        return await _maybe_await(self._on_rejected(request))
