# auth/config.py
from __future__ import annotations

from typing import Any, Dict, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from antiforgery import cfg
from antiforgery.auth.exceptions import ConfigurationError
from antiforgery.auth.policy import ProtectionPolicy
from antiforgery.backend.storage.base import TokenStorage
from antiforgery.enums import StorageKind


class CookieOptions(BaseModel):
    """
    Cookie attributes used when the token (or a scope id) lives in a cookie.
    Passed to `Response.set_cookie` exactly as supplied.
    """
    model_config = ConfigDict(frozen=True, extra="forbid")

    max_age: Optional[int] = cfg.CSRF_COOKIE_MAX_AGE
    expires: Optional[int] = None
    path: str = "/"
    domain: Optional[str] = None
    secure: bool = cfg.CSRF_COOKIE_SECURE
    httponly: bool = cfg.CSRF_COOKIE_HTTPONLY
    samesite: Optional[Literal["lax", "strict", "none"]] = "lax"

    def set_cookie_kwargs(self) -> Dict[str, Any]:
        return self.model_dump()

    def delete_cookie_kwargs(self) -> Dict[str, Any]:
        return self.model_dump(include={"path", "domain", "secure", "httponly", "samesite"})


class CsrfConfig(BaseModel):
    """
    Per-instance CSRF configuration.

    Each `CsrfProtect` owns one of these; nothing here is shared between
    instances, so differently configured protections can be mounted side by
    side. Defaults come from the environment (see `cfg.py`).

    Any invalid value raises `ConfigurationError` at construction time.
    """
    model_config = ConfigDict(frozen=True, extra="forbid", arbitrary_types_allowed=True)

    token_length: int = Field(default=cfg.CSRF_TOKEN_LENGTH, validate_default=True)
    storage_kind: StorageKind = Field(default=cfg.CSRF_STORAGE, validate_default=True)
    storage_options: CookieOptions = Field(default_factory=CookieOptions)
    param_name: str = Field(default=cfg.CSRF_PARAM, validate_default=True)
    value_name: str = Field(default=cfg.CSRF_VALUE, validate_default=True)

    # strategy hooks; None means DefaultPolicy(param_name)
    policy: Optional[ProtectionPolicy] = None
    # explicit backend, takes precedence over storage_kind
    storage: Optional[TokenStorage] = None

    def __init__(self, **data: Any) -> None:
        try:
            super().__init__(**data)
        except ValidationError as exc:
            raise ConfigurationError(f"Invalid CSRF configuration: {exc}") from exc

    @field_validator("token_length", mode="before")
    @classmethod
    def _check_token_length(cls, v: Any) -> int:
        if isinstance(v, bool) or not isinstance(v, int) or v <= 0:
            raise ValueError(f"token_length must be a positive integer, got {v!r}")
        return v

    @field_validator("storage_kind", mode="before")
    @classmethod
    def _check_storage_kind(cls, v: Any) -> StorageKind:
        try:
            return StorageKind(v)
        except ValueError:
            allowed = ", ".join(k.value for k in StorageKind)
            raise ValueError(f"unknown storage kind {v!r} (expected one of: {allowed})")

    @field_validator("param_name", "value_name")
    @classmethod
    def _check_name(cls, v: str) -> str:
        if not v or not v.strip():
            raise ValueError("must be a non-empty string")
        return v
