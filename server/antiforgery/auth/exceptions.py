# /auth/exceptions.py
"""
Exception types used by the CSRF engine.

Guidelines
----------
- Only misconfiguration is an exception. A missing or mismatched token on a
  protected request is the normal "reject" outcome and is answered by the
  policy's `on_rejected` hook, not raised.
- `CsrfRejected` exists only to stop FastAPI from running an endpoint when
  protection is applied as a dependency; it carries the rejection response.
- When logging these exceptions, attach the storage kind using the `extra`
  dictionary with the standardized key `LOG_EXTRA_STORAGE_KEY`.

  Example:
      logger.error(
          "CSRF storage unavailable",
          exc_info=True,
          extra={LOG_EXTRA_STORAGE_KEY: storage.kind.value},
      )
"""

from __future__ import annotations

from typing import Any, Dict

from starlette.responses import Response

__all__ = [
    "ConfigurationError",
    "CsrfRejected",
    "LOG_EXTRA_STORAGE_KEY",
]

#: Standardized logging key for attaching the storage kind via `extra`.
LOG_EXTRA_STORAGE_KEY: str = "csrf_storage"


class ConfigurationError(RuntimeError):
    """
    Raised when the CSRF engine cannot work as configured.

    Typical causes include:
    - A non-positive or non-integer token length
    - An unknown storage kind
    - The storage backend's prerequisite missing from the request pipeline
      (e.g. `SessionMiddleware` not installed for session storage)

    These are operator errors. They are never turned into a 403; they
    propagate to the host's error handling.

    Example
    -------
    >>> raise ConfigurationError("CSRF token length must be a positive integer, got 0")
    Traceback (most recent call last):
        ...
    ConfigurationError: CSRF token length must be a positive integer, got 0
    """
    pass


class CsrfRejected(Exception):
    """
    Carries the rejection response out of a FastAPI dependency.

    Parameters
    ----------
    response:
        The response produced by the policy's `on_rejected` hook.
    reason:
        Why validation failed (see `enums.RejectReason`).
    """

    __slots__ = ("response", "reason")

    def __init__(self, response: Response, reason: str) -> None:
        self.response = response
        self.reason = reason
        super().__init__(f"CSRF validation failed: {reason}")

    def to_dict(self) -> Dict[str, Any]:
        return {
            "error": self.__class__.__name__,
            "reason": self.reason,
            "status_code": self.response.status_code,
        }
