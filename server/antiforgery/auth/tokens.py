import secrets

from antiforgery.auth.exceptions import ConfigurationError


def generate_csrf_token(length: int = 16) -> str:
    """Generate a hex CSRF token from `length` cryptographically random bytes."""
    if isinstance(length, bool) or not isinstance(length, int) or length <= 0:
        raise ConfigurationError(f"CSRF token length must be a positive integer, got {length!r}")
    return secrets.token_hex(length)
