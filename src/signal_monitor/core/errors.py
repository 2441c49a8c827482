"""Error types shared by the adapters."""

from typing import Iterable, Optional


class ConfigurationError(ValueError):
    """Raised at adapter construction when a credential is missing or malformed."""


class SourceAPIError(RuntimeError):
    """An origin API call failed (network, rate limit, auth or 5xx)."""
    
    def __init__(self, message: str, status_code: Optional[int] = None) -> None:
        super().__init__(message)
        self.status_code = status_code


def is_auth_failure(message: str, markers: Iterable[str]) -> bool:
    """Check if an error message carries one of the source's auth-failure markers."""
    lower = message.lower()
    return any(marker.lower() in lower for marker in markers)
