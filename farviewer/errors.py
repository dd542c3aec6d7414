"""Error taxonomy shared by providers, the indexer, and quick-open.

Providers translate every transport-specific failure into one of these types
at their edge, so nothing above the provider layer sees ``OSError`` or
``subprocess`` exceptions.
"""

from __future__ import annotations


class ProviderError(Exception):
    """Base class for filesystem provider failures."""

    retryable = False

    def __init__(self, message: str, path: str = "") -> None:
        super().__init__(message)
        self.path = path

    def __str__(self) -> str:
        message = super().__str__()
        if self.path:
            return f"{message} ({self.path})"
        return message


class NotFound(ProviderError):
    """Path does not exist under the provider root."""


class PermissionDenied(ProviderError):
    """Access to the path was refused."""


class Timeout(ProviderError):
    """Provider call exceeded its per-call timeout."""

    retryable = True


class TransportError(ProviderError):
    """Channel to the tree is unusable (disconnected, spawn failure, I/O error)."""

    retryable = True


class Cancelled(Exception):
    """Work was superseded or shut down; never surfaced to the user."""


def error_kind(error: BaseException) -> str:
    """Return a short lowercase label for status rows and log lines."""
    if isinstance(error, NotFound):
        return "not found"
    if isinstance(error, PermissionDenied):
        return "permission denied"
    if isinstance(error, Timeout):
        return "timeout"
    if isinstance(error, TransportError):
        return "transport error"
    if isinstance(error, Cancelled):
        return "cancelled"
    return type(error).__name__


__all__ = [
    "ProviderError",
    "NotFound",
    "PermissionDenied",
    "Timeout",
    "TransportError",
    "Cancelled",
    "error_kind",
]
