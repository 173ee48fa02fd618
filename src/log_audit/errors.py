"""Exception types raised by the control-plane client and report entry points."""

from __future__ import annotations


class LogAuditError(Exception):
    """Base class for all errors raised by this package."""


class FetchError(LogAuditError):
    """A read from the control plane failed (network, storage or HTTP error)."""

    def __init__(self, message: str, status_code: int | None = None, endpoint: str = "") -> None:
        super().__init__(message)
        self.message = message
        self.status_code = status_code
        self.endpoint = endpoint


class InvalidFilterError(LogAuditError):
    """Report input was rejected before any query was issued."""
