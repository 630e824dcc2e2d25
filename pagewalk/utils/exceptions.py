from __future__ import annotations


class PagewalkError(Exception):
    """Base exception for all Pagewalk errors."""


class ImmutableError(PagewalkError):
    """Raised when a record or collection is mutated."""


class OutOfRange(PagewalkError, IndexError):
    """Raised when an index lies beyond the collection's extent."""


class MalformedPagination(PagewalkError):
    """Raised when a Link header cannot be parsed or lacks a needed relation."""


class MalformedResponse(PagewalkError):
    """Raised when a response body cannot be decoded into records."""


class TransportFailure(PagewalkError):
    """Raised when an HTTP request fails."""

    def __init__(self, message: str, status_code: int | None = None) -> None:
        super().__init__(message)
        self.status_code = status_code


class AuthenticationFailed(TransportFailure):
    """Raised when the API rejects the access token."""


class NotConnected(PagewalkError):
    """Raised when no client is registered under the requested alias."""
