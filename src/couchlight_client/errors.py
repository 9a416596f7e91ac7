"""Custom exceptions raised by the couchlight Python client."""

from __future__ import annotations

from typing import Any


class CouchError(Exception):
    """Base error for all client failures."""

    def __init__(self, message: str, *, context: Any | None = None) -> None:
        super().__init__(message)
        self.context = context


class TransportError(CouchError):
    """Raised when the client cannot reach the server or an I/O call fails."""


class DecodeError(CouchError):
    """Raised when a response body cannot be decoded into the requested shape."""


class PreconditionError(CouchError, ValueError):
    """Raised when id/revision arguments are inconsistent with the operation."""


class FeedError(CouchError):
    """Raised when reading a continuous changes feed fails."""


class ResponseError(CouchError):
    """Raised when the server answers with a non-success status."""

    def __init__(
        self,
        message: str,
        *,
        status: int,
        reason: str = "",
        body: str = "",
        context: Any | None = None,
    ) -> None:
        super().__init__(message, context=context)
        self.status = status
        self.reason = reason
        self.body = body


class DocumentNotFoundError(ResponseError):
    """Raised when the target document or database does not exist."""


class DocumentConflictError(ResponseError):
    """Raised when a write carries a stale revision."""


class RequestFailedError(ResponseError):
    """Raised for every other non-2xx response."""


__all__ = [
    "CouchError",
    "DecodeError",
    "DocumentConflictError",
    "DocumentNotFoundError",
    "FeedError",
    "PreconditionError",
    "RequestFailedError",
    "ResponseError",
    "TransportError",
]
