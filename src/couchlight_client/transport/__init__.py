"""Transport implementations exposed to users."""

from .base import DEFAULT_TIMEOUT, RequestContent, Transport, TransportKind, TransportResponse
from .http import HttpTransport

__all__ = [
    "DEFAULT_TIMEOUT",
    "HttpTransport",
    "RequestContent",
    "Transport",
    "TransportKind",
    "TransportResponse",
]
