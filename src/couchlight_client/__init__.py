"""Public surface for the couchlight Python client."""

from .changes import Changes, ChangesFeed, FeedState
from .client import CouchClient
from .codec import JsonCodec
from .config import ConnectionContext
from .errors import (
    CouchError,
    DecodeError,
    DocumentConflictError,
    DocumentNotFoundError,
    FeedError,
    PreconditionError,
    RequestFailedError,
    ResponseError,
    TransportError,
)
from .interpreter import Outcome
from .transport import HttpTransport, Transport, TransportResponse
from .types import ChangeRow, ChangesResult, WriteResult
from .version import __version__

__all__ = [
    "__version__",
    "ChangeRow",
    "Changes",
    "ChangesFeed",
    "ChangesResult",
    "ConnectionContext",
    "CouchClient",
    "CouchError",
    "DecodeError",
    "DocumentConflictError",
    "DocumentNotFoundError",
    "FeedError",
    "FeedState",
    "HttpTransport",
    "JsonCodec",
    "Outcome",
    "PreconditionError",
    "RequestFailedError",
    "ResponseError",
    "Transport",
    "TransportError",
    "TransportResponse",
    "WriteResult",
]
