"""Change notifications: one-shot and continuous feeds.

Usage::

    changes = client.changes().include_docs(True).heartbeat(30000)
    with changes.continuous_changes() as feed:
        for row in feed:
            handle(row.id, row.doc)
            if done:
                feed.stop()

A continuous feed is a long-lived GET whose body the server keeps appending
to. It is consumed line by line from a single thread; :meth:`ChangesFeed.stop`
may be called from any thread and takes effect at the next pull.
"""

from __future__ import annotations

import enum
import threading
from typing import TYPE_CHECKING, Any, Iterator

from .errors import FeedError
from .interpreter import as_stream, decode_as
from .logger import BoundLogger
from .types import ChangeRow, ChangesResult
from .uri import URIBuilder

if TYPE_CHECKING:  # pragma: no cover
    from .client import CouchClient

LAST_SEQ_PREFIX = '{"last_seq":'

# Extra seconds granted on top of the server-side heartbeat/timeout before a
# silent connection is considered dead.
READ_GRACE_SECONDS = 10.0


class FeedState(enum.Enum):
    IDLE = "idle"
    STREAMING = "streaming"
    YIELDING = "yielding"
    STOPPED = "stopped"


class Changes:
    """Builder for change-notification requests against one database."""

    def __init__(self, client: "CouchClient") -> None:
        self._client = client
        self._params: dict[str, Any] = {}

    def since(self, since: Any) -> "Changes":
        self._params["since"] = since
        return self

    def limit(self, limit: int) -> "Changes":
        self._params["limit"] = limit
        return self

    def heartbeat(self, heartbeat_ms: int) -> "Changes":
        self._params["heartbeat"] = heartbeat_ms
        return self

    def timeout(self, timeout_ms: int) -> "Changes":
        self._params["timeout"] = timeout_ms
        return self

    def filter(self, name: str) -> "Changes":
        self._params["filter"] = name
        return self

    def include_docs(self, include_docs: bool = True) -> "Changes":
        self._params["include_docs"] = include_docs
        return self

    def style(self, style: str) -> "Changes":
        self._params["style"] = style
        return self

    @property
    def params(self) -> dict[str, Any]:
        return dict(self._params)

    def get_changes(self) -> ChangesResult:
        uri = self._builder().query("feed", "normal").build()
        response = self._client.executor.execute("GET", uri)
        return decode_as(response, ChangesResult, self._client.codec)

    def continuous_changes(self) -> "ChangesFeed":
        feed = ChangesFeed(
            self._client,
            self._builder().query("feed", "continuous").build(),
            read_timeout=self._read_timeout(),
        )
        feed.open()
        return feed

    def _builder(self) -> URIBuilder:
        return self._client.db_path().path_segment("_changes").query_params(self._params)

    def _read_timeout(self) -> float | None:
        bounds = [self._params[key] for key in ("heartbeat", "timeout") if self._params.get(key)]
        if not bounds:
            return None
        return max(bounds) / 1000.0 + READ_GRACE_SECONDS


class ChangesFeed:
    """Pull-based iterator over a continuous changes response.

    Not safe for concurrent pulls. Termination (end of stream, stop, error or
    close) releases the response exactly once.
    """

    def __init__(self, client: "CouchClient", uri: str, *, read_timeout: float | None = None) -> None:
        self._client = client
        self._uri = uri
        self._read_timeout = read_timeout
        self._logger: BoundLogger = client.logger.child("changes")
        self._stop_event = threading.Event()
        self._terminate_lock = threading.Lock()
        self._state = FeedState.IDLE
        self._response = None
        self._lines: Iterator[str] | None = None
        self._next_row: ChangeRow | None = None

    @property
    def state(self) -> FeedState:
        return self._state

    @property
    def uri(self) -> str:
        return self._uri

    @property
    def stopped(self) -> bool:
        return self._state is FeedState.STOPPED

    def open(self) -> "ChangesFeed":
        if self._state is not FeedState.IDLE:
            return self
        self._logger.info("Opening continuous changes feed %s", self._uri)
        response = self._client.executor.execute("GET", self._uri, timeout=self._read_timeout)
        self._response = as_stream(response)
        self._lines = self._response.iter_lines()
        self._state = FeedState.STREAMING
        return self

    def has_next(self) -> bool:
        """Block until a row is available; False once the feed has ended."""
        if self._next_row is not None:
            return True
        if self._state is FeedState.STOPPED:
            return False
        if self._state is FeedState.IDLE:
            self.open()
        row = self._read_next_row()
        if row is None:
            self._terminate("end of feed")
            return False
        self._next_row = row
        self._state = FeedState.YIELDING
        return True

    def next(self) -> ChangeRow:
        if not self.has_next():
            raise StopIteration
        row = self._next_row
        assert row is not None
        self._next_row = None
        self._state = FeedState.STREAMING
        return row

    def stop(self) -> None:
        """Request the feed to stop at the next pull. Safe from any thread."""
        self._stop_event.set()

    def close(self) -> None:
        """Stop and release the connection now."""
        self._stop_event.set()
        self._next_row = None
        self._terminate("closed")

    def _read_next_row(self) -> ChangeRow | None:
        if self._stop_event.is_set():
            return None
        assert self._lines is not None
        try:
            for line in self._lines:
                if not line.strip():
                    # Heartbeat; also a chance to observe a pending stop.
                    if self._stop_event.is_set():
                        return None
                    continue
                if line.startswith(LAST_SEQ_PREFIX):
                    self._logger.debug("Received terminal record %s", line)
                    return None
                row = ChangeRow.from_json(self._client.codec.decode(line))
                self._logger.trace("Change seq=%s id=%s", row.seq, row.id)
                return row
        except Exception as exc:
            self._terminate("read error")
            raise FeedError(f"Error reading continuous stream: {exc}", context=self._uri) from exc
        return None

    def _terminate(self, why: str) -> None:
        with self._terminate_lock:
            if self._state is FeedState.STOPPED:
                return
            self._state = FeedState.STOPPED
            response, self._response = self._response, None
            self._lines = None
        self._logger.info("Continuous changes feed terminated (%s)", why)
        if response is not None:
            response.close()

    def __iter__(self) -> "ChangesFeed":
        return self

    def __next__(self) -> ChangeRow:
        return self.next()

    def __enter__(self) -> "ChangesFeed":
        return self.open()

    def __exit__(self, *args: object) -> None:
        self.close()


__all__ = ["Changes", "ChangesFeed", "FeedState", "LAST_SEQ_PREFIX"]
