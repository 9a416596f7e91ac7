"""Common transport abstractions."""

from __future__ import annotations

import codecs
from typing import Callable, Iterable, Iterator, Literal, Mapping, Protocol, Union, runtime_checkable

TransportKind = Literal["http", "memory"]

RequestContent = Union[str, bytes, Iterable[bytes], None]

# Sentinel meaning "use the transport's configured read timeout".
DEFAULT_TIMEOUT: object = object()


class TransportResponse:
    """A response whose body is either buffered bytes or a lazily pulled stream.

    ``close`` releases the underlying connection at most once, however many
    times it is called. Closing a streamed body before it was drained aborts
    the request rather than returning the connection to the pool.
    """

    def __init__(
        self,
        status: int,
        body: bytes | Iterable[bytes] = b"",
        headers: Mapping[str, str] | None = None,
        *,
        reason: str = "",
        on_close: Callable[[], None] | None = None,
    ) -> None:
        self.status = status
        self.reason = reason
        self.headers = {k.lower(): v for k, v in (headers or {}).items()}
        self._buffer: bytes | None = body if isinstance(body, bytes) else None
        self._chunks: Iterable[bytes] | None = None if isinstance(body, bytes) else body
        self._on_close = on_close
        self._consumed = False
        self._closed = False

    @property
    def closed(self) -> bool:
        return self._closed

    @property
    def content_type(self) -> str:
        return (self.headers.get("content-type", "") or "").lower()

    def iter_bytes(self) -> Iterator[bytes]:
        if self._buffer is not None:
            if self._buffer:
                yield self._buffer
            return
        if self._consumed:
            raise RuntimeError("Response body has already been consumed")
        self._consumed = True
        assert self._chunks is not None
        for chunk in self._chunks:
            if chunk:
                yield chunk

    def iter_lines(self, encoding: str = "utf-8") -> Iterator[str]:
        """Yield decoded lines without their terminators, as they arrive."""
        decoder = codecs.getincrementaldecoder(encoding)("replace")
        pending = ""
        for chunk in self.iter_bytes():
            pending += decoder.decode(chunk)
            while "\n" in pending:
                line, pending = pending.split("\n", 1)
                yield line.rstrip("\r")
        pending += decoder.decode(b"", final=True)
        if pending:
            yield pending.rstrip("\r")

    def read(self) -> bytes:
        if self._buffer is None:
            self._buffer = b"".join(self.iter_bytes())
            self._chunks = None
        return self._buffer

    def text(self, encoding: str = "utf-8") -> str:
        return self.read().decode(encoding, errors="replace")

    def close(self) -> None:
        if self._closed:
            return
        self._closed = True
        if self._on_close is not None:
            self._on_close()

    def __enter__(self) -> "TransportResponse":
        return self

    def __exit__(self, *args: object) -> None:
        self.close()

    def __repr__(self) -> str:
        return f"<TransportResponse status={self.status} closed={self._closed}>"


@runtime_checkable
class Transport(Protocol):
    Kind = TransportKind

    @property
    def kind(self) -> TransportKind: ...

    def send(
        self,
        method: str,
        url: str,
        *,
        headers: Mapping[str, str] | None = None,
        content: RequestContent = None,
        timeout: float | None | object = DEFAULT_TIMEOUT,
    ) -> TransportResponse: ...

    def close(self) -> None: ...


__all__ = [
    "DEFAULT_TIMEOUT",
    "RequestContent",
    "Transport",
    "TransportKind",
    "TransportResponse",
]
