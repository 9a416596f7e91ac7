"""Request execution: headers, credentials and transport failure handling."""

from __future__ import annotations

from typing import Iterable, Mapping

from .auth import AuthManager
from .errors import TransportError
from .logger import BoundLogger
from .transport import DEFAULT_TIMEOUT, Transport, TransportResponse

JSON_CONTENT_TYPE = "application/json"
READ_METHODS = frozenset({"GET", "HEAD"})


class RequestExecutor:
    """Wraps a :class:`Transport` and issues exactly one request per call.

    The returned response holds a pooled connection until it is drained or
    closed; the response interpreter does that for every decoded call.
    """

    def __init__(
        self,
        transport: Transport,
        auth: AuthManager,
        logger: BoundLogger,
        default_headers: Mapping[str, str] | None = None,
    ) -> None:
        self._transport = transport
        self._auth = auth
        self._logger = logger.child("executor")
        self._default_headers = dict(default_headers or {})

    @property
    def transport(self) -> Transport:
        return self._transport

    def execute(
        self,
        method: str,
        url: str,
        *,
        body: str | bytes | Iterable[bytes] | None = None,
        content_type: str | None = None,
        headers: Mapping[str, str] | None = None,
        timeout: float | None | object = DEFAULT_TIMEOUT,
    ) -> TransportResponse:
        method = method.upper()
        request_headers = self.build_headers(method, body, content_type, headers)
        content = body.encode("utf-8") if isinstance(body, str) else body

        # A failed send leaves no response behind: the transport has already
        # released the connection by the time the error reaches us.
        try:
            return self._transport.send(
                method,
                url,
                headers=request_headers,
                content=content,
                timeout=timeout,
            )
        except TransportError:
            self._logger.warn("%s %s failed at transport level", method, url)
            raise
        except OSError as exc:
            self._logger.warn("%s %s failed: %s", method, url, exc)
            raise TransportError(f"Error executing request {method} {url}: {exc}", context=url) from exc

    def build_headers(
        self,
        method: str,
        body: object,
        content_type: str | None,
        headers: Mapping[str, str] | None,
    ) -> dict[str, str]:
        merged = dict(self._default_headers)
        if method in READ_METHODS:
            merged["Accept"] = JSON_CONTENT_TYPE
        if body is not None:
            merged["Content-Type"] = content_type or JSON_CONTENT_TYPE
        if headers:
            merged.update(headers)
        return self._auth.add_http_headers(merged)


__all__ = ["JSON_CONTENT_TYPE", "RequestExecutor"]
