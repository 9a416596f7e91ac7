"""HTTP transport built on top of httpx."""

from __future__ import annotations

from typing import Iterator, Mapping

import httpx

from ..errors import TransportError
from ..logger import BoundLogger, create_logger
from .base import DEFAULT_TIMEOUT, RequestContent, Transport, TransportResponse


class HttpTransport:
    """Issues one request per call over a pooled ``httpx.Client``.

    Scheme, host, port and base path are bound once through the client's
    ``base_url``; callers pass paths relative to it (absolute URLs are sent
    as-is). Every response is opened in streaming mode and handed back
    undrained, so the caller decides between buffering and incremental reads.
    """

    kind: Transport.Kind = "http"

    def __init__(
        self,
        base_url: str,
        *,
        read_timeout: float = 60.0,
        connect_timeout: float = 10.0,
        max_connections: int = 100,
        client: httpx.Client | None = None,
        logger: BoundLogger | None = None,
    ) -> None:
        self._base_url = base_url.rstrip("/")
        self._read_timeout = read_timeout
        self._connect_timeout = connect_timeout
        self._client = client or httpx.Client(
            base_url=self._base_url,
            timeout=httpx.Timeout(read_timeout, connect=connect_timeout),
            limits=httpx.Limits(max_connections=max_connections),
        )
        self._owns_client = client is None
        self._logger = (logger or create_logger()).child("http")

    @property
    def base_url(self) -> str:
        return self._base_url

    def send(
        self,
        method: str,
        url: str,
        *,
        headers: Mapping[str, str] | None = None,
        content: RequestContent = None,
        timeout: float | None | object = DEFAULT_TIMEOUT,
    ) -> TransportResponse:
        request = self._client.build_request(
            method,
            url,
            headers=dict(headers or {}),
            content=content,
            timeout=self._timeout_for(timeout),
        )
        self._logger.debug("HTTP %s %s", method, request.url)
        try:
            response = self._client.send(request, stream=True)
        except httpx.TimeoutException as exc:
            raise TransportError(f"HTTP {method} {request.url} timed out", context=request.url) from exc
        except httpx.HTTPError as exc:
            raise TransportError(f"Error executing {method} {request.url}: {exc}", context=request.url) from exc

        self._logger.debug("HTTP <- %s %s status=%s", method, request.url, response.status_code)
        return TransportResponse(
            status=response.status_code,
            body=self._iter_body(response),
            headers=response.headers,
            reason=response.reason_phrase,
            on_close=response.close,
        )

    def close(self) -> None:
        if self._owns_client:
            self._client.close()

    def _timeout_for(self, timeout: float | None | object) -> httpx.Timeout:
        if timeout is DEFAULT_TIMEOUT:
            return httpx.Timeout(self._read_timeout, connect=self._connect_timeout)
        return httpx.Timeout(timeout, connect=self._connect_timeout)  # type: ignore[arg-type]

    def _iter_body(self, response: httpx.Response) -> Iterator[bytes]:
        try:
            yield from response.iter_bytes()
        except httpx.TimeoutException as exc:
            raise TransportError(f"Timed out reading response from {response.url}") from exc
        except (httpx.HTTPError, httpx.StreamError) as exc:
            raise TransportError(f"Error reading response from {response.url}: {exc}") from exc


__all__ = ["HttpTransport"]
