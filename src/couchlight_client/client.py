"""High-level client for a CouchDB-compatible document database."""

from __future__ import annotations

import threading
import uuid
from typing import IO, Any, Iterable, Iterator, Mapping

from .auth import AuthManager
from .changes import Changes
from .codec import JsonCodec
from .config import ConnectionContext
from .errors import DecodeError, DocumentNotFoundError, PreconditionError
from .executor import RequestExecutor
from .interpreter import as_stream, convert, decode_as, drain, validate
from .logger import BoundLogger, LogLevel, create_logger
from .transport import DEFAULT_TIMEOUT, HttpTransport, Transport, TransportResponse
from .types import JsonObject, WriteResult
from .uri import URIBuilder

ATTACHMENT_CHUNK_SIZE = 64 * 1024


def generate_id() -> str:
    """Client-side document id, so creates need no round trip for allocation."""
    return uuid.uuid4().hex


def _require(value: Any, name: str) -> None:
    # Empty documents, payloads and lists are valid; only missing or blank names are not.
    if value is None or (isinstance(value, str) and not value):
        raise PreconditionError(f"{name} may not be null or empty.")


def _iter_chunks(stream: IO[bytes] | bytes | Iterable[bytes]) -> bytes | Iterator[bytes]:
    if isinstance(stream, bytes):
        return stream
    read = getattr(stream, "read", None)
    if read is None:
        return iter(stream)
    return iter(lambda: read(ATTACHMENT_CHUNK_SIZE), b"")


class CouchClient:
    """Primary entry point for one database on a CouchDB-compatible server.

    Every document call is synchronous: it blocks until the response is read
    and decoded and its connection released. Calls from several threads are
    independent; the connection context is read-only after construction.
    """

    def __init__(
        self,
        context: ConnectionContext | None = None,
        *,
        url: str | None = None,
        db_name: str | None = None,
        username: str | None = None,
        password: str | None = None,
        read_timeout: float = 60.0,
        transport: Transport | None = None,
        codec: JsonCodec | None = None,
        default_headers: Mapping[str, str] | None = None,
        logger: object | None = None,
        log_level: LogLevel | None = None,
    ) -> None:
        if context is None:
            if not db_name:
                raise ValueError("Either a ConnectionContext or db_name is required")
            overrides: dict[str, Any] = {"read_timeout": read_timeout}
            if username:
                overrides["username"] = username
            if password:
                overrides["password"] = password
            context = ConnectionContext.from_url(url or "http://localhost:5984", db_name, **overrides)
        self._context = context
        self._codec = codec or JsonCodec()
        self._logger = create_logger(logger=logger, level=log_level)
        self._logger.info("Initializing CouchClient for %s/%s", context.base_url, context.db_name)
        self._transport = transport or HttpTransport(
            context.base_url,
            read_timeout=context.read_timeout,
            connect_timeout=context.connect_timeout,
            max_connections=context.max_connections,
            logger=self._logger,
        )
        auth = AuthManager(context.username, context.password, self._logger)
        self._executor = RequestExecutor(self._transport, auth, self._logger, default_headers)
        self._uri_lock = threading.Lock()
        self._base_uri: str | None = None
        self._db_uri: str | None = None

    # Accessors

    @property
    def context(self) -> ConnectionContext:
        return self._context

    @property
    def codec(self) -> JsonCodec:
        return self._codec

    @property
    def logger(self) -> BoundLogger:
        return self._logger

    @property
    def executor(self) -> RequestExecutor:
        return self._executor

    @property
    def base_uri(self) -> str:
        if self._base_uri is None:
            with self._uri_lock:
                if self._base_uri is None:
                    self._base_uri = self._context.base_url + "/"
        return self._base_uri

    @property
    def db_uri(self) -> str:
        if self._db_uri is None:
            with self._uri_lock:
                if self._db_uri is None:
                    self._db_uri = URIBuilder(self._context.base_url).path_segment(self._context.db_name).build() + "/"
        return self._db_uri

    def db_path(self) -> URIBuilder:
        """Builder for paths inside the database, relative to the transport's base URL."""
        return URIBuilder().path_segment(self._context.db_name)

    def changes(self) -> Changes:
        return Changes(self)

    # Reads

    def find(
        self,
        doc_id: str,
        *,
        rev: str | None = None,
        params: Mapping[str, Any] | None = None,
        shape: Any = None,
    ) -> Any:
        _require(doc_id, "id")
        if rev is not None:
            _require(rev, "rev")
        uri = self.db_path().path_segment(doc_id).query_params(params).query("rev", rev).build()
        return self._get(uri, shape)

    def find_stream(self, doc_id: str, *, rev: str | None = None) -> TransportResponse:
        """Return the open response for a document; the caller must close it."""
        _require(doc_id, "id")
        uri = self.db_path().path_segment(doc_id).query("rev", rev).build()
        return as_stream(self._executor.execute("GET", uri))

    def find_attachment(self, doc_id: str, name: str) -> TransportResponse:
        """Return the open response for an attachment; the caller must close it."""
        _require(doc_id, "docId")
        _require(name, "name")
        uri = self.db_path().path_segment(doc_id, name).build()
        return as_stream(self._executor.execute("GET", uri))

    def find_any(self, uri: str, shape: Any = None) -> Any:
        _require(uri, "uri")
        return self._get(uri, shape)

    def find_docs(self, query: str | Mapping[str, Any], shape: Any = None) -> list[Any]:
        _require(query, "query")
        body = query if isinstance(query, str) else self._codec.encode(query)
        uri = self.db_path().path_segment("_find").build()
        envelope = decode_as(self._executor.execute("POST", uri, body=body), dict, self._codec)
        docs = envelope.get("docs")
        if not isinstance(docs, list):
            raise DecodeError("Query response has no 'docs' array", context=envelope)
        results = []
        for doc in docs:
            if not isinstance(doc, dict):
                raise DecodeError(f"Expected a JSON object in 'docs', got {type(doc).__name__}")
            results.append(convert(doc, shape))
        return results

    def contains(self, doc_id: str) -> bool:
        _require(doc_id, "id")
        response = self._executor.execute("HEAD", self.db_path().path_segment(doc_id).build())
        try:
            validate(response)
        except DocumentNotFoundError:
            return False
        finally:
            response.close()
        return True

    # Writes

    def save(self, doc: Any) -> WriteResult:
        """Create a document with PUT, generating an ``_id`` when absent."""
        return self._put(doc, is_create=True)

    def update(self, doc: Any) -> WriteResult:
        """Update a document; it must carry both ``_id`` and ``_rev``."""
        return self._put(doc, is_create=False)

    def post(self, doc: Any) -> WriteResult:
        """Create a document with POST, letting the server assign the id."""
        _require(doc, "object")
        body = self._codec.encode(self._codec.to_object(doc))
        response = self._executor.execute("POST", self.db_path().build(), body=body)
        return decode_as(response, WriteResult, self._codec)

    def batch(self, doc: Any) -> None:
        _require(doc, "object")
        body = self._codec.encode(self._codec.to_object(doc))
        uri = self.db_path().query("batch", "ok").build()
        drain(self._executor.execute("POST", uri, body=body))

    def remove(self, doc_id: str, rev: str) -> WriteResult:
        _require(doc_id, "id")
        _require(rev, "rev")
        uri = self.db_path().path_segment(doc_id).query("rev", rev).build()
        return decode_as(self._executor.execute("DELETE", uri), WriteResult, self._codec)

    def remove_doc(self, doc: Any) -> WriteResult:
        _require(doc, "object")
        obj = self._codec.to_object(doc)
        return self.remove(obj.get("_id"), obj.get("_rev"))  # type: ignore[arg-type]

    def bulk(self, docs: Iterable[Any], *, new_edits: bool = True) -> list[WriteResult]:
        """Write many documents in one request.

        Per-document rejections (conflicts, validation failures) do not fail
        the call; inspect ``ok`` on each result, which keeps input order.
        """
        items = [self._codec.to_object(doc) for doc in docs]
        _require(items, "objects")
        body = self._codec.encode({"new_edits": new_edits, "docs": items})
        uri = self.db_path().path_segment("_bulk_docs").build()
        rows = decode_as(self._executor.execute("POST", uri, body=body), list, self._codec)
        return [WriteResult.from_json(row) for row in rows]

    def save_attachment(
        self,
        stream: IO[bytes] | bytes | Iterable[bytes],
        name: str,
        content_type: str,
        doc_id: str | None = None,
        doc_rev: str | None = None,
    ) -> WriteResult:
        """Upload raw bytes as an attachment.

        Without ``doc_id`` a new container document with a generated id is
        created; ``doc_rev`` is required to attach to an existing document.
        """
        _require(stream, "in")
        _require(name, "name")
        _require(content_type, "ContentType")
        if doc_id is None:
            if doc_rev is not None:
                raise PreconditionError("docRev given without docId")
            doc_id = generate_id()
        _require(doc_id, "docId")
        uri = self.db_path().path_segment(doc_id, name).query("rev", doc_rev).build()
        response = self._executor.execute(
            "PUT",
            uri,
            body=_iter_chunks(stream),
            content_type=content_type,
        )
        return decode_as(response, WriteResult, self._codec)

    def invoke_update_handler(
        self,
        handler: str,
        doc_id: str,
        params: Mapping[str, Any] | None = None,
    ) -> str:
        """Run ``designDoc/function`` update handler against ``doc_id``."""
        _require(handler, "uri")
        _require(doc_id, "docId")
        design, _, function = handler.partition("/")
        if not design or not function:
            raise PreconditionError(f"Update handler must look like 'design/function', got {handler!r}")
        uri = (
            self.db_path()
            .path_segment("_design", design, "_update", function, doc_id)
            .query_params(params)
            .build()
        )
        response = self._executor.execute("PUT", uri)
        try:
            validate(response)
            return response.text()
        finally:
            response.close()

    def execute_request(
        self,
        method: str,
        uri: str,
        *,
        body: str | bytes | Iterable[bytes] | None = None,
        content_type: str | None = None,
        headers: Mapping[str, str] | None = None,
        timeout: float | None | object = DEFAULT_TIMEOUT,
    ) -> TransportResponse:
        """Execute a raw request; the caller must close the returned response."""
        return self._executor.execute(
            method, uri, body=body, content_type=content_type, headers=headers, timeout=timeout
        )

    def close(self) -> None:
        self._transport.close()

    def __enter__(self) -> "CouchClient":
        return self

    def __exit__(self, *args: object) -> None:
        self.close()

    # Helpers

    def _get(self, uri: str, shape: Any) -> Any:
        return decode_as(self._executor.execute("GET", uri), shape, self._codec)

    def _put(self, doc: Any, *, is_create: bool) -> WriteResult:
        _require(doc, "object")
        obj: JsonObject = self._codec.to_object(doc)
        doc_id = obj.get("_id")
        rev = obj.get("_rev")
        if is_create:
            if rev is not None:
                raise PreconditionError("rev must be null when creating a document")
            doc_id = doc_id or generate_id()
        else:
            _require(doc_id, "id")
            _require(rev, "rev")
        uri = self.db_path().path_segment(doc_id).build()
        response = self._executor.execute("PUT", uri, body=self._codec.encode(obj))
        return decode_as(response, WriteResult, self._codec)


__all__ = ["CouchClient", "generate_id"]
