import httpx
import pytest

from couchlight_client import CouchClient, DocumentNotFoundError, TransportError
from couchlight_client.transport.http import HttpTransport


class ResettingStream(httpx.SyncByteStream):
    def __iter__(self):
        yield b'{"seq":1,"id":"a"}\n'
        raise httpx.ReadError("connection reset by peer")


def make_transport(handler, base_url: str = "http://db.local:5984") -> HttpTransport:
    client = httpx.Client(base_url=base_url, transport=httpx.MockTransport(handler))
    return HttpTransport(base_url, client=client)


def test_send_binds_base_url_and_streams_body() -> None:
    seen: list[httpx.Request] = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(request)
        return httpx.Response(200, content=b'{"_id":"a"}', headers={"Content-Type": "application/json"})

    transport = make_transport(handler, "http://db.local:5984/couch")
    response = transport.send("GET", "/orders/a%2Fb", headers={"Accept": "application/json"})
    assert str(seen[0].url) == "http://db.local:5984/couch/orders/a%2Fb"
    assert seen[0].headers["accept"] == "application/json"
    assert response.status == 200
    assert response.reason == "OK"
    assert response.headers["content-type"] == "application/json"
    assert response.read() == b'{"_id":"a"}'
    response.close()
    assert response.closed


def test_send_streams_request_chunks() -> None:
    received: list[bytes] = []

    def handler(request: httpx.Request) -> httpx.Response:
        received.append(request.read())
        return httpx.Response(201, json={"ok": True, "id": "d", "rev": "1-a"})

    transport = make_transport(handler)
    transport.send("PUT", "/orders/d/file.bin", content=iter([b"ab", b"cd"])).close()
    assert received == [b"abcd"]


def test_connection_failures_become_transport_errors() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectError("connection refused", request=request)

    with pytest.raises(TransportError) as excinfo:
        make_transport(handler).send("GET", "/orders/a")
    assert isinstance(excinfo.value.__cause__, httpx.ConnectError)


def test_timeouts_become_transport_errors() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ReadTimeout("timed out", request=request)

    with pytest.raises(TransportError):
        make_transport(handler).send("GET", "/orders/a")


def test_body_read_failures_become_transport_errors() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(200, stream=ResettingStream())

    response = make_transport(handler).send("GET", "/orders/_changes?feed=continuous")
    lines = response.iter_lines()
    assert next(lines) == '{"seq":1,"id":"a"}'
    with pytest.raises(TransportError):
        next(lines)
    response.close()


def test_per_call_timeout_overrides_read_timeout() -> None:
    timeouts: list[dict] = []

    def handler(request: httpx.Request) -> httpx.Response:
        timeouts.append(request.extensions["timeout"])
        return httpx.Response(200, content=b"")

    transport = make_transport(handler)
    transport.send("GET", "/orders/a").close()
    transport.send("GET", "/orders/_changes", timeout=None).close()
    transport.send("GET", "/orders/_changes", timeout=40.0).close()
    assert timeouts[0]["read"] == 60.0
    assert timeouts[1]["read"] is None
    assert timeouts[2]["read"] == 40.0
    assert all(timeout["connect"] == 10.0 for timeout in timeouts)


def test_client_over_http_transport_end_to_end() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        if request.method == "HEAD":
            return httpx.Response(404)
        if request.url.path == "/orders/_changes":
            body = b'{"seq":1,"id":"a","changes":[]}\n\n{"last_seq":"1"}\n'
            return httpx.Response(200, content=body)
        return httpx.Response(404, json={"error": "not_found", "reason": "missing"})

    transport = make_transport(handler)
    client = CouchClient(url="http://db.local:5984", db_name="orders", transport=transport)
    assert client.contains("a") is False
    with pytest.raises(DocumentNotFoundError):
        client.find("a")
    feed = client.changes().continuous_changes()
    assert [row.id for row in feed] == ["a"]
    client.close()
