import json
from urllib.parse import parse_qs, urlsplit

import pytest

from couchlight_client import (
    ChangeRow,
    CouchClient,
    DecodeError,
    DocumentNotFoundError,
    FeedError,
    FeedState,
    TransportError,
)
from couchlight_client.changes import READ_GRACE_SECONDS
from couchlight_client.transport.base import DEFAULT_TIMEOUT, Transport, TransportResponse


class DummyTransport:
    kind: Transport.Kind = "memory"

    def __init__(self, *responses: TransportResponse) -> None:
        self.responses = list(responses)
        self.urls: list[str] = []
        self.timeouts: list[object] = []

    def send(self, method, url, *, headers=None, content=None, timeout=DEFAULT_TIMEOUT) -> TransportResponse:
        self.urls.append(url)
        self.timeouts.append(timeout)
        return self.responses.pop(0)

    def close(self) -> None:  # pragma: no cover - not needed
        pass


class FeedBody:
    """Streams the given lines one chunk at a time and records what was pulled."""

    def __init__(self, lines: list[str], *, fail_after: int | None = None) -> None:
        self.lines = lines
        self.fail_after = fail_after
        self.pulled = 0
        self.closes = 0

    def __iter__(self):
        for index, line in enumerate(self.lines):
            if self.fail_after is not None and index == self.fail_after:
                raise TransportError("connection reset")
            self.pulled += 1
            yield (line + "\n").encode("utf-8")

    def response(self) -> TransportResponse:
        return TransportResponse(200, iter(self), on_close=self._closed)

    def _closed(self) -> None:
        self.closes += 1


def row(seq: int, doc_id: str, **extra) -> str:
    return json.dumps({"seq": seq, "id": doc_id, "changes": [{"rev": f"{seq}-r"}], **extra})


def make_client(*responses: TransportResponse) -> tuple[CouchClient, DummyTransport]:
    transport = DummyTransport(*responses)
    return CouchClient(url="http://localhost:5984", db_name="orders", transport=transport), transport


def collect(feed) -> list[str]:
    ids = []
    while feed.has_next():
        ids.append(feed.next().id)
    return ids


def test_continuous_feed_yields_rows_until_terminal_record() -> None:
    body = FeedBody([row(1, "a"), row(2, "b", deleted=True), '{"last_seq":"123"}', row(3, "c")])
    client, _ = make_client(body.response())
    feed = client.changes().continuous_changes()
    assert feed.state is FeedState.STREAMING
    assert feed.has_next()
    first = feed.next()
    assert first == ChangeRow(seq=1, id="a", changes=[{"rev": "1-r"}])
    assert first.revs == ["1-r"]
    assert feed.next().deleted is True
    assert feed.has_next() is False
    assert feed.state is FeedState.STOPPED
    assert body.pulled == 3
    assert body.closes == 1


def test_terminal_record_is_not_parsed_as_row() -> None:
    body = FeedBody(['{"last_seq":"123"}'])
    client, _ = make_client(body.response())
    feed = client.changes().continuous_changes()
    assert feed.has_next() is False
    with pytest.raises(StopIteration):
        feed.next()


def test_blank_lines_are_skipped() -> None:
    plain = FeedBody([row(1, "a"), row(2, "b"), row(3, "c")])
    padded = FeedBody(["", row(1, "a"), "", "", row(2, "b"), "   ", row(3, "c"), ""])
    client, _ = make_client(plain.response(), padded.response())
    assert collect(client.changes().continuous_changes()) == ["a", "b", "c"]
    assert collect(client.changes().continuous_changes()) == ["a", "b", "c"]


def test_end_of_stream_ends_feed() -> None:
    body = FeedBody([row(1, "a")])
    client, _ = make_client(body.response())
    feed = client.changes().continuous_changes()
    assert list(feed) == [ChangeRow(seq=1, id="a", changes=[{"rev": "1-r"}])]
    assert feed.stopped
    assert body.closes == 1


def test_stop_is_observed_at_next_pull_without_reading() -> None:
    body = FeedBody([row(1, "a"), row(2, "b")])
    client, _ = make_client(body.response())
    feed = client.changes().continuous_changes()
    assert feed.next().id == "a"
    feed.stop()
    assert feed.has_next() is False
    assert body.pulled == 1
    assert body.closes == 1


def test_stop_during_heartbeats_ends_feed() -> None:
    feed_ref: list = []

    def chunks():
        yield b"\n"
        feed_ref[0].stop()
        yield b"\n"
        yield (row(1, "a") + "\n").encode()

    client, _ = make_client(TransportResponse(200, chunks()))
    feed = client.changes().heartbeat(1000).continuous_changes()
    feed_ref.append(feed)
    assert feed.has_next() is False
    assert feed.state is FeedState.STOPPED


def test_termination_closes_exactly_once() -> None:
    body = FeedBody([row(1, "a")])
    client, _ = make_client(body.response())
    feed = client.changes().continuous_changes()
    assert collect(feed) == ["a"]
    feed.stop()
    feed.stop()
    feed.close()
    assert feed.has_next() is False
    assert body.closes == 1


def test_repeated_stop_then_close_closes_once() -> None:
    body = FeedBody([row(1, "a")])
    client, _ = make_client(body.response())
    feed = client.changes().continuous_changes()
    feed.stop()
    feed.stop()
    assert feed.has_next() is False
    feed.close()
    assert body.closes == 1


def test_parse_error_raises_feed_error_and_terminates() -> None:
    body = FeedBody([row(1, "a"), "{broken"])
    client, _ = make_client(body.response())
    feed = client.changes().continuous_changes()
    assert feed.next().id == "a"
    with pytest.raises(FeedError):
        feed.has_next()
    assert feed.state is FeedState.STOPPED
    assert body.closes == 1
    assert feed.has_next() is False
    assert body.closes == 1


def test_read_error_raises_feed_error() -> None:
    body = FeedBody([row(1, "a"), row(2, "b")], fail_after=1)
    client, _ = make_client(body.response())
    feed = client.changes().continuous_changes()
    assert feed.next().id == "a"
    with pytest.raises(FeedError) as excinfo:
        feed.next()
    assert isinstance(excinfo.value.__cause__, TransportError)
    assert body.closes == 1


def test_row_without_id_is_a_feed_error() -> None:
    body = FeedBody(['{"seq": 1}'])
    client, _ = make_client(body.response())
    with pytest.raises(FeedError):
        client.changes().continuous_changes().has_next()


def test_row_with_non_array_changes_terminates_feed() -> None:
    body = FeedBody(['{"seq": 1, "id": "a", "changes": 5}', row(2, "b")])
    client, _ = make_client(body.response())
    feed = client.changes().continuous_changes()
    with pytest.raises(FeedError) as excinfo:
        feed.has_next()
    assert isinstance(excinfo.value.__cause__, DecodeError)
    assert feed.state is FeedState.STOPPED
    assert body.closes == 1
    assert feed.has_next() is False
    assert body.closes == 1


def test_change_row_rejects_non_array_changes() -> None:
    with pytest.raises(DecodeError):
        ChangeRow.from_json({"seq": 1, "id": "a", "changes": "1-x"})
    assert ChangeRow.from_json({"seq": 1, "id": "a", "changes": None}).changes == []


def test_query_parameters_and_bounded_read_timeout() -> None:
    client, transport = make_client(FeedBody([]).response())
    (
        client.changes()
        .since("now")
        .limit(10)
        .heartbeat(30000)
        .timeout(5000)
        .filter("app/important")
        .include_docs(True)
        .style("all_docs")
        .continuous_changes()
    )
    parts = urlsplit(transport.urls[0])
    assert parts.path == "/orders/_changes"
    assert parse_qs(parts.query) == {
        "since": ["now"],
        "limit": ["10"],
        "heartbeat": ["30000"],
        "timeout": ["5000"],
        "filter": ["app/important"],
        "include_docs": ["true"],
        "style": ["all_docs"],
        "feed": ["continuous"],
    }
    assert transport.timeouts[0] == 30.0 + READ_GRACE_SECONDS


def test_read_is_unbounded_without_heartbeat_or_timeout() -> None:
    client, transport = make_client(FeedBody([]).response())
    client.changes().continuous_changes()
    assert transport.timeouts[0] is None


def test_parameters_set_after_open_do_not_affect_feed() -> None:
    client, transport = make_client(FeedBody([]).response())
    changes = client.changes().since("5")
    feed = changes.continuous_changes()
    changes.since("99").limit(1)
    assert "since=5" in feed.uri
    assert "since=99" not in feed.uri
    assert len(transport.urls) == 1


def test_included_documents_are_attached_to_rows() -> None:
    body = FeedBody([row(4, "a", doc={"_id": "a", "total": 3})])
    client, _ = make_client(body.response())
    feed = client.changes().include_docs().continuous_changes()
    assert feed.next().doc == {"_id": "a", "total": 3}


def test_open_failure_raises_and_closes_response() -> None:
    closes: list = []
    client, _ = make_client(TransportResponse(404, b'{"error":"not_found"}', on_close=lambda: closes.append(1)))
    with pytest.raises(DocumentNotFoundError):
        client.changes().continuous_changes()
    assert closes == [1]


def test_context_manager_closes_feed() -> None:
    body = FeedBody([row(1, "a"), row(2, "b")])
    client, _ = make_client(body.response())
    with client.changes().continuous_changes() as feed:
        assert feed.next().id == "a"
    assert feed.stopped
    assert body.closes == 1


def test_normal_feed_decodes_changes_result() -> None:
    payload = {
        "results": [json.loads(row(1, "a")), json.loads(row(2, "b", deleted=True))],
        "last_seq": "2-g1A",
        "pending": 0,
    }
    client, transport = make_client(TransportResponse(200, json.dumps(payload).encode()))
    result = client.changes().since(0).get_changes()
    assert [r.id for r in result.results] == ["a", "b"]
    assert result.results[1].deleted is True
    assert result.last_seq == "2-g1A"
    assert result.pending == 0
    assert "feed=normal" in transport.urls[0]
