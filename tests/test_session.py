from __future__ import annotations

import io
import socket

import pytest

from coordinator.errors import FramingError, ProtocolIOFailure, UnexpectedMessageTag
from coordinator.worker.arguments import WorkerArguments
from coordinator.worker.codes import CompletionCode, Tag
from coordinator.worker.dispatch import TagRouter
from coordinator.worker.session import ResultKind, SessionResult, SessionState, WorkerSession
from coordinator.worker.wire import DataReader, DataWriter


class FakeInbound(io.BytesIO):
    def __init__(self, data: bytes, events: list[str]) -> None:
        super().__init__(data)
        self.events = events
        self.unread_at_close: int | None = None

    def read(self, size: int | None = -1) -> bytes:
        if "read" not in self.events:
            self.events.append("read")
        return super().read(size)

    def close(self) -> None:
        if not self.closed:
            self.unread_at_close = len(self.getvalue()) - self.tell()
        super().close()


class FakeOutbound(io.BytesIO):
    def __init__(self) -> None:
        super().__init__()
        self.written = b""

    def close(self) -> None:
        if not self.closed:
            self.written = self.getvalue()
        super().close()


class FakeConnection:
    def __init__(self, data: bytes, events: list[str], *, fail_close: bool = False) -> None:
        self.inbound = FakeInbound(data, events)
        self.outbound = FakeOutbound()
        self.events = events
        self.fail_close = fail_close
        self.close_calls = 0
        self.unread_at_close: int | None = None

    def makefile(self, mode: str):
        return self.inbound if "r" in mode else self.outbound

    def close(self) -> None:
        self.close_calls += 1
        self.unread_at_close = self.inbound.unread_at_close
        self.events.append("connection.close")
        if self.fail_close:
            raise OSError("connection close failed")


class FakeListener:
    def __init__(
        self,
        connection: FakeConnection | None,
        events: list[str],
        *,
        accept_error: OSError | None = None,
        fail_close: bool = False,
    ) -> None:
        self.connection = connection
        self.events = events
        self.accept_error = accept_error
        self.fail_close = fail_close
        self.close_calls = 0

    def accept(self):
        if self.accept_error is not None:
            raise self.accept_error
        return self.connection, ("127.0.0.1", 40000)

    def close(self) -> None:
        self.close_calls += 1
        self.events.append("listener.close")
        if self.fail_close:
            raise OSError("listener close failed")


class StaticPayload:
    def __init__(self, events: list[str]) -> None:
        self.events = events
        self.calls = 0

    def write_initial_payload(self, writer: DataWriter) -> None:
        self.calls += 1
        self.events.append("payload")
        writer.write_string("config")


class RecordingDispatcher:
    def __init__(self) -> None:
        self.calls: list[tuple[int, str]] = []

    def dispatch(self, tag: int, reader: DataReader) -> None:
        self.calls.append((tag, reader.read_string()))


def worker_stream(records: list[tuple[int, str]], trailer: int | None = 0) -> bytes:
    buf = io.BytesIO()
    w = DataWriter(buf)
    for tag, payload in records:
        w.write_byte(tag)
        w.write_string(payload)
    if trailer is not None:
        w.write_byte(Tag.DONE)
        w.write_int(trailer)
    return buf.getvalue()


def _session(data: bytes, **listener_kwargs):
    events: list[str] = []
    conn_fail = listener_kwargs.pop("connection_fail_close", False)
    connection = FakeConnection(data, events, fail_close=conn_fail)
    listener = FakeListener(connection, events, **listener_kwargs)
    payload = StaticPayload(events)
    dispatcher = RecordingDispatcher()
    session = WorkerSession(listener, payload, dispatcher)
    return session, listener, connection, payload, dispatcher, events


def test_happy_path_dispatches_records_in_order() -> None:
    data = worker_stream([(Tag.REPORT, "P"), (Tag.REPORT, "Q")], trailer=0)
    session, listener, connection, payload, dispatcher, events = _session(data)

    code = session.call()

    assert code is CompletionCode.OK
    assert dispatcher.calls == [(Tag.REPORT, "P"), (Tag.REPORT, "Q")]
    assert payload.calls == 1
    assert session.state is SessionState.COMPLETED


def test_initial_payload_is_written_before_any_read() -> None:
    data = worker_stream([(Tag.DESCRIBE, "d")], trailer=0)
    session, _, connection, _, _, events = _session(data)

    session.call()

    assert events.index("payload") < events.index("read")
    assert DataReader(io.BytesIO(connection.outbound.written)).read_string() == "config"


def test_cleanup_on_success_happens_once_after_trailer() -> None:
    data = worker_stream([(Tag.REPORT, "P")], trailer=0)
    session, listener, connection, _, _, events = _session(data)

    session.call()

    assert connection.close_calls == 1
    assert listener.close_calls == 1
    # the whole stream, trailer included, was consumed before closing
    assert connection.unread_at_close == 0
    assert events[-2:] == ["connection.close", "listener.close"]


def test_unknown_trailer_maps_to_unknown_error() -> None:
    data = worker_stream([(Tag.REPORT, "P"), (Tag.REPORT, "Q")], trailer=999999)
    session, *_ = _session(data)

    assert session.call() is CompletionCode.UNKNOWN_ERROR


def test_empty_result_stream() -> None:
    session, _, _, _, dispatcher, _ = _session(worker_stream([], trailer=14))

    assert session.call() is CompletionCode.TIMEOUT
    assert dispatcher.calls == []


def test_peer_closing_mid_loop_fails_and_releases_resources() -> None:
    data = worker_stream([(Tag.REPORT, "P")], trailer=None)
    session, listener, connection, _, dispatcher, _ = _session(data)

    with pytest.raises(ProtocolIOFailure) as excinfo:
        session.call()

    failure = excinfo.value
    assert isinstance(failure.cause, EOFError)
    assert failure.__cause__ is failure.cause
    assert failure.state == SessionState.RECEIVING.value
    assert failure.close_errors == []
    assert "did not crash or deadlock" in str(failure)
    assert dispatcher.calls == [(Tag.REPORT, "P")]
    assert connection.close_calls == 1
    assert listener.close_calls == 1
    assert session.state is SessionState.FAILED


def test_truncated_trailer_is_a_failure_not_a_code() -> None:
    data = worker_stream([], trailer=None) + bytes([Tag.DONE]) + b"\x00\x00"
    session, listener, connection, *_ = _session(data)

    result = session.run()

    assert result.kind is ResultKind.IO_FAILURE
    assert result.code is None
    assert isinstance(result.failure.cause, EOFError)
    assert connection.close_calls == 1 and listener.close_calls == 1


def test_accept_failure_still_closes_listener() -> None:
    events: list[str] = []
    listener = FakeListener(None, events, accept_error=OSError("accept failed"))
    session = WorkerSession(listener, StaticPayload(events), RecordingDispatcher())

    result = session.run()

    assert result.kind is ResultKind.IO_FAILURE
    assert result.failure.state == SessionState.LISTENING.value
    assert "payload" not in events
    assert listener.close_calls == 1


def test_close_failure_after_success_is_a_session_failure() -> None:
    data = worker_stream([(Tag.REPORT, "P")], trailer=0)
    session, listener, connection, *_ = _session(data, fail_close=True)

    with pytest.raises(ProtocolIOFailure) as excinfo:
        session.call()

    failure = excinfo.value
    assert failure.cause is None
    assert len(failure.close_errors) == 1
    assert "listener close failed" in str(failure)
    assert connection.close_calls == 1
    assert listener.close_calls == 1


def test_connection_close_failure_still_closes_listener() -> None:
    data = worker_stream([], trailer=0)
    session, listener, connection, *_ = _session(data, connection_fail_close=True)

    result = session.run()

    assert not result.ok
    assert listener.close_calls == 1
    assert connection.close_calls == 1


def test_io_failure_and_close_failure_are_both_reported() -> None:
    data = worker_stream([(Tag.REPORT, "P")], trailer=None)
    session, *_ = _session(data, fail_close=True, connection_fail_close=True)

    with pytest.raises(ProtocolIOFailure) as excinfo:
        session.call()

    failure = excinfo.value
    assert isinstance(failure.cause, EOFError)
    assert [str(e) for e in failure.close_errors] == [
        "connection close failed",
        "listener close failed",
    ]


def test_unknown_tag_fails_session_through_router() -> None:
    data = worker_stream([(Tag.REPORT, "P"), (7, "?")], trailer=0)
    events: list[str] = []
    connection = FakeConnection(data, events)
    listener = FakeListener(connection, events)
    seen: list[str] = []
    router = TagRouter({Tag.REPORT: lambda reader: seen.append(reader.read_string())})
    session = WorkerSession(listener, StaticPayload(events), router)

    result = session.run()

    assert seen == ["P"]
    assert isinstance(result.failure.cause, UnexpectedMessageTag)
    assert result.failure.cause.tag == 7
    assert connection.close_calls == 1 and listener.close_calls == 1


def test_dispatcher_bug_propagates_after_cleanup() -> None:
    data = worker_stream([(Tag.REPORT, "P")], trailer=0)
    events: list[str] = []
    connection = FakeConnection(data, events)
    listener = FakeListener(connection, events)

    class Broken:
        def dispatch(self, tag: int, reader: DataReader) -> None:
            raise KeyError("bug")

    session = WorkerSession(listener, StaticPayload(events), Broken())

    with pytest.raises(KeyError):
        session.call()
    assert connection.close_calls == 1 and listener.close_calls == 1


def test_result_unwrap() -> None:
    session, *_ = _session(worker_stream([], trailer=0))
    result = session.run()
    assert result.ok
    assert result.unwrap() is CompletionCode.OK

    failing, *_ = _session(worker_stream([], trailer=None))
    with pytest.raises(ProtocolIOFailure):
        failing.run().unwrap()


def test_session_is_single_use() -> None:
    session, *_ = _session(worker_stream([], trailer=0))
    session.call()
    with pytest.raises(RuntimeError):
        session.call()


def test_undecodable_string_record_is_an_io_failure() -> None:
    buf = io.BytesIO()
    w = DataWriter(buf)
    w.write_byte(Tag.REPORT)
    w.write_bytes(b"\xff\xfe")
    w.write_byte(Tag.DONE)
    w.write_int(0)
    session, listener, connection, *_ = _session(buf.getvalue())

    result = session.run()

    assert result.kind is ResultKind.IO_FAILURE
    assert isinstance(result.failure.cause, FramingError)
    assert isinstance(result.failure.cause.__cause__, UnicodeDecodeError)
    assert result.failure.state == SessionState.RECEIVING.value
    assert connection.close_calls == 1 and listener.close_calls == 1


def test_invalid_model_record_is_an_io_failure() -> None:
    data = worker_stream([(Tag.REPORT, '{"timeout_factor": "fast"}')], trailer=0)
    events: list[str] = []
    connection = FakeConnection(data, events)
    listener = FakeListener(connection, events)
    router = TagRouter({Tag.REPORT: lambda reader: reader.read_model(WorkerArguments)})
    session = WorkerSession(listener, StaticPayload(events), router)

    result = session.run()

    assert result.kind is ResultKind.IO_FAILURE
    assert isinstance(result.failure.cause, FramingError)
    assert "WorkerArguments" in str(result.failure.cause)
    assert connection.close_calls == 1 and listener.close_calls == 1


class AbortingListener(FakeListener):
    """Aborts the session after the connection is accepted but before it is stored."""

    session: WorkerSession

    def __init__(self, connection: FakeConnection, events: list[str]) -> None:
        super().__init__(connection, events)
        self.shutdowns: list[int] = []

    def accept(self):
        self.session.abort()
        return super().accept()

    def shutdown(self, how: int) -> None:
        self.shutdowns.append(how)


def test_abort_racing_accept_drops_the_new_connection() -> None:
    events: list[str] = []
    connection = FakeConnection(worker_stream([], trailer=0), events)
    listener = AbortingListener(connection, events)
    session = WorkerSession(listener, StaticPayload(events), RecordingDispatcher())
    listener.session = session

    result = session.run()

    assert result.kind is ResultKind.IO_FAILURE
    assert result.failure.state == SessionState.LISTENING.value
    assert "payload" not in events
    assert listener.shutdowns == [socket.SHUT_RDWR]
    assert connection.close_calls == 1 and listener.close_calls == 1


def test_abort_closes_resources_without_shutdown() -> None:
    session, listener, connection, _, _, events = _session(worker_stream([], trailer=0))

    session.abort()

    assert listener.close_calls == 1
    assert session.run().kind is ResultKind.IO_FAILURE
    assert "payload" not in events


def test_unwrap_without_code_or_failure_raises() -> None:
    with pytest.raises(RuntimeError):
        SessionResult(ResultKind.COMPLETED).unwrap()


class ExplodingConnection(FakeConnection):
    def close(self) -> None:
        self.close_calls += 1
        raise RuntimeError("close exploded")


def test_unexpected_connection_close_error_still_closes_listener() -> None:
    events: list[str] = []
    connection = ExplodingConnection(worker_stream([], trailer=0), events)
    listener = FakeListener(connection, events)
    session = WorkerSession(listener, StaticPayload(events), RecordingDispatcher())

    with pytest.raises(ProtocolIOFailure) as excinfo:
        session.call()

    assert excinfo.value.cause is None
    assert isinstance(excinfo.value.close_errors[0], RuntimeError)
    assert listener.close_calls == 1
