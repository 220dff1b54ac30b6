"""Coordinator side of one worker connection.

The session accepts a single connection on a pre-bound listener, writes the
initial payload, then reads tagged records until Tag.DONE and finishes by
decoding the completion code trailer:

    LISTENING -> CONNECTED -> SENT_CONFIG -> RECEIVING -> COMPLETED | FAILED

The client connection and then the listener are closed on every exit path.
A failure to close either one fails the session even when the worker
reported success.
"""

from __future__ import annotations

import socket
import uuid
from dataclasses import dataclass
from enum import Enum
from typing import Any, BinaryIO, Protocol

from ..errors import FramingError, ProtocolIOFailure
from ..logging_utils import get_json_logger
from .codes import CompletionCode, Tag
from .wire import DataReader, DataWriter

# Errors that mean the byte stream can no longer be trusted.
_IO_ERRORS = (OSError, EOFError, FramingError)


class WritesInitialPayload(Protocol):
    def write_initial_payload(self, writer: DataWriter) -> None:
        """Write everything the worker needs before it starts."""
        ...


class DispatchesMessage(Protocol):
    def dispatch(self, tag: int, reader: DataReader) -> None:
        """Consume exactly the bytes of one record with the given tag."""
        ...


class Connection(Protocol):
    def makefile(self, mode: str) -> BinaryIO: ...

    def close(self) -> None: ...


class Listener(Protocol):
    def accept(self) -> tuple[Any, Any]: ...

    def close(self) -> None: ...


class SessionState(str, Enum):
    LISTENING = "listening"
    CONNECTED = "connected"
    SENT_CONFIG = "sent_config"
    RECEIVING = "receiving"
    COMPLETED = "completed"
    FAILED = "failed"


class ResultKind(str, Enum):
    COMPLETED = "completed"
    IO_FAILURE = "io_failure"


@dataclass(frozen=True)
class SessionResult:
    kind: ResultKind
    code: CompletionCode | None = None
    failure: ProtocolIOFailure | None = None

    @property
    def ok(self) -> bool:
        return self.kind is ResultKind.COMPLETED

    def unwrap(self) -> CompletionCode:
        if self.failure is not None:
            raise self.failure
        if self.code is None:
            raise RuntimeError(f"{self.kind.value} session result carries no completion code")
        return self.code


class WorkerSession:
    def __init__(
        self,
        listener: Listener,
        payload: WritesInitialPayload,
        dispatcher: DispatchesMessage,
        *,
        correlation_id: str | None = None,
    ) -> None:
        self._listener = listener
        self._payload = payload
        self._dispatcher = dispatcher
        self._connection: Connection | None = None
        self._started = False
        self._aborted = False
        self.state = SessionState.LISTENING
        self.correlation_id = correlation_id or uuid.uuid4().hex
        self._logger = get_json_logger(
            "worker.session", static_fields={"correlation_id": self.correlation_id}
        )

    def call(self) -> CompletionCode:
        """Run the session to completion.

        Returns the worker's completion code or raises ProtocolIOFailure.
        """
        if self._started:
            raise RuntimeError("a WorkerSession can only be run once")
        self._started = True

        cause: BaseException | None = None
        failed_in: SessionState | None = None
        code = CompletionCode.UNKNOWN_ERROR
        try:
            code = self._communicate()
        except _IO_ERRORS as exc:
            cause, failed_in = exc, self.state
        finally:
            close_errors = self._release()

        if cause is None and not close_errors:
            self._transition(SessionState.COMPLETED, code=code.name)
            return code

        failure = ProtocolIOFailure(
            cause,
            state=(failed_in or self.state).value,
            close_errors=close_errors,
        )
        self._transition(SessionState.FAILED)
        self._logger.error(
            "session_failed",
            extra={
                "failed_in": failure.state,
                "error": repr(cause) if cause is not None else None,
                "close_errors": [repr(e) for e in close_errors],
            },
        )
        raise failure from (cause if cause is not None else close_errors[0])

    def run(self) -> SessionResult:
        """Like call(), but reports protocol failures as a SessionResult."""
        try:
            code = self.call()
        except ProtocolIOFailure as failure:
            return SessionResult(ResultKind.IO_FAILURE, failure=failure)
        return SessionResult(ResultKind.COMPLETED, code=code)

    def abort(self) -> None:
        """Unblock a pending accept or read from another thread.

        Sockets are shut down, not closed, and the session thread still closes
        them when it unwinds. Resources without `shutdown` are closed here.
        A connection accepted after this call is dropped before any I/O.
        """
        self._aborted = True
        self._logger.warning("session_abort", extra={"state": self.state.value})
        for resource in (self._connection, self._listener):
            if resource is not None:
                self._force_unblock(resource)

    def _force_unblock(self, resource: Any) -> None:
        shutdown = getattr(resource, "shutdown", None)
        try:
            if shutdown is not None:
                shutdown(socket.SHUT_RDWR)
            else:
                resource.close()
        except OSError as exc:
            self._logger.debug("abort_unblock_failed", extra={"error": repr(exc)})

    def _transition(self, state: SessionState, **fields: Any) -> None:
        self.state = state
        self._logger.debug("state", extra={"state": state.value, **fields})

    def _communicate(self) -> CompletionCode:
        connection, address = self._listener.accept()
        self._connection = connection
        # abort() sets the flag before reading _connection, so one side sees the other
        if self._aborted:
            raise OSError("session aborted")
        self._transition(SessionState.CONNECTED, peer=str(address))

        outbound = connection.makefile("wb")
        try:
            writer = DataWriter(outbound)
            self._payload.write_initial_payload(writer)
            writer.flush()
        finally:
            outbound.close()
        self._transition(SessionState.SENT_CONFIG)

        inbound = connection.makefile("rb")
        try:
            self._transition(SessionState.RECEIVING)
            return self._receive(DataReader(inbound))
        finally:
            inbound.close()

    def _receive(self, reader: DataReader) -> CompletionCode:
        records = 0
        tag = reader.read_byte()
        while tag != Tag.DONE:
            self._dispatcher.dispatch(tag, reader)
            records += 1
            tag = reader.read_byte()
        code = CompletionCode.from_code(reader.read_int())
        self._logger.info("done", extra={"records": records, "code": code.name})
        return code

    def _release(self) -> list[BaseException]:
        errors: list[BaseException] = []
        for resource in (self._connection, self._listener):
            if resource is None:
                continue
            try:
                resource.close()
            except Exception as exc:
                self._logger.warning("close_failed", extra={"error": repr(exc)})
                errors.append(exc)
        self._connection = None
        return errors
