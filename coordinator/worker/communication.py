from __future__ import annotations

import socket
from concurrent.futures import Future, ThreadPoolExecutor, TimeoutError

from ..logging_utils import get_json_logger
from .codes import CompletionCode
from .session import (
    DispatchesMessage,
    Listener,
    SessionResult,
    WorkerSession,
    WritesInitialPayload,
)


def bind_listener(host: str = "127.0.0.1", port: int = 0, backlog: int = 1) -> socket.socket:
    """Listening socket for a single worker; port 0 picks a free port."""
    listener = socket.create_server((host, port), backlog=backlog)
    logger = get_json_logger("worker.communication", static_fields={"op": "bind_listener"})
    logger.info("listening", extra={"host": host, "port": listener.getsockname()[1]})
    return listener


class CommunicationThread:
    """Runs one WorkerSession on a background thread."""

    def __init__(
        self,
        listener: Listener,
        payload: WritesInitialPayload,
        dispatcher: DispatchesMessage,
        *,
        correlation_id: str | None = None,
        abort_grace_sec: float = 5.0,
    ) -> None:
        self.session = WorkerSession(listener, payload, dispatcher, correlation_id=correlation_id)
        self._abort_grace_sec = abort_grace_sec
        self._executor: ThreadPoolExecutor | None = None
        self._future: Future[SessionResult] | None = None
        self._logger = get_json_logger(
            "worker.communication", static_fields={"correlation_id": self.session.correlation_id}
        )

    def start(self) -> None:
        if self._future is not None:
            raise RuntimeError("communication thread already started")
        self._executor = ThreadPoolExecutor(max_workers=1, thread_name_prefix="worker-session")
        self._future = self._executor.submit(self.session.run)

    def wait_to_finish(self, timeout: float | None = None) -> CompletionCode:
        """Block until the session ends and return the worker's completion code.

        Raises ProtocolIOFailure when communication failed. When `timeout`
        expires the session is aborted and CompletionCode.TIMEOUT returned,
        even if the session thread is still stuck after `abort_grace_sec`.
        """
        if self._future is None or self._executor is None:
            raise RuntimeError("communication thread not started")
        try:
            try:
                result = self._future.result(timeout=timeout)
            except TimeoutError:
                self._logger.warning("session_timeout", extra={"timeout_sec": timeout})
                self.session.abort()
                try:
                    aborted = self._future.result(timeout=self._abort_grace_sec)
                except TimeoutError:
                    self._logger.error(
                        "session_abort_unresponsive", extra={"grace_sec": self._abort_grace_sec}
                    )
                else:
                    self._logger.info("session_aborted", extra={"kind": aborted.kind.value})
                return CompletionCode.TIMEOUT
            return result.unwrap()
        finally:
            self._executor.shutdown(wait=False)
