from __future__ import annotations

from typing import Iterable

from .config import CoordinatorConfig
from .logging_utils import get_json_logger
from .mutators.capability import StrategyCapability
from .mutators.registry import MutatorRegistry
from .worker.arguments import MutatorArgumentsWriter
from .worker.codes import CompletionCode
from .worker.communication import CommunicationThread, bind_listener
from .worker.session import DispatchesMessage, Listener, SessionResult, WorkerSession


class MutationCoordinator:
    """Turns configured mutator names into a worker payload and runs the session."""

    def __init__(self, registry: MutatorRegistry, config: CoordinatorConfig | None = None) -> None:
        self.registry = registry
        self.config = config or CoordinatorConfig()

    def resolve_mutators(self, names: Iterable[str] | None = None) -> tuple[StrategyCapability, ...]:
        return self.registry.resolve(self.config.mutators if names is None else names)

    def arguments_writer(
        self,
        names: Iterable[str] | None = None,
        target_classes: Iterable[str] = (),
    ) -> MutatorArgumentsWriter:
        return MutatorArgumentsWriter(
            self.resolve_mutators(names),
            target_classes=target_classes,
            timeout_factor=self.config.timeout_factor,
            timeout_constant_ms=self.config.timeout_constant_ms,
            verbose=self.config.verbose,
        )

    def run_worker(
        self,
        listener: Listener,
        dispatcher: DispatchesMessage,
        *,
        names: Iterable[str] | None = None,
        target_classes: Iterable[str] = (),
        correlation_id: str | None = None,
    ) -> SessionResult:
        """Resolve mutators, then run one worker session on `listener`.

        Unknown mutator names raise UnknownStrategyName before the listener is
        touched; the caller still owns it in that case.
        """
        writer = self.arguments_writer(names, target_classes)
        session = WorkerSession(listener, writer, dispatcher, correlation_id=correlation_id)
        logger = get_json_logger(
            "service", static_fields={"correlation_id": session.correlation_id, "op": "run_worker"}
        )
        logger.info(
            "start",
            extra={
                "mutators": len(writer.arguments.mutators),
                "targets": len(writer.arguments.target_classes),
            },
        )
        result = session.run()
        logger.info("done", extra={"kind": result.kind.value})
        return result

    def start_session(
        self,
        dispatcher: DispatchesMessage,
        *,
        names: Iterable[str] | None = None,
        target_classes: Iterable[str] = (),
        correlation_id: str | None = None,
    ) -> tuple[CommunicationThread, int]:
        """Bind a listener from config and run the session in the background.

        Returns the running thread and the port the worker must connect to;
        finish with `wait_for`.
        """
        writer = self.arguments_writer(names, target_classes)
        listener = bind_listener(self.config.bind_host, self.config.port)
        port = listener.getsockname()[1]
        comms = CommunicationThread(listener, writer, dispatcher, correlation_id=correlation_id)
        comms.start()
        return comms, port

    def wait_for(self, comms: CommunicationThread) -> CompletionCode:
        return comms.wait_to_finish(timeout=self.config.session_timeout_sec)
