from __future__ import annotations

import os
from dataclasses import dataclass, field

from .logging_utils import get_json_logger

DEFAULT_MUTATORS = ("DEFAULTS",)


@dataclass
class CoordinatorConfig:
    """Coordinator settings loaded from environment or provided explicitly."""

    mutators: tuple[str, ...] = field(default=DEFAULT_MUTATORS)
    bind_host: str = "127.0.0.1"
    port: int = 0  # 0 picks an ephemeral port
    session_timeout_sec: float | None = None
    timeout_factor: float = 1.25
    timeout_constant_ms: int = 4000
    verbose: bool = False

    @classmethod
    def from_env(cls) -> "CoordinatorConfig":
        logger = get_json_logger("config", static_fields={"op": "from_env"})

        raw_mutators = os.getenv("COORDINATOR_MUTATORS", "")
        mutators = tuple(m.strip() for m in raw_mutators.split(",") if m.strip())
        if not mutators:
            mutators = DEFAULT_MUTATORS
        logger.debug("loaded_mutators", extra={"value": list(mutators)})

        bind_host = os.getenv("COORDINATOR_BIND_HOST", "127.0.0.1").strip() or "127.0.0.1"
        logger.debug("loaded_bind_host", extra={"value": bind_host})

        raw_port = os.getenv("COORDINATOR_PORT", "0")
        try:
            port = int(raw_port)
        except ValueError:
            port = 0
        if not 0 <= port <= 65535:
            port = 0
        logger.debug("loaded_port", extra={"value": port})

        raw_timeout = os.getenv("COORDINATOR_SESSION_TIMEOUT_SEC")
        try:
            session_timeout = float(raw_timeout) if raw_timeout is not None else None
        except ValueError:
            session_timeout = None
        if session_timeout is not None and session_timeout <= 0:
            session_timeout = None
        logger.debug("loaded_session_timeout_sec", extra={"value": session_timeout})

        raw_factor = os.getenv("COORDINATOR_TIMEOUT_FACTOR", "1.25")
        try:
            timeout_factor = float(raw_factor)
        except ValueError:
            timeout_factor = 1.25
        logger.debug("loaded_timeout_factor", extra={"value": timeout_factor})

        raw_constant = os.getenv("COORDINATOR_TIMEOUT_CONSTANT_MS", "4000")
        try:
            timeout_constant_ms = int(raw_constant)
        except ValueError:
            timeout_constant_ms = 4000
        logger.debug("loaded_timeout_constant_ms", extra={"value": timeout_constant_ms})

        verbose = os.getenv("COORDINATOR_VERBOSE", "0").strip().lower() in {"1", "true", "yes"}
        logger.debug("loaded_verbose", extra={"value": verbose})

        return cls(
            mutators=mutators,
            bind_host=bind_host,
            port=port,
            session_timeout_sec=session_timeout,
            timeout_factor=timeout_factor,
            timeout_constant_ms=timeout_constant_ms,
            verbose=verbose,
        )
