from __future__ import annotations

from typing import Iterable

from pydantic import BaseModel, Field

from ..mutators.capability import StrategyCapability
from .wire import DataWriter


class WorkerArguments(BaseModel):
    """Initial configuration streamed to the worker after it connects."""

    mutators: list[str] = Field(default_factory=list)
    target_classes: list[str] = Field(default_factory=list)
    excluded_methods: list[str] = Field(default_factory=list)
    timeout_factor: float = Field(default=1.25, gt=0)
    timeout_constant_ms: int = Field(default=4000, ge=0)
    verbose: bool = False


class MutatorArgumentsWriter:
    """Writes a WorkerArguments payload built from resolved capabilities."""

    def __init__(
        self,
        capabilities: Iterable[StrategyCapability],
        *,
        target_classes: Iterable[str] = (),
        excluded_methods: Iterable[str] = (),
        timeout_factor: float = 1.25,
        timeout_constant_ms: int = 4000,
        verbose: bool = False,
    ) -> None:
        self.arguments = WorkerArguments(
            mutators=[cap.id for cap in capabilities],
            target_classes=list(target_classes),
            excluded_methods=list(excluded_methods),
            timeout_factor=timeout_factor,
            timeout_constant_ms=timeout_constant_ms,
            verbose=verbose,
        )

    def write_initial_payload(self, writer: DataWriter) -> None:
        writer.write_model(self.arguments)
