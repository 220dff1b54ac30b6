from __future__ import annotations

from .arguments import MutatorArgumentsWriter, WorkerArguments
from .codes import CompletionCode, Tag
from .communication import CommunicationThread, bind_listener
from .dispatch import TagRouter
from .session import (
    DispatchesMessage,
    ResultKind,
    SessionResult,
    SessionState,
    WorkerSession,
    WritesInitialPayload,
)
from .wire import DataReader, DataWriter

__all__ = [
    "CommunicationThread",
    "CompletionCode",
    "DataReader",
    "DataWriter",
    "DispatchesMessage",
    "MutatorArgumentsWriter",
    "ResultKind",
    "SessionResult",
    "SessionState",
    "Tag",
    "TagRouter",
    "WorkerArguments",
    "WorkerSession",
    "WritesInitialPayload",
    "bind_listener",
]
