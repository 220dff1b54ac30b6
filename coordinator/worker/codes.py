from __future__ import annotations

from enum import IntEnum

from ..logging_utils import get_json_logger


class Tag(IntEnum):
    """First byte of every worker-to-coordinator record."""

    DESCRIBE = 1
    REPORT = 2
    DONE = 64


class CompletionCode(IntEnum):
    """How the worker ended, sent as the last 4 bytes of the stream."""

    OK = 0
    OUT_OF_MEMORY = 11
    UNKNOWN_ERROR = 13
    TIMEOUT = 14
    TEST_FRAMEWORK_ERROR = 15

    @classmethod
    def from_code(cls, code: int) -> "CompletionCode":
        """Decode a trailer integer; values outside the catalog become UNKNOWN_ERROR."""
        try:
            return cls(code)
        except ValueError:
            logger = get_json_logger("worker.codes", static_fields={"op": "from_code"})
            logger.warning("unknown_completion_code", extra={"code": code})
            return cls.UNKNOWN_ERROR

    def is_ok(self) -> bool:
        return self is CompletionCode.OK
