from __future__ import annotations

from typing import Iterable


class CoordinatorError(Exception):
    """Base class for errors raised by the coordinator package."""


class UnknownStrategyName(CoordinatorError):
    """A requested mutator or group name is not in the registry.

    Recoverable by the caller: show `available` and abort the requested run.
    """

    def __init__(self, name: str, available: Iterable[str] = ()) -> None:
        self.name = name
        self.available = tuple(available)
        super().__init__(
            f"Mutator or group '{name}' is unknown. Check the configured mutators "
            "and run `mutators_cli.py list` to see valid names."
        )


class DuplicateRegistryName(CoordinatorError):
    """A registry entry name was registered twice while building."""

    def __init__(self, name: str) -> None:
        self.name = name
        super().__init__(f"Registry entry '{name}' is already registered")


class FramingError(CoordinatorError):
    """Bytes from the worker do not form a valid record."""


class UnexpectedMessageTag(FramingError):
    def __init__(self, tag: int) -> None:
        self.tag = tag
        super().__init__(f"No handler for worker message tag {tag}")


class ProtocolIOFailure(CoordinatorError):
    """Communication with the worker failed.

    `cause` is the error that aborted the session (None when only closing
    failed). `close_errors` holds errors raised while releasing the client
    connection or the listener; they are reported alongside `cause` rather
    than replacing it.
    """

    def __init__(
        self,
        cause: BaseException | None,
        *,
        state: str | None = None,
        close_errors: Iterable[BaseException] = (),
    ) -> None:
        self.cause = cause
        self.state = state
        self.close_errors = list(close_errors)
        super().__init__(self._describe())

    def _describe(self) -> str:
        parts = ["Communication with the worker failed"]
        if self.state:
            parts[0] += f" while {self.state}"
        if self.cause is not None:
            parts.append(f"cause: {self.cause!r}")
        if self.close_errors:
            parts.append("close errors: " + ", ".join(repr(e) for e in self.close_errors))
        parts.append("check that the spawned worker process did not crash or deadlock")
        return "; ".join(parts)
