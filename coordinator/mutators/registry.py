from __future__ import annotations

from types import MappingProxyType
from typing import Iterable, Iterator, Mapping

from ..errors import DuplicateRegistryName, UnknownStrategyName
from ..logging_utils import get_json_logger
from .capability import StrategyCapability, sort_by_id

ALL = "ALL"


class MutatorRegistry:
    """Read-only mapping from entry name to the capabilities it stands for.

    Build instances with `RegistryBuilder`; once built the entries cannot be
    changed, so a registry can be shared between sessions without locking.
    """

    def __init__(self, entries: Mapping[str, Iterable[StrategyCapability]]) -> None:
        self._entries: Mapping[str, tuple[StrategyCapability, ...]] = MappingProxyType(
            {name: tuple(caps) for name, caps in entries.items()}
        )

    @property
    def entries(self) -> Mapping[str, tuple[StrategyCapability, ...]]:
        return self._entries

    def names(self) -> tuple[str, ...]:
        """Entry names in registration order."""
        return tuple(self._entries)

    def __contains__(self, name: object) -> bool:
        return name in self._entries

    def __len__(self) -> int:
        return len(self._entries)

    def __iter__(self) -> Iterator[str]:
        return iter(self._entries)

    def by_name(self, name: str) -> tuple[StrategyCapability, ...]:
        """Capabilities bound to `name`, in the order they were registered."""
        try:
            return self._entries[name]
        except KeyError:
            raise UnknownStrategyName(name, self.names()) from None

    def resolve(self, names: Iterable[str]) -> tuple[StrategyCapability, ...]:
        """Flatten the named entries into capabilities unique and sorted by id.

        The order of `names` and repeats within it do not affect the result.
        Raises UnknownStrategyName for the first name that is not registered.
        """
        if isinstance(names, str):
            names = [names]
        unique: dict[str, StrategyCapability] = {}
        for name in names:
            for cap in self.by_name(name):
                unique.setdefault(cap.id, cap)
        return sort_by_id(unique.values())

    def all(self) -> tuple[StrategyCapability, ...]:
        return self.resolve([ALL])


class RegistryBuilder:
    """Collects entries at startup and freezes them into a MutatorRegistry.

    Composite groups are computed when they are added, from entries that are
    already registered, so a composite can never refer to a later entry.
    """

    def __init__(self) -> None:
        self._entries: dict[str, tuple[StrategyCapability, ...]] = {}

    def _put(self, name: str, capabilities: Iterable[StrategyCapability]) -> "RegistryBuilder":
        if name in self._entries:
            raise DuplicateRegistryName(name)
        self._entries[name] = tuple(capabilities)
        return self

    def register(self, name: str, capability: StrategyCapability) -> "RegistryBuilder":
        return self._put(name, (capability,))

    def register_group(
        self, name: str, capabilities: Iterable[StrategyCapability]
    ) -> "RegistryBuilder":
        return self._put(name, capabilities)

    def add_composite(self, name: str, sources: Iterable[str]) -> "RegistryBuilder":
        """Register `name` as the union of `sources`, deduplicated and sorted by id."""
        merged: list[StrategyCapability] = []
        for source in sources:
            if source not in self._entries:
                raise UnknownStrategyName(source, tuple(self._entries))
            merged.extend(self._entries[source])
        return self._put(name, sort_by_id(merged))

    def add_all(self, name: str = ALL) -> "RegistryBuilder":
        return self.add_composite(name, list(self._entries))

    def build(self) -> MutatorRegistry:
        registry = MutatorRegistry(self._entries)
        logger = get_json_logger("registry", static_fields={"op": "build"})
        logger.debug("registry_built", extra={"entries": len(registry)})
        return registry
