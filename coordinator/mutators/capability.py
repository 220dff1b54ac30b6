from __future__ import annotations

from typing import Iterable

from pydantic import BaseModel, ConfigDict, Field


class StrategyCapability(BaseModel):
    """One mutation strategy the worker can apply.

    Opaque to the coordinator: only `id` matters for ordering and
    deduplication. Instances are frozen and shared by every registry entry
    that references them.
    """

    model_config = ConfigDict(frozen=True)

    id: str = Field(min_length=1)
    name: str = Field(min_length=1)
    description: str = ""

    def __str__(self) -> str:
        return self.id


def sort_by_id(capabilities: Iterable[StrategyCapability]) -> tuple[StrategyCapability, ...]:
    """Deduplicate by id (first occurrence wins) and order by id."""
    unique: dict[str, StrategyCapability] = {}
    for cap in capabilities:
        unique.setdefault(cap.id, cap)
    return tuple(unique[k] for k in sorted(unique))
