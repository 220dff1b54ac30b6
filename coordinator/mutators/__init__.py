from __future__ import annotations

from .capability import StrategyCapability, sort_by_id
from .catalog import build_default_registry
from .registry import ALL, MutatorRegistry, RegistryBuilder

__all__ = [
    "ALL",
    "MutatorRegistry",
    "RegistryBuilder",
    "StrategyCapability",
    "build_default_registry",
    "sort_by_id",
]
