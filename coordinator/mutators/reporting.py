from __future__ import annotations

import uuid
from datetime import datetime, timezone
from typing import Any

from ..logging_utils import get_json_logger
from .registry import MutatorRegistry


def _csv(values: list[Any] | None, dash: str = "-", limit: int = 8) -> str:
    if not values:
        return dash
    shown = [str(v) for v in values[:limit]]
    if len(values) > limit:
        shown.append(f"... (+{len(values) - limit})")
    return ", ".join(shown)


def generate_markdown(registry: MutatorRegistry, *, generated_utc: str | None = None) -> str:
    """Build a Markdown overview of every registry entry.

    Single-capability entries go in one table, groups (entries bound to
    several capabilities) in another.
    """
    cid = uuid.uuid4().hex
    logger = get_json_logger("reporting", static_fields={"correlation_id": cid, "op": "generate_markdown"})
    logger.info("start", extra={"entry_count": len(registry)})
    generated = generated_utc or datetime.now(tz=timezone.utc).strftime("%Y-%m-%dT%H:%M:%SZ")

    singles = [(n, caps) for n, caps in registry.entries.items() if len(caps) == 1]
    groups = [(n, caps) for n, caps in registry.entries.items() if len(caps) != 1]

    lines: list[str] = []
    lines.append("# Mutators")
    lines.append("")
    lines.append(f"Generated (UTC): {generated}")
    lines.append("")

    lines.append("## Mutators")
    lines.append("")
    lines.append("| Name | ID | Description |")
    lines.append("|---|---|---|")
    for name, caps in singles:
        cap = caps[0]
        lines.append(f"| {name} | {cap.id} | {cap.description or '-'} |")
    lines.append("")

    lines.append("## Groups")
    lines.append("")
    lines.append("| Name | Size | Members |")
    lines.append("|---|---|---|")
    for name, caps in groups:
        lines.append(f"| {name} | {len(caps)} | {_csv([c.id for c in caps])} |")
    lines.append("")

    logger.info("done", extra={"singles": len(singles), "groups": len(groups)})
    return "\n".join(lines)
