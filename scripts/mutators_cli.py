from __future__ import annotations

import argparse
import sys
from pathlib import Path


# Ensure project root is on sys.path so 'coordinator' resolves when running this script directly
def project_root() -> Path:
    return Path(__file__).resolve().parents[1]


_ROOT = project_root()
if str(_ROOT) not in sys.path:
    sys.path.insert(0, str(_ROOT))

from coordinator.errors import UnknownStrategyName
from coordinator.mutators.catalog import build_default_registry
from coordinator.mutators.reporting import generate_markdown


def main(argv: list[str] | None = None) -> int:
    ap = argparse.ArgumentParser(description="Mutator registry CLI – list, resolve and document mutators")
    sub = ap.add_subparsers(dest="cmd", required=True)

    sub.add_parser("list", help="List every mutator and group name with its size")

    p_res = sub.add_parser("resolve", help="Print the capability ids the given names resolve to")
    p_res.add_argument("names", nargs="+")

    p_docs = sub.add_parser("docs", help="Write a Markdown overview of the registry")
    p_docs.add_argument("--out", default=str(project_root() / "docs" / "MUTATORS.md"))

    args = ap.parse_args(argv)
    registry = build_default_registry()

    if args.cmd == "list":
        for name in registry.names():
            print(f"{name}\t{len(registry.by_name(name))}")
        return 0

    if args.cmd == "resolve":
        try:
            capabilities = registry.resolve(args.names)
        except UnknownStrategyName as e:
            print(str(e), file=sys.stderr)
            print("Valid names: " + ", ".join(e.available), file=sys.stderr)
            return 2
        for cap in capabilities:
            print(cap.id)
        return 0

    out = Path(args.out)
    out.parent.mkdir(parents=True, exist_ok=True)
    out.write_text(generate_markdown(registry), encoding="utf-8")
    print(f"Wrote {out}")
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
