"""CLI entrypoint.

`motif-flow describe package.module:attribute` imports a workflow (or a
zero-argument factory returning one) and prints its steps, nodes and edges as
JSON.
"""

from __future__ import annotations

import argparse
import importlib
import json
import logging
import sys

from pydantic import ValidationError

from motif_flow import __version__
from motif_flow.config import FlowSettings
from motif_flow.logging import configure_logging
from motif_flow.workflow import Workflow

logger = logging.getLogger(__name__)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="motif-flow",
        description="Inspect motif-flow workflow graphs",
    )
    parser.add_argument("--version", action="version", version=f"motif-flow {__version__}")

    subparsers = parser.add_subparsers(dest="command", required=True)

    describe = subparsers.add_parser("describe", help="Print a workflow graph as JSON")
    describe.add_argument(
        "target",
        help="Workflow to load, in the form 'package.module:attribute'",
    )
    describe.add_argument(
        "--indent",
        type=int,
        default=2,
        help="JSON indentation (default: 2)",
    )
    return parser


def load_workflow(target: str) -> Workflow:
    module_name, sep, attribute = target.partition(":")
    if not sep or not module_name or not attribute:
        raise ValueError(f"Expected 'package.module:attribute', got {target!r}")

    obj: object = importlib.import_module(module_name)
    for part in attribute.split("."):
        obj = getattr(obj, part)

    if not isinstance(obj, Workflow) and callable(obj):
        obj = obj()
    if not isinstance(obj, Workflow):
        raise TypeError(f"{target} is not a Workflow (got {type(obj).__name__})")
    return obj


def main(argv: list[str] | None = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)

    try:
        settings = FlowSettings()
    except ValidationError as e:
        print(f"Configuration error: {e}", file=sys.stderr)
        return 2

    configure_logging(settings)

    if args.command == "describe":
        try:
            wf = load_workflow(args.target)
        except (ImportError, AttributeError, TypeError, ValueError) as e:
            logger.error(f"Could not load workflow {args.target}: {e}")
            print(f"Error: {e}", file=sys.stderr)
            return 1
        print(json.dumps(wf.describe(), indent=args.indent, ensure_ascii=False))
        return 0

    parser.error(f"Unknown command: {args.command}")
    return 2


if __name__ == "__main__":
    raise SystemExit(main())
