"""Command-line entry point: serve the API or run scheduled jobs once."""

from __future__ import annotations

import argparse
import json
import logging
from pathlib import Path
from typing import Optional

from .runtime.context import create_runtime
from .runtime.domain.models import parse_iso_datetime
from .runtime.storage import Container

DEFAULT_HOST = "127.0.0.1"
DEFAULT_PORT = 8080


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="protask",
        description="ProTask - task planning and review workflow service",
    )
    parser.add_argument(
        "--project-dir",
        type=Path,
        default=Path("."),
        help="Project directory holding the .protask state (default: current directory)",
    )
    parser.add_argument(
        "--log-level",
        type=str,
        default="INFO",
        help="Logging level (default: INFO)",
    )
    sub = parser.add_subparsers(dest="command", required=True)

    serve = sub.add_parser("serve", help="Run the HTTP API")
    serve.add_argument("--host", type=str, default=DEFAULT_HOST, help=f"Bind address (default: {DEFAULT_HOST})")
    serve.add_argument("--port", type=int, default=DEFAULT_PORT, help=f"Bind port (default: {DEFAULT_PORT})")

    plan = sub.add_parser("plan", help="Print the planning snapshot as JSON")
    plan.add_argument("--workspace", type=str, default=None, help="Workspace scope (default: all tasks)")

    recurring = sub.add_parser("run-recurring", help="Materialize due recurring tasks")
    recurring.add_argument("--workspace", type=str, default=None, help="Workspace scope (default: all schedules)")
    recurring.add_argument("--now", type=str, default=None, help="ISO-8601 clock override")

    escalate = sub.add_parser("escalate", help="Escalate overdue approval requests")
    escalate.add_argument("--workspace", type=str, default=None, help="Workspace scope (default: all approvals)")
    escalate.add_argument("--now", type=str, default=None, help="ISO-8601 clock override")
    return parser


def main(argv: Optional[list[str]] = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)
    logging.basicConfig(level=args.log_level.upper(), format="%(asctime)s %(levelname)s %(name)s: %(message)s")
    project_dir = args.project_dir.resolve()

    if args.command == "serve":
        import uvicorn

        from .server import create_app

        uvicorn.run(create_app(project_dir=project_dir), host=args.host, port=args.port)
        return 0

    now = None
    if getattr(args, "now", None):
        now = parse_iso_datetime(args.now)
        if now is None:
            parser.error(f"invalid --now timestamp: {args.now}")

    runtime = create_runtime(Container(project_dir))
    try:
        if args.command == "plan":
            payload = runtime.planning.snapshot(args.workspace).to_dict()
        elif args.command == "run-recurring":
            payload = {"created": [task.to_dict() for task in runtime.recurring.run_due(args.workspace, now=now)]}
        else:
            payload = {"escalated": [item.to_dict() for item in runtime.approvals.run_escalations(args.workspace, now=now)]}
    finally:
        runtime.close()
    print(json.dumps(payload, indent=2))
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
