from __future__ import annotations

import argparse
import logging
import sys
import threading
from pathlib import Path
from signal import SIGINT, signal
from typing import TYPE_CHECKING

from dotenv import load_dotenv

from dbfleet.adapters.documents import DocumentError
from dbfleet.app import (
    REPOSITORY_BY_KIND,
    apply_file,
    deployment_status,
    reconcile_deployment,
    request_deletion,
    run_control_loop,
)
from dbfleet.config import configure_logging
from dbfleet.domain.model import ResourceRef

if TYPE_CHECKING:
    from collections.abc import Sequence
    from types import FrameType

    from dbfleet.domain.model import Deployment

log = logging.getLogger(__name__)

STOP = threading.Event()


def _parse_args(argv: Sequence[str]) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Reconcile managed database deployments")
    parser.add_argument(
        "--verbose",
        "-v",
        action="store_true",
        help="Log debug output",
    )
    subparsers = parser.add_subparsers(dest="command", required=True)

    apply = subparsers.add_parser("apply", help="Create or update records from a JSON file")
    apply.add_argument("file", type=Path, help="JSON document or list of documents")

    delete = subparsers.add_parser("delete", help="Mark a record for deletion")
    delete.add_argument("kind", choices=sorted(REPOSITORY_BY_KIND), help="Record kind")
    delete.add_argument("namespace", type=str)
    delete.add_argument("name", type=str)

    reconcile = subparsers.add_parser("reconcile", help="Run one pass for a deployment")
    reconcile.add_argument("namespace", type=str)
    reconcile.add_argument("name", type=str)

    run = subparsers.add_parser("run", help="Run the control loop")
    run.add_argument(
        "--once",
        action="store_true",
        help="Reconcile every deployment once and exit",
    )

    status = subparsers.add_parser("status", help="Show the conditions of a deployment")
    status.add_argument("namespace", type=str)
    status.add_argument("name", type=str)

    return parser.parse_args(list(argv))


def format_status(deployment: Deployment) -> str:
    status = deployment.status
    lines = [
        f"{deployment.kind} {deployment.key} (generation {deployment.generation}, "
        f"observed {status.observed_generation})",
        f"  state: {status.state_name or 'unknown'}",
    ]
    if deployment.is_being_deleted:
        requested = deployment.deletion_requested_at
        lines.append(f"  deletion requested at {requested:%Y-%m-%d %H:%M:%S}")
    lines.extend(
        f"  {condition.type}: {condition.status}"
        + (f" ({condition.reason})" if condition.reason else "")
        + (f" {condition.message}" if condition.message else "")
        for condition in status.conditions
    )
    lines.extend(
        f"  search index {index.name}: {index.status} {index.message}".rstrip()
        for index in status.search_indexes
    )
    lines.extend(
        f"  private endpoint {endpoint.name}: {endpoint.status}"
        for endpoint in status.private_endpoints
    )
    return "\n".join(lines)


def _run_command(args: argparse.Namespace) -> int:
    if args.command == "apply":
        changed = apply_file(args.file)
        log.info("Applied %s: %s record(s) changed", args.file, len(changed))
        return 0
    if args.command == "delete":
        ref = ResourceRef(namespace=args.namespace, name=args.name)
        if request_deletion(args.kind, ref) is None:
            log.error("%s %s not found", args.kind, ref)
            return 1
        return 0
    if args.command == "reconcile":
        outcome = reconcile_deployment(ResourceRef(namespace=args.namespace, name=args.name))
        return 1 if outcome.result.is_terminate else 0
    if args.command == "run":
        signal(SIGINT, sigint_handler)
        outcomes = run_control_loop(STOP, once=args.once)
        return 1 if any(outcome.result.is_terminate for outcome in outcomes) else 0
    if args.command == "status":
        ref = ResourceRef(namespace=args.namespace, name=args.name)
        deployment = deployment_status(ref)
        if deployment is None:
            log.error("Deployment %s not found", ref)
            return 1
        print(format_status(deployment))  # noqa: T201
        return 0
    raise ValueError(f"Unsupported command: {args.command}")


def main(argv: Sequence[str] | None = None) -> None:
    """Main application entry point."""
    load_dotenv()
    args_list = list(argv) if argv is not None else list(sys.argv[1:])
    parsed_args = _parse_args(args_list)
    configure_logging(level=logging.DEBUG if parsed_args.verbose else logging.INFO)

    try:
        code = _run_command(parsed_args)
    except DocumentError:
        log.exception("Invalid document")
        sys.exit(2)
    except Exception:
        log.exception("Fatal error running %s", parsed_args.command)
        sys.exit(1)
    if code:
        sys.exit(code)


def sigint_handler(_signal_received: int, _frame: FrameType | None) -> None:
    """Stop the control loop on SIGINT (Ctrl+C); a second Ctrl+C exits at once."""
    if STOP.is_set():
        log.info("Closed by user (Ctrl+C)")
        sys.exit(0)
    log.info("Stopping after the current sweep (Ctrl+C again to exit)")
    STOP.set()


if __name__ == "__main__":
    main()
