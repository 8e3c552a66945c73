from __future__ import annotations

import argparse
import logging
import sys
import threading
from dataclasses import replace
from signal import SIGINT, signal
from typing import TYPE_CHECKING

from dotenv import load_dotenv

from envsync.app import (
    apply_environment,
    destroy_environment,
    plan_environment,
    refresh_environment,
)
from envsync.config import ConfigurationError, configure_logging, get_settling_config
from envsync.declared import DeclaredEnvironment, load_declared
from envsync.domain.model import Subject
from envsync.domain.reconciliation import EntryValidationError, ReconciliationCancelled

if TYPE_CHECKING:
    from collections.abc import Sequence
    from types import FrameType

    from envsync.domain.reconciliation import OperationPlan

log = logging.getLogger(__name__)

_CANCEL = threading.Event()


def _add_subject_arguments(parser: argparse.ArgumentParser, *, config_required: bool) -> None:
    parser.add_argument(
        "--config",
        type=str,
        required=config_required,
        help="Path to the TOML file declaring the environment variables",
    )
    parser.add_argument(
        "--project",
        type=str,
        help="Project id (overrides the one in the config file)",
    )
    parser.add_argument(
        "--team",
        type=str,
        help="Team id (overrides the config file and VERCEL_TEAM_ID)",
    )


def _add_settling_arguments(parser: argparse.ArgumentParser) -> None:
    parser.add_argument(
        "--settle-seconds",
        type=float,
        default=None,
        help="Delay (or probe timeout) between deletions and creations (defaults to config)",
    )
    parser.add_argument(
        "--settle-strategy",
        choices=("delay", "probe"),
        default=None,
        help="Wait a fixed delay or poll until deletions are visible (defaults to config)",
    )


def _parse_args(argv: Sequence[str]) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Reconcile Vercel environment variables")
    subparsers = parser.add_subparsers(dest="command", required=True)

    plan = subparsers.add_parser("plan", help="Show what apply would change")
    _add_subject_arguments(plan, config_required=True)

    apply = subparsers.add_parser("apply", help="Converge the project to the config file")
    _add_subject_arguments(apply, config_required=True)
    _add_settling_arguments(apply)

    refresh = subparsers.add_parser(
        "refresh", help="Rebind recorded state to the live environment variables"
    )
    _add_subject_arguments(refresh, config_required=False)

    destroy = subparsers.add_parser(
        "destroy", help="Delete every environment variable managed for the project"
    )
    _add_subject_arguments(destroy, config_required=False)

    return parser.parse_args(list(argv))


def _resolve_subject(args: argparse.Namespace, declared: DeclaredEnvironment | None) -> Subject:
    project_id = args.project or (declared.subject.project_id if declared else None)
    if not project_id:
        raise ValueError("Missing project id: pass --project or --config")
    team_id = args.team or (declared.subject.team_id if declared else None)
    return Subject(project_id=project_id, team_id=team_id)


def _load(args: argparse.Namespace) -> DeclaredEnvironment | None:
    declared = load_declared(args.config) if args.config else None
    if declared is None:
        return None
    return replace(declared, subject=_resolve_subject(args, declared))


def _log_plan(plan: OperationPlan) -> None:
    if plan.is_empty:
        log.info("No changes for %s (%s unchanged)", plan.subject, len(plan.unchanged))
        return
    for key in sorted(set(plan.to_remove) | set(plan.to_add)):
        if key in plan.to_add and key in plan.to_remove:
            action = "replace"
        elif key in plan.to_add:
            action = "create"
        else:
            action = "delete"
        log.info("%s %s (%s)", action, key, plan.reasons.get(key, "-"))
    log.info("Plan for %s: %s", plan.subject, plan.summary())


def main(argv: Sequence[str] | None = None) -> None:
    """Main application entry point."""
    configure_logging()
    args_list = list(argv) if argv is not None else list(sys.argv[1:])
    try:
        parsed_args = _parse_args(args_list)
        declared = _load(parsed_args)
        subject = declared.subject if declared else _resolve_subject(parsed_args, None)
        settling = None
        if parsed_args.command == "apply":
            settling = get_settling_config(
                strategy=parsed_args.settle_strategy,
                seconds=parsed_args.settle_seconds,
            )
    except (ValueError, ConfigurationError, EntryValidationError):
        log.exception("CLI validation error")
        sys.exit(2)

    try:
        if parsed_args.command == "plan" and declared is not None:
            _log_plan(plan_environment(declared))
        elif parsed_args.command == "apply" and declared is not None:
            result = apply_environment(declared, settling=settling, cancelled=_CANCEL.is_set)
            _log_plan(result.plan)
        elif parsed_args.command == "refresh":
            refreshed = refresh_environment(subject)
            log.info("Refreshed %s: %s entries recorded", subject, len(refreshed))
        elif parsed_args.command == "destroy":
            result = destroy_environment(subject, cancelled=_CANCEL.is_set)
            log.info("Destroyed %s: %s entries removed", subject, len(result.plan.to_remove))
        else:
            raise ValueError(f"Unsupported command: {parsed_args.command}")  # noqa: TRY301
    except (EntryValidationError, ConfigurationError):
        log.exception("Invalid configuration")
        sys.exit(2)
    except ReconciliationCancelled:
        log.warning("Closed by user (Ctrl+C)")
        sys.exit(130)
    except Exception:
        log.exception("Fatal error during reconciliation")
        sys.exit(1)


def sigint_handler(_signal_received: int, _frame: FrameType | None) -> None:
    """Stop before the next remote call; a call already in flight always completes."""
    if _CANCEL.is_set():
        log.info("Already cancelling; waiting for the current remote call to finish")
        return
    log.info("Cancelling after the current remote call (Ctrl+C)")
    _CANCEL.set()


def run() -> None:
    load_dotenv()
    signal(SIGINT, sigint_handler)
    main()


if __name__ == "__main__":
    run()
