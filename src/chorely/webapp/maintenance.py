"""Maintenance commands for the Chorely database."""
from __future__ import annotations

import argparse
import sys
from typing import Optional, Sequence

from sqlalchemy.exc import SQLAlchemyError

from ..ops import StructuredLogger
from ..service import ChoreTracker
from .config import LOG_PATH, SHARED_PASSWORD, SQLITE_FILE_NAME
from .repository import SqlStore


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="chorely-clear-tasks",
        description="Delete every task instance while keeping users, task templates and weekly plans.",
    )
    parser.add_argument("--yes", action="store_true", help="skip the confirmation prompt")
    return parser


def main(argv: Optional[Sequence[str]] = None, tracker: Optional[ChoreTracker] = None) -> int:
    args = build_parser().parse_args(argv)
    if not args.yes:
        answer = input(f"Delete all task instances from {SQLITE_FILE_NAME}? [y/N] ")
        if answer.strip().lower() not in {"y", "yes"}:
            print("Aborted.")
            return 1
    logger = StructuredLogger(path=LOG_PATH)
    tracker = tracker or ChoreTracker(SqlStore(), password=SHARED_PASSWORD, logger=logger)
    try:
        removed = tracker.clear_task_instances()
    except SQLAlchemyError as exc:
        tracker.logger.error("store_error", exc, action="clear_tasks")
        print(f"Could not clear task instances: {exc}", file=sys.stderr)
        return 2
    print(f"Removed {removed} task instance(s).")
    return 0


if __name__ == "__main__":  # pragma: no cover
    sys.exit(main())
