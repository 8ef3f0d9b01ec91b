"""sqlcourier entry point."""

from __future__ import annotations

import argparse
import asyncio
import logging
import sys

from src.config import settings
from src.errors import CourierError
from src.scheduler import systemd
from src.scheduler.engine import Scheduler
from src.scheduler.executor import ExecutionPipeline
from src.store import DataSourceRegistry, DestinationStore, TaskStore

logger = logging.getLogger(__name__)


def _setup_logging() -> None:
    logging.basicConfig(
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        level=getattr(logging, settings.log_level.upper(), logging.INFO),
    )


def build_pipeline() -> ExecutionPipeline:
    return ExecutionPipeline(
        databases=DataSourceRegistry.load(),
        destinations=DestinationStore.load(),
    )


def _cmd_run(args: argparse.Namespace) -> int:
    task = TaskStore.load().get(args.task)
    pipeline = build_pipeline()
    try:
        asyncio.run(pipeline.run_once(task))
    except CourierError as exc:
        print(f"\n❌ Run failed: {exc}")
        return 1
    return 0


def _cmd_serve(args: argparse.Namespace) -> int:
    scheduler = Scheduler(TaskStore.load(), build_pipeline())
    logger.info("Starting sqlcourier scheduler...")
    try:
        asyncio.run(scheduler.serve())
    except KeyboardInterrupt:
        logger.info("Interrupted, scheduler stopped")
    return 0


def _cmd_tasks(args: argparse.Namespace) -> int:
    tasks = TaskStore.load().list()
    if not tasks:
        print("No tasks configured")
        return 0
    for task in tasks:
        print(f"- {task.name}: {task.schedule} ({task.timezone}) -> {task.destination}")
    return 0


def _cmd_databases(args: argparse.Namespace) -> int:
    names = DataSourceRegistry.load().names()
    if not names:
        print("No databases configured")
    for name in names:
        print(f"- {name}")
    return 0


def _cmd_destinations(args: argparse.Namespace) -> int:
    store = DestinationStore.load()
    names = store.list()
    if not names:
        print("No destinations configured")
    for name in names:
        print(f"- {name} ({store.get(name).kind})")
    return 0


def _cmd_timer(args: argparse.Namespace) -> int:
    if args.action == "status":
        return systemd.status(args.task)
    if args.task is None:
        msg = f"timer {args.action} needs a task name"
        raise CourierError(msg)

    if args.action == "enable":
        systemd.enable(args.task)
        print(f"Enabled timer for task {args.task}")
        return 0
    if args.action == "disable":
        systemd.disable(args.task)
        print(f"Disabled timer for task {args.task}")
        return 0
    if args.action == "remove":
        systemd.remove(args.task)
        print(f"Removed timer for task {args.task}")
        return 0

    task = TaskStore.load().get(args.task)
    if args.action == "show":
        print(f"# {systemd.unit_name(task.name, 'service')}")
        print(systemd.render_service(task))
        print(f"# {systemd.unit_name(task.name, 'timer')}")
        print(systemd.render_timer(task))
        return 0

    systemd.install(task)
    print(f"Installed timer for task {task.name}")
    return 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="sqlcourier",
        description="Run scheduled SQL reports and deliver them to Slack or HTTP endpoints",
    )
    sub = parser.add_subparsers(dest="command", required=True)

    run = sub.add_parser("run", help="Run a task once, printing each step")
    run.add_argument("task")
    run.set_defaults(func=_cmd_run)

    serve = sub.add_parser("serve", help="Run every task on its schedule in-process")
    serve.set_defaults(func=_cmd_serve)

    tasks = sub.add_parser("tasks", help="List configured tasks")
    tasks.set_defaults(func=_cmd_tasks)

    databases = sub.add_parser("databases", help="List configured databases")
    databases.set_defaults(func=_cmd_databases)

    destinations = sub.add_parser("destinations", help="List configured destinations")
    destinations.set_defaults(func=_cmd_destinations)

    timer = sub.add_parser("timer", help="Manage the systemd timer for a task")
    timer.add_argument(
        "action", choices=["show", "install", "enable", "disable", "remove", "status"]
    )
    timer.add_argument("task", nargs="?", help="Task name (optional for status)")
    timer.set_defaults(func=_cmd_timer)
    return parser


def main(argv: list[str] | None = None) -> int:
    """Parse arguments and dispatch to the sub-command."""
    _setup_logging()
    args = build_parser().parse_args(argv)
    try:
        return args.func(args)
    except CourierError as exc:
        print(f"error: {exc}", file=sys.stderr)
        return 1


if __name__ == "__main__":
    sys.exit(main())
