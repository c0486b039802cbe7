"""Entry point: python -m recur"""

from __future__ import annotations

import argparse
import asyncio
import shutil
import signal
import sys
import time
from pathlib import Path

from recur.infrastructure.config import IPC_DIR
from recur.infrastructure.logger import logger


async def main() -> None:
    from recur.app import SchedulerService

    service = SchedulerService()

    # Handle graceful shutdown
    shutdown_event = asyncio.Event()

    def signal_handler() -> None:
        logger.info("Received shutdown signal")
        shutdown_event.set()

    loop = asyncio.get_running_loop()
    for sig in (signal.SIGINT, signal.SIGTERM):
        loop.add_signal_handler(sig, signal_handler)

    try:
        await service.start()

        # Wait for shutdown signal
        await shutdown_event.wait()
    except KeyboardInterrupt:
        pass
    finally:
        await service.shutdown()


def submit(path: Path) -> int:
    """Validate a command file and drop it into the watched commands directory."""
    from recur.ipc.watcher import COMMAND_SUFFIXES, load_command_file

    if path.suffix not in COMMAND_SUFFIXES:
        print(f"Unsupported file type: {path.suffix} (use {', '.join(COMMAND_SUFFIXES)})", file=sys.stderr)
        return 1
    try:
        data = load_command_file(path)
    except (OSError, ValueError) as err:
        print(f"Cannot read {path}: {err}", file=sys.stderr)
        return 1
    if not isinstance(data, dict) or not data.get("type"):
        print(f"{path} must contain a mapping with a 'type' field", file=sys.stderr)
        return 1

    commands_dir = IPC_DIR / "commands"
    commands_dir.mkdir(parents=True, exist_ok=True)
    # Timestamp prefix keeps submissions in arrival order.
    target = commands_dir / f"{time.time_ns()}-{path.name}"
    shutil.copyfile(path, target)
    print(f"Submitted {data['type']} as {target.name}")
    return 0


def list_schedules() -> int:
    from recur.infrastructure.database import database
    from recur.scheduling.snapshot_writer import schedule_summary

    database.init()
    try:
        schedules = database.schedule_repo.get_all_schedules()
    finally:
        database.close()

    if not schedules:
        print("No schedules")
        return 0
    for schedule in schedules:
        s = schedule_summary(schedule)
        print(f"{s['id']}  {s['state']:<8}  {s['schedule']:<32}  next={s['nextRun'] or '-'}  last={s['lastRunStatus'] or '-'}  {s['name']}")
    return 0


def run() -> None:
    parser = argparse.ArgumentParser(prog="recur", description="Recurring schedule service")
    sub = parser.add_subparsers(dest="command")
    sub.add_parser("serve", help="Run the scheduler (default)")
    submit_parser = sub.add_parser("submit", help="Queue a command file for the running service")
    submit_parser.add_argument("file", type=Path)
    sub.add_parser("list", help="List stored schedules")
    args = parser.parse_args()

    if args.command == "submit":
        sys.exit(submit(args.file))
    if args.command == "list":
        sys.exit(list_schedules())

    try:
        asyncio.run(main())
    except KeyboardInterrupt:
        pass


if __name__ == "__main__":
    run()
