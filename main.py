"""Command-line entry point for aplock."""

from __future__ import annotations

import argparse
import os
import subprocess
import sys
import time
from typing import Sequence

from aplock.config import load_config
from aplock.errors import LockResult, UnlockResult
from aplock.lockfile import LinkLock
from aplock.logging_utils import configure_logging


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="aplock", description="Create and remove link-based lock files.")
    parser.add_argument("--config", help="Additional YAML configuration file.")
    parser.add_argument("--log-level", help="Console log level (DEBUG, INFO, ...).")
    commands = parser.add_subparsers(dest="command", required=True)

    acquire = commands.add_parser("acquire", help="Create the lock and exit.")
    acquire.add_argument("path", nargs="?", help="Lock file (defaults to lock.path).")
    acquire.add_argument("--retries", type=int, help="Extra attempts after the first.")
    acquire.add_argument(
        "--pid", type=int, help="Pid to record as owner (defaults to the calling shell)."
    )

    release = commands.add_parser("release", help="Remove the lock.")
    release.add_argument("path", nargs="?", help="Lock file (defaults to lock.path).")

    status = commands.add_parser("status", help="Show who holds the lock.")
    status.add_argument("path", nargs="?", help="Lock file (defaults to lock.path).")

    run = commands.add_parser("run", help="Run a command while holding the lock.")
    run.add_argument("--retries", type=int, help="Extra attempts after the first.")
    run.add_argument("path", help="Lock file.")
    run.add_argument("cmd", nargs=argparse.REMAINDER, help="Command to run, after '--'.")
    return parser


def _acquire(engine: LinkLock, args: argparse.Namespace, path: str, retries: int) -> int:
    owner = args.pid if args.pid is not None else os.getppid()
    return int(engine.acquire(path, owner, retries))


def _release(engine: LinkLock, path: str) -> int:
    return 0 if engine.release(path) is UnlockResult.SUCCESS else 1


def _status(engine: LinkLock, path: str) -> int:
    status = engine.status(path)
    if not status.exists:
        print(f"{path}: not locked")
        return 1
    owner = status.owner_pid if status.owner_pid is not None else "unknown"
    modified = time.strftime("%Y-%m-%dT%H:%M:%S", time.localtime(status.mtime))
    state = "valid" if status.valid else "stale"
    print(f"{path}: locked by pid {owner} since {modified} ({state})")
    return 0 if status.valid else 1


def _run(engine: LinkLock, args: argparse.Namespace, path: str, retries: int, logger) -> int:
    command = list(args.cmd)
    if command and command[0] == "--":
        command = command[1:]
    if not command:
        logger.error("No command given to run.")
        return int(LockResult.GENERIC)

    result = engine.acquire(path, os.getpid(), retries)
    if result is not LockResult.SUCCESS:
        return int(result)
    try:
        completed = subprocess.run(command, check=False)
        return completed.returncode
    except OSError as exc:
        logger.error("Cannot run %s: %s", command[0], exc)
        return 127
    finally:
        engine.release(path)


def main(argv: Sequence[str] | None = None) -> int:
    args = build_parser().parse_args(argv)
    try:
        result = load_config(args.config, include_sources=True)
    except (ValueError, OSError) as exc:
        print(f"aplock: {exc}", file=sys.stderr)
        return int(LockResult.GENERIC)
    config, sources = result.config, result.sources

    logging_config = dict(config.get("logging") or {})
    if args.log_level:
        logging_config["console_level"] = args.log_level
    logger = configure_logging(logging_config)
    logger.debug("Loaded configuration from: %s", ", ".join(sources) or "<defaults>")

    engine = LinkLock.from_config(config, logger=logger)
    lock = config["lock"]
    path = args.path or lock["path"]
    retries = getattr(args, "retries", None)
    if retries is None:
        retries = int(lock["retries"])

    try:
        if args.command == "acquire":
            return _acquire(engine, args, path, retries)
        if args.command == "release":
            return _release(engine, path)
        if args.command == "status":
            return _status(engine, path)
        return _run(engine, args, path, retries, logger)
    except KeyboardInterrupt:  # pragma: no cover - manual interruption
        logger.warning("Interrupted by user.")
        return 1


if __name__ == "__main__":
    sys.exit(main())
