"""Temporary claim files: naming and exclusive creation."""

from __future__ import annotations

import os
from contextlib import suppress

from aplock.errors import LockfileError, LockResult

TMPLOCK_EXT = ".lk"
TMPLOCK_PID_WIDTH = 5
TMPLOCK_MODE = 0o644
DEFAULT_NAME_MAX = 255


def _name_max(directory: str) -> int:
    try:
        return os.pathconf(directory or ".", "PC_NAME_MAX")
    except (OSError, ValueError):
        return DEFAULT_NAME_MAX


def temp_lock_name(lock_path: str, process_id: int, now: float) -> str:
    """Return ``<lock_path>.lk<pid:05d><nibble>`` for one acquisition.

    The trailing hex digit is the low nibble of ``now`` and only separates
    rapid attempts by the same process.
    """

    if not lock_path or process_id < 0:
        raise LockfileError(LockResult.GENERIC, "lock path and process id are required")
    name = f"{lock_path}{TMPLOCK_EXT}{process_id:0{TMPLOCK_PID_WIDTH}d}{int(now) & 15:x}"
    directory, base = os.path.split(name)
    if len(base) > _name_max(directory):
        raise LockfileError(LockResult.GENERIC, f"temporary lock name too long: {base}")
    return name


def lock_record(owner_pid: int) -> bytes:
    return f"{owner_pid}\n".encode("ascii")


def write_claim_file(path: str, owner_pid: int) -> None:
    """Create ``path`` exclusively and write the owner's pid into it."""

    payload = lock_record(owner_pid)
    try:
        fd = os.open(path, os.O_WRONLY | os.O_CREAT | os.O_EXCL | os.O_CLOEXEC, TMPLOCK_MODE)
    except OSError as exc:
        raise LockfileError(LockResult.TMPLOCK, f"cannot create {path}: {exc.strerror}") from exc

    written = -1
    error: OSError | None = None
    try:
        written = os.write(fd, payload)
    except OSError as exc:
        error = exc
    try:
        os.close(fd)
    except OSError as exc:
        error = error or exc

    if error is not None or written != len(payload):
        with suppress(OSError):
            os.unlink(path)
        detail = error.strerror if error is not None else "short write"
        raise LockfileError(LockResult.TMPWRITE, f"cannot write {path}: {detail}") from error


def remove_quietly(path: str) -> bool:
    """Unlink ``path``; return False when it was already gone."""

    try:
        os.unlink(path)
    except FileNotFoundError:
        return False
    return True


__all__ = [
    "TMPLOCK_EXT",
    "TMPLOCK_MODE",
    "lock_record",
    "remove_quietly",
    "temp_lock_name",
    "write_claim_file",
]
