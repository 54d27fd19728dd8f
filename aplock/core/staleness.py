"""Deciding whether an existing lock has been abandoned."""

from __future__ import annotations

import logging
import os
import re
from dataclasses import dataclass

from aplock.errors import LockfileError, LockResult
from aplock.system import Clock, ProbeResult, ProcessProbe, SignalProbe, SystemClock

DEFAULT_MAX_AGE = 300.0
RECORD_READ_SIZE = 16

_PID_PATTERN = re.compile(rb"\s*([+-]?\d+)")


def parse_pid(data: bytes) -> int | None:
    """Return the leading integer of a lock record, if it has one."""

    match = _PID_PATTERN.match(data)
    if not match:
        return None
    return int(match.group(1))


@dataclass(frozen=True)
class LockRecord:
    pid: int | None
    mtime: float
    now: float

    @property
    def age(self) -> float:
        return self.now - self.mtime


class StalenessDetector:
    """Judge an existing lock by its owner pid, or by its age without one."""

    def __init__(
        self,
        *,
        probe: ProcessProbe | None = None,
        clock: Clock | None = None,
        max_age: float = DEFAULT_MAX_AGE,
        logger: logging.Logger | None = None,
    ) -> None:
        self.probe = probe or SignalProbe()
        self.clock = clock or SystemClock()
        self.max_age = max_age
        self.logger = logger or logging.getLogger("aplock")

    def inspect(self, lock_path: str) -> LockRecord | None:
        """Read the owner pid and timestamps, or ``None`` if the lock is gone."""

        try:
            st = os.stat(lock_path)
        except OSError:
            return None

        now = self.clock.time()
        mtime = st.st_mtime
        data = b""
        try:
            fd = os.open(lock_path, os.O_RDONLY | os.O_CLOEXEC)
        except OSError:
            return LockRecord(None, mtime, now)
        try:
            before = os.fstat(fd)
            data = os.read(fd, RECORD_READ_SIZE)
            after = os.fstat(fd)
        except OSError as exc:
            self.logger.debug("Cannot read lock record %s: %s", lock_path, exc)
        else:
            mtime = before.st_mtime
            # atime after the read is the file server's notion of now.
            if before.st_atime != after.st_atime:
                now = after.st_atime
        finally:
            os.close(fd)

        return LockRecord(parse_pid(data), mtime, now)

    def judge(self, record: LockRecord) -> bool:
        """Return True while ``record`` describes a lock that must be honoured."""

        if record.pid is not None and record.pid > 0:
            result = self.probe.probe(record.pid)
            if result is ProbeResult.UNKNOWN:
                self.logger.debug("Liveness of pid %d is unknown; keeping lock", record.pid)
            return result is not ProbeResult.GONE
        return record.now < record.mtime + self.max_age

    def is_valid(self, lock_path: str) -> bool:
        record = self.inspect(lock_path)
        if record is None:
            return False
        return self.judge(record)

    def reclaim(self, lock_path: str) -> None:
        """Remove a stale lock; a lock that is already gone counts as removed."""

        try:
            os.unlink(lock_path)
        except FileNotFoundError:
            return
        except OSError as exc:
            raise LockfileError(
                LockResult.RMSTALE, f"cannot remove stale lock {lock_path}: {exc.strerror}"
            ) from exc


__all__ = ["DEFAULT_MAX_AGE", "LockRecord", "StalenessDetector", "parse_pid"]
