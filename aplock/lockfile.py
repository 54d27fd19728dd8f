"""Link-based lock files that stay correct on network filesystems.

Compatible with liblockfile's ``lockfile_create()``/``lockfile_remove()``:
the lock is a file holding the owner's pid, created by hard-linking a
uniquely named temporary file into place.
"""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass
from typing import Any, Mapping

from aplock.core.claim_file import remove_quietly, temp_lock_name, write_claim_file
from aplock.core.identity import DEFAULT_MAX_STAT_FAILURES, ClaimOutcome, LinkClaimer
from aplock.core.retry import DEFAULT_BACKOFF_MAX, DEFAULT_BACKOFF_STEP, RetryScheduler
from aplock.core.staleness import DEFAULT_MAX_AGE, StalenessDetector
from aplock.errors import LockfileError, LockResult, LockTimeout, UnlockResult
from aplock.system import Clock, ProcessProbe, SystemClock

PathArg = str | os.PathLike


@dataclass(frozen=True)
class LockStatus:
    path: str
    exists: bool
    owner_pid: int | None = None
    valid: bool = False
    mtime: float | None = None


class LinkLock:
    """Lock engine with injectable clock, liveness probe and tunables."""

    def __init__(
        self,
        *,
        clock: Clock | None = None,
        probe: ProcessProbe | None = None,
        max_age: float = DEFAULT_MAX_AGE,
        backoff_step: float = DEFAULT_BACKOFF_STEP,
        backoff_max: float = DEFAULT_BACKOFF_MAX,
        max_stat_failures: int = DEFAULT_MAX_STAT_FAILURES,
        process_id: int | None = None,
        logger: logging.Logger | None = None,
    ) -> None:
        self.clock = clock or SystemClock()
        self.backoff_step = backoff_step
        self.backoff_max = backoff_max
        self.max_stat_failures = max_stat_failures
        self.process_id = process_id
        self.logger = logger or logging.getLogger("aplock")
        self.detector = StalenessDetector(
            probe=probe, clock=self.clock, max_age=max_age, logger=self.logger
        )

    @classmethod
    def from_config(cls, config: Mapping[str, Any], **overrides: Any) -> "LinkLock":
        """Build an engine from a loaded configuration (or its ``lock`` section)."""

        section = config.get("lock", config)
        backoff = section.get("backoff") or {}
        options: dict[str, Any] = {
            "max_age": float(section.get("stale_seconds", DEFAULT_MAX_AGE)),
            "backoff_step": float(backoff.get("step_seconds", DEFAULT_BACKOFF_STEP)),
            "backoff_max": float(backoff.get("max_seconds", DEFAULT_BACKOFF_MAX)),
            "max_stat_failures": int(section.get("max_stat_failures", DEFAULT_MAX_STAT_FAILURES)),
        }
        options.update(overrides)
        return cls(**options)

    # ------------------------------------------------------------------
    def create(self, lock_path: PathArg | None, owner_pid: int, retries: int) -> None:
        """Acquire ``lock_path`` for ``owner_pid``, raising :class:`LockfileError`."""

        if not lock_path or retries < 1:
            raise LockfileError(LockResult.GENERIC, "a lock path and at least one retry are required")
        lock_path = os.fspath(lock_path)
        process_id = self.process_id if self.process_id is not None else os.getpid()

        temp_path = temp_lock_name(lock_path, process_id, self.clock.time())
        write_claim_file(temp_path, owner_pid)

        scheduler = RetryScheduler(
            retries, self.clock.sleep, step=self.backoff_step, cap=self.backoff_max
        )
        claimer = LinkClaimer(
            temp_path,
            lock_path,
            max_stat_failures=self.max_stat_failures,
            logger=self.logger,
        )
        try:
            while scheduler.next_attempt():
                self.logger.debug(
                    "Attempt %d/%d on %s", scheduler.attempt, scheduler.tries, lock_path
                )
                outcome = claimer.claim()
                if outcome is ClaimOutcome.ACQUIRED:
                    scheduler.acquired()
                    self.logger.info(
                        "Acquired lock %s for pid %d",
                        lock_path,
                        owner_pid,
                        extra={"lock_path": lock_path},
                    )
                    return
                if outcome is ClaimOutcome.UNSEEN:
                    continue
                if not self.detector.is_valid(lock_path):
                    self.logger.info(
                        "Removing stale lock %s", lock_path, extra={"lock_path": lock_path}
                    )
                    self.detector.reclaim(lock_path)
                    scheduler.stale_reclaimed()
        except LockfileError:
            scheduler.fatal()
            raise
        finally:
            self._discard(temp_path)

        raise LockTimeout(f"{lock_path} still locked after {scheduler.attempt} attempts")

    def acquire(self, lock_path: PathArg | None, owner_pid: int, retries: int) -> LockResult:
        try:
            self.create(lock_path, owner_pid, retries)
        except LockfileError as exc:
            self.logger.warning(
                "Cannot lock %s: %s",
                lock_path,
                exc,
                extra={"lock_path": os.fspath(lock_path or "")},
            )
            return exc.result
        return LockResult.SUCCESS

    def release(self, lock_path: PathArg | None) -> UnlockResult:
        if not lock_path:
            return UnlockResult.GENERIC
        try:
            removed = remove_quietly(os.fspath(lock_path))
        except OSError as exc:
            self.logger.warning("Cannot release lock %s: %s", lock_path, exc)
            return UnlockResult.GENERIC
        if removed:
            self.logger.info(
                "Released lock %s", lock_path, extra={"lock_path": os.fspath(lock_path)}
            )
        else:
            self.logger.debug("Lock %s was already released", lock_path)
        return UnlockResult.SUCCESS

    def status(self, lock_path: PathArg) -> LockStatus:
        path = os.fspath(lock_path)
        record = self.detector.inspect(path)
        if record is None:
            return LockStatus(path=path, exists=False)
        return LockStatus(
            path=path,
            exists=True,
            owner_pid=record.pid,
            valid=self.detector.judge(record),
            mtime=record.mtime,
        )

    def _discard(self, temp_path: str) -> None:
        try:
            remove_quietly(temp_path)
        except OSError as exc:
            self.logger.warning("Cannot remove temporary lock %s: %s", temp_path, exc)


# ---------------------------------------------------------------------------
# Module-level API
# ---------------------------------------------------------------------------


def acquire(lock_path: PathArg | None, owner_pid: int, retries: int, **options: Any) -> LockResult:
    """Create ``lock_path`` for ``owner_pid``; makes ``retries + 1`` attempts."""

    return LinkLock(**options).acquire(lock_path, owner_pid, retries)


def release(lock_path: PathArg | None, **options: Any) -> UnlockResult:
    """Remove ``lock_path``; an absent lock is already released."""

    return LinkLock(**options).release(lock_path)


def check(lock_path: PathArg, **options: Any) -> LockStatus:
    return LinkLock(**options).status(lock_path)


# ---------------------------------------------------------------------------
# Context manager
# ---------------------------------------------------------------------------


@dataclass
class FileLock:
    """Hold a link-based lock for the duration of a ``with`` block."""

    path: PathArg
    retries: int = 10
    owner_pid: int | None = None
    engine: LinkLock | None = None

    def __post_init__(self) -> None:
        if self.retries < 1:
            raise ValueError("retries must be positive")
        if self.engine is None:
            self.engine = LinkLock()
        self._held = False

    @property
    def held(self) -> bool:
        return self._held

    def acquire(self) -> None:
        owner = self.owner_pid if self.owner_pid is not None else os.getpid()
        self.engine.create(self.path, owner, self.retries)
        self._held = True

    def release(self) -> UnlockResult:
        if not self._held:
            return UnlockResult.SUCCESS
        self._held = False
        return self.engine.release(self.path)

    def __enter__(self) -> "FileLock":
        self.acquire()
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.release()


__all__ = [
    "FileLock",
    "LinkLock",
    "LockStatus",
    "acquire",
    "check",
    "release",
]
