"""Claiming the lock path by hard link, judged by file identity.

The return value of ``link()`` is not trusted: over NFS the call may report
failure after the link was made, or success when the server never applied
it, and ``st_nlink`` can be served from a stale attribute cache. After each
link attempt the temporary file and the lock path are stat'ed independently
and the claim succeeds only if both names resolve to the same
``(st_dev, st_ino)``. Nothing else in the engine decides ownership.
"""

from __future__ import annotations

import logging
import os
from enum import Enum
from typing import NamedTuple

from aplock.errors import LockfileError, LockResult, error_for

DEFAULT_MAX_STAT_FAILURES = 5


class FileIdentity(NamedTuple):
    device: int
    inode: int

    @classmethod
    def of(cls, path: str) -> "FileIdentity | None":
        try:
            st = os.lstat(path)
        except OSError:
            return None
        return cls(st.st_dev, st.st_ino)


class ClaimOutcome(Enum):
    ACQUIRED = "acquired"
    HELD = "held"  # the lock path belongs to another file
    UNSEEN = "unseen"  # the lock path could not be stat'ed


class LinkClaimer:
    """Run claim attempts for one temporary file.

    Counts consecutive failures to stat the lock path; one more than
    ``max_stat_failures`` in a row means the filesystem is not converging and
    the acquisition is abandoned.
    """

    def __init__(
        self,
        temp_path: str,
        lock_path: str,
        *,
        max_stat_failures: int = DEFAULT_MAX_STAT_FAILURES,
        logger: logging.Logger | None = None,
    ) -> None:
        self.temp_path = temp_path
        self.lock_path = lock_path
        self.max_stat_failures = max_stat_failures
        self.logger = logger or logging.getLogger("aplock")
        self.stat_failures = 0

    def claim(self) -> ClaimOutcome:
        try:
            os.link(self.temp_path, self.lock_path)
        except OSError as exc:
            self.logger.debug("link %s -> %s reported: %s", self.temp_path, self.lock_path, exc)

        mine = FileIdentity.of(self.temp_path)
        if mine is None:
            raise LockfileError(
                LockResult.GENERIC, f"temporary lock file {self.temp_path} disappeared"
            )

        current = FileIdentity.of(self.lock_path)
        if current is None:
            self.stat_failures += 1
            self.logger.debug(
                "Cannot stat %s after link (%d in a row)", self.lock_path, self.stat_failures
            )
            if self.stat_failures > self.max_stat_failures:
                raise error_for(
                    LockResult.MAXRETRIES,
                    f"{self.lock_path} could not be stat'ed {self.stat_failures} times in a row",
                )
            return ClaimOutcome.UNSEEN

        if current == mine:
            return ClaimOutcome.ACQUIRED

        self.stat_failures = 0
        return ClaimOutcome.HELD


__all__ = ["ClaimOutcome", "DEFAULT_MAX_STAT_FAILURES", "FileIdentity", "LinkClaimer"]
