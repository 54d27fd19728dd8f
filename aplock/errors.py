"""Result codes and exceptions for lock handling."""

from __future__ import annotations

from enum import IntEnum


class LockResult(IntEnum):
    """Outcome of a lock acquisition.

    The numeric values are stable; callers that previously branched on the
    liblockfile codes keep working.
    """

    SUCCESS = 0
    TMPLOCK = 2
    TMPWRITE = 3
    MAXRETRIES = 4
    GENERIC = 5
    ORPHANED = 7  # reserved, never produced
    RMSTALE = 8


class UnlockResult(IntEnum):
    """Outcome of a lock release."""

    SUCCESS = 0
    GENERIC = -1


_MESSAGES = {
    LockResult.TMPLOCK: "could not create temporary lock file",
    LockResult.TMPWRITE: "could not write temporary lock file",
    LockResult.MAXRETRIES: "retries exhausted",
    LockResult.GENERIC: "invalid argument or unexpected lock state",
    LockResult.ORPHANED: "orphaned lock",
    LockResult.RMSTALE: "could not remove stale lock",
}


def describe(result: LockResult) -> str:
    if result is LockResult.SUCCESS:
        return "lock acquired"
    return _MESSAGES[result]


class LockfileError(Exception):
    """Raised when a lock cannot be obtained; carries the matching result."""

    def __init__(self, result: LockResult, message: str | None = None) -> None:
        self.result = LockResult(result)
        super().__init__(message or describe(self.result))


class LockTimeout(LockfileError, TimeoutError):
    """Raised when every permitted attempt found the lock held."""

    def __init__(self, message: str | None = None) -> None:
        super().__init__(LockResult.MAXRETRIES, message)


def error_for(result: LockResult, message: str | None = None) -> LockfileError:
    """Return the exception instance matching ``result``."""

    if result is LockResult.MAXRETRIES:
        return LockTimeout(message)
    return LockfileError(result, message)


__all__ = [
    "LockResult",
    "LockTimeout",
    "LockfileError",
    "UnlockResult",
    "describe",
    "error_for",
]
