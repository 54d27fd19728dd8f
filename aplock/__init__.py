"""Network-filesystem safe lock files built on hard links."""

from .errors import LockfileError, LockResult, LockTimeout, UnlockResult
from .lockfile import FileLock, LinkLock, LockStatus, acquire, check, release

__all__ = [
    "FileLock",
    "LinkLock",
    "LockStatus",
    "LockResult",
    "LockTimeout",
    "LockfileError",
    "UnlockResult",
    "acquire",
    "check",
    "release",
]
