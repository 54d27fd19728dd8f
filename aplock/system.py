"""Clock and process-liveness seams used by the lock engine."""

from __future__ import annotations

import os
import time
from enum import Enum
from typing import Protocol


class Clock(Protocol):
    def time(self) -> float: ...

    def sleep(self, seconds: float) -> None: ...


class SystemClock:
    """Wall clock backed by :mod:`time`."""

    def time(self) -> float:
        return time.time()

    def sleep(self, seconds: float) -> None:
        time.sleep(seconds)


class ProbeResult(Enum):
    ALIVE = "alive"
    EXISTS = "exists"  # signal refused, but the pid is in use
    GONE = "gone"
    UNKNOWN = "unknown"


class ProcessProbe(Protocol):
    def probe(self, pid: int) -> ProbeResult: ...


class SignalProbe:
    """Check whether a pid exists by sending it signal 0."""

    def probe(self, pid: int) -> ProbeResult:
        try:
            os.kill(pid, 0)
        except ProcessLookupError:
            return ProbeResult.GONE
        except PermissionError:
            return ProbeResult.EXISTS
        except (OSError, OverflowError):
            return ProbeResult.UNKNOWN
        return ProbeResult.ALIVE


__all__ = ["Clock", "ProbeResult", "ProcessProbe", "SignalProbe", "SystemClock"]
