from __future__ import annotations

import time
from typing import Dict, List

import pytest

from aplock.lockfile import LinkLock
from aplock.system import ProbeResult


class FakeClock:
    """Clock whose sleeps are recorded instead of taken."""

    def __init__(self, now: float | None = None) -> None:
        self.now = time.time() if now is None else now
        self.sleeps: List[float] = []

    def time(self) -> float:
        return self.now

    def sleep(self, seconds: float) -> None:
        self.sleeps.append(seconds)
        self.now += seconds


class FakeProbe:
    def __init__(self, results: Dict[int, ProbeResult] | None = None) -> None:
        self.results = dict(results or {})
        self.calls: List[int] = []

    def probe(self, pid: int) -> ProbeResult:
        self.calls.append(pid)
        result = self.results.get(pid, ProbeResult.ALIVE)
        if isinstance(result, list):
            return result.pop(0) if len(result) > 1 else result[0]
        return result


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def probe() -> FakeProbe:
    return FakeProbe()


@pytest.fixture
def engine(clock: FakeClock, probe: FakeProbe) -> LinkLock:
    return LinkLock(clock=clock, probe=probe, process_id=4242)


def leftover_claims(directory) -> list:
    return sorted(p.name for p in directory.glob("*.lk*"))
