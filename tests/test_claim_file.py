from __future__ import annotations

import os
from pathlib import Path

import pytest

from aplock.core import claim_file
from aplock.core.claim_file import temp_lock_name, write_claim_file
from aplock.errors import LockfileError, LockResult


def test_temp_lock_name_appends_pid_and_time_nibble() -> None:
    assert temp_lock_name("/run/lock/ap.lock", 42, 0x1234) == "/run/lock/ap.lock.lk000424"
    assert temp_lock_name("ap.lock", 7, 15.9) == "ap.lock.lk00007f"


def test_temp_lock_name_keeps_wide_pids() -> None:
    assert temp_lock_name("ap.lock", 4194304, 16) == "ap.lock.lk41943040"


@pytest.mark.parametrize("path, pid", [("", 1), ("ap.lock", -1)])
def test_temp_lock_name_rejects_bad_arguments(path: str, pid: int) -> None:
    with pytest.raises(LockfileError) as excinfo:
        temp_lock_name(path, pid, 0)
    assert excinfo.value.result is LockResult.GENERIC


def test_temp_lock_name_rejects_names_longer_than_name_max(tmp_path: Path) -> None:
    lock_path = tmp_path / ("x" * 250)
    with pytest.raises(LockfileError) as excinfo:
        temp_lock_name(str(lock_path), 1, 0)
    assert excinfo.value.result is LockResult.GENERIC


def test_write_claim_file_records_owner_pid(tmp_path: Path) -> None:
    target = tmp_path / "ap.lock.lk000011"
    write_claim_file(str(target), 31337)

    assert target.read_bytes() == b"31337\n"
    umask = os.umask(0)
    os.umask(umask)
    assert target.stat().st_mode & 0o777 == 0o644 & ~umask


def test_write_claim_file_refuses_existing_file(tmp_path: Path) -> None:
    target = tmp_path / "ap.lock.lk000011"
    target.write_text("someone else\n", encoding="utf-8")

    with pytest.raises(LockfileError) as excinfo:
        write_claim_file(str(target), 1)

    assert excinfo.value.result is LockResult.TMPLOCK
    assert target.read_text(encoding="utf-8") == "someone else\n"


def test_write_claim_file_removes_partial_file(tmp_path: Path, monkeypatch) -> None:
    target = tmp_path / "ap.lock.lk000011"
    monkeypatch.setattr(claim_file.os, "write", lambda fd, data: 1)

    with pytest.raises(LockfileError) as excinfo:
        write_claim_file(str(target), 31337)

    assert excinfo.value.result is LockResult.TMPWRITE
    assert not target.exists()
