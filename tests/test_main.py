"""Tests for the ``main`` module entrypoint helpers."""

from __future__ import annotations

import json
import logging
import os
import sys
from pathlib import Path
from unittest.mock import Mock

import pytest

import main
from aplock import config as config_module
from aplock.config import DEFAULT_CONFIG, ConfigLoadResult


@pytest.fixture
def lock_path(tmp_path: Path) -> Path:
    return tmp_path / "ap.lock"


@pytest.fixture
def configure(monkeypatch, lock_path: Path) -> Mock:
    config = json.loads(json.dumps(DEFAULT_CONFIG))
    config["lock"]["path"] = str(lock_path)
    config["lock"]["retries"] = 1
    monkeypatch.setattr(
        main, "load_config", Mock(return_value=ConfigLoadResult(config=config, sources=()))
    )
    configure_logging = Mock(return_value=logging.getLogger("aplock-test"))
    monkeypatch.setattr(main, "configure_logging", configure_logging)
    return configure_logging


def test_acquire_status_release_cycle(configure: Mock, lock_path: Path, capsys) -> None:
    assert main.main(["acquire", "--pid", str(os.getpid())]) == 0
    assert lock_path.read_text(encoding="utf-8") == f"{os.getpid()}\n"

    assert main.main(["status"]) == 0
    assert "(valid)" in capsys.readouterr().out

    assert main.main(["release", str(lock_path)]) == 0
    assert not lock_path.exists()

    assert main.main(["status"]) == 1
    assert "not locked" in capsys.readouterr().out


def test_acquire_exit_code_reports_held_lock(configure: Mock, lock_path: Path) -> None:
    lock_path.write_text(f"{os.getpid()}\n", encoding="utf-8")

    assert main.main(["acquire", "--pid", "1", "--retries", "1"]) == 4


def test_run_holds_lock_while_command_runs(configure: Mock, lock_path: Path) -> None:
    script = "import os, sys; sys.exit(0 if os.path.exists(sys.argv[1]) else 9)"

    exit_code = main.main(
        ["run", str(lock_path), "--", sys.executable, "-c", script, str(lock_path)]
    )

    assert exit_code == 0
    assert not lock_path.exists()


def test_run_returns_command_status_and_releases(configure: Mock, lock_path: Path) -> None:
    exit_code = main.main(
        ["run", "--retries", "2", str(lock_path), "--", sys.executable, "-c", "raise SystemExit(3)"]
    )

    assert exit_code == 3
    assert not lock_path.exists()


def test_run_without_command_is_rejected(configure: Mock, lock_path: Path) -> None:
    assert main.main(["run", str(lock_path)]) == 5
    assert not lock_path.exists()


def test_log_level_override(configure: Mock) -> None:
    main.main(["--log-level", "DEBUG", "status"])

    logging_config = configure.call_args.args[0]
    assert logging_config["console_level"] == "DEBUG"
    assert logging_config["file_level"] == "DEBUG"


def test_config_errors_exit_before_logging(monkeypatch, capsys) -> None:
    monkeypatch.setattr(main, "load_config", Mock(side_effect=ValueError("lock.retries must be at least 1")))
    configure_logging = Mock()
    monkeypatch.setattr(main, "configure_logging", configure_logging)

    assert main.main(["--config", "bad.yaml", "status"]) == 5
    assert "lock.retries" in capsys.readouterr().err
    configure_logging.assert_not_called()


def test_unreadable_config_exits_before_logging(monkeypatch, capsys) -> None:
    denied = PermissionError(13, "Permission denied", "/etc/aplock/config.yaml")
    monkeypatch.setattr(main, "load_config", Mock(side_effect=denied))
    configure_logging = Mock()
    monkeypatch.setattr(main, "configure_logging", configure_logging)

    assert main.main(["status"]) == 5
    assert "Permission denied" in capsys.readouterr().err
    configure_logging.assert_not_called()


def test_malformed_config_file_exits_with_generic_code(tmp_path: Path, monkeypatch, capsys) -> None:
    monkeypatch.setattr(config_module, "SYSTEM_CONFIG_PATH", tmp_path / "etc" / "config.yaml")
    monkeypatch.setattr(config_module, "USER_CONFIG_PATH", tmp_path / "home" / "config.yaml")
    monkeypatch.delenv(config_module.ENV_CONFIG_PATH, raising=False)
    broken = tmp_path / "broken.yaml"
    broken.write_text("lock: {retries: [1\n", encoding="utf-8")

    assert main.main(["--config", str(broken), "status"]) == 5
    assert "not valid YAML" in capsys.readouterr().err
