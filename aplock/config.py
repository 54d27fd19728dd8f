"""Configuration loading and validation for aplock."""

from __future__ import annotations

import json
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, Iterable, Mapping, MutableMapping, Tuple

import yaml


SYSTEM_CONFIG_PATH = Path("/etc/aplock/config.yaml")
USER_CONFIG_PATH = (
    Path(os.getenv("XDG_CONFIG_HOME") or Path.home() / ".config") / "aplock" / "config.yaml"
)
ENV_CONFIG_PATH = "APLOCK_CONFIG"


DEFAULT_CONFIG: Dict[str, Any] = {
    "lock": {
        "path": "/run/lock/s390apconfig.lock",
        "retries": 10,
        "stale_seconds": 300,
        "max_stat_failures": 5,
        "backoff": {
            "step_seconds": 5,
            "max_seconds": 60,
        },
    },
    "logging": {
        "console_level": "INFO",
        "file_level": "DEBUG",
        "json_logs": False,
        "color": True,
        "log_dir": None,
    },
}


@dataclass(frozen=True)
class ConfigLoadResult:
    """Container for the merged configuration."""

    config: Dict[str, Any]
    sources: Tuple[str, ...]


def _load_yaml(path: Path) -> Dict[str, Any]:
    with path.open("r", encoding="utf-8") as handle:
        try:
            data = yaml.safe_load(handle) or {}
        except yaml.YAMLError as exc:
            raise ValueError(f"Configuration file {path} is not valid YAML: {exc}") from exc
    if not isinstance(data, MutableMapping):
        raise ValueError(f"Configuration file {path} must contain a mapping at the root")
    return dict(data)


def _deep_merge(base: Mapping[str, Any], overlay: Mapping[str, Any]) -> Dict[str, Any]:
    merged: Dict[str, Any] = dict(base)
    for key, value in overlay.items():
        if (
            key in merged
            and isinstance(merged[key], MutableMapping)
            and isinstance(value, MutableMapping)
        ):
            merged[key] = _deep_merge(merged[key], value)
        else:
            merged[key] = value
    return merged


def _resolve_path(base_dir: Path, value: str) -> Path:
    path = Path(value)
    if path.is_absolute():
        return path
    return (base_dir / value).resolve()


def _apply_path_defaults(config: Dict[str, Any]) -> Dict[str, Any]:
    lock = config.get("lock", {})
    if isinstance(lock.get("path"), str) and lock["path"]:
        lock["path"] = str(_resolve_path(Path.cwd(), lock["path"]))
    logging_config = config.get("logging") or {}
    if isinstance(logging_config.get("log_dir"), str) and logging_config["log_dir"]:
        logging_config["log_dir"] = str(_resolve_path(Path.cwd(), logging_config["log_dir"]))
    return config


def _collect_sources(explicit: str | Path | None) -> Iterable[Path]:
    yield SYSTEM_CONFIG_PATH
    yield USER_CONFIG_PATH
    env_path = os.getenv(ENV_CONFIG_PATH)
    if env_path:
        yield Path(env_path)
    if explicit:
        yield Path(explicit)


def _number(section: Mapping[str, Any], key: str, name: str, kind=float) -> float:
    try:
        return kind(section.get(key, 0))
    except (TypeError, ValueError) as exc:
        raise ValueError(f"{name} must be a number") from exc


def _validate_config(config: Dict[str, Any]) -> Dict[str, Any]:
    lock = config.get("lock")
    if not isinstance(lock, Mapping):
        raise ValueError("Configuration must define a 'lock' section")
    if not lock.get("path"):
        raise ValueError("lock.path must be a non-empty path")
    if _number(lock, "retries", "lock.retries", int) < 1:
        raise ValueError("lock.retries must be at least 1")
    if _number(lock, "stale_seconds", "lock.stale_seconds") <= 0:
        raise ValueError("lock.stale_seconds must be > 0")
    if _number(lock, "max_stat_failures", "lock.max_stat_failures", int) < 0:
        raise ValueError("lock.max_stat_failures must be >= 0")
    backoff = lock.get("backoff") or {}
    if not isinstance(backoff, Mapping):
        raise ValueError("lock.backoff must be a mapping")
    for key in ("step_seconds", "max_seconds"):
        if _number(backoff, key, f"lock.backoff.{key}") < 0:
            raise ValueError(f"lock.backoff.{key} must be >= 0")
    return config


def load_config(
    path: str | Path | None = None, *, include_sources: bool = False
) -> ConfigLoadResult | Dict[str, Any]:
    """Load and validate configuration settings.

    Later sources win: built-in defaults, ``/etc/aplock/config.yaml``, the
    user file under ``$XDG_CONFIG_HOME``, the file named by ``$APLOCK_CONFIG``,
    then ``path``. Missing files are skipped; nothing is written. Relative
    paths resolve against the working directory.
    """

    if path and not Path(path).exists():
        raise ValueError(f"Configuration file {path} does not exist")

    config: Dict[str, Any] = json.loads(json.dumps(DEFAULT_CONFIG))
    sources: list[str] = []

    for source in _collect_sources(path):
        if not source.exists():
            continue
        data = _load_yaml(source)
        config = _deep_merge(config, data)
        sources.append(str(source.resolve()))

    config = json.loads(json.dumps(config))  # deep copy via JSON for immutability
    config = _validate_config(config)
    config = _apply_path_defaults(config)

    result = ConfigLoadResult(config=config, sources=tuple(sources))
    if include_sources:
        return result
    return result.config


__all__ = ["DEFAULT_CONFIG", "ConfigLoadResult", "load_config"]
