# Copyright (c) Syntropy Systems
"""Configuration management for expctl."""
from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import cast

import yaml

from expctl.errors import ConfigurationError
from expctl.finalizers import DEFAULT_FINALIZER
from expctl.models.experiment import CollectorKind

LOG_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL")


@dataclass
class ControllerConfig:
    """Configuration for the experiment controller."""

    # Finalizer the controller installs on every experiment
    finalizer: str = DEFAULT_FINALIZER

    # Collector used when an experiment declares none
    default_collector: CollectorKind = CollectorKind.STDOUT

    log_level: str = "INFO"

    def to_dict(self) -> dict[str, str]:
        """Convert to the config.yaml layout."""
        return {
            "finalizer": self.finalizer,
            "default_collector": self.default_collector.value,
            "log_level": self.log_level,
        }


def find_expctl_dir(start_path: Path | None = None) -> Path | None:
    """Find the nearest .expctl directory at or above start_path (default: cwd)."""
    start = (start_path or Path.cwd()).resolve()
    for directory in (start, *start.parents):
        candidate = directory / ".expctl"
        if candidate.is_dir():
            return candidate
    return None


def load_config(expctl_dir: Path | None = None) -> ControllerConfig:
    """Load configuration from .expctl/config.yaml or defaults.

    Uses the provided expctl_dir, else the nearest .expctl directory walking
    up. Missing files and keys fall back to defaults.
    """
    config = ControllerConfig()

    if expctl_dir is None:
        expctl_dir = find_expctl_dir()
    config_path = expctl_dir / "config.yaml" if expctl_dir is not None else None

    if config_path is not None and config_path.exists():
        with config_path.open() as f:
            data = cast("dict[str, object]", yaml.safe_load(f) or {})

        finalizer = data.get("finalizer")
        if isinstance(finalizer, str) and finalizer:
            config.finalizer = finalizer
        default_collector = data.get("default_collector")
        if default_collector is not None:
            try:
                config.default_collector = CollectorKind(default_collector)
            except ValueError as e:
                msg = f"unknown default_collector {default_collector!r} in {config_path}"
                raise ConfigurationError(msg) from e
            if config.default_collector == CollectorKind.NONE:
                msg = f"default_collector cannot be None in {config_path}"
                raise ConfigurationError(msg)
        log_level = data.get("log_level")
        if isinstance(log_level, str) and log_level.upper() in LOG_LEVELS:
            config.log_level = log_level.upper()

    return config


def require_expctl_dir() -> Path:
    """Get expctl directory or raise an error if not found."""
    expctl_dir = find_expctl_dir()
    if expctl_dir is None:
        msg = "No .expctl directory found. Run 'expctl init' first."
        raise RuntimeError(msg)
    return expctl_dir


def get_db_path(expctl_dir: Path | None = None) -> Path:
    """Get the path to the SQLite database."""
    return (expctl_dir or require_expctl_dir()) / "expctl.db"
