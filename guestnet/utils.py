"""Utility functions for guestnet."""

from __future__ import annotations

import os
from pathlib import Path
from typing import Optional

from guestnet.constants import _LOG_VERBOSE
from guestnet.exceptions import ConfigError


def log(level: str, message: str, category: Optional[str] = None) -> None:
    """Lightweight structured logging; never raises."""
    if level == "DEBUG" and not _LOG_VERBOSE:
        return
    colours = {
        "INFO": "\033[0;34m",
        "WARN": "\033[1;33m",
        "ERROR": "\033[0;31m",
        "SUCCESS": "\033[0;32m",
        "DEBUG": "\033[0;90m",
    }
    colour = colours.get(level, "")
    reset = "\033[0m" if colour else ""
    prefix = f"{category}: " if category else ""
    try:
        print(f"{colour}[{level}]{reset} {prefix}{message}", flush=True)
    except (OSError, ValueError):
        # stdout closed or gone; logging is best-effort
        pass


def get_env(name: str, default: Optional[str] = None) -> Optional[str]:
    return os.environ.get(name, default)


def parse_float_env(name: str, default: float, min_val: float = 0.0) -> float:
    """Parse a non-negative duration in seconds from the environment."""
    raw = get_env(name)
    if raw is None or not raw.strip():
        return default
    try:
        value = float(raw)
    except ValueError:
        raise ConfigError(f"{name} must be a number of seconds (got '{raw}')")
    if value < min_val:
        raise ConfigError(f"{name} must be >= {min_val} (got {value})")
    return value


def ensure_directory(path: Path) -> None:
    path.mkdir(parents=True, exist_ok=True)


def remove_file(path: Path) -> None:
    """Remove a file we own, logging rather than failing."""
    try:
        path.unlink(missing_ok=True)
    except OSError as exc:
        log("WARN", f"Failed to remove {path}: {exc}")
