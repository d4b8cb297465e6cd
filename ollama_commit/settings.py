"""Logging setup shared by every ollama-commit module.

Loggers are created through :func:`ollama_commit_logger` so the level chosen
on the command line (or through ``OLLAMA_COMMIT_LOG_LEVEL``) reaches all of
them, including loggers created before the level was known.
"""

from __future__ import annotations

import logging
import os
import sys
from typing import Final, NamedTuple, TextIO


LOG_LEVEL_ENV_VAR: Final[str] = "OLLAMA_COMMIT_LOG_LEVEL"
NO_COLOR_ENV_VAR: Final[str] = "NO_COLOR"

_LOGGERS: dict[str, logging.Logger] = {}

_RESET: Final[str] = "\033[0m"
_BOLD: Final[str] = "\033[1m"
_DIM: Final[str] = "\033[2m"


def _rgb(red: int, green: int, blue: int) -> str:
    return f"\033[38;2;{red};{green};{blue}m"


class _Badge(NamedTuple):
    icon: str
    label: str
    color: str
    emphasis: str = ""


_BADGES: Final[dict[int, _Badge]] = {
    logging.DEBUG: _Badge("🐛", "DEBUG", _rgb(110, 246, 223), _DIM),
    logging.INFO: _Badge("ℹ️", "INFO", _rgb(91, 203, 255)),
    logging.WARNING: _Badge("⚠️", "WARNING", _rgb(255, 214, 102), _BOLD),
    logging.ERROR: _Badge("❌", "ERROR", _rgb(229, 136, 224), _BOLD),
    logging.CRITICAL: _Badge("🔥", "CRITICAL", _rgb(165, 142, 238), _BOLD),
}


class _BadgeFormatter(logging.Formatter):
    """Prefix each record with an icon badge, colored when *color* is set."""

    def __init__(self, color: bool) -> None:
        super().__init__("%(message)s")
        self._color = color

    def format(self, record: logging.LogRecord) -> str:
        message = super().format(record)
        badge = _BADGES.get(record.levelno)
        if badge is None:
            return message

        line = f"[{badge.icon} {badge.label}::{record.name}] {message}"
        if not self._color:
            return line
        return f"{badge.emphasis}{badge.color}{line}{_RESET}"


def _wants_color(stream: TextIO) -> bool:
    if os.getenv(NO_COLOR_ENV_VAR):
        return False
    isatty = getattr(stream, "isatty", None)
    return bool(isatty and isatty())


def _level_from_env() -> int | None:
    name = os.getenv(LOG_LEVEL_ENV_VAR)
    if not name:
        return None
    level = logging.getLevelName(name.strip().upper())
    return level if isinstance(level, int) else None


def ollama_commit_logger(name: str) -> logging.Logger:
    """Return the logger for *name*, styled and set to the configured level."""

    logger = logging.getLogger(name)

    if not logger.handlers:
        stream = sys.stderr
        handler = logging.StreamHandler(stream)
        handler.setFormatter(_BadgeFormatter(color=_wants_color(stream)))
        logger.addHandler(handler)

    level = _level_from_env()
    if level is not None:
        logger.setLevel(level)
    _LOGGERS[name] = logger

    return logger


def set_ollama_commit_log_level(level_name: str) -> None:
    """Apply *level_name* to every ollama-commit logger, present and future."""

    os.environ[LOG_LEVEL_ENV_VAR] = level_name
    level = _level_from_env()
    if level is None:
        level = logging.WARNING

    for logger in _LOGGERS.values():
        logger.setLevel(level)


def configure_verbosity(debug: bool, verbose: bool) -> None:
    """Map the ``--debug`` and ``--verbose`` flags onto a log level.

    Without either flag the current level is left alone.
    """

    if debug:
        set_ollama_commit_log_level("DEBUG")
    elif verbose:
        set_ollama_commit_log_level("INFO")
