"""Logging setup for the ``deskcore`` logger tree."""

from __future__ import annotations

import logging as py_logging
import sys
from pathlib import Path
from typing import TextIO

LOGGER_NAME = "deskcore"
LOG_LEVELS = {
    "DEBUG": py_logging.DEBUG,
    "INFO": py_logging.INFO,
    "WARN": py_logging.WARNING,
    "WARNING": py_logging.WARNING,
    "ERROR": py_logging.ERROR,
}
DEFAULT_LOG_PATH = Path("~/.config/deskcore/logs/deskcore.log")
_FALLBACK_LOG_PATH = Path(".deskcore/logs/deskcore.log")
# PTY readers log from their own threads.
_FORMAT = "%(asctime)s %(levelname)s [%(threadName)s] %(name)s:%(lineno)d %(message)s"


def default_log_path() -> Path:
    try:
        return DEFAULT_LOG_PATH.expanduser().resolve()
    except RuntimeError:
        return (Path.cwd() / _FALLBACK_LOG_PATH).resolve()


def resolve_level(level: str) -> int:
    return LOG_LEVELS.get(level.strip().upper(), py_logging.INFO)


def log_event(
    logger: py_logging.Logger,
    domain: str,
    subject: str,
    step: str,
    message: str,
    *,
    level: int = py_logging.INFO,
) -> None:
    """Emit one lifecycle line, e.g. ``document-event path=/r/a.md step=save``."""
    key = "path" if domain == "document" else "session"
    logger.log(level, "%s-event %s=%s step=%s message=%s", domain, key, subject, step, message)


def _file_handler(log_file: str | Path, formatter: py_logging.Formatter) -> py_logging.Handler | None:
    try:
        log_path = Path(log_file).expanduser()
    except RuntimeError:
        log_path = Path(log_file)
    try:
        log_path = log_path.resolve()
        log_path.parent.mkdir(parents=True, exist_ok=True)
        handler = py_logging.FileHandler(log_path, encoding="utf-8")
    except OSError:
        return None
    handler.setLevel(py_logging.DEBUG)
    handler.setFormatter(formatter)
    return handler


def configure_logging(
    level: str = "INFO",
    stream: TextIO | None = None,
    *,
    log_file: str | Path | None = None,
) -> py_logging.Logger:
    """(Re)configure the package logger; calling it again replaces earlier handlers."""
    resolved = resolve_level(level)
    logger = py_logging.getLogger(LOGGER_NAME)
    for existing in list(logger.handlers):
        logger.removeHandler(existing)
        existing.close()

    formatter = py_logging.Formatter(_FORMAT)
    console = py_logging.StreamHandler(stream or sys.stderr)
    console.setLevel(resolved)
    console.setFormatter(formatter)
    logger.addHandler(console)

    file_handler = _file_handler(log_file, formatter) if log_file else None
    if file_handler is not None:
        logger.addHandler(file_handler)

    # The file handler records DEBUG regardless of the console threshold.
    logger.setLevel(py_logging.DEBUG if file_handler is not None else resolved)
    logger.propagate = False
    return logger
