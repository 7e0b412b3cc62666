"""Deterministic error model and exit code contract."""

from __future__ import annotations

import errno
from dataclasses import dataclass
from enum import Enum, IntEnum


class ErrorCode(IntEnum):
    SUCCESS = 0
    INVALID_ARGS = 2
    CONFIG_ERROR = 3
    RUNTIME_ERROR = 4
    VALIDATION_ERROR = 5
    INVALID_STATE = 6
    IO_ERROR = 7
    TERMINAL_ERROR = 8


class DocumentErrorKind(str, Enum):
    NOT_FOUND = "not-found"
    PERMISSION_DENIED = "permission-denied"
    IO_ERROR = "io-error"
    OVERSIZED = "oversized"
    UNSUPPORTED = "unsupported"
    STALE_RESULT = "stale-result"


@dataclass
class DeskCoreError(Exception):
    message: str
    code: ErrorCode = ErrorCode.RUNTIME_ERROR
    hint: str = ""

    def __str__(self) -> str:
        if self.hint:
            return f"{self.message} Hint: {self.hint}"
        return self.message


class StaleResult(Exception):
    """A load finished after its generation was superseded."""

    kind = DocumentErrorKind.STALE_RESULT

    def __init__(self, path: str, generation: int) -> None:
        super().__init__(f"Stale load result for {path} (generation {generation}).")
        self.path = path
        self.generation = generation


def classify_os_error(exc: BaseException) -> DocumentErrorKind:
    if isinstance(exc, FileNotFoundError):
        return DocumentErrorKind.NOT_FOUND
    if isinstance(exc, PermissionError):
        return DocumentErrorKind.PERMISSION_DENIED
    if isinstance(exc, OSError):
        if exc.errno == errno.ENOENT:
            return DocumentErrorKind.NOT_FOUND
        if exc.errno in (errno.EACCES, errno.EPERM):
            return DocumentErrorKind.PERMISSION_DENIED
    return DocumentErrorKind.IO_ERROR


def user_facing_error(message: str, *, hint: str = "") -> str:
    if hint:
        return f"Error: {message}. Next step: {hint}"
    return f"Error: {message}."
