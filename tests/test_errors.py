from __future__ import annotations

import errno

import pytest

from deskcore.errors import (
    DeskCoreError,
    DocumentErrorKind,
    ErrorCode,
    StaleResult,
    classify_os_error,
    user_facing_error,
)


def test_error_codes_are_deterministic() -> None:
    assert int(ErrorCode.SUCCESS) == 0
    assert int(ErrorCode.INVALID_ARGS) == 2
    assert int(ErrorCode.INVALID_STATE) == 6
    assert int(ErrorCode.TERMINAL_ERROR) == 8


def test_deskcore_error_string_contains_hint() -> None:
    err = DeskCoreError("Tab not open: /r/a.md", code=ErrorCode.INVALID_STATE, hint="Select it first")

    assert "Select it first" in str(err)
    assert str(DeskCoreError("plain")) == "plain"


def test_user_facing_error_template() -> None:
    text = user_facing_error("No command given", hint="Pass a command after --")

    assert text.startswith("Error:")
    assert "Next step" in text
    assert user_facing_error("Boom") == "Error: Boom."


@pytest.mark.parametrize(
    ("exc", "expected"),
    [
        (FileNotFoundError(errno.ENOENT, "missing"), DocumentErrorKind.NOT_FOUND),
        (PermissionError(errno.EACCES, "denied"), DocumentErrorKind.PERMISSION_DENIED),
        (OSError(errno.EPERM, "not permitted"), DocumentErrorKind.PERMISSION_DENIED),
        (OSError(errno.EIO, "io"), DocumentErrorKind.IO_ERROR),
        (UnicodeDecodeError("utf-8", b"\xff", 0, 1, "invalid start byte"), DocumentErrorKind.IO_ERROR),
    ],
)
def test_classify_os_error(exc: BaseException, expected: DocumentErrorKind) -> None:
    assert classify_os_error(exc) == expected


def test_stale_result_carries_path_and_generation() -> None:
    stale = StaleResult("/r/a.md", 3)

    assert stale.path == "/r/a.md"
    assert stale.generation == 3
    assert stale.kind == DocumentErrorKind.STALE_RESULT
    assert "generation 3" in str(stale)
