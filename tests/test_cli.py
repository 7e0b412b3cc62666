from __future__ import annotations

import argparse
import io
from contextlib import redirect_stderr
from pathlib import Path

import pytest

from deskcore import cli
from deskcore.config import CoreConfig
from deskcore.errors import DeskCoreError, ErrorCode
from deskcore.terminal import PtyBackend, TerminalSessionRegistry


class _ScriptedPty:
    def __init__(self, chunks: list[bytes], exit_code: int) -> None:
        self.chunks = list(chunks)
        self.exit_code = exit_code
        self.done = False

    def read(self, _size: int = 4096) -> bytes:
        if self.chunks:
            return self.chunks.pop(0)
        self.done = True
        return b""

    def write(self, payload: bytes) -> None:
        return None

    def set_size(self, cols: int, rows: int) -> None:
        return None

    def wait(self, _timeout: float | None = None) -> int | None:
        return self.exit_code

    def isalive(self) -> bool:
        return not self.done


def _registry(spawn) -> TerminalSessionRegistry:
    return TerminalSessionRegistry(
        backend=PtyBackend(spawn=spawn, register_atexit=False),
        register_atexit=False,
    )


def test_cli_help_lists_commands_and_global_flags() -> None:
    help_text = cli.build_parser().format_help()

    assert "inspect" in help_text
    assert "run" in help_text
    assert "--log-level" in help_text
    assert "--log-file" in help_text
    assert "--config" in help_text


def test_missing_command_is_invalid_args() -> None:
    with redirect_stderr(io.StringIO()):
        code = cli.main([])

    assert code == int(ErrorCode.INVALID_ARGS)


def test_invalid_log_level_is_rejected() -> None:
    stream = io.StringIO()
    with redirect_stderr(stream):
        code = cli.main(["--log-level", "chatty", "inspect", "x"])

    assert code == 2
    assert "--log-level must be one of" in stream.getvalue()


def test_inspect_reports_each_path(tmp_path: Path, capsys: pytest.CaptureFixture[str]) -> None:
    (tmp_path / "notes.md").write_text("Hello", encoding="utf-8")
    (tmp_path / "logo.png").write_bytes(b"\x89PNG")
    log_file = tmp_path / "cli.log"

    code = cli.main(
        [
            "--log-level",
            "warning",
            "--log-file",
            str(log_file),
            "--config",
            str(tmp_path / "missing.toml"),
            "inspect",
            str(tmp_path / "notes.md"),
            str(tmp_path / "logo.png"),
            str(tmp_path / "gone.md"),
        ]
    )

    lines = capsys.readouterr().out.splitlines()
    assert code == 0
    assert lines[0].endswith("notes.md\ttext\t5 chars")
    assert "\timage\t" in lines[1]
    assert "\terror\tFailed to load file:" in lines[2]
    assert log_file.exists()


def test_run_without_command_reports_hint(capsys: pytest.CaptureFixture[str]) -> None:
    code = cli.main(["run"])

    assert code == int(ErrorCode.INVALID_ARGS)
    assert "deskcore run -- <command>" in capsys.readouterr().err


def test_run_streams_output_and_returns_exit_code(tmp_path: Path) -> None:
    seen: list[list[str]] = []

    def spawn(command, cwd, env, size):
        seen.append(command)
        return _ScriptedPty([b"building\r\n", b"done\r\n"], exit_code=7)

    stream = io.BytesIO()
    namespace = argparse.Namespace(argv=["--", "make", "all"], cwd=tmp_path)

    code = cli.run_command(namespace, CoreConfig(), registry=_registry(spawn), stream=stream)

    assert code == 7
    assert seen == [["make", "all"]]
    assert stream.getvalue() == b"building\r\ndone\r\n"


def test_run_spawn_failure_raises_terminal_error(tmp_path: Path) -> None:
    def spawn(*_args: object):
        raise FileNotFoundError("No such file or directory: 'nope'")

    namespace = argparse.Namespace(argv=["nope"], cwd=tmp_path)

    with pytest.raises(DeskCoreError) as info:
        cli.run_command(namespace, CoreConfig(), registry=_registry(spawn), stream=io.BytesIO())

    assert info.value.code == ErrorCode.TERMINAL_ERROR
    assert "nope" in info.value.hint
