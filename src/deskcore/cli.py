"""Public CLI contract and entrypoint."""

from __future__ import annotations

import argparse
import asyncio
import sys
import threading
from collections.abc import Sequence
from pathlib import Path
from typing import BinaryIO

from .config import CoreConfig, load_config
from .documents import ContentKind, TabSessionCoordinator
from .errors import DeskCoreError, ErrorCode, user_facing_error
from .logging import configure_logging, default_log_path
from .terminal import TerminalChannel, TerminalSessionRegistry, TerminalState

_VALID_LOG_LEVELS = ("DEBUG", "INFO", "WARN", "ERROR")
_RUN_SESSION_ID = "cli-run"


def _log_level_type(value: str) -> str:
    normalized = value.upper()
    if normalized == "WARNING":
        normalized = "WARN"
    if normalized not in _VALID_LOG_LEVELS:
        accepted = ", ".join(_VALID_LOG_LEVELS)
        raise argparse.ArgumentTypeError(f"--log-level must be one of: {accepted}")
    return normalized


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="deskcore")
    parser.add_argument("--config", type=Path, default=None)
    parser.add_argument("--log-level", type=_log_level_type, default="WARN")
    parser.add_argument("--log-file", type=Path, default=None)
    commands = parser.add_subparsers(dest="command", required=True)

    inspect = commands.add_parser("inspect", help="Load files and report how each one is classified")
    inspect.add_argument("paths", nargs="+", type=Path)

    run_parser = commands.add_parser("run", help="Run a command inside a terminal session")
    run_parser.add_argument("--cwd", type=Path, default=None)
    run_parser.add_argument("argv", nargs=argparse.REMAINDER)
    return parser


def parse_args(argv: Sequence[str] | None = None) -> argparse.Namespace:
    return build_parser().parse_args(argv)


class StreamWidget:
    """Terminal widget that mirrors output to a byte stream."""

    def __init__(self, stream: BinaryIO) -> None:
        self._stream = stream

    def write(self, data: bytes) -> None:
        self._stream.write(data)
        self._stream.flush()

    def is_at_bottom(self) -> bool:
        return True

    def scroll_to_bottom(self) -> None:
        return None


def _describe(kind: ContentKind, detail: str) -> str:
    return f"{kind.value}\t{detail}" if detail else kind.value


async def _inspect(paths: list[Path], config: CoreConfig) -> list[str]:
    coordinator = TabSessionCoordinator(config=config)
    lines: list[str] = []
    for path in paths:
        resolved = str(path.expanduser().resolve())
        state = await coordinator.select_path(resolved)
        if state.error is not None:
            detail = state.error.message
        elif state.kind == ContentKind.TEXT and state.content is not None:
            detail = f"{len(state.content)} chars"
        else:
            detail = state.binary_ref or ""
        lines.append(f"{resolved}\t{_describe(state.kind, detail)}")
        await coordinator.close_tab(resolved)
    return lines


def run_inspect(namespace: argparse.Namespace, config: CoreConfig) -> int:
    for line in asyncio.run(_inspect(list(namespace.paths), config)):
        print(line)
    return int(ErrorCode.SUCCESS)


def run_command(
    namespace: argparse.Namespace,
    config: CoreConfig,
    *,
    registry: TerminalSessionRegistry | None = None,
    stream: BinaryIO | None = None,
) -> int:
    argv = list(namespace.argv or [])
    if argv[:1] == ["--"]:
        argv = argv[1:]
    if not argv:
        raise DeskCoreError(
            "No command given",
            code=ErrorCode.INVALID_ARGS,
            hint="Use: deskcore run -- <command> [args...]",
        )
    cwd = str((namespace.cwd or Path.cwd()).expanduser())
    registry = registry or TerminalSessionRegistry.from_config(config)
    done = threading.Event()
    channel = TerminalChannel(
        registry,
        _RUN_SESSION_ID,
        StreamWidget(stream or sys.stdout.buffer),
        on_exit=lambda _code: done.set(),
        redraw_after_replay=False,
    )
    session = registry.ensure(
        _RUN_SESSION_ID,
        cwd,
        command=argv,
        cols=config.terminal_cols,
        rows=config.terminal_rows,
    )
    if session.state == TerminalState.EXITED and session.failure_reason:
        registry.destroy(_RUN_SESSION_ID)
        raise DeskCoreError(
            "Failed to start command",
            code=ErrorCode.TERMINAL_ERROR,
            hint=session.failure_reason,
        )
    channel.attach()
    try:
        done.wait()
    finally:
        channel.detach()
        registry.destroy(_RUN_SESSION_ID)
    exit_code = channel.exit_code
    return exit_code if isinstance(exit_code, int) and exit_code >= 0 else int(ErrorCode.RUNTIME_ERROR)


def main(argv: Sequence[str] | None = None) -> int:
    log_path = default_log_path()
    logger = configure_logging(log_file=log_path)
    parser = build_parser()
    try:
        namespace = parser.parse_args(argv)
    except SystemExit as exc:
        if exc.code not in (None, 0):
            logger.warning("Argument parsing failed with exit code %s", exc.code)
        return int(exc.code or 0)

    if namespace.log_file is not None:
        log_path = namespace.log_file.expanduser()
    logger = configure_logging(level=namespace.log_level, log_file=log_path)

    try:
        config = load_config(namespace.config)
        logger.debug("Loaded config from %s", namespace.config or "default path")
        if namespace.command == "inspect":
            return run_inspect(namespace, config)
        return run_command(namespace, config)
    except DeskCoreError as exc:
        logger.error(
            "Handled DeskCoreError (code=%s): %s",
            int(exc.code),
            exc.message,
            exc_info=namespace.log_level == "DEBUG",
        )
        print(user_facing_error(exc.message, hint=exc.hint), file=sys.stderr)
        return int(exc.code)
    except KeyboardInterrupt:
        return 130
    except Exception:
        logger.exception("Unhandled exception in CLI entrypoint")
        try:
            hint = f"Inspect logs: {log_path}"
            print(user_facing_error("Unexpected runtime failure", hint=hint), file=sys.stderr)
        except Exception:
            pass
        return int(ErrorCode.RUNTIME_ERROR)


def run(argv: Sequence[str] | None = None) -> int:
    return main(argv)
