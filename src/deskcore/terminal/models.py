"""Terminal session domain models."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum

from deskcore.config import DEFAULT_SCROLLBACK_BYTES, DEFAULT_TERMINAL_COLS, DEFAULT_TERMINAL_ROWS
from deskcore.terminal.buffer import OutputBuffer


class TerminalState(str, Enum):
    UNINITIALIZED = "uninitialized"
    RUNNING = "running"
    EXITED = "exited"


@dataclass(frozen=True)
class TerminalDimensions:
    cols: int = DEFAULT_TERMINAL_COLS
    rows: int = DEFAULT_TERMINAL_ROWS


@dataclass
class TerminalSession:
    session_id: str
    cwd: str = ""
    buffer: OutputBuffer = field(default_factory=lambda: OutputBuffer(DEFAULT_SCROLLBACK_BYTES))
    dimensions: TerminalDimensions = field(default_factory=TerminalDimensions)
    state: TerminalState = TerminalState.UNINITIALIZED
    activated: bool = False
    exit_code: int | None = None
    failure_reason: str = ""
    command: tuple[str, ...] = ()

    @property
    def is_running(self) -> bool:
        return self.state == TerminalState.RUNNING


@dataclass(frozen=True)
class TerminalOutput:
    session_id: str
    data: bytes


@dataclass(frozen=True)
class TerminalExit:
    session_id: str
    exit_code: int | None


TerminalEvent = TerminalOutput | TerminalExit
