"""Reconnectable terminal sessions."""

from .buffer import OutputBuffer
from .channel import TerminalChannel, TerminalHost, TerminalWidget
from .models import (
    TerminalDimensions,
    TerminalEvent,
    TerminalExit,
    TerminalOutput,
    TerminalSession,
    TerminalState,
)
from .pty_backend import PtyBackend, PtyHandle, build_environment, build_shell_command
from .registry import Attachment, RegistryEvent, Subscription, TerminalSessionRegistry

__all__ = [
    "Attachment",
    "build_environment",
    "build_shell_command",
    "OutputBuffer",
    "PtyBackend",
    "PtyHandle",
    "RegistryEvent",
    "Subscription",
    "TerminalChannel",
    "TerminalDimensions",
    "TerminalEvent",
    "TerminalExit",
    "TerminalHost",
    "TerminalOutput",
    "TerminalSession",
    "TerminalSessionRegistry",
    "TerminalState",
    "TerminalWidget",
]
