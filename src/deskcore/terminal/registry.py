"""Host-side ownership of long-lived terminal sessions."""

from __future__ import annotations

import atexit
import logging as py_logging
import threading
from collections import deque
from collections.abc import Callable
from contextlib import suppress
from dataclasses import dataclass

from deskcore.config import (
    DEFAULT_EVENT_HISTORY,
    DEFAULT_SCROLLBACK_BYTES,
    DEFAULT_TERMINAL_COLS,
    DEFAULT_TERMINAL_ROWS,
    CoreConfig,
)
from deskcore.errors import DeskCoreError, ErrorCode
from deskcore.logging import log_event
from deskcore.terminal.buffer import OutputBuffer
from deskcore.terminal.models import (
    TerminalDimensions,
    TerminalEvent,
    TerminalExit,
    TerminalOutput,
    TerminalSession,
    TerminalState,
)
from deskcore.terminal.pty_backend import PtyBackend, PtyHandle

logger = py_logging.getLogger(__name__)

TerminalListener = Callable[[TerminalEvent], None]


@dataclass(frozen=True)
class RegistryEvent:
    session_id: str
    step: str
    message: str


class Subscription:
    def __init__(self, registry: TerminalSessionRegistry, session_id: str, listener: TerminalListener) -> None:
        self.session_id = session_id
        self._registry = registry
        self._listener: TerminalListener | None = listener

    @property
    def active(self) -> bool:
        return self._listener is not None

    def close(self) -> None:
        listener, self._listener = self._listener, None
        if listener is not None:
            self._registry._unsubscribe(self.session_id, listener)

    def __enter__(self) -> Subscription:
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()


@dataclass(frozen=True)
class Attachment:
    session_id: str
    snapshot: bytes
    subscription: Subscription
    state: TerminalState
    exit_code: int | None = None


class TerminalSessionRegistry:
    """One PTY process per session id, a scrollback buffer, and listener fan-out.

    Output appends and listener broadcasts happen under one lock, and
    ``attach`` takes its snapshot and subscribes under the same lock, so a
    listener sees every byte exactly once across replay and live stream.
    Listeners run on the producing thread and must not block.
    """

    def __init__(
        self,
        *,
        backend: PtyBackend | None = None,
        scrollback_bytes: int = DEFAULT_SCROLLBACK_BYTES,
        shell: str = "",
        spawn_readers: bool = True,
        register_atexit: bool = True,
        event_history: int = DEFAULT_EVENT_HISTORY,
    ) -> None:
        if scrollback_bytes <= 0:
            raise DeskCoreError(
                f"Invalid scrollback size: {scrollback_bytes}",
                code=ErrorCode.VALIDATION_ERROR,
                hint="Use a positive byte count.",
            )
        self.scrollback_bytes = scrollback_bytes
        self.shell = shell
        self._backend = backend or PtyBackend(register_atexit=False)
        self._spawn_readers = spawn_readers
        self._sessions: dict[str, TerminalSession] = {}
        self._listeners: dict[str, list[TerminalListener]] = {}
        self._handles: dict[str, PtyHandle] = {}
        self._events: deque[RegistryEvent] = deque(maxlen=event_history)
        self._lock = threading.RLock()
        if register_atexit:
            atexit.register(self.shutdown)

    @classmethod
    def from_config(cls, config: CoreConfig, **kwargs: object) -> TerminalSessionRegistry:
        return cls(scrollback_bytes=config.scrollback_bytes, shell=config.shell, **kwargs)

    def ensure(
        self,
        session_id: str,
        cwd: str,
        *,
        command: list[str] | None = None,
        cols: int = DEFAULT_TERMINAL_COLS,
        rows: int = DEFAULT_TERMINAL_ROWS,
    ) -> TerminalSession:
        if not session_id.strip():
            raise DeskCoreError(
                "Terminal session id is required.",
                code=ErrorCode.VALIDATION_ERROR,
                hint="Pass a stable session id.",
            )
        with self._lock:
            existing = self._sessions.get(session_id)
            if existing is not None:
                return existing
            session = TerminalSession(
                session_id=session_id,
                cwd=cwd,
                buffer=OutputBuffer(self.scrollback_bytes),
                dimensions=TerminalDimensions(cols=cols, rows=rows),
            )
            self._sessions[session_id] = session
            try:
                handle = self._backend.start(
                    session_id,
                    command=command,
                    shell=self.shell,
                    cwd=cwd or None,
                    cols=cols,
                    rows=rows,
                )
            except DeskCoreError as exc:
                session.state = TerminalState.EXITED
                session.failure_reason = str(exc)
                self._record(session_id, "spawn-failed", str(exc), level=py_logging.ERROR)
                return session
            self._handles[session_id] = handle
            session.command = handle.command
            session.state = TerminalState.RUNNING
            self._record(session_id, "spawn", f"Started {' '.join(handle.command)} in {cwd or '.'}.")

        if self._spawn_readers:
            self._start_reader(session, handle)
        return session

    def get(self, session_id: str) -> TerminalSession | None:
        with self._lock:
            return self._sessions.get(session_id)

    def exists(self, session_id: str) -> bool:
        with self._lock:
            return session_id in self._sessions

    def list_sessions(self) -> list[TerminalSession]:
        with self._lock:
            return [self._sessions[key] for key in sorted(self._sessions)]

    def active_count(self) -> int:
        with self._lock:
            return sum(1 for session in self._sessions.values() if session.is_running)

    def has_active(self) -> bool:
        return self.active_count() > 0

    def list_events(self) -> list[RegistryEvent]:
        with self._lock:
            return list(self._events)

    def clear_events(self) -> None:
        with self._lock:
            self._events.clear()
        logger.info("terminal-event session=* step=clear-events message=Terminal events cleared.")

    def write(self, session_id: str, data: bytes | str) -> bool:
        """Forward input to the process; input for exited sessions is dropped."""
        payload = data.encode("utf-8") if isinstance(data, str) else bytes(data)
        with self._lock:
            session = self._sessions.get(session_id)
            if session is None or not session.is_running:
                return False
        try:
            self._backend.write(session_id, payload)
        except DeskCoreError as exc:
            self._record(session_id, "write-failed", str(exc), level=py_logging.ERROR)
            self.deliver_exit(session_id, None, reason=str(exc))
            return False
        return True

    def resize(self, session_id: str, cols: int, rows: int) -> bool:
        if cols <= 0 or rows <= 0:
            raise DeskCoreError(
                f"Invalid terminal size: {cols}x{rows}",
                code=ErrorCode.VALIDATION_ERROR,
                hint="Use positive terminal row/column values.",
            )
        with self._lock:
            session = self._sessions.get(session_id)
            if session is None or not session.is_running:
                return False
            session.dimensions = TerminalDimensions(cols=cols, rows=rows)
        try:
            self._backend.resize(session_id, cols=cols, rows=rows)
        except DeskCoreError as exc:
            self._record(session_id, "resize-failed", str(exc), level=py_logging.WARNING)
            return False
        return True

    def force_redraw(self, session_id: str) -> bool:
        """Nudge full-screen programs into repainting after a replay.

        Toggles the row count and restores it; each resize reaches the
        process as SIGWINCH. Must run after the replay write completed.
        """
        with self._lock:
            session = self._sessions.get(session_id)
            if session is None or not session.is_running:
                return False
            cols, rows = session.dimensions.cols, session.dimensions.rows
        try:
            self._backend.resize(session_id, cols=cols, rows=rows + 1)
            self._backend.resize(session_id, cols=cols, rows=rows)
        except DeskCoreError as exc:
            self._record(session_id, "redraw-failed", str(exc), level=py_logging.WARNING)
            return False
        logger.debug("Forced redraw session=%s size=%sx%s", session_id, cols, rows)
        return True

    def activate(self, session_id: str) -> bool:
        with self._lock:
            session = self._sessions.get(session_id)
            if session is None:
                return False
            session.activated = True
        self._record(session_id, "activate", "User took control of the terminal.")
        return True

    def get_buffer(self, session_id: str) -> bytes:
        with self._lock:
            session = self._sessions.get(session_id)
            return session.buffer.snapshot() if session is not None else b""

    def subscribe(self, session_id: str, listener: TerminalListener) -> Subscription:
        with self._lock:
            self._listeners.setdefault(session_id, []).append(listener)
        return Subscription(self, session_id, listener)

    def attach(self, session_id: str, listener: TerminalListener) -> Attachment:
        with self._lock:
            session = self._sessions.get(session_id)
            snapshot = session.buffer.snapshot() if session is not None else b""
            subscription = self.subscribe(session_id, listener)
            state = session.state if session is not None else TerminalState.UNINITIALIZED
            exit_code = session.exit_code if session is not None else None
        logger.debug("Attached session=%s replay_bytes=%s", session_id, len(snapshot))
        return Attachment(
            session_id=session_id,
            snapshot=snapshot,
            subscription=subscription,
            state=state,
            exit_code=exit_code,
        )

    def deliver_output(self, session_id: str, chunk: bytes, *, owner: TerminalSession | None = None) -> None:
        if not chunk:
            return
        with self._lock:
            session = self._sessions.get(session_id)
            if session is None or (owner is not None and session is not owner):
                return
            session.buffer.append(chunk)
            self._broadcast(session_id, TerminalOutput(session_id=session_id, data=bytes(chunk)))

    def deliver_exit(
        self,
        session_id: str,
        exit_code: int | None,
        *,
        reason: str = "",
        owner: TerminalSession | None = None,
    ) -> None:
        with self._lock:
            session = self._sessions.get(session_id)
            if session is None or (owner is not None and session is not owner):
                return
            if session.state == TerminalState.EXITED:
                return
            session.state = TerminalState.EXITED
            session.exit_code = exit_code
            if reason:
                session.failure_reason = reason
            self._broadcast(session_id, TerminalExit(session_id=session_id, exit_code=exit_code))
        self._record(session_id, "exit", f"Process exited with code {exit_code}.")

    def destroy(self, session_id: str) -> bool:
        with self._lock:
            session = self._sessions.get(session_id)
            if session is None:
                return False
            was_running = session.is_running
            if was_running:
                session.state = TerminalState.EXITED
                self._broadcast(session_id, TerminalExit(session_id=session_id, exit_code=None))
            del self._sessions[session_id]
            self._listeners.pop(session_id, None)
            handle = self._handles.pop(session_id, None)
            # Released under the lock so an immediate ensure() can reuse the id.
            if handle is not None:
                self._backend.release(handle)
        self._record(session_id, "destroy", "Terminal closed.")
        return True

    def shutdown(self) -> None:
        for session in self.list_sessions():
            self.destroy(session.session_id)
        self._backend.stop_all()

    def _unsubscribe(self, session_id: str, listener: TerminalListener) -> None:
        with self._lock:
            listeners = self._listeners.get(session_id)
            if not listeners:
                return
            with suppress(ValueError):
                listeners.remove(listener)
            if not listeners:
                del self._listeners[session_id]

    def _broadcast(self, session_id: str, event: TerminalEvent) -> None:
        for listener in list(self._listeners.get(session_id, ())):
            try:
                listener(event)
            except Exception:
                logger.exception("Terminal listener failed session=%s", session_id)

    def _start_reader(self, session: TerminalSession, handle: PtyHandle) -> None:
        thread = threading.Thread(
            target=self._pump,
            args=(session, handle),
            name=f"deskcore-pty-{session.session_id}",
            daemon=True,
        )
        thread.start()

    def _pump(self, session: TerminalSession, handle: PtyHandle) -> None:
        # A destroyed session id may be reused; the reader stays bound to its
        # own process and only the owner session may report.
        session_id = session.session_id
        while True:
            try:
                chunk = self._backend.read(handle)
            except DeskCoreError:
                break
            if not chunk:
                break
            self.deliver_output(session_id, chunk, owner=session)
        if self.get(session_id) is session:
            exit_code = self._backend.exit_status(handle)
            self.deliver_exit(session_id, exit_code, owner=session)
        with self._lock:
            if self._handles.get(session_id) is handle:
                del self._handles[session_id]
        self._backend.release(handle)

    def _record(self, session_id: str, step: str, message: str, *, level: int = py_logging.INFO) -> None:
        with self._lock:
            self._events.append(RegistryEvent(session_id=session_id, step=step, message=message))
        log_event(logger, "terminal", session_id, step, message, level=level)
