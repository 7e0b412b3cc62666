"""Display-side attachment of one mounted terminal view to a session."""

from __future__ import annotations

import logging as py_logging
import threading
from collections.abc import Callable
from typing import Protocol

from deskcore.terminal.models import TerminalEvent, TerminalExit, TerminalOutput, TerminalState
from deskcore.terminal.registry import Attachment, Subscription, TerminalListener

logger = py_logging.getLogger(__name__)

Dispatch = Callable[[Callable[[], None]], object]
ExitHandler = Callable[[int | None], None]


class TerminalWidget(Protocol):
    """Terminal emulator surface owned by the presentation layer."""

    def write(self, data: bytes) -> None: ...

    def is_at_bottom(self) -> bool: ...

    def scroll_to_bottom(self) -> None: ...


class TerminalHost(Protocol):
    def attach(self, session_id: str, listener: TerminalListener) -> Attachment: ...

    def write(self, session_id: str, data: bytes | str) -> bool: ...

    def resize(self, session_id: str, cols: int, rows: int) -> bool: ...

    def force_redraw(self, session_id: str) -> bool: ...

    def activate(self, session_id: str) -> bool: ...


class TerminalChannel:
    """Feeds one widget from one session: buffered replay first, then live output.

    ``dispatch`` marshals host events onto the display queue, for example
    ``loop.call_soon_threadsafe``. Without it events are handled on the
    producing thread.
    """

    def __init__(
        self,
        host: TerminalHost,
        session_id: str,
        widget: TerminalWidget,
        *,
        dispatch: Dispatch | None = None,
        on_exit: ExitHandler | None = None,
        redraw_after_replay: bool = True,
    ) -> None:
        self.session_id = session_id
        self._host = host
        self._widget = widget
        self._dispatch = dispatch
        self._on_exit = on_exit
        self._redraw_after_replay = redraw_after_replay
        self._subscription: Subscription | None = None
        self._mounted = False
        self._replaying = False
        self._pending: list[TerminalEvent] = []
        self._lock = threading.Lock()
        self.exited = False
        self.exit_code: int | None = None

    @property
    def attached(self) -> bool:
        return self._mounted

    def attach(self) -> bytes:
        """Mount: replay the session buffer into the widget, then go live.

        Returns the replayed bytes.
        """
        if self._mounted:
            return b""
        with self._lock:
            self._mounted = True
            self._replaying = True
            self._pending = []

        was_at_bottom = self._widget.is_at_bottom()
        attachment = self._host.attach(self.session_id, self._on_event)
        self._subscription = attachment.subscription

        if attachment.snapshot:
            self._widget.write(attachment.snapshot)
            if was_at_bottom:
                self._widget.scroll_to_bottom()
            if self._redraw_after_replay and attachment.state == TerminalState.RUNNING:
                self._host.force_redraw(self.session_id)
        logger.debug("Replayed session=%s bytes=%s", self.session_id, len(attachment.snapshot))

        if attachment.state == TerminalState.EXITED:
            self._handle_exit(attachment.exit_code)

        while True:
            with self._lock:
                if not self._pending:
                    self._replaying = False
                    break
                pending, self._pending = self._pending, []
            for event in pending:
                self._deliver(event)
        return attachment.snapshot

    def detach(self) -> None:
        """Unmount the view; the process keeps running in the registry."""
        with self._lock:
            self._mounted = False
            self._replaying = False
            self._pending = []
        subscription, self._subscription = self._subscription, None
        if subscription is not None:
            subscription.close()

    def send_input(self, data: bytes | str) -> bool:
        return self._host.write(self.session_id, data)

    def request_resize(self, cols: int, rows: int) -> bool:
        return self._host.resize(self.session_id, cols, rows)

    def activate(self) -> bool:
        return self._host.activate(self.session_id)

    def _on_event(self, event: TerminalEvent) -> None:
        if self._dispatch is None:
            self._receive(event)
        else:
            self._dispatch(lambda: self._receive(event))

    def _receive(self, event: TerminalEvent) -> None:
        with self._lock:
            if not self._mounted:
                return
            if self._replaying:
                self._pending.append(event)
                return
        self._deliver(event)

    def _deliver(self, event: TerminalEvent) -> None:
        if isinstance(event, TerminalOutput):
            at_bottom = self._widget.is_at_bottom()
            self._widget.write(event.data)
            if at_bottom:
                self._widget.scroll_to_bottom()
        elif isinstance(event, TerminalExit):
            self._handle_exit(event.exit_code)

    def _handle_exit(self, exit_code: int | None) -> None:
        if self.exited:
            return
        self.exited = True
        self.exit_code = exit_code
        if self._on_exit is not None:
            self._on_exit(exit_code)
