"""Per-tab document lifecycle orchestration."""

from __future__ import annotations

import asyncio
import itertools
import logging as py_logging
from collections import deque
from collections.abc import Callable
from dataclasses import dataclass
from typing import Protocol

from deskcore.config import DEFAULT_EVENT_HISTORY, CoreConfig
from deskcore.documents.autosave import AutoSaveDecision, AutoSaveScheduler
from deskcore.documents.cache import CacheEntry, ContentCache
from deskcore.documents.canceler import LoadCanceler, LoadToken
from deskcore.documents.host import FileHost, LocalFileHost
from deskcore.documents.loader import LoadResult, load_document
from deskcore.documents.models import (
    ContentKind,
    DocumentError,
    DocumentMode,
    DocumentSession,
    SessionState,
    TabSummary,
    is_terminal_tab,
    terminal_id_from_tab,
    terminal_tab_path,
)
from deskcore.errors import DeskCoreError, ErrorCode, StaleResult, classify_os_error
from deskcore.logging import log_event

logger = py_logging.getLogger(__name__)

StateListener = Callable[[str, SessionState], None]


class TerminalSessions(Protocol):
    def ensure(self, session_id: str, cwd: str, *, cols: int = ..., rows: int = ...) -> object: ...

    def exists(self, session_id: str) -> bool: ...

    def destroy(self, session_id: str) -> bool: ...


@dataclass(frozen=True)
class DocumentEvent:
    path: str
    step: str
    message: str


class TabSessionCoordinator:
    """Owns every open tab's document session.

    All public operations must be called from the event loop that owns the
    coordinator. Every ``await`` is a point where another operation may have
    changed the selection or the session, so state is re-validated after it.
    """

    def __init__(
        self,
        host: FileHost | None = None,
        *,
        config: CoreConfig | None = None,
        cache: ContentCache | None = None,
        terminals: TerminalSessions | None = None,
        on_change: StateListener | None = None,
        event_history: int = DEFAULT_EVENT_HISTORY,
    ) -> None:
        self.config = config or CoreConfig()
        self.cache = cache or ContentCache()
        self._host = host or LocalFileHost()
        self._terminals = terminals
        self._on_change = on_change
        self._canceler = LoadCanceler()
        self._sessions: dict[str, DocumentSession] = {}
        self._flushes: dict[str, asyncio.Future[bool]] = {}
        self._events: deque[DocumentEvent] = deque(maxlen=event_history)
        self._terminal_numbers = itertools.count(1)
        self.autosave = AutoSaveScheduler(
            self._autosave_commit,
            self._autosave_decision,
            delay=self.config.autosave_delay_seconds,
        )

    @property
    def selected_path(self) -> str | None:
        return self._canceler.selected

    def open_tabs(self) -> list[TabSummary]:
        return [
            TabSummary(path=path, has_unsaved_changes=session.has_unsaved_changes)
            for path, session in self._sessions.items()
        ]

    def has_session(self, path: str) -> bool:
        return path in self._sessions

    def get_session_state(self, path: str | None = None) -> SessionState:
        return SessionState.of(self._must_get(path))

    def list_events(self) -> list[DocumentEvent]:
        return list(self._events)

    def clear_events(self) -> None:
        self._events.clear()
        logger.info("document-event path=* step=clear-events message=Document events cleared.")

    async def select_path(self, path: str) -> SessionState:
        if not path.strip():
            raise DeskCoreError(
                "Document path is required.",
                code=ErrorCode.VALIDATION_ERROR,
                hint="Select a file or terminal tab.",
            )
        previous = self._canceler.selected
        if previous is not None:
            await self._flush_before_switch(previous)

        session = self._sessions.get(path)
        if session is None:
            session = DocumentSession(path=path)
            self._sessions[path] = session
            self._record(path, "open", "Tab opened.")
        return await self._load(session)

    async def _load(self, session: DocumentSession) -> SessionState:
        path = session.path
        token = self._canceler.begin(path)
        session.load_generation = token.generation

        if is_terminal_tab(path):
            session.kind = ContentKind.TERMINAL
            session.is_loading = False
            self._notify(session)
            return SessionState.of(session)

        session.is_loading = True
        self._notify(session)
        try:
            result = await load_document(
                self._host,
                path,
                generation=token.generation,
                is_current=lambda: self._is_current(token, session),
                max_size=self.config.max_file_size_bytes,
                extra_binary_extensions=self.config.extra_binary_extensions,
            )
        except StaleResult:
            self._discard_load(session, token)
            return SessionState.of(session)

        if not self._is_current(token, session):
            self._discard_load(session, token)
            return SessionState.of(session)
        self._apply_load(session, result)
        return SessionState.of(session)

    def begin_edit(self, path: str | None = None) -> SessionState:
        session = self._must_get(path)
        if session.mode != DocumentMode.VIEWING:
            raise DeskCoreError(
                f"Cannot start editing while {session.mode.value}: {session.path}",
                code=ErrorCode.INVALID_STATE,
                hint="Finish or cancel the current edit first.",
            )
        if session.kind != ContentKind.TEXT or session.committed_content is None:
            raise DeskCoreError(
                f"Document is not editable: {session.path}",
                code=ErrorCode.INVALID_STATE,
                hint="Only loaded text documents can be edited.",
            )
        session.mode = DocumentMode.EDITING
        session.draft_content = session.committed_content
        session.save_error = None
        self._record(session.path, "edit-begin", "Editing started.")
        self._notify(session)
        return SessionState.of(session)

    def apply_edit(self, new_draft: str, path: str | None = None) -> bool:
        session = self._must_get(path)
        # Edits made during an in-flight save are picked up by the next flush.
        if session.mode not in (DocumentMode.EDITING, DocumentMode.SAVING):
            raise DeskCoreError(
                f"Document is not being edited: {session.path}",
                code=ErrorCode.INVALID_STATE,
                hint="Call begin_edit before applying edits.",
            )
        session.draft_content = new_draft
        dirty = session.has_unsaved_changes
        if dirty:
            self.autosave.arm(session.path)
        else:
            self.autosave.cancel(session.path)
        self._notify(session)
        return dirty

    def cancel_edit(self, path: str | None = None) -> SessionState:
        session = self._must_get(path)
        if session.mode == DocumentMode.SAVING:
            raise DeskCoreError(
                f"Cannot cancel while saving: {session.path}",
                code=ErrorCode.INVALID_STATE,
                hint="Wait for the save to finish.",
            )
        self.autosave.cancel(session.path)
        if session.mode == DocumentMode.EDITING:
            session.draft_content = session.committed_content
            session.mode = DocumentMode.VIEWING
            session.save_error = None
            self._record(session.path, "edit-cancel", "Edit cancelled; draft discarded.")
            self._notify(session)
        return SessionState.of(session)

    async def save(self, path: str | None = None) -> bool:
        session = self._must_get(path)
        return await self.flush(session.path, explicit=True)

    async def flush(self, path: str, *, explicit: bool = False) -> bool:
        """Write the pending draft of ``path`` now, bypassing the debounce.

        Returns ``False`` when the write failed; the draft is kept and the
        failure is recorded as ``save_error`` on the session.
        """
        while True:
            session = self._sessions.get(path)
            if session is None:
                return True
            pending = self._flushes.get(path)
            if pending is None:
                break
            await asyncio.shield(pending)

        if session.mode != DocumentMode.EDITING or not session.has_unsaved_changes:
            if explicit and session.mode == DocumentMode.EDITING:
                self.autosave.cancel(path)
                session.mode = DocumentMode.VIEWING
                self._notify(session)
            return True
        return await self._write(session, explicit=explicit)

    async def close_tab(self, path: str) -> bool:
        """Flush and evict ``path``; returns ``False`` if a failed flush kept it open."""
        session = self._sessions.get(path)
        if session is None:
            self.autosave.cancel(path)
            self.cache.evict(path)
            return True

        if is_terminal_tab(path):
            if self._terminals is not None:
                self._terminals.destroy(terminal_id_from_tab(path))
        else:
            while self._needs_flush(session):
                if not await self.flush(path):
                    logger.warning("Keeping tab open after failed flush path=%s", path)
                    return False
                if self._sessions.get(path) is not session:
                    return True

        self.autosave.cancel(path)
        self.cache.evict(path)
        self._canceler.forget(path)
        del self._sessions[path]
        self._record(path, "close", "Tab closed.")
        return True

    async def rename_tab(self, old_path: str, new_path: str) -> SessionState:
        session = self._must_get(old_path)
        if new_path in self._sessions:
            raise DeskCoreError(
                f"Tab already open: {new_path}",
                code=ErrorCode.INVALID_STATE,
                hint="Close the existing tab before renaming onto it.",
            )
        pending = self._flushes.get(old_path)
        if pending is not None:
            await asyncio.shield(pending)
            session = self._must_get(old_path)

        was_armed = self.autosave.rename(old_path, new_path)
        self._sessions = {
            (new_path if key == old_path else key): value for key, value in self._sessions.items()
        }
        session.path = new_path
        if session.binary_ref == old_path:
            session.binary_ref = new_path
        self.cache.rename(old_path, new_path)
        self._canceler.rename(old_path, new_path)
        if not was_armed and session.mode == DocumentMode.EDITING and session.has_unsaved_changes:
            self.autosave.arm(new_path)
        self._record(new_path, "rename", f"Renamed from {old_path}.")
        if session.is_loading:
            # The in-flight load was issued for the old path and is now stale.
            if self._canceler.selected == new_path:
                return await self._load(session)
            session.is_loading = False
        self._notify(session)
        return SessionState.of(session)

    async def open_terminal_tab(self, cwd: str, *, session_id: str | None = None) -> SessionState:
        if self._terminals is None:
            raise DeskCoreError(
                "Terminal sessions are unavailable.",
                code=ErrorCode.INVALID_STATE,
                hint="Create the coordinator with a terminal registry.",
            )
        resolved_id = session_id or self._next_terminal_id()
        self._terminals.ensure(
            resolved_id,
            cwd,
            cols=self.config.terminal_cols,
            rows=self.config.terminal_rows,
        )
        return await self.select_path(terminal_tab_path(resolved_id))

    async def shutdown(self) -> list[str]:
        """Flush every dirty editing session; returns paths whose flush failed."""
        self.autosave.cancel_all()
        failed: list[str] = []
        for path, session in list(self._sessions.items()):
            if self._needs_flush(session) and not await self.flush(path):
                failed.append(path)
        await self.autosave.drain()
        if failed:
            logger.error("Unsaved drafts remain after shutdown paths=%s", failed)
        return failed

    def _next_terminal_id(self) -> str:
        while True:
            candidate = f"terminal-{next(self._terminal_numbers)}"
            exists = self._terminals is not None and self._terminals.exists(candidate)
            if not exists and terminal_tab_path(candidate) not in self._sessions:
                return candidate

    def _needs_flush(self, session: DocumentSession) -> bool:
        if session.path in self._flushes:
            return True
        return session.mode == DocumentMode.EDITING and session.has_unsaved_changes

    def _is_current(self, token: LoadToken, session: DocumentSession) -> bool:
        return self._canceler.is_current(token) and self._sessions.get(token.path) is session

    async def _flush_before_switch(self, path: str) -> None:
        session = self._sessions.get(path)
        if session is None or not self._needs_flush(session):
            return
        self._record(path, "switch-flush", "Flushing draft before tab switch.")
        if not await self.flush(path):
            logger.warning("Tab switch flush failed path=%s; draft kept in memory", path)

    def _discard_load(self, session: DocumentSession, token: LoadToken) -> None:
        logger.debug("Discarded stale load path=%s generation=%s", token.path, token.generation)
        # A newer load for the same tab owns the loading flag.
        if session.is_loading and session.path == token.path and session.load_generation == token.generation:
            session.is_loading = False
            self._notify(session)

    def _apply_load(self, session: DocumentSession, result: LoadResult) -> None:
        session.is_loading = False
        session.kind = result.kind
        session.error = result.error
        session.binary_ref = result.binary_ref
        editing = session.mode != DocumentMode.VIEWING

        if result.kind == ContentKind.TEXT and result.content is not None:
            keep_draft = editing and session.has_unsaved_changes
            session.committed_content = result.content
            if not keep_draft:
                session.draft_content = result.content
            self.cache.store_text(session.path, result.content)
        else:
            if not editing:
                session.committed_content = None
                session.draft_content = None
            self.cache.set(
                session.path,
                CacheEntry(
                    content=result.binary_ref,
                    is_binary=result.kind in (ContentKind.IMAGE, ContentKind.BINARY),
                    error=result.error,
                ),
            )
        message = result.error.message if result.error else f"Loaded as {result.kind.value}."
        self._record(session.path, "load", message)
        self._notify(session)

    async def _write(self, session: DocumentSession, *, explicit: bool) -> bool:
        path = session.path
        content = session.draft_content or ""
        self.autosave.cancel(path)
        session.mode = DocumentMode.SAVING
        future: asyncio.Future[bool] = asyncio.get_running_loop().create_future()
        self._flushes[path] = future
        self._notify(session)

        try:
            await self._host.write_text(path, content)
        except (OSError, UnicodeError) as exc:
            self._finish_flush(path, future, False)
            session.mode = DocumentMode.EDITING
            session.save_error = DocumentError(classify_os_error(exc), f"Failed to save file: {exc}")
            self._record(path, "save-failed", session.save_error.message)
            self._notify(session)
            return False
        except BaseException:
            self._finish_flush(path, future, False)
            session.mode = DocumentMode.EDITING
            raise

        self._finish_flush(path, future, True)
        session.committed_content = content
        session.save_error = None
        self.cache.store_text(path, content)
        if explicit and not session.has_unsaved_changes:
            session.mode = DocumentMode.VIEWING
        else:
            session.mode = DocumentMode.EDITING
            if session.has_unsaved_changes and self._sessions.get(path) is session:
                self.autosave.arm(path)
        self._record(path, "save", "Saved." if explicit else "Autosaved.")
        self._notify(session)
        return True

    def _finish_flush(self, path: str, future: asyncio.Future[bool], ok: bool) -> None:
        if self._flushes.get(path) is future:
            del self._flushes[path]
        if not future.done():
            future.set_result(ok)

    def _autosave_decision(self, path: str) -> AutoSaveDecision:
        session = self._sessions.get(path)
        if session is None:
            return AutoSaveDecision.SKIP
        if session.mode == DocumentMode.SAVING or path in self._flushes:
            return AutoSaveDecision.DEFER
        if session.mode == DocumentMode.EDITING and session.has_unsaved_changes:
            return AutoSaveDecision.COMMIT
        return AutoSaveDecision.SKIP

    async def _autosave_commit(self, path: str) -> bool:
        return await self.flush(path)

    def _must_get(self, path: str | None) -> DocumentSession:
        resolved = path if path is not None else self._canceler.selected
        session = self._sessions.get(resolved) if resolved is not None else None
        if session is None:
            raise DeskCoreError(
                f"Tab not open: {resolved}",
                code=ErrorCode.INVALID_STATE,
                hint="Select the path before operating on it.",
            )
        return session

    def _notify(self, session: DocumentSession) -> None:
        if self._on_change is None:
            return
        try:
            self._on_change(session.path, SessionState.of(session))
        except Exception:
            logger.exception("State listener failed path=%s", session.path)

    def _record(self, path: str, step: str, message: str) -> None:
        self._events.append(DocumentEvent(path=path, step=step, message=message))
        log_event(logger, "document", path, step, message)
