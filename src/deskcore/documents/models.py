"""Document session domain models."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum

from typing_extensions import TypedDict

from deskcore.errors import DocumentErrorKind

TERMINAL_TAB_PREFIX = "terminal://"


class DocumentMode(str, Enum):
    VIEWING = "viewing"
    EDITING = "editing"
    SAVING = "saving"


class ContentKind(str, Enum):
    PENDING = "pending"
    TEXT = "text"
    IMAGE = "image"
    BINARY = "binary"
    OVERSIZED = "oversized"
    ERROR = "error"
    TERMINAL = "terminal"


@dataclass(frozen=True)
class DocumentError:
    kind: DocumentErrorKind
    message: str


@dataclass
class DocumentSession:
    path: str
    committed_content: str | None = None
    draft_content: str | None = None
    mode: DocumentMode = DocumentMode.VIEWING
    load_generation: int = 0
    kind: ContentKind = ContentKind.PENDING
    error: DocumentError | None = None
    save_error: DocumentError | None = None
    binary_ref: str | None = None
    is_loading: bool = False

    @property
    def has_unsaved_changes(self) -> bool:
        return self.draft_content != self.committed_content

    @property
    def is_binary(self) -> bool:
        return self.kind in (ContentKind.IMAGE, ContentKind.BINARY)


@dataclass(frozen=True)
class SessionState:
    path: str
    mode: DocumentMode
    has_unsaved_changes: bool
    kind: ContentKind
    content: str | None
    error: DocumentError | None
    save_error: DocumentError | None
    binary_ref: str | None
    is_loading: bool
    load_generation: int

    @property
    def is_binary(self) -> bool:
        return self.kind in (ContentKind.IMAGE, ContentKind.BINARY)

    @classmethod
    def of(cls, session: DocumentSession) -> SessionState:
        if session.mode == DocumentMode.VIEWING:
            content = session.committed_content
        else:
            content = session.draft_content
        if session.kind == ContentKind.IMAGE:
            content = session.binary_ref
        return cls(
            path=session.path,
            mode=session.mode,
            has_unsaved_changes=session.has_unsaved_changes,
            kind=session.kind,
            content=content,
            error=session.error,
            save_error=session.save_error,
            binary_ref=session.binary_ref,
            is_loading=session.is_loading,
            load_generation=session.load_generation,
        )


class TabSummary(TypedDict):
    path: str
    has_unsaved_changes: bool


def terminal_tab_path(session_id: str) -> str:
    return f"{TERMINAL_TAB_PREFIX}{session_id}"


def is_terminal_tab(path: str) -> bool:
    return path.startswith(TERMINAL_TAB_PREFIX)


def terminal_id_from_tab(path: str) -> str:
    if not is_terminal_tab(path):
        return ""
    return path[len(TERMINAL_TAB_PREFIX) :]


def terminal_tab_title(path: str) -> str:
    session_id = terminal_id_from_tab(path)
    prefix, _, number = session_id.rpartition("-")
    if prefix == "terminal" and number.isdigit():
        return f"Terminal {number}"
    return "Terminal"
