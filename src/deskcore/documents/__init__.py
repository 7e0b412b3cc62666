"""Document tab sessions: load, edit, autosave."""

from .autosave import AutoSaveDecision, AutoSaveScheduler
from .cache import CacheEntry, ContentCache
from .canceler import LoadCanceler, LoadToken
from .coordinator import DocumentEvent, TabSessionCoordinator
from .host import FileHost, FileStat, LocalFileHost
from .loader import LoadResult, load_document
from .models import (
    ContentKind,
    DocumentError,
    DocumentMode,
    DocumentSession,
    SessionState,
    TabSummary,
    is_terminal_tab,
    terminal_id_from_tab,
    terminal_tab_path,
    terminal_tab_title,
)

__all__ = [
    "AutoSaveDecision",
    "AutoSaveScheduler",
    "CacheEntry",
    "ContentCache",
    "ContentKind",
    "DocumentError",
    "DocumentEvent",
    "DocumentMode",
    "DocumentSession",
    "FileHost",
    "FileStat",
    "LoadCanceler",
    "LoadResult",
    "LoadToken",
    "LocalFileHost",
    "SessionState",
    "TabSessionCoordinator",
    "TabSummary",
    "is_terminal_tab",
    "load_document",
    "terminal_id_from_tab",
    "terminal_tab_path",
    "terminal_tab_title",
]
