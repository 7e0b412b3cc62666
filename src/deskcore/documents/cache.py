"""Last-known document content keyed by path."""

from __future__ import annotations

from dataclasses import dataclass

from deskcore.documents.models import DocumentError


@dataclass(frozen=True)
class CacheEntry:
    content: str | None
    is_binary: bool = False
    error: DocumentError | None = None


class ContentCache:
    def __init__(self) -> None:
        self._entries: dict[str, CacheEntry] = {}

    def get(self, path: str) -> CacheEntry | None:
        return self._entries.get(path)

    def set(self, path: str, entry: CacheEntry) -> None:
        self._entries[path] = entry

    def store_text(self, path: str, content: str) -> None:
        self._entries[path] = CacheEntry(content=content)

    def evict(self, path: str) -> CacheEntry | None:
        return self._entries.pop(path, None)

    def rename(self, old_path: str, new_path: str) -> None:
        entry = self._entries.pop(old_path, None)
        if entry is not None:
            self._entries[new_path] = entry

    def clear(self) -> None:
        self._entries.clear()

    def paths(self) -> list[str]:
        return list(self._entries)

    def __contains__(self, path: object) -> bool:
        return path in self._entries

    def __len__(self) -> int:
        return len(self._entries)
