from __future__ import annotations

from deskcore.documents import CacheEntry, ContentCache, DocumentError
from deskcore.errors import DocumentErrorKind


def test_store_get_and_evict() -> None:
    cache = ContentCache()
    cache.store_text("/r/a.md", "Hello")

    assert cache.get("/r/a.md") == CacheEntry(content="Hello")
    assert "/r/a.md" in cache
    assert len(cache) == 1

    assert cache.evict("/r/a.md") == CacheEntry(content="Hello")
    assert cache.get("/r/a.md") is None
    assert cache.evict("/r/a.md") is None


def test_set_keeps_binary_and_error_entries() -> None:
    cache = ContentCache()
    error = DocumentError(DocumentErrorKind.OVERSIZED, "File is too large to display (> 1MB)")
    cache.set("/r/logo.png", CacheEntry(content="/r/logo.png", is_binary=True))
    cache.set("/r/huge.log", CacheEntry(content=None, error=error))

    assert cache.get("/r/logo.png").is_binary is True
    assert cache.get("/r/huge.log").error == error
    assert cache.paths() == ["/r/logo.png", "/r/huge.log"]


def test_rename_moves_entry() -> None:
    cache = ContentCache()
    cache.store_text("/r/old.py", "x = 1\n")

    cache.rename("/r/old.py", "/r/new.py")
    cache.rename("/r/missing.py", "/r/other.py")

    assert cache.get("/r/old.py") is None
    assert cache.get("/r/new.py") == CacheEntry(content="x = 1\n")
    assert "/r/other.py" not in cache


def test_clear_drops_everything() -> None:
    cache = ContentCache()
    cache.store_text("/r/a", "a")
    cache.store_text("/r/b", "b")

    cache.clear()

    assert len(cache) == 0
