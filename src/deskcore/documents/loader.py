"""Document classification and loading."""

from __future__ import annotations

import logging as py_logging
from collections.abc import Callable, Iterable
from dataclasses import dataclass
from pathlib import PurePath

from deskcore.config import DEFAULT_MAX_FILE_SIZE_BYTES
from deskcore.documents.host import FileHost
from deskcore.documents.models import ContentKind, DocumentError
from deskcore.errors import DocumentErrorKind, StaleResult, classify_os_error

logger = py_logging.getLogger(__name__)

BINARY_EXTENSIONS = frozenset(
    {
        ".png", ".jpg", ".jpeg", ".gif", ".ico", ".bmp", ".webp",
        ".pdf", ".zip", ".tar", ".gz", ".7z", ".rar",
        ".exe", ".dll", ".so", ".dylib",
        ".mp3", ".mp4", ".wav", ".avi", ".mov",
        ".ttf", ".otf", ".woff", ".woff2", ".eot",
        ".node", ".crx",
    }
)  # fmt: skip
IMAGE_EXTENSIONS = frozenset({".png", ".jpg", ".jpeg", ".gif", ".bmp", ".webp", ".svg", ".ico"})
MARKDOWN_EXTENSIONS = frozenset({".md", ".markdown", ".mdx"})


@dataclass(frozen=True)
class LoadResult:
    path: str
    generation: int
    kind: ContentKind
    content: str | None = None
    binary_ref: str | None = None
    error: DocumentError | None = None


def _extension(path: str) -> str:
    return PurePath(path).suffix.lower()


def is_image_file(path: str) -> bool:
    return _extension(path) in IMAGE_EXTENSIONS


def is_markdown_file(path: str) -> bool:
    return _extension(path) in MARKDOWN_EXTENSIONS


def is_binary_file(path: str, *, extra_extensions: Iterable[str] = ()) -> bool:
    ext = _extension(path)
    return ext in BINARY_EXTENSIONS or ext in set(extra_extensions)


def oversized_message(max_size: int) -> str:
    if max_size % (1024 * 1024) == 0:
        return f"File is too large to display (> {max_size // (1024 * 1024)}MB)"
    return f"File is too large to display (> {max_size} bytes)"


async def load_document(
    host: FileHost,
    path: str,
    *,
    generation: int,
    is_current: Callable[[], bool],
    max_size: int = DEFAULT_MAX_FILE_SIZE_BYTES,
    extra_binary_extensions: Iterable[str] = (),
) -> LoadResult:
    """Stat, classify and read ``path``.

    ``is_current`` is consulted after every suspension point; once it returns
    false the load is abandoned with :class:`StaleResult`. Host failures are
    folded into an ``ERROR`` result and never raised.
    """

    def _check() -> None:
        if not is_current():
            raise StaleResult(path, generation)

    try:
        stat = await host.stat_path(path)
        _check()

        if stat.size > max_size:
            return LoadResult(
                path=path,
                generation=generation,
                kind=ContentKind.OVERSIZED,
                error=DocumentError(DocumentErrorKind.OVERSIZED, oversized_message(max_size)),
            )

        if is_image_file(path):
            return LoadResult(path=path, generation=generation, kind=ContentKind.IMAGE, binary_ref=path)

        if is_binary_file(path, extra_extensions=extra_binary_extensions):
            return LoadResult(path=path, generation=generation, kind=ContentKind.BINARY)

        content = await host.read_text(path)
        _check()
    except StaleResult:
        raise
    except (OSError, UnicodeDecodeError) as exc:
        _check()
        kind = classify_os_error(exc)
        logger.debug("Load failed path=%s kind=%s error=%s", path, kind.value, exc)
        return LoadResult(
            path=path,
            generation=generation,
            kind=ContentKind.ERROR,
            error=DocumentError(kind, f"Failed to load file: {exc}"),
        )

    return LoadResult(path=path, generation=generation, kind=ContentKind.TEXT, content=content)
