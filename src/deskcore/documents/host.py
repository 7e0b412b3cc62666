"""Host-side file primitives consumed by the tab coordinator."""

from __future__ import annotations

import asyncio
from dataclasses import dataclass
from pathlib import Path
from typing import Protocol


@dataclass(frozen=True)
class FileStat:
    size: int


class FileHost(Protocol):
    """Privileged file access. Failures surface as ``OSError`` subclasses."""

    async def stat_path(self, path: str) -> FileStat: ...

    async def read_text(self, path: str) -> str: ...

    async def write_text(self, path: str, content: str) -> None: ...


class LocalFileHost:
    def __init__(self, *, encoding: str = "utf-8") -> None:
        self.encoding = encoding

    async def stat_path(self, path: str) -> FileStat:
        result = await asyncio.to_thread(Path(path).stat)
        return FileStat(size=result.st_size)

    async def read_text(self, path: str) -> str:
        return await asyncio.to_thread(Path(path).read_text, encoding=self.encoding)

    async def write_text(self, path: str, content: str) -> None:
        await asyncio.to_thread(Path(path).write_text, content, encoding=self.encoding)
