"""Generation tokens for discarding superseded document loads."""

from __future__ import annotations

from dataclasses import dataclass


@dataclass(frozen=True)
class LoadToken:
    path: str
    generation: int


class LoadCanceler:
    """Tracks the selected path and a monotonic load generation per path.

    A load result may be applied only while its token is current: the path is
    still selected and no newer load was issued for it since.
    """

    def __init__(self) -> None:
        self._generations: dict[str, int] = {}
        self._selected: str | None = None

    @property
    def selected(self) -> str | None:
        return self._selected

    def begin(self, path: str) -> LoadToken:
        generation = self._generations.get(path, 0) + 1
        self._generations[path] = generation
        self._selected = path
        return LoadToken(path=path, generation=generation)

    def current_generation(self, path: str) -> int:
        return self._generations.get(path, 0)

    def is_current(self, token: LoadToken) -> bool:
        return self._selected == token.path and self._generations.get(token.path) == token.generation

    def invalidate(self, path: str) -> None:
        if path in self._generations:
            self._generations[path] += 1

    def deselect(self, path: str | None = None) -> None:
        if path is None or self._selected == path:
            self._selected = None

    def rename(self, old_path: str, new_path: str) -> None:
        self.invalidate(old_path)
        self.invalidate(new_path)
        self._generations.setdefault(new_path, 1)
        if self._selected == old_path:
            self._selected = new_path

    def forget(self, path: str) -> None:
        # The counter survives so a reopened tab never reuses a generation.
        self.invalidate(path)
        if self._selected == path:
            self._selected = None
