from __future__ import annotations

from deskcore.documents import LoadCanceler, LoadToken


def test_begin_selects_and_increments_generation() -> None:
    canceler = LoadCanceler()

    first = canceler.begin("/r/a.md")
    second = canceler.begin("/r/a.md")

    assert first == LoadToken("/r/a.md", 1)
    assert second == LoadToken("/r/a.md", 2)
    assert canceler.selected == "/r/a.md"
    assert canceler.is_current(first) is False
    assert canceler.is_current(second) is True


def test_token_is_stale_once_another_path_is_selected() -> None:
    canceler = LoadCanceler()
    token_a = canceler.begin("/r/a.md")
    canceler.begin("/r/b.md")

    assert canceler.is_current(token_a) is False
    assert canceler.current_generation("/r/a.md") == 1


def test_generations_are_per_path() -> None:
    canceler = LoadCanceler()
    canceler.begin("/r/a.md")
    canceler.begin("/r/a.md")

    token_b = canceler.begin("/r/b.md")

    assert token_b.generation == 1
    assert canceler.current_generation("/r/a.md") == 2


def test_invalidate_and_deselect() -> None:
    canceler = LoadCanceler()
    token = canceler.begin("/r/a.md")

    canceler.invalidate("/r/a.md")
    assert canceler.is_current(token) is False

    canceler.deselect("/r/other.md")
    assert canceler.selected == "/r/a.md"
    canceler.deselect()
    assert canceler.selected is None


def test_forget_never_reuses_a_generation() -> None:
    canceler = LoadCanceler()
    stale = canceler.begin("/r/a.md")

    canceler.forget("/r/a.md")
    reopened = canceler.begin("/r/a.md")

    assert canceler.selected == "/r/a.md"
    assert reopened.generation > stale.generation
    assert canceler.is_current(stale) is False


def test_rename_moves_selection_and_invalidates_both_paths() -> None:
    canceler = LoadCanceler()
    old_token = canceler.begin("/r/old.md")

    canceler.rename("/r/old.md", "/r/new.md")

    assert canceler.selected == "/r/new.md"
    assert canceler.is_current(old_token) is False
    assert canceler.is_current(LoadToken("/r/new.md", canceler.current_generation("/r/new.md")))
