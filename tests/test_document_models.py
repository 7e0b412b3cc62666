from __future__ import annotations

from deskcore.documents import (
    ContentKind,
    DocumentMode,
    DocumentSession,
    SessionState,
    is_terminal_tab,
    terminal_id_from_tab,
    terminal_tab_path,
    terminal_tab_title,
)


def test_session_state_shows_committed_while_viewing() -> None:
    session = DocumentSession(path="/r/a.md", committed_content="saved", draft_content="saved", kind=ContentKind.TEXT)

    state = SessionState.of(session)

    assert state.content == "saved"
    assert state.mode == DocumentMode.VIEWING
    assert state.has_unsaved_changes is False


def test_session_state_shows_draft_while_editing() -> None:
    session = DocumentSession(
        path="/r/a.md",
        committed_content="saved",
        draft_content="typing",
        mode=DocumentMode.EDITING,
        kind=ContentKind.TEXT,
    )

    state = SessionState.of(session)

    assert state.content == "typing"
    assert state.has_unsaved_changes is True


def test_image_state_exposes_reference() -> None:
    session = DocumentSession(path="/r/logo.png", kind=ContentKind.IMAGE, binary_ref="/r/logo.png")

    state = SessionState.of(session)

    assert state.content == "/r/logo.png"
    assert state.is_binary is True
    assert session.is_binary is True


def test_terminal_tab_helpers() -> None:
    path = terminal_tab_path("terminal-3")

    assert path == "terminal://terminal-3"
    assert is_terminal_tab(path)
    assert not is_terminal_tab("/r/terminal-3")
    assert terminal_id_from_tab(path) == "terminal-3"
    assert terminal_id_from_tab("/r/a.md") == ""
    assert terminal_tab_title(path) == "Terminal 3"
    assert terminal_tab_title(terminal_tab_path("cli-run")) == "Terminal"
