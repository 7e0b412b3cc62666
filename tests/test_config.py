from __future__ import annotations

import stat
import sys
from pathlib import Path

import pytest
from pydantic import ValidationError

from deskcore.config import SHELL_ENV, CoreConfig, load_config, save_config


@pytest.fixture(autouse=True)
def _clear_shell_env(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.delenv(SHELL_ENV, raising=False)


def test_load_defaults_when_config_missing(tmp_path: Path) -> None:
    cfg = load_config(tmp_path / "config.toml")

    assert cfg.autosave_delay_seconds == 1.5
    assert cfg.max_file_size_bytes == 1024 * 1024
    assert cfg.scrollback_bytes == 1_500_000
    assert (cfg.terminal_cols, cfg.terminal_rows) == (80, 24)
    assert cfg.shell == ""
    assert cfg.extra_binary_extensions == []


def test_config_roundtrip(tmp_path: Path) -> None:
    path = tmp_path / "config.toml"
    original = CoreConfig(
        autosave_delay_seconds=0.75,
        max_file_size_bytes=2048,
        scrollback_bytes=4096,
        terminal_cols=132,
        terminal_rows=50,
        shell='/bin/zsh -c "x"',
        extra_binary_extensions=["Parquet", ".bin"],
    )

    save_config(original, path)
    loaded = load_config(path)

    assert loaded == original
    assert loaded.extra_binary_extensions == [".parquet", ".bin"]


@pytest.mark.skipif(sys.platform == "win32", reason="POSIX permissions")
def test_save_config_restricts_permissions(tmp_path: Path) -> None:
    path = save_config(CoreConfig(), tmp_path / "nested" / "config.toml")

    assert stat.S_IMODE(path.stat().st_mode) == 0o600


def test_invalid_values_fall_back_to_defaults(tmp_path: Path) -> None:
    path = tmp_path / "config.toml"
    path.write_text(
        "\n".join(
            [
                "autosave_delay_seconds = -1",
                "max_file_size_bytes = true",
                "scrollback_bytes = 12",
                "terminal_cols = 0",
                "terminal_rows = 5000",
                "shell = 3",
                'extra_binary_extensions = ["", 4, "DAT", "dat"]',
            ]
        ),
        encoding="utf-8",
    )

    cfg = load_config(path)

    assert cfg.autosave_delay_seconds == 1.5
    assert cfg.max_file_size_bytes == 1024 * 1024
    assert cfg.scrollback_bytes == 1_500_000
    assert (cfg.terminal_cols, cfg.terminal_rows) == (80, 24)
    assert cfg.shell == ""
    assert cfg.extra_binary_extensions == [".dat"]


def test_malformed_toml_falls_back_to_defaults(tmp_path: Path) -> None:
    path = tmp_path / "config.toml"
    path.write_text("autosave_delay_seconds = = 2\n", encoding="utf-8")

    assert load_config(path) == CoreConfig()


def test_shell_env_overrides_file(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    path = tmp_path / "config.toml"
    path.write_text('shell = "/bin/sh"\n', encoding="utf-8")
    monkeypatch.setenv(SHELL_ENV, " /usr/bin/fish ")

    assert load_config(path).shell == "/usr/bin/fish"


def test_assignment_is_validated() -> None:
    cfg = CoreConfig()

    with pytest.raises(ValidationError):
        cfg.autosave_delay_seconds = 0
    with pytest.raises(ValidationError):
        cfg.terminal_cols = 1001
