"""XDG config loading/saving."""

from __future__ import annotations

import os
import sys
from contextlib import suppress
from pathlib import Path

from pydantic import BaseModel, ConfigDict, Field, field_validator

if sys.version_info >= (3, 11):
    import tomllib
else:  # pragma: no cover
    import tomli as tomllib

DEFAULT_CONFIG_PATH = Path("~/.config/deskcore/config.toml").expanduser()
DEFAULT_AUTOSAVE_DELAY_SECONDS = 1.5
DEFAULT_MAX_FILE_SIZE_BYTES = 1024 * 1024
# ~10000 lines of ~150 bytes each.
DEFAULT_SCROLLBACK_BYTES = 1_500_000
DEFAULT_TERMINAL_COLS = 80
DEFAULT_TERMINAL_ROWS = 24
DEFAULT_EVENT_HISTORY = 1000
SHELL_ENV = "DESKCORE_SHELL"


class CoreConfig(BaseModel):
    model_config = ConfigDict(validate_assignment=True)

    autosave_delay_seconds: float = Field(default=DEFAULT_AUTOSAVE_DELAY_SECONDS, gt=0, le=60)
    max_file_size_bytes: int = Field(default=DEFAULT_MAX_FILE_SIZE_BYTES, ge=1)
    scrollback_bytes: int = Field(default=DEFAULT_SCROLLBACK_BYTES, ge=1024)
    terminal_cols: int = Field(default=DEFAULT_TERMINAL_COLS, ge=1, le=1000)
    terminal_rows: int = Field(default=DEFAULT_TERMINAL_ROWS, ge=1, le=1000)
    shell: str = ""
    extra_binary_extensions: list[str] = Field(default_factory=list)

    @field_validator("extra_binary_extensions")
    @classmethod
    def _normalize_extensions(cls, value: list[str]) -> list[str]:
        return _normalize_extensions(value)


def get_config_path(path: str | Path | None = None) -> Path:
    if path is None:
        return DEFAULT_CONFIG_PATH
    return Path(path).expanduser()


def _escape(value: str) -> str:
    return value.replace("\\", "\\\\").replace('"', '\\"')


def _toml_scalar(value: object) -> str:
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, (int, float)):
        return repr(value)
    if isinstance(value, str):
        return f'"{_escape(value)}"'
    if isinstance(value, list):
        return "[" + ", ".join(_toml_scalar(item) for item in value) + "]"
    raise TypeError(f"Unsupported TOML scalar type: {type(value)!r}")


def _normalize_extensions(value: object) -> list[str]:
    if not isinstance(value, list):
        return []
    normalized: list[str] = []
    seen: set[str] = set()
    for item in value:
        if not isinstance(item, str):
            continue
        ext = item.strip().lower()
        if not ext:
            continue
        if not ext.startswith("."):
            ext = f".{ext}"
        if ext in seen:
            continue
        seen.add(ext)
        normalized.append(ext)
    return normalized


def _is_number(value: object) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool)


def _sanitize(raw: dict[str, object]) -> CoreConfig:
    cfg = CoreConfig()

    delay = raw.get("autosave_delay_seconds", cfg.autosave_delay_seconds)
    if _is_number(delay) and 0 < float(delay) <= 60:
        cfg.autosave_delay_seconds = float(delay)

    max_size = raw.get("max_file_size_bytes", cfg.max_file_size_bytes)
    if isinstance(max_size, int) and not isinstance(max_size, bool) and max_size >= 1:
        cfg.max_file_size_bytes = max_size

    scrollback = raw.get("scrollback_bytes", cfg.scrollback_bytes)
    if isinstance(scrollback, int) and not isinstance(scrollback, bool) and scrollback >= 1024:
        cfg.scrollback_bytes = scrollback

    cols = raw.get("terminal_cols", cfg.terminal_cols)
    if isinstance(cols, int) and not isinstance(cols, bool) and 1 <= cols <= 1000:
        cfg.terminal_cols = cols

    rows = raw.get("terminal_rows", cfg.terminal_rows)
    if isinstance(rows, int) and not isinstance(rows, bool) and 1 <= rows <= 1000:
        cfg.terminal_rows = rows

    shell = raw.get("shell", cfg.shell)
    if isinstance(shell, str):
        cfg.shell = shell.strip()
    env_shell = os.getenv(SHELL_ENV, "").strip()
    if env_shell:
        cfg.shell = env_shell

    cfg.extra_binary_extensions = _normalize_extensions(raw.get("extra_binary_extensions", []))
    return cfg


def load_config(path: str | Path | None = None) -> CoreConfig:
    resolved = get_config_path(path)
    if not resolved.exists():
        return _sanitize({})
    try:
        with resolved.open("rb") as handle:
            raw = tomllib.load(handle)
    except (tomllib.TOMLDecodeError, OSError):
        return _sanitize({})
    if not isinstance(raw, dict):
        return _sanitize({})
    return _sanitize(raw)


def save_config(config: CoreConfig, path: str | Path | None = None) -> Path:
    resolved = get_config_path(path)
    resolved.parent.mkdir(parents=True, exist_ok=True)

    lines = [
        f"autosave_delay_seconds = {_toml_scalar(float(config.autosave_delay_seconds))}",
        f"max_file_size_bytes = {_toml_scalar(config.max_file_size_bytes)}",
        f"scrollback_bytes = {_toml_scalar(config.scrollback_bytes)}",
        f"terminal_cols = {_toml_scalar(config.terminal_cols)}",
        f"terminal_rows = {_toml_scalar(config.terminal_rows)}",
        f"shell = {_toml_scalar(config.shell)}",
        f"extra_binary_extensions = {_toml_scalar(list(config.extra_binary_extensions))}",
    ]

    resolved.write_text("\n".join(lines) + "\n", encoding="utf-8")
    with suppress(OSError):
        resolved.chmod(0o600)
    return resolved
