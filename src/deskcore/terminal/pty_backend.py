"""PTY process primitives: spawn, write, read, resize and kill."""

from __future__ import annotations

import atexit
import os
import subprocess
import sys
from collections.abc import Callable, Mapping
from contextlib import suppress
from dataclasses import dataclass, field

from deskcore.config import DEFAULT_TERMINAL_COLS, DEFAULT_TERMINAL_ROWS
from deskcore.errors import DeskCoreError, ErrorCode

TERM_NAME = "xterm-256color"
TERM_PROGRAM = "deskcore"
_FALLBACK_SHELL = "/bin/bash"
_WAIT_SECONDS = 2.0


@dataclass(frozen=True)
class PtyHandle:
    session_id: str
    command: tuple[str, ...]
    cwd: str | None
    process: object = field(default=None, compare=False, repr=False)


PtySpawn = Callable[[list[str], str | None, dict[str, str] | None, tuple[int, int]], object]


def default_shell(configured: str = "") -> str:
    if configured.strip():
        return configured.strip()
    return os.environ.get("SHELL", "").strip() or _FALLBACK_SHELL


def build_shell_command(shell: str = "") -> list[str]:
    if sys.platform == "win32" and not shell.strip():
        return ["powershell.exe", "-NoLogo", "-NoProfile"]
    return [default_shell(shell)]


def build_environment(shell: str = "", base: Mapping[str, str] | None = None) -> dict[str, str]:
    env = dict(os.environ if base is None else base)
    env["TERM"] = TERM_NAME
    env["TERM_PROGRAM"] = TERM_PROGRAM
    env.setdefault("LANG", "en_US.UTF-8")
    if sys.platform != "win32":
        env["SHELL"] = default_shell(shell)
        env.setdefault("HOME", os.path.expanduser("~"))
    return env


class _PosixPty:
    def __init__(self, command: list[str], cwd: str | None, env: dict[str, str] | None, size: tuple[int, int]) -> None:
        import pty

        master_fd, slave_fd = pty.openpty()
        try:
            _set_winsize(slave_fd, *size)
            self._process = subprocess.Popen(
                command,
                stdin=slave_fd,
                stdout=slave_fd,
                stderr=slave_fd,
                cwd=cwd,
                env=env,
                start_new_session=True,
                preexec_fn=_acquire_controlling_tty,
                close_fds=True,
            )
        except BaseException:
            os.close(master_fd)
            raise
        finally:
            os.close(slave_fd)
        self._fd = master_fd
        self._closed = False

    def read(self, size: int = 4096) -> bytes:
        # The fd number may already belong to a newer PTY once closed.
        if self._closed:
            return b""
        try:
            return os.read(self._fd, size)
        except OSError:
            # EIO once the child side hangs up; EBADF after close().
            return b""

    def write(self, payload: bytes) -> None:
        view = memoryview(payload)
        while view:
            written = os.write(self._fd, view)
            view = view[written:]

    def set_size(self, cols: int, rows: int) -> None:
        _set_winsize(self._fd, cols, rows)

    def isalive(self) -> bool:
        return self._process.poll() is None

    def wait(self, timeout: float | None = None) -> int | None:
        try:
            return self._process.wait(timeout=timeout)
        except subprocess.TimeoutExpired:
            return None

    def terminate(self) -> None:
        self._process.terminate()

    def kill(self) -> None:
        self._process.kill()

    def close(self) -> None:
        if self._closed:
            return
        self._closed = True
        with suppress(OSError):
            os.close(self._fd)


class _WinPty:
    def __init__(self, process: object) -> None:
        self._process = process

    def read(self, size: int = 4096) -> bytes:
        try:
            chunk = self._process.read(size)
        except EOFError:
            return b""
        if isinstance(chunk, bytes):
            return chunk
        return str(chunk).encode("utf-8", errors="replace")

    def write(self, payload: bytes) -> None:
        self._process.write(payload.decode("utf-8", errors="replace"))

    def set_size(self, cols: int, rows: int) -> None:
        self._process.setwinsize(rows, cols)

    def isalive(self) -> bool:
        return bool(self._process.isalive())

    def wait(self, timeout: float | None = None) -> int | None:
        del timeout
        status = getattr(self._process, "exitstatus", None)
        return status if isinstance(status, int) else None

    def terminate(self) -> None:
        self._process.terminate(force=True)

    def close(self) -> None:
        with suppress(Exception):
            self._process.close()


def _acquire_controlling_tty() -> None:
    import fcntl
    import termios

    # Runs in the child after setsid so resizes reach it as SIGWINCH.
    with suppress(OSError):
        fcntl.ioctl(0, termios.TIOCSCTTY, 0)


def _set_winsize(fd: int, cols: int, rows: int) -> None:
    import fcntl
    import struct
    import termios

    fcntl.ioctl(fd, termios.TIOCSWINSZ, struct.pack("HHHH", rows, cols, 0, 0))


def _spawn_with_posix_pty(
    command: list[str],
    cwd: str | None,
    env: dict[str, str] | None,
    size: tuple[int, int],
) -> object:
    return _PosixPty(command, cwd, env, size)


def _spawn_with_pywinpty(
    command: list[str],
    cwd: str | None,
    env: dict[str, str] | None,
    size: tuple[int, int],
) -> object:
    try:
        from winpty import PtyProcess
    except Exception as exc:
        raise DeskCoreError(
            "pywinpty backend is unavailable.",
            code=ErrorCode.TERMINAL_ERROR,
            hint="Install the pywinpty dependency on Windows.",
        ) from exc

    cols, rows = size
    kwargs: dict[str, object] = {"dimensions": (rows, cols)}
    if cwd:
        kwargs["cwd"] = cwd
    if env:
        kwargs["env"] = env
    return _WinPty(PtyProcess.spawn(subprocess.list2cmdline(command), **kwargs))


def _default_spawn() -> PtySpawn:
    if sys.platform == "win32":
        return _spawn_with_pywinpty
    return _spawn_with_posix_pty


class PtyBackend:
    def __init__(self, spawn: PtySpawn | None = None, *, register_atexit: bool = True) -> None:
        self._spawn = spawn or _default_spawn()
        self._sessions: dict[str, object] = {}
        self._handles: dict[str, PtyHandle] = {}
        if register_atexit:
            atexit.register(self.stop_all)

    def start(
        self,
        session_id: str,
        *,
        command: list[str] | None = None,
        shell: str = "",
        cwd: str | None = None,
        env: dict[str, str] | None = None,
        cols: int = DEFAULT_TERMINAL_COLS,
        rows: int = DEFAULT_TERMINAL_ROWS,
    ) -> PtyHandle:
        if session_id in self._sessions:
            raise DeskCoreError(
                f"Terminal already started: {session_id}",
                code=ErrorCode.VALIDATION_ERROR,
                hint="Stop the current PTY session before starting a new one.",
            )

        resolved_command = list(command) if command else build_shell_command(shell)
        if not resolved_command:
            raise DeskCoreError(
                "PTY command cannot be empty.",
                code=ErrorCode.VALIDATION_ERROR,
                hint="Provide a shell command for the terminal.",
            )
        resolved_env = env if env is not None else build_environment(shell)

        try:
            process = self._spawn(resolved_command, cwd, resolved_env, (cols, rows))
        except DeskCoreError:
            raise
        except Exception as exc:
            raise DeskCoreError(
                "Failed to start PTY process.",
                code=ErrorCode.TERMINAL_ERROR,
                hint=str(exc) or "Check the shell installation and working directory.",
            ) from exc

        handle = PtyHandle(session_id=session_id, command=tuple(resolved_command), cwd=cwd, process=process)
        self._sessions[session_id] = process
        self._handles[session_id] = handle
        return handle

    def write(self, session_id: str, payload: bytes) -> None:
        process = self._require_session(session_id)
        try:
            process.write(payload)
        except Exception as exc:
            raise DeskCoreError(
                f"Failed to write to terminal {session_id}.",
                code=ErrorCode.TERMINAL_ERROR,
                hint=str(exc) or "Verify terminal process health.",
            ) from exc

    def read(self, target: str | PtyHandle, *, max_bytes: int = 4096) -> bytes:
        """Read from a session id's current process, or from the process behind a handle."""
        session_id, process = self._resolve(target)
        try:
            chunk = process.read(max_bytes)
        except Exception as exc:
            raise DeskCoreError(
                f"Failed to read from terminal {session_id}.",
                code=ErrorCode.TERMINAL_ERROR,
                hint=str(exc) or "Verify PTY stream state.",
            ) from exc

        if chunk is None:
            return b""
        if isinstance(chunk, str):
            return chunk.encode("utf-8", errors="replace")
        return bytes(chunk)

    def resize(self, session_id: str, *, cols: int, rows: int) -> None:
        if cols <= 0 or rows <= 0:
            raise DeskCoreError(
                f"Invalid PTY size: {cols}x{rows}",
                code=ErrorCode.VALIDATION_ERROR,
                hint="Use positive terminal row/column values.",
            )
        process = self._require_session(session_id)
        try:
            process.set_size(cols, rows)
        except Exception as exc:
            raise DeskCoreError(
                f"Failed to resize terminal {session_id}.",
                code=ErrorCode.TERMINAL_ERROR,
                hint=str(exc) or "Verify PTY backend supports resizing.",
            ) from exc

    def interrupt(self, session_id: str) -> None:
        # Ctrl+C passthrough for interactive shells.
        self.write(session_id, b"\x03")

    def exit_status(self, target: str | PtyHandle, *, timeout: float = _WAIT_SECONDS) -> int | None:
        process = target.process if isinstance(target, PtyHandle) else self._sessions.get(target)
        if process is None or not hasattr(process, "wait"):
            return None
        try:
            status = process.wait(timeout)
        except Exception:
            return None
        return status if isinstance(status, int) else None

    def is_running(self, session_id: str) -> bool:
        process = self._sessions.get(session_id)
        return process is not None and _is_alive(process)

    def stop(self, session_id: str) -> None:
        process = self._sessions.pop(session_id, None)
        self._handles.pop(session_id, None)
        if process is None:
            raise DeskCoreError(
                f"Terminal not running: {session_id}",
                code=ErrorCode.VALIDATION_ERROR,
                hint="Select an active terminal session.",
            )
        self._close_session(process)

    def release(self, handle: PtyHandle) -> None:
        """Stop the process behind ``handle``; a newer process under the same id is left running."""
        if handle.process is None:
            return
        if self._sessions.get(handle.session_id) is handle.process:
            del self._sessions[handle.session_id]
            self._handles.pop(handle.session_id, None)
        self._close_session(handle.process)

    def stop_all(self) -> None:
        for session_id in list(self._sessions):
            process = self._sessions.pop(session_id, None)
            self._handles.pop(session_id, None)
            if process is None:
                continue
            self._close_session(process)

    def list_handles(self) -> list[PtyHandle]:
        return [self._handles[key] for key in sorted(self._handles)]

    def _require_session(self, session_id: str) -> object:
        process = self._sessions.get(session_id)
        if process is None:
            raise DeskCoreError(
                f"Terminal not running: {session_id}",
                code=ErrorCode.VALIDATION_ERROR,
                hint="Start terminal before PTY I/O operations.",
            )
        return process

    def _resolve(self, target: str | PtyHandle) -> tuple[str, object]:
        if not isinstance(target, PtyHandle):
            return target, self._require_session(target)
        if target.process is None:
            raise DeskCoreError(
                f"Terminal handle has no process: {target.session_id}",
                code=ErrorCode.VALIDATION_ERROR,
                hint="Use the handle returned by start().",
            )
        return target.session_id, target.process

    def _close_session(self, process: object) -> None:
        alive = _is_alive(process)
        if alive:
            if hasattr(process, "terminate"):
                with suppress(Exception):
                    process.terminate()
            elif hasattr(process, "kill"):
                with suppress(Exception):
                    process.kill()
        if hasattr(process, "close"):
            with suppress(Exception):
                process.close()


def _is_alive(process: object) -> bool:
    if hasattr(process, "isalive"):
        try:
            return bool(process.isalive())
        except Exception:
            return True
    return True
