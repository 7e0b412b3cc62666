from __future__ import annotations

import logging as py_logging
import sys
from collections.abc import Iterator
from pathlib import Path

import pytest

_POSIX_ONLY_FILES = {"test_terminal_integration.py"}


@pytest.hookimpl(trylast=True)
def pytest_collection_modifyitems(config: pytest.Config, items: list[pytest.Item]) -> None:
    del config
    skip_posix = pytest.mark.skip(reason="requires a POSIX pty")
    for item in items:
        path = Path(str(getattr(item, "path", item.fspath)))
        if path.name in _POSIX_ONLY_FILES:
            item.add_marker(pytest.mark.integration)
            item.add_marker(pytest.mark.slow)
            if sys.platform == "win32":
                item.add_marker(skip_posix)


@pytest.fixture(autouse=True)
def _isolate_log_path(monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> Iterator[None]:
    import deskcore.logging as dc_logging

    monkeypatch.setattr(dc_logging, "DEFAULT_LOG_PATH", tmp_path / "logs" / "deskcore.log")
    yield
    logger = py_logging.getLogger("deskcore")
    for handler in list(logger.handlers):
        logger.removeHandler(handler)
        handler.close()
    logger.setLevel(py_logging.NOTSET)
    logger.propagate = True
