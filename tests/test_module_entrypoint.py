from __future__ import annotations

import runpy
from pathlib import Path


def test_module_entrypoint_exposes_run() -> None:
    main_path = Path(__file__).resolve().parents[1] / "src" / "deskcore" / "__main__.py"

    namespace = runpy.run_path(str(main_path), run_name="deskcore_entrypoint_test")

    assert callable(namespace["run"])
