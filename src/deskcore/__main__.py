"""Module entrypoint for `python -m deskcore`."""

from deskcore.cli import run

if __name__ == "__main__":
    raise SystemExit(run())
