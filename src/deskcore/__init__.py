"""Session coordination core for tabbed documents and reconnectable terminals."""

__version__ = "0.1.0"
