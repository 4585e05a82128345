"""taskflow: work log with a live task store, derived views and time tracking."""

__version__ = "0.1.0"
