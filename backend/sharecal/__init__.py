"""Event sharing, permission and reminder backend."""

__version__ = "0.1.0"
