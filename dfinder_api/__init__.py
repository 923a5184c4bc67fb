"""HTTP API for the duplicate finder."""

__all__ = [
    "config",
    "db",
    "main",
]
