"""
Duplicate finder error taxonomy.

Loop-fatal errors (``TransportError``) propagate to process supervision.
Everything else is scoped to a single index request: the consumer logs it
and moves on to the next message.
"""
from __future__ import annotations


class DuplicateFinderError(Exception):
    """Base class for all duplicate finder errors."""


class TransportError(DuplicateFinderError):
    """The work queue connection was lost or could not be established."""


class ValidationError(DuplicateFinderError):
    """Malformed queue envelope or invalid picture id."""


class FetchError(DuplicateFinderError):
    """Source bytes for a picture could not be retrieved."""

    def __init__(self, location: str, reason: str):
        super().__init__(f"failed to fetch `{location}`: {reason}")
        self.location = location
        self.reason = reason


class DecodeError(DuplicateFinderError):
    """Bytes are not a decodable image."""


class EmptySourceError(DecodeError):
    """Source yielded zero bytes."""


class PersistenceError(DuplicateFinderError):
    """Fingerprint or distance store is unavailable."""
