"""Exception hierarchy for orbwatch.

Per-object and per-row failures (``PropagationError``,
``MalformedRecordError``) are contained by the screener and the feed
adapters. Contract violations (``DuplicateObjectError``,
``ConfigurationError``, ``AmbiguousProbabilityError``) propagate to the
caller.
"""

from __future__ import annotations


class OrbwatchError(Exception):
    """Base class for all orbwatch errors."""


class PropagationError(OrbwatchError, ValueError):
    """Kepler's equation did not converge, or the element set is invalid."""

    def __init__(self, message: str, catalog_id: int | None = None) -> None:
        super().__init__(message)
        self.catalog_id = catalog_id


class DuplicateObjectError(OrbwatchError, ValueError):
    """Screening input holds two element sets with the same catalog id."""

    def __init__(self, catalog_id: int) -> None:
        super().__init__(f"Duplicate catalog id in screening input: {catalog_id}")
        self.catalog_id = catalog_id


class FeedUnavailableError(OrbwatchError):
    """An external feed was unreachable, returned an error, or was unparseable."""

    def __init__(self, source: str, reason: str) -> None:
        super().__init__(f"Feed {source} unavailable: {reason}")
        self.source = source
        self.reason = reason


class MalformedRecordError(OrbwatchError, ValueError):
    """A single feed row could not be normalized."""

    def __init__(self, reason: str, row: object = None) -> None:
        super().__init__(reason)
        self.reason = reason
        self.row = row


class ConfigurationError(OrbwatchError, ValueError):
    """A configuration option is missing, unknown, or out of range."""


class AmbiguousProbabilityError(OrbwatchError, ValueError):
    """A probability was supplied without its convention tag."""
