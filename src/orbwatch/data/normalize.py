"""Result type shared by the external feed adapters."""

from __future__ import annotations

import logging
import math
from dataclasses import dataclass, field

from orbwatch.core.events import ConjunctionEvent
from orbwatch.errors import FeedUnavailableError, MalformedRecordError

logger = logging.getLogger(__name__)


@dataclass
class FeedResult:
    """Normalized events from one poll of one external feed.

    A feed-level failure is reported through ``error`` with an empty
    ``events`` list, so it stays distinguishable from a feed that
    legitimately reported zero conjunctions.

    Attributes:
        source: Feed name.
        events: Canonical events, in feed order.
        dropped: Number of rows dropped as malformed.
        error: Feed-level failure, or None.
    """

    source: str
    events: list[ConjunctionEvent] = field(default_factory=list)
    dropped: int = 0
    error: FeedUnavailableError | None = None

    @property
    def available(self) -> bool:
        return self.error is None

    def raise_for_error(self) -> None:
        """Raise the feed-level failure, if there was one.

        Raises:
            FeedUnavailableError: If the feed was unreachable or unparseable.
        """
        if self.error is not None:
            raise self.error

    @classmethod
    def unavailable(cls, source: str, reason: str, dropped: int = 0) -> FeedResult:
        """Build a failed result and log it."""
        logger.error("Feed %s unavailable: %s", source, reason)
        return cls(source=source, dropped=dropped, error=FeedUnavailableError(source, reason))


def parse_int(value: object, what: str) -> int:
    """Parse a catalog identifier, raising ``MalformedRecordError`` on failure."""
    try:
        text = str(value).replace('"', "").strip()
        return int(text)
    except (TypeError, ValueError):
        raise MalformedRecordError(f"{what} is not an integer: {value!r}") from None


def parse_float(value: object, what: str) -> float:
    """Parse a finite float, raising ``MalformedRecordError`` on failure."""
    try:
        number = float(str(value).replace('"', "").strip())
    except (TypeError, ValueError):
        raise MalformedRecordError(f"{what} is not a number: {value!r}") from None
    if not math.isfinite(number):
        raise MalformedRecordError(f"{what} is not finite: {value!r}")
    return number


def clean_name(value: object) -> str:
    """Strip quote characters and surrounding whitespace from a reported name."""
    return str(value).replace('"', "").strip()
