from __future__ import annotations

import logging
import math
from dataclasses import dataclass
from enum import Enum, IntEnum

from orbwatch.errors import AmbiguousProbabilityError
from orbwatch.utils.constants import (
    MAGNITUDE_PROBABILITY_THRESHOLDS,
    NORMALIZED_PROBABILITY_THRESHOLDS,
    RANGE_THRESHOLDS_M,
)

logger = logging.getLogger(__name__)


class RiskBand(IntEnum):
    """Ordinal risk band. Larger values are more severe."""

    LOW = 0
    MEDIUM = 1
    HIGH = 2
    CRITICAL = 3

    def __str__(self) -> str:
        return self.name.lower()

    @classmethod
    def parse(cls, value: str | int | RiskBand) -> RiskBand:
        """Accept a band, its ordinal, or its lowercase/uppercase name."""
        if isinstance(value, str):
            try:
                return cls[value.upper()]
            except KeyError:
                raise ValueError(f"Unknown risk band: {value!r}") from None
        return cls(value)


class ProbabilityConvention(str, Enum):
    """How a reported collision probability is to be read.

    ``MAGNITUDE`` is a true collision probability, typically far below 1 and
    usually quoted in scientific notation. ``NORMALIZED`` is a blended score
    in [0, 1]. The two are not convertible into each other.
    """

    MAGNITUDE = "magnitude"
    NORMALIZED = "normalized"


_PROBABILITY_TABLES: dict[ProbabilityConvention, tuple[float, float, float]] = {
    ProbabilityConvention.MAGNITUDE: MAGNITUDE_PROBABILITY_THRESHOLDS,
    ProbabilityConvention.NORMALIZED: NORMALIZED_PROBABILITY_THRESHOLDS,
}

_RISK_COLORS: dict[RiskBand, str] = {
    RiskBand.CRITICAL: "#ff0000",
    RiskBand.HIGH: "#ff4444",
    RiskBand.MEDIUM: "#ffaa00",
    RiskBand.LOW: "#ffdd00",
}


@dataclass(frozen=True)
class RiskSignal:
    """Metrics available for classifying one conjunction.

    Attributes:
        probability: Collision probability in [0, 1], or None.
        convention: Convention the probability is expressed in. Required
            whenever ``probability`` is given.
        range_m: Miss distance in meters, or None.
    """

    probability: float | None = None
    convention: ProbabilityConvention | None = None
    range_m: float | None = None

    def __post_init__(self) -> None:
        if self.convention is not None:
            object.__setattr__(self, "convention", ProbabilityConvention(self.convention))


def classify_probability(probability: float, convention: ProbabilityConvention | str | None) -> RiskBand:
    """Band a probability using the threshold table of its convention.

    Args:
        probability: Probability value in [0, 1].
        convention: The convention the value is expressed in.

    Returns:
        The probability-derived risk band.

    Raises:
        AmbiguousProbabilityError: If no convention is given.
        ValueError: If the value is outside [0, 1] or the convention is unknown.
    """
    if convention is None:
        raise AmbiguousProbabilityError(
            f"Probability {probability!r} has no convention tag; refusing to classify"
        )
    convention = ProbabilityConvention(convention)
    if not (isinstance(probability, (int, float)) and math.isfinite(probability)) or not 0.0 <= probability <= 1.0:
        raise ValueError(f"Probability must be in [0, 1], got {probability!r}")

    medium, high, critical = _PROBABILITY_TABLES[convention]
    if probability >= critical:
        return RiskBand.CRITICAL
    if probability >= high:
        return RiskBand.HIGH
    if probability >= medium:
        return RiskBand.MEDIUM
    return RiskBand.LOW


def classify_range(range_m: float) -> RiskBand:
    """Band a miss distance in meters. Closer is more severe.

    Raises:
        ValueError: If the range is negative or not finite.
    """
    if not (isinstance(range_m, (int, float)) and math.isfinite(range_m)) or range_m < 0.0:
        raise ValueError(f"Range must be a non-negative number of meters, got {range_m!r}")

    medium, high, critical = RANGE_THRESHOLDS_M
    if range_m <= critical:
        return RiskBand.CRITICAL
    if range_m <= high:
        return RiskBand.HIGH
    if range_m <= medium:
        return RiskBand.MEDIUM
    return RiskBand.LOW


def worst_of(*bands: RiskBand) -> RiskBand:
    """Return the most severe of the given bands.

    Raises:
        ValueError: If no band is given.
    """
    if not bands:
        raise ValueError("worst_of() needs at least one band")
    return max(bands)


def classify(signal: RiskSignal) -> RiskBand:
    """Classify a conjunction from whatever metrics it carries.

    When both a probability and a range are present the more severe band
    wins, so any single alarming metric surfaces the event.

    Args:
        signal: Probability (with convention) and/or range.

    Returns:
        The combined risk band.

    Raises:
        AmbiguousProbabilityError: If a probability has no convention.
        ValueError: If the signal carries neither metric, or a value is
            out of its domain.
    """
    bands: list[RiskBand] = []
    if signal.probability is not None:
        bands.append(classify_probability(signal.probability, signal.convention))
    if signal.range_m is not None:
        bands.append(classify_range(signal.range_m))
    if not bands:
        raise ValueError("Risk signal carries neither a probability nor a range")

    band = worst_of(*bands)
    logger.debug(
        "classify: probability=%s (%s), range_m=%s -> %s",
        signal.probability,
        signal.convention.value if signal.convention is not None else None,
        signal.range_m,
        band,
    )
    return band


def risk_color(band: RiskBand) -> str:
    """Display color for a band, as a hex string."""
    return _RISK_COLORS[RiskBand(band)]
