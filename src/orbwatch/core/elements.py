"""Orbital element sets: the canonical per-object orbital state.

Element sets are created at ingestion, either from two-line element text
(parsed with the sgp4 library) or from the canonical element record, and
are never mutated afterwards.
"""

from __future__ import annotations

import logging
import math
from dataclasses import dataclass, replace
from datetime import datetime, timedelta, timezone
from enum import Enum
from typing import Any, Iterable, Mapping

from sgp4.api import Satrec, WGS72

from orbwatch.errors import PropagationError
from orbwatch.utils.constants import EARTH_MU_KM3_S2, EARTH_RADIUS_KM, SECONDS_PER_DAY

logger = logging.getLogger(__name__)


class ObjectKind(str, Enum):
    """What kind of object an element set describes."""

    ACTIVE_SATELLITE = "active-satellite"
    DEBRIS = "debris"


class ObjectStatus(str, Enum):
    """Operational status of a tracked object."""

    OPERATIONAL = "operational"
    NON_OPERATIONAL = "non-operational"
    UNKNOWN = "unknown"


def as_utc(dt: datetime) -> datetime:
    """Return ``dt`` as a timezone-aware UTC datetime. Naive input is taken as UTC."""
    if dt.tzinfo is None:
        return dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(timezone.utc)


def parse_timestamp(text: str) -> datetime:
    """Parse an ISO-8601 timestamp (``Z`` suffix or space separator allowed) to UTC."""
    text = text.strip()
    if text.endswith(("Z", "z")):
        text = text[:-1] + "+00:00"
    return as_utc(datetime.fromisoformat(text))


@dataclass(frozen=True)
class OrbitalElementSet:
    """Classical orbital elements of one tracked object.

    Angles other than inclination are normalized to [0, 360) on
    construction. Range checks on eccentricity, semi-major axis and
    inclination are deferred to :meth:`validate`, which the propagator calls.

    Attributes:
        catalog_id: NORAD catalog number.
        name: Human-readable object name.
        kind: Active satellite or debris.
        status: Operational status.
        epoch: UTC time the elements are valid for.
        semi_major_axis_km: Semi-major axis in km.
        eccentricity: Orbital eccentricity (dimensionless).
        inclination_deg: Inclination in degrees.
        raan_deg: Right ascension of ascending node in degrees.
        arg_perigee_deg: Argument of perigee in degrees.
        mean_anomaly_deg: Mean anomaly at epoch in degrees.
        bstar: Drag term from the source catalog. Not applied by the
            two-body propagator.
    """

    catalog_id: int
    name: str
    kind: ObjectKind
    status: ObjectStatus
    epoch: datetime
    semi_major_axis_km: float
    eccentricity: float
    inclination_deg: float
    raan_deg: float
    arg_perigee_deg: float
    mean_anomaly_deg: float
    bstar: float = 0.0

    def __post_init__(self) -> None:
        object.__setattr__(self, "kind", ObjectKind(self.kind))
        object.__setattr__(self, "status", ObjectStatus(self.status))
        object.__setattr__(self, "epoch", as_utc(self.epoch))
        for name in ("raan_deg", "arg_perigee_deg", "mean_anomaly_deg"):
            object.__setattr__(self, name, float(getattr(self, name)) % 360.0)

    def validate(self) -> None:
        """Check the element-set invariants.

        Raises:
            PropagationError: If eccentricity is outside [0, 1), the
                semi-major axis is not positive, or any element is not finite.
        """
        values = (
            self.semi_major_axis_km,
            self.eccentricity,
            self.inclination_deg,
            self.raan_deg,
            self.arg_perigee_deg,
            self.mean_anomaly_deg,
        )
        if not all(math.isfinite(v) for v in values):
            raise PropagationError(
                f"Non-finite orbital element for catalog id {self.catalog_id}",
                catalog_id=self.catalog_id,
            )
        if not 0.0 <= self.eccentricity < 1.0:
            raise PropagationError(
                f"Eccentricity {self.eccentricity} outside [0, 1) for catalog id {self.catalog_id}",
                catalog_id=self.catalog_id,
            )
        if self.semi_major_axis_km <= 0.0:
            raise PropagationError(
                f"Semi-major axis {self.semi_major_axis_km} km not positive "
                f"for catalog id {self.catalog_id}",
                catalog_id=self.catalog_id,
            )
        if not 0.0 <= self.inclination_deg <= 180.0:
            raise PropagationError(
                f"Inclination {self.inclination_deg} deg outside [0, 180] "
                f"for catalog id {self.catalog_id}",
                catalog_id=self.catalog_id,
            )

    @property
    def mean_motion_rad_s(self) -> float:
        """Mean motion in rad/s, derived from the semi-major axis."""
        return math.sqrt(EARTH_MU_KM3_S2 / self.semi_major_axis_km**3)

    @property
    def period_minutes(self) -> float:
        return 2.0 * math.pi / self.mean_motion_rad_s / 60.0

    @property
    def perigee_altitude_km(self) -> float:
        return self.semi_major_axis_km * (1.0 - self.eccentricity) - EARTH_RADIUS_KM

    @property
    def apogee_altitude_km(self) -> float:
        return self.semi_major_axis_km * (1.0 + self.eccentricity) - EARTH_RADIUS_KM

    def age_days(self, reference_time: datetime) -> float:
        """Absolute age of the elements in days at ``reference_time``."""
        return abs((as_utc(reference_time) - self.epoch).total_seconds()) / SECONDS_PER_DAY

    def advanced_to(self, epoch: datetime) -> OrbitalElementSet:
        """Return an equivalent element set re-referenced to ``epoch``.

        Only the mean anomaly changes: it is advanced by mean motion over
        the elapsed time, which may be negative.
        """
        epoch = as_utc(epoch)
        dt = (epoch - self.epoch).total_seconds()
        mean_anomaly = self.mean_anomaly_deg + math.degrees(self.mean_motion_rad_s * dt)
        return replace(self, epoch=epoch, mean_anomaly_deg=mean_anomaly)

    @classmethod
    def from_tle(
        cls,
        line1: str,
        line2: str,
        name: str = "",
        kind: ObjectKind | str | None = None,
        status: ObjectStatus | str = ObjectStatus.UNKNOWN,
    ) -> OrbitalElementSet:
        """Build an element set from a two-line element set.

        Args:
            line1: TLE line 1 (69 characters).
            line2: TLE line 2 (69 characters).
            name: Optional object name (line 0).
            kind: Object kind. If omitted, names carrying a ``DEB`` token are
                treated as debris and everything else as an active satellite.
            status: Operational status.

        Returns:
            A parsed element set.

        Raises:
            ValueError: If the TLE lines are malformed.
        """
        line1 = line1.strip()
        line2 = line2.strip()

        if len(line1) != 69 or not line1.startswith("1"):
            logger.error("Invalid TLE line 1: %r", line1)
            raise ValueError(f"Invalid TLE line 1: {line1!r}")
        if len(line2) != 69 or not line2.startswith("2"):
            logger.error("Invalid TLE line 2: %r", line2)
            raise ValueError(f"Invalid TLE line 2: {line2!r}")

        sat = Satrec.twoline2rv(line1, line2, WGS72)

        year = int(line1[18:20])
        year = year + 2000 if year < 57 else year + 1900
        day_of_year = float(line1[20:32])
        epoch = datetime(year, 1, 1, tzinfo=timezone.utc) + timedelta(days=day_of_year - 1)

        catalog_id = int(line1[2:7].strip())
        name = name.strip()
        if name.startswith("0 "):
            name = name[2:].strip()
        if kind is None:
            kind = ObjectKind.DEBRIS if "DEB" in name.upper().split() else ObjectKind.ACTIVE_SATELLITE

        # no_kozai is in rad/min
        mean_motion_rad_s = sat.no_kozai / 60.0
        semi_major_axis_km = (EARTH_MU_KM3_S2 / mean_motion_rad_s**2) ** (1.0 / 3.0)

        logger.debug("Parsed TLE for catalog id %d (epoch %s)", catalog_id, epoch.isoformat())

        return cls(
            catalog_id=catalog_id,
            name=name,
            kind=kind,
            status=status,
            epoch=epoch,
            semi_major_axis_km=semi_major_axis_km,
            eccentricity=sat.ecco,
            inclination_deg=math.degrees(sat.inclo),
            raan_deg=math.degrees(sat.nodeo),
            arg_perigee_deg=math.degrees(sat.argpo),
            mean_anomaly_deg=math.degrees(sat.mo),
            bstar=sat.bstar,
        )

    @classmethod
    def from_record(cls, record: Mapping[str, Any]) -> OrbitalElementSet:
        """Build an element set from the canonical element record.

        Raises:
            ValueError: If a field is missing or does not parse.
        """
        try:
            epoch = record["epoch"]
            if isinstance(epoch, str):
                epoch = parse_timestamp(epoch)
            return cls(
                catalog_id=int(record["catalog_id"]),
                name=str(record["name"]),
                kind=ObjectKind(record["kind"]),
                status=ObjectStatus(record["status"]),
                epoch=epoch,
                semi_major_axis_km=float(record["semi_major_axis_km"]),
                eccentricity=float(record["eccentricity"]),
                inclination_deg=float(record["inclination_deg"]),
                raan_deg=float(record["raan_deg"]),
                arg_perigee_deg=float(record["arg_perigee_deg"]),
                mean_anomaly_deg=float(record["mean_anomaly_deg"]),
                bstar=float(record.get("bstar", 0.0)),
            )
        except KeyError as e:
            raise ValueError(f"Element record missing field: {e}") from e

    def to_record(self) -> dict[str, Any]:
        """Export as the canonical element record (JSON-compatible)."""
        return {
            "catalog_id": self.catalog_id,
            "name": self.name,
            "kind": self.kind.value,
            "status": self.status.value,
            "epoch": self.epoch.isoformat(),
            "semi_major_axis_km": self.semi_major_axis_km,
            "eccentricity": self.eccentricity,
            "inclination_deg": self.inclination_deg,
            "raan_deg": self.raan_deg,
            "arg_perigee_deg": self.arg_perigee_deg,
            "mean_anomaly_deg": self.mean_anomaly_deg,
            "bstar": self.bstar,
        }


def parse_tle(
    text: str,
    kind: ObjectKind | str | None = None,
    status: ObjectStatus | str = ObjectStatus.UNKNOWN,
) -> list[OrbitalElementSet]:
    """Parse one or more element sets from TLE text.

    Handles both 2-line and 3-line (with name) formats. Unrecognized lines
    are skipped.

    Args:
        text: Raw TLE text.
        kind: Object kind applied to every set, or None to infer from names.
        status: Operational status applied to every set.

    Returns:
        A list of parsed element sets.
    """
    lines = [l.rstrip() for l in text.strip().splitlines() if l.strip()]
    sets: list[OrbitalElementSet] = []
    i = 0

    while i < len(lines):
        if lines[i].startswith("1 ") and i + 1 < len(lines) and lines[i + 1].startswith("2 "):
            sets.append(OrbitalElementSet.from_tle(lines[i], lines[i + 1], kind=kind, status=status))
            i += 2
        elif (
            not lines[i].startswith("1 ")
            and not lines[i].startswith("2 ")
            and i + 2 < len(lines)
            and lines[i + 1].startswith("1 ")
            and lines[i + 2].startswith("2 ")
        ):
            sets.append(
                OrbitalElementSet.from_tle(
                    lines[i + 1], lines[i + 2], name=lines[i], kind=kind, status=status
                )
            )
            i += 3
        else:
            i += 1

    logger.debug("Parsed %d element sets from text", len(sets))
    return sets


def filter_stale_elements(
    elements: Iterable[OrbitalElementSet],
    max_age_days: float = 3.0,
    reference_time: datetime | None = None,
) -> list[OrbitalElementSet]:
    """Keep element sets whose epoch is within ``max_age_days`` of ``reference_time``.

    Propagation accuracy degrades with distance from epoch, so hosts should
    refresh stale sets from catalog data rather than screen them.

    Args:
        elements: Element sets to filter.
        max_age_days: Maximum absolute age in days.
        reference_time: Reference time for the age. Defaults to now (UTC).

    Returns:
        The fresh element sets, in input order.
    """
    if reference_time is None:
        reference_time = datetime.now(timezone.utc)

    elements = list(elements)
    fresh = [e for e in elements if e.age_days(reference_time) <= max_age_days]
    logger.debug(
        "filter_stale_elements: %d/%d sets within %.1f days", len(fresh), len(elements), max_age_days
    )
    return fresh
