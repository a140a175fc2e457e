"""Canonical conjunction events shared by local screening and external feeds."""
from __future__ import annotations

import math
from collections import Counter
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Iterable, Mapping

from orbwatch.core.elements import ObjectKind, ObjectStatus, as_utc, parse_timestamp
from orbwatch.core.risk import ProbabilityConvention, RiskBand, RiskSignal, classify
from orbwatch.errors import AmbiguousProbabilityError


class Provenance(str, Enum):
    """Where a conjunction event came from."""

    LOCAL = "locally-screened"
    SOURCE_A = "externally-reported-source-A"
    SOURCE_B = "externally-reported-source-B"


_SOURCE_CONVENTIONS = {
    Provenance.SOURCE_A: ProbabilityConvention.MAGNITUDE,
    Provenance.SOURCE_B: ProbabilityConvention.NORMALIZED,
}


@dataclass(frozen=True)
class EventObject:
    """One side of a conjunction.

    Attributes:
        catalog_id: NORAD catalog number.
        name: Object name as reported.
        status: Operational status.
        kind: Object kind, when known.
        element_age_days: Age of the elements used for the prediction, when
            reported.
    """

    catalog_id: int
    name: str
    status: ObjectStatus = ObjectStatus.UNKNOWN
    kind: ObjectKind | None = None
    element_age_days: float | None = None

    def __post_init__(self) -> None:
        object.__setattr__(self, "status", ObjectStatus(self.status))
        if self.kind is not None:
            object.__setattr__(self, "kind", ObjectKind(self.kind))

    def to_record(self) -> dict[str, Any]:
        return {
            "catalog_id": self.catalog_id,
            "name": self.name,
            "status": self.status.value,
            "kind": self.kind.value if self.kind is not None else None,
            "element_age_days": self.element_age_days,
        }

    @classmethod
    def from_record(cls, record: Mapping[str, Any]) -> EventObject:
        return cls(
            catalog_id=int(record["catalog_id"]),
            name=str(record["name"]),
            status=ObjectStatus(record.get("status", ObjectStatus.UNKNOWN)),
            kind=ObjectKind(record["kind"]) if record.get("kind") is not None else None,
            element_age_days=record.get("element_age_days"),
        )


@dataclass(frozen=True)
class ConjunctionEvent:
    """A predicted or reported close approach between two objects.

    The risk band is derived from the metrics at construction and is not
    an init argument. Events are never mutated; each screening or polling
    cycle produces new ones.

    Attributes:
        object1: First object of the pair.
        object2: Second object of the pair.
        tca: Time of closest approach (UTC).
        range_m: Miss distance at TCA in meters.
        relative_speed_m_s: Relative speed at TCA in m/s.
        provenance: Local screen or which external source.
        probability: Collision probability in [0, 1], if known.
        probability_convention: Convention of ``probability``. Required
            whenever a probability is present. External sources have a
            fixed convention: magnitude for source A, normalized for B.
        dilution: Source-specific dilution/quality figure, if reported.
        source_id: Source record identifier, if the source has one.
        risk_band: Derived risk band.
    """

    object1: EventObject
    object2: EventObject
    tca: datetime
    range_m: float
    relative_speed_m_s: float
    provenance: Provenance
    probability: float | None = None
    probability_convention: ProbabilityConvention | None = None
    dilution: float | None = None
    source_id: int | None = None
    risk_band: RiskBand = field(init=False)

    def __post_init__(self) -> None:
        object.__setattr__(self, "tca", as_utc(self.tca))
        object.__setattr__(self, "provenance", Provenance(self.provenance))
        if not math.isfinite(self.range_m) or self.range_m < 0:
            raise ValueError(f"range_m must be >= 0, got {self.range_m!r}")
        if not math.isfinite(self.relative_speed_m_s) or self.relative_speed_m_s < 0:
            raise ValueError(f"relative_speed_m_s must be >= 0, got {self.relative_speed_m_s!r}")
        if self.probability_convention is not None:
            object.__setattr__(
                self, "probability_convention", ProbabilityConvention(self.probability_convention)
            )
        if self.probability is not None and self.probability_convention is None:
            raise AmbiguousProbabilityError(
                f"Event {self.object1.catalog_id}/{self.object2.catalog_id} has a probability "
                "but no convention"
            )
        expected = _SOURCE_CONVENTIONS.get(self.provenance)
        convention = self.probability_convention
        if convention is not None and expected is not None and convention is not expected:
            raise AmbiguousProbabilityError(
                f"Event {self.object1.catalog_id}/{self.object2.catalog_id} from {self.provenance.value} "
                f"must use the {expected.value} convention, got {convention.value}"
            )
        band = classify(
            RiskSignal(
                probability=self.probability,
                convention=self.probability_convention,
                range_m=self.range_m,
            )
        )
        object.__setattr__(self, "risk_band", band)

    @property
    def pair(self) -> tuple[int, int]:
        """Catalog ids of (object1, object2)."""
        return self.object1.catalog_id, self.object2.catalog_id

    def to_record(self) -> dict[str, Any]:
        """Export as a JSON-compatible record for the presentation layer."""
        return {
            "object1": self.object1.to_record(),
            "object2": self.object2.to_record(),
            "tca": self.tca.isoformat(),
            "range_m": self.range_m,
            "relative_speed_m_s": self.relative_speed_m_s,
            "provenance": self.provenance.value,
            "probability": self.probability,
            "probability_convention": (
                self.probability_convention.value if self.probability_convention is not None else None
            ),
            "dilution": self.dilution,
            "source_id": self.source_id,
            "risk_band": str(self.risk_band),
        }

    @classmethod
    def from_record(cls, record: Mapping[str, Any]) -> ConjunctionEvent:
        """Rebuild an event from :meth:`to_record` output.

        The risk band is re-derived, not read back.
        """
        tca = record["tca"]
        convention = record.get("probability_convention")
        return cls(
            object1=EventObject.from_record(record["object1"]),
            object2=EventObject.from_record(record["object2"]),
            tca=parse_timestamp(tca) if isinstance(tca, str) else tca,
            range_m=float(record["range_m"]),
            relative_speed_m_s=float(record["relative_speed_m_s"]),
            provenance=Provenance(record["provenance"]),
            probability=record.get("probability"),
            probability_convention=ProbabilityConvention(convention) if convention else None,
            dilution=record.get("dilution"),
            source_id=record.get("source_id"),
        )


_SORT_KEYS = {
    "risk": lambda e: (-int(e.risk_band), e.range_m, e.tca),
    "tca": lambda e: (e.tca, e.range_m),
    "range": lambda e: (e.range_m, e.tca),
}


def sort_events(events: Iterable[ConjunctionEvent], by: str = "risk") -> list[ConjunctionEvent]:
    """Sort events for display.

    Args:
        events: Events to sort.
        by: ``"risk"`` (most severe first), ``"tca"`` (earliest first) or
            ``"range"`` (closest first).

    Raises:
        ValueError: If ``by`` is not a known key.
    """
    try:
        key = _SORT_KEYS[by]
    except KeyError:
        raise ValueError(f"Unknown sort key {by!r}; expected one of {sorted(_SORT_KEYS)}") from None
    return sorted(events, key=key)


def filter_events(
    events: Iterable[ConjunctionEvent],
    *,
    min_band: RiskBand | str | None = None,
    start: datetime | None = None,
    end: datetime | None = None,
    max_range_m: float | None = None,
    provenance: Provenance | str | None = None,
) -> list[ConjunctionEvent]:
    """Select events by band, TCA window, range and provenance.

    All criteria are optional and combine with AND. The TCA window is
    inclusive at both ends.
    """
    band = RiskBand.parse(min_band) if min_band is not None else None
    start = as_utc(start) if start is not None else None
    end = as_utc(end) if end is not None else None
    source = Provenance(provenance) if provenance is not None else None

    selected = []
    for event in events:
        if band is not None and event.risk_band < band:
            continue
        if start is not None and event.tca < start:
            continue
        if end is not None and event.tca > end:
            continue
        if max_range_m is not None and event.range_m > max_range_m:
            continue
        if source is not None and event.provenance is not source:
            continue
        selected.append(event)
    return selected


def count_by_band(events: Iterable[ConjunctionEvent]) -> dict[RiskBand, int]:
    """Number of events in each band, with every band present."""
    counts = Counter(event.risk_band for event in events)
    return {band: counts.get(band, 0) for band in RiskBand}
