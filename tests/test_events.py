"""Tests for canonical conjunction events."""
from __future__ import annotations

from datetime import datetime, timedelta, timezone

import pytest

from orbwatch.core.elements import ObjectKind, ObjectStatus
from orbwatch.core.events import (
    ConjunctionEvent,
    EventObject,
    Provenance,
    count_by_band,
    filter_events,
    sort_events,
)
from orbwatch.core.risk import ProbabilityConvention, RiskBand
from orbwatch.errors import AmbiguousProbabilityError

TCA = datetime(2024, 6, 2, 8, 30, 0, tzinfo=timezone.utc)


def _event(range_m: float = 2000.0, tca: datetime = TCA, **overrides) -> ConjunctionEvent:
    values = dict(
        object1=EventObject(25544, "ISS (ZARYA)", ObjectStatus.OPERATIONAL, ObjectKind.ACTIVE_SATELLITE),
        object2=EventObject(51087, "COSMOS 1408 DEB", element_age_days=1.25),
        tca=tca,
        range_m=range_m,
        relative_speed_m_s=7500.0,
        provenance=Provenance.LOCAL,
    )
    values.update(overrides)
    return ConjunctionEvent(**values)


class TestConjunctionEvent:
    def test_band_from_range(self) -> None:
        assert _event(range_m=300.0).risk_band is RiskBand.CRITICAL
        assert _event(range_m=2000.0).risk_band is RiskBand.MEDIUM

    def test_band_is_worst_of(self) -> None:
        event = _event(
            range_m=20000.0,
            provenance=Provenance.SOURCE_A,
            probability=1.2e-4,
            probability_convention=ProbabilityConvention.MAGNITUDE,
        )
        assert event.risk_band is RiskBand.CRITICAL

    def test_band_not_an_init_argument(self) -> None:
        with pytest.raises(TypeError):
            _event(risk_band=RiskBand.LOW)

    def test_probability_requires_convention(self) -> None:
        with pytest.raises(AmbiguousProbabilityError):
            _event(probability=0.3)

    @pytest.mark.parametrize("field, value", [("range_m", -1.0), ("relative_speed_m_s", -5.0)])
    def test_negative_metrics_rejected(self, field, value) -> None:
        with pytest.raises(ValueError, match=field):
            _event(**{field: value})

    def test_naive_tca_is_utc(self) -> None:
        event = _event(tca=datetime(2024, 6, 2, 8, 30, 0))
        assert event.tca == TCA

    def test_string_enums_coerced(self) -> None:
        event = _event(
            provenance="externally-reported-source-B",
            probability=0.25,
            probability_convention="normalized",
        )
        assert event.provenance is Provenance.SOURCE_B
        assert event.probability_convention is ProbabilityConvention.NORMALIZED

    @pytest.mark.parametrize(
        "provenance, convention",
        [
            (Provenance.SOURCE_A, ProbabilityConvention.NORMALIZED),
            (Provenance.SOURCE_B, ProbabilityConvention.MAGNITUDE),
        ],
    )
    def test_source_convention_mismatch(self, provenance, convention) -> None:
        with pytest.raises(AmbiguousProbabilityError, match="convention"):
            _event(provenance=provenance, probability=0.1, probability_convention=convention)

    def test_immutable(self) -> None:
        event = _event()
        with pytest.raises(AttributeError):
            event.range_m = 10.0  # type: ignore[misc]

    def test_pair(self) -> None:
        assert _event().pair == (25544, 51087)


class TestRecord:
    def test_round_trip(self) -> None:
        event = _event(
            range_m=480.0,
            provenance=Provenance.SOURCE_A,
            probability=1.2e-4,
            probability_convention=ProbabilityConvention.MAGNITUDE,
            dilution=0.01,
        )
        assert ConjunctionEvent.from_record(event.to_record()) == event

    def test_record_values(self) -> None:
        record = _event(range_m=480.0).to_record()
        assert record["tca"] == "2024-06-02T08:30:00+00:00"
        assert record["provenance"] == "locally-screened"
        assert record["risk_band"] == "critical"
        assert record["probability"] is None
        assert record["probability_convention"] is None
        assert record["object1"]["kind"] == "active-satellite"
        assert record["object2"]["status"] == "unknown"
        assert record["object2"]["element_age_days"] == 1.25

    def test_mismatched_convention_rejected_on_load(self) -> None:
        record = _event(
            provenance=Provenance.SOURCE_A,
            probability=1.2e-4,
            probability_convention=ProbabilityConvention.MAGNITUDE,
        ).to_record()
        record["probability_convention"] = "normalized"
        with pytest.raises(AmbiguousProbabilityError):
            ConjunctionEvent.from_record(record)

    def test_band_rederived_on_load(self) -> None:
        record = _event(range_m=480.0).to_record()
        record["risk_band"] = "low"
        assert ConjunctionEvent.from_record(record).risk_band is RiskBand.CRITICAL


@pytest.fixture
def mixed() -> list[ConjunctionEvent]:
    return [
        _event(range_m=4000.0, tca=TCA + timedelta(hours=2)),
        _event(range_m=450.0, tca=TCA + timedelta(hours=5)),
        _event(
            range_m=9000.0,
            tca=TCA,
            provenance=Provenance.SOURCE_B,
            probability=0.6,
            probability_convention=ProbabilityConvention.NORMALIZED,
        ),
        _event(range_m=800.0, tca=TCA + timedelta(hours=1), provenance=Provenance.SOURCE_A),
    ]


class TestSortAndFilter:
    def test_sort_by_risk(self, mixed) -> None:
        ordered = sort_events(mixed, by="risk")
        assert [e.range_m for e in ordered] == [450.0, 9000.0, 800.0, 4000.0]

    def test_sort_by_tca(self, mixed) -> None:
        ordered = sort_events(mixed, by="tca")
        assert [e.tca for e in ordered] == sorted(e.tca for e in mixed)

    def test_sort_by_range(self, mixed) -> None:
        ordered = sort_events(mixed, by="range")
        assert [e.range_m for e in ordered] == [450.0, 800.0, 4000.0, 9000.0]

    def test_sort_unknown_key(self, mixed) -> None:
        with pytest.raises(ValueError, match="Unknown sort key"):
            sort_events(mixed, by="name")

    def test_filter_min_band(self, mixed) -> None:
        assert len(filter_events(mixed, min_band=RiskBand.HIGH)) == 3
        assert len(filter_events(mixed, min_band="critical")) == 2

    def test_filter_window(self, mixed) -> None:
        selected = filter_events(mixed, start=TCA + timedelta(hours=1), end=TCA + timedelta(hours=2))
        assert sorted(e.range_m for e in selected) == [800.0, 4000.0]

    def test_filter_provenance_and_range(self, mixed) -> None:
        assert [e.range_m for e in filter_events(mixed, provenance="externally-reported-source-A")] == [800.0]
        assert len(filter_events(mixed, max_range_m=1000.0)) == 2

    def test_count_by_band(self, mixed) -> None:
        counts = count_by_band(mixed)
        assert counts == {
            RiskBand.LOW: 0,
            RiskBand.MEDIUM: 1,
            RiskBand.HIGH: 1,
            RiskBand.CRITICAL: 2,
        }

    def test_count_empty(self) -> None:
        assert set(count_by_band([]).values()) == {0}
