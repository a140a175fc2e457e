"""Tests for two-body propagation and the element/state conversions."""
from __future__ import annotations

import math
from datetime import datetime, timedelta, timezone

import numpy as np
import pytest

from orbwatch.core.elements import ObjectKind, ObjectStatus, OrbitalElementSet
from orbwatch.core.propagation import (
    StateVector,
    elements_from_state,
    propagate,
    propagate_batch,
    propagate_offsets,
    solve_kepler,
)
from orbwatch.errors import PropagationError
from orbwatch.utils.constants import EARTH_MU_KM3_S2


ISS_LINE1 = "1 25544U 98067A   24045.54896019  .00016717  00000-0  30093-3 0  9993"
ISS_LINE2 = "2 25544  51.6412 207.4925 0004948 290.5508 178.9792 15.49583488439596"

EPOCH = datetime(2024, 6, 1, 12, 0, 0, tzinfo=timezone.utc)


def _elements(**overrides) -> OrbitalElementSet:
    values = dict(
        catalog_id=90001,
        name="TEST-SAT",
        kind=ObjectKind.ACTIVE_SATELLITE,
        status=ObjectStatus.OPERATIONAL,
        epoch=EPOCH,
        semi_major_axis_km=7000.0,
        eccentricity=0.01,
        inclination_deg=51.6,
        raan_deg=30.0,
        arg_perigee_deg=45.0,
        mean_anomaly_deg=10.0,
    )
    values.update(overrides)
    return OrbitalElementSet(**values)


@pytest.fixture
def inclined() -> OrbitalElementSet:
    return _elements()


@pytest.fixture
def equatorial_circular() -> OrbitalElementSet:
    return _elements(
        eccentricity=0.0, inclination_deg=0.0, raan_deg=0.0, arg_perigee_deg=0.0, mean_anomaly_deg=0.0
    )


def _energy(state: StateVector) -> float:
    r = np.linalg.norm(state.position_m) / 1000.0
    v = np.linalg.norm(state.velocity_m_s) / 1000.0
    return v**2 / 2.0 - EARTH_MU_KM3_S2 / r


class TestSolveKepler:
    def test_residual(self) -> None:
        mean_anomaly = np.linspace(0.0, 2.0 * math.pi, 50, endpoint=False)
        for e in (0.0, 0.1, 0.5, 0.85, 0.95):
            ecc = solve_kepler(mean_anomaly, e)
            residual = ecc - e * np.sin(ecc) - mean_anomaly
            assert np.max(np.abs(residual)) < 1e-9

    def test_circular_is_identity(self) -> None:
        assert solve_kepler(1.25, 0.0) == pytest.approx(1.25)

    def test_scalar_input(self) -> None:
        ecc = solve_kepler(0.5, 0.2)
        assert np.shape(ecc) == ()

    def test_non_convergence_raises(self) -> None:
        with pytest.raises(PropagationError, match="did not converge"):
            solve_kepler(1.0, 0.9, max_iterations=1)

    def test_bad_eccentricity(self) -> None:
        with pytest.raises(PropagationError):
            solve_kepler(1.0, 1.0)


class TestPropagate:
    def test_state_at_epoch(self, equatorial_circular: OrbitalElementSet) -> None:
        state = propagate(equatorial_circular, EPOCH)
        speed = math.sqrt(EARTH_MU_KM3_S2 / 7000.0) * 1000.0
        np.testing.assert_allclose(state.position_m, [7000e3, 0.0, 0.0], atol=1e-6)
        np.testing.assert_allclose(state.velocity_m_s, [0.0, speed, 0.0], atol=1e-9)
        assert state.epoch == EPOCH

    def test_perigee_radius(self) -> None:
        elements = _elements(eccentricity=0.1, mean_anomaly_deg=0.0)
        state = propagate(elements, EPOCH)
        assert np.linalg.norm(state.position_m) == pytest.approx(6300e3, rel=1e-12)

    def test_units_are_meters(self) -> None:
        elements = OrbitalElementSet.from_tle(ISS_LINE1, ISS_LINE2)
        state = propagate(elements, elements.epoch + timedelta(hours=1))
        assert 6.5e6 < np.linalg.norm(state.position_m) < 7.0e6
        assert 7.0e3 < np.linalg.norm(state.velocity_m_s) < 8.0e3

    def test_full_period_returns(self, inclined: OrbitalElementSet) -> None:
        start = propagate(inclined, EPOCH)
        later = propagate(inclined, EPOCH + timedelta(minutes=inclined.period_minutes))
        np.testing.assert_allclose(later.position_m, start.position_m, atol=1.0)

    def test_energy_conserved(self, inclined: OrbitalElementSet) -> None:
        energies = [
            _energy(propagate(inclined, EPOCH + timedelta(minutes=m))) for m in (0, 17, 45, 300, -90)
        ]
        assert max(energies) - min(energies) < 1e-9 * abs(energies[0])

    def test_before_epoch(self, inclined: OrbitalElementSet) -> None:
        state = propagate(inclined, EPOCH - timedelta(hours=6))
        assert np.all(np.isfinite(state.position_m))

    def test_naive_time_is_utc(self, inclined: OrbitalElementSet) -> None:
        aware = propagate(inclined, EPOCH + timedelta(minutes=5))
        naive = propagate(inclined, datetime(2024, 6, 1, 12, 5, 0))
        np.testing.assert_array_equal(aware.position_m, naive.position_m)

    def test_deterministic(self, inclined: OrbitalElementSet) -> None:
        at = EPOCH + timedelta(minutes=33)
        first = propagate(inclined, at)
        second = propagate(inclined, at)
        np.testing.assert_array_equal(first.position_m, second.position_m)
        np.testing.assert_array_equal(first.velocity_m_s, second.velocity_m_s)

    @pytest.mark.parametrize(
        "overrides", [{"eccentricity": 1.2}, {"semi_major_axis_km": -7000.0}]
    )
    def test_invalid_elements(self, overrides) -> None:
        with pytest.raises(PropagationError) as info:
            propagate(_elements(**overrides), EPOCH)
        assert info.value.catalog_id == 90001

    def test_non_convergence_names_object(self, inclined: OrbitalElementSet) -> None:
        with pytest.raises(PropagationError, match="90001"):
            propagate(inclined, EPOCH + timedelta(minutes=1), max_iterations=1, tolerance=1e-15)


class TestPropagateOffsets:
    def test_shape(self, inclined: OrbitalElementSet) -> None:
        pos, vel = propagate_offsets(inclined, EPOCH, np.arange(0.0, 600.0, 60.0))
        assert pos.shape == (10, 3)
        assert vel.shape == (10, 3)

    def test_matches_single_propagation(self, inclined: OrbitalElementSet) -> None:
        pos, vel = propagate_offsets(inclined, EPOCH, [0.0, 120.0])
        state = propagate(inclined, EPOCH + timedelta(seconds=120))
        np.testing.assert_allclose(pos[1], state.position_m, atol=1e-6)
        np.testing.assert_allclose(vel[1], state.velocity_m_s, atol=1e-9)


class TestPropagateBatch:
    def test_failed_object_masked(self, inclined: OrbitalElementSet) -> None:
        bad = _elements(catalog_id=90002, eccentricity=1.5)
        states, valid = propagate_batch([inclined, bad], EPOCH)
        assert states.shape == (2, 6)
        assert valid.tolist() == [True, False]
        assert np.all(np.isnan(states[1]))
        assert np.all(np.isfinite(states[0]))

    def test_empty(self) -> None:
        states, valid = propagate_batch([], EPOCH)
        assert states.shape == (0, 6)
        assert valid.shape == (0,)


class TestElementsFromState:
    def test_round_trip_through_state(self, inclined: OrbitalElementSet) -> None:
        later = EPOCH + timedelta(minutes=40)
        state = propagate(inclined, later)
        recovered = elements_from_state(state, inclined.catalog_id, name=inclined.name)

        assert recovered.epoch == later
        assert recovered.semi_major_axis_km == pytest.approx(7000.0, rel=1e-9)
        assert recovered.eccentricity == pytest.approx(0.01, abs=1e-9)
        assert recovered.inclination_deg == pytest.approx(51.6, abs=1e-7)
        assert recovered.raan_deg == pytest.approx(30.0, abs=1e-7)
        assert recovered.arg_perigee_deg == pytest.approx(45.0, abs=1e-5)

    def test_forward_then_backward(self, inclined: OrbitalElementSet) -> None:
        start = propagate(inclined, EPOCH)
        forward = propagate(inclined, EPOCH + timedelta(hours=3))
        rebuilt = elements_from_state(forward, inclined.catalog_id)
        back = propagate(rebuilt, EPOCH)
        np.testing.assert_allclose(back.position_m, start.position_m, atol=1.0)
        np.testing.assert_allclose(back.velocity_m_s, start.velocity_m_s, atol=1e-3)

    def test_circular_equatorial(self, equatorial_circular: OrbitalElementSet) -> None:
        state = propagate(equatorial_circular, EPOCH + timedelta(minutes=10))
        recovered = elements_from_state(state, 1)
        assert recovered.eccentricity == 0.0
        assert recovered.raan_deg == 0.0
        assert recovered.arg_perigee_deg == 0.0
        assert recovered.semi_major_axis_km == pytest.approx(7000.0, rel=1e-9)
        back = propagate(recovered, state.epoch)
        np.testing.assert_allclose(back.position_m, state.position_m, atol=1e-3)

    def test_zero_angular_momentum(self) -> None:
        state = StateVector(np.array([7000e3, 0.0, 0.0]), np.array([1000.0, 0.0, 0.0]), EPOCH)
        with pytest.raises(PropagationError, match="angular momentum"):
            elements_from_state(state, 5)

    def test_unbound_orbit(self) -> None:
        state = StateVector(np.array([7000e3, 0.0, 0.0]), np.array([0.0, 20000.0, 0.0]), EPOCH)
        with pytest.raises(PropagationError, match="not a bound orbit"):
            elements_from_state(state, 5)
