"""Two-body orbital propagation from classical elements."""
from __future__ import annotations

import logging
import math
from dataclasses import dataclass
from datetime import datetime
from typing import Sequence

import numpy as np
from numpy.typing import ArrayLike, NDArray

from orbwatch.core.elements import ObjectKind, ObjectStatus, OrbitalElementSet, as_utc
from orbwatch.errors import PropagationError
from orbwatch.utils.constants import (
    DEFAULT_KEPLER_MAX_ITERATIONS,
    DEFAULT_KEPLER_TOLERANCE_RAD,
    EARTH_MU_KM3_S2 as MU,
)

logger = logging.getLogger(__name__)

_TWO_PI = 2.0 * math.pi
_DEGENERATE = 1e-11


@dataclass(frozen=True)
class StateVector:
    """Position and velocity in the inertial frame of the elements.

    Attributes:
        position_m: [x, y, z] position in meters.
        velocity_m_s: [vx, vy, vz] velocity in m/s.
        epoch: Time of this state vector (UTC).
    """

    position_m: NDArray[np.float64]  # shape (3,)
    velocity_m_s: NDArray[np.float64]  # shape (3,)
    epoch: datetime


def solve_kepler(
    mean_anomaly: ArrayLike,
    eccentricity: float,
    tolerance: float = DEFAULT_KEPLER_TOLERANCE_RAD,
    max_iterations: int = DEFAULT_KEPLER_MAX_ITERATIONS,
) -> NDArray[np.float64]:
    """Solve Kepler's equation ``E - e sin E = M`` by Newton iteration.

    Works elementwise on arrays of mean anomaly.

    Args:
        mean_anomaly: Mean anomaly in radians (scalar or array).
        eccentricity: Orbital eccentricity in [0, 1).
        tolerance: Convergence tolerance on the Newton update (rad).
        max_iterations: Iteration cap.

    Returns:
        Eccentric anomaly in radians, same shape as ``mean_anomaly``.

    Raises:
        PropagationError: If any element fails to converge within the cap.
    """
    if not 0.0 <= eccentricity < 1.0:
        raise PropagationError(f"Eccentricity {eccentricity} outside [0, 1)")

    m = np.mod(np.asarray(mean_anomaly, dtype=np.float64), _TWO_PI)
    e = float(eccentricity)
    # Starting from pi keeps Newton stable for highly eccentric orbits
    ecc_anomaly = m.copy() if e < 0.8 else np.full_like(m, math.pi)

    for _ in range(max_iterations):
        delta = (ecc_anomaly - e * np.sin(ecc_anomaly) - m) / (1.0 - e * np.cos(ecc_anomaly))
        ecc_anomaly = ecc_anomaly - delta
        if np.all(np.abs(delta) < tolerance):
            return ecc_anomaly

    raise PropagationError(
        f"Kepler's equation did not converge within {max_iterations} iterations "
        f"(e={e}, tolerance={tolerance})"
    )


def _rotation_matrix(elements: OrbitalElementSet) -> NDArray[np.float64]:
    """Perifocal-to-inertial rotation R3(-RAAN) R1(-i) R3(-argp)."""
    raan = math.radians(elements.raan_deg)
    inc = math.radians(elements.inclination_deg)
    argp = math.radians(elements.arg_perigee_deg)

    cos_o, sin_o = math.cos(raan), math.sin(raan)
    cos_i, sin_i = math.cos(inc), math.sin(inc)
    cos_w, sin_w = math.cos(argp), math.sin(argp)

    return np.array(
        [
            [cos_o * cos_w - sin_o * sin_w * cos_i, -cos_o * sin_w - sin_o * cos_w * cos_i, sin_o * sin_i],
            [sin_o * cos_w + cos_o * sin_w * cos_i, -sin_o * sin_w + cos_o * cos_w * cos_i, -cos_o * sin_i],
            [sin_w * sin_i, cos_w * sin_i, cos_i],
        ],
        dtype=np.float64,
    )


def _state_arrays(
    elements: OrbitalElementSet,
    dt_seconds: NDArray[np.float64],
    tolerance: float,
    max_iterations: int,
) -> tuple[NDArray[np.float64], NDArray[np.float64]]:
    """Positions (m) and velocities (m/s) at ``dt_seconds`` from epoch, shape (T, 3)."""
    elements.validate()

    a = elements.semi_major_axis_km
    e = elements.eccentricity
    n = elements.mean_motion_rad_s

    mean_anomaly = math.radians(elements.mean_anomaly_deg) + n * dt_seconds
    try:
        ecc_anomaly = solve_kepler(mean_anomaly, e, tolerance, max_iterations)
    except PropagationError as exc:
        raise PropagationError(
            f"Propagation failed for catalog id {elements.catalog_id}: {exc}",
            catalog_id=elements.catalog_id,
        ) from exc

    true_anomaly = 2.0 * np.arctan2(
        math.sqrt(1.0 + e) * np.sin(ecc_anomaly / 2.0),
        math.sqrt(1.0 - e) * np.cos(ecc_anomaly / 2.0),
    )
    p = a * (1.0 - e * e)
    r = a * (1.0 - e * np.cos(ecc_anomaly))
    speed_scale = math.sqrt(MU / p)

    zeros = np.zeros_like(true_anomaly)
    r_pqw = np.stack([r * np.cos(true_anomaly), r * np.sin(true_anomaly), zeros], axis=-1)
    v_pqw = np.stack(
        [-speed_scale * np.sin(true_anomaly), speed_scale * (e + np.cos(true_anomaly)), zeros],
        axis=-1,
    )

    rot = _rotation_matrix(elements)
    return (r_pqw @ rot.T) * 1000.0, (v_pqw @ rot.T) * 1000.0


def propagate(
    elements: OrbitalElementSet,
    at: datetime,
    *,
    tolerance: float = DEFAULT_KEPLER_TOLERANCE_RAD,
    max_iterations: int = DEFAULT_KEPLER_MAX_ITERATIONS,
) -> StateVector:
    """Propagate an element set to a single time.

    ``at`` may lie before or after the epoch. Accuracy of the underlying
    elements degrades with distance from epoch; refresh them from catalog
    data periodically.

    Args:
        elements: Orbital element set.
        at: Target time (naive datetimes are taken as UTC).
        tolerance: Kepler convergence tolerance in radians.
        max_iterations: Kepler iteration cap.

    Returns:
        State vector at ``at``.

    Raises:
        PropagationError: If the elements are invalid or the Kepler solve
            does not converge.
    """
    at = as_utc(at)
    dt = (at - elements.epoch).total_seconds()
    pos, vel = _state_arrays(elements, np.array([dt], dtype=np.float64), tolerance, max_iterations)
    return StateVector(position_m=pos[0], velocity_m_s=vel[0], epoch=at)


def propagate_offsets(
    elements: OrbitalElementSet,
    reference: datetime,
    offsets_s: ArrayLike,
    *,
    tolerance: float = DEFAULT_KEPLER_TOLERANCE_RAD,
    max_iterations: int = DEFAULT_KEPLER_MAX_ITERATIONS,
) -> tuple[NDArray[np.float64], NDArray[np.float64]]:
    """Propagate one element set to many times given as offsets from ``reference``.

    Args:
        elements: Orbital element set.
        reference: Time the offsets are measured from.
        offsets_s: Offsets in seconds, shape (T,).

    Returns:
        Tuple of positions (T, 3) in m and velocities (T, 3) in m/s.

    Raises:
        PropagationError: If the elements are invalid or any solve fails.
    """
    base = (as_utc(reference) - elements.epoch).total_seconds()
    dt = base + np.asarray(offsets_s, dtype=np.float64)
    return _state_arrays(elements, dt, tolerance, max_iterations)


def propagate_batch(
    elements: Sequence[OrbitalElementSet],
    at: datetime,
    *,
    tolerance: float = DEFAULT_KEPLER_TOLERANCE_RAD,
    max_iterations: int = DEFAULT_KEPLER_MAX_ITERATIONS,
) -> tuple[NDArray[np.float64], NDArray[np.bool_]]:
    """Propagate many element sets to a single time.

    Objects that fail to propagate are logged, filled with NaN, and flagged
    in the mask rather than raising.

    Args:
        elements: Element sets to propagate.
        at: Single UTC time to propagate all objects to.

    Returns:
        Tuple of:
            - states: Array of shape (n, 6) with [x,y,z,vx,vy,vz] in m, m/s
            - valid_mask: Boolean array of shape (n,) marking successes
    """
    if not elements:
        return np.empty((0, 6), dtype=np.float64), np.empty(0, dtype=np.bool_)

    result = np.full((len(elements), 6), np.nan, dtype=np.float64)
    valid = np.zeros(len(elements), dtype=np.bool_)

    for i, item in enumerate(elements):
        try:
            state = propagate(item, at, tolerance=tolerance, max_iterations=max_iterations)
        except PropagationError as exc:
            logger.warning("Skipping catalog id %d at %s: %s", item.catalog_id, at, exc)
            continue
        result[i, 0:3] = state.position_m
        result[i, 3:6] = state.velocity_m_s
        valid[i] = True

    logger.debug("propagate_batch: %d/%d objects propagated", int(valid.sum()), len(elements))
    return result, valid


def _signed_angle(a: NDArray[np.float64], b: NDArray[np.float64], axis: NDArray[np.float64]) -> float:
    return math.atan2(float(np.dot(axis, np.cross(a, b))), float(np.dot(a, b)))


def elements_from_state(
    state: StateVector,
    catalog_id: int,
    name: str = "",
    kind: ObjectKind | str = ObjectKind.ACTIVE_SATELLITE,
    status: ObjectStatus | str = ObjectStatus.UNKNOWN,
    bstar: float = 0.0,
) -> OrbitalElementSet:
    """Recover classical elements from a Cartesian state.

    For circular orbits the argument of perigee is set to zero and the
    anomaly is measured from the node. For equatorial orbits the RAAN is
    set to zero and angles are measured from the x axis.

    Args:
        state: State vector (m, m/s).
        catalog_id: Identity for the new element set.
        name: Object name.
        kind: Object kind.
        status: Operational status.
        bstar: Drag term to carry over.

    Returns:
        An element set with ``epoch == state.epoch``.

    Raises:
        PropagationError: If the state is not a bound, non-degenerate orbit.
    """
    r = np.asarray(state.position_m, dtype=np.float64) / 1000.0
    v = np.asarray(state.velocity_m_s, dtype=np.float64) / 1000.0
    r_mag = float(np.linalg.norm(r))
    v_mag = float(np.linalg.norm(v))

    h = np.cross(r, v)
    h_mag = float(np.linalg.norm(h))
    if r_mag == 0.0 or h_mag == 0.0:
        raise PropagationError(
            f"Degenerate state for catalog id {catalog_id}: zero angular momentum",
            catalog_id=catalog_id,
        )

    energy = v_mag**2 / 2.0 - MU / r_mag
    if energy >= 0.0:
        raise PropagationError(
            f"State for catalog id {catalog_id} is not a bound orbit", catalog_id=catalog_id
        )
    a = -MU / (2.0 * energy)

    e_vec = ((v_mag**2 - MU / r_mag) * r - float(np.dot(r, v)) * v) / MU
    e = float(np.linalg.norm(e_vec))
    h_hat = h / h_mag
    inc = math.acos(max(-1.0, min(1.0, float(h_hat[2]))))

    node = np.array([-h[1], h[0], 0.0])
    node_mag = float(np.linalg.norm(node))
    if node_mag / h_mag > _DEGENERATE:
        raan = math.atan2(node[1], node[0])
        ref = node / node_mag
    else:
        raan = 0.0
        ref = np.array([1.0, 0.0, 0.0])

    if e > _DEGENERATE:
        argp = _signed_angle(ref, e_vec, h_hat)
        nu = _signed_angle(e_vec, r, h_hat)
    else:
        e = 0.0
        argp = 0.0
        nu = _signed_angle(ref, r, h_hat)

    ecc_anomaly = 2.0 * math.atan2(math.sqrt(1.0 - e) * math.sin(nu / 2.0), math.sqrt(1.0 + e) * math.cos(nu / 2.0))
    mean_anomaly = ecc_anomaly - e * math.sin(ecc_anomaly)

    return OrbitalElementSet(
        catalog_id=catalog_id,
        name=name,
        kind=kind,
        status=status,
        epoch=state.epoch,
        semi_major_axis_km=a,
        eccentricity=e,
        inclination_deg=math.degrees(inc),
        raan_deg=math.degrees(raan),
        arg_perigee_deg=math.degrees(argp),
        mean_anomaly_deg=math.degrees(mean_anomaly),
        bstar=bstar,
    )
