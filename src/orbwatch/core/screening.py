"""Conjunction screening: find close approaches between tracked objects."""
from __future__ import annotations

import logging
import math
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import Iterator, Sequence

import numpy as np
from numpy.typing import NDArray
from scipy.optimize import minimize_scalar

from orbwatch.config import ScreeningConfig
from orbwatch.core.elements import OrbitalElementSet, as_utc, filter_stale_elements
from orbwatch.core.events import ConjunctionEvent, EventObject, Provenance
from orbwatch.core.propagation import propagate_offsets
from orbwatch.errors import DuplicateObjectError, PropagationError

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ScreeningWarning:
    """A pair that was skipped without failing the screening run.

    Attributes:
        catalog_id_1: First object of the skipped pair.
        catalog_id_2: Second object of the skipped pair.
        reason: Why the pair was skipped.
    """

    catalog_id_1: int
    catalog_id_2: int
    reason: str


@dataclass
class ScreeningResult:
    """Events found by :func:`screen`, plus non-fatal per-pair warnings.

    Iterating, indexing and ``len()`` act on ``events``.
    """

    events: list[ConjunctionEvent] = field(default_factory=list)
    warnings: list[ScreeningWarning] = field(default_factory=list)
    pairs_screened: int = 0
    pairs_refined: int = 0

    def __iter__(self) -> Iterator[ConjunctionEvent]:
        return iter(self.events)

    def __len__(self) -> int:
        return len(self.events)

    def __getitem__(self, index: int) -> ConjunctionEvent:
        return self.events[index]


@dataclass(frozen=True)
class _Candidate:
    index_1: int
    index_2: int
    sample_indices: tuple[int, ...]


def _shells_overlap(first: OrbitalElementSet, second: OrbitalElementSet, margin_km: float) -> bool:
    """True if the perigee-apogee altitude bands come within ``margin_km``."""
    return (
        first.perigee_altitude_km - margin_km <= second.apogee_altitude_km
        and second.perigee_altitude_km - margin_km <= first.apogee_altitude_km
    )


def _check_unique(objects: Sequence[OrbitalElementSet]) -> None:
    seen: set[int] = set()
    for obj in objects:
        if obj.catalog_id in seen:
            raise DuplicateObjectError(obj.catalog_id)
        seen.add(obj.catalog_id)


def _event_object(obj: OrbitalElementSet, tca: datetime) -> EventObject:
    return EventObject(
        catalog_id=obj.catalog_id,
        name=obj.name,
        status=obj.status,
        kind=obj.kind,
        element_age_days=round(obj.age_days(tca), 6),
    )


def _coarse_candidates(
    positions_km: NDArray[np.float64],
    velocities_km_s: NDArray[np.float64],
    index: int,
    others: list[int],
    gate_km: float,
    step_s: float,
) -> list[_Candidate]:
    """Sampled local separation minima of ``index`` against ``others`` that pass the gate.

    Each sample's gate is padded by half a step of relative motion, since a
    fast crossing can fall between two samples.
    """
    if not others:
        return []

    rel_pos = positions_km[others] - positions_km[index]
    rel_vel = velocities_km_s[others] - velocities_km_s[index]
    dist = np.linalg.norm(rel_pos, axis=2)
    speed = np.linalg.norm(rel_vel, axis=2)

    edge = np.full((dist.shape[0], 1), np.inf)
    left = np.concatenate([edge, dist[:, :-1]], axis=1)
    right = np.concatenate([dist[:, 1:], edge], axis=1)
    mask = (dist <= left) & (dist <= right) & (dist <= gate_km + 0.5 * step_s * speed)

    candidates = []
    for row, other in enumerate(others):
        hits = np.flatnonzero(mask[row])
        if hits.size:
            candidates.append(_Candidate(index, other, tuple(int(h) for h in hits)))
    return candidates


def _refine(
    first: OrbitalElementSet,
    second: OrbitalElementSet,
    horizon_start: datetime,
    sample_offsets: Sequence[float],
    step_s: float,
    horizon_s: float,
    config: ScreeningConfig,
) -> tuple[float, float, float]:
    """Locate the smallest separation near the given coarse samples.

    Returns:
        Tuple of (tca_offset_s, range_km, relative_speed_km_s).

    Raises:
        PropagationError: If either object fails to propagate.
    """
    kwargs = {"tolerance": config.kepler_tolerance, "max_iterations": config.kepler_max_iterations}

    def states(t: float) -> tuple[NDArray[np.float64], NDArray[np.float64]]:
        p1, v1 = propagate_offsets(first, horizon_start, [t], **kwargs)
        p2, v2 = propagate_offsets(second, horizon_start, [t], **kwargs)
        return (p1[0] - p2[0]) / 1000.0, (v1[0] - v2[0]) / 1000.0

    def separation_sq(t: float) -> float:
        dp, _ = states(t)
        return float(np.dot(dp, dp))

    best_t = math.nan
    best_sq = math.inf
    for offset in sample_offsets:
        lo = min(max(0.0, offset - step_s), horizon_s)
        hi = max(min(horizon_s, offset + step_s), 0.0)
        trials = [lo, hi]
        if hi - lo > config.refine_tolerance_seconds:
            res = minimize_scalar(
                separation_sq,
                bounds=(lo, hi),
                method="bounded",
                options={"xatol": config.refine_tolerance_seconds},
            )
            trials.insert(0, float(res.x))
        for t in trials:
            value = separation_sq(t)
            if value < best_sq:
                best_sq, best_t = value, t

    _, dv = states(best_t)
    return best_t, math.sqrt(best_sq), float(np.linalg.norm(dv))


def screen(
    objects: Sequence[OrbitalElementSet],
    horizon_start: datetime,
    horizon_hours: float | None = None,
    *,
    config: ScreeningConfig | None = None,
) -> ScreeningResult:
    """Screen every pair of objects for close approaches over a horizon.

    Two phases:
    1. Coarse: all objects are sampled on a fixed grid that overlaps the
       horizon by one step at each end. Sampled local minima of pair
       separation within the (speed-padded) coarse gate become candidates.
       A perigee/apogee shell prefilter removes pairs that can never meet.
    2. Refine: each candidate is bracketed by its neighboring samples,
       clamped to the horizon, and the separation is minimized with a
       bounded Brent search. The smallest minimum per pair is reported when
       it is within ``config.report_threshold_km``.

    Objects that fail to propagate are skipped, with one warning per
    affected pair. Output is identical for any ``config.max_workers``.

    Args:
        objects: Element sets to screen. Catalog ids must be unique.
        horizon_start: Start of the screening window.
        horizon_hours: Window length in hours. Defaults to
            ``config.horizon_hours``.
        config: Screening parameters. Defaults to ``ScreeningConfig()``.

    Returns:
        A :class:`ScreeningResult` with events sorted by miss distance.

    Raises:
        DuplicateObjectError: If two objects share a catalog id.
        ValueError: If ``horizon_hours`` is not positive.
    """
    config = config or ScreeningConfig()
    if horizon_hours is None:
        horizon_hours = config.horizon_hours
    if not math.isfinite(horizon_hours) or horizon_hours <= 0:
        raise ValueError(f"horizon_hours must be positive, got {horizon_hours!r}")

    horizon_start = as_utc(horizon_start)
    objects = list(objects)
    _check_unique(objects)

    if config.max_element_age_days is not None:
        objects = filter_stale_elements(objects, config.max_element_age_days, horizon_start)

    result = ScreeningResult()
    if len(objects) < 2:
        logger.info("screen: fewer than 2 objects, nothing to screen")
        return result

    step_s = config.coarse_step_seconds
    horizon_s = horizon_hours * 3600.0
    n_steps = math.ceil(horizon_s / step_s)
    offsets = np.arange(-1, n_steps + 2, dtype=np.float64) * step_s
    gate_km = max(config.coarse_threshold_km, config.report_threshold_km)

    logger.info(
        "screen: %d objects, %.1fh window, %.0fs step, %.1fkm gate",
        len(objects), horizon_hours, step_s, gate_km,
    )

    n = len(objects)
    positions = np.full((n, offsets.size, 3), np.nan, dtype=np.float64)
    velocities = np.full((n, offsets.size, 3), np.nan, dtype=np.float64)
    failures: dict[int, str] = {}
    for i, obj in enumerate(objects):
        try:
            pos, vel = propagate_offsets(
                obj,
                horizon_start,
                offsets,
                tolerance=config.kepler_tolerance,
                max_iterations=config.kepler_max_iterations,
            )
        except PropagationError as exc:
            logger.warning("screen: skipping catalog id %d: %s", obj.catalog_id, exc)
            failures[i] = str(exc)
            continue
        positions[i] = pos / 1000.0
        velocities[i] = vel / 1000.0

    candidates: list[_Candidate] = []
    for i in range(n):
        others = []
        for j in range(i + 1, n):
            if i in failures or j in failures:
                reason = failures.get(i) or failures[j]
                result.warnings.append(
                    ScreeningWarning(objects[i].catalog_id, objects[j].catalog_id, reason)
                )
                continue
            if _shells_overlap(objects[i], objects[j], gate_km):
                others.append(j)
        result.pairs_screened += len(others)
        candidates.extend(_coarse_candidates(positions, velocities, i, others, gate_km, step_s))

    result.pairs_refined = len(candidates)
    logger.debug(
        "screen: %d pairs sampled, %d survive the coarse gate", result.pairs_screened, len(candidates)
    )

    def refine(candidate: _Candidate) -> tuple[float, float, float] | ScreeningWarning:
        first, second = objects[candidate.index_1], objects[candidate.index_2]
        try:
            return _refine(
                first,
                second,
                horizon_start,
                [float(offsets[k]) for k in candidate.sample_indices],
                step_s,
                horizon_s,
                config,
            )
        except PropagationError as exc:
            return ScreeningWarning(first.catalog_id, second.catalog_id, str(exc))

    if config.max_workers > 1 and len(candidates) > 1:
        with ThreadPoolExecutor(max_workers=config.max_workers) as pool:
            refined = list(pool.map(refine, candidates))
    else:
        refined = [refine(c) for c in candidates]

    for candidate, outcome in zip(candidates, refined):
        if isinstance(outcome, ScreeningWarning):
            logger.warning(
                "screen: refinement failed for %d/%d: %s",
                outcome.catalog_id_1, outcome.catalog_id_2, outcome.reason,
            )
            result.warnings.append(outcome)
            continue
        t, range_km, speed_km_s = outcome
        if range_km > config.report_threshold_km:
            continue
        first, second = objects[candidate.index_1], objects[candidate.index_2]
        tca = horizon_start + timedelta(seconds=t)
        result.events.append(
            ConjunctionEvent(
                object1=_event_object(first, tca),
                object2=_event_object(second, tca),
                tca=tca,
                range_m=range_km * 1000.0,
                relative_speed_m_s=speed_km_s * 1000.0,
                provenance=Provenance.LOCAL,
            )
        )

    result.events.sort(key=lambda ev: ev.range_m)
    logger.info(
        "screen: found %d conjunctions (%d warnings)", len(result.events), len(result.warnings)
    )
    return result
