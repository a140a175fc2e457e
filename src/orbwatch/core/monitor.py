"""Helpers a host process calls each refresh cycle.

None of these hold state between calls; the host decides the cadence
(positions often, screening less often, feeds independently).
"""
from __future__ import annotations

import logging
from datetime import datetime
from typing import Iterable, Sequence

from orbwatch.config import ScreeningConfig
from orbwatch.core.elements import OrbitalElementSet, as_utc
from orbwatch.core.events import ConjunctionEvent, sort_events
from orbwatch.core.propagation import StateVector, propagate_batch
from orbwatch.core.screening import ScreeningResult, screen

logger = logging.getLogger(__name__)


def propagate_all(
    objects: Sequence[OrbitalElementSet],
    at: datetime,
    config: ScreeningConfig | None = None,
) -> tuple[dict[int, StateVector], list[int]]:
    """Propagate every tracked object to ``at``.

    Args:
        objects: Element sets to propagate.
        at: Target time, typically "now".
        config: Supplies the Kepler tolerance and iteration cap.

    Returns:
        Tuple of (states keyed by catalog id, catalog ids that failed).
    """
    config = config or ScreeningConfig()
    at = as_utc(at)
    states, valid = propagate_batch(
        objects,
        at,
        tolerance=config.kepler_tolerance,
        max_iterations=config.kepler_max_iterations,
    )

    positions: dict[int, StateVector] = {}
    failed: list[int] = []
    for obj, row, ok in zip(objects, states, valid):
        if not ok:
            failed.append(obj.catalog_id)
            continue
        positions[obj.catalog_id] = StateVector(
            position_m=row[0:3].copy(), velocity_m_s=row[3:6].copy(), epoch=at
        )
    return positions, failed


def detect_conjunctions(
    satellites: Iterable[OrbitalElementSet],
    debris: Iterable[OrbitalElementSet],
    start: datetime,
    horizon_hours: float | None = None,
    config: ScreeningConfig | None = None,
) -> ScreeningResult:
    """Screen satellites and debris together in one pass.

    Every pair is considered: satellite-satellite, satellite-debris and
    debris-debris.

    Raises:
        DuplicateObjectError: If a catalog id appears more than once across
            both inputs.
    """
    objects = list(satellites) + list(debris)
    return screen(objects, start, horizon_hours, config=config)


def merge_events(*sources: Iterable[ConjunctionEvent], by: str = "risk") -> list[ConjunctionEvent]:
    """Concatenate local and external events and sort them for display.

    Events from different sources are kept side by side, never merged into
    one another, since they carry different probability conventions.
    """
    merged = [event for source in sources for event in source]
    logger.debug("merge_events: %d events from %d sources", len(merged), len(sources))
    return sort_events(merged, by=by)
