"""
orbwatch: orbital propagation and conjunction screening for Python.

Propagates tracked satellites and debris from their orbital elements,
screens every pair for close approaches, and classifies locally screened
and externally reported conjunctions into one ordinal risk scale.
"""

from __future__ import annotations

__version__ = "0.1.0"

from orbwatch.config import FeedConfig, ScreeningConfig
from orbwatch.core.elements import (
    ObjectKind,
    ObjectStatus,
    OrbitalElementSet,
    filter_stale_elements,
    parse_tle,
)
from orbwatch.core.propagation import (
    StateVector,
    elements_from_state,
    propagate,
    propagate_batch,
    solve_kepler,
)
from orbwatch.core.screening import ScreeningResult, ScreeningWarning, screen
from orbwatch.core.risk import (
    ProbabilityConvention,
    RiskBand,
    RiskSignal,
    classify,
    classify_probability,
    classify_range,
    risk_color,
    worst_of,
)
from orbwatch.core.events import (
    ConjunctionEvent,
    EventObject,
    Provenance,
    count_by_band,
    filter_events,
    sort_events,
)
from orbwatch.core.monitor import detect_conjunctions, merge_events, propagate_all
from orbwatch.data.normalize import FeedResult
from orbwatch.data.socrates import parse_socrates_csv
from orbwatch.data.keeptrack import parse_keeptrack_records
from orbwatch.data.feeds import FeedClient
from orbwatch.errors import (
    AmbiguousProbabilityError,
    ConfigurationError,
    DuplicateObjectError,
    FeedUnavailableError,
    MalformedRecordError,
    OrbwatchError,
    PropagationError,
)

__all__ = [
    "__version__",
    "FeedConfig",
    "ScreeningConfig",
    "ObjectKind",
    "ObjectStatus",
    "OrbitalElementSet",
    "filter_stale_elements",
    "parse_tle",
    "StateVector",
    "elements_from_state",
    "propagate",
    "propagate_batch",
    "solve_kepler",
    "ScreeningResult",
    "ScreeningWarning",
    "screen",
    "ProbabilityConvention",
    "RiskBand",
    "RiskSignal",
    "classify",
    "classify_probability",
    "classify_range",
    "risk_color",
    "worst_of",
    "ConjunctionEvent",
    "EventObject",
    "Provenance",
    "count_by_band",
    "filter_events",
    "sort_events",
    "detect_conjunctions",
    "merge_events",
    "propagate_all",
    "FeedResult",
    "parse_socrates_csv",
    "parse_keeptrack_records",
    "FeedClient",
    "AmbiguousProbabilityError",
    "ConfigurationError",
    "DuplicateObjectError",
    "FeedUnavailableError",
    "MalformedRecordError",
    "OrbwatchError",
    "PropagationError",
]
