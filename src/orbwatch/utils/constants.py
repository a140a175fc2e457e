from __future__ import annotations

"""Physical constants and default thresholds for propagation and screening.

Distances in km unless the name says otherwise.
"""

# --- Earth parameters (WGS-84) ---
EARTH_RADIUS_KM: float = 6378.137
"""Equatorial radius of Earth in km."""

EARTH_MU_KM3_S2: float = 398600.4418
"""Earth gravitational parameter (GM) in km³/s²."""

SECONDS_PER_DAY: float = 86400.0

# --- Kepler solver ---
DEFAULT_KEPLER_TOLERANCE_RAD: float = 1e-8
"""Newton iteration stops once the eccentric anomaly update is below this."""

DEFAULT_KEPLER_MAX_ITERATIONS: int = 50

# --- Default screening parameters ---
DEFAULT_HORIZON_HOURS: float = 24.0
"""Rolling screening window in hours."""

DEFAULT_COARSE_STEP_SECONDS: float = 60.0
"""Coarse sampling step in seconds."""

DEFAULT_COARSE_THRESHOLD_KM: float = 50.0
"""Coarse gate on sampled separation, before relative-speed padding."""

DEFAULT_REPORT_THRESHOLD_KM: float = 10.0
"""Largest refined miss distance that is reported as an event, in km."""

DEFAULT_REFINE_TOLERANCE_SECONDS: float = 1e-3
"""Time precision of TCA refinement in seconds."""

# --- Risk thresholds ---
MAGNITUDE_PROBABILITY_THRESHOLDS: tuple[float, float, float] = (1e-6, 1e-5, 1e-4)
"""Medium/high/critical lower bounds for true collision probability."""

NORMALIZED_PROBABILITY_THRESHOLDS: tuple[float, float, float] = (0.05, 0.2, 0.5)
"""Medium/high/critical lower bounds for a normalized blended score."""

RANGE_THRESHOLDS_M: tuple[float, float, float] = (5000.0, 1000.0, 500.0)
"""Medium/high/critical upper bounds on miss distance in meters."""

# --- External feeds ---
SOCRATES_CSV_URL: str = "https://celestrak.org/SOCRATES/sort-minRange.csv"
"""CelesTrak SOCRATES report sorted by minimum range."""

KEEPTRACK_SOCRATES_URL: str = "https://api.keeptrack.space/v2/socrates/latest"
"""KeepTrack SOCRATES JSON endpoint."""

DEFAULT_FEED_TIMEOUT_SECONDS: float = 10.0
