"""Host-facing configuration for screening and feed polling.

Both configs are immutable pydantic models. A host typically builds them
once from its own settings source with :meth:`ScreeningConfig.from_mapping`
and passes them into every cycle. String values (as read from environment
variables or INI files) are coerced to the field types.
"""

from __future__ import annotations

from typing import Annotated, Any, Mapping, Optional

from pydantic import BaseModel, ConfigDict, Field, HttpUrl, PositiveInt, ValidationError, model_validator

from orbwatch.errors import ConfigurationError
from orbwatch.utils.constants import (
    DEFAULT_COARSE_STEP_SECONDS,
    DEFAULT_COARSE_THRESHOLD_KM,
    DEFAULT_FEED_TIMEOUT_SECONDS,
    DEFAULT_HORIZON_HOURS,
    DEFAULT_KEPLER_MAX_ITERATIONS,
    DEFAULT_KEPLER_TOLERANCE_RAD,
    DEFAULT_REFINE_TOLERANCE_SECONDS,
    DEFAULT_REPORT_THRESHOLD_KM,
    KEEPTRACK_SOCRATES_URL,
    SOCRATES_CSV_URL,
)

PositiveFloat = Annotated[float, Field(gt=0, allow_inf_nan=False)]


def _describe(exc: ValidationError) -> str:
    parts = []
    for error in exc.errors():
        loc = ".".join(str(p) for p in error["loc"])
        parts.append(f"{loc}: {error['msg']}" if loc else error["msg"])
    return "; ".join(parts)


class _FrozenConfig(BaseModel):
    model_config = ConfigDict(frozen=True, extra="forbid", validate_default=True)

    def __init__(self, **data: Any) -> None:
        try:
            super().__init__(**data)
        except ValidationError as exc:
            raise ConfigurationError(f"Invalid {type(self).__name__}: {_describe(exc)}") from None

    @classmethod
    def from_mapping(cls, mapping: Mapping[str, Any]):
        """Build a config from a plain mapping, rejecting unknown keys.

        Raises:
            ConfigurationError: On unknown keys or invalid values.
        """
        try:
            return cls.model_validate(dict(mapping))
        except ValidationError as exc:
            raise ConfigurationError(f"Invalid {cls.__name__}: {_describe(exc)}") from None


class ScreeningConfig(_FrozenConfig):
    """Parameters of the coarse/refine conjunction screen.

    Attributes:
        horizon_hours: Screening window length in hours.
        coarse_step_seconds: Sampling step of the coarse phase.
        coarse_threshold_km: Coarse gate on sampled separation. Each sample
            is additionally padded by half a step of relative motion.
        report_threshold_km: Largest refined miss distance reported.
        refine_tolerance_seconds: TCA precision of the refinement search.
        kepler_tolerance: Convergence tolerance of the Kepler solve (rad).
        kepler_max_iterations: Newton iteration cap of the Kepler solve.
        max_workers: Threads used for pair refinement. 1 runs serially.
        max_element_age_days: If set, element sets older than this at the
            horizon start are left out of the screen.
    """

    horizon_hours: PositiveFloat = DEFAULT_HORIZON_HOURS
    coarse_step_seconds: PositiveFloat = DEFAULT_COARSE_STEP_SECONDS
    coarse_threshold_km: PositiveFloat = DEFAULT_COARSE_THRESHOLD_KM
    report_threshold_km: PositiveFloat = DEFAULT_REPORT_THRESHOLD_KM
    refine_tolerance_seconds: PositiveFloat = DEFAULT_REFINE_TOLERANCE_SECONDS
    kepler_tolerance: PositiveFloat = DEFAULT_KEPLER_TOLERANCE_RAD
    kepler_max_iterations: PositiveInt = DEFAULT_KEPLER_MAX_ITERATIONS
    max_workers: PositiveInt = 1
    max_element_age_days: Optional[PositiveFloat] = None

    @model_validator(mode="after")
    def check_step_within_horizon(self) -> ScreeningConfig:
        if self.coarse_step_seconds > self.horizon_hours * 3600.0:
            raise ValueError(
                f"coarse_step_seconds ({self.coarse_step_seconds}) exceeds the "
                f"horizon ({self.horizon_hours} h)"
            )
        return self

    def with_horizon(self, horizon_hours: float) -> ScreeningConfig:
        """Return a copy with a different horizon length."""
        return type(self)(**{**self.model_dump(), "horizon_hours": horizon_hours})


class FeedConfig(_FrozenConfig):
    """Endpoints and timeout for the external conjunction feeds."""

    socrates_url: HttpUrl = SOCRATES_CSV_URL
    keeptrack_url: HttpUrl = KEEPTRACK_SOCRATES_URL
    timeout_seconds: PositiveFloat = DEFAULT_FEED_TIMEOUT_SECONDS
