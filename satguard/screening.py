from __future__ import annotations

import logging
import math
from dataclasses import dataclass
from datetime import datetime
from typing import List, Optional, Sequence

import numpy as np

from .propagation import build_satrec, debris_track, julian_dates, time_steps, user_position
from .schemas import DebrisElement, Severity, UserOrbit
from .settings import settings

logger = logging.getLogger(__name__)

DEMO_THRESHOLD_KM = 500.0


@dataclass(frozen=True)
class ScreeningPolicy:
    horizon_s: float = 2 * 3600.0
    step_s: float = 300.0
    threshold_km: float = 100.0
    high_km: float = 5.0
    medium_km: float = 25.0
    max_position_evaluations: int = 2_000_000

    def __post_init__(self):
        if not self.step_s > 0:
            raise ValueError(f"step_s must be positive, got {self.step_s}")
        if not self.horizon_s >= 0:
            raise ValueError(f"horizon_s must not be negative, got {self.horizon_s}")

    @classmethod
    def from_settings(cls, s=None) -> "ScreeningPolicy":
        s = s or settings
        return cls(
            horizon_s=s.horizon_hours * 3600.0,
            step_s=s.step_s,
            threshold_km=s.threshold_km,
            high_km=s.high_km,
            medium_km=s.medium_km,
            max_position_evaluations=s.max_position_evaluations,
        )

    @classmethod
    def demo(cls) -> "ScreeningPolicy":
        # Tier boundaries stay at 5/25 km in demo mode, so most flagged
        # events land in LOW or MEDIUM.
        return cls(threshold_km=DEMO_THRESHOLD_KM)

    @property
    def horizon_hours(self) -> float:
        return self.horizon_s / 3600.0


@dataclass(frozen=True)
class ConjunctionResult:
    satellite_name: str
    min_distance_km: float
    time_of_closest_approach: datetime

    @property
    def has_data(self) -> bool:
        return math.isfinite(self.min_distance_km)


def sample_times(now: datetime, policy: ScreeningPolicy) -> List[datetime]:
    """Sample instants from now to now + horizon, both ends included."""
    return time_steps(now, policy.horizon_s / 60.0, policy.step_s)


def classify_severity(distance_km: float, policy: ScreeningPolicy) -> Optional[Severity]:
    """Severity tier for a miss distance, or None at/above the threshold."""
    if not distance_km < policy.threshold_km:
        return None
    if distance_km < policy.high_km:
        return Severity.HIGH
    if distance_km < policy.medium_km:
        return Severity.MEDIUM
    return Severity.LOW


def _closest(
    orbit: UserOrbit,
    elapsed: np.ndarray,
    debris_positions: np.ndarray,
    times: Sequence[datetime],
) -> ConjunctionResult:
    """Minimum user-to-debris distance over a (T, D, 3) position block."""
    user = user_position(orbit, elapsed)  # (T, 3)
    if debris_positions.shape[1] == 0:
        return ConjunctionResult(orbit.name, math.inf, times[0])

    dists = np.linalg.norm(debris_positions - user[:, None, :], axis=-1)  # (T, D)
    finite = np.isfinite(dists)
    if not finite.any():
        return ConjunctionResult(orbit.name, math.inf, times[0])

    # row-major argmin: earliest time first, then catalogue order
    flat = np.where(finite, dists, np.inf).ravel()
    idx = int(np.argmin(flat))
    t_idx = idx // dists.shape[1]
    return ConjunctionResult(orbit.name, float(flat[idx]), times[t_idx])


def screen(
    user_orbits: Sequence[UserOrbit],
    debris: Sequence[DebrisElement],
    now: datetime,
    policy: Optional[ScreeningPolicy] = None,
) -> List[ConjunctionResult]:
    """
    Closest approach of every user orbit to any debris element over the horizon.

    One result per user orbit, in input order. Debris positions are shared
    across satellites; elements that fail to propagate at an instant are
    skipped for that instant only.
    """
    policy = policy or ScreeningPolicy.from_settings()
    if not user_orbits:
        return []

    times = sample_times(now, policy)
    evaluations = len(user_orbits) * len(debris) * len(times)
    if evaluations > policy.max_position_evaluations:
        logger.warning(
            "Screening %d satellites x %d debris x %d samples = %d evaluations "
            "exceeds budget of %d",
            len(user_orbits), len(debris), len(times), evaluations,
            policy.max_position_evaluations,
        )
    logger.info(
        "Screening %d satellites against %d debris objects over %.1fh horizon",
        len(user_orbits), len(debris), policy.horizon_hours,
    )

    jd, fr = julian_dates(times)
    debris_positions = np.full((len(times), len(debris), 3), np.nan)
    for j, element in enumerate(debris):
        debris_positions[:, j, :] = debris_track(build_satrec(element), jd, fr)

    elapsed = np.array([(t - now).total_seconds() for t in times])
    results = []
    for orbit in user_orbits:
        result = _closest(orbit, elapsed, debris_positions, times)
        logger.info(
            "%s: closest approach %.2f km at %s",
            orbit.name, result.min_distance_km, result.time_of_closest_approach.isoformat(),
        )
        results.append(result)
    return results
