"""Orbit propagation for user satellites (analytic Kepler) and debris (SGP4).

User orbits use a deliberately low-fidelity model:

* the eccentric anomaly comes from a single first-order correction
  ``E = M + e sin M`` instead of an iterative Kepler solve, which is only
  valid for small eccentricity (e < 0.1) and horizons of a few hours;
* right ascension of the ascending node and argument of perigee are both
  taken as zero, so the orbit is rotated by inclination alone.
"""
from __future__ import annotations

import logging
import math
from datetime import datetime, timedelta, timezone
from typing import List, Optional, Sequence, Tuple

import numpy as np
from sgp4.api import Satrec, jday

from .schemas import DebrisElement, UserOrbit

logger = logging.getLogger(__name__)

MU_EARTH = 398600.4418  # km^3/s^2
MAX_ECCENTRICITY = 0.1
MIN_TLE_LINE_LENGTH = 64


def mean_motion(semi_major_axis_km: float) -> float:
    """Mean motion in rad/s."""
    return math.sqrt(MU_EARTH / semi_major_axis_km**3)


def orbital_period(orbit: UserOrbit) -> float:
    return 2.0 * math.pi / mean_motion(orbit.semi_major_axis_km)


def user_position(orbit: UserOrbit, seconds: float | np.ndarray) -> np.ndarray:
    """
    ECI position (km) of a user satellite ``seconds`` after the reference epoch.

    Accepts a scalar (returns shape (3,)) or an array of elapsed times
    (returns shape (N, 3)).
    """
    a = orbit.semi_major_axis_km
    e = min(max(orbit.eccentricity, 0.0), MAX_ECCENTRICITY)
    inc = math.radians(orbit.inclination_deg)

    M = mean_motion(a) * np.asarray(seconds, dtype=float)
    E = M + e * np.sin(M)

    x_op = a * (np.cos(E) - e)
    y_op = a * math.sqrt(1.0 - e * e) * np.sin(E)
    return np.stack([x_op, y_op * math.cos(inc), y_op * math.sin(inc)], axis=-1)


def julian_date(when: datetime) -> Tuple[float, float]:
    """Split Julian date (whole, fraction) for a timestamp; naive means UTC."""
    if when.tzinfo is None:
        when = when.replace(tzinfo=timezone.utc)
    when = when.astimezone(timezone.utc)
    return jday(
        when.year, when.month, when.day,
        when.hour, when.minute, when.second + when.microsecond / 1e6,
    )


def julian_dates(times: Sequence[datetime]) -> Tuple[np.ndarray, np.ndarray]:
    pairs = [julian_date(t) for t in times]
    jd = np.array([p[0] for p in pairs], dtype=float)
    fr = np.array([p[1] for p in pairs], dtype=float)
    return jd, fr


def build_satrec(element: DebrisElement) -> Optional[Satrec]:
    """Parse an element set, or None if it is malformed or SGP4 rejects it."""
    line1, line2 = element.line1.rstrip(), element.line2.rstrip()
    if not (line1.startswith("1 ") and line2.startswith("2 ")
            and len(line1) >= MIN_TLE_LINE_LENGTH and len(line2) >= MIN_TLE_LINE_LENGTH):
        logger.debug("Malformed TLE lines for %s", element.name)
        return None
    try:
        sat = Satrec.twoline2rv(element.line1, element.line2)
    except (ValueError, IndexError, RuntimeError) as exc:
        logger.debug("Could not parse TLE for %s: %s", element.name, exc)
        return None
    if sat.error != 0:
        logger.debug("SGP4 init failed for %s (code %s)", element.name, sat.error)
        return None
    return sat


def debris_track(sat: Optional[Satrec], jd: np.ndarray, fr: np.ndarray) -> np.ndarray:
    """
    Positions (km, TEME) at each Julian date as an (N, 3) array.

    Instants where propagation fails are NaN rows; a missing satrec gives
    an all-NaN track.
    """
    positions = np.full((len(jd), 3), np.nan)
    if sat is None or len(jd) == 0:
        return positions
    err, r, _ = sat.sgp4_array(jd, fr)
    ok = (err == 0) & np.all(np.isfinite(r), axis=1)
    positions[ok] = r[ok]
    return positions


def debris_position(element: DebrisElement, at: datetime) -> Optional[np.ndarray]:
    """Position (km) of a debris element at an absolute time, None on failure."""
    sat = build_satrec(element)
    if sat is None:
        return None
    jd, fr = julian_date(at)
    err, r, _ = sat.sgp4(jd, fr)
    if err != 0 or not all(math.isfinite(c) for c in r):
        return None
    return np.array(r, dtype=float)


def tle_to_user_orbit(element: DebrisElement) -> UserOrbit:
    """
    Mean Keplerian elements of a TLE as a UserOrbit.

    Raises ValueError when the lines can't be parsed and pydantic's
    ValidationError when the derived orbit is not physical.
    """
    sat = build_satrec(element)
    if sat is None:
        raise ValueError(f"Invalid TLE for {element.name}")
    n_rad_s = sat.no_kozai / 60.0
    if not (math.isfinite(n_rad_s) and n_rad_s > 0.0):
        raise ValueError(f"Invalid mean motion in TLE for {element.name}")
    a = (MU_EARTH / n_rad_s**2) ** (1.0 / 3.0)
    return UserOrbit(
        name=element.name,
        semi_major_axis_km=a,
        eccentricity=sat.ecco,
        inclination_deg=math.degrees(sat.inclo),
    )


def time_steps(start: datetime, minutes: float, step_s: float) -> List[datetime]:
    """Timestamps from start to start + minutes inclusive, step_s apart."""
    num_steps = int(math.floor(minutes * 60.0 / step_s + 1e-9)) + 1
    return [start + timedelta(seconds=i * step_s) for i in range(num_steps)]


def orbit_track(orbit: UserOrbit, start: datetime, minutes: float, step_s: float):
    times = time_steps(start, minutes, step_s)
    elapsed = np.array([(t - start).total_seconds() for t in times])
    return times, user_position(orbit, elapsed)


def element_track(element: DebrisElement, start: datetime, minutes: float, step_s: float):
    times = time_steps(start, minutes, step_s)
    jd, fr = julian_dates(times)
    return times, debris_track(build_satrec(element), jd, fr)
