from __future__ import annotations

from typing import Iterable, List, Optional

from .schemas import KpReading, Severity, Threat, ThreatKind
from .screening import ConjunctionResult, ScreeningPolicy, classify_severity
from .settings import settings

STORM_ACTION = "Enter safe mode and shut down non-critical systems."


def conjunction_action(severity: Severity, policy: ScreeningPolicy) -> str:
    if severity is Severity.HIGH:
        return "CRITICAL: Perform 0.5 m/s radial-out burn at T-20 min. Notify ground control."
    if severity is Severity.MEDIUM:
        return "Plan 0.2 m/s prograde burn at next opportunity to increase separation."
    return (
        "Monitor trajectory; prepare contingency if distance drops below "
        f"{policy.medium_km:g} km."
    )


def conjunction_threat(
    result: ConjunctionResult, policy: Optional[ScreeningPolicy] = None
) -> Optional[Threat]:
    """Threat record for a screening result, or None if it is not below threshold."""
    policy = policy or ScreeningPolicy.from_settings()
    severity = classify_severity(result.min_distance_km, policy)
    if severity is None:
        return None
    return Threat(
        kind=ThreatKind.CONJUNCTION,
        occurs_at=result.time_of_closest_approach,
        severity=severity,
        description=(
            f"Close approach predicted for {result.satellite_name} "
            f"(miss distance ≈ {result.min_distance_km:.1f} km) "
            f"within {policy.horizon_hours:g}h."
        ),
        suggested_action=conjunction_action(severity, policy),
        satellite_name=result.satellite_name,
    )


def storm_severity(kp: float, medium: Optional[float] = None, high: Optional[float] = None) -> Optional[Severity]:
    medium = settings.kp_medium if medium is None else medium
    high = settings.kp_high if high is None else high
    if kp >= high:
        return Severity.HIGH
    if kp >= medium:
        return Severity.MEDIUM
    return None


def storm_threat(reading: Optional[KpReading]) -> Optional[Threat]:
    """Geomagnetic storm threat for the latest Kp reading, None in quiet conditions."""
    if reading is None:
        return None
    severity = storm_severity(reading.kp)
    if severity is None:
        return None
    return Threat(
        kind=ThreatKind.GEOMAGNETIC_STORM,
        occurs_at=reading.time_tag,
        severity=severity,
        description=f"Elevated geomagnetic activity detected (Kp={reading.kp:g}).",
        suggested_action=STORM_ACTION,
    )


def build_threats(
    conjunction_results: Iterable[ConjunctionResult],
    kp_check: Optional[Threat],
    policy: Optional[ScreeningPolicy] = None,
) -> List[Threat]:
    """
    Merge the storm check and conjunction threats.

    Storm threat first, then one entry per result below threshold, in
    result order. No deduplication across kinds or satellites.
    """
    threats: List[Threat] = []
    if kp_check is not None:
        threats.append(kp_check)
    for result in conjunction_results:
        threat = conjunction_threat(result, policy)
        if threat is not None:
            threats.append(threat)
    return threats


def highest_severity(threats: Iterable[Threat]) -> Optional[Severity]:
    """Most severe level among threats, None for an empty list."""
    return max((t.severity for t in threats), key=lambda s: s.rank, default=None)
