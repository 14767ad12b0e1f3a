"""One threat refresh cycle: fetch feeds concurrently, screen, aggregate."""
from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import List, Optional, Sequence

import httpx

from . import client
from .schemas import DebrisElement, Severity, Threat, UserOrbit
from .screening import ConjunctionResult, ScreeningPolicy, screen
from .threats import build_threats, highest_severity, storm_threat

logger = logging.getLogger(__name__)

FEED_ERRORS = (client.FeedError, httpx.HTTPError, ValueError)


@dataclass
class RefreshReport:
    now: datetime
    threats: List[Threat] = field(default_factory=list)
    conjunctions: List[ConjunctionResult] = field(default_factory=list)
    diagnostics: List[str] = field(default_factory=list)
    fetched_debris: Optional[List[DebrisElement]] = None


async def _cached(value):
    return value


async def refresh_threats(
    user_orbits: Sequence[UserOrbit],
    debris: Optional[Sequence[DebrisElement]] = None,
    now: Optional[datetime] = None,
    policy: Optional[ScreeningPolicy] = None,
    http: Optional[httpx.AsyncClient] = None,
) -> RefreshReport:
    """
    Build the current threat list.

    ``debris`` is a pre-fetched catalogue; when it is None the catalogue is
    downloaded alongside the Kp reading. Either source failing only removes
    the threats it would have contributed and adds a diagnostic.
    """
    now = now or datetime.now(timezone.utc)
    policy = policy or ScreeningPolicy.from_settings()
    report = RefreshReport(now=now)

    debris_task = (
        _cached(list(debris)) if debris is not None else client.fetch_debris_catalog(http=http)
    )
    kp_result, debris_result = await asyncio.gather(
        client.fetch_kp_reading(http=http), debris_task, return_exceptions=True
    )

    kp_threat = None
    if isinstance(kp_result, BaseException):
        _note(report, "Geomagnetic index unavailable", kp_result)
    else:
        kp_threat = storm_threat(kp_result)

    catalogue: List[DebrisElement] = []
    if isinstance(debris_result, BaseException):
        _note(report, "Debris catalogue unavailable", debris_result)
    else:
        catalogue = debris_result
        if debris is None:
            report.fetched_debris = catalogue

    if not user_orbits:
        logger.info("No user satellites - skipping conjunction screening")
    elif not catalogue:
        if not isinstance(debris_result, BaseException):
            report.diagnostics.append("No debris available - conjunction screening skipped")
        logger.info("No debris available - skipping conjunction screening")
    else:
        report.conjunctions = await asyncio.to_thread(
            screen, list(user_orbits), catalogue, now, policy
        )

    report.threats = build_threats(report.conjunctions, kp_threat, policy)
    worst = highest_severity(report.threats)
    if worst is Severity.HIGH:
        logger.warning("HIGH severity threat in current refresh")
    logger.info("Total threats detected: %d", len(report.threats))
    return report


def _note(report: RefreshReport, what: str, exc: BaseException) -> None:
    if not isinstance(exc, FEED_ERRORS):
        raise exc
    logger.warning("%s: %s", what, exc)
    report.diagnostics.append(f"{what}: {exc}")
