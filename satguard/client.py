import logging
from datetime import datetime, timezone
from typing import Any, List, Optional

import httpx

from .schemas import DebrisElement, KpReading
from .settings import settings

logger = logging.getLogger(__name__)


class FeedError(RuntimeError):
    """An upstream feed answered, but not with anything usable."""


def _norad_from_line1(line1: str) -> Optional[int]:
    try:
        return int(line1[2:7].strip())
    except ValueError:
        return None


def parse_tle_catalog(text: str, limit: Optional[int] = None) -> List[DebrisElement]:
    """
    Parse repeating name / line 1 / line 2 groups.

    Groups whose element lines don't start with "1 " and "2 " are skipped
    one line at a time until the stream lines up again.
    """
    lines = [ln.strip() for ln in text.splitlines() if ln.strip()]
    records: List[DebrisElement] = []

    i = 0
    while i + 2 < len(lines):
        nm, l1, l2 = lines[i], lines[i + 1], lines[i + 2]
        if l1.startswith("1 ") and l2.startswith("2 "):
            records.append(
                DebrisElement(name=nm, line1=l1, line2=l2, norad_id=_norad_from_line1(l1))
            )
            if limit is not None and len(records) >= limit:
                break
            i += 3
        else:
            i += 1
    return records


def _http_client() -> httpx.AsyncClient:
    return httpx.AsyncClient(
        timeout=settings.http_timeout_s,
        headers={"User-Agent": settings.user_agent},
        follow_redirects=True,
    )


async def _get(url: str, params: Optional[dict], http: Optional[httpx.AsyncClient]) -> httpx.Response:
    owns_client = http is None
    http = http or _http_client()
    try:
        resp = await http.get(url, params=params)
        if resp.status_code != 200:
            raise FeedError(f"Upstream {url} -> {resp.status_code}: {resp.text[:200]}")
        return resp
    finally:
        if owns_client:
            await http.aclose()


async def fetch_celestrak_group(group: str, limit: int,
                                http: Optional[httpx.AsyncClient] = None) -> List[DebrisElement]:
    if not group:
        raise ValueError("CelesTrak group name must not be empty")
    resp = await _get(settings.celestrak_gp_url, {"GROUP": group, "FORMAT": "tle"}, http)
    logger.info("Received %d bytes of TLE data for group %s", len(resp.text), group)
    records = parse_tle_catalog(resp.text, limit=limit)
    if not records:
        raise FeedError(f"No valid TLE data parsed for group '{group}'")
    logger.info("Loaded %d TLEs from CelesTrak group %s", len(records), group)
    return records


async def fetch_debris_catalog(group: Optional[str] = None, limit: Optional[int] = None,
                               http: Optional[httpx.AsyncClient] = None) -> List[DebrisElement]:
    return await fetch_celestrak_group(
        group or settings.debris_group,
        limit or settings.debris_limit,
        http=http,
    )


async def fetch_active_catalog(limit: int = 10,
                               http: Optional[httpx.AsyncClient] = None) -> List[DebrisElement]:
    return await fetch_celestrak_group(settings.active_group, limit, http=http)


def _parse_time_tag(raw: Any, default: datetime) -> datetime:
    if not raw:
        return default
    tag = datetime.fromisoformat(str(raw).replace("Z", "+00:00"))
    if tag.tzinfo is None:
        tag = tag.replace(tzinfo=timezone.utc)
    return tag


def parse_kp_feed(payload: Any, fetched_at: Optional[datetime] = None) -> Optional[KpReading]:
    """
    Latest reading of the NOAA planetary Kp feed, or None for an empty feed.

    The index is read from ``kp_index``, falling back to ``kp``.
    """
    fetched_at = fetched_at or datetime.now(timezone.utc)
    if not isinstance(payload, list):
        raise FeedError("Kp feed is not a JSON array")
    if not payload:
        return None
    latest = payload[-1]
    if not isinstance(latest, dict):
        raise FeedError("Kp feed entry is not an object")
    kp = latest.get("kp_index")
    if kp is None:
        kp = latest.get("kp")
    if kp is None:
        raise FeedError("Kp feed entry has no kp_index or kp field")
    try:
        return KpReading(kp=float(kp), time_tag=_parse_time_tag(latest.get("time_tag"), fetched_at))
    except (TypeError, ValueError) as e:
        raise FeedError(f"Unusable Kp feed entry: {e}") from e


async def fetch_kp_reading(http: Optional[httpx.AsyncClient] = None) -> Optional[KpReading]:
    resp = await _get(settings.kp_url, None, http)
    try:
        payload = resp.json()
    except ValueError as e:
        raise FeedError(f"Kp feed returned invalid JSON: {e}") from e
    return parse_kp_feed(payload)
