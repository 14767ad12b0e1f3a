import logging
from dataclasses import replace
from datetime import datetime, timezone
from typing import List, Optional

import numpy as np
from fastapi import FastAPI, HTTPException, Query
from fastapi.middleware.cors import CORSMiddleware
from pydantic import ValidationError

from .settings import settings
from . import client
from .schemas import (
    ActionLogEntry,
    ConjunctionOut,
    HealthResponse,
    ImportRequest,
    PropagateRequest,
    PropagateResponse,
    ScreenRequest,
    ScreenResponse,
    State,
    TLEResponse,
    ThreatsResponse,
    UserOrbit,
)
from .propagation import element_track, orbit_track, tle_to_user_orbit
from .refresh import refresh_threats
from .screening import ConjunctionResult, ScreeningPolicy, screen
from .store import AlreadyExecuted, DuplicateSatellite, FleetStore
from .threats import build_threats, highest_severity

logging.basicConfig(
    level=settings.log_level,
    format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
)
logger = logging.getLogger(__name__)

app = FastAPI(title="Satellite Threat Screening API", version="1.0.0")

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_allow_origins,
    allow_credentials=True,
    allow_methods=settings.cors_allow_methods,
    allow_headers=settings.cors_allow_headers,
)

store = FleetStore(debris_ttl_s=settings.debris_cache_ttl_s)


def _conjunction_out(r: ConjunctionResult) -> ConjunctionOut:
    return ConjunctionOut(
        satellite_name=r.satellite_name,
        min_distance_km=r.min_distance_km if r.has_data else None,
        time_of_closest_approach=r.time_of_closest_approach,
    )


@app.get("/healthz", response_model=HealthResponse)
def healthz():
    return HealthResponse()


@app.get("/api/satellites", response_model=List[UserOrbit])
def list_satellites():
    return store.satellites


@app.post("/api/satellites", response_model=UserOrbit, status_code=201)
def add_satellite(orbit: UserOrbit):
    try:
        store.add_satellite(orbit)
    except DuplicateSatellite as e:
        raise HTTPException(status_code=409, detail=str(e))
    return orbit


@app.delete("/api/satellites/{name}", status_code=204)
def remove_satellite(name: str):
    if not store.remove_satellite(name):
        raise HTTPException(status_code=404, detail=f"No satellite named '{name}'")


@app.post("/api/satellites/import", response_model=List[UserOrbit])
async def import_satellites(req: ImportRequest):
    """Replace the fleet with orbits derived from CelesTrak active-satellite TLEs."""
    try:
        records = await client.fetch_active_catalog(limit=req.limit)
    except Exception as e:
        raise HTTPException(status_code=502, detail=f"Failed to load satellites: {e!s}")
    orbits = []
    for rec in records:
        try:
            orbits.append(tle_to_user_orbit(rec))
        except (ValueError, ValidationError) as e:
            logger.warning("Skipping %s: %s", rec.name, e)
    store.set_satellites(orbits)
    logger.info("Imported %d satellites", len(orbits))
    return orbits


@app.get("/api/debris/catalog", response_model=TLEResponse)
async def get_debris_catalog(
    group: Optional[str] = Query(None, description="CelesTrak GP group name"),
    limit: Optional[int] = Query(None, ge=1, le=2000),
):
    """Fetch a debris catalogue from CelesTrak and cache it for screening."""
    try:
        records = await client.fetch_debris_catalog(group=group, limit=limit)
    except ValueError as ve:
        raise HTTPException(status_code=400, detail=str(ve))
    except Exception as e:
        raise HTTPException(status_code=502, detail=f"Failed to load catalog: {e!s}")
    store.set_debris(records)
    return TLEResponse(count=len(records), records=records)


@app.post("/api/screen", response_model=ScreenResponse)
def post_screen(req: ScreenRequest):
    now = req.now or datetime.now(timezone.utc)
    policy = ScreeningPolicy.from_settings()
    if req.threshold_km is not None:
        policy = replace(policy, threshold_km=req.threshold_km)
    results = screen(req.satellites, req.debris, now, policy)
    return ScreenResponse(
        now=now,
        results=[_conjunction_out(r) for r in results],
        threats=build_threats(results, None, policy),
    )


@app.get("/api/threats", response_model=ThreatsResponse)
async def get_threats():
    report = await refresh_threats(store.satellites, debris=store.debris())
    if report.fetched_debris:
        store.set_debris(report.fetched_debris)
    store.set_threats(report.threats)
    return ThreatsResponse(
        threats=report.threats,
        diagnostics=report.diagnostics,
        highest_severity=highest_severity(report.threats),
    )


@app.post("/api/threats/{threat_id}/execute", response_model=ActionLogEntry)
def execute_threat(threat_id: str):
    try:
        return store.execute(threat_id)
    except KeyError:
        raise HTTPException(status_code=404, detail=f"Unknown threat {threat_id}")
    except AlreadyExecuted as e:
        raise HTTPException(status_code=409, detail=str(e))


@app.get("/api/actions", response_model=List[ActionLogEntry])
def list_actions():
    return store.actions


@app.post("/api/propagate", response_model=PropagateResponse)
def post_propagate(req: PropagateRequest):
    if (req.satellite is None) == (req.debris is None):
        raise HTTPException(status_code=400, detail="Provide exactly one of satellite or debris")
    start = req.start or datetime.now(timezone.utc)
    if req.satellite is not None:
        times, positions = orbit_track(req.satellite, start, req.minutes, req.step_s)
    else:
        times, positions = element_track(req.debris, start, req.minutes, req.step_s)
    return PropagateResponse(
        states=[
            State(t=t, r=[float(x) for x in p])
            for t, p in zip(times, positions)
            if np.all(np.isfinite(p))
        ]
    )
