from __future__ import annotations

import uuid
from datetime import datetime
from enum import Enum
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field

EARTH_MEAN_RADIUS_KM = 6371.0


# --- Orbits ---

class UserOrbit(BaseModel):
    """A user-defined satellite orbit, identified by name."""

    model_config = ConfigDict(frozen=True)

    name: str = Field(min_length=1)
    semi_major_axis_km: float = Field(gt=EARTH_MEAN_RADIUS_KM, allow_inf_nan=False)
    eccentricity: float = Field(ge=0.0, lt=1.0, allow_inf_nan=False)
    inclination_deg: float = Field(ge=0.0, le=180.0, allow_inf_nan=False)


class DebrisElement(BaseModel):
    model_config = ConfigDict(frozen=True)

    name: str
    line1: str
    line2: str
    norad_id: Optional[int] = None


class TLEResponse(BaseModel):
    count: int
    records: List[DebrisElement]


# --- Threats ---

class ThreatKind(str, Enum):
    CONJUNCTION = "CONJUNCTION"
    GEOMAGNETIC_STORM = "GEOMAGNETIC_STORM"


class Severity(str, Enum):
    LOW = "LOW"
    MEDIUM = "MEDIUM"
    HIGH = "HIGH"

    @property
    def rank(self) -> int:
        return _SEVERITY_RANK[self]


_SEVERITY_RANK = {Severity.LOW: 0, Severity.MEDIUM: 1, Severity.HIGH: 2}


class Threat(BaseModel):
    model_config = ConfigDict(frozen=True)

    id: str = Field(default_factory=lambda: str(uuid.uuid4()))
    kind: ThreatKind
    occurs_at: datetime
    severity: Severity
    description: str
    suggested_action: str
    satellite_name: Optional[str] = None


class KpReading(BaseModel):
    kp: float = Field(ge=0.0, allow_inf_nan=False)
    time_tag: datetime


# --- Action log ---

class ActionLogEntry(BaseModel):
    id: str = Field(default_factory=lambda: str(uuid.uuid4()))
    time: datetime
    threat_id: str
    satellite_name: Optional[str] = None
    action: str


# --- API requests / responses ---

class ConjunctionOut(BaseModel):
    satellite_name: str
    min_distance_km: Optional[float] = Field(
        default=None, description="None when no debris position was ever available"
    )
    time_of_closest_approach: datetime


class ScreenRequest(BaseModel):
    satellites: List[UserOrbit]
    debris: List[DebrisElement]
    now: Optional[datetime] = None
    threshold_km: Optional[float] = Field(default=None, gt=0.0, allow_inf_nan=False)


class ScreenResponse(BaseModel):
    now: datetime
    results: List[ConjunctionOut]
    threats: List[Threat]


class ThreatsResponse(BaseModel):
    threats: List[Threat]
    diagnostics: List[str] = []
    highest_severity: Optional[Severity] = None


class ImportRequest(BaseModel):
    limit: int = Field(default=10, ge=1, le=200)


class State(BaseModel):
    t: datetime
    r: list[float]


class PropagateRequest(BaseModel):
    satellite: Optional[UserOrbit] = None
    debris: Optional[DebrisElement] = None
    start: Optional[datetime] = None
    minutes: int = Field(ge=1, le=24 * 60, default=120)
    step_s: float = Field(gt=0.0, le=3600.0, default=60.0)


class PropagateResponse(BaseModel):
    states: List[State]


class HealthResponse(BaseModel):
    ok: bool = True
