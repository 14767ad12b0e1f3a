"""In-memory application state owned by the caller of the screening engine."""
from __future__ import annotations

import threading
import time
from datetime import datetime, timezone
from typing import List, Optional

from .schemas import ActionLogEntry, DebrisElement, Threat, UserOrbit


class DuplicateSatellite(ValueError):
    pass


class AlreadyExecuted(ValueError):
    pass


class FleetStore:
    def __init__(self, debris_ttl_s: float = 7200.0):
        self._lock = threading.Lock()
        self.debris_ttl_s = debris_ttl_s
        self._satellites: List[UserOrbit] = []
        self._debris: List[DebrisElement] = []
        self._debris_time: float = 0.0
        self._threats: List[Threat] = []
        self._executed: set[str] = set()
        self._actions: List[ActionLogEntry] = []

    # satellites

    @property
    def satellites(self) -> List[UserOrbit]:
        with self._lock:
            return list(self._satellites)

    def add_satellite(self, orbit: UserOrbit) -> None:
        with self._lock:
            if any(s.name == orbit.name for s in self._satellites):
                raise DuplicateSatellite(f"Satellite '{orbit.name}' already exists")
            self._satellites.append(orbit)

    def remove_satellite(self, name: str) -> bool:
        with self._lock:
            kept = [s for s in self._satellites if s.name != name]
            removed = len(kept) != len(self._satellites)
            self._satellites = kept
            return removed

    def set_satellites(self, orbits: List[UserOrbit]) -> None:
        with self._lock:
            self._satellites = list(orbits)

    # debris cache

    def debris(self, now: Optional[float] = None) -> Optional[List[DebrisElement]]:
        """Cached catalogue, or None when empty or older than the TTL."""
        now = time.time() if now is None else now
        with self._lock:
            if not self._debris or (now - self._debris_time) >= self.debris_ttl_s:
                return None
            return list(self._debris)

    def set_debris(self, debris: List[DebrisElement], now: Optional[float] = None) -> None:
        with self._lock:
            self._debris = list(debris)
            self._debris_time = time.time() if now is None else now

    # threats and actions

    @property
    def threats(self) -> List[Threat]:
        with self._lock:
            return list(self._threats)

    def set_threats(self, threats: List[Threat]) -> None:
        """Replace current threats; executed marks survive only for ids still present."""
        with self._lock:
            ids = {t.id for t in threats}
            self._threats = list(threats)
            self._executed &= ids

    def is_executed(self, threat_id: str) -> bool:
        with self._lock:
            return threat_id in self._executed

    def execute(self, threat_id: str) -> ActionLogEntry:
        with self._lock:
            threat = next((t for t in self._threats if t.id == threat_id), None)
            if threat is None:
                raise KeyError(threat_id)
            if threat_id in self._executed:
                raise AlreadyExecuted(f"Threat {threat_id} was already executed")
            entry = ActionLogEntry(
                time=datetime.now(timezone.utc),
                threat_id=threat_id,
                satellite_name=threat.satellite_name,
                action=threat.suggested_action,
            )
            self._executed.add(threat_id)
            self._actions.insert(0, entry)
            return entry

    @property
    def actions(self) -> List[ActionLogEntry]:
        with self._lock:
            return list(self._actions)
