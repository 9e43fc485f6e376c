"""In-memory storage for accident records, settings and vehicle types."""

from __future__ import annotations

import threading
from dataclasses import dataclass, field, replace
from datetime import datetime, timezone
from uuid import uuid4

from libs.core.application.contracts import CollaboratorError, StatusUpdate
from libs.core.domain.entities import (
    AccidentEvent,
    AccidentSnapshot,
    AccidentStatus,
    UserSettings,
    VehicleProfile,
)


@dataclass
class InMemoryDatabase:
    accidents: dict[str, AccidentEvent] = field(default_factory=dict)
    settings: UserSettings | None = None
    vehicle_types: dict[str, VehicleProfile] = field(default_factory=dict)
    lock: threading.Lock = field(default_factory=threading.Lock)
    fail_writes: bool = False

    def clear(self) -> None:
        with self.lock:
            self.accidents.clear()
            self.vehicle_types.clear()
            self.settings = None
            self.fail_writes = False


class InMemoryAccidentRepository:
    def __init__(self, db: InMemoryDatabase) -> None:
        self._db = db

    def create(self, snapshot: AccidentSnapshot) -> AccidentEvent:
        with self._db.lock:
            if self._db.fail_writes:
                raise CollaboratorError("accident store unavailable")
            event = AccidentEvent(
                accident_id=str(uuid4()),
                vehicle_id=snapshot.vehicle_id,
                danger_percentage=snapshot.danger_percentage,
                location=snapshot.location,
                raw_motion=snapshot.raw_motion,
                vehicle_type=snapshot.vehicle_type,
                status=AccidentStatus.PENDING,
                created_at=_utc_now_iso(),
            )
            self._db.accidents[event.accident_id] = event
            return replace(event)

    def get(self, accident_id: str) -> AccidentEvent | None:
        with self._db.lock:
            event = self._db.accidents.get(accident_id)
            return replace(event) if event is not None else None

    def list(
        self,
        vehicle_id: str | None = None,
        status: AccidentStatus | None = None,
    ) -> list[AccidentEvent]:
        with self._db.lock:
            events = list(self._db.accidents.values())
        if vehicle_id is not None:
            events = [event for event in events if event.vehicle_id == vehicle_id]
        if status is not None:
            events = [event for event in events if event.status == status]
        return [replace(event) for event in events]

    def update_status(
        self,
        accident_id: str,
        update: StatusUpdate,
    ) -> AccidentEvent | None:
        with self._db.lock:
            if self._db.fail_writes:
                raise CollaboratorError("accident store unavailable")
            event = self._db.accidents.get(accident_id)
            if event is None:
                return None
            event.status = update["status"]
            event.user_responded = update["user_responded"]
            event.emails_sent = update["emails_sent"]
            event.resolved_at = update["resolved_at"]
            return replace(event)


class InMemorySettingsRepository:
    def __init__(self, db: InMemoryDatabase) -> None:
        self._db = db

    def get(self) -> UserSettings | None:
        with self._db.lock:
            settings = self._db.settings
            return replace(settings) if settings is not None else None

    def save(self, settings: UserSettings) -> UserSettings:
        with self._db.lock:
            self._db.settings = replace(settings)
            return replace(settings)


class InMemoryVehicleTypeStore:
    def __init__(self, db: InMemoryDatabase) -> None:
        self._db = db

    def get(self, vehicle_id: str) -> VehicleProfile | None:
        with self._db.lock:
            return self._db.vehicle_types.get(vehicle_id)

    def set(self, vehicle_id: str, vehicle_type: VehicleProfile) -> None:
        with self._db.lock:
            self._db.vehicle_types[vehicle_id] = vehicle_type


def _utc_now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()
