from typing import Callable, Protocol, TypedDict

from libs.core.domain.entities import (
    AccidentEvent,
    AccidentSnapshot,
    AccidentStatus,
    AlertKind,
    UserSettings,
    VehicleProfile,
)


class CollaboratorError(Exception):
    """Raised by persistence or notification collaborators on failure."""


class StatusUpdate(TypedDict):
    """Resolution data passed to accident repositories."""

    status: AccidentStatus
    user_responded: bool
    emails_sent: bool
    resolved_at: str | None


class AlertPayload(TypedDict):
    """Alert body handed to the notification collaborator."""

    accident_id: str
    vehicle_id: str
    latitude: float
    longitude: float
    danger_percentage: float
    user_email: str
    contacts: list[str]


class AccidentRepository(Protocol):
    """Accident record persistence contract."""

    def create(self, snapshot: AccidentSnapshot) -> AccidentEvent: ...

    def get(self, accident_id: str) -> AccidentEvent | None: ...

    def list(
        self,
        vehicle_id: str | None = None,
        status: AccidentStatus | None = None,
    ) -> list[AccidentEvent]: ...

    def update_status(
        self,
        accident_id: str,
        update: StatusUpdate,
    ) -> AccidentEvent | None: ...


class AlertNotifier(Protocol):
    """Outbound alert delivery contract."""

    def send_alert(self, kind: AlertKind, payload: AlertPayload) -> None: ...


class SettingsRepository(Protocol):
    """User contact settings contract."""

    def get(self) -> UserSettings | None: ...

    def save(self, settings: UserSettings) -> UserSettings: ...


class VehicleTypeStore(Protocol):
    """Persisted vehicle type selection per stream."""

    def get(self, vehicle_id: str) -> VehicleProfile | None: ...

    def set(self, vehicle_id: str, vehicle_type: VehicleProfile) -> None: ...


class ScheduledCall(Protocol):
    def cancel(self) -> None: ...


class Scheduler(Protocol):
    """Delayed-callback contract used for escalation and cooldown timers."""

    def call_later(
        self,
        delay_sec: float,
        callback: Callable[[], None],
    ) -> ScheduledCall: ...
