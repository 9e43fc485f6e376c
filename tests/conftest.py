"""Shared fakes: a manual clock/scheduler pair and a recording notifier."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Callable

import pytest

from libs.core.application.contracts import AlertPayload, CollaboratorError
from libs.core.application.events import WILDCARD, EventBus, RecentEventLog
from libs.core.domain.entities import AlertKind, Location, Reading, Vector3
from services.api_gateway.infrastructure.memory_store import (
    InMemoryAccidentRepository,
    InMemoryDatabase,
    InMemorySettingsRepository,
    InMemoryVehicleTypeStore,
)


class FakeClock:
    def __init__(self, now: float = 0.0) -> None:
        self.now = now

    def __call__(self) -> float:
        return self.now


@dataclass
class ManualCall:
    due: float
    callback: Callable[[], None]
    cancelled: bool = False
    fired: bool = False

    def cancel(self) -> None:
        self.cancelled = True


class ManualScheduler:
    """Fires callbacks only when the test advances the clock.

    With ``ignore_cancel`` a cancelled call still fires, which reproduces a
    timer thread that was already running when ``cancel`` arrived.
    """

    def __init__(self, clock: FakeClock, ignore_cancel: bool = False) -> None:
        self.clock = clock
        self.ignore_cancel = ignore_cancel
        self.calls: list[ManualCall] = []

    def call_later(self, delay_sec: float, callback: Callable[[], None]) -> ManualCall:
        call = ManualCall(due=self.clock.now + delay_sec, callback=callback)
        self.calls.append(call)
        return call

    @property
    def pending(self) -> list[ManualCall]:
        return [call for call in self.calls if self._is_live(call)]

    def advance(self, seconds: float) -> None:
        self.advance_to(self.clock.now + seconds)

    def advance_to(self, target: float) -> None:
        while True:
            due = [
                call for call in self.calls if self._is_live(call) and call.due <= target
            ]
            if not due:
                break
            call = min(due, key=lambda item: item.due)
            self.clock.now = max(self.clock.now, call.due)
            call.fired = True
            call.callback()
        self.clock.now = target

    def _is_live(self, call: ManualCall) -> bool:
        if call.fired:
            return False
        return self.ignore_cancel or not call.cancelled


@dataclass
class RecordingNotifier:
    alerts: list[tuple[AlertKind, AlertPayload]] = field(default_factory=list)
    fail: bool = False

    def send_alert(self, kind: AlertKind, payload: AlertPayload) -> None:
        if self.fail:
            raise CollaboratorError("gateway timeout")
        self.alerts.append((kind, payload))

    def kinds(self) -> list[AlertKind]:
        return [kind for kind, _ in self.alerts]


def make_reading(
    accel: tuple[float, float, float] = (0.0, 0.0, 1.0),
    gyro: tuple[float, float, float] = (0.0, 0.0, 0.0),
    timestamp: float = 0.0,
) -> Reading:
    return Reading(
        accel=Vector3(*accel),
        gyro=Vector3(*gyro),
        location=Location(latitude=50.4501, longitude=30.5234),
        timestamp=timestamp,
    )


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def scheduler(clock: FakeClock) -> ManualScheduler:
    return ManualScheduler(clock)


@pytest.fixture
def leaky_scheduler(clock: FakeClock) -> ManualScheduler:
    return ManualScheduler(clock, ignore_cancel=True)


@pytest.fixture
def notifier() -> RecordingNotifier:
    return RecordingNotifier()


@pytest.fixture
def db() -> InMemoryDatabase:
    return InMemoryDatabase()


@pytest.fixture
def accident_repository(db: InMemoryDatabase) -> InMemoryAccidentRepository:
    return InMemoryAccidentRepository(db)


@pytest.fixture
def settings_repository(db: InMemoryDatabase) -> InMemorySettingsRepository:
    return InMemorySettingsRepository(db)


@pytest.fixture
def vehicle_type_store(db: InMemoryDatabase) -> InMemoryVehicleTypeStore:
    return InMemoryVehicleTypeStore(db)


@pytest.fixture
def event_bus() -> EventBus:
    return EventBus()


@pytest.fixture
def event_log(event_bus: EventBus) -> RecentEventLog:
    log = RecentEventLog()
    event_bus.subscribe(WILDCARD, log)
    return log


@pytest.fixture
def reading_factory() -> Callable[..., Reading]:
    return make_reading
