from __future__ import annotations

import logging
import threading
import time
from dataclasses import dataclass, field
from functools import partial
from typing import Callable

from libs.core.application import events as event_types
from libs.core.application.contracts import (
    AccidentRepository,
    AlertNotifier,
    Scheduler,
    SettingsRepository,
    VehicleTypeStore,
)
from libs.core.application.escalation import (
    EscalationState,
    EscalationStateMachine,
    EscalationTimings,
)
from libs.core.application.events import EventBus
from libs.core.domain.anomaly import (
    HISTORY_SIZE,
    AnomalyDetector,
    apply_vehicle_overrides,
)
from libs.core.domain.connectivity import STALENESS_THRESHOLD_SEC, ConnectivityTracker
from libs.core.domain.entities import (
    AccidentEvent,
    AccidentSnapshot,
    AccidentStatus,
    DetectionResult,
    Location,
    Orientation,
    RawMotion,
    Reading,
    UserSettings,
    Vector3,
    VehicleProfile,
)
from libs.core.domain.orientation import ZERO_ORIENTATION, estimate_orientation
from libs.core.domain.signal import DEFAULT_SMOOTHING_ALPHA, SignalConditioner

logger = logging.getLogger(__name__)

DEFAULT_VEHICLE_TYPE = VehicleProfile.SCOOTER


@dataclass(frozen=True)
class PipelineConfig:
    """Tunables shared by every vehicle stream."""

    smoothing_alpha: float = DEFAULT_SMOOTHING_ALPHA
    staleness_threshold_sec: float = STALENESS_THRESHOLD_SEC
    history_size: int = HISTORY_SIZE
    default_vehicle_type: VehicleProfile = DEFAULT_VEHICLE_TYPE
    timings: EscalationTimings = field(default_factory=EscalationTimings)


@dataclass(frozen=True)
class ReadingOutcome:
    """Combined detector verdict for one reading."""

    vehicle_id: str
    result: DetectionResult
    orientation: Orientation
    accident: AccidentEvent | None


@dataclass(frozen=True)
class StreamSnapshot:
    """Read-only display view of a stream; not authoritative state."""

    vehicle_id: str
    vehicle_type: VehicleProfile
    connected: bool
    orientation: Orientation
    danger_percentage: float
    is_accident: bool
    accel: Vector3
    gyro: Vector3 | None
    location: Location | None
    timestamp: float | None
    escalation_state: EscalationState
    active_accident_id: str | None


class VehicleStream:
    """Sequential detection pipeline and escalation for one vehicle.

    Readings are processed under the stream lock so the smoothing filter and
    the detector history only ever see in-order, non-overlapping updates.
    """

    def __init__(
        self,
        vehicle_id: str,
        vehicle_type: VehicleProfile,
        config: PipelineConfig,
        escalation_factory: Callable[[Callable[[], None]], EscalationStateMachine],
    ) -> None:
        self.vehicle_id = vehicle_id
        self._lock = threading.Lock()
        self._vehicle_type = vehicle_type
        self._conditioner = SignalConditioner(alpha=config.smoothing_alpha)
        self._detector = AnomalyDetector(
            vehicle_type=vehicle_type,
            history_size=config.history_size,
        )
        self.connectivity = ConnectivityTracker(
            staleness_threshold_sec=config.staleness_threshold_sec
        )
        self.escalation = escalation_factory(self.reset_detection)

        self._last_reading: Reading | None = None
        self._last_result = DetectionResult(is_accident=False, danger_percentage=0.0)
        self._orientation = ZERO_ORIENTATION

    @property
    def vehicle_type(self) -> VehicleProfile:
        with self._lock:
            return self._vehicle_type

    def process(self, reading: Reading) -> ReadingOutcome:
        with self._lock:
            smoothed = self._conditioner.apply(reading.accel)
            orientation = estimate_orientation(smoothed)

            self._detector.add_reading(accel=smoothed, gyro=reading.gyro)
            result = apply_vehicle_overrides(
                self._detector.detect_with_history(),
                vehicle_type=self._vehicle_type,
                accel_z=smoothed.z,
            )

            trigger = None
            if result.is_accident:
                trigger = AccidentSnapshot(
                    vehicle_id=self.vehicle_id,
                    danger_percentage=result.danger_percentage,
                    location=reading.location,
                    raw_motion=reading.raw or _motion_from_reading(reading),
                    vehicle_type=self._vehicle_type,
                )

            self._last_reading = reading
            self._last_result = result
            self._orientation = orientation

        # Persistence and alert delivery run outside the stream lock.
        accident = None
        if trigger is not None:
            accident = self.escalation.try_trigger(trigger)

        return ReadingOutcome(
            vehicle_id=self.vehicle_id,
            result=result,
            orientation=orientation,
            accident=accident,
        )

    def set_vehicle_type(self, vehicle_type: VehicleProfile) -> None:
        with self._lock:
            self._vehicle_type = vehicle_type
            self._detector.set_vehicle_type(vehicle_type)

    def reset_detection(self) -> None:
        with self._lock:
            self._detector.reset()

    def reset(self) -> None:
        with self._lock:
            self._detector.reset()
            self._conditioner.reset()
            self._last_result = DetectionResult(is_accident=False, danger_percentage=0.0)
            self._orientation = ZERO_ORIENTATION

    def snapshot(self) -> StreamSnapshot:
        with self._lock:
            reading = self._last_reading
            accel = self._conditioner.smoothed
            vehicle_type = self._vehicle_type
            result = self._last_result
            orientation = self._orientation
        active = self.escalation.active_event
        return StreamSnapshot(
            vehicle_id=self.vehicle_id,
            vehicle_type=vehicle_type,
            connected=self.connectivity.connected,
            orientation=orientation,
            danger_percentage=result.danger_percentage,
            is_accident=result.is_accident,
            accel=accel,
            gyro=reading.gyro if reading is not None else None,
            location=reading.location if reading is not None else None,
            timestamp=reading.timestamp if reading is not None else None,
            escalation_state=self.escalation.state,
            active_accident_id=active.accident_id if active is not None else None,
        )


class GuardianService:
    """Application service for vehicle accident detection."""

    def __init__(
        self,
        accident_repository: AccidentRepository,
        notifier: AlertNotifier,
        settings_repository: SettingsRepository,
        vehicle_type_store: VehicleTypeStore,
        scheduler: Scheduler,
        events: EventBus,
        config: PipelineConfig | None = None,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self._accidents = accident_repository
        self._notifier = notifier
        self._settings = settings_repository
        self._vehicle_types = vehicle_type_store
        self._scheduler = scheduler
        self.events = events
        self._config = config or PipelineConfig()
        self._clock = clock
        self._lock = threading.Lock()
        self._streams: dict[str, VehicleStream] = {}

    @property
    def config(self) -> PipelineConfig:
        return self._config

    def ingest_reading(self, vehicle_id: str, reading: Reading) -> ReadingOutcome:
        stream = self._get_or_create_stream(vehicle_id)
        received_at = self._clock()
        stream.connectivity.mark_reading(received_at)
        self._publish_connectivity(stream, stream.connectivity.tick(received_at))
        return stream.process(reading)

    def warm_start(self, vehicle_id: str, reading: Reading) -> ReadingOutcome:
        """Feed the latest known reading; connectivity follows its age.

        Device timestamps ahead of the local clock are clamped to now.
        """
        stream = self._get_or_create_stream(vehicle_id)
        now = self._clock()
        stream.connectivity.mark_reading(min(reading.timestamp, now))
        self._publish_connectivity(stream, stream.connectivity.tick(now))
        return stream.process(reading)

    def heartbeat(self) -> dict[str, bool]:
        """Recompute connectivity for every stream; return the changed ones."""
        now = self._clock()
        changes: dict[str, bool] = {}
        for stream in self._list_streams():
            changed = stream.connectivity.tick(now)
            if changed is not None:
                changes[stream.vehicle_id] = changed
                self._publish_connectivity(stream, changed)
        return changes

    def cancel_active_accident(self, vehicle_id: str) -> AccidentEvent | None:
        stream = self._get_stream(vehicle_id)
        if stream is None:
            raise ValueError("Vehicle stream not found")
        return stream.escalation.cancel()

    def change_vehicle_type(
        self,
        vehicle_id: str,
        vehicle_type: VehicleProfile,
    ) -> VehicleProfile:
        stream = self._get_or_create_stream(vehicle_id)
        stream.set_vehicle_type(vehicle_type)
        self._vehicle_types.set(vehicle_id, vehicle_type)
        logger.info("Vehicle %s switched to %s", vehicle_id, vehicle_type.value)
        self.events.publish(
            event_types.VEHICLE_TYPE_CHANGED,
            vehicle_id=vehicle_id,
            vehicle_type=vehicle_type.value,
        )
        return vehicle_type

    def reset_stream(self, vehicle_id: str) -> bool:
        stream = self._get_stream(vehicle_id)
        if stream is None:
            return False
        stream.reset()
        return True

    def get_snapshot(self, vehicle_id: str) -> StreamSnapshot | None:
        stream = self._get_stream(vehicle_id)
        if stream is None:
            return None
        return stream.snapshot()

    def list_vehicles(self) -> list[str]:
        return [stream.vehicle_id for stream in self._list_streams()]

    def get_accident(self, accident_id: str) -> AccidentEvent | None:
        return self._accidents.get(accident_id)

    def list_accidents(
        self,
        vehicle_id: str | None = None,
        status: AccidentStatus | None = None,
    ) -> list[AccidentEvent]:
        return self._accidents.list(vehicle_id=vehicle_id, status=status)

    def get_settings(self) -> UserSettings:
        return self._settings.get() or UserSettings()

    def update_settings(self, settings: UserSettings) -> UserSettings:
        return self._settings.save(settings)

    def shutdown(self) -> None:
        for stream in self._list_streams():
            stream.escalation.shutdown()

    def reset_runtime_state(self) -> None:
        self.shutdown()
        with self._lock:
            self._streams.clear()

    def _get_stream(self, vehicle_id: str) -> VehicleStream | None:
        with self._lock:
            return self._streams.get(vehicle_id)

    def _list_streams(self) -> list[VehicleStream]:
        with self._lock:
            return list(self._streams.values())

    def _get_or_create_stream(self, vehicle_id: str) -> VehicleStream:
        with self._lock:
            stream = self._streams.get(vehicle_id)
            if stream is None:
                vehicle_type = (
                    self._vehicle_types.get(vehicle_id)
                    or self._config.default_vehicle_type
                )
                stream = VehicleStream(
                    vehicle_id=vehicle_id,
                    vehicle_type=vehicle_type,
                    config=self._config,
                    escalation_factory=partial(self._build_escalation, vehicle_id),
                )
                self._streams[vehicle_id] = stream
            return stream

    def _build_escalation(
        self,
        vehicle_id: str,
        on_cancelled: Callable[[], None],
    ) -> EscalationStateMachine:
        return EscalationStateMachine(
            vehicle_id=vehicle_id,
            accident_repository=self._accidents,
            notifier=self._notifier,
            settings_repository=self._settings,
            scheduler=self._scheduler,
            events=self.events,
            timings=self._config.timings,
            on_cancelled=on_cancelled,
        )

    def _publish_connectivity(self, stream: VehicleStream, changed: bool | None) -> None:
        if changed is None:
            return
        if changed:
            logger.info("Vehicle %s connected", stream.vehicle_id)
        else:
            logger.warning(
                "Connection lost: vehicle %s stopped transmitting data",
                stream.vehicle_id,
            )
        self.events.publish(
            event_types.CONNECTIVITY_CHANGED,
            vehicle_id=stream.vehicle_id,
            connected=changed,
            last_reading_ts=stream.connectivity.last_reading_ts,
        )


def _motion_from_reading(reading: Reading) -> RawMotion:
    return RawMotion(
        acc_x=reading.accel.x,
        acc_y=reading.accel.y,
        acc_z=reading.accel.z,
        gyro_x=reading.gyro.x,
        gyro_y=reading.gyro.y,
        gyro_z=reading.gyro.z,
    )
