"""Rolling-window accident scoring.

The base score blends three normalized signals taken over the history window:

- impact: largest deviation of the acceleration magnitude from 1 g
- jerk: largest change of the acceleration vector between consecutive samples
- rotation: largest angular-rate magnitude

Each signal is divided by a per-vehicle threshold and clipped to 1.0, then
weighted into a 0..100 danger percentage. A window is flagged as an accident
once the percentage reaches the trigger level. The absolute-orientation
overrides in :func:`apply_vehicle_overrides` are applied on top by the caller.
"""

from __future__ import annotations

from collections import deque
from dataclasses import dataclass

from libs.core.domain.entities import DetectionResult, Vector3, VehicleProfile

HISTORY_SIZE = 20
TRIGGER_PERCENTAGE = 70.0

IMPACT_WEIGHT = 0.5
JERK_WEIGHT = 0.3
ROTATION_WEIGHT = 0.2

SCOOTER_UPSIDE_DOWN_Z = -0.5
SCOOTER_TIPPED_OVER_Z = 0.4
SCOOTER_TIPPED_OVER_DANGER = 80.0
CAR_FLAT_Z = 0.3
CAR_FLAT_DANGER = 90.0


@dataclass(frozen=True)
class DetectionThresholds:
    """Signal levels that map to a full (1.0) component score."""

    impact_excess_g: float
    jerk_g: float
    rotation_dps: float


VEHICLE_THRESHOLDS: dict[VehicleProfile, DetectionThresholds] = {
    VehicleProfile.SCOOTER: DetectionThresholds(
        impact_excess_g=1.5,
        jerk_g=1.0,
        rotation_dps=250.0,
    ),
    VehicleProfile.CAR: DetectionThresholds(
        impact_excess_g=3.0,
        jerk_g=2.0,
        rotation_dps=180.0,
    ),
}


@dataclass(frozen=True)
class _Sample:
    accel: Vector3
    gyro: Vector3


class AnomalyDetector:
    """History-based detector for a single vehicle stream."""

    def __init__(
        self,
        vehicle_type: VehicleProfile = VehicleProfile.SCOOTER,
        history_size: int = HISTORY_SIZE,
        thresholds: dict[VehicleProfile, DetectionThresholds] | None = None,
    ) -> None:
        self._history: deque[_Sample] = deque(maxlen=history_size)
        self._vehicle_type = vehicle_type
        self._thresholds = thresholds or VEHICLE_THRESHOLDS

    @property
    def vehicle_type(self) -> VehicleProfile:
        return self._vehicle_type

    @property
    def history_length(self) -> int:
        return len(self._history)

    def add_reading(self, accel: Vector3, gyro: Vector3) -> None:
        self._history.append(_Sample(accel=accel, gyro=gyro))

    def set_vehicle_type(self, vehicle_type: VehicleProfile) -> None:
        # History is kept; existing samples are rescored under the new profile.
        self._vehicle_type = vehicle_type

    def reset(self) -> None:
        self._history.clear()

    def detect_with_history(self) -> DetectionResult:
        if not self._history:
            return DetectionResult(is_accident=False, danger_percentage=0.0)

        thresholds = self._thresholds[self._vehicle_type]
        samples = list(self._history)

        peak_impact = max(abs(item.accel.magnitude() - 1.0) for item in samples)
        peak_rotation = max(item.gyro.magnitude() for item in samples)
        peak_jerk = max(
            (
                _difference(current.accel, previous.accel).magnitude()
                for previous, current in zip(samples, samples[1:])
            ),
            default=0.0,
        )

        score = (
            IMPACT_WEIGHT * _normalize(peak_impact, thresholds.impact_excess_g)
            + JERK_WEIGHT * _normalize(peak_jerk, thresholds.jerk_g)
            + ROTATION_WEIGHT * _normalize(peak_rotation, thresholds.rotation_dps)
        )
        danger = round(score * 100.0, 1)
        return DetectionResult(
            is_accident=danger >= TRIGGER_PERCENTAGE,
            danger_percentage=danger,
        )


def apply_vehicle_overrides(
    result: DetectionResult,
    vehicle_type: VehicleProfile,
    accel_z: float,
) -> DetectionResult:
    """Force an accident when the vehicle rests in an impossible attitude."""
    if vehicle_type == VehicleProfile.SCOOTER:
        if accel_z < SCOOTER_UPSIDE_DOWN_Z:
            return DetectionResult(is_accident=True, danger_percentage=100.0)
        if abs(accel_z) < SCOOTER_TIPPED_OVER_Z:
            return DetectionResult(
                is_accident=True,
                danger_percentage=max(result.danger_percentage, SCOOTER_TIPPED_OVER_DANGER),
            )
        return result

    if abs(accel_z) < CAR_FLAT_Z:
        return DetectionResult(
            is_accident=True,
            danger_percentage=max(result.danger_percentage, CAR_FLAT_DANGER),
        )
    return result


def _normalize(value: float, full_scale: float) -> float:
    if full_scale <= 0:
        return 0.0
    return min(value / full_scale, 1.0)


def _difference(current: Vector3, previous: Vector3) -> Vector3:
    return Vector3(
        x=current.x - previous.x,
        y=current.y - previous.y,
        z=current.z - previous.z,
    )
