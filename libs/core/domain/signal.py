"""Exponential smoothing of accelerometer samples and raw-count conversion."""

from __future__ import annotations

from libs.core.domain.entities import Location, RawMotion, Reading, Vector3

DEFAULT_SMOOTHING_ALPHA = 0.3
RESTING_ACCEL = Vector3(x=0.0, y=0.0, z=1.0)

ACCEL_LSB_PER_G = 16384.0
GYRO_LSB_PER_DPS = 131.0


def low_pass(raw: Vector3, previous: Vector3, alpha: float) -> Vector3:
    """Single-pole filter: ``previous + alpha * (raw - previous)`` per axis."""
    return Vector3(
        x=previous.x + alpha * (raw.x - previous.x),
        y=previous.y + alpha * (raw.y - previous.y),
        z=previous.z + alpha * (raw.z - previous.z),
    )


def validate_alpha(alpha: float) -> float:
    if not 0.0 < alpha <= 1.0:
        raise ValueError(f"smoothing alpha must be in (0, 1], got {alpha}")
    return alpha


class SignalConditioner:
    """Owns the smoothed accelerometer state of one stream.

    Calls must arrive in reading order; the filter output depends on every
    previous sample.
    """

    def __init__(
        self,
        alpha: float = DEFAULT_SMOOTHING_ALPHA,
        initial: Vector3 = RESTING_ACCEL,
    ) -> None:
        self._alpha = validate_alpha(alpha)
        self._initial = initial
        self._smoothed = initial

    @property
    def alpha(self) -> float:
        return self._alpha

    @property
    def smoothed(self) -> Vector3:
        return self._smoothed

    def apply(self, raw: Vector3) -> Vector3:
        self._smoothed = low_pass(raw=raw, previous=self._smoothed, alpha=self._alpha)
        return self._smoothed

    def reset(self) -> None:
        self._smoothed = self._initial


def reading_from_counts(
    raw: RawMotion,
    location: Location,
    timestamp: float,
) -> Reading:
    """Build a physical-unit reading from MPU-style sensor counts."""
    return Reading(
        accel=Vector3(
            x=raw.acc_x / ACCEL_LSB_PER_G,
            y=raw.acc_y / ACCEL_LSB_PER_G,
            z=raw.acc_z / ACCEL_LSB_PER_G,
        ),
        gyro=Vector3(
            x=raw.gyro_x / GYRO_LSB_PER_DPS,
            y=raw.gyro_y / GYRO_LSB_PER_DPS,
            z=raw.gyro_z / GYRO_LSB_PER_DPS,
        ),
        location=location,
        timestamp=timestamp,
        raw=raw,
    )
