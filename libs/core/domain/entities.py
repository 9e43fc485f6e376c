from dataclasses import dataclass
from enum import Enum
from typing import Optional


class VehicleProfile(str, Enum):
    """Vehicle type selecting override thresholds and detector tuning."""

    SCOOTER = "scooter"
    CAR = "car"


class AccidentStatus(str, Enum):
    PENDING = "pending"
    CONFIRMED = "confirmed"
    CANCELLED = "cancelled"


class AlertKind(str, Enum):
    USER_CONFIRMATION = "user_confirmation"
    EMERGENCY_ALERT = "emergency_alert"


@dataclass(frozen=True)
class Vector3:
    x: float
    y: float
    z: float

    def magnitude(self) -> float:
        return (self.x * self.x + self.y * self.y + self.z * self.z) ** 0.5


@dataclass(frozen=True)
class Location:
    latitude: float
    longitude: float


@dataclass(frozen=True)
class RawMotion:
    """Sensor counts exactly as transmitted by the device."""

    acc_x: float
    acc_y: float
    acc_z: float
    gyro_x: float
    gyro_y: float
    gyro_z: float


@dataclass(frozen=True)
class Reading:
    """One unit-converted sensor reading (g-force, degrees/second)."""

    accel: Vector3
    gyro: Vector3
    location: Location
    timestamp: float
    raw: Optional[RawMotion] = None


@dataclass(frozen=True)
class Orientation:
    """Apparent tilt in degrees derived from the gravity projection."""

    pitch: float
    roll: float


@dataclass(frozen=True)
class DetectionResult:
    is_accident: bool
    danger_percentage: float


@dataclass
class AccidentEvent:
    """Accident record owned by the escalation state machine while active."""

    accident_id: str
    vehicle_id: str
    danger_percentage: float
    location: Location
    raw_motion: RawMotion
    vehicle_type: VehicleProfile
    status: AccidentStatus = AccidentStatus.PENDING
    created_at: str = ""
    user_responded: bool = False
    emails_sent: bool = False
    resolved_at: Optional[str] = None


@dataclass
class AccidentSnapshot:
    """Data captured at trigger time and handed to persistence."""

    vehicle_id: str
    danger_percentage: float
    location: Location
    raw_motion: RawMotion
    vehicle_type: VehicleProfile


@dataclass
class UserSettings:
    """Contact details used for outbound alerts."""

    user_email: Optional[str] = None
    emergency_contact_1: Optional[str] = None
    emergency_contact_2: Optional[str] = None
