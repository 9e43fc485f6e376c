import time
from datetime import datetime, timezone

from fastapi import APIRouter, HTTPException, Query
from pydantic import BaseModel, Field

from libs.core.application.guardian_service import StreamSnapshot
from libs.core.domain.entities import (
    AccidentEvent,
    AccidentStatus,
    Location,
    RawMotion,
    Reading,
    UserSettings,
    VehicleProfile,
)
from libs.core.domain.signal import reading_from_counts
from services.api_gateway.dependencies import get_event_log, get_guardian_service

router = APIRouter()

API_VERSION = "0.1.0"


class SensorPacketRequest(BaseModel):
    """Raw device packet: sensor counts plus GPS fix."""

    acc_x: float
    acc_y: float
    acc_z: float
    gyro_x: float
    gyro_y: float
    gyro_z: float
    latitude: float = Field(ge=-90.0, le=90.0)
    longitude: float = Field(ge=-180.0, le=180.0)
    created_at: datetime | None = None


class VehicleTypeRequest(BaseModel):
    vehicle_type: VehicleProfile


class SettingsRequest(BaseModel):
    user_email: str | None = None
    emergency_contact_1: str | None = None
    emergency_contact_2: str | None = None


@router.get("/health")
def health() -> dict[str, str]:
    return {"status": "ok"}


@router.get("/ready")
def ready() -> dict[str, str]:
    return {"status": "ready"}


@router.get("/version")
def version() -> dict[str, str]:
    return {"version": API_VERSION}


@router.post("/v1/vehicles/{vehicle_id}/readings")
def ingest_reading_endpoint(
    vehicle_id: str,
    payload: SensorPacketRequest,
) -> dict[str, object]:
    service = get_guardian_service()
    outcome = service.ingest_reading(vehicle_id, _packet_to_reading(payload))
    return {
        "vehicle_id": vehicle_id,
        "accepted": True,
        "is_accident": outcome.result.is_accident,
        "danger_percentage": outcome.result.danger_percentage,
        "accident_id": (
            outcome.accident.accident_id if outcome.accident is not None else None
        ),
    }


@router.post("/v1/vehicles/{vehicle_id}/warm-start")
def warm_start_endpoint(
    vehicle_id: str,
    payload: SensorPacketRequest,
) -> dict[str, object]:
    service = get_guardian_service()
    outcome = service.warm_start(vehicle_id, _packet_to_reading(payload))
    snapshot = service.get_snapshot(vehicle_id)
    return {
        "vehicle_id": vehicle_id,
        "accepted": True,
        "connected": snapshot.connected if snapshot is not None else False,
        "danger_percentage": outcome.result.danger_percentage,
    }


@router.get("/v1/vehicles")
def list_vehicles() -> list[str]:
    return get_guardian_service().list_vehicles()


@router.get("/v1/vehicles/{vehicle_id}/snapshot")
def get_vehicle_snapshot(vehicle_id: str) -> dict[str, object]:
    snapshot = get_guardian_service().get_snapshot(vehicle_id)
    if snapshot is None:
        raise HTTPException(status_code=404, detail="Vehicle not found")
    return _snapshot_to_dict(snapshot)


@router.put("/v1/vehicles/{vehicle_id}/vehicle-type")
def change_vehicle_type(
    vehicle_id: str,
    payload: VehicleTypeRequest,
) -> dict[str, str]:
    vehicle_type = get_guardian_service().change_vehicle_type(
        vehicle_id=vehicle_id,
        vehicle_type=payload.vehicle_type,
    )
    return {"vehicle_id": vehicle_id, "vehicle_type": vehicle_type.value}


@router.post("/v1/vehicles/{vehicle_id}/reset")
def reset_vehicle_stream(vehicle_id: str) -> dict[str, object]:
    if not get_guardian_service().reset_stream(vehicle_id):
        raise HTTPException(status_code=404, detail="Vehicle not found")
    return {"vehicle_id": vehicle_id, "reset": True}


@router.post("/v1/vehicles/{vehicle_id}/accident/cancel")
def cancel_active_accident(vehicle_id: str) -> dict[str, object]:
    service = get_guardian_service()
    try:
        accident = service.cancel_active_accident(vehicle_id)
    except ValueError as error:
        raise HTTPException(status_code=404, detail=str(error)) from error
    if accident is None:
        raise HTTPException(status_code=409, detail="No pending accident")
    return _accident_to_dict(accident)


@router.get("/v1/accidents")
def get_accidents(
    vehicle_id: str | None = None,
    status: AccidentStatus | None = None,
) -> list[dict[str, object]]:
    accidents = get_guardian_service().list_accidents(
        vehicle_id=vehicle_id,
        status=status,
    )
    return [_accident_to_dict(accident) for accident in accidents]


@router.get("/v1/accidents/{accident_id}")
def get_accident_details(accident_id: str) -> dict[str, object]:
    accident = get_guardian_service().get_accident(accident_id)
    if accident is None:
        raise HTTPException(status_code=404, detail="Accident not found")
    return _accident_to_dict(accident)


@router.get("/v1/settings")
def get_settings() -> dict[str, str | None]:
    return _settings_to_dict(get_guardian_service().get_settings())


@router.put("/v1/settings")
def update_settings(payload: SettingsRequest) -> dict[str, str | None]:
    saved = get_guardian_service().update_settings(
        UserSettings(
            user_email=payload.user_email,
            emergency_contact_1=payload.emergency_contact_1,
            emergency_contact_2=payload.emergency_contact_2,
        )
    )
    return _settings_to_dict(saved)


@router.get("/v1/events")
def get_events(limit: int = Query(default=50, ge=1, le=500)) -> list[dict[str, object]]:
    return get_event_log().list(limit=limit)


def _packet_to_reading(payload: SensorPacketRequest) -> Reading:
    if payload.created_at is None:
        timestamp = time.time()
    else:
        created_at = payload.created_at
        if created_at.tzinfo is None:
            created_at = created_at.replace(tzinfo=timezone.utc)
        timestamp = created_at.timestamp()

    return reading_from_counts(
        raw=RawMotion(
            acc_x=payload.acc_x,
            acc_y=payload.acc_y,
            acc_z=payload.acc_z,
            gyro_x=payload.gyro_x,
            gyro_y=payload.gyro_y,
            gyro_z=payload.gyro_z,
        ),
        location=Location(latitude=payload.latitude, longitude=payload.longitude),
        timestamp=timestamp,
    )


def _accident_to_dict(accident: AccidentEvent) -> dict[str, object]:
    raw = accident.raw_motion
    return {
        "accident_id": accident.accident_id,
        "vehicle_id": accident.vehicle_id,
        "vehicle_type": accident.vehicle_type.value,
        "status": accident.status.value,
        "danger_percentage": accident.danger_percentage,
        "latitude": accident.location.latitude,
        "longitude": accident.location.longitude,
        "acc_x": raw.acc_x,
        "acc_y": raw.acc_y,
        "acc_z": raw.acc_z,
        "gyro_x": raw.gyro_x,
        "gyro_y": raw.gyro_y,
        "gyro_z": raw.gyro_z,
        "user_responded": accident.user_responded,
        "emails_sent": accident.emails_sent,
        "created_at": accident.created_at,
        "resolved_at": accident.resolved_at,
    }


def _snapshot_to_dict(snapshot: StreamSnapshot) -> dict[str, object]:
    return {
        "vehicle_id": snapshot.vehicle_id,
        "vehicle_type": snapshot.vehicle_type.value,
        "connected": snapshot.connected,
        "orientation": {
            "pitch": snapshot.orientation.pitch,
            "roll": snapshot.orientation.roll,
        },
        "danger_percentage": snapshot.danger_percentage,
        "is_accident": snapshot.is_accident,
        "accel": {"x": snapshot.accel.x, "y": snapshot.accel.y, "z": snapshot.accel.z},
        "gyro": (
            {"x": snapshot.gyro.x, "y": snapshot.gyro.y, "z": snapshot.gyro.z}
            if snapshot.gyro is not None
            else None
        ),
        "location": (
            {
                "latitude": snapshot.location.latitude,
                "longitude": snapshot.location.longitude,
            }
            if snapshot.location is not None
            else None
        ),
        "timestamp": snapshot.timestamp,
        "escalation_state": snapshot.escalation_state.value,
        "active_accident_id": snapshot.active_accident_id,
    }


def _settings_to_dict(settings: UserSettings) -> dict[str, str | None]:
    return {
        "user_email": settings.user_email,
        "emergency_contact_1": settings.emergency_contact_1,
        "emergency_contact_2": settings.emergency_contact_2,
    }
