"""Anomaly detector and vehicle override tests."""

import pytest

from libs.core.domain.anomaly import AnomalyDetector, apply_vehicle_overrides
from libs.core.domain.entities import DetectionResult, Vector3, VehicleProfile

REST = Vector3(0.0, 0.0, 1.0)
STILL = Vector3(0.0, 0.0, 0.0)


def _feed(detector: AnomalyDetector, samples: list[tuple[Vector3, Vector3]]) -> None:
    for accel, gyro in samples:
        detector.add_reading(accel=accel, gyro=gyro)


def _moderate_hit() -> list[tuple[Vector3, Vector3]]:
    return [
        (REST, STILL),
        (Vector3(0.0, 0.0, 2.5), Vector3(0.0, 0.0, 90.0)),
    ]


def test_empty_history_scores_zero() -> None:
    result = AnomalyDetector().detect_with_history()

    assert result == DetectionResult(is_accident=False, danger_percentage=0.0)


def test_vehicle_at_rest_is_not_an_accident() -> None:
    detector = AnomalyDetector()
    _feed(detector, [(REST, STILL)] * 10)

    result = detector.detect_with_history()

    assert result.is_accident is False
    assert result.danger_percentage == pytest.approx(0.0)


def test_violent_impact_saturates_score() -> None:
    detector = AnomalyDetector(vehicle_type=VehicleProfile.SCOOTER)
    _feed(
        detector,
        [
            (REST, STILL),
            (Vector3(0.0, 0.0, 3.5), Vector3(300.0, 0.0, 0.0)),
        ],
    )

    result = detector.detect_with_history()

    assert result.is_accident is True
    assert result.danger_percentage == pytest.approx(100.0)


def test_same_hit_scores_lower_for_car_than_scooter() -> None:
    scooter = AnomalyDetector(vehicle_type=VehicleProfile.SCOOTER)
    car = AnomalyDetector(vehicle_type=VehicleProfile.CAR)
    _feed(scooter, _moderate_hit())
    _feed(car, _moderate_hit())

    scooter_result = scooter.detect_with_history()
    car_result = car.detect_with_history()

    assert scooter_result.danger_percentage == pytest.approx(87.2)
    assert scooter_result.is_accident is True
    assert car_result.danger_percentage == pytest.approx(57.5)
    assert car_result.is_accident is False


def test_vehicle_switch_rescores_existing_history() -> None:
    detector = AnomalyDetector(vehicle_type=VehicleProfile.CAR)
    _feed(detector, _moderate_hit())
    assert detector.detect_with_history().is_accident is False

    detector.set_vehicle_type(VehicleProfile.SCOOTER)

    assert detector.history_length == 2
    assert detector.vehicle_type == VehicleProfile.SCOOTER
    assert detector.detect_with_history().is_accident is True


def test_reset_clears_history() -> None:
    detector = AnomalyDetector()
    _feed(detector, _moderate_hit())

    detector.reset()

    assert detector.history_length == 0
    assert detector.detect_with_history().danger_percentage == 0.0


def test_history_is_bounded_and_evicts_oldest() -> None:
    detector = AnomalyDetector(history_size=3)
    _feed(detector, [(Vector3(0.0, 0.0, 3.5), Vector3(300.0, 0.0, 0.0))])
    _feed(detector, [(REST, STILL)] * 3)

    assert detector.history_length == 3
    assert detector.detect_with_history().danger_percentage == pytest.approx(0.0)


def test_detection_is_deterministic_for_identical_history() -> None:
    samples = [
        (Vector3(0.1, 0.0, 1.0), Vector3(5.0, 0.0, 0.0)),
        (Vector3(0.4, -0.2, 1.6), Vector3(60.0, 10.0, 0.0)),
        (Vector3(-0.3, 0.1, 0.7), Vector3(20.0, 80.0, 5.0)),
    ]
    first = AnomalyDetector()
    second = AnomalyDetector()
    _feed(first, samples)
    _feed(second, samples)

    assert first.detect_with_history() == second.detect_with_history()
    assert first.detect_with_history() == first.detect_with_history()


@pytest.mark.parametrize(
    "base",
    [
        DetectionResult(is_accident=False, danger_percentage=0.0),
        DetectionResult(is_accident=True, danger_percentage=75.0),
    ],
)
def test_scooter_upside_down_forces_full_danger(base: DetectionResult) -> None:
    result = apply_vehicle_overrides(base, VehicleProfile.SCOOTER, accel_z=-0.6)

    assert result == DetectionResult(is_accident=True, danger_percentage=100.0)


def test_scooter_tipped_over_raises_danger_to_floor() -> None:
    low = DetectionResult(is_accident=False, danger_percentage=30.0)
    high = DetectionResult(is_accident=True, danger_percentage=95.0)

    assert apply_vehicle_overrides(low, VehicleProfile.SCOOTER, accel_z=0.2) == (
        DetectionResult(is_accident=True, danger_percentage=80.0)
    )
    assert apply_vehicle_overrides(high, VehicleProfile.SCOOTER, accel_z=-0.3) == (
        DetectionResult(is_accident=True, danger_percentage=95.0)
    )


def test_upright_scooter_keeps_base_result() -> None:
    base = DetectionResult(is_accident=False, danger_percentage=12.0)

    assert apply_vehicle_overrides(base, VehicleProfile.SCOOTER, accel_z=0.9) == base


@pytest.mark.parametrize("accel_z", [0.25, -0.25, 0.0])
def test_flat_car_forces_accident(accel_z: float) -> None:
    base = DetectionResult(is_accident=False, danger_percentage=10.0)

    result = apply_vehicle_overrides(base, VehicleProfile.CAR, accel_z=accel_z)

    assert result.is_accident is True
    assert result.danger_percentage >= 90.0


@pytest.mark.parametrize("accel_z", [0.9, -0.6])
def test_car_outside_flat_band_keeps_base_result(accel_z: float) -> None:
    base = DetectionResult(is_accident=False, danger_percentage=10.0)

    assert apply_vehicle_overrides(base, VehicleProfile.CAR, accel_z=accel_z) == base
