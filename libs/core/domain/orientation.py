"""Pitch/roll from the gravity projection of an accelerometer vector.

Only meaningful while gravity dominates the measured acceleration. During an
impact the result is an apparent tilt, not the true attitude of the vehicle.
"""

from math import atan2, degrees, sqrt

from libs.core.domain.entities import Orientation, Vector3

ZERO_ORIENTATION = Orientation(pitch=0.0, roll=0.0)


def estimate_orientation(accel: Vector3) -> Orientation:
    if accel.x == 0.0 and accel.y == 0.0 and accel.z == 0.0:
        return ZERO_ORIENTATION

    pitch = atan2(accel.y, accel.z)
    roll = atan2(-accel.x, sqrt(accel.y * accel.y + accel.z * accel.z))
    return Orientation(pitch=degrees(pitch), roll=degrees(roll))
