"""Rotation group and navigation-state manifold.

This package provides the geometric building blocks of the preintegration
code:
- so3: exponential/logarithm maps of SO(3) and their derivatives
- nav_state: NavState (attitude, position, velocity) with retract and
  local coordinates
"""

from imu_aggregation.geometry.nav_state import POS, THETA, VEL, NavState
from imu_aggregation.geometry.so3 import (
    expmap,
    expmap_derivative,
    expmap_derivative_inverse,
    logmap,
    logmap_derivative,
    skew,
    vee,
)

__all__ = [
    # Tangent layout
    "THETA",
    "POS",
    "VEL",
    # Manifold
    "NavState",
    # SO(3)
    "skew",
    "vee",
    "expmap",
    "expmap_derivative",
    "expmap_derivative_inverse",
    "logmap",
    "logmap_derivative",
]
