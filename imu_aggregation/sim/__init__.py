"""Synthetic IMU data for exercising the preintegration code."""

from imu_aggregation.sim.imu_from_trajectory import (
    compute_specific_force_body,
    constant_twist_imu,
)

__all__ = [
    "compute_specific_force_body",
    "constant_twist_imu",
]
