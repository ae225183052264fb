"""
IMU preintegration between keyframes.

Modules:
    propagation: single-sample update of the tangent state and its Jacobians
    aggregate: AggregateImuReadings (integrate, predict, noise model)

Example:
    >>> from imu_aggregation.preintegration import AggregateImuReadings
    >>> from imu_aggregation.sensors import ImuBias, PreintegrationParams
    >>> pim = AggregateImuReadings(PreintegrationParams.make_enu(), ImuBias())
"""

from imu_aggregation.preintegration.aggregate import AggregateImuReadings
from imu_aggregation.preintegration.propagation import (
    PropagationJacobians,
    update_estimate,
)

__all__ = [
    "AggregateImuReadings",
    "PropagationJacobians",
    "update_estimate",
]
