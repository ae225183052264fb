"""IMU preintegration for keyframe-based inertial navigation.

This package aggregates the IMU samples between two keyframes into a single
relative-motion measurement with covariance:
- geometry: SO(3) maps and the NavState manifold
- sensors: bias, preintegration parameters and IMU sample types
- noise: Gaussian noise models handed to downstream estimators
- preintegration: mean propagation and AggregateImuReadings
- sim: synthetic IMU data with known ground truth
"""

from imu_aggregation.geometry import NavState
from imu_aggregation.noise import GaussianNoiseModel
from imu_aggregation.preintegration import AggregateImuReadings
from imu_aggregation.sensors import ImuBias, PreintegrationParams

__version__ = "0.1.0"

__all__ = [
    "AggregateImuReadings",
    "GaussianNoiseModel",
    "ImuBias",
    "NavState",
    "PreintegrationParams",
]
