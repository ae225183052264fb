"""
IMU sensor inputs for preintegration.

Modules:
    types: ImuBias, PreintegrationParams, IMUNoiseParams, ImuSeries
    imu_models: bias correction of raw samples
    units: datasheet unit conversions and noise covariances

Example:
    >>> from imu_aggregation.sensors import ImuBias, PreintegrationParams
    >>> params = PreintegrationParams.make_enu(accel_noise_sigma=0.01,
    ...                                        gyro_noise_sigma=1e-3)
    >>> bias = ImuBias()
"""

from imu_aggregation.sensors.imu_models import correct_accel, correct_gyro
from imu_aggregation.sensors.types import (
    ImuBias,
    ImuSeries,
    IMUNoiseParams,
    PreintegrationParams,
)

__all__ = [
    # Data types
    "ImuBias",
    "ImuSeries",
    "IMUNoiseParams",
    "PreintegrationParams",
    # IMU correction
    "correct_accel",
    "correct_gyro",
]
