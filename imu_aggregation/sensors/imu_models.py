"""
IMU measurement correction.

Raw IMU samples follow the additive error model

    omega_meas = omega + b_g + n_g
    f_meas     = f + b_a + n_a

where b_g, b_a are slowly varying biases and n_g, n_a white noise. Before
preintegration the bias snapshot of the current window is removed; the
white noise is not removed sample by sample but accounted for in the
covariance recursion.

Frame Conventions:
    - B: Body frame (sensor frame). All quantities here are in B.
"""

import numpy as np


def _check_sample(x: np.ndarray, name: str) -> np.ndarray:
    x = np.asarray(x, dtype=np.float64)
    if x.shape[-1:] != (3,):
        raise ValueError(f"{name} must have shape (3,) or (N, 3), got {x.shape}")
    if not np.all(np.isfinite(x)):
        raise ValueError(f"{name} contains non-finite values: {x}")
    return x


def correct_gyro(
    gyro_meas: np.ndarray,
    b_g: np.ndarray,
) -> np.ndarray:
    """
    Remove the bias from a gyro sample.

        omega = omega_meas - b_g

    Args:
        gyro_meas: Raw angular rate in body frame B.
                   Shape: (3,) or (N, 3). Units: rad/s.
        b_g: Gyroscope bias, broadcastable to gyro_meas. Units: rad/s.

    Returns:
        Corrected angular rate, same shape as gyro_meas.

    Raises:
        ValueError: If the sample has the wrong shape or is not finite.

    Example:
        >>> correct_gyro(np.array([0.01, 0.0, 0.1]), np.array([0.01, 0.0, 0.0]))
        array([0. , 0. , 0.1])
    """
    return _check_sample(gyro_meas, "gyro_meas") - b_g


def correct_accel(
    accel_meas: np.ndarray,
    b_a: np.ndarray,
) -> np.ndarray:
    """
    Remove the bias from an accelerometer sample.

        f = f_meas - b_a

    The result is still a specific force: gravity is not removed here. It
    is accounted for when a preintegrated window is turned into a
    navigation-frame prediction.

    Args:
        accel_meas: Raw specific force in body frame B.
                    Shape: (3,) or (N, 3). Units: m/s².
        b_a: Accelerometer bias, broadcastable to accel_meas. Units: m/s².

    Returns:
        Corrected specific force, same shape as accel_meas.

    Raises:
        ValueError: If the sample has the wrong shape or is not finite.
    """
    return _check_sample(accel_meas, "accel_meas") - b_a
