"""
Generate synthetic IMU measurements from a known motion.

Accelerometers measure specific force, not acceleration. The forward model is

    f_b = R^T (a_N - g_N)

with R the body-to-navigation rotation, a_N the true acceleration and g_N
gravity, both in the navigation frame. For a body at rest in ENU with level
attitude this gives f_b = [0, 0, +9.81].

constant_twist_imu() samples a body that spins at a constant body rate while
its navigation-frame acceleration is constant. For that motion the sampled
readings, held over each interval, are integrated exactly by
AggregateImuReadings, so the ground-truth end state can be compared against
predict() at float precision.
"""

from typing import Tuple

import numpy as np

from imu_aggregation.geometry.nav_state import NavState
from imu_aggregation.geometry.so3 import expmap
from imu_aggregation.sensors.types import ImuSeries


def compute_specific_force_body(
    accel_nav: np.ndarray,
    R_nb: np.ndarray,
    gravity: np.ndarray,
) -> np.ndarray:
    """
    Compute specific force in body frame from true acceleration.

    Args:
        accel_nav: True acceleration in navigation frame.
                   Shape: (N, 3) or (3,). Units: m/s².
        R_nb: Body-to-navigation rotation matrices.
              Shape: (N, 3, 3) or (3, 3).
        gravity: Gravity vector in navigation frame, shape (3,). Units: m/s².

    Returns:
        Specific force in body frame, shape (N, 3) or (3,). Units: m/s².

    Example:
        >>> f_b = compute_specific_force_body(np.zeros(3), np.eye(3),
        ...                                   np.array([0, 0, -9.81]))
        >>> print(f_b)  # [0, 0, +9.81] (upward reaction)
    """
    accel_nav = np.asarray(accel_nav, dtype=np.float64)
    R_nb = np.asarray(R_nb, dtype=np.float64)
    gravity = np.asarray(gravity, dtype=np.float64)

    single_sample = accel_nav.ndim == 1
    if single_sample:
        accel_nav = accel_nav.reshape(1, 3)
        R_nb = R_nb.reshape(1, 3, 3)

    if R_nb.shape != (accel_nav.shape[0], 3, 3):
        raise ValueError(
            f"R_nb must have shape ({accel_nav.shape[0]}, 3, 3), got {R_nb.shape}"
        )

    # f_b = R^T (a - g), batched
    f_b = np.einsum("nji,nj->ni", R_nb, accel_nav - gravity)

    if single_sample:
        return f_b[0]
    return f_b


def constant_twist_imu(
    state0: NavState,
    omega_b: np.ndarray,
    accel_nav: np.ndarray,
    gravity: np.ndarray,
    dt: float,
    n: int,
) -> Tuple[ImuSeries, NavState]:
    """
    Sample an ideal IMU on a body with constant body rate and acceleration.

    The motion is
        R(t) = R0 Exp(omega_b t)
        v(t) = v0 + a t
        p(t) = p0 + v0 t + 0.5 a t^2

    Args:
        state0: State at t = 0.
        omega_b: Constant angular rate in body frame, shape (3,). Units: rad/s.
        accel_nav: Constant acceleration in navigation frame, shape (3,). Units: m/s².
        gravity: Gravity vector in navigation frame, shape (3,). Units: m/s².
        dt: Sample interval. Units: s.
        n: Number of intervals.

    Returns:
        Tuple (imu, state_n):
            imu: ImuSeries with n + 1 samples at t_k = k dt; sample k is the
                 reading at t_k.
            state_n: Ground-truth state at t = n dt.

    Notes:
        - Ideal measurements (no noise, no bias).
    """
    omega_b = np.asarray(omega_b, dtype=np.float64)
    accel_nav = np.asarray(accel_nav, dtype=np.float64)
    if dt <= 0:
        raise ValueError(f"dt must be positive, got {dt}")
    if n < 1:
        raise ValueError(f"n must be >= 1, got {n}")

    t = np.arange(n + 1) * dt
    R = np.array([state0.attitude @ expmap(omega_b * tk) for tk in t])

    accel = compute_specific_force_body(
        np.tile(accel_nav, (n + 1, 1)), R, gravity
    )
    gyro = np.tile(omega_b, (n + 1, 1))

    imu = ImuSeries(
        t=t,
        accel=accel,
        gyro=gyro,
        meta={"sample_rate_hz": 1.0 / dt, "source": "constant_twist"},
    )

    T = t[-1]
    state_n = NavState(
        attitude=R[-1],
        position=state0.position + state0.velocity * T + 0.5 * accel_nav * T**2,
        velocity=state0.velocity + accel_nav * T,
    )
    return imu, state_n
