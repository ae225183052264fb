"""
Single-step propagation of the preintegrated tangent state.

The preintegrated state of a window is the 9-vector

    zeta = [theta (3), p (3), v (3)]

with theta the rotation increment (SO(3) tangent coordinates), and p, v the
position and velocity increments, all relative to the body frame at the
start of the window and *without* gravity or initial velocity (those are
added when the window is turned into a prediction).

Given bias-corrected specific force a and angular rate w held constant over
dt, one step is:

    R, D   = Exp(theta), Jr(theta)
    theta' = theta + D^-1 @ w dt
    Radt   = R @ a dt
    p'     = p + v dt + 0.5 dt Radt
    v'     = v + Radt

The mean update is exact for the measurement model. Of the Jacobians, only
the rotation-self block d theta'/d theta uses a first-order (small angle)
approximation, I - 0.5 skew(w dt); the rest are exact.
"""

from dataclasses import dataclass
from typing import Optional, Tuple

import numpy as np

from imu_aggregation.geometry.nav_state import POS, THETA, VEL
from imu_aggregation.geometry.so3 import (
    expmap,
    expmap_derivative,
    expmap_derivative_inverse,
    skew,
)


@dataclass(frozen=True)
class PropagationJacobians:
    """
    Derivatives of one propagation step.

    Attributes:
        A: d zeta' / d zeta, shape (9, 9).
        Ba: d zeta' / d corrected specific force, shape (9, 3).
        Bw: d zeta' / d corrected angular rate, shape (9, 3).
    """

    A: np.ndarray
    Ba: np.ndarray
    Bw: np.ndarray


def update_estimate(
    zeta: np.ndarray,
    corrected_acc: np.ndarray,
    corrected_omega: np.ndarray,
    dt: float,
    return_jacobians: bool = False,
) -> Tuple[np.ndarray, Optional[PropagationJacobians]]:
    """
    Propagate the tangent state over one IMU sample.

    Args:
        zeta: Current tangent state [theta, p, v], shape (9,).
        corrected_acc: Bias-corrected specific force in body frame,
                       shape (3,). Units: m/s².
        corrected_omega: Bias-corrected angular rate in body frame,
                         shape (3,). Units: rad/s.
        dt: Sample interval. Units: seconds. Must be finite and > 0.
        return_jacobians: If True, also compute A, Ba and Bw.

    Returns:
        Tuple of:
            - zeta_plus: Propagated tangent state, shape (9,).
            - jacobians: PropagationJacobians, or None if return_jacobians
              is False.

    Raises:
        ValueError: If shapes are wrong or dt is not finite and positive.
        numpy.linalg.LinAlgError: If |theta| is a non-zero multiple of 2*pi
            (the exponential-map derivative is singular there).

    Example:
        >>> zeta = np.zeros(9)
        >>> zeta1, _ = update_estimate(zeta, np.array([0, 0, 9.81]),
        ...                            np.zeros(3), 0.01)
        >>> zeta1[6:]
        array([0.    , 0.    , 0.0981])
    """
    zeta = np.asarray(zeta, dtype=np.float64)
    corrected_acc = np.asarray(corrected_acc, dtype=np.float64)
    corrected_omega = np.asarray(corrected_omega, dtype=np.float64)

    if zeta.shape != (9,):
        raise ValueError(f"zeta must have shape (9,), got {zeta.shape}")
    if corrected_acc.shape != (3,):
        raise ValueError(
            f"corrected_acc must have shape (3,), got {corrected_acc.shape}"
        )
    if corrected_omega.shape != (3,):
        raise ValueError(
            f"corrected_omega must have shape (3,), got {corrected_omega.shape}"
        )
    if not (np.isfinite(dt) and dt > 0):
        raise ValueError(f"dt must be positive and finite, got {dt}")

    a_dt = corrected_acc * dt
    w_dt = corrected_omega * dt
    theta = zeta[THETA]

    # Exact mean propagation
    R = expmap(theta)
    D_R_theta = expmap_derivative(theta)
    invH = expmap_derivative_inverse(theta)

    Radt = R @ a_dt
    dt2 = 0.5 * dt

    zeta_plus = np.empty(9)
    zeta_plus[THETA] = theta + invH @ w_dt
    zeta_plus[POS] = zeta[POS] + zeta[VEL] * dt + Radt * dt2
    zeta_plus[VEL] = zeta[VEL] + Radt

    if not return_jacobians:
        return zeta_plus, None

    # Exact derivative of R a dt with respect to theta
    D_Radt_theta = -R @ skew(a_dt) @ D_R_theta

    # First order (small angle) approximation of d(invH w dt)/d theta
    D_invHwdt_theta = skew(-0.5 * w_dt)

    A = np.eye(9)
    A[THETA, THETA] += D_invHwdt_theta
    A[POS, THETA] = D_Radt_theta * dt2
    A[POS, VEL] = np.eye(3) * dt
    A[VEL, THETA] = D_Radt_theta

    Ba = np.zeros((9, 3))
    Ba[POS, :] = R * (dt * dt2)
    Ba[VEL, :] = R * dt

    Bw = np.zeros((9, 3))
    Bw[THETA, :] = invH * dt

    return zeta_plus, PropagationJacobians(A=A, Ba=Ba, Bw=Bw)
