"""
Unit tests for Jacobian correctness.

Tests analytical Jacobians of the preintegration code against numerical
differentiation. Incorrect Jacobians give an inconsistent covariance and
wrong bias corrections downstream, so every block is checked.

Run with: python -m pytest tests/test_jacobians.py -v
"""

from typing import Callable

import numpy as np
import pytest

from imu_aggregation.geometry import POS, THETA, VEL, NavState
from imu_aggregation.preintegration import AggregateImuReadings, update_estimate
from imu_aggregation.sensors import ImuBias, PreintegrationParams


def numerical_jacobian(
    f: Callable,
    x: np.ndarray,
    epsilon: float = 1e-7
) -> np.ndarray:
    """
    Compute Jacobian numerically using central differences.

    Args:
        f: Function that takes x and returns y
        x: Point at which to compute Jacobian
        epsilon: Step size for finite differences

    Returns:
        Numerical Jacobian, shape (len(y), len(x))
    """
    x = np.asarray(x, dtype=float)
    y0 = f(x)

    J = np.zeros((len(y0), len(x)))

    for i in range(len(x)):
        x_plus = x.copy()
        x_minus = x.copy()

        x_plus[i] += epsilon
        x_minus[i] -= epsilon

        # Central difference
        J[:, i] = (f(x_plus) - f(x_minus)) / (2 * epsilon)

    return J


# Representative operating points: (zeta, corrected_acc, corrected_omega, dt)
PROPAGATION_POINTS = [
    (np.zeros(9), np.array([0.0, 0.0, 9.81]), np.zeros(3), 0.01),
    (
        np.array([0.1, -0.2, 0.3, 1.0, 2.0, -0.5, 0.3, -0.1, 0.2]),
        np.array([0.5, -0.3, 9.7]),
        np.array([0.5, -0.3, 1.0]),
        0.01,
    ),
    (
        np.array([-0.4, 0.6, 0.2, 0.0, 0.0, 0.0, 1.0, 1.0, 0.0]),
        np.array([2.0, 1.0, 8.0]),
        np.array([-0.2, 0.1, 0.05]),
        0.005,
    ),
]


def _random_points(seed: int, n: int) -> list:
    """Random operating points with rotation increments up to 1 rad."""
    rng = np.random.default_rng(seed)
    points = []
    for _ in range(n):
        axis = rng.standard_normal(3)
        axis /= np.linalg.norm(axis)
        zeta = np.concatenate([
            rng.uniform(0.0, 1.0) * axis,
            rng.standard_normal(3),
            rng.standard_normal(3),
        ])
        acc = np.array([0.0, 0.0, 9.81]) + rng.standard_normal(3)
        omega = rng.standard_normal(3)
        dt = rng.uniform(0.002, 0.02)
        points.append((zeta, acc, omega, dt))
    return points


PROPAGATION_POINTS += _random_points(seed=42, n=8)


class TestPropagationJacobians:
    """Test the A, Ba and Bw matrices of a propagation step."""

    @pytest.mark.parametrize("zeta,acc,omega,dt", PROPAGATION_POINTS)
    def test_A_exact_blocks(self, zeta, acc, omega, dt):
        """Every block of A except d theta'/d theta is exact."""
        _, J = update_estimate(zeta, acc, omega, dt, return_jacobians=True)
        A_num = numerical_jacobian(lambda z: update_estimate(z, acc, omega, dt)[0], zeta)

        np.testing.assert_allclose(J.A[POS], A_num[POS], atol=1e-8)
        np.testing.assert_allclose(J.A[VEL], A_num[VEL], atol=1e-8)
        np.testing.assert_allclose(J.A[THETA, 3:], A_num[THETA, 3:], atol=1e-8)

    @pytest.mark.parametrize("zeta,acc,omega,dt", PROPAGATION_POINTS)
    def test_A_rotation_block_first_order(self, zeta, acc, omega, dt):
        """d theta'/d theta = I - 0.5 skew(w dt) up to O(|theta| |w dt|)."""
        _, J = update_estimate(zeta, acc, omega, dt, return_jacobians=True)
        A_num = numerical_jacobian(lambda z: update_estimate(z, acc, omega, dt)[0], zeta)

        tol = 0.5 * np.linalg.norm(zeta[THETA]) * np.linalg.norm(omega * dt) + 1e-7
        np.testing.assert_allclose(J.A[THETA, THETA], A_num[THETA, THETA], atol=tol)

    @pytest.mark.parametrize("zeta,acc,omega,dt", PROPAGATION_POINTS)
    def test_Ba(self, zeta, acc, omega, dt):
        _, J = update_estimate(zeta, acc, omega, dt, return_jacobians=True)
        Ba_num = numerical_jacobian(lambda a: update_estimate(zeta, a, omega, dt)[0], acc)
        np.testing.assert_allclose(J.Ba, Ba_num, atol=1e-8)

    @pytest.mark.parametrize("zeta,acc,omega,dt", PROPAGATION_POINTS)
    def test_Bw(self, zeta, acc, omega, dt):
        _, J = update_estimate(zeta, acc, omega, dt, return_jacobians=True)
        Bw_num = numerical_jacobian(lambda w: update_estimate(zeta, acc, w, dt)[0], omega)
        np.testing.assert_allclose(J.Bw, Bw_num, atol=1e-8)


def _window(bias=None, rate_scale=1.0, n=100):
    """Rotating, accelerating motion at 100 Hz."""
    params = PreintegrationParams.make_enu(accel_noise_sigma=0.01, gyro_noise_sigma=1e-3)
    pim = AggregateImuReadings(params, bias if bias is not None else ImuBias())
    dt = 0.01
    for k in range(n):
        t = k * dt
        acc = np.array([0.3 * np.sin(t), -0.2, 9.81 + 0.05 * np.cos(3 * t)])
        omega = rate_scale * np.array([0.05, 0.1 * np.cos(t), -0.15])
        pim.integrate_measurement(acc, omega, dt)
    return pim


class TestBiasJacobian:
    """d zeta / d bias tracked during integration."""

    def test_against_reintegration(self):
        b0 = ImuBias(b_a=np.array([0.01, -0.02, 0.03]), b_g=np.array([1e-3, 0.0, -2e-3]))
        pim = _window(b0, rate_scale=0.4, n=50)

        J_num = numerical_jacobian(
            lambda b: _window(ImuBias.from_vector(b), rate_scale=0.4, n=50).zeta,
            b0.vector(),
            epsilon=1e-5,
        )
        # Rotation block of A is first order in |theta| |w dt|
        np.testing.assert_allclose(pim.bias_jacobian, J_num, atol=1e-4)

    def test_accel_bias_does_not_move_rotation(self):
        pim = _window()
        np.testing.assert_array_equal(pim.bias_jacobian[THETA, :3], np.zeros((3, 3)))

    def test_gyro_bias_without_rotation_is_minus_T(self):
        pim = _window(rate_scale=0.0)
        np.testing.assert_allclose(
            pim.bias_jacobian[THETA, 3:], -pim.elapsed * np.eye(3), atol=1e-12
        )


class TestRetractJacobian:
    """Covariance retraction Jacobian."""

    def test_matches_nav_state_retract(self):
        pim = _window()
        _, H_xi = NavState.identity().retract_jacobians(pim.zeta)
        np.testing.assert_allclose(pim.retract_jacobian(), H_xi, atol=1e-15)

    def test_zero_rotation_is_identity(self):
        pim = AggregateImuReadings(PreintegrationParams.make_enu(), ImuBias())
        np.testing.assert_allclose(pim.retract_jacobian(), np.eye(9), atol=0)


class TestPredictJacobians:
    """Jacobians of predict() with respect to the start state and the bias."""

    def setup_method(self):
        self.b0 = ImuBias(b_a=np.array([0.01, 0.0, -0.01]), b_g=np.array([0.0, 1e-3, 0.0]))
        self.pim = _window(self.b0)
        self.state_i = NavState.from_rotation_vector(
            np.array([0.3, -0.2, 1.1]),
            position=np.array([4.0, -2.0, 1.0]),
            velocity=np.array([1.5, 0.2, -0.1]),
        )
        # Predict away from the snapshot so the first-order correction is active
        self.bias_i = ImuBias(
            b_a=self.b0.b_a + np.array([0.002, -0.001, 0.0]),
            b_g=self.b0.b_g + np.array([0.0, 0.0, 5e-4]),
        )

    def test_H1_state(self):
        x_j = self.pim.predict(self.state_i, self.bias_i)
        H1, _ = self.pim.predict_jacobians(self.state_i, self.bias_i)

        H1_num = numerical_jacobian(
            lambda d: x_j.local_coordinates(
                self.pim.predict(self.state_i.retract(d), self.bias_i)
            ),
            np.zeros(9),
        )
        np.testing.assert_allclose(H1, H1_num, atol=1e-6)

    def test_H2_bias(self):
        x_j = self.pim.predict(self.state_i, self.bias_i)
        _, H2 = self.pim.predict_jacobians(self.state_i, self.bias_i)

        H2_num = numerical_jacobian(
            lambda b: x_j.local_coordinates(
                self.pim.predict(self.state_i, ImuBias.from_vector(b))
            ),
            self.bias_i.vector(),
        )
        np.testing.assert_allclose(H2, H2_num, atol=1e-6)

    def test_H1_at_rest_identity_rotation(self):
        pim = AggregateImuReadings(PreintegrationParams.make_enu(), ImuBias())
        pim.integrate_measurement(np.array([0.0, 0.0, 9.81]), np.zeros(3), 0.01)
        H1, H2 = pim.predict_jacobians(NavState.identity(), ImuBias())

        expected = np.eye(9)
        expected[POS, VEL] = 0.01 * np.eye(3)
        # position and velocity increments enter through -skew(dp), -skew(dv)
        zeta = pim.zeta
        expected[POS, THETA] = -np.array([
            [0.0, -zeta[5], zeta[4]],
            [zeta[5], 0.0, -zeta[3]],
            [-zeta[4], zeta[3], 0.0],
        ])
        expected[VEL, THETA] = -np.array([
            [0.0, -zeta[8], zeta[7]],
            [zeta[8], 0.0, -zeta[6]],
            [-zeta[7], zeta[6], 0.0],
        ])
        np.testing.assert_allclose(H1, expected, atol=1e-15)
        np.testing.assert_allclose(H2, pim.bias_jacobian, atol=1e-15)
