"""
Unit tests for single-sample propagation of the preintegrated state.
"""

import numpy as np
import pytest

from imu_aggregation.geometry import POS, THETA, VEL, expmap
from imu_aggregation.preintegration import PropagationJacobians, update_estimate


class TestUpdateEstimate:
    """Test suite for the mean propagator."""

    def test_no_motion_stays_zero(self) -> None:
        zeta, _ = update_estimate(np.zeros(9), np.zeros(3), np.zeros(3), 0.01)
        np.testing.assert_array_equal(zeta, np.zeros(9))

    def test_jacobians_optional(self) -> None:
        _, J = update_estimate(np.zeros(9), np.zeros(3), np.zeros(3), 0.01)
        assert J is None

    def test_gravity_reaction_single_step(self) -> None:
        dt = 0.01
        zeta, _ = update_estimate(np.zeros(9), np.array([0, 0, 9.81]), np.zeros(3), dt)
        np.testing.assert_allclose(zeta[THETA], np.zeros(3), atol=0)
        np.testing.assert_allclose(zeta[VEL], [0, 0, 9.81 * dt], atol=1e-15)
        np.testing.assert_allclose(zeta[POS], [0, 0, 0.5 * 9.81 * dt**2], atol=1e-15)

    def test_rotation_from_zero(self) -> None:
        omega = np.array([0.1, -0.2, 0.3])
        zeta, _ = update_estimate(np.zeros(9), np.zeros(3), omega, 0.5)
        np.testing.assert_allclose(zeta[THETA], omega * 0.5, atol=1e-15)

    def test_specific_force_rotated_by_theta(self) -> None:
        theta = np.array([0.0, 0.0, np.pi / 2])
        zeta0 = np.concatenate([theta, np.zeros(6)])
        zeta, _ = update_estimate(zeta0, np.array([1.0, 0.0, 0.0]), np.zeros(3), 0.1)
        # body x maps onto nav y after a quarter turn about z
        np.testing.assert_allclose(zeta[VEL], [0.0, 0.1, 0.0], atol=1e-12)

    def test_velocity_carries_into_position(self) -> None:
        zeta0 = np.zeros(9)
        zeta0[VEL] = [1.0, 2.0, 3.0]
        zeta, _ = update_estimate(zeta0, np.zeros(3), np.zeros(3), 0.1)
        np.testing.assert_allclose(zeta[POS], [0.1, 0.2, 0.3], atol=1e-15)
        np.testing.assert_allclose(zeta[VEL], [1.0, 2.0, 3.0], atol=0)

    def test_zero_motion_jacobians(self) -> None:
        dt = 0.01
        _, J = update_estimate(np.zeros(9), np.zeros(3), np.zeros(3), dt,
                               return_jacobians=True)
        assert isinstance(J, PropagationJacobians)

        A_expected = np.eye(9)
        A_expected[POS, VEL] = dt * np.eye(3)
        np.testing.assert_allclose(J.A, A_expected, atol=0)

        np.testing.assert_allclose(J.Ba[THETA], np.zeros((3, 3)), atol=0)
        np.testing.assert_allclose(J.Ba[POS], 0.5 * dt**2 * np.eye(3), atol=1e-18)
        np.testing.assert_allclose(J.Ba[VEL], dt * np.eye(3), atol=0)

        np.testing.assert_allclose(J.Bw[THETA], dt * np.eye(3), atol=0)
        np.testing.assert_allclose(J.Bw[3:], np.zeros((6, 3)), atol=0)

    def test_input_rotation_in_Ba(self) -> None:
        theta = np.array([0.2, -0.4, 0.1])
        zeta0 = np.concatenate([theta, np.zeros(6)])
        dt = 0.02
        _, J = update_estimate(zeta0, np.zeros(3), np.zeros(3), dt, return_jacobians=True)
        np.testing.assert_allclose(J.Ba[VEL], dt * expmap(theta), atol=1e-15)

    def test_does_not_modify_input(self) -> None:
        zeta0 = np.arange(9, dtype=float) * 0.01
        before = zeta0.copy()
        update_estimate(zeta0, np.ones(3), np.ones(3), 0.01, return_jacobians=True)
        np.testing.assert_array_equal(zeta0, before)

    @pytest.mark.parametrize("dt", [0.0, -0.01, np.nan, np.inf])
    def test_rejects_non_positive_dt(self, dt) -> None:
        with pytest.raises(ValueError, match="dt"):
            update_estimate(np.zeros(9), np.zeros(3), np.zeros(3), dt)

    def test_rejects_wrong_shapes(self) -> None:
        with pytest.raises(ValueError, match="zeta"):
            update_estimate(np.zeros(6), np.zeros(3), np.zeros(3), 0.01)
        with pytest.raises(ValueError, match="corrected_acc"):
            update_estimate(np.zeros(9), np.zeros(2), np.zeros(3), 0.01)
        with pytest.raises(ValueError, match="corrected_omega"):
            update_estimate(np.zeros(9), np.zeros(3), np.zeros((1, 3)), 0.01)

    def test_singular_rotation_raises(self) -> None:
        zeta0 = np.zeros(9)
        zeta0[THETA] = [0.0, 2 * np.pi, 0.0]
        with pytest.raises(np.linalg.LinAlgError):
            update_estimate(zeta0, np.zeros(3), np.zeros(3), 0.01)
