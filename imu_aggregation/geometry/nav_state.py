"""
Navigation state manifold: attitude, position and velocity.

NavState is the motion state consumed and produced by the preintegration
code. It is a point on SO(3) x R^3 x R^3 with a 9-dimensional tangent space
laid out as

    xi = [dtheta (3), dp (3), dv (3)]

and the retraction

    retract(x, xi) = ( R @ Exp(dtheta),  p + R @ dp,  v + R @ dv )

i.e. all three perturbations are expressed in the body frame of the base
state. local_coordinates() is the exact inverse of retract().

Frame Conventions:
    - attitude R rotates body-frame vectors into the navigation frame:
      v_nav = R @ v_body
    - position and velocity are expressed in the navigation frame

Jacobians returned by retract_jacobians() are expressed in the local
coordinates of the *result*, which is the convention used throughout the
preintegration module.
"""

import warnings
from dataclasses import dataclass
from typing import Tuple

import numpy as np

from imu_aggregation.geometry.so3 import expmap, expmap_derivative, logmap, skew

# Index layout of the 9-dimensional tangent vector.
THETA = slice(0, 3)
POS = slice(3, 6)
VEL = slice(6, 9)


@dataclass(frozen=True)
class NavState:
    """
    Attitude, position and velocity of a body in the navigation frame.

    Attributes:
        attitude: Rotation matrix body -> navigation, shape (3, 3).
        position: Position in navigation frame, shape (3,). Units: m.
        velocity: Velocity in navigation frame, shape (3,). Units: m/s.

    Notes:
        - Immutable value type; retract() returns a new instance.
        - A UserWarning is issued when the attitude is not orthonormal
          (tolerance 1e-6). The matrix is stored as given.

    Example:
        >>> x = NavState.identity()
        >>> y = x.retract(np.array([0, 0, 0.1, 1, 0, 0, 0, 0, 0]))
        >>> np.allclose(x.local_coordinates(y), [0, 0, 0.1, 1, 0, 0, 0, 0, 0])
        True
    """

    attitude: np.ndarray
    position: np.ndarray
    velocity: np.ndarray

    def __post_init__(self) -> None:
        """Validate shapes and orthonormality of the attitude."""
        attitude = np.asarray(self.attitude, dtype=np.float64)
        position = np.asarray(self.position, dtype=np.float64)
        velocity = np.asarray(self.velocity, dtype=np.float64)

        if attitude.shape != (3, 3):
            raise ValueError(
                f"NavState.attitude must have shape (3, 3), got {attitude.shape}"
            )
        if position.shape != (3,):
            raise ValueError(
                f"NavState.position must have shape (3,), got {position.shape}"
            )
        if velocity.shape != (3,):
            raise ValueError(
                f"NavState.velocity must have shape (3,), got {velocity.shape}"
            )

        object.__setattr__(self, "attitude", attitude)
        object.__setattr__(self, "position", position)
        object.__setattr__(self, "velocity", velocity)

        orthonormality_error = np.max(np.abs(attitude.T @ attitude - np.eye(3)))
        if orthonormality_error > 1e-6:
            warnings.warn(
                f"NavState initialized with non-orthonormal attitude "
                f"(max |R^T R - I| = {orthonormality_error:.2e}).",
                UserWarning,
            )

    @classmethod
    def identity(cls) -> "NavState":
        """Level attitude at the origin, at rest."""
        return cls(attitude=np.eye(3), position=np.zeros(3), velocity=np.zeros(3))

    @classmethod
    def from_rotation_vector(
        cls,
        theta: np.ndarray,
        position: np.ndarray,
        velocity: np.ndarray,
    ) -> "NavState":
        """Build a state whose attitude is Exp(theta)."""
        return cls(attitude=expmap(theta), position=position, velocity=velocity)

    def rotation_vector(self) -> np.ndarray:
        """Attitude as a rotation vector Log(R), shape (3,)."""
        return logmap(self.attitude)

    def retract(self, xi: np.ndarray) -> "NavState":
        """
        Apply a body-frame tangent perturbation.

        Args:
            xi: Tangent vector [dtheta, dp, dv], shape (9,).

        Returns:
            NavState (R Exp(dtheta), p + R dp, v + R dv).

        Raises:
            ValueError: If xi does not have shape (9,).
        """
        xi = _check_tangent(xi)
        R = self.attitude
        return NavState(
            attitude=R @ expmap(xi[THETA]),
            position=self.position + R @ xi[POS],
            velocity=self.velocity + R @ xi[VEL],
        )

    def retract_jacobians(self, xi: np.ndarray) -> Tuple[np.ndarray, np.ndarray]:
        """
        Jacobians of retract() in the local coordinates of the result.

        Args:
            xi: Tangent vector [dtheta, dp, dv], shape (9,).

        Returns:
            Tuple (H_state, H_xi):
                H_state: 9x9 derivative with respect to this state.
                H_xi: 9x9 derivative with respect to xi,
                      diag(Jr(dtheta), E^T, E^T) with E = Exp(dtheta).
        """
        xi = _check_tangent(xi)
        E = expmap(xi[THETA])
        Et = E.T

        H_state = np.zeros((9, 9))
        H_state[THETA, THETA] = Et
        H_state[POS, THETA] = -Et @ skew(xi[POS])
        H_state[POS, POS] = Et
        H_state[VEL, THETA] = -Et @ skew(xi[VEL])
        H_state[VEL, VEL] = Et

        H_xi = np.zeros((9, 9))
        H_xi[THETA, THETA] = expmap_derivative(xi[THETA])
        H_xi[POS, POS] = Et
        H_xi[VEL, VEL] = Et

        return H_state, H_xi

    def local_coordinates(self, other: "NavState") -> np.ndarray:
        """
        Tangent vector xi such that self.retract(xi) == other.

        Args:
            other: Target state.

        Returns:
            xi = [Log(R^T R2), R^T (p2 - p), R^T (v2 - v)], shape (9,).
        """
        Rt = self.attitude.T
        xi = np.zeros(9)
        xi[THETA] = logmap(Rt @ other.attitude)
        xi[POS] = Rt @ (other.position - self.position)
        xi[VEL] = Rt @ (other.velocity - self.velocity)
        return xi

    def __str__(self) -> str:
        theta = self.rotation_vector()
        return (
            f"NavState(theta=[{theta[0]:.4f}, {theta[1]:.4f}, {theta[2]:.4f}], "
            f"pos=[{self.position[0]:.3f}, {self.position[1]:.3f}, {self.position[2]:.3f}], "
            f"vel=[{self.velocity[0]:.3f}, {self.velocity[1]:.3f}, {self.velocity[2]:.3f}])"
        )


def _check_tangent(xi: np.ndarray) -> np.ndarray:
    xi = np.asarray(xi, dtype=np.float64)
    if xi.shape != (9,):
        raise ValueError(f"Tangent vector must have shape (9,), got {xi.shape}")
    return xi
