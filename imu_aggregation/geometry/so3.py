"""Rotation group SO(3): exponential/logarithm maps and their derivatives.

This module is the stateless rotation-group utility used by the
preintegration code. It converts between rotation vectors (tangent
coordinates, theta = angle * axis) and 3x3 rotation matrices, and provides
the derivative of the exponential map needed to propagate uncertainty.

Conventions:
- Rotation matrices are 3x3 numpy arrays with R @ R.T = I and det(R) = +1.
- Rotation vectors are 3-element numpy arrays in radians.
- The exponential-map derivative is the *right* Jacobian Jr(theta):
      Exp(theta + delta) ~= Exp(theta) @ Exp(Jr(theta) @ delta)
  which is the convention required by NavState.retract, where increments
  are composed on the right (body side).

Closed forms (t = |theta|, W = skew(theta)):
- Exp(theta)    = I + sin(t)/t W + (1 - cos(t))/t^2 W^2         (Rodrigues)
- Jr(theta)     = I - (1 - cos(t))/t^2 W + (t - sin(t))/t^3 W^2
- Jr(theta)^-1  = I + 1/2 W + (1/t^2 - cot(t/2)/(2t)) W^2

Jr is singular whenever t is a non-zero multiple of 2*pi. Inverting it there
raises numpy.linalg.LinAlgError rather than returning a meaningless value.
"""

import numpy as np
from numpy.typing import NDArray

# Below this angle the series expansions are used instead of the closed forms.
_SMALL_ANGLE = 1e-8

# |sin(t/2)| below this means Jr(theta) is numerically singular.
_SINGULARITY_TOL = 1e-9

# Distance from pi below which logmap switches to the symmetric-part method.
_NEAR_PI = 1e-6


def _check_vector3(v: NDArray[np.float64], name: str) -> NDArray[np.float64]:
    v = np.asarray(v, dtype=np.float64)
    if v.shape != (3,):
        raise ValueError(f"{name} must have shape (3,), got {v.shape}")
    return v


def skew(v: NDArray[np.float64]) -> NDArray[np.float64]:
    """Skew-symmetric (hat) matrix of a 3-vector.

    Args:
        v: 3-vector [x, y, z].

    Returns:
        3x3 matrix S such that S @ u = cross(v, u).

    Raises:
        ValueError: If v does not have shape (3,).

    Example:
        >>> S = skew(np.array([1.0, 2.0, 3.0]))
        >>> np.allclose(S, -S.T)
        True
    """
    x, y, z = _check_vector3(v, "v")
    return np.array(
        [
            [0.0, -z, y],
            [z, 0.0, -x],
            [-y, x, 0.0],
        ],
        dtype=np.float64,
    )


def vee(S: NDArray[np.float64]) -> NDArray[np.float64]:
    """Inverse of skew(): extract the 3-vector from a skew-symmetric matrix."""
    if S.shape != (3, 3):
        raise ValueError(f"Expected 3x3 matrix, got shape {S.shape}")
    return np.array([S[2, 1], S[0, 2], S[1, 0]], dtype=np.float64)


def expmap(theta: NDArray[np.float64]) -> NDArray[np.float64]:
    """Exponential map from a rotation vector to a rotation matrix.

    Uses Rodrigues' formula. For angles below 1e-8 rad the second-order
    series I + W + W^2/2 is used, which is exact to machine precision there.

    Args:
        theta: Rotation vector (angle * unit axis), shape (3,), radians.

    Returns:
        3x3 rotation matrix Exp(theta).

    Raises:
        ValueError: If theta does not have shape (3,).

    Example:
        >>> R = expmap(np.array([0.0, 0.0, np.pi / 2]))
        >>> np.allclose(R @ [1.0, 0.0, 0.0], [0.0, 1.0, 0.0])
        True
    """
    theta = _check_vector3(theta, "theta")
    t2 = float(theta @ theta)
    t = np.sqrt(t2)
    W = skew(theta)

    if t < _SMALL_ANGLE:
        return np.eye(3) + W + 0.5 * (W @ W)

    return np.eye(3) + (np.sin(t) / t) * W + ((1.0 - np.cos(t)) / t2) * (W @ W)


def expmap_derivative(theta: NDArray[np.float64]) -> NDArray[np.float64]:
    """Right Jacobian Jr(theta) of the exponential map.

    Args:
        theta: Rotation vector, shape (3,), radians.

    Returns:
        3x3 matrix Jr with Exp(theta + d) ~= Exp(theta) @ Exp(Jr @ d).
    """
    theta = _check_vector3(theta, "theta")
    t2 = float(theta @ theta)
    t = np.sqrt(t2)
    W = skew(theta)

    if t < _SMALL_ANGLE:
        return np.eye(3) - 0.5 * W + (W @ W) / 6.0

    a = (1.0 - np.cos(t)) / t2
    b = (t - np.sin(t)) / (t2 * t)
    return np.eye(3) - a * W + b * (W @ W)


def expmap_derivative_inverse(theta: NDArray[np.float64]) -> NDArray[np.float64]:
    """Closed-form inverse of the right Jacobian, Jr(theta)^-1.

    This is the matrix that maps a body-frame rotation increment back to an
    increment of the rotation vector: Log(Exp(theta) @ Exp(d)) ~= theta +
    Jr^-1 @ d.

    Args:
        theta: Rotation vector, shape (3,), radians.

    Returns:
        3x3 matrix Jr(theta)^-1.

    Raises:
        ValueError: If theta does not have shape (3,).
        numpy.linalg.LinAlgError: If |theta| is a non-zero multiple of 2*pi,
            where Jr(theta) is singular.
    """
    theta = _check_vector3(theta, "theta")
    t2 = float(theta @ theta)
    t = np.sqrt(t2)
    W = skew(theta)

    if t < _SMALL_ANGLE:
        return np.eye(3) + 0.5 * W + (W @ W) / 12.0

    half = 0.5 * t
    sin_half = np.sin(half)
    if abs(sin_half) < _SINGULARITY_TOL:
        raise np.linalg.LinAlgError(
            f"Exponential map derivative is singular at |theta| = {t:.12f} rad "
            f"(multiple of 2*pi)"
        )

    c = 1.0 / t2 - np.cos(half) / (2.0 * t * sin_half)
    return np.eye(3) + 0.5 * W + c * (W @ W)


def logmap(R: NDArray[np.float64]) -> NDArray[np.float64]:
    """Logarithm map from a rotation matrix to a rotation vector.

    Returns the rotation vector with angle in [0, pi]. Near the identity the
    first-order formula vee(R - R^T)/2 is used; near pi, where sin(t) -> 0,
    the rotation axis is recovered from the symmetric part (R + I)/2 = a a^T.

    Args:
        R: 3x3 rotation matrix.

    Returns:
        Rotation vector theta, shape (3,), with Exp(theta) = R.

    Raises:
        ValueError: If R is not a 3x3 matrix.

    Example:
        >>> theta = np.array([0.1, -0.2, 0.3])
        >>> np.allclose(logmap(expmap(theta)), theta)
        True
    """
    R = np.asarray(R, dtype=np.float64)
    if R.shape != (3, 3):
        raise ValueError(f"Expected 3x3 matrix, got shape {R.shape}")

    cos_t = np.clip(0.5 * (np.trace(R) - 1.0), -1.0, 1.0)
    t = np.arccos(cos_t)
    w = vee(R - R.T)  # = 2 sin(t) * axis

    if t < _SMALL_ANGLE:
        return 0.5 * w

    if np.pi - t < _NEAR_PI:
        B = 0.5 * (R + np.eye(3))
        i = int(np.argmax(np.diag(B)))
        axis = B[:, i] / np.sqrt(B[i, i])
        axis = axis / np.linalg.norm(axis)
        if axis @ w < 0.0:
            axis = -axis
        return t * axis

    return (t / (2.0 * np.sin(t))) * w


def logmap_derivative(theta: NDArray[np.float64]) -> NDArray[np.float64]:
    """Derivative of Log(R @ Exp(d)) with respect to d, at R = Exp(theta).

    Equal to Jr(theta)^-1; provided under this name for readability at call
    sites that differentiate through logmap.
    """
    return expmap_derivative_inverse(theta)
