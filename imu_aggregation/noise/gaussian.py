"""Gaussian noise models in covariance, information or square-root form.

A preintegrated measurement is handed to its consumer together with a
Gaussian noise model. Depending on where the matrix comes from, it is most
natural to store it as

    - a covariance Sigma,
    - an information matrix Lambda = Sigma^-1, or
    - a square-root information matrix R (upper triangular, R^T R = Lambda).

GaussianNoiseModel keeps whichever form it was built from and converts on
demand, so no inversion happens unless a consumer asks for another form.
The forms are a closed set, tagged by NoiseModelForm.

Conversions that need an inverse raise numpy.linalg.LinAlgError when the
stored matrix is singular.
"""

from dataclasses import dataclass
from enum import Enum

import numpy as np
import scipy.linalg


class NoiseModelForm(Enum):
    """Which matrix a GaussianNoiseModel stores."""

    COVARIANCE = "covariance"
    INFORMATION = "information"
    SQRT_INFORMATION = "sqrt_information"


def _check_square(M: np.ndarray, name: str) -> np.ndarray:
    M = np.asarray(M, dtype=np.float64)
    if M.ndim != 2 or M.shape[0] != M.shape[1]:
        raise ValueError(f"{name} must be a square matrix, got shape {M.shape}")
    if not np.all(np.isfinite(M)):
        raise ValueError(f"{name} must be finite")
    return M


def _check_symmetric_psd(M: np.ndarray, name: str) -> np.ndarray:
    M = _check_square(M, name)
    if not np.allclose(M, M.T, rtol=1e-9, atol=1e-12):
        raise ValueError(f"{name} must be symmetric")
    eigvals = np.linalg.eigvalsh(M)
    tol = 1e-10 * max(1.0, float(np.max(np.abs(eigvals))))
    if np.any(eigvals < -tol):
        raise ValueError(
            f"{name} must be positive semi-definite, got eigenvalues {eigvals}"
        )
    return M


def _spd_inverse(M: np.ndarray) -> np.ndarray:
    c, lower = scipy.linalg.cho_factor(M)
    return scipy.linalg.cho_solve((c, lower), np.eye(M.shape[0]))


@dataclass(frozen=True)
class GaussianNoiseModel:
    """
    Zero-mean Gaussian noise model.

    Use the from_* constructors rather than instantiating directly.

    Attributes:
        form: Which matrix is stored.
        matrix: The stored matrix (covariance, information or sqrt information).

    Example:
        >>> model = GaussianNoiseModel.from_covariance(np.diag([4.0, 1.0]))
        >>> model.whiten(np.array([2.0, 1.0]))
        array([1., 1.])
    """

    form: NoiseModelForm
    matrix: np.ndarray

    @classmethod
    def from_covariance(cls, covariance: np.ndarray) -> "GaussianNoiseModel":
        """Model with covariance Sigma (symmetric PSD)."""
        return cls(
            NoiseModelForm.COVARIANCE,
            _check_symmetric_psd(covariance, "covariance").copy(),
        )

    @classmethod
    def from_information(cls, information: np.ndarray) -> "GaussianNoiseModel":
        """Model with information matrix Sigma^-1 (symmetric PSD)."""
        return cls(
            NoiseModelForm.INFORMATION,
            _check_symmetric_psd(information, "information").copy(),
        )

    @classmethod
    def from_sqrt_information(cls, R: np.ndarray) -> "GaussianNoiseModel":
        """Model with square-root information R, R^T R = Sigma^-1."""
        return cls(NoiseModelForm.SQRT_INFORMATION, _check_square(R, "R").copy())

    @property
    def dim(self) -> int:
        return self.matrix.shape[0]

    def covariance(self) -> np.ndarray:
        """
        Covariance Sigma.

        Raises:
            numpy.linalg.LinAlgError: If the stored information is singular.
        """
        if self.form is NoiseModelForm.COVARIANCE:
            return self.matrix.copy()
        if self.form is NoiseModelForm.INFORMATION:
            return _spd_inverse(self.matrix)
        # Sigma = R^-1 R^-T
        R_inv = scipy.linalg.inv(self.matrix)
        return R_inv @ R_inv.T

    def information(self) -> np.ndarray:
        """
        Information matrix Sigma^-1.

        Raises:
            numpy.linalg.LinAlgError: If the stored covariance is singular.
        """
        if self.form is NoiseModelForm.INFORMATION:
            return self.matrix.copy()
        if self.form is NoiseModelForm.SQRT_INFORMATION:
            return self.matrix.T @ self.matrix
        return _spd_inverse(self.matrix)

    def sqrt_information(self) -> np.ndarray:
        """
        Upper-triangular R with R^T R = Sigma^-1.

        Raises:
            numpy.linalg.LinAlgError: If the model is singular.
        """
        if self.form is NoiseModelForm.SQRT_INFORMATION:
            return self.matrix.copy()
        return scipy.linalg.cholesky(self.information(), lower=False)

    def whiten(self, error: np.ndarray) -> np.ndarray:
        """Whitened error R @ e, unit covariance if e ~ N(0, Sigma)."""
        error = np.asarray(error, dtype=np.float64)
        if error.shape != (self.dim,):
            raise ValueError(
                f"error must have shape ({self.dim},), got {error.shape}"
            )
        return self.sqrt_information() @ error

    def squared_mahalanobis(self, error: np.ndarray) -> float:
        """e^T Sigma^-1 e."""
        w = self.whiten(error)
        return float(w @ w)

    def __repr__(self) -> str:
        return f"GaussianNoiseModel(form={self.form.value}, dim={self.dim})"
