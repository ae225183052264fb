"""
Unit tests for GaussianNoiseModel conversions between covariance,
information and square-root information forms.
"""

import numpy as np
import pytest

from imu_aggregation.noise import GaussianNoiseModel, NoiseModelForm


@pytest.fixture
def covariance():
    A = np.array([
        [2.0, 0.3, 0.1],
        [0.0, 1.0, -0.2],
        [0.0, 0.0, 0.5],
    ])
    return A @ A.T


class TestGaussianNoiseModel:
    """Test suite for the tagged noise model."""

    def test_from_covariance_keeps_form(self, covariance) -> None:
        model = GaussianNoiseModel.from_covariance(covariance)
        assert model.form is NoiseModelForm.COVARIANCE
        assert model.dim == 3
        np.testing.assert_array_equal(model.covariance(), covariance)

    def test_covariance_copy_is_independent(self, covariance) -> None:
        model = GaussianNoiseModel.from_covariance(covariance)
        model.covariance()[0, 0] = 100.0
        np.testing.assert_array_equal(model.covariance(), covariance)

    def test_information_is_inverse(self, covariance) -> None:
        model = GaussianNoiseModel.from_covariance(covariance)
        np.testing.assert_allclose(model.information() @ covariance, np.eye(3), atol=1e-10)

    def test_sqrt_information(self, covariance) -> None:
        model = GaussianNoiseModel.from_covariance(covariance)
        R = model.sqrt_information()
        np.testing.assert_allclose(R, np.triu(R), atol=0)
        np.testing.assert_allclose(R.T @ R, np.linalg.inv(covariance), atol=1e-10)

    def test_from_information(self, covariance) -> None:
        info = np.linalg.inv(covariance)
        model = GaussianNoiseModel.from_information(0.5 * (info + info.T))
        assert model.form is NoiseModelForm.INFORMATION
        np.testing.assert_allclose(model.covariance(), covariance, atol=1e-10)

    def test_from_sqrt_information(self, covariance) -> None:
        R = GaussianNoiseModel.from_covariance(covariance).sqrt_information()
        model = GaussianNoiseModel.from_sqrt_information(R)
        assert model.form is NoiseModelForm.SQRT_INFORMATION
        np.testing.assert_allclose(model.covariance(), covariance, atol=1e-10)
        np.testing.assert_allclose(model.information(), R.T @ R, atol=0)

    def test_whiten_diagonal(self) -> None:
        model = GaussianNoiseModel.from_covariance(np.diag([4.0, 1.0]))
        np.testing.assert_allclose(model.whiten(np.array([2.0, 1.0])), [1.0, 1.0])

    def test_squared_mahalanobis(self, covariance) -> None:
        e = np.array([0.5, -1.0, 0.25])
        model = GaussianNoiseModel.from_covariance(covariance)
        expected = e @ np.linalg.solve(covariance, e)
        assert model.squared_mahalanobis(e) == pytest.approx(expected, rel=1e-10)

    def test_whiten_rejects_wrong_shape(self, covariance) -> None:
        model = GaussianNoiseModel.from_covariance(covariance)
        with pytest.raises(ValueError):
            model.whiten(np.zeros(2))

    def test_rejects_asymmetric(self) -> None:
        with pytest.raises(ValueError, match="symmetric"):
            GaussianNoiseModel.from_covariance(np.array([[1.0, 0.5], [0.0, 1.0]]))

    def test_rejects_indefinite(self) -> None:
        with pytest.raises(ValueError, match="positive semi-definite"):
            GaussianNoiseModel.from_information(np.diag([1.0, -1.0]))

    def test_rejects_non_square(self) -> None:
        with pytest.raises(ValueError, match="square"):
            GaussianNoiseModel.from_sqrt_information(np.zeros((2, 3)))

    def test_singular_covariance_has_no_information(self) -> None:
        model = GaussianNoiseModel.from_covariance(np.zeros((9, 9)))
        with pytest.raises(np.linalg.LinAlgError):
            model.information()

    def test_repr(self) -> None:
        model = GaussianNoiseModel.from_covariance(np.eye(9))
        assert repr(model) == "GaussianNoiseModel(form=covariance, dim=9)"
