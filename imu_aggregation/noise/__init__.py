"""Gaussian noise models exposed with preintegrated measurements."""

from imu_aggregation.noise.gaussian import GaussianNoiseModel, NoiseModelForm

__all__ = ["GaussianNoiseModel", "NoiseModelForm"]
