"""
Unit conversions for IMU datasheet specifications.

Datasheets quote noise and bias in mixed units (deg/hr, deg/sqrt(hr), mg,
m/s/sqrt(hr)). The preintegration code works in SI units and needs
continuous-time noise covariances, so every conversion lives here with both
units in the function name.

    gyro bias   deg/hr        -> rad/s
    gyro ARW    deg/sqrt(hr)  -> rad/sqrt(s)   -> PSD rad^2/s
    accel bias  mg            -> m/s^2
    accel VRW   m/s/sqrt(hr)  -> m/s/sqrt(s)   -> PSD m^2/s^3

A white-noise density sigma (units x/sqrt(Hz), equivalently x*sqrt(s))
corresponds to the continuous-time covariance sigma^2 * I used by
PreintegrationParams; noise_density_to_covariance() builds that matrix.
"""

from typing import Union

import numpy as np

Numeric = Union[float, np.ndarray]

STANDARD_GRAVITY = 9.80665  # m/s^2 (ISO 80000-3)

_SECONDS_PER_HOUR = 3600.0


# ============================================================================
# Datasheet units -> SI
# ============================================================================

def deg_per_hour_to_rad_per_sec(deg_per_hr: Numeric) -> Numeric:
    """
    Gyro bias: deg/hr -> rad/s.

    Example:
        >>> f"{deg_per_hour_to_rad_per_sec(10.0):.3e}"
        '4.848e-05'
    """
    return np.deg2rad(deg_per_hr) / _SECONDS_PER_HOUR


def deg_per_sqrt_hour_to_rad_per_sqrt_sec(deg_per_sqrt_hr: Numeric) -> Numeric:
    """Gyro angular random walk: deg/sqrt(hr) -> rad/sqrt(s)."""
    return np.deg2rad(deg_per_sqrt_hr) / np.sqrt(_SECONDS_PER_HOUR)


def mg_to_mps2(mg: Numeric) -> Numeric:
    """Accelerometer bias: milli-g -> m/s^2 (standard gravity)."""
    return mg * 1e-3 * STANDARD_GRAVITY


def mps_per_sqrt_hour_to_mps_per_sqrt_sec(mps_per_sqrt_hr: Numeric) -> Numeric:
    """Accelerometer velocity random walk: m/s/sqrt(hr) -> m/s/sqrt(s)."""
    return mps_per_sqrt_hr / np.sqrt(_SECONDS_PER_HOUR)


# ============================================================================
# SI -> datasheet units (display only)
# ============================================================================

def rad_per_sec_to_deg_per_hour(rad_per_s: Numeric) -> Numeric:
    return np.rad2deg(rad_per_s) * _SECONDS_PER_HOUR


def rad_per_sqrt_sec_to_deg_per_sqrt_hour(rad_per_sqrt_s: Numeric) -> Numeric:
    return np.rad2deg(rad_per_sqrt_s) * np.sqrt(_SECONDS_PER_HOUR)


def mps2_to_mg(mps2: Numeric) -> Numeric:
    return mps2 / (1e-3 * STANDARD_GRAVITY)


def mps_per_sqrt_sec_to_mps_per_sqrt_hour(mps_per_sqrt_s: Numeric) -> Numeric:
    return mps_per_sqrt_s * np.sqrt(_SECONDS_PER_HOUR)


# ============================================================================
# Random walk coefficients -> continuous-time covariance
# ============================================================================

def arw_to_gyro_noise_psd(arw_rad_sqrt_s: Numeric) -> Numeric:
    """Gyro white-noise PSD (rad^2/s) from angular random walk (rad/sqrt(s))."""
    return arw_rad_sqrt_s**2


def vrw_to_accel_noise_psd(vrw_mps_sqrt_s: Numeric) -> Numeric:
    """Accel white-noise PSD (m^2/s^3) from velocity random walk (m/s/sqrt(s))."""
    return vrw_mps_sqrt_s**2


def noise_density_to_covariance(sigma: Numeric) -> np.ndarray:
    """
    Continuous-time 3x3 covariance from a white-noise density.

    Args:
        sigma: Scalar density applied to all three axes, or per-axis
               densities of shape (3,).

    Returns:
        Diagonal 3x3 matrix diag(sigma^2).

    Raises:
        ValueError: If sigma is negative or has the wrong shape.

    Example:
        >>> noise_density_to_covariance(0.1)[0, 0]
        0.010000000000000002
    """
    sigma = np.broadcast_to(np.asarray(sigma, dtype=np.float64), (3,))
    if np.any(sigma < 0):
        raise ValueError(f"Noise density must be non-negative, got {sigma}")
    return np.diag(sigma**2)


# ============================================================================
# Formatting
# ============================================================================

def format_gyro_bias(bias_rad_s: float) -> str:
    """Gyro bias as 'x.xx deg/hr'."""
    return f"{rad_per_sec_to_deg_per_hour(bias_rad_s):.2f} deg/hr"


def format_accel_bias(bias_mps2: float) -> str:
    """Accelerometer bias as 'x.xx mg (y.yyyy m/s²)'."""
    return f"{mps2_to_mg(bias_mps2):.2f} mg ({bias_mps2:.4f} m/s²)"


def format_arw(arw_rad_sqrt_s: float) -> str:
    return f"{rad_per_sqrt_sec_to_deg_per_sqrt_hour(arw_rad_sqrt_s):.3f} deg/sqrt(hr)"


def format_vrw(vrw_mps_sqrt_s: float) -> str:
    return f"{mps_per_sqrt_sec_to_mps_per_sqrt_hour(vrw_mps_sqrt_s):.4f} m/s/sqrt(hr)"
