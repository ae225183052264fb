"""
Data structures for IMU preintegration.

This module defines the immutable inputs shared by every aggregation window:
    - ImuBias: accelerometer/gyroscope bias snapshot for one window
    - PreintegrationParams: gravity and continuous-time sensor noise
    - IMUNoiseParams: datasheet-level noise/bias specification with presets
    - ImuSeries: time-series packet of raw IMU samples

All structures are frozen dataclasses validated in __post_init__, so one
instance can be shared read-only between any number of windows and threads.

Time Base Convention:
    All timestamps are float seconds (monotonic), stored as np.ndarray.

Frame Conventions:
    - B: Body frame (IMU frame); biases and samples are in B.
    - N: Navigation frame; gravity is expressed in N.
      'ENU' (z up, gravity [0, 0, -g]) or 'NED' (z down, gravity [0, 0, +g]).
"""

import warnings
from dataclasses import dataclass, field
from typing import Any, Dict, Literal

import numpy as np

from imu_aggregation.sensors.imu_models import correct_accel, correct_gyro
from imu_aggregation.sensors.units import (
    arw_to_gyro_noise_psd,
    deg_per_hour_to_rad_per_sec,
    deg_per_sqrt_hour_to_rad_per_sqrt_sec,
    format_accel_bias,
    format_arw,
    format_gyro_bias,
    format_vrw,
    mg_to_mps2,
    mps_per_sqrt_hour_to_mps_per_sqrt_sec,
    noise_density_to_covariance,
    vrw_to_accel_noise_psd,
)


def _as_vector3(value: Any, name: str) -> np.ndarray:
    v = np.asarray(value, dtype=np.float64)
    if v.shape != (3,):
        raise ValueError(f"{name} must have shape (3,), got {v.shape}")
    if not np.all(np.isfinite(v)):
        raise ValueError(f"{name} must be finite, got {v}")
    return v


def _as_covariance3(value: Any, name: str) -> np.ndarray:
    C = np.asarray(value, dtype=np.float64)
    if C.shape != (3, 3):
        raise ValueError(f"{name} must have shape (3, 3), got {C.shape}")
    if not np.allclose(C, C.T):
        raise ValueError(f"{name} must be symmetric")
    eigvals = np.linalg.eigvalsh(C)
    if np.any(eigvals < -1e-12):
        raise ValueError(
            f"{name} must be positive semi-definite, got eigenvalues {eigvals}"
        )
    return C


def _gravity_for_frame(frame: Literal['ENU', 'NED'], g: float) -> np.ndarray:
    if frame == 'ENU':
        return np.array([0.0, 0.0, -g])
    if frame == 'NED':
        return np.array([0.0, 0.0, +g])
    raise ValueError(f"frame must be 'ENU' or 'NED', got '{frame}'")


@dataclass(frozen=True)
class ImuBias:
    """
    Constant accelerometer and gyroscope bias for one aggregation window.

    The bias is an externally supplied estimate; it is held fixed while a
    window is integrated and is never modified by the preintegration code.

    Attributes:
        b_a: Accelerometer bias in body frame B, shape (3,). Units: m/s².
        b_g: Gyroscope bias in body frame B, shape (3,). Units: rad/s.

    Notes:
        - vector() stacks the bias as [b_a, b_g] (accelerometer first); the
          same order is used by every 6-column bias Jacobian.

    Example:
        >>> bias = ImuBias(b_a=np.array([0.01, 0.0, 0.0]), b_g=np.zeros(3))
        >>> bias.vector().shape
        (6,)
    """

    b_a: np.ndarray = field(default_factory=lambda: np.zeros(3))
    b_g: np.ndarray = field(default_factory=lambda: np.zeros(3))

    def __post_init__(self) -> None:
        """Validate and normalise bias vectors."""
        object.__setattr__(self, "b_a", _as_vector3(self.b_a, "ImuBias.b_a"))
        object.__setattr__(self, "b_g", _as_vector3(self.b_g, "ImuBias.b_g"))

    @classmethod
    def from_vector(cls, b: np.ndarray) -> "ImuBias":
        """Build from a stacked 6-vector [b_a, b_g]."""
        b = np.asarray(b, dtype=np.float64)
        if b.shape != (6,):
            raise ValueError(f"Bias vector must have shape (6,), got {b.shape}")
        return cls(b_a=b[:3], b_g=b[3:])

    def vector(self) -> np.ndarray:
        """Stacked bias [b_a, b_g], shape (6,)."""
        return np.concatenate([self.b_a, self.b_g])

    def correct_accelerometer(self, measured_acc: np.ndarray) -> np.ndarray:
        """Bias-corrected specific force."""
        return correct_accel(measured_acc, self.b_a)

    def correct_gyroscope(self, measured_omega: np.ndarray) -> np.ndarray:
        """Bias-corrected angular rate."""
        return correct_gyro(measured_omega, self.b_g)

    def __sub__(self, other: "ImuBias") -> np.ndarray:
        """Difference of two biases as a 6-vector [db_a, db_g]."""
        if not isinstance(other, ImuBias):
            return NotImplemented
        return self.vector() - other.vector()


@dataclass(frozen=True)
class IMUNoiseParams:
    """
    IMU noise and bias parameters with explicit units in field names.

    All values are stored in SI units; the datasheet unit each value is
    usually quoted in is given below. Use the presets for typical devices
    or build one from a datasheet with the converters in sensors.units.

    Attributes:
        gyro_bias_rad_s: Gyroscope bias instability (rad/s). Datasheet: deg/hr.
        gyro_arw_rad_sqrt_s: Angular random walk (rad/sqrt(s)). Datasheet: deg/sqrt(hr).
        accel_bias_mps2: Accelerometer bias instability (m/s²). Datasheet: mg.
        accel_vrw_mps_sqrt_s: Velocity random walk (m/s/sqrt(s)). Datasheet: m/s/sqrt(hr).
        grade: 'consumer', 'tactical', 'navigation' or free text.

    Notes:
        - Only the white-noise terms (ARW, VRW) enter the preintegration
          covariance; bias terms describe how good the bias snapshot is.

    Example:
        >>> params = IMUNoiseParams.consumer_grade()
        >>> params.grade
        'consumer'
    """

    gyro_bias_rad_s: float
    gyro_arw_rad_sqrt_s: float
    accel_bias_mps2: float
    accel_vrw_mps_sqrt_s: float
    grade: str = 'unknown'

    def __post_init__(self) -> None:
        """Reject negative noise coefficients."""
        for name in (
            "gyro_bias_rad_s",
            "gyro_arw_rad_sqrt_s",
            "accel_bias_mps2",
            "accel_vrw_mps_sqrt_s",
        ):
            value = getattr(self, name)
            if value < 0:
                raise ValueError(f"IMUNoiseParams.{name} must be >= 0, got {value}")

    @classmethod
    def consumer_grade(cls) -> "IMUNoiseParams":
        """Typical smartphone-class MEMS IMU."""
        return cls(
            gyro_bias_rad_s=deg_per_hour_to_rad_per_sec(10.0),  # 10 deg/hr
            gyro_arw_rad_sqrt_s=deg_per_sqrt_hour_to_rad_per_sqrt_sec(0.1),  # 0.1 deg/√hr
            accel_bias_mps2=mg_to_mps2(10.0),  # 10 mg
            accel_vrw_mps_sqrt_s=mps_per_sqrt_hour_to_mps_per_sqrt_sec(0.01),  # 0.01 m/s/√hr
            grade='consumer',
        )

    @classmethod
    def tactical_grade(cls) -> "IMUNoiseParams":
        """Typical tactical-grade FOG or high-end MEMS IMU."""
        return cls(
            gyro_bias_rad_s=deg_per_hour_to_rad_per_sec(1.0),
            gyro_arw_rad_sqrt_s=deg_per_sqrt_hour_to_rad_per_sqrt_sec(0.01),
            accel_bias_mps2=mg_to_mps2(1.0),
            accel_vrw_mps_sqrt_s=mps_per_sqrt_hour_to_mps_per_sqrt_sec(0.001),
            grade='tactical',
        )

    @classmethod
    def navigation_grade(cls) -> "IMUNoiseParams":
        """Typical ring-laser-gyro navigation-grade IMU."""
        return cls(
            gyro_bias_rad_s=deg_per_hour_to_rad_per_sec(0.01),
            gyro_arw_rad_sqrt_s=deg_per_sqrt_hour_to_rad_per_sqrt_sec(0.001),
            accel_bias_mps2=mg_to_mps2(0.1),
            accel_vrw_mps_sqrt_s=mps_per_sqrt_hour_to_mps_per_sqrt_sec(0.0001),
            grade='navigation',
        )

    def format_specs(self) -> str:
        """
        Human-readable summary in datasheet units.

        Example:
            >>> print(IMUNoiseParams.consumer_grade().format_specs())
            IMU Specifications (consumer grade):
              Gyro Bias:  10.00 deg/hr
              Gyro ARW:   0.100 deg/sqrt(hr)
              Accel Bias: 10.00 mg (0.0981 m/s²)
              Accel VRW:  0.0100 m/s/sqrt(hr)
        """
        lines = [
            f"IMU Specifications ({self.grade} grade):",
            f"  Gyro Bias:  {format_gyro_bias(self.gyro_bias_rad_s)}",
            f"  Gyro ARW:   {format_arw(self.gyro_arw_rad_sqrt_s)}",
            f"  Accel Bias: {format_accel_bias(self.accel_bias_mps2)}",
            f"  Accel VRW:  {format_vrw(self.accel_vrw_mps_sqrt_s)}",
        ]
        return "\n".join(lines)


@dataclass(frozen=True)
class PreintegrationParams:
    """
    Gravity and sensor noise shared by all aggregation windows.

    Attributes:
        gravity: Gravity vector in navigation frame N, shape (3,). Units: m/s².
                 [0, 0, -9.81] for ENU, [0, 0, +9.81] for NED.
        accelerometer_covariance: Continuous-time accelerometer white-noise
                 covariance, shape (3, 3). Units: (m/s²)²·s.
        gyroscope_covariance: Continuous-time gyroscope white-noise
                 covariance, shape (3, 3). Units: (rad/s)²·s.
        max_dt_warning: Sample intervals longer than this (seconds) trigger
                 a RuntimeWarning during integration. Default: 0.1 s.

    Notes:
        - Each integrate step discretises the covariances as Sigma / dt.
        - Instances are immutable and safe to share across threads.

    Example:
        >>> params = PreintegrationParams.make_enu(
        ...     accel_noise_sigma=0.01, gyro_noise_sigma=1e-3)
        >>> params.gravity
        array([ 0.  ,  0.  , -9.81])
    """

    gravity: np.ndarray
    accelerometer_covariance: np.ndarray
    gyroscope_covariance: np.ndarray
    max_dt_warning: float = 0.1

    def __post_init__(self) -> None:
        """Validate gravity, noise covariances and the warning threshold."""
        object.__setattr__(
            self, "gravity", _as_vector3(self.gravity, "PreintegrationParams.gravity")
        )
        object.__setattr__(
            self,
            "accelerometer_covariance",
            _as_covariance3(
                self.accelerometer_covariance,
                "PreintegrationParams.accelerometer_covariance",
            ),
        )
        object.__setattr__(
            self,
            "gyroscope_covariance",
            _as_covariance3(
                self.gyroscope_covariance,
                "PreintegrationParams.gyroscope_covariance",
            ),
        )
        if self.max_dt_warning <= 0:
            raise ValueError(
                f"max_dt_warning must be positive, got {self.max_dt_warning}"
            )

        g_mag = np.linalg.norm(self.gravity)
        if g_mag > 0 and not 9.7 <= g_mag <= 9.9:
            warnings.warn(
                f"Gravity magnitude {g_mag:.4f} m/s² is outside the terrestrial "
                f"range [9.7, 9.9]. Check units.",
                UserWarning,
            )

    @classmethod
    def make_enu(
        cls,
        g: float = 9.81,
        accel_noise_sigma: float = 0.0,
        gyro_noise_sigma: float = 0.0,
    ) -> "PreintegrationParams":
        """
        Parameters for a z-up navigation frame (gravity [0, 0, -g]).

        Args:
            g: Gravity magnitude (m/s²).
            accel_noise_sigma: Accelerometer white-noise density (m/s²/sqrt(Hz)).
            gyro_noise_sigma: Gyroscope white-noise density (rad/s/sqrt(Hz)).
        """
        return cls(
            gravity=_gravity_for_frame('ENU', g),
            accelerometer_covariance=noise_density_to_covariance(accel_noise_sigma),
            gyroscope_covariance=noise_density_to_covariance(gyro_noise_sigma),
        )

    @classmethod
    def make_ned(
        cls,
        g: float = 9.81,
        accel_noise_sigma: float = 0.0,
        gyro_noise_sigma: float = 0.0,
    ) -> "PreintegrationParams":
        """Parameters for a z-down navigation frame (gravity [0, 0, +g])."""
        return cls(
            gravity=_gravity_for_frame('NED', g),
            accelerometer_covariance=noise_density_to_covariance(accel_noise_sigma),
            gyroscope_covariance=noise_density_to_covariance(gyro_noise_sigma),
        )

    @classmethod
    def from_noise_params(
        cls,
        noise: IMUNoiseParams,
        frame: Literal['ENU', 'NED'] = 'ENU',
        g: float = 9.81,
    ) -> "PreintegrationParams":
        """
        Build parameters from a datasheet-level IMU specification.

        The white-noise PSDs are PSD_gyro = ARW² and PSD_accel = VRW², used
        isotropically on all three axes.

        Args:
            noise: IMU specification (e.g. IMUNoiseParams.tactical_grade()).
            frame: Navigation frame convention, 'ENU' or 'NED'.
            g: Gravity magnitude (m/s²).
        """
        return cls(
            gravity=_gravity_for_frame(frame, g),
            accelerometer_covariance=np.eye(3)
            * vrw_to_accel_noise_psd(noise.accel_vrw_mps_sqrt_s),
            gyroscope_covariance=np.eye(3)
            * arw_to_gyro_noise_psd(noise.gyro_arw_rad_sqrt_s),
        )


@dataclass(frozen=True)
class ImuSeries:
    """
    Time-series packet of raw IMU samples.

    Attributes:
        t: Timestamps in seconds, shape (N,). Monotonic time.
        accel: Specific force in body frame B, shape (N, 3). Units: m/s².
        gyro: Angular rate in body frame B, shape (N, 3). Units: rad/s.
        meta: Optional metadata ('sample_rate_hz', 'sensor_id', ...).

    Notes:
        - Sample k is held constant over [t[k], t[k+1]); the last sample
          only closes the final interval.
    """

    t: np.ndarray
    accel: np.ndarray
    gyro: np.ndarray
    meta: Dict[str, Any] = field(default_factory=dict)

    def __post_init__(self) -> None:
        """Validate shape consistency of IMU data."""
        if self.t.ndim != 1:
            raise ValueError(
                f"ImuSeries.t must be 1D array, got shape {self.t.shape}"
            )

        n_samples = self.t.shape[0]

        if self.accel.shape != (n_samples, 3):
            raise ValueError(
                f"ImuSeries.accel must have shape ({n_samples}, 3), "
                f"got {self.accel.shape}"
            )

        if self.gyro.shape != (n_samples, 3):
            raise ValueError(
                f"ImuSeries.gyro must have shape ({n_samples}, 3), "
                f"got {self.gyro.shape}"
            )

    def __len__(self) -> int:
        return self.t.shape[0]

    def intervals(self) -> np.ndarray:
        """Sample intervals t[k+1] - t[k], shape (N-1,)."""
        return np.diff(self.t)
