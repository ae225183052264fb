"""
Aggregation of IMU readings over one keyframe window.

AggregateImuReadings folds every IMU sample between two keyframes into a
9-dimensional tangent-space summary zeta = [theta, p, v] plus its 9x9
covariance, so that a downstream estimator can replace hundreds of raw
samples by one measurement.

Lifecycle:
    1. Create one instance per window with the shared PreintegrationParams
       and the bias snapshot valid for that window.
    2. Feed samples with integrate_measurement() (or integrate_series()).
    3. Read the result with predict() and noise_model()/covariance().
    4. Discard; instances are not reused across windows.

Covariance propagation (per sample):

    cov' = A cov A^T + Bw (Sigma_g / dt) Bw^T + Ba (Sigma_a / dt) Ba^T

where A, Ba, Bw come from propagation.update_estimate() and Sigma_a,
Sigma_g are the continuous-time noise covariances.

Prediction from the window start state x_i = (R_i, p_i, v_i), T = elapsed:

    p_corr = R_i^T (v_i T + 0.5 T^2 g)
    v_corr = R_i^T T g
    x_j    = x_i.retract(zeta + [0, p_corr, v_corr])

Exposed covariance: the covariance of zeta is re-expressed in the local
coordinates of the predicted state through the retract Jacobian
H = diag(Jr(theta), E^T, E^T), E = Exp(theta); covariance() returns
H cov H^T. The covariance of zeta itself is available as zeta_covariance.

Accuracy: the theta-theta block of A is the small-angle approximation
I - 0.5 skew(w dt), whose error grows with |theta| |w dt|. The covariance
is reliable for windows that rotate well under pi rad. Over a full
revolution (|theta| ~ 2 pi) the retracted theta variance can be off by
orders of magnitude; split such motion into shorter windows.

Bias: the bias snapshot is fixed, but the first-order derivative of zeta
with respect to the bias is tracked alongside the covariance. predict()
uses it to correct zeta to first order when asked for a different bias,
and predict_jacobians() uses it for the bias Jacobian.

Threading: an instance must be fed by a single producer. Params and bias
are immutable and can be shared freely.
"""

import warnings
from typing import Tuple

import numpy as np

from imu_aggregation.geometry.nav_state import POS, THETA, VEL, NavState
from imu_aggregation.geometry.so3 import expmap, expmap_derivative, skew
from imu_aggregation.noise.gaussian import GaussianNoiseModel
from imu_aggregation.preintegration.propagation import update_estimate
from imu_aggregation.sensors.types import ImuBias, ImuSeries, PreintegrationParams


class AggregateImuReadings:
    """
    Preintegrated IMU measurement for one keyframe window.

    Args:
        params: Gravity and continuous-time noise, shared between windows.
        estimated_bias: Bias snapshot subtracted from every sample of this
                        window.

    Example:
        >>> params = PreintegrationParams.make_enu(accel_noise_sigma=0.01,
        ...                                        gyro_noise_sigma=1e-3)
        >>> pim = AggregateImuReadings(params, ImuBias())
        >>> for _ in range(100):
        ...     pim.integrate_measurement(np.array([0, 0, 9.81]), np.zeros(3), 0.01)
        >>> pim.count, round(pim.elapsed, 6)
        (100, 1.0)
        >>> x_j = pim.predict(NavState.identity(), ImuBias())
    """

    def __init__(self, params: PreintegrationParams, estimated_bias: ImuBias):
        self.params = params
        self.estimated_bias = estimated_bias

        self._zeta = np.zeros(9)
        self._cov = np.zeros((9, 9))
        self._bias_jacobian = np.zeros((9, 6))
        self._count = 0
        self._elapsed = 0.0

    # ------------------------------------------------------------------
    # Read-only views of the aggregated state
    # ------------------------------------------------------------------

    @property
    def zeta(self) -> np.ndarray:
        """Tangent state [theta, p, v], shape (9,)."""
        return self._zeta.copy()

    @property
    def theta(self) -> np.ndarray:
        """Rotation increment, shape (3,)."""
        return self._zeta[THETA].copy()

    @property
    def zeta_covariance(self) -> np.ndarray:
        """Covariance of zeta (before re-expression through retract)."""
        return self._cov.copy()

    @property
    def bias_jacobian(self) -> np.ndarray:
        """d zeta / d [b_a, b_g], shape (9, 6)."""
        return self._bias_jacobian.copy()

    @property
    def count(self) -> int:
        """Number of integrated samples."""
        return self._count

    @property
    def elapsed(self) -> float:
        """Total integrated time in seconds."""
        return self._elapsed

    # ------------------------------------------------------------------
    # Integrator
    # ------------------------------------------------------------------

    def integrate_measurement(
        self,
        measured_acc: np.ndarray,
        measured_omega: np.ndarray,
        dt: float,
    ) -> None:
        """
        Fold one raw IMU sample into the window.

        Args:
            measured_acc: Raw specific force in body frame, shape (3,). Units: m/s².
            measured_omega: Raw angular rate in body frame, shape (3,). Units: rad/s.
            dt: Interval over which the sample is held. Units: s. Must be finite and > 0.

        Raises:
            ValueError: If dt is not finite and positive, or a sample has
                the wrong shape or is not finite.
            numpy.linalg.LinAlgError: If the accumulated rotation reaches a
                singularity of the exponential-map derivative.

        Notes:
            Nothing is modified unless every step succeeds.
        """
        if not (np.isfinite(dt) and dt > 0):
            raise ValueError(f"dt must be positive and finite, got {dt}")
        if dt > self.params.max_dt_warning:
            warnings.warn(
                f"IMU sample interval dt = {dt:.4f} s exceeds "
                f"{self.params.max_dt_warning:.4f} s; preintegration accuracy "
                f"degrades with long intervals.",
                RuntimeWarning,
            )

        corrected_acc = self.estimated_bias.correct_accelerometer(measured_acc)
        corrected_omega = self.estimated_bias.correct_gyroscope(measured_omega)

        zeta_plus, J = update_estimate(
            self._zeta, corrected_acc, corrected_omega, dt, return_jacobians=True
        )

        # Discretised measurement noise
        w = self.params.gyroscope_covariance / dt
        a = self.params.accelerometer_covariance / dt
        cov_plus = (
            J.A @ self._cov @ J.A.T
            + J.Bw @ w @ J.Bw.T
            + J.Ba @ a @ J.Ba.T
        )

        # Bias enters with a minus sign: corrected = measured - bias
        bias_jacobian_plus = J.A @ self._bias_jacobian - np.hstack([J.Ba, J.Bw])

        self._zeta = zeta_plus
        self._cov = cov_plus
        self._bias_jacobian = bias_jacobian_plus
        self._count += 1
        self._elapsed += dt

    def integrate_series(self, imu: ImuSeries) -> None:
        """
        Integrate a recorded series, holding sample k over [t[k], t[k+1]).

        Args:
            imu: Raw IMU samples. The last sample only closes the final
                 interval and is not integrated.

        Raises:
            ValueError: If timestamps are not strictly increasing. Checked
                before any sample is integrated.
        """
        intervals = imu.intervals()
        if np.any(intervals <= 0):
            k = int(np.argmax(intervals <= 0))
            raise ValueError(
                f"ImuSeries timestamps must be strictly increasing; "
                f"t[{k + 1}] - t[{k}] = {intervals[k]}"
            )

        for k, dt in enumerate(intervals):
            self.integrate_measurement(imu.accel[k], imu.gyro[k], float(dt))

    # ------------------------------------------------------------------
    # Predictor
    # ------------------------------------------------------------------

    def _corrected_zeta(self, bias_i: ImuBias) -> np.ndarray:
        """zeta corrected to first order for a bias other than the snapshot."""
        return self._zeta + self._bias_jacobian @ (bias_i - self.estimated_bias)

    def _gravity_corrected(self, zeta: np.ndarray, state_i: NavState) -> np.ndarray:
        T = self._elapsed
        Rit = state_i.attitude.T
        gt = T * self.params.gravity

        zeta = zeta.copy()
        zeta[POS] += Rit @ (state_i.velocity * T + 0.5 * T * gt)
        zeta[VEL] += Rit @ gt
        return zeta

    def predict(self, state_i: NavState, bias_i: ImuBias) -> NavState:
        """
        Predict the state at the end of the window.

        Args:
            state_i: State at the start of the window.
            bias_i: Bias to predict with. When equal to the window's bias
                    snapshot the aggregated zeta is used unchanged;
                    otherwise zeta is corrected to first order.

        Returns:
            Predicted NavState at the end of the window.
        """
        zeta = self._gravity_corrected(self._corrected_zeta(bias_i), state_i)
        return state_i.retract(zeta)

    def predict_jacobians(
        self,
        state_i: NavState,
        bias_i: ImuBias,
    ) -> Tuple[np.ndarray, np.ndarray]:
        """
        Jacobians of predict() in the local coordinates of the prediction.

        Args:
            state_i: State at the start of the window.
            bias_i: Bias to predict with.

        Returns:
            Tuple (H1, H2):
                H1: d x_j / d x_i, shape (9, 9).
                H2: d x_j / d [b_a, b_g], shape (9, 6). Equal to
                    H(theta) @ bias_jacobian with H the retract Jacobian.
        """
        zeta = self._corrected_zeta(bias_i)
        T = self._elapsed
        E = expmap(zeta[THETA])
        Et = E.T

        H1 = np.zeros((9, 9))
        H1[THETA, THETA] = Et
        H1[POS, THETA] = -Et @ skew(zeta[POS])
        H1[POS, POS] = Et
        H1[POS, VEL] = Et * T
        H1[VEL, THETA] = -Et @ skew(zeta[VEL])
        H1[VEL, VEL] = Et

        H2 = self._retract_jacobian(zeta[THETA]) @ self._bias_jacobian

        return H1, H2

    # ------------------------------------------------------------------
    # Covariance retractor
    # ------------------------------------------------------------------

    @staticmethod
    def _retract_jacobian(theta: np.ndarray) -> np.ndarray:
        E = expmap(theta)
        H = np.zeros((9, 9))
        H[THETA, THETA] = expmap_derivative(theta)
        H[POS, POS] = E.T
        H[VEL, VEL] = E.T
        return H

    def retract_jacobian(self) -> np.ndarray:
        """
        Derivative of the retraction at the aggregated rotation increment.

        Returns:
            H = diag(Jr(theta), E^T, E^T), shape (9, 9), E = Exp(theta).
        """
        return self._retract_jacobian(self._zeta[THETA])

    def noise_model(self) -> GaussianNoiseModel:
        """Covariance-form noise model of H cov H^T."""
        H = self.retract_jacobian()
        return GaussianNoiseModel.from_covariance(H @ self._cov @ H.T)

    def covariance(self) -> np.ndarray:
        """Retracted covariance H cov H^T, shape (9, 9)."""
        return self.noise_model().covariance()

    preint_meas_cov = covariance

    def __repr__(self) -> str:
        return (
            f"AggregateImuReadings(count={self._count}, "
            f"elapsed={self._elapsed:.4f}, "
            f"theta={np.array2string(self._zeta[THETA], precision=4)}, "
            f"p={np.array2string(self._zeta[POS], precision=4)}, "
            f"v={np.array2string(self._zeta[VEL], precision=4)})"
        )
