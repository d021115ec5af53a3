"""
Cluster Tracker Motion Filter
=============================
Constant-velocity Kalman filter over the ground plane, one per tracked
cluster.

State:        x = [x, y, vx, vy]
Measurement:  z = [x, y]

The filter keeps separate a-priori (after ``predict``) and a-posteriori
(after ``correct``) estimates. ``predict`` copies its result into the
a-posteriori slot so a track that gets no measurement coasts on the
prediction until the next frame.
"""

from typing import Optional, Sequence, Tuple

import numpy as np


STATE_DIM = 4
MEAS_DIM = 2


def make_cv2d_matrices(dt: float = 1.0, q: float = 0.01,
                       velocity_retention: float = 1.0) -> Tuple[np.ndarray, np.ndarray]:
    """Constant Velocity 2D: state = [x, y, vx, vy].

    ``velocity_retention`` scales the velocity carried into the next step
    (1.0 is a textbook CV model; the tracker default damps it heavily).

    Returns:
        F (4×4), Q (4×4)
    """
    F = np.eye(STATE_DIM)
    F[0, 2] = dt
    F[1, 3] = dt
    F[2, 2] = velocity_retention
    F[3, 3] = velocity_retention
    Q = q * np.eye(STATE_DIM)
    return F, Q


def make_position_measurement() -> Tuple[np.ndarray, np.ndarray]:
    """H (2×4) observing position only, and a unit R (2×2)."""
    H = np.zeros((MEAS_DIM, STATE_DIM))
    H[0, 0] = 1.0
    H[1, 1] = 1.0
    return H, np.eye(MEAS_DIM)


class MotionFilter:
    """Linear Kalman predictor/corrector for a single cluster.

    Noise covariances are fixed at construction. The initial state must be
    set with :meth:`initialize` before the first ``predict``.
    """

    def __init__(self, process_noise: float = 0.01, measurement_noise: float = 0.1,
                 velocity_retention: float = 0.01, dt: float = 1.0):
        self.F, self.Q = make_cv2d_matrices(dt, process_noise, velocity_retention)
        self.H, R = make_position_measurement()
        self.R = measurement_noise * R

        self.x_pre = np.zeros(STATE_DIM)
        self.x_post = np.zeros(STATE_DIM)
        self.P_pre = np.zeros((STATE_DIM, STATE_DIM))
        self.P_post = np.zeros((STATE_DIM, STATE_DIM))
        self.K = np.zeros((STATE_DIM, MEAS_DIM))

    def initialize(self, position: Sequence[float],
                   velocity: Optional[Sequence[float]] = None) -> None:
        """Seed the filter at ``position`` (x, y) with velocity (default zero)."""
        vx, vy = (0.0, 0.0) if velocity is None else (float(velocity[0]), float(velocity[1]))
        self.x_post = np.array([float(position[0]), float(position[1]), vx, vy])
        self.x_pre = self.x_post.copy()

    def predict(self) -> np.ndarray:
        """Advance one step. Returns the predicted (x, y)."""
        self.x_pre = self.F @ self.x_post
        self.P_pre = self.F @ self.P_post @ self.F.T + self.Q

        # No measurement yet: the prediction is the best estimate
        self.x_post = self.x_pre.copy()
        self.P_post = self.P_pre.copy()
        return self.x_pre[:MEAS_DIM].copy()

    def correct(self, measurement: Sequence[float]) -> np.ndarray:
        """Fuse an observed (x, y). Returns the a-posteriori state."""
        z = np.asarray(measurement, dtype=float)[:MEAS_DIM]

        y = z - self.H @ self.x_pre
        S = self.H @ self.P_pre @ self.H.T + self.R
        self.K = self.P_pre @ self.H.T @ np.linalg.inv(S)

        self.x_post = self.x_pre + self.K @ y
        self.P_post = (np.eye(STATE_DIM) - self.K @ self.H) @ self.P_pre
        return self.x_post.copy()

    @property
    def state(self) -> np.ndarray:
        return self.x_post.copy()

    @property
    def position(self) -> np.ndarray:
        """Current (x, y) estimate."""
        return self.x_post[:2].copy()

    @property
    def velocity(self) -> np.ndarray:
        return self.x_post[2:4].copy()

    def __repr__(self):
        x, y, vx, vy = self.x_post
        return f"MotionFilter(pos=({x:.2f}, {y:.2f}), vel=({vx:.2f}, {vy:.2f}))"
