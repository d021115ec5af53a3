"""Cluster Tracker Datasets — point-cloud frames for the pipeline
=====================================================================

- PointFrame: one point cloud with optional true object centroids
- PointCloudCSVAdapter: ``timestamp,x,y,z`` rows grouped into frames
- SyntheticSceneGenerator: reproducible blob scenes with ground truth

Each frame's ``points`` is an Nx3 array in the scan frame, ready for
``TrackingPipeline.process``.
"""

from __future__ import annotations

import csv
from dataclasses import dataclass, field
from typing import Dict, List, Optional

import numpy as np


@dataclass
class PointFrame:
    """A single lidar frame with points and optional truth."""
    timestamp: float                            # Seconds since scene start
    points: np.ndarray                          # Nx3 [x, y, z]
    ground_truth: Optional[np.ndarray] = None   # Mx2 true object centres
    metadata: Dict = field(default_factory=dict)

    @property
    def n_points(self) -> int:
        return len(self.points) if self.points.ndim > 1 else 0

    @property
    def n_objects(self) -> int:
        if self.ground_truth is None:
            return 0
        return len(self.ground_truth)


class PointCloudCSVAdapter:
    """CSV point recordings: columns timestamp, x, y[, z].

    Usage::

        frames = PointCloudCSVAdapter.load("scan_log.csv")
        results = pipeline.run(frames)
    """

    @staticmethod
    def load(filepath: str, delimiter: str = ',',
             time_col: str = 'timestamp',
             x_col: str = 'x', y_col: str = 'y', z_col: str = 'z') -> List[PointFrame]:
        """Group rows by timestamp into frames, sorted by time."""
        frames: Dict[float, List[List[float]]] = {}

        with open(filepath, newline='') as f:
            reader = csv.DictReader(f, delimiter=delimiter)
            for line_no, row in enumerate(reader, start=2):
                try:
                    t = float(row[time_col])
                    x = float(row[x_col])
                    y = float(row[y_col])
                    z = float(row.get(z_col) or 0)
                except (KeyError, TypeError, ValueError) as e:
                    raise ValueError(f"{filepath}:{line_no}: bad point row ({e})") from e
                frames.setdefault(t, []).append([x, y, z])

        return [
            PointFrame(timestamp=t, points=np.array(frames[t]),
                       metadata={'source': 'csv'})
            for t in sorted(frames)
        ]

    @staticmethod
    def save(frames: List[PointFrame], filepath: str) -> None:
        with open(filepath, 'w', newline='') as f:
            writer = csv.writer(f)
            writer.writerow(['timestamp', 'x', 'y', 'z'])
            for frame in frames:
                if frame.n_points == 0:
                    continue
                for p in frame.points:
                    writer.writerow([frame.timestamp, p[0], p[1], p[2]])


class SyntheticSceneGenerator:
    """Reproducible point-cloud scenes of blob objects moving on straight lines.

    Each object is a tight disc of ``points_per_object`` points; objects are
    kept far enough apart that Euclidean clustering separates them.

    Usage::

        gen = SyntheticSceneGenerator(seed=42)
        frames = gen.straight_line(n_objects=3, n_frames=50)
    """

    def __init__(self, seed: int = 42, points_per_object: int = 30,
                 blob_radius: float = 0.05, noise_points: int = 0):
        self.rng = np.random.RandomState(seed)
        self.points_per_object = points_per_object
        self.blob_radius = blob_radius
        self.noise_points = noise_points

    def _blob(self, centre: np.ndarray) -> np.ndarray:
        n = self.points_per_object
        r = self.blob_radius * np.sqrt(self.rng.rand(n))
        theta = self.rng.rand(n) * 2 * np.pi
        pts = np.zeros((n, 3))
        pts[:, 0] = centre[0] + r * np.cos(theta)
        pts[:, 1] = centre[1] + r * np.sin(theta)
        pts[:, 2] = self.rng.rand(n) * 0.5
        return pts

    def _noise(self, extent: float = 20.0) -> np.ndarray:
        # Isolated points: too small to survive clustering
        pts = (self.rng.rand(self.noise_points, 3) - 0.5) * extent
        pts[:, 2] = 0.0
        return pts

    def _frame(self, t: float, centres: List[np.ndarray], scenario: str, idx: int) -> PointFrame:
        clouds = [self._blob(c) for c in centres]
        if self.noise_points:
            clouds.append(self._noise())
        points = np.vstack(clouds) if clouds else np.empty((0, 3))
        self.rng.shuffle(points)
        truth = np.array(centres).reshape(len(centres), 2)
        return PointFrame(timestamp=t, points=points, ground_truth=truth,
                          metadata={'scenario': scenario, 'frame': idx})

    def straight_line(self, n_objects: int = 3, n_frames: int = 50,
                      dt: float = 0.1, spacing: float = 3.0,
                      speed: float = 0.5) -> List[PointFrame]:
        """Objects in parallel lanes moving along +x at ``speed`` m/s."""
        starts = [np.array([0.0, (i + 1) * spacing]) for i in range(n_objects)]
        vel = np.array([speed, 0.0])
        return [
            self._frame(k * dt, [s + vel * k * dt for s in starts], 'straight_line', k)
            for k in range(n_frames)
        ]

    def appearing_object(self, n_frames: int = 40, appear_at: int = 10,
                         dt: float = 0.1) -> List[PointFrame]:
        """One static object; a second enters the scene at ``appear_at``."""
        frames = []
        for k in range(n_frames):
            centres = [np.array([2.0, 2.0])]
            if k >= appear_at:
                centres.append(np.array([6.0, 6.0 + 0.05 * (k - appear_at)]))
            frames.append(self._frame(k * dt, centres, 'appearing', k))
        return frames

    def vanishing_object(self, n_frames: int = 40, vanish_at: int = 10,
                         dt: float = 0.1) -> List[PointFrame]:
        """Two objects; the second leaves the scene at ``vanish_at``."""
        frames = []
        for k in range(n_frames):
            centres = [np.array([2.0, 2.0])]
            if k < vanish_at:
                centres.append(np.array([6.0, 6.0]))
            frames.append(self._frame(k * dt, centres, 'vanishing', k))
        return frames
