"""
Cluster Tracker Euclidean Clustering
====================================
Reduces a raw point-cloud frame to cluster centroids.

Clusters are the connected components of the graph linking every pair of
points within ``tolerance`` of each other (KD-tree pair search).
Clusters smaller than ``min_size`` or larger than ``max_size`` are dropped,
not split. Surviving clusters are ordered largest first, and that order
is the observation order handed to the tracker.

Centroids are the planar mean of the members with z = 0: the tracker only
follows objects across the ground plane.
"""

from dataclasses import dataclass
from typing import List

import numpy as np
from scipy.sparse import coo_matrix
from scipy.sparse.csgraph import connected_components
from scipy.spatial import cKDTree

from .ct_association import Observation


@dataclass
class Cluster:
    """Points of one extracted cluster and their centroid."""
    indices: np.ndarray
    points: np.ndarray
    centroid: np.ndarray

    @property
    def size(self) -> int:
        return len(self.indices)

    def to_observation(self) -> Observation:
        return Observation.from_array(self.centroid)


def _as_points(frame) -> np.ndarray:
    points = np.asarray(frame, dtype=float)
    if points.size == 0:
        return np.empty((0, 3))
    if points.ndim != 2 or points.shape[1] not in (2, 3):
        raise ValueError(f"expected an Nx2 or Nx3 point array, got shape {points.shape}")
    if points.shape[1] == 2:
        points = np.hstack([points, np.zeros((len(points), 1))])
    return points[np.all(np.isfinite(points), axis=1)]


class EuclideanClusterer:
    """Euclidean cluster extraction with size limits."""

    def __init__(self, tolerance: float = 0.2, min_size: int = 20, max_size: int = 70):
        if tolerance <= 0:
            raise ValueError(f"tolerance must be positive, got {tolerance}")
        if min_size < 1 or max_size < min_size:
            raise ValueError(f"invalid cluster size limits [{min_size}, {max_size}]")
        self.tolerance = tolerance
        self.min_size = min_size
        self.max_size = max_size

    @classmethod
    def from_config(cls, config) -> "EuclideanClusterer":
        return cls(config.tolerance, config.min_cluster_size, config.max_cluster_size)

    def _components(self, points: np.ndarray) -> List[np.ndarray]:
        """Connected components of the ``tolerance`` neighbour graph.

        Components come back in discovery order: ordered by their lowest
        point index, members ascending.
        """
        n = len(points)
        pairs = cKDTree(points).query_pairs(self.tolerance, output_type='ndarray')
        graph = coo_matrix((np.ones(len(pairs)), (pairs[:, 0], pairs[:, 1])),
                           shape=(n, n))
        n_comp, labels = connected_components(graph, directed=False)
        order = np.argsort(labels, kind='stable')
        groups = np.split(order, np.cumsum(np.bincount(labels, minlength=n_comp))[:-1])
        groups.sort(key=lambda idx: idx[0])
        return groups

    def extract(self, frame) -> List[Cluster]:
        """Cluster an Nx2 / Nx3 point array; largest cluster first."""
        points = _as_points(frame)
        if len(points) == 0:
            return []

        groups = [idx for idx in self._components(points)
                  if self.min_size <= len(idx) <= self.max_size]

        # Stable sort keeps discovery order among equal sizes
        groups.sort(key=len, reverse=True)

        clusters = []
        for idx in groups:
            pts = points[idx]
            centroid = np.array([pts[:, 0].mean(), pts[:, 1].mean(), 0.0])
            clusters.append(Cluster(indices=idx, points=pts, centroid=centroid))
        return clusters

    def cluster(self, frame) -> List[Observation]:
        """Frame -> ordered centroid observations (may be empty)."""
        return [c.to_observation() for c in self.extract(frame)]

    def __repr__(self):
        return (f"EuclideanClusterer(tolerance={self.tolerance}, "
                f"size=[{self.min_size}, {self.max_size}])")
