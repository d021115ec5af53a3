"""
Cluster Tracker Data Association
================================
Maps a frame's unordered cluster centroids onto the track bank.

Architecture:
  AssociationStrategy
    ├── GreedyAssociator   (default: greedy nearest neighbour)
    └── OptimalAssociator  (Hungarian via scipy, for comparison runs)

Greedy nearest neighbour:
  1. D[i][j] = planar distance between prediction i and centroid j
  2. Repeat up to T times: take the global minimum (first in row-major
     order on ties), record track i -> centroid j, erase row i and column j
  3. Stop early once every remaining entry is erased

It is not globally optimal and is O(T²·O) because of the full rescans,
which is fine for the tens of clusters a lidar frame produces.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import List, Optional, Sequence, Tuple

import numpy as np


ERASED = np.inf


# ===== OBSERVATIONS =====

@dataclass
class Observation:
    """One cluster centroid in the current frame. No identity across frames."""
    x: float
    y: float
    z: float = 0.0
    valid: bool = True

    def __post_init__(self):
        # Non-finite centroids can neither be matched, corrected nor seeded
        if not self.is_finite:
            self.valid = False

    @property
    def is_finite(self) -> bool:
        return bool(np.isfinite(self.x) and np.isfinite(self.y))

    @property
    def is_degenerate(self) -> bool:
        """Centroid sitting exactly on the planar origin (spurious zero output)."""
        return self.x == 0.0 and self.y == 0.0

    @property
    def usable(self) -> bool:
        """Whether this centroid may be fed to a filter correction."""
        return self.valid and not self.is_degenerate

    @property
    def planar(self) -> np.ndarray:
        return np.array([self.x, self.y])

    def as_array(self) -> np.ndarray:
        return np.array([self.x, self.y, self.z])

    @classmethod
    def from_array(cls, p: Sequence[float]) -> "Observation":
        z = float(p[2]) if len(p) > 2 else 0.0
        return cls(float(p[0]), float(p[1]), z)


def observations_from_array(points: np.ndarray) -> List[Observation]:
    """Nx2 / Nx3 centroid array -> observations (row order preserved)."""
    points = np.asarray(points, dtype=float)
    if points.size == 0:
        return []
    if points.ndim == 1:
        points = points.reshape(1, -1)
    return [Observation.from_array(p) for p in points]


# ===== ASSIGNMENT =====

@dataclass
class Assignment:
    """Per-slot match result for one frame.

    ``matches[i]`` is the observation index matched to track slot ``i``,
    or ``None`` when the slot went unmatched this frame.
    """
    matches: List[Optional[int]] = field(default_factory=list)
    n_observations: int = 0

    def __len__(self):
        return len(self.matches)

    def __getitem__(self, slot: int) -> Optional[int]:
        return self.matches[slot]

    @property
    def used(self) -> List[bool]:
        """Per-observation flag: matched to some slot."""
        flags = [False] * self.n_observations
        for j in self.matches:
            if j is not None:
                flags[j] = True
        return flags

    def unmatched_observations(self) -> List[int]:
        """Observation indices no slot claimed, in observation order."""
        return [j for j, u in enumerate(self.used) if not u]

    def unmatched_slots(self) -> List[int]:
        return [i for i, j in enumerate(self.matches) if j is None]

    def matched_pairs(self) -> List[Tuple[int, int]]:
        """(slot, observation) pairs in slot order."""
        return [(i, j) for i, j in enumerate(self.matches) if j is not None]

    def is_one_to_one(self) -> bool:
        taken = [j for j in self.matches if j is not None]
        return len(taken) == len(set(taken))

    def copy(self) -> "Assignment":
        return Assignment(list(self.matches), self.n_observations)

    def as_id_array(self) -> List[int]:
        """Wire encoding: -1 for unmatched slots."""
        return [-1 if j is None else j for j in self.matches]


# ===== GREEDY NEAREST NEIGHBOUR =====

def _planar(points) -> np.ndarray:
    """Sequence of predictions / observations -> Nx2 float array."""
    rows = []
    for p in points:
        if isinstance(p, Observation):
            rows.append(p.planar)
        else:
            rows.append(np.asarray(p, dtype=float)[:2])
    return np.array(rows, dtype=float).reshape(len(rows), 2)


def distance_matrix(predicted, observations) -> np.ndarray:
    """T×O Euclidean distances between predictions (rows) and centroids (columns)."""
    P = _planar(predicted)
    O = _planar(observations)
    if len(P) == 0 or len(O) == 0:
        return np.zeros((len(P), len(O)))
    diff = P[:, None, :] - O[None, :, :]
    dist = np.sqrt(np.sum(diff ** 2, axis=2))
    dist[~np.isfinite(dist)] = ERASED
    return dist


def find_min_index(dist: np.ndarray) -> Optional[Tuple[int, int]]:
    """Row/column of the smallest live entry; first in row-major order on ties.

    Returns None when the matrix is empty or fully erased.
    """
    if dist.size == 0:
        return None
    flat = int(np.argmin(dist))
    i, j = divmod(flat, dist.shape[1])
    if not dist[i, j] < ERASED:
        return None
    return i, j


def greedy_associate(predicted, observations) -> Assignment:
    """Greedy nearest-neighbour assignment of observations to track slots."""
    n_tracks = len(predicted)
    n_obs = len(observations)
    result = Assignment([None] * n_tracks, n_obs)
    if n_tracks == 0 or n_obs == 0:
        return result

    dist = distance_matrix(predicted, observations)
    for _ in range(n_tracks):
        idx = find_min_index(dist)
        if idx is None:
            break
        i, j = idx
        result.matches[i] = j
        dist[i, :] = ERASED
        dist[:, j] = ERASED

    return result


def optimal_associate(predicted, observations) -> Assignment:
    """Minimum total-distance assignment (Hungarian, scipy C implementation)."""
    from scipy.optimize import linear_sum_assignment

    n_tracks = len(predicted)
    n_obs = len(observations)
    result = Assignment([None] * n_tracks, n_obs)
    if n_tracks == 0 or n_obs == 0:
        return result

    dist = distance_matrix(predicted, observations)
    live = np.isfinite(dist)
    if not live.any():
        return result
    # Erased pairs get a cost no live pairing can beat, then are discarded
    cost = np.where(live, dist, dist[live].max() * (n_tracks + n_obs) + 1.0)
    rows, cols = linear_sum_assignment(cost)
    for i, j in zip(rows.tolist(), cols.tolist()):
        if live[i, j]:
            result.matches[i] = j
    return result


# ===== STRATEGIES =====

class AssociationStrategy(ABC):
    """Frame-level association: predictions + observations -> Assignment."""

    name = "abstract"

    @abstractmethod
    def associate(self, predicted, observations) -> Assignment:
        ...

    def __call__(self, predicted, observations) -> Assignment:
        return self.associate(predicted, observations)

    def __repr__(self):
        return f"{type(self).__name__}()"


class GreedyAssociator(AssociationStrategy):
    name = "greedy"

    def associate(self, predicted, observations) -> Assignment:
        return greedy_associate(predicted, observations)


class OptimalAssociator(AssociationStrategy):
    name = "optimal"

    def associate(self, predicted, observations) -> Assignment:
        return optimal_associate(predicted, observations)


_STRATEGIES = {
    GreedyAssociator.name: GreedyAssociator,
    OptimalAssociator.name: OptimalAssociator,
}


def make_associator(name: str = "greedy") -> AssociationStrategy:
    try:
        return _STRATEGIES[name]()
    except KeyError:
        raise ValueError(f"unknown association method '{name}' "
                         f"(expected one of {sorted(_STRATEGIES)})") from None
