"""Cluster Tracker: stable object identities from lidar point-cloud frames.

Euclidean clustering per frame, one constant-velocity Kalman filter per
object, greedy nearest-neighbour association between them.

Quick Start::

    from cluster_tracker import TrackingPipeline, TrackerConfig
    pipeline = TrackingPipeline(TrackerConfig(tolerance=0.2))
    for cloud in frames:
        result = pipeline.process(cloud)
        print(result.track_ids, result.centroids)
"""

__version__ = "1.0.0"
__license__ = "AGPL-3.0-or-later"

# ---------------------------------------------------------------------------
# Core tracking: filter, association, track bank, frame cycle
# ---------------------------------------------------------------------------
from .ct_filter import MotionFilter, make_cv2d_matrices
from .ct_association import (
    Observation,
    Assignment,
    AssociationStrategy,
    GreedyAssociator,
    OptimalAssociator,
    distance_matrix,
    find_min_index,
    greedy_associate,
    optimal_associate,
    make_associator,
    observations_from_array,
)
from .ct_bank import TrackBank, TrackSlot
from .ct_tracker import FrameTracker, FrameResult

# ---------------------------------------------------------------------------
# Collaborators: clustering, presentation, pipeline
# ---------------------------------------------------------------------------
from .ct_clustering import EuclideanClusterer, Cluster
from .ct_presenter import (
    Presenter,
    MarkerPresenter,
    ObjectIdPresenter,
    CallbackPresenter,
    TransformError,
    build_marker,
)
from .ct_pipeline import TrackingPipeline

# ---------------------------------------------------------------------------
# Configuration & data
# ---------------------------------------------------------------------------
from .ct_config import TrackerConfig, ConfigError
from .ct_datasets import PointFrame, PointCloudCSVAdapter, SyntheticSceneGenerator

__all__ = [
    "__version__",
    # Core
    "MotionFilter", "make_cv2d_matrices",
    "Observation", "Assignment", "AssociationStrategy",
    "GreedyAssociator", "OptimalAssociator", "distance_matrix", "find_min_index",
    "greedy_associate", "optimal_associate", "make_associator",
    "observations_from_array",
    "TrackBank", "TrackSlot", "FrameTracker", "FrameResult",
    # Collaborators
    "EuclideanClusterer", "Cluster",
    "Presenter", "MarkerPresenter", "ObjectIdPresenter", "CallbackPresenter",
    "TransformError", "build_marker", "TrackingPipeline",
    # Config & data
    "TrackerConfig", "ConfigError",
    "PointFrame", "PointCloudCSVAdapter", "SyntheticSceneGenerator",
]
