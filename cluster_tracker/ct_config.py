"""
Cluster Tracker Configuration
=============================

Runtime parameters of the clustering + tracking node. Field defaults match
the values the lidar node shipped with; ``from_dict`` also understands the
node's legacy parameter names so existing launch files keep working.

Usage::

    cfg = TrackerConfig.from_json("tracker.json")
    tracker = FrameTracker(cfg)
"""

from __future__ import annotations

import json
import os
from dataclasses import dataclass, asdict, fields
from typing import Any, Dict, Optional


class ConfigError(ValueError):
    """Invalid tracker configuration."""


# Legacy node parameter name -> TrackerConfig field
PARAM_ALIASES = {
    "tracker_concurrency_level": "concurrency_level",
    "visualize_rviz": "visualize",
    "tracker_tolerance": "tolerance",
    "filter_prune_interval": "prune_interval",
}

STALENESS_MODES = ("bank", "track")
ASSOCIATION_METHODS = ("greedy", "optimal")


@dataclass
class TrackerConfig:
    """Clustering, filter and track-bank tuning."""
    # Scheduling
    concurrency_level: int = 0       # 0 = hardware concurrency, 1 = single thread

    # Presentation
    visualize: bool = True
    scan_frame: str = "laser"
    target_frame: Optional[str] = None   # None -> scan_frame
    scan_topic: str = "cloud"

    # Clustering
    tolerance: float = 0.2           # Max point spacing inside a cluster [m]
    max_cluster_size: int = 70
    min_cluster_size: int = 20

    # Track bank
    prune_interval: int = 20         # Over-provisioned frames before pruning
    staleness_mode: str = "bank"     # "bank" (shared counter) or "track"

    # Motion filter
    process_noise: float = 0.01
    measurement_noise: float = 0.1
    velocity_retention: float = 0.01

    # Association
    association: str = "greedy"

    def __post_init__(self):
        if self.target_frame is None:
            self.target_frame = self.scan_frame

    def validate(self) -> "TrackerConfig":
        """Raise ConfigError on out-of-range values; returns self."""
        if self.concurrency_level < 0:
            raise ConfigError(f"concurrency_level must be >= 0, got {self.concurrency_level}")
        if self.tolerance <= 0:
            raise ConfigError(f"tolerance must be positive, got {self.tolerance}")
        if self.min_cluster_size < 1:
            raise ConfigError(f"min_cluster_size must be >= 1, got {self.min_cluster_size}")
        if self.max_cluster_size < self.min_cluster_size:
            raise ConfigError(
                f"max_cluster_size ({self.max_cluster_size}) < "
                f"min_cluster_size ({self.min_cluster_size})")
        if self.prune_interval < 0:
            raise ConfigError(f"prune_interval must be >= 0, got {self.prune_interval}")
        if self.process_noise < 0 or self.measurement_noise <= 0:
            raise ConfigError("noise scalars must be non-negative (measurement noise > 0)")
        if self.staleness_mode not in STALENESS_MODES:
            raise ConfigError(f"staleness_mode must be one of {STALENESS_MODES}")
        if self.association not in ASSOCIATION_METHODS:
            raise ConfigError(f"association must be one of {ASSOCIATION_METHODS}")
        return self

    @property
    def needs_transform(self) -> bool:
        """True when markers must be moved from the scan frame to the target frame."""
        return self.target_frame != self.scan_frame

    def worker_count(self) -> int:
        """Worker threads (and queued frames) for the pipeline."""
        if self.concurrency_level > 0:
            return self.concurrency_level
        return os.cpu_count() or 1

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)

    @classmethod
    def from_dict(cls, params: Dict[str, Any]) -> "TrackerConfig":
        """Build from a parameter mapping; legacy node names are accepted."""
        known = {f.name for f in fields(cls)}
        kwargs = {}
        for key, value in params.items():
            name = PARAM_ALIASES.get(key, key)
            if name not in known:
                raise ConfigError(f"unknown tracker parameter '{key}'")
            kwargs[name] = value
        try:
            cfg = cls(**kwargs)
        except TypeError as e:
            raise ConfigError(str(e)) from e
        return cfg.validate()

    @classmethod
    def from_json(cls, path: str) -> "TrackerConfig":
        with open(path, "r", encoding="utf-8") as f:
            try:
                params = json.load(f)
            except json.JSONDecodeError as e:
                raise ConfigError(f"{path}: {e}") from e
        if not isinstance(params, dict):
            raise ConfigError(f"{path}: expected a JSON object")
        return cls.from_dict(params)
