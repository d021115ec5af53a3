"""
Cluster Tracker Presenters
==========================

Sinks for each frame's (track id, centroid) pairs:
- MarkerPresenter builds RViz-style cube markers, optionally moved from the
  scan frame into a target frame
- ObjectIdPresenter keeps the last id / centroid arrays (object id topic)
- CallbackPresenter forwards to any callable

Markers are plain dictionaries that map one-to-one onto
visualization_msgs/Marker fields, so they can be converted by a transport
layer or inspected directly in tests.
"""

from abc import ABC, abstractmethod
from typing import Any, Callable, Dict, List, Optional, Sequence, Union

import numpy as np
from loguru import logger


MARKER_CUBE = 1
MARKER_ADD = 0


class TransformError(RuntimeError):
    """Coordinate transform between scan and target frame is unavailable."""


class Presenter(ABC):
    """Receives the matched track ids and their centroids after each frame."""

    @abstractmethod
    def emit(self, track_ids: Sequence[int], centroids: Sequence[np.ndarray]) -> None:
        ...


def marker_color(track_id: int) -> Dict[str, float]:
    """Deterministic per-id color (cycles through channel parities)."""
    return {
        'r': 1.0 if track_id % 2 else 0.0,
        'g': 1.0 if track_id % 3 else 0.0,
        'b': 1.0 if track_id % 4 else 0.0,
        'a': 1.0,
    }


def build_marker(track_id: int, position: Sequence[float], frame_id: str = "laser",
                 namespace: str = "cluster_tracker", scale: float = 0.2) -> Dict[str, Any]:
    """
    Build marker dictionary for one tracked cluster.

    Returns dict that can be converted to a visualization_msgs/Marker.
    """
    return {
        'header': {'frame_id': frame_id},
        'ns': namespace,
        'id': int(track_id),
        'type': MARKER_CUBE,
        'action': MARKER_ADD,
        'pose': {
            'position': {'x': float(position[0]), 'y': float(position[1]),
                         'z': float(position[2]) if len(position) > 2 else 0.0},
            'orientation': {'x': 0, 'y': 0, 'z': 0, 'w': 1}
        },
        'scale': {'x': scale, 'y': scale, 'z': scale},
        'color': marker_color(track_id),
    }


Transform = Union[np.ndarray, Callable[[np.ndarray], np.ndarray]]


def apply_transform(transform: Transform, point: Sequence[float]) -> np.ndarray:
    """Move a 3D point with a 4×4 homogeneous matrix or a callable."""
    p = np.zeros(3)
    p[:len(point)] = np.asarray(point, dtype=float)[:3]
    if callable(transform):
        out = np.asarray(transform(p), dtype=float)
    else:
        T = np.asarray(transform, dtype=float)
        if T.shape != (4, 4):
            raise TransformError(f"expected a 4x4 transform, got shape {T.shape}")
        out = (T @ np.append(p, 1.0))[:3]
    if out.shape != (3,) or not np.all(np.isfinite(out)):
        raise TransformError(f"transform produced an invalid point: {out}")
    return out


class MarkerPresenter(Presenter):
    """Turns each frame's tracked centroids into cube markers."""

    def __init__(self, frame_id: str = "laser", target_frame: Optional[str] = None,
                 transform: Optional[Transform] = None, scale: float = 0.2,
                 namespace: str = "cluster_tracker"):
        self.frame_id = frame_id
        self.target_frame = target_frame or frame_id
        self.transform = transform
        self.scale = scale
        self.namespace = namespace
        self.last_markers: List[Dict[str, Any]] = []
        self.frames_emitted = 0

    @classmethod
    def from_config(cls, config, transform: Optional[Transform] = None) -> "MarkerPresenter":
        return cls(frame_id=config.scan_frame, target_frame=config.target_frame,
                   transform=transform)

    @property
    def needs_transform(self) -> bool:
        return self.target_frame != self.frame_id

    def _to_target(self, centroid) -> np.ndarray:
        if not self.needs_transform:
            return np.asarray(centroid, dtype=float)
        if self.transform is None:
            raise TransformError(
                f"no transform from '{self.frame_id}' to '{self.target_frame}'")
        return apply_transform(self.transform, centroid)

    def emit(self, track_ids, centroids) -> None:
        markers = []
        for track_id, centroid in zip(track_ids, centroids):
            try:
                position = self._to_target(centroid)
            except TransformError as e:
                logger.warning("marker for track {} skipped: {}", track_id, e)
                continue
            markers.append(build_marker(track_id, position, self.target_frame,
                                        self.namespace, self.scale))
        self.last_markers = markers
        self.frames_emitted += 1

    def __repr__(self):
        return f"MarkerPresenter({self.frame_id} -> {self.target_frame})"


class ObjectIdPresenter(Presenter):
    """Keeps the last emitted track ids and centroids."""

    def __init__(self):
        self.track_ids: List[int] = []
        self.centroids: List[np.ndarray] = []
        self.frames_emitted = 0

    def emit(self, track_ids, centroids) -> None:
        self.track_ids = list(track_ids)
        self.centroids = [np.asarray(c, dtype=float) for c in centroids]
        self.frames_emitted += 1

    def __repr__(self):
        return f"ObjectIdPresenter(last={self.track_ids})"


class CallbackPresenter(Presenter):
    """Adapts a plain ``fn(track_ids, centroids)`` callable."""

    def __init__(self, fn: Callable[[List[int], List[np.ndarray]], None]):
        self.fn = fn

    def emit(self, track_ids, centroids) -> None:
        self.fn(list(track_ids), list(centroids))

    def __repr__(self):
        return f"CallbackPresenter({getattr(self.fn, '__name__', self.fn)!r})"
