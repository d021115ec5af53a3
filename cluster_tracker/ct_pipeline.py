"""
Cluster Tracker Pipeline
========================
Frame source → Clusterer → FrameTracker → Presenters.

Frames can be processed synchronously (``process``/``run``) or dispatched
to a worker pool (``submit``). The pool has one worker per configured
concurrency level (hardware concurrency when the level is 0) and accepts at
most one queued frame per worker; ``submit`` blocks until a slot frees up.

Workers may finish in any order. The tracker serializes frame cycles but
does not reorder them, so use ``run`` (one frame in flight) when temporal
order matters.
"""

import threading
from concurrent.futures import Future, ThreadPoolExecutor
from typing import Iterable, List, Optional, Sequence

from loguru import logger

from .ct_clustering import EuclideanClusterer
from .ct_config import TrackerConfig
from .ct_presenter import MarkerPresenter, ObjectIdPresenter
from .ct_tracker import FrameResult, FrameTracker


class TrackingPipeline:
    """Clusters incoming point clouds and tracks the cluster centroids."""

    def __init__(self, config: Optional[TrackerConfig] = None,
                 clusterer: Optional[EuclideanClusterer] = None,
                 tracker: Optional[FrameTracker] = None,
                 presenters: Sequence = ()):
        self.config = (config or TrackerConfig()).validate()
        self.clusterer = clusterer or EuclideanClusterer.from_config(self.config)
        self.tracker = tracker or FrameTracker(self.config)

        self.ids = ObjectIdPresenter()
        self.tracker.add_presenter(self.ids)
        self.markers: Optional[MarkerPresenter] = None
        if self.config.visualize:
            self.markers = MarkerPresenter.from_config(self.config)
            self.tracker.add_presenter(self.markers)
        for p in presenters:
            self.tracker.add_presenter(p)

        self.n_workers = self.config.worker_count()
        self._slots = threading.BoundedSemaphore(self.n_workers)
        self._executor: Optional[ThreadPoolExecutor] = None
        self._closed = False
        self._frame_lock = threading.Lock()
        self._next_frame = 0

        logger.info("tracking pipeline ready ({} worker(s), {})",
                    self.n_workers, self.clusterer)

    def _frame_id(self) -> int:
        with self._frame_lock:
            frame_id = self._next_frame
            self._next_frame += 1
        return frame_id

    def _handle(self, points, frame_id: int) -> FrameResult:
        observations = self.clusterer.cluster(points)
        return self.tracker.process_frame(observations, frame_id=frame_id)

    def process(self, points) -> FrameResult:
        """Cluster and track one frame in the calling thread."""
        if self._closed:
            raise RuntimeError("pipeline is closed")
        return self._handle(points, self._frame_id())

    def run(self, frames: Iterable) -> List[FrameResult]:
        """Process frames one at a time, in order.

        Accepts raw point arrays or objects with a ``points`` attribute
        (e.g. PointFrame).
        """
        results = []
        for frame in frames:
            points = getattr(frame, "points", frame)
            results.append(self.process(points))
        return results

    def submit(self, points) -> "Future[FrameResult]":
        """Queue a frame on the worker pool; blocks while every worker is busy."""
        if self._closed:
            raise RuntimeError("pipeline is closed")
        if self._executor is None:
            self._executor = ThreadPoolExecutor(max_workers=self.n_workers,
                                                thread_name_prefix="cluster-tracker")
        self._slots.acquire()
        frame_id = self._frame_id()
        try:
            future = self._executor.submit(self._handle, points, frame_id)
        except RuntimeError:
            self._slots.release()
            raise
        future.add_done_callback(lambda _: self._slots.release())
        return future

    def close(self, wait: bool = True) -> None:
        self._closed = True
        if self._executor is not None:
            self._executor.shutdown(wait=wait)
            self._executor = None

    def __enter__(self):
        return self

    def __exit__(self, *exc):
        self.close()
        return False

    def __repr__(self):
        return (f"TrackingPipeline(workers={self.n_workers}, "
                f"tracks={self.tracker.track_count})")
