"""
Cluster Tracker Frame Cycle
===========================
Runs one predict → associate → reconcile → correct → emit cycle per frame.

Architecture:
  FrameTracker
    ├── TrackBank            (filters + staleness)
    ├── AssociationStrategy  (greedy nearest neighbour by default)
    └── Presenters           (sinks for track id ↔ centroid pairs)

Frames may arrive from several worker threads. The whole cycle up to and
including correction runs under one lock: a filter must never be corrected
against another frame's prediction, nor predicted twice before a
correction. Emission happens after the lock is released, from a snapshot.

Frame ordering is whatever order workers acquire the lock in; callers that
need strict temporal order must keep one frame in flight.
"""

import threading
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Sequence

import numpy as np
from loguru import logger

from .ct_association import (
    Assignment, AssociationStrategy, Observation, make_associator,
    observations_from_array,
)
from .ct_bank import TrackBank
from .ct_config import TrackerConfig


@dataclass
class FrameResult:
    """Snapshot of one frame's outcome, safe to read outside the lock."""
    frame_id: int
    assignment: Assignment
    observations: List[Observation]
    predictions: List[np.ndarray] = field(default_factory=list)
    created: List[int] = field(default_factory=list)
    pruned: List[int] = field(default_factory=list)
    skipped: List[int] = field(default_factory=list)
    bootstrap: bool = False

    @property
    def track_ids(self) -> List[int]:
        """Slots matched this frame, in slot order."""
        return [i for i, _ in self.assignment.matched_pairs()]

    @property
    def centroids(self) -> List[np.ndarray]:
        """Centroid (x, y, z) for each entry of ``track_ids``."""
        return [self.observations[j].as_array() for _, j in self.assignment.matched_pairs()]

    @property
    def track_count(self) -> int:
        return len(self.assignment)


class FrameTracker:
    """Maintains stable track identities across point-cloud frames.

    Usage:
        tracker = FrameTracker(TrackerConfig(prune_interval=20))

        # Each frame:
        result = tracker.process_frame(centroids)
        for track_id, c in zip(result.track_ids, result.centroids):
            print(f"Track {track_id}: {c}")
    """

    def __init__(self, config: Optional[TrackerConfig] = None,
                 associator: Optional[AssociationStrategy] = None,
                 presenters: Sequence[Any] = ()):
        self.config = (config or TrackerConfig()).validate()
        self.associator = associator or make_associator(self.config.association)
        self.presenters = list(presenters)
        self.bank = TrackBank(self.config)
        self.assignment = Assignment()
        self._lock = threading.Lock()
        self._first_frame = True
        self._frame = 0

        self.stats = {
            "frames_processed": 0,
            "total_tracks_created": 0,
            "total_tracks_pruned": 0,
            "skipped_corrections": 0,
            "current_tracks": 0,
        }

    @property
    def track_count(self) -> int:
        return len(self.bank)

    def add_presenter(self, presenter) -> None:
        self.presenters.append(presenter)

    def process_frame(self, observations, frame_id: Optional[int] = None) -> FrameResult:
        """Run one full tracking cycle and hand the result to the presenters.

        Args:
            observations: sequence of Observation, or an Nx2 / Nx3 centroid array.
                Order matters: surplus centroids seed new tracks in this order.
            frame_id: caller frame number (defaults to an internal counter)
        """
        if isinstance(observations, np.ndarray):
            observations = observations_from_array(observations)
        else:
            observations = list(observations)
            if observations and not isinstance(observations[0], Observation):
                observations = observations_from_array(observations)

        with self._lock:
            result = self._cycle(observations, frame_id)

        self._emit(result)
        return result

    def _cycle(self, observations: List[Observation], frame_id: Optional[int]) -> FrameResult:
        if frame_id is None:
            frame_id = self._frame
        self._frame += 1
        n_obs = len(observations)

        if self._first_frame:
            seeds = [j for j, o in enumerate(observations) if o.valid]
            created = self.bank.create(len(seeds), [observations[j] for j in seeds])
            self.assignment = Assignment(seeds, n_obs)
            self._first_frame = False
            self._account(created, [], [])
            logger.info("bootstrapped {} track(s) from first frame {}", len(seeds), frame_id)
            return FrameResult(frame_id, self.assignment.copy(), list(observations),
                               created=created, bootstrap=True)

        # 1. PREDICT
        predictions = self.bank.predict_all()

        # 2. ASSOCIATE
        assignment = self.associator.associate(predictions, observations)
        self.bank.record_matches(assignment)

        # 3. RECONCILE
        created: List[int] = []
        pruned = self.bank.mark_and_prune(assignment, self.config.prune_interval)
        if pruned:
            logger.debug("frame {}: pruned tracks {}", frame_id, pruned)
        if n_obs > len(self.bank):
            surplus = n_obs - len(self.bank)
            seeds = [j for j in assignment.unmatched_observations()
                     if observations[j].valid][:surplus]
            created = self.bank.create(len(seeds), [observations[j] for j in seeds])
            assignment.matches.extend(seeds)
            if created:
                logger.debug("frame {}: created tracks {} from observations {}",
                             frame_id, created, seeds)
        self.bank.check_pairing(assignment)

        # 4. CORRECT
        skipped = []
        for slot, j in assignment.matched_pairs():
            if not self.bank.correct(slot, observations[j]):
                skipped.append(slot)

        self.assignment = assignment
        self._account(created, pruned, skipped)
        return FrameResult(frame_id, assignment.copy(), list(observations),
                           predictions=predictions, created=created,
                           pruned=pruned, skipped=skipped)

    def _account(self, created, pruned, skipped) -> None:
        self.stats["frames_processed"] += 1
        self.stats["total_tracks_created"] += len(created)
        self.stats["total_tracks_pruned"] += len(pruned)
        self.stats["skipped_corrections"] += len(skipped)
        self.stats["current_tracks"] = len(self.bank)

    # 5. EMIT (outside the lock)
    def _emit(self, result: FrameResult) -> None:
        track_ids = result.track_ids
        centroids = result.centroids
        for presenter in self.presenters:
            try:
                presenter.emit(track_ids, centroids)
            except Exception as e:
                logger.warning("presenter {!r} failed on frame {}: {}",
                               presenter, result.frame_id, e)

    def positions(self) -> Dict[int, np.ndarray]:
        """Current (x, y) estimate per track id."""
        with self._lock:
            return {i: s.filter.position for i, s in enumerate(self.bank)}

    def reset(self) -> None:
        """Drop every track; the next frame bootstraps again.

        Cumulative counters in ``stats`` are kept; only ``current_tracks``
        and the internal frame counter start over.
        """
        with self._lock:
            self.bank.clear()
            self.assignment = Assignment()
            self._first_frame = True
            self._frame = 0
            self.stats["current_tracks"] = 0

    def summary(self) -> str:
        """Human-readable tracker summary."""
        with self._lock:
            lines = [f"FrameTracker — frame {self._frame} — {len(self.bank)} tracks"]
            for i, slot in enumerate(self.bank):
                pos = slot.filter.position
                vel = slot.filter.velocity
                match = self.assignment[i] if i < len(self.assignment) else None
                lines.append(
                    f"  T{i:03d} pos=({pos[0]:.2f}, {pos[1]:.2f}) "
                    f"speed={np.linalg.norm(vel):.2f} "
                    f"obs={'-' if match is None else match} "
                    f"hits={slot.hits} misses={slot.misses}"
                )
            lines.append(f"  Stats: {self.stats}")
        return "\n".join(lines)

    def __repr__(self):
        return (f"FrameTracker(tracks={len(self.bank)}, "
                f"frames={self.stats['frames_processed']}, "
                f"associator={self.associator!r})")
