"""
Cluster Tracker Track Bank
==========================
Ordered collection of motion filters; a track's identity is its index.

Lifecycle:
  - create:  surplus observations are appended as new slots (position =
             observation, velocity = 0). New slots always go at the end.
  - correct: matched slots fuse their observation; degenerate or invalid
             observations are skipped and the slot coasts.
  - prune:   while the bank holds more tracks than the frame has
             observations, a staleness counter advances; once it passes
             the prune interval every unmatched slot is removed and the
             assignment is compacted with it.

The bank does no locking of its own; FrameTracker holds one lock over the
whole frame cycle.
"""

from dataclasses import dataclass
from typing import Iterator, List, Optional, Sequence

import numpy as np
from loguru import logger

from .ct_association import Assignment, Observation
from .ct_config import TrackerConfig
from .ct_filter import MotionFilter


@dataclass
class TrackSlot:
    """One live track: its filter plus bookkeeping counters."""
    filter: MotionFilter
    misses: int = 0             # Consecutive frames without a match
    hits: int = 0               # Total matched frames
    age: int = 0                # Frames since creation

    @property
    def position(self) -> np.ndarray:
        return self.filter.position

    def __repr__(self):
        pos = self.filter.position
        return (f"TrackSlot(pos=({pos[0]:.2f}, {pos[1]:.2f}), "
                f"hits={self.hits}, misses={self.misses}, age={self.age})")


class TrackBank:
    """Authoritative set of live tracks."""

    def __init__(self, config: Optional[TrackerConfig] = None):
        self.config = config or TrackerConfig()
        self.slots: List[TrackSlot] = []
        self.staleness = 0          # Shared over-provisioned frame counter

    def __len__(self):
        return len(self.slots)

    def __iter__(self) -> Iterator[TrackSlot]:
        return iter(self.slots)

    def __getitem__(self, index: int) -> TrackSlot:
        return self.slots[index]

    @property
    def size(self) -> int:
        return len(self.slots)

    def _new_filter(self) -> MotionFilter:
        return MotionFilter(
            process_noise=self.config.process_noise,
            measurement_noise=self.config.measurement_noise,
            velocity_retention=self.config.velocity_retention,
        )

    def positions(self) -> List[np.ndarray]:
        """Current (x, y) estimate of every slot, in slot order."""
        return [s.filter.position for s in self.slots]

    def predict_all(self) -> List[np.ndarray]:
        """Predict every filter one step; returns predicted (x, y) in slot order."""
        predicted = []
        for slot in self.slots:
            predicted.append(slot.filter.predict())
            slot.age += 1
        return predicted

    def create(self, n: int, seed_positions: Sequence) -> List[int]:
        """Append ``n`` slots seeded at ``seed_positions``; returns their indices."""
        if n < 0:
            raise ValueError(f"cannot create {n} tracks")
        if len(seed_positions) < n:
            raise ValueError(f"{n} tracks requested but only {len(seed_positions)} seeds given")

        first = len(self.slots)
        for seed in list(seed_positions)[:n]:
            if isinstance(seed, Observation):
                seed = seed.planar
            kf = self._new_filter()
            kf.initialize(seed)
            self.slots.append(TrackSlot(filter=kf))
        return list(range(first, first + n))

    def correct(self, slot_index: int, measurement) -> bool:
        """Fuse ``measurement`` into one slot. Returns False if it was skipped."""
        if isinstance(measurement, Observation):
            obs = measurement
        else:
            obs = Observation.from_array(measurement)
        if not obs.usable:
            logger.debug("skipping correction of track {} with unusable measurement "
                         "({:.3f}, {:.3f})", slot_index, obs.x, obs.y)
            return False
        self.slots[slot_index].filter.correct(obs.planar)
        return True

    def record_matches(self, assignment: Assignment) -> None:
        """Per-slot hit/miss bookkeeping for this frame."""
        self.check_pairing(assignment)
        for slot, match in zip(self.slots, assignment.matches):
            if match is None:
                slot.misses += 1
            else:
                slot.hits += 1
                slot.misses = 0

    def mark_and_prune(self, assignment: Assignment, prune_interval: int) -> List[int]:
        """Advance staleness and drop unmatched slots once it passes the interval.

        Staleness counts consecutive over-provisioned frames; any frame with
        at least as many observations as tracks resets it. Removes pruned
        slots from the bank *and* from ``assignment`` in place so the two
        stay index-paired. Returns the pre-compaction indices removed.
        """
        self.check_pairing(assignment)
        if len(self.slots) <= assignment.n_observations:
            self.staleness = 0
            return []

        self.staleness += 1
        if self.config.staleness_mode == "track":
            doomed = [i for i, j in enumerate(assignment.matches)
                      if j is None and self.slots[i].misses > prune_interval]
        elif self.staleness > prune_interval:
            doomed = assignment.unmatched_slots()
            self.staleness = 0
        else:
            doomed = []

        if doomed:
            self.remove(doomed, assignment)
        return doomed

    def remove(self, indices: Sequence[int], assignment: Optional[Assignment] = None) -> None:
        """Delete slots (and their assignment entries), compacting indices."""
        drop = set(indices)
        self.slots = [s for i, s in enumerate(self.slots) if i not in drop]
        if assignment is not None:
            assignment.matches = [j for i, j in enumerate(assignment.matches) if i not in drop]
            self.check_pairing(assignment)
        logger.debug("pruned {} stale track(s), {} remain", len(drop), len(self.slots))

    def check_pairing(self, assignment: Assignment) -> None:
        """Slot sequence and assignment must stay the same length."""
        assert len(assignment) == len(self.slots), (
            f"assignment has {len(assignment)} entries for {len(self.slots)} tracks")

    def clear(self) -> None:
        self.slots = []
        self.staleness = 0

    def __repr__(self):
        return f"TrackBank(tracks={len(self.slots)}, staleness={self.staleness})"
