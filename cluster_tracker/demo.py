#!/usr/bin/env python3
"""
Cluster Tracker Demo
====================

Run with:
    python -m cluster_tracker.demo                 # All 3 synthetic scenes
    python -m cluster_tracker.demo --scenario 2    # Appearing object only
    python -m cluster_tracker.demo --csv log.csv   # Replay a CSV recording
    python -m cluster_tracker.demo --save          # Also save trajectory PNGs

Scenes:
  1. Parallel lanes — three objects moving side by side
  2. Appearing object — a second object enters mid-scene (track creation)
  3. Vanishing object — an object leaves (staleness pruning)
"""

import argparse
import os
import sys
from typing import Dict, List

import numpy as np
from loguru import logger

from .ct_config import TrackerConfig
from .ct_datasets import PointCloudCSVAdapter, PointFrame, SyntheticSceneGenerator
from .ct_pipeline import TrackingPipeline


SCENARIOS = {
    1: "Parallel lanes",
    2: "Appearing object",
    3: "Vanishing object",
}


def make_scene(scenario: int, n_frames: int, seed: int) -> List[PointFrame]:
    gen = SyntheticSceneGenerator(seed=seed, noise_points=5)
    if scenario == 1:
        return gen.straight_line(n_objects=3, n_frames=n_frames)
    if scenario == 2:
        return gen.appearing_object(n_frames=n_frames, appear_at=n_frames // 4)
    return gen.vanishing_object(n_frames=n_frames, vanish_at=n_frames // 4)


def run_scene(frames: List[PointFrame], config: TrackerConfig) -> Dict[int, List[np.ndarray]]:
    """Track a scene; returns estimated positions per track id."""
    history: Dict[int, List[np.ndarray]] = {}
    with TrackingPipeline(config) as pipeline:
        for frame in frames:
            result = pipeline.process(frame.points)
            logger.debug("frame {}: {} observation(s), {} track(s), matched {}",
                         result.frame_id, len(result.observations),
                         result.track_count, result.track_ids)
            # Ids are slot indices, so a prune relabels later tracks
            for tid, pos in pipeline.tracker.positions().items():
                history.setdefault(tid, []).append(pos)
        print(f"  Frames: {len(frames)} | Tracks: {pipeline.tracker.track_count} | "
              f"Created: {pipeline.tracker.stats['total_tracks_created']} | "
              f"Pruned: {pipeline.tracker.stats['total_tracks_pruned']}")
        print(pipeline.tracker.summary())
    return history


def plot_tracks(frames: List[PointFrame], history, title: str, save_path: str) -> None:
    import matplotlib
    matplotlib.use('Agg')
    import matplotlib.pyplot as plt

    fig, ax = plt.subplots(figsize=(8, 8))
    for frame in frames[::5]:
        if frame.n_points:
            ax.scatter(frame.points[:, 0], frame.points[:, 1], s=1, c='0.7')
    for tid, positions in history.items():
        p = np.array(positions)
        ax.plot(p[:, 0], p[:, 1], '-', lw=2, label=f"T{tid}")
    ax.set_title(title)
    ax.set_xlabel("x [m]")
    ax.set_ylabel("y [m]")
    ax.set_aspect('equal')
    ax.legend(loc='best')
    plt.tight_layout()
    plt.savefig(save_path, dpi=120)
    plt.close(fig)
    print(f"  Saved: {save_path}")


def run_demo(scenario=None, n_frames=40, seed=42, csv_path=None,
             save=False, output_dir='.', config=None):
    config = config or TrackerConfig(min_cluster_size=10, prune_interval=5,
                                     visualize=False, concurrency_level=1)
    if save:
        os.makedirs(output_dir, exist_ok=True)

    if csv_path:
        runs = [("CSV replay", PointCloudCSVAdapter.load(csv_path))]
    else:
        chosen = [scenario] if scenario else sorted(SCENARIOS)
        runs = [(SCENARIOS[s], make_scene(s, n_frames, seed)) for s in chosen]

    for name, frames in runs:
        print(f"━━━ {name} ━━━")
        history = run_scene(frames, config)
        if save:
            fname = "demo_" + name.lower().replace(" ", "_") + ".png"
            plot_tracks(frames, history, name, os.path.join(output_dir, fname))

    print("\n━━━ Demo complete. ━━━")


def main(argv=None):
    parser = argparse.ArgumentParser(
        description='Cluster Tracker Demo — point-cloud clustering and tracking',
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Scenarios:
  1  Parallel lanes — three objects side by side
  2  Appearing object — track creation mid-scene
  3  Vanishing object — staleness pruning
""")
    parser.add_argument('--scenario', '-s', type=int, default=None,
                        choices=sorted(SCENARIOS),
                        help='Scenario number (default: all)')
    parser.add_argument('--frames', '-n', type=int, default=40,
                        help='Frames per synthetic scene (default: 40)')
    parser.add_argument('--seed', type=int, default=42)
    parser.add_argument('--csv', type=str, default=None,
                        help='Replay a timestamp,x,y,z CSV recording instead')
    parser.add_argument('--config', type=str, default=None,
                        help='JSON tracker configuration')
    parser.add_argument('--save', action='store_true',
                        help='Save trajectory PNGs (needs matplotlib)')
    parser.add_argument('--output-dir', '-o', type=str, default='.')
    parser.add_argument('--verbose', '-v', action='store_true')

    args = parser.parse_args(argv)

    logger.remove()
    logger.add(sys.stderr, level="DEBUG" if args.verbose else "WARNING")

    config = TrackerConfig.from_json(args.config) if args.config else None
    run_demo(scenario=args.scenario, n_frames=args.frames, seed=args.seed,
             csv_path=args.csv, save=args.save, output_dir=args.output_dir,
             config=config)


if __name__ == '__main__':
    main()
