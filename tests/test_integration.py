"""
Integration tests — point clouds through the full pipeline
==========================================================
Synthetic scenes → Euclidean clustering → FrameTracker → presenters.

pytest tests/test_integration.py -v
"""

import numpy as np
import pytest
import sys, os

sys.path.insert(0, os.path.join(os.path.dirname(__file__), '..'))

from cluster_tracker import (
    ObjectIdPresenter, PointCloudCSVAdapter, PointFrame,
    SyntheticSceneGenerator, TrackerConfig, TrackingPipeline,
)
from cluster_tracker import demo


@pytest.fixture
def config():
    return TrackerConfig(min_cluster_size=10, max_cluster_size=70,
                         prune_interval=5, concurrency_level=2)


@pytest.fixture
def gen():
    return SyntheticSceneGenerator(seed=11)


class TestSyntheticScenes:

    def test_generator_is_reproducible(self):
        a = SyntheticSceneGenerator(seed=5).straight_line(n_objects=2, n_frames=3)
        b = SyntheticSceneGenerator(seed=5).straight_line(n_objects=2, n_frames=3)
        np.testing.assert_array_equal(a[2].points, b[2].points)
        assert a[0].n_points == 60
        assert a[0].n_objects == 2

    def test_parallel_lanes_keep_identities(self, config, gen):
        frames = gen.straight_line(n_objects=3, n_frames=30)
        with TrackingPipeline(config) as pipeline:
            results = pipeline.run(frames)
            lane_of = {}
            for tid, pos in pipeline.tracker.positions().items():
                lane_of[tid] = int(round(pos[1] / 3.0))
            final = frames[-1].ground_truth

        assert results[0].bootstrap
        assert pipeline.tracker.track_count == 3
        assert sorted(lane_of.values()) == [1, 2, 3]
        for r in results[1:]:
            assert len(r.track_ids) == 3
            assert r.created == [] and r.pruned == []
        positions = pipeline.tracker.positions()
        for tid, lane in lane_of.items():
            assert abs(positions[tid][0] - final[lane - 1][0]) < 0.5

    def test_appearing_object_creates_track(self, config, gen):
        frames = gen.appearing_object(n_frames=20, appear_at=8)
        with TrackingPipeline(config) as pipeline:
            results = pipeline.run(frames)
        assert results[7].track_count == 1
        assert results[8].created == [1]
        assert pipeline.tracker.track_count == 2
        assert pipeline.tracker.stats["total_tracks_created"] == 2

    def test_vanishing_object_pruned(self, config, gen):
        frames = gen.vanishing_object(n_frames=20, vanish_at=5)
        with TrackingPipeline(config) as pipeline:
            results = pipeline.run(frames)
        assert all(r.pruned == [] for r in results[:10])
        assert len(results[10].pruned) == 1
        assert pipeline.tracker.track_count == 1
        assert pipeline.tracker.stats["total_tracks_pruned"] == 1

    def test_markers_published(self, gen):
        cfg = TrackerConfig(min_cluster_size=10, visualize=True)
        with TrackingPipeline(cfg) as pipeline:
            pipeline.run(gen.straight_line(n_objects=2, n_frames=3))
            assert len(pipeline.markers.last_markers) == 2
            assert pipeline.ids.track_ids == [0, 1]

    def test_visualization_disabled(self, gen):
        cfg = TrackerConfig(min_cluster_size=10, visualize=False)
        with TrackingPipeline(cfg) as pipeline:
            assert pipeline.markers is None


class TestWorkerPool:

    def test_submit_static_scene(self, config, gen):
        frames = gen.straight_line(n_objects=3, n_frames=20, speed=0.0)
        extra = ObjectIdPresenter()
        with TrackingPipeline(config, presenters=[extra]) as pipeline:
            futures = [pipeline.submit(f.points) for f in frames]
            results = [f.result(timeout=10) for f in futures]
        assert pipeline.tracker.track_count == 3
        assert sorted(r.frame_id for r in results) == list(range(20))
        assert sum(r.bootstrap for r in results) == 1
        assert extra.frames_emitted == 20

    def test_closed_pipeline_rejects_frames(self, config):
        pipeline = TrackingPipeline(config)
        pipeline.close()
        with pytest.raises(RuntimeError):
            pipeline.process(np.zeros((0, 3)))
        with pytest.raises(RuntimeError):
            pipeline.submit(np.zeros((0, 3)))

    def test_empty_frames(self, config):
        with TrackingPipeline(config) as pipeline:
            result = pipeline.process(np.empty((0, 3)))
        assert result.track_count == 0


class TestCSV:

    def test_save_and_load(self, tmp_path, gen):
        frames = gen.appearing_object(n_frames=4, appear_at=2)
        path = str(tmp_path / "scan.csv")
        PointCloudCSVAdapter.save(frames, path)
        loaded = PointCloudCSVAdapter.load(path)
        assert len(loaded) == 4
        assert loaded[3].n_points == frames[3].n_points
        np.testing.assert_allclose(loaded[1].points, frames[1].points)

    def test_bad_row(self, tmp_path):
        path = tmp_path / "bad.csv"
        path.write_text("timestamp,x,y,z\n0.0,1.0,oops,0\n")
        with pytest.raises(ValueError):
            PointCloudCSVAdapter.load(str(path))

    def test_missing_z_column(self, tmp_path):
        path = tmp_path / "flat.csv"
        path.write_text("timestamp,x,y\n0.0,1.0,2.0\n0.0,1.1,2.0\n0.1,1.0,2.0\n")
        loaded = PointCloudCSVAdapter.load(str(path))
        assert [f.n_points for f in loaded] == [2, 1]
        assert loaded[0].points[0, 2] == 0.0

    def test_point_frame_counts(self):
        f = PointFrame(timestamp=0.0, points=np.empty((0,)))
        assert f.n_points == 0 and f.n_objects == 0


class TestDemo:

    def test_demo_runs(self, capsys):
        demo.main(["--scenario", "3", "--frames", "16"])
        out = capsys.readouterr().out
        assert "Vanishing object" in out
        assert "Demo complete" in out

    def test_demo_csv_replay(self, tmp_path, capsys):
        frames = SyntheticSceneGenerator(seed=1).straight_line(n_objects=2, n_frames=5)
        path = str(tmp_path / "rec.csv")
        PointCloudCSVAdapter.save(frames, path)
        demo.main(["--csv", path])
        assert "CSV replay" in capsys.readouterr().out
