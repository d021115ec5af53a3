"""
Tests for marker / id presenters
================================
pytest tests/test_ct_presenter.py -v
"""

import numpy as np
import pytest
from numpy.testing import assert_array_almost_equal
import sys, os

sys.path.insert(0, os.path.join(os.path.dirname(__file__), '..'))

from cluster_tracker.ct_config import TrackerConfig
from cluster_tracker.ct_presenter import (
    CallbackPresenter, MarkerPresenter, ObjectIdPresenter, TransformError,
    apply_transform, build_marker, marker_color,
)


def translation(dx, dy, dz=0.0):
    T = np.eye(4)
    T[:3, 3] = [dx, dy, dz]
    return T


class TestMarkers:

    def test_build_marker_fields(self):
        m = build_marker(3, [1.0, 2.0, 0.0], frame_id="laser")
        assert m['id'] == 3
        assert m['type'] == 1 and m['action'] == 0
        assert m['header']['frame_id'] == "laser"
        assert m['pose']['position'] == {'x': 1.0, 'y': 2.0, 'z': 0.0}
        assert m['scale'] == {'x': 0.2, 'y': 0.2, 'z': 0.2}

    def test_color_cycles_with_id(self):
        assert marker_color(0) == {'r': 0.0, 'g': 0.0, 'b': 0.0, 'a': 1.0}
        assert marker_color(1) == {'r': 1.0, 'g': 1.0, 'b': 1.0, 'a': 1.0}
        assert marker_color(2) == {'r': 0.0, 'g': 1.0, 'b': 1.0, 'a': 1.0}
        assert marker_color(3)['g'] == 0.0
        assert marker_color(4)['b'] == 0.0


class TestTransforms:

    def test_matrix_transform(self):
        out = apply_transform(translation(1.0, -1.0, 0.5), [2.0, 2.0])
        assert_array_almost_equal(out, [3.0, 1.0, 0.5])

    def test_callable_transform(self):
        out = apply_transform(lambda p: p * 2, [1.0, 2.0, 3.0])
        assert_array_almost_equal(out, [2.0, 4.0, 6.0])

    def test_bad_matrix(self):
        with pytest.raises(TransformError):
            apply_transform(np.eye(3), [1.0, 1.0, 0.0])

    def test_non_finite_result(self):
        with pytest.raises(TransformError):
            apply_transform(lambda p: p * np.nan, [1.0, 1.0, 0.0])


class TestMarkerPresenter:

    def test_same_frame_uses_centroids(self):
        p = MarkerPresenter(frame_id="laser")
        p.emit([0, 2], [np.array([1.0, 1.0, 0.0]), np.array([3.0, 4.0, 0.0])])
        assert [m['id'] for m in p.last_markers] == [0, 2]
        assert p.last_markers[1]['pose']['position']['y'] == 4.0
        assert not p.needs_transform

    def test_target_frame_transform(self):
        p = MarkerPresenter(frame_id="laser", target_frame="map",
                            transform=translation(10.0, 0.0))
        p.emit([1], [np.array([1.0, 1.0, 0.0])])
        marker = p.last_markers[0]
        assert marker['header']['frame_id'] == "map"
        assert marker['pose']['position']['x'] == pytest.approx(11.0)

    def test_missing_transform_skips_markers(self):
        p = MarkerPresenter(frame_id="laser", target_frame="map")
        p.emit([0, 1], [np.ones(3), np.ones(3) * 2])
        assert p.last_markers == []
        assert p.frames_emitted == 1

    def test_failed_transform_skips_only_that_track(self):
        def flaky(point):
            if point[0] > 5:
                raise TransformError("lookup timed out")
            return point

        p = MarkerPresenter(frame_id="laser", target_frame="odom", transform=flaky)
        p.emit([0, 1], [np.array([1.0, 1.0, 0.0]), np.array([9.0, 1.0, 0.0])])
        assert [m['id'] for m in p.last_markers] == [0]

    def test_from_config(self):
        cfg = TrackerConfig(scan_frame="velodyne", target_frame="base_link")
        p = MarkerPresenter.from_config(cfg, transform=np.eye(4))
        assert p.frame_id == "velodyne" and p.target_frame == "base_link"
        assert p.needs_transform


class TestSimplePresenters:

    def test_object_ids(self):
        p = ObjectIdPresenter()
        p.emit([4, 7], [[1, 2, 0], [3, 4, 0]])
        assert p.track_ids == [4, 7]
        assert_array_almost_equal(p.centroids[1], [3, 4, 0])

    def test_callback(self):
        seen = []
        p = CallbackPresenter(lambda ids, cs: seen.append((ids, len(cs))))
        p.emit([0], [np.zeros(3)])
        assert seen == [([0], 1)]
