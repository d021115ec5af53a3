"""
Tests for Euclidean cluster extraction
======================================
pytest tests/test_ct_clustering.py -v
"""

import numpy as np
import pytest
from numpy.testing import assert_array_almost_equal
import sys, os

sys.path.insert(0, os.path.join(os.path.dirname(__file__), '..'))

from cluster_tracker.ct_clustering import EuclideanClusterer
from cluster_tracker.ct_config import TrackerConfig


def grid_blob(cx, cy, nx, ny, step=0.05, z=0.3):
    """nx*ny points on a regular grid centred at (cx, cy)."""
    xs = cx + (np.arange(nx) - (nx - 1) / 2) * step
    ys = cy + (np.arange(ny) - (ny - 1) / 2) * step
    X, Y = np.meshgrid(xs, ys)
    return np.column_stack([X.ravel(), Y.ravel(), np.full(X.size, z)])


@pytest.fixture
def clusterer():
    return EuclideanClusterer(tolerance=0.2, min_size=20, max_size=70)


class TestExtraction:

    def test_two_blobs_largest_first(self, clusterer):
        small = grid_blob(1.0, 1.0, 5, 5)     # 25 points
        large = grid_blob(5.0, -2.0, 6, 5)    # 30 points
        clusters = clusterer.extract(np.vstack([small, large]))
        assert [c.size for c in clusters] == [30, 25]
        assert_array_almost_equal(clusters[0].centroid, [5.0, -2.0, 0.0])
        assert_array_almost_equal(clusters[1].centroid, [1.0, 1.0, 0.0])

    def test_centroid_height_is_zero(self, clusterer):
        clusters = clusterer.extract(grid_blob(2.0, 3.0, 5, 5, z=1.7))
        assert clusters[0].centroid[2] == 0.0

    def test_size_limits_drop_clusters(self, clusterer):
        tiny = grid_blob(0.0, 5.0, 2, 2)       # 4 points
        huge = grid_blob(10.0, 10.0, 10, 10)   # 100 points
        ok = grid_blob(-5.0, -5.0, 5, 5)
        clusters = clusterer.extract(np.vstack([tiny, huge, ok]))
        assert len(clusters) == 1
        assert_array_almost_equal(clusters[0].centroid[:2], [-5.0, -5.0])

    def test_chain_within_tolerance_is_one_cluster(self, clusterer):
        line = np.column_stack([np.arange(25) * 0.15, np.zeros(25), np.zeros(25)])
        clusters = clusterer.extract(line)
        assert len(clusters) == 1
        assert clusters[0].size == 25

    def test_gap_larger_than_tolerance_splits(self):
        c = EuclideanClusterer(tolerance=0.2, min_size=3, max_size=100)
        line = np.array([[0, 0, 0], [0.1, 0, 0], [0.2, 0, 0],
                         [1.0, 0, 0], [1.1, 0, 0], [1.2, 0, 0]])
        assert len(c.extract(line)) == 2

    def test_two_column_input(self, clusterer):
        pts = grid_blob(1.0, 2.0, 5, 5)[:, :2]
        assert len(clusterer.extract(pts)) == 1

    def test_non_finite_rows_dropped(self, clusterer):
        pts = np.vstack([grid_blob(1.0, 1.0, 5, 5), [[np.nan, 0.0, 0.0]]])
        clusters = clusterer.extract(pts)
        assert clusters[0].size == 25


class TestEdgeCases:

    def test_empty_frame(self, clusterer):
        assert clusterer.extract(np.empty((0, 3))) == []
        assert clusterer.cluster([]) == []

    def test_bad_shape(self, clusterer):
        with pytest.raises(ValueError):
            clusterer.extract(np.zeros((5, 4)))

    def test_bad_parameters(self):
        with pytest.raises(ValueError):
            EuclideanClusterer(tolerance=0.0)
        with pytest.raises(ValueError):
            EuclideanClusterer(min_size=10, max_size=5)


class TestObservations:

    def test_cluster_returns_ordered_observations(self, clusterer):
        pts = np.vstack([grid_blob(1.0, 1.0, 5, 5), grid_blob(4.0, 4.0, 6, 6)])
        observations = clusterer.cluster(pts)
        assert len(observations) == 2
        assert observations[0].x == pytest.approx(4.0)
        assert observations[1].y == pytest.approx(1.0)
        assert all(o.z == 0.0 for o in observations)

    def test_from_config(self):
        c = EuclideanClusterer.from_config(
            TrackerConfig(tolerance=0.5, min_cluster_size=3, max_cluster_size=9))
        assert (c.tolerance, c.min_size, c.max_size) == (0.5, 3, 9)


class TestComponents:

    def test_interleaved_points_grouped_by_connectivity(self):
        a = grid_blob(0.0, 0.0, 5, 5)
        b = grid_blob(3.0, 0.0, 5, 5)
        pts = np.empty((50, 3))
        pts[0::2], pts[1::2] = a, b
        clusters = EuclideanClusterer(tolerance=0.2, min_size=20, max_size=70).extract(pts)
        assert [c.size for c in clusters] == [25, 25]
        assert_array_almost_equal(clusters[0].centroid[:2], [0.0, 0.0])
        assert_array_almost_equal(clusters[1].centroid[:2], [3.0, 0.0])
        assert list(clusters[0].indices) == list(range(0, 50, 2))

    def test_equal_sizes_keep_discovery_order(self):
        c = EuclideanClusterer(tolerance=0.2, min_size=2, max_size=10)
        pts = np.array([[5, 5, 0], [0, 0, 0], [5.1, 5, 0], [0.1, 0, 0]])
        clusters = c.extract(pts)
        assert_array_almost_equal(clusters[0].centroid[:2], [5.05, 5.0])
        assert_array_almost_equal(clusters[1].centroid[:2], [0.05, 0.0])

    def test_isolated_points_are_singletons(self):
        c = EuclideanClusterer(tolerance=0.2, min_size=1, max_size=10)
        pts = np.array([[0, 0, 0], [1, 0, 0], [2, 0, 0]])
        assert [cl.size for cl in c.extract(pts)] == [1, 1, 1]
