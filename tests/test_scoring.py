"""Tests for consensus scoring and sample consistency checks."""

import numpy as np

from simransac.ransac.scoring import (
    agree, consensus, check_correspondence_distance, check_edge_length,
    check_sample_edge_lengths,
)

SHIFT_X = np.array([0.0, 0.0, 0.0, 1.0, 0.0, 0.0, 1.0])
SCALE_2 = np.array([0.0, 0.0, 0.0, 0.0, 0.0, 0.0, 2.0])


class TestAgree:
    """Test the squared-distance inlier predicate."""

    def test_exact_match_agrees(self):
        assert agree(SHIFT_X, np.array([0.0, 0.0, 0.0, 1.0, 0.0, 0.0]), 0.0)

    def test_threshold_is_inclusive(self):
        c = np.array([0.0, 0.0, 0.0, 1.0, 0.5, 0.0])
        assert agree(SHIFT_X, c, 0.25)
        assert not agree(SHIFT_X, c, 0.24)

    def test_consensus_mask_and_residuals(self):
        data = np.array([
            [0.0, 0.0, 0.0, 1.0, 0.0, 0.0],
            [1.0, 1.0, 1.0, 2.0, 1.0, 1.0],
            [0.0, 0.0, 0.0, 4.0, 0.0, 0.0],
        ])
        mask, err = consensus(SHIFT_X, data, 1.0)

        np.testing.assert_array_equal(mask, [True, True, False])
        np.testing.assert_allclose(err, [0.0, 0.0, 9.0])

    def test_consensus_empty_set(self):
        mask, err = consensus(SHIFT_X, np.zeros((0, 6)), 1.0)
        assert mask.shape == (0,) and err.shape == (0,)

    def test_inputs_not_modified(self):
        data = np.array([[0.0, 0.0, 0.0, 1.0, 0.0, 0.0]])
        before = data.copy()
        consensus(SHIFT_X, data, 1.0)
        np.testing.assert_array_equal(data, before)

    def test_correspondence_distance_check(self):
        sample = np.array([
            [0.0, 0.0, 0.0, 1.0, 0.0, 0.0],
            [1.0, 0.0, 0.0, 2.0, 0.0, 0.0],
            [0.0, 1.0, 0.0, 1.0, 1.3, 0.0],
        ])
        assert check_correspondence_distance(SHIFT_X, sample, 0.1)
        assert not check_correspondence_distance(SHIFT_X, sample, 0.05)


class TestEdgeLength:
    """Test the edge-length consistency check."""

    def test_scaled_edges_match(self):
        c1 = np.array([0.0, 0.0, 0.0, 0.0, 0.0, 0.0])
        c2 = np.array([1.0, 0.0, 0.0, 2.0, 0.0, 0.0])
        assert check_edge_length(SCALE_2, c1, c2, 0.9)

    def test_ratio_band(self):
        c1 = np.zeros(6)
        inside = np.array([1.0, 0.0, 0.0, 2.1, 0.0, 0.0])     # 2 / 2.1 = 0.95
        outside = np.array([1.0, 0.0, 0.0, 2.5, 0.0, 0.0])    # 2 / 2.5 = 0.8
        assert check_edge_length(SCALE_2, c1, inside, 0.9)
        assert not check_edge_length(SCALE_2, c1, outside, 0.9)
        assert check_edge_length(SCALE_2, c1, outside, 0.75)

    def test_band_is_symmetric(self):
        c1 = np.zeros(6)
        longer_fixed = np.array([1.2, 0.0, 0.0, 2.0, 0.0, 0.0])   # 2 / 2.4 = 0.83
        assert not check_edge_length(SCALE_2, c1, longer_fixed, 0.9)

    def test_zero_length_edges(self):
        c = np.array([1.0, 1.0, 1.0, 2.0, 2.0, 2.0])
        assert check_edge_length(SCALE_2, c, c.copy(), 0.9)

        only_moving_moves = np.array([1.0, 1.0, 1.0, 3.0, 2.0, 2.0])
        assert not check_edge_length(SCALE_2, c, only_moving_moves, 0.9)

    def test_sample_check_covers_all_pairs(self):
        sample = np.array([
            [0.0, 0.0, 0.0, 0.0, 0.0, 0.0],
            [1.0, 0.0, 0.0, 2.0, 0.0, 0.0],
            [0.0, 1.0, 0.0, 0.0, 2.0, 0.0],
        ])
        assert check_sample_edge_lengths(SCALE_2, sample, 0.9)

        bad = sample.copy()
        bad[2, 4] = 3.0     # breaks pairs (0, 2) and (1, 2)
        assert not check_sample_edge_lengths(SCALE_2, bad, 0.9)
