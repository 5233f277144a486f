# Andy Zhao
"""
Consensus scoring for similarity hypotheses.

Two kinds of tests:

(1) Per-correspondence agreement
    A correspondence (fixed, moving) agrees with parameters when

        || s R fixed + t - moving ||^2 <= delta^2

(2) Sample consistency checks (run on the minimal sample right after fitting)
    - correspondence distance: every sampled pair must itself agree with
      the model fitted from it
    - edge length: for every two sampled correspondences, the fixed-side
      edge (scaled by s) and the moving-side edge must have similar length.
      A mismatched feature pair can be locally consistent with a wrong
      model, but it rarely preserves distances to the other sampled points.

All functions are pure: they never modify their inputs.
"""

from __future__ import annotations

from itertools import combinations

import numpy as np

from .types import (
    Correspondence, Correspondences, ParameterVector, InlierMask, FloatArray)
from .similarity import params_to_matrix, correspondence_residuals


def agree(parameters: ParameterVector, correspondence: Correspondence, delta_squared: float) -> bool:
    """
    True iff the transformed fixed half lands within delta of the moving half.
    """
    c = np.asarray(correspondence, dtype=np.float64).reshape(1, 6)
    err = correspondence_residuals(parameters, c)
    return bool(err[0] <= delta_squared)


def consensus(
        parameters: ParameterVector,
        data: Correspondences,
        delta_squared: float,
) -> tuple[InlierMask, FloatArray]:
    """
    Score a whole working set at once.

    Returns:
      mask: (N,) True for inliers
      err:  (N,) squared residuals (used for the inlier RMSE)
    """
    if data.shape[0] == 0:
        return np.zeros((0,), dtype=bool), np.zeros((0,), dtype=np.float64)
    err = correspondence_residuals(parameters, data)
    return err <= delta_squared, err


def check_correspondence_distance(
        parameters: ParameterVector,
        sample: Correspondences,
        delta_squared: float,
) -> bool:
    """
    Every correspondence of the sample must agree with the parameters fitted from it.
    """
    mask, _ = consensus(parameters, sample, delta_squared)
    return bool(mask.all())


def _edge_lengths_match(c1: np.ndarray, c2: np.ndarray, scale: float, similarity: float) -> bool:
    ef = scale * float(np.linalg.norm(c1[:3] - c2[:3]))
    em = float(np.linalg.norm(c1[3:6] - c2[3:6]))

    longest = max(ef, em)
    if longest == 0.0:
        # Both edges collapse to a point: nothing to contradict
        return True
    return min(ef, em) >= similarity * longest


def check_edge_length(
        parameters: ParameterVector,
        c1: Correspondence,
        c2: Correspondence,
        similarity: float,
) -> bool:
    """
    Edge-length consistency between two correspondences.

        ef = s * |f1 - f2|     (fixed side, brought to the moving scale)
        em = |m1 - m2|         (moving side)

    Passes iff min(ef, em) >= similarity * max(ef, em), i.e. the ratio
    ef / em lies in [similarity, 1 / similarity]. With similarity = 0.9
    that is roughly the band 0.9 .. 1.11.
    """
    s, _, _ = params_to_matrix(parameters)
    return _edge_lengths_match(
        np.asarray(c1, dtype=np.float64), np.asarray(c2, dtype=np.float64), s, similarity)


def sample_edge_lengths_consistent(sample: Correspondences, scale: float, similarity: float) -> bool:
    """
    Edge-length test over every pair of the sample for a known scale.
    """
    for i, j in combinations(range(sample.shape[0]), 2):
        if not _edge_lengths_match(sample[i], sample[j], scale, similarity):
            return False
    return True


def check_sample_edge_lengths(
        parameters: ParameterVector,
        sample: Correspondences,
        similarity: float,
) -> bool:
    """
    check_edge_length() over every pair of the sample.
    """
    s, _, _ = params_to_matrix(parameters)
    return sample_edge_lengths_consistent(sample, s, similarity)
