# Andy Zhao
"""
Utilities for building and cleaning correspondence sets before robust estimation.

A correspondence set packs two paired point sets into one (N,6) array:

    row i = [fixed_i (x, y, z), moving_i (x, y, z)]

Two sets are usually built:
- data: putative feature matches (RANSAC samples from these)
- agree data: a denser, independently sourced set, only used to validate candidates

Cleaning removes:
- NaNs/Infs
- implausibly large displacements (helps stability and speed)
"""

from __future__ import annotations

import logging
from typing import Optional

import numpy as np

from ..ransac.types import Points3D, Correspondences, BoolArray, as_correspondences

logger = logging.getLogger(__name__)


def _as_points(pts, name: str) -> Points3D:
    pts = np.asarray(pts, dtype=np.float64)
    if pts.ndim != 2 or pts.shape[1] != 3:
        raise ValueError(f"Expected {name} shape (N,3), got {pts.shape}")
    return pts


def pack_correspondences(fixed, moving) -> Correspondences:
    """
    Concatenate paired points into (N,6) rows.

    If the two sets differ in length, pair the first min(N_fixed, N_moving)
    points by index.
    """
    fixed = _as_points(fixed, "fixed")
    moving = _as_points(moving, "moving")

    n = min(fixed.shape[0], moving.shape[0])
    if fixed.shape[0] != moving.shape[0]:
        logger.info("Point counts differ (%d fixed vs %d moving), pairing the first %d",
                    fixed.shape[0], moving.shape[0], n)
    return np.hstack([fixed[:n], moving[:n]]).astype(np.float64)


def split_correspondences(data) -> tuple[Points3D, Points3D]:
    """
    Inverse of pack_correspondences: (N,6) -> fixed (N,3), moving (N,3).
    """
    data = as_correspondences(data)
    return data[:, :3].copy(), data[:, 3:6].copy()


def clean_correspondences(
    data,
    *,
    max_displacement: float | None = None,
) -> tuple[Correspondences, BoolArray]:
    """
    Drop rows that would only hurt the estimator.

    Returns the kept rows and the mask over the input rows.
    The input array is not modified.
    """
    data = as_correspondences(data)

    # Check if points are finite
    mask = np.isfinite(data).all(axis=1)

    # big-jump pruning
    if max_displacement is not None:
        with np.errstate(invalid="ignore"):
            motion = np.linalg.norm(data[:, 3:6] - data[:, :3], axis=1)
        mask &= motion <= float(max_displacement)

    return data[mask], mask


def make_agree_data(
    fixed_all,
    moving_all,
    *,
    rng: Optional[np.random.Generator] = None,
    max_count: Optional[int] = None,
) -> Correspondences:
    """
    Build the dense validation set from two full point sets paired by index.

    - rng: when given, the pairs are shuffled so that a max_count subset
      samples the point sets uniformly instead of taking the first rows
    - max_count: keep at most this many pairs
    """
    packed = pack_correspondences(fixed_all, moving_all)

    if rng is not None:
        packed = packed[rng.permutation(packed.shape[0])]

    if max_count is not None:
        if max_count < 0:
            raise ValueError(f"max_count must be >= 0, got {max_count}")
        packed = packed[:max_count]
    return packed
