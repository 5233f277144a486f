"""Shared fixtures: synthetic landmark correspondence scenes."""

import numpy as np
import pytest

from simransac.ransac.similarity import apply_similarity


def make_params(rvec=(0.2, -0.3, 0.4), t=(0.5, -1.0, 2.0), scale=1.3):
    return np.array(list(rvec) + list(t) + [scale], dtype=np.float64)


def make_scene(rng, params, *, n_in=100, n_out=20, sigma=0.0, outlier_offset=(0.5, 2.0)):
    """
    Inliers follow params (plus Gaussian noise), outliers are pushed a random
    distance in outlier_offset away from where params would map them.

    Returns (data (N,6), true inlier mask).
    """
    fixed = rng.uniform(-1.0, 1.0, size=(n_in + n_out, 3))
    moving = apply_similarity(params, fixed)

    if sigma > 0.0:
        moving[:n_in] += rng.normal(0.0, sigma, size=(n_in, 3))

    if n_out > 0:
        direction = rng.normal(size=(n_out, 3))
        direction /= np.linalg.norm(direction, axis=1, keepdims=True)
        dist = rng.uniform(outlier_offset[0], outlier_offset[1], size=(n_out, 1))
        moving[n_in:] += direction * dist

    truth = np.zeros((n_in + n_out,), dtype=bool)
    truth[:n_in] = True
    return np.hstack([fixed, moving]), truth


@pytest.fixture
def rng():
    return np.random.default_rng(12345)


@pytest.fixture
def true_params():
    return make_params()


@pytest.fixture
def scene():
    """Factory fixture around make_scene()."""
    return make_scene
