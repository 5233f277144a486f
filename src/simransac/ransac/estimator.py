# Andy Zhao
"""
Adapter: makes similarity fitting + consensus scoring conform to the
ParametersEstimator Protocol.

This keeps ransac/core.py generic and reusable.
"""

from __future__ import annotations

import logging
from typing import Optional

import numpy as np

from .types import (
    Correspondence, Correspondences, ParameterVector, InlierMask, FloatArray,
    as_correspondences, empty_parameters)
from .errors import InvalidConfigurationError
from .similarity import fit_similarity, params_to_matrix
from .scoring import agree, consensus

logger = logging.getLogger(__name__)


class LandmarkRegistrationEstimator:
    """
    Similarity (or rigid) transform estimator for packed 3D landmark pairs.

    Each datum is [fx, fy, fz, mx, my, mz]; the fitted parameters map
    the fixed point onto the moving point.

    - estimate(): minimal-sample fit (exactly minimal_for_estimate rows)
    - least_squares_estimate(): fit over any number of rows
    - agree(): inlier test with the squared threshold delta^2
    """

    def __init__(self, *, delta: float = 3.0, minimal_for_estimate: int = 3,
                 estimate_scale: bool = True) -> None:
        self._delta_squared = 0.0
        self._minimal_for_estimate = 3
        self._agree_data: Optional[Correspondences] = None
        self.estimate_scale = bool(estimate_scale)

        self.set_delta(delta)
        self.set_minimal_for_estimate(minimal_for_estimate)

    # ---------- Configuration ----------
    @property
    def minimal_for_estimate(self) -> int:
        return self._minimal_for_estimate

    def set_minimal_for_estimate(self, k: int) -> None:
        # A 3D similarity needs 3 non-collinear points
        k = int(k)
        if k < 3:
            raise InvalidConfigurationError(
                f"minimal_for_estimate must be >= 3 for a 3D similarity, got {k}")
        self._minimal_for_estimate = k

    @property
    def delta(self) -> float:
        return float(np.sqrt(self._delta_squared))

    @property
    def delta_squared(self) -> float:
        return self._delta_squared

    def set_delta(self, delta: float) -> None:
        delta = float(delta)
        if not np.isfinite(delta) or delta < 0.0:
            raise InvalidConfigurationError(f"delta must be a finite value >= 0, got {delta}")
        self._delta_squared = delta * delta

    def get_delta(self) -> float:
        return self.delta

    @property
    def agree_data(self) -> Optional[Correspondences]:
        return self._agree_data

    def set_agree_data(self, points) -> None:
        """
        Dense validation correspondences. The RANSAC engine scores them
        but never samples from them.
        """
        self._agree_data = as_correspondences(points) if points is not None else None

    @property
    def transform_family(self) -> str:
        return "similarity" if self.estimate_scale else "rigid"

    # ---------- Fitting ----------
    def estimate(self, data) -> ParameterVector:
        """
        Exact fit on a minimal sample. Returns an empty vector for a
        degenerate sample or a sample of the wrong size.
        """
        data = as_correspondences(data)
        if data.shape[0] != self._minimal_for_estimate:
            return empty_parameters()
        return self._fit(data)

    def least_squares_estimate(self, data) -> ParameterVector:
        """
        Least-squares fit on any number (>= minimal_for_estimate) of correspondences.
        """
        data = as_correspondences(data)
        if data.shape[0] < self._minimal_for_estimate:
            return empty_parameters()
        return self._fit(data)

    def _fit(self, data: Correspondences) -> ParameterVector:
        params = fit_similarity(data[:, :3], data[:, 3:6], estimate_scale=self.estimate_scale)
        if params.size == 0:
            logger.debug("Degenerate correspondence set (%d rows), no %s fit",
                         data.shape[0], self.transform_family)
        return params

    # ---------- Scoring ----------
    def agree(self, parameters: ParameterVector, datum: Correspondence) -> bool:
        return agree(parameters, datum, self._delta_squared)

    def consensus(self, parameters: ParameterVector, data: Correspondences) -> tuple[InlierMask, FloatArray]:
        return consensus(parameters, data, self._delta_squared)

    def scale_of(self, parameters: ParameterVector) -> float:
        s, _, _ = params_to_matrix(parameters)
        return s
