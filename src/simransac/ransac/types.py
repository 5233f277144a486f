# Andy Zhao

"""
Shared typed primitives for the landmark registration / RANSAC pipeline.

Defines:
- Typed NumPy aliases for geometry
    - Correspondences are (N,6) float arrays: [fixed_xyz, moving_xyz]
    - Parameters are flat vectors [rx, ry, rz, tx, ty, tz, s]
- Estimator protocol the generic RANSAC engine is written against
- Structured RANSAC result container (parameters + inliers + stats)
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Protocol, Optional, TypeAlias

import numpy as np
import numpy.typing as npt

# ---------- Numpy typing aliases ----------
# float64 for geometry / linear algebra, bool_ for masks

FloatArray: TypeAlias = npt.NDArray[np.float64]
BoolArray: TypeAlias = npt.NDArray[np.bool_]

# Points in 3D. Stored as float64 for consistency in math.
Points3D: TypeAlias = FloatArray          # shape: (N, 3)

# One correspondence packs the fixed point and the moving point into one row.
Correspondence: TypeAlias = FloatArray    # shape: (6,)
Correspondences: TypeAlias = FloatArray   # shape: (N, 6)

# Flat parameter vector. Empty (shape (0,)) means "fit failed".
ParameterVector: TypeAlias = FloatArray   # shape: (7,) or (0,)

# Boolean inlier mask: True as inlier, False as outlier
InlierMask: TypeAlias = BoolArray         # shape: (N,)

# Rotation matrix
Mat3x3: TypeAlias = FloatArray            # shape: (3, 3)

# Number of entries of a 3D similarity parameter vector
NUM_PARAMETERS = 7


class ParametersEstimator(Protocol):
    """
    Interface an estimator must implement to be usable by the generic RANSAC engine.

    RANSAC steps:
    1) Fit parameters from a minimal sample
    2) Score the working set (which correspondences agree)
    3) Refit from all inliers (least squares)
    """

    @property
    def minimal_for_estimate(self) -> int:
        """Smallest number of correspondences that determines the parameters."""
        ...

    def estimate(self, data: Correspondences) -> ParameterVector:
        """
        Fit from exactly minimal_for_estimate correspondences.
        Return an empty vector if the sample is degenerate.
        """
        ...

    def least_squares_estimate(self, data: Correspondences) -> ParameterVector:
        """
        Fit from an arbitrary number of correspondences.
        Return an empty vector if the set is degenerate.
        """
        ...

    def agree(self, parameters: ParameterVector, datum: Correspondence) -> bool:
        """True if a single correspondence is an inlier for the parameters."""
        ...

    def consensus(self, parameters: ParameterVector, data: Correspondences) -> tuple[InlierMask, FloatArray]:
        """
        Vectorized agree over a whole set.
        Returns (inlier mask, squared residual per correspondence).
        """
        ...

    def scale_of(self, parameters: ParameterVector) -> float:
        """Isotropic scale encoded in the parameters (1.0 for rigid)."""
        ...


# ---------- RANSAC output container ----------
@dataclass(frozen=True)
class RansacResult:
    parameters: ParameterVector     # refit parameters, empty on failure
    success: bool                   # False when no model reached minimal support
    percentage_of_data_used: float  # inliers / size of the working set
    inlier_rmse: float              # RMS residual of inliers under the final parameters
    inliers: InlierMask             # mask over the working set (data then agree data)
    num_inliers: int                # count of True values in inliers
    iterations: int                 # how many RANSAC iterations were actually run
    threshold: float                # the inlier distance delta used

    @property
    def metrics(self) -> tuple[float, float]:
        """(percentage_of_data_used, inlier_rmse), the pair the engine reports."""
        return self.percentage_of_data_used, self.inlier_rmse


# ---------- Mutable loop state ----------
@dataclass
class EstimatorState:
    """
    Working state of one compute() call.
    Only the engine's main loop mutates it.
    """
    max_iteration: int
    delta: float
    desired_probability: float
    best_parameters: ParameterVector = field(default_factory=lambda: empty_parameters())
    best_inliers: Optional[InlierMask] = None
    best_num_inliers: int = 0
    best_rmse: float = float("inf")
    iterations: int = 0
    iteration_bound: int = 0

    def __post_init__(self) -> None:
        if self.iteration_bound <= 0:
            self.iteration_bound = self.max_iteration

    @property
    def has_model(self) -> bool:
        return self.best_inliers is not None and self.best_parameters.size > 0


# ---------- Helper Functions ----------
def empty_parameters() -> ParameterVector:
    """The failure marker: a float64 vector of length 0."""
    return np.zeros((0,), dtype=np.float64)


def is_valid_parameters(parameters: ParameterVector) -> bool:
    """
    Verify a parameter vector.
    Used for rejecting failed fits.
    """
    return (
        isinstance(parameters, np.ndarray)
        and parameters.shape == (NUM_PARAMETERS,)
        and bool(np.isfinite(parameters).all())
        and bool(parameters[-1] > 0.0)
    )


def as_correspondences(data, dimension: int = 3) -> Correspondences:
    """
    Convert input into an (N, 2*dimension) float64 array.

    Accepts a single (N, 2d) array or any sequence of (2d,) correspondences,
    so a list of points and a stacked array behave the same.
    """
    width = 2 * dimension
    if isinstance(data, np.ndarray):
        arr = data.astype(np.float64, copy=False)
    else:
        rows = list(data)
        if len(rows) == 0:
            return np.zeros((0, width), dtype=np.float64)
        arr = np.vstack([np.asarray(r, dtype=np.float64).reshape(1, -1) for r in rows])

    if arr.ndim == 1 and arr.shape[0] == width:
        arr = arr.reshape(1, width)
    if arr.ndim != 2 or arr.shape[1] != width:
        raise ValueError(f"Expected correspondences shape (N,{width}), got {arr.shape}")
    return arr
