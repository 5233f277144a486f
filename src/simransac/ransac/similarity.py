# Andy Zhao
"""
Similarity transform utilities (3D, closed form).

We estimate a similarity transform (s, R, t) such that:

    moving  ≈  s * R @ fixed + t

where:
    s : isotropic scale (> 0), fixed to 1 for the rigid family
    R : 3x3 proper rotation (det = +1)
    t : translation (3,)

Parameter vector layout (7 entries):

    [rx, ry, rz, tx, ty, tz, s]

(rx, ry, rz) is the rotation vector (axis * angle), converted with cv2.Rodrigues.

The closed form is Umeyama's least-squares solution. It is exact on a
minimal sample of consistent points and the least-squares optimum on an
over-determined set, so the same routine serves both fits.
"""

from __future__ import annotations

import numpy as np
import cv2

from .types import (
    Points3D, Mat3x3, FloatArray, ParameterVector, Correspondences,
    NUM_PARAMETERS, empty_parameters, is_valid_parameters)


# ---------- Parameter packing ----------
def matrix_to_params(scale: float, R: Mat3x3, t: np.ndarray) -> ParameterVector:
    """
    Pack (s, R, t) into [rx, ry, rz, tx, ty, tz, s].
    """
    rvec, _ = cv2.Rodrigues(np.ascontiguousarray(R, dtype=np.float64))
    params = np.empty((NUM_PARAMETERS,), dtype=np.float64)
    params[0:3] = rvec.reshape(3)
    params[3:6] = np.asarray(t, dtype=np.float64).reshape(3)
    params[6] = float(scale)
    return params


def params_to_matrix(params: ParameterVector) -> tuple[float, Mat3x3, FloatArray]:
    """
    Unpack [rx, ry, rz, tx, ty, tz, s] into (s, R, t).
    """
    if params.shape != (NUM_PARAMETERS,):
        raise ValueError(f"Expected parameter vector shape ({NUM_PARAMETERS},), got {params.shape}")

    R, _ = cv2.Rodrigues(np.ascontiguousarray(params[0:3], dtype=np.float64).reshape(3, 1))
    t = params[3:6].astype(np.float64)
    s = float(params[6])
    return s, R.astype(np.float64), t


# ---------- Degeneracy Check Helpers ----------
def _is_degenerate_set(fixed_centered: Points3D, eps: float) -> bool:
    """
    Points are degenerate for a 3D similarity when they are coincident
    or collinear: the centered point matrix then has rank < 2.

    Compare the second singular value against the first so the test is
    independent of the scene's units.
    """
    try:
        sv = np.linalg.svd(fixed_centered, compute_uv=False)
    except np.linalg.LinAlgError:
        return True
    if sv.shape[0] < 2 or sv[0] <= eps:
        return True
    return bool(sv[1] <= eps * sv[0])


# ---------- Similarity Fitting ----------
def fit_similarity(
        fixed: Points3D,
        moving: Points3D,
        *,
        estimate_scale: bool = True,
        eps: float = 1e-9,
) -> ParameterVector:
    """
    Fit a similarity (or rigid, when estimate_scale=False) transform mapping
    fixed -> moving from N >= 3 correspondences.

    Steps:
    1) centroids of both halves, center the points
    2) cross-covariance C = moving_c^T @ fixed_c / n
    3) SVD C = U diag(D) Vt
    4) if the naive rotation U @ Vt is a reflection, flip the smallest
       singular direction (S[-1,-1] = -1)
    5) R = U S Vt
    6) s = trace(diag(D) S) / var(fixed)
    7) t = mu_moving - s R mu_fixed

    Returns:
      parameter vector, or an empty vector if the points are degenerate.
    """
    if fixed.shape != moving.shape:
        raise ValueError(f"fixed and moving must have same shape, got {fixed.shape} vs {moving.shape}")
    if fixed.ndim != 2 or fixed.shape[1] != 3:
        raise ValueError(f"Expected pts shape (N,3), got {fixed.shape}")

    n = fixed.shape[0]
    if n < 3:
        return empty_parameters()

    fixed = fixed.astype(np.float64, copy=False)
    moving = moving.astype(np.float64, copy=False)
    if not (np.isfinite(fixed).all() and np.isfinite(moving).all()):
        return empty_parameters()

    mu_fixed = fixed.mean(axis=0)
    mu_moving = moving.mean(axis=0)
    fixed_c = fixed - mu_fixed
    moving_c = moving - mu_moving

    if _is_degenerate_set(fixed_c, eps) or _is_degenerate_set(moving_c, eps):
        return empty_parameters()

    # Cross-covariance (3x3)
    C = (moving_c.T @ fixed_c) / n

    try:
        U, D, Vt = np.linalg.svd(C)
    except np.linalg.LinAlgError:
        return empty_parameters()

    # Rank of C < 2 -> rotation not unique
    if D[1] <= eps * max(D[0], eps):
        return empty_parameters()

    # Enforce a proper rotation
    S = np.eye(3, dtype=np.float64)
    if np.linalg.det(U) * np.linalg.det(Vt) < 0:
        S[2, 2] = -1.0

    R = U @ S @ Vt

    if estimate_scale:
        var_fixed = float(np.sum(fixed_c * fixed_c) / n)
        if var_fixed <= eps:
            return empty_parameters()
        s = float(np.trace(np.diag(D) @ S) / var_fixed)
        if s <= 0.0:
            return empty_parameters()
    else:
        s = 1.0

    t = mu_moving - s * (R @ mu_fixed)

    params = matrix_to_params(s, R, t)
    if not is_valid_parameters(params):
        return empty_parameters()
    return params


def fit_similarity_minimal(
        fixed: Points3D,
        moving: Points3D,
        *,
        estimate_scale: bool = True,
        sample_size: int = 3,
) -> ParameterVector:
    """
    Fit from exactly sample_size correspondences (used inside RANSAC hypothesis step).
    """
    if fixed.shape != (sample_size, 3) or moving.shape != (sample_size, 3):
        raise ValueError(
            f"fit_similarity_minimal expects ({sample_size},3) inputs, got {fixed.shape} and {moving.shape}")
    return fit_similarity(fixed, moving, estimate_scale=estimate_scale)


def fit_similarity_least_squares(
        fixed: Points3D,
        moving: Points3D,
        *,
        estimate_scale: bool = True,
) -> ParameterVector:
    """
    Fit from N >= 3 correspondences using least squares.

    This is used after RANSAC picks inliers: refit with all inliers for best estimate.
    """
    return fit_similarity(fixed, moving, estimate_scale=estimate_scale)


# ---------- Apply transform + residuals ----------
def apply_similarity(params: ParameterVector, pts: Points3D) -> Points3D:
    """
    Apply the transform to (N,3) points, returning (N,3) points.

        p' = s * R @ p + t

    Each point is a row, so multiply by R^T.
    """
    if pts.ndim != 2 or pts.shape[1] != 3:
        raise ValueError(f"Expected pts shape (N,3), got {pts.shape}")

    s, R, t = params_to_matrix(params)
    return (s * (pts.astype(np.float64) @ R.T) + t).astype(np.float64)


def squared_residuals(params: ParameterVector, fixed: Points3D, moving: Points3D) -> FloatArray:
    """
    Per-correspondence squared distances:

        e_i = || apply(params, fixed[i]) - moving[i] ||^2

    Squared so callers can compare against delta^2 without a sqrt per point.
    Returns shape (N,)
    """
    if fixed.shape != moving.shape:
        raise ValueError(f"fixed and moving must have same shape, got {fixed.shape} vs {moving.shape}")
    predicted = apply_similarity(params, fixed)
    diff = predicted - moving.astype(np.float64)
    return np.sum(diff * diff, axis=1).astype(np.float64)


def correspondence_residuals(params: ParameterVector, data: Correspondences) -> FloatArray:
    """squared_residuals() on packed (N,6) correspondences."""
    return squared_residuals(params, data[:, :3], data[:, 3:6])


def rotation_angle_deg(R_a: Mat3x3, R_b: Mat3x3) -> float:
    """
    Angle of the relative rotation R_a @ R_b^T, in degrees.
    Handy for comparing an estimate against ground truth.
    """
    cos_theta = (np.trace(R_a @ R_b.T) - 1.0) / 2.0
    return float(np.degrees(np.arccos(np.clip(cos_theta, -1.0, 1.0))))
