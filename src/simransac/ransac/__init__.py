# Andy Zhao
"""
RANSAC package

This module provides:
- A reusable generic RANSAC engine
- Typed geometry primitives
- Estimator interface definitions
- Closed-form similarity / rigid landmark registration
"""

from .types import (
    FloatArray, BoolArray, Points3D, Correspondence, Correspondences,
    ParameterVector, InlierMask, Mat3x3, ParametersEstimator, RansacResult,
    EstimatorState, empty_parameters, is_valid_parameters, as_correspondences,
)

from .errors import InvalidConfigurationError

from .similarity import (
    fit_similarity, fit_similarity_minimal, fit_similarity_least_squares,
    apply_similarity, squared_residuals, params_to_matrix, matrix_to_params,
    rotation_angle_deg,
)

from .scoring import (
    agree, consensus, check_correspondence_distance, check_edge_length,
    check_sample_edge_lengths,
)

from .estimator import LandmarkRegistrationEstimator

from .core import Ransac, RansacParams, RansacStage, ransac, required_iterations

__all__ = [
    "FloatArray", "BoolArray", "Points3D", "Correspondence", "Correspondences",
    "ParameterVector", "InlierMask", "Mat3x3", "ParametersEstimator", "RansacResult",
    "EstimatorState", "empty_parameters", "is_valid_parameters", "as_correspondences",
    "InvalidConfigurationError",
    "fit_similarity", "fit_similarity_minimal", "fit_similarity_least_squares",
    "apply_similarity", "squared_residuals", "params_to_matrix", "matrix_to_params",
    "rotation_angle_deg",
    "agree", "consensus", "check_correspondence_distance", "check_edge_length",
    "check_sample_edge_lengths",
    "LandmarkRegistrationEstimator",
    "Ransac", "RansacParams", "RansacStage", "ransac", "required_iterations",
]
