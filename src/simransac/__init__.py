"""
simransac: robust similarity / rigid registration of 3D landmark correspondences.
"""

from .ransac import (
    LandmarkRegistrationEstimator, Ransac, RansacParams, RansacResult,
    InvalidConfigurationError, ransac,
)
from .matching import pack_correspondences, make_agree_data

__version__ = "0.1.0"

__all__ = [
    "LandmarkRegistrationEstimator", "Ransac", "RansacParams", "RansacResult",
    "InvalidConfigurationError", "ransac",
    "pack_correspondences", "make_agree_data",
]
