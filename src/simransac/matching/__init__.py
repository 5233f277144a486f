"""
Correspondence package
"""
from .correspondences import (
    pack_correspondences, split_correspondences, clean_correspondences, make_agree_data,
)

__all__ = [
    "pack_correspondences", "split_correspondences", "clean_correspondences", "make_agree_data",
]
