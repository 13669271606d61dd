"""
Point distributions.
"""

from .base import PointPDF, GaussianMode
from .gaussian import PointPDFGaussian
from .sog import PointPDFSOG
from .particles import PointPDFParticles
from .fusion import fuse_gaussians, fuse_modes, mixture_moments, sample_modes

__all__ = [
    "PointPDF",
    "GaussianMode",
    "PointPDFGaussian",
    "PointPDFSOG",
    "PointPDFParticles",
    "fuse_gaussians",
    "fuse_modes",
    "mixture_moments",
    "sample_modes",
]
