"""
Particle Point Distribution Library.

A NumPy-based library for probability distributions of a 3D point:
- Particle sets with log-weights (PointPDFParticles)
- Gaussian and sum-of-Gaussians forms (PointPDFGaussian, PointPDFSOG)
- Bayesian fusion, rigid-body frame changes, sampling and serialization
"""

from . import bayes
from . import pdfs
from . import poses
from . import utils

from .config import ParticlesConfig
from .errors import (
    PointPDFError,
    EmptyDistributionError,
    DegenerateWeightsError,
    UndefinedStatisticError,
    TypeMismatchError,
    UnsupportedSchemaVersionError,
    MalformedPayloadError,
    IncompatibleFusionOperandsError,
)
from .pdfs import PointPDF, GaussianMode, PointPDFGaussian, PointPDFSOG, PointPDFParticles
from .poses import Pose3D

__version__ = "0.1.0"
