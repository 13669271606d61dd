"""
Gaussian distribution of a 3D point.
"""

import numpy as np
from numpy.random import Generator
from typing import Any, Dict, List, Mapping, Optional, Tuple

from .base import PointPDF, GaussianMode, format_float, write_text_lines, read_vector, read_matrix
from .fusion import operand_modes, fuse_modes, mixture_moments, sample_gaussian
from ..errors import IncompatibleFusionOperandsError, MalformedPayloadError
from ..poses.pose3d import Pose3D
from ..utils.statistics import mahalanobis_distance


class PointPDFGaussian(PointPDF):
    """
    N(mean, cov) over a 3D point.

    Attributes:
        mean: [3]
        cov: [3, 3] Symmetric positive semi-definite
    """

    DATATYPE = "PointPDFGaussian"

    def __init__(
        self,
        mean: Optional[np.ndarray] = None,
        cov: Optional[np.ndarray] = None,
        rng: Optional[Generator] = None,
        seed: Optional[int] = None,
    ):
        super().__init__(rng=rng, seed=seed)
        self.mean = np.zeros(3) if mean is None else np.asarray(mean, dtype=np.float64).reshape(3)
        cov = np.zeros((3, 3)) if cov is None else np.asarray(cov, dtype=np.float64).reshape(3, 3)
        self.cov = 0.5 * (cov + cov.T)

    def get_mean(self) -> np.ndarray:
        return self.mean.copy()

    def get_covariance_and_mean(self) -> Tuple[np.ndarray, np.ndarray]:
        return self.cov.copy(), self.mean.copy()

    def gaussian_modes(self) -> List[GaussianMode]:
        return [GaussianMode(0.0, self.mean, self.cov)]

    def draw_single_sample(self, rng: Optional[Generator] = None) -> np.ndarray:
        return self.draw_many_samples(1, rng)[0]

    def draw_many_samples(self, n: int, rng: Optional[Generator] = None) -> np.ndarray:
        return sample_gaussian(self.mean, self.cov, n, self._get_rng(rng))

    def mahalanobis_distance_to(self, point: np.ndarray) -> float:
        """Mahalanobis distance from ``point`` to the mean."""
        return mahalanobis_distance(np.asarray(point, dtype=np.float64), self.mean, self.cov)

    def copy_from(self, other: PointPDF, rng: Optional[Generator] = None):
        """Moment-match any point distribution."""
        if not isinstance(other, PointPDF):
            raise IncompatibleFusionOperandsError(
                f"Cannot copy from {type(other).__name__}"
            )
        cov, mean = other.get_covariance_and_mean()
        self.mean, self.cov = mean, cov

    def change_coordinates_reference(self, new_reference_base: Pose3D):
        R = new_reference_base.R
        self.mean = new_reference_base.apply(self.mean)
        cov = R @ self.cov @ R.T
        self.cov = 0.5 * (cov + cov.T)

    def bayesian_fusion(
        self,
        p1: PointPDF,
        p2: PointPDF,
        min_mahalanobis_dist_to_drop: float = 0.0,
        rng: Optional[Generator] = None,
    ):
        """
        Product of p1 and p2, collapsed to a single Gaussian.

        Mixture operands are fused mode by mode and the result is moment-matched.
        """
        modes = fuse_modes(operand_modes(p1), operand_modes(p2), min_mahalanobis_dist_to_drop)
        self.mean, self.cov = mixture_moments(modes)

    def save_to_text_file(self, path: str) -> bool:
        """Line 1: mean ``X Y Z``; lines 2-4: covariance rows."""
        lines = [" ".join(format_float(v) for v in self.mean)]
        lines += [" ".join(format_float(v) for v in row) for row in self.cov]
        return write_text_lines(path, lines)

    def serialize_to(self) -> Dict[str, Any]:
        return {
            "datatype": self.DATATYPE,
            "version": self.SERIALIZATION_VERSION,
            "mean": [float(v) for v in self.mean],
            "cov": [[float(v) for v in row] for row in self.cov],
        }

    def serialize_from(self, data: Mapping[str, Any]):
        self._check_header(data)
        try:
            mean = read_vector(data["mean"], 3)
            cov = read_matrix(data["cov"], 3, 3)
        except (KeyError, TypeError, ValueError) as e:
            raise MalformedPayloadError(f"Invalid {self.DATATYPE} payload: {e}") from e
        self.mean = mean
        self.cov = 0.5 * (cov + cov.T)

    def __repr__(self) -> str:
        return f"PointPDFGaussian(mean={self.mean}, cov_diag={np.diag(self.cov)})"
