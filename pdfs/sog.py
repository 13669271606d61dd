"""
Sum-of-Gaussians distribution of a 3D point.
"""

import numpy as np
from numpy.random import Generator
from typing import Any, Dict, List, Mapping, Optional, Tuple

from .base import (
    PointPDF,
    GaussianMode,
    format_float,
    write_text_lines,
    read_count,
    read_vector,
    read_matrix,
    read_log_weight,
)
from .fusion import operand_modes, fuse_modes, mixture_moments, sample_modes
from ..errors import EmptyDistributionError, IncompatibleFusionOperandsError, MalformedPayloadError
from ..poses.pose3d import Pose3D
from ..utils.weights import normalize_log_weights


class PointPDFSOG(PointPDF):
    """
    Weighted mixture of Gaussian modes.

    Attributes:
        modes: List of GaussianMode (log weights need not be normalized)
    """

    DATATYPE = "PointPDFSOG"

    def __init__(
        self,
        modes: Optional[List[GaussianMode]] = None,
        rng: Optional[Generator] = None,
        seed: Optional[int] = None,
    ):
        super().__init__(rng=rng, seed=seed)
        self.modes = [m.copy() for m in modes] if modes else []

    def __len__(self) -> int:
        return len(self.modes)

    def _require_modes(self):
        if not self.modes:
            raise EmptyDistributionError("Sum of Gaussians has no modes")

    def normalize_weights(self):
        """Rescale log weights so the mode weights sum to 1."""
        self._require_modes()
        _, log_norm = normalize_log_weights(np.array([m.log_weight for m in self.modes]))
        for m in self.modes:
            m.log_weight -= log_norm

    def get_mean(self) -> np.ndarray:
        _, mean = self.get_covariance_and_mean()
        return mean

    def get_covariance_and_mean(self) -> Tuple[np.ndarray, np.ndarray]:
        self._require_modes()
        mean, cov = mixture_moments(self.modes)
        return cov, mean

    def gaussian_modes(self) -> List[GaussianMode]:
        return [m.copy() for m in self.modes]

    def draw_single_sample(self, rng: Optional[Generator] = None) -> np.ndarray:
        return self.draw_many_samples(1, rng)[0]

    def draw_many_samples(self, n: int, rng: Optional[Generator] = None) -> np.ndarray:
        self._require_modes()
        return sample_modes(self.modes, n, self._get_rng(rng))

    def copy_from(self, other: PointPDF, rng: Optional[Generator] = None):
        """Copy modes from another mixture, or approximate ``other`` by one mode."""
        if not isinstance(other, PointPDF):
            raise IncompatibleFusionOperandsError(f"Cannot copy from {type(other).__name__}")
        if isinstance(other, PointPDFSOG):
            self.modes = other.gaussian_modes()
        else:
            cov, mean = other.get_covariance_and_mean()
            self.modes = [GaussianMode(0.0, mean, cov)]

    def change_coordinates_reference(self, new_reference_base: Pose3D):
        R = new_reference_base.R
        for m in self.modes:
            m.mean = new_reference_base.apply(m.mean)
            cov = R @ m.cov @ R.T
            m.cov = 0.5 * (cov + cov.T)

    def bayesian_fusion(
        self,
        p1: PointPDF,
        p2: PointPDF,
        min_mahalanobis_dist_to_drop: float = 0.0,
        rng: Optional[Generator] = None,
    ):
        """
        Pairwise product of the modes of p1 and p2.

        With ``min_mahalanobis_dist_to_drop`` > 0, negligible far-away modes
        are removed from the output.
        """
        self.modes = fuse_modes(operand_modes(p1), operand_modes(p2), min_mahalanobis_dist_to_drop)

    def save_to_text_file(self, path: str) -> bool:
        """One line per mode: ``LOG_W X Y Z C00 C01 C02 C11 C12 C22``."""
        iu = np.triu_indices(3)
        lines = []
        for m in self.modes:
            fields = [m.log_weight, *m.mean, *m.cov[iu]]
            lines.append(" ".join(format_float(v) for v in fields))
        return write_text_lines(path, lines)

    def serialize_to(self) -> Dict[str, Any]:
        return {
            "datatype": self.DATATYPE,
            "version": self.SERIALIZATION_VERSION,
            "N": len(self.modes),
            "modes": [
                {
                    "log_w": m.log_weight,
                    "mean": [float(v) for v in m.mean],
                    "cov": [[float(v) for v in row] for row in m.cov],
                }
                for m in self.modes
            ],
        }

    def serialize_from(self, data: Mapping[str, Any]):
        self._check_header(data)
        try:
            n = read_count(data)
            entries = data["modes"]
            if len(entries) != n:
                raise ValueError(f"N={n} but {len(entries)} modes present")
            modes = [
                GaussianMode(
                    read_log_weight(e["log_w"]),
                    read_vector(e["mean"], 3),
                    read_matrix(e["cov"], 3, 3),
                )
                for e in entries
            ]
        except (KeyError, TypeError, ValueError) as e:
            raise MalformedPayloadError(f"Invalid {self.DATATYPE} payload: {e}") from e
        self.modes = modes

    def __repr__(self) -> str:
        return f"PointPDFSOG(n_modes={len(self.modes)})"
