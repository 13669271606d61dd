"""
Particle representation of a 3D point distribution.

The distribution is a weighted set of sampled hypotheses. Weights are kept
as log-weights and every statistic normalizes them with the log-sum-exp
trick: max_log_w is subtracted before exponentiating.
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
    read_number,
    read_log_weight,
)
from .fusion import operand_modes, fuse_modes, sample_modes
from ..bayes.particle_data import Particle, ParticleFilterData
from ..config import ParticlesConfig
from ..errors import (
    IncompatibleFusionOperandsError,
    MalformedPayloadError,
    UndefinedStatisticError,
)
from ..poses.pose3d import Pose3D
from ..utils.weights import shifted_weights, categorical_draw
from ..utils.statistics import weighted_mean, weighted_mean_and_cov, weighted_excess_kurtosis


class PointPDFParticles(PointPDF):
    """
    Distribution of a 3D point as N weighted particles.

    Storage is delegated to a ``ParticleFilterData`` of dimension 3. N = 0
    is a valid, unknown distribution: statistics and sampling on it raise
    ``EmptyDistributionError``.

    Mutating operations (``bayesian_fusion``, ``copy_from``,
    ``serialize_from``) build the new particle set first and only replace
    the current one once nothing else can fail.
    """

    DATATYPE = "PointPDFParticles"

    def __init__(
        self,
        n_particles: int = 1,
        config: Optional[ParticlesConfig] = None,
        rng: Optional[Generator] = None,
        seed: Optional[int] = None,
    ):
        """
        Args:
            n_particles: Initial number of particles, all at the origin with log weight 0
            config: Defaults for conversion, fusion and resampling
            rng: Random generator used when no ``rng`` is passed to a method
            seed: Seed for a fresh generator if ``rng`` is None
        """
        super().__init__(rng=rng, seed=seed)
        self.config = config if config is not None else ParticlesConfig()
        self.data = ParticleFilterData(dim=3, n_particles=n_particles)

    # -------------------------------------------------------------------------
    # Storage
    # -------------------------------------------------------------------------

    def clear(self):
        """Remove all particles."""
        self.data.clear()

    def set_size(self, n_particles: int, default_value=(0.0, 0.0, 0.0)):
        """
        Erase all particles and create ``n_particles`` copies of
        ``default_value`` with log weight 0.
        """
        self.data.set_size(n_particles, default_value)

    def size(self) -> int:
        return len(self.data)

    def __len__(self) -> int:
        return len(self.data)

    def __getitem__(self, i: int) -> Particle:
        return self.data[i]

    def __iter__(self):
        for i in range(len(self.data)):
            yield self.data[i]

    @property
    def positions(self) -> np.ndarray:
        """[N, 3] copy of the particle positions."""
        return self.data.values.copy()

    @property
    def log_weights(self) -> np.ndarray:
        """[N] copy of the log weights."""
        return self.data.log_weights.copy()

    def set_particles(self, positions: np.ndarray, log_weights: Optional[np.ndarray] = None):
        """
        Replace the particle set.

        Args:
            positions: [N, 3]
            log_weights: [N], zeros if None
        """
        self.data.assign(positions, log_weights)

    def get_w(self, i: int) -> float:
        return self.data.get_w(i)

    def set_w(self, i: int, log_w: float):
        self.data.set_w(i, log_w)

    def get_weights(self) -> np.ndarray:
        """[N] normalized weights."""
        return self.data.get_weights()

    def normalize_weights(self) -> float:
        """Shift log weights so the maximum is 0; returns the removed maximum."""
        return self.data.normalize_weights()

    def ess(self) -> float:
        return self.data.ess()

    def resample(self, method: Optional[str] = None, rng: Optional[Generator] = None) -> np.ndarray:
        """
        Resample the particle set in place (N is preserved, weights reset to 0).

        Args:
            method: "systematic", "stratified", "multinomial" or "residual";
                defaults to ``config.resample_method``

        Returns:
            indices: [N] Ancestor indices
        """
        if method is None:
            method = self.config.resample_method
        return self.data.resample(method, self._get_rng(rng))

    # -------------------------------------------------------------------------
    # Statistics
    # -------------------------------------------------------------------------

    def get_mean(self) -> np.ndarray:
        """
        Weighted mean position.

        Raises:
            EmptyDistributionError: N = 0
            DegenerateWeightsError: every log weight is -inf
        """
        w, _ = shifted_weights(self.data.log_weights)
        return weighted_mean(self.data.values, w)

    def get_covariance_and_mean(self) -> Tuple[np.ndarray, np.ndarray]:
        """
        Weighted covariance (normalized by the weight sum) and mean.

        Returns:
            cov: [3, 3] Symmetric
            mean: [3]
        """
        w, _ = shifted_weights(self.data.log_weights)
        mean, cov = weighted_mean_and_cov(self.data.values, w)
        return cov, mean

    def kurtosis_per_axis(self) -> np.ndarray:
        """[3] weighted excess kurtosis per axis, NaN for zero-variance axes."""
        w, _ = shifted_weights(self.data.log_weights)
        return weighted_excess_kurtosis(self.data.values, w)

    def compute_kurtosis(self) -> float:
        """
        Largest per-axis weighted excess kurtosis, m4 / m2^2 - 3.

        Zero for Gaussian-distributed particles, negative for light tails
        (e.g. -2 for two equally weighted points), positive for heavy tails.
        Axes with zero variance are ignored.

        Raises:
            UndefinedStatisticError: all axes have zero variance (e.g. N = 1)
        """
        kurt = self.kurtosis_per_axis()
        if np.all(np.isnan(kurt)):
            raise UndefinedStatisticError(
                "Kurtosis is undefined: particles have zero spread on every axis"
            )
        return float(np.nanmax(kurt))

    def gaussian_modes(self) -> List[GaussianMode]:
        cov, mean = self.get_covariance_and_mean()
        return [GaussianMode(0.0, mean, cov)]

    # -------------------------------------------------------------------------
    # Sampling
    # -------------------------------------------------------------------------

    def draw_single_sample(self, rng: Optional[Generator] = None) -> np.ndarray:
        """
        Pick one particle with probability proportional to its weight and
        return its exact position (no jitter).
        """
        w, _ = shifted_weights(self.data.log_weights)
        i = categorical_draw(w / np.sum(w), self._get_rng(rng))
        return self.data.values[i].copy()

    def draw_many_samples(self, n: int, rng: Optional[Generator] = None) -> np.ndarray:
        """[n, 3] independent weighted picks among the particle positions."""
        w, _ = shifted_weights(self.data.log_weights)
        idx = categorical_draw(w / np.sum(w), self._get_rng(rng), size=n)
        return self.data.values[idx].copy()

    # -------------------------------------------------------------------------
    # Conversion, frames, fusion
    # -------------------------------------------------------------------------

    def _target_count(self) -> int:
        n = len(self.data)
        return n if n > 0 else self.config.default_particle_count

    def copy_from(self, other: PointPDF, rng: Optional[Generator] = None):
        """
        Assign from any point distribution.

        Particle sources are deep-copied. Other sources are sampled into N
        particles (current size, or ``config.default_particle_count`` if
        empty) with log weight 0.
        """
        if other is self:
            return
        if isinstance(other, PointPDFParticles):
            self.data.assign(other.data.values, other.data.log_weights)
            return
        if not isinstance(other, PointPDF):
            raise IncompatibleFusionOperandsError(f"Cannot copy from {type(other).__name__}")

        samples = other.draw_many_samples(self._target_count(), self._get_rng(rng))
        self.data.assign(samples)

    def change_coordinates_reference(self, new_reference_base: Pose3D):
        """
        this = new_reference_base (+) this, for every particle.

        Positions become R @ p + t; log weights and N are unchanged.
        """
        if len(self.data) == 0:
            return
        self.data.values = new_reference_base.apply(self.data.values)

    def bayesian_fusion(
        self,
        p1: PointPDF,
        p2: PointPDF,
        min_mahalanobis_dist_to_drop: float = 0.0,
        rng: Optional[Generator] = None,
    ):
        """
        Replace contents with samples of the product p1 * p2.

        Both operands are reduced to Gaussian modes (particle sets by their
        weighted mean/covariance) and fused in information form. The result
        is materialized as N equally weighted particles, N being the current
        size or ``config.default_particle_count`` if empty.

        Args:
            p1, p2: Operands of any PointPDF type
            min_mahalanobis_dist_to_drop: If > 0, fused modes farther than
                this from the dominant one are discarded (only has an effect
                with mixture operands)
            rng: Overrides ``self.rng``

        Raises:
            IncompatibleFusionOperandsError: an operand has no mean/covariance form
        """
        modes = fuse_modes(operand_modes(p1), operand_modes(p2), min_mahalanobis_dist_to_drop)
        samples = sample_modes(
            modes, self._target_count(), self._get_rng(rng), jitter=self.config.cov_jitter
        )
        self.data.assign(samples)

    # -------------------------------------------------------------------------
    # I/O
    # -------------------------------------------------------------------------

    def save_to_text_file(self, path: str) -> bool:
        """
        One line per particle: ``X Y Z LOG_W``. The file is replaced as a whole.

        Returns:
            False if the file could not be written
        """
        lines = [
            " ".join(format_float(v) for v in (*p, lw))
            for p, lw in zip(self.data.values, self.data.log_weights)
        ]
        return write_text_lines(path, lines)

    def serialize_to(self) -> Dict[str, Any]:
        """
        Structured form::

            {"datatype": "PointPDFParticles", "version": 1, "N": n,
             "particles": [{"log_w": .., "x": .., "y": .., "z": ..}, ...]}
        """
        return {
            "datatype": self.DATATYPE,
            "version": self.SERIALIZATION_VERSION,
            "N": len(self.data),
            "particles": [
                {"log_w": float(lw), "x": float(p[0]), "y": float(p[1]), "z": float(p[2])}
                for p, lw in zip(self.data.values, self.data.log_weights)
            ],
        }

    def serialize_from(self, data: Mapping[str, Any]):
        """
        Load the structured form.

        Raises:
            TypeMismatchError: ``datatype`` is not "PointPDFParticles"
            UnsupportedSchemaVersionError: ``version`` is not 1
            MalformedPayloadError: missing fields, wrong count or invalid values
        """
        self._check_header(data)
        try:
            n = read_count(data)
            entries = data["particles"]
            if len(entries) != n:
                raise ValueError(f"N={n} but {len(entries)} particles present")
            positions = np.array(
                [[read_number(e[k]) for k in ("x", "y", "z")] for e in entries],
                dtype=np.float64,
            ).reshape(n, 3)
            log_weights = np.array([read_log_weight(e["log_w"]) for e in entries], dtype=np.float64)
        except (KeyError, TypeError, ValueError) as e:
            raise MalformedPayloadError(f"Invalid {self.DATATYPE} payload: {e}") from e

        self.set_size(n)
        self.data.values[:] = positions
        self.data.log_weights[:] = log_weights

    def __repr__(self) -> str:
        return f"PointPDFParticles(n_particles={len(self.data)})"
