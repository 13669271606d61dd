"""
Generic particle storage.

``ParticleFilterData`` owns a set of weighted samples of fixed dimension and
provides the weight bookkeeping and resampling hook a particle filter needs.
Concrete distributions compose it rather than inherit from it.
"""

import numpy as np
from dataclasses import dataclass
from numpy.random import Generator
from typing import Optional, Tuple

from ..utils.weights import (
    check_log_weights,
    shifted_weights,
    normalize_log_weights,
    effective_sample_size,
)
from ..utils.resampling import get_resampler


@dataclass(frozen=True)
class Particle:
    """
    One weighted hypothesis.

    Attributes:
        position: [dim] Sample value (x, y, z for point distributions)
        log_weight: Natural log of the unnormalized weight (-inf = zero mass)
    """
    position: Tuple[float, ...]
    log_weight: float = 0.0

    @property
    def x(self) -> float:
        return self.position[0]

    @property
    def y(self) -> float:
        return self.position[1]

    @property
    def z(self) -> float:
        return self.position[2]


class ParticleFilterData:
    """
    Container of N weighted particles of dimension ``dim``.

    Attributes:
        values: [N, dim] Particle values
        log_weights: [N] Unnormalized log weights
    """

    def __init__(self, dim: int, n_particles: int = 0, default_value=None):
        if dim < 1:
            raise ValueError(f"dim must be >= 1, got {dim}")
        self.dim = dim
        self.values = np.zeros((0, dim))
        self.log_weights = np.zeros(0)
        self.set_size(n_particles, default_value)

    # -------------------------------------------------------------------------
    # Storage
    # -------------------------------------------------------------------------

    def clear(self):
        """Drop all particles."""
        self.values = np.zeros((0, self.dim))
        self.log_weights = np.zeros(0)

    def set_size(self, n_particles: int, default_value=None):
        """
        Replace contents with ``n_particles`` copies of ``default_value``.

        Log weights are reset to 0 (equal, unnormalized).
        """
        if n_particles < 0:
            raise ValueError(f"Number of particles must be >= 0, got {n_particles}")
        value = self._as_value(default_value)
        self.values = np.tile(value, (n_particles, 1))
        self.log_weights = np.zeros(n_particles)

    def assign(self, values: np.ndarray, log_weights: Optional[np.ndarray] = None):
        """
        Replace contents with the given arrays (copied).

        Args:
            values: [N, dim]
            log_weights: [N], zeros if None
        """
        values = np.array(values, dtype=np.float64, copy=True).reshape(-1, self.dim)
        if log_weights is None:
            log_weights = np.zeros(len(values))
        else:
            log_weights = check_log_weights(np.array(log_weights, dtype=np.float64, copy=True))
        if log_weights.shape != (len(values),):
            raise ValueError(
                f"log_weights shape {log_weights.shape} does not match {len(values)} particles"
            )
        if not np.all(np.isfinite(values)):
            raise ValueError("Particle values must be finite")
        self.values = values
        self.log_weights = log_weights

    def particles_count(self) -> int:
        return self.values.shape[0]

    def __len__(self) -> int:
        return self.values.shape[0]

    def __getitem__(self, i: int) -> Particle:
        return Particle(
            position=tuple(float(v) for v in self.values[i]),
            log_weight=float(self.log_weights[i]),
        )

    def _as_value(self, value) -> np.ndarray:
        if value is None:
            return np.zeros(self.dim)
        value = np.asarray(value, dtype=np.float64).reshape(-1)
        if value.shape != (self.dim,):
            raise ValueError(f"Expected a value of dimension {self.dim}, got {value.shape}")
        return value

    # -------------------------------------------------------------------------
    # Weights
    # -------------------------------------------------------------------------

    def get_w(self, i: int) -> float:
        """Log weight of particle i."""
        return float(self.log_weights[i])

    def set_w(self, i: int, log_w: float):
        """Set log weight of particle i."""
        log_w = float(log_w)
        if np.isnan(log_w) or log_w == np.inf:
            raise ValueError(f"Invalid log weight: {log_w}")
        self.log_weights[i] = log_w

    def get_weights(self) -> np.ndarray:
        """[N] normalized weights (sum to 1)."""
        weights, _ = normalize_log_weights(self.log_weights)
        return weights

    def normalize_weights(self) -> float:
        """
        Shift log weights so the largest is exactly 0.

        Returns:
            The maximum log weight that was subtracted
        """
        _, max_log = shifted_weights(self.log_weights)
        self.log_weights = self.log_weights - max_log
        return max_log

    def ess(self) -> float:
        """Effective sample size of the normalized weights."""
        return effective_sample_size(self.get_weights())

    # -------------------------------------------------------------------------
    # Resampling hook
    # -------------------------------------------------------------------------

    def perform_substitution(self, indices: np.ndarray):
        """
        Replace the particle set by the particles at ``indices`` with equal weights.

        Args:
            indices: [M] Ancestor indices into the current set
        """
        indices = np.asarray(indices, dtype=int)
        self.values = self.values[indices].copy()
        self.log_weights = np.zeros(len(indices))

    def resample(self, method: str, rng: Generator) -> np.ndarray:
        """
        Resample in place.

        Returns:
            indices: [N] Ancestor indices that were used
        """
        resample_fn = get_resampler(method)
        indices = resample_fn(self.get_weights(), rng)
        self.perform_substitution(indices)
        return indices
