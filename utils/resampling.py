"""
Resampling algorithms for particle sets.

Every resampler maps normalized weights to N ancestor indices; the caller
then substitutes particles and resets the log weights.
"""

import numpy as np
from numpy.random import Generator
from typing import Callable

from ..config import RESAMPLE_METHODS


def _inverse_cdf(weights: np.ndarray, u: np.ndarray) -> np.ndarray:
    """Map uniform positions u in [0, 1) to indices through the weight CDF."""
    N = len(weights)
    cdf = np.cumsum(weights)
    cdf[-1] = 1.0  # Guard against round-off leaving the last bin short
    return np.minimum(np.searchsorted(cdf, u, side='right'), N - 1)


def systematic_resample(weights: np.ndarray, rng: Generator) -> np.ndarray:
    """
    Systematic resampling: a single offset, evenly spaced positions.

    Args:
        weights: [N] Normalized weights (must sum to 1)
        rng: NumPy random generator

    Returns:
        indices: [N] Ancestor indices
    """
    N = len(weights)
    u = (rng.uniform(0.0, 1.0) + np.arange(N)) / N
    return _inverse_cdf(weights, u)


def stratified_resample(weights: np.ndarray, rng: Generator) -> np.ndarray:
    """
    Stratified resampling: one independent position per stratum [i/N, (i+1)/N).
    """
    N = len(weights)
    u = (np.arange(N) + rng.uniform(0.0, 1.0, N)) / N
    return _inverse_cdf(weights, u)


def multinomial_resample(weights: np.ndarray, rng: Generator) -> np.ndarray:
    """
    Multinomial resampling: N i.i.d. categorical draws.
    """
    N = len(weights)
    return _inverse_cdf(weights, rng.random(N))


def residual_resample(weights: np.ndarray, rng: Generator) -> np.ndarray:
    """
    Residual resampling.

    Keeps floor(N * w_i) copies of each particle deterministically and fills
    the remainder with multinomial draws on the residual weights.
    """
    N = len(weights)
    n_copies = np.floor(N * weights).astype(int)
    indices = np.repeat(np.arange(N), n_copies)

    n_residual = N - len(indices)
    if n_residual > 0:
        residual = N * weights - n_copies
        residual = residual / residual.sum()
        extra = _inverse_cdf(residual, rng.random(n_residual))
        indices = np.concatenate([indices, extra])

    return indices.astype(int)


def get_resampler(method: str) -> Callable[[np.ndarray, Generator], np.ndarray]:
    """Look up a resampling function by name."""
    resamplers = {
        "systematic": systematic_resample,
        "stratified": stratified_resample,
        "multinomial": multinomial_resample,
        "residual": residual_resample,
    }
    if method not in RESAMPLE_METHODS:
        raise ValueError(f"Unknown resample method: {method}")
    return resamplers[method]
