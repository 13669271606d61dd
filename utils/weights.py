"""
Log-weight handling for particle sets.

Weights are carried as natural logarithms and only exponentiated after
subtracting the maximum (log-sum-exp), so particle sets whose likelihoods
span hundreds of orders of magnitude stay representable.
"""

import numpy as np
from numpy.random import Generator
from typing import Optional, Tuple

from ..errors import EmptyDistributionError, DegenerateWeightsError


def check_log_weights(log_weights: np.ndarray) -> np.ndarray:
    """
    Validate a log-weight vector.

    Args:
        log_weights: [N] Log weights

    Returns:
        log_weights as float64 array

    Raises:
        ValueError: if any entry is NaN or +inf
    """
    log_weights = np.asarray(log_weights, dtype=np.float64)
    if np.any(np.isnan(log_weights)):
        raise ValueError("Log weights must not contain NaN")
    if np.any(np.isposinf(log_weights)):
        raise ValueError("Log weights must not contain +inf")
    return log_weights


def log_sum_exp(log_weights: np.ndarray) -> float:
    """Numerically stable log(sum(exp(log_weights))). Returns -inf if all are -inf."""
    log_weights = np.asarray(log_weights, dtype=np.float64)
    if log_weights.size == 0:
        return -np.inf
    max_log = np.max(log_weights)
    if np.isneginf(max_log):
        return -np.inf
    return float(max_log + np.log(np.sum(np.exp(log_weights - max_log))))


def shifted_weights(log_weights: np.ndarray) -> Tuple[np.ndarray, float]:
    """
    Exponentiate log weights relative to their maximum.

    Args:
        log_weights: [N] Unnormalized log weights

    Returns:
        weights: [N] exp(log_w - max_log_w), largest entry is exactly 1
        max_log_w: The subtracted maximum

    Raises:
        EmptyDistributionError: if N = 0
        DegenerateWeightsError: if every log weight is -inf
    """
    log_weights = np.asarray(log_weights, dtype=np.float64)
    if log_weights.size == 0:
        raise EmptyDistributionError("Particle set is empty")

    max_log = np.max(log_weights)
    if np.isneginf(max_log):
        raise DegenerateWeightsError("All particle weights are zero")

    return np.exp(log_weights - max_log), float(max_log)


def normalize_log_weights(log_weights: np.ndarray) -> Tuple[np.ndarray, float]:
    """
    Normalize log weights to get normalized weights.

    Args:
        log_weights: [N] Unnormalized log weights

    Returns:
        weights: [N] Normalized weights (sum to 1)
        log_normalizer: Log of the normalizing constant
    """
    w, max_log = shifted_weights(log_weights)
    total = np.sum(w)
    return w / total, max_log + float(np.log(total))


def effective_sample_size(weights: np.ndarray) -> float:
    """
    ESS = 1 / sum(w_i^2) for normalized weights. Lies in [1, N].
    """
    return float(1.0 / np.sum(weights ** 2))


def categorical_draw(
    weights: np.ndarray,
    rng: Generator,
    size: Optional[int] = None,
):
    """
    Draw indices with probability proportional to ``weights``.

    Inverse-CDF lookup on uniform variates from ``rng``, so the result is
    fully determined by the generator state.

    Args:
        weights: [N] Normalized weights (must sum to 1)
        rng: NumPy random generator
        size: Number of draws; None returns a single int

    Returns:
        index (int) or indices [size]
    """
    N = len(weights)
    cdf = np.cumsum(weights)
    cdf[-1] = 1.0

    u = rng.random() if size is None else rng.random(size)
    indices = np.minimum(np.searchsorted(cdf, u, side='right'), N - 1)

    if size is None:
        return int(indices)
    return indices
