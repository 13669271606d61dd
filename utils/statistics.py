"""
Weighted sample statistics for point sets.
"""

import numpy as np
from typing import Tuple


def weighted_mean(values: np.ndarray, weights: np.ndarray) -> np.ndarray:
    """
    Args:
        values: [N, d] Samples
        weights: [N] Non-negative weights, not necessarily normalized

    Returns:
        mean: [d]
    """
    return np.sum(weights[:, np.newaxis] * values, axis=0) / np.sum(weights)


def weighted_mean_and_cov(
    values: np.ndarray,
    weights: np.ndarray,
) -> Tuple[np.ndarray, np.ndarray]:
    """
    Weighted mean and (biased) weighted covariance.

    Cov = sum_i w_i (x_i - m)(x_i - m)^T / sum_i w_i, symmetrized to remove
    round-off asymmetry.

    Args:
        values: [N, d] Samples
        weights: [N] Non-negative weights

    Returns:
        mean: [d]
        cov: [d, d]
    """
    total = np.sum(weights)
    mean = np.sum(weights[:, np.newaxis] * values, axis=0) / total
    diff = values - mean
    cov = np.einsum('n,ni,nj->ij', weights, diff, diff) / total
    cov = 0.5 * (cov + cov.T)
    return mean, cov


def weighted_excess_kurtosis(values: np.ndarray, weights: np.ndarray) -> np.ndarray:
    """
    Per-axis weighted excess kurtosis m4 / m2^2 - 3.

    Moments are central moments under the normalized weights. A Gaussian
    gives 0; a symmetric two-point distribution gives -2.

    Args:
        values: [N, d] Samples
        weights: [N] Non-negative weights

    Returns:
        kurtosis: [d], NaN where the axis has zero variance
    """
    w = weights / np.sum(weights)
    mean = w @ values
    diff = values - mean
    m2 = w @ diff ** 2
    m4 = w @ diff ** 4

    kurt = np.full(values.shape[1], np.nan)
    nonzero = m2 > 0
    kurt[nonzero] = m4[nonzero] / m2[nonzero] ** 2 - 3.0
    return kurt


def gaussian_log_pdf(x: np.ndarray, mean: np.ndarray, cov: np.ndarray) -> float:
    """
    log N(x; mean, cov) for a single point.

    Raises:
        numpy.linalg.LinAlgError: if cov is not positive definite
    """
    d = mean.shape[0]
    L = np.linalg.cholesky(cov)
    z = np.linalg.solve(L, x - mean)
    logdet = 2.0 * np.sum(np.log(np.diag(L)))
    return float(-0.5 * (d * np.log(2 * np.pi) + logdet + z @ z))


def mahalanobis_distance(x: np.ndarray, mean: np.ndarray, cov: np.ndarray) -> float:
    """sqrt((x - mean)^T cov^-1 (x - mean)), using a least-squares solve for singular cov."""
    diff = x - mean
    sol, *_ = np.linalg.lstsq(cov, diff, rcond=None)
    return float(np.sqrt(max(diff @ sol, 0.0)))
