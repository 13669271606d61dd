"""
Gaussian-mode algebra shared by all point distributions.

- fuse_gaussians: product of two Gaussians (information form)
- fuse_modes: pairwise product of two mixtures with optional mode dropping
- mixture_moments: mean/covariance of a mixture
- sample_modes: draw from a mixture
"""

import warnings
import numpy as np
from numpy.random import Generator
from typing import List, Tuple

from .base import GaussianMode, PointPDF
from ..errors import IncompatibleFusionOperandsError
from ..utils.weights import normalize_log_weights, categorical_draw
from ..utils.statistics import gaussian_log_pdf, mahalanobis_distance


def operand_modes(pdf) -> List[GaussianMode]:
    """
    Gaussian modes of a fusion operand.

    Raises:
        IncompatibleFusionOperandsError: operand is not a PointPDF or has no modes
    """
    if not isinstance(pdf, PointPDF):
        raise IncompatibleFusionOperandsError(
            f"Cannot fuse an operand of type {type(pdf).__name__}"
        )
    modes = pdf.gaussian_modes()
    if not modes:
        raise IncompatibleFusionOperandsError(
            f"{type(pdf).__name__} operand has no mean/covariance form"
        )
    return modes


def fuse_gaussians(
    mean1: np.ndarray,
    cov1: np.ndarray,
    mean2: np.ndarray,
    cov2: np.ndarray,
) -> Tuple[np.ndarray, np.ndarray, float]:
    """
    Product of N(mean1, cov1) and N(mean2, cov2).

    Information form:
        cov  = (cov1^-1 + cov2^-1)^-1
        mean = cov @ (cov1^-1 mean1 + cov2^-1 mean2)
    evaluated as the equivalent gain form
        K = cov1 (cov1 + cov2)^-1,  mean = mean1 + K (mean2 - mean1),  cov = cov1 - K cov1
    which only needs cov1 + cov2 to be invertible, so an exact (zero
    covariance) operand is allowed.

    Returns:
        mean: [3] Fused mean
        cov: [3, 3] Fused covariance
        log_scale: log N(mean1; mean2, cov1 + cov2), the product's mass

    Raises:
        IncompatibleFusionOperandsError: cov1 + cov2 is singular
    """
    S = cov1 + cov2
    S = 0.5 * (S + S.T)
    try:
        log_scale = gaussian_log_pdf(mean1, mean2, S)
    except np.linalg.LinAlgError:
        raise IncompatibleFusionOperandsError(
            "Sum of operand covariances is singular; the product is undefined"
        ) from None

    # K = cov1 @ S^-1, with S symmetric: K^T = S^-1 @ cov1
    K = np.linalg.solve(S, cov1).T
    mean = mean1 + K @ (mean2 - mean1)
    cov = cov1 - K @ cov1
    cov = 0.5 * (cov + cov.T)
    return mean, cov, log_scale


def fuse_modes(
    modes1: List[GaussianMode],
    modes2: List[GaussianMode],
    min_mahalanobis_dist_to_drop: float = 0.0,
) -> List[GaussianMode]:
    """
    Pairwise product of two Gaussian mixtures.

    If ``min_mahalanobis_dist_to_drop`` > 0, fused modes farther than that
    (Mahalanobis distance under the summed covariances) from the dominant
    fused mode are dropped. A single fused mode is never dropped.

    Returns:
        Fused modes with log weights normalized to sum to 1
    """
    fused = []
    for m1 in modes1:
        for m2 in modes2:
            mean, cov, log_scale = fuse_gaussians(m1.mean, m1.cov, m2.mean, m2.cov)
            fused.append(GaussianMode(m1.log_weight + m2.log_weight + log_scale, mean, cov))

    if min_mahalanobis_dist_to_drop > 0 and len(fused) > 1:
        dominant = fused[int(np.argmax([m.log_weight for m in fused]))]
        kept = [
            m for m in fused
            if m is dominant
            or mahalanobis_distance(m.mean, dominant.mean, m.cov + dominant.cov)
            <= min_mahalanobis_dist_to_drop
        ]
        if len(kept) == 1:
            warnings.warn(
                f"All {len(fused) - 1} secondary fused modes were dropped "
                f"(threshold {min_mahalanobis_dist_to_drop}).",
                RuntimeWarning,
            )
        fused = kept

    _, log_norm = normalize_log_weights(np.array([m.log_weight for m in fused]))
    for m in fused:
        m.log_weight -= log_norm
    return fused


def mixture_moments(modes: List[GaussianMode]) -> Tuple[np.ndarray, np.ndarray]:
    """
    Mean and covariance of a Gaussian mixture (law of total covariance).

    Returns:
        mean: [3]
        cov: [3, 3]
    """
    weights, _ = normalize_log_weights(np.array([m.log_weight for m in modes]))
    means = np.array([m.mean for m in modes])
    mean = weights @ means
    cov = np.zeros((3, 3))
    for w, m in zip(weights, modes):
        d = m.mean - mean
        cov += w * (m.cov + np.outer(d, d))
    cov = 0.5 * (cov + cov.T)
    return mean, cov


def gaussian_factor(cov: np.ndarray, jitter: float = 1e-8) -> np.ndarray:
    """
    Matrix L with L @ L.T ~= cov, for sampling.

    Cholesky of cov + jitter * I; falls back to an eigen-decomposition with
    clipped eigenvalues (and a RuntimeWarning) when cov is not positive
    semi-definite to within the jitter.
    """
    d = cov.shape[0]
    try:
        return np.linalg.cholesky(cov + jitter * np.eye(d))
    except np.linalg.LinAlgError:
        eigvals, eigvecs = np.linalg.eigh(0.5 * (cov + cov.T))
        if np.min(eigvals) < -1e-9 * max(1.0, np.max(np.abs(eigvals))):
            warnings.warn(
                f"Covariance is not positive semi-definite (min eigenvalue "
                f"{np.min(eigvals):.3e}); clipping for sampling.",
                RuntimeWarning,
            )
        return eigvecs * np.sqrt(np.clip(eigvals, 0.0, None))


def sample_gaussian(
    mean: np.ndarray,
    cov: np.ndarray,
    n: int,
    rng: Generator,
    jitter: float = 1e-8,
) -> np.ndarray:
    """[n, 3] samples from N(mean, cov)."""
    L = gaussian_factor(cov, jitter)
    noise = rng.standard_normal((n, mean.shape[0]))
    return mean + noise @ L.T


def sample_modes(
    modes: List[GaussianMode],
    n: int,
    rng: Generator,
    jitter: float = 1e-8,
) -> np.ndarray:
    """
    [n, 3] samples from a Gaussian mixture.

    Component indices are drawn categorically from the mode weights, then
    each sample is drawn from its component.
    """
    weights, _ = normalize_log_weights(np.array([m.log_weight for m in modes]))
    components = categorical_draw(weights, rng, size=n)
    samples = np.zeros((n, 3))
    for k, mode in enumerate(modes):
        idx = np.flatnonzero(components == k)
        if len(idx) > 0:
            samples[idx] = sample_gaussian(mode.mean, mode.cov, len(idx), rng, jitter)
    return samples
