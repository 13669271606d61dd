"""
Utility functions.
"""

from .weights import (
    check_log_weights,
    log_sum_exp,
    shifted_weights,
    normalize_log_weights,
    effective_sample_size,
    categorical_draw,
)

from .resampling import (
    systematic_resample,
    stratified_resample,
    multinomial_resample,
    residual_resample,
    get_resampler,
)

from .statistics import (
    weighted_mean,
    weighted_mean_and_cov,
    weighted_excess_kurtosis,
    gaussian_log_pdf,
    mahalanobis_distance,
)

__all__ = [
    "check_log_weights",
    "log_sum_exp",
    "shifted_weights",
    "normalize_log_weights",
    "effective_sample_size",
    "categorical_draw",
    "systematic_resample",
    "stratified_resample",
    "multinomial_resample",
    "residual_resample",
    "get_resampler",
    "weighted_mean",
    "weighted_mean_and_cov",
    "weighted_excess_kurtosis",
    "gaussian_log_pdf",
    "mahalanobis_distance",
]
