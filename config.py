"""
Configuration for particle point distributions.
"""

from dataclasses import dataclass

RESAMPLE_METHODS = ("systematic", "stratified", "multinomial", "residual")


@dataclass
class ParticlesConfig:
    """
    Tunable defaults for ``PointPDFParticles``.

    Attributes:
        default_particle_count: Number of particles materialized by
            ``copy_from`` and ``bayesian_fusion`` when the target is empty
        cov_jitter: Diagonal regularization added before Cholesky factorization
        resample_method: Default algorithm used by ``resample``
    """
    default_particle_count: int = 1000
    cov_jitter: float = 1e-8
    resample_method: str = "systematic"

    def __post_init__(self):
        if self.default_particle_count < 1:
            raise ValueError(
                f"default_particle_count must be >= 1, got {self.default_particle_count}"
            )
        if self.cov_jitter < 0:
            raise ValueError(f"cov_jitter must be >= 0, got {self.cov_jitter}")
        if self.resample_method not in RESAMPLE_METHODS:
            raise ValueError(f"Unknown resample method: {self.resample_method}")
