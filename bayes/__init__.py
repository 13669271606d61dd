"""
Particle storage shared by particle-based distributions.
"""

from .particle_data import Particle, ParticleFilterData

__all__ = [
    "Particle",
    "ParticleFilterData",
]
