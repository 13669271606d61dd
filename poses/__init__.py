"""
Rigid-body poses.
"""

from .pose3d import Pose3D

__all__ = [
    "Pose3D",
]
