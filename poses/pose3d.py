"""
Rigid-body transforms in 3D.

A pose p = (R, t) maps a point expressed in its local frame to the
reference frame: p (+) x = R @ x + t.
"""

import numpy as np
from dataclasses import dataclass
from scipy.spatial.transform import Rotation


@dataclass
class Pose3D:
    """
    3D pose: rotation matrix + translation.

    Attributes:
        R: [3, 3] Rotation matrix
        t: [3] Translation
    """
    R: np.ndarray
    t: np.ndarray

    def __post_init__(self):
        self.R = np.asarray(self.R, dtype=np.float64).reshape(3, 3)
        self.t = np.asarray(self.t, dtype=np.float64).reshape(3)

    @classmethod
    def identity(cls) -> "Pose3D":
        return cls(R=np.eye(3), t=np.zeros(3))

    @classmethod
    def from_xyz_ypr(
        cls,
        x: float,
        y: float,
        z: float,
        yaw: float = 0.0,
        pitch: float = 0.0,
        roll: float = 0.0,
    ) -> "Pose3D":
        """
        Build a pose from a translation and yaw/pitch/roll angles (radians).

        R = Rz(yaw) @ Ry(pitch) @ Rx(roll)
        """
        R = Rotation.from_euler('ZYX', [yaw, pitch, roll]).as_matrix()
        return cls(R=R, t=np.array([x, y, z], dtype=np.float64))

    @classmethod
    def from_xyz_quat(cls, x: float, y: float, z: float, qw: float, qx: float, qy: float, qz: float) -> "Pose3D":
        """Build a pose from a translation and a (w, x, y, z) unit quaternion."""
        R = Rotation.from_quat([qx, qy, qz, qw]).as_matrix()
        return cls(R=R, t=np.array([x, y, z], dtype=np.float64))

    def ypr(self) -> np.ndarray:
        """[3] (yaw, pitch, roll) in radians."""
        return Rotation.from_matrix(self.R).as_euler('ZYX')

    def apply(self, points: np.ndarray) -> np.ndarray:
        """
        Transform points from the local frame to the reference frame.

        Args:
            points: [3] or [N, 3]

        Returns:
            Transformed points, same shape as input
        """
        points = np.asarray(points, dtype=np.float64)
        return points @ self.R.T + self.t

    def compose(self, other: "Pose3D") -> "Pose3D":
        """self (+) other."""
        return Pose3D(R=self.R @ other.R, t=self.R @ other.t + self.t)

    def __add__(self, other: "Pose3D") -> "Pose3D":
        return self.compose(other)

    def inverse(self) -> "Pose3D":
        """Pose p_inv such that p_inv (+) p is the identity."""
        R_inv = self.R.T
        return Pose3D(R=R_inv, t=-R_inv @ self.t)

    def __repr__(self) -> str:
        yaw, pitch, roll = self.ypr()
        return (
            f"Pose3D(x={self.t[0]:.4f}, y={self.t[1]:.4f}, z={self.t[2]:.4f}, "
            f"yaw={yaw:.4f}, pitch={pitch:.4f}, roll={roll:.4f})"
        )
