"""
Point distribution interface.

Every concrete distribution of a 3D point (Gaussian, sum of Gaussians,
particles) implements ``PointPDF`` so that fusion and conversion can work
on operands of any concrete type.
"""

import os
import stat
import tempfile
import warnings
import numpy as np
from abc import ABC, abstractmethod
from dataclasses import dataclass
from numpy.random import Generator, default_rng
from typing import Any, Dict, List, Mapping, Optional, Tuple

from ..errors import TypeMismatchError, UnsupportedSchemaVersionError, MalformedPayloadError
from ..poses.pose3d import Pose3D


@dataclass
class GaussianMode:
    """
    One weighted Gaussian component.

    Attributes:
        log_weight: Log of the (unnormalized) component weight
        mean: [3] Component mean
        cov: [3, 3] Component covariance
    """
    log_weight: float
    mean: np.ndarray
    cov: np.ndarray

    def __post_init__(self):
        self.log_weight = float(self.log_weight)
        self.mean = np.asarray(self.mean, dtype=np.float64).reshape(3)
        cov = np.asarray(self.cov, dtype=np.float64).reshape(3, 3)
        self.cov = 0.5 * (cov + cov.T)

    def copy(self) -> "GaussianMode":
        return GaussianMode(self.log_weight, self.mean.copy(), self.cov.copy())


class PointPDF(ABC):
    """
    Abstract probability distribution of a 3D point.

    Subclasses set ``DATATYPE``, the tag written to and checked against the
    ``datatype`` field of the structured format.

    Randomness comes only from ``self.rng`` or from an explicit ``rng``
    argument to the sampling methods.
    """

    DATATYPE: str = ""
    SERIALIZATION_VERSION: int = 1

    def __init__(self, rng: Optional[Generator] = None, seed: Optional[int] = None):
        self.rng = rng if rng is not None else default_rng(seed)

    def _get_rng(self, rng: Optional[Generator]) -> Generator:
        return self.rng if rng is None else rng

    # -------------------------------------------------------------------------
    # Statistics
    # -------------------------------------------------------------------------

    @abstractmethod
    def get_mean(self) -> np.ndarray:
        """[3] Mean (expectation) of the distribution."""

    @abstractmethod
    def get_covariance_and_mean(self) -> Tuple[np.ndarray, np.ndarray]:
        """(cov [3, 3], mean [3])."""

    def get_covariance(self) -> np.ndarray:
        cov, _ = self.get_covariance_and_mean()
        return cov

    @abstractmethod
    def gaussian_modes(self) -> List[GaussianMode]:
        """Reduce the distribution to weighted Gaussian components for fusion."""

    # -------------------------------------------------------------------------
    # Sampling
    # -------------------------------------------------------------------------

    @abstractmethod
    def draw_single_sample(self, rng: Optional[Generator] = None) -> np.ndarray:
        """[3] One sample."""

    def draw_many_samples(self, n: int, rng: Optional[Generator] = None) -> np.ndarray:
        """[n, 3] Independent samples."""
        rng = self._get_rng(rng)
        return np.array([self.draw_single_sample(rng) for _ in range(n)]).reshape(n, 3)

    # -------------------------------------------------------------------------
    # Mutation
    # -------------------------------------------------------------------------

    @abstractmethod
    def copy_from(self, other: "PointPDF", rng: Optional[Generator] = None):
        """Replace contents with ``other``, converting representation if needed."""

    @abstractmethod
    def change_coordinates_reference(self, new_reference_base: Pose3D):
        """this = new_reference_base (+) this."""

    @abstractmethod
    def bayesian_fusion(
        self,
        p1: "PointPDF",
        p2: "PointPDF",
        min_mahalanobis_dist_to_drop: float = 0.0,
        rng: Optional[Generator] = None,
    ):
        """Replace contents with the (approximate) product p1 * p2."""

    # -------------------------------------------------------------------------
    # I/O
    # -------------------------------------------------------------------------

    @abstractmethod
    def save_to_text_file(self, path: str) -> bool:
        """Write a plain-text dump. Returns False on I/O failure."""

    @abstractmethod
    def serialize_to(self) -> Dict[str, Any]:
        """Structured, versioned representation."""

    @abstractmethod
    def serialize_from(self, data: Mapping[str, Any]):
        """Inverse of ``serialize_to``; raises before mutating on bad input."""

    def _check_header(self, data: Mapping[str, Any]) -> int:
        """
        Validate ``datatype`` and return ``version``.

        Raises:
            TypeMismatchError: datatype differs from ``self.DATATYPE``
            UnsupportedSchemaVersionError: version unknown to this class
        """
        if not isinstance(data, Mapping):
            raise MalformedPayloadError(f"Expected a mapping, got {type(data).__name__}")

        datatype = data.get("datatype")
        if datatype != self.DATATYPE:
            raise TypeMismatchError(self.DATATYPE, datatype)

        version = data.get("version", 0)
        if isinstance(version, bool) or version != self.SERIALIZATION_VERSION:
            raise UnsupportedSchemaVersionError(self.DATATYPE, version)
        return int(version)

    def __repr__(self) -> str:
        return f"{type(self).__name__}()"


def format_float(value: float) -> str:
    """Shortest round-trip text for a float; integral values drop the '.0'."""
    text = repr(float(value))
    if text.endswith(".0"):
        text = text[:-2]
    return text


def _target_mode(path: str) -> int:
    """Permission bits ``path`` should end up with: kept if it exists, else umask default."""
    try:
        return stat.S_IMODE(os.stat(path).st_mode)
    except FileNotFoundError:
        umask = os.umask(0)
        os.umask(umask)
        return 0o666 & ~umask


def write_text_lines(path: str, lines: List[str]) -> bool:
    """
    Write ``lines`` to ``path``, replacing it in one step.

    Content goes to a temporary file in the destination directory which is
    then moved over ``path``, so a failure never leaves a partial file. The
    destination keeps its permission bits; a new file gets the umask default.

    Returns:
        True on success, False (with a RuntimeWarning) on I/O failure
    """
    directory = os.path.dirname(os.path.abspath(path))
    tmp_path = None
    try:
        fd, tmp_path = tempfile.mkstemp(dir=directory, prefix=".tmp_", suffix=".txt")
        with os.fdopen(fd, "w") as f:
            for line in lines:
                f.write(line)
                f.write("\n")
        os.chmod(tmp_path, _target_mode(path))
        os.replace(tmp_path, path)
        tmp_path = None
    except OSError as e:
        warnings.warn(f"Could not save to {path!r}: {e}", RuntimeWarning)
        return False
    finally:
        if tmp_path is not None and os.path.exists(tmp_path):
            os.remove(tmp_path)
    return True


def read_count(data: Mapping[str, Any], key: str = "N") -> int:
    """Non-negative integer field of a payload; bools and floats are rejected."""
    value = data[key]
    if isinstance(value, bool) or not isinstance(value, (int, np.integer)) or value < 0:
        raise ValueError(f"{key} must be a non-negative integer, got {value!r}")
    return int(value)


def read_number(value: Any, finite: bool = True) -> float:
    """
    Numeric field of a payload.

    Strings and bools are rejected rather than coerced. NaN is always
    rejected; infinities only when ``finite`` is True.
    """
    if isinstance(value, bool) or not isinstance(value, (int, float, np.integer, np.floating)):
        raise ValueError(f"Expected a number, got {value!r}")
    value = float(value)
    if np.isnan(value) or (finite and np.isinf(value)):
        raise ValueError(f"Invalid value {value!r}")
    return value


def read_log_weight(value: Any) -> float:
    """Log weight field: finite or -inf."""
    value = read_number(value, finite=False)
    if value == np.inf:
        raise ValueError("Log weights must not contain +inf")
    return value


def read_vector(value: Any, length: int) -> np.ndarray:
    """Sequence of ``length`` finite numbers."""
    if isinstance(value, (str, bytes)) or len(value) != length:
        raise ValueError(f"Expected {length} numbers, got {value!r}")
    return np.array([read_number(v) for v in value], dtype=np.float64)


def read_matrix(value: Any, rows: int, cols: int) -> np.ndarray:
    """Nested ``rows`` x ``cols`` sequence of finite numbers."""
    if isinstance(value, (str, bytes)) or len(value) != rows:
        raise ValueError(f"Expected {rows} rows, got {value!r}")
    return np.array([read_vector(row, cols) for row in value], dtype=np.float64)
