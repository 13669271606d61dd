"""
Exceptions raised by point distributions.

All errors derive from ``PointPDFError`` which is itself a ``ValueError``,
so callers that already guard numerical code with ``except ValueError``
keep working.
"""


class PointPDFError(ValueError):
    """Base class for all point distribution errors."""


class EmptyDistributionError(PointPDFError):
    """A statistic or a sample was requested from a distribution with N = 0."""


class DegenerateWeightsError(PointPDFError):
    """Every particle has zero weight (all log-weights are -inf)."""


class UndefinedStatisticError(PointPDFError):
    """The statistic does not exist for this particle set (e.g. zero variance)."""


class TypeMismatchError(PointPDFError):
    """Serialized ``datatype`` does not match the receiving distribution."""

    def __init__(self, expected: str, found):
        self.expected = expected
        self.found = found
        super().__init__(
            f"Cannot deserialize datatype {found!r} into {expected!r}"
        )


class UnsupportedSchemaVersionError(PointPDFError):
    """Serialized ``version`` is not one this class knows how to read."""

    def __init__(self, datatype: str, version):
        self.datatype = datatype
        self.version = version
        super().__init__(f"Unknown version {version!r} for datatype {datatype!r}")


class MalformedPayloadError(PointPDFError):
    """Serialized payload is structurally invalid (missing fields, bad counts, NaN)."""


class IncompatibleFusionOperandsError(PointPDFError):
    """An operand cannot be reduced to a mean/covariance form."""
