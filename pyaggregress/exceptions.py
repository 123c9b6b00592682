"""
Exception hierarchy for PyAggregress.

All exceptions inherit from PyAggregressError so callers can catch any
library-specific failure. Every error records the aggregation stage it
came from ('accumulation', 'combination', 'finalization' or 'iteration')
and prefixes its message with that stage.
"""

STAGES = ("accumulation", "combination", "finalization", "iteration")


class PyAggregressError(Exception):
    """Base exception for all PyAggregress errors."""

    def __init__(self, message: str, stage: str = "finalization"):
        if stage not in STAGES:
            raise ValueError(f"Unknown stage '{stage}', expected one of {STAGES}")
        super().__init__(f"[{stage}] {message}")
        self.stage = stage


class DimensionMismatch(PyAggregressError, ValueError):
    """
    Feature vector length differs from the one fixed by the state.

    Attributes:
        expected: Number of features the state was initialized with
        actual: Number of features that was offered
    """

    def __init__(
        self,
        message: str,
        stage: str = "accumulation",
        expected: int | None = None,
        actual: int | None = None
    ):
        super().__init__(message, stage)
        self.expected = expected
        self.actual = actual


class InsufficientData(PyAggregressError, ValueError):
    """
    Too few observations for the requested statistic.

    Raised when the residual degrees of freedom (count - p) are not positive.
    """

    def __init__(self, message: str, stage: str = "finalization",
                 count: int | None = None, n_features: int | None = None):
        super().__init__(message, stage)
        self.count = count
        self.n_features = n_features


class SingularMatrix(PyAggregressError):
    """
    Normal equations cannot be solved.

    Attributes:
        rank: Numerical rank of the cross-product matrix
        expected_rank: Number of coefficients
    """

    def __init__(
        self,
        message: str,
        stage: str = "finalization",
        rank: int | None = None,
        expected_rank: int | None = None
    ):
        super().__init__(message, stage)
        self.rank = rank
        self.expected_rank = expected_rank


class InvalidOptimizer(PyAggregressError, ValueError):
    """Unrecognized optimizer name."""

    def __init__(self, name, stage: str = "iteration"):
        super().__init__(
            f"Unknown optimizer '{name}'. Must be 'irls'/'newton' or 'cg'",
            stage
        )
        self.name = name


class NumericOverflow(PyAggregressError, ArithmeticError):
    """
    A gradient, curvature, log-likelihood or coefficient became non-finite.

    Attributes:
        quantity: Name of the offending quantity
    """

    def __init__(self, message: str, stage: str = "iteration",
                 quantity: str | None = None):
        super().__init__(message, stage)
        self.quantity = quantity


__all__ = [
    "PyAggregressError",
    "DimensionMismatch",
    "InsufficientData",
    "SingularMatrix",
    "InvalidOptimizer",
    "NumericOverflow",
]
