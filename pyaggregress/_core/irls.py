"""
IRLS logistic regression, one aggregation pass per iteration.

Each pass re-linearizes around the current coefficients c. Per observation

    p = σ(c·x),  w = max(p(1 - p), IRLS_MIN_WEIGHT),  z = c·x + (y - p)/w

and the weighted normal equations Σ w x xᵀ β = Σ w x z are accumulated in a
SufficientStats, merged like any OLS state, and solved for the next
coefficients. This is Newton–Raphson on the log-likelihood.
"""

import logging
import numpy as np
from dataclasses import dataclass, field
from typing import Optional

from .. import _utils
from .._config import IRLS_MIN_WEIGHT
from ..exceptions import DimensionMismatch, InsufficientData, NumericOverflow
from .families import Logistic, check_binary
from .linalg import solve_normal_equations
from .stats import SufficientStats, combine

log = logging.getLogger(__name__)

_LINK = Logistic()


@dataclass(frozen=True, eq=False)
class IRLSState:
    """Finalized IRLS state: coefficients and the log-likelihood of the pass."""
    coef: np.ndarray
    log_likelihood: float = -np.inf
    iteration: int = 0

    @classmethod
    def initial(cls, n_features: int) -> "IRLSState":
        if n_features < 1:
            raise ValueError(f"Need at least one feature, got {n_features}")
        return cls(coef=np.zeros(n_features))

    @property
    def len(self) -> int:
        return len(self.coef)


@dataclass(frozen=True, eq=False)
class IRLSAccumulator:
    """Partial aggregate of one IRLS pass."""
    previous: IRLSState
    stats: SufficientStats = field(default_factory=SufficientStats.empty)
    log_likelihood: float = 0.0

    @property
    def count(self) -> int:
        return self.stats.count


def irls_accumulate(
    acc: Optional[IRLSAccumulator],
    y,
    X,
    previous: IRLSState,
    backend=None,
) -> IRLSAccumulator:
    """
    Fold observations (one row or a partition) into a pass aggregate.

    Parameters
    ----------
    acc : IRLSAccumulator or None
        Partial aggregate so far; None starts a new one
    y : bool or float, or array of them
        0/1 labels
    X : array, shape (p,) or (n, p)
        Feature rows
    previous : IRLSState
        Finalized state of the previous iteration
    backend : str or BackendBase, optional
        Backend computing the weighted cross-products
    """
    from .._backends import get_backend

    if acc is None:
        acc = IRLSAccumulator(previous=previous)
    if y is None or X is None:
        return acc

    coef = acc.previous.coef
    y = np.atleast_1d(y)
    X = np.asarray(X, dtype=np.float64)
    if X.ndim == 1:
        X = X.reshape(1, -1)
    if X.shape[1] != len(coef):
        raise DimensionMismatch(
            f"Expected {len(coef)} features, got {X.shape[1]}",
            stage="accumulation", expected=len(coef), actual=X.shape[1]
        )
    y, X, _ = _utils.drop_missing(check_binary(y), X)
    if len(y) == 0:
        return acc

    eta = X @ coef
    if not np.all(np.isfinite(eta)):
        raise NumericOverflow("Non-finite linear predictor in IRLS iteration",
                              quantity="linear predictor")
    mu = _LINK.sigmoid(eta)
    w = np.maximum(_LINK.variance(mu), IRLS_MIN_WEIGHT)
    z = eta + (y - mu) / w

    gram = get_backend(backend).gram(X, z, w)
    return IRLSAccumulator(
        previous=acc.previous,
        stats=acc.stats.fold_gram(gram),
        log_likelihood=acc.log_likelihood + _LINK.log_likelihood(y, eta),
    )


def irls_combine(
    a: Optional[IRLSAccumulator],
    b: Optional[IRLSAccumulator],
) -> Optional[IRLSAccumulator]:
    """Merge two partial aggregates of the same pass."""
    if a is None or a.count == 0:
        return b if b is not None else a
    if b is None or b.count == 0:
        return a
    return IRLSAccumulator(
        previous=a.previous,
        stats=combine(a.stats, b.stats),
        log_likelihood=a.log_likelihood + b.log_likelihood,
    )


def irls_finalize(acc: IRLSAccumulator) -> IRLSState:
    """
    Solve the weighted normal equations for the next coefficients.

    Raises
    ------
    InsufficientData
        If the pass saw no observations
    SingularMatrix
        If the weighted cross-product matrix is zero
    NumericOverflow
        If the log-likelihood or new coefficients are not finite
    """
    if acc.count == 0:
        raise InsufficientData("No observations in IRLS pass", stage="iteration",
                               count=0, n_features=acc.previous.len)
    if not np.isfinite(acc.log_likelihood):
        raise NumericOverflow("Non-finite log-likelihood in IRLS iteration",
                              quantity="log-likelihood")

    sol = solve_normal_equations(acc.stats.XtX, acc.stats.Xty, stage="iteration")
    if not np.all(np.isfinite(sol.coef)):
        raise NumericOverflow("Non-finite coefficients in IRLS iteration",
                              quantity="coefficients")

    log.debug("IRLS iteration %d: loglik=%.6g", acc.previous.iteration,
              acc.log_likelihood)
    return IRLSState(
        coef=sol.coef,
        log_likelihood=acc.log_likelihood,
        iteration=acc.previous.iteration + 1,
    )


def irls_step(previous: IRLSState, partitions, backend=None, n_jobs: int = 1) -> IRLSState:
    """
    One full IRLS iteration: fold every partition, merge, finalize.

    Parameters
    ----------
    previous : IRLSState
        Finalized state of the previous iteration (or IRLSState.initial(p))
    partitions : iterable of (y, X)
        Label vectors and feature matrices, one pair per partition
    """
    from ..aggregate import fold_partitions

    acc = fold_partitions(
        partitions,
        lambda part: irls_accumulate(None, part[0], part[1], previous, backend),
        irls_combine,
        n_jobs=n_jobs,
    )
    if acc is None:
        acc = IRLSAccumulator(previous=previous)
    return irls_finalize(acc)
