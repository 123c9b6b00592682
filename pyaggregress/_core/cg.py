"""
Conjugate-gradient logistic regression, one aggregation pass per iteration.

A pass folds every observation under the current coefficients c and the
current search direction d, accumulating

    grad_new = Σ (y - σ(c·x)) x                 gradient of the log-likelihood
    dTHd     = Σ (x·d)² σ(c·x)(1 - σ(c·x))      curvature along d
    hess_dir = Σ σ(c·x)(1 - σ(c·x)) (x·d) x     (negated) Hessian times d
    log_likelihood

Finalizing takes the Newton step along d, α = (grad_new·d)/dTHd, and
builds the next direction with Polak–Ribière from the gradient predicted
at the new point, grad_new - α·hess_dir. The first pass has no direction
yet; it accumulates the full curvature matrix once and searches along the
gradient.

This is not the textbook O(p) first-order update that pairs the new
gradient with the previous one: the first pass carries a p × p matrix, and
every pass carries the extra p-vector hess_dir so the Polak–Ribière
coefficient uses the gradient predicted at the new point.
"""

import logging
import numpy as np
from dataclasses import dataclass, replace
from typing import Optional

from .. import _utils
from ..exceptions import DimensionMismatch, InsufficientData, NumericOverflow
from .families import Logistic, check_binary
from .linalg import dot

log = logging.getLogger(__name__)

_LINK = Logistic()
_EPS = np.finfo(np.float64).eps


@dataclass(frozen=True, eq=False)
class CGState:
    """
    Conjugate-gradient iteration state.

    The same type serves as the finalized state handed to the next
    iteration and as the partial aggregate of a pass in progress.
    """
    iteration: int
    len: int
    coef: np.ndarray
    dir: np.ndarray
    grad: np.ndarray
    beta: float = 0.0

    count: int = 0
    grad_new: Optional[np.ndarray] = None
    dTHd: float = 0.0
    log_likelihood: float = -np.inf

    hess_dir: Optional[np.ndarray] = None
    hessian: Optional[np.ndarray] = None   # first pass only
    stalled: bool = False

    @classmethod
    def initial(cls, n_features: int) -> "CGState":
        """Fresh state: iteration 0, all-zero coefficients."""
        if n_features < 1:
            raise ValueError(f"Need at least one feature, got {n_features}")
        zeros = np.zeros(n_features)
        return cls(iteration=0, len=n_features, coef=zeros,
                   dir=zeros.copy(), grad=zeros.copy())

    def begin_pass(self) -> "CGState":
        """Empty partial aggregate for the pass that follows this state."""
        p = self.len
        return replace(
            self,
            count=0,
            grad_new=np.zeros(p),
            dTHd=0.0,
            log_likelihood=0.0,
            hess_dir=np.zeros(p),
            hessian=np.zeros((p, p)) if self.iteration == 0 else None,
        )


def cg_accumulate(
    acc: Optional[CGState],
    y,
    X,
    previous: CGState,
    backend=None,
) -> CGState:
    """
    Fold observations (one row or a partition) into a pass aggregate.

    Parameters
    ----------
    acc : CGState or None
        Partial aggregate so far; None starts a new one from ``previous``
    y : bool or float, or array of them
        0/1 labels
    X : array, shape (p,) or (n, p)
        Feature rows
    previous : CGState
        Finalized state of the previous iteration
    backend : str or BackendBase, optional
        Backend for the first-pass curvature matrix
    """
    if acc is None:
        acc = previous.begin_pass()

    if y is None or X is None:
        return acc
    y = np.atleast_1d(y)
    X = np.asarray(X, dtype=np.float64)
    if X.ndim == 1:
        X = X.reshape(1, -1)
    if X.shape[1] != acc.len:
        raise DimensionMismatch(
            f"Expected {acc.len} features, got {X.shape[1]}",
            stage="accumulation", expected=acc.len, actual=X.shape[1]
        )
    y, X, _ = _utils.drop_missing(check_binary(y), X)
    if len(y) == 0:
        return acc

    eta = X @ acc.coef
    mu = _LINK.sigmoid(eta)
    w = _LINK.variance(mu)
    xd = X @ acc.dir

    hessian = acc.hessian
    if hessian is not None:
        from .._backends import get_backend
        hessian = hessian + get_backend(backend).gram(X, y, w).XtX

    return replace(
        acc,
        count=acc.count + len(y),
        grad_new=acc.grad_new + X.T @ (y - mu),
        dTHd=acc.dTHd + float(np.sum(w * xd * xd)),
        hess_dir=acc.hess_dir + X.T @ (w * xd),
        log_likelihood=acc.log_likelihood + _LINK.log_likelihood(y, eta),
        hessian=hessian,
    )


def cg_combine(a: Optional[CGState], b: Optional[CGState]) -> Optional[CGState]:
    """Merge two partial aggregates of the same pass."""
    if a is None or a.count == 0:
        return b if b is not None else a
    if b is None or b.count == 0:
        return a
    if a.len != b.len:
        raise DimensionMismatch(
            f"Cannot merge states with {a.len} and {b.len} coefficients",
            stage="combination", expected=a.len, actual=b.len
        )
    if a.iteration != b.iteration:
        raise ValueError(
            f"Cannot merge partial states of iterations {a.iteration} and {b.iteration}"
        )
    return replace(
        a,
        count=a.count + b.count,
        grad_new=a.grad_new + b.grad_new,
        dTHd=a.dTHd + b.dTHd,
        hess_dir=a.hess_dir + b.hess_dir,
        log_likelihood=a.log_likelihood + b.log_likelihood,
        hessian=None if a.hessian is None else a.hessian + b.hessian,
    )


def cg_finalize(acc: CGState) -> CGState:
    """
    Turn a completed pass aggregate into the state for the next iteration.

    Raises
    ------
    InsufficientData
        If the pass saw no observations
    NumericOverflow
        If the gradient, curvature or log-likelihood is not finite
    """
    if acc.count == 0:
        raise InsufficientData("No observations in CG pass", stage="iteration",
                               count=0, n_features=acc.len)
    _check_finite(acc.grad_new, "gradient")
    _check_finite(acc.log_likelihood, "log-likelihood")

    grad_new = acc.grad_new
    if acc.hessian is not None:
        direction = grad_new
        hess_dir = acc.hessian @ direction
        dTHd = dot(direction, hess_dir)
    else:
        direction = acc.dir
        hess_dir = acc.hess_dir
        dTHd = acc.dTHd
    _check_finite(hess_dir, "curvature")
    _check_finite(dTHd, "curvature")

    done = dict(hessian=None, iteration=acc.iteration + 1, grad=grad_new,
                dTHd=dTHd, hess_dir=hess_dir)

    if not dTHd > _EPS * dot(direction, direction):
        log.debug("CG iteration %d: no curvature along search direction",
                  acc.iteration)
        return replace(acc, dir=direction, stalled=True, **done)

    alpha = dot(grad_new, direction) / dTHd
    coef = acc.coef + alpha * direction
    _check_finite(coef, "coefficients")

    # Gradient at the new coefficients under the local quadratic model
    grad_pred = grad_new - alpha * hess_dir
    denom = dot(grad_new, grad_new)
    beta = max(0.0, dot(grad_pred, grad_pred - grad_new) / denom) if denom > 0 else 0.0

    log.debug("CG iteration %d: loglik=%.6g alpha=%.4g beta=%.4g",
              acc.iteration, acc.log_likelihood, alpha, beta)

    return replace(
        acc,
        coef=coef,
        dir=grad_pred + beta * direction,
        beta=beta,
        **done,
    )


def cg_step(previous: CGState, partitions, backend=None, n_jobs: int = 1) -> CGState:
    """
    One full CG iteration: fold every partition, merge, finalize.

    Parameters
    ----------
    previous : CGState
        Finalized state of the previous iteration (or CGState.initial(p))
    partitions : iterable of (y, X)
        Label vectors and feature matrices, one pair per partition
    """
    from ..aggregate import fold_partitions

    acc = fold_partitions(
        partitions,
        lambda part: cg_accumulate(None, part[0], part[1], previous, backend),
        cg_combine,
        n_jobs=n_jobs,
    )
    if acc is None:
        acc = previous.begin_pass()
    return cg_finalize(acc)


def _check_finite(value, quantity):
    if not np.all(np.isfinite(value)):
        raise NumericOverflow(
            f"Non-finite {quantity} in CG iteration", stage="iteration",
            quantity=quantity
        )
