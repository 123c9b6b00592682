"""
Sufficient statistics for ordinary least squares.

A SufficientStats value holds count, XtX = Σ x xᵀ, Xty = Σ x y, yty = Σ y²
and sum_y = Σ y over the observations folded into it. Folding and merging
are pure and return new values; merging is element-wise addition, so it is
associative and commutative and partitions can be aggregated in any order.
The empty state is the identity of combine.

Finalizers derive the OLS fit from a completed state without revisiting
the data.
"""

import numpy as np
from dataclasses import dataclass
from typing import Optional

from .. import _utils
from ..exceptions import DimensionMismatch, InsufficientData
from .distributions import two_sided_pvalue
from .linalg import NormalEquationsSolution, outer, solve_normal_equations

_R2_ROUNDOFF = 1e-12
_ALIASED_TOL = 1e-8


@dataclass(frozen=True, eq=False)
class SufficientStats:
    """Partial (or complete) OLS aggregation state."""
    count: int = 0
    XtX: Optional[np.ndarray] = None
    Xty: Optional[np.ndarray] = None
    yty: float = 0.0
    sum_y: float = 0.0

    @classmethod
    def empty(cls) -> "SufficientStats":
        return cls()

    @property
    def is_empty(self) -> bool:
        return self.XtX is None

    @property
    def n_features(self) -> Optional[int]:
        return None if self.XtX is None else self.XtX.shape[0]

    def fold(self, y: float, x: np.ndarray) -> "SufficientStats":
        """Fold one complete observation. Use accumulate() for raw rows."""
        x = np.asarray(x, dtype=np.float64)
        if x.ndim != 1:
            raise DimensionMismatch(
                f"Feature vector must be 1-dimensional, got shape {x.shape}",
                stage="accumulation"
            )
        y = float(y)
        if self.is_empty:
            return SufficientStats(
                count=1, XtX=outer(x), Xty=x * y, yty=y * y, sum_y=y
            )
        _check_width(self.n_features, len(x), "accumulation")
        return SufficientStats(
            count=self.count + 1,
            XtX=self.XtX + outer(x),
            Xty=self.Xty + x * y,
            yty=self.yty + y * y,
            sum_y=self.sum_y + y,
        )

    def fold_gram(self, gram) -> "SufficientStats":
        """Fold the cross-products of a whole partition (a PartitionGram)."""
        if gram.count == 0:
            return self
        part = SufficientStats(
            count=gram.count,
            XtX=np.asarray(gram.XtX, dtype=np.float64),
            Xty=np.asarray(gram.Xty, dtype=np.float64),
            yty=float(gram.yty),
            sum_y=float(gram.sum_y),
        )
        if self.is_empty:
            return part
        _check_width(self.n_features, part.n_features, "accumulation")
        return _add(self, part)

    # Finalizers

    def solve(self, singular_ok: bool = True) -> NormalEquationsSolution:
        self._check_dof()
        return solve_normal_equations(self.XtX, self.Xty, singular_ok=singular_ok)

    def coef(self, singular_ok: bool = True) -> np.ndarray:
        """Coefficients β solving XtX β = Xty."""
        return self.solve(singular_ok).coef

    def r2(self, singular_ok: bool = True) -> float:
        """Coefficient of determination; 0 when the total sum of squares is 0."""
        return OLSFit.from_stats(self, singular_ok).r_squared

    def tstats(self, singular_ok: bool = True) -> np.ndarray:
        return OLSFit.from_stats(self, singular_ok).t_values

    def pvalues(self, singular_ok: bool = True) -> np.ndarray:
        return OLSFit.from_stats(self, singular_ok).pvalues

    def _check_dof(self):
        if self.is_empty:
            raise InsufficientData(
                "No observations were aggregated", count=0, n_features=None
            )
        p = self.n_features
        if self.count <= p:
            raise InsufficientData(
                f"Need more observations than coefficients: "
                f"{self.count} observations, {p} coefficients",
                count=self.count, n_features=p
            )


@dataclass
class OLSFit:
    """Every OLS statistic derivable from one SufficientStats."""
    coef: np.ndarray
    std_errors: np.ndarray
    t_values: np.ndarray
    pvalues: np.ndarray
    r_squared: float
    adj_r_squared: float
    sigma: float              # Residual standard error
    ssr: float                # Residual sum of squares
    sst: float                # Total sum of squares
    n_obs: int
    df_residual: int
    rank: int
    method: str

    @classmethod
    def from_stats(cls, stats: SufficientStats, singular_ok: bool = True) -> "OLSFit":
        sol = stats.solve(singular_ok)
        n, p = stats.count, stats.n_features
        df_residual = n - p

        # Normal-equation identity: SSR = yty - βᵗ Xty
        ssr = max(stats.yty - float(sol.coef @ stats.Xty), 0.0)
        sst = max(stats.yty - stats.sum_y ** 2 / n, 0.0)

        if sst > 0:
            r_squared = 1.0 - ssr / sst
            # Without an intercept column R² can be genuinely negative;
            # only round-off just below zero is snapped back
            if -_R2_ROUNDOFF < r_squared < 0.0:
                r_squared = 0.0
        else:
            r_squared = 0.0
        adj_r_squared = 1.0 - (1.0 - r_squared) * (n - 1) / df_residual

        sigma2 = ssr / df_residual
        var_diag = np.clip(np.diag(sol.inverse), 0.0, None)
        std_errors = np.sqrt(sigma2 * var_diag)

        aliased = _aliased(sol, stats.XtX)
        # A perfect fit has zero standard errors and infinite t
        with np.errstate(divide='ignore', invalid='ignore'):
            t_values = np.where(aliased, np.nan, sol.coef / std_errors)
        pvalues = two_sided_pvalue(df_residual, t_values)

        return cls(
            coef=sol.coef,
            std_errors=std_errors,
            t_values=t_values,
            pvalues=np.asarray(pvalues),
            r_squared=r_squared,
            adj_r_squared=adj_r_squared,
            sigma=float(np.sqrt(sigma2)),
            ssr=ssr,
            sst=sst,
            n_obs=n,
            df_residual=df_residual,
            rank=sol.rank,
            method=sol.method,
        )


def _aliased(sol: NormalEquationsSolution, XtX: np.ndarray) -> np.ndarray:
    """
    Coefficients that lie entirely in the null space of XtX.

    The diagonal of pinv(XtX) @ XtX (the projector onto the row space) is 1
    for an identified coefficient and 0 for one the data never touches.
    """
    if sol.method == "cholesky":
        return np.zeros(len(sol.coef), dtype=bool)
    return np.diag(sol.inverse @ XtX) < _ALIASED_TOL


def accumulate(state: Optional[SufficientStats], y, x) -> SufficientStats:
    """
    Fold one raw observation into state.

    Rows with a missing label or feature are skipped. ``state`` may be None
    or empty; the first complete row fixes the number of features.
    """
    if state is None:
        state = SufficientStats.empty()
    if _utils.is_missing(y, x):
        return state
    return state.fold(y, x)


def accumulate_partition(
    state: Optional[SufficientStats],
    y,
    X,
    weights=None,
    backend=None,
) -> SufficientStats:
    """
    Fold a whole partition of rows into state via a backend's cross-products.

    Gives the same state as folding the rows one at a time with accumulate().
    """
    from .._backends import get_backend

    if state is None:
        state = SufficientStats.empty()
    y, X, weights = _utils.drop_missing(y, X, weights)
    if len(y) == 0:
        return state
    return state.fold_gram(get_backend(backend).gram(X, y, weights))


def combine(a: Optional[SufficientStats], b: Optional[SufficientStats]) -> SufficientStats:
    """
    Merge two partial states.

    An empty (or None) input returns the other unchanged.
    """
    if a is None or a.is_empty:
        return b if b is not None else SufficientStats.empty()
    if b is None or b.is_empty:
        return a
    _check_width(a.n_features, b.n_features, "combination")
    return _add(a, b)


def _add(a: SufficientStats, b: SufficientStats) -> SufficientStats:
    return SufficientStats(
        count=a.count + b.count,
        XtX=a.XtX + b.XtX,
        Xty=a.Xty + b.Xty,
        yty=a.yty + b.yty,
        sum_y=a.sum_y + b.sum_y,
    )


def _check_width(expected, actual, stage):
    if expected != actual:
        raise DimensionMismatch(
            f"Expected {expected} features, got {actual}",
            stage=stage, expected=expected, actual=actual
        )
