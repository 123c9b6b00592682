"""
Multi-linear regression as a single aggregation.

Every statistic here comes from one pass over the data that folds each
partition into sufficient statistics, merges the partial states and
finalizes in closed form. The data is never materialized as a whole.
"""

import logging
import numpy as np
import pandas as pd
from typing import Optional, Union, List, Sequence

from ._core.stats import SufficientStats, OLSFit, accumulate_partition, combine
from ._utils import to_partitions
from .aggregate import fold_partitions

log = logging.getLogger(__name__)

DataLike = Optional[Union[pd.DataFrame, Sequence[pd.DataFrame]]]


def aggregate_stats(partitions, backend=None, n_jobs: int = 1) -> SufficientStats:
    """
    Fold (y, X) partitions into one SufficientStats.

    Parameters
    ----------
    partitions : iterable of (y, X)
        Label vectors and feature matrices
    backend : str or BackendBase, optional
        Backend computing partition cross-products
    n_jobs : int
        Threads used to fold partitions
    """
    stats = fold_partitions(
        partitions,
        lambda part: accumulate_partition(None, part[0], part[1], backend=backend),
        combine,
        n_jobs=n_jobs,
    )
    if stats is None:
        return SufficientStats.empty()
    log.debug("aggregated %d observations, %s features", stats.count, stats.n_features)
    return stats


def _stats(y, X, data, add_intercept, backend, n_jobs) -> SufficientStats:
    partitions, _ = to_partitions(y, X, data, add_intercept=add_intercept)
    return aggregate_stats(partitions, backend=backend, n_jobs=n_jobs)


def mregr_coef(y, X, data: DataLike = None, add_intercept: bool = False,
               backend=None, n_jobs: int = 1, singular_ok: bool = True) -> np.ndarray:
    """
    Regression coefficients.

    Parameters
    ----------
    y : str or array
        Response column name, or response values
    X : list of str, str, or array
        Feature column names, one array-valued column, or a feature matrix
    data : DataFrame or sequence of DataFrames, optional
        The data set, or its partitions
    add_intercept : bool
        Prepend a column of ones
    backend : str, optional
        'auto', 'cpu' or 'gpu'; the configured default when omitted
    n_jobs : int
        Threads used to fold partitions
    singular_ok : bool
        Return the minimum-norm solution for rank-deficient designs instead
        of raising SingularMatrix

    Examples
    --------
    >>> mregr_coef('price', ['bedroom', 'bath', 'size'], data=houses,
    ...            add_intercept=True)
    array([ 27923.4, -35524.8,   2269.34,    130.794])   # rounded
    """
    return _stats(y, X, data, add_intercept, backend, n_jobs).coef(singular_ok)


def mregr_r2(y, X, data: DataLike = None, add_intercept: bool = False,
             backend=None, n_jobs: int = 1, singular_ok: bool = True) -> float:
    """Coefficient of determination R² (0 when the response is constant)."""
    return _stats(y, X, data, add_intercept, backend, n_jobs).r2(singular_ok)


def mregr_tstats(y, X, data: DataLike = None, add_intercept: bool = False,
                 backend=None, n_jobs: int = 1, singular_ok: bool = True) -> np.ndarray:
    """t-statistic of every coefficient."""
    return _stats(y, X, data, add_intercept, backend, n_jobs).tstats(singular_ok)


def mregr_pvalues(y, X, data: DataLike = None, add_intercept: bool = False,
                  backend=None, n_jobs: int = 1, singular_ok: bool = True) -> np.ndarray:
    """Two-sided p-value of every coefficient."""
    return _stats(y, X, data, add_intercept, backend, n_jobs).pvalues(singular_ok)


class MultiLinearRegression:
    """
    Fit a multi-linear regression by aggregation.

    Computes all statistics from a single pass.

    Examples
    --------
    >>> from pyaggregress import mregr
    >>> model = mregr(y='price', X=['bedroom', 'bath', 'size'],
    ...               data=houses, add_intercept=True)
    >>> model.summary()
    >>> model.coef        # Named coefficients
    >>> model.pvalues     # P-values for each coefficient

    Partitions are fitted the same way:

    >>> model = mregr(y='price', X='features', data=[part1, part2, part3])
    """

    def __init__(
        self,
        y: Union[str, np.ndarray],
        X: Union[List[str], str, np.ndarray],
        data: DataLike = None,
        add_intercept: bool = False,
        backend: Optional[str] = None,
        n_jobs: int = 1,
        singular_ok: bool = True,
    ):
        """
        Fit multi-linear regression.

        Parameters
        ----------
        y : str or array
            Response variable
        X : list of str, str, or array
            Predictors: column names, one array-valued column, or a matrix
        data : DataFrame or sequence of DataFrames, optional
            Dataset, whole or partitioned
        add_intercept : bool
            Prepend an intercept column
        backend : str, optional
            Computational backend: 'auto', 'cpu', 'gpu'
        n_jobs : int
            Threads used to fold partitions
        singular_ok : bool
            Allow rank-deficient designs (minimum-norm solution)
        """
        self.y_name = y if isinstance(y, str) else 'y'
        partitions, self.var_names = to_partitions(y, X, data, add_intercept=add_intercept)

        from ._backends import get_backend
        self.backend = get_backend(backend)
        self.stats = aggregate_stats(partitions, backend=self.backend, n_jobs=n_jobs)

        fit = OLSFit.from_stats(self.stats, singular_ok=singular_ok)
        self._fit = fit
        self.coefficients = fit.coef
        self.std_errors = fit.std_errors
        self.t_values = fit.t_values
        self.pvalues = fit.pvalues
        self.r_squared = fit.r_squared
        self.adj_r_squared = fit.adj_r_squared
        self.sigma = fit.sigma
        self.n_obs = fit.n_obs
        self.df_residual = fit.df_residual
        self.rank = fit.rank

        if len(self.var_names) != len(self.coefficients):
            self.var_names = [f'x{i}' for i in range(len(self.coefficients))]

    @property
    def coef(self) -> pd.Series:
        """Named coefficients (pandas Series)."""
        return pd.Series(self.coefficients, index=self.var_names)

    def summary(self):
        """Print summary of regression results."""
        print()
        print("=" * 80)
        print("MULTI-LINEAR REGRESSION RESULTS")
        print("=" * 80)
        print()

        print(f"Dependent variable: {self.y_name}")
        print(f"Number of observations: {self.n_obs}")
        print(f"Degrees of freedom: {self.df_residual} (residual)")
        if self._fit.method != "cholesky":
            print(f"Note: solved via pseudo-inverse (rank {self.rank})")
        print()

        print("Coefficients:")
        print("-" * 80)
        print(f"{'Variable':<20} {'Estimate':>12} {'Std. Error':>12} {'t value':>10} {'Pr(>|t|)':>12}")
        print("-" * 80)

        for i, name in enumerate(self.var_names):
            p = self.pvalues[i]
            if np.isnan(p):
                sig = ' (aliased)'
                p_str = 'NA'
            else:
                if p < 0.001:
                    sig = ' ***'
                elif p < 0.01:
                    sig = ' **'
                elif p < 0.05:
                    sig = ' *'
                elif p < 0.1:
                    sig = ' .'
                else:
                    sig = ''
                p_str = f"{p:.4f}" if p >= 0.0001 else "<.0001"

            print(f"{name:<20} {self.coefficients[i]:>12.4f} {self.std_errors[i]:>12.4f} "
                  f"{self.t_values[i]:>10.3f} {p_str:>12}{sig}")

        print("-" * 80)
        print("Signif. codes:  0 '***' 0.001 '**' 0.01 '*' 0.05 '.' 0.1 ' ' 1")
        print()

        print(f"Residual standard error: {self.sigma:.4f} on {self.df_residual} degrees of freedom")
        print(f"Multiple R-squared:      {self.r_squared:.4f}")
        print(f"Adjusted R-squared:      {self.adj_r_squared:.4f}")
        print()
        print(f"Backend: {self.backend.name}")
        print("=" * 80)
        print()

    def __repr__(self):
        return f"MultiLinearRegression(n={self.n_obs}, p={len(self.coefficients)}, R²={self.r_squared:.3f})"


def mregr(y, X, data=None, **kwargs) -> MultiLinearRegression:
    """
    Fit multi-linear regression (convenience function).

    Parameters
    ----------
    y : str or array
        Response variable
    X : list of str, str, or array
        Predictor variables
    data : DataFrame or sequence of DataFrames, optional
        Dataset
    **kwargs
        Additional arguments passed to MultiLinearRegression

    Returns
    -------
    MultiLinearRegression
        Fitted model object
    """
    return MultiLinearRegression(y=y, X=X, data=data, **kwargs)
