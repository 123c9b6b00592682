"""
Logistic regression driver.

Loops one aggregation pass per iteration (CG or IRLS step) over the
partitions of the data until the termination predicate fires or the
iteration budget is spent. The driver holds no numeric logic; the step
functions and the predicate in ``pyaggregress._core`` do all the work.
"""

import logging
import warnings
import numpy as np
import pandas as pd
from typing import List, Optional, Union

from ._config import DEFAULT_NUM_ITERATIONS, DEFAULT_OPTIMIZER, DEFAULT_PRECISION
from ._core.cg import CGState, cg_step
from ._core.families import check_binary
from ._core.irls import IRLSState, irls_step
from ._core.termination import Optimizer, should_terminate
from ._utils import to_partitions
from .exceptions import InsufficientData

log = logging.getLogger(__name__)

_SOLVERS = {
    Optimizer.CG: (CGState.initial, cg_step),
    Optimizer.IRLS: (IRLSState.initial, irls_step),
}


class LogisticRegression:
    """
    Fit a logistic regression by iterated aggregation.

    Examples
    --------
    >>> from pyaggregress import logreg
    >>> model = logreg(patients, 'second_attack', ['treatment', 'trait_anxiety'],
    ...                add_intercept=True, optimizer='cg', num_iterations=50)
    >>> model.coef
    >>> model.log_likelihoods   # one per iteration
    """

    def __init__(
        self,
        source,
        dep_column,
        indep_column,
        num_iterations: int = DEFAULT_NUM_ITERATIONS,
        optimizer: Union[str, Optimizer] = DEFAULT_OPTIMIZER,
        precision: float = DEFAULT_PRECISION,
        add_intercept: bool = False,
        backend: Optional[str] = None,
        n_jobs: int = 1,
    ):
        """
        Parameters
        ----------
        source : DataFrame, sequence of DataFrames, or None
            Training data, whole or partitioned. None means dep_column and
            indep_column hold the values themselves.
        dep_column : str or array
            Dependent column (boolean or 0/1)
        indep_column : list of str, str, or array
            Independent columns, one array-valued column, or a matrix
        num_iterations : int
            Maximum number of iterations
        optimizer : str
            'irls' (alias 'newton') or 'cg'
        precision : float
            Log-likelihood change between successive iterations that counts
            as converged; 0 ignores the log-likelihood and runs the full
            iteration budget
        add_intercept : bool
            Prepend an intercept column
        backend : str, optional
            Computational backend: 'auto', 'cpu', 'gpu'
        n_jobs : int
            Threads used to fold partitions
        """
        self.optimizer = Optimizer.parse(optimizer)
        if num_iterations < 1:
            raise ValueError(f"num_iterations must be at least 1, got {num_iterations}")
        if precision < 0:
            raise ValueError(f"precision must be non-negative, got {precision}")

        self.num_iterations = num_iterations
        self.precision = precision
        self.y_name = dep_column if isinstance(dep_column, str) else 'y'

        partitions, self.var_names = to_partitions(
            dep_column, indep_column, source, add_intercept=add_intercept
        )
        partitions = [(check_binary(y_part, self.y_name), X_part)
                      for y_part, X_part in partitions]
        n_features = _n_features(partitions)

        from ._backends import get_backend
        self.backend = get_backend(backend)

        initial, step = _SOLVERS[self.optimizer]
        state = initial(n_features)
        old = None
        self.log_likelihoods: List[float] = []
        self.converged = False

        while True:
            new = step(state, partitions, backend=self.backend, n_jobs=n_jobs)
            self.log_likelihoods.append(new.log_likelihood)
            log.debug("%s iteration %d: loglik=%.8g", self.optimizer.value,
                      new.iteration, new.log_likelihood)

            self.converged = should_terminate(old, new, self.optimizer, precision)
            if self.converged or should_terminate(
                old, new, self.optimizer, precision, num_iterations
            ):
                state = new
                break
            old, state = new, new

        self.state = state
        self.iterations = state.iteration
        self.coefficients = np.asarray(state.coef)

        if not self.converged and precision > 0:
            warnings.warn(
                f"{self.optimizer.value} did not converge within "
                f"{num_iterations} iterations (precision {precision})",
                RuntimeWarning
            )
        log.info("%s finished after %d iterations (converged=%s, loglik=%.8g)",
                 self.optimizer.value, self.iterations, self.converged,
                 self.log_likelihoods[-1])

        if len(self.var_names) != len(self.coefficients):
            self.var_names = [f'x{i}' for i in range(len(self.coefficients))]

    @property
    def coef(self) -> pd.Series:
        """Named coefficients (pandas Series)."""
        return pd.Series(self.coefficients, index=self.var_names)

    @property
    def log_likelihood(self) -> float:
        """Log-likelihood evaluated in the last pass."""
        return self.log_likelihoods[-1]

    def __repr__(self):
        return (f"LogisticRegression(optimizer={self.optimizer.value}, "
                f"iterations={self.iterations}, converged={self.converged})")


def _n_features(partitions) -> int:
    for y_part, X_part in partitions:
        keep = ~np.isnan(y_part) & ~np.isnan(X_part).any(axis=1)
        if keep.any():
            return X_part.shape[1]
    raise InsufficientData("No complete observations in source", stage="iteration",
                           count=0)


def logreg(source, dep_column, indep_column, **kwargs) -> LogisticRegression:
    """
    Fit logistic regression (convenience function).

    Returns
    -------
    LogisticRegression
        Fitted model object with its iteration history
    """
    return LogisticRegression(source, dep_column, indep_column, **kwargs)


def logreg_coef(
    source,
    dep_column,
    indep_column,
    num_iterations: int = DEFAULT_NUM_ITERATIONS,
    optimizer: Union[str, Optimizer] = DEFAULT_OPTIMIZER,
    precision: float = DEFAULT_PRECISION,
    **kwargs,
) -> np.ndarray:
    """
    Logistic regression coefficients.

    Parameters
    ----------
    source : DataFrame or sequence of DataFrames
        Training data
    dep_column : str
        Name of the dependent column (boolean or 0/1)
    indep_column : str or list of str
        Name of the array-valued independent column, or of the feature columns
    num_iterations : int, default 20
        Maximum number of iterations
    optimizer : str, default 'irls'
        'irls'/'newton' for iteratively reweighted least squares, 'cg' for
        conjugate gradient
    precision : float, default 1e-4
        Difference between log-likelihood values in successive iterations
        that indicates convergence, or 0 to ignore log-likelihood values

    Returns
    -------
    ndarray
        Coefficients, one per independent variable
    """
    return LogisticRegression(
        source, dep_column, indep_column,
        num_iterations=num_iterations,
        optimizer=optimizer,
        precision=precision,
        **kwargs,
    ).coefficients
