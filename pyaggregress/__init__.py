"""
PyAggregress: multi-linear and logistic regression as mergeable aggregation.

Sufficient statistics are folded per data partition, merged in any order
and finalized in closed form (OLS) or looped one pass per iteration
(logistic regression via CG or IRLS).

Copyright (C) 2024 SGCX
Licensed under GPL-3.0
"""

__version__ = "1.0.0"

# Main user-facing API
from .mregr import (
    mregr,
    MultiLinearRegression,
    mregr_coef,
    mregr_r2,
    mregr_tstats,
    mregr_pvalues,
)
from .logreg import logreg, LogisticRegression, logreg_coef
from ._core.distributions import student_t_cdf

# Aggregation primitives (for external drivers)
from ._core import (
    SufficientStats,
    accumulate,
    accumulate_partition,
    combine,
    CGState,
    cg_step,
    IRLSState,
    irls_step,
    Optimizer,
    should_terminate,
)
from .exceptions import (
    PyAggregressError,
    DimensionMismatch,
    InsufficientData,
    SingularMatrix,
    InvalidOptimizer,
    NumericOverflow,
)

# Backend utilities (for advanced users)
from ._backends import get_backend, list_available_backends
from ._config import set_backend

__all__ = [
    'mregr',
    'MultiLinearRegression',
    'mregr_coef',
    'mregr_r2',
    'mregr_tstats',
    'mregr_pvalues',
    'logreg',
    'LogisticRegression',
    'logreg_coef',
    'student_t_cdf',
    'SufficientStats',
    'accumulate',
    'accumulate_partition',
    'combine',
    'CGState',
    'cg_step',
    'IRLSState',
    'irls_step',
    'Optimizer',
    'should_terminate',
    'PyAggregressError',
    'DimensionMismatch',
    'InsufficientData',
    'SingularMatrix',
    'InvalidOptimizer',
    'NumericOverflow',
    'get_backend',
    'list_available_backends',
    'set_backend',
]
