"""
Core algorithms (backend-agnostic).
"""

from .stats import SufficientStats, OLSFit, accumulate, accumulate_partition, combine
from .linalg import solve_normal_equations, NormalEquationsSolution
from .distributions import student_t_cdf
from .cg import CGState, cg_accumulate, cg_combine, cg_finalize, cg_step
from .irls import IRLSState, IRLSAccumulator, irls_accumulate, irls_combine, irls_finalize, irls_step
from .termination import Optimizer, should_terminate

__all__ = [
    "SufficientStats",
    "OLSFit",
    "accumulate",
    "accumulate_partition",
    "combine",
    "solve_normal_equations",
    "NormalEquationsSolution",
    "student_t_cdf",
    "CGState",
    "cg_accumulate",
    "cg_combine",
    "cg_finalize",
    "cg_step",
    "IRLSState",
    "IRLSAccumulator",
    "irls_accumulate",
    "irls_combine",
    "irls_finalize",
    "irls_step",
    "Optimizer",
    "should_terminate",
]
