"""
Linear-algebra primitives for the normal equations.

Only what the regression engine needs: a symmetric positive
(semi-)definite solve with an inverse, outer products and dot products.
"""

import warnings
import numpy as np
from dataclasses import dataclass
from scipy.linalg import cho_factor, cho_solve, pinvh, LinAlgError

from ..exceptions import NumericOverflow, SingularMatrix

# Relative eigenvalue cutoff on XtX for the rank and the Cholesky acceptance test
RCOND = 1e-12


@dataclass
class NormalEquationsSolution:
    """Solution of XtX β = Xty."""
    coef: np.ndarray       # β
    inverse: np.ndarray    # XtX⁻¹ (pseudo-inverse when rank-deficient)
    rank: int              # Numerical rank of XtX
    method: str            # 'cholesky' or 'pinv'


def solve_normal_equations(
    XtX: np.ndarray,
    Xty: np.ndarray,
    singular_ok: bool = True,
    stage: str = "finalization",
) -> NormalEquationsSolution:
    """
    Solve the normal equations XtX β = Xty.

    Cholesky on XtX first. If XtX is not positive definite, or the
    Cholesky factor shows a reciprocal condition number below RCOND, fall
    back to the eigen-decomposition pseudo-inverse, which returns the
    minimum-norm solution.

    Parameters
    ----------
    XtX : ndarray, shape (p, p)
        Symmetric cross-product matrix
    Xty : ndarray, shape (p,)
        Right-hand side
    singular_ok : bool
        Accept the minimum-norm solution of a rank-deficient system
        (with a RuntimeWarning). If False, rank deficiency raises.
    stage : str
        Stage reported by SingularMatrix

    Returns
    -------
    NormalEquationsSolution

    Raises
    ------
    SingularMatrix
        If XtX is numerically zero, or rank-deficient with singular_ok=False
    """
    XtX = np.asarray(XtX, dtype=np.float64)
    Xty = np.asarray(Xty, dtype=np.float64)
    p = XtX.shape[0]
    tol = RCOND

    if not (np.all(np.isfinite(XtX)) and np.all(np.isfinite(Xty))):
        raise NumericOverflow(
            "Normal equations contain NaN or Inf", stage=stage,
            quantity="XtX"
        )

    try:
        factor = cho_factor(XtX, lower=False, check_finite=True)
        diag = np.abs(np.diag(factor[0]))
        # diag(R)² approximates the eigenvalue spread of XtX
        if diag.min() ** 2 >= tol * diag.max() ** 2:
            coef = cho_solve(factor, Xty)
            inverse = cho_solve(factor, np.eye(p))
            return NormalEquationsSolution(
                coef=coef,
                inverse=(inverse + inverse.T) / 2,
                rank=p,
                method="cholesky",
            )
    except LinAlgError:
        pass

    rank = numerical_rank(XtX, tol)
    if rank == 0:
        raise SingularMatrix(
            "Normal equations have no solution: cross-product matrix is zero",
            stage=stage, rank=0, expected_rank=p
        )
    if rank < p and not singular_ok:
        raise SingularMatrix(
            f"Singular fit: rank {rank} < {p} coefficients",
            stage=stage, rank=rank, expected_rank=p
        )

    inverse = pinvh(XtX, atol=0.0, rtol=tol)
    if rank < p:
        warnings.warn(
            f"Cross-product matrix is rank-deficient (rank {rank} < {p}); "
            f"returning the minimum-norm solution",
            RuntimeWarning
        )
    else:
        warnings.warn(
            "Cross-product matrix is ill-conditioned; solved via pseudo-inverse",
            RuntimeWarning
        )
    return NormalEquationsSolution(
        coef=inverse @ Xty,
        inverse=inverse,
        rank=rank,
        method="pinv",
    )


def numerical_rank(XtX: np.ndarray, tol: float) -> int:
    """Rank of a symmetric PSD matrix, relative to its largest eigenvalue."""
    eig = np.abs(np.linalg.eigvalsh(XtX))
    if eig.size == 0 or eig.max() == 0:
        return 0
    return int(np.sum(eig > tol * eig.max()))


def outer(x: np.ndarray) -> np.ndarray:
    """x xᵀ."""
    return np.outer(x, x)


def dot(a: np.ndarray, b: np.ndarray) -> float:
    return float(np.dot(a, b))
