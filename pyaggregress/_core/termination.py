"""
Optimizer selection and the termination test for the logistic solvers.

Optimizer names are validated once, at the boundary, and travel as the
Optimizer enum afterwards.
"""

import logging
import math
from enum import Enum
from typing import Optional, Union

from ..exceptions import InvalidOptimizer

log = logging.getLogger(__name__)


class Optimizer(Enum):
    """Iterative solver for logistic regression."""
    CG = "cg"
    IRLS = "irls"

    @classmethod
    def parse(cls, name: Union[str, "Optimizer"]) -> "Optimizer":
        """
        Resolve an optimizer name.

        Accepts 'cg', 'irls' and its alias 'newton' (case-insensitive).

        Raises
        ------
        InvalidOptimizer
            For any other name
        """
        if isinstance(name, cls):
            return name
        if not isinstance(name, str):
            raise InvalidOptimizer(name)
        key = name.strip().lower()
        if key == "newton":
            key = "irls"
        try:
            return cls(key)
        except ValueError:
            raise InvalidOptimizer(name) from None


def should_terminate(
    old_state,
    new_state,
    optimizer: Union[str, Optimizer],
    precision: float,
    num_iterations: Optional[int] = None,
) -> bool:
    """
    Decide whether the iterative solver is done.

    Parameters
    ----------
    old_state : CGState or IRLSState or None
        State before the last iteration (None before the first)
    new_state : CGState or IRLSState
        State after the last iteration
    optimizer : str or Optimizer
        'cg', 'irls' or 'newton'
    precision : float
        Log-likelihood change that counts as converged. 0 ignores the
        log-likelihood; the run then stops only on the iteration budget.
    num_iterations : int, optional
        Iteration budget. When given, reaching it terminates.

    Returns
    -------
    bool

    Notes
    -----
    Converged when |ΔLL| < precision (absolute) or |ΔLL|/|LL_old| < precision
    (relative). A CG state that can make no further progress also
    terminates.
    """
    Optimizer.parse(optimizer)
    if precision < 0:
        raise ValueError(f"precision must be non-negative, got {precision}")

    if num_iterations is not None and new_state.iteration >= num_iterations:
        log.debug("iteration budget of %d exhausted", num_iterations)
        return True

    if getattr(new_state, "stalled", False):
        return True

    if old_state is None or precision == 0:
        return False

    old_ll = old_state.log_likelihood
    new_ll = new_state.log_likelihood
    if not (math.isfinite(old_ll) and math.isfinite(new_ll)):
        return False

    delta = abs(new_ll - old_ll)
    if delta < precision:
        return True
    return old_ll != 0 and delta / abs(old_ll) < precision
