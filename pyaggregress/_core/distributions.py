"""
Student-t cumulative distribution function.

Computed from the regularized incomplete beta function:

    P(T > |t|) = ½ · I_{ν/(ν+t²)}(ν/2, ½)

so cdf(ν, t) = 1 - ½ I(...) for t ≥ 0, and ½ I(...) for t < 0.
"""

import numpy as np
from scipy.special import betainc


def student_t_cdf(df, t):
    """
    Student-t CDF with ``df`` degrees of freedom.

    Parameters
    ----------
    df : int
        Degrees of freedom, at least 1
    t : float or array
        Quantile(s)

    Returns
    -------
    float or ndarray
        P(T ≤ t); a float for scalar ``t``

    Examples
    --------
    >>> student_t_cdf(11, 0.0)
    0.5
    """
    if df < 1:
        raise ValueError(f"Degrees of freedom must be at least 1, got {df}")

    t_arr = np.asarray(t, dtype=np.float64)
    df = float(df)

    with np.errstate(over='ignore', invalid='ignore'):
        x = df / (df + t_arr * t_arr)
    # t = ±inf gives x = 0, both tails exact
    x = np.where(np.isinf(t_arr), 0.0, x)

    tail = 0.5 * betainc(df / 2.0, 0.5, x)
    cdf = np.where(t_arr >= 0, 1.0 - tail, tail)
    cdf = np.where(np.isnan(t_arr), np.nan, cdf)

    if cdf.ndim == 0:
        return float(cdf)
    return cdf


def two_sided_pvalue(df, t):
    """p = 2 · (1 - cdf(df, |t|))."""
    if df < 1:
        raise ValueError(f"Degrees of freedom must be at least 1, got {df}")
    t_abs = np.abs(np.asarray(t, dtype=np.float64))
    # Direct tail avoids cancellation in 1 - cdf for large |t|
    with np.errstate(over='ignore', invalid='ignore'):
        x = float(df) / (float(df) + t_abs * t_abs)
    x = np.where(np.isinf(t_abs), 0.0, x)
    p = betainc(float(df) / 2.0, 0.5, x)
    p = np.where(np.isnan(t_abs), np.nan, p)
    if p.ndim == 0:
        return float(p)
    return p
