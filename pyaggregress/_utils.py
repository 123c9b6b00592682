"""
Utility functions.

Input validation and the null filter that runs before any accumulator
sees a row.
"""

import numpy as np


def check_array(X, name='X', dtype=np.float64):
    """Validate array input."""
    X = np.asarray(X, dtype=dtype)
    if X.ndim != 2:
        raise ValueError(f"{name} must be 2-dimensional")
    if not np.all(np.isfinite(X)):
        raise ValueError(f"{name} contains NaN or Inf")
    return X


def check_vector(y, name='y', dtype=np.float64):
    """Validate vector input."""
    y = np.asarray(y, dtype=dtype)
    if y.ndim != 1:
        raise ValueError(f"{name} must be 1-dimensional")
    if not np.all(np.isfinite(y)):
        raise ValueError(f"{name} contains NaN or Inf")
    return y


def is_missing(y, x) -> bool:
    """True if the observation (y, x) has a null label or feature."""
    if y is None or x is None:
        return True
    try:
        if np.isnan(y):
            return True
        x = np.asarray(x, dtype=np.float64)
    except (TypeError, ValueError):
        # Sequences holding None cannot be cast to float
        return True
    return bool(np.isnan(x).any())


def drop_missing(y, X, weights=None):
    """
    Remove rows with a null label, feature or weight.

    Parameters
    ----------
    y : array, shape (n,)
    X : array, shape (n, p)
    weights : array, shape (n,), optional

    Returns
    -------
    (y, X, weights) restricted to complete rows, as float64 arrays
    """
    y = np.asarray(y, dtype=np.float64)
    X = np.asarray(X, dtype=np.float64)
    if X.ndim == 1:
        X = X.reshape(1, -1) if len(y) == 1 else X.reshape(-1, 1)
    if X.ndim != 2:
        raise ValueError("X must be 2-dimensional")
    if len(y) != X.shape[0]:
        raise ValueError(
            f"y has {len(y)} rows but X has {X.shape[0]}"
        )

    keep = ~np.isnan(y) & ~np.isnan(X).any(axis=1)
    if weights is not None:
        weights = np.asarray(weights, dtype=np.float64)
        keep &= ~np.isnan(weights)
        weights = weights[keep]

    if keep.all():
        return y, X, weights
    return y[keep], X[keep], weights


def rows_to_matrix(cells, name='X'):
    """
    Stack a column of per-row sequences into an (n, p) matrix.

    Rows whose cell is null become all-NaN so that drop_missing skips them.
    Ragged rows raise DimensionMismatch.
    """
    from .exceptions import DimensionMismatch

    cells = list(cells)
    width = None
    for cell in cells:
        if cell is not None and not _is_scalar_nan(cell):
            width = len(cell)
            break
    if width is None:
        return np.empty((len(cells), 0), dtype=np.float64)

    out = np.full((len(cells), width), np.nan, dtype=np.float64)
    for i, cell in enumerate(cells):
        if cell is None or _is_scalar_nan(cell):
            continue
        if len(cell) != width:
            raise DimensionMismatch(
                f"{name} row {i} has {len(cell)} features, expected {width}",
                stage="accumulation", expected=width, actual=len(cell)
            )
        out[i] = [np.nan if v is None else v for v in cell]
    return out


def _is_scalar_nan(value) -> bool:
    return isinstance(value, float) and np.isnan(value)


def to_partitions(y, X, data=None, add_intercept=False):
    """
    Normalize user input into a list of (y, X) partitions plus feature names.

    Parameters
    ----------
    y : str or array
        Response column name in ``data``, or response values
    X : list of str, str, or array
        - list of str: feature column names in ``data``
        - str: one column of ``data`` whose cells are per-row sequences
        - array: feature matrix (n × p)
    data : DataFrame or sequence of DataFrames, optional
        A single frame, or the partitions of the data set
    add_intercept : bool
        Prepend a column of ones (named 'Intercept')

    Returns
    -------
    (partitions, names)
        partitions is a list of (y, X) float64 arrays; nulls are kept as NaN
        for the accumulators to filter.
    """
    import pandas as pd

    if data is None:
        if isinstance(y, str) or isinstance(X, str) or _is_name_list(X):
            raise ValueError("Must provide data when y or X are column names")
        X_arr = np.asarray(X, dtype=np.float64)
        if X_arr.ndim == 1:
            X_arr = X_arr.reshape(-1, 1)
        frames = [(np.asarray(y, dtype=np.float64), X_arr)]
        names = [f'x{i}' for i in range(X_arr.shape[1])]
    else:
        if isinstance(data, pd.DataFrame):
            data = [data]
        if not (isinstance(y, str) and (isinstance(X, str) or _is_name_list(X))):
            raise ValueError("y and X must be column names when data is given")
        frames = []
        names = None
        for frame in data:
            y_part = frame[y].to_numpy(dtype=np.float64, na_value=np.nan)
            if isinstance(X, str):
                X_part = rows_to_matrix(frame[X], name=X)
                if X_part.shape[1] == 0:
                    # every row of this partition is null
                    continue
                part_names = [f'{X}[{i}]' for i in range(X_part.shape[1])]
            else:
                X_part = frame[list(X)].to_numpy(dtype=np.float64, na_value=np.nan)
                part_names = list(X)
            frames.append((y_part, X_part))
            if len(y_part) > 0 and names is None:
                names = part_names
        if names is None:
            names = list(X) if _is_name_list(X) else []

    if add_intercept:
        frames = [
            (y_part, np.column_stack([np.ones(len(y_part)), X_part]))
            for y_part, X_part in frames
        ]
        names = ['Intercept'] + names
    return frames, names


def _is_name_list(X) -> bool:
    return isinstance(X, (list, tuple)) and len(X) > 0 and all(isinstance(x, str) for x in X)
