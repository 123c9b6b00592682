"""Run defaults and backend configuration for PyAggregress.

Defaults for the logistic regression driver match the original
aggregate-based implementation: 20 iterations, the IRLS optimizer and a
log-likelihood precision of 1e-4.

Backend resolution order (first match wins):
    1. Programmatic override via :func:`set_backend`.
    2. The ``PYAGGREGRESS_BACKEND`` environment variable.
    3. ``"auto"``: GPU (PyTorch FP64) if available, else CPU.

Examples:
    Force the CPU backend from the shell::

        export PYAGGREGRESS_BACKEND=cpu

    Or programmatically::

        import pyaggregress
        pyaggregress.set_backend("cpu")
"""

from __future__ import annotations

import os

DEFAULT_NUM_ITERATIONS = 20
DEFAULT_OPTIMIZER = "irls"
DEFAULT_PRECISION = 1e-4

# Fan-in of the partial-state merge tree
DEFAULT_SPLIT_EVERY = 8

# Lower bound on IRLS weights p(1-p)
IRLS_MIN_WEIGHT = 1e-10

ENV_BACKEND = "PYAGGREGRESS_BACKEND"
_VALID_BACKENDS = {"auto", "cpu", "gpu"}

_backend_override: str | None = None


def get_backend_name() -> str:
    """Return the configured backend name (``"auto"``, ``"cpu"`` or ``"gpu"``)."""
    if _backend_override is not None and _backend_override != "auto":
        return _backend_override

    env = os.environ.get(ENV_BACKEND, "").strip().lower()
    if env in _VALID_BACKENDS:
        return env

    return "auto"


def set_backend(name: str) -> None:
    """Override the backend selection.

    Args:
        name: One of ``"auto"``, ``"cpu"`` or ``"gpu"`` (case-insensitive).
            ``"auto"`` restores the default resolution order.

    Raises:
        ValueError: If *name* is not a recognised backend.
    """
    global _backend_override
    key = name.strip().lower()
    if key not in _VALID_BACKENDS:
        raise ValueError(
            f"Unknown backend: '{name}'. "
            f"Valid options: {sorted(_VALID_BACKENDS)}"
        )
    _backend_override = None if key == "auto" else key
