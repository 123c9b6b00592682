"""
CPU backend using NumPy.

This is the reference implementation every other backend is checked
against.
"""

import numpy as np
from typing import Optional

from .base import BackendBase, PartitionGram
from .._utils import check_array, check_vector


class CPUBackendFP64(BackendBase):
    """
    CPU backend using NumPy (BLAS) in FP64.
    """

    def __init__(self):
        self.name = "cpu_fp64"
        self.precision = "fp64"

    def gram(
        self,
        X: np.ndarray,
        y: np.ndarray,
        weights: Optional[np.ndarray] = None
    ) -> PartitionGram:
        X = check_array(X)
        y = check_vector(y)
        n = len(y)

        if weights is None:
            XtW = X.T
            wy = y
        else:
            w = check_vector(weights, name='weights')
            XtW = X.T * w
            wy = w * y

        return PartitionGram(
            XtX=XtW @ X,
            Xty=XtW @ y,
            yty=float(wy @ y),
            sum_y=float(np.sum(wy)),
            count=n,
        )

    def get_device_info(self) -> dict:
        """Get backend information."""
        import scipy
        return {
            'backend': 'cpu',
            'precision': 'fp64',
            'library': f'NumPy {np.__version__}, SciPy {scipy.__version__}',
        }
