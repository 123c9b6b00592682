"""
Abstract base classes for backends.

A backend turns one partition of rows into its weighted cross-products.
Everything downstream of that (merging, solving) happens in NumPy.
"""

from abc import ABC, abstractmethod
import numpy as np
from typing import Optional
from dataclasses import dataclass


@dataclass
class PartitionGram:
    """Weighted cross-products of one partition (all FP64 numpy)."""
    XtX: np.ndarray     # Σ w x xᵀ, shape (p, p)
    Xty: np.ndarray     # Σ w x y, shape (p,)
    yty: float          # Σ w y²
    sum_y: float        # Σ w y
    count: int          # Rows folded


class BackendBase(ABC):
    """Abstract base class for all backends."""

    name: str
    precision: str = "fp64"

    @abstractmethod
    def gram(
        self,
        X: np.ndarray,
        y: np.ndarray,
        weights: Optional[np.ndarray] = None
    ) -> PartitionGram:
        """
        Compute the cross-products of one partition.

        Backends do the computation in their native types and only convert
        at entry/exit.

        Parameters
        ----------
        X : ndarray, shape (n, p)
            Feature rows, already filtered of nulls
        y : ndarray, shape (n,)
            Responses
        weights : ndarray, shape (n,), optional
            Observation weights (IRLS); unit weights when omitted

        Returns
        -------
        PartitionGram
        """
        pass

    @abstractmethod
    def get_device_info(self) -> dict:
        """Get backend information."""
        pass
