"""
GPU backend using PyTorch with FP64 precision.

Worth it for wide partitions (large p) on data center GPUs: A100, H100,
V100.
"""

import numpy as np
import warnings
from typing import Optional

from .base import BackendBase, PartitionGram


class PyTorchBackendFP64(BackendBase):
    """
    PyTorch GPU backend computing partition cross-products in float64.
    """

    def __init__(self, device: Optional[str] = None):
        """Initialize PyTorch FP64 backend."""
        self.name = "pytorch_fp64"
        self.precision = "fp64"

        try:
            import torch
            self.torch = torch
        except ImportError:
            raise ImportError(
                "PyTorch required for GPU backend. "
                "Install: pip install pyaggregress[gpu]"
            )

        if device == 'mps':
            raise RuntimeError(
                "FP64 not supported on Apple Metal. Use the CPU backend."
            )

        if device is None:
            if torch.cuda.is_available():
                device = 'cuda'
            else:
                warnings.warn("No CUDA GPU available, using CPU")
                device = 'cpu'

        self.device = torch.device(device)

        if device == 'cuda':
            from .precision_detector import detect_gpu_capabilities, PrecisionSupport
            caps = detect_gpu_capabilities()
            if caps.fp64_support == PrecisionSupport.GIMPED_FP64:
                warnings.warn(
                    f"Accumulating FP64 on {caps.gpu_name} with gimped FP64 support. "
                    f"This will be ~{int(1/caps.fp64_throughput_ratio)}x slower than FP32.",
                    UserWarning
                )

    def gram(
        self,
        X: np.ndarray,
        y: np.ndarray,
        weights: Optional[np.ndarray] = None
    ) -> PartitionGram:
        torch = self.torch
        n = len(y)

        X_gpu = torch.from_numpy(np.ascontiguousarray(X, dtype=np.float64)).to(self.device)
        y_gpu = torch.from_numpy(np.ascontiguousarray(y, dtype=np.float64)).to(self.device)

        if weights is None:
            XtW = X_gpu.T
            wy = y_gpu
        else:
            w_gpu = torch.from_numpy(
                np.ascontiguousarray(weights, dtype=np.float64)
            ).to(self.device)
            XtW = X_gpu.T * w_gpu.unsqueeze(0)
            wy = w_gpu * y_gpu

        return PartitionGram(
            XtX=(XtW @ X_gpu).cpu().numpy(),
            Xty=(XtW @ y_gpu).cpu().numpy(),
            yty=float(torch.dot(wy, y_gpu).item()),
            sum_y=float(torch.sum(wy).item()),
            count=n,
        )

    def get_device_info(self) -> dict:
        """Get backend information."""
        return {
            'backend': 'gpu',
            'precision': 'fp64',
            'device': str(self.device),
            'library': f'PyTorch {self.torch.__version__}',
        }
