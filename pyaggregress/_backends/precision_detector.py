"""
Hardware detection for the partition Gram backends.

Sufficient statistics are summed across many partitions, so PyAggregress
only ever accumulates in FP64. This module decides whether a GPU can do
that at useful speed.
"""

import warnings
from dataclasses import dataclass
from typing import Optional
from enum import Enum


class PrecisionSupport(Enum):
    """FP64 support level for hardware."""
    NO_GPU = "no_gpu"            # No GPU available
    NO_FP64 = "no_fp64"          # GPU exists but no FP64 (Apple Metal)
    GIMPED_FP64 = "gimped_fp64"  # FP64 exists but slow (consumer NVIDIA)
    FULL_FP64 = "full_fp64"      # Full-speed FP64 (A100, H100)


@dataclass
class GPUCapabilities:
    """
    GPU capability information.

    Attributes
    ----------
    has_gpu : bool
        Whether any GPU is available
    gpu_name : str
        Human-readable GPU name
    gpu_type : str
        'cuda', 'metal', or 'none'
    fp64_support : PrecisionSupport
        Level of FP64 support
    fp64_throughput_ratio : float
        Ratio of FP64 to FP32 throughput
    """
    has_gpu: bool
    gpu_name: str
    gpu_type: str
    fp64_support: PrecisionSupport
    fp64_throughput_ratio: float

    @property
    def can_accumulate(self) -> bool:
        """Whether the GPU can hold FP64 sufficient statistics at all."""
        return self.fp64_support in (PrecisionSupport.FULL_FP64,
                                     PrecisionSupport.GIMPED_FP64)

    @property
    def recommended(self) -> bool:
        """Whether 'auto' should pick the GPU over the CPU."""
        return self.fp64_support == PrecisionSupport.FULL_FP64


_NO_GPU = GPUCapabilities(
    has_gpu=False,
    gpu_name="CPU only",
    gpu_type="none",
    fp64_support=PrecisionSupport.NO_GPU,
    fp64_throughput_ratio=1.0,
)


def detect_gpu_capabilities() -> GPUCapabilities:
    """
    Detect GPU hardware and its FP64 capabilities.

    Returns
    -------
    GPUCapabilities
        Detected hardware capabilities
    """
    cuda_caps = _detect_cuda_capabilities()
    if cuda_caps is not None:
        return cuda_caps

    metal_caps = _detect_metal_capabilities()
    if metal_caps is not None:
        return metal_caps

    return _NO_GPU


def _detect_cuda_capabilities() -> Optional[GPUCapabilities]:
    """Detect NVIDIA CUDA GPU capabilities."""
    try:
        import torch
    except ImportError:
        return None

    if not torch.cuda.is_available():
        return None

    gpu_name = torch.cuda.get_device_name(0)
    support, ratio = _classify_nvidia_gpu(gpu_name)
    return GPUCapabilities(
        has_gpu=True,
        gpu_name=gpu_name,
        gpu_type="cuda",
        fp64_support=support,
        fp64_throughput_ratio=ratio,
    )


def _detect_metal_capabilities() -> Optional[GPUCapabilities]:
    """Detect Apple Metal GPU (present, but useless for FP64)."""
    try:
        import torch
    except ImportError:
        return None

    if not (hasattr(torch.backends, 'mps') and torch.backends.mps.is_available()):
        return None

    return GPUCapabilities(
        has_gpu=True,
        gpu_name="Apple Metal GPU",
        gpu_type="metal",
        fp64_support=PrecisionSupport.NO_FP64,
        fp64_throughput_ratio=0.0,
    )


def _classify_nvidia_gpu(gpu_name: str) -> tuple[PrecisionSupport, float]:
    """Classify an NVIDIA GPU by name into (support level, FP64/FP32 ratio)."""
    gpu_upper = gpu_name.upper()

    for model in ('A100', 'A800', 'H100', 'H800', 'V100', 'P100'):
        if model in gpu_upper:
            return PrecisionSupport.FULL_FP64, 0.5

    if any(series in gpu_upper for series in ('RTX 50', 'RTX 40', 'RTX 30')):
        return PrecisionSupport.GIMPED_FP64, 1/64

    if 'RTX 20' in gpu_upper or 'GTX' in gpu_upper:
        return PrecisionSupport.GIMPED_FP64, 1/32

    warnings.warn(
        f"Unknown NVIDIA GPU '{gpu_name}'. Assuming gimped FP64."
    )
    return PrecisionSupport.GIMPED_FP64, 1/32
