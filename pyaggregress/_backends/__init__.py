"""
Backend selection and management.

Provides a unified interface for computing partition cross-products on the
CPU (NumPy) or an NVIDIA GPU (PyTorch, FP64 only).
"""

from typing import Optional

from .base import BackendBase, PartitionGram
from .cpu_fp64_backend import CPUBackendFP64
from .precision_detector import detect_gpu_capabilities, GPUCapabilities

# PyTorch is an optional extra
try:
    from .gpu_fp64_backend import PyTorchBackendFP64
    import torch  # noqa: F401
    PYTORCH_AVAILABLE = True
except ImportError:
    PYTORCH_AVAILABLE = False


def get_backend(backend: Optional[str] = None) -> BackendBase:
    """
    Get computational backend.

    Parameters
    ----------
    backend : str or BackendBase, optional
        - None: use the configured default (see ``set_backend`` and the
          ``PYAGGREGRESS_BACKEND`` environment variable)
        - 'auto': GPU if one with full-speed FP64 is present, else CPU
        - 'cpu': NumPy FP64
        - 'gpu': PyTorch FP64 on CUDA
        A BackendBase instance is returned unchanged.

    Returns
    -------
    BackendBase
        Backend instance

    Examples
    --------
    >>> backend = get_backend('cpu')
    >>> backend.name
    'cpu_fp64'
    """
    if isinstance(backend, BackendBase):
        return backend

    if backend is None:
        from .._config import get_backend_name
        backend = get_backend_name()

    if backend == 'auto':
        caps = detect_gpu_capabilities()
        if caps.has_gpu and caps.recommended and PYTORCH_AVAILABLE:
            return PyTorchBackendFP64()
        return CPUBackendFP64()

    elif backend == 'cpu':
        return CPUBackendFP64()

    elif backend == 'gpu':
        caps = detect_gpu_capabilities()
        if not caps.has_gpu:
            raise ValueError(
                "No GPU detected.\n"
                "Options:\n"
                "  - Use backend='cpu'\n"
                "  - Install PyTorch with CUDA for NVIDIA"
            )
        if not caps.can_accumulate:
            raise RuntimeError(
                f"{caps.gpu_name} has no FP64 support; "
                f"sufficient statistics need FP64. Use backend='cpu'."
            )
        if not PYTORCH_AVAILABLE:
            raise RuntimeError(
                "GPU detected but PyTorch unavailable.\n"
                "Install: pip install torch"
            )
        return PyTorchBackendFP64()

    else:
        raise ValueError(
            f"Unknown backend: '{backend}'\n"
            f"Valid options: 'auto', 'cpu', 'gpu'"
        )


def list_available_backends() -> list:
    """List names of available backends."""
    backends = ['cpu']
    if PYTORCH_AVAILABLE and detect_gpu_capabilities().can_accumulate:
        backends.append('gpu')
    return backends


def print_backend_info():
    """Print detailed backend information (diagnostic)."""
    caps = detect_gpu_capabilities()

    print("PyAggregress Backend Status")
    print("=" * 50)
    print("\nAvailable Backends:")
    print("  CPU (FP64):          ✓ - NumPy cross-products")
    print(f"  PyTorch CUDA (FP64): {'✓' if PYTORCH_AVAILABLE and caps.can_accumulate else '✗'}")

    print("\nHardware Detection:")
    if caps.has_gpu:
        print(f"  GPU Type: {caps.gpu_type}")
        print(f"  GPU Name: {caps.gpu_name}")
        print(f"  FP64 Support: {caps.fp64_support.value}")
    else:
        print("  No GPU detected")

    print("\nRecommended Backend:")
    print(f"  {get_backend('auto').name}")


__all__ = [
    'get_backend',
    'list_available_backends',
    'print_backend_info',
    'BackendBase',
    'PartitionGram',
    'GPUCapabilities',
    'detect_gpu_capabilities',
    'PYTORCH_AVAILABLE',
]
