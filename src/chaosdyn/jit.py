# src/chaosdyn/jit.py
from __future__ import annotations
from typing import Callable
import warnings

# JIT toggle applied *only here*.
# If numba missing or jit=False, we return original Python callables.

__all__ = ["jit_compile", "njit", "numba_available"]

try:
    from numba import njit
    _NUMBA_OK = True
except Exception:
    _NUMBA_OK = False
    njit = None  # type: ignore


def numba_available() -> bool:
    return _NUMBA_OK


def jit_compile(fn: Callable, *, jit: bool = True) -> Callable:
    """
    Centralized JIT compilation with consistent error handling.

    Behavior:
        - If jit=False: returns original Python function
        - If jit=True and numba not installed: warns and returns original function
        - If jit=True and numba installed but compilation fails: raises RuntimeError

    Already-compiled dispatchers are returned unchanged.
    """
    if not jit:
        return fn

    if not _NUMBA_OK:
        warnings.warn(
            "Numba not found; falling back to pure Python (slower). "
            "Install numba for 10-100x speedup: pip install numba",
            RuntimeWarning,
            stacklevel=3,
        )
        return fn

    if getattr(fn, "signatures", None) is not None:
        return fn

    try:
        return njit(cache=False)(fn)
    except Exception as e:
        raise RuntimeError(
            f"JIT compilation with numba failed: {type(e).__name__}: {e}"
        ) from e
