from __future__ import annotations

import math
from typing import Callable
import numpy as np

from chaosdyn.jit import njit

__all__ = ["allfinite1d", "get_allfinite_guard"]


def _allfinite1d_impl(x: np.ndarray) -> bool:
    for i in range(x.size):
        if not math.isfinite(x[i]):
            return False
    return True


_allfinite1d_py = _allfinite1d_impl
_allfinite1d_jit = njit(cache=True)(_allfinite1d_impl) if njit is not None else _allfinite1d_impl

allfinite1d: Callable[[np.ndarray], bool] = _allfinite1d_py


def get_allfinite_guard(jit_enabled: bool) -> Callable[[np.ndarray], bool]:
    """Select Python or numba implementation based on jit flag."""
    if jit_enabled and njit is not None:
        return _allfinite1d_jit
    return _allfinite1d_py
