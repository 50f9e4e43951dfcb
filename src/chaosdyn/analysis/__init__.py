# src/chaosdyn/analysis/__init__.py
"""Tangent-space estimators: Lyapunov exponents and GALI."""
from __future__ import annotations

from .orthonormal import (
    orthonormalize,
    random_orthonormal,
    identity_basis,
    normalize_columns,
)
from .lyapunov import (
    lyapunov_spectrum,
    lyapunov_from_tangent,
    max_lyapunov,
    max_lyapunov_from_integrators,
    default_inittest,
)
from .gali import gali, gali_from_tangent, alignment_index

__all__ = [
    "orthonormalize",
    "random_orthonormal",
    "identity_basis",
    "normalize_columns",
    "lyapunov_spectrum",
    "lyapunov_from_tangent",
    "max_lyapunov",
    "max_lyapunov_from_integrators",
    "default_inittest",
    "gali",
    "gali_from_tangent",
    "alignment_index",
]
