# src/chaosdyn/analysis/orthonormal.py
"""
Orthonormalization helpers shared by the tangent-space estimators.

orthonormalize(A) returns (Q, r) with A = Q R and r = diag(R). Callers use
log|r_i| as the per-step growth of direction i. Degenerate columns (zero or
parallel) produce r_i -> 0 and are left to the caller.
"""
from __future__ import annotations

import math
from typing import Literal, Optional, Tuple
import numpy as np

from chaosdyn.errors import ConfigError

__all__ = [
    "QRMethod",
    "orthonormalize",
    "gram_schmidt",
    "random_orthonormal",
    "identity_basis",
    "normalize_columns",
]

QRMethod = Literal["householder", "gram_schmidt"]


def gram_schmidt(A: np.ndarray, Q: np.ndarray, r: np.ndarray) -> None:
    """
    Modified Gram-Schmidt of the columns of A into Q (may alias A).

    r receives the column norms after orthogonalization (diag(R) >= 0).
    A column that collapses to zero is left at zero with r_j = 0.
    """
    n_state, k = A.shape
    if Q is not A:
        Q[:, :] = A
    for j in range(k):
        for i_prev in range(j):
            if r[i_prev] == 0.0:
                continue
            dot = 0.0
            for row in range(n_state):
                dot += Q[row, i_prev] * Q[row, j]
            for row in range(n_state):
                Q[row, j] -= dot * Q[row, i_prev]

        norm_sq = 0.0
        for row in range(n_state):
            val = Q[row, j]
            norm_sq += val * val
        norm = math.sqrt(norm_sq)
        r[j] = norm
        if norm == 0.0:
            continue
        inv = 1.0 / norm
        for row in range(n_state):
            Q[row, j] *= inv


def orthonormalize(A, method: QRMethod = "householder") -> Tuple[np.ndarray, np.ndarray]:
    """
    Thin QR factorization of a D x k matrix (k <= D).

    method="householder" uses LAPACK via numpy; r keeps the sign of diag(R).
    method="gram_schmidt" uses modified Gram-Schmidt; r is non-negative.
    """
    A = np.asarray(A, dtype=np.float64)
    if A.ndim != 2:
        raise ConfigError(f"orthonormalize expects a 2-D matrix, got shape {A.shape}")
    if A.shape[1] > A.shape[0]:
        raise ConfigError(
            f"orthonormalize expects at most as many columns as rows, got shape {A.shape}"
        )
    if method == "householder":
        Q, R = np.linalg.qr(A, mode="reduced")
        return Q, np.array(np.diag(R), copy=True)
    if method == "gram_schmidt":
        Q = np.array(A, dtype=np.float64, copy=True)
        r = np.zeros((A.shape[1],), dtype=np.float64)
        gram_schmidt(Q, Q, r)
        return Q, r
    raise ConfigError(
        f"Unknown QR method {method!r}; expected 'householder' or 'gram_schmidt'"
    )


def random_orthonormal(D: int, k: Optional[int] = None, rng=None) -> np.ndarray:
    """
    First k columns of a Haar-distributed random orthogonal D x D matrix.

    rng: numpy Generator, integer seed or None.
    """
    if k is None:
        k = D
    if not 1 <= k <= D:
        raise ConfigError(f"k must be in [1, {D}], got {k!r}")
    gen = np.random.default_rng(rng)
    Z = gen.standard_normal((D, D))
    Q, R = np.linalg.qr(Z)
    # Sign correction makes the distribution Haar (Mezzadri 2007)
    signs = np.sign(np.diag(R))
    signs[signs == 0.0] = 1.0
    Q = Q * signs
    return np.ascontiguousarray(Q[:, :k])


def identity_basis(D: int, k: Optional[int] = None) -> np.ndarray:
    """Canonical basis (D, k) with k <= D."""
    if k is None:
        k = D
    return np.eye(D, k, dtype=np.float64)


def normalize_columns(A) -> Tuple[np.ndarray, np.ndarray]:
    """Return (A / |A_j| column-wise, column norms). Zero columns stay zero."""
    A = np.asarray(A, dtype=np.float64)
    norms = np.linalg.norm(A, axis=0)
    safe = np.where(norms > 0.0, norms, 1.0)
    return A / safe, norms
