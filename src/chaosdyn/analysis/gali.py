# src/chaosdyn/analysis/gali.py
"""
Generalized alignment index GALI_k.

GALI_k(t) is the volume spanned by k normalized deviation vectors, computed
as the product of the singular values of the D x k matrix whose columns are
those vectors. For chaotic orbits it decays exponentially,
    GALI_k ~ exp(-sum_{j=2..k} (l_1 - l_j) t),
while for regular orbits on a d-dimensional torus it stays constant
(k <= d) or decays as a power law in t.
"""
from __future__ import annotations

from typing import Optional, Tuple
import numpy as np
from scipy.linalg import svdvals

from chaosdyn.errors import ConfigError
from chaosdyn.runtime.integrator import TangentIntegrator
from chaosdyn.system import DynamicalSystem
from .orthonormal import normalize_columns

__all__ = ["gali", "gali_from_tangent", "alignment_index"]


def alignment_index(W) -> float:
    """Product of the singular values of the column-normalized matrix W."""
    normalized, _ = normalize_columns(W)
    return float(np.prod(svdvals(normalized, check_finite=False)))


def gali_from_tangent(
    tinteg: TangentIntegrator,
    tmax,
    dt: float = 1.0,
    threshold: float = 1e-12,
) -> Tuple[np.ndarray, np.ndarray]:
    """
    GALI_k trace of an initialized tangent integrator.

    Samples every iteration (maps) or every ``dt`` time units (flows) up to
    ``tmax`` after the current time. Deviation vectors are renormalized in
    place after each sample. Stops as soon as GALI_k < threshold.

    Returns (values, times); the first entry belongs to the current time.
    """
    discrete = tinteg.ds.is_discrete
    if tmax < 0:
        raise ConfigError(f"tmax must be non-negative, got {tmax!r}")
    if not threshold > 0:
        raise ConfigError(f"threshold must be positive, got {threshold!r}")
    if discrete:
        if int(tmax) != tmax:
            raise ConfigError(f"tmax must be an integer for maps, got {tmax!r}")
        n = int(tmax) + 1
        step_arg = None
    else:
        dt = float(dt)
        if not dt > 0.0:
            raise ConfigError(f"dt must be positive, got {dt!r}")
        n = int(np.floor(tmax / dt + 1e-9)) + 1
        step_arg = dt

    values = np.empty((n,), dtype=np.float64)
    times = np.empty((n,), dtype=np.float64)

    W, _ = normalize_columns(tinteg.get_deviations())
    tinteg.set_deviations(W)
    values[0] = float(np.prod(svdvals(W, check_finite=False)))
    times[0] = tinteg.get_time()

    count = 1
    while count < n and values[count - 1] >= threshold:
        tinteg.step(step_arg)
        W, _ = normalize_columns(tinteg.get_deviations())
        values[count] = float(np.prod(svdvals(W, check_finite=False)))
        times[count] = tinteg.get_time()
        tinteg.set_deviations(W)
        count += 1

    values = values[:count]
    times = times[:count]
    if discrete:
        times = times.astype(np.int64)
    return values, times


def gali(
    ds: DynamicalSystem,
    k: int,
    tmax,
    *,
    deviations=None,
    threshold: float = 1e-12,
    dt: float = 1.0,
    u0=None,
    rng=None,
    stepper: Optional[str] = None,
    jit: bool = False,
    **stepper_config,
) -> Tuple[np.ndarray, np.ndarray]:
    """
    GALI_k of the orbit starting at ``u0`` (default: ``ds.state``).

    Parameters
    ----------
    k : number of deviation vectors, 2 <= k <= D.
    tmax : final time (iterations for maps).
    deviations : initial deviation vectors (D x k matrix or k vectors).
        Default: Haar-random orthonormal vectors drawn from ``rng``.
    threshold : iteration stops once GALI_k falls below it.
    dt : flows only; sampling interval.

    A trace that reaches ``threshold`` quickly (exponential decay) signals a
    chaotic orbit; a plateau or power-law decay signals a regular one.
    """
    D = ds.dimension
    if int(k) != k or not 2 <= k <= D:
        raise ConfigError(f"GALI order k must be in [2, {D}], got {k!r}")
    tinteg = TangentIntegrator(
        ds, int(k), deviations, u0, rng=rng,
        stepper=stepper, jit=jit, **stepper_config,
    )
    return gali_from_tangent(tinteg, tmax, dt, threshold)
