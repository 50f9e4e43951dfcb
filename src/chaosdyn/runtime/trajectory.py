# src/chaosdyn/runtime/trajectory.py
"""Convenience drivers on top of Integrator: final state and sampled orbits."""
from __future__ import annotations

from typing import Optional, Tuple
import numpy as np

from chaosdyn.errors import ConfigError
from chaosdyn.system import DynamicalSystem
from .integrator import Integrator

__all__ = ["evolve", "trajectory"]


def _check_horizon(name: str, value, discrete: bool) -> None:
    if value < 0:
        raise ConfigError(f"{name} must be non-negative, got {value!r}")
    if discrete and int(value) != value:
        raise ConfigError(f"{name} must be an integer for maps, got {value!r}")


def evolve(ds: DynamicalSystem, T=1, *, u0=None, **integrator_kwargs) -> np.ndarray:
    """
    State of ``ds`` after ``T`` iterations (maps) or ``T`` time units (flows).
    """
    _check_horizon("T", T, ds.is_discrete)
    integ = Integrator(ds, u0, **integrator_kwargs)
    if T > 0:
        integ.step(T)
    return integ.get_state()


def trajectory(
    ds: DynamicalSystem,
    T,
    *,
    dt: Optional[float] = None,
    Ttr=0,
    u0=None,
    **integrator_kwargs,
) -> Tuple[np.ndarray, np.ndarray]:
    """
    Sampled orbit of ``ds``.

    Maps are sampled every ``dt`` iterations (default 1), flows every ``dt``
    time units (default: the integrator's nominal step). The first ``Ttr``
    iterations or time units are discarded; the returned times start at
    ``t0 + Ttr``.

    Returns
    -------
    times : ndarray, shape (n,)
    states : ndarray, shape (n, D)
    """
    discrete = ds.is_discrete
    _check_horizon("T", T, discrete)
    _check_horizon("Ttr", Ttr, discrete)

    integ = Integrator(ds, u0, **integrator_kwargs)
    if dt is None:
        dt = 1 if discrete else integ.dt_nominal
    _check_horizon("dt", dt, discrete)
    if dt <= 0:
        raise ConfigError(f"dt must be positive, got {dt!r}")

    if Ttr > 0:
        integ.step(Ttr)
    t_start = integ.get_time()

    n = int(np.floor(T / dt + 1e-9)) + 1
    times = np.empty((n,), dtype=np.float64)
    states = np.empty((n, ds.dimension), dtype=np.float64)
    times[0] = t_start
    states[0] = integ.get_state()
    for i in range(1, n):
        integ.step(dt)
        times[i] = integ.get_time()
        states[i] = integ.get_state()
    if discrete:
        times = times.astype(np.int64)
    return times, states
