# src/chaosdyn/analysis/lyapunov.py
"""
Lyapunov exponent estimators.

lyapunov_spectrum   QR (Benettin-Shimada-Nagashima) method on a TangentIntegrator.
max_lyapunov        Benettin two-trajectory method with rescaling along the
                    separation direction.

Both have low-level drivers (lyapunov_from_tangent, max_lyapunov_from_integrators)
that work on already-built integrators, so a caller sweeping many initial
conditions can reinit() and rerun without rebuilding the solver.
"""
from __future__ import annotations

import math
import warnings
from typing import Callable, Optional
import numpy as np

from chaosdyn.errors import ConfigError, StepFailError
from chaosdyn.jit import jit_compile
from chaosdyn.runtime.guards import get_allfinite_guard
from chaosdyn.runtime.integrator import Integrator, TangentIntegrator
from chaosdyn.runtime.runner_api import NAN_DETECTED
from chaosdyn.system import AnalyticJacobian, DynamicalSystem
from .orthonormal import QRMethod, identity_basis, orthonormalize, random_orthonormal

__all__ = [
    "lyapunov_spectrum",
    "lyapunov_from_tangent",
    "max_lyapunov",
    "max_lyapunov_from_integrators",
    "default_inittest",
]

# Transient defaults
_TTR_MAP = 100
_TTR_FLOW = 0.0

# Benettin defaults
_MLE_T_MAP = 100000
_MLE_T_FLOW = 10000.0
_MLE_D0_MAP = 1e-7
_MLE_D0_FLOW = 1e-9
_MLE_THRESHOLD_FACTOR_MAP = 1e3
_MLE_THRESHOLD_FACTOR_FLOW = 1e4
_MLE_DT_FLOW = 0.1


def _check_count(name: str, value) -> int:
    if int(value) != value or value < 1:
        raise ConfigError(f"{name} must be a positive integer, got {value!r}")
    return int(value)


def _check_positive(name: str, value) -> float:
    value = float(value)
    if not value > 0.0 or not math.isfinite(value):
        raise ConfigError(f"{name} must be finite and positive, got {value!r}")
    return value


def _resolve_ttr(ds: DynamicalSystem, Ttr):
    if Ttr is None:
        return _TTR_MAP if ds.is_discrete else _TTR_FLOW
    if Ttr < 0:
        raise ConfigError(f"Ttr must be non-negative, got {Ttr!r}")
    if ds.is_discrete and int(Ttr) != Ttr:
        raise ConfigError(f"Ttr must be an integer for maps, got {Ttr!r}")
    return Ttr


def _warm_up(ds: DynamicalSystem, u0, Ttr, integrator_kwargs) -> np.ndarray:
    """State after discarding Ttr iterations / time units of transient."""
    if Ttr == 0:
        return ds.get_state() if u0 is None else np.asarray(u0, dtype=np.float64)
    integ = Integrator(ds, u0, **integrator_kwargs)
    integ.step(Ttr)
    return integ.get_state()


# ---------------------------------------------------------------------------
# Spectrum
# ---------------------------------------------------------------------------

def lyapunov_from_tangent(
    tinteg: TangentIntegrator,
    N: int,
    dt: float = 1.0,
    *,
    qr_method: QRMethod = "householder",
    return_trace: bool = False,
):
    """
    Run N QR steps on an initialized tangent integrator.

    Each step advances the joint state by one iteration (maps) or ``dt``
    time units (flows), orthonormalizes the deviation vectors, accumulates
    log|r_i| and writes Q back. Exponents are not re-sorted.

    Returns the k exponents, or (trace, times) with ``trace[i]`` the running
    estimate after step i when ``return_trace`` is True.
    """
    N = _check_count("N", N)
    discrete = tinteg.ds.is_discrete
    if discrete:
        step_arg = None
        dt = 1.0
    else:
        dt = _check_positive("dt", dt)
        step_arg = dt

    k = tinteg.k
    acc = np.zeros((k,), dtype=np.float64)
    trace = np.empty((N, k), dtype=np.float64) if return_trace else None
    times = np.empty((N,), dtype=np.float64) if return_trace else None
    with np.errstate(divide="ignore"):
        for i in range(N):
            tinteg.step(step_arg)
            Q, r = orthonormalize(tinteg.get_deviations(), qr_method)
            acc += np.log(np.abs(r))
            tinteg.set_deviations(Q)
            if trace is not None:
                trace[i] = acc / ((i + 1) * dt)
                times[i] = tinteg.get_time()

    if return_trace:
        if discrete:
            times = times.astype(np.int64)
        return trace, times
    return acc / (N * dt)


def _accumulate_1d(f, jac, x, params, t, N, trace):
    """
    Sum of log|f'(x_{n+1})| over N iterations of a scalar map.

    Returns (sum, status, iterations done).
    """
    acc = 0.0
    y = np.empty((1,), dtype=np.float64)
    y[0] = x[0]
    for n in range(N):
        y[0] = np.asarray(f(y, params, t)).reshape(1)[0]
        t += 1
        if not math.isfinite(y[0]):
            return acc, NAN_DETECTED, n
        d = np.asarray(jac(y, params, t)).reshape(1)[0]
        acc += math.log(abs(d)) if d != 0.0 else -math.inf
        if trace.shape[0] > 0:
            trace[n] = acc / (n + 1)
    return acc, 0, N


def _lyapunov_1d(ds, N, x0, t0, return_trace, jit):
    provider = ds.jacobian
    f = jit_compile(ds.vector_field, jit=jit)
    jac = jit_compile(provider.fn, jit=jit) if isinstance(provider, AnalyticJacobian) else provider
    kernel = jit_compile(_accumulate_1d, jit=jit)
    trace = np.empty((N if return_trace else 0,), dtype=np.float64)
    x = np.asarray(x0, dtype=np.float64).reshape(1)
    acc, status, n_done = kernel(f, jac, x, ds.parameters, int(t0), N, trace)
    if status != 0:
        raise StepFailError(status, int(t0) + n_done, "non-finite state")
    if return_trace:
        times = np.arange(int(t0) + 1, int(t0) + N + 1, dtype=np.int64)
        return trace.reshape(N, 1), times
    return np.array([acc / N])


def lyapunov_spectrum(
    ds: DynamicalSystem,
    N: int,
    *,
    k: Optional[int] = None,
    Ttr=None,
    dt: float = 1.0,
    u0=None,
    deviations=None,
    rng=None,
    return_trace: bool = False,
    qr_method: QRMethod = "householder",
    stepper: Optional[str] = None,
    jit: bool = False,
    **stepper_config,
):
    """
    Lyapunov spectrum of ``ds`` by repeated QR decomposition.

    Parameters
    ----------
    N : number of QR steps.
    k : number of exponents (default: dimension).
    Ttr : transient discarded before the estimate (default 100 iterations for
        maps, 0.0 for flows).
    dt : flows only; time between QR steps.
    deviations : initial deviation vectors (D x k matrix or k vectors).
        Defaults to the first k canonical axes; ``"random"`` draws Haar-random
        orthonormal vectors from ``rng``.
    return_trace : return (trace, times) instead of the final estimate.

    Returns the k exponents in the order of the initial deviation vectors.
    """
    N = _check_count("N", N)
    D = ds.dimension
    if k is None:
        k = D if deviations is None or isinstance(deviations, str) else None
    Ttr = _resolve_ttr(ds, Ttr)
    if not ds.is_discrete:
        dt = _check_positive("dt", dt)
    integrator_kwargs = dict(stepper=stepper, jit=jit, **stepper_config)

    if ds.is_discrete and D == 1 and deviations is None and k == 1:
        # Scalar maps: accumulate log|f'| directly
        if jit and not isinstance(ds.jacobian, AnalyticJacobian):
            raise ConfigError("jit=True requires an analytic Jacobian")
        x = _warm_up(ds, u0, Ttr, integrator_kwargs)
        t0 = ds.t0 + Ttr
        return _lyapunov_1d(ds, N, x, t0, return_trace, jit)

    if isinstance(deviations, str):
        if deviations != "random":
            raise ConfigError(f"deviations must be a matrix, vectors or 'random', got {deviations!r}")
        deviations = random_orthonormal(D, k, rng=rng)
    elif deviations is None:
        if not 1 <= k <= D:
            raise ConfigError(f"k must be in [1, {D}], got {k!r}")
        deviations = identity_basis(D, k)

    u = _warm_up(ds, u0, Ttr, integrator_kwargs)
    t0 = ds.t0 + Ttr
    tinteg = TangentIntegrator(ds, k, deviations, u, t0, **integrator_kwargs)
    return lyapunov_from_tangent(
        tinteg, N, dt, qr_method=qr_method, return_trace=return_trace
    )


# ---------------------------------------------------------------------------
# Maximum exponent (Benettin)
# ---------------------------------------------------------------------------

def default_inittest(state: np.ndarray, d0: float) -> np.ndarray:
    """Offset every coordinate by d0/sqrt(D) (Euclidean distance d0)."""
    state = np.asarray(state, dtype=np.float64)
    return state + d0 / math.sqrt(state.size)


def _check_tolerances(integ: Integrator, d0: float) -> None:
    config = integ.stepper_config
    if config is None:
        return
    coarse = [
        (name, getattr(config, name))
        for name in ("atol", "rtol")
        if hasattr(config, name) and getattr(config, name) > d0
    ]
    if coarse:
        desc = ", ".join(f"{n}={v:g}" for n, v in coarse)
        warnings.warn(
            f"Solver tolerances ({desc}) are coarser than d0={d0:g}; integration "
            f"error will dominate the separation. Use atol, rtol <= d0/10.",
            RuntimeWarning,
            stacklevel=3,
        )


def max_lyapunov_from_integrators(
    given: Integrator,
    test: Integrator,
    T,
    *,
    d0: float,
    threshold: float,
    dt=1,
    return_trace: bool = False,
):
    """
    Benettin loop on two integrators placed at distance ``d0``.

    Both are advanced chunk by chunk (``dt`` iterations or time units) until
    their distance reaches ``threshold`` or ``T`` has elapsed. The log of the
    growth factor a = dist/d0 is accumulated and ``test`` is pulled back to
    ``given + (test - given)/a``.
    """
    d0 = _check_positive("d0", d0)
    threshold = float(threshold)
    if not threshold > d0:
        raise ConfigError(f"threshold ({threshold!r}) must be larger than d0 ({d0!r})")
    discrete = given.ds.is_discrete
    if discrete:
        dt = _check_count("dt", dt)
    else:
        dt = _check_positive("dt", dt)
    if not T > 0:
        raise ConfigError(f"T must be positive, got {T!r}")

    running = 0.0
    n_chunks = 0
    trace = []
    times = []
    elapsed = 0.0
    while elapsed < T:
        dist = d0
        chunks_since_rescale = 0
        while dist < threshold:
            given.step(dt)
            test.step(dt)
            n_chunks += 1
            chunks_since_rescale += 1
            elapsed = n_chunks * dt
            dist = float(np.linalg.norm(test.get_state() - given.get_state()))
            if elapsed >= T:
                break
        if dist == 0.0:
            # Trajectories merged; no direction left to rescale along
            running = -math.inf
            break
        a = dist / d0
        if (not discrete and chunks_since_rescale == 1
                and a > 10.0 * threshold / d0):
            warnings.warn(
                f"Separation grew by a factor {a:.3g} within a single chunk of "
                f"dt={dt:g}; decrease dt, increase threshold or decrease d0.",
                RuntimeWarning,
                stacklevel=2,
            )
        running += math.log(a)
        if return_trace:
            trace.append(running / elapsed)
            times.append(elapsed)
        u_given = given.get_state()
        test.set_state(u_given + (test.get_state() - u_given) / a)

    if return_trace:
        times_arr = np.asarray(times, dtype=np.int64 if discrete else np.float64)
        return np.asarray(trace, dtype=np.float64), times_arr
    return running / elapsed


def max_lyapunov(
    ds: DynamicalSystem,
    T=None,
    *,
    Ttr=None,
    d0: Optional[float] = None,
    threshold: Optional[float] = None,
    dt=None,
    inittest: Optional[Callable[[np.ndarray, float], np.ndarray]] = None,
    u0=None,
    return_trace: bool = False,
    stepper: Optional[str] = None,
    jit: bool = False,
    **stepper_config,
):
    """
    Maximum Lyapunov exponent by the Benettin two-trajectory method.

    Defaults: maps T=100000, Ttr=100, d0=1e-7, threshold=1e3*d0, dt=1;
    flows T=10000.0, Ttr=0.0, d0=1e-9, threshold=1e4*d0, dt=0.1.

    For adaptive flow steppers without explicit tolerances, atol and rtol are
    set to d0/10. Explicit tolerances coarser than d0 trigger a RuntimeWarning.

    inittest(state, d0) places the test trajectory; the default offsets every
    coordinate by d0/sqrt(D). Override it to keep the perturbed state inside
    a physically valid region.
    """
    discrete = ds.is_discrete
    if T is None:
        T = _MLE_T_MAP if discrete else _MLE_T_FLOW
    if d0 is None:
        d0 = _MLE_D0_MAP if discrete else _MLE_D0_FLOW
    d0 = _check_positive("d0", d0)
    if threshold is None:
        factor = _MLE_THRESHOLD_FACTOR_MAP if discrete else _MLE_THRESHOLD_FACTOR_FLOW
        threshold = factor * d0
    if not float(threshold) > d0:
        raise ConfigError(f"threshold ({threshold!r}) must be larger than d0 ({d0!r})")
    if dt is None:
        dt = 1 if discrete else _MLE_DT_FLOW
    Ttr = _resolve_ttr(ds, Ttr)
    if inittest is None:
        inittest = default_inittest

    if not discrete:
        settings = ds.solver.merged(stepper=stepper)
        if ("atol" not in settings.options and "rtol" not in settings.options
                and "atol" not in stepper_config and "rtol" not in stepper_config):
            from chaosdyn.steppers import get_stepper
            config = get_stepper(settings.stepper).default_config()
            if config is not None and hasattr(config, "atol"):
                stepper_config = dict(stepper_config, atol=d0 / 10.0, rtol=d0 / 10.0)
    integrator_kwargs = dict(stepper=stepper, jit=jit, **stepper_config)

    u = _warm_up(ds, u0, Ttr, integrator_kwargs)
    t0 = ds.t0 + Ttr
    given = Integrator(ds, u, t0, **integrator_kwargs)
    if not discrete:
        _check_tolerances(given, d0)
    test = Integrator(ds, inittest(given.get_state(), d0), t0, **integrator_kwargs)
    return max_lyapunov_from_integrators(
        given, test, T, d0=d0, threshold=threshold, dt=dt, return_trace=return_trace,
    )
