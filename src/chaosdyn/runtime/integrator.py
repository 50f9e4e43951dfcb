# src/chaosdyn/runtime/integrator.py
"""
Integrators: reusable steppers bound to a DynamicalSystem.

Integrator          advances the system state only.
TangentIntegrator   advances the joint D x (k+1) object [u | Y] where the k
                    columns of Y are deviation vectors evolved under the
                    linearized dynamics:
                        flows: du/dt = f(u),   dY/dt = J(u) Y
                        maps:  u' = f(u),      Y' = J(u') Y

Construction allocates every buffer (workspace, proposals, interpolation
scratch) once. reinit() only overwrites them, so one integrator can serve
many estimator runs.
"""
from __future__ import annotations

import math
from typing import Any, Callable, Optional, Sequence
import numpy as np

from chaosdyn.errors import ConfigError, DimensionMismatchError, StepFailError
from chaosdyn.jit import jit_compile
from chaosdyn.steppers import get_stepper
from chaosdyn.system import AnalyticJacobian, DynamicalSystem
from .guards import get_allfinite_guard
from .runner_api import OK, NAN_DETECTED, Status

__all__ = [
    "Integrator", "TangentIntegrator",
    "make_integrator", "make_tangent_integrator",
    "coerce_deviations",
]

_DEFAULT_ODE_DT = 0.01
# Relative slack used to decide that a requested time has been reached
_T_SNAP = 1e-12


def _make_state_rhs(f: Callable, D: int) -> Callable:
    def state_rhs(t, y, out, params):
        out[:] = np.asarray(f(y, params, t)).reshape(D)
    return state_rhs


def _make_tangent_flow_rhs(f: Callable, jac: Callable, D: int, k: int) -> Callable:
    def tangent_flow_rhs(t, y, out, params):
        u = y[:D]
        out[:D] = np.asarray(f(u, params, t)).reshape(D)
        J = np.asarray(jac(u, params, t)).reshape((D, D))
        # rows of V are the deviation vectors
        V = y[D:].reshape((k, D))
        out[D:] = np.dot(V, J.T).reshape(k * D)
    return tangent_flow_rhs


def _make_tangent_map_rhs(f: Callable, jac: Callable, D: int, k: int) -> Callable:
    def tangent_map_rhs(t, y, out, params):
        out[:D] = np.asarray(f(y[:D], params, t)).reshape(D)
        # Jacobian at the NEW state: Y_{n+1} = J(u_{n+1}) Y_n
        J = np.asarray(jac(out[:D], params, t + 1)).reshape((D, D))
        V = y[D:].reshape((k, D))
        out[D:] = np.dot(V, J.T).reshape(k * D)
    return tangent_map_rhs


class Integrator:
    """
    Advances the state of a DynamicalSystem.

    Operations: step(dt=None), reinit(u=None, t0=None), get_state(),
    get_time(), set_state(u), interpolate(t) (dense-output steppers only).
    """

    def __init__(
        self,
        ds: DynamicalSystem,
        u0=None,
        t0=None,
        *,
        stepper: Optional[str] = None,
        dt: Optional[float] = None,
        jit: bool = False,
        **stepper_config,
    ) -> None:
        self.ds = ds
        self.D = ds.dimension
        self.params = ds.parameters
        self.jit = bool(jit)

        settings = ds.solver.merged(stepper=stepper, dt=dt, **stepper_config)
        spec = get_stepper(settings.stepper)
        if spec.meta.kind != ds.kind:
            raise ConfigError(
                f"Stepper '{spec.meta.name}' is for kind='{spec.meta.kind}' "
                f"but the system has kind='{ds.kind}'"
            )
        self.settings = settings
        self.stepper_spec = spec
        self.adaptive = spec.meta.time_control == "adaptive"

        if ds.is_discrete:
            self.dt_nominal = 1.0
        else:
            self.dt_nominal = float(settings.dt) if settings.dt is not None else _DEFAULT_ODE_DT

        self.stepper_config = spec.resolve_config(**settings.options)
        self._cfg_arr = spec.pack_config(self.stepper_config)

        n = self._joint_size()
        self._n = n
        self._rhs = jit_compile(self._build_rhs(), jit=self.jit)
        self._kernel = spec.emit(jit=self.jit)
        self._interp = (
            spec.emit_interpolant(jit=self.jit) if spec.meta.caps.dense_output else None
        )
        self._guard = get_allfinite_guard(self.jit)

        self._ws = spec.make_workspace(n, np.float64)
        self._y = np.zeros((n,), dtype=np.float64)
        self._y_prop = np.zeros((n,), dtype=np.float64)
        self._y_old = np.zeros((n,), dtype=np.float64)
        self._y_interp = np.zeros((n,), dtype=np.float64)
        self._t_prop = np.zeros((1,), dtype=np.float64)
        self._dt_next = np.zeros((1,), dtype=np.float64)
        self._err_est = np.zeros((1,), dtype=np.float64)

        self._t = 0.0
        self._t_old = 0.0
        self._h = self.dt_nominal
        self._h_last = 0.0
        self._has_last_step = False
        self.nsteps = 0

        self._load(u0, t0)

    # ---- construction hooks ----------------------------------------------------

    def _joint_size(self) -> int:
        return self.D

    def _vector_field(self) -> Callable:
        return jit_compile(self.ds.vector_field, jit=self.jit)

    def _build_rhs(self) -> Callable:
        return _make_state_rhs(self._vector_field(), self.D)

    # ---- internal -----------------------------------------------------------------

    def _coerce_state(self, u) -> np.ndarray:
        if u is None:
            return self.ds.get_state()
        arr = np.asarray(u, dtype=np.float64).reshape(-1)
        if arr.shape != (self.D,):
            raise DimensionMismatchError("state", (self.D,), np.shape(u))
        return arr

    def _load(self, u, t0) -> None:
        self._y[: self.D] = self._coerce_state(u)
        if t0 is None:
            t0 = self.ds.t0
        self._t = float(t0)
        self._h = self.dt_nominal
        self._has_last_step = False
        self.nsteps = 0
        self._invalidate()

    def _reset_fsal(self) -> None:
        fsal = getattr(self._ws, "fsal_ok", None)
        if fsal is not None:
            fsal[0] = 0.0

    def _invalidate(self) -> None:
        """Drop cached stage data after an external state modification."""
        self._reset_fsal()
        self._has_last_step = False

    def _advance(self, h: float) -> None:
        t = self._t
        status = self._kernel(
            t, h,
            self._y, self._rhs,
            self.params,
            self._ws,
            self._cfg_arr,
            self._y_prop, self._t_prop, self._dt_next, self._err_est,
        )
        if status != OK:
            reason = Status(status).name if status in Status._value2member_map_ else ""
            raise StepFailError(status, t, reason)
        if not self._guard(self._y_prop):
            self._invalidate()
            raise StepFailError(NAN_DETECTED, t, "non-finite state")

        if self._interp is not None:
            self._y_old[:] = self._y
            self._t_old = t
            self._h_last = float(self._t_prop[0]) - t
            self._has_last_step = True
        self._y[:] = self._y_prop
        self._t = float(self._t_prop[0])
        if self.adaptive:
            self._h = float(self._dt_next[0])
        self.nsteps += 1

    def _advance_to(self, target: float) -> None:
        slack = _T_SNAP * max(1.0, abs(target))
        if self.adaptive:
            while self._t < target - slack:
                self._advance(self._h)
            if self._t > target + slack:
                # Overshot inside the last step: land exactly on target via dense output
                self._interp_joint(target, self._y_interp)
                self._y[:] = self._y_interp
                self._reset_fsal()
            self._t = target
        else:
            while self._t < target - slack:
                self._advance(min(self.dt_nominal, target - self._t))
            self._t = target

    def _interp_joint(self, t: float, out: np.ndarray) -> np.ndarray:
        if self._interp is None:
            raise ConfigError(
                f"Stepper '{self.stepper_spec.meta.name}' has no dense output"
            )
        if not self._has_last_step:
            raise ConfigError("interpolate() requires a completed step since the last reinit")
        t_end = self._t_old + self._h_last
        if t < self._t_old or t > t_end:
            raise ConfigError(
                f"interpolate() time {t!r} outside last step [{self._t_old!r}, {t_end!r}]"
            )
        x = (t - self._t_old) / self._h_last if self._h_last > 0.0 else 1.0
        self._interp(x, self._h_last, self._y_old, self._ws, out)
        return out

    # ---- public API -----------------------------------------------------------------

    def step(self, dt=None) -> Integrator:
        """
        Advance the integrator.

        Maps: one iteration, or ``dt`` iterations when given (non-negative int).
        Flows: one internal stepper step when ``dt`` is None, otherwise advance
        to exactly ``t + dt``.
        """
        if self.ds.is_discrete:
            n_iter = 1 if dt is None else dt
            if int(n_iter) != n_iter or n_iter < 0:
                raise ConfigError(f"map step count must be a non-negative integer, got {dt!r}")
            for _ in range(int(n_iter)):
                self._advance(1.0)
            self._t = float(round(self._t))
            return self

        if dt is None:
            self._advance(self._h if self.adaptive else self.dt_nominal)
            return self
        dt = float(dt)
        if dt < 0.0 or not math.isfinite(dt):
            raise ConfigError(f"step dt must be finite and non-negative, got {dt!r}")
        if dt > 0.0:
            self._advance_to(self._t + dt)
        return self

    def reinit(self, u=None, t0=None) -> Integrator:
        """Reset state and time without reallocating buffers."""
        self._load(u, t0)
        return self

    def set_state(self, u) -> None:
        """Overwrite the state at the current time."""
        self._y[: self.D] = self._coerce_state(u)
        self._invalidate()

    def interpolate(self, t: float) -> np.ndarray:
        """State at time t inside the last accepted step (dense output)."""
        return np.array(self._interp_joint(float(t), self._y_interp)[: self.D], copy=True)

    def get_state(self) -> np.ndarray:
        return np.array(self._y[: self.D], copy=True)

    def get_time(self):
        if self.ds.is_discrete:
            return int(round(self._t))
        return self._t

    @property
    def state(self) -> np.ndarray:
        return self.get_state()

    @property
    def t(self):
        return self.get_time()

    def __repr__(self) -> str:
        return (
            f"{type(self).__name__}(stepper={self.stepper_spec.meta.name!r}, "
            f"D={self.D}, t={self.get_time()!r})"
        )


def coerce_deviations(deviations, D: int, k: Optional[int] = None) -> np.ndarray:
    """
    Normalize user deviation vectors to a (D, k) float64 matrix.

    Accepts a (D, k) matrix (columns are vectors) or a sequence of k
    length-D vectors.
    """
    if isinstance(deviations, np.ndarray):
        W = np.array(deviations, dtype=np.float64, copy=True)
        if W.ndim == 1:
            W = W.reshape(-1, 1)
    else:
        vecs = [np.asarray(v, dtype=np.float64).reshape(-1) for v in deviations]
        if not vecs:
            raise ConfigError("deviations must contain at least one vector")
        if any(v.shape != (D,) for v in vecs):
            raise DimensionMismatchError(
                "deviation vectors", (D,), [v.shape for v in vecs]
            )
        W = np.column_stack(vecs)
    if W.ndim != 2 or W.shape[0] != D:
        raise DimensionMismatchError("deviation matrix rows", D, W.shape)
    if k is not None and W.shape[1] != k:
        raise DimensionMismatchError("deviation matrix columns", k, W.shape[1])
    return W


class TangentIntegrator(Integrator):
    """
    Jointly advances the state and k deviation vectors (1 <= k <= D).

    Default deviation vectors are the first k columns of a Haar-random
    orthogonal matrix. Supplied vectors need not be orthonormal.
    """

    def __init__(
        self,
        ds: DynamicalSystem,
        k: Optional[int] = None,
        deviations=None,
        u0=None,
        t0=None,
        *,
        rng=None,
        stepper: Optional[str] = None,
        dt: Optional[float] = None,
        jit: bool = False,
        **stepper_config,
    ) -> None:
        from chaosdyn.analysis.orthonormal import random_orthonormal

        D = ds.dimension
        if deviations is not None:
            W0 = coerce_deviations(deviations, D, k)
            k = W0.shape[1]
        if k is None:
            k = D
        if int(k) != k or not 1 <= k <= D:
            raise ConfigError(f"number of deviation vectors k must be in [1, {D}], got {k!r}")
        self.k = int(k)
        if deviations is None:
            W0 = random_orthonormal(D, self.k, rng=rng)
        if jit and not getattr(ds.jacobian, "analytic", False):
            raise ConfigError("jit=True requires an analytic Jacobian")
        self._W0 = W0
        super().__init__(
            ds, u0, t0, stepper=stepper, dt=dt, jit=jit, **stepper_config
        )

    def _joint_size(self) -> int:
        return self.D * (self.k + 1)

    def _jacobian(self) -> Callable:
        provider = self.ds.jacobian
        if isinstance(provider, AnalyticJacobian):
            return jit_compile(provider.fn, jit=self.jit)
        return provider

    def _build_rhs(self) -> Callable:
        f = self._vector_field()
        jac = self._jacobian()
        if self.ds.is_discrete:
            return _make_tangent_map_rhs(f, jac, self.D, self.k)
        return _make_tangent_flow_rhs(f, jac, self.D, self.k)

    def _load(self, u, t0, deviations=None) -> None:
        super()._load(u, t0)
        W = self._W0 if deviations is None else coerce_deviations(deviations, self.D, self.k)
        self._write_deviations(W)

    def _write_deviations(self, W: np.ndarray) -> None:
        # column-major: deviation j occupies y[D*(j+1) : D*(j+2)]
        self._y[self.D:] = np.asarray(W, dtype=np.float64).T.reshape(-1)

    def reinit(self, u=None, deviations=None, t0=None) -> TangentIntegrator:
        """
        Reset state, deviation vectors and time without reallocating.

        deviations=None restores the vectors the integrator was built with.
        """
        self._load(u, t0, deviations)
        return self

    def get_deviations(self) -> np.ndarray:
        """Copy of the (D, k) deviation matrix."""
        return np.array(self._y[self.D:].reshape(self.k, self.D).T, copy=True)

    def set_deviations(self, W) -> None:
        """Overwrite the deviation vectors at the current time (e.g. after QR)."""
        self._write_deviations(coerce_deviations(W, self.D, self.k))
        self._invalidate()

    def interpolate(self, t: float):
        """(state, deviations) at time t inside the last accepted step."""
        y = self._interp_joint(float(t), self._y_interp)
        return (
            np.array(y[: self.D], copy=True),
            np.array(y[self.D:].reshape(self.k, self.D).T, copy=True),
        )


def make_integrator(ds: DynamicalSystem, u0=None, t0=None, **kwargs) -> Integrator:
    """Build a state integrator; kwargs: stepper, dt, jit and stepper options."""
    return Integrator(ds, u0, t0, **kwargs)


def make_tangent_integrator(
    ds: DynamicalSystem,
    k: Optional[int] = None,
    deviations=None,
    u0=None,
    t0=None,
    **kwargs,
) -> TangentIntegrator:
    """Build a tangent integrator; kwargs: rng, stepper, dt, jit and stepper options."""
    return TangentIntegrator(ds, k, deviations, u0, t0, **kwargs)
