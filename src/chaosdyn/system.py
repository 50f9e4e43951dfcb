# src/chaosdyn/system.py
"""
Dynamical system descriptor.

A DynamicalSystem bundles an initial state, a vector field and a Jacobian
provider. It is never evolved in place: integrators copy the state in.

Vector field convention (out-of-place):
    f(u, p, t) -> array of length D
        maps:  next state u_{n+1}
        flows: time derivative du/dt
Jacobian convention:
    J(u, p, t) -> array of shape (D, D), J[i, j] = d f_i / d u_j
"""
from __future__ import annotations

from dataclasses import dataclass, field, replace
from typing import Any, Callable, Literal, Optional
import numpy as np

from chaosdyn.config import SolverSettings, default_settings
from chaosdyn.errors import ConfigError, DimensionMismatchError
from chaosdyn.runtime.types import Kind

__all__ = [
    "DynamicalSystem",
    "JacobianProvider",
    "AnalyticJacobian",
    "NumericalJacobian",
    "discrete_system",
    "continuous_system",
]

VectorField = Callable[[np.ndarray, Any, float], np.ndarray]


class JacobianProvider:
    """Strategy producing the (D, D) Jacobian of a vector field."""

    analytic: bool = False

    def __call__(self, u: np.ndarray, p: Any, t: float) -> np.ndarray:  # pragma: no cover
        raise NotImplementedError


class AnalyticJacobian(JacobianProvider):
    """User supplied Jacobian function."""

    analytic = True

    def __init__(self, fn: Callable[[np.ndarray, Any, float], Any]):
        if not callable(fn):
            raise ConfigError("jacobian must be callable")
        self.fn = fn

    def __call__(self, u, p, t):
        return np.asarray(self.fn(u, p, t), dtype=np.float64)

    def __repr__(self) -> str:
        return f"AnalyticJacobian({getattr(self.fn, '__name__', self.fn)!r})"


class NumericalJacobian(JacobianProvider):
    """
    Finite-difference Jacobian of a vector field.

    Column j is differentiated with step h_j = eps * (1 + |u_j|).
    scheme="central" costs 2D evaluations per call (error O(h^2)),
    scheme="forward" costs D+1 evaluations (error O(h)).
    """

    def __init__(
        self,
        vector_field: VectorField,
        *,
        eps: Optional[float] = None,
        scheme: Literal["central", "forward"] = "central",
    ):
        if scheme not in ("central", "forward"):
            raise ConfigError("NumericalJacobian scheme must be 'central' or 'forward'")
        if eps is None:
            # Near-optimal steps for double precision
            eps = 6.0e-6 if scheme == "central" else 1.5e-8
        if not eps > 0.0:
            raise ConfigError("NumericalJacobian eps must be positive")
        self.vector_field = vector_field
        self.eps = float(eps)
        self.scheme = scheme

    def __call__(self, u, p, t):
        x = np.array(u, dtype=np.float64, copy=True)
        n = x.size
        J = np.empty((n, n), dtype=np.float64)
        if self.scheme == "forward":
            fx = np.asarray(self.vector_field(x, p, t), dtype=np.float64)
        for j in range(n):
            xj = x[j]
            h = self.eps * (1.0 + abs(xj))
            x[j] = xj + h
            f_plus = np.asarray(self.vector_field(x, p, t), dtype=np.float64)
            if self.scheme == "central":
                x[j] = xj - h
                f_minus = np.asarray(self.vector_field(x, p, t), dtype=np.float64)
                J[:, j] = (f_plus - f_minus) / (2.0 * h)
            else:
                J[:, j] = (f_plus - fx) / h
            x[j] = xj
        return J

    def __repr__(self) -> str:
        return f"NumericalJacobian(scheme={self.scheme!r}, eps={self.eps:g})"


@dataclass(frozen=True, eq=False)
class DynamicalSystem:
    """
    Immutable description of a D-dimensional discrete map or continuous flow.

    Parameters:
        vector_field: f(u, p, t) -> next state (map) or derivative (ode).
        state: initial state, copied into a read-only float64 array.
        parameters: passed untouched to f and J.
        jacobian: JacobianProvider, plain callable J(u, p, t), or None for a
            NumericalJacobian of vector_field.
        kind: "map" or "ode".
        t0: initial time (iteration index for maps).
        solver: SolverSettings used by integrators built from this system.
    """
    vector_field: VectorField
    state: np.ndarray
    parameters: Any = None
    jacobian: Any = None
    kind: Kind = "ode"
    t0: float = 0.0
    solver: Optional[SolverSettings] = None
    _dim: int = field(init=False, repr=False, compare=False, default=0)

    def __post_init__(self):
        if self.kind not in ("map", "ode"):
            raise ConfigError(f"kind must be 'map' or 'ode', got {self.kind!r}")
        if not callable(self.vector_field):
            raise ConfigError("vector_field must be callable")

        u0 = np.array(self.state, dtype=np.float64, copy=True)
        if u0.ndim == 0:
            u0 = u0.reshape(1)
        if u0.ndim != 1:
            raise DimensionMismatchError("initial state", "1-D vector", u0.shape)
        u0.flags.writeable = False
        object.__setattr__(self, "state", u0)
        object.__setattr__(self, "_dim", int(u0.size))

        jac = self.jacobian
        if jac is None:
            jac = NumericalJacobian(self.vector_field)
        elif not isinstance(jac, JacobianProvider):
            jac = AnalyticJacobian(jac)
        object.__setattr__(self, "jacobian", jac)

        if self.solver is None:
            object.__setattr__(self, "solver", default_settings(self.kind))
        if self.kind == "map":
            object.__setattr__(self, "t0", int(self.t0))
        else:
            object.__setattr__(self, "t0", float(self.t0))

        self._check_dimensions()

    def _check_dimensions(self) -> None:
        """Trial-evaluate f and J at the initial state."""
        D = self._dim
        trial = np.array(self.state, copy=True)
        fx = np.asarray(self.vector_field(trial, self.parameters, self.t0))
        if fx.shape != (D,) and not (D == 1 and fx.size == 1):
            raise DimensionMismatchError("vector_field output", (D,), fx.shape)
        Jx = np.asarray(self.jacobian(trial, self.parameters, self.t0))
        if Jx.shape != (D, D) and not (D == 1 and Jx.size == 1):
            raise DimensionMismatchError("jacobian output", (D, D), Jx.shape)

    # ---- accessors -----------------------------------------------------------

    @property
    def dimension(self) -> int:
        return self._dim

    @property
    def is_discrete(self) -> bool:
        return self.kind == "map"

    def get_state(self) -> np.ndarray:
        """Writable copy of the initial state."""
        return np.array(self.state, copy=True)

    def rhs(self, u, t=None) -> np.ndarray:
        """Evaluate the vector field at u (t defaults to t0)."""
        u = np.asarray(u, dtype=np.float64)
        t_use = self.t0 if t is None else t
        return np.asarray(self.vector_field(u, self.parameters, t_use), dtype=np.float64).reshape(self._dim)

    def jac(self, u, t=None) -> np.ndarray:
        """Evaluate the Jacobian at u (t defaults to t0)."""
        u = np.asarray(u, dtype=np.float64)
        t_use = self.t0 if t is None else t
        return np.asarray(self.jacobian(u, self.parameters, t_use), dtype=np.float64).reshape(self._dim, self._dim)

    # ---- derived descriptors -------------------------------------------------

    def with_state(self, u) -> DynamicalSystem:
        u = np.asarray(u, dtype=np.float64)
        if u.shape != (self._dim,):
            raise DimensionMismatchError("state", (self._dim,), u.shape)
        return replace(self, state=u)

    def with_parameters(self, p) -> DynamicalSystem:
        return replace(self, parameters=p)

    def with_solver(self, solver: SolverSettings) -> DynamicalSystem:
        return replace(self, solver=solver)

    def __repr__(self) -> str:
        kind = "discrete" if self.is_discrete else "continuous"
        return (
            f"{self._dim}-dimensional {kind} dynamical system\n"
            f"  state:        {np.array2string(self.state, precision=6)}\n"
            f"  vector field: {getattr(self.vector_field, '__name__', self.vector_field)}\n"
            f"  jacobian:     {self.jacobian!r}\n"
            f"  solver:       {self.solver.stepper}"
        )


def discrete_system(f: VectorField, u0, p=None, jacobian=None, *, t0: int = 0,
                    solver: Optional[SolverSettings] = None) -> DynamicalSystem:
    """Discrete map u_{n+1} = f(u_n, p, n)."""
    return DynamicalSystem(
        vector_field=f, state=u0, parameters=p, jacobian=jacobian,
        kind="map", t0=t0, solver=solver,
    )


def continuous_system(f: VectorField, u0, p=None, jacobian=None, *, t0: float = 0.0,
                      solver: Optional[SolverSettings] = None) -> DynamicalSystem:
    """Continuous flow du/dt = f(u, p, t)."""
    return DynamicalSystem(
        vector_field=f, state=u0, parameters=p, jacobian=jacobian,
        kind="ode", t0=t0, solver=solver,
    )
