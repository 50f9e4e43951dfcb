# src/chaosdyn/steppers/ode/rk4.py
"""
Classic fixed-step RK4 with cubic Hermite dense output.

The slope at the end of each step, f(t + dt, y_prop), is kept in the
workspace. It closes the Hermite interpolant of the step just taken and is
reused as k1 of the following step while ws.fsal_ok is set.
"""
from __future__ import annotations
from typing import TYPE_CHECKING, NamedTuple
import numpy as np

from ..base import StepperMeta, StepperCaps
from ..config_base import ConfigMixin
from chaosdyn.jit import jit_compile
from chaosdyn.runtime.runner_api import OK

if TYPE_CHECKING:
    from typing import Callable

__all__ = ["RK4Spec"]


class RK4Spec(ConfigMixin):
    """
    Classic 4th-order Runge-Kutta (explicit, fixed-step).

        k1 = f(t, y)
        k2 = f(t + dt/2, y + dt/2 k1)
        k3 = f(t + dt/2, y + dt/2 k2)
        k4 = f(t + dt, y + dt k3)
        y' = y + dt/6 (k1 + 2 k2 + 2 k3 + k4)

    Between y and y' the state is reconstructed from (y, k1, y', f(t + dt, y')).
    """
    Config = None

    def __init__(self, meta: StepperMeta | None = None):
        if meta is None:
            meta = StepperMeta(
                name="rk4",
                kind="ode",
                time_control="fixed",
                scheme="explicit",
                geometry=frozenset(),
                family="runge-kutta",
                order=4,
                embedded_order=None,
                stiff_ok=False,
                aliases=("rk4_classic", "classical_rk4"),
                caps=StepperCaps(dense_output=True, fsal=True),
            )
        self.meta = meta

    class Workspace(NamedTuple):
        y_stage: np.ndarray
        k1: np.ndarray
        k2: np.ndarray
        k3: np.ndarray
        k4: np.ndarray
        y_end: np.ndarray     # y_prop of the last step
        f_end: np.ndarray     # f(t_prop, y_prop) of the last step
        fsal_ok: np.ndarray   # shape (1,); 1.0 when f_end holds f(t, y_curr)

    def make_workspace(self, n_state: int, dtype: np.dtype) -> Workspace:
        zeros = lambda: np.zeros((n_state,), dtype=dtype)
        return RK4Spec.Workspace(
            y_stage=zeros(),
            k1=zeros(), k2=zeros(), k3=zeros(), k4=zeros(),
            y_end=zeros(), f_end=zeros(),
            fsal_ok=np.zeros((1,), dtype=np.float64),
        )

    def emit(self, *, jit: bool = False) -> Callable:
        def rk4_stepper(
            t, dt,
            y_curr, rhs,
            params,
            ws,
            stepper_config,
            y_prop, t_prop, dt_next, err_est
        ):
            n = y_curr.size
            k1 = ws.k1
            k2 = ws.k2
            k3 = ws.k3
            k4 = ws.k4
            y_stage = ws.y_stage
            half = 0.5 * dt

            if ws.fsal_ok[0] != 0.0:
                for i in range(n):
                    k1[i] = ws.f_end[i]
            else:
                rhs(t, y_curr, k1, params)

            for i in range(n):
                y_stage[i] = y_curr[i] + half * k1[i]
            rhs(t + half, y_stage, k2, params)

            for i in range(n):
                y_stage[i] = y_curr[i] + half * k2[i]
            rhs(t + half, y_stage, k3, params)

            for i in range(n):
                y_stage[i] = y_curr[i] + dt * k3[i]
            rhs(t + dt, y_stage, k4, params)

            w = dt / 6.0
            for i in range(n):
                y_prop[i] = y_curr[i] + w * (k1[i] + 2.0 * (k2[i] + k3[i]) + k4[i])
                ws.y_end[i] = y_prop[i]

            # End slope closes the interpolant and seeds the next k1
            rhs(t + dt, y_prop, ws.f_end, params)
            ws.fsal_ok[0] = 1.0

            t_prop[0] = t + dt
            dt_next[0] = dt
            err_est[0] = 0.0
            return OK

        return jit_compile(rk4_stepper, jit=jit)

    def emit_interpolant(self, *, jit: bool = False) -> Callable:
        """
        Cubic Hermite dense output over the last step.

            interp(x, h, y_old, ws, out) -> None

        Matches value and slope at both ends, so the error is O(h^4).
        """
        def rk4_interp(x, h, y_old, ws, out):
            n = y_old.size
            x2 = x * x
            x3 = x2 * x
            h00 = 2.0 * x3 - 3.0 * x2 + 1.0
            h10 = x3 - 2.0 * x2 + x
            h01 = 3.0 * x2 - 2.0 * x3
            h11 = x3 - x2
            for i in range(n):
                out[i] = (
                    h00 * y_old[i] + h01 * ws.y_end[i]
                    + h * (h10 * ws.k1[i] + h11 * ws.f_end[i])
                )

        return jit_compile(rk4_interp, jit=jit)


# Auto-register on module import
def _auto_register():
    from ..registry import register
    register(RK4Spec())

_auto_register()
