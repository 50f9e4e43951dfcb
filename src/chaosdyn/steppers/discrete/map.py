# src/chaosdyn/steppers/discrete/map.py
"""
Map (discrete-time, fixed-step) stepper implementation.

This stepper assumes the rhs callable computes the NEXT STATE directly:
    rhs(t, y_curr, out, params)  -> writes y_{n+1} into 'out'

It never multiplies by dt; dt is only the label spacing for t.
"""

from __future__ import annotations
from typing import TYPE_CHECKING, NamedTuple
import numpy as np

from ..base import StepperMeta
from ..config_base import ConfigMixin
from chaosdyn.jit import jit_compile
from chaosdyn.runtime.runner_api import OK

if TYPE_CHECKING:
    from typing import Callable

__all__ = ["MapSpec"]


class MapSpec(ConfigMixin):
    """
    Discrete-time map stepper: y_{n+1} = F(y_n; params, n)

    - Fixed-step (time_control="fixed")
    - Single proposal per call (no accept/reject loop)
    - dt is a label spacing only; not used in dynamics
    """
    Config = None  # Maps have no runtime-configurable parameters

    def __init__(self, meta: StepperMeta | None = None):
        if meta is None:
            meta = StepperMeta(
                name="map",
                kind="map",
                time_control="fixed",
                scheme="explicit",
                geometry=frozenset(),
                family="iter",
                order=1,
                embedded_order=None,
                stiff_ok=False,
                aliases=("iter", "discrete"),
            )
        self.meta = meta

    class Workspace(NamedTuple):
        y_next: np.ndarray

    def make_workspace(self, n_state: int, dtype: np.dtype) -> Workspace:
        return MapSpec.Workspace(y_next=np.zeros((n_state,), dtype=dtype))

    def emit(self, *, jit: bool = False) -> Callable:
        def map_stepper(
            t, dt,
            y_curr, rhs,   # rhs == map function
            params,
            ws,
            stepper_config,
            y_prop, t_prop, dt_next, err_est
        ):
            n = y_curr.size
            y_next = ws.y_next

            # Compute next state directly into scratch
            rhs(t, y_curr, y_next, params)

            # Copy proposal to output buffer; integrator guard enforces finiteness
            for i in range(n):
                y_prop[i] = y_next[i]

            # Fixed label advance
            t_prop[0] = t + dt
            dt_next[0] = dt
            err_est[0] = 0.0
            return OK

        return jit_compile(map_stepper, jit=jit)


# Auto-register on module import
def _auto_register():
    from ..registry import register
    spec = MapSpec()
    register(spec)

_auto_register()
