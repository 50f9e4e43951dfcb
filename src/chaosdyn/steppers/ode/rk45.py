# src/chaosdyn/steppers/ode/rk45.py
"""
RK45 (Dormand-Prince, adaptive) stepper implementation.

Adaptive RK method with embedded error estimation, FSAL reuse and a
4th-order continuous extension (dense output).
Uses internal accept/reject loop until step is accepted or fails.
"""
from __future__ import annotations
from dataclasses import dataclass
from typing import TYPE_CHECKING, NamedTuple
import numpy as np

from ..base import StepperMeta, StepperCaps
from ..config_base import ConfigMixin
from chaosdyn.jit import jit_compile
from chaosdyn.runtime.runner_api import OK, NAN_DETECTED, STEPFAIL

if TYPE_CHECKING:
    from typing import Callable

__all__ = ["RK45Spec"]


# Dense output coefficients of the Dormand-Prince pair (Hairer, Norsett & Wanner).
# Row s gives the polynomial Q_s(x) = P[s,0] x + P[s,1] x^2 + P[s,2] x^3 + P[s,3] x^4
# so that y(t0 + x h) = y0 + h * sum_s k_s Q_s(x).
_DENSE_P = np.array([
    [1.0, -8048581381.0/2820520608.0, 8663915743.0/2820520608.0,
     -12715105075.0/11282082432.0],
    [0.0, 0.0, 0.0, 0.0],
    [0.0, 131558114200.0/32700410799.0, -68118460800.0/10900136933.0,
     87487479700.0/32700410799.0],
    [0.0, -1754552775.0/470086768.0, 14199869525.0/1410260304.0,
     -10690763975.0/1880347072.0],
    [0.0, 127303824393.0/49829197408.0, -318862633887.0/49829197408.0,
     701980252875.0/199316789632.0],
    [0.0, -282668133.0/205662961.0, 2019193451.0/616988883.0,
     -1453857185.0/822651844.0],
    [0.0, 40617522.0/29380423.0, -110615467.0/29380423.0,
     69997945.0/29380423.0],
])


class RK45Spec(ConfigMixin):
    """
    Dormand-Prince RK45: 5th-order method with embedded 4th-order error estimate.

    Adaptive time-stepping with internal accept/reject loop.
    DOPRI5(4): 6 new RHS evaluations per accepted step thanks to FSAL.
    """

    @dataclass
    class Config:
        """Runtime configuration for RK45 stepper."""
        atol: float = 1e-6
        rtol: float = 1e-6
        safety: float = 0.9
        min_factor: float = 0.2
        max_factor: float = 10.0
        max_tries: int = 10
        min_step: float = 1e-12

    def __init__(self, meta: StepperMeta | None = None):
        if meta is None:
            meta = StepperMeta(
                name="rk45",
                kind="ode",
                time_control="adaptive",
                scheme="explicit",
                geometry=frozenset(),
                family="runge-kutta",
                order=5,
                embedded_order=4,
                stiff_ok=False,
                aliases=("dopri5", "dormand_prince"),
                caps=StepperCaps(dense_output=True, fsal=True),
            )
        self.meta = meta

    class Workspace(NamedTuple):
        y_stage: np.ndarray
        k1: np.ndarray
        k2: np.ndarray
        k3: np.ndarray
        k4: np.ndarray
        k5: np.ndarray
        k6: np.ndarray
        k7: np.ndarray
        fsal_ok: np.ndarray   # shape (1,); 1.0 when k7 holds f(t, y_curr)

    def make_workspace(self, n_state: int, dtype: np.dtype) -> Workspace:
        zeros = lambda: np.zeros((n_state,), dtype=dtype)
        return RK45Spec.Workspace(
            y_stage=zeros(),
            k1=zeros(), k2=zeros(), k3=zeros(), k4=zeros(),
            k5=zeros(), k6=zeros(), k7=zeros(),
            fsal_ok=np.zeros((1,), dtype=np.float64),
        )

    def emit(self, *, jit: bool = False) -> Callable:
        """
        Generate the RK45 stepper kernel.

        Runtime configuration is passed via stepper_config array (7 floats):
            [0] atol
            [1] rtol
            [2] safety
            [3] min_factor
            [4] max_factor
            [5] max_tries (as float)
            [6] min_step
        If stepper_config is empty, defaults are used from closure.
        """
        default_cfg = self.default_config()
        default_atol = default_cfg.atol
        default_rtol = default_cfg.rtol
        default_safety = default_cfg.safety
        default_min_factor = default_cfg.min_factor
        default_max_factor = default_cfg.max_factor
        default_max_tries = default_cfg.max_tries
        default_min_step = default_cfg.min_step

        # Butcher tableau for DOPRI5(4)
        a21 = 1.0/5.0

        a31 = 3.0/40.0
        a32 = 9.0/40.0

        a41 = 44.0/45.0
        a42 = -56.0/15.0
        a43 = 32.0/9.0

        a51 = 19372.0/6561.0
        a52 = -25360.0/2187.0
        a53 = 64448.0/6561.0
        a54 = -212.0/729.0

        a61 = 9017.0/3168.0
        a62 = -355.0/33.0
        a63 = 46732.0/5247.0
        a64 = 49.0/176.0
        a65 = -5103.0/18656.0

        c2 = 1.0/5.0
        c3 = 3.0/10.0
        c4 = 4.0/5.0
        c5 = 8.0/9.0
        c6 = 1.0

        # 5th order solution
        b1 = 35.0/384.0
        b3 = 500.0/1113.0
        b4 = 125.0/192.0
        b5 = -2187.0/6784.0
        b6 = 11.0/84.0

        # 4th order embedded solution
        bs1 = 5179.0/57600.0
        bs3 = 7571.0/16695.0
        bs4 = 393.0/640.0
        bs5 = -92097.0/339200.0
        bs6 = 187.0/2100.0
        bs7 = 1.0/40.0

        def rk45_stepper(
            t, dt,
            y_curr, rhs,
            params,
            ws,
            stepper_config,
            y_prop, t_prop, dt_next, err_est
        ):
            n = y_curr.size

            k1 = ws.k1; k2 = ws.k2; k3 = ws.k3; k4 = ws.k4
            k5 = ws.k5; k6 = ws.k6; k7 = ws.k7
            y_stage = ws.y_stage

            if stepper_config.size >= 7:
                atol = stepper_config[0]
                rtol = stepper_config[1]
                safety = stepper_config[2]
                min_factor = stepper_config[3]
                max_factor = stepper_config[4]
                max_tries = int(stepper_config[5])
                min_step = stepper_config[6]
            else:
                atol = default_atol
                rtol = default_rtol
                safety = default_safety
                min_factor = default_min_factor
                max_factor = default_max_factor
                max_tries = default_max_tries
                min_step = default_min_step

            # Stage 1 is shared by all attempts (and by the previous step via FSAL)
            if ws.fsal_ok[0] != 0.0:
                for i in range(n):
                    k1[i] = k7[i]
            else:
                rhs(t, y_curr, k1, params)

            h = dt
            error = 0.0

            for attempt in range(max_tries):
                for i in range(n):
                    y_stage[i] = y_curr[i] + h * a21 * k1[i]
                rhs(t + c2 * h, y_stage, k2, params)

                for i in range(n):
                    y_stage[i] = y_curr[i] + h * (a31 * k1[i] + a32 * k2[i])
                rhs(t + c3 * h, y_stage, k3, params)

                for i in range(n):
                    y_stage[i] = y_curr[i] + h * (a41 * k1[i] + a42 * k2[i] + a43 * k3[i])
                rhs(t + c4 * h, y_stage, k4, params)

                for i in range(n):
                    y_stage[i] = y_curr[i] + h * (
                        a51 * k1[i] + a52 * k2[i] + a53 * k3[i] + a54 * k4[i]
                    )
                rhs(t + c5 * h, y_stage, k5, params)

                for i in range(n):
                    y_stage[i] = y_curr[i] + h * (
                        a61 * k1[i] + a62 * k2[i] + a63 * k3[i] +
                        a64 * k4[i] + a65 * k5[i]
                    )
                rhs(t + c6 * h, y_stage, k6, params)

                for i in range(n):
                    y_prop[i] = y_curr[i] + h * (
                        b1 * k1[i] + b3 * k3[i] + b4 * k4[i] +
                        b5 * k5[i] + b6 * k6[i]
                    )

                # Stage 7 doubles as next step's stage 1 (FSAL)
                rhs(t + h, y_prop, k7, params)

                error = 0.0
                for i in range(n):
                    e_i = h * abs(
                        (b1 - bs1) * k1[i] +
                        (b3 - bs3) * k3[i] +
                        (b4 - bs4) * k4[i] +
                        (b5 - bs5) * k5[i] +
                        (b6 - bs6) * k6[i] -
                        bs7 * k7[i]
                    )
                    scale_i = atol + rtol * max(abs(y_curr[i]), abs(y_prop[i]))
                    error += (e_i / scale_i) ** 2

                error = (error / n) ** 0.5  # RMS error

                if error != error:  # NaN check
                    ws.fsal_ok[0] = 0.0
                    err_est[0] = error
                    return NAN_DETECTED

                if error <= 1.0 or h <= min_step:
                    t_prop[0] = t + h
                    err_est[0] = error
                    ws.fsal_ok[0] = 1.0

                    if error > 0.0:
                        factor = safety * (1.0 / error) ** 0.2  # 1/(embedded_order+1)
                        factor = max(min_factor, min(factor, max_factor))
                        dt_next[0] = h * factor
                    else:
                        dt_next[0] = h * max_factor

                    return OK
                else:
                    factor = safety * (1.0 / error) ** 0.25  # 1/embedded_order
                    factor = max(min_factor, factor)
                    h = h * factor

                    if h < min_step:
                        ws.fsal_ok[0] = 0.0
                        err_est[0] = error
                        return STEPFAIL

            ws.fsal_ok[0] = 0.0
            err_est[0] = error
            return STEPFAIL

        return jit_compile(rk45_stepper, jit=jit)

    def emit_interpolant(self, *, jit: bool = False) -> Callable:
        """
        Dense output over the last accepted step.

            interp(x, h, y_old, ws, out) -> None

        x = (t_query - t_old) / h in [0, 1]; the stage vectors in ws must
        belong to the step [t_old, t_old + h].
        """
        P = _DENSE_P.copy()

        def rk45_interp(x, h, y_old, ws, out):
            n = y_old.size
            x2 = x * x
            x3 = x2 * x
            x4 = x3 * x
            q1 = P[0, 0] * x + P[0, 1] * x2 + P[0, 2] * x3 + P[0, 3] * x4
            q3 = P[2, 0] * x + P[2, 1] * x2 + P[2, 2] * x3 + P[2, 3] * x4
            q4 = P[3, 0] * x + P[3, 1] * x2 + P[3, 2] * x3 + P[3, 3] * x4
            q5 = P[4, 0] * x + P[4, 1] * x2 + P[4, 2] * x3 + P[4, 3] * x4
            q6 = P[5, 0] * x + P[5, 1] * x2 + P[5, 2] * x3 + P[5, 3] * x4
            q7 = P[6, 0] * x + P[6, 1] * x2 + P[6, 2] * x3 + P[6, 3] * x4
            for i in range(n):
                out[i] = y_old[i] + h * (
                    q1 * ws.k1[i] + q3 * ws.k3[i] + q4 * ws.k4[i] +
                    q5 * ws.k5[i] + q6 * ws.k6[i] + q7 * ws.k7[i]
                )

        return jit_compile(rk45_interp, jit=jit)


# Auto-register on module import
def _auto_register():
    from ..registry import register
    spec = RK45Spec()
    register(spec)

_auto_register()
