# src/chaosdyn/runtime/runner_api.py
from __future__ import annotations
from enum import IntEnum

__all__ = [
    "Status",
    # int constants (jit-friendly)
    "OK", "STEPFAIL", "NAN_DETECTED",
]

class Status(IntEnum):
    """Stable status codes returned by stepper kernels."""
    OK = 0              # step accepted
    STEPFAIL = 2        # step size underflow / too many rejections
    NAN_DETECTED = 3    # error estimate or state is NaN

# Plain int constants for JIT friendliness in kernels
OK: int = int(Status.OK)
STEPFAIL: int = int(Status.STEPFAIL)
NAN_DETECTED: int = int(Status.NAN_DETECTED)


# ---- Stepper kernel signature (documentation) --------------------------------
__doc__ = (__doc__ or "") + r"""

STEPPER KERNEL ABI (names/order)

stepper(
  t: float64, dt: float64,
  y_curr: float64[:], rhs,
  params,
  ws,                      # NamedTuple workspace from spec.make_workspace()
  stepper_config: float64[:],
  y_prop: float64[:], t_prop: float64[1], dt_next: float64[1], err_est: float64[1],
) -> int32

Rules:
- rhs(t, y_vec, out, params) -> None. For maps 'out' receives the next state,
  for flows the derivative.
- Stepper reads t, dt, y_curr, params, stepper_config; writes y_prop,
  t_prop[0], dt_next[0], err_est[0]; may keep scratch data in ws.
- Adaptive steppers may take a smaller step than dt; t_prop[0] holds the time
  actually reached. dt_next[0] is the proposal for the following step.
- Returns OK, STEPFAIL or NAN_DETECTED.
"""
