from __future__ import annotations
from dataclasses import dataclass, field
from typing import FrozenSet, Protocol, Callable
import numpy as np

from chaosdyn.runtime.types import Kind, TimeCtrl, Scheme

__all__ = [
    "StepperCaps", "StepperMeta", "StepperInfo", "StepperSpec",
]

# NOTE: When you need to add a stepper with a new capability add a field below.
#       Existing steppers keep the defaults for fields they don't specify.
@dataclass(frozen=True)
class StepperCaps:
    """
    Optional / implementation-level capabilities.
    These are things you *can* add or remove without changing the mathematical
    identity of the method.
    """
    dense_output: bool = False           # has continuous interpolation / dense output
    fsal: bool = False                   # first stage reuses last stage of previous step


@dataclass(frozen=True)
class StepperMeta:
    """
    Public metadata for a stepper.
    Fundamental classification + suitability, plus a caps block
    for optional capabilities.
    """
    name: str
    kind: Kind
    time_control: TimeCtrl = "fixed"
    scheme: Scheme = "explicit"
    geometry: FrozenSet[str] = frozenset()
    family: str = ""
    order: int = 1
    embedded_order: int | None = None
    stiff_ok: bool = False
    aliases: tuple[str, ...] = ()
    caps: StepperCaps = field(default_factory=StepperCaps)

# Alias kept for discoverability
StepperInfo = StepperMeta


class StepperSpec(Protocol):
    """
    Interface for stepper specs used by the integrators.
    Implementations MUST:
      - accept `meta: StepperMeta` in __init__
      - provide `make_workspace(n_state, dtype) -> object`
      - provide `config_spec() -> type | None`
      - provide `default_config()`, `resolve_config(**overrides)`, `pack_config(config)`
      - provide `emit(jit=False) -> Callable` returning the stepper kernel
    Steppers advertising caps.dense_output also provide
      - `emit_interpolant(jit=False) -> Callable`
    """

    meta: StepperMeta

    def __init__(self, meta: StepperMeta) -> None: ...
    def make_workspace(self, n_state: int, dtype: np.dtype) -> object: ...

    def config_spec(self) -> type | None:
        """
        Return dataclass type for runtime configuration, or None.

        If None, stepper has no runtime config (e.g., fixed-step methods).
        If a dataclass, it should contain only numeric fields (float/int).
        """
        ...

    def default_config(self):
        """Create default config instance, or None if no config is needed."""
        ...

    def resolve_config(self, **overrides):
        """Default config with overrides applied; unknown keys raise ConfigError."""
        ...

    def pack_config(self, config) -> np.ndarray:
        """Pack config dataclass into a float64 array (empty if None)."""
        ...

    def emit(self, *, jit: bool = False) -> Callable:
        """
        Return the stepper kernel with the frozen ABI signature:
            stepper(t, dt, y_curr, rhs, params, ws, stepper_config,
                    y_prop, t_prop, dt_next, err_est) -> int
        """
        ...
