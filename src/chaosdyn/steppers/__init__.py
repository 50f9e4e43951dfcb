from .base import StepperCaps, StepperMeta, StepperInfo, StepperSpec
from .registry import register, get_stepper, registry, list_steppers

# Import concrete steppers to trigger auto-registration
from .discrete import map
from .ode import rk4, rk45

__all__ = [
    "StepperCaps", "StepperMeta", "StepperInfo", "StepperSpec",
    "register", "get_stepper", "registry", "list_steppers",
]
