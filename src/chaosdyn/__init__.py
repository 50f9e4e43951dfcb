# src/chaosdyn/__init__.py
from __future__ import annotations

# Re-export frozen constants/types for stable imports
from chaosdyn.runtime.runner_api import Status, OK, STEPFAIL, NAN_DETECTED
from .runtime.types import Kind, TimeCtrl, Scheme

from .errors import (
    ChaosdynError, ConfigError, InvalidParameterError, DimensionMismatchError, StepFailError,
)
from .config import SolverSettings, default_settings, load_solver_settings
from .steppers.base import StepperMeta, StepperInfo, StepperCaps, StepperSpec
from .steppers.registry import register, get_stepper, registry, list_steppers
from .system import (
    DynamicalSystem, JacobianProvider, AnalyticJacobian, NumericalJacobian,
    discrete_system, continuous_system,
)
from .runtime.integrator import (
    Integrator, TangentIntegrator, make_integrator, make_tangent_integrator,
)
from .runtime.trajectory import evolve, trajectory
from .analysis import (
    orthonormalize, random_orthonormal, normalize_columns,
    lyapunov_spectrum, lyapunov_from_tangent,
    max_lyapunov, max_lyapunov_from_integrators,
    gali, gali_from_tangent,
)
from . import systems

__version__ = "0.1.0"

__all__ = [
    # Status codes (for advanced use)
    "Status", "OK", "STEPFAIL", "NAN_DETECTED",
    "Kind", "TimeCtrl", "Scheme",
    # Errors
    "ChaosdynError", "ConfigError", "InvalidParameterError",
    "DimensionMismatchError", "StepFailError",
    # Configuration
    "SolverSettings", "default_settings", "load_solver_settings",
    # Stepper registry
    "StepperMeta", "StepperInfo", "StepperCaps", "StepperSpec",
    "register", "get_stepper", "registry", "list_steppers",
    # Systems and integrators
    "DynamicalSystem", "JacobianProvider", "AnalyticJacobian", "NumericalJacobian",
    "discrete_system", "continuous_system",
    "Integrator", "TangentIntegrator", "make_integrator", "make_tangent_integrator",
    "evolve", "trajectory",
    # Estimators
    "orthonormalize", "random_orthonormal", "normalize_columns",
    "lyapunov_spectrum", "lyapunov_from_tangent",
    "max_lyapunov", "max_lyapunov_from_integrators",
    "gali", "gali_from_tangent",
    "systems",
]
