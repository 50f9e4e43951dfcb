# src/chaosdyn/config.py
"""Solver settings threaded through system descriptors and estimators."""
from __future__ import annotations

from dataclasses import dataclass, field, replace
from pathlib import Path
from types import MappingProxyType
from typing import Any, Mapping, Optional

try:  # pragma: no cover - Python >=3.11
    import tomllib  # type: ignore
except Exception:  # pragma: no cover
    import tomli as tomllib  # type: ignore

from chaosdyn.errors import ConfigError

__all__ = [
    "SolverSettings",
    "DEFAULT_ODE_STEPPER",
    "DEFAULT_MAP_STEPPER",
    "default_settings",
    "load_solver_settings",
]

DEFAULT_ODE_STEPPER = "rk45"
DEFAULT_MAP_STEPPER = "map"


@dataclass(frozen=True)
class SolverSettings:
    """
    Which stepper advances a system and how.

    stepper: registered stepper name (or alias).
    dt: nominal step. Fixed-step steppers use it as the step size, adaptive
        steppers as the initial guess (None -> stepper default).
    options: overrides for the stepper's Config dataclass (atol, rtol, ...).
    """
    stepper: str = DEFAULT_ODE_STEPPER
    dt: Optional[float] = None
    options: Mapping[str, Any] = field(default_factory=dict)

    def __post_init__(self):
        object.__setattr__(self, "options", MappingProxyType(dict(self.options)))
        if self.dt is not None and not float(self.dt) > 0.0:
            raise ConfigError(f"solver dt must be positive, got {self.dt!r}")

    def merged(self, *, stepper: Optional[str] = None, dt: Optional[float] = None,
               **options) -> SolverSettings:
        """
        Return a copy with call-site overrides applied.

        Stored options belong to the stored stepper and are dropped when a
        different stepper is requested.
        """
        opts = {} if stepper is not None and stepper != self.stepper else dict(self.options)
        opts.update(options)
        return replace(
            self,
            stepper=self.stepper if stepper is None else stepper,
            dt=self.dt if dt is None else dt,
            options=opts,
        )


def default_settings(kind: str) -> SolverSettings:
    if kind == "map":
        return SolverSettings(stepper=DEFAULT_MAP_STEPPER, dt=1.0)
    if kind == "ode":
        return SolverSettings(stepper=DEFAULT_ODE_STEPPER)
    raise ConfigError(f"kind must be 'map' or 'ode', got {kind!r}")


def load_solver_settings(source: str | Path, *, table: str = "solver") -> SolverSettings:
    """
    Read SolverSettings from a TOML file.

    Expected layout::

        [solver]
        stepper = "rk45"
        dt = 0.01
        atol = 1e-10
        rtol = 1e-10

    Every key other than 'stepper' and 'dt' is forwarded to the stepper Config.
    """
    path = Path(source)
    try:
        with open(path, "rb") as fh:
            data = tomllib.load(fh)
    except FileNotFoundError as exc:
        raise ConfigError(f"Solver config not found: {path}") from exc
    except tomllib.TOMLDecodeError as exc:
        raise ConfigError(f"Malformed solver config {path}: {exc}") from exc

    section = data.get(table)
    if not isinstance(section, dict):
        raise ConfigError(f"{path} has no [{table}] table")

    section = dict(section)
    stepper = section.pop("stepper", DEFAULT_ODE_STEPPER)
    if not isinstance(stepper, str):
        raise ConfigError(f"[{table}].stepper must be a string")
    dt = section.pop("dt", None)
    return SolverSettings(stepper=stepper, dt=dt, options=section)
