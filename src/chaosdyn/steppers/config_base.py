from __future__ import annotations
import dataclasses
from typing import Any

import numpy as np

from chaosdyn.errors import ConfigError

__all__ = ["ConfigMixin"]


class ConfigMixin:
    """
    Shared config handling for stepper specs.

    Subclasses set ``Config`` to a dataclass type (numeric fields only) or None.
    The packed float64 array follows the dataclass field order.
    """
    Config: Any = None

    def config_spec(self) -> type | None:
        return self.Config

    def default_config(self):
        if self.Config is None:
            return None
        return self.Config()

    def resolve_config(self, **overrides):
        config = self.default_config()
        if config is None:
            if overrides:
                raise ConfigError(
                    f"Stepper '{self.meta.name}' takes no options; got {sorted(overrides)}"
                )
            return None
        known = {f.name for f in dataclasses.fields(config)}
        unknown = sorted(set(overrides) - known)
        if unknown:
            raise ConfigError(
                f"Unknown option(s) for stepper '{self.meta.name}': {unknown}. "
                f"Valid options: {sorted(known)}"
            )
        updates = {}
        for key, value in overrides.items():
            try:
                updates[key] = type(getattr(config, key))(value)
            except (TypeError, ValueError) as exc:
                raise ConfigError(f"Invalid value for '{key}': {value!r}") from exc
        return dataclasses.replace(config, **updates)

    def pack_config(self, config) -> np.ndarray:
        if config is None:
            return np.array([], dtype=np.float64)
        return np.array(
            [float(getattr(config, f.name)) for f in dataclasses.fields(config)],
            dtype=np.float64,
        )
