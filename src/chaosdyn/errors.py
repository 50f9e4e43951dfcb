# src/chaosdyn/errors.py
from __future__ import annotations

__all__ = [
    "ChaosdynError",
    "ConfigError",
    "InvalidParameterError",
    "DimensionMismatchError",
    "StepFailError",
]

class ChaosdynError(Exception):
    """Base error for the chaosdyn package."""


class ConfigError(ChaosdynError, ValueError):
    """Raised when an estimator or solver is configured with invalid parameters."""
    def __init__(self, message: str):
        super().__init__(message)


# Name used in the estimator docs ("threshold must exceed d0" etc.)
InvalidParameterError = ConfigError


class DimensionMismatchError(ChaosdynError, ValueError):
    """Raised when arrays disagree with the system dimension."""
    def __init__(self, what: str, expected, got):
        self.what = what
        self.expected = expected
        self.got = got
        msg = f"Dimension mismatch for {what}: expected {expected}, got {got}"
        super().__init__(msg)


class StepFailError(ChaosdynError, RuntimeError):
    """Raised when a stepper fails or produces a non-finite state.

    The joint state (trajectory + deviation vectors) is invalid after such a
    failure, so integration is never resumed.
    """
    def __init__(self, status: int, t: float, reason: str = ""):
        self.status = int(status)
        self.t = float(t)
        msg = f"Integration failed at t={t!r} (status={int(status)})"
        if reason:
            msg += f": {reason}"
        super().__init__(msg)
