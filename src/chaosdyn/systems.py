# src/chaosdyn/systems.py
"""
Reference dynamical systems with analytic Jacobians.

Each factory returns a DynamicalSystem whose parameters are a float64 array
(so vector fields and Jacobians stay numba compatible). Vector fields follow
the f(u, p, t) convention of chaosdyn.system.

Reference spectra for the default parameters:
    lorenz      [0.9056, 0, -14.5723]
    roessler    [0.0714, 0, -5.3943]
    henon       [0.4189, -1.6229]
    towel       [0.432, 0.379, -3.4 .. -3.7]
    logistic    log(2) at r = 4
"""
from __future__ import annotations

import math
from typing import Optional
import numpy as np

from chaosdyn.config import SolverSettings
from chaosdyn.system import DynamicalSystem, continuous_system, discrete_system

__all__ = [
    "lorenz",
    "roessler",
    "henonheiles",
    "henon",
    "logistic",
    "towel",
    "standardmap",
]

_TWOPI = 2.0 * math.pi


# ---------------------------------------------------------------------------
# Continuous
# ---------------------------------------------------------------------------

def lorenz_rhs(u, p, t):
    sigma, rho, beta = p[0], p[1], p[2]
    out = np.empty(3)
    out[0] = sigma * (u[1] - u[0])
    out[1] = u[0] * (rho - u[2]) - u[1]
    out[2] = u[0] * u[1] - beta * u[2]
    return out


def lorenz_jac(u, p, t):
    sigma, rho, beta = p[0], p[1], p[2]
    J = np.empty((3, 3))
    J[0, 0] = -sigma
    J[0, 1] = sigma
    J[0, 2] = 0.0
    J[1, 0] = rho - u[2]
    J[1, 1] = -1.0
    J[1, 2] = -u[0]
    J[2, 0] = u[1]
    J[2, 1] = u[0]
    J[2, 2] = -beta
    return J


def lorenz(u0=None, *, sigma: float = 10.0, rho: float = 28.0, beta: float = 8.0 / 3.0,
           solver: Optional[SolverSettings] = None) -> DynamicalSystem:
    """
    Lorenz-63 flow.

        dx/dt = sigma (y - x)
        dy/dt = x (rho - z) - y
        dz/dt = x y - beta z

    Phase-space contraction rate: -(sigma + 1 + beta).
    """
    if u0 is None:
        u0 = [0.0, 10.0, 0.0]
    return continuous_system(
        lorenz_rhs, u0, np.array([sigma, rho, beta], dtype=np.float64), lorenz_jac,
        solver=solver,
    )


def roessler_rhs(u, p, t):
    a, b, c = p[0], p[1], p[2]
    out = np.empty(3)
    out[0] = -u[1] - u[2]
    out[1] = u[0] + a * u[1]
    out[2] = b + u[2] * (u[0] - c)
    return out


def roessler_jac(u, p, t):
    a, c = p[0], p[2]
    J = np.zeros((3, 3))
    J[0, 1] = -1.0
    J[0, 2] = -1.0
    J[1, 0] = 1.0
    J[1, 1] = a
    J[2, 0] = u[2]
    J[2, 2] = u[0] - c
    return J


def roessler(u0=None, *, a: float = 0.2, b: float = 0.2, c: float = 5.7,
             solver: Optional[SolverSettings] = None) -> DynamicalSystem:
    """
    Roessler flow.

        dx/dt = -y - z
        dy/dt = x + a y
        dz/dt = b + z (x - c)
    """
    if u0 is None:
        u0 = [1.0, -2.0, 0.1]
    return continuous_system(
        roessler_rhs, u0, np.array([a, b, c], dtype=np.float64), roessler_jac,
        solver=solver,
    )


def henonheiles_rhs(u, p, t):
    lam = p[0]
    x, y = u[0], u[1]
    out = np.empty(4)
    out[0] = u[2]
    out[1] = u[3]
    out[2] = -x - 2.0 * lam * x * y
    out[3] = -y - lam * (x * x - y * y)
    return out


def henonheiles_jac(u, p, t):
    lam = p[0]
    x, y = u[0], u[1]
    J = np.zeros((4, 4))
    J[0, 2] = 1.0
    J[1, 3] = 1.0
    J[2, 0] = -1.0 - 2.0 * lam * y
    J[2, 1] = -2.0 * lam * x
    J[3, 0] = -2.0 * lam * x
    J[3, 1] = -1.0 + 2.0 * lam * y
    return J


def henonheiles_energy(u, lam: float = 1.0) -> float:
    """Hamiltonian of the Henon-Heiles system (conserved along orbits)."""
    x, y, px, py = u[0], u[1], u[2], u[3]
    return 0.5 * (px * px + py * py) + 0.5 * (x * x + y * y) + lam * (x * x * y - y ** 3 / 3.0)


def henonheiles(u0=None, *, lam: float = 1.0,
                solver: Optional[SolverSettings] = None) -> DynamicalSystem:
    """
    Henon-Heiles Hamiltonian flow, state (x, y, px, py).

        dx/dt = px,  dy/dt = py
        dpx/dt = -x - 2 lam x y
        dpy/dt = -y - lam (x^2 - y^2)

    The default initial condition lies on a chaotic orbit at energy 1/8.
    """
    if u0 is None:
        u0 = [0.0, -0.25, 0.42081, 0.0]
    return continuous_system(
        henonheiles_rhs, u0, np.array([lam], dtype=np.float64), henonheiles_jac,
        solver=solver,
    )


# ---------------------------------------------------------------------------
# Discrete
# ---------------------------------------------------------------------------

def henon_map(u, p, t):
    a, b = p[0], p[1]
    out = np.empty(2)
    out[0] = 1.0 - a * u[0] * u[0] + u[1]
    out[1] = b * u[0]
    return out


def henon_jac(u, p, t):
    a, b = p[0], p[1]
    J = np.empty((2, 2))
    J[0, 0] = -2.0 * a * u[0]
    J[0, 1] = 1.0
    J[1, 0] = b
    J[1, 1] = 0.0
    return J


def henon(u0=None, *, a: float = 1.4, b: float = 0.3) -> DynamicalSystem:
    """
    Henon map.

        x' = 1 - a x^2 + y
        y' = b x
    """
    if u0 is None:
        u0 = [0.0, 0.0]
    return discrete_system(henon_map, u0, np.array([a, b], dtype=np.float64), henon_jac)


def logistic_map(u, p, t):
    r = p[0]
    out = np.empty(1)
    out[0] = r * u[0] * (1.0 - u[0])
    return out


def logistic_jac(u, p, t):
    J = np.empty((1, 1))
    J[0, 0] = p[0] * (1.0 - 2.0 * u[0])
    return J


def logistic(x0=None, *, r: float = 4.0, rng=None) -> DynamicalSystem:
    """Logistic map x' = r x (1 - x). Random x0 in [0, 1) unless given."""
    if x0 is None:
        x0 = np.random.default_rng(rng).random()
    return discrete_system(
        logistic_map, np.atleast_1d(np.asarray(x0, dtype=np.float64)),
        np.array([r], dtype=np.float64), logistic_jac,
    )


def towel_map(u, p, t):
    x, y, z = u[0], u[1], u[2]
    out = np.empty(3)
    out[0] = 3.8 * x * (1.0 - x) - 0.05 * (y + 0.35) * (1.0 - 2.0 * z)
    out[1] = 0.1 * ((y + 0.35) * (1.0 - 2.0 * z) - 1.0) * (1.0 - 1.9 * x)
    out[2] = 3.78 * z * (1.0 - z) + 0.2 * y
    return out


def towel_jac(u, p, t):
    x, y, z = u[0], u[1], u[2]
    J = np.empty((3, 3))
    J[0, 0] = 3.8 * (1.0 - 2.0 * x)
    J[0, 1] = -0.05 * (1.0 - 2.0 * z)
    J[0, 2] = 0.1 * (y + 0.35)
    J[1, 0] = -0.19 * ((y + 0.35) * (1.0 - 2.0 * z) - 1.0)
    J[1, 1] = 0.1 * (1.0 - 2.0 * z) * (1.0 - 1.9 * x)
    J[1, 2] = -0.2 * (y + 0.35) * (1.0 - 1.9 * x)
    J[2, 0] = 0.0
    J[2, 1] = 0.2
    J[2, 2] = 3.78 * (1.0 - 2.0 * z)
    return J


def towel(u0=None) -> DynamicalSystem:
    """Folded-towel map: a 3-D map with two positive exponents (hyperchaos)."""
    if u0 is None:
        u0 = [0.085, -0.121, 0.075]
    return discrete_system(towel_map, u0, None, towel_jac)


def standardmap_map(u, p, t):
    k = p[0]
    theta = u[0]
    mom = u[1] + k * math.sin(theta)
    theta = theta + mom
    out = np.empty(2)
    out[0] = theta % _TWOPI
    out[1] = mom % _TWOPI
    return out


def standardmap_jac(u, p, t):
    kc = p[0] * math.cos(u[0])
    J = np.empty((2, 2))
    J[0, 0] = 1.0 + kc
    J[0, 1] = 1.0
    J[1, 0] = kc
    J[1, 1] = 1.0
    return J


def standardmap(u0=None, *, k: float = 0.971635, rng=None) -> DynamicalSystem:
    """
    Chirikov standard map on the torus [0, 2pi)^2, state (theta, p).

        p' = p + k sin(theta)
        theta' = theta + p'

    The default k is Greene's critical value for the golden-mean torus.
    Without u0 the orbit starts at 0.001 * uniform random numbers.
    """
    if u0 is None:
        u0 = 0.001 * np.random.default_rng(rng).random(2)
    return discrete_system(
        standardmap_map, u0, np.array([k], dtype=np.float64), standardmap_jac,
    )
