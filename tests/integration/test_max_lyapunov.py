# tests/integration/test_max_lyapunov.py
"""
Maximum Lyapunov exponent (Benettin two-trajectory rescaling).
"""
from __future__ import annotations

import warnings

import numpy as np
import pytest

from chaosdyn import (
    ConfigError,
    continuous_system,
    lyapunov_spectrum,
    make_integrator,
    max_lyapunov,
    max_lyapunov_from_integrators,
)
from chaosdyn.systems import henon, lorenz, lorenz_jac, lorenz_rhs


def test_henon_max_exponent():
    lam = max_lyapunov(henon(), 50000)
    assert 0.40 < lam < 0.44


def test_benettin_agrees_with_qr():
    lam = max_lyapunov(henon(), 30000)
    spectrum = lyapunov_spectrum(henon(), 30000)
    assert abs(lam - spectrum[0]) < 0.03


def test_lorenz_max_exponent_fixed_step():
    lam = max_lyapunov(lorenz(), 300.0, Ttr=10.0, stepper="rk4", dt=0.1)
    assert 0.8 < lam < 1.0


def test_threshold_must_exceed_d0_before_integration():
    calls = []

    def f(u, p, t):
        calls.append(t)
        return lorenz_rhs(u, p, t)

    ds = continuous_system(f, [0.0, 10.0, 0.0], np.array([10.0, 28.0, 8.0 / 3.0]), lorenz_jac)
    calls.clear()
    with pytest.raises(ConfigError, match="threshold"):
        max_lyapunov(ds, 10.0, d0=1e-6, threshold=1e-6)
    with pytest.raises(ConfigError):
        max_lyapunov(ds, 10.0, d0=1e-6, threshold=1e-7)
    assert calls == []


def test_trace_matches_final_value():
    lam = max_lyapunov(henon(), 5000)
    trace, times = max_lyapunov(henon(), 5000, return_trace=True)
    assert trace[-1] == pytest.approx(lam, rel=1e-12)
    assert times[-1] == 5000
    assert np.all(np.diff(times) > 0)
    assert times.dtype.kind == "i"


def test_custom_inittest():
    seen = []

    def inittest(state, d0):
        seen.append(d0)
        out = np.array(state, copy=True)
        out[0] += d0
        return out

    lam = max_lyapunov(henon(), 20000, d0=1e-8, inittest=inittest)
    assert seen == [1e-8]
    assert 0.39 < lam < 0.45


def test_coarse_tolerances_warn():
    with pytest.warns(RuntimeWarning, match="coarser than d0"):
        max_lyapunov(lorenz(), 1.0, d0=1e-9, atol=1e-6)


def test_default_tolerances_follow_d0():
    with warnings.catch_warnings():
        warnings.simplefilter("error", RuntimeWarning)
        max_lyapunov(lorenz(), 1.0, d0=1e-8)


def test_large_chunk_warns():
    with pytest.warns(RuntimeWarning, match="single chunk"):
        max_lyapunov(lorenz(), 30.0, Ttr=5.0, d0=1e-9, threshold=1e-8, dt=10.0,
                     stepper="rk4")


def test_driver_on_prebuilt_integrators():
    ds = henon()
    given = make_integrator(ds)
    given.step(100)
    d0 = 1e-7
    test = make_integrator(ds, u0=given.get_state() + d0 / np.sqrt(2.0), t0=given.get_time())
    lam = max_lyapunov_from_integrators(given, test, 20000, d0=d0, threshold=1e3 * d0)
    assert 0.39 < lam < 0.45
    assert given.get_time() == 20100
