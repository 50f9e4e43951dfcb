# tests/steppers/map/test_map_stepper.py
"""
Map stepper: one proposal per call, time label advanced by dt, never scaled by dt.
"""
from __future__ import annotations

import numpy as np
import pytest

from chaosdyn import OK, discrete_system, make_integrator, trajectory
from chaosdyn.steppers.registry import get_stepper
from chaosdyn.systems import logistic


def _double(t, y, out, params):
    for i in range(y.size):
        out[i] = 2.0 * y[i] + params[0]


def test_map_kernel_abi():
    spec = get_stepper("map")
    assert spec.meta.kind == "map"
    assert spec.default_config() is None
    kernel = spec.emit(jit=False)
    ws = spec.make_workspace(2, np.float64)
    y = np.array([1.0, -1.0])
    y_prop = np.zeros(2)
    t_prop = np.zeros(1)
    dt_next = np.zeros(1)
    err = np.zeros(1)
    status = kernel(3.0, 1.0, y, _double, np.array([0.5]), ws,
                    spec.pack_config(None), y_prop, t_prop, dt_next, err)
    assert status == OK
    np.testing.assert_array_equal(y_prop, [2.5, -1.5])
    np.testing.assert_array_equal(y, [1.0, -1.0])
    assert t_prop[0] == 4.0
    assert dt_next[0] == 1.0
    assert err[0] == 0.0


def test_map_aliases():
    spec = get_stepper("map")
    assert get_stepper("iter") is spec
    assert get_stepper("discrete") is spec


def test_time_labels_follow_t0():
    ds = discrete_system(lambda u, p, t: u + t, [0.0], jacobian=lambda u, p, t: [[1.0]], t0=10)
    integ = make_integrator(ds)
    integ.step(3)
    assert integ.get_time() == 13
    # f receives the iteration index: 0 + 10 + 11 + 12
    np.testing.assert_array_equal(integ.get_state(), [33.0])


def test_trajectory_of_logistic_map():
    ds = logistic(0.2, r=3.2)
    times, states = trajectory(ds, 4)
    np.testing.assert_array_equal(times, [0, 1, 2, 3, 4])
    x = 0.2
    for i in range(5):
        assert states[i, 0] == pytest.approx(x, rel=1e-15)
        x = 3.2 * x * (1.0 - x)


def test_trajectory_transient_and_stride():
    ds = logistic(0.2, r=3.2)
    times, states = trajectory(ds, 6, dt=2, Ttr=3)
    np.testing.assert_array_equal(times, [3, 5, 7, 9])
    assert states.shape == (4, 1)


def test_map_jit_parity():
    pytest.importorskip("numba")
    ds = logistic(0.3, r=3.2)
    a = make_integrator(ds, jit=False).step(50)
    b = make_integrator(ds, jit=True).step(50)
    np.testing.assert_allclose(a.get_state(), b.get_state(), rtol=1e-12)
