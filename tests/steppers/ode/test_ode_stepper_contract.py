# tests/steppers/ode/test_ode_stepper_contract.py
"""
ODE stepper contract tests (cross-stepper):

- Registration and metadata checks (order, time_control, aliases)
- Kernel ABI: status codes, proposal buffers, workspace shapes
- JIT on/off parity when numba is installed
"""
from __future__ import annotations

import numpy as np
import pytest

from chaosdyn import OK, make_integrator
from chaosdyn.steppers.registry import get_stepper, list_steppers, registry
from chaosdyn.systems import lorenz


def _decay_rhs(t, y, out, params):
    for i in range(y.size):
        out[i] = -params[0] * y[i]


def _call_kernel(name, y0, dt, params=np.array([1.0])):
    spec = get_stepper(name)
    kernel = spec.emit(jit=False)
    n = y0.size
    ws = spec.make_workspace(n, np.float64)
    cfg = spec.pack_config(spec.default_config())
    y_prop = np.zeros(n)
    t_prop = np.zeros(1)
    dt_next = np.zeros(1)
    err_est = np.zeros(1)
    status = kernel(0.0, dt, y0, _decay_rhs, params, ws, cfg, y_prop, t_prop, dt_next, err_est)
    return status, y_prop, t_prop[0], dt_next[0], ws


def test_stepper_registry_and_meta():
    reg = registry()
    for name in ("map", "rk4", "rk45"):
        assert name in reg, f"Stepper '{name}' missing from registry()"

    rk4 = get_stepper("rk4")
    assert rk4.meta.order == 4
    assert rk4.meta.time_control == "fixed"
    assert rk4.meta.embedded_order is None
    assert rk4.meta.caps.dense_output
    assert rk4.meta.caps.fsal

    rk45 = get_stepper("rk45")
    assert rk45.meta.order == 5
    # Dormand-Prince(5,4)
    assert rk45.meta.embedded_order == 4
    assert rk45.meta.time_control == "adaptive"
    assert rk45.meta.caps.dense_output
    assert rk45.meta.caps.fsal

    assert get_stepper("dopri5") is rk45
    assert get_stepper("dormand_prince") is rk45
    assert get_stepper("classical_rk4") is rk4


def test_list_steppers_by_kind():
    assert list_steppers("ode") == ["rk4", "rk45"]
    assert list_steppers("map") == ["map"]
    assert set(list_steppers()) == {"map", "rk4", "rk45"}


def test_rk4_kernel_single_step():
    status, y, t1, dt_next, _ = _call_kernel("rk4", np.array([1.0, 2.0]), 0.1)
    assert status == OK
    assert t1 == pytest.approx(0.1)
    assert dt_next == 0.1
    # RK4 on y' = -y reproduces the degree-4 Taylor polynomial of exp(-h)
    h = 0.1
    growth = 1 - h + h**2 / 2 - h**3 / 6 + h**4 / 24
    np.testing.assert_allclose(y, growth * np.array([1.0, 2.0]), rtol=1e-14)


def test_rk45_kernel_accepts_and_proposes():
    status, y, t1, dt_next, ws = _call_kernel("rk45", np.array([1.0]), 0.1)
    assert status == OK
    assert t1 == pytest.approx(0.1)
    np.testing.assert_allclose(y, [np.exp(-0.1)], rtol=1e-7)
    assert dt_next > 0.1
    # Last stage holds f(t_prop, y_prop) for the next step
    assert ws.fsal_ok[0] == 1.0
    np.testing.assert_allclose(ws.k7, -y, rtol=1e-14)


def test_rk45_kernel_rejects_large_step():
    status, y, t1, dt_next, _ = _call_kernel("rk45", np.array([1.0]), 5.0, params=np.array([3.0]))
    assert status == OK
    # The accepted step is smaller than the requested one
    assert t1 < 5.0
    np.testing.assert_allclose(y, [np.exp(-3.0 * t1)], rtol=1e-5)


@pytest.mark.parametrize("stepper, expected_ratio", [("rk4", 16.0)])
def test_fixed_step_convergence_order(stepper, expected_ratio):
    def err(dt):
        integ = make_integrator(
            lorenz([1.0, 1.0, 1.0]), stepper=stepper, dt=dt,
        )
        integ.step(0.5)
        ref = make_integrator(lorenz([1.0, 1.0, 1.0]), atol=1e-12, rtol=1e-12)
        ref.step(0.5)
        return np.linalg.norm(integ.get_state() - ref.get_state())

    ratio = err(0.01) / err(0.005)
    assert expected_ratio / 2 < ratio < expected_ratio * 2


def test_rk45_tolerances_control_accuracy():
    def run(tol):
        integ = make_integrator(lorenz([1.0, 1.0, 1.0]), atol=tol, rtol=tol)
        integ.step(1.0)
        return integ

    ref = run(1e-12).get_state()
    loose = run(1e-4)
    tight = run(1e-8)
    err_loose = np.linalg.norm(loose.get_state() - ref)
    err_tight = np.linalg.norm(tight.get_state() - ref)
    assert err_tight < err_loose / 100.0
    assert tight.nsteps > loose.nsteps


@pytest.mark.parametrize("stepper", ["rk4", "rk45"])
def test_jit_on_off_parity(stepper):
    pytest.importorskip("numba")
    results = []
    for jit in (False, True):
        integ = make_integrator(lorenz(), stepper=stepper, dt=0.01, jit=jit)
        integ.step(2.0)
        results.append((integ.get_time(), integ.get_state()))
    assert results[0][0] == results[1][0]
    np.testing.assert_allclose(results[0][1], results[1][1], rtol=1e-12, atol=0.0)


def test_rk4_kernel_keeps_end_slope():
    status, y, t1, _, ws = _call_kernel("rk4", np.array([1.0, 2.0]), 0.1)
    assert status == OK
    assert ws.fsal_ok[0] == 1.0
    np.testing.assert_allclose(ws.y_end, y, rtol=0.0, atol=0.0)
    np.testing.assert_allclose(ws.f_end, -y, rtol=1e-14)


@pytest.mark.parametrize("stepper", ["rk4", "rk45"])
def test_interpolant_matches_step_endpoints(stepper):
    spec = get_stepper(stepper)
    interp = spec.emit_interpolant(jit=False)
    y0 = np.array([1.0, -0.5])
    h = 0.2
    status, y1, t1, _, ws = _call_kernel(stepper, y0, h)
    assert status == OK
    h = t1
    out = np.zeros(2)
    interp(0.0, h, y0, ws, out)
    np.testing.assert_allclose(out, y0, rtol=1e-14)
    interp(1.0, h, y0, ws, out)
    np.testing.assert_allclose(out, y1, rtol=1e-12)
    for x in (0.25, 0.5, 0.75):
        interp(x, h, y0, ws, out)
        np.testing.assert_allclose(out, y0 * np.exp(-x * h), rtol=2e-5)


def test_rk4_interpolant_error_order():
    # Hermite error ~ h^4: halving h cuts the midpoint error about 16x
    spec = get_stepper("rk4")
    interp = spec.emit_interpolant(jit=False)

    def mid_error(h):
        y0 = np.array([1.0])
        _, _, _, _, ws = _call_kernel("rk4", y0, h)
        out = np.zeros(1)
        interp(0.5, h, y0, ws, out)
        return abs(out[0] - np.exp(-0.5 * h))

    ratio = mid_error(0.1) / mid_error(0.05)
    assert 8.0 < ratio < 32.0
