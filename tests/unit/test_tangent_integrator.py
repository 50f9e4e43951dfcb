# tests/unit/test_tangent_integrator.py
"""
Tangent integrator: joint state + deviation vectors.

- maps apply the Jacobian at the NEW state: Y_{n+1} = J(u_{n+1}) Y_n
- flows solve dY/dt = J(u) Y alongside du/dt = f(u)
- deviation handling (defaults, shapes, reinit)
"""
from __future__ import annotations

import numpy as np
import pytest
from scipy.linalg import expm

from chaosdyn import (
    ConfigError,
    DimensionMismatchError,
    TangentIntegrator,
    continuous_system,
    make_integrator,
    make_tangent_integrator,
)
from chaosdyn.systems import henon, henon_jac, henon_map, lorenz, lorenz_rhs


def test_map_uses_jacobian_at_new_state():
    ds = henon([0.3, 0.1])
    tinteg = make_tangent_integrator(ds, deviations=np.eye(2))
    tinteg.step()

    u1 = henon_map(ds.state, ds.parameters, 0)
    np.testing.assert_allclose(tinteg.get_state(), u1)
    expected = henon_jac(u1, ds.parameters, 1) @ np.eye(2)
    np.testing.assert_allclose(tinteg.get_deviations(), expected)

    old_ordering = henon_jac(ds.state, ds.parameters, 0)
    assert not np.allclose(tinteg.get_deviations(), old_ordering)


def test_map_deviations_after_several_iterations():
    ds = henon([0.3, 0.1])
    W0 = np.array([[1.0], [0.5]])
    tinteg = make_tangent_integrator(ds, deviations=W0)
    tinteg.step(3)

    u = ds.get_state()
    W = W0.copy()
    for n in range(3):
        u = henon_map(u, ds.parameters, n)
        W = henon_jac(u, ds.parameters, n + 1) @ W
    np.testing.assert_allclose(tinteg.get_deviations(), W)
    assert tinteg.get_time() == 3


def test_linear_flow_matches_matrix_exponential():
    A = np.array([[-0.5, 1.0], [-1.0, -0.5]])
    ds = continuous_system(lambda u, p, t: A @ u, [1.0, 0.0], jacobian=lambda u, p, t: A)
    W0 = np.array([[1.0, 0.2], [0.0, 1.0]])
    tinteg = make_tangent_integrator(ds, deviations=W0, atol=1e-10, rtol=1e-10)
    tinteg.step(2.0)

    M = expm(2.0 * A)
    np.testing.assert_allclose(tinteg.get_state(), M @ [1.0, 0.0], rtol=1e-7, atol=1e-9)
    np.testing.assert_allclose(tinteg.get_deviations(), M @ W0, rtol=1e-7, atol=1e-9)


def test_state_part_matches_plain_integration():
    ds = lorenz()
    plain = make_integrator(ds, stepper="rk4", dt=0.01)
    tangent = make_tangent_integrator(ds, k=2, rng=0, stepper="rk4", dt=0.01)
    plain.step(1.0)
    tangent.step(1.0)
    np.testing.assert_allclose(tangent.get_state(), plain.get_state(), rtol=1e-12)


def test_default_deviations_are_seeded_orthonormal():
    ds = lorenz()
    a = make_tangent_integrator(ds, k=2, rng=42)
    b = make_tangent_integrator(ds, k=2, rng=42)
    W = a.get_deviations()
    assert W.shape == (3, 2)
    np.testing.assert_array_equal(W, b.get_deviations())
    np.testing.assert_allclose(W.T @ W, np.eye(2), atol=1e-12)


def test_k_bounds():
    ds = lorenz()
    with pytest.raises(ConfigError):
        make_tangent_integrator(ds, k=0)
    with pytest.raises(ConfigError):
        make_tangent_integrator(ds, k=4)
    assert make_tangent_integrator(ds).k == 3


def test_deviation_inputs():
    ds = lorenz()
    tinteg = make_tangent_integrator(ds, deviations=[[1.0, 0.0, 0.0], [0.0, 0.0, 2.0]])
    assert tinteg.k == 2
    np.testing.assert_array_equal(tinteg.get_deviations(), [[1.0, 0.0], [0.0, 0.0], [0.0, 2.0]])

    with pytest.raises(DimensionMismatchError):
        make_tangent_integrator(ds, deviations=np.ones((2, 2)))
    with pytest.raises(DimensionMismatchError):
        make_tangent_integrator(ds, deviations=[[1.0, 0.0]])
    with pytest.raises(DimensionMismatchError):
        make_tangent_integrator(ds, k=3, deviations=np.eye(3)[:, :2])


def test_set_deviations_roundtrip():
    tinteg = make_tangent_integrator(henon(), deviations=np.eye(2))
    W = np.array([[0.0, 1.0], [2.0, 3.0]])
    tinteg.set_deviations(W)
    np.testing.assert_array_equal(tinteg.get_deviations(), W)
    with pytest.raises(DimensionMismatchError):
        tinteg.set_deviations(np.eye(3))


def test_reinit_restores_initial_deviations():
    ds = lorenz()
    tinteg = make_tangent_integrator(ds, rng=7)
    W0 = tinteg.get_deviations()
    tinteg.step(1.0)
    first_state = tinteg.get_state()
    first_devs = tinteg.get_deviations()

    tinteg.reinit()
    np.testing.assert_array_equal(tinteg.get_deviations(), W0)
    tinteg.step(1.0)
    np.testing.assert_array_equal(tinteg.get_state(), first_state)
    np.testing.assert_array_equal(tinteg.get_deviations(), first_devs)


def test_reinit_with_new_deviations():
    tinteg = make_tangent_integrator(henon(), deviations=np.eye(2))
    tinteg.step(4)
    tinteg.reinit([0.1, 0.1], deviations=np.eye(2)[:, ::-1], t0=10)
    assert tinteg.get_time() == 10
    np.testing.assert_array_equal(tinteg.get_state(), [0.1, 0.1])
    np.testing.assert_array_equal(tinteg.get_deviations(), [[0.0, 1.0], [1.0, 0.0]])


def test_jit_needs_analytic_jacobian():
    ds = continuous_system(lorenz_rhs, [1.0, 1.0, 1.0], np.array([10.0, 28.0, 8.0 / 3.0]))
    with pytest.raises(ConfigError, match="analytic"):
        TangentIntegrator(ds, jit=True)


def test_numerical_jacobian_tangent_dynamics():
    p = np.array([10.0, 28.0, 8.0 / 3.0])
    numeric = continuous_system(lorenz_rhs, [1.0, 1.0, 1.0], p)
    analytic = lorenz([1.0, 1.0, 1.0])
    a = make_tangent_integrator(analytic, deviations=np.eye(3), stepper="rk4", dt=0.01)
    b = make_tangent_integrator(numeric, deviations=np.eye(3), stepper="rk4", dt=0.01)
    a.step(0.5)
    b.step(0.5)
    np.testing.assert_allclose(b.get_deviations(), a.get_deviations(), rtol=1e-5, atol=1e-6)


def test_tangent_interpolate():
    A = np.array([[-1.0, 0.0], [0.0, -2.0]])
    ds = continuous_system(lambda u, p, t: A @ u, [1.0, 1.0], jacobian=lambda u, p, t: A)
    tinteg = make_tangent_integrator(ds, deviations=np.eye(2), atol=1e-10, rtol=1e-10)
    tinteg.step()
    t_mid = 0.5 * tinteg.get_time()
    u, W = tinteg.interpolate(t_mid)
    np.testing.assert_allclose(u, np.exp(np.diag(A) * t_mid), rtol=1e-7)
    np.testing.assert_allclose(W, expm(A * t_mid), rtol=1e-7, atol=1e-12)
