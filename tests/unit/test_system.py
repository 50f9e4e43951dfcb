# tests/unit/test_system.py
"""
DynamicalSystem descriptor: construction checks, immutability, Jacobian providers.
"""
from __future__ import annotations

import dataclasses

import numpy as np
import pytest

from chaosdyn import (
    AnalyticJacobian,
    ConfigError,
    DimensionMismatchError,
    DynamicalSystem,
    NumericalJacobian,
    SolverSettings,
    continuous_system,
    discrete_system,
)
from chaosdyn.systems import henon, lorenz, lorenz_jac, lorenz_rhs


def test_state_is_read_only_copy():
    u0 = np.array([1.0, 2.0, 3.0])
    ds = lorenz(u0)
    u0[0] = 100.0
    assert ds.state[0] == 1.0
    with pytest.raises(ValueError):
        ds.state[0] = 5.0
    with pytest.raises(dataclasses.FrozenInstanceError):
        ds.state = np.zeros(3)


def test_get_state_is_writable():
    ds = lorenz()
    u = ds.get_state()
    u[0] = 7.0
    assert ds.state[0] == 0.0


def test_vector_field_dimension_checked():
    def f(u, p, t):
        return np.zeros(3)

    with pytest.raises(DimensionMismatchError):
        continuous_system(f, [0.0, 1.0])


def test_jacobian_dimension_checked():
    def f(u, p, t):
        return -u

    def J(u, p, t):
        return np.eye(3)

    with pytest.raises(DimensionMismatchError):
        continuous_system(f, [0.0, 1.0], jacobian=J)


def test_missing_jacobian_selects_numerical():
    ds = continuous_system(lorenz_rhs, [1.0, 2.0, 3.0], np.array([10.0, 28.0, 8.0 / 3.0]))
    assert isinstance(ds.jacobian, NumericalJacobian)
    assert not ds.jacobian.analytic
    ds2 = lorenz()
    assert isinstance(ds2.jacobian, AnalyticJacobian)
    assert ds2.jacobian.analytic


@pytest.mark.parametrize("scheme, rtol", [("central", 1e-7), ("forward", 1e-5)])
def test_numerical_jacobian_matches_analytic(scheme, rtol):
    p = np.array([10.0, 28.0, 8.0 / 3.0])
    u = np.array([1.3, -2.1, 20.5])
    jac = NumericalJacobian(lorenz_rhs, scheme=scheme)
    np.testing.assert_allclose(jac(u, p, 0.0), lorenz_jac(u, p, 0.0), rtol=rtol, atol=rtol * 30)


def test_numerical_jacobian_leaves_input_untouched():
    p = np.array([10.0, 28.0, 8.0 / 3.0])
    u = np.array([1.0, 2.0, 3.0])
    NumericalJacobian(lorenz_rhs)(u, p, 0.0)
    np.testing.assert_array_equal(u, [1.0, 2.0, 3.0])


def test_numerical_jacobian_options_validated():
    with pytest.raises(ConfigError):
        NumericalJacobian(lorenz_rhs, scheme="backward")
    with pytest.raises(ConfigError):
        NumericalJacobian(lorenz_rhs, eps=0.0)


def test_kind_and_time_types():
    ds_map = henon()
    ds_ode = lorenz()
    assert ds_map.is_discrete and ds_map.kind == "map"
    assert not ds_ode.is_discrete and ds_ode.kind == "ode"
    assert isinstance(ds_map.t0, int)
    assert isinstance(ds_ode.t0, float)
    assert ds_map.dimension == 2
    assert ds_ode.dimension == 3


def test_default_solver_settings():
    assert henon().solver.stepper == "map"
    assert lorenz().solver.stepper == "rk45"
    custom = SolverSettings("rk4", dt=0.005)
    assert lorenz(solver=custom).solver is custom


def test_invalid_kind():
    with pytest.raises(ConfigError):
        DynamicalSystem(vector_field=lorenz_rhs, state=[0.0, 1.0, 0.0],
                        parameters=np.array([10.0, 28.0, 8.0 / 3.0]), kind="sde")


def test_with_state_and_parameters():
    ds = henon()
    ds2 = ds.with_state([0.1, 0.2])
    np.testing.assert_array_equal(ds2.state, [0.1, 0.2])
    np.testing.assert_array_equal(ds.state, [0.0, 0.0])
    with pytest.raises(DimensionMismatchError):
        ds.with_state([0.1, 0.2, 0.3])

    ds3 = ds.with_parameters(np.array([1.2, 0.3]))
    np.testing.assert_allclose(ds3.rhs([1.0, 0.0]), [1.0 - 1.2, 0.3])


def test_rhs_and_jac_helpers():
    ds = henon()
    np.testing.assert_allclose(ds.rhs([0.5, 0.1]), [1.0 - 1.4 * 0.25 + 0.1, 0.15])
    np.testing.assert_allclose(ds.jac([0.5, 0.1]), [[-1.4, 1.0], [0.3, 0.0]])


def test_scalar_map_accepts_scalar_returns():
    ds = discrete_system(lambda u, p, t: 2.0 * u, [0.25], jacobian=lambda u, p, t: [[2.0]])
    assert ds.dimension == 1
    np.testing.assert_allclose(ds.rhs([0.25]), [0.5])


def test_list_state_is_converted_before_user_callables():
    ds = discrete_system(lambda u, p, t: u * u, [0.5],
                         jacobian=lambda u, p, t: (2.0 * u).reshape(1, 1))
    np.testing.assert_allclose(ds.rhs([3.0]), [9.0])
    np.testing.assert_allclose(ds.jac([3.0]), [[6.0]])
