import math

import numpy as np
import pytest

from balbundle import jet_math
from balbundle.jet import Jet

UNARY = [
    (jet_math.sqrt, 0.7),
    (jet_math.exp, 0.3),
    (jet_math.log, 1.7),
    (jet_math.sin, 0.4),
    (jet_math.cos, 0.4),
    (jet_math.tan, 0.6),
    (jet_math.asin, 0.2),
    (jet_math.acos, 0.2),
    (jet_math.atan, 1.3),
    (jet_math.sinh, 0.5),
    (jet_math.cosh, 0.5),
    (jet_math.tanh, 0.5),
]


def _numeric_derivative(f, x, h=1e-6):
    return (f(x + h) - f(x - h)) / (2 * h)


@pytest.mark.parametrize("func,x", UNARY)
def test_unary_value_matches_float(func, x):
    result = func(Jet.variable(x, 0, 1))
    assert result.a == pytest.approx(func(x))


@pytest.mark.parametrize("func,x", UNARY)
def test_unary_derivative_matches_finite_difference(func, x):
    result = func(Jet.variable(x, 0, 1))
    assert result.v[0] == pytest.approx(_numeric_derivative(func, x), rel=1e-6)


def test_power_worked_example_from_square():
    # f(x) = x^2 at 10: value 100, derivative 20.
    result = jet_math.power(Jet.variable(10.0, 0, 1), 2.0)
    assert result.a == pytest.approx(100.0)
    assert result.v[0] == pytest.approx(20.0)


def test_two_variable_worked_example():
    x = Jet.variable(1.0, 0, 2)
    y = Jet.variable(3.0, 1, 2)
    z = jet_math.power(x, 2.0) + x * y
    assert z.a == pytest.approx(4.0)
    assert z.v[0] == pytest.approx(5.0)
    assert z.v[1] == pytest.approx(1.0)


def test_pythagorean_identity_has_zero_derivative():
    x = Jet.variable(0.9, 0, 1)
    s = jet_math.sin(x)
    c = jet_math.cos(x)
    total = s * s + c * c
    assert total.a == pytest.approx(1.0)
    assert total.v[0] == pytest.approx(0.0, abs=1e-12)


def test_exp_log_round_trip():
    x = Jet.variable(2.5, 0, 1)
    result = jet_math.exp(jet_math.log(x))
    assert result.a == pytest.approx(2.5)
    assert result.v[0] == pytest.approx(1.0)


def test_power_constant_base():
    g = Jet.variable(1.5, 0, 1)
    result = jet_math.power(2.0, g)
    assert result.a == pytest.approx(math.pow(2.0, 1.5))
    assert result.v[0] == pytest.approx(
        _numeric_derivative(lambda e: math.pow(2.0, e), 1.5), rel=1e-6
    )


def test_power_both_jets():
    f = Jet.variable(1.8, 0, 2)
    g = Jet.variable(0.7, 1, 2)
    result = jet_math.power(f, g)
    assert result.a == pytest.approx(math.pow(1.8, 0.7))
    assert result.v[0] == pytest.approx(
        _numeric_derivative(lambda b: math.pow(b, 0.7), 1.8), rel=1e-6
    )
    assert result.v[1] == pytest.approx(
        _numeric_derivative(lambda e: math.pow(1.8, e), 0.7), rel=1e-6
    )


def test_power_floats():
    assert jet_math.power(3.0, 2.0) == pytest.approx(math.pow(3.0, 2.0))


def test_atan2_partial_derivatives():
    y = Jet.variable(0.5, 0, 2)
    x = Jet.variable(-1.2, 1, 2)
    result = jet_math.atan2(y, x)
    assert result.a == pytest.approx(math.atan2(0.5, -1.2))
    assert result.v[0] == pytest.approx(
        _numeric_derivative(lambda t: math.atan2(t, -1.2), 0.5), rel=1e-6
    )
    assert result.v[1] == pytest.approx(
        _numeric_derivative(lambda t: math.atan2(0.5, t), -1.2), rel=1e-6
    )


def test_atan2_mixed_float_and_jet():
    y = Jet.variable(0.5, 0, 1)
    result = jet_math.atan2(y, 2.0)
    assert result.a == pytest.approx(math.atan2(0.5, 2.0))
    assert result.v[0] == pytest.approx(
        _numeric_derivative(lambda t: math.atan2(t, 2.0), 0.5), rel=1e-6
    )


def test_atan2_dimension_mismatch():
    with pytest.raises(ValueError):
        jet_math.atan2(Jet.variable(1.0, 0, 1), Jet.variable(1.0, 0, 2))


def test_sqrt_domain_error():
    with pytest.raises(ValueError):
        jet_math.sqrt(Jet.variable(-1.0, 0, 1))


def test_classification_of_floats():
    assert jet_math.is_finite(1.0)
    assert not jet_math.is_finite(math.inf)
    assert jet_math.is_infinite(-math.inf)
    assert jet_math.is_nan(math.nan)
    assert jet_math.is_normal(1.0)
    assert not jet_math.is_normal(0.0)
    assert not jet_math.is_normal(5e-324)


def test_classification_of_jets_any_semantics():
    jet = Jet(1.0, [math.nan, math.inf])
    assert jet_math.is_nan(jet)
    assert jet_math.is_infinite(jet)
    assert not jet_math.is_finite(jet)


def test_classification_of_jets_all_semantics():
    assert jet_math.is_finite(Jet(1.0, [2.0, 3.0]))
    assert jet_math.is_normal(Jet(1.0, [2.0, 3.0]))
    # A zero derivative is not a normal number.
    assert not jet_math.is_normal(Jet(1.0, [0.0]))
    assert not jet_math.is_nan(Jet(1.0, np.zeros(3)))