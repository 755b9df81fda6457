"""Elementary functions and floating-point classification for floats and jets.

Every function accepts a plain real number or a :class:`~balbundle.jet.Jet`.
Real arguments give real results.  Jet arguments give jets whose
infinitesimal parts follow the chain rule ``f(a + h) = f(a) + f'(a) h``.
Domain errors on the scalar part are raised as :class:`ValueError`, the same
way the :mod:`math` module raises them.
"""

from __future__ import annotations

import math
import sys

import numpy as np

from balbundle.jet import Jet

__all__ = [
    "is_finite",
    "is_infinite",
    "is_nan",
    "is_normal",
    "sqrt",
    "exp",
    "log",
    "sin",
    "cos",
    "tan",
    "asin",
    "acos",
    "atan",
    "sinh",
    "cosh",
    "tanh",
    "atan2",
    "power",
]


def _is_normal_float(x: float) -> bool:
    return math.isfinite(x) and x != 0.0 and abs(x) >= sys.float_info.min


def _parts(x: Jet):
    yield x.a
    yield from (float(c) for c in x.v)


# Classification.  A jet is finite or normal when all of its parts are; it is
# NaN or infinite when any part is.


def is_finite(x) -> bool:
    """True if the value (and, for a jet, every derivative) is finite."""
    if isinstance(x, Jet):
        return all(math.isfinite(p) for p in _parts(x))
    return math.isfinite(x)


def is_infinite(x) -> bool:
    """True if the value or any derivative is infinite."""
    if isinstance(x, Jet):
        return any(math.isinf(p) for p in _parts(x))
    return math.isinf(x)


def is_nan(x) -> bool:
    """True if the value or any derivative is NaN."""
    if isinstance(x, Jet):
        return any(math.isnan(p) for p in _parts(x))
    return math.isnan(x)


def is_normal(x) -> bool:
    """True if the value (and, for a jet, every derivative) is a normal float."""
    if isinstance(x, Jet):
        return all(_is_normal_float(p) for p in _parts(x))
    return _is_normal_float(float(x))


# Elementary functions.


def sqrt(x):
    """Square root: sqrt(a + h) = sqrt(a) + h / (2 sqrt(a))."""
    if isinstance(x, Jet):
        root = math.sqrt(x.a)
        return Jet(root, x.v * (1.0 / (2.0 * root)))
    return math.sqrt(x)


def exp(x):
    """Exponential: exp(a + h) = exp(a) + exp(a) h."""
    if isinstance(x, Jet):
        value = math.exp(x.a)
        return Jet(value, value * x.v)
    return math.exp(x)


def log(x):
    """Natural logarithm: log(a + h) = log(a) + h / a."""
    if isinstance(x, Jet):
        return Jet(math.log(x.a), x.v * (1.0 / x.a))
    return math.log(x)


def sin(x):
    """Sine: sin(a + h) = sin(a) + cos(a) h."""
    if isinstance(x, Jet):
        return Jet(math.sin(x.a), math.cos(x.a) * x.v)
    return math.sin(x)


def cos(x):
    """Cosine: cos(a + h) = cos(a) - sin(a) h."""
    if isinstance(x, Jet):
        return Jet(math.cos(x.a), -math.sin(x.a) * x.v)
    return math.cos(x)


def tan(x):
    """Tangent: tan(a + h) = tan(a) + (1 + tan(a)^2) h."""
    if isinstance(x, Jet):
        t = math.tan(x.a)
        return Jet(t, (1.0 + t * t) * x.v)
    return math.tan(x)


def asin(x):
    """Arc sine: asin(a + h) = asin(a) + h / sqrt(1 - a^2)."""
    if isinstance(x, Jet):
        factor = 1.0 / math.sqrt(1.0 - x.a * x.a)
        return Jet(math.asin(x.a), factor * x.v)
    return math.asin(x)


def acos(x):
    """Arc cosine: acos(a + h) = acos(a) - h / sqrt(1 - a^2)."""
    if isinstance(x, Jet):
        factor = -1.0 / math.sqrt(1.0 - x.a * x.a)
        return Jet(math.acos(x.a), factor * x.v)
    return math.acos(x)


def atan(x):
    """Arc tangent: atan(a + h) = atan(a) + h / (1 + a^2)."""
    if isinstance(x, Jet):
        factor = 1.0 / (1.0 + x.a * x.a)
        return Jet(math.atan(x.a), factor * x.v)
    return math.atan(x)


def sinh(x):
    """Hyperbolic sine: sinh(a + h) = sinh(a) + cosh(a) h."""
    if isinstance(x, Jet):
        return Jet(math.sinh(x.a), math.cosh(x.a) * x.v)
    return math.sinh(x)


def cosh(x):
    """Hyperbolic cosine: cosh(a + h) = cosh(a) + sinh(a) h."""
    if isinstance(x, Jet):
        return Jet(math.cosh(x.a), math.sinh(x.a) * x.v)
    return math.cosh(x)


def tanh(x):
    """Hyperbolic tangent: tanh(a + h) = tanh(a) + (1 - tanh(a)^2) h."""
    if isinstance(x, Jet):
        t = math.tanh(x.a)
        return Jet(t, (1.0 - t * t) * x.v)
    return math.tanh(x)


def _as_jets(*values):
    """Lift plain numbers to constant jets matching the jets among ``values``."""
    dims = {v.dimension for v in values if isinstance(v, Jet)}
    if len(dims) > 1:
        raise ValueError(f"jet dimensions differ: {sorted(dims)}")
    (n,) = dims
    return tuple(v if isinstance(v, Jet) else Jet(float(v), np.zeros(n)) for v in values)


def atan2(y, x):
    """Two-argument arc tangent of ``y / x``.

    For jets: atan2(b + db, a + da) = atan2(b, a) + (a db - b da) / (a^2 + b^2).
    """
    if not isinstance(y, Jet) and not isinstance(x, Jet):
        return math.atan2(y, x)
    g, f = _as_jets(y, x)
    factor = 1.0 / (f.a * f.a + g.a * g.a)
    return Jet(math.atan2(g.a, f.a), factor * (-g.a * f.v + f.a * g.v))


def power(base, exponent):
    """``base`` raised to ``exponent``; either or both may be jets."""
    base_jet = isinstance(base, Jet)
    exp_jet = isinstance(exponent, Jet)
    if not base_jet and not exp_jet:
        return math.pow(base, exponent)
    if base_jet and not exp_jet:
        # (a + da)^p = a^p + p a^(p-1) da
        p = float(exponent)
        return Jet(math.pow(base.a, p), p * math.pow(base.a, p - 1.0) * base.v)
    if exp_jet and not base_jet:
        # a^(p + dp) = a^p + a^p log(a) dp
        a = float(base)
        value = math.pow(a, exponent.a)
        return Jet(value, math.log(a) * value * exponent.v)
    # (a + da)^(b + db) = a^b + b a^(b-1) da + a^b log(a) db
    f, g = _as_jets(base, exponent)
    value = math.pow(f.a, g.a)
    d_base = g.a * math.pow(f.a, g.a - 1.0)
    d_exp = value * math.log(f.a)
    return Jet(value, d_base * f.v + d_exp * g.v)