"""First-order dual numbers ("jets") for forward-mode automatic differentiation.

A jet ``a + v`` pairs a scalar value ``a`` with an infinitesimal part ``v``,
a vector holding one component per independent variable.  Products of
infinitesimals vanish, so ordinary arithmetic on jets carries exact first
derivatives along with the values.
"""

from __future__ import annotations

from numbers import Real
from typing import Union

import numpy as np

Scalar = Union[int, float]


class Jet:
    """A scalar value together with its gradient with respect to ``n`` variables."""

    __slots__ = ("a", "v")

    # Make numpy scalars defer to our reflected operators.
    __array_ufunc__ = None

    def __init__(self, a: Scalar = 0.0, v=None) -> None:
        self.a = float(a)
        self.v = np.zeros(0) if v is None else np.array(v, dtype=float).reshape(-1)

    @classmethod
    def constant(cls, value: Scalar, n: int) -> "Jet":
        """Return ``value + 0``: a jet with a zero infinitesimal part."""
        if n < 0:
            raise ValueError("jet dimension must be non-negative")
        return cls(value, np.zeros(n))

    @classmethod
    def variable(cls, value: Scalar, k: int, n: int) -> "Jet":
        """Return ``value + t_k``: the ``k``-th independent variable of ``n``."""
        if not 0 <= k < n:
            raise IndexError(f"variable index {k} out of range for dimension {n}")
        v = np.zeros(n)
        v[k] = 1.0
        return cls(value, v)

    @property
    def dimension(self) -> int:
        """Number of infinitesimal components."""
        return self.v.shape[0]

    def copy(self) -> "Jet":
        return Jet(self.a, self.v.copy())

    def _check(self, other: "Jet") -> None:
        if other.v.shape != self.v.shape:
            raise ValueError(
                f"jet dimensions differ: {self.dimension} and {other.dimension}"
            )

    # Unary operators

    def __pos__(self) -> "Jet":
        return self

    def __neg__(self) -> "Jet":
        return Jet(-self.a, -self.v)

    def __abs__(self) -> "Jet":
        return -self if self.a < 0.0 else self

    # Addition and subtraction

    def __add__(self, other):
        if isinstance(other, Jet):
            self._check(other)
            return Jet(self.a + other.a, self.v + other.v)
        if isinstance(other, Real):
            return Jet(self.a + other, self.v.copy())
        return NotImplemented

    def __radd__(self, other):
        if isinstance(other, Real):
            return Jet(self.a + other, self.v.copy())
        return NotImplemented

    def __sub__(self, other):
        if isinstance(other, Jet):
            self._check(other)
            return Jet(self.a - other.a, self.v - other.v)
        if isinstance(other, Real):
            return Jet(self.a - other, self.v.copy())
        return NotImplemented

    def __rsub__(self, other):
        if isinstance(other, Real):
            return Jet(other - self.a, -self.v)
        return NotImplemented

    # Multiplication and division

    def __mul__(self, other):
        if isinstance(other, Jet):
            self._check(other)
            return Jet(self.a * other.a, self.a * other.v + self.v * other.a)
        if isinstance(other, Real):
            return Jet(self.a * other, self.v * other)
        return NotImplemented

    def __rmul__(self, other):
        if isinstance(other, Real):
            return Jet(self.a * other, self.v * other)
        return NotImplemented

    def __truediv__(self, other):
        if isinstance(other, Jet):
            self._check(other)
            # (a + u) / (b + v) = a/b + (u - (a/b) v) / b, since v*v = 0.
            inverse = 1.0 / other.a
            ratio = self.a * inverse
            return Jet(ratio, (self.v - ratio * other.v) * inverse)
        if isinstance(other, Real):
            inverse = 1.0 / other
            return Jet(self.a * inverse, self.v * inverse)
        return NotImplemented

    def __rtruediv__(self, other):
        if isinstance(other, Real):
            factor = -other / (self.a * self.a)
            return Jet(other / self.a, self.v * factor)
        return NotImplemented

    # Comparisons act on the scalar part only.

    @staticmethod
    def _scalar(other):
        if isinstance(other, Jet):
            return other.a
        if isinstance(other, Real):
            return other
        return None

    def __lt__(self, other):
        s = self._scalar(other)
        return NotImplemented if s is None else self.a < s

    def __le__(self, other):
        s = self._scalar(other)
        return NotImplemented if s is None else self.a <= s

    def __gt__(self, other):
        s = self._scalar(other)
        return NotImplemented if s is None else self.a > s

    def __ge__(self, other):
        s = self._scalar(other)
        return NotImplemented if s is None else self.a >= s

    def __eq__(self, other):
        s = self._scalar(other)
        return NotImplemented if s is None else self.a == s

    def __ne__(self, other):
        s = self._scalar(other)
        return NotImplemented if s is None else self.a != s

    __hash__ = None  # type: ignore[assignment]

    def __repr__(self) -> str:
        parts = " ".join(f"{x:g}" for x in self.v)
        return f"[{self.a:g} ; {parts}]"