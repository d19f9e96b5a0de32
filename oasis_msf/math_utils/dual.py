################################################################################
#
#  Copyright (C) 2026 Garrett Brown
#  This file is part of OASIS - https://github.com/eigendude/OASIS
#
#  SPDX-License-Identifier: Apache-2.0
#  See DOCS/LICENSING.md for more information.
#
################################################################################
"""
Forward-mode dual numbers with vector tangents

A Dual carries a real value and a tangent vector of partial derivatives with
respect to every seeded input. Arithmetic follows the chain rule, so
evaluating a measurement model on dual inputs yields the model output and its
full Jacobian in a single pass.

Duals are plain Python objects. Numpy stores them in object arrays, where
arithmetic operators dispatch element-wise to the Dual methods and unary
ufuncs such as ``np.sin`` call the method of the same name on each element.
Models evaluated on duals must therefore use numpy arithmetic and ufuncs, and
must not cast intermediate values to float.
"""

from __future__ import annotations

import math
from typing import Union

import numpy as np
from numpy.typing import NDArray


Scalar = Union[int, float, np.integer, np.floating]


class Dual:
    """Real value paired with a tangent vector."""

    __slots__ = ("val", "grad")

    def __init__(self, val: float, grad: NDArray[np.float64]) -> None:
        self.val: float = float(val)
        self.grad: NDArray[np.float64] = grad

    @staticmethod
    def constant(val: float, dim: int) -> Dual:
        """Return a dual with a zero tangent."""
        return Dual(val, np.zeros(dim, dtype=np.float64))

    def __repr__(self) -> str:
        return f"Dual({self.val!r}, {self.grad!r})"

    # Arithmetic

    def __add__(self, other: object) -> Dual:
        if isinstance(other, Dual):
            return Dual(self.val + other.val, self.grad + other.grad)
        if _is_scalar(other):
            return Dual(self.val + float(other), self.grad)  # type: ignore[arg-type]
        return NotImplemented

    __radd__ = __add__

    def __sub__(self, other: object) -> Dual:
        if isinstance(other, Dual):
            return Dual(self.val - other.val, self.grad - other.grad)
        if _is_scalar(other):
            return Dual(self.val - float(other), self.grad)  # type: ignore[arg-type]
        return NotImplemented

    def __rsub__(self, other: object) -> Dual:
        if _is_scalar(other):
            return Dual(float(other) - self.val, -self.grad)  # type: ignore[arg-type]
        return NotImplemented

    def __mul__(self, other: object) -> Dual:
        if isinstance(other, Dual):
            return Dual(
                self.val * other.val,
                self.grad * other.val + other.grad * self.val,
            )
        if _is_scalar(other):
            scale: float = float(other)  # type: ignore[arg-type]
            return Dual(self.val * scale, self.grad * scale)
        return NotImplemented

    __rmul__ = __mul__

    def __truediv__(self, other: object) -> Dual:
        if isinstance(other, Dual):
            inv: float = 1.0 / other.val
            return Dual(
                self.val * inv,
                (self.grad * other.val - other.grad * self.val) * (inv * inv),
            )
        if _is_scalar(other):
            scale: float = 1.0 / float(other)  # type: ignore[arg-type]
            return Dual(self.val * scale, self.grad * scale)
        return NotImplemented

    def __rtruediv__(self, other: object) -> Dual:
        if _is_scalar(other):
            numer: float = float(other)  # type: ignore[arg-type]
            inv: float = 1.0 / self.val
            return Dual(numer * inv, -numer * self.grad * (inv * inv))
        return NotImplemented

    def __pow__(self, exponent: object) -> Dual:
        if isinstance(exponent, Dual):
            return (exponent * self.log()).exp()
        if _is_scalar(exponent):
            p: float = float(exponent)  # type: ignore[arg-type]
            if p == 0.0:
                return Dual.constant(1.0, self.grad.shape[0])
            return Dual(self.val**p, self.grad * (p * self.val ** (p - 1.0)))
        return NotImplemented

    def __rpow__(self, base: object) -> Dual:
        if _is_scalar(base):
            b: float = float(base)  # type: ignore[arg-type]
            val: float = b**self.val
            return Dual(val, self.grad * (val * math.log(b)))
        return NotImplemented

    def __neg__(self) -> Dual:
        return Dual(-self.val, -self.grad)

    def __pos__(self) -> Dual:
        return self

    def __abs__(self) -> Dual:
        if self.val < 0.0:
            return -self
        return self

    # Comparisons act on the real part so branching models still evaluate

    def __lt__(self, other: object) -> bool:
        return self.val < _real(other)

    def __le__(self, other: object) -> bool:
        return self.val <= _real(other)

    def __gt__(self, other: object) -> bool:
        return self.val > _real(other)

    def __ge__(self, other: object) -> bool:
        return self.val >= _real(other)

    # Elementary functions, named after the numpy ufuncs that call them

    def sqrt(self) -> Dual:
        root: float = math.sqrt(self.val)
        if root == 0.0:
            raise ValueError("sqrt derivative is undefined at zero")
        return Dual(root, self.grad * (0.5 / root))

    def exp(self) -> Dual:
        val: float = math.exp(self.val)
        return Dual(val, self.grad * val)

    def log(self) -> Dual:
        return Dual(math.log(self.val), self.grad * (1.0 / self.val))

    def sin(self) -> Dual:
        return Dual(math.sin(self.val), self.grad * math.cos(self.val))

    def cos(self) -> Dual:
        return Dual(math.cos(self.val), self.grad * -math.sin(self.val))

    def tan(self) -> Dual:
        val: float = math.tan(self.val)
        return Dual(val, self.grad * (1.0 + val * val))

    def arcsin(self) -> Dual:
        return Dual(
            math.asin(self.val),
            self.grad * (1.0 / math.sqrt(1.0 - self.val * self.val)),
        )

    def arccos(self) -> Dual:
        return Dual(
            math.acos(self.val),
            self.grad * (-1.0 / math.sqrt(1.0 - self.val * self.val)),
        )

    def arctan(self) -> Dual:
        return Dual(
            math.atan(self.val),
            self.grad * (1.0 / (1.0 + self.val * self.val)),
        )

    def arctan2(self, other: object) -> Dual:
        """Return atan2(self, other) with self as the y coordinate."""
        x: Dual
        if isinstance(other, Dual):
            x = other
        elif _is_scalar(other):
            x = Dual.constant(
                float(other), self.grad.shape[0]  # type: ignore[arg-type]
            )
        else:
            return NotImplemented
        denom: float = x.val * x.val + self.val * self.val
        return Dual(
            math.atan2(self.val, x.val),
            (self.grad * x.val - x.grad * self.val) * (1.0 / denom),
        )


def _is_scalar(value: object) -> bool:
    return isinstance(value, (int, float, np.integer, np.floating)) and not isinstance(
        value, bool
    )


def _real(value: object) -> float:
    if isinstance(value, Dual):
        return value.val
    return float(value)  # type: ignore[arg-type]


def seed(values: NDArray[np.float64], offset: int, dim: int) -> NDArray[np.object_]:
    """
    Wrap a float vector as duals seeded with unit tangents

    Element ``i`` receives the unit tangent at index ``offset + i`` of a
    ``dim``-dimensional tangent space.
    """

    vec: NDArray[np.float64] = np.asarray(values, dtype=np.float64).reshape(-1)
    if offset < 0 or offset + vec.shape[0] > dim:
        raise ValueError("seed range exceeds tangent dimension")
    out: NDArray[np.object_] = np.empty(vec.shape[0], dtype=object)
    for i in range(vec.shape[0]):
        grad: NDArray[np.float64] = np.zeros(dim, dtype=np.float64)
        grad[offset + i] = 1.0
        out[i] = Dual(float(vec[i]), grad)
    return out


def constants(values: NDArray[np.float64], dim: int) -> NDArray[np.object_]:
    """Wrap a float vector as duals with zero tangents."""
    vec: NDArray[np.float64] = np.asarray(values, dtype=np.float64).reshape(-1)
    out: NDArray[np.object_] = np.empty(vec.shape[0], dtype=object)
    for i in range(vec.shape[0]):
        out[i] = Dual.constant(float(vec[i]), dim)
    return out


def split(
    outputs: object, dim: int
) -> tuple[NDArray[np.float64], NDArray[np.float64]]:
    """
    Split dual outputs into values and the stacked Jacobian

    Outputs that are plain numbers (independent of every seeded input)
    contribute a zero Jacobian row.
    """

    flat: NDArray[np.object_] = np.asarray(outputs, dtype=object).reshape(-1)
    values: NDArray[np.float64] = np.zeros(flat.shape[0], dtype=np.float64)
    jac: NDArray[np.float64] = np.zeros((flat.shape[0], dim), dtype=np.float64)
    for i, item in enumerate(flat):
        if isinstance(item, Dual):
            if item.grad.shape != (dim,):
                raise ValueError("dual tangent dimension mismatch")
            values[i] = item.val
            jac[i, :] = item.grad
        elif _is_scalar(item):
            values[i] = float(item)
        else:
            raise TypeError(f"Unsupported output element type {type(item).__name__}")
    return values, jac
