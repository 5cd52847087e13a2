"""Extended-range floating point values.

An :class:`ExtendedValue` is a ``(mantissa, exponent)`` pair standing for
``mantissa * 2**exponent``. The mantissa is an ordinary Python float and is
*not* kept in canonical form: ``add``/``sub`` only realign the operands to the
larger exponent, and only ``mul`` pulls the mantissa back towards unit
magnitude. That is enough to carry the perturbation-series coefficients across
thousands of orders of magnitude with native-double arithmetic.

None of the operations raise. Zero mantissas are valid and are treated as an
exact zero regardless of the exponent they carry.
"""

from __future__ import annotations

import math
from typing import NamedTuple, Tuple

import mpmath

# Exponent reported for an exact zero; far below any real binary exponent.
ZERO_EXPONENT = -(1 << 40)


class ExtendedValue(NamedTuple):
    mantissa: float
    exponent: int = 0


ZERO = ExtendedValue(0.0, 0)
ONE = ExtendedValue(1.0, 0)
TWO = ExtendedValue(2.0, 0)


def _align(a: ExtendedValue, b: ExtendedValue) -> Tuple[float, float, int]:
    am, ae = a
    bm, be = b
    if am == 0.0:
        return 0.0, bm, be
    if bm == 0.0:
        return am, 0.0, ae
    e = max(ae, be)
    if ae < e:
        am = math.ldexp(am, ae - e)
    if be < e:
        bm = math.ldexp(bm, be - e)
    return am, bm, e


def add(a: ExtendedValue, b: ExtendedValue) -> ExtendedValue:
    am, bm, e = _align(a, b)
    return ExtendedValue(am + bm, e)


def sub(a: ExtendedValue, b: ExtendedValue) -> ExtendedValue:
    am, bm, e = _align(a, b)
    return ExtendedValue(am - bm, e)


def mul(a: ExtendedValue, b: ExtendedValue) -> ExtendedValue:
    """Multiply and renormalise the mantissa to roughly unit magnitude."""
    m = a.mantissa * b.mantissa
    if m == 0.0:
        return ZERO
    e = a.exponent + b.exponent
    if math.isfinite(m):
        shift = round(math.log2(abs(m)))
        m = math.ldexp(m, -shift)
        e += shift
    return ExtendedValue(m, e)


def maxabs(a: ExtendedValue, b: ExtendedValue) -> ExtendedValue:
    am, bm, e = _align(a, b)
    return ExtendedValue(max(abs(am), abs(bm)), e)


def gt(a: ExtendedValue, b: ExtendedValue) -> bool:
    """``a > b`` after realignment (signed comparison of the mantissas)."""
    am, bm, _ = _align(a, b)
    return am > bm


def to_native(a: ExtendedValue) -> float:
    """Collapse to a native double, saturating to +/-inf on overflow."""
    m, e = a
    if m == 0.0 or not math.isfinite(m):
        return m
    try:
        return math.ldexp(m, e)
    except OverflowError:
        return math.copysign(math.inf, m)


def from_float(x: float) -> ExtendedValue:
    if x == 0.0:
        return ZERO
    m, e = math.frexp(x)
    return ExtendedValue(m, e)


def split_mpf(value) -> Tuple[float, int]:
    """Return ``(mantissa, exponent)`` of an mpf with ``0.5 <= |mantissa| < 1``.

    An exact zero yields ``(0.0, ZERO_EXPONENT)``.
    """
    if not value:
        return 0.0, ZERO_EXPONENT
    m, e = mpmath.frexp(value)
    return float(m), int(e)


def exponent_of(value) -> int:
    return split_mpf(value)[1]


def from_mpf(value) -> ExtendedValue:
    m, e = split_mpf(value)
    if m == 0.0:
        return ZERO
    return ExtendedValue(m, e)
