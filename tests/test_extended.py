import math

import numpy as np
import pytest
from mpmath import mpf

from mandeldeep import extended as xv
from mandeldeep.extended import ExtendedValue


def _random_values(rng, n):
    mant = rng.uniform(-1.0, 1.0, size=n)
    exps = rng.integers(-40, 40, size=n)
    return [ExtendedValue(float(m), int(e)) for m, e in zip(mant, exps)]


@pytest.mark.parametrize("seed", [0, 1, 2])
def test_arithmetic_matches_native_doubles(seed):
    rng = np.random.default_rng(seed)
    a_vals = _random_values(rng, 200)
    b_vals = _random_values(rng, 200)
    for a, b in zip(a_vals, b_vals):
        fa, fb = xv.to_native(a), xv.to_native(b)
        scale = max(abs(fa), abs(fb))
        assert xv.to_native(xv.add(a, b)) == pytest.approx(fa + fb, rel=1e-12, abs=scale * 1e-15)
        assert xv.to_native(xv.sub(a, b)) == pytest.approx(fa - fb, rel=1e-12, abs=scale * 1e-15)
        assert xv.to_native(xv.mul(a, b)) == pytest.approx(fa * fb, rel=1e-12)
        if fa != fb:
            assert xv.gt(a, b) == (fa > fb)


def test_maxabs():
    a = ExtendedValue(-0.75, 3)
    b = ExtendedValue(0.5, 2)
    assert xv.to_native(xv.maxabs(a, b)) == 6.0


def test_mul_renormalises_mantissa():
    out = xv.mul(ExtendedValue(0.001, 0), ExtendedValue(0.001, 0))
    assert 0.5 <= abs(out.mantissa) <= 2.0
    assert xv.to_native(out) == pytest.approx(1e-6)


def test_zero_handling():
    big = ExtendedValue(0.75, 5000)
    assert xv.add(xv.ZERO, big) == big
    assert xv.sub(big, ExtendedValue(0.0, -7)) == big
    assert xv.mul(xv.ZERO, big) == xv.ZERO
    assert xv.gt(big, xv.ZERO)
    assert not xv.gt(xv.ZERO, big)
    assert xv.to_native(xv.ZERO) == 0.0


def test_range_beyond_double():
    tiny = ExtendedValue(0.5, -3000)
    product = xv.mul(tiny, tiny)
    assert product.exponent < -5000
    assert xv.gt(product, xv.ZERO)
    assert xv.to_native(product) == 0.0


def test_to_native_saturates():
    assert xv.to_native(ExtendedValue(0.5, 5000)) == math.inf
    assert xv.to_native(ExtendedValue(-0.5, 5000)) == -math.inf


def test_from_float_and_mpf():
    assert xv.to_native(xv.from_float(-3.25)) == -3.25
    assert xv.from_float(0.0) == xv.ZERO
    assert xv.from_mpf(mpf(0)) == xv.ZERO
    assert xv.split_mpf(mpf(0)) == (0.0, xv.ZERO_EXPONENT)
    m, e = xv.split_mpf(mpf(12))
    assert (m, e) == (0.75, 4)
    assert xv.exponent_of(mpf("1e-30")) == -99
