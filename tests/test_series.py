import json

import numpy as np
import pytest
from mpmath import mpf

from mandeldeep import extended as xv
from mandeldeep.extended import ExtendedValue
from mandeldeep.orbit import PerturbationSeries, ReferenceOrbit, SeriesCoefficients, generate_orbit
from mandeldeep.series import encode_series
from mandeldeep.view_state import ViewState


def test_encoded_series_for_main_cardioid():
    view = ViewState("-0.5", "0", "2", 1000)
    series = generate_orbit(view, ReferenceOrbit(capacity=4096)).series
    enc = encode_series(series, view.radius, view.precision_bits)

    # latched after two steps: B = 0, C = 1, D = 0; B is zero so the scale is unity
    assert enc.validity_limit == 2
    assert enc.scale_exponent == 0
    assert enc.coefficients == pytest.approx((0.0, 0.0, 2.0, 0.0, 0.0, 0.0))
    assert enc.radius_log2 == pytest.approx(1.0)


def test_scale_brings_first_order_term_near_unity():
    view = ViewState("-0.743643887037151", "0.13182590420533", "1e-12", 2000)
    series = generate_orbit(view, ReferenceOrbit()).series
    enc = encode_series(series, view.radius, view.precision_bits)
    b = max(abs(enc.coefficients[0]), abs(enc.coefficients[1]))
    assert 0.5 <= b <= 2.0
    assert enc.validity_limit > 0
    assert enc.radius_log2 == pytest.approx(np.log2(1e-12))


def test_zero_series_uses_unit_scale():
    enc = encode_series(PerturbationSeries(), mpf("0.5"))
    assert enc.scale_exponent == 0
    assert enc.coefficients == (0.0,) * 6
    assert enc.validity_limit == 0
    assert enc.radius_log2 == pytest.approx(-1.0)


def test_radius_powers_premultiply_higher_terms():
    poly = SeriesCoefficients(
        bx=ExtendedValue(0.5, 3),
        by=xv.ZERO,
        cx=ExtendedValue(0.5, 1),
        cy=ExtendedValue(-0.5, 1),
        dx=ExtendedValue(0.75, 0),
        dy=xv.ZERO,
    )
    enc = encode_series(PerturbationSeries(poly=poly, validity_limit=7), mpf("0.25"))
    # |B| = 4 renormalises to 1 * 2**2, r = 1/4
    assert enc.scale_exponent == 2
    assert enc.coefficients == pytest.approx((1.0, 0.0, 0.0625, -0.0625, 0.01171875, 0.0))
    assert enc.validity_limit == 7


def test_as_array_and_dict():
    enc = encode_series(PerturbationSeries(), mpf(2))
    arr = enc.as_array()
    assert arr.dtype == np.float32
    assert arr.shape == (6,)
    json.dumps(enc.to_dict())
