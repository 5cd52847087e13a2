"""Single-precision packaging of a latched perturbation series."""

from __future__ import annotations

from dataclasses import asdict, dataclass
from typing import Any, Dict, Tuple

import mpmath
import numpy as np

from mandeldeep import extended as xv
from mandeldeep.extended import ExtendedValue
from mandeldeep.orbit import PerturbationSeries


@dataclass(frozen=True)
class EncodedSeries:
    """What the renderer receives alongside the orbit buffer.

    ``coefficients`` are ``(Bx, By, r*Cx, r*Cy, r**2*Dx, r**2*Dy)`` divided by
    ``2**scale_exponent``, rounded to float32. A pixel at offset ``u`` (in units
    of the radius) starts at iteration ``validity_limit`` with
    ``delta = r * 2**scale_exponent * (b*u + c*u**2 + d*u**3)``.
    """

    coefficients: Tuple[float, float, float, float, float, float]
    scale_exponent: int
    validity_limit: int
    radius_log2: float

    def as_array(self) -> np.ndarray:
        return np.asarray(self.coefficients, dtype=np.float32)

    def to_dict(self) -> Dict[str, Any]:
        out = asdict(self)
        out["coefficients"] = list(self.coefficients)
        return out


def encode_series(series: PerturbationSeries, radius, precision_bits: int = 1200) -> EncodedSeries:
    poly = series.poly
    scale_mag = xv.mul(xv.ONE, xv.maxabs(poly.bx, poly.by))
    if scale_mag.mantissa == 0.0:
        scale_mag = ExtendedValue(1.0, 0)
    poly_scale = ExtendedValue(1.0, -scale_mag.exponent)

    r = xv.from_mpf(radius)
    r2 = xv.mul(r, r)
    scaled = (
        xv.mul(poly_scale, poly.bx),
        xv.mul(poly_scale, poly.by),
        xv.mul(poly_scale, xv.mul(r, poly.cx)),
        xv.mul(poly_scale, xv.mul(r, poly.cy)),
        xv.mul(poly_scale, xv.mul(r2, poly.dx)),
        xv.mul(poly_scale, xv.mul(r2, poly.dy)),
    )
    with np.errstate(over="ignore"):
        coefficients = tuple(float(np.float32(xv.to_native(v))) for v in scaled)

    with mpmath.workprec(precision_bits):
        radius_log2 = float(mpmath.log(radius, 2))

    return EncodedSeries(
        coefficients=coefficients,
        scale_exponent=int(scale_mag.exponent),
        validity_limit=int(series.validity_limit),
        radius_log2=radius_log2,
    )
