"""Reference orbit and perturbation series.

One pass iterates ``z <- z**2 + c`` at the view's precision for the view
center ``c``, writes each ``z_i`` into a float32 buffer as a compressed
``(x_mantissa, y_mantissa, shared_exponent)`` triple, and at the same time
runs the third-order series recurrence

    B <- 2 z B + 1
    C <- 2 z C + B**2
    D <- 2 z D + 2 B C

so that a pixel at offset ``dc`` from the center has
``delta_n ~= B dc + C dc**2 + D dc**3`` after ``n`` steps. The recurrence
is evaluated with the previous step's coefficients on the right-hand side and
consumes the *compressed* ``z_i`` (as read back from the buffer), keeping it
entirely in :mod:`mandeldeep.extended` arithmetic.

The series is trusted while ``|C| > 1000 * 2**exp(radius) * |D|``; the first
iteration at which that fails freezes the coefficients for good.
"""

from __future__ import annotations

import math
from dataclasses import dataclass, field
from typing import Optional, Tuple

import mpmath
import numpy as np
from mpmath import mpf

from mandeldeep import extended as xv
from mandeldeep.extended import ExtendedValue
from mandeldeep.util.logging_setup import get_logger
from mandeldeep.view_state import ViewState

DEFAULT_ORBIT_CAPACITY = 1024 * 1024
SENTINEL = -1.0
EXPONENT_FLOOR = -10000
VALIDITY_FACTOR = 1000.0
# escape when |z|**2 > 400
BAILOUT = ExtendedValue(400.0, 0)


def decode_orbit(data: np.ndarray, length: int) -> np.ndarray:
    """Expand the first ``length`` triples of an orbit buffer to complex128."""
    n = int(length)
    triples = data[: 3 * n].reshape(n, 3).astype(np.float64)
    exps = triples[:, 2].astype(np.int64)
    return np.ldexp(triples[:, 0], exps) + 1j * np.ldexp(triples[:, 1], exps)


class ReferenceOrbit:
    """Fixed-capacity float32 buffer of ``(x_mantissa, y_mantissa, exponent)`` triples.

    The buffer is allocated once and rewritten in place by every pass.
    Entries past ``length`` hold :data:`SENTINEL`.
    """

    def __init__(self, capacity: int = DEFAULT_ORBIT_CAPACITY):
        capacity = int(capacity)
        if capacity < 3:
            raise ValueError("orbit capacity must hold at least one triple (3 floats).")
        self.capacity = capacity
        self.data = np.full(capacity, SENTINEL, dtype=np.float32)
        self.length = 0

    @property
    def max_steps(self) -> int:
        return self.capacity // 3

    def clear(self) -> None:
        self.data.fill(SENTINEL)
        self.length = 0

    def emit(self, i: int, x_mantissa: float, y_mantissa: float, exponent: int) -> Tuple[float, float, int]:
        """Store triple ``i`` and return it as read back from float32 storage."""
        k = 3 * i
        self.data[k] = x_mantissa
        self.data[k + 1] = y_mantissa
        self.data[k + 2] = exponent
        return float(self.data[k]), float(self.data[k + 1]), int(self.data[k + 2])

    def triple(self, i: int) -> Tuple[float, float, float]:
        k = 3 * i
        return float(self.data[k]), float(self.data[k + 1]), float(self.data[k + 2])

    def decode(self, length: Optional[int] = None) -> np.ndarray:
        """Expand the first ``length`` triples to complex128 ``z_i`` values."""
        return decode_orbit(self.data, self.length if length is None else length)


@dataclass(frozen=True)
class SeriesCoefficients:
    bx: ExtendedValue = xv.ZERO
    by: ExtendedValue = xv.ZERO
    cx: ExtendedValue = xv.ZERO
    cy: ExtendedValue = xv.ZERO
    dx: ExtendedValue = xv.ZERO
    dy: ExtendedValue = xv.ZERO

    def as_tuple(self) -> Tuple[ExtendedValue, ...]:
        return (self.bx, self.by, self.cx, self.cy, self.dx, self.dy)

    def step(self, fx: ExtendedValue, fy: ExtendedValue) -> "SeriesCoefficients":
        """Advance one iteration around the reference point ``fx + i fy``."""
        add, sub, mul, two = xv.add, xv.sub, xv.mul, xv.TWO
        bx, by, cx, cy, dx, dy = self.as_tuple()
        return SeriesCoefficients(
            bx=add(mul(two, sub(mul(fx, bx), mul(fy, by))), xv.ONE),
            by=mul(two, add(mul(fx, by), mul(fy, bx))),
            cx=add(mul(two, sub(mul(fx, cx), mul(fy, cy))), sub(mul(bx, bx), mul(by, by))),
            cy=add(mul(two, add(mul(fx, cy), mul(fy, cx))), mul(two, mul(bx, by))),
            dx=mul(two, add(sub(mul(fx, dx), mul(fy, dy)), sub(mul(bx, cx), mul(by, cy)))),
            dy=mul(two, add(add(mul(fx, dy), mul(fy, dx)), add(mul(bx, cy), mul(by, cx)))),
        )


@dataclass
class PerturbationSeries:
    """Coefficients latched at ``validity_limit``; ``failed`` never clears."""

    poly: SeriesCoefficients = field(default_factory=SeriesCoefficients)
    validity_limit: int = 0
    failed: bool = False

    def observe(self, i: int, previous: SeriesCoefficients, current: SeriesCoefficients,
                radius_exponent: int) -> None:
        threshold = xv.mul(ExtendedValue(VALIDITY_FACTOR, radius_exponent), xv.maxabs(current.dx, current.dy))
        if i == 0 or xv.gt(xv.maxabs(current.cx, current.cy), threshold):
            if not self.failed:
                self.poly = previous
                self.validity_limit = i
        else:
            self.failed = True


@dataclass(frozen=True)
class OrbitPass:
    orbit_length: int
    escape_iteration: Optional[int]
    capacity_exceeded: bool
    series: PerturbationSeries


def generate_orbit(view: ViewState, orbit: ReferenceOrbit) -> OrbitPass:
    """Run one reference-orbit pass for ``view`` into ``orbit``.

    Deterministic in the view: the buffer is reset to the sentinel first and
    every mpmath temporary lives inside the ``workprec`` block.
    """
    logger = get_logger()
    orbit.clear()
    limit = min(view.iterations, orbit.max_steps)
    coeffs = SeriesCoefficients()
    series = PerturbationSeries()
    escape_iteration = None
    radius_exponent = xv.exponent_of(view.radius)

    logger.debug("Reference orbit start it=%s limit=%s prec=%s", view.iterations, limit, view.precision_bits)

    with mpmath.workprec(view.precision_bits):
        cx, cy = view.center_x, view.center_y
        zx, zy = mpf(0), mpf(0)
        i = 0
        while i < limit:
            xm, xe = xv.split_mpf(zx)
            ym, ye = xv.split_mpf(zy)
            scale = max(xe, ye)
            if scale < EXPONENT_FLOOR:
                scale = 0
            mx = 0.0 if xm == 0.0 else math.ldexp(xm, xe - scale)
            my = 0.0 if ym == 0.0 else math.ldexp(ym, ye - scale)
            tx, ty, te = orbit.emit(i, mx, my, scale)
            fx = ExtendedValue(tx, te)
            fy = ExtendedValue(ty, te)

            previous = coeffs
            zx, zy = zx * zx - zy * zy + cx, 2 * zx * zy + cy
            coeffs = coeffs.step(fx, fy)

            series.observe(i, previous, coeffs, radius_exponent)

            nx, ny = xv.from_mpf(zx), xv.from_mpf(zy)
            i += 1
            if xv.gt(xv.add(xv.mul(nx, nx), xv.mul(ny, ny)), BAILOUT):
                escape_iteration = i - 1
                break

    orbit.length = i
    capacity_exceeded = escape_iteration is None and i < view.iterations
    if capacity_exceeded:
        logger.warning("Reference orbit truncated at capacity: %s of %s iterations (capacity=%s floats)",
                       i, view.iterations, orbit.capacity)
    logger.info("Reference orbit done length=%s escape=%s validity_limit=%s",
                i, escape_iteration, series.validity_limit)
    return OrbitPass(
        orbit_length=i,
        escape_iteration=escape_iteration,
        capacity_exceeded=capacity_exceeded,
        series=series,
    )
