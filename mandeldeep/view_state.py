"""Arbitrary-precision view: center, radius and iteration cap.

All arithmetic happens inside ``mpmath.workprec`` so the global mpmath
context is never modified; values parsed or produced here carry
``precision_bits`` bits regardless of what the caller has configured.
"""

from __future__ import annotations

import math
import re
from typing import Tuple, Union

import mpmath
from mpmath import mpf

from mandeldeep.util.logging_setup import get_logger

DEFAULT_PRECISION_BITS = 1200
DEFAULT_CENTER_X = "-0.5"
DEFAULT_CENTER_Y = "0"
DEFAULT_RADIUS = "2"
DEFAULT_ITERATIONS = 1000

_DECIMAL_RE = re.compile(r"^[+-]?([0-9]+\.?[0-9]*|\.[0-9]+)([eE][+-]?[0-9]+)?$")

Number = Union[str, int, float, mpf]


class InvalidCoordinate(ValueError):
    """Raised when a center/radius value cannot be applied to a view."""


def screen_to_normalized(x: float, y: float, width: int, height: int) -> Tuple[float, float]:
    """Map a pixel position into [-1, 1] over a square on the longer screen axis.

    The square is centered on the screen, so along the shorter axis the
    result only covers ``[-short/long, short/long]``.
    """
    if width <= 0 or height <= 0:
        raise ValueError("width/height must be positive.")
    if width > height:
        return x / (width / 2.0) - 1.0, (y + (width - height) / 2.0) / (width / 2.0) - 1.0
    return (x + (height - width) / 2.0) / (height / 2.0) - 1.0, y / (height / 2.0) - 1.0


class ViewState:
    """Center ``(center_x, center_y)``, ``radius`` and iteration cap of one view.

    Mutations either apply completely or raise :class:`InvalidCoordinate`
    and leave the state untouched.
    """

    def __init__(
        self,
        center_x: Number = DEFAULT_CENTER_X,
        center_y: Number = DEFAULT_CENTER_Y,
        radius: Number = DEFAULT_RADIUS,
        iterations: int = DEFAULT_ITERATIONS,
        *,
        precision_bits: int = DEFAULT_PRECISION_BITS,
    ):
        if precision_bits < 53:
            raise ValueError("precision_bits must be at least 53.")
        self.precision_bits = int(precision_bits)
        self._defaults = (center_x, center_y, radius, iterations)
        self.reset()

    @property
    def digits(self) -> int:
        """Decimal digits needed to reproduce a value at this precision."""
        return int(math.ceil(self.precision_bits * math.log10(2))) + 1

    def _parse(self, name: str, value: Number):
        if isinstance(value, str):
            text = value.strip()
            if not _DECIMAL_RE.match(text):
                raise InvalidCoordinate(f"{name}: not a decimal number: {value!r}")
            value = text
        try:
            with mpmath.workprec(self.precision_bits):
                parsed = mpf(value)
        except (TypeError, ValueError) as e:
            raise InvalidCoordinate(f"{name}: cannot parse {value!r}") from e
        if not mpmath.isfinite(parsed):
            raise InvalidCoordinate(f"{name}: must be finite, got {value!r}")
        return parsed

    @staticmethod
    def _check_iterations(iterations) -> int:
        iterations = int(iterations)
        if iterations < 1:
            raise ValueError("iterations must be >= 1.")
        return iterations

    def set(self, x: Number, y: Number, r: Number, iterations: int = None) -> None:
        cx = self._parse("center_x", x)
        cy = self._parse("center_y", y)
        radius = self._parse("radius", r)
        if radius <= 0:
            raise InvalidCoordinate(f"radius: must be > 0, got {r!r}")
        if iterations is not None:
            iterations = self._check_iterations(iterations)
        self.center_x, self.center_y, self.radius = cx, cy, radius
        if iterations is not None:
            self.iterations = iterations
        get_logger().debug("View set re=%s im=%s r=%s it=%s",
                           mpmath.nstr(cx, 20), mpmath.nstr(cy, 20), mpmath.nstr(radius, 5), self.iterations)

    def set_from_strings(self, x: str, y: str, r: str, iterations: int = None) -> None:
        for name, value in (("center_x", x), ("center_y", y), ("radius", r)):
            if not isinstance(value, str):
                raise InvalidCoordinate(f"{name}: expected a string, got {type(value).__name__}")
        self.set(x, y, r, iterations)

    def set_iterations(self, iterations: int) -> None:
        self.iterations = self._check_iterations(iterations)

    def reset(self) -> None:
        x, y, r, iterations = self._defaults
        self.center_x = self.center_y = self.radius = None
        self.iterations = DEFAULT_ITERATIONS
        self.set(x, y, r, iterations)

    def zoom_in(self, dx: float, dy: float, factor: float = 0.5) -> None:
        """Recenter by ``radius * (dx, dy)`` then scale the radius by ``factor``."""
        if not factor > 0:
            raise ValueError("zoom factor must be > 0.")
        with mpmath.workprec(self.precision_bits):
            r = self.radius
            self.center_x = self.center_x + r * mpf(dx)
            self.center_y = self.center_y + r * mpf(dy)
            self.radius = r * mpf(factor)
        get_logger().debug("Zoom in dx=%s dy=%s factor=%s -> r=%s", dx, dy, factor, mpmath.nstr(self.radius, 5))

    def update(self, dx: float, dy: float) -> None:
        """Pan to the tapped point and halve the radius."""
        self.zoom_in(dx, dy, 0.5)

    def zoom_out(self, factor: float = 2.0) -> None:
        if not factor > 0:
            raise ValueError("zoom factor must be > 0.")
        with mpmath.workprec(self.precision_bits):
            self.radius = self.radius * mpf(factor)
        get_logger().debug("Zoom out factor=%s -> r=%s", factor, mpmath.nstr(self.radius, 5))

    def _to_string(self, value) -> str:
        return mpmath.nstr(value, self.digits)

    @property
    def center_x_str(self) -> str:
        return self._to_string(self.center_x)

    @property
    def center_y_str(self) -> str:
        return self._to_string(self.center_y)

    @property
    def radius_str(self) -> str:
        return self._to_string(self.radius)

    @property
    def center_x_float(self) -> float:
        return float(self.center_x)

    @property
    def center_y_float(self) -> float:
        return float(self.center_y)

    def __repr__(self) -> str:
        return (f"ViewState(re={mpmath.nstr(self.center_x, 20)}, im={mpmath.nstr(self.center_y, 20)}, "
                f"r={mpmath.nstr(self.radius, 8)}, iterations={self.iterations})")
