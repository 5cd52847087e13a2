"""Deep-zoom session: view state, reusable orbit buffer and orbit generation.

A session has a single writer. Mutating the view and generating an orbit
must be serialized by the caller; ``generate_orbit`` blocks until the whole
pass is done and is meant to be called off any interactive thread.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional

import numpy as np

from mandeldeep.orbit import DEFAULT_ORBIT_CAPACITY, ReferenceOrbit, decode_orbit, generate_orbit
from mandeldeep.series import EncodedSeries, encode_series
from mandeldeep.util.logging_setup import get_logger
from mandeldeep.view_state import (
    DEFAULT_CENTER_X,
    DEFAULT_CENTER_Y,
    DEFAULT_ITERATIONS,
    DEFAULT_PRECISION_BITS,
    DEFAULT_RADIUS,
    ViewState,
)


@dataclass(frozen=True)
class OrbitResult:
    """Output of one :meth:`DeepZoomSession.generate_orbit` call.

    ``orbit`` is the session's own buffer, rewritten by the next call; copy it
    if it must outlive that. Readers must stop at ``orbit_length`` triples.
    """

    orbit: np.ndarray
    series: EncodedSeries
    orbit_length: int
    escape_iteration: Optional[int]
    capacity_exceeded: bool
    iterations: int
    reference_c: complex

    @property
    def validity_limit(self) -> int:
        return self.series.validity_limit

    @property
    def radius_log2(self) -> float:
        return self.series.radius_log2

    @property
    def capacity(self) -> int:
        return int(self.orbit.shape[0])

    def decoded_orbit(self) -> np.ndarray:
        return decode_orbit(self.orbit, self.orbit_length)


class DeepZoomSession:
    def __init__(
        self,
        center_x=DEFAULT_CENTER_X,
        center_y=DEFAULT_CENTER_Y,
        radius=DEFAULT_RADIUS,
        iterations: int = DEFAULT_ITERATIONS,
        *,
        precision_bits: int = DEFAULT_PRECISION_BITS,
        orbit_capacity: int = DEFAULT_ORBIT_CAPACITY,
    ):
        self._view = ViewState(center_x, center_y, radius, iterations, precision_bits=precision_bits)
        self._orbit = ReferenceOrbit(orbit_capacity)
        self._closed = False

    def __enter__(self) -> "DeepZoomSession":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()

    def close(self) -> None:
        self._closed = True
        self._orbit = None
        self._view = None

    @property
    def closed(self) -> bool:
        return self._closed

    @property
    def view(self) -> ViewState:
        self._check_open()
        return self._view

    def _check_open(self) -> None:
        if self._closed:
            raise RuntimeError("Session is closed.")

    def set_view(self, x, y, radius, iterations: Optional[int] = None) -> None:
        self.view.set(x, y, radius, iterations)

    def set_view_from_strings(self, x: str, y: str, radius: str, iterations: Optional[int] = None) -> None:
        self.view.set_from_strings(x, y, radius, iterations)

    def set_iterations(self, iterations: int) -> None:
        self.view.set_iterations(iterations)

    def pan(self, dx: float, dy: float) -> None:
        self.view.update(dx, dy)

    def zoom_in(self, dx: float, dy: float, factor: float = 0.5) -> None:
        self.view.zoom_in(dx, dy, factor)

    def zoom_out(self, factor: float = 2.0) -> None:
        self.view.zoom_out(factor)

    def reset(self) -> None:
        self.view.reset()

    def get_center_x(self) -> str:
        return self.view.center_x_str

    def get_center_y(self) -> str:
        return self.view.center_y_str

    def get_radius(self) -> str:
        return self.view.radius_str

    @property
    def iterations(self) -> int:
        return self.view.iterations

    def state_string(self) -> str:
        return f"re={self.get_center_x()}; im={self.get_center_y()}; r={self.get_radius()}; iterations={self.iterations}"

    def generate_orbit(self) -> OrbitResult:
        view = self.view
        orbit_pass = generate_orbit(view, self._orbit)
        encoded = encode_series(orbit_pass.series, view.radius, view.precision_bits)
        get_logger().debug("Encoded series %s scale_exp=%s radius_log2=%.3f",
                           encoded.coefficients, encoded.scale_exponent, encoded.radius_log2)
        return OrbitResult(
            orbit=self._orbit.data,
            series=encoded,
            orbit_length=orbit_pass.orbit_length,
            escape_iteration=orbit_pass.escape_iteration,
            capacity_exceeded=orbit_pass.capacity_exceeded,
            iterations=view.iterations,
            reference_c=complex(view.center_x_float, view.center_y_float),
        )


def create_session(default_center=(DEFAULT_CENTER_X, DEFAULT_CENTER_Y), default_radius=DEFAULT_RADIUS,
                   default_iterations: int = DEFAULT_ITERATIONS, **kwargs) -> DeepZoomSession:
    return DeepZoomSession(default_center[0], default_center[1], default_radius, default_iterations, **kwargs)


def destroy_session(session: DeepZoomSession) -> None:
    session.close()
