"""Escape-time tiled renderer for shallow views.

Plain double-precision iteration per pixel, drawn one rectangular tile at a
time. A tile can be drawn at a coarse ``level`` (every ``level``-th pixel,
filling a ``level x level`` block) and later refined at ``level / 2`` with
``fill_all=False``, which skips the cells the coarser pass already computed.

Each :class:`RenderSession` owns its palette, pixel surface and cancellation
flag. The flag is a one-element array the kernel polls after every scanline,
so :meth:`RenderSession.cancel` works from another thread while a tile is
being drawn (the kernels release the GIL).
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional, Sequence, Tuple

import numpy as np
from numba import njit

from mandeldeep.palette import INTERIOR_COLOR
from mandeldeep.util.logging_setup import get_logger

JULIA_BOUNDS = (-1.5, 1.5, -1.5, 1.5)
ESCAPE_RADIUS_SQ = 4.0


class SurfaceNotReady(RuntimeError):
    """Raised when drawing without an attached pixel surface."""


@dataclass(frozen=True)
class RenderParams:
    xmin: float = -2.0
    xmax: float = 1.0
    ymin: float = -1.5
    ymax: float = 1.5
    iterations: int = 128
    power: int = 2
    julia: bool = False
    julia_x: float = 0.0
    julia_y: float = 0.0
    width: int = 640
    height: int = 480

    def validate(self) -> None:
        if self.power not in (2, 3, 4):
            raise ValueError("power must be 2, 3 or 4.")
        if self.iterations < 1:
            raise ValueError("iterations must be >= 1.")
        if self.width <= 0 or self.height <= 0:
            raise ValueError("viewport width/height must be positive.")
        if not (self.xmax > self.xmin and self.ymax > self.ymin):
            raise ValueError("bounds must satisfy xmin < xmax and ymin < ymax.")

    @property
    def bounds(self) -> Tuple[float, float, float, float]:
        return self.xmin, self.xmax, self.ymin, self.ymax

    @classmethod
    def julia_default(cls, seed: Tuple[float, float], width: int, height: int,
                      iterations: int = 128, power: int = 2) -> "RenderParams":
        xmin, xmax, ymin, ymax = JULIA_BOUNDS
        return cls(xmin=xmin, xmax=xmax, ymin=ymin, ymax=ymax, iterations=iterations, power=power,
                   julia=True, julia_x=float(seed[0]), julia_y=float(seed[1]), width=width, height=height)

    @classmethod
    def around(cls, center: Tuple[float, float], radius: float, width: int, height: int,
               **kwargs) -> "RenderParams":
        """Bounds spanning ``2 * radius`` on the shorter viewport axis."""
        per_pixel = 2.0 * radius / min(width, height)
        half_w = 0.5 * width * per_pixel
        half_h = 0.5 * height * per_pixel
        cx, cy = center
        return cls(xmin=cx - half_w, xmax=cx + half_w, ymin=cy - half_h, ymax=cy + half_h,
                   width=width, height=height, **kwargs)


@njit(cache=True, nogil=True)
def _mandel2(x0, y0, n):
    x = y = x2 = y2 = 0.0
    it = 0
    while x2 + y2 < ESCAPE_RADIUS_SQ:
        y = 2.0 * x * y + y0
        x = x2 - y2 + x0
        x2 = x * x
        y2 = y * y
        it += 1
        if it > n:
            break
    return it


@njit(cache=True, nogil=True)
def _mandel3(x0, y0, n):
    x = y = x2 = y2 = x3 = y3 = 0.0
    it = 0
    while x2 + y2 < ESCAPE_RADIUS_SQ:
        y = 3.0 * x2 * y - y3 + y0
        x = x3 - 3.0 * y2 * x + x0
        x2 = x * x
        y2 = y * y
        x3 = x2 * x
        y3 = y2 * y
        it += 1
        if it > n:
            break
    return it


@njit(cache=True, nogil=True)
def _mandel4(x0, y0, n):
    x = y = x2 = y2 = x3 = y3 = x4 = y4 = 0.0
    it = 0
    while x2 + y2 < ESCAPE_RADIUS_SQ:
        y = 4.0 * x3 * y - 4.0 * y3 * x + y0
        x = x4 + y4 - 6.0 * x2 * y2 + x0
        x2 = x * x
        y2 = y * y
        x3 = x2 * x
        y3 = y2 * y
        x4 = x3 * x
        y4 = y3 * y
        it += 1
        if it > n:
            break
    return it


@njit(cache=True, nogil=True)
def _julia2(x, y, jx, jy, n):
    it = 0
    while it < n:
        it += 1
        x2 = x * x
        y2 = y * y
        if x2 + y2 > ESCAPE_RADIUS_SQ:
            break
        y = 2.0 * x * y + jy
        x = x2 - y2 + jx
    return it


@njit(cache=True, nogil=True)
def _julia3(x, y, jx, jy, n):
    it = 0
    while it < n:
        it += 1
        x2 = x * x
        y2 = y * y
        if x2 + y2 > ESCAPE_RADIUS_SQ:
            break
        x3 = x2 * x
        y3 = y2 * y
        y_new = 3.0 * x2 * y - y3 + jy
        x = x3 - 3.0 * y2 * x + jx
        y = y_new
    return it


@njit(cache=True, nogil=True)
def _julia4(x, y, jx, jy, n):
    it = 0
    while it < n:
        it += 1
        x2 = x * x
        y2 = y * y
        if x2 + y2 > ESCAPE_RADIUS_SQ:
            break
        x3 = x2 * x
        y3 = y2 * y
        x4 = x3 * x
        y4 = y3 * y
        y_new = 4.0 * x3 * y - 4.0 * y3 * x + jy
        x = x4 + y4 - 6.0 * x2 * y2 + jx
        y = y_new
    return it


@njit(cache=True, nogil=True)
def _draw_kernel(surface, palette, cancel, start_x, start_y, tile_w, tile_h, level, fill_all,
                 xmin, ymin, xscale, yscale, power, iterations, julia, jx, jy):
    max_x = start_x + tile_w
    max_y = start_y + tile_h
    n_colors = palette.shape[0]
    iter_scale = 1
    if iterations < n_colors:
        iter_scale = n_colors // iterations

    yindex = 0
    for py in range(start_y, max_y, level):
        y0 = ymin + py * yscale
        xindex = 0
        for px in range(start_x, max_x, level):
            if not fill_all and yindex % 2 == 0 and xindex % 2 == 0:
                xindex += 1
                continue
            x0 = xmin + px * xscale

            if julia:
                if power == 2:
                    it = _julia2(x0, y0, jx, jy, iterations)
                elif power == 3:
                    it = _julia3(x0, y0, jx, jy, iterations)
                else:
                    it = _julia4(x0, y0, jx, jy, iterations)
            else:
                if power == 2:
                    it = _mandel2(x0, y0, iterations)
                elif power == 3:
                    it = _mandel3(x0, y0, iterations)
                else:
                    it = _mandel4(x0, y0, iterations)

            if it >= iterations:
                color = np.uint32(INTERIOR_COLOR)
            else:
                color = palette[(it * iter_scale) % n_colors]

            for iy in range(py, min(py + level, max_y)):
                for ix in range(px, min(px + level, max_x)):
                    surface[iy, ix] = color
            xindex += 1
        yindex += 1
        if cancel[0] != 0:
            return False
    return True


class RenderSession:
    """Palette, pixel surface and cancellation flag for one tiled renderer."""

    def __init__(self, params: Optional[RenderParams] = None, palette: Optional[Sequence[int]] = None):
        self._cancel = np.zeros(1, dtype=np.uint8)
        self.params: Optional[RenderParams] = None
        self.palette: Optional[np.ndarray] = None
        self.surface: Optional[np.ndarray] = None
        if params is not None:
            self.set_render_params(params)
        if palette is not None:
            self.set_palette(palette)

    def set_render_params(self, params: RenderParams) -> None:
        params.validate()
        self.params = params
        self._cancel[0] = 0
        if self.surface is not None and self.surface.shape != (params.height, params.width):
            self.surface = None

    def set_palette(self, colors: Sequence[int]) -> None:
        palette = np.ascontiguousarray(colors, dtype=np.uint32)
        if palette.ndim != 1 or palette.shape[0] == 0:
            raise ValueError("palette must be a non-empty 1-D sequence of packed colours.")
        self.palette = palette

    def attach_surface(self, surface: Optional[np.ndarray] = None) -> np.ndarray:
        """Attach ``surface`` (or allocate one matching the viewport)."""
        if self.params is None:
            raise ValueError("set_render_params() must be called before attaching a surface.")
        shape = (self.params.height, self.params.width)
        if surface is None:
            surface = np.zeros(shape, dtype=np.uint32)
        elif surface.shape != shape or surface.dtype != np.uint32:
            raise ValueError(f"surface must be uint32 with shape {shape}.")
        self.surface = surface
        return surface

    def release_surface(self) -> None:
        self.surface = None

    def cancel(self) -> None:
        self._cancel[0] = 1

    @property
    def cancelled(self) -> bool:
        return bool(self._cancel[0])

    def draw_tile(self, x: int, y: int, w: int, h: int, level: int = 1, fill_all: bool = True) -> bool:
        """Draw one tile; return False when stopped early by :meth:`cancel`."""
        logger = get_logger()
        if self.surface is None or self.params is None:
            logger.error("Pixel surface is not ready; cannot draw tile (%s,%s %sx%s).", x, y, w, h)
            raise SurfaceNotReady("no pixel surface attached")
        if self.palette is None:
            raise ValueError("set_palette() must be called before drawing.")
        if level < 1:
            return True

        p = self.params
        x, y = int(x), int(y)
        x0 = max(0, x)
        y0 = max(0, y)
        w = min(int(w) - (x0 - x), p.width - x0)
        h = min(int(h) - (y0 - y), p.height - y0)
        if w <= 0 or h <= 0:
            return True

        xscale = (p.xmax - p.xmin) / p.width
        yscale = (p.ymax - p.ymin) / p.height
        completed = _draw_kernel(self.surface, self.palette, self._cancel, x0, y0, w, h, int(level),
                                 bool(fill_all), float(p.xmin), float(p.ymin), xscale, yscale,
                                 int(p.power), int(p.iterations), bool(p.julia),
                                 float(p.julia_x), float(p.julia_y))
        if not completed:
            logger.debug("Tile (%s,%s %sx%s) cancelled at level %s", x0, y0, w, h, level)
        return bool(completed)

    def draw_progressive(self, x: int, y: int, w: int, h: int, start_level: int = 8) -> bool:
        """Coarse-to-fine drawing: full pass at ``start_level``, then refine down to 1.

        ``start_level`` is rounded down to a power of two; each refinement pass
        skips exactly the cells the previous, twice-as-coarse pass computed.
        """
        level = max(1, int(start_level))
        level = 1 << (level.bit_length() - 1)
        if not self.draw_tile(x, y, w, h, level, True):
            return False
        while level > 1:
            level //= 2
            if not self.draw_tile(x, y, w, h, level, False):
                return False
        return True
