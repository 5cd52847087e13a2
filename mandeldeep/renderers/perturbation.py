# perturbation.py

"""Deep-zoom preview via perturbation (NumPy implementation).

Consumes an :class:`~mandeldeep.session.OrbitResult`: the compressed reference
orbit for the view center ``C`` and the encoded third-order series.

Each pixel is kept as an offset ``dc`` from ``C`` and iterates only its delta

    delta <- 2 Z_k delta + delta**2 + dc

against the decoded reference ``Z_k``. Pixels start at iteration
``validity_limit`` with the delta predicted by the series instead of at 0.

Key property
------------

We never form ``c = C + dc`` in float arithmetic. When ``|Z_k + delta|``
drops below ``|delta|``, or the reference runs out, the pixel is rebased:
``delta`` becomes the full ``z`` and the reference index restarts at 0
(``Z_0 = 0``), so the reference orbit never has to be regenerated.

Implementation notes
--------------------

* Rendering is done in row tiles to cap memory.
* Plain float64 deltas: the preview is usable while the radius is
  representable as a double (roughly down to 1e-290).
"""

from __future__ import annotations

import math
from dataclasses import dataclass
from typing import Optional

import numpy as np
from tqdm import tqdm

from mandeldeep.util.logging_setup import get_logger

BAILOUT_SQ = 400.0
# Series start is skipped when 2**exponent would not fit a double.
MAX_SCALE_EXPONENT = 1000


@dataclass(frozen=True)
class PerturbationSettings:
    # Row-tiling to cap memory usage.
    tile_rows: int = 64

    # Start pixels at the series validity limit.
    use_series: bool = True


def _reference(result) -> np.ndarray:
    """Decoded orbit plus one float64 step past its last stored entry."""
    z = result.decoded_orbit()
    tail = z[-1] * z[-1] + result.reference_c
    return np.concatenate([z, np.array([tail], dtype=np.complex128)])


def pixel_offsets(width: int, height: int) -> np.ndarray:
    """Pixel centers in radius units; the shorter axis spans [-1, 1]."""
    half = min(width, height) / 2.0
    ux = (np.arange(width, dtype=np.float64) + 0.5 - width / 2.0) / half
    uy = (np.arange(height, dtype=np.float64) + 0.5 - height / 2.0) / half
    return ux[np.newaxis, :] + 1j * uy[:, np.newaxis]


def series_start(result, u: np.ndarray) -> Optional[np.ndarray]:
    """Delta at ``validity_limit`` for offsets ``u`` or None when unusable."""
    enc = result.series
    exponent = enc.radius_log2 + enc.scale_exponent
    coeffs = enc.as_array().astype(np.float64)
    if abs(exponent) > MAX_SCALE_EXPONENT or not np.all(np.isfinite(coeffs)):
        return None
    b = complex(coeffs[0], coeffs[1])
    c = complex(coeffs[2], coeffs[3])
    d = complex(coeffs[4], coeffs[5])
    return (2.0 ** exponent) * (u * (b + u * (c + u * d)))


def render_perturbation(
    result,
    width: int,
    height: int,
    iterations: Optional[int] = None,
    settings: PerturbationSettings | None = None,
) -> np.ndarray:
    """Return an ``(height, width)`` int32 array of escape iterations.

    Pixels that do not escape within ``iterations`` get ``iterations``.
    """
    settings = settings or PerturbationSettings()
    logger = get_logger()
    if width <= 0 or height <= 0:
        raise ValueError("width/height must be positive.")

    max_iter = int(iterations if iterations is not None else result.iterations)
    radius = 2.0 ** result.radius_log2
    if radius == 0.0 or not math.isfinite(radius):
        raise ValueError(f"radius 2**{result.radius_log2:.1f} is not representable as a double")

    ref = _reference(result)
    last = ref.shape[0] - 1
    u_all = pixel_offsets(width, height)

    start = 0
    delta_all = None
    if settings.use_series and 0 < result.validity_limit <= min(max_iter, last):
        delta_all = series_start(result, u_all)
        if delta_all is None:
            logger.warning("Series start out of double range (radius_log2=%.1f scale_exp=%s); starting at 0",
                           result.radius_log2, result.series.scale_exponent)
        else:
            start = int(result.validity_limit)
    if delta_all is None:
        delta_all = np.zeros((height, width), dtype=np.complex128)

    logger.info("Perturbation START %sx%s it=%s start=%s orbit_length=%s", width, height, max_iter, start, last)

    out = np.full((height, width), max_iter, dtype=np.int32)
    tile = max(8, int(settings.tile_rows))
    with np.errstate(over="ignore", invalid="ignore"):
        for y0 in tqdm(range(0, height, tile), desc="Perturbation tiles", disable=None):
            y1 = min(height, y0 + tile)
            dc = (radius * u_all[y0:y1]).ravel()
            delta = delta_all[y0:y1].ravel().copy()
            k = np.full(dc.shape, start, dtype=np.int64)
            counts = np.full(dc.shape, max_iter, dtype=np.int32)
            active = np.arange(dc.shape[0])

            n = start
            while active.size:
                z = ref[k] + delta
                mag2 = z.real * z.real + z.imag * z.imag
                escaped = mag2 > BAILOUT_SQ
                if escaped.any():
                    counts[active[escaped]] = n
                    keep = ~escaped
                    active, z, delta, k, mag2 = active[keep], z[keep], delta[keep], k[keep], mag2[keep]
                if n >= max_iter or not active.size:
                    break

                dmag2 = delta.real * delta.real + delta.imag * delta.imag
                rebase = (mag2 < dmag2) | (k >= last)
                if rebase.any():
                    delta[rebase] = z[rebase]
                    k[rebase] = 0

                zk = ref[k]
                delta = 2.0 * zk * delta + delta * delta + dc[active]
                k += 1
                n += 1

            out[y0:y1] = counts.reshape(y1 - y0, width)

    logger.info("Perturbation DONE")
    return out
