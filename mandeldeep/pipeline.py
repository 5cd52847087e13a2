from __future__ import annotations

import os
from concurrent.futures import ThreadPoolExecutor
from typing import Any, Dict, List, Tuple

import numpy as np
from mpmath import mpf
from PIL import Image
from tqdm import tqdm

from mandeldeep.palette import INTERIOR_COLOR, julia_palette, sine_palette, to_rgb_array
from mandeldeep.renderers.perturbation import render_perturbation
from mandeldeep.renderers.tiled import RenderParams, RenderSession
from mandeldeep.session import DeepZoomSession
from mandeldeep.util.logging_setup import get_logger

# Below this radius double-precision pixel coordinates start to alias.
TILED_MIN_RADIUS = mpf("1e-12")

def choose_renderer(*, renderer: str, radius, power: int = 2, julia: bool = False) -> str:
    if renderer == "tiled":
        return renderer
    if renderer == "perturbation":
        if julia or power != 2:
            raise ValueError("perturbation renderer only supports the power-2 Mandelbrot set")
        return renderer
    if renderer != "auto":
        raise ValueError("renderer must be one of: auto, tiled, perturbation")
    if julia or power != 2:
        return "tiled"
    return "tiled" if mpf(radius) > TILED_MIN_RADIUS else "perturbation"

def _bands(height: int, band_height: int) -> List[Tuple[int, int]]:
    bands: List[Tuple[int, int]] = []
    y = 0
    while y < height:
        y1 = min(height, y + band_height)
        bands.append((y, y1))
        y = y1
    return bands

def render_tiled(cfg: Dict[str, Any], *, band_height: int = 32, workers: int | None = None) -> np.ndarray:
    """Packed ARGB surface from the tiled renderer, drawn in threaded horizontal bands."""
    logger = get_logger()
    width, height = int(cfg["width"]), int(cfg["height"])
    palette = sine_palette(int(cfg["palette_size"]))

    if cfg.get("julia"):
        params = RenderParams.julia_default(cfg["julia_seed"], width, height,
                                            iterations=int(cfg["iterations"]), power=int(cfg["power"]))
        palette = julia_palette(palette)
    else:
        center = (float(mpf(cfg["center"][0])), float(mpf(cfg["center"][1])))
        params = RenderParams.around(center, float(mpf(cfg["radius"])), width, height,
                                     iterations=int(cfg["iterations"]), power=int(cfg["power"]))

    session = RenderSession(params, palette)
    surface = session.attach_surface()
    level = int(cfg.get("level", 8))
    bands = _bands(height, band_height)

    logger.info("Tiled render start size=%sx%s bands=%s level=%s power=%s julia=%s",
                width, height, len(bands), level, params.power, params.julia)

    with ThreadPoolExecutor(max_workers=workers) as pool:
        jobs = pool.map(lambda b: session.draw_progressive(0, b[0], width, b[1] - b[0], level), bands)
        done = list(tqdm(jobs, total=len(bands), desc="Rendering bands", disable=None))

    if not all(done):
        logger.info("Tiled render cancelled")
    else:
        logger.info("Tiled render done")
    return surface

def render_deep(cfg: Dict[str, Any]) -> Tuple[np.ndarray, Dict[str, Any]]:
    """Packed ARGB surface from a reference orbit and the perturbation preview."""
    logger = get_logger()
    width, height = int(cfg["width"]), int(cfg["height"])
    iterations = int(cfg["iterations"])

    with DeepZoomSession(precision_bits=int(cfg["precision_bits"]),
                         orbit_capacity=int(cfg["orbit_capacity"])) as session:
        session.set_view_from_strings(cfg["center"][0], cfg["center"][1], cfg["radius"], iterations)
        result = session.generate_orbit()
        logger.info("Orbit for %s", session.state_string())
        counts = render_perturbation(result, width, height, iterations)
        summary = {
            "orbit_length": result.orbit_length,
            "escape_iteration": result.escape_iteration,
            "capacity_exceeded": result.capacity_exceeded,
            "series": result.series.to_dict(),
        }

    palette = sine_palette(int(cfg["palette_size"]))
    iter_scale = palette.shape[0] // iterations if iterations < palette.shape[0] else 1
    surface = palette[(counts.astype(np.int64) * iter_scale) % palette.shape[0]]
    surface[counts >= iterations] = INTERIOR_COLOR
    return surface, summary

def render_view(cfg: Dict[str, Any]) -> Tuple[np.ndarray, Dict[str, Any]]:
    resolved = choose_renderer(renderer=cfg.get("renderer", "auto"), radius=cfg["radius"],
                               power=int(cfg.get("power", 2)), julia=bool(cfg.get("julia", False)))
    info: Dict[str, Any] = {"renderer": resolved, "width": cfg["width"], "height": cfg["height"]}
    if resolved == "tiled":
        surface = render_tiled(cfg)
    else:
        surface, summary = render_deep(cfg)
        info.update(summary)
    return surface, info

def save_image(surface: np.ndarray, path: str) -> str:
    parent = os.path.dirname(path)
    if parent:
        os.makedirs(parent, exist_ok=True)
    img = Image.fromarray(to_rgb_array(surface))
    img.save(path, format="PNG", optimize=True)
    get_logger().info("Saved image -> %s", path)
    return path
