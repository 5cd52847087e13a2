# palette.py

import math

import numpy as np

INTERIOR_COLOR = 0
OPAQUE = 0xFF000000


def sine_palette(size: int = 320) -> np.ndarray:
    """
    Returns a packed ARGB (uint32) palette of `size` colours built from three
    phase-shifted sines over t = (i / size) ** 0.7, the same curve the image
    renderers use for smooth colouring. Every entry is opaque, so no palette
    colour collides with INTERIOR_COLOR.
    """
    if size < 1:
        raise ValueError("palette size must be >= 1")

    t = np.power(np.arange(size, dtype=np.float64) / float(size), 0.7)
    a = 6.0 * math.pi * t
    r = (255.0 * (0.5 + 0.5 * np.sin(a))).astype(np.uint32)
    g = (255.0 * (0.5 + 0.5 * np.sin(a + 2.0 * math.pi / 3.0))).astype(np.uint32)
    b = (255.0 * (0.5 + 0.5 * np.sin(a + 4.0 * math.pi / 3.0))).astype(np.uint32)
    return (np.uint32(OPAQUE) | (r << 16) | (g << 8) | b).astype(np.uint32)


def julia_palette(palette: np.ndarray) -> np.ndarray:
    # reversed, rotated by half a cycle
    n = len(palette)
    idx = (n // 2 + n - np.arange(n) - 1) % n
    return np.asarray(palette, dtype=np.uint32)[idx]


def to_rgb_array(surface: np.ndarray) -> np.ndarray:
    """(h, w) packed ARGB -> (h, w, 3) uint8, interior pixels black."""
    surface = np.asarray(surface, dtype=np.uint32)
    rgb = np.empty(surface.shape + (3,), dtype=np.uint8)
    rgb[..., 0] = (surface >> 16) & 0xFF
    rgb[..., 1] = (surface >> 8) & 0xFF
    rgb[..., 2] = surface & 0xFF
    return rgb
