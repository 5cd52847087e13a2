import json
from typing import Any, Dict, Optional

from mandeldeep.orbit import DEFAULT_ORBIT_CAPACITY
from mandeldeep.view_state import (
    DEFAULT_CENTER_X,
    DEFAULT_CENTER_Y,
    DEFAULT_ITERATIONS,
    DEFAULT_PRECISION_BITS,
    DEFAULT_RADIUS,
)

RENDERERS = ("auto", "tiled", "perturbation")

DEFAULT_CONFIG: Dict[str, Any] = {
    "width": 640,
    "height": 480,
    "center": [DEFAULT_CENTER_X, DEFAULT_CENTER_Y],
    "radius": DEFAULT_RADIUS,
    "iterations": DEFAULT_ITERATIONS,
    "precision_bits": DEFAULT_PRECISION_BITS,
    "orbit_capacity": DEFAULT_ORBIT_CAPACITY,
    "power": 2,
    "julia": False,
    "julia_seed": [-0.8, 0.156],
    "palette_size": 320,
    "output": "mandeldeep.png",
    "renderer": "auto",
    "level": 8,
}

def load_config(config_path: Optional[str]) -> Dict[str, Any]:
    if config_path:
        with open(config_path, "r", encoding="utf-8") as f:
            cfg = json.load(f)
        if not isinstance(cfg, dict):
            raise ValueError("Config JSON must be an object.")
        out = dict(DEFAULT_CONFIG)
        out.update(cfg)
        return out
    return dict(DEFAULT_CONFIG)

def _pair(cfg: Dict[str, Any], key: str) -> list:
    value = cfg[key]
    if not (isinstance(value, (list, tuple)) and len(value) == 2):
        raise ValueError(f"{key} must be [re, im].")
    return list(value)

def normalise_config(cfg: Dict[str, Any]) -> Dict[str, Any]:
    required = ["width", "height", "center", "radius", "iterations"]
    for r in required:
        if r not in cfg:
            raise ValueError(f"Missing config field: {r}")

    width = int(cfg["width"])
    height = int(cfg["height"])
    iterations = int(cfg["iterations"])
    if width <= 0 or height <= 0 or iterations <= 0:
        raise ValueError("width/height/iterations must be positive.")

    power = int(cfg.get("power", 2))
    if power not in (2, 3, 4):
        raise ValueError("power must be 2, 3 or 4.")

    renderer = str(cfg.get("renderer", "auto"))
    if renderer not in RENDERERS:
        raise ValueError("renderer must be one of: " + ", ".join(RENDERERS))

    # coordinates stay decimal strings until ViewState parses them
    center = [str(v) for v in _pair(cfg, "center")]

    out = dict(cfg)
    out["width"] = width
    out["height"] = height
    out["iterations"] = iterations
    out["center"] = center
    out["radius"] = str(cfg["radius"])
    out["precision_bits"] = int(cfg.get("precision_bits", DEFAULT_PRECISION_BITS))
    out["orbit_capacity"] = int(cfg.get("orbit_capacity", DEFAULT_ORBIT_CAPACITY))
    out["power"] = power
    out["julia"] = bool(cfg.get("julia", False))
    out["julia_seed"] = [float(v) for v in _pair(cfg, "julia_seed")] if "julia_seed" in cfg else [-0.8, 0.156]
    out["palette_size"] = int(cfg.get("palette_size", 320))
    out["output"] = str(cfg.get("output", "mandeldeep.png"))
    out["renderer"] = renderer
    out["level"] = max(1, int(cfg.get("level", 8)))
    if out["palette_size"] <= 0:
        raise ValueError("palette_size must be positive.")
    if out["precision_bits"] < 53:
        raise ValueError("precision_bits must be at least 53.")
    return out
