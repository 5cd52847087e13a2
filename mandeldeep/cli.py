from __future__ import annotations

import argparse
import json
import logging
import os
from typing import Optional

import numpy as np

from mandeldeep.config import RENDERERS, load_config, normalise_config
from mandeldeep.pipeline import choose_renderer, render_view, save_image
from mandeldeep.session import DeepZoomSession
from mandeldeep.util.logging_setup import configure_root_logging, get_logger
from mandeldeep.util.manifest import build_manifest, write_manifest

def build_arg_parser() -> argparse.ArgumentParser:
    p = argparse.ArgumentParser(prog="mandeldeep", description="Mandelbrot deep-zoom reference orbits and previews.")
    p.add_argument("--config", type=str, default=None, help="Path to config JSON. If omitted, built-in defaults are used.")
    p.add_argument("--log-level", type=str, default="INFO", choices=["DEBUG", "INFO", "WARNING", "ERROR"], help="Log level.")
    p.add_argument("--log-file", type=str, default="mandeldeep.log", help="Log file path (rotating). Set empty to disable file logging.")

    view = argparse.ArgumentParser(add_help=False)
    view.add_argument("--center", type=str, nargs=2, metavar=("RE", "IM"), default=None, help="View center as decimal strings.")
    view.add_argument("--radius", type=str, default=None, help="View radius as a decimal string.")
    view.add_argument("--iterations", type=int, default=None, help="Iteration cap.")
    view.add_argument("--precision-bits", type=int, default=None, help="Working precision in bits.")

    sub = p.add_subparsers(dest="cmd", required=True)

    o = sub.add_parser("orbit", parents=[view], help="Generate a reference orbit and its series.")
    o.add_argument("--out-dir", type=str, default="orbit", help="Directory for orbit.npy and series.json.")
    o.add_argument("--orbit-capacity", type=int, default=None, help="Orbit buffer size in floats.")

    r = sub.add_parser("render", parents=[view], help="Render a PNG of the view.")
    r.add_argument("--width", type=int, default=None)
    r.add_argument("--height", type=int, default=None)
    r.add_argument("--output", type=str, default=None, help="Output PNG (defaults to config.output).")
    r.add_argument("--renderer", type=str, default=None, choices=list(RENDERERS), help="Renderer selection.")
    r.add_argument("--power", type=int, default=None, choices=[2, 3, 4])
    r.add_argument("--julia", type=float, nargs=2, metavar=("RE", "IM"), default=None, help="Render the Julia set for this seed.")
    r.add_argument("--manifest", type=str, default=os.path.join("artifacts", "run.json"), help="Run manifest path.")

    return p

def _apply_overrides(cfg: dict, args: argparse.Namespace) -> dict:
    overrides = {
        "center": args.center,
        "radius": args.radius,
        "iterations": args.iterations,
        "precision_bits": args.precision_bits,
        "orbit_capacity": getattr(args, "orbit_capacity", None),
        "width": getattr(args, "width", None),
        "height": getattr(args, "height", None),
        "output": getattr(args, "output", None),
        "renderer": getattr(args, "renderer", None),
        "power": getattr(args, "power", None),
    }
    out = dict(cfg)
    for k, v in overrides.items():
        if v is not None:
            out[k] = v
    julia = getattr(args, "julia", None)
    if julia is not None:
        out["julia"] = True
        out["julia_seed"] = list(julia)
    return out

def _run_orbit(cfg: dict, out_dir: str) -> int:
    logger = get_logger()
    with DeepZoomSession(precision_bits=cfg["precision_bits"], orbit_capacity=cfg["orbit_capacity"]) as session:
        session.set_view_from_strings(cfg["center"][0], cfg["center"][1], cfg["radius"], cfg["iterations"])
        result = session.generate_orbit()
        summary = {
            "state": session.state_string(),
            "orbit_length": result.orbit_length,
            "escape_iteration": result.escape_iteration,
            "capacity_exceeded": result.capacity_exceeded,
            "capacity": result.capacity,
            "series": result.series.to_dict(),
        }
        os.makedirs(out_dir, exist_ok=True)
        np.save(os.path.join(out_dir, "orbit.npy"), result.orbit)

    with open(os.path.join(out_dir, "series.json"), "w", encoding="utf-8") as f:
        json.dump(summary, f, indent=2, sort_keys=True)
    logger.info("Orbit written to %s (length=%s validity_limit=%s)",
                out_dir, summary["orbit_length"], summary["series"]["validity_limit"])
    return 0

def _run_render(cfg: dict, manifest_path: str) -> int:
    logger = get_logger()
    resolved = choose_renderer(renderer=cfg["renderer"], radius=cfg["radius"], power=cfg["power"], julia=cfg["julia"])
    logger.info("Render start size=%sx%s renderer=%s (requested %s)", cfg["width"], cfg["height"], resolved, cfg["renderer"])

    surface, info = render_view(cfg)
    path = save_image(surface, cfg["output"])
    info["output"] = path

    if manifest_path:
        manifest = build_manifest(command="render", config=cfg, result=info)
        write_manifest(manifest_path, manifest)
        logger.info("Run manifest written: %s", manifest_path)
    return 0

def main(argv: Optional[list] = None) -> int:
    args = build_arg_parser().parse_args(argv)

    log_level = getattr(logging, args.log_level.upper(), logging.INFO)
    log_file = args.log_file if args.log_file and args.log_file.strip() else None
    configure_root_logging(level=log_level, console=True, log_file=log_file)

    cfg = normalise_config(_apply_overrides(load_config(args.config), args))

    if args.cmd == "orbit":
        return _run_orbit(cfg, args.out_dir)
    if args.cmd == "render":
        return _run_render(cfg, args.manifest)

    raise RuntimeError("Unknown command.")
