import json

import numpy as np
import pytest
from PIL import Image

from mandeldeep.cli import main
from mandeldeep.orbit import SENTINEL
from mandeldeep.pipeline import choose_renderer


def test_orbit_command_writes_buffer_and_series(tmp_path):
    out_dir = tmp_path / "orbit"
    rc = main([
        "--log-file", "",
        "orbit",
        "--center", "15", "15",
        "--radius", "1",
        "--iterations", "50",
        "--orbit-capacity", "300",
        "--out-dir", str(out_dir),
    ])
    assert rc == 0

    data = np.load(out_dir / "orbit.npy")
    assert data.shape == (300,)
    assert np.all(data[3:] == SENTINEL)

    summary = json.loads((out_dir / "series.json").read_text())
    assert summary["orbit_length"] == 1
    assert summary["escape_iteration"] == 0
    assert summary["capacity_exceeded"] is False
    assert len(summary["series"]["coefficients"]) == 6
    assert summary["state"].startswith("re=15")


def test_render_tiled_png_and_manifest(tmp_path):
    output = tmp_path / "view.png"
    manifest = tmp_path / "artifacts" / "run.json"
    rc = main([
        "--log-file", "",
        "render",
        "--width", "40",
        "--height", "30",
        "--iterations", "64",
        "--output", str(output),
        "--manifest", str(manifest),
    ])
    assert rc == 0

    with Image.open(output) as img:
        assert img.size == (40, 30)
    run = json.loads(manifest.read_text())
    assert run["command"] == "render"
    assert run["result"]["renderer"] == "tiled"
    assert run["config"]["width"] == 40


def test_render_deep_view(tmp_path):
    output = tmp_path / "deep.png"
    rc = main([
        "--log-file", "",
        "render",
        "--center", "-0.1", "0",
        "--radius", "1e-20",
        "--iterations", "100",
        "--width", "8",
        "--height", "8",
        "--output", str(output),
        "--manifest", "",
    ])
    assert rc == 0
    with Image.open(output) as img:
        rgb = np.asarray(img)
    # interior everywhere
    assert np.all(rgb == 0)


def test_render_julia(tmp_path):
    output = tmp_path / "julia.png"
    rc = main([
        "--log-file", "",
        "render",
        "--julia", "-0.8", "0.156",
        "--width", "20",
        "--height", "20",
        "--iterations", "50",
        "--output", str(output),
        "--manifest", "",
    ])
    assert rc == 0
    assert output.exists()


def test_choose_renderer():
    assert choose_renderer(renderer="auto", radius="2") == "tiled"
    assert choose_renderer(renderer="auto", radius="1e-30") == "perturbation"
    assert choose_renderer(renderer="auto", radius="1e-30", julia=True) == "tiled"
    assert choose_renderer(renderer="auto", radius="1e-30", power=3) == "tiled"
    assert choose_renderer(renderer="perturbation", radius="2") == "perturbation"


@pytest.mark.parametrize("kwargs", [dict(julia=True), dict(power=3), dict(power=4)])
def test_perturbation_rejects_non_mandelbrot(kwargs):
    with pytest.raises(ValueError):
        choose_renderer(renderer="perturbation", radius="1e-30", **kwargs)
