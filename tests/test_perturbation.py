import numpy as np
import pytest

from mandeldeep.renderers.perturbation import PerturbationSettings, pixel_offsets, render_perturbation
from mandeldeep.session import DeepZoomSession


def _direct_counts(center, radius, width, height, iterations):
    """Plain float64 escape counts with the same bailout and pixel mapping."""
    c = complex(*center) + radius * pixel_offsets(width, height)
    z = np.zeros_like(c)
    counts = np.full(c.shape, iterations, dtype=np.int32)
    alive = np.ones(c.shape, dtype=bool)
    with np.errstate(over="ignore", invalid="ignore"):
        for n in range(1, iterations + 1):
            z[alive] = z[alive] * z[alive] + c[alive]
            esc = alive & (np.abs(z) ** 2 > 400.0)
            counts[esc] = n
            alive &= ~esc
    return counts


def test_pixel_offsets_shorter_axis():
    u = pixel_offsets(4, 2)
    assert u.shape == (2, 4)
    assert u[0, 0] == pytest.approx(-1.5 - 0.5j)
    assert u[1, 3] == pytest.approx(1.5 + 0.5j)


@pytest.mark.parametrize("use_series", [True, False])
def test_matches_direct_iteration(use_series):
    center, radius, iterations = ("-0.75", "0.1"), 0.05, 300
    with DeepZoomSession(center[0], center[1], str(radius), iterations, orbit_capacity=3000) as session:
        result = session.generate_orbit()
        counts = render_perturbation(result, 24, 24, settings=PerturbationSettings(use_series=use_series))

    expected = _direct_counts((-0.75, 0.1), radius, 24, 24, iterations)
    assert counts.shape == (24, 24)
    agreement = np.mean(np.abs(counts - expected) <= 1)
    assert agreement >= 0.9


def test_escaped_reference_still_renders():
    # reference at c = 0.3 escapes, nearby pixels do too
    with DeepZoomSession("0.3", "0", "0.01", 200, orbit_capacity=3000) as session:
        result = session.generate_orbit()
        assert result.escape_iteration is not None
        counts = render_perturbation(result, 16, 16)
    expected = _direct_counts((0.3, 0.0), 0.01, 16, 16, 200)
    assert np.mean(np.abs(counts - expected) <= 1) >= 0.9


def test_interior_view_is_interior():
    with DeepZoomSession("-0.1", "0", "1e-20", 500, orbit_capacity=3000) as session:
        result = session.generate_orbit()
        counts = render_perturbation(result, 8, 8)
    assert np.all(counts == 500)
    assert result.validity_limit == 499


def test_rejects_bad_viewport():
    with DeepZoomSession(orbit_capacity=300) as session:
        result = session.generate_orbit()
        with pytest.raises(ValueError):
            render_perturbation(result, 0, 10)


def test_series_skipped_when_iterations_below_validity_limit():
    with DeepZoomSession("-0.75", "0.1", "1e-6", 300, orbit_capacity=3000) as session:
        result = session.generate_orbit()
        assert result.validity_limit > 1
        iterations = result.validity_limit - 1
        with_series = render_perturbation(result, 12, 12, iterations)
        plain = render_perturbation(result, 12, 12, iterations, settings=PerturbationSettings(use_series=False))
    assert np.array_equal(with_series, plain)
