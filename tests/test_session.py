import numpy as np
import pytest

from mandeldeep.session import DeepZoomSession, create_session, destroy_session
from mandeldeep.view_state import InvalidCoordinate


def test_create_and_destroy():
    session = create_session(("-0.5", "0"), "2", 100, orbit_capacity=600)
    assert session.iterations == 100
    result = session.generate_orbit()
    assert result.capacity == 600
    assert result.orbit_length == 100
    destroy_session(session)
    assert session.closed
    with pytest.raises(RuntimeError):
        session.generate_orbit()
    with pytest.raises(RuntimeError):
        session.pan(0.1, 0.1)


def test_context_manager_closes():
    with DeepZoomSession(orbit_capacity=30) as session:
        session.set_iterations(5)
    assert session.closed


def test_getters_round_trip():
    session = DeepZoomSession()
    session.set_view_from_strings("-0.5", "0", "2", 1000)
    x, y, r = session.get_center_x(), session.get_center_y(), session.get_radius()

    other = DeepZoomSession()
    other.set_view_from_strings("0.3", "0.3", "0.3", 5)
    other.set_view_from_strings(x, y, r, 1000)
    assert other.view.center_x == session.view.center_x
    assert other.view.center_y == session.view.center_y
    assert other.view.radius == session.view.radius


def test_state_string():
    session = DeepZoomSession("-0.5", "0", "2", 1000)
    text = session.state_string()
    assert text == (f"re={session.get_center_x()}; im={session.get_center_y()}; "
                    f"r={session.get_radius()}; iterations=1000")


def test_invalid_view_keeps_previous_state():
    session = DeepZoomSession("-0.5", "0", "2", 1000)
    with pytest.raises(InvalidCoordinate):
        session.set_view_from_strings("1", "bad", "1")
    assert session.get_center_x() == DeepZoomSession().get_center_x()
    assert session.view.center_y == 0


def test_navigation():
    session = DeepZoomSession("0", "0", "2", 100, orbit_capacity=300)
    session.pan(0.5, 0.0)
    assert session.view.center_x == 1
    assert session.view.radius == 1
    session.zoom_in(0.0, 0.5, 0.5)
    assert session.view.center_y == 0.5
    assert session.view.radius == 0.5
    session.zoom_out()
    assert session.view.radius == 1
    session.reset()
    assert session.view.center_x == 0
    assert session.view.radius == 2


def test_orbit_result_fields():
    session = DeepZoomSession("1", "0", "1", 100, orbit_capacity=300)
    result = session.generate_orbit()
    assert result.escape_iteration == 3
    assert result.reference_c == 1 + 0j
    assert result.validity_limit == result.series.validity_limit
    assert result.radius_log2 == 0.0
    np.testing.assert_allclose(result.decoded_orbit(), [0, 1, 2, 5])
    # the buffer is the session's own
    assert result.orbit is session.generate_orbit().orbit
