# tests/test_routes.py
"""
Test waypoint generation for arrival, departure, holding and flyover paths.
"""

import numpy as np
import pytest

from ground_operations import Runway, Stand
from routes import (
    CRUISE_ALTITUDE_BANDS,
    PATTERN_ALTITUDE,
    arrival_route,
    cruise_altitude,
    departure_route,
    flyover_route,
    holding_pattern,
    path_length,
)


@pytest.fixture
def runway():
    return Runway(length_m=600)


@pytest.fixture
def stand():
    return Stand("ga_small", "GA1", np.array([40.0, 80.0, 0.0]))


def test_path_length():
    assert path_length(np.array([[0, 0, 0], [3, 4, 0], [3, 4, 12]])) == pytest.approx(17.0)
    assert path_length(np.zeros((1, 3))) == 0.0


def test_arrival_ends_at_stand(runway, stand):
    route = arrival_route(runway, stand)
    assert route.shape == (3, 3)
    assert route[0][0] < 0.0
    np.testing.assert_allclose(route[-1][:2], stand.position[:2])


def test_departure_starts_at_stand(runway, stand):
    route = departure_route(stand, runway)
    np.testing.assert_allclose(route[0][:2], stand.position[:2])
    assert route[-1][2] > route[0][2]


def test_holding_pattern_is_closed(runway):
    loop = holding_pattern(runway)
    np.testing.assert_allclose(loop[0], loop[-1])
    assert np.all(loop[:, 2] == PATTERN_ALTITUDE)
    # centred on mid-runway
    assert loop[:, 0].mean() == pytest.approx(300.0, abs=100.0)


def test_flyover_altitude_band(stub_rng, make_aircraft):
    jet = make_aircraft("a320", aircraft_class="narrowbody")
    lo, hi = CRUISE_ALTITUDE_BANDS["narrowbody"]
    assert cruise_altitude(jet, stub_rng) == pytest.approx((lo + hi) / 2)

    route = flyover_route(None, jet, stub_rng)
    assert route.shape == (3, 3)
    assert lo - 5.0 <= route[1][2] <= hi
