# tests/conftest.py
"""
Pytest configuration and fixtures.

Nothing here touches the bundled catalogs: every test builds the aircraft
it needs with make_aircraft and drives the scheduler with a stub random
source so outcomes are deterministic.
"""

import matplotlib
import pytest

matplotlib.use("Agg")

from catalog import AircraftDef, Catalog, DwellMinutes, Fees, RunwayReq
from events import EventHub
from ground_operations import build_airfield
from sim_state import SimState


class StubRng:
    """Random source that always draws the same fraction of any range."""

    def __init__(self, value: float = 0.5):
        self.value = value

    def random(self) -> float:
        return self.value

    def uniform(self, a: float, b: float) -> float:
        return a + (b - a) * self.value


def _make_aircraft(aircraft_id="c172", aircraft_class="ga_small", stand_class="ga_small",
                   min_length=400.0, surface="grass", width_class="narrow",
                   dwell=(1.0, 2.0), landing=20.0, parking=2.0, fbo=15.0,
                   spawn_weight=1.0, tier_unlock=0, runway=True):
    req = RunwayReq(min_length, surface, width_class) if runway else None
    return AircraftDef(
        id=aircraft_id,
        display_name=aircraft_id.upper(),
        aircraft_class=aircraft_class,
        stand_class=stand_class,
        runway=req,
        dwell_minutes=DwellMinutes(*dwell),
        fees=Fees(landing, parking, fbo),
        spawn_weight=spawn_weight,
        tier_unlock=tier_unlock,
    )


@pytest.fixture
def make_aircraft():
    """Factory for AircraftDef records with small-GA defaults."""
    return _make_aircraft


@pytest.fixture
def stub_rng():
    return StubRng(0.5)


@pytest.fixture
def hub():
    return EventHub()


@pytest.fixture
def state():
    """Fresh session state at 06:00 on day 1 with an empty bank."""
    return SimState()


@pytest.fixture
def airfield():
    """600m grass strip with two ga_small stands and one ga_medium stand."""
    return build_airfield(runway_length=600, runway_width=30, surface="grass",
                          stand_counts={"ga_small": 2, "ga_medium": 1})


@pytest.fixture
def catalog():
    return Catalog(aircraft=[_make_aircraft()])


@pytest.fixture
def log_lines(hub):
    """Collect everything written to the log channel."""
    lines = []
    hub.subscribe("log", lines.append)
    return lines
