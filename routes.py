"""
Routes Module

Builds the waypoint lists attached to every path request the scheduler
hands to the actor layer:
- arrival: straight-in approach, touchdown, taxi to the stand
- departure: stand, line-up, climb-out past the runway end
- flyover: diverted or missed traffic passing over the field
- holding: rectangular traffic pattern flown while ATC holds an arrival

All routes are Nx3 numpy arrays in the airfield frame (runway along +x,
threshold at the runway's own origin, z up).
"""

import random
from typing import Optional

import numpy as np

UP = np.array([0.0, 0.0, 1.0])
RUNWAY_AXIS = np.array([1.0, 0.0, 0.0])   # landing and takeoff both head +x
LATERAL_AXIS = np.array([0.0, 1.0, 0.0])

# Arrival
APPROACH_START_DISTANCE = 250.0  # meters before threshold
APPROACH_START_ALTITUDE = 12.0
TOUCHDOWN_HEIGHT = 0.2
STAND_ARRIVAL_HEIGHT = 0.7

# Departure
STAND_DEPARTURE_HEIGHT = 0.5
LINEUP_DISTANCE = 15.0
CLIMB_OUT_DISTANCE = 300.0
CLIMB_OUT_ALTITUDE = 6.0

# Holding pattern
PATTERN_ALTITUDE = 45.0
PATTERN_LEG_LONG = 450.0
PATTERN_LEG_SHORT = 220.0

# Flyover
FLYOVER_HALF_LENGTH = 450.0
FLYOVER_LATERAL_RANGE = (80.0, 140.0)

CRUISE_ALTITUDE_BANDS = {
    "ga_small": (30.0, 55.0),
    "turboprop": (40.0, 65.0),
    "regional_jet": (50.0, 80.0),
    "narrowbody": (60.0, 95.0),
    "widebody": (70.0, 110.0),
    "cargo_wide": (70.0, 110.0),
    "cargo_small": (50.0, 80.0),
}


def _origin(runway) -> np.ndarray:
    if runway is None:
        return np.zeros(3)
    return np.asarray(runway.threshold, dtype=float)


def path_length(waypoints: np.ndarray) -> float:
    """Total length of the polyline through the waypoints (meters)."""
    waypoints = np.asarray(waypoints, dtype=float)
    if len(waypoints) < 2:
        return 0.0
    return float(np.sum(np.linalg.norm(np.diff(waypoints, axis=0), axis=1)))


def cruise_altitude(aircraft, rng: random.Random, base_min: float = 30.0, base_max: float = 55.0) -> float:
    """Random flyover altitude inside the band for the aircraft class."""
    cls = getattr(aircraft, "aircraft_class", None) or "ga_small"
    lo, hi = CRUISE_ALTITUDE_BANDS.get(cls, (base_min, base_max))
    return rng.uniform(lo, hi)


def arrival_route(runway, stand) -> np.ndarray:
    """Approach along the runway axis, touch down at the threshold, taxi to the stand."""
    origin = _origin(runway)
    start = origin - RUNWAY_AXIS * APPROACH_START_DISTANCE + UP * APPROACH_START_ALTITUDE
    touchdown = origin + UP * TOUCHDOWN_HEIGHT
    stand_pos = stand.position + UP * STAND_ARRIVAL_HEIGHT
    return np.array([start, touchdown, stand_pos])


def departure_route(stand, runway) -> np.ndarray:
    """Taxi from the stand to the line-up point, then climb out."""
    origin = _origin(runway)
    start = stand.position + UP * STAND_DEPARTURE_HEIGHT
    lineup = origin + RUNWAY_AXIS * LINEUP_DISTANCE
    exit_point = origin + RUNWAY_AXIS * CLIMB_OUT_DISTANCE + UP * CLIMB_OUT_ALTITUDE
    return np.array([start, lineup, exit_point])


def holding_pattern(runway) -> np.ndarray:
    """
    Closed rectangular circuit centred on the runway.
    The first waypoint is repeated at the end so one loop is one request.
    """
    centre = _origin(runway)
    if runway is not None:
        centre = centre + RUNWAY_AXIS * (runway.length_m * 0.5)
    half = PATTERN_LEG_LONG * 0.5
    corners = [
        centre - RUNWAY_AXIS * half + LATERAL_AXIS * PATTERN_LEG_SHORT,
        centre + RUNWAY_AXIS * half + LATERAL_AXIS * PATTERN_LEG_SHORT,
        centre + RUNWAY_AXIS * half - LATERAL_AXIS * PATTERN_LEG_SHORT,
        centre - RUNWAY_AXIS * half - LATERAL_AXIS * PATTERN_LEG_SHORT,
    ]
    corners.append(corners[0])
    return np.array(corners) + UP * PATTERN_ALTITUDE


def flyover_route(runway, aircraft, rng: Optional[random.Random] = None) -> np.ndarray:
    """Pass over the field in a random direction and offset, then leave."""
    rng = rng or random.Random()
    centre = _origin(runway)
    direction = 1.0 if rng.random() > 0.5 else -1.0
    lateral_sign = 1.0 if rng.random() > 0.5 else -1.0
    lateral = rng.uniform(*FLYOVER_LATERAL_RANGE) * lateral_sign
    alt = cruise_altitude(aircraft, rng)

    start = centre - RUNWAY_AXIS * FLYOVER_HALF_LENGTH * direction + LATERAL_AXIS * lateral + UP * alt
    mid = centre + LATERAL_AXIS * (lateral * 0.35) + UP * (alt - 5.0)
    end = centre + RUNWAY_AXIS * FLYOVER_HALF_LENGTH * direction + LATERAL_AXIS * lateral + UP * (alt + 5.0)
    return np.array([start, mid, end])
