"""
Ground Operations Module

Handles the ground-side resources of the airfield:
- Runways (geometry, surface, busy flag)
- Parking stands and their classes
- Stand allocation and occupancy statistics
- Entry points used by upgrades (extra stands, runway works, parallel runway)

Runways are aligned with the x-axis, threshold at the origin, and stands
line the northern (+y) side of the field.
"""

from typing import Dict, List, Optional, Tuple

import numpy as np

from eligibility import can_use_stand

# Default strip for a fresh airfield (grass strip, one GA apron)
DEFAULT_RUNWAY_LENGTH = 600.0  # meters
DEFAULT_RUNWAY_WIDTH = 30.0    # meters
DEFAULT_RUNWAY_SURFACE = "grass"
DEFAULT_RUNWAY_LABEL = "09/27"
DEFAULT_STANDS = {"ga_small": 4, "ga_medium": 2}

STAND_SPACING = 40.0             # meters between stands along the apron
STAND_LATERAL_OFFSET = 80.0      # meters from runway centreline
PARALLEL_RUNWAY_OFFSET = 210.0   # meters between parallel runway centrelines
WIDE_RUNWAY_WIDTH = 45.0

STAND_LABEL_PREFIX = {
    "ga_small": "GA",
    "ga_medium": "GM",
    "regional": "R",
    "narrowbody": "N",
    "widebody": "W",
}


def stand_position(index: int, spacing: float = STAND_SPACING) -> np.ndarray:
    """
    Position of the index-th stand on the apron.
    Stands are staggered in two rows so the apron grows along the runway.
    """
    row = index % 2
    x_position = spacing * (index // 2 + 1)
    y_position = STAND_LATERAL_OFFSET + row * spacing
    return np.array([x_position, y_position, 0.0])


def generate_stand_positions(num_stands: int, spacing: float = STAND_SPACING) -> np.ndarray:
    """
    Generate apron positions for a batch of stands.

    Returns
    -------
    np.ndarray
        Array of shape (num_stands, 3) with stand positions [x, y, z]
    """
    if num_stands <= 0:
        return np.empty((0, 3))
    return np.array([stand_position(i, spacing) for i in range(num_stands)])


# ------ STANDS --------------------------------------------------------------

class Stand:
    """A parking stand. At most one aircraft holds it at a time."""

    def __init__(self, stand_class: str, label: str, position: Optional[np.ndarray] = None):
        self.stand_class = stand_class
        self.label = label
        self.position = np.zeros(3) if position is None else np.asarray(position, dtype=float)
        self._occupied = False

    @property
    def is_occupied(self) -> bool:
        return self._occupied

    def occupy(self):
        if self._occupied:
            raise ValueError(f"Stand {self.label} is already occupied")
        self._occupied = True

    def vacate(self):
        self._occupied = False

    def __repr__(self):
        state = "occupied" if self._occupied else "free"
        return f"Stand({self.label!r}, {self.stand_class!r}, {state})"


class StandManager:
    """Tracks stand occupancy and hands out free stands first-fit."""

    def __init__(self, stands: Optional[List[Stand]] = None):
        self._stands: List[Stand] = list(stands or [])

    @property
    def stands(self) -> List[Stand]:
        return list(self._stands)

    def register_stands(self, stands: List[Stand]):
        """Replace the tracked set of stands."""
        self._stands = list(stands)

    def add_stands(self, stand_class: str, count: int) -> List[Stand]:
        """
        Build and register new stands of one class.
        Labels continue the per-class numbering (GA1, GA2, ...).
        """
        prefix = STAND_LABEL_PREFIX.get(stand_class, stand_class.upper()[:2])
        existing = sum(1 for s in self._stands if s.stand_class == stand_class)
        added = []
        for i in range(max(0, count)):
            index = len(self._stands)
            stand = Stand(stand_class, f"{prefix}{existing + i + 1}", stand_position(index))
            self._stands.append(stand)
            added.append(stand)
        return added

    def find_free(self, stand_class: str) -> Optional[Stand]:
        """First free stand of the class in registration order, or None."""
        for s in self._stands:
            if not s.is_occupied and s.stand_class == stand_class:
                return s
        return None

    def find_free_for(self, aircraft) -> Optional[Stand]:
        """First free stand this aircraft may park on."""
        for s in self._stands:
            if not s.is_occupied and can_use_stand(s.stand_class, aircraft):
                return s
        return None

    def stats_for_class(self, stand_class: str) -> Tuple[int, int]:
        """Returns (total, free) for one stand class."""
        total = 0
        free = 0
        for s in self._stands:
            if s.stand_class != stand_class:
                continue
            total += 1
            if not s.is_occupied:
                free += 1
        return total, free

    def stand_classes(self) -> List[str]:
        classes = []
        for s in self._stands:
            if s.stand_class not in classes:
                classes.append(s.stand_class)
        return classes

    def occupied_count(self) -> int:
        return sum(1 for s in self._stands if s.is_occupied)


# ------ RUNWAYS --------------------------------------------------------------

class Runway:
    """
    Runway geometry plus the busy flag guarding the single maneuver
    (landing roll-out or takeoff roll) allowed on it at any time.
    """

    def __init__(self, length_m: float = DEFAULT_RUNWAY_LENGTH,
                 width_m: float = DEFAULT_RUNWAY_WIDTH,
                 surface: str = DEFAULT_RUNWAY_SURFACE,
                 label: str = DEFAULT_RUNWAY_LABEL,
                 threshold: Optional[np.ndarray] = None):
        self.length_m = float(length_m)
        self.width_m = float(width_m)
        self.surface = surface
        self.label = label
        self.threshold = np.zeros(3) if threshold is None else np.asarray(threshold, dtype=float)

        # state flags
        self.busy = False
        self.current_flight: Optional[int] = None

    @property
    def width_class(self) -> str:
        return "wide" if self.width_m >= WIDE_RUNWAY_WIDTH else "narrow"

    @property
    def end(self) -> np.ndarray:
        return self.threshold + np.array([self.length_m, 0.0, 0.0])

    def mark_busy(self, flight_id: int):
        """Mark the runway as occupied by one maneuver."""
        if self.busy:
            raise ValueError(f"Runway {self.label} already busy with flight {self.current_flight}")
        self.busy = True
        self.current_flight = flight_id

    def release(self):
        self.busy = False
        self.current_flight = None

    # ------ runway works (upgrade effects) ------
    def extend(self, length_m: float):
        self.length_m += max(0.0, float(length_m))

    def widen(self, width_class: str = "wide", width_m: Optional[float] = None):
        if width_m is not None:
            self.width_m = max(self.width_m, float(width_m))
        elif width_class == "wide":
            self.width_m = max(self.width_m, WIDE_RUNWAY_WIDTH)

    def upgrade_surface(self, surface: str):
        self.surface = surface

    def __repr__(self):
        return (f"Runway({self.label!r}, {self.length_m:.0f}m x {self.width_m:.0f}m, "
                f"{self.surface}, {'BUSY' if self.busy else 'FREE'})")


# ------ AIRFIELD --------------------------------------------------------------

class Airfield:
    """Runways plus the stand pool; what the scheduler allocates against."""

    def __init__(self, runways: Optional[List[Runway]] = None,
                 stand_manager: Optional[StandManager] = None):
        self.runways: List[Runway] = list(runways or [])
        self.stand_manager = stand_manager or StandManager()

    @property
    def primary_runway(self) -> Optional[Runway]:
        return self.runways[0] if self.runways else None

    def add_runway(self, length_m: Optional[float] = None, width_m: Optional[float] = None,
                   surface: Optional[str] = None, label: Optional[str] = None) -> Runway:
        """
        Add a parallel runway south of the existing ones.
        Missing dimensions are copied from the primary runway.
        """
        base = self.primary_runway
        runway = Runway(
            length_m=length_m if length_m else (base.length_m if base else DEFAULT_RUNWAY_LENGTH),
            width_m=width_m if width_m else (base.width_m if base else DEFAULT_RUNWAY_WIDTH),
            surface=surface or (base.surface if base else DEFAULT_RUNWAY_SURFACE),
            label=label or f"{DEFAULT_RUNWAY_LABEL}{'LRC'[len(self.runways) % 3]}",
            threshold=np.array([0.0, -PARALLEL_RUNWAY_OFFSET * len(self.runways), 0.0]),
        )
        self.runways.append(runway)
        return runway

    def stand_summary(self) -> Dict[str, Tuple[int, int]]:
        sm = self.stand_manager
        return {cls: sm.stats_for_class(cls) for cls in sm.stand_classes()}


def build_airfield(runway_length: float = DEFAULT_RUNWAY_LENGTH,
                   runway_width: float = DEFAULT_RUNWAY_WIDTH,
                   surface: str = DEFAULT_RUNWAY_SURFACE,
                   stand_counts: Optional[Dict[str, int]] = None,
                   with_runway: bool = True) -> Airfield:
    """
    Build a starting airfield.

    Parameters
    ----------
    runway_length : float
        Length of the runway in meters.
    runway_width : float
        Width of the runway in meters.
    surface : str
        grass | asphalt | concrete
    stand_counts : dict
        Stand class -> number of stands, created in dict order.
    with_runway : bool
        False builds a stands-only field (no runway gating at all).
    """
    runways = [Runway(runway_length, runway_width, surface)] if with_runway else []
    airfield = Airfield(runways=runways)
    counts = DEFAULT_STANDS if stand_counts is None else stand_counts
    for stand_class, count in counts.items():
        airfield.stand_manager.add_stands(stand_class, count)
    return airfield
