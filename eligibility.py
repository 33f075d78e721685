"""
Eligibility Module

Stateless rules deciding which aircraft may use which stand, runway and
FBO service. Every function here is a pure predicate on its inputs.
"""

from typing import Optional, Tuple

SURFACE_RANK = {
    "grass": 0,
    "asphalt": 1,
    "concrete": 2,
}
WIDE_RUNWAY_MIN_WIDTH = 45.0  # meters

LARGE_CLASSES = ("regional_jet", "narrowbody", "widebody", "cargo_wide", "cargo_small")


def surface_rank(surface: Optional[str]) -> int:
    """Rank of a runway surface, -1 when unknown."""
    return SURFACE_RANK.get(surface, -1)


def surface_sufficient(have: Optional[str], need: Optional[str]) -> bool:
    have_rank = surface_rank(have)
    need_rank = surface_rank(need)
    if have_rank < 0 or need_rank < 0:
        return False
    return have_rank >= need_rank


def can_use_stand(stand_class: str, aircraft) -> bool:
    """Exact stand-class match only, no upsizing into bigger stands."""
    if aircraft is None:
        return False
    return aircraft.stand_class == stand_class


def runway_ok(runway, aircraft) -> bool:
    """
    Check whether a runway can accept an aircraft.

    Parameters
    ----------
    runway : Runway
        Runway geometry (length, width, surface).
    aircraft : AircraftDef
        Aircraft with its runway requirement.

    Returns
    -------
    bool
        False when either side is missing data, or length, surface or
        width falls short of the requirement.
    """
    if runway is None or aircraft is None or aircraft.runway is None:
        return False
    req = aircraft.runway
    if runway.length_m < req.min_length_m:
        return False
    if not surface_sufficient(runway.surface, req.surface):
        return False
    if req.width_class == "wide" and runway.width_m < WIDE_RUNWAY_MIN_WIDTH:
        return False
    return True


def eligible_for_fbo(aircraft, state) -> bool:
    """General-aviation traffic may buy FBO service while slots remain."""
    if state.fbo_slots_total <= 0:
        return False
    if state.fbo_slots_used >= state.fbo_slots_total:
        return False
    if aircraft is None:
        return False
    stand = aircraft.stand_class or ""
    return stand.startswith("ga") or aircraft.aircraft_class in ("ga_small", "turboprop")


def size_flags(aircraft) -> Tuple[bool, bool, bool]:
    """
    Split an aircraft into the small / medium / large buckets used for
    traffic-mix weighting. The flags are not exclusive: a ga_small parked
    on a ga_medium stand counts as both small and medium.
    """
    cls = aircraft.aircraft_class or ""
    stand = aircraft.stand_class or ""
    is_small = cls == "ga_small"
    is_medium = cls == "turboprop" or stand == "ga_medium"
    is_large = cls in LARGE_CLASSES
    return is_small, is_medium, is_large


def size_category(aircraft) -> str:
    if aircraft is None:
        return "small"
    is_small, is_medium, is_large = size_flags(aircraft)
    if is_small:
        return "small"
    if is_medium:
        return "medium"
    if is_large:
        return "large"
    return "small"
