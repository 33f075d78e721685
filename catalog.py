"""
Catalog Module

Loads the aircraft and upgrade definitions that drive the simulation.
Both collections are plain JSON lists of records (camelCase keys, as
authored for the game) and are turned into immutable dataclasses here.

A missing or unreadable file never stops a session: the affected
collection is simply empty and the problem is recorded in
``Catalog.load_errors``. A single malformed record is skipped the same way.
"""

import json
from dataclasses import dataclass, field
from pathlib import Path
from typing import List, Optional, Tuple

DATA_DIR = Path(__file__).resolve().parent / "data"
AIRCRAFT_FILE = DATA_DIR / "aircraft.json"
UPGRADES_FILE = DATA_DIR / "upgrades.json"


# ------ RECORD TYPES --------------------------------------------------------------

@dataclass(frozen=True)
class RunwayReq:
    min_length_m: float
    surface: str
    width_class: str = "narrow"


@dataclass(frozen=True)
class DwellMinutes:
    min: float
    max: float


@dataclass(frozen=True)
class Fees:
    landing: float = 0.0
    parking_per_minute: float = 0.0
    fbo_service: float = 0.0


@dataclass(frozen=True)
class AircraftDef:
    id: str
    display_name: str
    aircraft_class: str
    stand_class: str
    runway: Optional[RunwayReq]
    dwell_minutes: DwellMinutes
    fees: Fees
    spawn_weight: float = 1.0
    tier_unlock: int = 0
    mtow_kg: int = 0


@dataclass(frozen=True)
class UpgradeEffect:
    type: str
    target: str = ""
    capability: str = ""
    stand_class: str = ""
    count: int = 0
    value: float = 0.0
    length_m: float = 0.0
    surface: str = ""
    width_class: str = ""


@dataclass(frozen=True)
class UpgradeDef:
    id: str
    display_name: str
    category: str
    cost: int
    build_time_s: float
    max_purchases: int
    tier_unlock: int = 0
    prerequisites: Tuple[str, ...] = ()
    effects: Tuple[UpgradeEffect, ...] = ()


@dataclass
class Catalog:
    """Container for everything loaded at session start."""
    aircraft: List[AircraftDef] = field(default_factory=list)
    upgrades: List[UpgradeDef] = field(default_factory=list)
    load_errors: List[str] = field(default_factory=list)

    def find_aircraft(self, aircraft_id: str) -> Optional[AircraftDef]:
        for a in self.aircraft:
            if a.id == aircraft_id:
                return a
        return None

    def find_upgrade(self, upgrade_id: str) -> Optional[UpgradeDef]:
        for u in self.upgrades:
            if u.id == upgrade_id:
                return u
        return None

    @property
    def ok(self) -> bool:
        return not self.load_errors


# ------ RECORD PARSING --------------------------------------------------------------

def parse_aircraft(record: dict) -> AircraftDef:
    """
    Build an AircraftDef from one JSON record.

    Raises KeyError / TypeError / ValueError when a required field is
    missing or has the wrong type; the loader turns that into a skipped entry.
    """
    runway = None
    req = record.get("runway")
    if req:
        runway = RunwayReq(
            min_length_m=float(req["minLengthMeters"]),
            surface=str(req["surface"]),
            width_class=str(req.get("widthClass") or "narrow"),
        )

    dwell = record["dwellMinutes"]
    fees = record.get("fees") or {}

    return AircraftDef(
        id=str(record["id"]),
        display_name=str(record.get("displayName") or record["id"]),
        aircraft_class=str(record["class"]),
        stand_class=str(record["standClass"]),
        runway=runway,
        dwell_minutes=DwellMinutes(min=float(dwell["min"]), max=float(dwell["max"])),
        fees=Fees(
            landing=float(fees.get("landing", 0.0)),
            parking_per_minute=float(fees.get("parkingPerMinute", 0.0)),
            fbo_service=float(fees.get("fboService", 0.0)),
        ),
        spawn_weight=float(record.get("spawnWeight", 1.0)),
        tier_unlock=int(record.get("tierUnlock", 0)),
        mtow_kg=int(record.get("mtowKg", 0)),
    )


def parse_upgrade(record: dict) -> UpgradeDef:
    """Build an UpgradeDef (and its effects) from one JSON record."""
    effects = []
    for e in record.get("effects") or []:
        effects.append(UpgradeEffect(
            type=str(e["type"]),
            target=str(e.get("target", "")),
            capability=str(e.get("capability", "")),
            stand_class=str(e.get("standClass", "")),
            count=int(e.get("count", 0)),
            value=float(e.get("value", 0.0)),
            length_m=float(e.get("lengthMeters", 0.0)),
            surface=str(e.get("surface", "")),
            width_class=str(e.get("widthClass", "")),
        ))

    return UpgradeDef(
        id=str(record["id"]),
        display_name=str(record.get("displayName") or record["id"]),
        category=str(record.get("category", "")),
        cost=int(record["cost"]),
        build_time_s=float(record.get("buildTimeSeconds", 0)),
        max_purchases=int(record.get("maxPurchases", 1)),
        tier_unlock=int(record.get("tierUnlock", 0)),
        prerequisites=tuple(str(p) for p in record.get("prerequisites") or ()),
        effects=tuple(effects),
    )


def _read_records(path: Path, label: str, errors: List[str]) -> list:
    try:
        with open(path, "r", encoding="utf-8") as f:
            data = json.load(f)
    except OSError as e:
        errors.append(f"Missing JSON for {label}: {e}")
        return []
    except json.JSONDecodeError as e:
        errors.append(f"Failed to parse {label} JSON: {e}")
        return []

    # Either a bare list or {"aircraft": [...]} style wrapper
    if isinstance(data, dict):
        data = data.get(label, data.get("items"))
    if not isinstance(data, list):
        errors.append(f"{label} JSON does not hold a list of records")
        return []
    return data


def _parse_all(records: list, parser, label: str, errors: List[str]) -> list:
    parsed = []
    for idx, record in enumerate(records):
        try:
            parsed.append(parser(record))
        except (KeyError, TypeError, ValueError, AttributeError) as e:
            ident = record.get("id", f"#{idx}") if isinstance(record, dict) else f"#{idx}"
            errors.append(f"Skipped malformed {label} entry {ident}: {e!r}")
    return parsed


# ------ LOADING --------------------------------------------------------------

def load_catalog(aircraft_path=AIRCRAFT_FILE, upgrades_path=UPGRADES_FILE) -> Catalog:
    """
    Load both collections from disk.

    Parameters
    ----------
    aircraft_path : str or Path
        JSON file holding aircraft records.
    upgrades_path : str or Path
        JSON file holding upgrade records.

    Returns
    -------
    Catalog
        Parsed definitions; ``load_errors`` lists anything that was skipped.
    """
    errors: List[str] = []
    aircraft = _parse_all(_read_records(Path(aircraft_path), "aircraft", errors),
                          parse_aircraft, "aircraft", errors)
    upgrades = _parse_all(_read_records(Path(upgrades_path), "upgrades", errors),
                          parse_upgrade, "upgrades", errors)
    return Catalog(aircraft=aircraft, upgrades=upgrades, load_errors=errors)
