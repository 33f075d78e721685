"""
Upgrades Module

Buying and building airport upgrades, and applying their effects to the
running session: multipliers, capability unlocks, extra stands, runway
works, FBO slots and other infrastructure.

Effects are applied between scheduler ticks; the scheduler picks the new
values up on its next tick.
"""

from dataclasses import dataclass
from typing import Dict, List, Optional

import events as ev


@dataclass
class BuildEntry:
    id: str
    display_name: str
    remaining_seconds: float


class UpgradeManager:

    def __init__(self, catalog, state, airfield, events: Optional[ev.EventHub] = None):
        self.catalog = catalog
        self.state = state
        self.airfield = airfield
        self.events = events if events is not None else ev.EventHub()
        self._purchase_counts: Dict[str, int] = {}
        self._build_queue: List[BuildEntry] = []

    # ------ PURCHASING --------------------------------------------------------------
    def purchase_count(self, upgrade_id: str) -> int:
        return self._purchase_counts.get(upgrade_id, 0)

    def is_under_construction(self, upgrade_id: str) -> bool:
        return any(b.id == upgrade_id for b in self._build_queue)

    @property
    def construction_entries(self) -> List[BuildEntry]:
        return list(self._build_queue)

    def can_purchase(self, upgrade_id: str) -> bool:
        up = self.catalog.find_upgrade(upgrade_id) if self.catalog else None
        if up is None:
            return False
        if self.purchase_count(up.id) >= up.max_purchases:
            return False
        if any(self.purchase_count(p) == 0 for p in up.prerequisites):
            return False
        return self.state.bank >= up.cost

    def purchase(self, upgrade_id: str) -> bool:
        """
        Pay for an upgrade and start building it.

        Returns
        -------
        bool
            False when the upgrade is unknown, sold out, missing a
            prerequisite or unaffordable.
        """
        up = self.catalog.find_upgrade(upgrade_id) if self.catalog else None
        if up is None:
            self._log(f"[WARN] Upgrade {upgrade_id} not found")
            return False
        if not self.can_purchase(upgrade_id):
            self._log(f"[UPG] Cannot purchase {up.display_name}")
            return False

        self.state.bank -= up.cost
        self.events.emit(ev.BANK, self.state.bank)
        self._purchase_counts[up.id] = self.purchase_count(up.id) + 1

        if up.build_time_s <= 0:
            self.apply_upgrade(up)
            return True

        self._build_queue.append(BuildEntry(up.id, up.display_name, up.build_time_s))
        self.events.emit(ev.CONSTRUCTION)
        self._log(f"[UPG] Construction started: {up.display_name} ({up.build_time_s:.0f}s)")
        return True

    def update(self, dt: float) -> List[str]:
        """Count build timers down; returns ids of upgrades finished this call."""
        finished = []
        for entry in list(self._build_queue):
            entry.remaining_seconds -= dt
            if entry.remaining_seconds > 0:
                continue
            self._build_queue.remove(entry)
            up = self.catalog.find_upgrade(entry.id)
            if up is not None:
                self.apply_upgrade(up)
            finished.append(entry.id)
        return finished

    # ------ EFFECTS --------------------------------------------------------------
    def apply_upgrade(self, upgrade):
        """Apply every effect of an upgrade (UpgradeDef or id)."""
        if isinstance(upgrade, str):
            up = self.catalog.find_upgrade(upgrade)
            if up is None:
                self._log(f"[WARN] Upgrade {upgrade} not found")
                return
            upgrade = up

        for effect in upgrade.effects:
            self._apply_effect(effect)

        if upgrade.tier_unlock >= 1:
            counts = self.state.tier_upgrade_counts
            counts[upgrade.tier_unlock] = counts.get(upgrade.tier_unlock, 0) + 1
        self.events.emit(ev.CONSTRUCTION)
        self._log(f"[UPG] Applied {upgrade.display_name}")

    def _apply_effect(self, e):
        state = self.state
        if e.type == "multiplier":
            if e.target == "income":
                state.income_multiplier *= e.value
            elif e.target in ("arrival_rate", "traffic_rate"):
                state.traffic_rate_multiplier *= e.value
        elif e.type in ("unlock_nav", "unlock_capability"):
            if e.capability == "night_ops":
                state.night_ops_unlocked = True
            elif e.capability == "atc":
                state.atc_unlocked = True
        elif e.type == "unlock_tier":
            state.progression_tier = max(state.progression_tier, int(e.value))
        elif e.type == "add_stand":
            self.airfield.stand_manager.add_stands(e.stand_class, max(1, e.count))
        elif e.type == "add_fbo":
            state.fbo_slots_total += max(1, e.count)
        elif e.type == "extend_runway":
            for runway in self.airfield.runways:
                runway.extend(e.length_m)
        elif e.type == "widen_runway":
            for runway in self.airfield.runways:
                runway.widen(e.width_class or "wide")
        elif e.type == "upgrade_surface":
            for runway in self.airfield.runways:
                runway.upgrade_surface(e.surface)
        elif e.type == "add_runway":
            self.airfield.add_runway(length_m=e.length_m or None, surface=e.surface or None)
        elif e.type in ("add_hangar", "add_taxi_exit"):
            state.infrastructure[e.type] = state.infrastructure.get(e.type, 0) + max(1, e.count)
        else:
            self._log(f"[WARN] Unhandled upgrade effect {e.type}")

    def _log(self, text: str):
        self.events.log(text)
