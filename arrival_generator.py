"""
Arrival Generator Module

Decides when the next aircraft shows up and which type it is.

Timing is an interval timer with catch-up: a long tick can release several
arrivals at once, none are dropped. Type selection is a weighted draw over
the aircraft unlocked at the current progression tier, where the weights
come from how many upgrades of each tier the player has bought.
"""

import random
from typing import List, Optional, Sequence, Tuple

from eligibility import size_flags

MIN_INTERVAL_SECONDS = 30.0
MAX_INTERVAL_SECONDS = 60.0
INITIAL_DELAY_SECONDS = 5.0
MIN_TRAFFIC_RATE = 0.1


def weighted_choice(entries: Sequence[Tuple[object, float]], r: float):
    """
    Pick from (item, weight) pairs given a draw r in [0, total_weight).

    Weights are subtracted in order and the first entry that takes r to
    zero or below wins; float round-off falls through to the last entry.
    """
    if not entries:
        return None
    for item, weight in entries:
        r -= weight
        if r <= 0.0:
            return item
    return entries[-1][0]


def spawn_votes(aircraft, t1: int, t2: int, t3: int, t4: int) -> float:
    """Weight of one aircraft for the given per-tier upgrade counts."""
    is_small, is_medium, is_large = size_flags(aircraft)
    votes = 0.0
    # only small GA start with a vote
    if is_small:
        votes += 1.0
    if t1 > 0 and (is_small or is_medium):
        votes += t1
    if t2 > 0 and (is_small or is_medium or is_large):
        votes += t2
    if t3 > 0 and (is_medium or is_large):
        votes += t3
    if t4 > 0 and is_large:
        votes += t4
    return votes


class ArrivalGenerator:

    def __init__(self, catalog, state, events=None,
                 min_interval_s: float = MIN_INTERVAL_SECONDS,
                 max_interval_s: float = MAX_INTERVAL_SECONDS,
                 initial_delay_s: float = INITIAL_DELAY_SECONDS,
                 rng: Optional[random.Random] = None):
        self.catalog = catalog
        self.state = state
        self.events = events
        self.min_interval_s = min_interval_s
        self.max_interval_s = max(max_interval_s, min_interval_s)
        self.initial_delay_s = initial_delay_s
        self.rng = rng or random.Random()

        self._timer = 0.0
        self._next_spawn = initial_delay_s
        self._warned_empty = False

    @property
    def timer(self) -> float:
        return self._timer

    @property
    def next_spawn(self) -> float:
        return self._next_spawn

    def reset(self):
        self._timer = 0.0
        self._next_spawn = self.initial_delay_s

    def update(self, dt: float) -> list:
        """
        Advance the spawn timer by dt seconds.

        Returns
        -------
        list of AircraftDef
            Zero or more arrivals, in the order they were generated.
        """
        spawns = []
        aircraft = self.catalog.aircraft if self.catalog is not None else None
        if not aircraft:
            if not self._warned_empty:
                self._warned_empty = True
                self._log("[WARN] Aircraft catalog is empty, no arrivals will be generated")
            return spawns

        self._timer += dt

        # Night-ops gate: without the unlock nothing lands at night
        if not self.state.is_daytime() and not self.state.night_ops_unlocked:
            return spawns

        tier = self.state.progression_tier
        while self._timer >= self._next_spawn:
            chosen = self.pick_for_tier(tier)
            if chosen is not None:
                spawns.append(chosen)
            self._timer -= self._next_spawn
            self._next_spawn = self.sample_interval()

        return spawns

    def sample_interval(self) -> float:
        rate = max(MIN_TRAFFIC_RATE, self.state.traffic_rate_multiplier)
        return self.rng.uniform(self.min_interval_s, self.max_interval_s) / rate

    def weighted_pool(self, tier: int) -> List[Tuple[object, float]]:
        """Eligible aircraft for the tier with their non-zero weights."""
        t1, t2, t3, t4 = (self.state.tier_count(t) for t in (1, 2, 3, 4))
        weighted = []
        for a in self.catalog.aircraft:
            if a is None or a.tier_unlock > tier:
                continue
            votes = spawn_votes(a, t1, t2, t3, t4)
            if votes <= 0.0:
                continue
            weighted.append((a, votes))
        return weighted

    def pick_for_tier(self, tier: int):
        weighted = self.weighted_pool(tier)
        if not weighted:
            return None
        total = sum(w for _, w in weighted)
        return weighted_choice(weighted, self.rng.uniform(0.0, total))

    def _log(self, text: str):
        if self.events is not None:
            self.events.log(text)
