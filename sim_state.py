"""
Simulation State Module

Holds the mutable state of one simulation session: simulated clock,
day/night phase, bank balance, multipliers, traffic counters and the
rolling ten-day history used for reporting.

One SimState is created per session and handed to every component that
needs it; a new session simply builds a new one.
"""

from typing import Dict, List

MINUTES_PER_DAY = 1440.0
DAY_START_MIN = 6.0 * 60.0
DAY_END_MIN = 20.0 * 60.0

# Simulated minutes per simulated second
DAY_RATE_MIN_PER_SEC = 1.4
NIGHT_RATE_MIN_PER_SEC = 4.0
NIGHT_RATE_NO_LIGHTS_MIN_PER_SEC = 10.0  # unlit nights are skipped through faster than lit ones

HISTORY_DAYS = 10


class SimState:

    def __init__(self,
                 bank: float = 0.0,
                 clock_minutes: float = DAY_START_MIN,
                 day_start_min: float = DAY_START_MIN,
                 day_end_min: float = DAY_END_MIN,
                 day_rate: float = DAY_RATE_MIN_PER_SEC,
                 night_rate_with_lights: float = NIGHT_RATE_MIN_PER_SEC,
                 night_rate_no_lights: float = NIGHT_RATE_NO_LIGHTS_MIN_PER_SEC):
        # Economy
        self.bank = float(bank)
        self.income_multiplier = 1.0
        self.daily_income: List[float] = []

        # Traffic
        self.traffic_rate_multiplier = 1.0
        self.active_aircraft = 0
        self.total_arrivals = 0
        self.received = 0
        self.missed = 0
        self.diverted = 0
        self.daily_received: List[float] = []
        self.daily_missed: List[float] = []

        # FBO service slots
        self.fbo_slots_total = 0
        self.fbo_slots_used = 0

        # Progression / capabilities
        self.progression_tier = 0
        self.tier_upgrade_counts: Dict[int, int] = {}
        self.night_ops_unlocked = False
        self.atc_unlocked = False
        self.infrastructure: Dict[str, int] = {}

        # Time
        self.time_seconds = 0.0
        self.clock_minutes = float(clock_minutes)
        self.day_index = 1
        self.day_start_min = day_start_min
        self.day_end_min = day_end_min
        self.day_rate = day_rate
        self.night_rate_with_lights = night_rate_with_lights
        self.night_rate_no_lights = night_rate_no_lights

    # ------ CLOCK --------------------------------------------------------------
    def is_daytime(self) -> bool:
        return self.day_start_min <= self.clock_minutes < self.day_end_min

    def current_rate(self) -> float:
        """Simulated minutes per second for the current phase of the day."""
        if self.is_daytime():
            return self.day_rate
        if self.night_ops_unlocked:
            return self.night_rate_with_lights
        return self.night_rate_no_lights

    def advance(self, dt: float):
        """
        Advance the simulated clock by dt seconds.
        Crossing midnight starts a new day and a new history bucket.
        """
        self.time_seconds += dt
        prev = self.clock_minutes
        self.clock_minutes = (self.clock_minutes + dt * self.current_rate()) % MINUTES_PER_DAY
        if self.clock_minutes < prev:
            self.day_index += 1
            self.start_new_day_bucket()

    def clock_hhmm(self) -> str:
        mins = int(self.clock_minutes) % int(MINUTES_PER_DAY)
        return f"{mins // 60:02d}:{mins % 60:02d}"

    # ------ ECONOMY & COUNTERS --------------------------------------------------------------
    def add_income(self, amount: float):
        self.bank += amount
        self._ensure_buckets()
        self.daily_income[-1] += amount

    def add_received(self, count: int = 1):
        self._ensure_buckets()
        self.daily_received[-1] += count
        self.received += count
        self.total_arrivals += count

    def add_missed(self, count: int = 1):
        self._ensure_buckets()
        self.daily_missed[-1] += count
        self.missed += count

    def add_diverted(self, count: int = 1):
        # Diverted traffic shows up as missed in the daily history
        self._ensure_buckets()
        self.daily_missed[-1] += count
        self.diverted += count

    def tier_count(self, tier: int) -> int:
        return self.tier_upgrade_counts.get(tier, 0)

    def _ensure_buckets(self):
        for history in (self.daily_income, self.daily_received, self.daily_missed):
            if not history:
                history.append(0)

    def start_new_day_bucket(self):
        for history in (self.daily_income, self.daily_received, self.daily_missed):
            history.append(0)
            while len(history) > HISTORY_DAYS:
                history.pop(0)
