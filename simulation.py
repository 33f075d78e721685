"""
Simulation Module

Central scheduler for the airport. Runs at a fixed simulated tick and, in
this order every tick:
1. pulls arrivals from the ArrivalGenerator and handles each one
2. counts dwell timers down and releases departures
3. hands the runway to the next queued aircraft (ATC holds before departures)
4. advances the simulated clock
5. times out aircraft that have held for too long

Each aircraft is one Flight entry in an arena keyed by flight id, carrying
an explicit FlightState. Queues only ever hold flight ids.

Motion is not simulated here. Every runway maneuver, flyover and holding
loop is returned to the host as a PathRequest; the host reports the end of
the maneuver with complete_path(request_id), exactly once per request.
"""

import random
from collections import deque
from dataclasses import dataclass
from enum import Enum
from typing import Deque, Dict, List, Optional, Tuple

import numpy as np

import events as ev
from arrival_generator import ArrivalGenerator
from catalog import AircraftDef
from eligibility import eligible_for_fbo, runway_ok, size_category
from ground_operations import Runway, Stand
from routes import arrival_route, departure_route, flyover_route, holding_pattern

TICK_INTERVAL_SECONDS = 0.2
MIN_TIME_SCALE = 0.01
HOLDING_TIMEOUT_MINUTES = 30.0
FBO_SERVICE_CHANCE = 0.35

# Catalog dwell minutes -> dwell seconds
DWELL_MIN_SCALE = 15.0
DWELL_MAX_SCALE = 30.0


class FlightState(Enum):
    SPAWNED = "spawned"
    DIVERTED = "diverted"
    QUEUED_ATC = "queued_atc"
    ALLOCATED = "allocated"
    DWELLING = "dwelling"
    DEPARTURE_QUEUED = "departure_queued"
    DEPARTING = "departing"
    MISSED = "missed"
    DEPARTED = "departed"


TERMINAL_STATES = frozenset({FlightState.DIVERTED, FlightState.MISSED, FlightState.DEPARTED})


class PathKind(Enum):
    ARRIVAL = "arrival"
    DEPARTURE = "departure"
    FLYOVER = "flyover"
    HOLDING = "holding"


@dataclass
class Flight:
    flight_id: int
    aircraft: AircraftDef
    state: FlightState = FlightState.SPAWNED
    stand: Optional[Stand] = None
    runway: Optional[Runway] = None
    dwell_remaining_s: float = 0.0
    wait_minutes: float = 0.0

    @property
    def is_terminal(self) -> bool:
        return self.state in TERMINAL_STATES


@dataclass(frozen=True, eq=False)
class PathRequest:
    request_id: int
    kind: PathKind
    flight_id: int
    aircraft_id: str
    waypoints: np.ndarray
    runway_label: Optional[str] = None


class SimController:
    """Tick-driven scheduler owning the runway queues and flight arena."""

    def __init__(self, catalog, state, airfield,
                 generator: Optional[ArrivalGenerator] = None,
                 events: Optional[ev.EventHub] = None,
                 rng: Optional[random.Random] = None,
                 tick_interval_s: float = TICK_INTERVAL_SECONDS,
                 time_scale: float = 1.0):
        if tick_interval_s <= 0:
            raise ValueError("tick_interval_s must be positive")
        self.catalog = catalog
        self.state = state
        self.airfield = airfield
        self.events = events if events is not None else ev.EventHub()
        self.rng = rng or random.Random()
        if generator is None:
            generator = ArrivalGenerator(catalog, state, events=self.events, rng=self.rng)
        self.generator = generator

        self.tick_interval_s = tick_interval_s
        self._time_scale = max(MIN_TIME_SCALE, time_scale)
        self._accumulator = 0.0
        self.tick_count = 0

        # arena + queues (flight ids only)
        self.flights: Dict[int, Flight] = {}
        self._next_flight_id = 1
        self._dwelling: List[int] = []
        self._departure_queue: Deque[int] = deque()
        self._atc_queue: Deque[int] = deque()

        # path requests awaiting completion: id -> (request, runway it holds)
        self._pending: Dict[int, Tuple[PathRequest, Optional[Runway]]] = {}
        self._outbox: List[PathRequest] = []
        self._next_request_id = 1

    # ------------------------------------------------------------------
    # Time scale & stepping
    # ------------------------------------------------------------------
    @property
    def time_scale(self) -> float:
        return self._time_scale

    def set_time_scale(self, value: float):
        self._time_scale = max(MIN_TIME_SCALE, float(value))
        self.events.emit(ev.TIME_SCALE, self._time_scale)

    def advance(self, real_dt: float) -> List[PathRequest]:
        """
        Feed elapsed real time in; run as many whole ticks as it buys.
        Leftover time carries over to the next call.
        """
        self._accumulator += real_dt * self._time_scale
        requests = []
        while self._accumulator >= self.tick_interval_s:
            self._accumulator -= self.tick_interval_s
            requests.extend(self.tick())
        return requests

    def tick(self, dt: Optional[float] = None) -> List[PathRequest]:
        """Run one scheduler tick and return the path requests it produced."""
        dt = self.tick_interval_s if dt is None else dt
        if dt < 0:
            raise ValueError("tick duration cannot be negative")
        self.tick_count += 1

        if self.generator is not None:
            for aircraft in self.generator.update(dt):
                if aircraft is not None:
                    self.handle_arrival(aircraft)

        self._process_dwell(dt)
        self._service_runway_queue()

        self.state.advance(dt)
        self._update_holding(dt)
        return self.drain_requests()

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------
    @property
    def runway_busy(self) -> bool:
        """True when the field has runways and every one of them is in use."""
        runways = self.airfield.runways
        return bool(runways) and all(r.busy for r in runways)

    @property
    def atc_queue(self) -> List[Flight]:
        return [self.flights[fid] for fid in self._atc_queue]

    @property
    def departure_queue(self) -> List[Flight]:
        return [self.flights[fid] for fid in self._departure_queue]

    @property
    def dwelling(self) -> List[Flight]:
        return [self.flights[fid] for fid in self._dwelling]

    @property
    def pending_requests(self) -> List[PathRequest]:
        return [req for req, _ in self._pending.values()]

    def flights_in(self, state: FlightState) -> List[Flight]:
        return [f for f in self.flights.values() if f.state is state]

    # ------------------------------------------------------------------
    # Arrivals
    # ------------------------------------------------------------------
    def handle_arrival(self, aircraft) -> Flight:
        """Create a flight for a new arrival and route it."""
        flight = Flight(flight_id=self._next_flight_id, aircraft=aircraft)
        self._next_flight_id += 1
        self.flights[flight.flight_id] = flight
        self._route_arrival(flight)
        return flight

    def _route_arrival(self, flight: Flight):
        aircraft = flight.aircraft
        runways = self.airfield.runways

        if runways and not any(runway_ok(r, aircraft) for r in runways):
            self._divert(flight, f"Arrival diverted: runway unsuitable for {aircraft.id}")
            return

        runway = self._free_runway_for(aircraft)
        blocked = bool(runways) and runway is None
        if blocked and not self.state.atc_unlocked:
            self._miss(flight, f"Arrival diverted: runway in use and no ATC for {aircraft.id}")
            return
        if blocked:
            self._enqueue_holding(flight)
            return

        stand = self.airfield.stand_manager.find_free_for(aircraft)
        if stand is None:
            self._miss(flight, f"Arrival diverted: no free stand for {aircraft.stand_class}")
            return

        stand.occupy()
        flight.stand = stand
        self.state.add_received()
        self.events.emit(ev.RECEIVED, self.state.received)
        self._add_income(aircraft)
        self._try_fbo_service(aircraft)

        flight.dwell_remaining_s = self._sample_dwell(aircraft)
        self._dwelling.append(flight.flight_id)
        self.state.active_aircraft += 1

        if runway is not None:
            runway.mark_busy(flight.flight_id)
            flight.runway = runway
            flight.state = FlightState.ALLOCATED
            self._request(PathKind.ARRIVAL, flight, arrival_route(runway, stand), runway)
        else:
            flight.state = FlightState.DWELLING

        self._log(f"[ARR] {aircraft.display_name} ({size_category(aircraft)}) arrived -> {stand.label}")

    def _enqueue_holding(self, flight: Flight):
        flight.state = FlightState.QUEUED_ATC
        flight.wait_minutes = 0.0
        self._atc_queue.append(flight.flight_id)
        pattern_runway = self._candidate_runways(flight.aircraft)[0]
        self._request(PathKind.HOLDING, flight, holding_pattern(pattern_runway))
        self._log(f"[ATC] Queued arrival for {flight.aircraft.display_name} in holding pattern")

    def _update_holding(self, dt: float):
        if not self._atc_queue:
            return
        # same minutes-per-second rate the clock just used
        rate = self.state.current_rate()
        for fid in list(self._atc_queue):
            flight = self.flights[fid]
            flight.wait_minutes += dt * rate
            if flight.wait_minutes >= HOLDING_TIMEOUT_MINUTES:
                self._atc_queue.remove(fid)
                self._miss(
                    flight,
                    f"Arrival diverted: holding timeout ({HOLDING_TIMEOUT_MINUTES:.0f} min) "
                    f"for {flight.aircraft.display_name}",
                    flyover=False,
                )

    # ------------------------------------------------------------------
    # Dwell & departures
    # ------------------------------------------------------------------
    def _sample_dwell(self, aircraft) -> float:
        dwell_min = max(aircraft.dwell_minutes.min, 1.0)
        dwell_max = max(aircraft.dwell_minutes.max, dwell_min)
        return self.rng.uniform(dwell_min * DWELL_MIN_SCALE, dwell_max * DWELL_MAX_SCALE)

    def _process_dwell(self, dt: float):
        # newest timers first
        for fid in reversed(list(self._dwelling)):
            flight = self.flights[fid]
            flight.dwell_remaining_s -= dt
            if flight.dwell_remaining_s > 0.0:
                continue
            # still landing; released once the arrival path completes
            if flight.state is FlightState.ALLOCATED:
                continue
            self._dwelling.remove(fid)
            if self._runway_blocked(flight.aircraft):
                flight.state = FlightState.DEPARTURE_QUEUED
                self._departure_queue.append(fid)
            else:
                self._launch_departure(flight)

    def _launch_departure(self, flight: Flight):
        aircraft = flight.aircraft
        stand = flight.stand
        runways = self.airfield.runways

        if runways and not any(runway_ok(r, aircraft) for r in runways):
            self._release_stand(flight)
            flight.state = FlightState.DIVERTED
            self.state.add_diverted()
            self.events.emit(ev.DIVERTED, self.state.diverted)
            self._log(f"Departure blocked: runway unsuitable for {aircraft.id}")
            self._retire(flight)
            return

        runway = self._free_runway_for(aircraft)
        if runways and runway is None:
            flight.state = FlightState.DEPARTURE_QUEUED
            self._departure_queue.append(flight.flight_id)
            return

        label = stand.label if stand is not None else "?"
        if runway is not None:
            runway.mark_busy(flight.flight_id)
            flight.runway = runway
            flight.state = FlightState.DEPARTING
            self._request(PathKind.DEPARTURE, flight, departure_route(stand, runway), runway)
        self._release_stand(flight)
        self._log(f"[DEP] {aircraft.display_name} departed from {label}")

        if runway is None:
            flight.state = FlightState.DEPARTED
            self._retire(flight)

    def _release_stand(self, flight: Flight):
        if flight.stand is not None:
            flight.stand.vacate()
            flight.stand = None
        self.state.active_aircraft = max(0, self.state.active_aircraft - 1)

    # ------------------------------------------------------------------
    # Runway queue
    # ------------------------------------------------------------------
    def _candidate_runways(self, aircraft) -> List[Runway]:
        runways = self.airfield.runways
        suitable = [r for r in runways if runway_ok(r, aircraft)]
        return suitable or runways

    def _free_runway_for(self, aircraft) -> Optional[Runway]:
        for r in self._candidate_runways(aircraft):
            if not r.busy:
                return r
        return None

    def _runway_blocked(self, aircraft) -> bool:
        return bool(self.airfield.runways) and self._free_runway_for(aircraft) is None

    def _service_runway_queue(self):
        """Give a free runway to the head of the ATC queue, else the departure queue."""
        if self.runway_busy:
            return

        if self._atc_queue:
            flight = self.flights[self._atc_queue[0]]
            if not self._runway_blocked(flight.aircraft):
                self._atc_queue.popleft()
                self._route_arrival(flight)
                return

        if self._departure_queue:
            flight = self.flights[self._departure_queue[0]]
            if not self._runway_blocked(flight.aircraft):
                self._departure_queue.popleft()
                self._launch_departure(flight)

    # ------------------------------------------------------------------
    # Path requests
    # ------------------------------------------------------------------
    def _request(self, kind: PathKind, flight: Flight, waypoints: np.ndarray,
                 runway: Optional[Runway] = None) -> PathRequest:
        request = PathRequest(
            request_id=self._next_request_id,
            kind=kind,
            flight_id=flight.flight_id,
            aircraft_id=flight.aircraft.id,
            waypoints=waypoints,
            runway_label=runway.label if runway is not None else None,
        )
        self._next_request_id += 1
        self._pending[request.request_id] = (request, runway)
        self._outbox.append(request)
        return request

    def drain_requests(self) -> List[PathRequest]:
        """Hand over the path requests produced since the last call."""
        out = self._outbox
        self._outbox = []
        return out

    def complete_path(self, request_id: int) -> List[PathRequest]:
        """
        Report that the actor flying a path request has finished.

        Returns any new path requests the freed runway produced. Unknown or
        already completed request ids are ignored.
        """
        entry = self._pending.pop(request_id, None)
        if entry is None:
            return []
        request, runway = entry
        flight = self.flights.get(request.flight_id)

        if request.kind is PathKind.ARRIVAL:
            self._release_runway(runway, request.flight_id)
            if flight is not None and flight.state is FlightState.ALLOCATED:
                flight.state = FlightState.DWELLING
                if flight.dwell_remaining_s <= 0.0 and flight.flight_id in self._dwelling:
                    self._dwelling.remove(flight.flight_id)
                    flight.state = FlightState.DEPARTURE_QUEUED
                    self._departure_queue.append(flight.flight_id)
            self._service_runway_queue()
        elif request.kind is PathKind.DEPARTURE:
            self._release_runway(runway, request.flight_id)
            if flight is not None:
                flight.state = FlightState.DEPARTED
                self._retire(flight)
            self._service_runway_queue()
        elif request.kind is PathKind.HOLDING:
            # keep circling until serviced or timed out
            if flight is not None and flight.state is FlightState.QUEUED_ATC:
                self._request(PathKind.HOLDING, flight, request.waypoints)

        return self.drain_requests()

    @staticmethod
    def _release_runway(runway: Optional[Runway], flight_id: int):
        if runway is not None and runway.current_flight == flight_id:
            runway.release()

    # ------------------------------------------------------------------
    # Outcomes & economy
    # ------------------------------------------------------------------
    def _miss(self, flight: Flight, message: str, flyover: bool = True):
        flight.state = FlightState.MISSED
        self.state.add_missed()
        self.events.emit(ev.MISSED, self.state.missed)
        self._log(message)
        if flyover:
            self._request(PathKind.FLYOVER, flight, self._flyover(flight))
        self._retire(flight)

    def _divert(self, flight: Flight, message: str):
        flight.state = FlightState.DIVERTED
        self.state.add_diverted()
        self.events.emit(ev.DIVERTED, self.state.diverted)
        self._log(message)
        self._request(PathKind.FLYOVER, flight, self._flyover(flight))
        self._retire(flight)

    def _flyover(self, flight: Flight) -> np.ndarray:
        return flyover_route(self.airfield.primary_runway, flight.aircraft, self.rng)

    def _retire(self, flight: Flight):
        self.flights.pop(flight.flight_id, None)

    def _add_income(self, aircraft):
        landing = aircraft.fees.landing
        parking = aircraft.fees.parking_per_minute * max(aircraft.dwell_minutes.min, 1.0)
        amount = (landing + parking) * max(0.0, self.state.income_multiplier)
        self.state.add_income(amount)
        self.events.emit(ev.BANK, self.state.bank)
        self._log(f"[+$]{amount:.0f} bank={self.state.bank:.0f}")

    def _try_fbo_service(self, aircraft):
        if not eligible_for_fbo(aircraft, self.state):
            return
        if self.rng.random() > FBO_SERVICE_CHANCE:
            return
        self.state.fbo_slots_used += 1
        fee = max(aircraft.fees.fbo_service, 0.0) * max(0.0, self.state.income_multiplier)
        self.state.add_income(fee)
        self.events.emit(ev.BANK, self.state.bank)
        self._log(f"[FBO] {aircraft.display_name} used FBO (+{fee:.0f})")

    def _log(self, message: str):
        self.events.log(message)
