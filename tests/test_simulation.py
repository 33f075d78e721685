# tests/test_simulation.py
"""
Test the tick-driven scheduler: arrival routing, runway exclusivity,
ATC holding, departures, path request completion and time scaling.

Arrivals are fed in by hand (generator disabled) unless a test is about
the generator hand-off itself.
"""

import random

import pytest

import events as ev
from catalog import Catalog
from ground_operations import build_airfield
from headless_actors import HeadlessActorLayer
from simulation import FlightState, PathKind, SimController
from conftest import StubRng


@pytest.fixture
def controller(catalog, state, airfield, hub, stub_rng):
    ctl = SimController(catalog, state, airfield, events=hub, rng=stub_rng)
    ctl.generator = None
    return ctl


def kinds(requests):
    return [r.kind for r in requests]


def request_for(ctl, flight_id, kind):
    for req in ctl.pending_requests:
        if req.flight_id == flight_id and req.kind is kind:
            return req
    return None


def arrive(ctl, aircraft):
    """Inject one arrival and clear the outbox so later returns are fresh."""
    flight = ctl.handle_arrival(aircraft)
    ctl.drain_requests()
    return flight


class TestArrivalRouting:

    def test_received_arrival(self, controller, make_aircraft, state):
        flight = arrive(controller, make_aircraft())

        assert flight.state is FlightState.ALLOCATED
        assert flight.stand.label == "GA1"
        assert flight.stand.is_occupied
        assert controller.airfield.primary_runway.current_flight == flight.flight_id
        # dwell = uniform(1 * 15, 2 * 30) at the midpoint
        assert flight.dwell_remaining_s == pytest.approx(37.5)
        assert state.received == 1
        assert state.active_aircraft == 1
        # landing 20 + parking 2/min * 1 min
        assert state.bank == pytest.approx(22.0)
        assert kinds(controller.pending_requests) == [PathKind.ARRIVAL]

    def test_income_multiplier(self, controller, make_aircraft, state):
        state.income_multiplier = 2.0
        arrive(controller, make_aircraft())
        assert state.bank == pytest.approx(44.0)

    def test_concrete_requirement_diverted_on_grass(self, controller, make_aircraft, state):
        jet = make_aircraft("a320", aircraft_class="narrowbody", stand_class="narrowbody",
                            min_length=100, surface="concrete")
        flight = arrive(controller, jet)

        assert flight.state is FlightState.DIVERTED
        assert state.diverted == 1
        assert state.received == 0
        assert state.daily_missed == [1]
        assert flight.flight_id not in controller.flights
        assert kinds(controller.pending_requests) == [PathKind.FLYOVER]

    def test_missed_when_runway_busy_without_atc(self, controller, make_aircraft, state):
        first = arrive(controller, make_aircraft())
        second = arrive(controller, make_aircraft())

        assert second.state is FlightState.MISSED
        assert state.missed == 1
        assert controller.airfield.primary_runway.current_flight == first.flight_id
        assert request_for(controller, second.flight_id, PathKind.FLYOVER) is not None

    def test_missed_when_no_stand(self, make_aircraft, state, hub, stub_rng):
        field = build_airfield(with_runway=False, stand_counts={"ga_small": 2})
        ctl = SimController(Catalog(), state, field, events=hub, rng=stub_rng)
        ctl.generator = None

        flights = [arrive(ctl, make_aircraft()) for _ in range(3)]

        assert [f.state for f in flights] == [FlightState.DWELLING, FlightState.DWELLING, FlightState.MISSED]
        assert state.active_aircraft == 2
        assert field.stand_manager.stats_for_class("ga_small") == (2, 0)

    def test_wrong_stand_class_missed(self, controller, make_aircraft, state):
        regional = make_aircraft("atr72", aircraft_class="cargo_small", stand_class="regional")
        flight = arrive(controller, regional)
        assert flight.state is FlightState.MISSED
        assert state.missed == 1

    def test_fbo_service(self, catalog, state, airfield, hub, make_aircraft):
        state.fbo_slots_total = 1
        ctl = SimController(catalog, state, airfield, events=hub, rng=StubRng(0.3))
        ctl.generator = None
        arrive(ctl, make_aircraft())

        assert state.fbo_slots_used == 1
        assert state.bank == pytest.approx(22.0 + 15.0)

    def test_fbo_declined(self, controller, make_aircraft, state):
        state.fbo_slots_total = 1
        arrive(controller, make_aircraft())
        assert state.fbo_slots_used == 0

    def test_received_event_and_log(self, controller, make_aircraft, hub, log_lines):
        received = []
        hub.subscribe(ev.RECEIVED, received.append)
        arrive(controller, make_aircraft())
        assert received == [1]
        assert any(line.startswith("[ARR]") for line in log_lines)
        assert any(line.startswith("[+$]") for line in log_lines)


class TestAtcHolding:

    def test_blocked_arrival_holds(self, controller, make_aircraft, state):
        state.atc_unlocked = True
        first = arrive(controller, make_aircraft())
        second = arrive(controller, make_aircraft())

        assert second.state is FlightState.QUEUED_ATC
        assert controller.atc_queue == [second]
        assert state.missed == 0
        assert request_for(controller, second.flight_id, PathKind.HOLDING) is not None

        landing = request_for(controller, first.flight_id, PathKind.ARRIVAL)
        followups = controller.complete_path(landing.request_id)

        assert first.state is FlightState.DWELLING
        assert second.state is FlightState.ALLOCATED
        assert second.stand.label == "GA2"
        assert kinds(followups) == [PathKind.ARRIVAL]
        assert controller.atc_queue == []

    def test_holding_loop_reissued_while_queued(self, controller, make_aircraft, state):
        state.atc_unlocked = True
        arrive(controller, make_aircraft())
        holder = arrive(controller, make_aircraft())

        loop = request_for(controller, holder.flight_id, PathKind.HOLDING)
        again = controller.complete_path(loop.request_id)
        assert kinds(again) == [PathKind.HOLDING]
        assert again[0].request_id != loop.request_id

    def test_holding_timeout(self, controller, make_aircraft, state):
        state.atc_unlocked = True
        arrive(controller, make_aircraft())
        holder = arrive(controller, make_aircraft())

        controller.tick(10.0)
        controller.tick(10.0)
        assert holder.wait_minutes == pytest.approx(28.0)
        assert holder.state is FlightState.QUEUED_ATC

        out = controller.tick(10.0)
        assert holder.state is FlightState.MISSED
        assert state.missed == 1
        assert controller.atc_queue == []
        assert PathKind.FLYOVER not in kinds(out)

    def test_holding_timeout_exact_boundary(self, controller, make_aircraft, state):
        """A wait landing exactly on 30.0 minutes is missed on that same sweep."""
        state.atc_unlocked = True
        state.day_rate = 1.5
        arrive(controller, make_aircraft())
        holder = arrive(controller, make_aircraft())

        controller.tick(10.0)
        assert holder.wait_minutes == 15.0
        assert holder.state is FlightState.QUEUED_ATC

        controller.tick(10.0)
        assert holder.wait_minutes == 30.0
        assert holder.state is FlightState.MISSED
        assert controller.atc_queue == []
        assert state.missed == 1

    def test_atc_served_before_departures(self, make_aircraft, state, hub, stub_rng):
        state.atc_unlocked = True
        field = build_airfield(stand_counts={"ga_small": 4})
        ctl = SimController(Catalog(), state, field, events=hub, rng=stub_rng)
        ctl.generator = None

        a = arrive(ctl, make_aircraft())
        ctl.complete_path(request_for(ctl, a.flight_id, PathKind.ARRIVAL).request_id)
        b = arrive(ctl, make_aircraft())
        c = arrive(ctl, make_aircraft())
        assert c.state is FlightState.QUEUED_ATC

        a.dwell_remaining_s = 0.1
        ctl.tick(0.2)
        assert a.state is FlightState.DEPARTURE_QUEUED
        assert ctl.departure_queue == [a]

        out = ctl.complete_path(request_for(ctl, b.flight_id, PathKind.ARRIVAL).request_id)
        assert kinds(out) == [PathKind.ARRIVAL]
        assert c.state is FlightState.ALLOCATED
        assert a.state is FlightState.DEPARTURE_QUEUED

        out = ctl.complete_path(request_for(ctl, c.flight_id, PathKind.ARRIVAL).request_id)
        assert kinds(out) == [PathKind.DEPARTURE]
        assert a.state is FlightState.DEPARTING
        assert ctl.departure_queue == []


class TestDepartures:

    def _land(self, ctl, make_aircraft):
        flight = arrive(ctl, make_aircraft())
        ctl.complete_path(request_for(ctl, flight.flight_id, PathKind.ARRIVAL).request_id)
        return flight

    def test_departure_cycle(self, controller, make_aircraft, state):
        flight = self._land(controller, make_aircraft)
        stand = flight.stand
        flight.dwell_remaining_s = 0.1

        out = controller.tick(0.2)
        assert kinds(out) == [PathKind.DEPARTURE]
        assert flight.state is FlightState.DEPARTING
        assert not stand.is_occupied
        assert state.active_aircraft == 0
        assert controller.runway_busy

        assert controller.complete_path(out[0].request_id) == []
        assert flight.state is FlightState.DEPARTED
        assert flight.flight_id not in controller.flights
        assert not controller.runway_busy

    def test_departure_waits_for_runway(self, controller, make_aircraft):
        parked = self._land(controller, make_aircraft)
        landing = arrive(controller, make_aircraft())
        parked.dwell_remaining_s = 0.1

        controller.tick(0.2)
        assert parked.state is FlightState.DEPARTURE_QUEUED
        assert parked.stand.is_occupied

        out = controller.complete_path(request_for(controller, landing.flight_id, PathKind.ARRIVAL).request_id)
        assert kinds(out) == [PathKind.DEPARTURE]
        assert parked.state is FlightState.DEPARTING

    def test_departure_diverted_when_runway_unsuitable(self, controller, make_aircraft, state):
        flight = self._land(controller, make_aircraft)
        stand = flight.stand
        controller.airfield.primary_runway.length_m = 100
        flight.dwell_remaining_s = 0.1

        controller.tick(0.2)
        assert flight.state is FlightState.DIVERTED
        assert state.diverted == 1
        assert state.active_aircraft == 0
        assert not stand.is_occupied
        assert not controller.runway_busy

    def test_stands_only_field_departs_immediately(self, make_aircraft, state, hub, stub_rng):
        field = build_airfield(with_runway=False, stand_counts={"ga_small": 2})
        ctl = SimController(Catalog(), state, field, events=hub, rng=stub_rng)
        ctl.generator = None
        flights = [arrive(ctl, make_aircraft()) for _ in range(2)]

        assert ctl.tick(40.0) == []
        assert all(f.state is FlightState.DEPARTED for f in flights)
        assert state.active_aircraft == 0
        assert field.stand_manager.occupied_count() == 0


class TestRunways:

    def test_one_maneuver_per_runway(self, controller, make_aircraft):
        first = arrive(controller, make_aircraft())
        runway = controller.airfield.primary_runway
        assert runway.busy
        assert runway.current_flight == first.flight_id
        assert controller.runway_busy

    def test_no_departure_while_own_landing_in_progress(self, controller, make_aircraft, state):
        controller.airfield.add_runway()
        flight = arrive(controller, make_aircraft())
        landing = request_for(controller, flight.flight_id, PathKind.ARRIVAL)
        flight.dwell_remaining_s = 0.1

        out = controller.tick(0.2)
        assert out == []
        assert flight.state is FlightState.ALLOCATED
        assert flight.stand.is_occupied
        assert [r.busy for r in controller.airfield.runways] == [True, False]
        assert state.active_aircraft == 1

        out = controller.complete_path(landing.request_id)
        assert kinds(out) == [PathKind.DEPARTURE]
        assert flight.state is FlightState.DEPARTING
        assert flight.stand is None
        assert sum(r.current_flight == flight.flight_id for r in controller.airfield.runways) == 1

    def test_expired_dwell_waits_behind_own_landing(self, controller, make_aircraft, state):
        state.atc_unlocked = True
        flight = arrive(controller, make_aircraft())
        holder = arrive(controller, make_aircraft())
        landing = request_for(controller, flight.flight_id, PathKind.ARRIVAL)
        flight.dwell_remaining_s = 0.1
        controller.tick(0.2)
        assert flight.state is FlightState.ALLOCATED

        # held arrival still gets the runway before the queued departure
        out = controller.complete_path(landing.request_id)
        assert kinds(out) == [PathKind.ARRIVAL]
        assert holder.state is FlightState.ALLOCATED
        assert flight.state is FlightState.DEPARTURE_QUEUED
        assert controller.departure_queue == [flight]

    def test_parallel_runway_adds_capacity(self, controller, make_aircraft):
        controller.airfield.add_runway()
        first = arrive(controller, make_aircraft())
        second = arrive(controller, make_aircraft())

        assert first.state is FlightState.ALLOCATED
        assert second.state is FlightState.ALLOCATED
        assert first.runway is not second.runway
        assert controller.runway_busy


class TestPathRequests:

    def test_unknown_request_ignored(self, controller):
        assert controller.complete_path(999) == []

    def test_completion_counted_once(self, controller, make_aircraft):
        flight = arrive(controller, make_aircraft())
        req = request_for(controller, flight.flight_id, PathKind.ARRIVAL)
        controller.complete_path(req.request_id)
        assert controller.complete_path(req.request_id) == []
        assert flight.state is FlightState.DWELLING

    def test_request_ids_unique(self, controller, make_aircraft, state):
        state.atc_unlocked = True
        for _ in range(3):
            arrive(controller, make_aircraft())
        ids = [r.request_id for r in controller.pending_requests]
        assert len(ids) == len(set(ids))


class TestStepping:

    def test_time_scale_clamped(self, controller, hub):
        scales = []
        hub.subscribe(ev.TIME_SCALE, scales.append)
        controller.set_time_scale(0.0)
        assert controller.time_scale == pytest.approx(0.01)
        assert scales == [pytest.approx(0.01)]

    def test_advance_runs_whole_ticks(self, catalog, state, airfield, hub, stub_rng):
        ctl = SimController(catalog, state, airfield, events=hub, rng=stub_rng, tick_interval_s=0.25)
        ctl.generator = None
        ctl.advance(1.0)
        assert ctl.tick_count == 4
        ctl.set_time_scale(2.0)
        ctl.advance(0.25)
        assert ctl.tick_count == 6
        assert state.time_seconds == pytest.approx(1.5)

    def test_bad_durations(self, catalog, state, airfield):
        with pytest.raises(ValueError):
            SimController(catalog, state, airfield, tick_interval_s=0.0)
        ctl = SimController(catalog, state, airfield)
        with pytest.raises(ValueError):
            ctl.tick(-1.0)

    def test_generator_feeds_arrivals(self, catalog, state, airfield, hub, stub_rng):
        ctl = SimController(catalog, state, airfield, events=hub, rng=stub_rng)
        out = ctl.tick(5.0)
        assert kinds(out) == [PathKind.ARRIVAL]
        assert state.received == 1


class TestCounters:

    def test_outcomes_bounded_by_arrivals_each_tick(self, make_aircraft, state, airfield, hub, monkeypatch):
        """received + missed + diverted grows by at most the new arrivals plus held ones."""
        catalog = Catalog(aircraft=[make_aircraft(), make_aircraft("heavy", surface="concrete")])
        state.atc_unlocked = True
        state.traffic_rate_multiplier = 5.0
        ctl = SimController(catalog, state, airfield, events=hub, rng=random.Random(5))
        actors = HeadlessActorLayer(ctl)

        spawned = []
        generate = ctl.generator.update

        def counting_update(dt):
            arrivals = generate(dt)
            spawned.append(len(arrivals))
            return arrivals

        monkeypatch.setattr(ctl.generator, "update", counting_update)

        def outcomes():
            return state.received + state.missed + state.diverted

        for _ in range(3000):
            before = outcomes()
            held = len(ctl.atc_queue)
            requests = ctl.tick()
            assert before <= outcomes() <= before + spawned[-1] + held
            actors.dispatch(requests)
            actors.step(ctl.tick_interval_s)

        assert sum(spawned) > 0
        assert outcomes() <= sum(spawned)
        assert state.diverted > 0


def test_flight_carries_catalog_aircraft(make_aircraft):
    from typing import get_type_hints

    from catalog import AircraftDef
    from simulation import Flight

    assert get_type_hints(Flight)["aircraft"] is AircraftDef
    assert Flight(1, make_aircraft()).state is FlightState.SPAWNED
