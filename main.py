"""
Airport Idle Simulation - Main Entry Point

Runs a headless simulation session from the command line:

- catalog.py: aircraft and upgrade definitions (JSON)
- eligibility.py: stand / runway / FBO rules
- ground_operations.py: runways, stands, stand allocation
- sim_state.py: clock, day/night, economy and daily history
- arrival_generator.py: arrival timing and tier-weighted traffic mix
- simulation.py: the tick-driven scheduler
- upgrades.py: purchasing and applying upgrades
- headless_actors.py: completes path requests without graphics
- statistical_analysis.py: summary table and daily history chart

Example:
    python main.py --seconds 600 --time-scale 5 --atc --bank 5000 --buy fbo_desk
"""

import argparse
import random

import matplotlib
import matplotlib.pyplot as plt

from catalog import AIRCRAFT_FILE, UPGRADES_FILE, load_catalog
from events import EventHub, TerminalFeed
from ground_operations import (
    DEFAULT_RUNWAY_LENGTH,
    DEFAULT_RUNWAY_SURFACE,
    DEFAULT_RUNWAY_WIDTH,
    build_airfield,
)
from headless_actors import HeadlessActorLayer
from sim_state import SimState
from simulation import TICK_INTERVAL_SECONDS, SimController
from statistical_analysis import plot_daily_history, print_summary, summarize_session
from upgrades import UpgradeManager

FRAME_DT = 0.1  # real seconds per host frame


def parse_stand_mix(text: str) -> dict:
    """'ga_small:4,ga_medium:2' -> {'ga_small': 4, 'ga_medium': 2}"""
    mix = {}
    for part in text.split(","):
        part = part.strip()
        if not part:
            continue
        name, _, count = part.partition(":")
        mix[name.strip()] = int(count) if count else 1
    return mix


class Session:
    """Everything one headless run needs, wired together."""

    def __init__(self, catalog, state, airfield, events, feed, rng,
                 time_scale: float = 1.0, tick_interval_s: float = TICK_INTERVAL_SECONDS):
        self.catalog = catalog
        self.state = state
        self.airfield = airfield
        self.events = events
        self.feed = feed
        self.controller = SimController(catalog, state, airfield, events=events, rng=rng,
                                        tick_interval_s=tick_interval_s, time_scale=time_scale)
        self.upgrades = UpgradeManager(catalog, state, airfield, events=events)
        self.actors = HeadlessActorLayer(self.controller)

    def step(self, real_dt: float):
        """One host frame: scheduler ticks, then actors and construction."""
        self.actors.dispatch(self.controller.advance(real_dt))
        sim_dt = real_dt * self.controller.time_scale
        self.actors.step(sim_dt)
        self.upgrades.update(sim_dt)

    def run(self, real_seconds: float, frame_dt: float = FRAME_DT):
        frames = int(round(real_seconds / frame_dt))
        for _ in range(frames):
            self.step(frame_dt)


def create_session(args) -> Session:
    events = EventHub()
    feed = TerminalFeed(events, quiet=args.quiet)
    rng = random.Random(args.seed)

    catalog = load_catalog(args.aircraft, args.upgrades)
    for err in catalog.load_errors:
        events.log(f"[WARN] {err}")

    state = SimState(bank=args.bank)
    state.progression_tier = args.tier
    state.night_ops_unlocked = args.night_ops
    state.atc_unlocked = args.atc
    state.fbo_slots_total = args.fbo_slots

    airfield = build_airfield(
        runway_length=args.runway_length,
        runway_width=args.runway_width,
        surface=args.surface,
        stand_counts=parse_stand_mix(args.stands),
    )

    session = Session(catalog, state, airfield, events, feed, rng,
                      time_scale=args.time_scale)
    for upgrade_id in args.buy:
        session.upgrades.purchase(upgrade_id)
    return session


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Headless airport idle simulation")
    parser.add_argument("--seconds", type=float, default=300.0,
                        help="Real seconds to simulate (scaled by --time-scale)")
    parser.add_argument("--time-scale", type=float, default=1.0,
                        help="Simulated seconds per real second (minimum 0.01)")
    parser.add_argument("--seed", type=int, default=None, help="Random seed for a reproducible run")
    parser.add_argument("--aircraft", default=str(AIRCRAFT_FILE), help="Aircraft catalog JSON")
    parser.add_argument("--upgrades", default=str(UPGRADES_FILE), help="Upgrades catalog JSON")
    parser.add_argument("--runway-length", type=float, default=DEFAULT_RUNWAY_LENGTH)
    parser.add_argument("--runway-width", type=float, default=DEFAULT_RUNWAY_WIDTH)
    parser.add_argument("--surface", default=DEFAULT_RUNWAY_SURFACE,
                        choices=["grass", "asphalt", "concrete"])
    parser.add_argument("--stands", default="ga_small:4,ga_medium:2",
                        help="Stand mix, e.g. ga_small:4,ga_medium:2,regional:1")
    parser.add_argument("--tier", type=int, default=0, help="Starting progression tier")
    parser.add_argument("--bank", type=float, default=0.0, help="Starting bank balance")
    parser.add_argument("--night-ops", action="store_true", help="Start with night operations unlocked")
    parser.add_argument("--atc", action="store_true", help="Start with ATC holding patterns unlocked")
    parser.add_argument("--fbo-slots", type=int, default=0, help="FBO service slots available")
    parser.add_argument("--buy", action="append", default=[], metavar="UPGRADE_ID",
                        help="Upgrade to purchase before the run (repeatable)")
    parser.add_argument("--quiet", action="store_true", help="Only print the final summary")
    parser.add_argument("--plot", default=None, metavar="PNG",
                        help="Save the daily history chart to this file")
    return parser


def run_session(argv=None) -> Session:
    """Parse arguments, run one headless session and report on it."""
    args = build_parser().parse_args(argv)
    if args.plot:
        matplotlib.use("Agg")
    session = create_session(args)
    session.feed.banner("AIRPORT IDLE SIMULATION (headless)")
    session.run(args.seconds)

    print_summary(summarize_session(session.controller))
    if args.plot:
        fig = plot_daily_history(session.state, output_path=args.plot)
        plt.close(fig)
        print(f"Daily history chart saved to {args.plot}")
    return session


def main(argv=None):
    run_session(argv)


if __name__ == "__main__":
    main()
