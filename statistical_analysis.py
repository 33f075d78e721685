"""
Statistical Analysis Module

End-of-run reporting for a simulation session: a console summary of the
counters, stand occupancy and economy, and a chart of the rolling daily
history (income, received and missed traffic for the last ten days).
"""

import matplotlib.pyplot as plt
import matplotlib.patches as mpatches
import numpy as np

from simulation import FlightState


def summarize_session(controller) -> dict:
    """Collect the numbers worth reporting from a running controller."""
    state = controller.state
    handled = state.received + state.missed + state.diverted
    return {
        "day": state.day_index,
        "clock": state.clock_hhmm(),
        "sim_seconds": state.time_seconds,
        "bank": state.bank,
        "received": state.received,
        "missed": state.missed,
        "diverted": state.diverted,
        "acceptance_pct": (state.received / handled * 100.0) if handled else 0.0,
        "active_aircraft": state.active_aircraft,
        "holding": len(controller.atc_queue),
        "departure_queue": len(controller.departure_queue),
        "dwelling": len(controller.flights_in(FlightState.DWELLING)),
        "fbo_slots": (state.fbo_slots_used, state.fbo_slots_total),
        "stands": controller.airfield.stand_summary(),
        "runways": [(r.label, r.busy) for r in controller.airfield.runways],
    }


def print_summary(summary: dict):
    print(f"\n{'='*70}")
    print(f"{'AIRPORT SESSION SUMMARY':<70}")
    print(f"{'='*70}")
    print(f"Day {summary['day']} {summary['clock']}  |  "
          f"Sim time: {summary['sim_seconds']:.1f}s  |  Bank: {summary['bank']:.0f}")
    print(f"Received: {summary['received']}  Missed: {summary['missed']}  "
          f"Diverted: {summary['diverted']}  Acceptance: {summary['acceptance_pct']:.1f}%")
    print(f"Active aircraft: {summary['active_aircraft']}  Holding: {summary['holding']}  "
          f"Departure queue: {summary['departure_queue']}")
    used, total = summary["fbo_slots"]
    print(f"FBO slots used: {used}/{total}")
    print("-" * 70)
    print(f"{'Stand class':<20} {'Total':>8} {'Free':>8} {'Occupied':>10}")
    for stand_class, (total, free) in summary["stands"].items():
        print(f"{stand_class:<20} {total:>8} {free:>8} {total - free:>10}")
    print("-" * 70)
    for label, busy in summary["runways"]:
        print(f"Runway {label}: {'BUSY' if busy else 'FREE'}")
    print(f"{'='*70}\n")


def plot_daily_history(state, output_path=None, show: bool = False):
    """
    Chart the rolling daily history held in SimState.

    Parameters
    ----------
    state : SimState
        Session state with daily_income / daily_received / daily_missed.
    output_path : str or Path, optional
        Save the figure here when given.
    show : bool
        Open an interactive window.

    Returns
    -------
    matplotlib.figure.Figure
    """
    income = np.asarray(state.daily_income, dtype=float)
    received = np.asarray(state.daily_received, dtype=float)
    missed = np.asarray(state.daily_missed, dtype=float)
    n = max(len(income), len(received), len(missed), 1)
    # oldest bucket first; label with the day it belongs to
    first_day = state.day_index - n + 1
    days = np.arange(first_day, first_day + n)

    def pad(values):
        out = np.zeros(n)
        out[n - len(values):] = values
        return out

    income, received, missed = pad(income), pad(received), pad(missed)

    fig = plt.figure(figsize=(12, 7))
    gs = fig.add_gridspec(2, 1, hspace=0.4)
    ax1 = fig.add_subplot(gs[0, 0])
    ax2 = fig.add_subplot(gs[1, 0])

    # Plot 1: income per day
    bars = ax1.bar(days, income, color="#2ecc71", edgecolor="black", linewidth=0.5)
    ax1.set_title("Daily Income", fontsize=10, fontweight="bold")
    ax1.set_ylabel("Income", fontsize=8)
    ax1.bar_label(bars, fmt="%.0f", fontsize=7)
    ax1.grid(axis="y", alpha=0.3)
    ax1.set_xticks(days)

    # Plot 2: received vs missed (stacked)
    colors = {"Received": "#3498db", "Missed": "#e74c3c"}
    ax2.bar(days, received, color=colors["Received"], edgecolor="black", linewidth=0.5)
    ax2.bar(days, missed, bottom=received, color=colors["Missed"], edgecolor="black", linewidth=0.5)
    ax2.set_title("Traffic Handled per Day", fontsize=10, fontweight="bold")
    ax2.set_xlabel("Day", fontsize=8)
    ax2.set_ylabel("Aircraft", fontsize=8)
    ax2.grid(axis="y", alpha=0.3)
    ax2.set_xticks(days)
    patches = [mpatches.Patch(color=c, label=l) for l, c in colors.items()]
    ax2.legend(handles=patches, loc="upper left", fontsize=8)

    fig.suptitle("Airport Daily History", fontsize=13, fontweight="bold")

    if output_path is not None:
        fig.savefig(output_path, dpi=100)
    if show:
        plt.show()
    return fig
