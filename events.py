"""
Events Module

Change notifications raised by the simulation core, and the terminal feed
that turns log lines into console output.

The core never depends on anyone listening: raising an event with no
subscribers is a no-op.
"""

from collections import deque
from typing import Callable, Dict, List, Optional

BANK = "bank"
RECEIVED = "received"
MISSED = "missed"
DIVERTED = "diverted"
TIME_SCALE = "time_scale"
CONSTRUCTION = "construction"
LOG = "log"

CHANNELS = (BANK, RECEIVED, MISSED, DIVERTED, TIME_SCALE, CONSTRUCTION, LOG)


class EventHub:
    """Simple publish/subscribe hub keyed by channel name."""

    def __init__(self):
        self._subscribers: Dict[str, List[Callable]] = {name: [] for name in CHANNELS}

    def subscribe(self, channel: str, callback: Callable):
        if channel not in self._subscribers:
            raise ValueError(f"Unknown event channel {channel!r}")
        if callback not in self._subscribers[channel]:
            self._subscribers[channel].append(callback)

    def unsubscribe(self, channel: str, callback: Callable):
        subs = self._subscribers.get(channel, [])
        if callback in subs:
            subs.remove(callback)

    def emit(self, channel: str, *args):
        # copy so callbacks may unsubscribe themselves
        for callback in list(self._subscribers.get(channel, [])):
            callback(*args)

    def log(self, text: str):
        self.emit(LOG, text)


class TerminalFeed:
    """Manages terminal output for status messages only."""

    # log tags -> console prefix
    PREFIXES = {
        "[ARR]": "ARR",
        "[DEP]": "DEP",
        "[ATC]": "ATC",
        "[FBO]": "FBO",
        "[+$]": "BANK",
        "[UPG]": "UPG",
        "[WARN]": "WARN",
    }

    def __init__(self, hub: Optional[EventHub] = None, quiet: bool = False, max_lines: int = 120):
        self.quiet = quiet
        self.lines = deque(maxlen=max_lines)
        self.banner_printed = False
        self._hub = None
        if hub is not None:
            self.attach(hub)

    def attach(self, hub: EventHub):
        self._hub = hub
        hub.subscribe(LOG, self.log_line)

    def detach(self):
        if self._hub is not None:
            self._hub.unsubscribe(LOG, self.log_line)
            self._hub = None

    def _emit(self, prefix: str, text: str):
        line = f"{prefix} | {text}"
        self.lines.append(line)
        if not self.quiet:
            print(line, flush=True)

    def log_line(self, text: str):
        prefix = "STATUS"
        for tag, name in self.PREFIXES.items():
            if text.startswith(tag):
                prefix = name
                text = text[len(tag):].strip()
                break
        self._emit(prefix, text)

    def status_update(self, text: str):
        """General status updates for terminal."""
        self._emit("STATUS", text)

    def banner(self, title: str):
        if self.banner_printed or self.quiet:
            return
        print("\n" + "=" * 70)
        print(title)
        print("=" * 70)
        self.banner_printed = True
