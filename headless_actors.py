"""
Headless Actor Layer

Stands in for the visual aircraft actors when the simulation runs without
graphics. Every PathRequest handed out by the scheduler is "flown" for a
time derived from the route length and the speed for that kind of
maneuver, then reported back with complete_path(). Each request is
completed exactly once.
"""

from typing import Dict, Iterable, List, Optional

from routes import path_length
from simulation import PathKind, PathRequest

TAXI_SPEED = 25.0      # m/s, arrival roll-out + taxi and departure taxi + roll
PATTERN_SPEED = 55.0   # m/s, holding pattern
FLYOVER_SPEED = 40.0   # m/s
MIN_MANEUVER_TIME = 1.0  # seconds

DEFAULT_SPEEDS = {
    PathKind.ARRIVAL: TAXI_SPEED,
    PathKind.DEPARTURE: TAXI_SPEED,
    PathKind.HOLDING: PATTERN_SPEED,
    PathKind.FLYOVER: FLYOVER_SPEED,
}


class ActorTrack:
    """One request in flight."""

    def __init__(self, request: PathRequest, duration: float):
        self.request = request
        self.duration = duration
        self.elapsed = 0.0

    @property
    def remaining(self) -> float:
        return max(0.0, self.duration - self.elapsed)

    @property
    def done(self) -> bool:
        return self.elapsed >= self.duration


class HeadlessActorLayer:

    def __init__(self, controller, speeds: Optional[Dict[PathKind, float]] = None):
        self.controller = controller
        self.speeds = dict(DEFAULT_SPEEDS)
        if speeds:
            self.speeds.update(speeds)
        self.tracks: Dict[int, ActorTrack] = {}
        self.completed = 0

    @property
    def in_flight(self) -> int:
        return len(self.tracks)

    def estimate_duration(self, request: PathRequest) -> float:
        speed = self.speeds.get(request.kind, TAXI_SPEED)
        return max(MIN_MANEUVER_TIME, path_length(request.waypoints) / speed)

    def dispatch(self, requests: Iterable[PathRequest]):
        for request in requests:
            self.tracks[request.request_id] = ActorTrack(request, self.estimate_duration(request))

    def step(self, dt: float) -> List[int]:
        """
        Move every actor forward by dt seconds.
        Finished requests are reported in request order; anything the
        scheduler produces in response is dispatched straight away.
        """
        finished = []
        for request_id in sorted(self.tracks):
            track = self.tracks[request_id]
            track.elapsed += dt
            if track.done:
                finished.append(request_id)

        for request_id in finished:
            del self.tracks[request_id]
            self.completed += 1
            self.dispatch(self.controller.complete_path(request_id))
        return finished
