import logging
import math
from collections import deque
from typing import Callable, Generic, TypeVar

from .route import RoutePoint, haversine_km
from .schemas import RoutePointIn, WorkoutIn

logger = logging.getLogger(__name__)

T = TypeVar("T")

HISTORY_SIZE = 20
STATIONARY_VARIANCE = 0.003
WALKING_VARIANCE = 0.02

class Subscription:
    def __init__(self, feed: "Feed", callback: Callable):
        self._feed = feed
        self.callback = callback
        self.active = True

    def stop(self) -> None:
        if self.active:
            self.active = False
            self._feed._detach(self)

class Feed(Generic[T]):
    def __init__(self):
        self._subs: list[Subscription] = []

    def subscribe(self, callback: Callable[[T], None]) -> Subscription:
        sub = Subscription(self, callback)
        self._subs.append(sub)
        return sub

    def _detach(self, sub: Subscription) -> None:
        self._subs.remove(sub)

    @property
    def subscriber_count(self) -> int:
        return len(self._subs)

    def publish(self, value: T) -> None:
        for sub in list(self._subs):
            sub.callback(value)

class LocationFeed(Feed[RoutePoint]):
    def start_tracking(self, callback: Callable[[RoutePoint], None]) -> Subscription:
        return self.subscribe(callback)

def magnitude(x: float, y: float, z: float) -> float:
    return math.sqrt(x * x + y * y + z * z)

def variance(values) -> float:
    if not values:
        return 0.0
    mean = sum(values) / len(values)
    return sum((v - mean) ** 2 for v in values) / len(values)

def classify(v: float) -> str:
    if v < STATIONARY_VARIANCE:
        return "stationary"
    if v < WALKING_VARIANCE:
        return "walking"
    return "running"

class MotionFeed:
    """Accelerometer samples in, motion state ('stationary', 'walking', 'running') out."""

    def __init__(self, history_size: int = HISTORY_SIZE):
        self._states: Feed[str] = Feed()
        self._history: deque = deque(maxlen=history_size)
        self._history_size = history_size

    def start_monitoring(self, callback: Callable[[str], None]) -> Subscription:
        return self._states.subscribe(callback)

    def push(self, x: float, y: float, z: float) -> str | None:
        self._history.append(magnitude(x, y, z))
        if len(self._history) < self._history_size / 2:
            return None
        state = classify(variance(self._history))
        self._states.publish(state)
        return state

class RouteRecorder:
    """Collects fixes from a LocationFeed and keeps a running distance."""

    def __init__(self, feed: LocationFeed):
        self.points: list[RoutePoint] = []
        self.distance_km = 0.0
        self._sub = feed.start_tracking(self._on_fix)

    def _on_fix(self, point: RoutePoint) -> None:
        if self.points:
            last = self.points[-1]
            self.distance_km += haversine_km(last.latitude, last.longitude, point.latitude, point.longitude)
        self.points.append(point)

    def stop(self) -> list[RoutePoint]:
        self._sub.stop()
        logger.debug("route recorder stopped with %d points, %.2f km", len(self.points), self.distance_km)
        return self.points

    def to_workout_in(self, duration_sec: int, started_at=None, finished_at=None) -> WorkoutIn:
        """Payload for saving the recorded run; the distance is re-measured from the route on save."""
        return WorkoutIn(
            duration_sec=duration_sec,
            route=[RoutePointIn(**vars(p)) for p in self.points],
            started_at=started_at,
            finished_at=finished_at,
        )
