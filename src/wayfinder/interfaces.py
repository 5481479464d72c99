# interfaces.py
# Contracts for the collaborators the engine talks to but does not own:
# route computation, raw location delivery and event presentation.

from typing import Callable, Optional, Protocol

from .errors import RecalculationFailed
from .models import (
    DeviationResult,
    GeoPoint,
    NavigationInstruction,
    NavigationSummary,
    Route,
    TravelMode,
)

FixCallback = Callable[[GeoPoint], None]
Unsubscribe = Callable[[], None]


class RouteProvider(Protocol):
    """Computes a route between two points; raises on failure."""

    async def compute_route(self, origin: GeoPoint, destination: GeoPoint, mode: TravelMode) -> Route:
        ...


class RawLocationSource(Protocol):
    """
    Delivers raw fixes. Either method may be absent:
      - get_current_location(): on-demand pull, used by the periodic tick
      - subscribe(callback):    push delivery; returns an unsubscribe callable
    """

    async def get_current_location(self) -> Optional[GeoPoint]:
        ...

    def subscribe(self, callback: FixCallback) -> Unsubscribe:
        ...


class NavigationEventSink(Protocol):
    """Fire-and-forget receiver for navigation events (UI, speech, notifications)."""

    def instruction_updated(self, instruction: NavigationInstruction) -> None:
        ...

    def deviation_detected(self, result: DeviationResult) -> None:
        ...

    def navigation_completed(self, summary: NavigationSummary) -> None:
        ...

    def navigation_failed(self, error: RecalculationFailed) -> None:
        ...
