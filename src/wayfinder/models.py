# models.py
# Shared data structures and enums used across all modules.

import time
from dataclasses import dataclass, field
from enum import Enum
from typing import List, Optional, Tuple


# ---------------------------------------------------------------------------
# Coordinate
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class GeoPoint:
    """Immutable geographic fix or route vertex."""
    lat: float
    lon: float
    altitude: Optional[float] = None
    accuracy_m: Optional[float] = None     # horizontal accuracy radius
    speed_ms: Optional[float] = None
    heading_deg: Optional[float] = None
    timestamp: float = field(default_factory=time.time)

    def to_dict(self) -> dict:
        return {
            "lat": self.lat,
            "lon": self.lon,
            "accuracy_m": self.accuracy_m,
            "timestamp": self.timestamp,
        }


class SignalQuality(Enum):
    POOR      = "poor"
    FAIR      = "fair"
    GOOD      = "good"
    EXCELLENT = "excellent"


@dataclass
class LocationStatistics:
    """Summary of the filter's recent fix history."""
    sample_count: int = 0
    average_accuracy_m: float = 0.0
    min_accuracy_m: float = 0.0
    max_accuracy_m: float = 0.0
    average_speed_ms: float = 0.0
    current_quality: SignalQuality = SignalQuality.POOR


# ---------------------------------------------------------------------------
# Route
# ---------------------------------------------------------------------------

class ManeuverType(Enum):
    START            = "start"
    STRAIGHT         = "straight"
    TURN_LEFT        = "turn-left"
    TURN_RIGHT       = "turn-right"
    SLIGHT_LEFT      = "slight-left"
    SLIGHT_RIGHT     = "slight-right"
    SHARP_LEFT       = "sharp-left"
    SHARP_RIGHT      = "sharp-right"
    U_TURN           = "u-turn"
    ROUNDABOUT_ENTER = "roundabout-enter"
    ROUNDABOUT_EXIT  = "roundabout-exit"
    MERGE            = "merge"
    EXIT             = "exit"
    KEEP_LEFT        = "keep-left"
    KEEP_RIGHT       = "keep-right"
    ARRIVE           = "arrive"


class TravelMode(Enum):
    WALKING = "walking"
    CYCLING = "cycling"
    DRIVING = "driving"


@dataclass
class RouteStep:
    """A single leg of a route; its maneuver is performed at `start`."""
    index: int
    start: GeoPoint
    end: GeoPoint
    maneuver: ManeuverType
    length_m: float
    instruction: str = ""
    duration_s: float = 0.0
    street_name: Optional[str] = None

    def to_dict(self) -> dict:
        return {
            "index": self.index,
            "start": {"lat": self.start.lat, "lon": self.start.lon},
            "end": {"lat": self.end.lat, "lon": self.end.lon},
            "maneuver": self.maneuver.value,
            "length_m": round(self.length_m, 1),
            "instruction": self.instruction,
            "street_name": self.street_name,
        }


@dataclass
class Route:
    """Ordered sequence of steps produced by an external route provider."""
    steps: List[RouteStep]
    mode: TravelMode = TravelMode.WALKING
    polyline: Optional[List[GeoPoint]] = None
    route_id: str = ""

    @property
    def total_distance_m(self) -> float:
        return sum(step.length_m for step in self.steps)

    @property
    def total_duration_s(self) -> float:
        return sum(step.duration_s for step in self.steps)

    @property
    def origin(self) -> GeoPoint:
        return self.steps[0].start

    @property
    def destination(self) -> GeoPoint:
        return self.steps[-1].end


# ---------------------------------------------------------------------------
# Guidance
# ---------------------------------------------------------------------------

class TimingClass(Enum):
    IMMEDIATE = "immediate"
    NEAR      = "near"
    NORMAL    = "normal"


@dataclass
class NavigationInstruction:
    """Localized guidance for one maneuver at a given distance."""
    maneuver: ManeuverType
    text: str
    distance_text: str
    distance_m: float
    icon: str
    timing: TimingClass
    spoken: bool = False
    step_index: int = 0
    street_name: Optional[str] = None
    to_destination: bool = False           # distance measured to the destination

    def to_dict(self) -> dict:
        return {
            "maneuver": self.maneuver.value,
            "text": self.text,
            "distance": self.distance_text,
            "distance_m": round(self.distance_m, 1),
            "icon": self.icon,
            "timing": self.timing.value,
            "spoken": self.spoken,
            "step_index": self.step_index,
        }


# ---------------------------------------------------------------------------
# Progress & deviation
# ---------------------------------------------------------------------------

class RouteAction(Enum):
    CONTINUE          = "continue"
    GET_BACK_ON_TRACK = "get-back-on-track"
    RECALCULATE       = "recalculate"


@dataclass
class LocateResult:
    step_index: int
    nearest_point: GeoPoint
    lateral_distance_m: float


@dataclass
class RouteProgress:
    completed_m: float
    remaining_m: float
    percent: float
    step_index: int
    eta_s: float

    def to_dict(self) -> dict:
        return {
            "completed_m": round(self.completed_m, 1),
            "remaining_m": round(self.remaining_m, 1),
            "percent": round(self.percent, 1),
            "step_index": self.step_index,
            "eta_s": round(self.eta_s),
        }


@dataclass
class DeviationCounters:
    """Hysteresis state carried between deviation checks."""
    consecutive_misses: int = 0
    last_known_good: Optional[GeoPoint] = None
    last_deviation_at: Optional[float] = None

    def reset(self) -> None:
        self.consecutive_misses = 0
        self.last_known_good = None
        self.last_deviation_at = None


@dataclass
class DeviationResult:
    is_deviated: bool
    lateral_distance_m: float
    action: RouteAction
    nearest_point: Optional[GeoPoint] = None
    step_index: Optional[int] = None
    consecutive_misses: int = 0
    message: str = ""

    def to_dict(self) -> dict:
        return {
            "is_deviated": self.is_deviated,
            "lateral_distance_m": round(self.lateral_distance_m, 1),
            "action": self.action.value,
            "step_index": self.step_index,
            "consecutive_misses": self.consecutive_misses,
            "message": self.message,
        }


# ---------------------------------------------------------------------------
# Session
# ---------------------------------------------------------------------------

class SessionState(Enum):
    IDLE          = "idle"
    ACTIVE        = "active"
    DEVIATED      = "deviated"
    RECALCULATING = "recalculating"
    ARRIVED       = "arrived"
    STOPPED       = "stopped"


@dataclass
class NavigationSession:
    """Mutable state of the one active navigation session."""
    route: Route
    start_time: float
    session_id: str = ""
    end_time: Optional[float] = None
    current_step_index: int = 0
    current_location: Optional[GeoPoint] = None
    active: bool = True
    consecutive_deviations: int = 0
    last_known_good: Optional[GeoPoint] = None
    distance_travelled_m: float = 0.0
    recalculations: int = 0
    current_instruction: Optional[NavigationInstruction] = None


@dataclass
class NavigationSummary:
    """Payload of the navigation_completed event."""
    session_id: str
    reason: str                  # "arrived" | "user-stopped" | "superseded" | "recalculation-failed" | "error"
    elapsed_s: float
    distance_travelled_m: float
    route_distance_m: float
    final_location: Optional[GeoPoint] = None
    recalculations: int = 0

    def to_dict(self) -> dict:
        return {
            "session_id": self.session_id,
            "reason": self.reason,
            "elapsed_s": round(self.elapsed_s, 1),
            "distance_travelled_m": round(self.distance_travelled_m, 1),
            "route_distance_m": round(self.route_distance_m, 1),
            "recalculations": self.recalculations,
        }


@dataclass
class ProgressResult:
    """Returned by NavigationSystem.submit() for every evaluated fix."""
    state: SessionState
    message: str
    location: Optional[GeoPoint] = None
    quality: Optional[SignalQuality] = None
    progress: Optional[RouteProgress] = None
    deviation: Optional[DeviationResult] = None
    instruction: Optional[NavigationInstruction] = None
    announced: bool = False

    @property
    def position(self) -> Optional[Tuple[float, float]]:
        if self.location is None:
            return None
        return self.location.lat, self.location.lon
