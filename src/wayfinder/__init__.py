# wayfinder
# Turn-by-turn navigation engine: location filtering, route tracking,
# guidance text and the session controller that ties them together.

from .errors import (
    NavigationError,
    RecalculationFailed,
    RouteMalformed,
    RouteUnavailable,
    SensorDataInvalid,
)
from .instructions import InstructionGenerator, distance_bucket
from .location_filter import LocationFilter
from .models import (
    GeoPoint,
    ManeuverType,
    NavigationInstruction,
    ProgressResult,
    Route,
    RouteAction,
    RouteStep,
    SessionState,
    TravelMode,
)
from .nav_config import NavConfig
from .nav_logger import NavLogger
from .navigator import NavigationSystem
from .route_builder import StraightLineRouteProvider, build_route, validate_route
from .route_tracker import RouteTracker

__all__ = [
    "GeoPoint",
    "InstructionGenerator",
    "LocationFilter",
    "ManeuverType",
    "NavConfig",
    "NavLogger",
    "NavigationError",
    "NavigationInstruction",
    "NavigationSystem",
    "ProgressResult",
    "RecalculationFailed",
    "Route",
    "RouteAction",
    "RouteMalformed",
    "RouteStep",
    "RouteTracker",
    "RouteUnavailable",
    "SensorDataInvalid",
    "SessionState",
    "StraightLineRouteProvider",
    "TravelMode",
    "build_route",
    "distance_bucket",
    "validate_route",
]
