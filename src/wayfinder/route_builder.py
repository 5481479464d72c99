# route_builder.py
# Builds Route objects from waypoint lists and validates routes before use.
# Route computation proper is external; this only assembles and checks steps.

import math
import uuid
from typing import List, Optional, Sequence

from .errors import RouteMalformed
from .geo_utils import bearing, distance, maneuver_for_turn
from .instructions import PHRASEBOOKS
from .models import GeoPoint, ManeuverType, Route, RouteStep, TravelMode
from .nav_config import NavConfig


# ---------------------------------------------------------------------------
# Validation
# ---------------------------------------------------------------------------

def validate_route(route: Optional[Route], config: Optional[NavConfig] = None) -> None:
    """
    Check that a route can be navigated.

    Raises:
        RouteMalformed: empty route, broken step numbering, gaps between
                        consecutive steps or zero total length.
    """
    config = config or NavConfig()
    if route is None or not route.steps:
        raise RouteMalformed("Route has no steps.")

    for i, step in enumerate(route.steps):
        if step.index != i:
            raise RouteMalformed(f"Step {i} carries index {step.index}; indices must be contiguous from 0.")
        if not math.isfinite(step.length_m) or step.length_m < 0:
            raise RouteMalformed(f"Step {i} has invalid length {step.length_m}.")
        if i > 0:
            gap = distance(route.steps[i - 1].end, step.start)
            if gap > config.step_contiguity_tolerance_m:
                raise RouteMalformed(f"Gap of {gap:.1f} m between step {i - 1} and step {i}.")

    if route.total_distance_m <= 0:
        raise RouteMalformed("Route has zero length.")


# ---------------------------------------------------------------------------
# Construction
# ---------------------------------------------------------------------------

def build_route(
    waypoints: Sequence[GeoPoint],
    mode: TravelMode = TravelMode.WALKING,
    street_names: Optional[Sequence[Optional[str]]] = None,
    config: Optional[NavConfig] = None,
) -> Route:
    """
    Convert a waypoint list into a Route with one step per leg.

    The first leg is "straight"; every later leg gets the maneuver implied
    by the change of bearing at its start.

    Args:
        waypoints:    At least two points, in travel order.
        mode:         Travel mode used for step durations.
        street_names: Optional street name per leg.
        config:       NavConfig for mode speeds.

    Returns:
        Route whose polyline is the waypoint list.
    """
    config = config or NavConfig()
    if len(waypoints) < 2:
        raise RouteMalformed("A route needs at least two waypoints.")

    phrases = PHRASEBOOKS["en"]
    speed_ms = config.mode_speed_ms(mode)
    steps: List[RouteStep] = []
    prev_bearing: Optional[float] = None

    for i, (start, end) in enumerate(zip(waypoints, waypoints[1:])):
        leg_bearing = bearing(start, end)
        if prev_bearing is None:
            maneuver = ManeuverType.STRAIGHT
        else:
            maneuver = maneuver_for_turn(leg_bearing - prev_bearing)
        prev_bearing = leg_bearing

        length = distance(start, end)
        street = street_names[i] if street_names and i < len(street_names) else None
        steps.append(RouteStep(
            index=i,
            start=start,
            end=end,
            maneuver=maneuver,
            length_m=length,
            instruction=phrases.describe(maneuver),
            duration_s=length / speed_ms,
            street_name=street,
        ))

    return Route(
        steps=steps,
        mode=mode,
        polyline=list(waypoints),
        route_id=uuid.uuid4().hex,
    )


class StraightLineRouteProvider:
    """
    Minimal RouteProvider: a single leg from origin to destination.

    Stands in for a real routing backend in simulations.
    """

    def __init__(self, config: Optional[NavConfig] = None) -> None:
        self.config = config or NavConfig()

    async def compute_route(self, origin: GeoPoint, destination: GeoPoint, mode: TravelMode) -> Route:
        return build_route([origin, destination], mode=mode, config=self.config)
