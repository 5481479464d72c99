# route_tracker.py
# Locates the traveler on a route, measures progress and detects deviation.
# Stateless apart from configuration; hysteresis lives in DeviationCounters.

import logging
from typing import Optional

from .geo_utils import distance, nearest_point_on_segment
from .models import (
    DeviationCounters,
    DeviationResult,
    GeoPoint,
    LocateResult,
    Route,
    RouteAction,
    RouteProgress,
)
from .nav_config import NavConfig

logger = logging.getLogger(__name__)


class RouteTracker:
    """
    Progress and deviation policy for a single route.

    Usage:
        tracker  = RouteTracker(config)
        counters = DeviationCounters()

        # Inside GPS loop:
        progress  = tracker.progress(position, route, step_index)
        deviation = tracker.check_deviation(position, route, counters)
    """

    def __init__(self, config: Optional[NavConfig] = None) -> None:
        self.config = config or NavConfig()

    # ------------------------------------------------------------------
    # Location on route
    # ------------------------------------------------------------------

    def locate(self, point: GeoPoint, route: Route) -> LocateResult:
        """
        Project point onto the route.

        The step index always comes from the step segments. When the route
        carries a dense polyline, the nearest point and lateral distance come
        from the polyline instead.

        Args:
            point: Current (filtered) position.
            route: Active route.

        Returns:
            LocateResult with step index, nearest point and lateral distance.
        """
        best_index = 0
        best_point = route.steps[0].start
        best_dist = float("inf")
        for step in route.steps:
            nearest, dist = nearest_point_on_segment(point, step.start, step.end)
            if dist < best_dist:
                best_index, best_point, best_dist = step.index, nearest, dist

        polyline = route.polyline
        if polyline and len(polyline) >= 2:
            best_dist = float("inf")
            for seg_start, seg_end in zip(polyline, polyline[1:]):
                nearest, dist = nearest_point_on_segment(point, seg_start, seg_end)
                if dist < best_dist:
                    best_point, best_dist = nearest, dist

        return LocateResult(step_index=best_index, nearest_point=best_point, lateral_distance_m=best_dist)

    def progress(self, point: GeoPoint, route: Route, step_index: Optional[int] = None) -> RouteProgress:
        """
        Completed and remaining distance along the route.

        Args:
            point:      Current (filtered) position.
            route:      Active route.
            step_index: Step the traveler is on; located from point if omitted.

        Returns:
            RouteProgress; completed + remaining always equals the route length.
        """
        total = route.total_distance_m
        if step_index is None:
            step_index = self.locate(point, route).step_index

        if step_index >= len(route.steps):
            completed = total
        else:
            completed = sum(step.length_m for step in route.steps[:step_index])
            step = route.steps[step_index]
            projected, _ = nearest_point_on_segment(point, step.start, step.end)
            partial = distance(step.start, projected)
            completed += min(max(partial, 0.0), step.length_m)

        completed = min(completed, total)
        remaining = total - completed
        percent = (completed / total) * 100 if total > 0 else 0.0
        speed_ms = self.config.mode_speed_ms(route.mode)

        return RouteProgress(
            completed_m=completed,
            remaining_m=remaining,
            percent=min(max(percent, 0.0), 100.0),
            step_index=step_index,
            eta_s=remaining / speed_ms,
        )

    # ------------------------------------------------------------------
    # Deviation
    # ------------------------------------------------------------------

    def walk_back_seconds(self, lateral_distance_m: float) -> float:
        """Estimated time to walk back to the route."""
        return lateral_distance_m / self.config.walk_back_speed_ms

    def check_deviation(
        self, point: GeoPoint, route: Route, counters: DeviationCounters
    ) -> DeviationResult:
        """
        Three-tier deviation check with hysteresis.

        Args:
            point:    Current (filtered) position.
            route:    Active route.
            counters: Hysteresis state; updated in place.

        Returns:
            DeviationResult with the suggested RouteAction.
        """
        located = self.locate(point, route)
        lateral = located.lateral_distance_m

        # 1. Major deviation, no hysteresis
        if lateral > self.config.major_deviation_threshold_m:
            counters.last_deviation_at = point.timestamp
            return DeviationResult(
                is_deviated=True,
                lateral_distance_m=lateral,
                action=RouteAction.RECALCULATE,
                nearest_point=located.nearest_point,
                step_index=located.step_index,
                consecutive_misses=counters.consecutive_misses,
                message="Major route deviation detected.",
            )

        # 2. Minor deviation, count consecutive misses
        if lateral > self.config.deviation_threshold_m:
            counters.consecutive_misses += 1
            counters.last_deviation_at = point.timestamp

            if counters.consecutive_misses >= self.config.consecutive_deviations_required:
                if self.walk_back_seconds(lateral) < self.config.walk_back_limit_s:
                    action = RouteAction.GET_BACK_ON_TRACK
                else:
                    action = RouteAction.RECALCULATE
                return DeviationResult(
                    is_deviated=True,
                    lateral_distance_m=lateral,
                    action=action,
                    nearest_point=located.nearest_point,
                    step_index=located.step_index,
                    consecutive_misses=counters.consecutive_misses,
                    message="Route deviation detected.",
                )

            return DeviationResult(
                is_deviated=False,
                lateral_distance_m=lateral,
                action=RouteAction.CONTINUE,
                nearest_point=located.nearest_point,
                step_index=located.step_index,
                consecutive_misses=counters.consecutive_misses,
                message=f"Possible deviation ({counters.consecutive_misses}/"
                        f"{self.config.consecutive_deviations_required}).",
            )

        # 3. On route
        counters.consecutive_misses = 0
        counters.last_known_good = point
        return DeviationResult(
            is_deviated=False,
            lateral_distance_m=lateral,
            action=RouteAction.CONTINUE,
            nearest_point=located.nearest_point,
            step_index=located.step_index,
            consecutive_misses=0,
            message="On route.",
        )

    # ------------------------------------------------------------------
    # Step advancement
    # ------------------------------------------------------------------

    def advance_step(self, point: GeoPoint, route: Route, step_index: int) -> int:
        """
        Move to the next step once the current one is done.

        A step is done when its end point is within the advance tolerance, or
        when the traveler is already located on a later step while still on
        the route. Advances by one at most; returning len(route.steps) means
        the step list is exhausted.
        """
        if step_index >= len(route.steps):
            return step_index

        step = route.steps[step_index]
        if distance(point, step.end) <= self.config.step_advance_tolerance_m:
            logger.debug(f"Reached end of step {step_index}.")
            return step_index + 1

        located = self.locate(point, route)
        if (
            located.step_index > step_index
            and located.lateral_distance_m <= self.config.deviation_threshold_m
        ):
            logger.debug(f"Located on step {located.step_index} while on step {step_index} — advancing.")
            return step_index + 1

        return step_index
