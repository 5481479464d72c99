# main.py
# Entry point: simulates a GPS feed walking a short route through
# NavigationSystem. In production, replace SimulatedWalk with a real
# location source and StraightLineRouteProvider with a routing backend.

import argparse
import asyncio
import logging
import time
from typing import List, Optional

from .geo_utils import bearing, destination_point, distance
from .instructions import PHRASEBOOKS
from .models import GeoPoint, SessionState, TravelMode
from .nav_config import NavConfig
from .navigator import NavigationSystem
from .route_builder import StraightLineRouteProvider, build_route

# ------------------------------------------------------------------
# Simulation coordinates (Sıhhiye → Kurtuluş, Ankara)
# ------------------------------------------------------------------
WAYPOINTS = [
    GeoPoint(39.924090, 32.845382),   # Start
    GeoPoint(39.926340, 32.845382),   # North along the avenue
    GeoPoint(39.926340, 32.848320),   # Turn right, east
    GeoPoint(39.927690, 32.849500),   # Turn left to arrival
]

STREETS = [None, "Ziya Gökalp Caddesi", "Kurtuluş Parkı"]


class SimulatedWalk:
    """Pull-style location source that walks the waypoint list at constant speed."""

    def __init__(self, waypoints: List[GeoPoint], speed_ms: float, interval_s: float) -> None:
        self._fixes = self._sample(waypoints, speed_ms * interval_s, interval_s)
        self._index = 0

    @staticmethod
    def _sample(waypoints: List[GeoPoint], spacing_m: float, interval_s: float) -> List[GeoPoint]:
        t0 = time.time()
        fixes: List[GeoPoint] = []
        for start, end in zip(waypoints, waypoints[1:]):
            leg = distance(start, end)
            course = bearing(start, end)
            travelled = 0.0
            while travelled < leg:
                p = destination_point(start, course, travelled)
                fixes.append(GeoPoint(p.lat, p.lon, accuracy_m=5.0, timestamp=t0 + len(fixes) * interval_s))
                travelled += spacing_m
        # Linger at the destination so the smoothed position settles
        end = waypoints[-1]
        for _ in range(10):
            fixes.append(GeoPoint(end.lat, end.lon, accuracy_m=5.0, timestamp=t0 + len(fixes) * interval_s))
        return fixes

    @property
    def exhausted(self) -> bool:
        return self._index >= len(self._fixes)

    async def get_current_location(self) -> Optional[GeoPoint]:
        if self.exhausted:
            return None
        fix = self._fixes[self._index]
        self._index += 1
        return fix


async def run(language: str, speed_ms: float, interval_s: float) -> None:
    config = NavConfig(language=language, tick_interval_s=60.0)
    route = build_route(WAYPOINTS, mode=TravelMode.WALKING, street_names=STREETS, config=config)
    source = SimulatedWalk(WAYPOINTS, speed_ms, interval_s)

    async with NavigationSystem(StraightLineRouteProvider(config), source, config=config) as nav:
        await nav.start(route)
        print("\n--- GPS Loop Active ---")

        while nav.is_active and not source.exhausted:
            result = await nav.tick()
            if result is None:
                break

            print(f"  GPS {result.position} → [{result.state.name}] {result.message}")

            if result.state is SessionState.RECALCULATING:
                await nav.wait_for_recalculation()
            elif result.state is SessionState.ARRIVED:
                print("  ✓  Destination reached. Navigation ended.")
                break

        if nav.is_active:
            await nav.stop()

    print("\n--- Session complete ---")


def main(argv: Optional[List[str]] = None) -> None:
    parser = argparse.ArgumentParser(description="Simulate a walking navigation session.")
    parser.add_argument("--language", default="en", choices=sorted(PHRASEBOOKS),
                        help="Guidance language.")
    parser.add_argument("--speed", type=float, default=1.4,
                        help="Walking speed of the simulated traveler in m/s.")
    parser.add_argument("--interval", type=float, default=5.0,
                        help="Seconds between simulated fixes.")
    parser.add_argument("--log-level", default="INFO",
                        choices=["DEBUG", "INFO", "WARNING", "ERROR"])
    args = parser.parse_args(argv)

    # ------------------------------------------------------------------
    # Logging setup: configure once here, all modules inherit
    # ------------------------------------------------------------------
    logging.basicConfig(
        level=getattr(logging, args.log_level),
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        datefmt="%H:%M:%S",
    )

    asyncio.run(run(args.language, args.speed, args.interval))


if __name__ == "__main__":
    main()
