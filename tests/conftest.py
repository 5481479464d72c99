from pathlib import Path
import sys

import pytest

PROJECT_ROOT = Path(__file__).resolve().parents[1]
SRC_ROOT = PROJECT_ROOT / "src"
if str(SRC_ROOT) not in sys.path:
    sys.path.insert(0, str(SRC_ROOT))

from wayfinder.geo_utils import destination_point
from wayfinder.models import GeoPoint
from wayfinder.route_builder import build_route

# Kızılay, Ankara
ORIGIN = GeoPoint(39.9208, 32.8541, accuracy_m=5.0, timestamp=1000.0)


def offset(point, bearing_deg, distance_m, timestamp=1000.0, accuracy_m=5.0):
    """Fix distance_m away from point along bearing_deg."""
    p = destination_point(point, bearing_deg, distance_m)
    return GeoPoint(p.lat, p.lon, accuracy_m=accuracy_m, timestamp=timestamp)


@pytest.fixture
def origin():
    return ORIGIN


@pytest.fixture
def move():
    return offset


@pytest.fixture
def two_step_route():
    """500 m north, then a right turn and 300 m east."""
    corner = offset(ORIGIN, 0.0, 500.0)
    end = offset(corner, 90.0, 300.0)
    return build_route([ORIGIN, corner, end])


@pytest.fixture
def straight_route():
    """Five collinear 50 m legs heading north."""
    waypoints = [ORIGIN]
    for _ in range(5):
        waypoints.append(offset(waypoints[-1], 0.0, 50.0))
    return build_route(waypoints)
