# geo_utils.py
# Pure mathematical / geographic helper functions.
# No side effects; only depends on the shared models.

import math
from typing import Tuple

import numpy as np

from .models import GeoPoint, ManeuverType


EARTH_RADIUS_M = 6_371_000.0


def haversine_distance(lat1: float, lon1: float, lat2: float, lon2: float) -> float:
    """
    Great-circle distance between two points in metres.

    Args:
        lat1, lon1: Origin in decimal degrees.
        lat2, lon2: Destination in decimal degrees.

    Returns:
        Distance in metres.
    """
    d_lat = math.radians(lat2 - lat1)
    d_lon = math.radians(lon2 - lon1)
    a = (
        math.sin(d_lat / 2) ** 2
        + math.cos(math.radians(lat1))
        * math.cos(math.radians(lat2))
        * math.sin(d_lon / 2) ** 2
    )
    return EARTH_RADIUS_M * 2 * math.atan2(math.sqrt(a), math.sqrt(1 - a))


def calculate_bearing(lat1: float, lon1: float, lat2: float, lon2: float) -> float:
    """
    Forward azimuth (bearing) from point 1 to point 2 in degrees [0, 360).

    Args:
        lat1, lon1: Origin in decimal degrees.
        lat2, lon2: Destination in decimal degrees.

    Returns:
        Bearing in degrees.
    """
    rlat1, rlon1 = math.radians(lat1), math.radians(lon1)
    rlat2, rlon2 = math.radians(lat2), math.radians(lon2)
    d_lon = rlon2 - rlon1
    y = math.sin(d_lon) * math.cos(rlat2)
    x = math.cos(rlat1) * math.sin(rlat2) - math.sin(rlat1) * math.cos(rlat2) * math.cos(d_lon)
    return (math.degrees(math.atan2(y, x)) + 360) % 360


def distance(a: GeoPoint, b: GeoPoint) -> float:
    """Great-circle distance between two GeoPoints in metres."""
    return haversine_distance(a.lat, a.lon, b.lat, b.lon)


def bearing(a: GeoPoint, b: GeoPoint) -> float:
    """Bearing from a to b in degrees [0, 360)."""
    return calculate_bearing(a.lat, a.lon, b.lat, b.lon)


def destination_point(origin: GeoPoint, bearing_deg: float, distance_m: float) -> GeoPoint:
    """
    Point reached by travelling distance_m along a great circle.

    Args:
        origin:      Starting point.
        bearing_deg: Initial bearing in degrees.
        distance_m:  Distance to travel in metres.

    Returns:
        New GeoPoint carrying the origin's timestamp.
    """
    delta = distance_m / EARTH_RADIUS_M
    theta = math.radians(bearing_deg)
    rlat1 = math.radians(origin.lat)
    rlon1 = math.radians(origin.lon)

    rlat2 = math.asin(
        math.sin(rlat1) * math.cos(delta)
        + math.cos(rlat1) * math.sin(delta) * math.cos(theta)
    )
    rlon2 = rlon1 + math.atan2(
        math.sin(theta) * math.sin(delta) * math.cos(rlat1),
        math.cos(delta) - math.sin(rlat1) * math.sin(rlat2),
    )
    lon = (math.degrees(rlon2) + 540) % 360 - 180
    return GeoPoint(math.degrees(rlat2), lon, timestamp=origin.timestamp)


# ---------------------------------------------------------------------------
# Segment projection
# ---------------------------------------------------------------------------

def _to_vector(point: GeoPoint) -> np.ndarray:
    rlat = math.radians(point.lat)
    rlon = math.radians(point.lon)
    return np.array([
        math.cos(rlat) * math.cos(rlon),
        math.cos(rlat) * math.sin(rlon),
        math.sin(rlat),
    ])


def _from_vector(vec: np.ndarray, timestamp: float) -> GeoPoint:
    x, y, z = vec / np.linalg.norm(vec)
    lat = math.degrees(math.asin(max(-1.0, min(1.0, float(z)))))
    lon = math.degrees(math.atan2(float(y), float(x)))
    return GeoPoint(lat, lon, timestamp=timestamp)


def nearest_point_on_segment(
    p: GeoPoint, seg_start: GeoPoint, seg_end: GeoPoint
) -> Tuple[GeoPoint, float]:
    """
    Project p onto the great-circle arc seg_start → seg_end.

    Projections falling outside the arc are clamped to the nearer endpoint;
    a zero-length segment returns seg_start.

    Returns:
        (nearest_point, distance from p in metres)
    """
    a = _to_vector(seg_start)
    b = _to_vector(seg_end)
    normal = np.cross(a, b)
    norm = np.linalg.norm(normal)
    if norm < 1e-15:
        return seg_start, distance(p, seg_start)
    normal /= norm

    v = _to_vector(p)
    projected = v - np.dot(v, normal) * normal
    if np.linalg.norm(projected) < 1e-15:
        # p is a pole of the segment's great circle
        return _nearer_endpoint(p, seg_start, seg_end)

    inside = (
        np.dot(np.cross(a, projected), normal) >= 0
        and np.dot(np.cross(projected, b), normal) >= 0
    )
    if not inside:
        return _nearer_endpoint(p, seg_start, seg_end)

    nearest = _from_vector(projected, p.timestamp)
    return nearest, distance(p, nearest)


def _nearer_endpoint(
    p: GeoPoint, seg_start: GeoPoint, seg_end: GeoPoint
) -> Tuple[GeoPoint, float]:
    d_start = distance(p, seg_start)
    d_end = distance(p, seg_end)
    if d_end < d_start:
        return seg_end, d_end
    return seg_start, d_start


# ---------------------------------------------------------------------------
# Maneuvers
# ---------------------------------------------------------------------------

def maneuver_for_turn(bearing_diff: float) -> ManeuverType:
    """
    Maneuver implied by a change in bearing between consecutive legs.

    Args:
        bearing_diff: Outgoing minus incoming bearing in degrees.

    Returns:
        ManeuverType for the turn.
    """
    diff = (bearing_diff + 180) % 360 - 180
    if abs(diff) >= 170:
        return ManeuverType.U_TURN
    if diff > 120:
        return ManeuverType.SHARP_RIGHT
    elif diff > 45:
        return ManeuverType.TURN_RIGHT
    elif diff > 10:
        return ManeuverType.SLIGHT_RIGHT
    elif diff < -120:
        return ManeuverType.SHARP_LEFT
    elif diff < -45:
        return ManeuverType.TURN_LEFT
    elif diff < -10:
        return ManeuverType.SLIGHT_LEFT
    return ManeuverType.STRAIGHT
