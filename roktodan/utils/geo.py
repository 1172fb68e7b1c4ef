"""
Distance and route-progress helpers for live tracking.

Positions are ``(latitude, longitude)`` tuples; route geometries follow GeoJSON
and store ``[longitude, latitude]`` pairs. Short-range work (deviation, arrival)
uses an equirectangular projection which is plenty accurate at city scale.
"""
import math
from datetime import datetime, timedelta

from geopy.distance import great_circle

METERS_PER_DEGREE = 111000

ON_ROUTE_THRESHOLD_M = 50
REROUTE_THRESHOLD_M = 100
ARRIVAL_RADIUS_M = 50

# Below this the reported speed is treated as GPS noise (m/s)
MIN_RELIABLE_SPEED_MPS = 0.5


def distance_km(lat1, lng1, lat2, lng2):
    """Great-circle (haversine) distance in kilometers."""
    return great_circle((lat1, lng1), (lat2, lng2)).km


def approximate_distance_m(lat1, lng1, lat2, lng2):
    """Equirectangular distance in meters, longitude scaled by cos(lat1)."""
    dy = (lat1 - lat2) * METERS_PER_DEGREE
    dx = (lng1 - lng2) * METERS_PER_DEGREE * math.cos(math.radians(lat1))
    return math.sqrt(dx * dx + dy * dy)


def has_arrived(latitude, longitude, destination, radius_m=ARRIVAL_RADIUS_M):
    """True when the position is within ``radius_m`` of ``destination``."""
    return approximate_distance_m(
        latitude, longitude, destination['latitude'], destination['longitude']
    ) < radius_m


def _project(origin_lat, lng, lat):
    # Local planar meters around origin_lat
    x = lng * METERS_PER_DEGREE * math.cos(math.radians(origin_lat))
    y = lat * METERS_PER_DEGREE
    return x, y


def _segment_length_m(start, end):
    return great_circle((start[1], start[0]), (end[1], end[0])).meters


def nearest_point_on_line(latitude, longitude, coordinates):
    """
    Find the closest point of a polyline to a position.

    Returns ``(distance_m, segment_index, fraction)`` where ``fraction`` is how
    far along ``coordinates[segment_index] -> coordinates[segment_index + 1]``
    the foot of the perpendicular lies.
    """
    if not coordinates:
        raise ValueError('Route geometry has no coordinates')

    px, py = _project(latitude, longitude, latitude)
    if len(coordinates) == 1:
        ax, ay = _project(latitude, coordinates[0][0], coordinates[0][1])
        return math.hypot(px - ax, py - ay), 0, 0.0

    best = None
    for index in range(len(coordinates) - 1):
        ax, ay = _project(latitude, coordinates[index][0], coordinates[index][1])
        bx, by = _project(latitude, coordinates[index + 1][0], coordinates[index + 1][1])
        dx, dy = bx - ax, by - ay
        length_sq = dx * dx + dy * dy
        if length_sq == 0:
            fraction = 0.0
        else:
            fraction = ((px - ax) * dx + (py - ay) * dy) / length_sq
            fraction = max(0.0, min(1.0, fraction))
        fx, fy = ax + fraction * dx, ay + fraction * dy
        distance = math.hypot(px - fx, py - fy)
        if best is None or distance < best[0]:
            best = (distance, index, fraction)
    return best


def check_route_deviation(latitude, longitude, coordinates,
                          on_route_threshold=ON_ROUTE_THRESHOLD_M,
                          reroute_threshold=REROUTE_THRESHOLD_M):
    distance, segment_index, _ = nearest_point_on_line(latitude, longitude, coordinates)
    return {
        'isOnRoute': distance <= on_route_threshold,
        'distanceFromRoute': round(distance, 1),
        'shouldReroute': distance > reroute_threshold,
        'nearestSegmentIndex': segment_index,
    }


def line_length_m(coordinates):
    return sum(
        _segment_length_m(coordinates[i], coordinates[i + 1])
        for i in range(len(coordinates) - 1)
    )


def calculate_remaining_route(latitude, longitude, coordinates, total_distance,
                              total_duration, speed_mps=None):
    """
    Estimate what is left of a route from the nearest point on its geometry.

    ``total_distance`` (meters) and ``total_duration`` (seconds) come from the
    directions provider; the geometry only fixes the fraction still ahead.
    """
    if len(coordinates) < 2 or not total_distance:
        return {
            'remainingDistance': total_distance or 0,
            'remainingDuration': total_duration or 0,
            'progress': 0.0,
        }

    _, segment_index, fraction = nearest_point_on_line(latitude, longitude, coordinates)

    geometry_length = line_length_m(coordinates)
    if geometry_length <= 0:
        remaining_fraction = 0.0
    else:
        current_segment = _segment_length_m(coordinates[segment_index], coordinates[segment_index + 1])
        ahead = current_segment * (1 - fraction) + line_length_m(coordinates[segment_index + 1:])
        remaining_fraction = max(0.0, min(1.0, ahead / geometry_length))

    remaining_distance = total_distance * remaining_fraction
    if speed_mps is not None and speed_mps > MIN_RELIABLE_SPEED_MPS:
        remaining_duration = remaining_distance / speed_mps
    else:
        remaining_duration = (total_duration or 0) * remaining_fraction

    return {
        'remainingDistance': round(remaining_distance, 1),
        'remainingDuration': round(remaining_duration, 1),
        'progress': round(1 - remaining_fraction, 4),
    }


def calculate_eta(remaining_seconds, now=None):
    now = now or datetime.utcnow()
    return now + timedelta(seconds=max(0, remaining_seconds or 0))
