"""
Live route tracking.

A route moves ``pending -> active -> {deviated, completed}``. Position samples
drive progress and ETA; a sample far enough off the path marks the route
``deviated`` until an explicit reroute replaces its geometry.
"""
import logging
import secrets
from datetime import datetime, timedelta

from sqlalchemy.exc import SQLAlchemyError

from roktodan import db
from roktodan.errors import InvalidTransitionError, UpstreamError
from roktodan.models.route import Route, RoutePosition
from roktodan.utils import mapbox
from roktodan.utils.geo import (
    check_route_deviation, calculate_remaining_route, calculate_eta, has_arrived,
    nearest_point_on_line
)

logger = logging.getLogger(__name__)

DEFAULT_SHARE_HOURS = 24


def kmh_to_mps(speed):
    return speed / 3.6 if speed else None


def _as_lnglat(location):
    return [location['longitude'], location['latitude']]


def create_route(assignment, start_location, end_location, waypoints=None,
                 profile='driving-traffic', now=None):
    """Ask the directions provider for a path and store it as a new route."""
    now = now or datetime.utcnow()
    waypoints = waypoints or []
    coordinates = [_as_lnglat(start_location)] + [_as_lnglat(w) for w in waypoints] + [_as_lnglat(end_location)]

    directions = mapbox.get_directions(coordinates, profile=profile)
    if directions is None:
        raise UpstreamError('Failed to calculate route')

    route = Route(
        assignment_id=assignment.id,
        geometry=directions['geometry'],
        waypoints=waypoints or None,
        steps=directions['steps'],
        distance=directions['distance'],
        duration=directions['duration'],
        traffic_duration=directions['trafficDuration'],
        profile=profile,
        start_location=start_location,
        end_location=end_location,
        status='pending'
    )
    eta = calculate_eta(route.effective_duration, now)
    route.original_eta = eta
    route.current_eta = eta
    route.last_eta_update = now
    db.session.add(route)
    return route


def remaining_for(route, latitude, longitude, speed=None):
    return calculate_remaining_route(
        latitude, longitude, route.coordinates,
        route.distance, route.effective_duration, kmh_to_mps(speed)
    )


def eta_snapshot(route, now=None):
    """Current ETA from the last known position without recording anything."""
    now = now or datetime.utcnow()
    if route.last_position:
        remaining = remaining_for(
            route, route.last_position['latitude'], route.last_position['longitude'],
            route.last_position.get('speed')
        )
    else:
        remaining = {
            'remainingDistance': route.distance,
            'remainingDuration': route.effective_duration,
            'progress': 0.0,
        }
    if route.status == 'completed':
        remaining = {'remainingDistance': 0, 'remainingDuration': 0, 'progress': 1.0}

    return {
        'routeId': route.id,
        'originalEta': route.original_eta.isoformat() if route.original_eta else None,
        'currentEta': calculate_eta(remaining['remainingDuration'], now).isoformat(),
        'remainingDistance': remaining['remainingDistance'],
        'remainingDuration': remaining['remainingDuration'],
        'progress': remaining['progress'],
        'status': route.status,
        'lastUpdate': (route.last_eta_update or route.updated_at).isoformat()
        if (route.last_eta_update or route.updated_at) else None,
    }


def _log_position(route, sample, deviation, now):
    """Append to the position history; a failure here never blocks the update."""
    try:
        db.session.add(RoutePosition(
            route_id=route.id,
            latitude=sample['latitude'],
            longitude=sample['longitude'],
            bearing=sample.get('bearing'),
            speed=sample.get('speed'),
            accuracy=sample.get('accuracy'),
            altitude=sample.get('altitude'),
            is_on_route=deviation['isOnRoute'],
            distance_from_route=deviation['distanceFromRoute'],
            recorded_at=now
        ))
        db.session.commit()
    except SQLAlchemyError as e:
        db.session.rollback()
        logger.warning(f"Could not record position for route {route.id}: {str(e)}")


def _reroute_offer(route, latitude, longitude):
    directions = mapbox.get_directions(
        [[longitude, latitude], _as_lnglat(route.end_location)],
        profile=route.profile
    )
    if directions is None:
        logger.warning(f"No reroute available for route {route.id}")
        return None
    return {
        'available': True,
        'newDistance': directions['distance'],
        'newDuration': directions['trafficDuration'] or directions['duration'],
        'geometry': directions['geometry'],
    }


def record_position(route, sample, now=None):
    """
    Apply one GPS sample to ``route``.

    ``sample`` holds ``latitude``, ``longitude`` and optionally ``bearing``,
    ``speed`` (km/h), ``accuracy`` and ``altitude``. Commits the route, then
    appends the sample to the position log.
    """
    if route.status == 'completed':
        raise InvalidTransitionError('Route is already completed')

    now = now or datetime.utcnow()
    latitude, longitude = sample['latitude'], sample['longitude']

    if route.status == 'pending':
        route.status = 'active'
        route.started_at = now

    deviation = check_route_deviation(latitude, longitude, route.coordinates)
    remaining = remaining_for(route, latitude, longitude, sample.get('speed'))

    reroute = None
    if deviation['shouldReroute']:
        route.deviation_count = (route.deviation_count or 0) + 1
        route.status = 'deviated'
        reroute = _reroute_offer(route, latitude, longitude)
        logger.info(f"Route {route.id} deviated by {deviation['distanceFromRoute']} m")

    if has_arrived(latitude, longitude, route.end_location):
        route.status = 'completed'
        route.completed_at = now
        logger.info(f"Route {route.id} arrived at destination")

    route.current_step_index = deviation['nearestSegmentIndex']
    route.last_position = {
        'latitude': latitude,
        'longitude': longitude,
        'bearing': sample.get('bearing'),
        'speed': sample.get('speed'),
        'timestamp': now.isoformat(),
    }
    route.current_eta = calculate_eta(remaining['remainingDuration'], now)
    route.last_eta_update = now
    db.session.commit()

    _log_position(route, sample, deviation, now)

    return {
        'routeId': route.id,
        'currentEta': route.current_eta.isoformat(),
        'remainingDistance': remaining['remainingDistance'],
        'remainingDuration': remaining['remainingDuration'],
        'progress': remaining['progress'],
        'deviation': {
            'isOnRoute': deviation['isOnRoute'],
            'distanceFromRoute': deviation['distanceFromRoute'],
            'shouldReroute': deviation['shouldReroute'],
        },
        'deviationCount': route.deviation_count,
        'status': route.status,
        'reroute': reroute,
    }


def _position_along(coordinates, latitude, longitude):
    _, index, fraction = nearest_point_on_line(latitude, longitude, coordinates)
    return index + fraction


def remaining_waypoints(route, latitude, longitude):
    """Stored waypoints that still lie ahead of the position on the current path."""
    waypoints = route.waypoints or []
    coordinates = route.coordinates
    if not waypoints or len(coordinates) < 2:
        return list(waypoints)
    here = _position_along(coordinates, latitude, longitude)
    return [
        waypoint for waypoint in waypoints
        if _position_along(coordinates, waypoint['latitude'], waypoint['longitude']) > here
    ]


def reroute(route, latitude, longitude, preserve_waypoints=True, now=None):
    """Replace the route's path with a fresh one from the given position."""
    if route.status == 'completed':
        raise InvalidTransitionError('Route is already completed')

    now = now or datetime.utcnow()
    waypoints = remaining_waypoints(route, latitude, longitude) if preserve_waypoints else []
    coordinates = [[longitude, latitude]] + [_as_lnglat(w) for w in waypoints] + [_as_lnglat(route.end_location)]

    directions = mapbox.get_directions(coordinates, profile=route.profile)
    if directions is None:
        raise UpstreamError('Failed to calculate new route')

    route.geometry = directions['geometry']
    route.distance = directions['distance']
    route.duration = directions['duration']
    route.traffic_duration = directions['trafficDuration']
    route.steps = directions['steps']
    route.waypoints = waypoints or None
    route.current_step_index = 0
    route.status = 'active'
    route.started_at = route.started_at or now
    route.last_position = {
        'latitude': latitude,
        'longitude': longitude,
        'timestamp': now.isoformat(),
    }
    route.current_eta = calculate_eta(route.effective_duration, now)
    route.last_eta_update = now
    logger.info(f"Route {route.id} rerouted from ({latitude}, {longitude})")

    return {
        'routeId': route.id,
        'newRoute': {
            'geometry': route.geometry,
            'distance': route.distance,
            'duration': route.duration,
            'trafficDuration': route.traffic_duration,
            'steps': route.steps,
            'eta': route.current_eta.isoformat(),
        },
    }


def create_share_link(route, expires_in_hours=DEFAULT_SHARE_HOURS, now=None):
    now = now or datetime.utcnow()
    route.share_token = secrets.token_urlsafe(32)
    route.share_expires_at = now + timedelta(hours=expires_in_hours)

    start = route.start_location
    end = route.end_location
    return {
        'shareUrl': mapbox.generate_share_link(route.id, route.share_token),
        'token': route.share_token,
        'expiresAt': route.share_expires_at.isoformat(),
        'previewImage': mapbox.generate_static_map_url(
            route.geometry,
            start_marker=_as_lnglat(start) if start else None,
            end_marker=_as_lnglat(end) if end else None
        ),
    }


def revoke_share_link(route):
    route.share_token = None
    route.share_expires_at = None
