"""
Mapbox client: directions, reverse geocoding, static map previews and share links.

With ``MOCK_SERVICES`` on, directions are synthesized as straight lines so the
tracking flow runs without network access.
"""
import json
import logging
from urllib.parse import quote

import requests
from flask import current_app

from roktodan.utils.geo import line_length_m

logger = logging.getLogger(__name__)

DIRECTIONS_URL = 'https://api.mapbox.com/directions/v5/mapbox/{profile}/{coordinates}'
GEOCODING_URL = 'https://api.mapbox.com/geocoding/v5/mapbox.places/{lng},{lat}.json'
STATIC_MAP_URL = 'https://api.mapbox.com/styles/v1/mapbox/streets-v12/static/{overlays}/auto/{width}x{height}'

PROFILES = ('driving', 'driving-traffic', 'walking', 'cycling')
REQUEST_TIMEOUT = 10

# Used for synthesized routes, roughly Dhaka traffic
MOCK_SPEED_MPS = 25 * 1000 / 3600

# Static image URLs are capped by the provider, keep the path short
MAX_STATIC_POINTS = 100


def _token():
    return current_app.config.get('MAPBOX_ACCESS_TOKEN', '')


def _mock_services():
    return current_app.config.get('MOCK_SERVICES', False)


def _mock_directions(coordinates):
    distance = line_length_m(coordinates)
    duration = distance / MOCK_SPEED_MPS
    return {
        'distance': round(distance, 1),
        'duration': round(duration, 1),
        'trafficDuration': None,
        'geometry': {'type': 'LineString', 'coordinates': [list(c) for c in coordinates]},
        'steps': [],
    }


def get_directions(coordinates, profile='driving-traffic', language='bn', alternatives=False):
    """
    Fetch a route through ``coordinates`` (a list of ``[lng, lat]``).

    Returns a dict with ``distance`` (m), ``duration`` (s), ``trafficDuration``,
    ``geometry`` (GeoJSON LineString) and ``steps``; ``None`` when the provider
    fails or finds no route.
    """
    if len(coordinates) < 2:
        return None
    if profile not in PROFILES:
        profile = 'driving-traffic'

    if _mock_services():
        logger.info(f"[MOCK] Directions for {len(coordinates)} points")
        return _mock_directions(coordinates)

    url = DIRECTIONS_URL.format(
        profile=profile,
        coordinates=';'.join(f"{lng},{lat}" for lng, lat in coordinates)
    )
    params = {
        'access_token': _token(),
        'alternatives': str(alternatives).lower(),
        'steps': 'true',
        'geometries': 'geojson',
        'overview': 'full',
        'language': language,
        'annotations': 'duration,distance,speed',
    }

    try:
        response = requests.get(url, params=params, timeout=REQUEST_TIMEOUT)
        response.raise_for_status()
        data = response.json()
    except (requests.RequestException, ValueError) as e:
        logger.error(f"Error fetching directions: {str(e)}")
        return None

    if data.get('code') != 'Ok' or not data.get('routes'):
        logger.warning(f"Directions returned no route: {data.get('code')}")
        return None

    route = data['routes'][0]
    steps = []
    for leg in route.get('legs', []):
        for step in leg.get('steps', []):
            steps.append({
                'instruction': step.get('maneuver', {}).get('instruction'),
                'distance': step.get('distance'),
                'duration': step.get('duration'),
                'name': step.get('name'),
            })

    return {
        'distance': route.get('distance'),
        'duration': route.get('duration'),
        # driving-traffic durations already include live traffic
        'trafficDuration': route.get('duration') if profile == 'driving-traffic' else None,
        'geometry': route.get('geometry'),
        'steps': steps,
    }


def reverse_geocode(latitude, longitude, language='bn'):
    """Return the best place name for a position, or ``None``."""
    if _mock_services():
        return None

    url = GEOCODING_URL.format(lng=longitude, lat=latitude)
    params = {
        'access_token': _token(),
        'language': language,
        'types': 'address,poi,place',
    }
    try:
        response = requests.get(url, params=params, timeout=REQUEST_TIMEOUT)
        response.raise_for_status()
        features = response.json().get('features') or []
    except (requests.RequestException, ValueError) as e:
        logger.error(f"Error reverse geocoding: {str(e)}")
        return None

    return features[0].get('place_name') if features else None


def _simplify(coordinates, limit=MAX_STATIC_POINTS):
    if len(coordinates) <= limit:
        return coordinates
    step = (len(coordinates) - 1) / (limit - 1)
    return [coordinates[round(i * step)] for i in range(limit)]


def generate_static_map_url(geometry, start_marker=None, end_marker=None, width=600, height=400):
    """Build a static preview image URL with the path and start/end pins."""
    overlays = []
    coordinates = _simplify((geometry or {}).get('coordinates') or [])
    if coordinates:
        path = {
            'type': 'Feature',
            'properties': {'stroke': '#dc2626', 'stroke-width': 4},
            'geometry': {'type': 'LineString', 'coordinates': coordinates},
        }
        overlays.append('geojson(' + quote(json.dumps(path, separators=(',', ':')), safe='') + ')')
    if start_marker:
        overlays.append(f"pin-s-a+22c55e({start_marker[0]},{start_marker[1]})")
    if end_marker:
        overlays.append(f"pin-s-b+dc2626({end_marker[0]},{end_marker[1]})")

    url = STATIC_MAP_URL.format(overlays=','.join(overlays), width=width, height=height)
    return f"{url}?access_token={_token()}"


def generate_share_link(route_id, token, base_url=None):
    base_url = (base_url if base_url is not None else current_app.config.get('APP_BASE_URL', '')).rstrip('/')
    return f"{base_url}/track/route/{route_id}?token={token}"
