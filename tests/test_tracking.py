from datetime import datetime, timedelta

import pytest

from roktodan import db
from roktodan.models.route import Route, RoutePosition
from roktodan.utils import mapbox

START = {'latitude': 23.80, 'longitude': 90.40, 'address': 'Mohakhali'}
HOSPITAL = (23.75, 90.40)


@pytest.fixture
def assignment(make_request, make_assignment, admin, donor):
    blood_request = make_request(status='in_progress', blood_group='O+',
                                 latitude=HOSPITAL[0], longitude=HOSPITAL[1])
    return make_assignment(blood_request, donor.donor_profile, admin, status='accepted')


@pytest.fixture
def route_id(client, login, volunteer, assignment):
    login(volunteer)
    response = client.post('/api/routes', json={'assignmentId': assignment.id, 'startLocation': START})
    assert response.status_code == 201, response.get_json()
    return response.get_json()['data']['id']


def post_position(client, route_id, latitude, longitude=90.40, **extra):
    return client.post(f'/api/routes/{route_id}/eta',
                       json=dict(latitude=latitude, longitude=longitude, **extra))


def test_create_route_defaults_to_hospital(client, login, volunteer, assignment):
    login(volunteer)
    response = client.post('/api/routes', json={
        'assignmentId': assignment.id, 'startLocation': START, 'profile': 'driving'
    })
    assert response.status_code == 201
    data = response.get_json()['data']
    assert data['status'] == 'pending'
    assert data['profile'] == 'driving'
    assert data['endLocation']['latitude'] == HOSPITAL[0]
    assert data['distance'] == pytest.approx(5560, abs=30)
    assert data['originalEta'] == data['currentEta']
    assert data['request']['bloodGroup'] == 'O+'


def test_create_route_names_unlabelled_start(client, login, volunteer, assignment, monkeypatch):
    monkeypatch.setattr(mapbox, 'reverse_geocode', lambda latitude, longitude: 'Gulshan 1, Dhaka')
    login(volunteer)
    response = client.post('/api/routes', json={
        'assignmentId': assignment.id, 'startLocation': {'latitude': 23.80, 'longitude': 90.40}
    })
    assert response.get_json()['data']['startLocation']['address'] == 'Gulshan 1, Dhaka'


def test_create_route_with_share_link(client, login, volunteer, assignment):
    login(volunteer)
    response = client.post('/api/routes', json={
        'assignmentId': assignment.id, 'startLocation': START, 'createShareLink': True
    })
    share = response.get_json()['data']['share']
    assert share['shareUrl'].startswith('http://roktodan.test/track/route/')
    assert share['token'] in share['shareUrl']
    assert share['previewImage'].startswith('https://api.mapbox.com/styles/v1/')


def test_create_route_validation(client, login, volunteer, assignment):
    login(volunteer)
    missing = client.post('/api/routes', json={'assignmentId': assignment.id})
    assert missing.status_code == 400
    assert 'startLocation' in missing.get_json()['details']

    bad_profile = client.post('/api/routes', json={
        'assignmentId': assignment.id, 'startLocation': START, 'profile': 'teleport'
    })
    assert bad_profile.status_code == 400

    too_many = client.post('/api/routes', json={
        'assignmentId': assignment.id, 'startLocation': START,
        'waypoints': [{'latitude': 23.79, 'longitude': 90.40}] * 24
    })
    assert too_many.status_code == 400


def test_create_route_unknown_assignment(client, login, volunteer):
    login(volunteer)
    response = client.post('/api/routes', json={'assignmentId': 404, 'startLocation': START})
    assert response.status_code == 404


def test_create_route_provider_failure(client, login, volunteer, assignment, monkeypatch):
    monkeypatch.setattr(mapbox, 'get_directions', lambda *args, **kwargs: None)
    login(volunteer)
    response = client.post('/api/routes', json={'assignmentId': assignment.id, 'startLocation': START})
    assert response.status_code == 502
    assert Route.query.count() == 0


def test_donor_cannot_create_routes(client, login, donor, assignment):
    login(donor)
    response = client.post('/api/routes', json={'assignmentId': assignment.id, 'startLocation': START})
    assert response.status_code == 403


def test_position_updates_progress_and_eta(client, login, donor, route_id):
    login(donor)

    first = post_position(client, route_id, 23.78)
    assert first.status_code == 200
    first_data = first.get_json()['data']
    assert first_data['status'] == 'active'
    assert first_data['progress'] == pytest.approx(0.4, abs=1e-3)
    assert first_data['deviation']['isOnRoute'] is True
    assert first_data['reroute'] is None

    second = post_position(client, route_id, 23.77).get_json()['data']
    assert second['progress'] == pytest.approx(0.6, abs=1e-3)
    assert second['progress'] > first_data['progress']
    assert second['remainingDistance'] < first_data['remainingDistance']
    assert second['currentEta'] < first_data['currentEta']

    assert RoutePosition.query.filter_by(route_id=route_id).count() == 2


def test_position_with_speed(client, login, donor, route_id):
    login(donor)
    data = post_position(client, route_id, 23.78, speed=36).get_json()['data']
    # 36 km/h is 10 m/s
    assert data['remainingDuration'] == pytest.approx(data['remainingDistance'] / 10, abs=0.2)


def test_position_validation(client, login, donor, route_id):
    login(donor)
    response = client.post(f'/api/routes/{route_id}/eta', json={'latitude': 95, 'speed': -4})
    assert response.status_code == 400
    assert {'latitude', 'longitude', 'speed'} <= set(response.get_json()['details'])


def test_only_traveller_reports_positions(client, login, volunteer, make_user, route_id):
    login(volunteer)
    assert post_position(client, route_id, 23.78).status_code == 403

    login(make_user('donor'))
    assert post_position(client, route_id, 23.78).status_code == 403


def test_deviation_marks_route_until_reroute(client, login, donor, route_id):
    login(donor)
    post_position(client, route_id, 23.79)

    off_route = post_position(client, route_id, 23.78, longitude=90.41).get_json()['data']
    assert off_route['status'] == 'deviated'
    assert off_route['deviation']['shouldReroute'] is True
    assert off_route['deviationCount'] == 1
    assert off_route['reroute']['available'] is True

    back_on_route = post_position(client, route_id, 23.77).get_json()['data']
    assert back_on_route['status'] == 'deviated'
    assert back_on_route['deviationCount'] == 1

    rerouted = client.post(f'/api/routes/{route_id}/reroute', json={
        'currentLatitude': 23.78, 'currentLongitude': 90.41
    })
    assert rerouted.status_code == 200
    new_route = rerouted.get_json()['data']['newRoute']
    assert new_route['geometry']['coordinates'][0] == [90.41, 23.78]

    db.session.expire_all()
    route = db.session.get(Route, route_id)
    assert route.status == 'active'
    assert route.current_step_index == 0


def test_arrival_completes_route(client, login, donor, route_id):
    login(donor)
    post_position(client, route_id, 23.78)

    arrived = post_position(client, route_id, 23.7502).get_json()['data']
    assert arrived['status'] == 'completed'

    eta = client.get(f'/api/routes/{route_id}/eta').get_json()['data']
    assert eta['status'] == 'completed'
    assert eta['remainingDistance'] == 0
    assert eta['progress'] == 1.0

    assert post_position(client, route_id, 23.76).status_code == 409
    assert client.post(f'/api/routes/{route_id}/reroute', json={
        'currentLatitude': 23.76, 'currentLongitude': 90.40
    }).status_code == 409


def test_reroute_keeps_waypoints_ahead(client, login, volunteer, donor, assignment):
    login(volunteer)
    route_id = client.post('/api/routes', json={
        'assignmentId': assignment.id,
        'startLocation': START,
        'waypoints': [{'latitude': 23.79, 'longitude': 90.40}, {'latitude': 23.76, 'longitude': 90.40}],
    }).get_json()['data']['id']

    login(donor)
    data = client.post(f'/api/routes/{route_id}/reroute', json={
        'currentLatitude': 23.78, 'currentLongitude': 90.40
    }).get_json()['data']
    assert data['newRoute']['geometry']['coordinates'] == [[90.40, 23.78], [90.40, 23.76], [90.40, 23.75]]

    dropped = client.post(f'/api/routes/{route_id}/reroute', json={
        'currentLatitude': 23.78, 'currentLongitude': 90.40, 'preserveWaypoints': False
    }).get_json()['data']
    assert dropped['newRoute']['geometry']['coordinates'] == [[90.40, 23.78], [90.40, 23.75]]


def test_reroute_provider_failure_keeps_route(client, login, donor, route_id, monkeypatch):
    login(donor)
    monkeypatch.setattr(mapbox, 'get_directions', lambda *args, **kwargs: None)

    response = client.post(f'/api/routes/{route_id}/reroute', json={
        'currentLatitude': 23.78, 'currentLongitude': 90.41
    })
    assert response.status_code == 502

    db.session.expire_all()
    route = db.session.get(Route, route_id)
    assert route.geometry['coordinates'][0] == [90.40, 23.80]


def test_share_link_grants_anonymous_access(client, login, volunteer, route_id):
    share = client.post(f'/api/routes/{route_id}/share', json={'expiresInHours': 2}).get_json()['data']
    token = share['token']

    client.post('/api/auth/logout')

    assert client.get(f'/api/routes/{route_id}/eta').status_code == 401
    assert client.get(f'/api/routes/{route_id}/eta?token=wrong').status_code == 404

    response = client.get(f'/api/routes/{route_id}/eta?token={token}')
    assert response.status_code == 200
    assert response.get_json()['data']['routeId'] == route_id

    rerouted = client.post(f'/api/routes/{route_id}/reroute', json={
        'token': token, 'currentLatitude': 23.79, 'currentLongitude': 90.40
    })
    assert rerouted.status_code == 200

    # Positions still need an account
    assert post_position(client, route_id, 23.78).status_code == 401


def test_share_link_expiry_and_revocation(client, login, volunteer, route_id):
    token = client.post(f'/api/routes/{route_id}/share').get_json()['data']['token']

    route = db.session.get(Route, route_id)
    assert route.share_expires_at - datetime.utcnow() > timedelta(hours=23)

    route.share_expires_at = datetime.utcnow() - timedelta(minutes=1)
    db.session.commit()
    client.post('/api/auth/logout')
    assert client.get(f'/api/routes/{route_id}/eta?token={token}').status_code == 404

    login(volunteer)
    token = client.post(f'/api/routes/{route_id}/share').get_json()['data']['token']
    assert client.delete(f'/api/routes/{route_id}/share').status_code == 200
    client.post('/api/auth/logout')
    assert client.get(f'/api/routes/{route_id}/eta?token={token}').status_code == 404


def test_share_expiry_bounds(client, route_id):
    response = client.post(f'/api/routes/{route_id}/share', json={'expiresInHours': 500})
    assert response.status_code == 400


def test_list_and_delete_routes(client, login, admin, make_user, assignment, route_id):
    listing = client.get(f'/api/routes?assignmentId={assignment.id}').get_json()
    assert listing['total'] == 1

    login(make_user('donor'))
    assert client.get('/api/routes').get_json()['total'] == 0

    login(admin)
    assert client.get('/api/routes?status=lost').status_code == 400
    assert client.delete(f'/api/routes/{route_id}').status_code == 200
    assert client.delete(f'/api/routes/{route_id}').status_code == 404


def test_admin_active_tracking(client, login, admin, donor, route_id):
    login(admin)
    active = client.get('/api/admin/tracking/active').get_json()
    assert [route['id'] for route in active['data']] == [route_id]

    login(donor)
    post_position(client, route_id, 23.7502)

    login(admin)
    assert client.get('/api/admin/tracking/active').get_json()['total'] == 0
