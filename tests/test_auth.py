from datetime import datetime, timedelta

from roktodan.models.user import User

from conftest import PASSWORD


def registration_payload(**overrides):
    payload = {
        'email': 'NewDonor@Example.com',
        'password': 'donate-often',
        'fullName': 'Sadia Islam',
        'phone': '+8801812345678',
        'bloodGroup': 'AB+',
        'gender': 'female',
        'dateOfBirth': '1995-04-12',
        'weight': 58,
        'division': 'Dhaka',
        'district': 'Gazipur',
        'address': 'Tongi, Gazipur',
        'latitude': 23.8917,
        'longitude': 90.4023,
    }
    payload.update(overrides)
    return payload


def test_register_creates_donor_and_logs_in(client):
    response = client.post('/api/auth/register', json=registration_payload())
    assert response.status_code == 201
    data = response.get_json()['data']
    assert data['role'] == 'donor'
    assert data['email'] == 'newdonor@example.com'
    assert data['profile']['bloodGroup'] == 'AB+'
    assert data['profile']['isAvailable'] is True

    me = client.get('/api/auth/me')
    assert me.status_code == 200
    assert me.get_json()['data']['email'] == 'newdonor@example.com'


def test_register_recent_donor_is_deferred(client):
    last = (datetime.utcnow() - timedelta(days=30)).isoformat()
    response = client.post('/api/auth/register', json=registration_payload(lastDonationDate=last))
    profile = response.get_json()['data']['profile']
    assert profile['isAvailable'] is False
    assert profile['nextEligibleDate'] is not None


def test_register_duplicate_email(client, donor):
    response = client.post('/api/auth/register', json=registration_payload(email=donor.email))
    assert response.status_code == 400
    assert 'email' in response.get_json()['details']


def test_register_validation(client):
    response = client.post('/api/auth/register', json=registration_payload(
        phone='5551234', bloodGroup='Z', password='123'
    ))
    assert response.status_code == 400
    assert {'phone', 'bloodGroup', 'password'} <= set(response.get_json()['details'])
    assert User.query.count() == 0


def test_login_and_logout(client, admin):
    response = client.post('/api/auth/login', json={'email': admin.email, 'password': PASSWORD})
    assert response.status_code == 200
    assert response.get_json()['data']['role'] == 'admin'

    set_cookie = response.headers.get('Set-Cookie', '')
    assert 'HttpOnly' in set_cookie

    assert client.post('/api/auth/logout').status_code == 200
    assert client.get('/api/auth/me').status_code == 401


def test_login_wrong_password(client, admin):
    response = client.post('/api/auth/login', json={'email': admin.email, 'password': 'nope'})
    assert response.status_code == 401
    assert response.get_json() == {'success': False, 'error': 'Invalid email or password'}


def test_me_requires_login(client):
    response = client.get('/api/auth/me')
    assert response.status_code == 401
    assert response.get_json()['success'] is False


def test_admin_prefix_requires_authentication(client):
    assert client.get('/api/admin/requests').status_code == 401


def test_admin_prefix_rejects_other_roles(client, login, volunteer, donor):
    login(volunteer)
    assert client.get('/api/admin/requests').status_code == 403

    login(donor)
    assert client.get('/api/admin/analytics').status_code == 403


def test_requests_prefix_allows_volunteers_not_donors(client, login, volunteer, donor, make_request):
    blood_request = make_request(status='approved')

    login(volunteer)
    assert client.get(f'/api/requests/{blood_request.id}/matching-donors').status_code == 200

    login(donor)
    assert client.get(f'/api/requests/{blood_request.id}/matching-donors').status_code == 403


def test_admin_creates_volunteer(client, login, admin):
    login(admin)
    response = client.post('/api/admin/users', json={
        'email': 'vol@example.com',
        'password': 'helping-hand',
        'fullName': 'Tanvir Ahmed',
        'phone': '01912345678',
        'role': 'volunteer',
        'district': 'Dhaka',
        'coverageRadiusKm': 15,
    })
    assert response.status_code == 201
    user = User.query.filter_by(email='vol@example.com').one()
    assert user.volunteer_profile is not None
    assert user.volunteer_profile.coverage_radius_km == 15


def test_admin_cannot_create_donor_accounts(client, login, admin):
    login(admin)
    response = client.post('/api/admin/users', json={
        'email': 'x@example.com', 'password': 'secret123', 'fullName': 'X Y',
        'phone': '01912345678', 'role': 'donor',
    })
    assert response.status_code == 400
    assert 'role' in response.get_json()['details']
