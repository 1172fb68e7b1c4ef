from datetime import datetime, timedelta

import pytest

from roktodan import create_app, db, bcrypt
from roktodan.models.blood_request import BloodRequest, Assignment
from roktodan.models.user import User, Donor, Volunteer, Admin
from roktodan.utils.intake import generate_tracking_id

PASSWORD = 'secret123'

DHAKA = (23.8103, 90.4125)


@pytest.fixture
def app():
    app = create_app({
        'TESTING': True,
        'SECRET_KEY': 'test',
        'SQLALCHEMY_DATABASE_URI': 'sqlite://',
        'WTF_CSRF_ENABLED': False,
        'MOCK_SERVICES': True,
        'SCHEDULER_ENABLED': False,
        'MAIL_SUPPRESS_SEND': True,
        'BCRYPT_LOG_ROUNDS': 4,
        'APP_BASE_URL': 'http://roktodan.test',
    })
    with app.app_context():
        yield app
        db.session.remove()
        db.drop_all()


@pytest.fixture
def client(app):
    return app.test_client()


@pytest.fixture
def make_user(app):
    counter = {'n': 0}

    def _make(role='donor', email=None, blood_group='O+', latitude=DHAKA[0], longitude=DHAKA[1], **profile):
        counter['n'] += 1
        user = User(
            email=email or f"{role}{counter['n']}@example.com",
            password=bcrypt.generate_password_hash(PASSWORD).decode('utf-8'),
            full_name=f"Test {role.title()} {counter['n']}",
            phone=f"0171234{counter['n']:04d}",
            role=role
        )
        db.session.add(user)
        db.session.flush()

        if role == 'donor':
            db.session.add(Donor(user_id=user.id, blood_group=blood_group,
                                 latitude=latitude, longitude=longitude, **profile))
        elif role == 'volunteer':
            db.session.add(Volunteer(user_id=user.id, latitude=latitude, longitude=longitude, **profile))
        else:
            db.session.add(Admin(user_id=user.id, **profile))
        db.session.commit()
        return user

    return _make


@pytest.fixture
def login(client):
    def _login(user):
        response = client.post('/api/auth/login', json={'email': user.email, 'password': PASSWORD})
        assert response.status_code == 200, response.get_json()
        return response

    return _login


@pytest.fixture
def admin(make_user):
    return make_user('admin')


@pytest.fixture
def volunteer(make_user):
    return make_user('volunteer')


@pytest.fixture
def donor(make_user):
    return make_user('donor', blood_group='O+')


@pytest.fixture
def make_request(app):
    def _make(status='submitted', blood_group='A+', urgency='normal', hours=48,
              latitude=DHAKA[0], longitude=DHAKA[1], district='Dhaka', **fields):
        now = datetime.utcnow()
        blood_request = BloodRequest(
            tracking_id=generate_tracking_id(now),
            requester_name='Rahim',
            requester_phone='01712345678',
            patient_name='Karima Begum',
            blood_group=blood_group,
            units_needed=1,
            hospital_name='Dhaka Medical College Hospital',
            hospital_address='Secretariat Road, Dhaka 1000',
            latitude=latitude,
            longitude=longitude,
            district=district,
            division='Dhaka',
            needed_by=now + timedelta(hours=hours),
            urgency=urgency,
            is_emergency=urgency == 'critical',
            status=status,
            **fields
        )
        db.session.add(blood_request)
        db.session.commit()
        return blood_request

    return _make


@pytest.fixture
def make_assignment(app):
    def _make(blood_request, assignee, assigned_by, assignment_type='donor', status='pending'):
        assignment = Assignment(
            request_id=blood_request.id,
            type=assignment_type,
            assignee_id=assignee.id,
            assigned_by=assigned_by.id,
            status=status
        )
        db.session.add(assignment)
        db.session.commit()
        return assignment

    return _make
