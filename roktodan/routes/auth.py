from datetime import timedelta

from flask import Blueprint, current_app
from flask_login import login_user, current_user, logout_user, login_required

from roktodan import db, bcrypt
from roktodan.errors import AuthenticationError, success
from roktodan.forms.auth_forms import LoginForm, DonorRegistrationForm
from roktodan.models.user import User, Donor, DONATION_DEFERRAL_DAYS

auth = Blueprint('auth', __name__)


def user_payload(user):
    data = user.to_dict()
    if user.is_donor() and user.donor_profile:
        data['profile'] = user.donor_profile.to_dict()
    elif user.is_volunteer() and user.volunteer_profile:
        data['profile'] = user.volunteer_profile.to_dict()
    return data


@auth.route('/register', methods=['POST'])
def register():
    form = DonorRegistrationForm.from_json().validate_or_raise()

    hashed_password = bcrypt.generate_password_hash(form.password.data).decode('utf-8')
    user = User(
        email=form.email.data.lower(),
        password=hashed_password,
        full_name=form.full_name.data,
        phone=form.phone.data,
        role='donor'
    )
    db.session.add(user)
    db.session.flush()  # Flush to get the user ID

    last_donation = form.last_donation_date.data
    donor = Donor(
        user_id=user.id,
        blood_group=form.blood_group.data,
        gender=form.gender.data or None,
        date_of_birth=form.date_of_birth.data,
        weight=form.weight.data,
        latitude=form.latitude.data,
        longitude=form.longitude.data,
        address=form.address.data or None,
        district=form.district.data or None,
        division=form.division.data or None,
        last_donation_date=last_donation,
        next_eligible_date=last_donation + timedelta(days=DONATION_DEFERRAL_DAYS) if last_donation else None
    )
    if not donor.is_eligible():
        donor.is_available = False
    db.session.add(donor)
    db.session.commit()

    login_user(user)
    current_app.logger.info(f"Donor {user.id} registered")
    return success(user_payload(user), status=201)


@auth.route('/login', methods=['POST'])
def login():
    form = LoginForm.from_json().validate_or_raise()

    user = User.query.filter_by(email=form.email.data.lower()).first()
    if not user or not bcrypt.check_password_hash(user.password, form.password.data):
        raise AuthenticationError('Invalid email or password')

    login_user(user)
    current_app.logger.info(f"User {user.id} logged in as {user.role}")
    return success({'user': user_payload(user), 'role': user.role})


@auth.route('/me')
@login_required
def me():
    return success(user_payload(current_user))


@auth.route('/logout', methods=['POST'])
@login_required
def logout():
    logout_user()
    return success({'loggedOut': True})
