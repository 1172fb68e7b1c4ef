from roktodan import db, login_manager
from flask_login import UserMixin
from datetime import datetime, timedelta

# Deferral between two whole-blood donations
DONATION_DEFERRAL_DAYS = 90

ROLES = ('admin', 'volunteer', 'donor')


@login_manager.user_loader
def load_user(user_id):
    return db.session.get(User, int(user_id))


class User(db.Model, UserMixin):
    id = db.Column(db.Integer, primary_key=True)
    email = db.Column(db.String(120), unique=True, nullable=False)
    password = db.Column(db.String(60), nullable=False)
    full_name = db.Column(db.String(100), nullable=False)
    phone = db.Column(db.String(20), nullable=True)
    role = db.Column(db.String(20), nullable=False, default='donor')  # admin, volunteer, donor
    created_at = db.Column(db.DateTime, default=datetime.utcnow)
    updated_at = db.Column(db.DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    # Relationships
    donor_profile = db.relationship('Donor', backref='user', uselist=False, cascade='all, delete-orphan')
    volunteer_profile = db.relationship('Volunteer', backref='user', uselist=False, cascade='all, delete-orphan')
    admin_profile = db.relationship('Admin', backref='user', uselist=False, cascade='all, delete-orphan')

    def is_donor(self):
        return self.role == 'donor'

    def is_volunteer(self):
        return self.role == 'volunteer'

    def is_admin(self):
        return self.role == 'admin'

    def to_dict(self):
        return {
            'id': self.id,
            'email': self.email,
            'name': self.full_name,
            'phone': self.phone,
            'role': self.role,
        }

    def __repr__(self):
        return f"User('{self.email}', '{self.role}')"


class Donor(db.Model):
    id = db.Column(db.Integer, primary_key=True)
    user_id = db.Column(db.Integer, db.ForeignKey('user.id'), nullable=False, unique=True)
    blood_group = db.Column(db.String(5), nullable=False)
    date_of_birth = db.Column(db.Date, nullable=True)
    gender = db.Column(db.String(10), nullable=True)
    weight = db.Column(db.Float, nullable=True)
    latitude = db.Column(db.Float, nullable=True)
    longitude = db.Column(db.Float, nullable=True)
    address = db.Column(db.String(500), nullable=True)
    district = db.Column(db.String(50), nullable=True)
    division = db.Column(db.String(50), nullable=True)
    is_available = db.Column(db.Boolean, default=True, nullable=False)
    last_donation_date = db.Column(db.DateTime, nullable=True)
    next_eligible_date = db.Column(db.DateTime, nullable=True)
    total_donations = db.Column(db.Integer, default=0, nullable=False)

    # Notification preferences
    email_notifications = db.Column(db.Boolean, default=True)
    sms_notifications = db.Column(db.Boolean, default=True)

    created_at = db.Column(db.DateTime, default=datetime.utcnow)

    def record_donation(self, donated_at=None):
        donated_at = donated_at or datetime.utcnow()
        self.total_donations = (self.total_donations or 0) + 1
        self.last_donation_date = donated_at
        self.next_eligible_date = donated_at + timedelta(days=DONATION_DEFERRAL_DAYS)
        self.is_available = False

    def is_eligible(self, now=None):
        now = now or datetime.utcnow()
        if self.next_eligible_date is None:
            return True
        return self.next_eligible_date <= now

    def to_dict(self):
        return {
            'id': self.id,
            'userId': self.user_id,
            'fullName': self.user.full_name if self.user else None,
            'phone': self.user.phone if self.user else None,
            'bloodGroup': self.blood_group,
            'latitude': self.latitude,
            'longitude': self.longitude,
            'district': self.district,
            'division': self.division,
            'isAvailable': self.is_available,
            'lastDonationDate': self.last_donation_date.isoformat() if self.last_donation_date else None,
            'nextEligibleDate': self.next_eligible_date.isoformat() if self.next_eligible_date else None,
            'totalDonations': self.total_donations,
        }

    def __repr__(self):
        return f"Donor('{self.user_id}', '{self.blood_group}')"


class Volunteer(db.Model):
    id = db.Column(db.Integer, primary_key=True)
    user_id = db.Column(db.Integer, db.ForeignKey('user.id'), nullable=False, unique=True)
    employee_id = db.Column(db.String(50), nullable=True)
    latitude = db.Column(db.Float, nullable=True)
    longitude = db.Column(db.Float, nullable=True)
    address = db.Column(db.String(500), nullable=True)
    district = db.Column(db.String(50), nullable=True)
    division = db.Column(db.String(50), nullable=True)
    coverage_radius_km = db.Column(db.Float, default=10, nullable=False)
    is_active = db.Column(db.Boolean, default=True, nullable=False)
    requests_handled = db.Column(db.Integer, default=0, nullable=False)
    donations_facilitated = db.Column(db.Integer, default=0, nullable=False)
    success_rate = db.Column(db.Float, default=0, nullable=False)
    created_at = db.Column(db.DateTime, default=datetime.utcnow)

    def to_dict(self):
        return {
            'id': self.id,
            'userId': self.user_id,
            'fullName': self.user.full_name if self.user else None,
            'district': self.district,
            'isActive': self.is_active,
            'requestsHandled': self.requests_handled,
            'donationsFacilitated': self.donations_facilitated,
            'successRate': self.success_rate,
        }

    def __repr__(self):
        return f"Volunteer('{self.user_id}', '{self.district}')"


class Admin(db.Model):
    id = db.Column(db.Integer, primary_key=True)
    user_id = db.Column(db.Integer, db.ForeignKey('user.id'), nullable=False, unique=True)
    employee_id = db.Column(db.String(50), nullable=True)
    department = db.Column(db.String(100), nullable=True)
    created_at = db.Column(db.DateTime, default=datetime.utcnow)

    def __repr__(self):
        return f"Admin('{self.user_id}', '{self.department}')"
