from roktodan import db
from datetime import datetime

BLOOD_GROUPS = ('A+', 'A-', 'B+', 'B-', 'AB+', 'AB-', 'O+', 'O-')
URGENCY_LEVELS = ('critical', 'urgent', 'normal')
GENDERS = ('male', 'female', 'other')

REQUEST_STATUSES = (
    'submitted', 'approved', 'volunteer_assigned', 'donor_assigned',
    'donor_confirmed', 'in_progress', 'completed', 'cancelled'
)
TERMINAL_STATUSES = ('completed', 'cancelled')
ACTIVE_STATUSES = tuple(s for s in REQUEST_STATUSES if s not in TERMINAL_STATUSES)
PENDING_STATUSES = ('submitted', 'approved')

ASSIGNMENT_TYPES = ('donor', 'volunteer')
ASSIGNMENT_STATUSES = ('pending', 'accepted', 'rejected', 'completed', 'cancelled')
OPEN_ASSIGNMENT_STATUSES = ('pending', 'accepted')

# Recipient group -> donor groups it can receive from
BLOOD_COMPATIBILITY = {
    'A+': ['A+', 'A-', 'O+', 'O-'],
    'A-': ['A-', 'O-'],
    'B+': ['B+', 'B-', 'O+', 'O-'],
    'B-': ['B-', 'O-'],
    'AB+': ['A+', 'A-', 'B+', 'B-', 'AB+', 'AB-', 'O+', 'O-'],
    'AB-': ['A-', 'B-', 'AB-', 'O-'],
    'O+': ['O+', 'O-'],
    'O-': ['O-'],
}


def get_compatible_blood_groups(blood_group):
    """Return the donor blood groups a patient of ``blood_group`` can receive."""
    return BLOOD_COMPATIBILITY.get(blood_group, [])


def _iso(value):
    return value.isoformat() if value else None


class BloodRequest(db.Model):
    id = db.Column(db.Integer, primary_key=True)
    tracking_id = db.Column(db.String(20), unique=True, nullable=False, index=True)
    requester_type = db.Column(db.String(20), nullable=False, default='public')  # public, registered
    requester_user_id = db.Column(db.Integer, db.ForeignKey('user.id'), nullable=True)
    requester_name = db.Column(db.String(100), nullable=False)
    requester_phone = db.Column(db.String(20), nullable=False)
    requester_email = db.Column(db.String(120), nullable=True)

    patient_name = db.Column(db.String(100), nullable=False)
    patient_age = db.Column(db.Integer, nullable=True)
    patient_gender = db.Column(db.String(10), nullable=True)

    blood_group = db.Column(db.String(5), nullable=False, index=True)
    units_needed = db.Column(db.Integer, nullable=False, default=1)

    hospital_name = db.Column(db.String(200), nullable=False)
    hospital_address = db.Column(db.String(500), nullable=False)
    latitude = db.Column(db.Float, nullable=False)
    longitude = db.Column(db.Float, nullable=False)
    district = db.Column(db.String(50), nullable=False, index=True)
    division = db.Column(db.String(50), nullable=False)

    reason = db.Column(db.String(500), nullable=True)
    needed_by = db.Column(db.DateTime, nullable=False)
    is_emergency = db.Column(db.Boolean, nullable=False, default=False)
    urgency = db.Column(db.String(10), nullable=False, default='normal')
    status = db.Column(db.String(20), nullable=False, default='submitted', index=True)
    assigned_volunteer_id = db.Column(db.Integer, db.ForeignKey('volunteer.id'), nullable=True)
    notes = db.Column(db.Text, nullable=True)

    created_at = db.Column(db.DateTime, default=datetime.utcnow, nullable=False)
    updated_at = db.Column(db.DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)
    approved_at = db.Column(db.DateTime, nullable=True)
    in_progress_at = db.Column(db.DateTime, nullable=True)
    completed_at = db.Column(db.DateTime, nullable=True)
    cancelled_at = db.Column(db.DateTime, nullable=True)

    # Relationships
    assignments = db.relationship('Assignment', backref='request', lazy=True,
                                  order_by='Assignment.created_at',
                                  cascade='all, delete-orphan')
    assigned_volunteer = db.relationship('Volunteer', foreign_keys=[assigned_volunteer_id])

    def __repr__(self):
        return f"BloodRequest('{self.tracking_id}', '{self.blood_group}', '{self.status}')"

    @property
    def is_active(self):
        return self.status not in TERMINAL_STATUSES

    def open_assignments(self, assignment_type=None):
        return [
            a for a in self.assignments
            if a.status in OPEN_ASSIGNMENT_STATUSES
            and (assignment_type is None or a.type == assignment_type)
        ]

    def timeline(self):
        events = [{'status': 'submitted', 'timestamp': _iso(self.created_at)}]
        if self.approved_at:
            events.append({'status': 'approved', 'timestamp': _iso(self.approved_at)})
        for assignment in self.assignments:
            events.append({
                'status': f"{assignment.type}_assigned",
                'timestamp': _iso(assignment.created_at),
            })
            if assignment.type == 'donor' and assignment.responded_at and assignment.status in ('accepted', 'completed'):
                events.append({'status': 'donor_confirmed', 'timestamp': _iso(assignment.responded_at)})
        if self.in_progress_at:
            events.append({'status': 'in_progress', 'timestamp': _iso(self.in_progress_at)})
        if self.completed_at:
            events.append({'status': 'completed', 'timestamp': _iso(self.completed_at)})
        if self.cancelled_at:
            events.append({'status': 'cancelled', 'timestamp': _iso(self.cancelled_at)})
        return sorted(events, key=lambda event: event['timestamp'] or '')

    def to_dict(self):
        return {
            'id': self.id,
            'trackingId': self.tracking_id,
            'requesterType': self.requester_type,
            'requesterName': self.requester_name,
            'requesterPhone': self.requester_phone,
            'requesterEmail': self.requester_email,
            'patientName': self.patient_name,
            'patientAge': self.patient_age,
            'patientGender': self.patient_gender,
            'bloodGroup': self.blood_group,
            'unitsNeeded': self.units_needed,
            'hospitalName': self.hospital_name,
            'hospitalAddress': self.hospital_address,
            'latitude': self.latitude,
            'longitude': self.longitude,
            'district': self.district,
            'division': self.division,
            'reason': self.reason,
            'neededBy': _iso(self.needed_by),
            'isEmergency': self.is_emergency,
            'urgency': self.urgency,
            'status': self.status,
            'assignedVolunteerId': self.assigned_volunteer_id,
            'createdAt': _iso(self.created_at),
            'updatedAt': _iso(self.updated_at),
            'approvedAt': _iso(self.approved_at),
            'completedAt': _iso(self.completed_at),
            'cancelledAt': _iso(self.cancelled_at),
        }

    def to_public_dict(self):
        # Patient identity stays hidden from anonymous lookups
        patient_name = self.patient_name or ''
        return {
            'trackingId': self.tracking_id,
            'patientName': (patient_name[:1] + '***') if patient_name else '***',
            'bloodGroup': self.blood_group,
            'unitsNeeded': self.units_needed,
            'hospitalName': self.hospital_name,
            'district': self.district,
            'division': self.division,
            'neededBy': _iso(self.needed_by),
            'isEmergency': self.is_emergency,
            'urgency': self.urgency,
            'status': self.status,
            'createdAt': _iso(self.created_at),
            'updatedAt': _iso(self.updated_at),
            'timeline': self.timeline(),
        }

    def to_marker(self):
        units = self.units_needed or 1
        return {
            'id': self.id,
            'type': 'request',
            'latitude': self.latitude,
            'longitude': self.longitude,
            'bloodGroup': self.blood_group,
            'urgency': self.urgency,
            'status': self.status,
            'title': self.hospital_name,
            'subtitle': f"{units} unit{'s' if units != 1 else ''} needed",
            'createdAt': _iso(self.created_at),
        }


class Assignment(db.Model):
    id = db.Column(db.Integer, primary_key=True)
    request_id = db.Column(db.Integer, db.ForeignKey('blood_request.id'), nullable=False, index=True)
    type = db.Column(db.String(20), nullable=False)  # donor, volunteer
    assignee_id = db.Column(db.Integer, nullable=False, index=True)
    assigned_by = db.Column(db.Integer, db.ForeignKey('user.id'), nullable=False)
    status = db.Column(db.String(20), nullable=False, default='pending')
    notes = db.Column(db.Text, nullable=True)
    response_note = db.Column(db.Text, nullable=True)
    responded_at = db.Column(db.DateTime, nullable=True)
    is_in_transit = db.Column(db.Boolean, default=False, nullable=False)
    created_at = db.Column(db.DateTime, default=datetime.utcnow, nullable=False)
    updated_at = db.Column(db.DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    def __repr__(self):
        return f"Assignment('{self.request_id}', '{self.type}:{self.assignee_id}', '{self.status}')"

    def to_dict(self):
        return {
            'id': self.id,
            'requestId': self.request_id,
            'type': self.type,
            'assigneeId': self.assignee_id,
            'assignedBy': self.assigned_by,
            'status': self.status,
            'notes': self.notes,
            'responseNote': self.response_note,
            'respondedAt': _iso(self.responded_at),
            'isInTransit': self.is_in_transit,
            'createdAt': _iso(self.created_at),
        }
