from roktodan import db
from datetime import datetime


class Donation(db.Model):
    id = db.Column(db.Integer, primary_key=True)
    request_id = db.Column(db.Integer, db.ForeignKey('blood_request.id'), nullable=False, index=True)
    assignment_id = db.Column(db.Integer, db.ForeignKey('assignment.id'), nullable=True)
    donor_id = db.Column(db.Integer, db.ForeignKey('donor.id'), nullable=False, index=True)
    volunteer_id = db.Column(db.Integer, db.ForeignKey('volunteer.id'), nullable=True)
    units_donated = db.Column(db.Integer, nullable=False, default=1)
    donation_date = db.Column(db.DateTime, default=datetime.utcnow, nullable=False)
    donation_location = db.Column(db.String(200), nullable=True)
    notes = db.Column(db.Text, nullable=True)
    certificate_id = db.Column(db.String(30), nullable=True)
    verified_by = db.Column(db.Integer, db.ForeignKey('volunteer.id'), nullable=True)
    verified_at = db.Column(db.DateTime, nullable=True)
    created_at = db.Column(db.DateTime, default=datetime.utcnow)

    # Relationships
    request = db.relationship('BloodRequest', backref=db.backref('donations', lazy=True))
    donor = db.relationship('Donor', backref=db.backref('donations', lazy=True))
    verifier = db.relationship('Volunteer', foreign_keys=[verified_by])

    def __repr__(self):
        return f"Donation('{self.request_id}', '{self.donor_id}', '{self.units_donated} units')"

    @property
    def is_verified(self):
        return self.verified_at is not None

    def mark_verified(self, volunteer_id):
        self.verified_by = volunteer_id
        self.verified_at = datetime.utcnow()

    def to_dict(self):
        return {
            'id': self.id,
            'requestId': self.request_id,
            'assignmentId': self.assignment_id,
            'donorId': self.donor_id,
            'unitsDonated': self.units_donated,
            'donationDate': self.donation_date.isoformat() if self.donation_date else None,
            'certificateId': self.certificate_id,
            'verifiedBy': self.verified_by,
            'verifiedAt': self.verified_at.isoformat() if self.verified_at else None,
        }


class Notification(db.Model):
    id = db.Column(db.Integer, primary_key=True)
    user_id = db.Column(db.Integer, db.ForeignKey('user.id'), nullable=True)
    recipient_email = db.Column(db.String(120), nullable=True)  # public requesters have no account
    recipient_phone = db.Column(db.String(20), nullable=True)
    title = db.Column(db.String(100), nullable=False, default='Notification')
    message = db.Column(db.Text, nullable=False)
    notification_type = db.Column(db.String(50), nullable=False)  # request_submitted, assignment_created, etc.
    delivery_method = db.Column(db.String(20), nullable=False, default='system')  # sms, email, system
    is_sent = db.Column(db.Boolean, default=False)
    is_read = db.Column(db.Boolean, default=False)
    created_at = db.Column(db.DateTime, default=datetime.utcnow)
    sent_at = db.Column(db.DateTime, nullable=True)
    related_entity_type = db.Column(db.String(50), nullable=True)  # blood_request, assignment, etc.
    related_entity_id = db.Column(db.Integer, nullable=True)

    def __repr__(self):
        return f"Notification('{self.title}', '{self.notification_type}', '{self.is_sent}', '{self.created_at}')"

    def mark_as_sent(self):
        self.is_sent = True
        self.sent_at = datetime.utcnow()


class AdminActivityLog(db.Model):
    id = db.Column(db.Integer, primary_key=True)
    admin_id = db.Column(db.Integer, db.ForeignKey('user.id'), nullable=False)
    action = db.Column(db.String(50), nullable=False)
    entity_type = db.Column(db.String(50), nullable=False)
    entity_id = db.Column(db.Integer, nullable=True)
    details = db.Column(db.JSON, nullable=True)
    created_at = db.Column(db.DateTime, default=datetime.utcnow)

    def __repr__(self):
        return f"AdminActivityLog('{self.action}', '{self.entity_type}:{self.entity_id}')"
