from roktodan import db
from datetime import datetime

ROUTE_STATUSES = ('pending', 'active', 'deviated', 'completed')
LIVE_ROUTE_STATUSES = ('pending', 'active', 'deviated')


class Route(db.Model):
    id = db.Column(db.Integer, primary_key=True)
    assignment_id = db.Column(db.Integer, db.ForeignKey('assignment.id'), nullable=False, index=True)

    # GeoJSON LineString, coordinates are [longitude, latitude]
    geometry = db.Column(db.JSON, nullable=False)
    waypoints = db.Column(db.JSON, nullable=True)
    steps = db.Column(db.JSON, nullable=True)
    distance = db.Column(db.Float, nullable=False)  # meters
    duration = db.Column(db.Float, nullable=False)  # seconds
    traffic_duration = db.Column(db.Float, nullable=True)  # seconds
    profile = db.Column(db.String(30), nullable=False, default='driving-traffic')
    start_location = db.Column(db.JSON, nullable=False)
    end_location = db.Column(db.JSON, nullable=False)

    status = db.Column(db.String(20), nullable=False, default='pending', index=True)
    current_step_index = db.Column(db.Integer, nullable=False, default=0)
    last_position = db.Column(db.JSON, nullable=True)
    deviation_count = db.Column(db.Integer, nullable=False, default=0)
    original_eta = db.Column(db.DateTime, nullable=True)
    current_eta = db.Column(db.DateTime, nullable=True)
    last_eta_update = db.Column(db.DateTime, nullable=True)
    started_at = db.Column(db.DateTime, nullable=True)
    completed_at = db.Column(db.DateTime, nullable=True)

    share_token = db.Column(db.String(64), nullable=True, unique=True)
    share_expires_at = db.Column(db.DateTime, nullable=True)

    created_at = db.Column(db.DateTime, default=datetime.utcnow)
    updated_at = db.Column(db.DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    # Relationships
    assignment = db.relationship('Assignment', backref=db.backref('routes', lazy=True))
    positions = db.relationship('RoutePosition', backref='route', lazy='dynamic', cascade='all, delete-orphan')

    def __repr__(self):
        return f"Route('{self.id}', '{self.status}')"

    @property
    def effective_duration(self):
        return self.traffic_duration or self.duration

    @property
    def coordinates(self):
        return (self.geometry or {}).get('coordinates') or []

    def share_is_valid(self, token, now=None):
        now = now or datetime.utcnow()
        return bool(
            token and self.share_token and token == self.share_token
            and self.share_expires_at and self.share_expires_at > now
        )

    def to_dict(self):
        request = self.assignment.request if self.assignment else None
        return {
            'id': self.id,
            'assignmentId': self.assignment_id,
            'geometry': self.geometry,
            'waypoints': self.waypoints,
            'distance': self.distance,
            'duration': self.duration,
            'trafficDuration': self.traffic_duration,
            'profile': self.profile,
            'startLocation': self.start_location,
            'endLocation': self.end_location,
            'status': self.status,
            'currentStepIndex': self.current_step_index,
            'lastPosition': self.last_position,
            'deviationCount': self.deviation_count,
            'originalEta': self.original_eta.isoformat() if self.original_eta else None,
            'currentEta': self.current_eta.isoformat() if self.current_eta else None,
            'startedAt': self.started_at.isoformat() if self.started_at else None,
            'completedAt': self.completed_at.isoformat() if self.completed_at else None,
            'shareExpiresAt': self.share_expires_at.isoformat() if self.share_expires_at else None,
            'request': {
                'id': request.id,
                'trackingId': request.tracking_id,
                'bloodGroup': request.blood_group,
                'hospitalName': request.hospital_name,
                'hospitalAddress': request.hospital_address,
                'urgency': request.urgency,
            } if request else None,
        }


class RoutePosition(db.Model):
    id = db.Column(db.Integer, primary_key=True)
    route_id = db.Column(db.Integer, db.ForeignKey('route.id'), nullable=False, index=True)
    latitude = db.Column(db.Float, nullable=False)
    longitude = db.Column(db.Float, nullable=False)
    bearing = db.Column(db.Float, nullable=True)
    speed = db.Column(db.Float, nullable=True)  # km/h
    accuracy = db.Column(db.Float, nullable=True)
    altitude = db.Column(db.Float, nullable=True)
    is_on_route = db.Column(db.Boolean, nullable=True)
    distance_from_route = db.Column(db.Float, nullable=True)
    recorded_at = db.Column(db.DateTime, default=datetime.utcnow)

    def __repr__(self):
        return f"RoutePosition('{self.route_id}', '{self.latitude}', '{self.longitude}')"
