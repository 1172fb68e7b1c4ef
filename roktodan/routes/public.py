from datetime import datetime, timedelta

from flask import Blueprint, request, current_app
from sqlalchemy import func

from roktodan import db
from roktodan.errors import ValidationError, NotFoundError, InternalError, success
from roktodan.forms.request_forms import BloodRequestForm
from roktodan.models.blood_request import (
    BloodRequest, BLOOD_GROUPS, URGENCY_LEVELS, ACTIVE_STATUSES, REQUEST_STATUSES
)
from roktodan.models.donation import Donation
from roktodan.models.user import Donor
from roktodan.utils.email import request_submitted_body
from roktodan.utils.intake import generate_tracking_id, classify_urgency, is_valid_tracking_id
from roktodan.utils.notifications import notify_request_submitted

public = Blueprint('public', __name__)

TRACKING_ID_ATTEMPTS = 5


def _unique_tracking_id(now):
    for _ in range(TRACKING_ID_ATTEMPTS):
        tracking_id = generate_tracking_id(now)
        if not BloodRequest.query.filter_by(tracking_id=tracking_id).first():
            return tracking_id
    raise InternalError('Could not allocate a tracking ID, please try again')


@public.route('/request-blood', methods=['POST'])
def request_blood():
    form = BloodRequestForm.from_json().validate_or_raise()

    now = datetime.utcnow()
    urgency, is_emergency = classify_urgency(form.needed_by.data, form.is_emergency.data, now)

    blood_request = BloodRequest(
        tracking_id=_unique_tracking_id(now),
        requester_type='public',
        requester_name=form.requester_name.data,
        requester_phone=form.requester_phone.data,
        requester_email=form.requester_email.data or None,
        patient_name=form.patient_name.data,
        patient_age=form.patient_age.data,
        patient_gender=form.patient_gender.data or None,
        blood_group=form.blood_group.data,
        units_needed=form.units_needed.data or 1,
        hospital_name=form.hospital_name.data,
        hospital_address=form.hospital_address.data,
        latitude=form.latitude.data,
        longitude=form.longitude.data,
        district=form.district.data,
        division=form.division.data,
        reason=form.reason.data or None,
        needed_by=form.needed_by.data,
        is_emergency=is_emergency,
        urgency=urgency,
        status='submitted',
        created_at=now,
        updated_at=now
    )
    db.session.add(blood_request)
    db.session.commit()
    current_app.logger.info(f"Blood request {blood_request.tracking_id} submitted ({urgency})")

    if blood_request.requester_email:
        result = notify_request_submitted(blood_request, request_submitted_body(blood_request))
        if not result.get('success'):
            current_app.logger.warning(f"Failed to send request confirmation: {result}")

    return success({
        'trackingId': blood_request.tracking_id,
        'status': blood_request.status,
        'urgency': blood_request.urgency,
        'isEmergency': blood_request.is_emergency,
    })


@public.route('/track/<tracking_id>')
def track_request(tracking_id):
    tracking_id = tracking_id.strip().upper()
    blood_request = None
    if is_valid_tracking_id(tracking_id):
        blood_request = BloodRequest.query.filter_by(tracking_id=tracking_id).first()
    if blood_request is None:
        raise NotFoundError('Request not found')
    return success(blood_request.to_public_dict())


def _parse_bounds(value):
    try:
        bounds = [float(part) for part in value.split(',')]
    except ValueError:
        bounds = []
    if len(bounds) != 4:
        raise ValidationError('Invalid bounds', details={'bounds': ['Expected lat1,lng1,lat2,lng2']})
    return bounds


@public.route('/map/markers')
def map_markers():
    blood_group = request.args.get('bloodGroup')
    urgency = request.args.get('urgency')
    bounds = request.args.get('bounds')

    query = BloodRequest.query.filter(BloodRequest.status.in_(ACTIVE_STATUSES))

    if blood_group and blood_group != 'all':
        if blood_group not in BLOOD_GROUPS:
            raise ValidationError('Invalid blood group', details={'bloodGroup': ['Not a valid choice.']})
        query = query.filter(BloodRequest.blood_group == blood_group)

    if urgency and urgency != 'all':
        if urgency not in URGENCY_LEVELS:
            raise ValidationError('Invalid urgency', details={'urgency': ['Not a valid choice.']})
        query = query.filter(BloodRequest.urgency == urgency)

    if bounds:
        lat1, lng1, lat2, lng2 = _parse_bounds(bounds)
        query = query.filter(
            BloodRequest.latitude.between(min(lat1, lat2), max(lat1, lat2)),
            BloodRequest.longitude.between(min(lng1, lng2), max(lng1, lng2))
        )

    markers = [r.to_marker() for r in query.order_by(BloodRequest.created_at.desc()).all()]
    return success(markers, total=len(markers))


@public.route('/statistics')
def statistics():
    week_ago = datetime.utcnow() - timedelta(days=7)

    by_group = dict(db.session.query(
        BloodRequest.blood_group, func.count(BloodRequest.id)
    ).group_by(BloodRequest.blood_group).all())
    by_status = dict(db.session.query(
        BloodRequest.status, func.count(BloodRequest.id)
    ).group_by(BloodRequest.status).all())

    total_requests = sum(by_status.values())
    completed = by_status.get('completed', 0)
    cancelled = by_status.get('cancelled', 0)
    closed = completed + cancelled

    return success({
        'totalRequests': total_requests,
        'activeRequests': sum(by_status.get(s, 0) for s in ACTIVE_STATUSES),
        'completedRequests': completed,
        'totalDonors': Donor.query.count(),
        'activeDonors': Donor.query.filter(Donor.is_available.is_(True)).count(),
        'totalDonations': Donation.query.count(),
        'requestsByBloodGroup': {group: by_group.get(group, 0) for group in BLOOD_GROUPS},
        'requestsByStatus': {status: by_status.get(status, 0) for status in REQUEST_STATUSES},
        'recentTrends': {
            'lastWeekRequests': BloodRequest.query.filter(BloodRequest.created_at >= week_ago).count(),
            'lastWeekDonations': Donation.query.filter(Donation.donation_date >= week_ago).count(),
            'successRate': round(completed / closed * 100, 1) if closed else 0,
        },
    })
