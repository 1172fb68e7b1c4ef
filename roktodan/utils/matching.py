"""
Donor ranking for a blood request.

Scores out of 100: distance 40 (linear over a 20 km horizon), blood group 30
exact / 20 compatible, availability 10, donation history 10, eligibility 5 and
past response rate 5.
"""
from datetime import datetime

from sqlalchemy import func

from roktodan import db
from roktodan.models.blood_request import Assignment, get_compatible_blood_groups
from roktodan.models.user import Donor
from roktodan.utils.geo import distance_km

MAX_DISTANCE_KM = 20
DEFAULT_LIMIT = 10


def response_rates(donor_ids):
    """Map donor id -> share of answered assignments that were accepted."""
    if not donor_ids:
        return {}
    rows = db.session.query(
        Assignment.assignee_id, Assignment.status, func.count(Assignment.id)
    ).filter(
        Assignment.type == 'donor',
        Assignment.assignee_id.in_(donor_ids),
        Assignment.status.in_(('accepted', 'rejected', 'completed'))
    ).group_by(Assignment.assignee_id, Assignment.status).all()

    answered = {}
    accepted = {}
    for donor_id, status, count in rows:
        answered[donor_id] = answered.get(donor_id, 0) + count
        if status != 'rejected':
            accepted[donor_id] = accepted.get(donor_id, 0) + count
    return {donor_id: accepted.get(donor_id, 0) / total for donor_id, total in answered.items()}


def score_donor(donor, blood_request, response_rate=None, now=None):
    reasons = []
    score = 0.0

    distance = None
    if donor.latitude is not None and donor.longitude is not None:
        distance = distance_km(blood_request.latitude, blood_request.longitude,
                               donor.latitude, donor.longitude)
        score += max(0.0, 40 * (1 - distance / MAX_DISTANCE_KM))
        if distance <= 5:
            reasons.append('Very close')
        elif distance <= 10:
            reasons.append('Nearby')

    if donor.blood_group == blood_request.blood_group:
        score += 30
        reasons.append('Exact blood group')
    elif donor.blood_group in get_compatible_blood_groups(blood_request.blood_group):
        score += 20
        reasons.append('Compatible blood group')

    if donor.is_available:
        score += 10
        reasons.append('Available')

    score += min(10, (donor.total_donations or 0) * 2)
    if (donor.total_donations or 0) >= 3:
        reasons.append('Experienced donor')

    eligible = donor.is_eligible(now)
    if eligible:
        score += 5
    else:
        reasons.append('Not yet eligible')

    # No answered assignments yet counts as a full score
    score += 5 * (1.0 if response_rate is None else response_rate)

    return {
        'donor': donor.to_dict(),
        'score': round(score),
        'distance': round(distance, 1) if distance is not None else None,
        'isEligible': eligible,
        'reasons': reasons,
    }


def find_matching_donors(blood_request, limit=DEFAULT_LIMIT, now=None):
    """Compatible, available and eligible donors, best match first."""
    now = now or datetime.utcnow()
    donors = Donor.query.filter(
        Donor.blood_group.in_(get_compatible_blood_groups(blood_request.blood_group)),
        Donor.is_available.is_(True)
    ).all()
    donors = [donor for donor in donors if donor.is_eligible(now)]

    rates = response_rates([donor.id for donor in donors])
    scored = [score_donor(donor, blood_request, rates.get(donor.id), now) for donor in donors]
    scored.sort(key=lambda match: match['score'], reverse=True)
    return scored[:limit]
