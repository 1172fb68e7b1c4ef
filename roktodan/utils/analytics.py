"""
Read-only aggregations for the admin dashboard.
"""
from datetime import datetime, timedelta

from sqlalchemy import func, case

from roktodan import db
from roktodan.errors import ValidationError
from roktodan.models.blood_request import (
    BloodRequest, Assignment, URGENCY_LEVELS, PENDING_STATUSES, ACTIVE_STATUSES
)
from roktodan.models.user import Donor, Volunteer, User

TREND_WINDOW_DAYS = 30
LEADERBOARD_SIZE = 10


def get_dashboard_stats(now=None):
    now = now or datetime.utcnow()
    start_of_day = datetime(now.year, now.month, now.day)

    return {
        'pendingRequests': BloodRequest.query.filter(BloodRequest.status.in_(PENDING_STATUSES)).count(),
        'activeDonors': Donor.query.filter(Donor.is_available.is_(True)).count(),
        'inTransit': Assignment.query.filter(Assignment.is_in_transit.is_(True)).count(),
        'completedToday': BloodRequest.query.filter(
            BloodRequest.status == 'completed',
            BloodRequest.completed_at >= start_of_day
        ).count(),
        'criticalRequests': BloodRequest.query.filter(
            BloodRequest.urgency == 'critical',
            BloodRequest.status.in_(ACTIVE_STATUSES)
        ).count(),
    }


def get_request_trends(days=TREND_WINDOW_DAYS, now=None):
    """Per-day totals plus status and urgency distributions for the window."""
    now = now or datetime.utcnow()
    since = now - timedelta(days=days)
    in_window = BloodRequest.created_at >= since

    day = func.date(BloodRequest.created_at)
    rows = db.session.query(
        day,
        func.count(BloodRequest.id),
        func.sum(case((BloodRequest.urgency == 'critical', 1), else_=0)),
        func.sum(case((BloodRequest.status == 'completed', 1), else_=0))
    ).filter(in_window).group_by(day).order_by(day).all()

    status_rows = db.session.query(
        BloodRequest.status, func.count(BloodRequest.id)
    ).filter(in_window).group_by(BloodRequest.status).all()

    urgency_rows = db.session.query(
        BloodRequest.urgency, func.count(BloodRequest.id)
    ).filter(in_window).group_by(BloodRequest.urgency).all()

    return {
        'daily': [
            {'date': str(date), 'total': total, 'critical': int(critical or 0), 'completed': int(completed or 0)}
            for date, total, critical, completed in rows
        ],
        'statusDistribution': {status: count for status, count in status_rows},
        'urgencyDistribution': {urgency: count for urgency, count in urgency_rows},
    }


def get_blood_group_demand():
    rows = db.session.query(
        BloodRequest.blood_group,
        func.count(BloodRequest.id),
        func.sum(case((BloodRequest.status.in_(PENDING_STATUSES), 1), else_=0)),
        func.sum(case((BloodRequest.urgency == 'critical', 1), else_=0))
    ).group_by(BloodRequest.blood_group).order_by(func.count(BloodRequest.id).desc()).all()

    return [
        {'bloodGroup': group, 'total': total, 'pending': int(pending or 0), 'critical': int(critical or 0)}
        for group, total, pending, critical in rows
    ]


def get_volunteer_performance(limit=LEADERBOARD_SIZE):
    volunteers = Volunteer.query.join(User).order_by(
        Volunteer.requests_handled.desc(), Volunteer.id
    ).limit(limit).all()
    ids = [volunteer.id for volunteer in volunteers]

    counts = {}
    if ids:
        rows = db.session.query(
            Assignment.assignee_id,
            func.count(Assignment.id),
            func.sum(case((Assignment.status.in_(('accepted', 'completed')), 1), else_=0))
        ).filter(
            Assignment.type == 'volunteer',
            Assignment.assignee_id.in_(ids)
        ).group_by(Assignment.assignee_id).all()
        counts = {assignee_id: (total, int(accepted or 0)) for assignee_id, total, accepted in rows}

    return [
        {
            'id': volunteer.id,
            'name': volunteer.user.full_name,
            'requestsHandled': volunteer.requests_handled,
            'donationsFacilitated': volunteer.donations_facilitated,
            'successRate': volunteer.success_rate,
            'totalAssignments': counts.get(volunteer.id, (0, 0))[0],
            'acceptedAssignments': counts.get(volunteer.id, (0, 0))[1],
        }
        for volunteer in volunteers
    ]


def get_geographic_distribution():
    rows = db.session.query(
        BloodRequest.district,
        func.min(BloodRequest.division),
        func.count(BloodRequest.id),
        func.sum(case((BloodRequest.status.in_(PENDING_STATUSES), 1), else_=0)),
        func.sum(case((BloodRequest.status == 'completed', 1), else_=0))
    ).group_by(BloodRequest.district).order_by(func.count(BloodRequest.id).desc()).all()

    return [
        {
            'district': district,
            'division': division,
            'total': total,
            'pending': int(pending or 0),
            'completed': int(completed or 0),
        }
        for district, division, total, pending, completed in rows
    ]


def _minutes(start, end):
    return (end - start).total_seconds() / 60


def _average(values):
    return round(sum(values) / len(values)) if values else 0


def get_response_times():
    """Mean minutes from submission to approval and to completion."""
    requests = BloodRequest.query.filter(BloodRequest.approved_at.isnot(None)).all()

    approval = {urgency: [] for urgency in URGENCY_LEVELS}
    completion = {urgency: [] for urgency in URGENCY_LEVELS}
    for blood_request in requests:
        tier = blood_request.urgency if blood_request.urgency in approval else 'normal'
        approval[tier].append(_minutes(blood_request.created_at, blood_request.approved_at))
        if blood_request.completed_at:
            completion[tier].append(_minutes(blood_request.created_at, blood_request.completed_at))

    all_approval = [value for values in approval.values() for value in values]
    all_completion = [value for values in completion.values() for value in values]
    return {
        'avgApprovalTime': _average(all_approval),
        'avgCompletionTime': _average(all_completion),
        'byUrgency': [
            {
                'urgency': urgency,
                'avgApprovalTime': _average(approval[urgency]),
                'avgCompletionTime': _average(completion[urgency]),
                'approvedCount': len(approval[urgency]),
                'completedCount': len(completion[urgency]),
            }
            for urgency in URGENCY_LEVELS
        ],
    }


REPORTS = {
    'dashboard': get_dashboard_stats,
    'trends': get_request_trends,
    'bloodGroups': get_blood_group_demand,
    'volunteers': get_volunteer_performance,
    'geographic': get_geographic_distribution,
    'responseTimes': get_response_times,
}


def build_report(report_type='all'):
    if report_type == 'all':
        return {name: report() for name, report in REPORTS.items()}
    if report_type not in REPORTS:
        raise ValidationError(
            'Unknown analytics type',
            details={'type': [f"Must be one of: all, {', '.join(REPORTS)}"]}
        )
    return {report_type: REPORTS[report_type]()}
