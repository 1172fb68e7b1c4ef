"""
Blood request lifecycle.

Requests move forward through a fixed graph; every write to ``status`` goes
through :func:`transition_request` so a handler cannot skip or rewind a step.
"""
import logging
from datetime import datetime

from roktodan import db
from roktodan.errors import InvalidTransitionError, ValidationError
from roktodan.models.blood_request import Assignment, get_compatible_blood_groups
from roktodan.models.user import Donor, Volunteer

logger = logging.getLogger(__name__)

REQUEST_TRANSITIONS = {
    'submitted': ('approved', 'cancelled'),
    'approved': ('volunteer_assigned', 'donor_assigned', 'cancelled'),
    # Staying in an *_assigned status is a re-assignment after a rejection
    'volunteer_assigned': ('volunteer_assigned', 'donor_assigned', 'cancelled'),
    'donor_assigned': ('donor_confirmed', 'donor_assigned', 'cancelled'),
    'donor_confirmed': ('in_progress', 'completed', 'cancelled'),
    'in_progress': ('completed', 'cancelled'),
    'completed': (),
    'cancelled': (),
}

ASSIGNMENT_TRANSITIONS = {
    'pending': ('accepted', 'rejected', 'cancelled'),
    'accepted': ('completed', 'cancelled'),
    'rejected': (),
    'completed': (),
    'cancelled': (),
}

# Status -> timestamp column stamped on entry
REQUEST_TIMESTAMPS = {
    'approved': 'approved_at',
    'in_progress': 'in_progress_at',
    'completed': 'completed_at',
    'cancelled': 'cancelled_at',
}

ASSIGNEE_MODELS = {
    'donor': Donor,
    'volunteer': Volunteer,
}


def can_transition(current, target):
    return target in REQUEST_TRANSITIONS.get(current, ())


def transition_request(blood_request, target, now=None):
    """Move ``blood_request`` to ``target`` or raise InvalidTransitionError."""
    current = blood_request.status
    if not can_transition(current, target):
        raise InvalidTransitionError(f"Cannot move request from '{current}' to '{target}'")

    now = now or datetime.utcnow()
    blood_request.status = target
    column = REQUEST_TIMESTAMPS.get(target)
    if column:
        setattr(blood_request, column, now)
    blood_request.updated_at = now

    logger.info(f"Request {blood_request.tracking_id}: {current} -> {target}")
    return blood_request


def transition_assignment(assignment, target, now=None):
    current = assignment.status
    if target not in ASSIGNMENT_TRANSITIONS.get(current, ()):
        raise InvalidTransitionError(f"Cannot move assignment from '{current}' to '{target}'")

    now = now or datetime.utcnow()
    assignment.status = target
    if target in ('accepted', 'rejected'):
        assignment.responded_at = now
    if target in ('completed', 'cancelled', 'rejected'):
        assignment.is_in_transit = False
    assignment.updated_at = now
    return assignment


def resolve_assignee(assignment_type, assignee_id):
    """Look up the donor or volunteer row an assignment points at."""
    model = ASSIGNEE_MODELS.get(assignment_type)
    if model is None or assignee_id is None:
        return None
    return db.session.get(model, assignee_id)


def profile_for(user, assignment_type):
    """Return ``user``'s profile of the given assignee type, if any."""
    if user is None or not getattr(user, 'is_authenticated', False):
        return None
    if assignment_type == 'donor':
        return user.donor_profile
    if assignment_type == 'volunteer':
        return user.volunteer_profile
    return None


def is_assignee(user, assignment):
    profile = profile_for(user, assignment.type)
    return profile is not None and profile.id == assignment.assignee_id


def check_assignable(blood_request, assignment_type, assignee, now=None):
    """Raise unless ``assignee`` may take a new assignment on the request."""
    target = f"{assignment_type}_assigned"
    if not can_transition(blood_request.status, target):
        raise InvalidTransitionError(f"Cannot assign a {assignment_type} while request is '{blood_request.status}'")
    if blood_request.open_assignments(assignment_type):
        raise InvalidTransitionError(f"Request already has an open {assignment_type} assignment")

    if assignment_type == 'donor':
        if assignee.blood_group not in get_compatible_blood_groups(blood_request.blood_group):
            raise ValidationError(
                'Donor blood group is not compatible',
                details={'donorId': [f"{assignee.blood_group} cannot donate to {blood_request.blood_group}"]}
            )
        if not assignee.is_available or not assignee.is_eligible(now):
            raise ValidationError('Donor is not available', details={'donorId': ['Donor is not available to donate']})
    elif not assignee.is_active:
        raise ValidationError('Volunteer is not active', details={'volunteerId': ['Volunteer is not active']})


def create_assignment(blood_request, assignment_type, assignee, assigned_by, notes=None, now=None):
    """
    Assign a donor or volunteer to a request and advance the request status.

    The caller commits.
    """
    now = now or datetime.utcnow()
    check_assignable(blood_request, assignment_type, assignee, now)

    transition_request(blood_request, f"{assignment_type}_assigned", now)
    if assignment_type == 'volunteer':
        blood_request.assigned_volunteer_id = assignee.id

    assignment = Assignment(
        request_id=blood_request.id,
        type=assignment_type,
        assignee_id=assignee.id,
        assigned_by=assigned_by.id,
        status='pending',
        notes=notes or None,
        created_at=now,
        updated_at=now
    )
    db.session.add(assignment)
    blood_request.assignments.append(assignment)
    return assignment


def cancel_request(blood_request, now=None):
    now = now or datetime.utcnow()
    transition_request(blood_request, 'cancelled', now)
    for assignment in blood_request.open_assignments():
        transition_assignment(assignment, 'cancelled', now)
    return blood_request
