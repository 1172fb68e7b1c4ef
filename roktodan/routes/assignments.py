from flask import Blueprint, request, current_app
from flask_login import current_user, login_required

from roktodan import db
from roktodan.errors import NotFoundError, AuthorizationError, InvalidTransitionError, success
from roktodan.forms.assignment_forms import AssignDonorForm, RespondForm
from roktodan.models.blood_request import BloodRequest, Assignment
from roktodan.utils.audit import log_admin_action
from roktodan.utils.lifecycle import (
    create_assignment, transition_assignment, transition_request, resolve_assignee, is_assignee
)
from roktodan.utils.matching import find_matching_donors, DEFAULT_LIMIT
from roktodan.utils.notifications import notify_assignment_created, notify_assignment_rejected

assignments = Blueprint('assignments', __name__)

MAX_MATCHES = 50


def get_request_or_404(request_id):
    blood_request = db.session.get(BloodRequest, request_id)
    if blood_request is None:
        raise NotFoundError('Request not found')
    return blood_request


def get_own_assignment_or_404(assignment_id):
    assignment = db.session.get(Assignment, assignment_id)
    if assignment is None:
        raise NotFoundError('Assignment not found')
    if not is_assignee(current_user, assignment):
        raise AuthorizationError('This assignment is not yours')
    return assignment


# /api/requests/* is limited to admins and volunteers by the prefix rule
@assignments.route('/requests/<int:request_id>/assign-donor', methods=['POST'])
def assign_donor(request_id):
    blood_request = get_request_or_404(request_id)
    form = AssignDonorForm.from_json().validate_or_raise()

    if current_user.is_volunteer():
        volunteer = current_user.volunteer_profile
        if volunteer is None:
            raise AuthorizationError('Volunteer profile not found')
        if blood_request.assigned_volunteer_id and blood_request.assigned_volunteer_id != volunteer.id:
            raise AuthorizationError('Request is coordinated by another volunteer')

    donor = resolve_assignee('donor', form.donor_id.data)
    if donor is None:
        raise NotFoundError('Donor not found')

    assignment = create_assignment(blood_request, 'donor', donor, current_user, form.notes.data)
    db.session.commit()

    current_app.logger.info(
        f"Donor {donor.id} assigned to request {blood_request.tracking_id} by {current_user.role} {current_user.id}"
    )
    if current_user.is_admin():
        log_admin_action(current_user, 'assign_donor', 'blood_request', blood_request.id, {'donorId': donor.id})
    notify_assignment_created(assignment, donor)
    return success(assignment.to_dict(), status=201)


@assignments.route('/requests/<int:request_id>/matching-donors')
def matching_donors(request_id):
    blood_request = get_request_or_404(request_id)
    limit = min(max(request.args.get('limit', DEFAULT_LIMIT, type=int), 1), MAX_MATCHES)
    matches = find_matching_donors(blood_request, limit=limit)
    return success(matches, total=len(matches))


@assignments.route('/assignments/<int:assignment_id>/respond', methods=['POST'])
@login_required
def respond(assignment_id):
    assignment = get_own_assignment_or_404(assignment_id)
    form = RespondForm.from_json().validate_or_raise()
    blood_request = assignment.request

    if form.accept.data:
        transition_assignment(assignment, 'accepted')
        if assignment.type == 'donor':
            transition_request(blood_request, 'donor_confirmed')
    else:
        transition_assignment(assignment, 'rejected')
        if assignment.type == 'volunteer' and blood_request.assigned_volunteer_id == assignment.assignee_id:
            blood_request.assigned_volunteer_id = None
    assignment.response_note = form.note.data or None
    db.session.commit()

    current_app.logger.info(
        f"Assignment {assignment.id} {assignment.status} by {assignment.type} {assignment.assignee_id}"
    )
    if assignment.status == 'rejected':
        # Request stays where it is until an admin assigns someone else
        notify_assignment_rejected(assignment, resolve_assignee(assignment.type, assignment.assignee_id))

    return success({'assignment': assignment.to_dict(), 'requestStatus': blood_request.status})


@assignments.route('/assignments/<int:assignment_id>/start-transit', methods=['POST'])
@login_required
def start_transit(assignment_id):
    assignment = get_own_assignment_or_404(assignment_id)
    if assignment.status != 'accepted':
        raise InvalidTransitionError('Only an accepted assignment can start transit')

    blood_request = assignment.request
    if blood_request.status != 'in_progress':
        transition_request(blood_request, 'in_progress')
    assignment.is_in_transit = True
    db.session.commit()

    current_app.logger.info(f"Assignment {assignment.id} in transit for request {blood_request.tracking_id}")
    return success({'assignment': assignment.to_dict(), 'requestStatus': blood_request.status})
