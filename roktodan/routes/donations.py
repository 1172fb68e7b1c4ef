from datetime import datetime

from flask import Blueprint, current_app, send_file
from flask_login import current_user, login_required

from roktodan import db
from roktodan.errors import (
    ValidationError, NotFoundError, AuthorizationError, InvalidTransitionError, success
)
from roktodan.forms.assignment_forms import CompleteDonationForm
from roktodan.models.blood_request import Assignment
from roktodan.models.donation import Donation
from roktodan.utils.email import generate_donation_certificate, certificate_number
from roktodan.utils.lifecycle import transition_request, transition_assignment
from roktodan.utils.notifications import notify_donation_completed
from roktodan.utils.permissions import roles_required

donations = Blueprint('donations', __name__)


def get_donation_or_404(donation_id):
    donation = db.session.get(Donation, donation_id)
    if donation is None:
        raise NotFoundError('Donation not found')
    return donation


@donations.route('/complete', methods=['POST'])
@roles_required('donor')
def complete():
    donor = current_user.donor_profile
    if donor is None:
        raise NotFoundError('Donor profile not found')

    form = CompleteDonationForm.from_json().validate_or_raise()
    assignment = db.session.get(Assignment, form.assignment_id.data)
    if assignment is None:
        raise NotFoundError('Assignment not found')
    if assignment.type != 'donor' or assignment.assignee_id != donor.id:
        raise AuthorizationError('This assignment is not yours')
    if assignment.request_id != form.request_id.data:
        raise ValidationError('Assignment does not belong to this request',
                              details={'requestId': ['Does not match the assignment']})

    now = datetime.utcnow()
    blood_request = assignment.request

    # All writes below commit together or not at all
    transition_assignment(assignment, 'completed', now)
    transition_request(blood_request, 'completed', now)
    donation = Donation(
        request_id=blood_request.id,
        assignment_id=assignment.id,
        donor_id=donor.id,
        volunteer_id=blood_request.assigned_volunteer_id,
        units_donated=form.units_donated.data or 1,
        donation_date=now,
        donation_location=form.donation_location.data or blood_request.hospital_name,
        notes=form.notes.data or None
    )
    db.session.add(donation)
    db.session.flush()  # Flush to get the donation ID
    donation.certificate_id = certificate_number(donation)
    donor.record_donation(now)
    db.session.commit()

    current_app.logger.info(
        f"Donation {donation.id} completed for request {blood_request.tracking_id} by donor {donor.id}"
    )
    notify_donation_completed(donation)

    return success({
        'donation': donation.to_dict(),
        'requestStatus': blood_request.status,
        'totalDonations': donor.total_donations,
        'nextEligibleDate': donor.next_eligible_date.isoformat(),
    })


@donations.route('/<int:donation_id>/verify', methods=['POST'])
@roles_required('volunteer')
def verify(donation_id):
    volunteer = current_user.volunteer_profile
    if volunteer is None:
        raise AuthorizationError('Volunteer profile not found')

    donation = get_donation_or_404(donation_id)
    if donation.is_verified:
        raise InvalidTransitionError('Donation is already verified')

    donation.mark_verified(volunteer.id)
    volunteer.requests_handled = (volunteer.requests_handled or 0) + 1
    volunteer.donations_facilitated = (volunteer.donations_facilitated or 0) + 1

    # The volunteer's own coordination work on this request is now done
    for assignment in donation.request.open_assignments('volunteer'):
        if assignment.assignee_id == volunteer.id and assignment.status == 'accepted':
            transition_assignment(assignment, 'completed')
    db.session.flush()

    volunteer_assignments = Assignment.query.filter_by(type='volunteer', assignee_id=volunteer.id)
    total = volunteer_assignments.count()
    if total:
        completed = volunteer_assignments.filter_by(status='completed').count()
        volunteer.success_rate = round(completed / total * 100, 1)
    db.session.commit()

    current_app.logger.info(f"Donation {donation.id} verified by volunteer {volunteer.id}")
    return success({'donation': donation.to_dict(), 'volunteer': volunteer.to_dict()})


@donations.route('/<int:donation_id>/certificate')
@login_required
def certificate(donation_id):
    donation = get_donation_or_404(donation_id)
    owns_donation = current_user.donor_profile is not None and current_user.donor_profile.id == donation.donor_id
    if not owns_donation and not current_user.is_admin():
        raise AuthorizationError('You can only download your own certificates')

    pdf = generate_donation_certificate(donation)
    return send_file(
        pdf,
        mimetype='application/pdf',
        as_attachment=True,
        download_name=f"{donation.certificate_id or certificate_number(donation)}.pdf"
    )
