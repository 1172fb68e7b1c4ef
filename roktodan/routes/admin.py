from flask import Blueprint, request, current_app
from flask_login import current_user

from roktodan import db, bcrypt
from roktodan.errors import ValidationError, NotFoundError, success
from roktodan.forms.assignment_forms import AssignForm
from roktodan.forms.auth_forms import CreateUserForm
from roktodan.models.blood_request import BloodRequest, REQUEST_STATUSES
from roktodan.models.route import Route, LIVE_ROUTE_STATUSES
from roktodan.models.user import User, Volunteer, Admin
from roktodan.utils.analytics import build_report
from roktodan.utils.audit import log_admin_action
from roktodan.utils.lifecycle import (
    transition_request, create_assignment, cancel_request, resolve_assignee
)
from roktodan.utils.notifications import notify_assignment_created

# Every endpoint here is admin-only through the /api/admin prefix rule
admin = Blueprint('admin', __name__)


def get_request_or_404(request_id):
    blood_request = db.session.get(BloodRequest, request_id)
    if blood_request is None:
        raise NotFoundError('Request not found')
    return blood_request


@admin.route('/requests')
def list_requests():
    status = request.args.get('status')
    query = BloodRequest.query
    if status and status != 'all':
        if status not in REQUEST_STATUSES:
            raise ValidationError('Invalid status', details={'status': ['Not a valid choice.']})
        query = query.filter_by(status=status)

    requests = query.order_by(BloodRequest.created_at.desc()).all()
    return success([r.to_dict() for r in requests], total=len(requests))


@admin.route('/requests/<int:request_id>/approve', methods=['POST'])
def approve_request(request_id):
    blood_request = get_request_or_404(request_id)
    transition_request(blood_request, 'approved')
    db.session.commit()

    current_app.logger.info(f"Request {blood_request.tracking_id} approved by admin {current_user.id}")
    log_admin_action(current_user, 'approve_request', 'blood_request', blood_request.id)
    return success(blood_request.to_dict())


@admin.route('/requests/<int:request_id>/assign', methods=['POST'])
def assign_request(request_id):
    blood_request = get_request_or_404(request_id)
    form = AssignForm.from_json().validate_or_raise()

    if form.volunteer_id.data is not None:
        assignment_type, assignee_id = 'volunteer', form.volunteer_id.data
    else:
        assignment_type, assignee_id = 'donor', form.donor_id.data

    assignee = resolve_assignee(assignment_type, assignee_id)
    if assignee is None:
        raise NotFoundError(f"{assignment_type.title()} not found")

    assignment = create_assignment(blood_request, assignment_type, assignee, current_user, form.notes.data)
    db.session.commit()

    current_app.logger.info(
        f"Request {blood_request.tracking_id} assigned to {assignment_type} {assignee.id} by admin {current_user.id}"
    )
    log_admin_action(current_user, 'assign_request', 'blood_request', blood_request.id,
                     {'assigneeId': assignee.id, 'type': assignment_type})
    notify_assignment_created(assignment, assignee)
    return success(assignment.to_dict(), status=201)


@admin.route('/requests/<int:request_id>/cancel', methods=['POST'])
def cancel(request_id):
    blood_request = get_request_or_404(request_id)
    cancel_request(blood_request)
    db.session.commit()

    current_app.logger.info(f"Request {blood_request.tracking_id} cancelled by admin {current_user.id}")
    log_admin_action(current_user, 'cancel_request', 'blood_request', blood_request.id)
    return success(blood_request.to_dict())


@admin.route('/analytics')
def analytics():
    return success(build_report(request.args.get('type', 'all')))


@admin.route('/tracking/active')
def active_tracking():
    routes = Route.query.filter(Route.status.in_(LIVE_ROUTE_STATUSES)).order_by(Route.updated_at.desc()).all()
    return success([route.to_dict() for route in routes], total=len(routes))


@admin.route('/users', methods=['POST'])
def create_user():
    form = CreateUserForm.from_json().validate_or_raise()

    hashed_password = bcrypt.generate_password_hash(form.password.data).decode('utf-8')
    user = User(
        email=form.email.data.lower(),
        password=hashed_password,
        full_name=form.full_name.data,
        phone=form.phone.data,
        role=form.role.data
    )
    db.session.add(user)
    db.session.flush()  # Flush to get the user ID

    if user.role == 'volunteer':
        db.session.add(Volunteer(
            user_id=user.id,
            employee_id=form.employee_id.data or None,
            latitude=form.latitude.data,
            longitude=form.longitude.data,
            address=form.address.data or None,
            district=form.district.data or None,
            division=form.division.data or None,
            coverage_radius_km=form.coverage_radius_km.data or 10
        ))
    else:
        db.session.add(Admin(
            user_id=user.id,
            employee_id=form.employee_id.data or None,
            department=form.department.data or None
        ))
    db.session.commit()

    current_app.logger.info(f"Admin {current_user.id} created {user.role} account {user.id}")
    log_admin_action(current_user, 'create_user', 'user', user.id, {'role': user.role})
    return success(user.to_dict(), status=201)
