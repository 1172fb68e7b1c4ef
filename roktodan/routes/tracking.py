from flask import Blueprint, request, current_app
from flask_login import current_user, login_required

from roktodan import db
from roktodan.errors import (
    ValidationError, NotFoundError, AuthenticationError, AuthorizationError, success
)
from roktodan.forms.tracking_forms import (
    PositionForm, RerouteForm, ShareForm, RouteForm, parse_location, parse_waypoints
)
from roktodan.models.blood_request import Assignment
from roktodan.models.route import Route, ROUTE_STATUSES
from roktodan.utils import mapbox, tracking as tracker
from roktodan.utils.lifecycle import is_assignee
from roktodan.utils.permissions import roles_required

tracking = Blueprint('tracking', __name__)


def get_route_or_404(route_id):
    route = db.session.get(Route, route_id)
    if route is None:
        raise NotFoundError('Route not found')
    return route


def can_manage(route):
    if current_user.is_admin() or current_user.is_volunteer():
        return True
    return route.assignment is not None and is_assignee(current_user, route.assignment)


def require_reader(route, token):
    """Signed-in users, or anyone holding a live share token."""
    if current_user.is_authenticated:
        return
    if token and route.share_is_valid(token):
        return
    if token:
        # Expired or wrong tokens look the same as a missing route
        raise NotFoundError('Route not found')
    raise AuthenticationError('Authentication required')


@tracking.route('', methods=['POST'])
@roles_required('admin', 'volunteer')
def create_route():
    payload = request.get_json(silent=True)
    form = RouteForm.from_json(payload).validate_or_raise()

    assignment = db.session.get(Assignment, form.assignment_id.data)
    if assignment is None:
        raise NotFoundError('Assignment not found')

    blood_request = assignment.request
    start_location = parse_location(payload, 'startLocation')
    if 'address' not in start_location:
        address = mapbox.reverse_geocode(start_location['latitude'], start_location['longitude'])
        if address:
            start_location['address'] = address
    end_location = parse_location(payload, 'endLocation', required=False) or {
        'latitude': blood_request.latitude,
        'longitude': blood_request.longitude,
        'address': blood_request.hospital_address,
    }
    waypoints = parse_waypoints(payload)

    route = tracker.create_route(
        assignment, start_location, end_location, waypoints,
        profile=form.profile.data or 'driving-traffic'
    )
    db.session.flush()  # Flush to get the route ID

    share = tracker.create_share_link(route) if form.create_share_link.data else None
    db.session.commit()

    current_app.logger.info(f"Route {route.id} created for assignment {assignment.id}")
    data = route.to_dict()
    if share:
        data['share'] = share
    return success(data, status=201)


@tracking.route('', methods=['GET'])
@login_required
def list_routes():
    query = Route.query
    assignment_id = request.args.get('assignmentId', type=int)
    status = request.args.get('status')

    if assignment_id is not None:
        query = query.filter(Route.assignment_id == assignment_id)
    if status:
        if status not in ROUTE_STATUSES:
            raise ValidationError('Invalid status', details={'status': ['Not a valid choice.']})
        query = query.filter(Route.status == status)

    routes = [route for route in query.order_by(Route.created_at.desc()).all() if can_manage(route)]
    return success([route.to_dict() for route in routes], total=len(routes))


@tracking.route('/<int:route_id>', methods=['DELETE'])
@roles_required('admin', 'volunteer')
def delete_route(route_id):
    route = get_route_or_404(route_id)
    db.session.delete(route)
    db.session.commit()
    current_app.logger.info(f"Route {route_id} deleted by {current_user.role} {current_user.id}")
    return success({'deleted': route_id})


@tracking.route('/<int:route_id>/eta', methods=['GET'])
def get_eta(route_id):
    route = get_route_or_404(route_id)
    require_reader(route, request.args.get('token'))
    return success(tracker.eta_snapshot(route))


@tracking.route('/<int:route_id>/eta', methods=['POST'])
@login_required
def update_position(route_id):
    route = get_route_or_404(route_id)
    if not (current_user.is_admin() or (route.assignment and is_assignee(current_user, route.assignment))):
        raise AuthorizationError('Only the traveller can report positions for this route')

    form = PositionForm.from_json().validate_or_raise()
    sample = {
        'latitude': form.latitude.data,
        'longitude': form.longitude.data,
        'bearing': form.bearing.data,
        'speed': form.speed.data,
        'accuracy': form.accuracy.data,
        'altitude': form.altitude.data,
    }
    return success(tracker.record_position(route, sample))


@tracking.route('/<int:route_id>/reroute', methods=['POST'])
def reroute(route_id):
    route = get_route_or_404(route_id)
    payload = request.get_json(silent=True)
    token = payload.get('token') if isinstance(payload, dict) else None
    require_reader(route, token or request.args.get('token'))

    form = RerouteForm.from_json(payload).validate_or_raise()

    result = tracker.reroute(
        route, form.current_latitude.data, form.current_longitude.data,
        preserve_waypoints=form.preserve_waypoints.data
    )
    db.session.commit()
    return success(result)


@tracking.route('/<int:route_id>/share', methods=['POST'])
@login_required
def create_share(route_id):
    route = get_route_or_404(route_id)
    if not can_manage(route):
        raise AuthorizationError('You cannot share this route')

    form = ShareForm.from_json().validate_or_raise()
    share = tracker.create_share_link(route, form.expires_in_hours.data or tracker.DEFAULT_SHARE_HOURS)
    db.session.commit()

    current_app.logger.info(f"Share link created for route {route.id}")
    return success(share)


@tracking.route('/<int:route_id>/share', methods=['DELETE'])
@login_required
def revoke_share(route_id):
    route = get_route_or_404(route_id)
    if not can_manage(route):
        raise AuthorizationError('You cannot share this route')

    tracker.revoke_share_link(route)
    db.session.commit()

    current_app.logger.info(f"Share link revoked for route {route.id}")
    return success({'revoked': True})
