"""
Role checks.

``ROUTE_PERMISSIONS`` maps a path prefix to the roles allowed under it and is
evaluated once per request; the longest matching prefix wins. Single endpoints
outside those prefixes use :func:`roles_required`.
"""
from functools import wraps

from flask import request
from flask_login import current_user

from roktodan import login_manager
from roktodan.errors import AuthenticationError, AuthorizationError

ROUTE_PERMISSIONS = {
    '/api/admin': ('admin',),
    '/api/requests': ('admin', 'volunteer'),
}


@login_manager.unauthorized_handler
def unauthorized():
    raise AuthenticationError('Authentication required')


def allowed_roles_for(path):
    matches = [prefix for prefix in ROUTE_PERMISSIONS
               if path == prefix or path.startswith(prefix + '/')]
    if not matches:
        return None
    return ROUTE_PERMISSIONS[max(matches, key=len)]


def check_roles(roles):
    if not current_user.is_authenticated:
        raise AuthenticationError('Authentication required')
    if current_user.role not in roles:
        raise AuthorizationError('You do not have permission to perform this action')


def enforce_route_permissions():
    roles = allowed_roles_for(request.path)
    if roles is not None:
        check_roles(roles)


def roles_required(*roles):
    def decorator(f):
        @wraps(f)
        def decorated_function(*args, **kwargs):
            check_roles(roles)
            return f(*args, **kwargs)
        return decorated_function
    return decorator
