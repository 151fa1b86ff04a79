"""
Authentication and authorization utilities.

Provides decorators for protecting routes and the tenant checks every
backlog service runs before touching client data.
"""

from functools import wraps
from flask import jsonify
from flask_login import login_required, current_user

from services.backlog_errors import Forbidden


def can_access_client(user, client_id) -> bool:
    """Flowency admins see every client; everyone else only their own."""
    if user is None or not getattr(user, 'is_authenticated', False):
        return False
    if user.is_flowency_admin:
        return True
    return user.client_id is not None and user.client_id == client_id


def ensure_client_access(user, client_id):
    """Raise Forbidden unless `user` may act on `client_id`."""
    if not can_access_client(user, client_id):
        raise Forbidden("You do not have access to this client", context={'client_id': client_id})


def ensure_can_manage_client(user, client_id):
    """Invitations and team management: Flowency admins, or a client admin of that client."""
    ensure_client_access(user, client_id)
    if not (user.is_flowency_admin or user.is_client_admin):
        raise Forbidden("Client admin privileges required")


def admin_required(f):
    """
    Decorator to protect routes requiring Flowency admin privileges.

    Returns 403 Forbidden for signed-in users without the role.
    """
    @wraps(f)
    @login_required
    def decorated_function(*args, **kwargs):
        if not current_user.is_flowency_admin:
            return jsonify({
                'success': False,
                'error': Forbidden.code,
                'message': 'Admin privileges required'
            }), 403

        return f(*args, **kwargs)

    return decorated_function
