"""
User API Routes
Profiles, role changes and removal of accounts; team listing per client.
"""

import logging

from flask import Blueprint, request, jsonify
from flask_login import login_required, current_user

from models import db
from services import user_service
from services.backlog_errors import BacklogError, ValidationError
from services.client_service import get_client_by_slug

logger = logging.getLogger(__name__)

api_users_bp = Blueprint('api_users', __name__, url_prefix='/api')


@api_users_bp.route('/users/<user_id>', methods=['GET'])
@login_required
def get_user(user_id):
    try:
        user = user_service.get_user(current_user, user_id)
        return jsonify({'success': True, 'user': user.to_dict()})

    except BacklogError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception as e:
        logger.error(f"Error fetching user {user_id}: {e}", exc_info=True)
        return jsonify({'success': False, 'message': str(e)}), 500


@api_users_bp.route('/users/<user_id>', methods=['PATCH'])
@login_required
def update_user(user_id):
    """Body: any of {name, avatar_url, role}."""
    try:
        data = request.get_json(silent=True)
        if data is None:
            data = {}
        if not isinstance(data, dict):
            raise ValidationError("Request body must be a JSON object")

        user = user_service.update_user(current_user, user_id, data)
        return jsonify({'success': True, 'user': user.to_dict()})

    except BacklogError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception as e:
        db.session.rollback()
        logger.error(f"Error updating user {user_id}: {e}", exc_info=True)
        return jsonify({'success': False, 'message': str(e)}), 500


@api_users_bp.route('/users/<user_id>', methods=['DELETE'])
@login_required
def delete_user(user_id):
    try:
        user_service.delete_user(current_user, user_id)
        return jsonify({'success': True, 'user_id': user_id})

    except BacklogError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception as e:
        db.session.rollback()
        logger.error(f"Error deleting user {user_id}: {e}", exc_info=True)
        return jsonify({'success': False, 'message': str(e)}), 500


@api_users_bp.route('/clients/<slug>/users', methods=['GET'])
@login_required
def list_client_users(slug):
    try:
        client = get_client_by_slug(slug)
        users = user_service.list_users_by_client(current_user, client)
        return jsonify({
            'success': True,
            'users': [user.to_dict() for user in users],
            'total': len(users)
        })

    except BacklogError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception as e:
        logger.error(f"Error listing users for client {slug}: {e}", exc_info=True)
        return jsonify({'success': False, 'message': str(e)}), 500
