"""
Invitation API Routes
Invite people to a client team and accept invitations by token.
"""

import logging

from flask import Blueprint, request, jsonify
from flask_login import login_required, login_user, current_user

from models import db
from services import invitation_service
from services.backlog_errors import BacklogError
from services.client_service import get_client_by_slug
from utils.auth import admin_required

logger = logging.getLogger(__name__)

api_invitations_bp = Blueprint('api_invitations', __name__, url_prefix='/api')


@api_invitations_bp.route('/invitations', methods=['POST'])
@login_required
def create_invitation():
    """
    Body: {email, client_id, role}. The response carries the token; delivering
    the invite link is up to the caller.
    """
    try:
        data = request.get_json(silent=True) or {}
        invitation = invitation_service.create_invitation(
            current_user,
            email=data.get('email'),
            client_id=data.get('client_id'),
            role=data.get('role'),
        )

        return jsonify({
            'success': True,
            'invitation': invitation.to_dict(),
            'token': invitation.token,
        }), 201

    except BacklogError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception as e:
        db.session.rollback()
        logger.error(f"Error creating invitation: {e}", exc_info=True)
        return jsonify({'success': False, 'message': str(e)}), 500


@api_invitations_bp.route('/invitations/<token>', methods=['GET'])
def lookup_invitation(token):
    """Public lookup used by the accept page; `valid` says whether it can still be accepted."""
    result = invitation_service.validate_invite_token(token)
    return jsonify({'success': True, **result})


@api_invitations_bp.route('/invitations/<token>/accept', methods=['POST'])
def accept_invitation(token):
    """
    Accept and sign in. New users supply name and password; an existing
    account must already be signed in as the invited email.
    """
    try:
        data = request.get_json(silent=True) or {}
        user = invitation_service.accept_invitation(
            token,
            name=data.get('name'),
            password=data.get('password'),
            actor=current_user if current_user.is_authenticated else None,
        )
        login_user(user)

        return jsonify({'success': True, 'user': user.to_dict()})

    except BacklogError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception as e:
        db.session.rollback()
        logger.error(f"Error accepting invitation: {e}", exc_info=True)
        return jsonify({'success': False, 'message': str(e)}), 500


@api_invitations_bp.route('/invitations/<invitation_id>', methods=['DELETE'])
@login_required
def delete_invitation(invitation_id):
    try:
        invitation_service.delete_invitation(current_user, invitation_id)
        return jsonify({'success': True, 'invitation_id': invitation_id})

    except BacklogError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception as e:
        db.session.rollback()
        logger.error(f"Error deleting invitation {invitation_id}: {e}", exc_info=True)
        return jsonify({'success': False, 'message': str(e)}), 500


@api_invitations_bp.route('/clients/<slug>/invitations', methods=['GET'])
@login_required
def list_client_invitations(slug):
    try:
        client = get_client_by_slug(slug)
        invitations = invitation_service.list_pending_invitations(current_user, client)
        return jsonify({
            'success': True,
            'invitations': [invitation.to_dict() for invitation in invitations],
            'total': len(invitations)
        })

    except BacklogError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception as e:
        logger.error(f"Error listing invitations for client {slug}: {e}", exc_info=True)
        return jsonify({'success': False, 'message': str(e)}), 500


@api_invitations_bp.route('/invitations/cleanup', methods=['POST'])
@admin_required
def cleanup_invitations():
    try:
        removed = invitation_service.cleanup_expired_invitations()
        return jsonify({'success': True, 'removed': removed})

    except Exception as e:
        db.session.rollback()
        logger.error(f"[INVITE_CLEANUP] Error removing expired invitations: {e}", exc_info=True)
        return jsonify({'success': False, 'message': str(e)}), 500
