"""
Client API Routes
Tenant management: Flowency admins create, archive and restore clients;
client admins may edit their own client's details.
"""

import logging

from flask import Blueprint, request, jsonify
from flask_login import login_required, current_user

from models import db
from services import client_service
from services.backlog_errors import BacklogError
from utils.auth import admin_required, ensure_can_manage_client

logger = logging.getLogger(__name__)

api_clients_bp = Blueprint('api_clients', __name__, url_prefix='/api/clients')


@api_clients_bp.route('', methods=['GET'])
@login_required
def list_clients():
    """All clients for Flowency admins; a client user only sees their own."""
    try:
        if current_user.is_flowency_admin:
            include_archived = request.args.get('include_archived', 'false').lower() == 'true'
            clients = client_service.list_clients(include_archived=include_archived)
        else:
            clients = [current_user.client] if current_user.client else []

        return jsonify({
            'success': True,
            'clients': [client.to_dict() for client in clients],
            'total': len(clients)
        })

    except BacklogError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception as e:
        logger.error(f"Error listing clients: {e}", exc_info=True)
        return jsonify({'success': False, 'message': str(e)}), 500


@api_clients_bp.route('', methods=['POST'])
@admin_required
def create_client():
    try:
        data = request.get_json(silent=True) or {}
        client = client_service.create_client(
            name=data.get('name'),
            slug=data.get('slug'),
            logo_url=data.get('logo_url'),
            description=data.get('description'),
        )
        return jsonify({'success': True, 'client': client.to_dict()}), 201

    except BacklogError as e:
        db.session.rollback()
        return jsonify(e.to_dict()), e.status_code
    except Exception as e:
        db.session.rollback()
        logger.error(f"Error creating client: {e}", exc_info=True)
        return jsonify({'success': False, 'message': str(e)}), 500


@api_clients_bp.route('/<slug>', methods=['GET'])
@login_required
def get_client(slug):
    try:
        client = client_service.get_accessible_client(current_user, slug)
        return jsonify({
            'success': True,
            'client': client.to_dict(),
            'stats': client_service.get_client_stats(client)
        })

    except BacklogError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception as e:
        logger.error(f"Error fetching client {slug}: {e}", exc_info=True)
        return jsonify({'success': False, 'message': str(e)}), 500


@api_clients_bp.route('/<slug>', methods=['PATCH'])
@login_required
def update_client(slug):
    try:
        client = client_service.get_client_by_slug(slug)
        ensure_can_manage_client(current_user, client.id)
        client = client_service.update_client(client, request.get_json(silent=True) or {})
        return jsonify({'success': True, 'client': client.to_dict()})

    except BacklogError as e:
        db.session.rollback()
        return jsonify(e.to_dict()), e.status_code
    except Exception as e:
        db.session.rollback()
        logger.error(f"Error updating client {slug}: {e}", exc_info=True)
        return jsonify({'success': False, 'message': str(e)}), 500


@api_clients_bp.route('/<slug>', methods=['DELETE'])
@admin_required
def archive_client(slug):
    """Soft archive; the backlog is kept and the client can be restored."""
    try:
        client = client_service.archive_client(client_service.get_client_by_slug(slug))
        return jsonify({'success': True, 'client': client.to_dict()})

    except BacklogError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception as e:
        db.session.rollback()
        logger.error(f"Error archiving client {slug}: {e}", exc_info=True)
        return jsonify({'success': False, 'message': str(e)}), 500


@api_clients_bp.route('/<slug>/restore', methods=['POST'])
@admin_required
def restore_client(slug):
    try:
        client = client_service.restore_client(client_service.get_client_by_slug(slug))
        return jsonify({'success': True, 'client': client.to_dict()})

    except BacklogError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception as e:
        db.session.rollback()
        logger.error(f"Error restoring client {slug}: {e}", exc_info=True)
        return jsonify({'success': False, 'message': str(e)}), 500
