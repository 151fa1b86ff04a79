"""
PBI API Routes
REST endpoints for a client's backlog: listing, CRUD and drag-and-drop reordering.
"""

import logging

from flask import Blueprint, request, jsonify
from flask_login import login_required, current_user

from models import db
from services import backlog_service
from services.backlog_errors import BacklogError
from services.client_service import get_accessible_client
from services.pbi_query_builder import PbiFilter
from utils.etag_helper import with_etag

logger = logging.getLogger(__name__)

api_pbis_bp = Blueprint('api_pbis', __name__, url_prefix='/api')


@api_pbis_bp.route('/clients/<slug>/pbis', methods=['GET'])
@with_etag
@login_required
def list_pbis(slug):
    """Backlog of a client in stack order, optionally filtered by status, type and search."""
    try:
        client = get_accessible_client(current_user, slug)
        filters = PbiFilter.from_args(request.args)
        pbis = backlog_service.list_pbis(current_user, client, filters)

        return jsonify({
            'success': True,
            'client_id': client.id,
            'pbis': [pbi.to_dict() for pbi in pbis],
            'total': len(pbis),
        })

    except BacklogError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception as e:
        logger.error(f"Error listing PBIs for client {slug}: {e}", exc_info=True)
        return jsonify({'success': False, 'message': str(e)}), 500


@api_pbis_bp.route('/clients/<slug>/pbis', methods=['POST'])
@login_required
def create_pbi(slug):
    """Create a PBI at the bottom of the client's backlog."""
    try:
        client = get_accessible_client(current_user, slug)
        pbi = backlog_service.create_pbi(current_user, client, request.get_json(silent=True) or {})

        return jsonify({
            'success': True,
            'message': 'PBI created successfully',
            'pbi': pbi.to_dict()
        }), 201

    except BacklogError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception as e:
        db.session.rollback()
        logger.error(f"Error creating PBI for client {slug}: {e}", exc_info=True)
        return jsonify({'success': False, 'message': str(e)}), 500


@api_pbis_bp.route('/clients/<slug>/pbis/reorder', methods=['POST'])
@login_required
def reorder_pbis(slug):
    """
    Persist a drag-and-drop result.
    Body: {"ordered_ids": [...]} listing every PBI of the client in the new order.
    """
    try:
        client = get_accessible_client(current_user, slug)
        data = request.get_json(silent=True) or {}
        updated = backlog_service.bulk_reorder(current_user, client, data.get('ordered_ids'))

        logger.info(f"[REORDER] Bulk reorder of {updated} PBIs in {client.slug} by user {current_user.id}")

        return jsonify({
            'success': True,
            'message': f'Updated positions for {updated} PBIs',
            'updated': updated
        })

    except BacklogError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception as e:
        db.session.rollback()
        logger.error(f"[REORDER] Error reordering PBIs for client {slug}: {e}", exc_info=True)
        return jsonify({'success': False, 'message': str(e)}), 500


@api_pbis_bp.route('/pbis/<pbi_id>', methods=['GET'])
@login_required
def get_pbi(pbi_id):
    try:
        pbi = backlog_service.get_pbi(current_user, pbi_id)
        return jsonify({'success': True, 'pbi': pbi.to_dict()})

    except BacklogError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception as e:
        logger.error(f"Error fetching PBI {pbi_id}: {e}", exc_info=True)
        return jsonify({'success': False, 'message': str(e)}), 500


@api_pbis_bp.route('/pbis/<pbi_id>', methods=['PATCH', 'PUT'])
@login_required
def update_pbi(pbi_id):
    """Partial update; a changed stack_position moves the PBI within its backlog."""
    try:
        pbi = backlog_service.update_pbi(current_user, pbi_id, request.get_json(silent=True) or {})

        return jsonify({
            'success': True,
            'message': 'PBI updated successfully',
            'pbi': pbi.to_dict()
        })

    except BacklogError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception as e:
        db.session.rollback()
        logger.error(f"Error updating PBI {pbi_id}: {e}", exc_info=True)
        return jsonify({'success': False, 'message': str(e)}), 500


@api_pbis_bp.route('/pbis/<pbi_id>', methods=['DELETE'])
@login_required
def delete_pbi(pbi_id):
    try:
        backlog_service.delete_pbi(current_user, pbi_id)

        return jsonify({
            'success': True,
            'message': 'PBI deleted successfully',
            'pbi_id': pbi_id
        })

    except BacklogError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception as e:
        db.session.rollback()
        logger.error(f"Error deleting PBI {pbi_id}: {e}", exc_info=True)
        return jsonify({'success': False, 'message': str(e)}), 500
