"""
Attachment API Routes
Presigned upload flow for files attached to PBIs. The bytes never pass
through this app; it only signs URLs and records metadata.
"""

import logging

from flask import Blueprint, request, jsonify
from flask_login import login_required, current_user

from models import db
from services import attachment_service
from services.backlog_errors import BacklogError, ValidationError

logger = logging.getLogger(__name__)

api_attachments_bp = Blueprint('api_attachments', __name__, url_prefix='/api')

UPLOAD_ACTIONS = ('request-upload', 'confirm-upload')


@api_attachments_bp.route('/pbis/<pbi_id>/attachments', methods=['GET'])
@login_required
def list_attachments(pbi_id):
    try:
        attachments = attachment_service.list_attachments(current_user, pbi_id)
        return jsonify({'success': True, 'attachments': attachments, 'total': len(attachments)})

    except BacklogError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception as e:
        logger.error(f"Error listing attachments for PBI {pbi_id}: {e}", exc_info=True)
        return jsonify({'success': False, 'message': str(e)}), 500


@api_attachments_bp.route('/pbis/<pbi_id>/attachments', methods=['POST'])
@login_required
def upload_attachment(pbi_id):
    """
    Two-step upload.
    action=request-upload: {filename, content_type, size_bytes} -> presigned PUT URL and storage key
    action=confirm-upload: the same fields plus storage_key -> attachment record
    """
    try:
        data = request.get_json(silent=True) or {}
        action = data.get('action')
        if action not in UPLOAD_ACTIONS:
            raise ValidationError("Invalid action. Must be: request-upload, confirm-upload")

        if action == 'request-upload':
            result = attachment_service.request_upload(
                current_user, pbi_id,
                filename=data.get('filename'),
                content_type=data.get('content_type'),
                size_bytes=data.get('size_bytes'),
            )
            return jsonify({'success': True, **result})

        attachment = attachment_service.confirm_upload(
            current_user, pbi_id,
            filename=data.get('filename'),
            content_type=data.get('content_type'),
            size_bytes=data.get('size_bytes'),
            storage_key=data.get('storage_key'),
        )
        return jsonify({'success': True, 'attachment': attachment}), 201

    except BacklogError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception as e:
        db.session.rollback()
        logger.error(f"Error uploading attachment for PBI {pbi_id}: {e}", exc_info=True)
        return jsonify({'success': False, 'message': str(e)}), 500


@api_attachments_bp.route('/attachments/<attachment_id>', methods=['GET'])
@login_required
def get_attachment(attachment_id):
    try:
        attachment = attachment_service.get_attachment(current_user, attachment_id)
        return jsonify({'success': True, 'attachment': attachment})

    except BacklogError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception as e:
        logger.error(f"Error fetching attachment {attachment_id}: {e}", exc_info=True)
        return jsonify({'success': False, 'message': str(e)}), 500


@api_attachments_bp.route('/attachments/<attachment_id>', methods=['DELETE'])
@login_required
def delete_attachment(attachment_id):
    try:
        attachment_service.delete_attachment(current_user, attachment_id)
        return jsonify({'success': True, 'attachment_id': attachment_id})

    except BacklogError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception as e:
        db.session.rollback()
        logger.error(f"Error deleting attachment {attachment_id}: {e}", exc_info=True)
        return jsonify({'success': False, 'message': str(e)}), 500
