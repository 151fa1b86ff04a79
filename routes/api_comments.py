"""
Comment API Routes
Discussion threads on PBIs.
"""

import logging

from flask import Blueprint, request, jsonify
from flask_login import login_required, current_user

from models import db
from services import comment_service
from services.backlog_errors import BacklogError

logger = logging.getLogger(__name__)

api_comments_bp = Blueprint('api_comments', __name__, url_prefix='/api')


@api_comments_bp.route('/pbis/<pbi_id>/comments', methods=['GET'])
@login_required
def list_comments(pbi_id):
    try:
        comments = comment_service.list_comments(current_user, pbi_id)
        return jsonify({
            'success': True,
            'comments': [comment.to_dict() for comment in comments],
            'total': len(comments)
        })

    except BacklogError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception as e:
        logger.error(f"Error listing comments for PBI {pbi_id}: {e}", exc_info=True)
        return jsonify({'success': False, 'message': str(e)}), 500


@api_comments_bp.route('/pbis/<pbi_id>/comments', methods=['POST'])
@login_required
def create_comment(pbi_id):
    try:
        data = request.get_json(silent=True) or {}
        comment = comment_service.create_comment(current_user, pbi_id, data.get('content'))
        return jsonify({'success': True, 'comment': comment.to_dict()}), 201

    except BacklogError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception as e:
        db.session.rollback()
        logger.error(f"Error adding comment to PBI {pbi_id}: {e}", exc_info=True)
        return jsonify({'success': False, 'message': str(e)}), 500


@api_comments_bp.route('/comments/<comment_id>', methods=['GET'])
@login_required
def get_comment(comment_id):
    try:
        comment = comment_service.get_comment(current_user, comment_id)
        return jsonify({'success': True, 'comment': comment.to_dict()})

    except BacklogError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception as e:
        logger.error(f"Error fetching comment {comment_id}: {e}", exc_info=True)
        return jsonify({'success': False, 'message': str(e)}), 500


@api_comments_bp.route('/comments/<comment_id>', methods=['PATCH'])
@login_required
def update_comment(comment_id):
    try:
        data = request.get_json(silent=True) or {}
        comment = comment_service.update_comment(current_user, comment_id, data.get('content'))
        return jsonify({'success': True, 'comment': comment.to_dict()})

    except BacklogError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception as e:
        db.session.rollback()
        logger.error(f"Error updating comment {comment_id}: {e}", exc_info=True)
        return jsonify({'success': False, 'message': str(e)}), 500


@api_comments_bp.route('/comments/<comment_id>', methods=['DELETE'])
@login_required
def delete_comment(comment_id):
    try:
        comment_service.delete_comment(current_user, comment_id)
        return jsonify({'success': True, 'comment_id': comment_id})

    except BacklogError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception as e:
        db.session.rollback()
        logger.error(f"Error deleting comment {comment_id}: {e}", exc_info=True)
        return jsonify({'success': False, 'message': str(e)}), 500
