"""
Authentication Routes
JSON session login for the backlog UI. Identity is kept in the Flask-Login
session cookie; every /api route reads current_user from it.
"""

import logging

from flask import Blueprint, request, jsonify
from flask_login import login_user, logout_user, login_required, current_user
from sqlalchemy import select

from models import db, User
from models.base import utcnow

logger = logging.getLogger(__name__)

auth_bp = Blueprint('auth', __name__, url_prefix='/api/auth')


@auth_bp.route('/login', methods=['POST'])
def login():
    data = request.get_json(silent=True) or {}
    email = (data.get('email') or '').strip().lower()
    password = data.get('password') or ''
    remember_me = bool(data.get('remember_me'))

    if not email or not password:
        return jsonify({
            'success': False,
            'error': 'validation_error',
            'message': 'Please enter both email and password'
        }), 400

    user = db.session.scalar(select(User).where(User.email == email))
    if user is None or not user.check_password(password):
        logger.warning(f"Login failed for: {email}")
        return jsonify({
            'success': False,
            'error': 'invalid_credentials',
            'message': 'Invalid email or password'
        }), 401

    login_user(user, remember=remember_me)
    user.last_login_at = utcnow()
    db.session.commit()
    logger.info(f"Login successful for user: {user.email}")

    return jsonify({'success': True, 'user': user.to_dict()})


@auth_bp.route('/logout', methods=['POST'])
@login_required
def logout():
    logout_user()
    return jsonify({'success': True, 'message': 'You have been logged out'})


@auth_bp.route('/me', methods=['GET'])
@login_required
def me():
    user = current_user.to_dict()
    user['client'] = current_user.client.to_dict() if current_user.client else None
    return jsonify({'success': True, 'user': user})
