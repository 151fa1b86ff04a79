"""
Backlog application factory.

Configuration comes from the environment (a .env file is loaded first);
`config` overrides individual Flask keys, which is how tests build apps.
"""

import logging
import os
from typing import Any, Dict, Optional

from dotenv import load_dotenv
from flask import Flask, jsonify
from flask_login import LoginManager

from models import db, User
from services.backlog_errors import BacklogError

logger = logging.getLogger(__name__)

login_manager = LoginManager()

DEFAULT_DATABASE_URL = 'sqlite:///backlog.db'


def _configure_logging():
    level = os.getenv('LOG_LEVEL', 'INFO').upper()
    logging.basicConfig(
        level=getattr(logging, level, logging.INFO),
        format='%(asctime)s %(levelname)s %(name)s: %(message)s',
    )


def _config_from_env() -> Dict[str, Any]:
    return {
        'SQLALCHEMY_DATABASE_URI': os.getenv('DATABASE_URL', DEFAULT_DATABASE_URL),
        'SQLALCHEMY_ENGINE_OPTIONS': {'pool_pre_ping': True},
        'SECRET_KEY': os.getenv('SESSION_SECRET'),
        'RANKING_MAX_RETRIES': int(os.getenv('RANKING_MAX_RETRIES', '3')),
        'INVITATION_EXPIRY_DAYS': int(os.getenv('INVITATION_EXPIRY_DAYS', '7')),
        'ATTACHMENT_MAX_BYTES': int(os.getenv('ATTACHMENT_MAX_BYTES', str(10 * 1024 * 1024))),
        'S3_BUCKET': os.getenv('S3_BUCKET'),
        'S3_REGION': os.getenv('S3_REGION', 'eu-west-2'),
        'JSON_SORT_KEYS': False,
    }


@login_manager.user_loader
def load_user(user_id):
    return db.session.get(User, user_id)


@login_manager.unauthorized_handler
def unauthorized():
    return jsonify({
        'success': False,
        'error': 'unauthorized',
        'message': 'Authentication required'
    }), 401


def create_app(config: Optional[Dict[str, Any]] = None, blob_store=None) -> Flask:
    """
    Build the app.

    Args:
        config: Flask config overrides applied after the environment
        blob_store: object storage for attachments (see services.blob_store);
            when omitted an S3 store is built if S3_BUCKET is set, otherwise
            attachments answer with a storage error
    """
    load_dotenv()
    _configure_logging()

    app = Flask(__name__)
    app.config.update(_config_from_env())
    if config:
        app.config.update(config)

    db.init_app(app)
    login_manager.init_app(app)

    if blob_store is None and app.config.get('S3_BUCKET'):
        from services.s3_blob_store import s3_blob_store_from_config
        blob_store = s3_blob_store_from_config(app.config)
    app.extensions['blob_store'] = blob_store

    from routes.auth import auth_bp
    from routes.api_clients import api_clients_bp
    from routes.api_pbis import api_pbis_bp
    from routes.api_comments import api_comments_bp
    from routes.api_attachments import api_attachments_bp
    from routes.api_invitations import api_invitations_bp
    from routes.api_users import api_users_bp

    for blueprint in (auth_bp, api_clients_bp, api_pbis_bp, api_comments_bp,
                      api_attachments_bp, api_invitations_bp, api_users_bp):
        app.register_blueprint(blueprint)

    @app.errorhandler(BacklogError)
    def handle_backlog_error(e):
        return jsonify(e.to_dict()), e.status_code

    @app.get('/health')
    def health():
        return jsonify({'status': 'ok'})

    logger.info(f"Backlog app created ({len(app.blueprints)} blueprints)")
    return app
