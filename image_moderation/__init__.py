import logging
import os
import time
from typing import Any, Dict, Optional

import sentry_sdk
from flask import Flask, send_from_directory
from flask_socketio import SocketIO
from flask_sqlalchemy import SQLAlchemy

from config.config import config

# SQLAlchemy - database interface
db = SQLAlchemy()
socketio = SocketIO(cors_allowed_origins="*")


def create_app(config_name: str = 'default',
               config_overrides: Optional[Dict[str, Any]] = None) -> Flask:
    app = Flask(__name__)
    app.config.from_object(config[config_name])
    if config_overrides:
        app.config.update(config_overrides)

    # Initialize Sentry
    if app.config.get('SENTRY_DSN'):
        sentry_sdk.init(
            dsn=app.config['SENTRY_DSN'],
            send_default_pii=False,
            traces_sample_rate=1.0,
            environment=config_name,
        )

    # Handle HTTPS proxy headers (for production behind reverse proxy)
    from werkzeug.middleware.proxy_fix import ProxyFix
    app.wsgi_app = ProxyFix(app.wsgi_app, x_proto=1, x_host=1)

    db.init_app(app)
    if app.config.get('USE_DIRECT_POSTGRES', False):
        app.logger.info("Using direct PostgreSQL connection via SQLAlchemy")
    else:
        app.logger.info("Using SQLAlchemy database")

    socketio.init_app(
        app,
        async_mode='threading',
        logger=False,
        engineio_logger=False
    )
    logging.getLogger('socketio').setLevel(logging.ERROR)
    logging.getLogger('engineio').setLevel(logging.ERROR)

    os.makedirs(app.config['UPLOAD_FOLDER'], exist_ok=True)

    # One moderation service per application, built from its config
    from image_moderation.services.moderation_service import ImageModerationService
    app.extensions['image_moderation'] = ImageModerationService.from_config(app.config)

    # Register blueprints
    from image_moderation.routes import websocket  # noqa: F401  (socket handlers)
    from image_moderation.routes.api import api_bp
    from image_moderation.routes.manual_review import manual_review_bp
    from image_moderation.routes.monitoring import monitoring_bp

    app.register_blueprint(api_bp, url_prefix='/api/images')
    app.register_blueprint(manual_review_bp, url_prefix='/api/images/admin')
    app.register_blueprint(monitoring_bp)

    @app.route(f"{app.config['UPLOAD_URL_PREFIX']}/<path:key>")
    def uploaded_file(key):
        return send_from_directory(app.config['UPLOAD_FOLDER'], key)

    # Database initialization with retry logic (only in main process, not reloader)
    if not os.environ.get('WERKZEUG_RUN_MAIN'):
        with app.app_context():
            _initialize_database_with_retry(app)

    return app


def _initialize_database_with_retry(app: Flask, max_retries: int = 3, delay: int = 5) -> None:
    """Initialize database with retry logic for connection pool issues"""
    logger = logging.getLogger(__name__)
    for attempt in range(max_retries):
        try:
            logger.info(f"Attempting database initialization (attempt {attempt + 1}/{max_retries})")
            # Register models on the metadata before create_all
            from image_moderation import models  # noqa: F401
            db.create_all()
            logger.info("Database initialization successful")
            return
        except Exception as e:
            error_msg = str(e).lower()
            if "max clients" in error_msg or "pool" in error_msg:
                logger.warning(f"Database pool issue on attempt {attempt + 1}: {e}")
            else:
                logger.error(f"Database error: {e}")
            if attempt < max_retries - 1:
                logger.info(f"Retrying in {delay} seconds...")
                time.sleep(delay)
                delay *= 2  # Exponential backoff
            else:
                logger.error("Database initialization failed after all retries")
