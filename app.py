"""
PrepPilot Pro: Flask Web Application

JSON backend for an exam-prep tracker: per-user study profiles, focus
timer, syllabus checklist, mock test and KPP logs, and the PrepAI tutor.
"""

from __future__ import annotations

import logging
import os
from typing import Any

from flask import Flask, Response, jsonify
from flask_wtf.csrf import CSRFProtect, generate_csrf

import database
from auth import auth_bp, login_manager
from blueprints import register_blueprints
from document_store import DocumentStoreError
from extensions import ServiceManager, limiter
from logging_config import init_logging
from oauth import init_oauth, is_oauth_available, oauth_bp
from profile_model import ProfileError
from timer_engine import TimerError

logger = logging.getLogger(__name__)

TROUBLE_CONNECTING = "We're having trouble connecting. Please try again."


def create_app(test_config: dict[str, Any] | None = None) -> Flask:
    app = Flask(__name__)

    # Load config
    if test_config is not None:
        from config import TestingConfig
        app.config.from_object(TestingConfig)
        app.config.update(test_config)
    else:
        from config import config_by_name
        env = os.environ.get("FLASK_ENV", "development")
        cfg = config_by_name.get(env, config_by_name["development"])
        app.config.from_object(cfg)
        if hasattr(cfg, "validate"):
            cfg.validate()

    app.secret_key = app.config.get("SECRET_KEY", os.environ.get("SECRET_KEY", "dev-key-change-in-production"))

    # CSRF protection
    csrf = CSRFProtect(app)
    app.extensions["csrf"] = csrf

    # Structured logging
    init_logging(app)

    # Register database teardown
    database.init_app(app)

    # Rate limiter (disabled in testing)
    limiter.init_app(app)
    if app.config.get("TESTING"):
        limiter.enabled = False

    # Identity, documents, scheduler and per-user session gates
    services = ServiceManager.init_app(app)
    services["registry"].start()

    # Register auth blueprint and login manager
    app.register_blueprint(auth_bp)
    login_manager.init_app(app)

    # Register all application blueprints
    register_blueprints(app)

    # Google OAuth (optional)
    init_oauth(app)
    app.register_blueprint(oauth_bp)

    @app.route("/api/csrf-token")
    def csrf_token():
        return jsonify({"csrfToken": generate_csrf(), "googleOAuth": is_oauth_available()})

    # Error mapping
    @app.errorhandler(ProfileError)
    def handle_profile_error(e: ProfileError):
        return jsonify({"error": str(e)}), 400

    @app.errorhandler(TimerError)
    def handle_timer_error(e: TimerError):
        return jsonify({"error": str(e)}), 400

    @app.errorhandler(DocumentStoreError)
    def handle_store_error(e: DocumentStoreError):
        logger.error("Document store unavailable: %s", e)
        return jsonify({"error": TROUBLE_CONNECTING}), 503

    # Security headers
    @app.after_request
    def set_security_headers(response: Response) -> Response:
        response.headers["X-Content-Type-Options"] = "nosniff"
        response.headers["X-Frame-Options"] = "SAMEORIGIN"
        response.headers["Referrer-Policy"] = "strict-origin-when-cross-origin"
        response.headers["Content-Security-Policy"] = "default-src 'self'; img-src 'self' data: https:"
        if not app.debug:
            response.headers["Strict-Transport-Security"] = "max-age=31536000; includeSubDomains"
        return response

    # Start the scheduler for debounced writes and timer ticks
    if not app.config.get("TESTING"):
        from scheduler import init_scheduler
        app.extensions["scheduler_shutdown"] = init_scheduler(
            app, services["scheduler"], services["registry"]
        )

    return app


if __name__ == "__main__":
    create_app().run(debug=True, port=5001)
