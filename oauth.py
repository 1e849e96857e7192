"""Google sign-in: optional OAuth login alongside email/password."""

from __future__ import annotations

import logging

from authlib.integrations.flask_client import OAuth
from flask import Blueprint, current_app, jsonify, redirect, url_for
from flask_login import login_user

from auth import User
from extensions import ServiceManager
from identity import IdentityError

logger = logging.getLogger(__name__)

oauth_bp = Blueprint("oauth", __name__)

oauth = OAuth()


def init_oauth(app):
    """Register the Google client with the app. Call from create_app()."""
    client_id = app.config.get("GOOGLE_OAUTH_CLIENT_ID", "")
    if not client_id:
        logger.info("GOOGLE_OAUTH_CLIENT_ID not set, Google sign-in disabled")
        return

    oauth.init_app(app)
    oauth.register(
        name="google",
        client_id=client_id,
        client_secret=app.config.get("GOOGLE_OAUTH_CLIENT_SECRET", ""),
        server_metadata_url="https://accounts.google.com/.well-known/openid-configuration",
        client_kwargs={"scope": "openid email profile"},
    )


def is_oauth_available() -> bool:
    return bool(current_app.config.get("GOOGLE_OAUTH_CLIENT_ID", ""))


@oauth_bp.route("/login/google")
def google_login():
    """Redirect to the Google consent screen."""
    if not is_oauth_available():
        return jsonify({"error": "Google login is not configured."}), 404
    redirect_uri = url_for("oauth.google_callback", _external=True)
    return oauth.google.authorize_redirect(redirect_uri)


@oauth_bp.route("/callback/google")
def google_callback():
    if not is_oauth_available():
        return jsonify({"error": "Google login is not configured."}), 404

    try:
        token = oauth.google.authorize_access_token()
        user_info = token.get("userinfo") or oauth.google.userinfo()
    except Exception as e:
        logger.error("Google OAuth error: %s", e)
        return jsonify({"error": "Google login failed. Please try again."}), 400

    email = user_info.get("email", "")
    try:
        user = ServiceManager.identity().sign_in_oauth(
            "google",
            user_info.get("sub", ""),
            email,
            display_name=user_info.get("name", email.split("@")[0]),
            photo_url=user_info.get("picture", ""),
        )
    except IdentityError as e:
        return jsonify({"error": str(e)}), 400

    login_user(User(user), remember=True)
    return redirect(current_app.config.get("BASE_URL", "/"))
