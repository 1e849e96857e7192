"""
User Authentication: Flask-Login blueprint.

JSON routes for register, login, logout, email verification and password
reset. The account rules live in ``identity.IdentityProvider``; this module
only maps requests onto it and keeps the Flask-Login session in step.
"""

from __future__ import annotations

from flask import Blueprint, jsonify
from flask_login import LoginManager, UserMixin, current_user, login_required, login_user, logout_user

from extensions import ServiceManager, limiter
from helpers import json_body
from identity import IdentityError, IdentityUser

auth_bp = Blueprint("auth", __name__)
login_manager = LoginManager()


class User(UserMixin):
    """Wraps an IdentityUser for Flask-Login."""

    def __init__(self, identity_user: IdentityUser):
        self.identity = identity_user
        self.id = identity_user.id
        self.email = identity_user.email
        self.email_verified = identity_user.email_verified

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "email": self.email,
            "emailVerified": self.email_verified,
            "displayName": self.identity.display_name,
            "photoUrl": self.identity.photo_url,
        }


@login_manager.user_loader
def load_user(user_id):
    user = ServiceManager.identity().get_user(int(user_id))
    return User(user) if user else None


@login_manager.unauthorized_handler
def unauthorized():
    return jsonify({"error": "Sign in required."}), 401


def _signed_in(user: IdentityUser, status: int = 200):
    login_user(User(user), remember=True)
    gate = ServiceManager.registry().get(user.id)
    return jsonify({
        "user": User(user).to_dict(),
        "state": gate.state if gate else None,
    }), status


@auth_bp.route("/register", methods=["POST"])
@limiter.limit("3 per hour")
def register():
    data = json_body()
    password = data.get("password", "")
    confirm = data.get("confirm_password", password)
    if password != confirm:
        return jsonify({"error": "Passwords do not match."}), 400

    try:
        user = ServiceManager.identity().sign_up(
            data.get("email", ""), password, data.get("name", "")
        )
    except IdentityError as e:
        return jsonify({"error": str(e)}), 400
    return _signed_in(user, 201)


@auth_bp.route("/login", methods=["POST"])
@limiter.limit("5 per 15 minutes")
def login():
    data = json_body()
    try:
        user = ServiceManager.identity().sign_in(data.get("email", ""), data.get("password", ""))
    except IdentityError as e:
        return jsonify({"error": str(e)}), 401
    return _signed_in(user)


@auth_bp.route("/logout", methods=["POST"])
def logout():
    uid = current_user.id if current_user.is_authenticated else None
    ServiceManager.identity().sign_out(uid)
    logout_user()
    return jsonify({"success": True})


@auth_bp.route("/verify-email/<token>")
def verify_email(token):
    user = ServiceManager.identity().verify_email(token)
    if user is None:
        return jsonify({"error": "Invalid or expired verification link."}), 400
    return jsonify({"verified": True, "email": user.email})


@auth_bp.route("/resend-verification", methods=["POST"])
@login_required
@limiter.limit("3 per hour")
def resend_verification():
    sent = ServiceManager.identity().send_email_verification(current_user.email)
    return jsonify({"sent": sent})


@auth_bp.route("/forgot-password", methods=["POST"])
@limiter.limit("3 per hour")
def forgot_password():
    ServiceManager.identity().send_password_reset(json_body().get("email", ""))
    return jsonify({"message": "If an account exists with that email, a reset link has been sent."})


@auth_bp.route("/reset-password/<int:user_id>/<token>", methods=["POST"])
def reset_password(user_id, token):
    data = json_body()
    password = data.get("password", "")
    if password != data.get("confirm_password", password):
        return jsonify({"error": "Passwords do not match."}), 400
    try:
        ServiceManager.identity().reset_password(user_id, token, password)
    except IdentityError as e:
        return jsonify({"error": str(e)}), 400
    return jsonify({"success": True})


@auth_bp.route("/api/me")
@login_required
def me():
    return jsonify({"user": current_user.to_dict()})
