"""
Shared helpers used across blueprints.

Kept free of blueprint imports to avoid circular dependencies.
"""

from __future__ import annotations

from collections.abc import Callable
from datetime import date
from functools import wraps
from typing import Any

from flask import current_app, g, jsonify, request
from flask_login import current_user, login_required

from extensions import ServiceManager
from profile_model import ProfileError


def json_body() -> dict[str, Any]:
    """Request payload as a dict, from JSON or form data."""
    data = request.get_json(silent=True)
    if isinstance(data, dict):
        return data
    return request.form.to_dict()


def today() -> date:
    """The current date; tests pin it with the TODAY config callable."""
    clock = current_app.config.get("TODAY")
    return clock() if clock else date.today()


def current_user_id() -> int | None:
    if current_user.is_authenticated:
        return current_user.id
    return None


def current_gate():
    """The signed-in user's session gate, loading the profile on first use."""
    if "gate" not in g:
        g.gate = ServiceManager.registry().gate_for(current_user.identity)
    return g.gate


def current_store():
    return current_gate().store


def ready_required(f: Callable) -> Callable:
    """Only let the request through once the gate has reached the dashboard."""
    @wraps(f)
    @login_required
    def decorated(*args: Any, **kwargs: Any) -> Any:
        gate = current_gate()
        if gate.state != "ready":
            return jsonify({"error": "Not available yet.", "state": gate.state}), 403
        return f(*args, **kwargs)
    return decorated


def int_arg(value: Any, label: str = "id") -> int:
    try:
        return int(value)
    except (TypeError, ValueError):
        raise ProfileError(f"Invalid {label}.") from None
