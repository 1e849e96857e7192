"""App shell routes: gate state, view switching, exams, tasks, settings and
pending confirmations."""

from __future__ import annotations

from flask import Blueprint, jsonify, request, session
from flask_login import current_user, login_required

from audit import recent_events
from catalog import EXAM_CONFIG
from extensions import ServiceManager, limiter
from helpers import current_gate, current_store, int_arg, json_body, ready_required, today
from views import DEFAULT_VIEW, build_shell, build_view, is_view
from profile_model import ProfileError

bp = Blueprint("core", __name__)


def _exam_options() -> list[dict]:
    return [
        {"name": name, "date": cfg.date, "marks": cfg.marks, "type": cfg.type}
        for name, cfg in EXAM_CONFIG.items()
    ]


def app_state(params: dict | None = None) -> dict:
    """Gate state plus, once ready, the current screen's model."""
    if not current_user.is_authenticated:
        return {"state": "signed_out"}

    gate = current_gate()
    body = {"state": gate.state, "user": current_user.to_dict()}
    if gate.state == "exam_selection":
        body["exams"] = _exam_options()
        body["selected"] = list(gate.profile.selected_exams)
    elif gate.state == "ready":
        view = session.get("view", DEFAULT_VIEW)
        body["shell"] = build_shell(gate.profile, current_user.email)
        body["view"] = view
        body["model"] = build_view(view, gate, params or {}, today(), current_user.email)
        body["title"] = gate.timer.title()
        body["pending"] = gate.pending.list()
    return body


@bp.route("/health")
def health():
    return jsonify({"status": "ok"})


@bp.route("/api/app")
def api_app():
    return jsonify(app_state(request.args.to_dict()))


@bp.route("/api/view", methods=["POST"])
@ready_required
def api_view():
    data = json_body()
    name = data.get("view", "")
    if not is_view(name):
        return jsonify({"error": f"Unknown view: {name}"}), 400
    session["view"] = name
    params = {k: v for k, v in data.items() if k != "view"}
    return jsonify(app_state(params))


# ── Exams ──────────────────────────────────────────────────


@bp.route("/api/exams")
@login_required
def api_exams():
    return jsonify({"exams": _exam_options(), "selected": list(current_gate().profile.selected_exams)})


@bp.route("/api/exams", methods=["POST"])
@login_required
def api_select_exams():
    gate = current_gate()
    if gate.state not in ("exam_selection", "ready"):
        return jsonify({"error": "Not available yet.", "state": gate.state}), 403
    exams = json_body().get("exams") or []
    if not isinstance(exams, list):
        return jsonify({"error": "exams must be a list"}), 400
    gate.select_exams(exams)
    return jsonify(app_state())


@bp.route("/api/exams/change", methods=["POST"])
@ready_required
def api_change_exams():
    current_gate().change_exams()
    return jsonify(app_state())


# ── Tasks ──────────────────────────────────────────────────


@bp.route("/api/tasks", methods=["POST"])
@ready_required
def api_add_task():
    data = json_body()
    profile = current_store().dispatch("task/add", text=data.get("text", ""), subject=data.get("subject"))
    return jsonify({"tasks": [t.to_dict() for t in profile.tasks]}), 201


@bp.route("/api/tasks/<task_id>/toggle", methods=["POST"])
@ready_required
def api_toggle_task(task_id):
    profile = current_store().dispatch("task/toggle", task_id=int_arg(task_id, "task id"))
    return jsonify({"tasks": [t.to_dict() for t in profile.tasks]})


@bp.route("/api/tasks/<task_id>", methods=["DELETE"])
@ready_required
def api_remove_task(task_id):
    profile = current_store().dispatch("task/remove", task_id=int_arg(task_id, "task id"))
    return jsonify({"tasks": [t.to_dict() for t in profile.tasks]})


@bp.route("/api/briefing", methods=["POST"])
@ready_required
@limiter.limit("10 per hour")
def api_briefing():
    gate = current_gate()
    return jsonify({"briefing": gate.chat.daily_briefing(gate.profile, today())})


# ── Settings ───────────────────────────────────────────────


@bp.route("/api/settings")
@ready_required
def api_settings():
    model = build_view("settings", current_gate(), {}, today(), current_user.email)
    model["recentActivity"] = recent_events(current_user.id, limit=10)
    return jsonify(model)


@bp.route("/api/settings", methods=["POST"])
@ready_required
def api_update_settings():
    data = json_body()
    profile = current_store().dispatch(
        "settings/update",
        theme=data.get("theme"),
        mode=data.get("mode"),
        username=data.get("username"),
    )
    return jsonify({"settings": profile.to_document()["settings"]})


@bp.route("/api/settings/reset-password", methods=["POST"])
@ready_required
@limiter.limit("3 per hour")
def api_settings_reset_password():
    ServiceManager.identity().send_password_reset(current_user.email)
    return jsonify({"message": "Link sent!"})


@bp.route("/api/goal", methods=["POST"])
@ready_required
def api_goal():
    profile = current_store().dispatch("goal/set", hours=json_body().get("hours"))
    return jsonify({"dailyGoal": profile.daily_goal})


# ── Pending confirmations ──────────────────────────────────


@bp.route("/api/pending")
@ready_required
def api_pending():
    return jsonify({"pending": current_gate().pending.list()})


@bp.route("/api/pending/<action_id>", methods=["POST"])
@ready_required
def api_resolve_pending(action_id):
    accepted = json_body().get("accept")
    if not isinstance(accepted, bool):
        raise ProfileError("accept must be true or false")
    try:
        result = current_gate().pending.resolve(action_id, accepted)
    except KeyError:
        return jsonify({"error": "No such confirmation."}), 404
    return jsonify({"accepted": accepted, "result": result, "app": app_state()})
