"""Mock test log and Physics KPP (practice paper) tracker routes."""

from __future__ import annotations

from flask import Blueprint, jsonify, request

from helpers import current_gate, current_store, int_arg, json_body, ready_required
from views import build_kpp, build_mocks

bp = Blueprint("mocks", __name__)


# ── Mock tests ─────────────────────────────────────────────


@bp.route("/api/mocks")
@ready_required
def api_mocks():
    return jsonify(build_mocks(current_gate().profile, request.args.get("type", "All")))


@bp.route("/api/mocks", methods=["POST"])
@ready_required
def api_add_mock():
    data = json_body()
    profile = current_store().dispatch(
        "mock/add",
        name=data.get("name", ""),
        date=data.get("date", ""),
        type=data.get("type") or current_gate().profile.selected_exams[0],
        p=data.get("p"),
        c=data.get("c"),
        m=data.get("m"),
        max_marks=data.get("max_marks"),
        reminder=bool(data.get("reminder", False)),
    )
    body = build_mocks(profile, request.args.get("type", "All"))
    if data.get("reminder"):
        # The browser asks for notification permission on receipt
        body["requestNotificationPermission"] = True
    return jsonify(body), 201


@bp.route("/api/mocks/<test_id>", methods=["DELETE"])
@ready_required
def api_remove_mock(test_id):
    test_id = int_arg(test_id, "test id")
    gate = current_gate()

    def remove() -> dict:
        gate.store.dispatch("mock/remove", test_id=test_id)
        return {"removed": test_id}

    pending = gate.pending.request("delete_mock", "Delete record?", remove)
    return jsonify({"pending": pending.to_dict()}), 202


# ── KPP ────────────────────────────────────────────────────


@bp.route("/api/kpp")
@ready_required
def api_kpp():
    return jsonify(build_kpp(current_gate().profile))


@bp.route("/api/kpp", methods=["POST"])
@ready_required
def api_add_kpp():
    data = json_body()
    profile = current_store().dispatch(
        "kpp/add",
        name=data.get("name", ""),
        chapter=data.get("chapter", ""),
        attempted=bool(data.get("attempted", False)),
        corrected=bool(data.get("corrected", False)),
        my_score=data.get("myScore", 0),
        total_score=data.get("totalScore", 0),
    )
    return jsonify(build_kpp(profile)), 201


@bp.route("/api/kpp/<kpp_id>", methods=["PATCH"])
@ready_required
def api_update_kpp(kpp_id):
    kpp_id = int_arg(kpp_id, "KPP id")
    store = current_store()
    for field, value in json_body().items():
        store.dispatch("kpp/update", kpp_id=kpp_id, field=field, value=value)
    return jsonify(build_kpp(store.value))


@bp.route("/api/kpp/<kpp_id>", methods=["DELETE"])
@ready_required
def api_remove_kpp(kpp_id):
    kpp_id = int_arg(kpp_id, "KPP id")
    gate = current_gate()

    def remove() -> dict:
        gate.store.dispatch("kpp/remove", kpp_id=kpp_id)
        return {"removed": kpp_id}

    pending = gate.pending.request("delete_kpp", "Delete KPP?", remove)
    return jsonify({"pending": pending.to_dict()}), 202
