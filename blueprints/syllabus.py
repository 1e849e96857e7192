"""Syllabus checklist routes: chapters, lectures, misc lectures and DIBY."""

from __future__ import annotations

from flask import Blueprint, jsonify, request

from catalog import get_user_subjects
from helpers import current_gate, current_store, int_arg, json_body, ready_required
from profile_model import ProfileError
from views import build_syllabus

bp = Blueprint("syllabus", __name__)


def _syllabus(subject: str, grade: str | None = None):
    return jsonify(build_syllabus(current_gate().profile, subject, grade or request.args.get("grade", "11")))


def _subject(data: dict) -> str:
    subject = data.get("subject") or request.args.get("subject")
    if not subject:
        raise ProfileError("Subject is required.")
    if subject not in get_user_subjects(current_gate().profile.selected_exams):
        raise ProfileError(f"Subject not available: {subject}")
    return subject


@bp.route("/api/syllabus")
@ready_required
def api_syllabus():
    return jsonify(build_syllabus(
        current_gate().profile, request.args.get("subject"), request.args.get("grade", "11")
    ))


@bp.route("/api/syllabus/chapters", methods=["POST"])
@ready_required
def api_add_chapter():
    data = json_body()
    subject = _subject(data)
    grade = str(data.get("grade", "11"))
    current_store().dispatch(
        "chapter/add",
        subject=subject,
        name=data.get("name", ""),
        total_lectures=data.get("total_lectures"),
        grade=grade,
    )
    return _syllabus(subject, grade), 201


@bp.route("/api/syllabus/chapters/<chapter_id>", methods=["DELETE"])
@ready_required
def api_remove_chapter(chapter_id):
    subject = _subject(json_body())
    gate = current_gate()
    chapter = gate.profile.subject(subject).chapter(chapter_id)

    def remove() -> dict:
        gate.store.dispatch("chapter/remove", subject=subject, chapter_id=chapter_id)
        return {"removed": chapter_id}

    pending = gate.pending.request("delete_chapter", f"Delete chapter '{chapter.name}'?", remove)
    return jsonify({"pending": pending.to_dict()}), 202


@bp.route("/api/syllabus/chapters/<chapter_id>/lectures/<int:index>", methods=["POST"])
@ready_required
def api_toggle_lecture(chapter_id, index):
    subject = _subject(json_body())
    current_store().dispatch("chapter/toggle_lecture", subject=subject, chapter_id=chapter_id, index=index)
    return _syllabus(subject)


@bp.route("/api/syllabus/chapters/<chapter_id>/misc", methods=["POST"])
@ready_required
def api_add_misc(chapter_id):
    data = json_body()
    subject = _subject(data)
    current_store().dispatch(
        "chapter/add_misc",
        subject=subject,
        chapter_id=chapter_id,
        name=data.get("name", ""),
        total=data.get("total"),
    )
    return _syllabus(subject), 201


@bp.route("/api/syllabus/chapters/<chapter_id>/misc/<misc_id>/<int:index>", methods=["POST"])
@ready_required
def api_toggle_misc(chapter_id, misc_id, index):
    subject = _subject(json_body())
    current_store().dispatch(
        "chapter/toggle_misc",
        subject=subject,
        chapter_id=chapter_id,
        misc_id=int_arg(misc_id, "misc lecture id"),
        index=index,
    )
    return _syllabus(subject)


@bp.route("/api/syllabus/chapters/<chapter_id>/misc/<misc_id>", methods=["DELETE"])
@ready_required
def api_remove_misc(chapter_id, misc_id):
    subject = _subject(json_body())
    misc_id = int_arg(misc_id, "misc lecture id")
    gate = current_gate()
    gate.profile.subject(subject).chapter(chapter_id)

    def remove() -> dict:
        gate.store.dispatch("chapter/remove_misc", subject=subject, chapter_id=chapter_id, misc_id=misc_id)
        return {"removed": misc_id}

    pending = gate.pending.request("delete_misc", "Delete this misc lecture?", remove)
    return jsonify({"pending": pending.to_dict()}), 202


@bp.route("/api/syllabus/chapters/<chapter_id>/diby", methods=["POST"])
@ready_required
def api_update_diby(chapter_id):
    data = json_body()
    subject = _subject(data)
    store = current_store()
    for field in ("solved", "total"):
        if field in data:
            store.dispatch("chapter/update_diby", subject=subject, chapter_id=chapter_id,
                           field=field, value=data[field])
    return _syllabus(subject)
