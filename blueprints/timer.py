"""Focus timer routes, the floating clock frame and the timer background."""

from __future__ import annotations

import base64
import io
import logging

from flask import Blueprint, Response, jsonify, request
from PIL import Image, UnidentifiedImageError

from catalog import get_theme, get_user_subjects
from helpers import current_gate, current_store, json_body, ready_required, today
from profile_model import ProfileError
from timer_engine import FloatingDisplayError, format_clock, render_floating_frame, request_stop
from views import build_timer

logger = logging.getLogger(__name__)

bp = Blueprint("timer", __name__)

FLOATING_FAILED = "Floating mode failed. Try Chrome Desktop."
ALLOWED_IMAGE_FORMATS = {"PNG": "image/png", "JPEG": "image/jpeg", "GIF": "image/gif", "WEBP": "image/webp"}


def _timer_view():
    gate = current_gate()
    return build_timer(gate.profile, gate.timer, today())


@bp.route("/api/timer")
@ready_required
def api_timer():
    return jsonify(_timer_view())


@bp.route("/api/timer/mode", methods=["POST"])
@ready_required
def api_timer_mode():
    current_gate().timer.set_mode(json_body().get("mode", ""))
    return jsonify(_timer_view())


@bp.route("/api/timer/duration", methods=["POST"])
@ready_required
def api_timer_duration():
    current_gate().timer.set_duration(json_body().get("minutes"))
    return jsonify(_timer_view())


@bp.route("/api/timer/subject", methods=["POST"])
@ready_required
def api_timer_subject():
    gate = current_gate()
    subject = json_body().get("subject", "")
    if subject not in get_user_subjects(gate.profile.selected_exams):
        raise ProfileError(f"Subject not available: {subject}")
    gate.timer.set_subject(subject)
    return jsonify(_timer_view())


@bp.route("/api/timer/start", methods=["POST"])
@ready_required
def api_timer_start():
    current_gate().driver.start()
    return jsonify(_timer_view())


@bp.route("/api/timer/pause", methods=["POST"])
@ready_required
def api_timer_pause():
    current_gate().driver.pause()
    return jsonify(_timer_view())


@bp.route("/api/timer/stop", methods=["POST"])
@ready_required
def api_timer_stop():
    gate = current_gate()
    pending = request_stop(gate.driver, gate.store, gate.pending, today)
    body = _timer_view()
    if pending is None:
        return jsonify(body)
    body["pending"] = pending.to_dict()
    return jsonify(body), 202


@bp.route("/api/timer/frame")
@ready_required
def api_timer_frame():
    gate = current_gate()
    colour = get_theme(gate.profile.settings.theme).hex
    try:
        png = render_floating_frame(format_clock(gate.timer.seconds), colour)
    except FloatingDisplayError as e:
        logger.warning("Floating frame failed: %s", e)
        return jsonify({"notice": FLOATING_FAILED})
    return Response(png, mimetype="image/png")


# ── Background image ───────────────────────────────────────


def _image_data_uri(upload) -> str:
    raw = upload.read()
    try:
        with Image.open(io.BytesIO(raw)) as img:
            fmt = img.format
            img.verify()
    except (UnidentifiedImageError, OSError):
        raise ProfileError("Background must be an image file.") from None
    mime = ALLOWED_IMAGE_FORMATS.get(fmt or "")
    if mime is None:
        raise ProfileError(f"Unsupported image format: {fmt}")
    return f"data:{mime};base64,{base64.b64encode(raw).decode('ascii')}"


@bp.route("/api/timer/background", methods=["POST"])
@ready_required
def api_set_background():
    upload = request.files.get("image")
    if upload is not None and upload.filename:
        image = _image_data_uri(upload)
    else:
        image = str(json_body().get("url", "")).strip()
        if not image.startswith(("http://", "https://", "data:image/")):
            raise ProfileError("Enter an image URL or upload a file.")
    profile = current_store().dispatch("background/set", image=image)
    return jsonify({"bgImage": profile.bg_image})


@bp.route("/api/timer/background", methods=["DELETE"])
@ready_required
def api_clear_background():
    current_store().dispatch("background/set", image=None)
    return jsonify({"bgImage": ""})
