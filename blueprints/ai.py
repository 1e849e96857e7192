"""PrepAI chat routes."""

from __future__ import annotations

from flask import Blueprint, jsonify, request

from extensions import limiter
from helpers import current_gate, json_body, ready_required
from profile_model import ProfileError
from views import build_prepai

bp = Blueprint("ai", __name__)

MAX_IMAGE_BYTES = 4 * 1024 * 1024


@bp.route("/api/chat")
@ready_required
def api_chat():
    return jsonify(build_prepai(current_gate().chat.messages()))


@bp.route("/api/chat", methods=["POST"])
@ready_required
@limiter.limit("30 per minute")
def api_chat_send():
    # Multipart form when an image is attached
    text = json_body().get("text", "")

    image = None
    upload = request.files.get("image")
    if upload is not None and upload.filename:
        data = upload.read()
        if len(data) > MAX_IMAGE_BYTES:
            raise ProfileError("Image is too large.")
        image = (data, upload.mimetype or "image/jpeg")

    gate = current_gate()
    reply = gate.chat.send(gate.profile, text, image=image)
    if reply is None:
        return jsonify({"error": "Type a message or attach an image."}), 400
    return jsonify({"reply": reply, **build_prepai(gate.chat.messages())})


@bp.route("/api/chat/clear", methods=["POST"])
@ready_required
def api_chat_clear():
    gate = current_gate()

    def clear() -> dict:
        return {"messages": gate.chat.clear()}

    pending = gate.pending.request("clear_chat", "Delete chat history?", clear)
    return jsonify({"pending": pending.to_dict()}), 202
