"""
PrepAI chat bridge.

Turns a question (and optionally a photo of a problem) into one completion
request, prefixed with a short context built from the user's profile. The
transcript is kept per user in the ``chat_messages`` table. The bridge never
raises on a service failure: the fallback text becomes the model's reply.
"""

from __future__ import annotations

import logging
import sqlite3
from datetime import date, datetime
from typing import Any, Protocol

import analytics
from profile_model import Profile

logger = logging.getLogger(__name__)

GREETING = (
    "Hello! I am PrepAI. Ask me to solve a doubt, explain a topic, or analyze "
    "your study data. You can upload question images too!"
)
CLEARED = "Chat cleared. Ready for new doubts!"
FALLBACK_REPLY = "I'm having trouble connecting right now. Please try again in a moment."
BRIEFING_FALLBACK = "Unable to generate briefing right now."


class TextClient(Protocol):
    def generate(self, model_name: str, prompt: Any) -> str: ...


def build_context(profile: Profile) -> str:
    exams = ", ".join(profile.selected_exams)
    tasks = ", ".join(t.text for t in profile.pending_tasks)
    return (
        "SYSTEM: You are PrepAI, an expert JEE/NEET tutor. "
        f"User Data: Exams: {exams}. Tasks: {tasks}. Daily goal: {profile.daily_goal:g}h. "
        "Goal: Answer doubts clearly. If an image is provided, solve the question in it "
        "step-by-step. Use **bold** for key terms."
    )


def build_briefing_prompt(profile: Profile, today: date) -> str:
    minutes = analytics.today_minutes(profile.history, today)
    return (
        "Give me a 2-sentence summary of my day. "
        f"Data: Studied {int(minutes // 60)}h {round(minutes % 60)}m. "
        f"Streak: {analytics.streak(profile.history, today)}. "
        f"Pending Tasks: {len(profile.pending_tasks)}."
    )


class ChatTranscript:
    """One user's messages in SQLite, oldest first."""

    def __init__(self, path: str, user_id: int) -> None:
        self._path = path
        self.user_id = user_id

    def _connect(self) -> sqlite3.Connection:
        conn = sqlite3.connect(self._path, timeout=10)
        conn.row_factory = sqlite3.Row
        conn.execute(
            "CREATE TABLE IF NOT EXISTS chat_messages ("
            " id INTEGER PRIMARY KEY AUTOINCREMENT,"
            " user_id INTEGER NOT NULL,"
            " role TEXT NOT NULL,"
            " text TEXT NOT NULL DEFAULT '',"
            " has_image INTEGER NOT NULL DEFAULT 0,"
            " created_at TEXT NOT NULL DEFAULT '')"
        )
        return conn

    def messages(self) -> list[dict]:
        conn = self._connect()
        try:
            rows = conn.execute(
                "SELECT role, text, has_image FROM chat_messages WHERE user_id = ? ORDER BY id",
                (self.user_id,),
            ).fetchall()
        finally:
            conn.close()
        return [{"role": r["role"], "text": r["text"], "image": bool(r["has_image"])} for r in rows]

    def append(self, role: str, text: str, has_image: bool = False) -> dict:
        conn = self._connect()
        try:
            conn.execute(
                "INSERT INTO chat_messages (user_id, role, text, has_image, created_at) VALUES (?, ?, ?, ?, ?)",
                (self.user_id, role, text, int(has_image), datetime.now().isoformat()),
            )
            conn.commit()
        finally:
            conn.close()
        return {"role": role, "text": text, "image": has_image}

    def clear(self) -> None:
        conn = self._connect()
        try:
            conn.execute("DELETE FROM chat_messages WHERE user_id = ?", (self.user_id,))
            conn.commit()
        finally:
            conn.close()


class ChatBridge:
    def __init__(self, transcript: ChatTranscript, client: TextClient, model_name: str) -> None:
        self.transcript = transcript
        self._client = client
        self._model_name = model_name

    def messages(self) -> list[dict]:
        history = self.transcript.messages()
        if not history:
            history = [self.transcript.append("model", GREETING)]
        return history

    def send(self, profile: Profile, text: str, image: tuple[bytes, str] | None = None) -> dict | None:
        """Ask one question. Returns the reply entry, or None for an empty message.

        ``image`` is ``(data, mime_type)`` for an attached photo.
        """
        text = str(text or "").strip()
        if not text and image is None:
            return None

        self.messages()
        self.transcript.append("user", text, has_image=image is not None)

        parts: list[Any] = [f"{build_context(profile)}\n\nUser: {text}"]
        if image is not None:
            data, mime_type = image
            parts.append({"mime_type": mime_type, "data": data})

        try:
            reply = self._client.generate(self._model_name, parts)
        except Exception as e:
            logger.warning("Chat request failed for user %s: %s", self.transcript.user_id, e)
            reply = FALLBACK_REPLY
        return self.transcript.append("model", reply)

    def clear(self) -> list[dict]:
        self.transcript.clear()
        return [self.transcript.append("model", CLEARED)]

    def daily_briefing(self, profile: Profile, today: date) -> str:
        try:
            return self._client.generate(self._model_name, build_briefing_prompt(profile, today))
        except Exception as e:
            logger.warning("Briefing failed for user %s: %s", self.transcript.user_id, e)
            return BRIEFING_FALLBACK
