"""
Audit logging: records security-relevant events (sign-ups, sign-ins,
lockouts, verification and password resets).

Events are written to both the audit_log table and structured logging.
"""

from __future__ import annotations

import logging
import sqlite3
from datetime import datetime

from flask import has_request_context, request

from database import get_db

logger = logging.getLogger(__name__)


def log_event(action: str, user_id: int | None = None, detail: str = "") -> None:
    """Insert an audit log entry and emit a structured log line."""
    in_request = has_request_context()
    ip = (request.remote_addr or "") if in_request else ""
    ua = request.headers.get("User-Agent", "") if in_request else ""

    try:
        db = get_db()
        db.execute(
            "INSERT INTO audit_log (user_id, action, detail, ip_address, user_agent, created_at) "
            "VALUES (?, ?, ?, ?, ?, ?)",
            (user_id, action, detail, ip, ua, datetime.now().isoformat()),
        )
        db.commit()
    except sqlite3.Error as e:
        # Audit failures never break the request
        logger.warning("audit write failed: %s", e)

    logger.info("audit: %s user_id=%s detail=%s ip=%s", action, user_id, detail, ip)


def recent_events(user_id: int, limit: int = 20) -> list[dict]:
    rows = get_db().execute(
        "SELECT action, detail, created_at FROM audit_log WHERE user_id = ? "
        "ORDER BY id DESC LIMIT ?",
        (user_id, limit),
    ).fetchall()
    return [dict(r) for r in rows]
