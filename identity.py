"""
Identity provider: accounts, verification and the auth-state stream.

Owns the ``users`` table: sign-up, password sign-in with lockout, Google
sign-in, sign-out, email verification and password reset. Every change to a
user's signed-in state is pushed to subscribers registered through
``on_auth_state_changed`` as ``callback(user_id, IdentityUser | None)``.

Passwords and reset tokens are hashed with werkzeug.security.
"""

from __future__ import annotations

import logging
import math
import secrets
import threading
from collections.abc import Callable
from dataclasses import dataclass
from datetime import datetime, timedelta

from werkzeug.security import check_password_hash, generate_password_hash

from audit import log_event
from database import get_db
from email_service import RESET_LINK_HOURS, EmailService

logger = logging.getLogger(__name__)

LOCKOUT_THRESHOLD = 5
LOCKOUT_MINUTES = 15

AuthCallback = Callable[[int, "IdentityUser | None"], None]


class IdentityError(Exception):
    """A user-facing identity failure (bad credentials, lockout, weak password)."""


@dataclass(frozen=True)
class IdentityUser:
    id: int
    email: str
    email_verified: bool
    display_name: str = ""
    photo_url: str = ""

    @staticmethod
    def from_row(row) -> IdentityUser:
        return IdentityUser(
            id=row["id"],
            email=row["email"],
            email_verified=bool(row["email_verified"]),
            display_name=row["display_name"] or "",
            photo_url=row["photo_url"] or "",
        )


def validate_password(password: str) -> str | None:
    """Return an error message if password is too weak, else None."""
    if len(password) < 8:
        return "Password must be at least 8 characters."
    if not any(c.isupper() for c in password):
        return "Password must contain at least one uppercase letter."
    if not any(c.islower() for c in password):
        return "Password must contain at least one lowercase letter."
    if not any(c.isdigit() for c in password):
        return "Password must contain at least one digit."
    return None


_USER_COLUMNS = "id, email, email_verified, display_name, photo_url"


class IdentityProvider:
    def __init__(self) -> None:
        self._listeners: list[AuthCallback] = []
        self._lock = threading.Lock()

    # ── Auth-state stream ──────────────────────────────────

    def on_auth_state_changed(self, callback: AuthCallback) -> Callable[[], None]:
        with self._lock:
            self._listeners.append(callback)

        def unsubscribe() -> None:
            with self._lock:
                if callback in self._listeners:
                    self._listeners.remove(callback)

        return unsubscribe

    def _emit(self, user_id: int, user: IdentityUser | None) -> None:
        with self._lock:
            listeners = list(self._listeners)
        for callback in listeners:
            callback(user_id, user)

    # ── Lookups ────────────────────────────────────────────

    def get_user(self, user_id: int) -> IdentityUser | None:
        row = get_db().execute(
            f"SELECT {_USER_COLUMNS} FROM users WHERE id = ?", (user_id,)
        ).fetchone()
        return IdentityUser.from_row(row) if row else None

    def _row_by_email(self, email: str):
        return get_db().execute(
            "SELECT id, email, email_verified, display_name, photo_url, password_hash, "
            "login_attempts, locked_until FROM users WHERE email = ?",
            (email,),
        ).fetchone()

    # ── Email / password ───────────────────────────────────

    def sign_up(self, email: str, password: str, display_name: str = "") -> IdentityUser:
        """Create an account, send the verification link and sign the user in."""
        email = email.strip().lower()
        if not email or not password:
            raise IdentityError("Email and password are required.")
        pw_error = validate_password(password)
        if pw_error:
            raise IdentityError(pw_error)
        if self._row_by_email(email):
            raise IdentityError("An account with this email already exists.")

        db = get_db()
        token = secrets.token_urlsafe(32)
        cur = db.execute(
            "INSERT INTO users (email, display_name, password_hash, email_verified, "
            "email_verification_token, created_at) VALUES (?, ?, ?, 0, ?, ?)",
            (email, display_name.strip(), generate_password_hash(password), token,
             datetime.now().isoformat()),
        )
        db.commit()
        user_id = cur.lastrowid
        log_event("register", user_id, f"email={email}")
        EmailService.send_verification(email, token)

        user = self.get_user(user_id)
        self._emit(user_id, user)
        return user

    def sign_in(self, email: str, password: str) -> IdentityUser:
        email = email.strip().lower()
        if not email or not password:
            raise IdentityError("Email and password are required.")

        row = self._row_by_email(email)
        if not row:
            raise IdentityError("Invalid email or password.")

        if row["locked_until"]:
            try:
                remaining = (datetime.fromisoformat(row["locked_until"]) - datetime.now()).total_seconds()
            except (ValueError, TypeError):
                remaining = 0
            if remaining > 0:
                log_event("login_locked", row["id"], f"email={email}")
                raise IdentityError(
                    f"Account temporarily locked. Try again in {math.ceil(remaining / 60)} minute(s)."
                )

        db = get_db()
        if not row["password_hash"] or not check_password_hash(row["password_hash"], password):
            attempts = (row["login_attempts"] or 0) + 1
            if attempts >= LOCKOUT_THRESHOLD:
                db.execute(
                    "UPDATE users SET login_attempts=?, locked_until=? WHERE id=?",
                    (attempts, (datetime.now() + timedelta(minutes=LOCKOUT_MINUTES)).isoformat(), row["id"]),
                )
            else:
                db.execute("UPDATE users SET login_attempts=? WHERE id=?", (attempts, row["id"]))
            db.commit()
            log_event("login_failed", row["id"], f"email={email} attempts={attempts}")
            raise IdentityError("Invalid email or password.")

        db.execute("UPDATE users SET login_attempts=0, locked_until='' WHERE id=?", (row["id"],))
        db.commit()
        log_event("login_success", row["id"])

        user = IdentityUser.from_row(row)
        self._emit(user.id, user)
        return user

    def sign_in_oauth(self, provider: str, subject: str, email: str,
                      display_name: str = "", photo_url: str = "") -> IdentityUser:
        """Sign in with an external account, linking or creating the user.

        The provider has already verified the address, so the account is
        marked verified.
        """
        email = email.strip().lower()
        if not email:
            raise IdentityError("Could not get email from the sign-in provider.")

        db = get_db()
        row = db.execute(
            "SELECT id FROM users WHERE oauth_provider = ? AND oauth_id = ?", (provider, subject)
        ).fetchone()
        if row:
            user_id = row["id"]
            log_event(f"login_{provider}", user_id)
        else:
            row = db.execute("SELECT id FROM users WHERE email = ?", (email,)).fetchone()
            if row:
                user_id = row["id"]
                db.execute(
                    "UPDATE users SET oauth_provider = ?, oauth_id = ?, email_verified = 1, "
                    "photo_url = CASE WHEN photo_url = '' THEN ? ELSE photo_url END WHERE id = ?",
                    (provider, subject, photo_url, user_id),
                )
                log_event(f"login_{provider}_linked", user_id)
            else:
                cur = db.execute(
                    "INSERT INTO users (email, display_name, photo_url, password_hash, oauth_provider, "
                    "oauth_id, email_verified, created_at) VALUES (?, ?, ?, '', ?, ?, 1, ?)",
                    (email, display_name, photo_url, provider, subject, datetime.now().isoformat()),
                )
                user_id = cur.lastrowid
                log_event(f"register_{provider}", user_id, f"email={email}")
            db.commit()

        user = self.get_user(user_id)
        self._emit(user_id, user)
        return user

    def sign_out(self, user_id: int | None) -> None:
        log_event("logout", user_id)
        if user_id is not None:
            self._emit(user_id, None)

    # ── Verification ───────────────────────────────────────

    def send_email_verification(self, email: str) -> bool:
        """Issue a fresh verification token. False when nothing needed sending."""
        row = self._row_by_email(email.strip().lower())
        if not row or row["email_verified"]:
            return False
        token = secrets.token_urlsafe(32)
        db = get_db()
        db.execute("UPDATE users SET email_verification_token=? WHERE id=?", (token, row["id"]))
        db.commit()
        EmailService.send_verification(row["email"], token)
        log_event("verification_resent", row["id"])
        return True

    def verify_email(self, token: str) -> IdentityUser | None:
        if not token:
            return None
        db = get_db()
        row = db.execute(
            "SELECT id FROM users WHERE email_verification_token = ? AND email_verification_token != ''",
            (token,),
        ).fetchone()
        if not row:
            return None
        db.execute(
            "UPDATE users SET email_verified=1, email_verification_token='' WHERE id=?", (row["id"],)
        )
        db.commit()
        log_event("email_verified", row["id"])
        user = self.get_user(row["id"])
        self._emit(user.id, user)
        return user

    # ── Password reset ─────────────────────────────────────

    def send_password_reset(self, email: str) -> None:
        """Send a one-hour reset link. Silent when the address is unknown."""
        row = self._row_by_email(email.strip().lower()) if email else None
        if not row:
            return
        token = secrets.token_urlsafe(32)
        expires = (datetime.now() + timedelta(hours=RESET_LINK_HOURS)).isoformat()
        db = get_db()
        db.execute(
            "UPDATE users SET reset_token=?, reset_token_expires=? WHERE id=?",
            (generate_password_hash(token), expires, row["id"]),
        )
        db.commit()

        EmailService.send_password_reset(row["email"], row["id"], token)
        log_event("password_reset_request", row["id"])

    def reset_password(self, user_id: int, token: str, password: str) -> None:
        db = get_db()
        row = db.execute(
            "SELECT id, reset_token, reset_token_expires FROM users WHERE id=?", (user_id,)
        ).fetchone()
        if not row or not row["reset_token"] or not check_password_hash(row["reset_token"], token):
            raise IdentityError("Invalid or expired reset link.")
        try:
            if datetime.now() > datetime.fromisoformat(row["reset_token_expires"]):
                raise IdentityError("This reset link has expired.")
        except (ValueError, TypeError):
            raise IdentityError("Invalid or expired reset link.") from None

        pw_error = validate_password(password)
        if pw_error:
            raise IdentityError(pw_error)

        db.execute(
            "UPDATE users SET password_hash=?, reset_token='', reset_token_expires='', "
            "login_attempts=0, locked_until='' WHERE id=?",
            (generate_password_hash(password), user_id),
        )
        db.commit()
        log_event("password_reset_complete", user_id)
