"""
Account mail: the verification link sent after sign-up (and on resend) and
the one-hour password-reset link.

Links are built from BASE_URL and point at the auth routes
``/verify-email/<token>`` and ``/reset-password/<user_id>/<token>``.
EMAIL_BACKEND picks the transport: "log" (default) writes the message to
the application log, "smtp" delivers it with the MAIL_* settings. Sending
never raises; a failed delivery is logged and reported as False so the
sign-up or reset request still completes.
"""

from __future__ import annotations

import logging
import smtplib
from email.mime.multipart import MIMEMultipart
from email.mime.text import MIMEText

from flask import current_app

logger = logging.getLogger(__name__)

RESET_LINK_HOURS = 1


def _app_title() -> str:
    return current_app.config.get("APP_TITLE", "PrepPilot")


def _link(path: str) -> str:
    base = current_app.config.get("BASE_URL", "http://localhost:5001").rstrip("/")
    return f"{base}{path}"


class EmailService:
    @staticmethod
    def send_verification(to: str, token: str) -> bool:
        link = _link(f"/verify-email/{token}")
        return EmailService.send(
            to,
            f"Verify your email - {_app_title()}",
            f"<p>Confirm your address to start tracking your prep:</p>"
            f'<p><a href="{link}">{link}</a></p>',
        )

    @staticmethod
    def send_password_reset(to: str, user_id: int, token: str) -> bool:
        link = _link(f"/reset-password/{user_id}/{token}")
        return EmailService.send(
            to,
            f"Password Reset - {_app_title()}",
            f"<p>Click the link below to reset your password "
            f"(expires in {RESET_LINK_HOURS} hour):</p>"
            f'<p><a href="{link}">{link}</a></p>'
            f"<p>If you did not request this, ignore this email.</p>",
        )

    @staticmethod
    def send(to: str, subject: str, body_html: str) -> bool:
        """Deliver one message through the configured backend."""
        if current_app.config.get("EMAIL_BACKEND", "log") == "log":
            logger.info("EMAIL [to=%s] subject=%s\n%s", to, subject, body_html)
            return True

        settings = {
            "mail_from": current_app.config.get("MAIL_FROM", "noreply@example.com"),
            "mail_server": current_app.config.get("MAIL_SERVER", "localhost"),
            "mail_port": current_app.config.get("MAIL_PORT", 587),
            "mail_username": current_app.config.get("MAIL_USERNAME", ""),
            "mail_password": current_app.config.get("MAIL_PASSWORD", ""),
        }
        return EmailService._smtp_send(to, subject, body_html, settings)

    @staticmethod
    def _smtp_send(to: str, subject: str, body_html: str, settings: dict) -> bool:
        msg = MIMEMultipart("alternative")
        msg["Subject"] = subject
        msg["From"] = settings["mail_from"]
        msg["To"] = to
        msg.attach(MIMEText(body_html, "html"))
        try:
            with smtplib.SMTP(settings["mail_server"], settings["mail_port"]) as smtp:
                smtp.starttls()
                if settings["mail_username"] and settings["mail_password"]:
                    smtp.login(settings["mail_username"], settings["mail_password"])
                smtp.send_message(msg)
        except (smtplib.SMTPException, OSError) as e:
            logger.error("SMTP send to %s failed: %s", to, e)
            return False
        return True
