# backend/app/services/mailer.py
from __future__ import annotations

import logging
import smtplib
import ssl
from email.message import EmailMessage

from app.core.config import Settings, settings

logger = logging.getLogger(__name__)


class MailError(Exception):
    pass


class Mailer:
    """SMTP delivery. One connection per message with a bounded timeout."""

    def __init__(self, config: Settings = settings, timeout: float = 10.0):
        self.config = config
        self.timeout = timeout

    @property
    def configured(self) -> bool:
        return self.config.smtp_configured

    def send(self, to: str, subject: str, html: str, text: str | None = None) -> None:
        cfg = self.config

        msg = EmailMessage()
        msg["Subject"] = subject
        msg["From"] = f"{cfg.MAIL_FROM_NAME} <{cfg.MAIL_FROM}>"
        msg["To"] = to
        if text:
            msg.set_content(text)
        msg.add_alternative(html, subtype="html")

        try:
            with smtplib.SMTP(cfg.SMTP_HOST, cfg.SMTP_PORT, timeout=self.timeout) as s:
                if cfg.SMTP_USE_TLS:
                    s.starttls(context=ssl.create_default_context())
                if cfg.SMTP_USER and cfg.SMTP_PASS:
                    s.login(cfg.SMTP_USER, cfg.SMTP_PASS)
                s.send_message(msg)
        except (smtplib.SMTPException, OSError) as e:
            raise MailError(f"Failed to send email to {to}: {e}") from e


def render_otp_email(code: str, purpose: str, expire_minutes: int) -> tuple[str, str, str]:
    """Returns (subject, html, text) for an OTP message."""
    if purpose == "reset":
        subject = "Your password reset code"
        intro = "Use this code to reset your password"
    else:
        subject = "Your verification code"
        intro = "Use this code to verify your email address"

    text = f"{intro}: {code}\nIt expires in {expire_minutes} minutes."
    html = (
        f"<p>{intro}:</p>"
        f"<h2 style=\"letter-spacing:4px\">{code}</h2>"
        f"<p>It expires in {expire_minutes} minutes. "
        f"If you did not request it, ignore this email.</p>"
    )
    return subject, html, text


_mailer = Mailer()


def get_mailer() -> Mailer:
    return _mailer
