"""
One-time codes for signup and password reset.

Flow per (email, purpose):
    request_code -> verify_code (marks verified) -> consume_signup / confirm_reset

A new request overwrites the previous entry, so only the latest code works.
"""
from __future__ import annotations

import logging
import secrets
import time
from typing import Callable

from sqlalchemy.orm import Session

from app.core.config import Settings, settings
from app.core.errors import (
    AlreadyExists,
    InvalidOrExpired,
    NotFound,
    RateLimited,
    UpstreamFailure,
    ValidationError,
)
from app.crud.users import get_by_email, normalize_email, set_password
from app.security.otp_store import InMemoryOTPStore, OTPEntry, OTPStore
from app.security.password_strength import validate_password_strength
from app.security.rate_limit import RateLimiter
from app.security.rate_limiter import RateLimiter as WindowLimiter
from app.services.mailer import MailError, Mailer, get_mailer, render_otp_email

logger = logging.getLogger(__name__)

PURPOSE_SIGNUP = "signup"
PURPOSE_RESET = "reset"
PURPOSES = (PURPOSE_SIGNUP, PURPOSE_RESET)

CODE_DIGITS = 6


def generate_code() -> str:
    return f"{secrets.randbelow(10 ** CODE_DIGITS):0{CODE_DIGITS}d}"


class OTPVerifier:
    def __init__(
        self,
        store: OTPStore,
        mailer: Mailer,
        config: Settings = settings,
        clock: Callable[[], float] = time.time,
        attempt_limiter: RateLimiter | None = None,
        send_limiter: WindowLimiter | None = None,
    ):
        self.store = store
        self.mailer = mailer
        self.config = config
        self.clock = clock
        self.attempt_limiter = attempt_limiter or RateLimiter(clock=clock)
        self.send_limiter = send_limiter or WindowLimiter(clock=clock)

    @property
    def ttl_seconds(self) -> int:
        return self.config.OTP_EXPIRE_MINUTES * 60

    def _check_purpose(self, purpose: str) -> None:
        if purpose not in PURPOSES:
            raise ValidationError(f"Unknown OTP purpose: {purpose}")

    def request_code(self, db: Session, email: str, purpose: str, payload: dict | None = None) -> None:
        self._check_purpose(purpose)
        email = normalize_email(email)

        existing = get_by_email(db, email)
        if purpose == PURPOSE_SIGNUP and existing:
            raise AlreadyExists()
        if purpose == PURPOSE_RESET and not existing:
            raise NotFound("No account is registered with this email")

        if not self.send_limiter.is_allowed(
            email, f"otp:{purpose}", max_attempts=self.config.OTP_RESEND_LIMIT
        ):
            raise RateLimited("Too many codes requested. Try again later.")

        code = generate_code()
        self.store.set(
            (email, purpose),
            OTPEntry(code=code, expires_at=self.clock() + self.ttl_seconds, payload=payload or {}),
        )
        logger.info("Issued %s OTP for %s", purpose, email)

        self._deliver(email, purpose, code)

    def _deliver(self, email: str, purpose: str, code: str) -> None:
        # The stored code is kept even if delivery fails; the user can ask again.
        if not self.mailer.configured:
            if self.config.app_env == "production":
                logger.error("SMTP is not configured; cannot send OTP to %s", email)
                raise UpstreamFailure("Could not send the verification email")
            logger.warning("SMTP is not configured; OTP email to %s was not sent", email)
            logger.debug("OTP for %s (%s): %s", email, purpose, code)
            return

        subject, html, text = render_otp_email(code, purpose, self.config.OTP_EXPIRE_MINUTES)
        try:
            self.mailer.send(email, subject, html, text)
        except MailError:
            logger.exception("OTP email delivery failed for %s", email)
            raise UpstreamFailure("Could not send the verification email")

    def _live_entry(self, email: str, purpose: str, code: str) -> OTPEntry:
        key = (email, purpose)
        limiter_key = f"otp:{purpose}:{email}"

        if not self.attempt_limiter.is_allowed(limiter_key):
            delay = self.attempt_limiter.get_retry_after(limiter_key)
            raise RateLimited(f"Too many attempts. Try again in {int(delay)} seconds.")

        entry = self.store.get(key)
        if entry is None or entry.is_expired(self.clock()):
            self.attempt_limiter.record_attempt(limiter_key, success=False)
            raise InvalidOrExpired()

        if not secrets.compare_digest(entry.code, (code or "").strip()):
            self.attempt_limiter.record_attempt(limiter_key, success=False)
            raise InvalidOrExpired()

        self.attempt_limiter.record_attempt(limiter_key, success=True)
        return entry

    def verify_code(self, email: str, purpose: str, code: str) -> OTPEntry:
        """Mark the entry verified. It stays in the store for the follow-up step."""
        self._check_purpose(purpose)
        email = normalize_email(email)

        entry = self._live_entry(email, purpose, code)
        entry.verified = True
        self.store.set((email, purpose), entry)
        return entry

    def is_verified(self, email: str, purpose: str) -> bool:
        entry = self.store.get((normalize_email(email), purpose))
        return bool(entry and entry.verified and not entry.is_expired(self.clock()))

    def consume_signup(self, email: str) -> None:
        """Registration step: require a verified signup entry and drop it."""
        email = normalize_email(email)
        if not self.is_verified(email, PURPOSE_SIGNUP):
            raise InvalidOrExpired("Email is not verified or the code has expired")
        self.store.delete((email, PURPOSE_SIGNUP))

    def confirm_reset(self, db: Session, email: str, code: str, new_password: str) -> None:
        email = normalize_email(email)

        ok, error = validate_password_strength(new_password)
        if not ok:
            raise ValidationError(error)

        entry = self._live_entry(email, PURPOSE_RESET, code)
        if not entry.verified:
            raise InvalidOrExpired("Code has not been verified")

        user = get_by_email(db, email)
        if not user:
            self.store.delete((email, PURPOSE_RESET))
            raise NotFound("No account is registered with this email")

        set_password(db, user, new_password)
        self.store.delete((email, PURPOSE_RESET))
        logger.info("Password reset for user %s", user.id)


_verifier: OTPVerifier | None = None


def get_otp_verifier() -> OTPVerifier:
    global _verifier
    if _verifier is None:
        _verifier = OTPVerifier(store=InMemoryOTPStore(), mailer=get_mailer())
    return _verifier
