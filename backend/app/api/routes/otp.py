# backend/app/api/routes/otp.py
from __future__ import annotations

from fastapi import APIRouter, Depends, Request
from sqlalchemy.orm import Session

from app.core.responses import api_response
from app.core.security import SESSION_VERIFIED_EMAIL_KEY
from app.db.session import get_db
from app.schemas.otp import (
    PasswordResetConfirmRequest,
    PasswordResetVerifyRequest,
    SendOTPRequest,
    VerifyOTPRequest,
)
from app.services.otp import PURPOSE_RESET, PURPOSE_SIGNUP, OTPVerifier, get_otp_verifier

router = APIRouter(prefix="/api", tags=["otp"])


@router.post("/send-otp")
def send_signup_otp(
    payload: SendOTPRequest,
    db: Session = Depends(get_db),
    otp: OTPVerifier = Depends(get_otp_verifier),
):
    otp.request_code(db, payload.email, PURPOSE_SIGNUP)
    return api_response(message="OTP sent to your email")


@router.post("/verify-otp")
def verify_otp(
    payload: VerifyOTPRequest,
    request: Request,
    otp: OTPVerifier = Depends(get_otp_verifier),
):
    otp.verify_code(payload.email, payload.purpose, payload.otp)

    if payload.purpose == PURPOSE_SIGNUP:
        # /register reads the verified address from the session
        request.session[SESSION_VERIFIED_EMAIL_KEY] = payload.email.lower()

    return api_response(message="OTP verified")


@router.post("/password-reset/send-otp")
def send_reset_otp(
    payload: SendOTPRequest,
    db: Session = Depends(get_db),
    otp: OTPVerifier = Depends(get_otp_verifier),
):
    otp.request_code(db, payload.email, PURPOSE_RESET)
    return api_response(message="OTP sent to your email")


@router.post("/password-reset/verify-otp")
def verify_reset_otp(
    payload: PasswordResetVerifyRequest,
    otp: OTPVerifier = Depends(get_otp_verifier),
):
    otp.verify_code(payload.email, PURPOSE_RESET, payload.otp)
    return api_response(message="OTP verified")


@router.post("/password-reset/confirm")
def confirm_reset(
    payload: PasswordResetConfirmRequest,
    db: Session = Depends(get_db),
    otp: OTPVerifier = Depends(get_otp_verifier),
):
    otp.confirm_reset(db, payload.email, payload.otp, payload.new_password)
    return api_response(message="Password has been reset")
