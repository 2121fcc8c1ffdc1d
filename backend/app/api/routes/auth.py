# backend/app/api/routes/auth.py
from __future__ import annotations

from fastapi import APIRouter, Depends, Form, Request, status
from sqlalchemy.orm import Session

from app.core.errors import InvalidOrExpired
from app.core.responses import api_response
from app.core.security import (
    SESSION_VERIFIED_EMAIL_KEY,
    get_current_user,
    login_session,
    logout_session,
)
from app.db.session import get_db
from app.models.user import User
from app.schemas.auth import RegisterIn, UserOut
from app.services import accounts
from app.services.otp import OTPVerifier, get_otp_verifier

router = APIRouter(tags=["auth"])


@router.post("/register", status_code=status.HTTP_201_CREATED)
def register(
    payload: RegisterIn,
    request: Request,
    db: Session = Depends(get_db),
    otp: OTPVerifier = Depends(get_otp_verifier),
):
    """Create the account for the email verified earlier in this session."""
    email = request.session.get(SESSION_VERIFIED_EMAIL_KEY)
    if not email:
        raise InvalidOrExpired("Verify your email before registering")

    # re-check before creating; the entry is only dropped once the user exists
    if not otp.is_verified(email, "signup"):
        request.session.pop(SESSION_VERIFIED_EMAIL_KEY, None)
        raise InvalidOrExpired("Email verification expired, request a new code")

    user = accounts.register(db, payload.username, payload.name, email, payload.password)
    otp.consume_signup(email)

    login_session(request, user)
    return api_response(
        data=UserOut.model_validate(user),
        message="Registration successful",
        status_code=status.HTTP_201_CREATED,
    )


@router.post("/login")
def login(
    request: Request,
    username: str = Form(..., min_length=1, max_length=255),
    password: str = Form(..., min_length=1, max_length=128),
    db: Session = Depends(get_db),
):
    """`username` accepts either the username or the email address."""
    user = accounts.authenticate(db, username, password)
    login_session(request, user)
    return api_response(data=UserOut.model_validate(user), message="Logged in")


@router.post("/logout")
def logout(request: Request):
    logout_session(request)
    return api_response(message="Logged out successfully")


@router.get("/api/me")
def me(current_user: User = Depends(get_current_user)):
    return api_response(data=UserOut.model_validate(current_user))
