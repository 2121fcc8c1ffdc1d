# backend/app/api/routes/profile.py
from __future__ import annotations

from fastapi import APIRouter, Depends, Request
from sqlalchemy.orm import Session

from app.core.responses import api_response
from app.core.security import get_current_user, logout_session
from app.db.session import get_db
from app.models.user import User
from app.schemas.auth import DeleteAccountIn, PasswordChangeIn, ProfileUpdateIn, UserOut
from app.services import accounts

router = APIRouter(prefix="/profile", tags=["profile"])


@router.post("")
def update_profile(
    payload: ProfileUpdateIn,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    user = accounts.update_profile(
        db,
        current_user,
        name=payload.name,
        username=payload.username,
        email=payload.email,
    )
    return api_response(data=UserOut.model_validate(user), message="Profile updated")


@router.post("/password")
def change_password(
    payload: PasswordChangeIn,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    accounts.update_password(db, current_user, payload.current_password, payload.new_password)
    return api_response(message="Password updated")


@router.post("/delete-account")
def delete_account(
    payload: DeleteAccountIn,
    request: Request,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    """Removes the user's notes, then the user, then ends the session."""
    removed = accounts.delete_account(db, current_user, payload.password)
    logout_session(request)
    return api_response(data={"deletedNotes": removed}, message="Account deleted")
