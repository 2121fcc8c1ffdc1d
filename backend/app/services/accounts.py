# backend/app/services/accounts.py
from __future__ import annotations

import logging

from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from app.core.errors import Conflict, InvalidCredentials, RateLimited, ValidationError
from app.core.security import verify_password
from app.crud import notes as notes_crud
from app.crud import users as users_crud
from app.models.user import User
from app.security.password_strength import validate_password_strength
from app.security.rate_limit import get_rate_limit_delay, is_rate_limited, record_auth_attempt

logger = logging.getLogger(__name__)


def _require_strong(password: str) -> None:
    ok, error = validate_password_strength(password)
    if not ok:
        raise ValidationError(error)


def register(db: Session, username: str, name: str, email: str, password: str) -> User:
    _require_strong(password)

    # one message for both fields
    if users_crud.get_by_email(db, email) or users_crud.get_by_username(db, username):
        raise Conflict("Username or email is already taken")

    try:
        user = users_crud.create_user(db, username, name, email, password)
    except IntegrityError:
        db.rollback()
        raise Conflict("Username or email is already taken")

    logger.info("Registered user %s (%s)", user.id, user.username)
    return user


def authenticate(db: Session, username_or_email: str, password: str) -> User:
    """
    Returns the user on a password match.
    Unknown user and wrong password raise the same InvalidCredentials.
    """
    key = f"login:{username_or_email.strip().lower()}"
    if is_rate_limited(key):
        delay = get_rate_limit_delay(key)
        raise RateLimited(f"Too many login attempts. Try again in {int(delay)} seconds.")

    user = users_crud.get_by_login(db, username_or_email)
    if not user or not verify_password(password, user.password_hash):
        record_auth_attempt(key, success=False)
        raise InvalidCredentials()

    record_auth_attempt(key, success=True)
    return user


def update_profile(
    db: Session,
    user: User,
    name: str | None = None,
    username: str | None = None,
    email: str | None = None,
) -> User:
    """Existing notes keep the uploader name they were created with."""
    if username and username != user.username:
        other = users_crud.get_by_username(db, username)
        if other and other.id != user.id:
            raise Conflict("Username is already taken")
        user.username = username

    if email and users_crud.normalize_email(email) != user.email:
        other = users_crud.get_by_email(db, email)
        if other and other.id != user.id:
            raise Conflict("Email is already taken")
        user.email = users_crud.normalize_email(email)

    if name:
        user.name = name

    try:
        db.add(user)
        db.commit()
    except IntegrityError:
        db.rollback()
        raise Conflict("Username or email is already taken")

    db.refresh(user)
    return user


def update_password(db: Session, user: User, current_password: str, new_password: str) -> User:
    if not verify_password(current_password, user.password_hash):
        raise InvalidCredentials("Current password is incorrect")

    _require_strong(new_password)
    return users_crud.set_password(db, user, new_password)


def delete_account(db: Session, user: User, password: str) -> int:
    """
    Deletes the user's notes, then the user. Returns the number of notes removed.
    The user delete is retried once; the notes are already gone at that point.
    """
    if not verify_password(password, user.password_hash):
        raise InvalidCredentials("Password is incorrect")

    user_id = user.id
    removed = notes_crud.delete_notes_by_owner(db, user_id)

    try:
        users_crud.delete_user(db, user_id)
    except SQLAlchemyError:
        db.rollback()
        logger.warning("Deleting user %s failed, retrying", user_id, exc_info=True)
        users_crud.delete_user(db, user_id)

    logger.info("Deleted account %s and %d notes", user_id, removed)
    return removed
