from __future__ import annotations

from argon2 import PasswordHasher
from argon2.exceptions import InvalidHashError, VerifyMismatchError
from fastapi import Depends, Request
from sqlalchemy.orm import Session

from app.core.errors import AuthError
from app.db.session import get_db
from app.models.user import User


# Argon2 parameters
_ph = PasswordHasher(
    time_cost=2,
    memory_cost=102400,  # ~100 MB
    parallelism=8,
    hash_len=32,
    salt_len=16,
)

SESSION_USER_KEY = "user_id"
SESSION_VERIFIED_EMAIL_KEY = "verified_email"


def hash_password(password: str) -> str:
    return _ph.hash(password)


def verify_password(password: str, password_hash: str) -> bool:
    try:
        return _ph.verify(password_hash, password)
    except (VerifyMismatchError, InvalidHashError):
        return False


def login_session(request: Request, user: User) -> None:
    """Bind the session cookie to an authenticated user."""
    request.session.clear()
    request.session[SESSION_USER_KEY] = user.id


def logout_session(request: Request) -> None:
    request.session.clear()


def get_optional_user(
    request: Request,
    db: Session = Depends(get_db),
) -> User | None:
    """
    Dependency: the user bound to the session cookie, or None.
    A session pointing at a deleted user is cleared.
    """
    user_id = request.session.get(SESSION_USER_KEY)
    if not user_id:
        return None

    user = db.get(User, user_id)
    if not user:
        request.session.pop(SESSION_USER_KEY, None)
        return None
    return user


def get_current_user(user: User | None = Depends(get_optional_user)) -> User:
    """
    Dependency: require an authenticated session.
    Raises: AuthError (401) if there is no valid session.
    """
    if user is None:
        raise AuthError("Please log in to continue")
    return user
