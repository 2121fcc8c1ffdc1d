# backend/app/crud/users.py
from __future__ import annotations

from sqlalchemy import delete, or_, select
from sqlalchemy.orm import Session

from app.core.security import hash_password
from app.models.user import User


def normalize_email(email: str) -> str:
    return email.strip().lower()


def get_by_id(db: Session, user_id: str) -> User | None:
    return db.get(User, user_id)


def get_by_email(db: Session, email: str) -> User | None:
    stmt = select(User).where(User.email == normalize_email(email))
    return db.execute(stmt).scalar_one_or_none()


def get_by_username(db: Session, username: str) -> User | None:
    stmt = select(User).where(User.username == username)
    return db.execute(stmt).scalar_one_or_none()


def get_by_login(db: Session, username_or_email: str) -> User | None:
    ident = username_or_email.strip()
    stmt = select(User).where(
        or_(User.username == ident, User.email == normalize_email(ident))
    )
    return db.execute(stmt).scalars().first()


def create_user(db: Session, username: str, name: str, email: str, password: str) -> User:
    u = User(
        username=username,
        name=name,
        email=normalize_email(email),
        password_hash=hash_password(password),
    )

    db.add(u)
    db.commit()
    db.refresh(u)
    return u


def set_password(db: Session, user: User, new_password: str) -> User:
    user.password_hash = hash_password(new_password)
    db.add(user)
    db.commit()
    db.refresh(user)
    return user


def delete_user(db: Session, user_id: str) -> int:
    result = db.execute(delete(User).where(User.id == user_id))
    db.commit()
    return result.rowcount or 0
