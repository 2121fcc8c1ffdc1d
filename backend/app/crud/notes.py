# backend/app/crud/notes.py
from __future__ import annotations

from typing import Any, Sequence

from sqlalchemy import delete, or_, select, update
from sqlalchemy.orm import Session

from app.models.note import Note

# Columns a caller may filter list_notes() by
FILTERABLE = {"uploader_id", "uploader_name", "file_type", "public_id"}


def get_note(db: Session, note_id: str) -> Note | None:
    return db.get(Note, note_id)


def list_notes(db: Session, filters: dict[str, Any] | None = None) -> Sequence[Note]:
    """All notes matching `filters` (column equality), newest first."""
    stmt = select(Note)
    for column, value in (filters or {}).items():
        if column not in FILTERABLE:
            raise ValueError(f"Cannot filter notes by {column!r}")
        stmt = stmt.where(getattr(Note, column) == value)

    stmt = stmt.order_by(Note.uploaded_at.desc(), Note.id.desc())
    return db.execute(stmt).scalars().all()


def list_by_owner_or_name(
    db: Session, owner_ids: Sequence[str], uploader_name: str
) -> Sequence[Note]:
    conds = [Note.uploader_name == uploader_name]
    if owner_ids:
        conds.append(Note.uploader_id.in_(owner_ids))

    stmt = select(Note).where(or_(*conds)).order_by(Note.uploaded_at.desc(), Note.id.desc())
    return db.execute(stmt).scalars().all()


def create_note(db: Session, **fields: Any) -> Note:
    note = Note(**fields)
    db.add(note)
    db.commit()
    db.refresh(note)
    return note


def set_thumbnail_if_missing(db: Session, note_id: str, thumbnail_url: str) -> bool:
    """
    Single-column update of thumbnail_url.
    Only applies while the note exists and has no thumbnail yet; returns
    whether a row was updated.
    """
    stmt = (
        update(Note)
        .where(Note.id == note_id)
        .where(or_(Note.thumbnail_url.is_(None), Note.thumbnail_url == ""))
        .values(thumbnail_url=thumbnail_url)
    )
    result = db.execute(stmt)
    db.commit()
    return bool(result.rowcount)


def delete_note(db: Session, note_id: str) -> int:
    result = db.execute(delete(Note).where(Note.id == note_id))
    db.commit()
    return result.rowcount or 0


def delete_notes_by_owner(db: Session, owner_id: str) -> int:
    result = db.execute(delete(Note).where(Note.uploader_id == owner_id))
    db.commit()
    return result.rowcount or 0
