"""
Note lifecycle: create, list, fetch, delete, download.

A note moves nonexistent -> created -> (thumbnail attached) -> deleted.
file_url and uploader_id are written once at creation and never updated.
"""
from __future__ import annotations

import logging
import uuid
from typing import Any, Optional, Sequence

from sqlalchemy.orm import Session

from app.core.errors import Forbidden, NotFound, ValidationError
from app.crud import notes as notes_crud
from app.crud import users as users_crud
from app.db.session import SessionLocal
from app.models.note import Note
from app.services.media import DEFAULT_FILE_TYPE, UploadResult
from app.services.thumbnails import Thumbnailer

logger = logging.getLogger(__name__)

UNTITLED = "Untitled"


def is_valid_id(value: str | None) -> bool:
    if not value:
        return False
    try:
        uuid.UUID(str(value))
    except ValueError:
        return False
    return True


def resolve_title(title: str | None, filename: str | None = None) -> str:
    if title and title.strip():
        return title.strip()
    if filename and filename.strip():
        return filename.strip()
    return UNTITLED


def create(
    db: Session,
    owner_id: str,
    owner_name: str,
    title: str | None,
    upload: UploadResult,
    filename: str | None = None,
) -> Note:
    if not upload.file_url:
        raise ValidationError("fileUrl is required")

    note = notes_crud.create_note(
        db,
        title=resolve_title(title, filename),
        file_url=upload.file_url,
        file_type=upload.file_type or DEFAULT_FILE_TYPE,
        public_id=upload.public_id,
        thumbnail_url=upload.thumbnail_url or "",
        uploader_id=owner_id,
        uploader_name=owner_name,
    )
    logger.info("Note %s created by %s", note.id, owner_id)
    return note


def list_notes(db: Session, filters: Optional[dict[str, Any]] = None) -> Sequence[Note]:
    return notes_crud.list_notes(db, filters)


def list_by_uploader(db: Session, identifier: str) -> Sequence[Note]:
    """
    `identifier` is an owner id or a name. Id-shaped values match the owner
    id; anything else matches the uploader display name or the owner's
    current username.
    """
    identifier = (identifier or "").strip()
    if not identifier:
        raise ValidationError("Username is required")

    if is_valid_id(identifier):
        return notes_crud.list_notes(db, {"uploader_id": identifier})

    owner = users_crud.get_by_username(db, identifier)
    owner_ids = [owner.id] if owner else []
    return notes_crud.list_by_owner_or_name(db, owner_ids, identifier)


def get_by_id(db: Session, note_id: str) -> Optional[Note]:
    """None for a malformed id or a missing note."""
    if not is_valid_id(note_id):
        return None
    return notes_crud.get_note(db, note_id)


def delete(db: Session, note_id: str, requester_id: str) -> None:
    note = get_by_id(db, note_id)
    if note is None:
        raise NotFound("Note not found")
    if note.uploader_id != requester_id:
        raise Forbidden("You can only delete your own notes")

    notes_crud.delete_note(db, note.id)
    logger.info("Note %s deleted by %s", note.id, requester_id)


def attach_thumbnail(db: Session, note_id: str, thumbnail_url: str) -> bool:
    """Set the thumbnail of a note that has none yet. No-op if the note is gone."""
    if not thumbnail_url:
        return False
    return notes_crud.set_thumbnail_if_missing(db, note_id, thumbnail_url)


def generate_thumbnail_task(thumbnailer: Thumbnailer, note_id: str, file_url: str) -> None:
    """Background step after the note is saved; uses its own DB session."""
    url = thumbnailer.generate(note_id, file_url)
    if not url:
        return

    db = SessionLocal()
    try:
        if attach_thumbnail(db, note_id, url):
            logger.info("Thumbnail attached to note %s", note_id)
        else:
            logger.info("Note %s deleted or already has a thumbnail; dropped %s", note_id, url)
    finally:
        db.close()
