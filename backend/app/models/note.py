# backend/app/models/note.py
from datetime import datetime

from sqlalchemy import DateTime, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from app.db.base import Base
from app.models.user import new_id


class Note(Base):
    """Metadata for one uploaded PDF. The binary itself lives on the CDN."""

    __tablename__ = "notes"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=new_id)

    title: Mapped[str] = mapped_column(String(255), nullable=False)

    file_url: Mapped[str] = mapped_column(Text, nullable=False)
    file_type: Mapped[str] = mapped_column(String(127), nullable=False, default="application/pdf")
    public_id: Mapped[str | None] = mapped_column(String(255), nullable=True)
    thumbnail_url: Mapped[str | None] = mapped_column(Text, nullable=True)

    # Owner reference. No foreign key: users and notes are separate stores and
    # account deletion removes notes at the application level.
    uploader_id: Mapped[str] = mapped_column(String(36), index=True, nullable=False)
    # Display name at upload time, not kept in sync with profile renames
    uploader_name: Mapped[str] = mapped_column(String(128), index=True, nullable=False)

    uploaded_at: Mapped[datetime] = mapped_column(
        DateTime, default=datetime.utcnow, index=True, nullable=False
    )
