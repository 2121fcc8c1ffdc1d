from __future__ import annotations

from datetime import datetime
from typing import Optional

from pydantic import AliasGenerator, BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel

from app.security.sanitizer import InputSanitizer


class NoteCreateRequest(BaseModel):
    """Metadata saved after the client uploaded the PDF directly to the CDN."""
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    title: str = Field(default='', max_length=255)
    file_url: str = Field(min_length=1, max_length=2048)
    file_type: Optional[str] = Field(default=None, max_length=127)
    thumbnail_url: Optional[str] = Field(default=None, max_length=2048)
    public_id: Optional[str] = Field(default=None, max_length=255)

    @field_validator('title')
    @classmethod
    def validate_title(cls, v: str) -> str:
        return InputSanitizer.sanitize_title(v or '')

    @field_validator('file_url')
    @classmethod
    def validate_file_url(cls, v: str) -> str:
        v = v.strip()
        if not v.startswith(('https://', 'http://')):
            raise ValueError('fileUrl must be an http(s) URL')
        return v


class NoteOut(BaseModel):
    """Note JSON as the frontend expects it (camelCase, `uploader` = owner id)."""
    model_config = ConfigDict(from_attributes=True, alias_generator=AliasGenerator(serialization_alias=to_camel))

    id: str
    title: str
    file_url: str
    file_type: str
    public_id: Optional[str] = None
    thumbnail_url: str = ''
    uploader: str = Field(validation_alias='uploader_id')
    uploader_name: str
    uploaded_at: datetime

    @field_validator('thumbnail_url', mode='before')
    @classmethod
    def empty_thumbnail(cls, v: Optional[str]) -> str:
        return v or ''
