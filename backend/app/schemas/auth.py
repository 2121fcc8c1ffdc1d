from __future__ import annotations

from datetime import datetime

from pydantic import AliasGenerator, BaseModel, ConfigDict, EmailStr, Field, field_validator
from pydantic.alias_generators import to_camel

from app.security.sanitizer import InputSanitizer


class RegisterIn(BaseModel):
    """Registration after email verification; the email comes from the session."""
    model_config = ConfigDict(extra='forbid')

    name: str = Field(min_length=1, max_length=128)
    username: str = Field(min_length=3, max_length=64)
    password: str = Field(min_length=1, max_length=128)

    @field_validator('username')
    @classmethod
    def validate_username(cls, v: str) -> str:
        return InputSanitizer.sanitize_username(v)

    @field_validator('name')
    @classmethod
    def validate_name(cls, v: str) -> str:
        return InputSanitizer.sanitize_display_name(v)


class UserOut(BaseModel):
    model_config = ConfigDict(from_attributes=True, alias_generator=AliasGenerator(serialization_alias=to_camel))

    id: str
    username: str
    name: str
    email: str
    created_at: datetime


class ProfileUpdateIn(BaseModel):
    model_config = ConfigDict(extra='forbid')

    name: str | None = Field(default=None, max_length=128)
    username: str | None = Field(default=None, max_length=64)
    email: EmailStr | None = None

    @field_validator('username')
    @classmethod
    def validate_username(cls, v: str | None) -> str | None:
        return InputSanitizer.sanitize_username(v) if v else v

    @field_validator('name')
    @classmethod
    def validate_name(cls, v: str | None) -> str | None:
        return InputSanitizer.sanitize_display_name(v) if v else v


class PasswordChangeIn(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    current_password: str = Field(min_length=1, max_length=128)
    new_password: str = Field(min_length=1, max_length=128)


class DeleteAccountIn(BaseModel):
    password: str = Field(min_length=1, max_length=128)
