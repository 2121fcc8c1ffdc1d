# backend/app/models/__init__.py
from .user import User
from .note import Note

__all__ = ["User", "Note"]
