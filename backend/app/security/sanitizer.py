"""
Input sanitization for user-supplied text.

Rejects:
- Null bytes and control characters
- Path traversal (../ sequences)
- Script/XSS payloads (basic detection)

Titles and display names end up in HTML rendered by the frontend, so the
script check applies to them as well.
"""
import re
from typing import Optional


class InputSanitizer:
    """Validates and sanitizes user input."""

    NULL_BYTE_PATTERN = re.compile(r'\x00')
    CONTROL_CHAR_PATTERN = re.compile(r'[\x00-\x08\x0b-\x0c\x0e-\x1f\x7f]')
    PATH_TRAVERSAL_PATTERN = re.compile(r'\.\.[/\\]')
    SCRIPT_PATTERN = re.compile(r'<script|javascript:|onerror|onclick|<iframe|<embed', re.IGNORECASE)
    USERNAME_PATTERN = re.compile(r'^[a-zA-Z0-9_\-.]+$')

    @staticmethod
    def sanitize_string(value: str, max_length: Optional[int] = None) -> str:
        """
        Sanitize a single-line string.

        Raises:
            ValueError: If input contains dangerous patterns
        """
        if not isinstance(value, str):
            raise ValueError("Input must be string")

        if InputSanitizer.NULL_BYTE_PATTERN.search(value):
            raise ValueError("Null bytes not allowed")

        if InputSanitizer.CONTROL_CHAR_PATTERN.search(value):
            raise ValueError("Control characters not allowed")

        if InputSanitizer.PATH_TRAVERSAL_PATTERN.search(value):
            raise ValueError("Path traversal patterns not allowed")

        if InputSanitizer.SCRIPT_PATTERN.search(value):
            raise ValueError("Script/XSS patterns not allowed")

        if max_length and len(value) > max_length:
            raise ValueError(f"Input exceeds max length of {max_length}")

        return value

    @staticmethod
    def sanitize_username(value: str) -> str:
        """Validate username format (alphanumeric + dot/underscore/dash)."""
        value = value.strip()
        if len(value) < 3:
            raise ValueError("Username must be at least 3 characters")

        sanitized = InputSanitizer.sanitize_string(value, max_length=64)

        if not InputSanitizer.USERNAME_PATTERN.match(sanitized):
            raise ValueError("Username must contain only letters, digits, dot, dash, underscore")

        return sanitized

    @staticmethod
    def sanitize_display_name(value: str) -> str:
        sanitized = InputSanitizer.sanitize_string(value.strip(), max_length=128)
        if not sanitized:
            raise ValueError("Name cannot be empty")
        return sanitized

    @staticmethod
    def sanitize_title(value: str) -> str:
        """Note title; may be empty (callers apply the default)."""
        return InputSanitizer.sanitize_string(value.strip(), max_length=255)

    @staticmethod
    def sanitize_filename(filename: str) -> str:
        """Strip directories and unusual characters from an uploaded filename."""
        if not filename or len(filename) > 255:
            raise ValueError("Invalid filename length")

        filename = filename.replace('\\', '/').split('/')[-1]

        if '..' in filename:
            raise ValueError("Path traversal not allowed")

        filename = re.sub(r'[^a-zA-Z0-9._\-() ]', '', filename)
        filename = re.sub(r'[ ]{2,}', ' ', filename)
        filename = re.sub(r'[.]{2,}', '.', filename)

        if not filename:
            raise ValueError("Filename becomes empty after sanitization")

        return filename
