"""
Application error taxonomy.

Services raise these; the handlers registered in app.main turn them into the
JSON envelope {success, message, data?} with a matching HTTP status.
"""
from __future__ import annotations

from typing import Any

from fastapi import status


class AppError(Exception):
    status_code: int = status.HTTP_500_INTERNAL_SERVER_ERROR
    message: str = "Internal server error"

    def __init__(self, message: str | None = None, data: Any = None):
        self.message = message or self.message
        self.data = data
        super().__init__(self.message)


class ValidationError(AppError):
    status_code = status.HTTP_400_BAD_REQUEST
    message = "Invalid input"


class UnsupportedType(ValidationError):
    status_code = status.HTTP_415_UNSUPPORTED_MEDIA_TYPE
    message = "Only PDF files are accepted"


class AuthError(AppError):
    status_code = status.HTTP_401_UNAUTHORIZED
    message = "Authentication required"


class InvalidCredentials(AuthError):
    message = "Invalid credentials"


class Forbidden(AppError):
    status_code = status.HTTP_403_FORBIDDEN
    message = "You do not have permission to perform this action"


class NotFound(AppError):
    status_code = status.HTTP_404_NOT_FOUND
    message = "Not found"


class Conflict(AppError):
    status_code = status.HTTP_409_CONFLICT
    message = "Already exists"


class AlreadyExists(Conflict):
    message = "An account with this email already exists"


class InvalidOrExpired(AppError):
    status_code = status.HTTP_400_BAD_REQUEST
    message = "Invalid or expired OTP"


class RateLimited(AppError):
    status_code = status.HTTP_429_TOO_MANY_REQUESTS
    message = "Too many attempts"


class UpstreamFailure(AppError):
    status_code = status.HTTP_502_BAD_GATEWAY
    message = "An upstream service failed, please try again later"
