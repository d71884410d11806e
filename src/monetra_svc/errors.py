from typing import Optional


class AppError(Exception):
    """Base error carrying the HTTP status it should surface as."""

    status_code = 500

    def __init__(self, message: str, status_code: Optional[int] = None) -> None:
        super().__init__(message)
        self.message = message
        if status_code is not None:
            self.status_code = status_code


class NotFound(AppError):
    status_code = 404


class InvalidSignature(AppError):
    status_code = 400


class ExternalServiceError(AppError):
    status_code = 502


class ValidationError(AppError):
    status_code = 400


class AuthenticationError(AppError):
    status_code = 401


class Conflict(AppError):
    status_code = 400
