from __future__ import annotations


class AppError(Exception):
    """Base for errors that map onto a ``{"message": ...}`` response."""

    status_code = 500

    def __init__(self, message: str, *, status_code: int | None = None) -> None:
        super().__init__(message)
        self.message = message
        if status_code is not None:
            self.status_code = status_code


class ValidationError(AppError):
    status_code = 400

    @classmethod
    def from_messages(cls, messages: list[str]) -> ValidationError:
        return cls(", ".join(messages))


class ConflictError(AppError):
    status_code = 400


class AuthError(AppError):
    # 400 is used for bad login credentials, 401 for token problems
    status_code = 401


class NotFoundError(AppError):
    status_code = 404
