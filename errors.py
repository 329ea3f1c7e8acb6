# errors.py
from __future__ import annotations

from typing import Any


class AppError(ValueError):
    """
    Базовая ошибка приложения: несёт HTTP-статус и сообщение для клиента.
    Наследуемся от ValueError, как и остальные ошибки валидации в проекте.
    """

    status: int = 500
    error: str = "Internal Server Error"

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message

    def to_dict(self) -> dict[str, Any]:
        return {"statusCode": self.status, "error": self.error, "message": self.message}


class NotFoundError(AppError):
    status = 404
    error = "Not Found"


class ValidationError(AppError):
    status = 400
    error = "Bad Request"


class InvalidStateError(AppError):
    status = 400
    error = "Bad Request"


class ConflictError(AppError):
    status = 409
    error = "Conflict"
