"""Ошибки сервисов реестра; API отображает их в HTTP-ответы."""

from __future__ import annotations

from typing import Any, Dict, Optional

__all__ = [
    "ListingError",
    "InvalidInput",
    "Unauthorized",
    "Forbidden",
    "NotFound",
    "ConflictError",
    "UnprocessableEntity",
    "InternalError",
]


class ListingError(Exception):
    """Базовая ошибка: HTTP-код, короткий текст error и необязательный hint."""

    status_code: int = 500
    default_error: str = "internal server error"

    def __init__(self, error: Optional[str] = None, *, hint: Optional[str] = None) -> None:
        self.error = error or self.default_error
        self.hint = hint
        super().__init__(self.error)

    def to_body(self) -> Dict[str, Any]:
        body: Dict[str, Any] = {"error": self.error}
        if self.hint:
            body["hint"] = self.hint
        return body


class InvalidInput(ListingError):
    status_code = 400
    default_error = "invalid request"


class Unauthorized(ListingError):
    status_code = 401
    default_error = "invalid token"


class Forbidden(ListingError):
    status_code = 403
    default_error = "token does not match domain"


class NotFound(ListingError):
    status_code = 404
    default_error = "node not found"


class ConflictError(ListingError):
    """Домен (или токен) уже занят другой записью."""

    status_code = 409
    default_error = "domain already registered"


class UnprocessableEntity(ListingError):
    status_code = 422
    default_error = "node is not reachable"


class InternalError(ListingError):
    pass
