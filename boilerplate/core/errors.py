from http import HTTPStatus
from typing import List, Optional

from pydantic import BaseModel, ValidationError


class ErrorField(BaseModel):
    field: str
    message: str


class AppError(Exception):
    """Base error carrying an HTTP-style status code and optional per-field messages."""

    code: int = HTTPStatus.INTERNAL_SERVER_ERROR

    def __init__(self, message: Optional[str] = None, errors: Optional[List[ErrorField]] = None, code: Optional[int] = None):
        if code is not None:
            self.code = code
        self.message = message or HTTPStatus(self.code).phrase
        self.errors = errors or []
        super().__init__(self.message)

    def __repr__(self) -> str:
        return f"{type(self).__name__}(code={self.code}, message={self.message!r})"


class BadRequestError(AppError):
    code = HTTPStatus.BAD_REQUEST

    @classmethod
    def field(cls, field: str, message: str) -> "BadRequestError":
        return cls(errors=[ErrorField(field=field, message=message)])

    @classmethod
    def from_validation_error(cls, exc: ValidationError) -> "BadRequestError":
        errors = []
        for err in exc.errors():
            loc = ".".join(str(part) for part in err.get("loc", ())) or "body"
            errors.append(ErrorField(field=loc, message=err.get("msg", "invalid value")))
        return cls(errors=errors)


class NotFoundError(AppError):
    code = HTTPStatus.NOT_FOUND


class ConflictError(AppError):
    code = HTTPStatus.CONFLICT


class InternalError(AppError):
    code = HTTPStatus.INTERNAL_SERVER_ERROR


def error_code(exc: BaseException) -> int:
    """Status code of any exception; anything outside the taxonomy counts as internal."""
    if isinstance(exc, AppError):
        return int(exc.code)
    return int(HTTPStatus.INTERNAL_SERVER_ERROR)
