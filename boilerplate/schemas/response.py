from http import HTTPStatus
from typing import Generic, List, Optional, TypeVar

from pydantic import BaseModel, Field

from boilerplate.core.errors import AppError, ErrorField, error_code

T = TypeVar("T")


class ResponseEnvelope(BaseModel, Generic[T]):
    """Uniform response body: code and message always, then data on success or errors on failure."""
    code: int = Field(default=HTTPStatus.OK)
    message: str = Field(default=HTTPStatus.OK.phrase)
    data: Optional[T] = None
    errors: Optional[List[ErrorField]] = None

    @classmethod
    def success(cls, data: T, code: int = HTTPStatus.OK) -> "ResponseEnvelope[T]":
        return cls(code=code, message=HTTPStatus(code).phrase, data=data)

    @classmethod
    def failure(cls, exc: BaseException) -> "ResponseEnvelope[T]":
        code = error_code(exc)
        message = HTTPStatus(code).phrase
        errors = None
        if isinstance(exc, AppError):
            # Internal details stay in the logs
            if code < HTTPStatus.INTERNAL_SERVER_ERROR:
                message = exc.message
            errors = exc.errors or None
        return cls(code=code, message=message, errors=errors)

    def to_body(self) -> dict:
        return self.model_dump(mode="json", exclude_none=True)
