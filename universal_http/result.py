"""Uniform return type for every client call."""

from typing import Any, Generic, TypeVar

from pydantic import BaseModel, model_validator

from universal_http.errors import ErrorInfo, ErrorKind

T = TypeVar("T")


class Result(BaseModel, Generic[T]):
    """Outcome of one HTTP call.

    Exactly one of ``data`` and ``error`` is populated. Callers check
    ``error`` (or ``ok``) before reading ``data``.
    """

    model_config = {"frozen": True, "arbitrary_types_allowed": True}

    data: T | None = None
    error: ErrorInfo | None = None

    @model_validator(mode="after")
    def _exactly_one(self) -> "Result[T]":
        if (self.data is None) == (self.error is None):
            raise ValueError("Result must carry exactly one of data or error.")
        return self

    @classmethod
    def success(cls, data: Any) -> "Result[Any]":
        return cls(data=data)

    @classmethod
    def failure(
        cls,
        kind: ErrorKind,
        message: str,
        *,
        status: int | None = None,
    ) -> "Result[Any]":
        return cls(error=ErrorInfo(kind=kind, message=message, status=status))

    @property
    def ok(self) -> bool:
        return self.error is None
