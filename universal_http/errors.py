"""Error taxonomy shared by the request pipeline and its callers."""

from enum import Enum

from pydantic import BaseModel


class ConfigError(ValueError):
    """Raised when a client configuration fails validation."""


class ErrorKind(str, Enum):
    """Classification of a failed call."""

    NETWORK = "network"
    TIMEOUT = "timeout"
    HTTP_STATUS = "http_status"
    AUTH = "auth"


class ErrorInfo(BaseModel):
    """Describes why a call did not produce data.

    ``status`` is only present when the transport returned a response.
    """

    model_config = {"frozen": True}

    kind: ErrorKind
    message: str
    status: int | None = None
