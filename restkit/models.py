"""Pydantic models for REST error payloads.

A RestError is the body a service returns alongside a non-2xx status:

    {"error": true, "status_code": 404, "message": "user not found"}
"""

from http import HTTPStatus
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, ValidationError


class DecodeError(ValueError):
    """Raised when a payload is not a valid RestError document."""


class RestError(BaseModel):
    """An immutable REST error (flag, status code, message)."""

    model_config = ConfigDict(frozen=True, strict=True, populate_by_name=True)

    is_error: bool = Field(..., alias="error", description="Whether this payload reports an error")
    status_code: int = Field(..., description="HTTP status code of the error")
    message: str = Field(..., description="Human-readable error message")

    def __str__(self) -> str:
        return f"{self.status_code}: {self.message}"

    @classmethod
    def new(cls, status: int, message: str) -> "RestError":
        """Create an error with an arbitrary status code."""
        return cls(is_error=True, status_code=int(status), message=message)

    @classmethod
    def bad_request(cls, message: str) -> "RestError":
        """Create a 400 Bad Request error."""
        return cls.new(HTTPStatus.BAD_REQUEST, message)

    @classmethod
    def unauthorized(cls, message: str) -> "RestError":
        """Create a 401 Unauthorized error."""
        return cls.new(HTTPStatus.UNAUTHORIZED, message)

    @classmethod
    def not_found(cls, message: str) -> "RestError":
        """Create a 404 Not Found error."""
        return cls.new(HTTPStatus.NOT_FOUND, message)

    @classmethod
    def internal_server_error(cls, message: str) -> "RestError":
        """Create a 500 Internal Server Error."""
        return cls.new(HTTPStatus.INTERNAL_SERVER_ERROR, message)

    @classmethod
    def from_bytes(cls, payload: bytes | bytearray | str) -> "RestError":
        """Parse a JSON error payload.

        Args:
            payload: Raw response body

        Returns:
            The decoded RestError

        Raises:
            DecodeError: If the payload is not JSON or does not match the
                ``error``/``status_code``/``message`` shape
        """
        if not isinstance(payload, (bytes, bytearray, str)):
            raise DecodeError(f"invalid error json response: unsupported type {type(payload).__name__}")
        try:
            return cls.model_validate_json(payload)
        except ValidationError as e:
            raise DecodeError(f"invalid error json response: {e.error_count()} error(s)") from e

    def to_dict(self) -> dict[str, Any]:
        """Return the JSON-shaped dict for this error."""
        return self.model_dump(by_alias=True)

    def to_bytes(self) -> bytes:
        """Serialize to the JSON payload accepted by ``from_bytes``."""
        return self.model_dump_json(by_alias=True).encode("utf-8")
