from __future__ import annotations

from dataclasses import dataclass
from typing import Any

from app.core.errors import FailureKind, GatewayError, ProviderError


@dataclass
class ChatAPIError(Exception):
    """Error wrapper with HTTP metadata for the chat API."""

    status_code: int
    message: str
    error_type: str = "invalid_request_error"
    code: str | None = None
    param: str | None = None

    def __str__(self) -> str:
        return self.message

    def to_error(self) -> dict[str, Any]:
        return {
            "message": self.message,
            "type": self.error_type,
            "param": self.param,
            "code": self.code,
        }


_PROVIDER_STATUS: dict[FailureKind, tuple[int, str]] = {
    FailureKind.AUTH_ERROR: (401, "authentication_error"),
    FailureKind.RATE_LIMITED: (429, "rate_limit_error"),
    FailureKind.SERVICE_UNAVAILABLE: (503, "server_error"),
    FailureKind.CONNECTION_REFUSED: (502, "server_error"),
    FailureKind.MALFORMED_REQUEST: (400, "invalid_request_error"),
    FailureKind.MALFORMED_UPSTREAM_RESPONSE: (502, "server_error"),
    FailureKind.UNKNOWN: (500, "server_error"),
}


def map_chat_error(exc: Exception) -> ChatAPIError:
    """Map anything that escaped the pipeline to an API error."""

    if isinstance(exc, ChatAPIError):
        return exc

    if isinstance(exc, ProviderError):
        status_code, error_type = _PROVIDER_STATUS[exc.kind]
        return ChatAPIError(
            status_code=status_code,
            message=exc.message,
            error_type=error_type,
            code=exc.kind.value,
        )

    if isinstance(exc, GatewayError):
        if exc.status_code == 429:
            error_type = "rate_limit_error"
        elif exc.status_code >= 500:
            error_type = "server_error"
        else:
            error_type = "invalid_request_error"

        return ChatAPIError(
            status_code=exc.status_code,
            message=exc.message,
            error_type=error_type,
            code=exc.code,
            param=exc.param,
        )

    return ChatAPIError(
        status_code=500,
        message=f"Unexpected server error: {exc}",
        error_type="server_error",
        code="internal_error",
    )
