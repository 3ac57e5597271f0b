from __future__ import annotations

from dataclasses import dataclass
from enum import StrEnum


class FailureKind(StrEnum):
    AUTH_ERROR = "auth_error"
    RATE_LIMITED = "rate_limited"
    SERVICE_UNAVAILABLE = "service_unavailable"
    CONNECTION_REFUSED = "connection_refused"
    MALFORMED_REQUEST = "malformed_request"
    MALFORMED_UPSTREAM_RESPONSE = "malformed_upstream_response"
    UNKNOWN = "unknown"


@dataclass
class GatewayError(Exception):
    status_code: int
    message: str
    code: str | None = None
    param: str | None = None

    def __str__(self) -> str:
        return self.message


@dataclass
class ProviderError(Exception):
    """A backend call that failed, already classified.

    ``notice`` is an operator-facing explanation the adapter can supply when it
    knows more than the failure class alone (for example which daemon URL was
    unreachable).
    """

    kind: FailureKind
    message: str
    provider: str | None = None
    status_code: int | None = None
    notice: str | None = None

    def __str__(self) -> str:
        return self.message


def kind_for_status(status_code: int) -> FailureKind:
    if status_code in (401, 403):
        return FailureKind.AUTH_ERROR
    if status_code == 429:
        return FailureKind.RATE_LIMITED
    if status_code in (500, 502, 503, 504):
        return FailureKind.SERVICE_UNAVAILABLE
    if status_code in (400, 404, 422):
        return FailureKind.MALFORMED_REQUEST
    return FailureKind.UNKNOWN
