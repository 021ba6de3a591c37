from __future__ import annotations

from enum import Enum
from typing import Any


class ErrorKind(str, Enum):
    API_ERROR = "api_error"
    RATE_LIMIT = "rate_limit"


class ShopifyApiError(RuntimeError):
    kind: ErrorKind = ErrorKind.API_ERROR

    def __init__(
        self,
        *,
        message: str,
        code: str | None = None,
        user_errors: list[dict[str, Any]] | None = None,
        status_code: int = 502,
    ) -> None:
        super().__init__(message)
        self.code = code
        self.user_errors = user_errors
        self.status_code = status_code

    @property
    def retryable(self) -> bool:
        return self.kind is ErrorKind.RATE_LIMIT


class RateLimitError(ShopifyApiError):
    kind = ErrorKind.RATE_LIMIT

    def __init__(self, message: str = "Rate limit exceeded") -> None:
        super().__init__(message=message, code="THROTTLED", status_code=429)
