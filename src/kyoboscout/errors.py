"""Error types raised by KyoboScout.

Every error carries a machine-readable ``code`` and ``category`` plus a
Korean ``user_message`` suitable for showing to an end user. The low-level
cause is kept both as ``cause`` and as the chained ``__cause__``.
"""

from datetime import datetime, timezone
from enum import Enum
from typing import Any


class ErrorCategory(str, Enum):
    """Broad error categories."""

    network = "NETWORK"
    parsing = "PARSING"
    validation = "VALIDATION"
    cache = "CACHE"
    configuration = "CONFIGURATION"


class Severity(str, Enum):
    """How serious an error is for the caller."""

    low = "low"
    medium = "medium"
    high = "high"


class KyoboError(Exception):
    """Base class for all KyoboScout errors."""

    code: str = "KYOBO_ERROR"
    category: ErrorCategory = ErrorCategory.network
    severity: Severity = Severity.medium

    def __init__(
        self,
        message: str,
        *,
        context: dict[str, Any] | None = None,
        cause: BaseException | None = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.context = dict(context or {})
        self.cause = cause
        self.timestamp = datetime.now(timezone.utc)
        if cause is not None:
            self.__cause__ = cause

    @property
    def user_message(self) -> str:
        """Message to show to an end user."""
        return "알 수 없는 오류가 발생했습니다."

    def to_dict(self) -> dict:
        """Convert to dictionary for JSON serialization."""
        return {
            "name": type(self).__name__,
            "code": self.code,
            "category": self.category.value,
            "severity": self.severity.value,
            "message": self.message,
            "user_message": self.user_message,
            "context": self.context,
            "timestamp": self.timestamp.isoformat(),
            "cause": str(self.cause) if self.cause is not None else None,
        }


class ValidationError(KyoboError):
    """Bad user input, such as an empty or overlong search query."""

    code = "VALIDATION_ERROR"
    category = ErrorCategory.validation
    severity = Severity.low

    def __init__(self, message: str, field: str, value: Any = None, **kwargs) -> None:
        super().__init__(message, **kwargs)
        self.field = field
        self.value = value
        self.context.setdefault("field", field)

    @property
    def user_message(self) -> str:
        return self.message


class NetworkError(KyoboError):
    """Transport failure or a non-2xx HTTP status."""

    code = "NETWORK_ERROR"
    category = ErrorCategory.network

    def __init__(
        self,
        message: str,
        status_code: int | None = None,
        url: str | None = None,
        **kwargs,
    ) -> None:
        super().__init__(message, **kwargs)
        self.status_code = status_code
        self.url = url
        if status_code is not None:
            self.context.setdefault("status_code", status_code)
        if url:
            self.context.setdefault("url", url)

    @property
    def retryable(self) -> bool:
        """Client errors (4xx) are never retried."""
        if self.status_code is None:
            return True
        return not 400 <= self.status_code < 500

    @property
    def severity(self) -> Severity:  # type: ignore[override]
        if self.status_code is not None and self.status_code >= 500:
            return Severity.high
        return Severity.medium

    @property
    def user_message(self) -> str:
        status = self.status_code
        if status == 404:
            return "요청한 페이지를 찾을 수 없습니다."
        if status == 429:
            return "요청이 너무 많습니다. 잠시 후 다시 시도해주세요."
        if status is not None and status >= 500:
            return "교보문고 서버에 일시적인 문제가 있습니다. 잠시 후 다시 시도해주세요."
        return "네트워크 연결을 확인해주세요."


class NetworkTimeoutError(NetworkError):
    """A request did not complete before its deadline."""

    code = "TIMEOUT_ERROR"

    @property
    def retryable(self) -> bool:
        return True

    @property
    def user_message(self) -> str:
        return "요청 시간이 초과되었습니다. 네트워크 상태를 확인해주세요."


class ParseError(KyoboError):
    """A page could not be turned into any book record."""

    code = "PARSE_ERROR"
    category = ErrorCategory.parsing

    def __init__(self, message: str, source: str, book_id: str | None = None, **kwargs) -> None:
        super().__init__(message, **kwargs)
        self.source = source
        self.book_id = book_id
        self.context.setdefault("source", source)
        if book_id:
            self.context.setdefault("book_id", book_id)

    @property
    def user_message(self) -> str:
        return "데이터를 처리하는 중에 오류가 발생했습니다. 교보문고 페이지 구조가 변경되었을 수 있습니다."


class CacheError(KyoboError):
    """Cache failure. Never surfaced to callers of the service."""

    code = "CACHE_ERROR"
    category = ErrorCategory.cache
    severity = Severity.low

    def __init__(self, message: str, operation: str, **kwargs) -> None:
        super().__init__(message, **kwargs)
        self.operation = operation
        self.context.setdefault("operation", operation)

    @property
    def user_message(self) -> str:
        return "임시 저장소에 문제가 있지만, 기능은 정상적으로 작동합니다."


class ConfigurationError(KyoboError):
    """An invalid setting value."""

    code = "CONFIGURATION_ERROR"
    category = ErrorCategory.configuration
    severity = Severity.high

    def __init__(self, message: str, setting: str, **kwargs) -> None:
        super().__init__(message, **kwargs)
        self.setting = setting
        self.context.setdefault("setting", setting)

    @property
    def user_message(self) -> str:
        return f"설정 값이 올바르지 않습니다: {self.setting}"


def network_error_for_status(status: int, url: str) -> NetworkError:
    """Build a NetworkError describing an unexpected HTTP status."""
    messages = {
        404: "Page not found",
        429: "Too many requests",
        500: "Internal server error",
        502: "Bad gateway",
        503: "Service unavailable",
    }
    reason = messages.get(status, "Unexpected status")
    return NetworkError(f"HTTP {status}: {reason}", status_code=status, url=url)
