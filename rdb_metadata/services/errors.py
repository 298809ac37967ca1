"""Error types and the central error handling service.

Every failure the package reports to a user is an ``AppError``: it carries
a category, a severity, suggested actions and technical details for the
log. ``ErrorHandlingService`` turns arbitrary exceptions into AppErrors,
logs them and keeps a short history.
"""

import time
from collections import deque
from dataclasses import dataclass
from enum import Enum
from typing import Any

import httpx
import structlog

log = structlog.stdlib.get_logger()

HTTP_STATUS_MESSAGES = {
    403: "Access to the database server was denied.",
    404: "The database or artwork was not found upstream.",
    408: "The server timed out waiting for the request.",
    429: "Too many requests to the server. Please wait before trying again.",
    500: "The server encountered an error. Please try again later.",
    502: "The server is temporarily unavailable. Please try again later.",
    503: "The service is temporarily unavailable. Please try again later.",
    504: "The server took too long to respond. Please try again.",
}


class ErrorCategory(Enum):
    NETWORK = "network"
    FILE_SYSTEM = "file_system"
    VALIDATION = "validation"
    DECODE = "decode"
    DOWNLOAD = "download"
    UNEXPECTED = "unexpected"


class ErrorSeverity(Enum):
    WARNING = "warning"
    ERROR = "error"
    CRITICAL = "critical"


@dataclass(frozen=True)
class UserFriendlyError:
    """What a user sees for a handled error."""
    message: str
    category: ErrorCategory
    severity: ErrorSeverity
    suggested_actions: list[str]
    technical_details: str | None = None
    recoverable: bool = True


def _details(*lines: str | None) -> str | None:
    """Join the non-empty detail lines, or None if there are none."""
    present = [line for line in lines if line]
    return "\n".join(present) if present else None


def _describe(error: Exception | None) -> str | None:
    if error is None:
        return None
    return f"{type(error).__name__}: {error}"


class AppError(Exception):
    """Base exception class for application errors."""

    def __init__(
        self,
        message: str,
        category: ErrorCategory = ErrorCategory.UNEXPECTED,
        severity: ErrorSeverity = ErrorSeverity.ERROR,
        suggested_actions: list[str] | None = None,
        technical_details: str | None = None,
        recoverable: bool = True,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.category = category
        self.severity = severity
        self.suggested_actions = suggested_actions or []
        self.technical_details = technical_details
        self.recoverable = recoverable

    def to_user_friendly(self) -> UserFriendlyError:
        return UserFriendlyError(
            message=self.message,
            category=self.category,
            severity=self.severity,
            suggested_actions=list(self.suggested_actions),
            technical_details=self.technical_details,
            recoverable=self.recoverable,
        )


class NetworkError(AppError):
    """A request to libretro-database or libretro-thumbnails failed."""

    def __init__(
        self,
        message: str,
        original_error: Exception | None = None,
        url: str | None = None,
        status_code: int | None = None,
    ) -> None:
        if status_code == 429:
            actions = ["Wait a few minutes before retrying"]
        elif status_code == 404:
            actions = [
                "Check the system name in the configuration",
                "The database may have been renamed upstream",
            ]
        elif status_code is not None and status_code >= 500:
            actions = ["The server is experiencing issues", "Try again later"]
        else:
            actions = ["Check your internet connection", "Try again in a few moments"]

        super().__init__(
            message=message,
            category=ErrorCategory.NETWORK,
            suggested_actions=actions,
            technical_details=_details(
                f"Status: {status_code}" if status_code else None,
                f"URL: {url}" if url else None,
                _describe(original_error),
            ),
        )
        self.original_error = original_error
        self.url = url
        self.status_code = status_code


class FileSystemError(AppError):
    """Reading or writing a metadata or artwork file failed."""

    def __init__(
        self,
        message: str,
        original_error: Exception | None = None,
        path: str | None = None,
        operation: str | None = None,
    ) -> None:
        super().__init__(
            message=message,
            category=ErrorCategory.FILE_SYSTEM,
            suggested_actions=self._suggest(original_error),
            technical_details=_details(
                f"Path: {path}" if path else None,
                _describe(original_error),
            ),
        )
        self.original_error = original_error
        self.path = path
        self.operation = operation

    @staticmethod
    def _suggest(original_error: Exception | None) -> list[str]:
        if isinstance(original_error, PermissionError):
            return ["Check file/directory permissions", "Choose a different metadata directory"]
        if isinstance(original_error, FileNotFoundError):
            return ["Verify the file path is correct", "Download the database first"]
        if isinstance(original_error, IsADirectoryError):
            return ["The path points to a directory, not a file"]
        if original_error is not None and "no space" in str(original_error).lower():
            return ["Free up disk space", "Choose a different metadata directory"]
        return ["Check the file path and permissions"]


class RdbLoadError(FileSystemError):
    """Raised when an RDB file cannot be read from disk."""

    def __init__(self, path: str, original_error: OSError) -> None:
        super().__init__(
            message="Failed to read RDB file",
            original_error=original_error,
            path=path,
            operation="load_rdb",
        )


class RdbDecodeError(AppError):
    """Raised when the decoder meets a tag it cannot advance past."""

    def __init__(self, offset: int, tag: int) -> None:
        super().__init__(
            message=f"Unsupported RDB field tag 0x{tag:02x} at offset {offset}",
            category=ErrorCategory.DECODE,
            severity=ErrorSeverity.WARNING,
            suggested_actions=[
                "The database file may be damaged",
                "Download a fresh copy of the database",
            ],
            technical_details=f"Offset: {offset}\nTag: 0x{tag:02x}",
        )
        self.offset = offset
        self.tag = tag


class ValidationError(AppError):
    """Input or stored data did not have the expected shape."""

    def __init__(self, message: str, field: str | None = None, value: Any = None) -> None:
        super().__init__(
            message=message,
            category=ErrorCategory.VALIDATION,
            severity=ErrorSeverity.WARNING,
            suggested_actions=["Review the input requirements"],
            technical_details=_details(
                f"Field: {field}" if field else None,
                f"Value: {str(value)[:100]}" if value is not None else None,
            ),
        )
        self.field = field
        self.value = value


class DownloadError(AppError):
    """Downloading or saving the RDB file failed."""

    def __init__(
        self,
        message: str,
        url: str | None = None,
        path: str | None = None,
        original_error: Exception | None = None,
    ) -> None:
        super().__init__(
            message=message,
            category=ErrorCategory.DOWNLOAD,
            suggested_actions=[
                "Check your internet connection",
                "Verify sufficient disk space",
                "Try the download again",
            ],
            technical_details=_details(
                f"URL: {url}" if url else None,
                f"Path: {path}" if path else None,
                f"Error: {_describe(original_error)}" if original_error else None,
            ),
        )
        self.url = url
        self.path = path
        self.original_error = original_error


class ErrorHandlingService:
    """Classifies, logs and remembers errors."""

    def __init__(self, max_history_size: int = 100) -> None:
        self._history: deque[tuple[float, AppError]] = deque(maxlen=max_history_size)

    def handle_error(
        self,
        error: Exception,
        operation: str,
        component: str,
        context: dict[str, Any] | None = None,
    ) -> UserFriendlyError:
        """Handle an error and return what should be shown to the user.

        Args:
            error: The exception that occurred
            operation: The operation being performed
            component: The component where the error occurred
            context: Extra values such as ``url`` or ``path``
        """
        context = context or {}
        app_error = self._convert(error, operation, context)

        log_method = log.warning if app_error.severity == ErrorSeverity.WARNING else log.error
        log_method(
            "Error occurred",
            error_message=app_error.message,
            category=app_error.category.value,
            severity=app_error.severity.value,
            operation=operation,
            component=component,
            technical_details=app_error.technical_details,
            context=context,
        )

        self._history.append((time.time(), app_error))
        return app_error.to_user_friendly()

    def _convert(self, error: Exception, operation: str, context: dict[str, Any]) -> AppError:
        if isinstance(error, AppError):
            return error
        if isinstance(error, httpx.HTTPError):
            return self._convert_http_error(error, context)
        if isinstance(error, OSError):
            return self._convert_os_error(error, operation, context)

        if isinstance(error, ValueError):
            return ValidationError(str(error), field=context.get("field"), value=context.get("value"))

        return AppError(
            message="An unexpected error occurred. Please try again.",
            technical_details=_details(_describe(error), f"Operation: {operation}"),
        )

    @staticmethod
    def _convert_http_error(error: httpx.HTTPError, context: dict[str, Any]) -> NetworkError:
        if isinstance(error, httpx.HTTPStatusError):
            status_code = error.response.status_code
            return NetworkError(
                message=HTTP_STATUS_MESSAGES.get(status_code, f"HTTP error {status_code} occurred."),
                original_error=error,
                url=str(error.request.url),
                status_code=status_code,
            )

        if isinstance(error, httpx.ConnectError):
            message = "Unable to connect to the server. Please check your internet connection."
        elif isinstance(error, httpx.TimeoutException):
            message = "The request timed out. The server may be slow or unavailable."
        else:
            message = "A network error occurred. Please check your connection."
        return NetworkError(message=message, original_error=error, url=context.get("url"))

    @staticmethod
    def _convert_os_error(error: OSError, operation: str, context: dict[str, Any]) -> FileSystemError:
        if isinstance(error, PermissionError):
            message = "Permission denied. You don't have access to this file or directory."
        elif isinstance(error, FileNotFoundError):
            message = "The file or directory was not found."
        else:
            message = f"A file system error occurred: {error}"
        return FileSystemError(message, original_error=error, path=context.get("path"), operation=operation)

    def get_error_count_by_category(self) -> dict[ErrorCategory, int]:
        counts: dict[ErrorCategory, int] = {}
        for _, error in self._history:
            counts[error.category] = counts.get(error.category, 0) + 1
        return counts

    def create_user_message(self, error: UserFriendlyError, include_suggestions: bool = True) -> str:
        """Format an error for display, with up to three suggested actions."""
        lines = [error.message]
        if include_suggestions and error.suggested_actions:
            lines.append("\nSuggested actions:")
            lines.extend(f"  • {action}" for action in error.suggested_actions[:3])
        return "\n".join(lines)


_error_service: ErrorHandlingService | None = None


def get_error_service() -> ErrorHandlingService:
    """Get the process-wide error handling service."""
    global _error_service
    if _error_service is None:
        _error_service = ErrorHandlingService()
    return _error_service

