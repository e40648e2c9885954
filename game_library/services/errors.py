"""Error handling module for the game library manager.

This module provides:
- Exception classes for each failure domain (network, file system, scan, metadata)
- User-friendly error message generation with suggested actions
- A centralized error handling service used by the CLI and the TUI
"""

import json
import time
from collections import deque
from dataclasses import dataclass
from enum import Enum
from typing import Any

import httpx
import structlog

log = structlog.stdlib.get_logger()


class ErrorCategory(Enum):
    """Categories of errors for classification and handling."""
    NETWORK = "network"
    FILE_SYSTEM = "file_system"
    VALIDATION = "validation"
    CONFIGURATION = "configuration"
    SCAN = "scan"
    METADATA = "metadata"
    INSTALL = "install"
    UNEXPECTED = "unexpected"


class ErrorSeverity(Enum):
    """Severity levels for errors."""
    WARNING = "warning"
    ERROR = "error"
    CRITICAL = "critical"


@dataclass(frozen=True)
class UserFriendlyError:
    """User-friendly error representation with suggested actions."""
    message: str
    category: ErrorCategory
    severity: ErrorSeverity
    suggested_actions: list[str]
    technical_details: str | None = None
    recoverable: bool = True


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
        """Convert to user-friendly error representation."""
        return UserFriendlyError(
            message=self.message,
            category=self.category,
            severity=self.severity,
            suggested_actions=self.suggested_actions,
            technical_details=self.technical_details,
            recoverable=self.recoverable,
        )


def _describe(error: Exception) -> str:
    return f"{type(error).__name__}: {error}"


class NetworkError(AppError):
    """Exception for network-related errors."""

    def __init__(
        self,
        message: str,
        original_error: Exception | None = None,
        url: str | None = None,
        status_code: int | None = None,
    ) -> None:
        suggested_actions = [
            "Check your internet connection",
            "Verify the game database credentials",
            "Try again in a few moments",
        ]

        if status_code:
            if status_code == 429:
                suggested_actions = [
                    "Wait a few minutes before retrying",
                    "Increase the request delay in the configuration",
                ]
            elif status_code in (401, 403):
                suggested_actions = [
                    "Check the IGDB client id and secret",
                    "Regenerate the client secret in the Twitch developer console",
                ]
            elif status_code >= 500:
                suggested_actions = [
                    "The server is experiencing issues",
                    "Try again later",
                ]

        technical_details = None
        if original_error:
            technical_details = _describe(original_error)
        if url:
            technical_details = f"URL: {url}" + (f"\n{technical_details}" if technical_details else "")
        if status_code:
            technical_details = f"Status: {status_code}" + (f"\n{technical_details}" if technical_details else "")

        super().__init__(
            message=message,
            category=ErrorCategory.NETWORK,
            severity=ErrorSeverity.ERROR,
            suggested_actions=suggested_actions,
            technical_details=technical_details,
            recoverable=True,
        )
        self.original_error = original_error
        self.url = url
        self.status_code = status_code


class FileSystemError(AppError):
    """Exception for file system-related errors."""

    def __init__(
        self,
        message: str,
        original_error: Exception | None = None,
        path: str | None = None,
        operation: str | None = None,
    ) -> None:
        suggested_actions = self._get_suggested_actions(original_error)

        technical_details = None
        if original_error:
            technical_details = _describe(original_error)
        if path:
            technical_details = f"Path: {path}" + (f"\n{technical_details}" if technical_details else "")

        super().__init__(
            message=message,
            category=ErrorCategory.FILE_SYSTEM,
            severity=ErrorSeverity.ERROR,
            suggested_actions=suggested_actions,
            technical_details=technical_details,
            recoverable=True,
        )
        self.original_error = original_error
        self.path = path
        self.operation = operation

    @staticmethod
    def _get_suggested_actions(original_error: Exception | None) -> list[str]:
        """Get suggested actions based on error type."""
        if isinstance(original_error, PermissionError):
            return [
                "Check file/directory permissions",
                "Choose a different cache or install directory",
            ]
        elif isinstance(original_error, FileNotFoundError):
            return [
                "Verify the path is correct",
                "Check if the file was moved or deleted",
            ]
        elif isinstance(original_error, OSError):
            error_str = str(original_error).lower()
            if "no space" in error_str or "disk full" in error_str:
                return [
                    "Free up disk space",
                    "Choose a different install location",
                ]
            elif "read-only" in error_str:
                return [
                    "The file system is read-only",
                    "Choose a different location",
                ]

        return [
            "Check the file path and permissions",
            "Ensure sufficient disk space",
        ]


class ValidationError(AppError):
    """Exception for validation-related errors."""

    def __init__(
        self,
        message: str,
        field: str | None = None,
        value: Any = None,
        constraints: list[str] | None = None,
    ) -> None:
        suggested_actions = ["Review the input requirements"]
        if constraints:
            suggested_actions.extend([f"Ensure: {c}" for c in constraints])

        technical_details = None
        if field:
            technical_details = f"Field: {field}"
        if value is not None:
            value_str = str(value)[:100]
            technical_details = (technical_details or "") + f"\nValue: {value_str}"

        super().__init__(
            message=message,
            category=ErrorCategory.VALIDATION,
            severity=ErrorSeverity.WARNING,
            suggested_actions=suggested_actions,
            technical_details=technical_details,
            recoverable=True,
        )
        self.field = field
        self.value = value
        self.constraints = constraints or []


class ConfigurationError(AppError):
    """Exception for configuration-related errors."""

    def __init__(
        self,
        message: str,
        setting: str | None = None,
        current_value: Any = None,
        expected: str | None = None,
    ) -> None:
        suggested_actions = [
            "Check the configuration settings",
            "Reset to default values if needed",
        ]
        if expected:
            suggested_actions.append(f"Expected: {expected}")

        technical_details = None
        if setting:
            technical_details = f"Setting: {setting}"
        if current_value is not None:
            technical_details = (technical_details or "") + f"\nCurrent: {current_value}"

        super().__init__(
            message=message,
            category=ErrorCategory.CONFIGURATION,
            severity=ErrorSeverity.ERROR,
            suggested_actions=suggested_actions,
            technical_details=technical_details,
            recoverable=True,
        )
        self.setting = setting
        self.current_value = current_value
        self.expected = expected


class ScanError(AppError):
    """Exception raised while indexing a repository directory."""

    def __init__(
        self,
        message: str,
        directory: str | None = None,
        original_error: Exception | None = None,
    ) -> None:
        technical_details = None
        if directory:
            technical_details = f"Directory: {directory}"
        if original_error:
            technical_details = (technical_details or "") + f"\nError: {_describe(original_error)}"

        super().__init__(
            message=message,
            category=ErrorCategory.SCAN,
            severity=ErrorSeverity.WARNING,
            suggested_actions=[
                "Check that the repository is reachable",
                "Verify the directory is readable",
            ],
            technical_details=technical_details,
            recoverable=True,
        )
        self.directory = directory
        self.original_error = original_error


class MetadataError(AppError):
    """Exception for metadata cache and enrichment errors."""

    def __init__(
        self,
        message: str,
        game_id: str | None = None,
        path: str | None = None,
        original_error: Exception | None = None,
    ) -> None:
        technical_details = None
        if game_id:
            technical_details = f"Game: {game_id}"
        if path:
            technical_details = (technical_details or "") + f"\nPath: {path}"
        if original_error:
            technical_details = (technical_details or "") + f"\nError: {_describe(original_error)}"

        super().__init__(
            message=message,
            category=ErrorCategory.METADATA,
            severity=ErrorSeverity.ERROR,
            suggested_actions=[
                "Delete the cached metadata file to force a refresh",
                "Refresh the game metadata again",
            ],
            technical_details=technical_details,
            recoverable=True,
        )
        self.game_id = game_id
        self.path = path
        self.original_error = original_error


class InstallError(AppError):
    """Exception for download and install errors."""

    def __init__(
        self,
        message: str,
        game_id: str | None = None,
        file_name: str | None = None,
        original_error: Exception | None = None,
    ) -> None:
        technical_details = None
        if game_id:
            technical_details = f"Game: {game_id}"
        if file_name:
            technical_details = (technical_details or "") + f"\nFile: {file_name}"
        if original_error:
            technical_details = (technical_details or "") + f"\nError: {_describe(original_error)}"

        super().__init__(
            message=message,
            category=ErrorCategory.INSTALL,
            severity=ErrorSeverity.ERROR,
            suggested_actions=[
                "Verify sufficient disk space",
                "Check the install directory permissions",
                "Try the installation again",
            ],
            technical_details=technical_details,
            recoverable=True,
        )
        self.game_id = game_id
        self.file_name = file_name
        self.original_error = original_error


class ErrorHandlingService:
    """Centralized error handling service.

    Converts raw exceptions into user-friendly errors, logs their technical
    details and keeps a bounded history of recent failures.
    """

    def __init__(self, max_history_size: int = 100) -> None:
        self._error_history: deque[tuple[float, AppError]] = deque(maxlen=max_history_size)
        log.info("Error handling service initialized")

    def handle_error(
        self,
        error: Exception,
        operation: str,
        component: str,
        context: dict[str, Any] | None = None,
    ) -> UserFriendlyError:
        """Handle an error and return a user-friendly representation.

        Args:
            error: The exception that occurred
            operation: The operation being performed
            component: The component where the error occurred
            context: Additional context information

        Returns:
            User-friendly error representation
        """
        app_error = self._convert_to_app_error(error, operation, component, context)

        self._log_error(app_error, operation, component, context)

        self._error_history.append((time.time(), app_error))

        return app_error.to_user_friendly()

    def _convert_to_app_error(
        self,
        error: Exception,
        operation: str,
        component: str,
        context: dict[str, Any] | None,
    ) -> AppError:
        """Convert a standard exception to an AppError."""
        if isinstance(error, AppError):
            return error

        context = context or {}

        if isinstance(error, httpx.ConnectError):
            return NetworkError(
                message="Unable to connect to the server. Please check your internet connection.",
                original_error=error,
                url=context.get("url"),
            )
        elif isinstance(error, httpx.TimeoutException):
            return NetworkError(
                message="The request timed out. The server may be slow or unavailable.",
                original_error=error,
                url=context.get("url"),
            )
        elif isinstance(error, httpx.HTTPStatusError):
            status_code = error.response.status_code
            return NetworkError(
                message=self._get_http_error_message(status_code),
                original_error=error,
                url=str(error.request.url),
                status_code=status_code,
            )
        elif isinstance(error, httpx.RequestError):
            return NetworkError(
                message="A network error occurred. Please check your connection.",
                original_error=error,
                url=context.get("url"),
            )

        elif isinstance(error, PermissionError):
            return FileSystemError(
                message="Permission denied. You don't have access to this file or directory.",
                original_error=error,
                path=context.get("path"),
                operation=operation,
            )
        elif isinstance(error, FileNotFoundError):
            return FileSystemError(
                message="The file or directory was not found.",
                original_error=error,
                path=context.get("path"),
                operation=operation,
            )
        elif isinstance(error, OSError):
            return FileSystemError(
                message=f"A file system error occurred: {error}",
                original_error=error,
                path=context.get("path"),
                operation=operation,
            )

        # JSONDecodeError subclasses ValueError, so it is checked first
        elif isinstance(error, json.JSONDecodeError):
            return ValidationError(
                message="Invalid JSON format. The data could not be parsed.",
                field="json_content",
            )
        elif isinstance(error, ValueError):
            return ValidationError(
                message=str(error),
                field=context.get("field"),
                value=context.get("value"),
            )
        elif isinstance(error, TypeError):
            return ValidationError(
                message=f"Invalid data type: {error}",
                field=context.get("field"),
            )

        return AppError(
            message="An unexpected error occurred. Please try again.",
            category=ErrorCategory.UNEXPECTED,
            severity=ErrorSeverity.ERROR,
            technical_details=f"{component}.{operation}: {_describe(error)}",
            recoverable=True,
        )

    @staticmethod
    def _get_http_error_message(status_code: int) -> str:
        """Get a user-friendly message for HTTP status codes."""
        messages = {
            400: "The request was invalid. Please check your input.",
            401: "Authentication failed. Please check your IGDB credentials.",
            403: "Access denied. Your IGDB credentials are not authorized.",
            404: "The requested resource was not found.",
            408: "The request timed out. Please try again.",
            429: "Too many requests. Please wait before trying again.",
            500: "The server encountered an error. Please try again later.",
            502: "The server is temporarily unavailable. Please try again later.",
            503: "The service is temporarily unavailable. Please try again later.",
            504: "The server took too long to respond. Please try again.",
        }
        return messages.get(status_code, f"HTTP error {status_code} occurred.")

    def _log_error(
        self,
        error: AppError,
        operation: str,
        component: str,
        context: dict[str, Any] | None,
    ) -> None:
        """Log error with full technical details."""
        log_method = log.error if error.severity != ErrorSeverity.WARNING else log.warning

        log_method(
            "Error occurred",
            error_message=error.message,
            category=error.category.value,
            severity=error.severity.value,
            operation=operation,
            component=component,
            technical_details=error.technical_details,
            recoverable=error.recoverable,
            context=context,
        )

    def get_recent_errors(self, count: int = 10) -> list[AppError]:
        """Get recent errors from history.

        Args:
            count: Number of recent errors to return

        Returns:
            List of recent AppError instances
        """
        return [error for _, error in list(self._error_history)[-count:]]

    def get_error_count_by_category(self) -> dict[ErrorCategory, int]:
        """Get count of errors by category."""
        counts: dict[ErrorCategory, int] = {}
        for _, error in self._error_history:
            counts[error.category] = counts.get(error.category, 0) + 1
        return counts

    def create_user_message(
        self,
        error: UserFriendlyError,
        include_suggestions: bool = True,
    ) -> str:
        """Create a formatted user message from an error.

        Args:
            error: The user-friendly error
            include_suggestions: Whether to include suggested actions

        Returns:
            Formatted message string
        """
        parts = [error.message]

        if include_suggestions and error.suggested_actions:
            parts.append("\nSuggested actions:")
            for action in error.suggested_actions[:3]:
                parts.append(f"  • {action}")

        return "\n".join(parts)


_error_service: ErrorHandlingService | None = None


def get_error_service() -> ErrorHandlingService:
    """Get the global error handling service instance."""
    global _error_service
    if _error_service is None:
        _error_service = ErrorHandlingService()
    return _error_service


def handle_error(
    error: Exception,
    operation: str,
    component: str,
    context: dict[str, Any] | None = None,
) -> UserFriendlyError:
    """Convenience function to handle errors using the global service."""
    return get_error_service().handle_error(error, operation, component, context)
