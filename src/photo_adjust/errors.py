"""Error definitions for the photo adjustment pipeline."""

from __future__ import annotations

import contextlib
import logging
import traceback
from enum import Enum
from pathlib import Path
from typing import Any

from photo_adjust.logging_config import get_logger
from photo_adjust.models import RenderResult, RenderStatus


class PipelineError(Exception):
    """Base exception for pipeline errors."""


class DecodeError(PipelineError):
    """Raised when a source image cannot be decoded."""


class InvalidStateError(PipelineError):
    """Raised when an operation is invoked before initialize or after destroy."""


class AllocationError(PipelineError):
    """Raised when a pixel buffer cannot be allocated."""


class ExecutorFault(PipelineError):
    """Raised when the worker path fails to produce a result."""


class ProcessingError(PipelineError):
    """Raised when encoding or writing a render fails."""


class InvalidFileError(PipelineError):
    """Raised when an input or output file is invalid."""


class SecurityError(PipelineError):
    """Raised when path validation fails."""


class StorageError(PipelineError):
    """Raised when the edit store cannot be read or written."""


class StorageQuotaError(StorageError):
    """Raised when a write would exceed the edit store quota."""


class ErrorCategory(Enum):
    """Categories of errors for classification."""

    INPUT_VALIDATION = "input_validation"
    SECURITY = "security"
    DECODE = "decode"
    RENDER = "render"
    STORAGE = "storage"
    CONFIGURATION = "configuration"
    UNKNOWN = "unknown"


class ErrorHandler:
    """Turn exceptions into failed RenderResults with user-facing messages.

    User-visible failures are limited to "could not load image" and
    "could not render"; everything else is classified for the log.
    """

    def __init__(self, logger: logging.Logger | None = None) -> None:
        self.logger = logger or get_logger(__name__)

    def handle_error(self, error: Exception, context: dict[str, Any]) -> RenderResult:
        """Log an error and return a FAILED RenderResult.

        Args:
            error: The exception that occurred
            context: Context information (e.g., input_path, operation)

        Returns:
            RenderResult with FAILED status and a user-friendly message
        """
        category = self._classify_error(error)
        user_message = self._generate_user_message(error, category, context)
        self._log_error(error, category, context)

        input_path = context.get("input_path")
        if input_path is None:
            input_path = Path("unknown")
        elif not isinstance(input_path, Path):
            input_path = Path(str(input_path))

        return RenderResult(
            input_path=input_path,
            output_path=None,
            status=RenderStatus.FAILED,
            error_message=user_message,
            processing_time=context.get("processing_time", 0.0),
        )

    def _classify_error(self, error: Exception) -> ErrorCategory:
        """Classify an exception into an ErrorCategory."""
        if isinstance(error, InvalidFileError):
            return ErrorCategory.INPUT_VALIDATION
        elif isinstance(error, SecurityError):
            return ErrorCategory.SECURITY
        elif isinstance(error, DecodeError):
            return ErrorCategory.DECODE
        elif isinstance(error, (AllocationError, ExecutorFault, ProcessingError)):
            return ErrorCategory.RENDER
        elif isinstance(error, StorageError):
            return ErrorCategory.STORAGE
        elif isinstance(error, MemoryError):
            return ErrorCategory.RENDER
        elif isinstance(error, (ValueError, TypeError)):
            return ErrorCategory.CONFIGURATION
        else:
            return ErrorCategory.UNKNOWN

    def _generate_user_message(
        self, error: Exception, category: ErrorCategory, context: dict[str, Any]
    ) -> str:
        """Generate a clear, actionable message for the user."""
        input_path = context.get("input_path")
        filename = "unknown file"
        if input_path:
            with contextlib.suppress(TypeError, ValueError):
                filename = Path(str(input_path)).name or str(input_path)

        base_message = str(error)

        if category == ErrorCategory.INPUT_VALIDATION:
            if "not found" in base_message.lower():
                return f"File not found: {filename}. Please check the file path and try again."
            elif "extension" in base_message.lower():
                return f"Unsupported file type: {filename}. {base_message}"
            return f"Invalid input file: {filename}. {base_message}"

        elif category == ErrorCategory.SECURITY:
            return f"Security error: {filename}. {base_message}"

        elif category == ErrorCategory.DECODE:
            return f"Could not load image {filename}. The file is not a readable image."

        elif category == ErrorCategory.RENDER:
            operation = context.get("operation", "render")
            return f"Could not render {filename} during {operation}. {base_message}"

        elif category == ErrorCategory.STORAGE:
            return f"Could not save {filename}. {base_message}"

        elif category == ErrorCategory.CONFIGURATION:
            return f"Configuration error: {base_message}. Please check your settings and try again."

        return (
            f"Unexpected error processing {filename}: {base_message}. "
            "Please report this issue if it persists."
        )

    def _log_error(
        self, error: Exception, category: ErrorCategory, context: dict[str, Any]
    ) -> None:
        """Log the error with context; the stack trace goes to DEBUG."""
        context_str = ", ".join(f"{k}={v}" for k, v in context.items())

        self.logger.error(
            f"Error [{category.value}]: {type(error).__name__}: {error}",
            extra={"context": context_str},
        )

        if self.logger.isEnabledFor(logging.DEBUG):
            self.logger.debug(
                f"Stack trace for error in {context.get('input_path', 'unknown')}:\n"
                f"{''.join(traceback.format_exception(type(error), error, error.__traceback__))}"
            )
