"""Logging configuration for the photo adjustment pipeline.

This module provides centralized logging configuration with:
- Configurable logging levels (DEBUG, INFO, WARNING, ERROR, CRITICAL)
- Render pass logging (start, completion, failures)
- Degradation reporting when the worker path is abandoned
- Platform-independent line endings
"""

from __future__ import annotations

import logging
import sys
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from pathlib import Path

PACKAGE_LOGGER = "photo_adjust"


class PlatformIndependentFormatter(logging.Formatter):
    """Formatter that normalizes line endings to LF on every platform.

    Render errors can carry messages from Pillow or OpenCV with CRLF line
    breaks; normalizing keeps log files identical across Windows, macOS and
    Linux.
    """

    def format(self, record: logging.LogRecord) -> str:
        """Format a record and normalize its line endings.

        Args:
            record: The log record to format

        Returns:
            Formatted message containing only LF line breaks
        """
        formatted = super().format(record)
        # CRLF first so it does not become two line breaks
        return formatted.replace("\r\n", "\n").replace("\r", "\n")


def setup_logging(
    level: int = logging.INFO,
    verbose: bool = False,
    log_file: Path | None = None,
) -> logging.Logger:
    """Set up logging for the photo_adjust package.

    Configures the package logger (not the root logger) with:
    - DEBUG level when verbose, otherwise the given level
    - A console handler on stdout
    - An optional UTF-8 file handler appended to across runs
    - Platform-independent line endings

    Calling it again replaces the previous handlers, so the CLI can
    reconfigure logging per invocation.

    Args:
        level: Base logging level (default: INFO)
        verbose: Enable verbose logging (sets level to DEBUG)
        log_file: Optional path to log file for persistent logging

    Returns:
        Configured logger instance for the photo_adjust package
    """
    effective_level = logging.DEBUG if verbose else level

    logger = logging.getLogger(PACKAGE_LOGGER)
    logger.setLevel(effective_level)

    # Avoid duplicate handlers when called more than once
    logger.handlers.clear()

    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setLevel(effective_level)

    if verbose:
        format_string = (
            "%(asctime)s - %(name)s - %(levelname)s - %(filename)s:%(lineno)d - %(message)s"
        )
    else:
        format_string = "%(asctime)s - %(levelname)s - %(message)s"

    formatter = PlatformIndependentFormatter(format_string, datefmt="%Y-%m-%d %H:%M:%S")
    console_handler.setFormatter(formatter)
    logger.addHandler(console_handler)

    if log_file:
        try:
            log_file.parent.mkdir(parents=True, exist_ok=True)
            file_handler = logging.FileHandler(log_file, mode="a", encoding="utf-8")
            file_handler.setLevel(effective_level)
            file_handler.setFormatter(formatter)
            logger.addHandler(file_handler)
            logger.debug(f"Logging to file: {log_file}")
        except OSError as e:
            logger.warning(f"Failed to set up file logging: {e}")

    logger.debug(
        f"Logging configured: level={logging.getLevelName(effective_level)}, "
        f"verbose={verbose}, log_file={log_file}"
    )

    return logger


def get_logger(name: str) -> logging.Logger:
    """Get a logger under the photo_adjust namespace.

    Child loggers inherit the handlers installed by :func:`setup_logging`,
    so modules never configure handlers themselves.

    Args:
        name: Name of the module (typically __name__)

    Returns:
        Logger instance for the specified module
    """
    if not name.startswith(PACKAGE_LOGGER):
        name = f"{PACKAGE_LOGGER}.{name}"

    return logging.getLogger(name)


def set_log_level(level: int | str) -> None:
    """Change the logging level for the photo_adjust package.

    Applies to the package logger and every handler already attached to it.

    Args:
        level: New logging level (int or name such as 'DEBUG')

    Raises:
        ValueError: If the level string is invalid
    """
    logger = logging.getLogger(PACKAGE_LOGGER)

    if isinstance(level, str):
        numeric_level = getattr(logging, level.upper(), None)
        if not isinstance(numeric_level, int):
            raise ValueError(f"Invalid log level: {level}")
        level = numeric_level

    logger.setLevel(level)
    for handler in logger.handlers:
        handler.setLevel(level)

    logger.debug(f"Log level changed to {logging.getLevelName(level)}")


def log_operation_start(logger: logging.Logger, operation: str, **context: object) -> None:
    """Log the start of an operation with context.

    Args:
        logger: Logger instance to use
        operation: Name of the operation (e.g., "final render", "batch render")
        **context: Additional context as keyword arguments (e.g., size="6x4")
    """
    context_str = ", ".join(f"{k}={v}" for k, v in context.items())
    logger.info(f"Starting {operation}: {context_str}")


def log_operation_complete(
    logger: logging.Logger,
    operation: str,
    success: bool,
    duration: float | None = None,
    **context: object,
) -> None:
    """Log the completion of an operation with context.

    Args:
        logger: Logger instance to use
        operation: Name of the operation (e.g., "final render")
        success: Whether the operation succeeded
        duration: Optional duration in seconds
        **context: Additional context as keyword arguments
    """
    context_str = ", ".join(f"{k}={v}" for k, v in context.items())
    status = "completed successfully" if success else "failed"

    if duration is not None:
        message = f"{operation.capitalize()} {status} in {duration:.2f}s: {context_str}"
    else:
        message = f"{operation.capitalize()} {status}: {context_str}"

    if success:
        logger.info(message)
    else:
        logger.error(message)


def log_operation_error(
    logger: logging.Logger, operation: str, error: Exception, **context: object
) -> None:
    """Log an operation error with context.

    The stack trace is only emitted when DEBUG is enabled, so normal runs
    show one line per failed render.

    Args:
        logger: Logger instance to use
        operation: Name of the operation that failed
        error: The exception that occurred
        **context: Additional context as keyword arguments
    """
    context_str = ", ".join(f"{k}={v}" for k, v in context.items())
    logger.error(f"Error during {operation}: {type(error).__name__}: {error} - {context_str}")

    if logger.isEnabledFor(logging.DEBUG):
        logger.debug(f"Stack trace for {operation} error:", exc_info=error)


def log_degradation(logger: logging.Logger, component: str, reason: Exception | str) -> None:
    """Report that a component switched to its fallback mode.

    Degradations are recoverable, so they are logged at WARNING rather than
    ERROR. The original exception's stack trace is kept at DEBUG level.

    Args:
        logger: Logger instance to use
        component: Name of the component that degraded (e.g., "task executor")
        reason: Exception or message describing why
    """
    if isinstance(reason, Exception):
        description = f"{type(reason).__name__}: {reason}"
    else:
        description = reason
    logger.warning(f"{component.capitalize()} degraded to synchronous execution: {description}")

    # Stack trace at DEBUG level
    if isinstance(reason, Exception) and logger.isEnabledFor(logging.DEBUG):
        logger.debug(f"Stack trace for {component} degradation:", exc_info=reason)
