"""
Centralized error handling for the quickconvert service.

This module provides the error codes, their HTTP status and severity, the base
exception raised by every component, and the HTML error response factory used
by the routes.
"""

from enum import Enum
from typing import Dict, Optional, Union

from fastapi.responses import HTMLResponse

from ..pages import render_error_page
from .logging_config import get_logger

logger = get_logger()


class ErrorCode(str, Enum):
    """Standardized error codes for consistent error handling."""

    # General errors
    INTERNAL_ERROR = "INTERNAL_ERROR"
    NOT_FOUND = "NOT_FOUND"
    RATE_LIMITED = "RATE_LIMITED"

    # Upload errors
    NO_FILES = "NO_FILES"
    TOO_MANY_FILES = "TOO_MANY_FILES"
    FILE_TOO_LARGE = "FILE_TOO_LARGE"
    INVALID_FILE_TYPE = "INVALID_FILE_TYPE"
    CONVERSION_NOT_SUPPORTED = "CONVERSION_NOT_SUPPORTED"

    # External converter and library errors
    CONVERTER_NOT_FOUND = "CONVERTER_NOT_FOUND"
    CONVERSION_FAILED = "CONVERSION_FAILED"
    NO_OUTPUT = "NO_OUTPUT"
    INVALID_DOCUMENT = "INVALID_DOCUMENT"


class ErrorSeverity(str, Enum):
    """Error severity levels for logging and response handling."""
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    CRITICAL = "critical"


# Upload problems are answered with 200 and an error page, like the form
# endpoint has always done.
ERROR_STATUS_MAP: Dict[ErrorCode, int] = {
    ErrorCode.NO_FILES: 200,
    ErrorCode.TOO_MANY_FILES: 200,
    ErrorCode.FILE_TOO_LARGE: 200,
    ErrorCode.INVALID_FILE_TYPE: 200,
    ErrorCode.CONVERSION_NOT_SUPPORTED: 200,
    ErrorCode.NO_OUTPUT: 200,
    ErrorCode.NOT_FOUND: 404,
    ErrorCode.RATE_LIMITED: 429,
    ErrorCode.CONVERTER_NOT_FOUND: 500,
    ErrorCode.CONVERSION_FAILED: 500,
    ErrorCode.INVALID_DOCUMENT: 500,
    ErrorCode.INTERNAL_ERROR: 500,
}

ERROR_SEVERITY_MAP: Dict[ErrorCode, ErrorSeverity] = {
    ErrorCode.INTERNAL_ERROR: ErrorSeverity.CRITICAL,
    ErrorCode.CONVERTER_NOT_FOUND: ErrorSeverity.HIGH,
    ErrorCode.CONVERSION_FAILED: ErrorSeverity.HIGH,
    ErrorCode.INVALID_DOCUMENT: ErrorSeverity.MEDIUM,
    ErrorCode.NO_OUTPUT: ErrorSeverity.MEDIUM,
    ErrorCode.RATE_LIMITED: ErrorSeverity.MEDIUM,
    ErrorCode.NO_FILES: ErrorSeverity.LOW,
    ErrorCode.TOO_MANY_FILES: ErrorSeverity.LOW,
    ErrorCode.FILE_TOO_LARGE: ErrorSeverity.LOW,
    ErrorCode.INVALID_FILE_TYPE: ErrorSeverity.LOW,
    ErrorCode.CONVERSION_NOT_SUPPORTED: ErrorSeverity.LOW,
    ErrorCode.NOT_FOUND: ErrorSeverity.LOW,
}


class QuickConvertError(Exception):
    """Base class for errors that are reported to the user as an error page."""

    error_code = ErrorCode.INTERNAL_ERROR

    def __init__(self, message: str, error_code: Optional[ErrorCode] = None):
        super().__init__(message)
        self.message = message
        if error_code is not None:
            self.error_code = error_code

    @property
    def status_code(self) -> int:
        return ERROR_STATUS_MAP.get(self.error_code, 500)


def log_error(error_code: Union[ErrorCode, str], details: Optional[str] = None, **context) -> None:
    """Log an error at the level matching its severity."""
    if isinstance(error_code, ErrorCode):
        severity = ERROR_SEVERITY_MAP.get(error_code, ErrorSeverity.MEDIUM)
        error_type = error_code.value
    else:
        severity = ErrorSeverity.MEDIUM
        error_type = str(error_code)

    log_message = f"Error response: error={error_type} details={details!r}"
    if context:
        log_message += f" context={context}"

    if severity == ErrorSeverity.CRITICAL:
        logger.critical(log_message)
    elif severity == ErrorSeverity.HIGH:
        logger.error(log_message)
    elif severity == ErrorSeverity.MEDIUM:
        logger.warning(log_message)
    else:
        logger.info(log_message)


def create_error_response(
    error_code: Union[ErrorCode, str],
    details: str,
    status_code: Optional[int] = None,
    **context
) -> HTMLResponse:
    """
    Create a consistent HTML error page response.

    Args:
        error_code: Error code from ErrorCode enum or custom string
        details: User-facing message (truncated to 1000 chars)
        status_code: Override the default HTTP status code
        **context: Extra fields included in the log line only

    Returns:
        HTMLResponse rendering the error page
    """
    if status_code is None:
        if isinstance(error_code, ErrorCode):
            status_code = ERROR_STATUS_MAP.get(error_code, 500)
        else:
            status_code = 500

    message = str(details)[:1000]
    log_error(error_code, message, status_code=status_code, **context)

    return HTMLResponse(content=render_error_page(message), status_code=status_code)


def error_response_from_exception(error: QuickConvertError, **context) -> HTMLResponse:
    """Render a QuickConvertError with its own code and status."""
    return create_error_response(error.error_code, error.message, status_code=error.status_code, **context)
