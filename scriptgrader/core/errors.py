"""
Error taxonomy for the grading pipeline.

Stage code raises these; the pipeline runner turns anything that reaches it into a
short, user-safe message via user_message_for(). Raw exception text only goes to the log.
"""

import json
import socket
from enum import Enum


class GradingServiceError(Exception):
    pass


class TransientServiceError(GradingServiceError):
    """Connection reset, timeout, DNS failure. Worth retrying."""


class ServiceConfigurationError(GradingServiceError):
    """Missing or rejected credentials. Retrying cannot fix it."""


class MalformedResponseError(GradingServiceError):
    """The model answered, but nothing usable could be parsed out of it."""


class ImageStorageError(GradingServiceError):
    pass


class SubmissionSuperseded(GradingServiceError):
    """The submission row was deleted (re-submitted) while its pipeline was running."""


class ErrorCategory(str, Enum):
    NETWORK = "network"
    CONFIGURATION = "configuration"
    MALFORMED_RESPONSE = "malformed_response"
    STORAGE = "storage"
    UNKNOWN = "unknown"


USER_MESSAGES = {
    ErrorCategory.NETWORK: (
        "Connection error: Unable to reach the grading service. "
        "Please check your internet connection and try again."
    ),
    ErrorCategory.CONFIGURATION: (
        "Configuration error: The grading service is not properly configured. "
        "Please contact your administrator."
    ),
    ErrorCategory.MALFORMED_RESPONSE: (
        "Processing error: The grading service returned an unexpected response. "
        "Please try again."
    ),
    ErrorCategory.STORAGE: (
        "Upload error: One of the uploaded pages could not be read. "
        "Please upload the pages again."
    ),
    ErrorCategory.UNKNOWN: (
        "An error occurred while processing your submission. Please try again."
    ),
}

_NETWORK_HINTS = ("fetch failed", "econnreset", "enotfound", "etimedout", "timeout", "timed out", "network")
_CONFIG_HINTS = ("api key", "api_key", "credential", "not configured")
_MALFORMED_HINTS = ("json", "parse")


def is_network_error(exc: BaseException) -> bool:
    # socket.timeout is TimeoutError and socket.gaierror is OSError on py3.10+
    return isinstance(exc, (TransientServiceError, ConnectionError, TimeoutError, socket.gaierror))


def classify_error(exc: BaseException) -> ErrorCategory:
    if is_network_error(exc):
        return ErrorCategory.NETWORK
    if isinstance(exc, ServiceConfigurationError):
        return ErrorCategory.CONFIGURATION
    if isinstance(exc, (MalformedResponseError, json.JSONDecodeError)):
        return ErrorCategory.MALFORMED_RESPONSE
    if isinstance(exc, ImageStorageError):
        return ErrorCategory.STORAGE

    message = str(exc).lower()
    if any(hint in message for hint in _NETWORK_HINTS):
        return ErrorCategory.NETWORK
    if any(hint in message for hint in _CONFIG_HINTS):
        return ErrorCategory.CONFIGURATION
    if any(hint in message for hint in _MALFORMED_HINTS):
        return ErrorCategory.MALFORMED_RESPONSE
    return ErrorCategory.UNKNOWN


def user_message_for(exc: BaseException) -> str:
    return USER_MESSAGES[classify_error(exc)]
