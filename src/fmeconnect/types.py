"""Type definitions and enums for FME Connect.

This module provides centralized enums for form fields, error kinds, and
the status values used by the connection-test state machine, replacing
magic strings throughout the codebase with type-safe constants.

Usage:
    from fmeconnect.types import ErrorKind, FieldName

    # StrEnum members compare equal to their string values
    if field == FieldName.TOKEN:
        ...

    ErrorKind.is_valid("invalid_token")  # True
    ErrorKind.INVALID_TOKEN.category  # ErrorCategory.INVALID_FORMAT
"""

from __future__ import annotations

from enum import StrEnum


class FieldName(StrEnum):
    """Form fields that can carry a field-level error.

    The three connection fields double as keys in the settings store.
    """

    SERVER_URL = "serverUrl"
    TOKEN = "token"
    REPOSITORY = "repository"
    SUPPORT_EMAIL = "supportEmail"
    TM_TTC = "tm_ttc"
    TM_TTL = "tm_ttl"
    TM_TAG = "tm_tag"
    REQUEST_TIMEOUT = "requestTimeout"

    @classmethod
    def is_valid(cls, value: str) -> bool:
        """Check if a string value is a known field name.

        Args:
            value: The string value to validate.

        Returns:
            True if the value matches a field name.
        """
        return value in cls._value2member_map_

    @classmethod
    def connection_fields(cls) -> tuple[FieldName, FieldName, FieldName]:
        """Return the fields that make up a connection.

        Returns:
            The server URL, token and repository fields, in that order.
        """
        return (cls.SERVER_URL, cls.TOKEN, cls.REPOSITORY)

    @classmethod
    def directive_fields(cls) -> frozenset[FieldName]:
        """Return the job-directive fields.

        Returns:
            Frozenset of the job-directive fields.
        """
        return frozenset({cls.TM_TTC, cls.TM_TTL, cls.TM_TAG, cls.REQUEST_TIMEOUT})


class ErrorCategory(StrEnum):
    """Coarse error taxonomy used for reporting."""

    MISSING_INPUT = "missing_input"
    INVALID_FORMAT = "invalid_format"
    UNAUTHORIZED = "unauthorized"
    NOT_FOUND = "not_found"
    NETWORK_ERROR = "network_error"
    TIMEOUT = "timeout"
    RATE_LIMITED = "rate_limited"
    SERVER_ERROR = "server_error"
    REPOSITORY_NOT_FOUND = "repository_not_found"
    REPOSITORY_LIST_UNAVAILABLE = "repository_list_unavailable"
    CANCELLED = "cancelled"
    GENERIC = "generic"


class ErrorKind(StrEnum):
    """Every error outcome produced by validation or failure mapping."""

    # Input validation
    MISSING_URL = "missing_url"
    INVALID_URL = "invalid_url"
    BAD_BASE_URL = "bad_base_url"
    MISSING_TOKEN = "missing_token"
    INVALID_TOKEN = "invalid_token"
    REPOSITORY_REQUIRED = "repository_required"
    REPOSITORY_NOT_FOUND = "repository_not_found"
    INVALID_EMAIL = "invalid_email"
    INVALID_DIRECTIVE = "invalid_directive"

    # Remote failures
    UNAUTHORIZED = "unauthorized"
    NOT_FOUND = "not_found"
    NETWORK_ERROR = "network_error"
    TIMEOUT = "timeout"
    TOO_MANY_REQUESTS = "too_many_requests"
    HEADERS_TOO_LARGE = "headers_too_large"
    BAD_GATEWAY = "bad_gateway"
    SERVICE_UNAVAILABLE = "service_unavailable"
    SERVER_ERROR = "server_error"
    INVALID_RESPONSE = "invalid_response"
    REPOSITORY_LIST_UNAVAILABLE = "repository_list_unavailable"
    CANCELLED = "cancelled"
    GENERIC_ERROR = "generic_error"

    @classmethod
    def is_valid(cls, value: str) -> bool:
        """Check if a string value is a known error kind.

        Args:
            value: The string value to validate.

        Returns:
            True if the value matches an error kind.
        """
        return value in cls._value2member_map_

    @property
    def category(self) -> ErrorCategory:
        """The taxonomy bucket this kind belongs to."""
        return _CATEGORIES.get(self, ErrorCategory.GENERIC)


_CATEGORIES: dict[ErrorKind, ErrorCategory] = {
    ErrorKind.MISSING_URL: ErrorCategory.MISSING_INPUT,
    ErrorKind.MISSING_TOKEN: ErrorCategory.MISSING_INPUT,
    ErrorKind.REPOSITORY_REQUIRED: ErrorCategory.MISSING_INPUT,
    ErrorKind.INVALID_URL: ErrorCategory.INVALID_FORMAT,
    ErrorKind.BAD_BASE_URL: ErrorCategory.INVALID_FORMAT,
    ErrorKind.INVALID_TOKEN: ErrorCategory.INVALID_FORMAT,
    ErrorKind.INVALID_EMAIL: ErrorCategory.INVALID_FORMAT,
    ErrorKind.INVALID_DIRECTIVE: ErrorCategory.INVALID_FORMAT,
    ErrorKind.HEADERS_TOO_LARGE: ErrorCategory.INVALID_FORMAT,
    ErrorKind.UNAUTHORIZED: ErrorCategory.UNAUTHORIZED,
    ErrorKind.INVALID_RESPONSE: ErrorCategory.UNAUTHORIZED,
    ErrorKind.NOT_FOUND: ErrorCategory.NOT_FOUND,
    ErrorKind.NETWORK_ERROR: ErrorCategory.NETWORK_ERROR,
    ErrorKind.TIMEOUT: ErrorCategory.TIMEOUT,
    ErrorKind.TOO_MANY_REQUESTS: ErrorCategory.RATE_LIMITED,
    ErrorKind.BAD_GATEWAY: ErrorCategory.SERVER_ERROR,
    ErrorKind.SERVICE_UNAVAILABLE: ErrorCategory.SERVER_ERROR,
    ErrorKind.SERVER_ERROR: ErrorCategory.SERVER_ERROR,
    ErrorKind.REPOSITORY_NOT_FOUND: ErrorCategory.REPOSITORY_NOT_FOUND,
    ErrorKind.REPOSITORY_LIST_UNAVAILABLE: ErrorCategory.REPOSITORY_LIST_UNAVAILABLE,
    ErrorKind.CANCELLED: ErrorCategory.CANCELLED,
}


class StepStatus(StrEnum):
    """Status of a single probe phase as shown in the check list."""

    IDLE = "idle"
    PENDING = "pending"
    OK = "ok"
    FAIL = "fail"
    SKIP = "skip"


class TestStatus(StrEnum):
    """Overall status of a connection test."""

    __test__ = False  # keep pytest from collecting this as a test class

    IDLE = "idle"
    RUNNING = "running"
    SUCCESS = "success"
    ERROR = "error"


class Severity(StrEnum):
    """Severity of the banner message."""

    INFO = "info"
    SUCCESS = "success"
    ERROR = "error"


__all__ = [
    "ErrorCategory",
    "ErrorKind",
    "FieldName",
    "Severity",
    "StepStatus",
    "TestStatus",
]
