"""Error types and failure mapping for FME Flow requests.

``map_failure`` turns whatever a collaborator raised (an ``FmeFlowApiError``,
a raw ``httpx`` exception, a plain mapping) into a single ``FailureOutcome``
that names the error kind, the form field it belongs to and the message key
to show. The mapping is total: it never raises.
"""

from __future__ import annotations

import asyncio
import re
from collections.abc import Mapping
from dataclasses import dataclass
from typing import Any

import httpx

from fmeconnect.cancellation import OperationCancelled
from fmeconnect.logging import get_logger
from fmeconnect.messages import (
    HINT_INVALID_RESPONSE,
    HINT_REPOSITORIES_UNAVAILABLE,
    message_key_for,
)
from fmeconnect.types import ErrorKind, FieldName

logger = get_logger(__name__)

# Application error codes attached by the HTTP client
CODE_REQUEST_FAILED = "REQUEST_FAILED"
CODE_TIMEOUT = "TIMEOUT"
CODE_NETWORK_ERROR = "NETWORK_ERROR"
CODE_INVALID_RESPONSE_FORMAT = "INVALID_RESPONSE_FORMAT"
CODE_REPOSITORIES_ERROR = "REPOSITORIES_ERROR"

_STATUS_KEYS = ("status", "status_code", "statusCode", "http_status", "httpStatus")
_STATUS_IN_MESSAGE = re.compile(r"status[:=]?\s*(\d{3})", re.IGNORECASE)
_PROXY_INDICATORS = ("unable to load", "/sharing/proxy", "proxy")
_NETWORK_INDICATORS = ("failed to fetch", "connection refused", "network", "cors")
_TIMEOUT_INDICATORS = ("timeout", "timed out")


class FmeFlowApiError(Exception):
    """Raised when a request to FME Flow fails.

    Attributes:
        message: Human-readable description of the failure.
        code: Application error code, e.g. ``REQUEST_FAILED``.
        status: HTTP status, 0 when no response was received, None if unknown.
    """

    def __init__(self, message: str, code: str | None = None, status: int | None = None) -> None:
        super().__init__(message)
        self.message = message
        self.code = code
        self.status = status


@dataclass(frozen=True)
class FailureOutcome:
    """A mapped failure.

    Attributes:
        kind: The error kind.
        field: Form field the error belongs to, None for banner-only errors.
        message: Message key to display.
        hint: Optional advisory message key.
        status: HTTP status the mapping was based on, if any.
    """

    kind: ErrorKind
    field: FieldName | None
    message: str
    hint: str | None = None
    status: int | None = None

    @property
    def is_cancelled(self) -> bool:
        """True if the failure was a cancellation."""
        return self.kind == ErrorKind.CANCELLED


def is_cancellation(error: object) -> bool:
    """Check whether an error represents a cancelled operation."""
    return isinstance(error, OperationCancelled | asyncio.CancelledError)


def _coerce_status(value: Any) -> int | None:
    if isinstance(value, bool):
        return None
    if isinstance(value, int):
        return value
    if isinstance(value, str) and value.strip().isdigit():
        return int(value.strip())
    return None


def _status_from(source: Any) -> int | None:
    for key in _STATUS_KEYS:
        if isinstance(source, Mapping):
            value = source.get(key)
        else:
            value = getattr(source, key, None)
        status = _coerce_status(value)
        if status is not None:
            return status
    return None


def _error_message(error: object) -> str:
    if isinstance(error, str):
        return error
    if isinstance(error, Mapping):
        return str(error.get("message") or "")
    message = getattr(error, "message", None)
    if isinstance(message, str) and message:
        return message
    return str(error) if isinstance(error, BaseException) else ""


def _error_code(error: object) -> str | None:
    if isinstance(error, Mapping):
        code = error.get("code")
    else:
        code = getattr(error, "code", None)
    return code if isinstance(code, str) and code else None


def extract_http_status(error: object) -> int | None:
    """Find the HTTP status carried by an error.

    Looks at ``httpx.HTTPStatusError`` responses, status attributes or
    mapping keys, a nested ``details`` object, and finally a ``status: NNN``
    fragment in the message.

    Args:
        error: Any error-like object.

    Returns:
        The HTTP status, or None if none was found.
    """
    if isinstance(error, httpx.HTTPStatusError):
        return error.response.status_code

    status = _status_from(error)
    if status is not None:
        return status

    if isinstance(error, Mapping):
        details = error.get("details")
    else:
        details = getattr(error, "details", None)
    if details is not None:
        status = _status_from(details)
        if status is not None:
            return status

    match = _STATUS_IN_MESSAGE.search(_error_message(error))
    if match:
        return int(match.group(1))
    return None


def _outcome(
    kind: ErrorKind,
    field: FieldName | None,
    status: int | None,
    hint: str | None = None,
) -> FailureOutcome:
    return FailureOutcome(
        kind=kind, field=field, message=message_key_for(kind), hint=hint, status=status
    )


def _from_status(status: int, message: str) -> FailureOutcome | None:
    lowered = message.lower()
    if status == 0:
        return _outcome(ErrorKind.NETWORK_ERROR, FieldName.SERVER_URL, status)
    if status == 403 and any(marker in lowered for marker in _PROXY_INDICATORS):
        # The proxy refused the request before it reached FME Flow
        return _outcome(ErrorKind.NETWORK_ERROR, FieldName.SERVER_URL, status)
    if status in (401, 403):
        return _outcome(ErrorKind.UNAUTHORIZED, FieldName.TOKEN, status)
    if status == 404:
        return _outcome(ErrorKind.NOT_FOUND, FieldName.SERVER_URL, status)
    if status in (408, 504):
        return _outcome(ErrorKind.TIMEOUT, FieldName.SERVER_URL, status)
    if status == 429:
        return _outcome(ErrorKind.TOO_MANY_REQUESTS, None, status)
    if status == 431:
        return _outcome(ErrorKind.HEADERS_TOO_LARGE, FieldName.TOKEN, status)
    if status == 502:
        return _outcome(ErrorKind.BAD_GATEWAY, FieldName.SERVER_URL, status)
    if status == 503:
        return _outcome(ErrorKind.SERVICE_UNAVAILABLE, FieldName.SERVER_URL, status)
    if 500 <= status <= 599:
        return _outcome(ErrorKind.SERVER_ERROR, FieldName.SERVER_URL, status)
    return None


def _map_failure(error: object, http_status: int | None) -> FailureOutcome:
    if is_cancellation(error):
        return FailureOutcome(kind=ErrorKind.CANCELLED, field=None, message="")

    status = http_status if http_status is not None else extract_http_status(error)
    message = _error_message(error)
    code = _error_code(error)

    if code == CODE_INVALID_RESPONSE_FORMAT:
        return _outcome(ErrorKind.INVALID_RESPONSE, FieldName.TOKEN, status, HINT_INVALID_RESPONSE)
    if code == CODE_REPOSITORIES_ERROR:
        return _outcome(
            ErrorKind.REPOSITORY_LIST_UNAVAILABLE, None, status, HINT_REPOSITORIES_UNAVAILABLE
        )
    if code == CODE_TIMEOUT or isinstance(error, httpx.TimeoutException):
        return _outcome(ErrorKind.TIMEOUT, FieldName.SERVER_URL, status)

    if status is not None:
        outcome = _from_status(status, message)
        if outcome is not None:
            return outcome
    else:
        lowered = message.lower()
        if any(marker in lowered for marker in _TIMEOUT_INDICATORS):
            return _outcome(ErrorKind.TIMEOUT, FieldName.SERVER_URL, None)
        if (
            code == CODE_NETWORK_ERROR
            or isinstance(error, httpx.RequestError)
            or any(marker in lowered for marker in _NETWORK_INDICATORS)
        ):
            return _outcome(ErrorKind.NETWORK_ERROR, FieldName.SERVER_URL, None)

    return _outcome(ErrorKind.GENERIC_ERROR, None, status)


def map_failure(error: object, http_status: int | None = None) -> FailureOutcome:
    """Map a raw failure to an error kind, field attribution and message key.

    Application error codes take precedence over the HTTP status. Without a
    status, the message text is matched against known network and timeout
    phrasings. Anything unrecognized becomes a banner-only
    ``GENERIC_ERROR``.

    Args:
        error: The exception or error-like value to map.
        http_status: HTTP status, if the caller already knows it.

    Returns:
        The mapped FailureOutcome.
    """
    try:
        return _map_failure(error, http_status)
    except Exception:
        logger.exception("Failed to map error of type %s", type(error).__name__)
        return _outcome(ErrorKind.GENERIC_ERROR, None, http_status)


__all__ = [
    "CODE_INVALID_RESPONSE_FORMAT",
    "CODE_NETWORK_ERROR",
    "CODE_REPOSITORIES_ERROR",
    "CODE_REQUEST_FAILED",
    "CODE_TIMEOUT",
    "FailureOutcome",
    "FmeFlowApiError",
    "extract_http_status",
    "is_cancellation",
    "map_failure",
]
