"""Validation rules for the connection settings form.

Every validator is a pure function returning an ``ErrorKind`` or None.
Translating kinds into message keys and field errors is left to callers.
"""

from __future__ import annotations

import re
from collections.abc import Sequence
from dataclasses import dataclass, field

from fmeconnect.messages import message_key_for
from fmeconnect.sanitizer import parse_server_url
from fmeconnect.types import ErrorKind, FieldName

__all__ = [
    "EMAIL_PATTERN",
    "MAX_REQUEST_TIMEOUT_MS",
    "MAX_TAG_LENGTH",
    "MIN_TOKEN_LENGTH",
    "ValidationResult",
    "parse_non_negative_int",
    "validate_connection_inputs",
    "validate_directive",
    "validate_email",
    "validate_repository",
    "validate_server_url",
    "validate_token",
]

MIN_TOKEN_LENGTH = 10
# Characters that are unsafe inside an HTTP header value
UNSAFE_TOKEN_CHARS = frozenset("<>\"'`")

EMAIL_PATTERN = re.compile(r"^[^\s@]{1,64}@[^\s@]{1,253}\.[^\s@]{2,63}$")

MAX_TAG_LENGTH = 128
MAX_REQUEST_TIMEOUT_MS = 600_000

# Hostnames of branded deployments, e.g. "my-fmeflow" on an internal network
BRANDED_HOSTNAME_PATTERN = re.compile(r"fme", re.IGNORECASE)

_NUMERIC_HOST = re.compile(r"^[\d.]+$")
_NON_NEGATIVE_INT = re.compile(r"^\d+$")
_DEL = 127


def _is_valid_ipv4(host: str) -> bool:
    octets = host.split(".")
    if len(octets) != 4:
        return False
    return all(o.isdigit() and len(o) <= 3 and int(o) <= 255 for o in octets)


def _is_allowed_hostname(host: str) -> bool:
    if host == "localhost":
        return True
    if _NUMERIC_HOST.match(host):
        return _is_valid_ipv4(host)
    if "." in host:
        return all(label for label in host.split("."))
    return BRANDED_HOSTNAME_PATTERN.search(host) is not None


def validate_server_url(
    value: str | None, *, strict: bool = False, require_https: bool = False
) -> ErrorKind | None:
    """Validate a server URL as typed into the form.

    Args:
        value: Raw URL string.
        strict: Also require a dotted hostname of at least four characters.
        require_https: Reject plain ``http://`` URLs.

    Returns:
        ``MISSING_URL``, ``INVALID_URL`` or ``BAD_BASE_URL``, or None if valid.
    """
    trimmed = (value or "").strip()
    if not trimmed:
        return ErrorKind.MISSING_URL

    parsed = parse_server_url(trimmed)
    if parsed is None or parsed.has_credentials:
        return ErrorKind.INVALID_URL
    if require_https and parsed.scheme != "https":
        return ErrorKind.INVALID_URL
    if parsed.query or parsed.fragment:
        return ErrorKind.INVALID_URL
    if parsed.has_reserved_path:
        return ErrorKind.BAD_BASE_URL

    host = parsed.hostname
    if host.endswith(".") or not _is_allowed_hostname(host):
        return ErrorKind.INVALID_URL
    if strict and ("." not in host or len(host) < 4):
        return ErrorKind.INVALID_URL
    return None


def validate_token(token: str | None) -> ErrorKind | None:
    """Validate an FME Flow API token.

    Args:
        token: Raw token string.

    Returns:
        ``MISSING_TOKEN`` or ``INVALID_TOKEN``, or None if valid.
    """
    if not token or not token.strip():
        return ErrorKind.MISSING_TOKEN
    for char in token:
        if char.isspace() or ord(char) < 32 or ord(char) == _DEL or char in UNSAFE_TOKEN_CHARS:
            return ErrorKind.INVALID_TOKEN
    if len(token) < MIN_TOKEN_LENGTH:
        return ErrorKind.INVALID_TOKEN
    return None


def validate_repository(
    repository: str | None, available: Sequence[str] | None
) -> ErrorKind | None:
    """Validate the selected repository against the loaded list.

    Args:
        repository: Selected repository name.
        available: Loaded repository names, or None if never loaded.

    Returns:
        ``REPOSITORY_REQUIRED`` or ``REPOSITORY_NOT_FOUND``, or None if valid.
    """
    if available is None or not available:
        return None
    name = (repository or "").strip()
    if not name:
        return ErrorKind.REPOSITORY_REQUIRED
    if name not in available:
        return ErrorKind.REPOSITORY_NOT_FOUND
    return None


def validate_email(email: str | None) -> ErrorKind | None:
    """Validate an optional email address.

    Args:
        email: Raw email string; empty means "not set".

    Returns:
        ``INVALID_EMAIL`` or None.
    """
    trimmed = (email or "").strip()
    if not trimmed:
        return None
    return None if EMAIL_PATTERN.match(trimmed) else ErrorKind.INVALID_EMAIL


def parse_non_negative_int(raw: str | int | None) -> int | None:
    """Parse a non-negative integer from form input.

    Args:
        raw: Raw input value.

    Returns:
        The integer, or None for empty or unparsable input.
    """
    if raw is None:
        return None
    if isinstance(raw, int):
        return raw if raw >= 0 else None
    text = raw.strip()
    if not _NON_NEGATIVE_INT.match(text):
        return None
    return int(text)


def validate_directive(field_name: FieldName, raw: str | int | None) -> ErrorKind | None:
    """Validate a job-directive field.

    Empty values mean "unset" and are always valid.

    Args:
        field_name: One of the job-directive fields.
        raw: Raw input value.

    Returns:
        ``INVALID_DIRECTIVE`` or None.

    Raises:
        ValueError: If ``field_name`` is not a job-directive field.
    """
    if field_name not in FieldName.directive_fields():
        raise ValueError(f"Not a job directive field: {field_name}")

    if raw is None or (isinstance(raw, str) and not raw.strip()):
        return None

    if field_name == FieldName.TM_TAG:
        text = str(raw).strip()
        if len(text) > MAX_TAG_LENGTH or any(ord(c) < 32 or ord(c) == _DEL for c in text):
            return ErrorKind.INVALID_DIRECTIVE
        return None

    value = parse_non_negative_int(raw)
    if value is None:
        return ErrorKind.INVALID_DIRECTIVE
    if field_name == FieldName.REQUEST_TIMEOUT and value > MAX_REQUEST_TIMEOUT_MS:
        return ErrorKind.INVALID_DIRECTIVE
    return None


@dataclass
class ValidationResult:
    """Outcome of a full-form validation pass.

    Attributes:
        field_errors: Error kind per failing field.
    """

    field_errors: dict[FieldName, ErrorKind] = field(default_factory=dict)

    @property
    def has_errors(self) -> bool:
        """True if any field failed validation."""
        return bool(self.field_errors)

    def message_keys(self) -> dict[FieldName, str]:
        """Return the message key for each failing field."""
        return {name: message_key_for(kind) for name, kind in self.field_errors.items()}


def validate_connection_inputs(
    server_url: str,
    token: str,
    repository: str,
    available_repos: Sequence[str] | None,
    support_email: str = "",
    *,
    skip_repository_check: bool = False,
    require_https: bool = False,
) -> ValidationResult:
    """Validate every connection field in one pass.

    Args:
        server_url: Server URL as entered.
        token: Token as entered.
        repository: Selected repository.
        available_repos: Loaded repository names, or None if never loaded.
        support_email: Optional support email.
        skip_repository_check: Skip repository membership and email checks,
            used when testing before a server-confirmed list exists.
        require_https: Reject plain ``http://`` URLs.

    Returns:
        ValidationResult with one entry per failing field.
    """
    result = ValidationResult()

    url_error = validate_server_url(server_url, require_https=require_https)
    if url_error is not None:
        result.field_errors[FieldName.SERVER_URL] = url_error

    token_error = validate_token(token)
    if token_error is not None:
        result.field_errors[FieldName.TOKEN] = token_error

    if not skip_repository_check:
        repo_error = validate_repository(repository, available_repos)
        if repo_error is not None:
            result.field_errors[FieldName.REPOSITORY] = repo_error
        email_error = validate_email(support_email)
        if email_error is not None:
            result.field_errors[FieldName.SUPPORT_EMAIL] = email_error

    return result
