"""Message keys and the default English catalog.

State objects only ever hold message keys; rendering layers resolve them
through :func:`translate` or their own catalog.
"""

from __future__ import annotations

from collections.abc import Mapping

from fmeconnect.types import ErrorKind

CONNECTION_OK = "connection_ok"
CONNECTION_OK_REPOSITORY_WARNING = "connection_ok_repository_warning"
CONNECTION_FAILED = "connection_failed"
TESTING_CONNECTION = "testing_connection"
FIX_ERRORS_ABOVE = "fix_errors_above"
ERROR_REPOSITORIES = "error_repositories"
HINT_REPOSITORIES_UNAVAILABLE = "hint_repositories_unavailable"
HINT_INVALID_RESPONSE = "hint_invalid_response"
REPOSITORY_NOT_ACCESSIBLE = "repository_not_accessible"
TEST_CONNECTION_FIRST = "test_connection_first"
LOADING_REPOSITORIES = "loading_repositories"
NO_REPOSITORIES_FOUND = "no_repositories_found"
REPO_PLACEHOLDER = "repo_placeholder"

ERROR_MESSAGE_KEYS: dict[ErrorKind, str] = {
    ErrorKind.MISSING_URL: "error_missing_server_url",
    ErrorKind.INVALID_URL: "error_invalid_server_url",
    ErrorKind.BAD_BASE_URL: "error_bad_base_url",
    ErrorKind.MISSING_TOKEN: "error_missing_token",
    ErrorKind.INVALID_TOKEN: "error_token_is_invalid",
    ErrorKind.REPOSITORY_REQUIRED: "error_repo_required",
    ErrorKind.REPOSITORY_NOT_FOUND: "error_repository_not_found",
    ErrorKind.INVALID_EMAIL: "invalid_email",
    ErrorKind.INVALID_DIRECTIVE: "error_invalid_directive",
    ErrorKind.UNAUTHORIZED: "error_token_issue",
    ErrorKind.NOT_FOUND: "error_not_found",
    ErrorKind.NETWORK_ERROR: "error_server_unreachable",
    ErrorKind.TIMEOUT: "error_timeout",
    ErrorKind.TOO_MANY_REQUESTS: "error_rate_limited",
    ErrorKind.HEADERS_TOO_LARGE: "error_headers_too_large",
    ErrorKind.BAD_GATEWAY: "error_bad_gateway",
    ErrorKind.SERVICE_UNAVAILABLE: "error_service_unavailable",
    ErrorKind.SERVER_ERROR: "error_server",
    ErrorKind.INVALID_RESPONSE: "error_invalid_response",
    ErrorKind.REPOSITORY_LIST_UNAVAILABLE: ERROR_REPOSITORIES,
    ErrorKind.CANCELLED: "",
    ErrorKind.GENERIC_ERROR: CONNECTION_FAILED,
}

DEFAULT_MESSAGES: dict[str, str] = {
    CONNECTION_OK: "Connection OK.",
    CONNECTION_OK_REPOSITORY_WARNING: (
        "Connection OK, but the selected repository could not be checked with this token."
    ),
    CONNECTION_FAILED: "Connection failed.",
    TESTING_CONNECTION: "Testing connection...",
    FIX_ERRORS_ABOVE: "Fix the errors above before testing the connection.",
    ERROR_REPOSITORIES: "Could not load repositories. You can still type a repository name.",
    HINT_REPOSITORIES_UNAVAILABLE: (
        "Repositories could not be listed. You can still type a repository name."
    ),
    HINT_INVALID_RESPONSE: (
        "The server did not answer with JSON. A proxy or login page may be rejecting the token."
    ),
    REPOSITORY_NOT_ACCESSIBLE: "The token cannot access the selected repository.",
    TEST_CONNECTION_FIRST: "Test the connection first",
    LOADING_REPOSITORIES: "Loading repositories...",
    NO_REPOSITORIES_FOUND: "No repositories found",
    REPO_PLACEHOLDER: "Select a repository",
    "error_missing_server_url": "Enter the FME Flow server URL.",
    "error_invalid_server_url": "Enter a valid http(s) server URL.",
    "error_bad_base_url": "Use the server base URL without /fmerest or /fmeapiv4.",
    "error_missing_token": "Enter an FME Flow token.",
    "error_token_is_invalid": "The token contains invalid characters or is too short.",
    "error_repo_required": "Select a repository.",
    "error_repository_not_found": "The repository was not found on the server.",
    "invalid_email": "Enter a valid email address.",
    "error_invalid_directive": "Enter a valid value.",
    "error_token_issue": "The token was rejected by the server.",
    "error_not_found": "The server URL does not point to an FME Flow API.",
    "error_server_unreachable": "The server could not be reached.",
    "error_timeout": "The server did not respond in time.",
    "error_rate_limited": "Too many requests. Try again shortly.",
    "error_headers_too_large": "The request headers are too large. Check the token.",
    "error_bad_gateway": "The server gateway returned an error.",
    "error_service_unavailable": "The server is temporarily unavailable.",
    "error_server": "The server returned an error.",
    "error_invalid_response": "The server returned an unexpected response.",
}


def message_key_for(kind: ErrorKind) -> str:
    """Return the message key for an error kind.

    Args:
        kind: The error kind.

    Returns:
        The message key, empty for ``ErrorKind.CANCELLED``.
    """
    return ERROR_MESSAGE_KEYS.get(kind, CONNECTION_FAILED)


def translate(key: str | None, catalog: Mapping[str, str] | None = None) -> str:
    """Resolve a message key to display text.

    Unknown keys resolve to themselves so missing catalog entries stay visible.

    Args:
        key: The message key, or None.
        catalog: Optional catalog overriding the English defaults.

    Returns:
        Display text, empty for a missing key.
    """
    if not key:
        return ""
    if catalog is not None and key in catalog:
        return catalog[key]
    return DEFAULT_MESSAGES.get(key, key)


__all__ = [
    "CONNECTION_FAILED",
    "CONNECTION_OK",
    "CONNECTION_OK_REPOSITORY_WARNING",
    "DEFAULT_MESSAGES",
    "ERROR_MESSAGE_KEYS",
    "ERROR_REPOSITORIES",
    "FIX_ERRORS_ABOVE",
    "HINT_INVALID_RESPONSE",
    "HINT_REPOSITORIES_UNAVAILABLE",
    "LOADING_REPOSITORIES",
    "NO_REPOSITORIES_FOUND",
    "REPOSITORY_NOT_ACCESSIBLE",
    "REPO_PLACEHOLDER",
    "TESTING_CONNECTION",
    "TEST_CONNECTION_FIRST",
    "message_key_for",
    "translate",
]
