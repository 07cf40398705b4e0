"""Async REST client for the FME Flow v4 API.

Only the handful of read-only endpoints needed to validate a connection
are covered. Every request is raced against the caller's cancellation
token, and every transport failure is re-raised as ``FmeFlowApiError`` so
``map_failure`` sees one error shape.

Usage:
    async with FmeFlowClient() as client:
        info = await client.basic_connection_check(url, token, CancellationToken())
"""

from __future__ import annotations

import re
from collections.abc import Mapping
from types import TracebackType
from typing import Any, Self

import httpx

from fmeconnect.cancellation import CancellationToken
from fmeconnect.errors import (
    CODE_INVALID_RESPONSE_FORMAT,
    CODE_NETWORK_ERROR,
    CODE_REPOSITORIES_ERROR,
    CODE_REQUEST_FAILED,
    CODE_TIMEOUT,
    FmeFlowApiError,
)
from fmeconnect.logging import get_logger, mask_token
from fmeconnect.probe import ConnectionValidationResult, ServerInfo, validate_connection
from fmeconnect.sanitizer import build_url
from fmeconnect.state import ConnectionSettings

logger = get_logger(__name__)

# Default timeout for HTTP requests (connect, read, write, pool)
DEFAULT_TIMEOUT = httpx.Timeout(10.0, read=30.0)

API_BASE_PATH = "fmeapiv4"

FME_VERSION_PATTERN = re.compile(r"\bFME\s+(?:Flow|Server)\s+(\d{4}(?:\.\d+)?)\b", re.IGNORECASE)
GENERIC_VERSION_PATTERN = re.compile(r"\b(\d{4}(?:\.\d+)*)\b")

_VERSION_KEYS = ("build", "version", "fmeflowVersion", "serverVersion")


def extract_fme_version(info: Any) -> str:
    """Pull the FME Flow version out of an ``/info`` payload.

    Prefers an ``FME Flow 2024.1`` style marker in any version-like field,
    then any bare year-based version number.

    Args:
        info: Decoded ``/info`` response.

    Returns:
        Version string such as ``2024.1``, or empty if none was found.
    """
    if not isinstance(info, Mapping):
        return ""

    candidates = [info[key] for key in _VERSION_KEYS if isinstance(info.get(key), str)]
    for value in candidates:
        match = FME_VERSION_PATTERN.search(value)
        if match:
            return match.group(1)
    for value in candidates:
        match = GENERIC_VERSION_PATTERN.search(value)
        if match:
            return match.group(1)
    return ""


def extract_repository_names(data: Any) -> list[object] | None:
    """Pull repository names out of a listing payload.

    Accepts a bare list or an ``{"items": [...]}`` envelope whose entries
    are strings or ``{"name": ...}`` objects.

    Args:
        data: Decoded listing response.

    Returns:
        Raw names in server order, or None if the payload shape is unknown.
    """
    if isinstance(data, Mapping):
        data = data.get("items")
    if not isinstance(data, list):
        return None
    names: list[object] = []
    for item in data:
        if isinstance(item, Mapping):
            names.append(item.get("name"))
        else:
            names.append(item)
    return names


def _error_detail(response: httpx.Response) -> str:
    try:
        body = response.json()
    except ValueError:
        return ""
    if isinstance(body, Mapping) and isinstance(body.get("message"), str):
        return body["message"]
    return ""


class FmeFlowClient:
    """FME Flow API client implementing the probe's ``FlowService`` contract.

    The underlying ``httpx.AsyncClient`` is created lazily and shared by all
    requests until :meth:`aclose` is called.

    Attributes:
        timeout: Timeout applied to every request.
    """

    def __init__(
        self,
        timeout: httpx.Timeout | float | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        """Initialize the client.

        Args:
            timeout: Request timeout, as an ``httpx.Timeout`` or seconds.
            transport: Optional transport, e.g. ``httpx.MockTransport`` in tests.
        """
        if timeout is None:
            self.timeout = DEFAULT_TIMEOUT
        elif isinstance(timeout, httpx.Timeout):
            self.timeout = timeout
        else:
            self.timeout = httpx.Timeout(timeout)
        self._transport = transport
        self._client: httpx.AsyncClient | None = None

    def _get_client(self) -> httpx.AsyncClient:
        if self._client is None:
            self._client = httpx.AsyncClient(
                timeout=self.timeout,
                transport=self._transport,
                headers={"Accept": "application/json"},
            )
        return self._client

    async def aclose(self) -> None:
        """Close the HTTP client and release resources."""
        if self._client is not None:
            await self._client.aclose()
            self._client = None

    async def __aenter__(self) -> Self:
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc_val: BaseException | None,
        exc_tb: TracebackType | None,
    ) -> None:
        await self.aclose()

    async def _get(
        self,
        server_url: str,
        token: str,
        segments: tuple[str, ...],
        cancel: CancellationToken,
        params: dict[str, Any] | None = None,
    ) -> httpx.Response:
        url = build_url(server_url, API_BASE_PATH, *segments)
        headers = {"Authorization": f"fmetoken token={token}"}
        logger.debug("GET %s (token %s)", url, mask_token(token))
        client = self._get_client()
        try:
            return await cancel.guard(client.get(url, params=params, headers=headers))
        except httpx.TimeoutException as e:
            raise FmeFlowApiError(f"Request to {url} timed out: {e}", code=CODE_TIMEOUT) from e
        except httpx.RequestError as e:
            raise FmeFlowApiError(
                f"Request to {url} failed: {e}", code=CODE_NETWORK_ERROR, status=0
            ) from e

    @staticmethod
    def _raise_for_status(response: httpx.Response, action: str) -> None:
        try:
            response.raise_for_status()
        except httpx.HTTPStatusError as e:
            status = e.response.status_code
            error_msg = f"{action} failed with status {status}"
            detail = _error_detail(e.response)
            if detail:
                error_msg += f": {detail}"
            raise FmeFlowApiError(error_msg, code=CODE_REQUEST_FAILED, status=status) from e

    @staticmethod
    def _json(response: httpx.Response, action: str) -> Any:
        try:
            return response.json()
        except ValueError as e:
            raise FmeFlowApiError(
                f"{action} returned a non-JSON response",
                code=CODE_INVALID_RESPONSE_FORMAT,
                status=response.status_code,
            ) from e

    async def basic_connection_check(
        self, server_url: str, token: str, cancel: CancellationToken
    ) -> ServerInfo:
        """Check reachability and authentication via ``GET /fmeapiv4/info``.

        Args:
            server_url: Sanitized base URL.
            token: API token.
            cancel: Cancellation token of the calling run.

        Returns:
            ServerInfo with the reported version.

        Raises:
            FmeFlowApiError: If the request fails.
            OperationCancelled: If the token was cancelled.
        """
        response = await self._get(server_url, token, ("info",), cancel)
        self._raise_for_status(response, "Connection check")
        data = self._json(response, "Connection check")
        if not isinstance(data, Mapping):
            raise FmeFlowApiError(
                "Connection check returned an unexpected payload",
                code=CODE_INVALID_RESPONSE_FORMAT,
                status=response.status_code,
            )
        build = data.get("build")
        return ServerInfo(
            version=extract_fme_version(data), build=build if isinstance(build, str) else ""
        )

    async def list_repositories(
        self, server_url: str, token: str, cancel: CancellationToken
    ) -> list[str]:
        """List repository names via ``GET /fmeapiv4/repositories``.

        Args:
            server_url: Sanitized base URL.
            token: API token.
            cancel: Cancellation token of the calling run.

        Returns:
            Repository names in server order, not deduplicated.

        Raises:
            FmeFlowApiError: With code ``REPOSITORIES_ERROR`` if listing fails.
            OperationCancelled: If the token was cancelled.
        """
        try:
            response = await self._get(
                server_url, token, ("repositories",), cancel, params={"limit": -1, "offset": -1}
            )
            self._raise_for_status(response, "Repository listing")
            names = extract_repository_names(self._json(response, "Repository listing"))
        except FmeFlowApiError as e:
            raise FmeFlowApiError(e.message, code=CODE_REPOSITORIES_ERROR, status=e.status) from e

        if names is None:
            raise FmeFlowApiError(
                "Repository listing returned an unexpected payload",
                code=CODE_REPOSITORIES_ERROR,
                status=response.status_code,
            )
        logger.debug("Listed %s repositories", len(names), extra={"diagnostic_tag": "repositories"})
        return [name for name in names if isinstance(name, str)]

    async def repository_exists(
        self, server_url: str, token: str, repository: str, cancel: CancellationToken
    ) -> bool:
        """Check a single repository via ``GET /fmeapiv4/repositories/<name>``.

        Args:
            server_url: Sanitized base URL.
            token: API token.
            repository: Repository name.
            cancel: Cancellation token of the calling run.

        Returns:
            True if the repository exists, False on 404.

        Raises:
            FmeFlowApiError: For any other failure.
            OperationCancelled: If the token was cancelled.
        """
        response = await self._get(server_url, token, ("repositories", repository), cancel)
        if response.status_code == 404:
            return False
        self._raise_for_status(response, f"Repository check for {repository}")
        return True

    async def full_validate(
        self,
        server_url: str,
        token: str,
        repository: str = "",
        cancel: CancellationToken | None = None,
    ) -> ConnectionValidationResult:
        """Run the complete three-phase probe against this client.

        Args:
            server_url: Server URL; it is sanitized first.
            token: API token.
            repository: Optional repository to confirm.
            cancel: Cancellation token; a fresh one is used if omitted.

        Returns:
            The probe outcome.

        Raises:
            ValueError: If the URL or token is empty after sanitization.
            OperationCancelled: If the token was cancelled.
        """
        settings = ConnectionSettings.create(server_url, token, repository)
        if settings is None:
            raise ValueError("A valid server URL and token are required")
        return await validate_connection(self, settings, cancel or CancellationToken())


__all__ = [
    "API_BASE_PATH",
    "DEFAULT_TIMEOUT",
    "FmeFlowClient",
    "extract_fme_version",
    "extract_repository_names",
]
