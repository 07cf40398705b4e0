"""Server URL parsing and normalization.

Users paste all kinds of FME Flow URLs into the settings form: REST
endpoints, URLs with a trailing slash, links copied from the web UI with
query strings. This module reduces them to the canonical base URL the
client appends API paths to.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from urllib.parse import quote, urlsplit

# REST API prefixes that must not be part of the base URL
RESERVED_PATH_PATTERN = re.compile(r"/(?:fmerest|fmeapiv4)", re.IGNORECASE)

ALLOWED_SCHEMES = frozenset({"http", "https"})
DEFAULT_PORTS = {"http": 80, "https": 443}

_HOSTNAME_CHARS = re.compile(r"^[A-Za-z0-9._~:-]+$")
_WHITESPACE = re.compile(r"\s")


@dataclass(frozen=True)
class ParsedServerUrl:
    """Components of an http(s) URL that passed structural parsing.

    Attributes:
        scheme: Lower-cased scheme, ``http`` or ``https``.
        hostname: Lower-cased hostname without IPv6 brackets.
        port: Explicit port, or None.
        path: Raw path component.
        has_credentials: True if the URL embeds ``user:pass@``.
        query: Raw query string.
        fragment: Raw fragment.
    """

    scheme: str
    hostname: str
    port: int | None
    path: str
    has_credentials: bool
    query: str
    fragment: str

    @property
    def has_reserved_path(self) -> bool:
        """True if the path contains a REST API prefix."""
        return RESERVED_PATH_PATTERN.search(self.path) is not None


@dataclass(frozen=True)
class SanitizationResult:
    """Outcome of normalizing a raw server URL.

    Attributes:
        cleaned: Canonical base URL, or the trimmed input when invalid.
        changed: True if ``cleaned`` differs from the trimmed input.
        valid: False if the input could not be normalized.
    """

    cleaned: str
    changed: bool
    valid: bool


def parse_server_url(value: str) -> ParsedServerUrl | None:
    """Parse an http(s) URL into its components.

    Args:
        value: URL string, already trimmed.

    Returns:
        Parsed components, or None if the value is not a structurally valid
        http(s) URL with a hostname.
    """
    if not value or _WHITESPACE.search(value):
        return None
    try:
        parts = urlsplit(value)
        port = parts.port
    except ValueError:
        return None

    scheme = parts.scheme.lower()
    if scheme not in ALLOWED_SCHEMES:
        return None
    hostname = parts.hostname
    if not hostname or not _HOSTNAME_CHARS.match(hostname):
        return None

    return ParsedServerUrl(
        scheme=scheme,
        hostname=hostname.lower(),
        port=port,
        path=parts.path,
        has_credentials="@" in parts.netloc,
        query=parts.query,
        fragment=parts.fragment,
    )


def normalize_base_url(parsed: ParsedServerUrl) -> str:
    """Build the canonical base URL from parsed components.

    Drops credentials, query, fragment, default ports, everything from the
    first REST API prefix onwards, and trailing slashes.

    Args:
        parsed: Parsed URL components.

    Returns:
        ``scheme://host[:port][/path]`` without a trailing slash.
    """
    host = f"[{parsed.hostname}]" if ":" in parsed.hostname else parsed.hostname
    if parsed.port is not None and parsed.port != DEFAULT_PORTS[parsed.scheme]:
        host = f"{host}:{parsed.port}"

    path = parsed.path
    match = RESERVED_PATH_PATTERN.search(path)
    if match:
        path = path[: match.start()]
    path = path.rstrip("/")

    return f"{parsed.scheme}://{host}{path}"


def sanitize_server_url(raw: str | None) -> SanitizationResult:
    """Normalize a raw server URL into its canonical base form.

    Invalid input fails closed: ``valid`` is False and the trimmed input is
    returned unchanged. URLs with embedded credentials are invalid.

    Args:
        raw: The URL as typed by the user.

    Returns:
        SanitizationResult describing the canonical form.
    """
    trimmed = (raw or "").strip()
    parsed = parse_server_url(trimmed)
    if parsed is None or parsed.has_credentials:
        return SanitizationResult(cleaned=trimmed, changed=False, valid=False)

    cleaned = normalize_base_url(parsed)
    return SanitizationResult(cleaned=cleaned, changed=cleaned != trimmed, valid=True)


def build_url(base_url: str, *segments: str) -> str:
    """Join path segments onto a base URL, percent-encoding each segment.

    Args:
        base_url: Canonical base URL.
        *segments: Path segments, e.g. ``("fmeapiv4", "repositories", name)``.

    Returns:
        The joined URL.
    """
    path = "/".join(quote(segment.strip("/"), safe="") for segment in segments if segment)
    base = base_url.rstrip("/")
    return f"{base}/{path}" if path else base


__all__ = [
    "ParsedServerUrl",
    "RESERVED_PATH_PATTERN",
    "SanitizationResult",
    "build_url",
    "normalize_base_url",
    "parse_server_url",
    "sanitize_server_url",
]
