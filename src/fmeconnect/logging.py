"""Structured logging configuration for FME Connect.

Records can carry connection context (``server_url``, ``repository``,
``phase``, ``generation``) through ``extra`` or a ``with_context`` adapter;
both formatters render it. Tokens never reach a log line unmasked: use
:func:`mask_token` whenever one is interpolated.
"""

from __future__ import annotations

import json
import logging
import sys
from collections.abc import Iterator, MutableMapping
from datetime import UTC, datetime
from typing import Any

# Context fields rendered by the formatters when present on a record
CONTEXT_FIELDS = ("server_url", "repository", "phase", "generation")

# Extra fields only the JSON formatter emits
_JSON_ONLY_FIELDS = ("status", "error_kind")

_WILDCARD_TAG = "*"

# Tokens at or below this length are fully masked
_MASK_MIN_LENGTH = 8
_MASK_VISIBLE = 4


def mask_token(token: str | None) -> str:
    """Mask a token for safe inclusion in log output.

    Args:
        token: The token to mask.

    Returns:
        Empty string for an empty token, ``***`` for short tokens, otherwise
        the first and last four characters around an ellipsis.
    """
    if not token:
        return ""
    if len(token) <= _MASK_MIN_LENGTH:
        return "***"
    return f"{token[:_MASK_VISIBLE]}...{token[-_MASK_VISIBLE:]}"


class DiagnosticFilter(logging.Filter):
    """Drops tagged DEBUG records unless their tag is switched on.

    Probe and repository-loading code tags its chattiest debug output::

        logger.debug("Listing repositories", extra={"diagnostic_tag": "repositories"})

    Such records are emitted only for tags listed in
    ``FMECONNECT_DIAGNOSTIC_TAGS`` (``*`` switches on every tag). Untagged
    records and anything above DEBUG are never filtered.

    Attributes:
        enabled_tags: Tags whose debug records are emitted.
    """

    def __init__(self, enabled_tags: frozenset[str] | None = None) -> None:
        super().__init__()
        self.enabled_tags: frozenset[str] = enabled_tags or frozenset()

    def filter(self, record: logging.LogRecord) -> bool:
        tag = getattr(record, "diagnostic_tag", None)
        if record.levelno != logging.DEBUG or tag is None:
            return True
        return _WILDCARD_TAG in self.enabled_tags or tag in self.enabled_tags

    @classmethod
    def from_config_string(cls, tags_csv: str) -> DiagnosticFilter:
        """Build a filter from a comma-separated tag list such as ``"probe, repositories"``.

        Args:
            tags_csv: Tags separated by commas; blank entries are ignored.

        Returns:
            The configured filter.
        """
        return cls(frozenset(tag.strip() for tag in tags_csv.split(",") if tag.strip()))


def _component(record: logging.LogRecord) -> str:
    # "fmeconnect.orchestrator" -> "orchestrator"
    return record.name.rsplit(".", 1)[-1]


def _fields(record: logging.LogRecord, names: tuple[str, ...]) -> Iterator[tuple[str, Any]]:
    for name in names:
        if hasattr(record, name):
            yield name, getattr(record, name)


class StructuredFormatter(logging.Formatter):
    """Single-line human-readable formatter.

    Example output::

        2024-07-01 12:00:00.123 [INFO    ] [orchestrator] [generation=3] Connection test succeeded
    """

    def format(self, record: logging.LogRecord) -> str:
        created = datetime.fromtimestamp(record.created, tz=UTC)
        line = [
            created.strftime("%Y-%m-%d %H:%M:%S.") + f"{created.microsecond // 1000:03d}",
            f"[{record.levelname:8}]",
            f"[{_component(record):12}]",
        ]
        context = " ".join(f"{name}={value}" for name, value in _fields(record, CONTEXT_FIELDS))
        if context:
            line.append(f"[{context}]")
        line.append(record.getMessage())
        if record.exc_info:
            line.append(self.formatException(record.exc_info))
        return " ".join(line)


class JSONFormatter(logging.Formatter):
    """One JSON object per record, for log shippers."""

    def format(self, record: logging.LogRecord) -> str:
        payload: dict[str, Any] = {
            "timestamp": datetime.fromtimestamp(record.created, tz=UTC).isoformat(),
            "level": record.levelname,
            "component": _component(record),
            "message": record.getMessage(),
        }
        payload.update(_fields(record, CONTEXT_FIELDS + _JSON_ONLY_FIELDS))
        if record.exc_info:
            payload["exception"] = self.formatException(record.exc_info)
        return json.dumps(payload, default=str)


class ContextAdapter(logging.LoggerAdapter[logging.Logger]):
    """Logger adapter that merges fixed context into every record.

    Per-call ``extra`` values are kept; the adapter's context wins on
    conflicting keys.
    """

    def process(
        self, msg: str, kwargs: MutableMapping[str, Any]
    ) -> tuple[str, MutableMapping[str, Any]]:
        kwargs["extra"] = {**kwargs.get("extra", {}), **(self.extra or {})}
        return msg, kwargs


class FmeConnectLogger(logging.Logger):
    """Logger class installed for the whole process by this module."""

    def with_context(self, **context: Any) -> ContextAdapter:
        """Bind connection context, e.g. ``server_url`` or ``generation``.

        Returns:
            Adapter that adds the context to every record it logs.
        """
        return ContextAdapter(self, context)


logging.setLoggerClass(FmeConnectLogger)


def get_logger(name: str) -> FmeConnectLogger:
    """Return the FmeConnectLogger for ``name`` (typically ``__name__``)."""
    return logging.getLogger(name)  # type: ignore[return-value]


def _build_handler(level: int, json_format: bool, diagnostic_tags: str) -> logging.Handler:
    handler = logging.StreamHandler(sys.stderr)
    handler.setLevel(level)
    handler.setFormatter(JSONFormatter() if json_format else StructuredFormatter())
    handler.addFilter(DiagnosticFilter.from_config_string(diagnostic_tags))
    return handler


def setup_logging(
    level: str = "INFO",
    json_format: bool = False,
    replace_handlers: bool = True,
    diagnostic_tags: str = "",
) -> None:
    """Route log output to stderr.

    Args:
        level: Log level name; unknown names fall back to INFO.
        json_format: Emit JSON lines instead of the structured text format.
        replace_handlers: Drop handlers already attached to the root logger.
        diagnostic_tags: Comma-separated diagnostic tags to switch on.
    """
    numeric_level = logging.getLevelNamesMapping().get(level.upper(), logging.INFO)

    root = logging.getLogger()
    if replace_handlers:
        for existing in list(root.handlers):
            root.removeHandler(existing)
    root.setLevel(numeric_level)
    root.addHandler(_build_handler(numeric_level, json_format, diagnostic_tags))

    logging.getLogger("fmeconnect").setLevel(numeric_level)
    # httpx logs every request at INFO
    logging.getLogger("httpx").setLevel(logging.WARNING)


__all__ = [
    "CONTEXT_FIELDS",
    "ContextAdapter",
    "DiagnosticFilter",
    "FmeConnectLogger",
    "JSONFormatter",
    "StructuredFormatter",
    "get_logger",
    "mask_token",
    "setup_logging",
]
