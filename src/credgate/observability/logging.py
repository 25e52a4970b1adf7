"""Structured logging for credgate.

All modules log through structlog with dotted event names
(``credgate.grant.issued``). Because the engine handles passwords, client
secrets, hashes and tokens on nearly every code path, the processor chain
scrubs every event before it is rendered:

- ``redact_secrets`` replaces values of sensitive keys (see
  ``sanitize_for_logging``) in each event dict
- ``mask_identifier`` is applied by callers to usernames and client IDs

Environment Variables:
    CREDGATE_LOG_FORMAT: "json" for one JSON object per line, "console" for colored output
    CREDGATE_LOG_LEVEL: Minimum level (DEBUG, INFO, WARNING, ERROR)
    CREDGATE_SERVICE_NAME: Value of the ``service`` field on every event

Example:
    >>> from credgate.observability.logging import configure_logging, get_logger
    >>> configure_logging(log_format="json", log_level="INFO")
    >>> logger = get_logger("credgate.auth.basic")
    >>> logger.info("credgate.basic.authenticated", username="d**o")
"""

import logging
import os
import sys
from typing import Any, MutableMapping, TextIO

import structlog
from structlog.typing import Processor

DEFAULT_LOG_LEVEL = "INFO"
DEFAULT_LOG_FORMAT = "console"
DEFAULT_SERVICE_NAME = "credgate"

ENV_LOG_FORMAT = "CREDGATE_LOG_FORMAT"
ENV_LOG_LEVEL = "CREDGATE_LOG_LEVEL"
ENV_SERVICE_NAME = "CREDGATE_SERVICE_NAME"

REDACTED_PLACEHOLDER = "***REDACTED***"

# Case-insensitive substrings that mark a key as carrying secret material
_SENSITIVE_KEY_PATTERNS = frozenset(
    {"password", "token", "secret", "hash", "authorization", "credential"}
)

# Keys structlog itself adds; never redacted
_STRUCTURAL_KEYS = frozenset({"event", "level", "logger", "timestamp", "service"})

_logging_configured = False


def _is_sensitive_key(key: str) -> bool:
    lower = key.lower()
    return any(pattern in lower for pattern in _SENSITIVE_KEY_PATTERNS)


def _sanitize_value(value: Any) -> Any:
    if isinstance(value, dict):
        return sanitize_for_logging(value)
    if isinstance(value, (list, tuple)):
        return [_sanitize_value(item) for item in value]
    return value


def sanitize_for_logging(data: dict[str, Any]) -> dict[str, Any]:
    """Return a copy of ``data`` with sensitive values replaced.

    Keys containing password, token, secret, hash, authorization or
    credential (case-insensitive) are redacted. Nested dicts and dicts
    inside lists are handled recursively. The input is not modified.

    Args:
        data: A parsed store record, form parameters or similar mapping

    Returns:
        A sanitized copy

    Example:
        >>> sanitize_for_logging({"clientId": "demo", "clientSecret": "s3cr3t"})
        {'clientId': 'demo', 'clientSecret': '***REDACTED***'}
    """
    if not data:
        return {}
    return {
        key: REDACTED_PLACEHOLDER if _is_sensitive_key(key) else _sanitize_value(value)
        for key, value in data.items()
    }


def mask_identifier(value: str | None) -> str:
    """Mask a username or client ID for audit logs.

    Keeps the first and last character and replaces the middle with ``*``.
    Identifiers of two characters or fewer are fully masked.

    Example:
        >>> mask_identifier("demo-client")
        'd*********t'
        >>> mask_identifier("ab")
        '***'
    """
    if value is None or len(value) <= 2:
        return "***"
    return value[0] + "*" * (len(value) - 2) + value[-1]


def redact_secrets(
    logger: Any, method_name: str, event_dict: MutableMapping[str, Any]
) -> MutableMapping[str, Any]:
    """structlog processor applying ``sanitize_for_logging`` to each event."""
    for key in list(event_dict):
        if key in _STRUCTURAL_KEYS:
            continue
        if _is_sensitive_key(key):
            event_dict[key] = REDACTED_PLACEHOLDER
        else:
            event_dict[key] = _sanitize_value(event_dict[key])
    return event_dict


def _setting(env_var: str, default: str) -> str:
    return os.environ.get(env_var, default)


def _shared_processors() -> list[Processor]:
    return [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_log_level,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.PositionalArgumentsFormatter(),
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.UnicodeDecoder(),
        redact_secrets,
    ]


def _renderer(log_format: str) -> Processor:
    if log_format == "json":
        return structlog.processors.JSONRenderer()
    return structlog.dev.ConsoleRenderer(
        colors=True,
        exception_formatter=structlog.dev.plain_traceback,
    )


def configure_logging(
    log_format: str | None = None,
    log_level: str | None = None,
    service_name: str | None = None,
    force: bool = False,
    stream: TextIO | None = None,
) -> None:
    """Configure structlog and the root stdlib logger.

    Args:
        log_format: "json" or "console" (defaults to ``CREDGATE_LOG_FORMAT`` or "console")
        log_level: Minimum level (defaults to ``CREDGATE_LOG_LEVEL`` or "INFO")
        service_name: ``service`` field value (defaults to ``CREDGATE_SERVICE_NAME``)
        force: Reconfigure even if logging was already configured
        stream: Output stream (defaults to stdout)
    """
    global _logging_configured

    if _logging_configured and not force:
        return

    log_format = (log_format or _setting(ENV_LOG_FORMAT, DEFAULT_LOG_FORMAT)).lower()
    log_level = (log_level or _setting(ENV_LOG_LEVEL, DEFAULT_LOG_LEVEL)).upper()
    service_name = service_name or _setting(ENV_SERVICE_NAME, DEFAULT_SERVICE_NAME)

    shared = _shared_processors()
    structlog.configure(
        processors=[*shared, structlog.stdlib.ProcessorFormatter.wrap_for_formatter],
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )

    handler = logging.StreamHandler(stream or sys.stdout)
    handler.setFormatter(
        structlog.stdlib.ProcessorFormatter(
            foreign_pre_chain=shared,
            processors=[
                structlog.stdlib.ProcessorFormatter.remove_processors_meta,
                _renderer(log_format),
            ],
        )
    )

    root_logger = logging.getLogger()
    root_logger.handlers.clear()
    root_logger.addHandler(handler)
    root_logger.setLevel(getattr(logging, log_level, logging.INFO))

    structlog.contextvars.bind_contextvars(service=service_name)
    _logging_configured = True


def get_logger(name: str) -> structlog.stdlib.BoundLogger:
    """Return a structlog logger, configuring defaults on first use."""
    if not _logging_configured:
        configure_logging()
    return structlog.stdlib.get_logger(name)


def bind_context(**kwargs: Any) -> None:
    """Bind fields (e.g. ``request_id``) to every subsequent event in this context."""
    structlog.contextvars.bind_contextvars(**kwargs)


def clear_context() -> None:
    structlog.contextvars.clear_contextvars()
