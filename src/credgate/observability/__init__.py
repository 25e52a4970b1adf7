"""Observability module for credgate.

Structured logging (structlog), identifier masking and thread-safe metrics
shared by the hashing module, token engine, repositories and flows.

Example:
    >>> from credgate.observability import get_logger, get_metrics
    >>>
    >>> logger = get_logger(__name__)
    >>> logger.info("credgate.grant.issued", client_id="d*********t")
    >>>
    >>> metrics = get_metrics()
    >>> metrics.increment_counter("credgate_token_issued_total")
"""

from credgate.observability.logging import (
    bind_context,
    clear_context,
    configure_logging,
    get_logger,
    mask_identifier,
    redact_secrets,
    sanitize_for_logging,
)
from credgate.observability.metrics import (
    MetricsCollector,
    get_metrics,
    reset_metrics,
)

__all__ = [
    "bind_context",
    "clear_context",
    "configure_logging",
    "get_logger",
    "get_metrics",
    "mask_identifier",
    "redact_secrets",
    "reset_metrics",
    "MetricsCollector",
    "sanitize_for_logging",
]
