"""RFC 7662 token introspection.

Introspection answers "is this token currently valid, and what does it
carry?". Every failure collapses to ``{"active": false}``.
"""

from __future__ import annotations

from credgate.models.responses import IntrospectionResponse
from credgate.observability.logging import get_logger
from credgate.observability.metrics import MetricsCollector, get_metrics
from credgate.tokens.engine import TokenEngine

logger = get_logger(__name__)


class TokenIntrospector:
    """Introspects tokens issued by a ``TokenEngine``.

    Example:
        >>> introspector = TokenIntrospector(engine)
        >>> introspector.introspect("not-a-token").to_wire()
        {'active': False}
    """

    def __init__(self, engine: TokenEngine, metrics: MetricsCollector | None = None) -> None:
        self._engine = engine
        self._metrics = metrics or get_metrics()

    def introspect(self, token: str | None) -> IntrospectionResponse:
        """Return the active claims of ``token``, or an inactive response. Never raises."""
        try:
            claims = self._engine.validated_claims(token)
        except Exception as exc:
            logger.error("credgate.introspection.unexpected_error", error=type(exc).__name__)
            claims = None

        if claims is None:
            self._metrics.increment_counter("credgate_introspection_total", {"active": "false"})
            return IntrospectionResponse.inactive()

        self._metrics.increment_counter("credgate_introspection_total", {"active": "true"})
        logger.debug("credgate.introspection.active", jti=claims.jti)
        return IntrospectionResponse.from_claims(claims)
