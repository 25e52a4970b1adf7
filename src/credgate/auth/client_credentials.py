"""OAuth 2.0 client credentials grant (RFC 6749 §4.4).

The grant validates the client and its requested scopes, then asks the
token engine for a bearer token. Protocol failures are raised internally as
``OAuth2Error`` and converted to ``OAuthErrorResponse`` at the boundary, so
``authenticate`` always returns a ``GrantResult`` and never raises.

Evaluation order:
1. grant type must be ``client_credentials`` (``unsupported_grant_type``)
2. client must exist and the secret must match (``invalid_client``)
3. client must be ACTIVE (``access_denied``)
4. every requested scope must be allowed (``invalid_scope``)
5. token lifetime is capped by ``max_token_lifetime``
"""

from __future__ import annotations

import time
from typing import Callable, Iterable, Mapping

from pydantic import Field

from credgate.auth.parsing import parse_token_request
from credgate.auth.scopes import default_scope, parse_scopes, scopes_allowed
from credgate.crypto.hashing import SecretHasher
from credgate.errors import OAuth2Error
from credgate.models.base import CredgateBaseModel
from credgate.models.entities import OAuthClient
from credgate.models.requests import TokenRequest
from credgate.models.responses import GrantResult, OAuthErrorResponse, TokenResponse
from credgate.observability.logging import get_logger, mask_identifier
from credgate.observability.metrics import MetricsCollector, get_metrics
from credgate.storage.repository import ClientRepository
from credgate.tokens.engine import TokenEngine

logger = get_logger(__name__)

DEFAULT_MAX_TOKEN_LIFETIME = 7200


class GrantSettings(CredgateBaseModel):
    """Policy knobs for the client credentials grant.

    Attributes:
        max_token_lifetime: Upper bound for any issued token lifetime (seconds)
        enable_client_status_check: Reject clients whose status is not ACTIVE
    """

    max_token_lifetime: int = Field(default=DEFAULT_MAX_TOKEN_LIFETIME, gt=0)
    enable_client_status_check: bool = True


class ClientCredentialsGrant:
    """Client credentials grant orchestrator.

    Args:
        clients: Repository of registered OAuth clients
        hasher: Hasher used to verify client secret hashes
        engine: Token engine that signs access tokens
        settings: Grant policy (defaults to ``GrantSettings()``)
        metrics: Metrics collector (defaults to the global collector)

    Example:
        >>> grant = ClientCredentialsGrant(clients, hasher, engine)
        >>> result = grant.authenticate(
        ...     TokenRequest(
        ...         grant_type="client_credentials",
        ...         client_id="test-client",
        ...         client_secret="test-secret",
        ...     )
        ... )
        >>> result.scope
        'read'
    """

    def __init__(
        self,
        clients: ClientRepository,
        hasher: SecretHasher,
        engine: TokenEngine,
        settings: GrantSettings | None = None,
        metrics: MetricsCollector | None = None,
        timer: Callable[[], float] = time.perf_counter,
    ) -> None:
        self._clients = clients
        self._hasher = hasher
        self._engine = engine
        self._settings = settings or GrantSettings()
        self._metrics = metrics or get_metrics()
        self._timer = timer
        self._dummy_hash = hasher.hash("credgate-placeholder-client-secret")

    @property
    def settings(self) -> GrantSettings:
        return self._settings

    def authenticate(
        self, request: TokenRequest | None, requested_lifetime: int | None = None
    ) -> GrantResult:
        """Run the grant and return a token or an OAuth2 error response."""
        start = self._timer()
        self._metrics.increment_counter("credgate_grant_requests_total")
        try:
            result: GrantResult = self._authenticate(request, requested_lifetime)
        except OAuth2Error as exc:
            result = exc.to_response()
        except Exception as exc:
            logger.error(
                "credgate.grant.unexpected_error",
                client_id=mask_identifier(request.client_id if request else None),
                error=type(exc).__name__,
                message=str(exc),
            )
            result = OAuth2Error.server_error().to_response()

        if isinstance(result, OAuthErrorResponse):
            self._metrics.increment_counter(
                "credgate_grant_errors_total", {"error": result.error}
            )
        self._metrics.observe_histogram("credgate_grant_duration_seconds", self._timer() - start)
        return result

    def token_request(
        self,
        form: Mapping[str, str] | None,
        authorization: str | None = None,
        requested_lifetime: int | None = None,
    ) -> GrantResult:
        """Parse token endpoint parameters and run the grant."""
        try:
            request = parse_token_request(form, authorization)
        except OAuth2Error as exc:
            logger.info("credgate.grant.rejected_request", error=exc.error)
            self._metrics.increment_counter("credgate_grant_requests_total")
            self._metrics.increment_counter("credgate_grant_errors_total", {"error": exc.error})
            return exc.to_response()
        return self.authenticate(request, requested_lifetime)

    def _authenticate(
        self, request: TokenRequest | None, requested_lifetime: int | None
    ) -> TokenResponse:
        if request is None:
            raise OAuth2Error.invalid_request("Token request cannot be empty")
        if not request.is_client_credentials_grant:
            raise OAuth2Error.unsupported_grant_type(request.grant_type)

        masked = mask_identifier(request.client_id)
        client = self._authenticate_client(request.client_id, request.client_secret)
        if client is None:
            logger.info("credgate.grant.invalid_client", client_id=masked)
            raise OAuth2Error.invalid_client()

        if self._settings.enable_client_status_check and not client.is_active():
            logger.info(
                "credgate.grant.client_inactive", client_id=masked, status=client.status.value
            )
            raise OAuth2Error.access_denied(
                f"Client is not active: {client.status.display_name}"
            )

        if request.requested_scopes:
            if not scopes_allowed(request.requested_scopes, client.allowed_scopes):
                logger.info("credgate.grant.invalid_scope", client_id=masked)
                raise OAuth2Error.invalid_scope(request.scope)
            scope = request.normalized_scope
        else:
            scope = default_scope(client.allowed_scopes)

        lifetime = client.effective_token_expiration(
            requested_lifetime, self._settings.max_token_lifetime
        )
        response = self._engine.issue_for_client(client.client_id, scope, lifetime)
        logger.info(
            "credgate.grant.issued",
            client_id=masked,
            scope=scope,
            expires_in=response.expires_in,
        )
        return response

    def _authenticate_client(self, client_id: str, client_secret: str) -> OAuthClient | None:
        client = self._clients.find(client_id)
        if client is None:
            self._hasher.verify(client_secret, self._dummy_hash)
            return None
        if not self._hasher.verify(client_secret, client.client_secret_hash):
            return None
        return client

    def _find(self, client_id: str | None) -> OAuthClient | None:
        if client_id is None or not client_id.strip():
            return None
        try:
            return self._clients.find(client_id)
        except Exception as exc:
            logger.warning(
                "credgate.grant.lookup_failed",
                client_id=mask_identifier(client_id),
                error=type(exc).__name__,
            )
            return None

    def validate_client_credentials(self, client_id: str | None, client_secret: str | None) -> bool:
        """True if the client exists and the secret matches (status is not checked)."""
        if client_id is None or not client_id.strip() or not client_secret:
            return False
        try:
            return self._authenticate_client(client_id, client_secret) is not None
        except Exception as exc:
            logger.warning(
                "credgate.grant.validation_failed",
                client_id=mask_identifier(client_id),
                error=type(exc).__name__,
            )
            return False

    def validate_client_scopes(
        self, client_id: str | None, scopes: str | Iterable[str] | None
    ) -> bool:
        """True if every scope is in the client's allow-list; False for unknown clients."""
        client = self._find(client_id)
        if client is None:
            return False
        return scopes_allowed(parse_scopes(scopes), client.allowed_scopes)

    def is_client_active(self, client_id: str | None) -> bool:
        client = self._find(client_id)
        return client is not None and client.is_active()

    def effective_token_expiration(
        self, client_id: str | None, requested_lifetime: int | None = None
    ) -> int:
        """Lifetime a token for this client would get; the grant maximum for unknown clients."""
        client = self._find(client_id)
        if client is None:
            if requested_lifetime is not None and requested_lifetime > 0:
                return min(requested_lifetime, self._settings.max_token_lifetime)
            return self._settings.max_token_lifetime
        return client.effective_token_expiration(
            requested_lifetime, self._settings.max_token_lifetime
        )
