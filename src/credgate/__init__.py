"""credgate: credential verification and bearer token engine.

Authenticates end users with HTTP Basic credentials and OAuth 2.0 clients
with the client credentials grant, issues HS256 bearer tokens and answers
RFC 7662 introspection requests. Secrets are stored as Argon2id hashes and
read through TTL-cached repositories.

Example:
    >>> from credgate import EngineConfig, build_engine
    >>> engine = build_engine(EngineConfig.from_env())
    >>> result = engine.grant.token_request(
    ...     {"grant_type": "client_credentials", "client_id": "test-client",
    ...      "client_secret": "test-secret"}
    ... )
    >>> result.scope
    'read'
"""

__version__ = "1.0.0"

from credgate.config import EngineConfig  # noqa: E402
from credgate.errors import CredgateError, OAuth2Error  # noqa: E402
from credgate.factory import Engine, build_engine  # noqa: E402

__all__ = [
    "CredgateError",
    "Engine",
    "EngineConfig",
    "OAuth2Error",
    "__version__",
    "build_engine",
]
