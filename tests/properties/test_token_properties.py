"""Property-based tests for the token engine.

Issued tokens always verify and carry what was issued; any change to a
signed token makes it invalid.
"""

from __future__ import annotations

import string

from hypothesis import given, settings
from hypothesis import strategies as st

from credgate.config import TokenSettings
from credgate.observability.metrics import MetricsCollector
from credgate.tokens.engine import TokenEngine

_SECRET = "property-signing-secret-0123456789-abcdef"
_B64URL_ALPHABET = string.ascii_letters + string.digits + "-_"
_NOW = 1_700_000_000.0

_ENGINE = TokenEngine(
    TokenSettings(signing_secret=_SECRET),
    clock=lambda: _NOW,
    metrics=MetricsCollector(),
)


def st_client_id() -> st.SearchStrategy[str]:
    """Client identifiers as they appear in store records."""
    return st.text(
        alphabet=string.ascii_letters + string.digits + "-_.:", min_size=1, max_size=40
    )


def st_scope() -> st.SearchStrategy[str | None]:
    scope_name = st.text(alphabet=string.ascii_lowercase + ":.", min_size=1, max_size=12)
    return st.one_of(
        st.none(),
        st.lists(scope_name, min_size=1, max_size=4).map(" ".join),
    )


class TestIssuedTokens:
    @given(client_id=st_client_id(), scope=st_scope(), ttl=st.integers(min_value=1, max_value=7200))
    def test_issued_token_verifies_with_its_claims(
        self, client_id: str, scope: str | None, ttl: int
    ) -> None:
        response = _ENGINE.issue_for_client(client_id, scope, ttl)
        claims = _ENGINE.validated_claims(response.access_token)

        assert claims is not None
        assert claims.client_id == client_id
        assert claims.sub == client_id
        assert claims.scope == scope
        assert claims.exp - claims.iat == ttl
        assert response.expires_in == ttl

    @given(ttl=st.integers(min_value=-10_000, max_value=100_000))
    def test_lifetime_always_within_bounds(self, ttl: int) -> None:
        lifetime = _ENGINE.clamp_ttl(ttl)

        assert 1 <= lifetime <= _ENGINE.settings.max_ttl


class TestTamperedTokens:
    @settings(max_examples=50)
    @given(data=st.data())
    def test_signature_change_invalidates(self, data: st.DataObject) -> None:
        token = _ENGINE.issue_for_client("test-client", "read", 600).access_token
        header, payload, signature = token.split(".")
        # The final character carries padding bits, so it is left alone
        index = data.draw(st.integers(min_value=0, max_value=len(signature) - 2))
        replacement = data.draw(
            st.sampled_from(_B64URL_ALPHABET).filter(lambda c: c != signature[index])
        )
        forged = signature[:index] + replacement + signature[index + 1:]

        assert not _ENGINE.verify(f"{header}.{payload}.{forged}")

    @settings(max_examples=50)
    @given(data=st.data())
    def test_payload_change_invalidates(self, data: st.DataObject) -> None:
        token = _ENGINE.issue_for_client("test-client", "read", 600).access_token
        header, payload, signature = token.split(".")
        index = data.draw(st.integers(min_value=0, max_value=len(payload) - 2))
        replacement = data.draw(
            st.sampled_from(_B64URL_ALPHABET).filter(lambda c: c != payload[index])
        )
        forged = payload[:index] + replacement + payload[index + 1:]

        assert _ENGINE.validated_claims(f"{header}.{forged}.{signature}") is None

    @given(garbage=st.text(max_size=200))
    def test_arbitrary_text_never_verifies(self, garbage: str) -> None:
        assert not _ENGINE.verify(garbage)
        assert _ENGINE.extract_client_id(garbage) is None
