"""Token engine: HS256 bearer token issuance and verification."""

from credgate.tokens.engine import IssuedToken, TokenEngine
from credgate.tokens.ids import extract_timestamp, generate_token_id

__all__ = [
    "IssuedToken",
    "TokenEngine",
    "extract_timestamp",
    "generate_token_id",
]
