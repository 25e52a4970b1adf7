"""ULID-based token identifiers.

Token IDs are ``tok_`` followed by a ULID, so they are unique, URL-safe and
carry their issue time in the first 48 bits.

Note: Order is guaranteed only across different milliseconds. Two ULIDs generated
within the same millisecond share the same timestamp prefix; their lexicographic
order is then determined by the random component.
"""

from datetime import datetime

from ulid import ULID

TOKEN_ID_PREFIX = "tok_"


def generate_token_id() -> str:
    """Generate a new token identifier.

    Example:
        >>> token_id = generate_token_id()
        >>> token_id.startswith("tok_"), len(token_id)
        (True, 30)
    """
    return TOKEN_ID_PREFIX + str(ULID())


def extract_timestamp(token_id: str) -> datetime:
    """Extract the creation time from a token identifier.

    Raises:
        ValueError: If the identifier is not ``tok_`` + a valid ULID
    """
    if not token_id.startswith(TOKEN_ID_PREFIX):
        raise ValueError("Token ID must start with 'tok_'")
    return ULID.from_str(token_id[len(TOKEN_ID_PREFIX):]).datetime
