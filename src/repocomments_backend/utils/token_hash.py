"""Token hashing utilities for credential lookups."""

import hashlib


def hash_token(token: str) -> str:
    """
    Hash a token using SHA-256.

    Credentials are never stored or used as keys in plain text; the
    session store is keyed by this hex digest (64 chars).
    """
    return hashlib.sha256(token.encode('utf-8')).hexdigest()


def extract_bearer_token(authorization: str | None) -> str | None:
    """Return the token of an ``Authorization: Bearer <token>`` header value."""
    if not authorization:
        return None
    scheme, _, param = authorization.partition(" ")
    if scheme.lower() != "bearer" or not param.strip():
        return None
    return param.strip()
