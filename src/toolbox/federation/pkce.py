"""PKCE (RFC 7636) and CSRF state generation."""

import base64
import hashlib
import secrets

# 32 random bytes -> 43 base64url characters, the RFC 7636 minimum length
VERIFIER_BYTES = 32
STATE_BYTES = 32


def _b64url(data: bytes) -> str:
    return base64.urlsafe_b64encode(data).decode("ascii").rstrip("=")


def generate_code_verifier() -> str:
    """
    Generate a PKCE code verifier.

    Returns:
        Base64url string (no padding) of 32 random bytes
    """
    return _b64url(secrets.token_bytes(VERIFIER_BYTES))


def generate_code_challenge(verifier: str) -> str:
    """
    Derive the S256 code challenge for a verifier.

    Args:
        verifier: The code verifier string

    Returns:
        base64url(SHA-256(verifier)) without padding
    """
    return _b64url(hashlib.sha256(verifier.encode("ascii")).digest())


def generate_state() -> str:
    """
    Generate an opaque CSRF state token.

    Drawn separately from the verifier so neither can be derived from the other.
    """
    return _b64url(secrets.token_bytes(STATE_BYTES))
