"""PKCE (RFC 7636) verifier and S256 challenge helpers."""

from __future__ import annotations

import base64
import hashlib
import secrets


def _b64url(data: bytes) -> str:
    return base64.urlsafe_b64encode(data).rstrip(b"=").decode("ascii")


def generate_code_verifier(num_bytes: int = 32) -> str:
    """Return a high-entropy verifier: random bytes, base64url, unpadded."""
    return _b64url(secrets.token_bytes(num_bytes))


def generate_code_challenge(verifier: str) -> str:
    """Derive the S256 challenge for ``verifier``."""
    return _b64url(hashlib.sha256(verifier.encode("ascii")).digest())


__all__ = ["generate_code_challenge", "generate_code_verifier"]
