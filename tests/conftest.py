"""Pytest configuration shared across the suite."""

import pytest

from app.services.token_cipher import TokenCipherService


@pytest.fixture
def anyio_backend() -> str:
    """Force AnyIO-powered tests to run against asyncio backend only."""
    return "asyncio"


@pytest.fixture
def token_cipher() -> TokenCipherService:
    """Cipher with a fixed test secret for cookies and stored credentials."""
    return TokenCipherService(secret="suite-secret")
